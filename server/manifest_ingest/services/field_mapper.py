"""
Tiered header -> canonical field mapping.

Tiers, each tried only when the previous one misses:

1. exact match in the document type's header table (1.0)
2. case/whitespace-insensitive match in the same table (0.9)
3. fuzzy synonym table, or a header that camel-cases to a standard field (0.8)
4. AI collaborator with a shortlist of candidates, memoized in a TTL cache
5. unmapped: the value is kept under its original header in miscellaneous
"""

import asyncio
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from manifest_ingest.db.schemas import AIMappedField, FieldMappingResult, HeaderMapping, HeaderMappingResult
from manifest_ingest.services.extraction_config import (
    AI_FAILURE_CONFIDENCE,
    CASE_INSENSITIVE_MATCH_CONFIDENCE,
    DEFAULT_AI_CACHE_TTL_SECONDS,
    EXACT_MATCH_CONFIDENCE,
    FUZZY_MATCH_CONFIDENCE,
    UNMAPPED_CONFIDENCE,
    ParsingOptions,
)
from manifest_ingest.services.field_mappings import (
    FUZZY_MATCHES,
    POSITIONAL_FIELDS,
    get_field_mapping,
    is_standard_field,
    misc_field_name,
    normalize_field_name,
    normalize_header,
)
from manifest_ingest.services.mapping_cache import MappingCache, make_mapping_key
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.schema_reference import get_potential_matches
from manifest_ingest.services.value_extractors import cell_to_text, is_empty_value

logger = logging.getLogger(__name__)

UNKNOWN_FIELD = "unknown"


def _unmapped(header: str, confidence: float = UNMAPPED_CONFIDENCE, reasoning: Optional[str] = None) -> FieldMappingResult:
    return FieldMappingResult(
        field_name=UNKNOWN_FIELD,
        confidence=confidence,
        original_field=header,
        is_miscellaneous=True,
        reasoning=reasoning,
    )


class FieldMapper:
    """
    Maps raw headers to canonical fields.

    Owns the AI mapping cache, so one mapper shared across documents only asks
    the AI collaborator about a given header once per TTL window.
    """

    def __init__(
        self,
        ai_service=None,
        cache: Optional[MappingCache] = None,
        clock: Callable[[], float] = time.time,
        cache_ttl_seconds: int = DEFAULT_AI_CACHE_TTL_SECONDS,
    ):
        self.logger = logging.getLogger(__name__)
        self.ai_service = ai_service
        self.cache = cache if cache is not None else MappingCache(ttl_seconds=cache_ttl_seconds, clock=clock)

    def ai_available(self) -> bool:
        return self.ai_service is not None and self.ai_service.is_available()

    def map_header_statically(self, header: str, field_mapping: Dict[str, str]) -> Optional[FieldMappingResult]:
        """Tiers 1-3; None when no rule matches."""
        if header in field_mapping:
            return FieldMappingResult(
                field_name=field_mapping[header], confidence=EXACT_MATCH_CONFIDENCE, original_field=header
            )

        normalized = normalize_header(header)
        for key, field_name in field_mapping.items():
            if normalize_header(key) == normalized:
                return FieldMappingResult(
                    field_name=field_name, confidence=CASE_INSENSITIVE_MATCH_CONFIDENCE, original_field=header
                )

        if normalized in FUZZY_MATCHES:
            return FieldMappingResult(
                field_name=FUZZY_MATCHES[normalized], confidence=FUZZY_MATCH_CONFIDENCE, original_field=header
            )

        camel_case = normalize_field_name(header)
        if is_standard_field(camel_case):
            return FieldMappingResult(field_name=camel_case, confidence=FUZZY_MATCH_CONFIDENCE, original_field=header)

        return None

    async def _map_with_ai(self, header: str) -> FieldMappingResult:
        candidates = [match["fieldName"] for match in get_potential_matches(header)]
        cache_key = make_mapping_key(header, candidates)

        cached = self.cache.get(cache_key)
        if cached is not None:
            self.logger.debug(f"🤖 Cache hit for field mapping: '{header}'")
            return cached.model_copy(update={"reasoning": "Retrieved from cache."})

        try:
            suggestion = await self.ai_service.map_field(header, candidates)
        except Exception as e:
            self.logger.warning(f"⚠️ AI mapping failed for '{header}': {e}")
            return _unmapped(header, AI_FAILURE_CONFIDENCE, reasoning=f"Error during mapping: {e}")

        if suggestion.field_name == UNKNOWN_FIELD:
            result = _unmapped(header, suggestion.confidence, reasoning=suggestion.reasoning)
        else:
            result = suggestion.model_copy(update={"ai_mapped": True, "original_field": header})

        self.cache.set(cache_key, result)
        return result

    async def map_header_to_field(
        self,
        header: Any,
        field_mapping: Optional[Dict[str, str]] = None,
        use_ai: bool = True,
    ) -> FieldMappingResult:
        """Resolve one header through the tiers."""
        header_text = cell_to_text(header)
        if not header_text:
            return _unmapped(header_text)

        static_result = self.map_header_statically(header_text, field_mapping or {})
        if static_result is not None:
            return static_result

        # Cells without letters (serials, weights, dates) are never headers
        if use_ai and self.ai_available() and re.search(r"[A-Za-z]", header_text):
            return await self._map_with_ai(header_text)

        self.logger.debug(f"Unable to map field: {header_text}")
        return _unmapped(header_text)

    async def map_headers(
        self,
        headers: Sequence[Any],
        options: ParsingOptions,
    ) -> List[FieldMappingResult]:
        """Map every header of a row concurrently."""
        field_mapping = get_field_mapping(options.document_type, options.field_mapping)
        return list(await asyncio.gather(*[
            self.map_header_to_field(header, field_mapping, options.use_ai_mapping)
            for header in headers
        ]))

    async def build_header_mapping(self, headers: Sequence[Any], options: ParsingOptions) -> HeaderMappingResult:
        """
        Map a sheet's header row once; every data row reuses the result.

        Headers without a canonical field get a synthetic ``misc_<slug>``
        name. When two headers resolve to the same field the first one owns
        it and the later one is treated as miscellaneous.
        """
        results = await self.map_headers(headers, options)
        mapping = HeaderMappingResult()

        for column_index, (header, result) in enumerate(zip(headers, results)):
            header_text = cell_to_text(header)
            if not header_text:
                continue

            mapped_field = result.field_name
            if mapped_field == UNKNOWN_FIELD or mapped_field in mapping.field_to_header:
                if mapped_field != UNKNOWN_FIELD:
                    self.logger.warning(
                        f"⚠️ Header '{header_text}' also maps to '{mapped_field}', keeping '{mapping.field_to_header[mapped_field]}'"
                    )
                mapped_field = misc_field_name(header_text)
            else:
                mapping.field_to_header[mapped_field] = header_text

            mapping.detailed_mapping.append(HeaderMapping(
                original_header=header_text,
                mapped_field=mapped_field,
                confidence=result.confidence,
                ai_mapped=result.ai_mapped,
                column_index=column_index,
            ))

        ai_count = sum(1 for entry in mapping.detailed_mapping if entry.ai_mapped)
        self.logger.info(
            f"🔍 Mapped {len(mapping.field_to_header)}/{len(mapping.detailed_mapping)} headers"
            f"{f' ({ai_count} via AI)' if ai_count else ''}"
        )
        return mapping

    def map_row_to_fields(
        self,
        row: Sequence[Any],
        header_mapping: Optional[HeaderMappingResult],
        options: ParsingOptions,
        row_index: int = 0,
        sheet_name: Optional[str] = None,
    ) -> MappedRow:
        """Split one data row into canonical fields and miscellaneous values."""
        mapped = MappedRow(row_index=row_index, sheet_name=sheet_name)

        if header_mapping is None or not header_mapping.detailed_mapping:
            for column_index, value in enumerate(row):
                if is_empty_value(value):
                    continue
                field_name = POSITIONAL_FIELDS.get(column_index)
                if field_name:
                    mapped.fields[field_name] = value
                else:
                    mapped.miscellaneous[f"column_{column_index + 1}"] = value
            return mapped

        for entry in header_mapping.detailed_mapping:
            if entry.column_index >= len(row):
                continue
            value = row[entry.column_index]
            if is_empty_value(value):
                continue

            if entry.mapped_field.startswith("misc_"):
                mapped.miscellaneous[entry.original_header] = value
                continue

            mapped.fields[entry.mapped_field] = value
            if entry.ai_mapped:
                mapped.ai_mapped_fields.append(AIMappedField(
                    original_field=entry.original_header,
                    field=entry.mapped_field,
                    confidence=entry.confidence,
                ))
                if entry.confidence < options.ai_mapping_confidence_threshold:
                    mapped.miscellaneous[entry.original_header] = value

        return mapped

    def get_service_status(self) -> Dict[str, Any]:
        status = {
            "service": "field_mapper",
            "ai_available": self.ai_available(),
            "cache_size": len(self.cache),
            "cache_ttl_seconds": self.cache.ttl_seconds,
        }
        if self.ai_service is not None:
            status["ai_service"] = self.ai_service.get_service_status(cache_size=len(self.cache))
        return status
