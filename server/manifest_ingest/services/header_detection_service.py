"""
Header row detection for manifest sheets.

Manifests rarely start with their header: title banners, report dates and
warehouse addresses sit above it. The detector scores candidate rows by how
many cells the field mapper recognizes and by whether the row below looks
like data.
"""

import logging
import re
from typing import Any, List, Optional, Sequence

from manifest_ingest.db.schemas import HeaderDetectionResult
from manifest_ingest.services.extraction_config import (
    DOCUMENT_TYPE_SAMPLE_ROWS,
    ETD_HEADER_ROW_INDEX,
    MIN_LABELED_CELLS_FOR_NUMERIC_HEADER,
    MIN_RECOGNIZED_FIELDS_WITHOUT_NUMERIC_NEXT,
    ORIGIN_HINT_MAX_CELLS,
    ORIGIN_HINT_ROWS,
    RECOGNIZED_FIELD_MARGIN,
    DocumentType,
    ParsingOptions,
)
from manifest_ingest.services.field_mapper import FieldMapper
from manifest_ingest.services.value_extractors import cell_to_text, is_empty_row, is_empty_value

logger = logging.getLogger(__name__)

ORIGIN_KEYWORDS_RE = re.compile(r'(?:address|location|city|state|zip|pincode)', re.IGNORECASE)
NUMBER_LIKE_CELL_RE = re.compile(r'^[\d.,$€£¥\s()\-]+$')
ETD_TITLE_MARKERS = ('OUTSTATION ORDERS', 'ETD')
ETD_TITLE_ROWS = 3
HEADER_KEYWORDS = ('LOAD NO', 'Order Number', 'Ship To Customer', 'TRANSPORTER')
MIN_KEYWORD_HEADER_CELLS = 5


def _row_text(row: Sequence[Any]) -> str:
    return ' '.join(cell_to_text(cell) for cell in row if not is_empty_value(cell))


def _non_empty_count(row: Sequence[Any]) -> int:
    return sum(1 for cell in row if not is_empty_value(cell))


def is_number_like(cell: Any) -> bool:
    if isinstance(cell, bool):
        return False
    if isinstance(cell, (int, float)):
        return True
    if isinstance(cell, str):
        text = cell.strip()
        return bool(text) and bool(NUMBER_LIKE_CELL_RE.match(text))
    return False


def row_contains_number_like_data(row: Optional[Sequence[Any]]) -> bool:
    return bool(row) and any(is_number_like(cell) for cell in row)


def looks_like_data_row(cells: Sequence[str]) -> bool:
    """Every non-empty cell carries a number once its non-numeric characters are stripped."""
    filled = [cell for cell in cells if cell]
    if not filled:
        return False
    return all(re.search(r'\d', re.sub(r'[^\d.\-]', '', cell)) for cell in filled)


def find_potential_origin(rows: Sequence[Sequence[Any]]) -> Optional[str]:
    """Short address-like row among the first few rows, used as a fallback pickup location."""
    for row in rows[:ORIGIN_HINT_ROWS]:
        if is_empty_row(row):
            continue
        text = _row_text(row)
        if ORIGIN_KEYWORDS_RE.search(text) and _non_empty_count(row) < ORIGIN_HINT_MAX_CELLS:
            return text
    return None


def is_etd_format(rows: Sequence[Sequence[Any]]) -> bool:
    """'OUTSTATION ORDERS - ETD' report title in the first rows."""
    for row in rows[:ETD_TITLE_ROWS]:
        text = _row_text(row or [])
        if all(marker in text for marker in ETD_TITLE_MARKERS):
            return True
    return False


def detect_header_row(rows: Sequence[Sequence[Any]], max_rows_to_check: int = 5) -> int:
    """Keyword fallback: first wide row naming a well-known manifest column, else 0."""
    for index, row in enumerate(rows[:max_rows_to_check]):
        row = row or []
        text = _row_text(row)
        if len(row) > MIN_KEYWORD_HEADER_CELLS and any(keyword in text for keyword in HEADER_KEYWORDS):
            return index
    return 0


def detect_document_type(text: str) -> DocumentType:
    lowered = (text or '').lower()
    if 'etd' in lowered and 'load no' in lowered:
        return DocumentType.ETD_REPORT
    if 'outstation' in lowered and 'rates' in lowered:
        return DocumentType.OUTSTATION_RATES
    return DocumentType.UNKNOWN


def detect_document_type_from_rows(rows: Sequence[Sequence[Any]]) -> DocumentType:
    """Document type named by the title and header text of the first non-empty rows."""
    sample = [row for row in rows if not is_empty_row(row)][:DOCUMENT_TYPE_SAMPLE_ROWS]
    return detect_document_type('\n'.join(_row_text(row) for row in sample))


class HeaderDetectionService:
    """Scores candidate header rows using the field mapper."""

    def __init__(self, field_mapper: FieldMapper):
        self.field_mapper = field_mapper
        self.logger = logging.getLogger(__name__)

    async def count_recognized_fields(self, cells: Sequence[str], options: ParsingOptions) -> int:
        mappings = await self.field_mapper.map_headers(cells, options)
        return sum(1 for cell, mapping in zip(cells, mappings) if cell and not mapping.is_miscellaneous)

    async def find_headers_and_data_start(
        self,
        rows: Sequence[Sequence[Any]],
        options: ParsingOptions,
        sheet_name: Optional[str] = None,
    ) -> Optional[HeaderDetectionResult]:
        """
        Pick the header row among ``rows`` (already stripped of empty rows).

        A row replaces the current best when it recognizes more fields and
        the next row looks numeric, or when it recognizes more than 2 fields
        and beats the best by more than 1. A candidate that itself looks like
        data is only accepted with at least 3 recognized cells. Earlier rows
        win ties. Returns None when no row qualifies.
        """
        best_index = -1
        max_recognized = -1
        check_rows = min(len(rows), options.max_rows_to_check)

        for index in range(check_rows):
            row = rows[index]
            if is_empty_row(row):
                continue

            cells = [cell_to_text(cell) for cell in row]
            recognized = await self.count_recognized_fields(cells, options)
            next_row_numeric = index + 1 < len(rows) and row_contains_number_like_data(rows[index + 1])

            is_better = (
                (next_row_numeric and recognized > max_recognized)
                or (
                    recognized > MIN_RECOGNIZED_FIELDS_WITHOUT_NUMERIC_NEXT
                    and recognized > max_recognized + RECOGNIZED_FIELD_MARGIN
                )
            )
            if not is_better:
                continue

            if looks_like_data_row(cells) and recognized < MIN_LABELED_CELLS_FOR_NUMERIC_HEADER:
                self.logger.debug(f"[{sheet_name}] Row {index} scores as header but looks like data, skipping")
                continue

            best_index = index
            max_recognized = recognized
            self.logger.debug(f"[{sheet_name}] New best header candidate at row {index} ({recognized} fields)")

        if best_index == -1:
            self.logger.warning(
                f"⚠️ [{sheet_name}] Header detection failed in the first {check_rows} non-empty rows"
            )
            return None

        headers = [cell_to_text(cell) for cell in rows[best_index]]
        self.logger.info(f"🔍 [{sheet_name}] Header row {best_index}: {headers}")
        return HeaderDetectionResult(
            headers=headers,
            filtered_header_index=best_index,
            data_start_index=best_index + 1,
            potential_origin=find_potential_origin(rows),
        )

    async def locate_header(
        self,
        raw_rows: List[List[Any]],
        options: ParsingOptions,
        sheet_name: Optional[str] = None,
    ) -> HeaderDetectionResult:
        """
        Header and data rows for a whole sheet, applying every fallback.

        ``raw_rows`` still contains empty rows; the returned indices refer to
        the non-empty rows (``[row for row in raw_rows if not is_empty_row(row)]``).
        """
        rows = [row for row in raw_rows if not is_empty_row(row)]
        potential_origin = find_potential_origin(rows)

        if not options.has_header_row:
            return HeaderDetectionResult(
                headers=[], filtered_header_index=-1, data_start_index=0, potential_origin=potential_origin
            )

        explicit_index = options.header_row_index
        if explicit_index is None and is_etd_format(raw_rows):
            self.logger.info(f"🔍 [{sheet_name}] ETD report layout, header at row {ETD_HEADER_ROW_INDEX + 1}")
            explicit_index = ETD_HEADER_ROW_INDEX

        if explicit_index is not None:
            return self._result_for_raw_index(raw_rows, explicit_index, potential_origin)

        detected = await self.find_headers_and_data_start(rows, options, sheet_name)
        if detected is not None:
            return detected

        fallback_index = detect_header_row(rows)
        self.logger.info(f"🔍 [{sheet_name}] Falling back to keyword header detection: row {fallback_index}")
        return HeaderDetectionResult(
            headers=[cell_to_text(cell) for cell in rows[fallback_index]] if rows else [],
            filtered_header_index=fallback_index,
            data_start_index=fallback_index + 1,
            potential_origin=potential_origin,
        )

    @staticmethod
    def _result_for_raw_index(
        raw_rows: List[List[Any]],
        raw_index: int,
        potential_origin: Optional[str],
    ) -> HeaderDetectionResult:
        """Translate a header index into the sheet's raw rows to non-empty-row indices."""
        header_row = raw_rows[raw_index] if 0 <= raw_index < len(raw_rows) else []
        filtered_index = sum(1 for row in raw_rows[:raw_index] if not is_empty_row(row))
        if is_empty_row(header_row):
            # Empty header row: data starts at the first non-empty row below it
            return HeaderDetectionResult(
                headers=[], filtered_header_index=-1, data_start_index=filtered_index,
                potential_origin=potential_origin,
            )
        return HeaderDetectionResult(
            headers=[cell_to_text(cell) for cell in header_row],
            filtered_header_index=filtered_index,
            data_start_index=filtered_index + 1,
            potential_origin=potential_origin,
        )
