"""
AI Field Mapping Service

Wraps the OpenAI chat API for the two collaborator calls the pipeline makes:

- ``map_field``: suggest a canonical schema field for one raw header, given a
  shortlist of plausible candidates. The suggestion is validated against the
  canonical schema; anything outside it comes back as ``unknown`` at 0.1.
- ``extract_text_from_image``: vision OCR of a scanned manifest, optionally
  followed by a second call that structures the text into shipment data.

Caching and failure degradation live in the FieldMapper, so ``map_field``
raises on transport or response errors instead of hiding them.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from manifest_ingest import config
from manifest_ingest.db.schemas import FieldMappingResult
from manifest_ingest.services.extraction_config import AI_FAILURE_CONFIDENCE, VISION_OCR_CONFIDENCE
from manifest_ingest.services.schema_reference import CANONICAL_SCHEMA_FIELDS, is_schema_field

logger = logging.getLogger(__name__)

SCHEMA_REFERENCE = "\n".join(
    f"{field_name}: {description}" for field_name, description in CANONICAL_SCHEMA_FIELDS.items()
)

IMAGE_DATA_URL_PREFIX = "data:image/"
DEFAULT_IMAGE_DATA_URL = "data:image/jpeg;base64,"


class AIResponseError(ValueError):
    """The model answered, but not with something the pipeline can use."""
    pass


class AIFieldMappingService:
    """
    OpenAI-backed mapping and OCR collaborator.

    The client is created once; without an API key the service reports itself
    unavailable and the FieldMapper skips the AI tier entirely.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        mapping_model: Optional[str] = None,
        vision_model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.mapping_model = mapping_model or config.OPENAI_MAPPING_MODEL
        self.vision_model = vision_model or config.OPENAI_VISION_MODEL
        self.client = client
        if self.client is None:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize OpenAI client"""
        if not self.api_key:
            self.logger.warning("OPENAI_API_KEY not found - AI field mapping will not be available")
            return
        try:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=config.OPENAI_TIMEOUT_SECONDS)
            self.logger.info(f"✅ AI Field Mapping Service initialized with model: {self.mapping_model}")
        except Exception as e:
            self.logger.error(f"❌ Failed to initialize OpenAI client: {e}")
            self.client = None

    def is_available(self) -> bool:
        """Check if AI mapping service is available"""
        return self.client is not None

    @staticmethod
    def _format_potential_matches(potential_matches: Optional[List[str]]) -> str:
        cleaned = [match.strip().lower() for match in (potential_matches or []) if match and match.strip()]
        return "\n".join(cleaned) if cleaned else "No potential matches provided."

    @staticmethod
    def _parse_json_response(content: Optional[str]) -> Dict[str, Any]:
        """Parse a JSON object out of a model reply, tolerating markdown code fences."""
        if not content or not content.strip():
            raise AIResponseError("Received empty content from OpenAI API.")

        cleaned = content.strip()
        if cleaned.startswith("```"):
            cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
            cleaned = re.sub(r"\s*```$", "", cleaned)

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise AIResponseError(f"Invalid JSON received from OpenAI API: {e}") from e

        if not isinstance(parsed, dict):
            raise AIResponseError("Expected a JSON object from OpenAI API.")
        return parsed

    def _build_mapping_prompt(self, potential_matches: Optional[List[str]]) -> str:
        return (
            "You are an expert field mapping assistant for logistics shipment manifests. "
            "Map the given spreadsheet column header to exactly one field of the schema below. "
            "Provide your response as a JSON object.\n\n"
            f"Schema:\n{SCHEMA_REFERENCE}\n\n"
            f"Potential Matches:\n{self._format_potential_matches(potential_matches)}\n\n"
            'Format: {"mappedField": "schema_field_name", "confidence": 0.0-1.0, "reasoning": "brief explanation"}'
        )

    async def map_field(self, original_field: str, potential_matches: Optional[List[str]] = None) -> FieldMappingResult:
        """
        Ask the model which canonical field ``original_field`` names.

        Raises:
            RuntimeError: the service has no client
            AIResponseError: empty, non-JSON or malformed reply
            openai.OpenAIError: transport/API failures
        """
        if not self.is_available():
            raise RuntimeError("AI Field Mapping service not available")

        self.logger.info(f"🤖 AI Mapping: mapping header '{original_field}'")

        response = await self.client.chat.completions.create(
            model=self.mapping_model,
            messages=[
                {"role": "system", "content": self._build_mapping_prompt(potential_matches)},
                {
                    "role": "user",
                    "content": f'Map the field "{original_field}" to the most appropriate field in the provided schema.',
                },
            ],
            temperature=0.2,
            max_tokens=150,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content if response.choices else None
        result = self._parse_json_response(content)

        mapped_field = result.get("mappedField")
        confidence = result.get("confidence")
        if not mapped_field or isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise AIResponseError("Invalid JSON structure received from OpenAI API.")

        reasoning = result.get("reasoning")
        if not is_schema_field(mapped_field):
            self.logger.warning(
                f"⚠️ AI mapped '{original_field}' to unknown schema field '{mapped_field}', falling back to 'unknown'"
            )
            mapped_field = "unknown"
            confidence = AI_FAILURE_CONFIDENCE

        self.logger.info(f"✅ AI mapped '{original_field}' -> '{mapped_field}' ({float(confidence):.2f})")
        return FieldMappingResult(
            field_name=mapped_field,
            confidence=max(0.0, min(1.0, float(confidence))),
            ai_mapped=True,
            original_field=original_field,
            reasoning=reasoning,
        )

    async def extract_text_from_image(self, image_base64: str, include_schema: bool = True) -> Dict[str, Any]:
        """
        OCR a base64 image with the vision model.

        Returns ``{"text", "confidence", "shipment_data"}``; on any failure
        ``{"text": "", "confidence": 0, "error": ...}``.
        """
        try:
            if not self.is_available():
                raise RuntimeError("AI Field Mapping service not available")

            image_url = image_base64 if image_base64.startswith(IMAGE_DATA_URL_PREFIX) else f"{DEFAULT_IMAGE_DATA_URL}{image_base64}"

            system_prompt = (
                "You are an expert OCR system specializing in logistics documents. "
                "Extract all text from the image exactly as it appears, keeping table rows on separate lines "
                "and separating table cells with ' | '."
            )
            if include_schema:
                system_prompt += (
                    "\n\nThe extracted text will be used to identify shipment records with this schema:\n"
                    f"{SCHEMA_REFERENCE}"
                )

            self.logger.info(f"🔍 Running vision OCR with {self.vision_model}")
            response = await self.client.chat.completions.create(
                model=self.vision_model,
                max_tokens=4096,
                temperature=0.1,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": "Extract text from image."},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    },
                ],
            )

            text = (response.choices[0].message.content or "").strip() if response.choices else ""
            if not text:
                self.logger.error("❌ Empty response from vision model")
                return {
                    "text": "",
                    "confidence": 0,
                    "error": "Failed to extract text from image - empty response",
                }

            shipment_data = None
            if include_schema:
                shipment_data = await self._structure_ocr_text(text)

            return {
                "text": text,
                "confidence": VISION_OCR_CONFIDENCE,
                "shipment_data": shipment_data,
            }

        except Exception as e:
            self.logger.error(f"❌ Error in extract_text_from_image: {e}")
            return {
                "text": "",
                "confidence": 0,
                "error": f"Failed to extract text: {e}",
            }

    async def _structure_ocr_text(self, text: str) -> Optional[Dict[str, Any]]:
        """Second pass turning OCR text into schema-shaped JSON; None when the reply is unusable."""
        response = await self.client.chat.completions.create(
            model=self.mapping_model,
            temperature=0.1,
            messages=[
                {
                    "role": "system",
                    "content": (
                        "You are an expert in logistics data extraction. Return your response as a VALID JSON "
                        f"object using these schema fields:\n{SCHEMA_REFERENCE}"
                    ),
                },
                {"role": "user", "content": f"Extract structured data from this OCR text:\n\n{text}"},
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        try:
            return self._parse_json_response(content)
        except AIResponseError as e:
            self.logger.warning(f"⚠️ Could not parse structured OCR data: {e}")
            return None

    def get_service_status(self, cache_size: Optional[int] = None) -> Dict[str, Any]:
        """Get service status"""
        status = {
            "service": "ai_field_mapping",
            "status": "active" if self.is_available() else "inactive",
            "mapping_model": self.mapping_model,
            "vision_model": self.vision_model,
            "capabilities": {
                "schema_validated_mapping": True,
                "vision_ocr": True,
                "structured_ocr_output": True,
            },
        }
        if cache_size is not None:
            status["cache_size"] = cache_size
        return status
