"""
Document-level entry points: dispatch by file type, OCR fallbacks and
aggregate summaries over parsed shipments.
"""

import base64
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from manifest_ingest.constants.statuses import DEFAULT_AGGREGATE_STATUS
from manifest_ingest.db.schemas import DocumentProcessingResult, ShipmentRecord
from manifest_ingest.services.ai_field_mapping_service import AIFieldMappingService
from manifest_ingest.services.confidence_scorer import apply_confidence
from manifest_ingest.services.excel_parser_service import ExcelParserService
from manifest_ingest.services.exceptions import InputFileError, TextParsingError
from manifest_ingest.services.extraction_config import VISION_OCR_CONFIDENCE, ParsingOptions, get_config
from manifest_ingest.services.value_extractors import extract_string_field

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ('.xlsx', '.xls', '.xlsm')
TEXT_EXTENSIONS = ('.txt', '.csv')
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg')
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS + TEXT_EXTENSIONS + IMAGE_EXTENSIONS

UNKNOWN_LOAD_NUMBER = 'UNKNOWN'
ERROR_LOAD_NUMBER = 'ERROR'
NO_SHIPMENT_DATA_STATUS = 'No shipment data identified'


def sentinel_shipment(load_number: str, **miscellaneous: Any) -> ShipmentRecord:
    """Placeholder record carrying an extraction outcome instead of shipment data."""
    return apply_confidence(ShipmentRecord(load_number=load_number, miscellaneous_fields=miscellaneous))


def error_shipment(error_message: str, file_name: Optional[str] = None) -> ShipmentRecord:
    return sentinel_shipment(
        ERROR_LOAD_NUMBER,
        originalFileName=file_name,
        errorMessage=error_message,
        scanStatus='failed',
    )


def aggregate_shipment_data(shipments: List[ShipmentRecord]) -> Dict[str, Any]:
    """Summary counts over a batch of parsed shipments."""
    status_counts: Dict[str, int] = {}
    for shipment in shipments:
        status = shipment.status or DEFAULT_AGGREGATE_STATUS
        status_counts[status] = status_counts.get(status, 0) + 1

    scored = [shipment.confidence for shipment in shipments if shipment.confidence is not None]
    average_confidence = sum(scored) / len(scored) if scored else 0

    return {
        "totalShipments": len(shipments),
        "totalWeight": sum(shipment.total_weight or 0 for shipment in shipments),
        "totalItems": sum(len(shipment.items) for shipment in shipments),
        "statusCounts": status_counts,
        "averageConfidence": round(average_confidence, 2),
        "needsReviewCount": sum(1 for shipment in shipments if shipment.needs_review),
    }


class DocumentProcessingService:
    """Routes workbooks, text files and scanned images through the parsing pipeline."""

    def __init__(
        self,
        excel_parser: Optional[ExcelParserService] = None,
        ai_service: Optional[AIFieldMappingService] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.ai_service = ai_service
        self.excel_parser = excel_parser or ExcelParserService(ai_service=ai_service)

    async def process_document(
        self,
        file_path: str,
        options: Optional[ParsingOptions] = None,
    ) -> DocumentProcessingResult:
        """
        Parse a document from disk.

        Raises:
            InputFileError: The file is missing, of an unsupported type or unreadable
        """
        if not os.path.exists(file_path):
            raise InputFileError(f"File not found: {file_path}")

        with open(file_path, 'rb') as f:
            content = f.read()

        return await self.process_upload(content, os.path.basename(file_path), options)

    async def process_upload(
        self,
        content: bytes,
        file_name: str,
        options: Optional[ParsingOptions] = None,
    ) -> DocumentProcessingResult:
        """Parse an in-memory document, picking the parser from the file extension."""
        options = (options or get_config("default")).merged(file_name=file_name)
        extension = os.path.splitext(file_name)[1].lower()

        if extension in EXCEL_EXTENSIONS:
            self.logger.info(f"Processing Excel file: {file_name}{' with AI mapping' if options.use_ai_mapping else ''}")
            shipments = await self.excel_parser.parse_excel_file(content, options)
        elif extension in TEXT_EXTENSIONS:
            self.logger.info(f"Processing text file: {file_name}")
            shipments = await self.process_text_document(content.decode('utf-8', errors='replace'), options)
        elif extension in IMAGE_EXTENSIONS:
            self.logger.info(f"Processing image with OCR: {file_name}")
            image_base64 = base64.b64encode(content).decode('ascii')
            shipments = await self.process_ocr_image(
                image_base64, file_name, options, include_schema=options.include_ocr_schema
            )
        else:
            raise InputFileError(f"Unsupported file type: {extension or file_name}")

        return self.build_result(shipments, options)

    async def parse_text_or_sentinel(
        self,
        text: str,
        options: ParsingOptions,
        file_name: Optional[str] = None,
        **metadata: Any,
    ) -> List[ShipmentRecord]:
        """
        Parse extracted text, replacing a failure or an empty result with one
        ``UNKNOWN`` record that carries the text and the reason.
        """
        try:
            shipments = await self.excel_parser.parse_text(text, options)
        except TextParsingError as e:
            self.logger.error(f"❌ Error parsing extracted text: {e}")
            return [sentinel_shipment(
                UNKNOWN_LOAD_NUMBER,
                extractedText=text,
                originalFileName=file_name,
                parseError=str(e),
                **metadata,
            )]

        if not shipments:
            self.logger.warning(f"⚠️ No shipment data identified in text of {file_name}")
            return [sentinel_shipment(
                UNKNOWN_LOAD_NUMBER,
                extractedText=text,
                originalFileName=file_name,
                parseStatus=NO_SHIPMENT_DATA_STATUS,
                **metadata,
            )]
        return shipments

    async def process_text_document(self, text: str, options: Optional[ParsingOptions] = None) -> List[ShipmentRecord]:
        """Parse an uploaded text table; never raises and never returns an empty list."""
        options = options or get_config("default")
        return await self.parse_text_or_sentinel(text, options, file_name=options.file_name)

    def _structured_shipment(self, structured: Any, file_name: Optional[str]) -> Optional[ShipmentRecord]:
        """Record built from the vision collaborator's structured data, when it names a shipment."""
        if not isinstance(structured, dict):
            return None
        try:
            shipment = ShipmentRecord.model_validate(structured)
        except ValidationError as e:
            self.logger.warning(f"⚠️ Structured OCR data did not validate, parsing text instead: {e}")
            return None
        if not (extract_string_field(shipment.load_number) or extract_string_field(shipment.order_number)):
            self.logger.warning(f"⚠️ Structured OCR data for {file_name} has no load or order number, parsing text instead")
            return None
        return shipment

    async def process_ocr_image(
        self,
        image_base64: str,
        file_name: Optional[str] = None,
        options: Optional[ParsingOptions] = None,
        include_schema: bool = False,
    ) -> List[ShipmentRecord]:
        """
        OCR an image and parse the text into shipments.

        Never raises: a failed scan yields one ``ERROR`` record, text with no
        recognisable shipments one ``UNKNOWN`` record. Both carry the reason
        in their miscellaneous fields.
        """
        if self.ai_service is None:
            return [error_shipment("AI Field Mapping service not available", file_name)]

        extraction = await self.ai_service.extract_text_from_image(image_base64, include_schema=include_schema)
        text = extraction.get("text") or ""
        if extraction.get("error") or not text.strip():
            error_message = extraction.get("error") or "Failed to extract text from image - empty response"
            self.logger.error(f"❌ OCR failed for {file_name}: {error_message}")
            return [error_shipment(error_message, file_name)]

        ocr_confidence = extraction.get("confidence") or VISION_OCR_CONFIDENCE

        shipment = self._structured_shipment(extraction.get("shipment_data"), file_name)
        if shipment is not None:
            shipment.miscellaneous_fields.update(originalFileName=file_name, ocrConfidence=ocr_confidence)
            self.logger.info(f"🤖 Using structured shipment data from OCR for {file_name}")
            return [apply_confidence(shipment)]

        options = (options or get_config("ocr")).merged(
            is_ocr_data=True,
            ocr_source=file_name or 'vision_api',
            ocr_confidence=ocr_confidence,
        )
        shipments = await self.parse_text_or_sentinel(text, options, file_name=file_name, ocrConfidence=ocr_confidence)

        for shipment in shipments:
            shipment.miscellaneous_fields['originalFileName'] = file_name
        return shipments

    def build_result(self, shipments: List[ShipmentRecord], options: ParsingOptions) -> DocumentProcessingResult:
        """Document summary scored from the first shipment."""
        score = self.excel_parser.calculate_confidence(shipments[0] if shipments else None)
        result = DocumentProcessingResult(
            data=shipments,
            confidence=score.confidence,
            needs_review=score.needs_review,
            message=score.message,
            ai_mapped=any(shipment.ai_mapped_fields for shipment in shipments),
        )

        ai_mapped_fields = shipments[0].ai_mapped_fields if shipments else []
        if ai_mapped_fields:
            self.logger.info(f"🤖 AI mapped {len(ai_mapped_fields)} fields in {options.file_name}")
            low_confidence = [
                mapping for mapping in ai_mapped_fields
                if mapping.confidence < options.ai_mapping_confidence_threshold
            ]
            if low_confidence:
                self.logger.warning(f"⚠️ {len(low_confidence)} fields have low confidence mappings")
                for mapping in low_confidence:
                    self.logger.warning(
                        f"⚠️ Low confidence mapping: {mapping.original_field} -> {mapping.field} ({mapping.confidence:.2f})"
                    )

        return result
