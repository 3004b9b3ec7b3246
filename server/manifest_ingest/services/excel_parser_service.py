"""
Workbook and text parsing into shipment records.

Each sheet runs the same pipeline: header detection, a single header
mapping, per-row field mapping with swap correction, row segmentation and
finally confidence scoring. Sheets are independent; a failing sheet
contributes no shipments and the others still parse.
"""

import io
import logging
import os
import warnings
from typing import Any, List, Optional, Sequence, Union

import pandas as pd

from manifest_ingest import config
from manifest_ingest.db.schemas import ConfidenceScore, HeaderMappingResult, ShipmentRecord
from manifest_ingest.services.ai_field_mapping_service import AIFieldMappingService
from manifest_ingest.services.confidence_scorer import apply_confidence, calculate_confidence
from manifest_ingest.services.data_validation_service import detect_and_correct_swapped_fields
from manifest_ingest.services.exceptions import InputFileError, ShipmentParsingError, TextParsingError
from manifest_ingest.services.extraction_config import (
    DEFAULT_DOCUMENT_TYPE,
    DEFAULT_OCR_CONFIDENCE,
    MIN_TEXT_ROW_CELLS,
    DocumentType,
    ParsingOptions,
)
from manifest_ingest.services.field_mapper import FieldMapper
from manifest_ingest.services.header_detection_service import (
    HeaderDetectionService,
    detect_document_type_from_rows,
    detect_header_row,
)
from manifest_ingest.services.location_resolver import LocationResolver
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.shipment_builder import ShipmentBuilder
from manifest_ingest.services.shipment_segmentation import segment_rows
from manifest_ingest.services.value_extractors import cell_to_text, is_empty_row, normalize_cell

# Suppress openpyxl style warnings surfaced through pandas
warnings.filterwarnings('ignore', category=UserWarning, module='pandas')
warnings.filterwarnings('ignore', category=UserWarning, module='openpyxl')

logger = logging.getLogger(__name__)

TEXT_DELIMITERS = ('|', ',', '\t')
TEXT_HEADER_ROWS_TO_CHECK = 3

ExcelSource = Union[str, os.PathLike, bytes]


def detect_delimiter(lines: Sequence[str]) -> str:
    """Delimiter of a text table, sniffed on the first data line ('|' when none match)."""
    sample = lines[1] if len(lines) > 1 else lines[0]
    for delimiter in TEXT_DELIMITERS:
        if delimiter in sample:
            return delimiter
    return TEXT_DELIMITERS[0]


def dataframe_to_rows(df: pd.DataFrame) -> List[List[Any]]:
    """Dense grid of plain Python cell values; NaN becomes None."""
    return [[normalize_cell(value) for value in row] for row in df.itertuples(index=False, name=None)]


class ExcelParserService:
    """
    Parses manifest workbooks and delimited text into ShipmentRecords.

    The field mapper, and with it the AI mapping cache, is shared across every
    document this service parses.
    """

    def __init__(
        self,
        field_mapper: Optional[FieldMapper] = None,
        ai_service: Optional[AIFieldMappingService] = None,
        location_resolver: Optional[LocationResolver] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.field_mapper = field_mapper or FieldMapper(
            ai_service=ai_service, cache_ttl_seconds=config.AI_MAPPING_CACHE_TTL_SECONDS
        )
        self.header_detector = HeaderDetectionService(self.field_mapper)
        self.shipment_builder = ShipmentBuilder(location_resolver=location_resolver)

    def _open_workbook(self, source: ExcelSource) -> pd.ExcelFile:
        try:
            if isinstance(source, (bytes, bytearray)):
                return pd.ExcelFile(io.BytesIO(source))
            return pd.ExcelFile(source)
        except FileNotFoundError as e:
            raise InputFileError(f"File not found: {source}") from e
        except Exception as e:
            raise InputFileError(f"Failed to parse Excel file: {e}") from e

    async def parse_excel_file(
        self,
        source: ExcelSource,
        options: Optional[ParsingOptions] = None,
    ) -> List[ShipmentRecord]:
        """
        Parse every sheet (or only ``options.sheet_index``) of a workbook.

        Args:
            source: Path to the workbook, or its raw bytes
            options: Parsing options; defaults apply when omitted

        Returns:
            Shipments of all sheets, in sheet order

        Raises:
            InputFileError: The workbook cannot be read, has no sheets, or the
                requested sheet does not exist
        """
        options = options or ParsingOptions()
        label = options.file_name or (source if not isinstance(source, (bytes, bytearray)) else "<bytes>")
        self.logger.info(f"Starting Excel parsing: {label}")

        excel_file = self._open_workbook(source)
        try:
            sheet_names = list(excel_file.sheet_names)
            if not sheet_names:
                raise InputFileError("Excel file contains no sheets")

            if options.sheet_index is not None:
                if not 0 <= options.sheet_index < len(sheet_names):
                    raise InputFileError(f"Sheet at index {options.sheet_index} does not exist")
                sheet_names = [sheet_names[options.sheet_index]]

            self.logger.info(f"Processing {len(sheet_names)} sheets: {sheet_names}")

            all_shipments: List[ShipmentRecord] = []
            for sheet_name in sheet_names:
                try:
                    df = pd.read_excel(excel_file, sheet_name=sheet_name, header=None)
                    raw_rows = dataframe_to_rows(df)
                    shipments = await self.process_sheet_rows(raw_rows, options, sheet_name)
                    all_shipments.extend(shipments)
                    self.logger.info(f"✅ Sheet '{sheet_name}': {len(shipments)} shipments from {len(raw_rows)} rows")
                except Exception as e:
                    self.logger.error(f"❌ Error processing sheet {sheet_name}: {str(e)}")
        finally:
            excel_file.close()

        self.logger.info(f"Excel parsing completed. Found {len(all_shipments)} shipments.")
        return all_shipments

    def _map_data_rows(
        self,
        rows: Sequence[Sequence[Any]],
        header_mapping: Optional[HeaderMappingResult],
        options: ParsingOptions,
        sheet_name: Optional[str],
        first_row_index: int = 0,
        min_cells: int = 0,
    ) -> List[MappedRow]:
        """Map and swap-correct data rows; a row that fails is logged and skipped."""
        swap_mapping = header_mapping or HeaderMappingResult()
        mapped_rows: List[MappedRow] = []

        for offset, row in enumerate(rows):
            row_index = first_row_index + offset
            if is_empty_row(row) or len(row) < min_cells:
                continue
            try:
                mapped = self.field_mapper.map_row_to_fields(
                    row, header_mapping, options, row_index=row_index, sheet_name=sheet_name
                )
                if mapped.is_blank():
                    continue
                mapped_rows.append(detect_and_correct_swapped_fields(mapped, swap_mapping).row)
            except Exception as e:
                self.logger.error(f"❌ [{sheet_name}] Error mapping row {row_index}: {str(e)}")

        return mapped_rows

    async def _segment_and_score(
        self,
        mapped_rows: List[MappedRow],
        options: ParsingOptions,
        potential_origin: Optional[str] = None,
    ) -> List[ShipmentRecord]:
        async def create_shipment(row: MappedRow) -> ShipmentRecord:
            return await self.shipment_builder.create_shipment(row, options, potential_origin)

        shipments = await segment_rows(mapped_rows, create_shipment, options.backfill_fields)
        return [apply_confidence(shipment) for shipment in shipments]

    def _resolve_document_type(
        self,
        options: ParsingOptions,
        rows: Sequence[Sequence[Any]],
        sheet_name: Optional[str] = None,
    ) -> ParsingOptions:
        """Options with a document type, detected from ``rows`` when the caller gave none."""
        if options.document_type is not None:
            return options
        detected = detect_document_type_from_rows(rows)
        if detected == DocumentType.UNKNOWN:
            detected = DEFAULT_DOCUMENT_TYPE
        self.logger.info(f"🔍 [{sheet_name}] Document type: {detected.value}")
        return options.merged(document_type=detected)

    async def process_sheet_rows(
        self,
        raw_rows: List[List[Any]],
        options: ParsingOptions,
        sheet_name: Optional[str] = None,
    ) -> List[ShipmentRecord]:
        """Turn one sheet's raw grid into scored shipments."""
        options = self._resolve_document_type(options, raw_rows, sheet_name)
        detection = await self.header_detector.locate_header(raw_rows, options, sheet_name)
        rows = [row for row in raw_rows if not is_empty_row(row)]

        header_mapping = None
        if detection.headers:
            header_mapping = await self.field_mapper.build_header_mapping(detection.headers, options)

        data_rows = rows[detection.data_start_index:]
        self.logger.info(f"🔍 [{sheet_name}] {len(data_rows)} data rows below header row {detection.filtered_header_index}")

        mapped_rows = self._map_data_rows(
            data_rows, header_mapping, options, sheet_name, first_row_index=detection.data_start_index
        )
        return await self._segment_and_score(mapped_rows, options, detection.potential_origin)

    async def parse_text(self, text: str, options: Optional[ParsingOptions] = None) -> List[ShipmentRecord]:
        """
        Parse delimited text, typically OCR output, into shipments.

        Raises:
            TextParsingError: The text could not be tokenized or mapped
        """
        options = options or ParsingOptions()
        try:
            lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
            if not lines:
                self.logger.warning("⚠️ No text content to parse")
                return []

            delimiter = detect_delimiter(lines)
            rows = [[normalize_cell(cell.strip()) for cell in line.split(delimiter)] for line in lines]
            self.logger.info(f"🔍 Parsing {len(rows)} text rows split on {delimiter!r}")
            options = self._resolve_document_type(options, rows)

            header_index = 0 if options.has_header_row else detect_header_row(rows, TEXT_HEADER_ROWS_TO_CHECK)
            headers = [cell_to_text(cell) for cell in rows[header_index]]
            header_mapping = await self.field_mapper.build_header_mapping(headers, options)

            mapped_rows = self._map_data_rows(
                rows[header_index + 1:], header_mapping, options, sheet_name=None,
                first_row_index=header_index + 1, min_cells=MIN_TEXT_ROW_CELLS,
            )
            shipments = await self._segment_and_score(mapped_rows, options)

            if options.is_ocr_data:
                for shipment in shipments:
                    shipment.miscellaneous_fields['ocrProcessed'] = True
                    shipment.miscellaneous_fields['ocrSource'] = options.ocr_source or 'unknown'
                    shipment.miscellaneous_fields['ocrConfidence'] = (
                        options.ocr_confidence if options.ocr_confidence is not None else DEFAULT_OCR_CONFIDENCE
                    )

            self.logger.info(f"✅ Parsed {len(shipments)} shipments from text")
            return shipments

        except ShipmentParsingError:
            raise
        except Exception as e:
            self.logger.error(f"❌ Error parsing text content: {str(e)}")
            raise TextParsingError(f"Failed to parse text content: {str(e)}") from e

    def calculate_confidence(self, shipment: Optional[ShipmentRecord]) -> ConfidenceScore:
        return calculate_confidence(shipment)

    def get_service_status(self) -> dict:
        return {
            "service": "excel_parser",
            "field_mapper": self.field_mapper.get_service_status(),
        }
