"""
Configuration for shipment manifest parsing
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional


class DocumentType(str, Enum):
    """Manifest layouts with a dedicated header mapping table."""
    ETD_REPORT = "ETD_REPORT"
    OUTSTATION_RATES = "OUTSTATION_RATES"
    UNKNOWN = "UNKNOWN"


# Field mapper confidences
EXACT_MATCH_CONFIDENCE = 1.0
CASE_INSENSITIVE_MATCH_CONFIDENCE = 0.9
FUZZY_MATCH_CONFIDENCE = 0.8
AI_FAILURE_CONFIDENCE = 0.1  # AI call failed or suggested a field outside the schema
UNMAPPED_CONFIDENCE = 0.0

# AI mappings below this are also copied into miscellaneousFields
DEFAULT_AI_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_AI_CACHE_TTL_SECONDS = 7 * 24 * 60 * 60

# Header detection
DEFAULT_MAX_ROWS_TO_CHECK = 20
ORIGIN_HINT_ROWS = 5
ORIGIN_HINT_MAX_CELLS = 5  # origin hint rows are short, fewer than this many non-empty cells
MIN_RECOGNIZED_FIELDS_WITHOUT_NUMERIC_NEXT = 2  # must strictly exceed this
RECOGNIZED_FIELD_MARGIN = 1  # must beat the current best by more than this
MIN_LABELED_CELLS_FOR_NUMERIC_HEADER = 3
ETD_HEADER_ROW_INDEX = 2
DOCUMENT_TYPE_SAMPLE_ROWS = 5
DEFAULT_DOCUMENT_TYPE = DocumentType.ETD_REPORT

# Confidence scorer
CRITICAL_FIELDS = (
    "loadNumber",
    "orderNumber",
    "promisedShipDate",
    "shipToCustomer",
    "shipToAddress",
)
CRITICAL_WEIGHT = 0.7  # weakest critical AI mapping dominates
AVERAGE_WEIGHT = 0.3
PRECISION_WEIGHT = 0.8
COMPLETENESS_WEIGHT = 0.2
MIN_CONFIDENCE = 0.1
REVIEW_CONFIDENCE_THRESHOLD = 0.7

# Location review
LOCATION_REVIEW_THRESHOLD = 0.6

# Text / OCR parsing
MIN_TEXT_ROW_CELLS = 3
DEFAULT_OCR_CONFIDENCE = 0.8
VISION_OCR_CONFIDENCE = 0.85


@dataclass
class ParsingOptions:
    """Options for one parse of a workbook or text document"""

    has_header_row: bool = True
    use_ai_mapping: bool = True
    ai_mapping_confidence_threshold: float = DEFAULT_AI_CONFIDENCE_THRESHOLD
    # None: detected per sheet from its first rows
    document_type: Optional[DocumentType] = None

    # Explicit header table; overrides the document type's table when set
    field_mapping: Optional[Dict[str, str]] = None

    sheet_index: Optional[int] = None
    header_row_index: Optional[int] = None
    max_rows_to_check: int = DEFAULT_MAX_ROWS_TO_CHECK

    # OCR metadata stamped onto every record parsed from extracted text
    is_ocr_data: bool = False
    ocr_source: Optional[str] = None
    ocr_confidence: Optional[float] = None
    # Ask the vision collaborator for structured shipment data alongside the text
    include_ocr_schema: bool = False

    file_name: Optional[str] = None

    # Columns copied onto an active shipment from rows below it when still empty
    backfill_fields: List[str] = None

    def __post_init__(self):
        if self.backfill_fields is None:
            self.backfill_fields = [
                "remarks", "poNumber", "shipToCustomer", "shipToAddress", "contactNumber",
            ]
        else:
            self.backfill_fields = list(self.backfill_fields)
        if isinstance(self.document_type, str):
            self.document_type = DocumentType(self.document_type)

    @classmethod
    def from_env(cls) -> 'ParsingOptions':
        """Load parsing defaults from environment variables"""
        return cls(
            use_ai_mapping=os.getenv('USE_AI_MAPPING', 'true').lower() in ('1', 'true', 'yes'),
            ai_mapping_confidence_threshold=float(
                os.getenv('AI_MAPPING_CONFIDENCE_THRESHOLD', str(DEFAULT_AI_CONFIDENCE_THRESHOLD))
            ),
            max_rows_to_check=int(os.getenv('HEADER_MAX_ROWS_TO_CHECK', str(DEFAULT_MAX_ROWS_TO_CHECK))),
        )

    def merged(self, **overrides) -> 'ParsingOptions':
        """Copy of these options with the non-None overrides applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


# Predefined configurations for common upload sources
CONFIGURATIONS = {
    "default": ParsingOptions(),

    "no_ai": ParsingOptions(use_ai_mapping=False),

    "ocr": ParsingOptions(
        is_ocr_data=True,
        ocr_source="vision_api",
        ocr_confidence=VISION_OCR_CONFIDENCE,
    ),
}


def get_config(config_name: str = "default") -> ParsingOptions:
    """Get a copy of a predefined configuration"""
    return replace(CONFIGURATIONS.get(config_name, CONFIGURATIONS["default"]))
