"""Shared fixtures: a scripted AI mapping collaborator, a manual clock and a workbook factory."""

import io
from typing import Any, Dict, List, Optional, Sequence

import pytest
from openpyxl import Workbook

from manifest_ingest.db.schemas import FieldMappingResult
from manifest_ingest.services.excel_parser_service import ExcelParserService
from manifest_ingest.services.extraction_config import ParsingOptions
from manifest_ingest.services.field_mapper import FieldMapper


class FakeAIService:
    """Stands in for AIFieldMappingService; answers from a header -> (field, confidence) table."""

    def __init__(
        self,
        answers: Optional[Dict[str, Any]] = None,
        available: bool = True,
        fail: bool = False,
        ocr_result: Optional[Dict[str, Any]] = None,
    ):
        self.answers = answers or {}
        self.available = available
        self.fail = fail
        self.ocr_result = ocr_result
        self.calls: List[str] = []
        self.potential_matches: Dict[str, List[str]] = {}
        self.include_schema_requests: List[bool] = []

    def is_available(self) -> bool:
        return self.available

    async def map_field(self, original_field: str, potential_matches: Optional[List[str]] = None) -> FieldMappingResult:
        self.calls.append(original_field)
        self.potential_matches[original_field] = list(potential_matches or [])
        if self.fail:
            raise RuntimeError("AI mapping request failed")
        field_name, confidence = self.answers.get(original_field, ("unknown", 0.1))
        return FieldMappingResult(
            field_name=field_name,
            confidence=confidence,
            ai_mapped=True,
            original_field=original_field,
            reasoning="scripted",
        )

    async def extract_text_from_image(self, image_base64: str, include_schema: bool = True) -> Dict[str, Any]:
        self.calls.append("<image>")
        self.include_schema_requests.append(include_schema)
        if self.ocr_result is None:
            return {"text": "", "confidence": 0, "error": "Failed to extract text: no scripted result"}
        return dict(self.ocr_result)

    def get_service_status(self, cache_size: Optional[int] = None) -> Dict[str, Any]:
        return {"service": "fake_ai", "available": self.available, "cache_size": cache_size}


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_workbook(sheets: Dict[str, Sequence[Sequence[Any]]]) -> bytes:
    """xlsx bytes with one sheet per entry, rows written top to bottom (None leaves a cell empty)."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for sheet_name, rows in sheets.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for row_number, row in enumerate(rows, start=1):
            for column_number, value in enumerate(row, start=1):
                if value is not None:
                    worksheet.cell(row=row_number, column=column_number, value=value)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


ETD_HEADERS = [
    "LOAD NO", "Order Number", "Promised Ship Date", "Ship To Customer",
    "Ship To Address", "Ship To State", "Contact Number", "PO Number",
    "Item Number", "Description", "Quantity", "Weight", "Remarks",
]


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def options():
    return ParsingOptions(use_ai_mapping=False)


@pytest.fixture
def field_mapper():
    return FieldMapper()


@pytest.fixture
def parser():
    return ExcelParserService(field_mapper=FieldMapper())


@pytest.fixture
def workbook_factory():
    return build_workbook


@pytest.fixture
def etd_headers():
    return list(ETD_HEADERS)
