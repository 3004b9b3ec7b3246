"""HTTP tests for the extraction router."""

import pytest
from fastapi.testclient import TestClient

from manifest_ingest import __version__, config
from manifest_ingest.api.shipment_extract import get_document_processing_service
from manifest_ingest.main import app
from manifest_ingest.services.document_processing_service import DocumentProcessingService
from manifest_ingest.services.excel_parser_service import ExcelParserService
from manifest_ingest.services.extraction_config import DocumentType
from manifest_ingest.services.field_mapper import FieldMapper

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def service():
    return DocumentProcessingService(excel_parser=ExcelParserService(field_mapper=FieldMapper()))


@pytest.fixture
def client(service):
    app.dependency_overrides[get_document_processing_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def manifest_bytes(workbook_factory, etd_headers):
    rows = [
        ["Pickup location: LOADUP JB"],
        etd_headers,
        ["L001", "SO1", 45000, "ACME", "12 Jalan Mutiara 81300 Johor Bahru", "Johor",
         "MR TAN 012-3456789", "HWSH1", "A1", "Chair", 2, 10, None],
        [None, None, None, None, None, None, None, None, "A2", "Table", 1, 5.5, None],
    ]
    return workbook_factory({"Orders": rows})


def _upload(client, content, file_name="manifest.xlsx", **form):
    data = {"use_ai_mapping": "false", **form}
    return client.post(
        "/api/extract-shipments/",
        files={"file": (file_name, content, XLSX_TYPE)},
        data=data,
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}


def test_extract_workbook(client, manifest_bytes):
    response = _upload(client, manifest_bytes)
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "success"
    assert body["file_name"] == "manifest.xlsx"

    shipments = body["result"]["data"]
    assert len(shipments) == 1
    shipment = shipments[0]
    assert shipment["loadNumber"] == "L001"
    assert shipment["promisedShipDate"].startswith("2023-03-15")
    assert [item["itemNumber"] for item in shipment["items"]] == ["A1", "A2"]
    assert shipment["origin"]["resolutionMethod"] == "mock-keyword"

    assert body["summary"]["totalShipments"] == 1
    assert body["summary"]["totalItems"] == 2
    assert body["summary"]["totalWeight"] == pytest.approx(15.5)


def test_unsupported_extension(client):
    response = _upload(client, b"%PDF-1.4", file_name="manifest.pdf")
    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]


def test_unreadable_workbook(client):
    response = _upload(client, b"not really a workbook")
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Failed to parse Excel file")


def test_missing_sheet(client, manifest_bytes):
    response = _upload(client, manifest_bytes, sheet_index="3")
    assert response.status_code == 400
    assert response.json()["detail"] == "Sheet at index 3 does not exist"


def test_invalid_document_type(client, manifest_bytes):
    response = _upload(client, manifest_bytes, document_type="INVOICE")
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid parsing options")


def test_form_fields_become_parsing_options(client, service, manifest_bytes, monkeypatch):
    received = {}
    original = service.process_upload

    async def capture(content, file_name, options=None):
        received["content"] = content
        received["options"] = options
        return await original(content, file_name, options)

    monkeypatch.setenv("HEADER_MAX_ROWS_TO_CHECK", "4")
    monkeypatch.setattr(service, "process_upload", capture)
    response = _upload(client, manifest_bytes, include_ocr_schema="true")
    assert response.status_code == 200

    options = received["options"]
    assert received["content"] == manifest_bytes
    assert options.document_type is None
    assert options.include_ocr_schema
    assert options.max_rows_to_check == 4
    assert not options.use_ai_mapping

    _upload(client, manifest_bytes, document_type="OUTSTATION_RATES")
    assert received["options"].document_type == DocumentType.OUTSTATION_RATES
    assert not received["options"].include_ocr_schema


def test_upload_too_large(client, manifest_bytes, monkeypatch):
    monkeypatch.setattr(config, "MAX_UPLOAD_SIZE_MB", 0)
    response = _upload(client, manifest_bytes)
    assert response.status_code == 413


def test_pipeline_failure_returns_error_shipment(client, service, manifest_bytes, monkeypatch):
    async def explode(content, file_name, options=None):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(service, "process_upload", explode)
    response = _upload(client, manifest_bytes)
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Failed to process document: disk on fire"
    assert body["shipments"][0]["loadNumber"] == "ERROR"
    assert body["shipments"][0]["miscellaneousFields"]["errorMessage"] == "disk on fire"


def test_status(client):
    response = client.get("/api/extract-shipments/status")
    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "excel_parser"
    assert body["field_mapper"]["ai_available"] is False
