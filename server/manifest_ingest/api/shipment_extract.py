"""
Shipment Extraction API - upload a manifest (workbook, delimited text or a
scanned image) and get back the parsed shipments with their review flags.
"""

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Depends
from datetime import datetime
from typing import Optional
import logging
import os

from manifest_ingest import config
from manifest_ingest.services.ai_field_mapping_service import AIFieldMappingService
from manifest_ingest.services.document_processing_service import (
    SUPPORTED_EXTENSIONS,
    DocumentProcessingService,
    aggregate_shipment_data,
    error_shipment,
)
from manifest_ingest.services.exceptions import InputFileError
from manifest_ingest.services.extraction_config import DocumentType, ParsingOptions

router = APIRouter(prefix="/api", tags=["shipment-extract"])
logger = logging.getLogger(__name__)

# One processing service per process, so the AI mapping cache is shared across uploads
_document_processing_service: Optional[DocumentProcessingService] = None


def get_document_processing_service() -> DocumentProcessingService:
    global _document_processing_service
    if _document_processing_service is None:
        _document_processing_service = DocumentProcessingService(ai_service=AIFieldMappingService())
    return _document_processing_service


@router.post("/extract-shipments/")
async def extract_shipments(
    file: UploadFile = File(...),
    has_header_row: bool = Form(True),
    use_ai_mapping: bool = Form(config.USE_AI_MAPPING),
    ai_mapping_confidence_threshold: float = Form(config.AI_MAPPING_CONFIDENCE_THRESHOLD),
    document_type: Optional[str] = Form(None),
    sheet_index: Optional[int] = Form(None),
    include_ocr_schema: bool = Form(False),
    service: DocumentProcessingService = Depends(get_document_processing_service),
):
    """
    Parse an uploaded manifest into shipment records.

    Unreadable or unsupported files are rejected with 400. Failures further
    down the pipeline still answer 200 with ``status: error`` and a single
    ERROR shipment describing what went wrong.
    """
    start_time = datetime.now()
    logger.info(f"Starting shipment extraction for {file.filename}")

    file_ext = os.path.splitext(file.filename or "")[1].lower()
    if file_ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type. Allowed formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    max_bytes = config.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    file_content = bytearray()
    while chunk := await file.read(8192):
        file_content.extend(chunk)
        if len(file_content) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum size is {config.MAX_UPLOAD_SIZE_MB}MB."
            )

    try:
        options = ParsingOptions.from_env().merged(
            has_header_row=has_header_row,
            use_ai_mapping=use_ai_mapping,
            ai_mapping_confidence_threshold=ai_mapping_confidence_threshold,
            document_type=DocumentType(document_type) if document_type else None,
            sheet_index=sheet_index,
            include_ocr_schema=include_ocr_schema,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid parsing options: {str(e)}")

    try:
        result = await service.process_upload(bytes(file_content), file.filename, options)
    except InputFileError as e:
        logger.warning(f"⚠️ Rejected {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Error processing {file.filename}: {str(e)}")
        shipments = [error_shipment(str(e), file.filename)]
        return {
            "status": "error",
            "message": f"Failed to process document: {str(e)}",
            "file_name": file.filename,
            "shipments": [shipment.model_dump(by_alias=True, mode="json") for shipment in shipments],
        }

    processing_time = (datetime.now() - start_time).total_seconds()
    logger.info(f"✅ Extracted {len(result.data)} shipments from {file.filename} in {processing_time:.2f}s")

    return {
        "status": "success",
        "file_name": file.filename,
        "processing_time": processing_time,
        "result": result.model_dump(by_alias=True, mode="json"),
        "summary": aggregate_shipment_data(result.data),
    }


@router.get("/extract-shipments/status")
async def extraction_status(service: DocumentProcessingService = Depends(get_document_processing_service)):
    """AI collaborator availability and mapping cache size."""
    return service.excel_parser.get_service_status()
