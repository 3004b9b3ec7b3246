"""
Record-level confidence scoring.

Three independent routes flag a record for review: missing critical fields,
a weak AI mapping on a critical field, and low overall confidence after the
completeness blend. Any one of them is enough.
"""

import logging
from typing import Optional

from manifest_ingest.db.schemas import ConfidenceScore, ShipmentRecord
from manifest_ingest.services.extraction_config import (
    AVERAGE_WEIGHT,
    COMPLETENESS_WEIGHT,
    CRITICAL_FIELDS,
    CRITICAL_WEIGHT,
    MIN_CONFIDENCE,
    PRECISION_WEIGHT,
    REVIEW_CONFIDENCE_THRESHOLD,
)
from manifest_ingest.services.value_extractors import is_empty_value

logger = logging.getLogger(__name__)

MESSAGE_SUCCESS = "Shipment processed successfully"
MESSAGE_INVALID = "Invalid or empty shipment data"
MESSAGE_AI_MAPPED = "Shipment processed with AI field mapping"
MESSAGE_LOW_CRITICAL = "Low confidence in critical field mappings, manual review recommended"
MESSAGE_LOW_OVERALL = "Low overall confidence in data quality, manual review recommended"

# Scoring output, not shipment data
_SCORING_FIELDS = {"confidence", "needs_review", "message", "review_notes"}


def completeness_ratio(record: ShipmentRecord) -> float:
    """Populated data fields over all data fields; the AI mapping list counts only in the total."""
    names = [name for name in type(record).model_fields if name not in _SCORING_FIELDS]
    populated = 0
    for name in names:
        if name == "ai_mapped_fields":
            continue
        value = getattr(record, name)
        if value is None or (isinstance(value, (list, dict)) and not value) or is_empty_value(value):
            continue
        populated += 1
    return populated / len(names)


def calculate_confidence(record: Optional[ShipmentRecord]) -> ConfidenceScore:
    """
    Score one shipment.

    Missing critical fields short-circuit to ``max(0.1, 1 - missing/5)``.
    Otherwise AI-mapped fields blend ``0.7 * weakest critical + 0.3 * mean``
    (the plain mean when no critical field was AI-mapped), then completeness
    is blended in at 0.2 and the result is clamped to [0.1, 1.0].
    """
    if record is None:
        return ConfidenceScore(confidence=MIN_CONFIDENCE, needs_review=True, message=MESSAGE_INVALID)

    missing = [name for name in CRITICAL_FIELDS if is_empty_value(record.canonical_value(name))]
    if missing:
        return ConfidenceScore(
            confidence=max(MIN_CONFIDENCE, 1 - len(missing) / len(CRITICAL_FIELDS)),
            needs_review=True,
            message=f"Missing critical fields: {', '.join(missing)}",
        )

    confidence = 1.0
    needs_review = False
    message = MESSAGE_SUCCESS

    if record.ai_mapped_fields:
        average = sum(mapped.confidence for mapped in record.ai_mapped_fields) / len(record.ai_mapped_fields)
        critical = [mapped for mapped in record.ai_mapped_fields if mapped.field in CRITICAL_FIELDS]

        if critical:
            weakest = min(mapped.confidence for mapped in critical)
            confidence = CRITICAL_WEIGHT * weakest + AVERAGE_WEIGHT * average
            if any(mapped.confidence < REVIEW_CONFIDENCE_THRESHOLD for mapped in critical):
                needs_review = True
                message = MESSAGE_LOW_CRITICAL
            else:
                message = MESSAGE_AI_MAPPED
        else:
            confidence = average
            message = MESSAGE_AI_MAPPED

    confidence = PRECISION_WEIGHT * confidence + COMPLETENESS_WEIGHT * completeness_ratio(record)
    confidence = max(MIN_CONFIDENCE, min(1.0, confidence))

    if confidence < REVIEW_CONFIDENCE_THRESHOLD and not needs_review:
        needs_review = True
        message = MESSAGE_LOW_OVERALL

    return ConfidenceScore(confidence=confidence, needs_review=needs_review, message=message)


def apply_confidence(record: ShipmentRecord) -> ShipmentRecord:
    """Score a record in place; review flags raised earlier in the pipeline are kept."""
    score = calculate_confidence(record)
    record.confidence = score.confidence
    record.message = score.message
    record.needs_review = record.needs_review or score.needs_review
    if record.needs_review and score.needs_review:
        logger.debug(f"Shipment {record.load_number or record.order_number}: {score.message}")
    return record
