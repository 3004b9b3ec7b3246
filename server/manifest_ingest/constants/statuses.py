"""
Shipment Status Constants

Manifests carry free-text status columns ("Delivered", "done", "IDLE").
Everything is folded into the small set of statuses downstream consumers know.
"""

from typing import Any

SHIPMENT_STATUS_AWAITING = 'AWAITING_STATUS'
SHIPMENT_STATUS_PLANNED = 'PLANNED'
SHIPMENT_STATUS_COMPLETED = 'COMPLETED'

# Raw values treated as a finished shipment
COMPLETED_ALIASES = {'DELIVERED', 'COMPLETED', 'PROCESSED', 'DONE', 'SHIPPED'}
PLANNED_ALIASES = {'IDLE'}

# Counted under this key when a record has no status at all
DEFAULT_AGGREGATE_STATUS = 'pending'


def normalize_status(raw_status: Any) -> str:
    """
    Map a raw status cell onto a shipment status.

    Args:
        raw_status: The status value as read from the document

    Returns:
        COMPLETED or PLANNED for known aliases, AWAITING_STATUS when empty,
        otherwise the upper-cased raw value
    """
    if raw_status is None:
        return SHIPMENT_STATUS_AWAITING
    status = str(raw_status).strip().upper()
    if not status:
        return SHIPMENT_STATUS_AWAITING
    if status in COMPLETED_ALIASES:
        return SHIPMENT_STATUS_COMPLETED
    if status in PLANNED_ALIASES:
        return SHIPMENT_STATUS_PLANNED
    return status


def get_status_description(status: str) -> str:
    descriptions = {
        SHIPMENT_STATUS_AWAITING: "No status was supplied by the shipper",
        SHIPMENT_STATUS_PLANNED: "Shipment is planned but has not moved",
        SHIPMENT_STATUS_COMPLETED: "Shipment has been delivered or otherwise closed",
    }
    return descriptions.get(status, "Status passed through from the source document")
