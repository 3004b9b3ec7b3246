"""
Row segmentation: flat manifest rows -> one ShipmentRecord per shipment.

The per-sheet state is either NoActiveShipment or ActiveShipment(record).
``transition`` takes the state and one mapped row and returns the next state
plus the record it finalized, if any:

- a non-empty load number always starts a new shipment
- an order number without a load number starts one only when nothing is
  active, or when the active shipment is itself keyed by a different order
  number
- any other row with an item number or description adds an item
- remaining rows backfill empty whitelisted scalars on the active shipment,
  and the dropoff, destination and custom details derived from them are rebuilt
- rows that match nothing while no shipment is active are dropped
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Awaitable, List, Optional, Sequence, Tuple, Union

from manifest_ingest.db.schemas import ShipmentRecord
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.shipment_builder import build_shipment_item, has_item_identity, refresh_derived_fields
from manifest_ingest.services.value_extractors import extract_string_field, is_empty_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoActiveShipment:
    pass


@dataclass(frozen=True)
class ActiveShipment:
    record: ShipmentRecord


SegmentationState = Union[NoActiveShipment, ActiveShipment]
ShipmentFactory = Callable[[MappedRow], Awaitable[ShipmentRecord]]


def starts_new_shipment(state: SegmentationState, row: MappedRow) -> bool:
    load_number = extract_string_field(row.get('loadNumber'))
    if load_number:
        return True

    order_number = extract_string_field(row.get('orderNumber'))
    if not order_number:
        return False
    if isinstance(state, NoActiveShipment):
        return True

    active = state.record
    # Keyed by load number: an order number alone is a detail of that load
    if active.load_number:
        return False
    return active.order_number != order_number


def apply_backfill(record: ShipmentRecord, row: MappedRow, backfill_fields: Sequence[str]) -> List[str]:
    """Copy whitelisted values into empty record fields; returns the fields filled."""
    filled = []
    for field_name in backfill_fields:
        value = extract_string_field(row.get(field_name))
        if value is None or not is_empty_value(record.canonical_value(field_name)):
            continue
        if record.set_canonical_value(field_name, value):
            filled.append(field_name)
    return filled


def merge_row_metadata(record: ShipmentRecord, row: MappedRow) -> None:
    """Carry a continuation row's unmapped values, AI mappings and review notes onto the record."""
    for key, value in row.miscellaneous.items():
        record.miscellaneous_fields.setdefault(key, value)

    known = {(mapped.original_field, mapped.field) for mapped in record.ai_mapped_fields}
    for mapped in row.ai_mapped_fields:
        if (mapped.original_field, mapped.field) not in known:
            record.ai_mapped_fields.append(mapped)

    for note in row.notes:
        if note not in record.review_notes:
            record.review_notes.append(note)
    if row.needs_review:
        record.needs_review = True


def continue_shipment(record: ShipmentRecord, row: MappedRow, backfill_fields: Sequence[str]) -> None:
    """Attach a row that belongs to the active shipment."""
    if has_item_identity(row.fields):
        item = build_shipment_item(row.fields)
        record.items.append(item)
        if item.weight:
            record.total_weight += item.weight

    filled = apply_backfill(record, row, backfill_fields)
    if filled:
        refresh_derived_fields(record, filled)
        logger.debug(f"Row {row.row_index}: backfilled {filled}")
    merge_row_metadata(record, row)


async def transition(
    state: SegmentationState,
    row: MappedRow,
    create_shipment: ShipmentFactory,
    backfill_fields: Sequence[str],
) -> Tuple[SegmentationState, Optional[ShipmentRecord]]:
    """One step of the segmentation state machine."""
    if starts_new_shipment(state, row):
        emitted = state.record if isinstance(state, ActiveShipment) else None
        record = await create_shipment(row)
        return ActiveShipment(record), emitted

    if isinstance(state, ActiveShipment):
        continue_shipment(state.record, row, backfill_fields)
        return state, None

    logger.debug(f"Row {row.row_index}: no active shipment and no identifiers, skipping")
    return state, None


async def segment_rows(
    rows: Sequence[MappedRow],
    create_shipment: ShipmentFactory,
    backfill_fields: Sequence[str],
) -> List[ShipmentRecord]:
    """Run the state machine over a sheet's rows in order and flush the last shipment."""
    shipments: List[ShipmentRecord] = []
    state: SegmentationState = NoActiveShipment()

    for row in rows:
        state, emitted = await transition(state, row, create_shipment, backfill_fields)
        if emitted is not None:
            shipments.append(emitted)

    if isinstance(state, ActiveShipment):
        shipments.append(state.record)

    return shipments
