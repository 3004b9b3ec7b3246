"""
Shipment record construction from mapped manifest rows.

One mapped row becomes one ShipmentRecord plus, when the row names an item,
its first ShipmentItem. Continuation rows are attached later by the
segmentation state machine.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from manifest_ingest.constants.statuses import normalize_status
from manifest_ingest.db.schemas import (
    CustomDetails,
    DriverDetails,
    DropoffDetail,
    LocationDetail,
    PickupDetail,
    ShipmentItem,
    ShipmentRecord,
    SourceInfo,
)
from manifest_ingest.services.contact_parser import parse_contact_string
from manifest_ingest.services.extraction_config import LOCATION_REVIEW_THRESHOLD, ParsingOptions
from manifest_ingest.services.location_resolver import LocationResolver, create_location_detail_from_address_fields
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.value_extractors import (
    extract_date_field,
    extract_int_field,
    extract_numeric_field,
    extract_string_field,
    is_empty_value,
)

logger = logging.getLogger(__name__)

ITEM_IDENTITY_FIELDS = ('itemNumber', 'description')
ITEM_FIELDS = (
    'itemNumber', 'secondaryItemNumber', 'description', 'lotSerialNumber',
    'quantity', 'uom', 'weight', 'bin',
)
DATE_FIELDS = ('promisedShipDate', 'requestDate', 'actualShipDate', 'expectedDeliveryDate')
STRING_FIELDS = (
    'loadNumber', 'orderNumber', 'shipToArea', 'shipToCustomer', 'shipToAddress', 'shipToCity',
    'shipToState', 'shipToZip', 'shipToCountry', 'contactNumber', 'poNumber', 'remarks',
)
ADDRESS_FIELDS = ('shipToAddress', 'shipToCity', 'shipToState', 'shipToZip', 'shipToCountry')
CHARGE_FIELDS = ('tripRate', 'dropCharge', 'manpowerCharge', 'totalCharge')
SUB_STRUCTURE_FIELDS = ('truckDetails', 'pickupWarehouse')

# Canonical fields with a home on the record; anything else goes to additional_fields
_CONSUMED_FIELDS = set(ITEM_FIELDS) | set(DATE_FIELDS) | set(STRING_FIELDS) | set(CHARGE_FIELDS) \
    | set(SUB_STRUCTURE_FIELDS) | {'status', 'totalWeight'}

TRUCK_LINE_PATTERNS = {
    'driver_name': re.compile(r'^NAME:\s*(.*)', re.IGNORECASE),
    'driver_ic': re.compile(r'^IC:\s*(.*)', re.IGNORECASE),
    'driver_phone': re.compile(r'^PHONE:\s*(.*)', re.IGNORECASE),
    'truck_id': re.compile(r'^TRUCK:\s*(.*)', re.IGNORECASE),
}


def has_item_identity(fields: Dict[str, Any]) -> bool:
    return any(not is_empty_value(fields.get(name)) for name in ITEM_IDENTITY_FIELDS)


def build_shipment_item(fields: Dict[str, Any]) -> Optional[ShipmentItem]:
    """Item from a row's item columns; None unless it has an item number or description."""
    if not has_item_identity(fields):
        return None
    return ShipmentItem(
        item_number=extract_string_field(fields.get('itemNumber')),
        secondary_item_number=extract_string_field(fields.get('secondaryItemNumber')),
        description=extract_string_field(fields.get('description')),
        lot_serial_number=extract_string_field(fields.get('lotSerialNumber')),
        quantity=extract_int_field(fields.get('quantity'), default=0),
        uom=extract_string_field(fields.get('uom')),
        weight=extract_numeric_field(fields.get('weight')),
        bin=extract_string_field(fields.get('bin')),
    )


def parse_truck_details(details: Any) -> DriverDetails:
    """
    Split a driver/truck block into its labelled parts.

    Each line is matched on its own against the NAME:, IC:, PHONE: and
    TRUCK: prefixes; lines without a known label are ignored.
    """
    if not isinstance(details, str) or not details.strip():
        return DriverDetails()

    parsed: Dict[str, str] = {}
    for line in re.split(r'\r?\n', details):
        line = line.strip()
        if not line:
            continue
        for attribute, pattern in TRUCK_LINE_PATTERNS.items():
            match = pattern.match(line)
            if match and match.group(1).strip():
                parsed[attribute] = match.group(1).strip()
                break

    if not parsed:
        logger.warning(f"⚠️ No driver details found in truck block: {details.strip()!r}")
    return DriverDetails(**parsed)


def build_custom_details(fields: Dict[str, Any], load_number: Optional[str], order_number: Optional[str]) -> CustomDetails:
    custom = CustomDetails(
        customer_shipment_number=load_number,
        customer_document_number=order_number,
        remarks=extract_string_field(fields.get('remarks')),
    )
    for field_name in CHARGE_FIELDS:
        attribute = re.sub(r'([A-Z])', r'_\1', field_name).lower()
        setattr(custom, attribute, extract_numeric_field(fields.get(field_name)))
        setattr(custom, f"raw_{attribute}_input", extract_string_field(fields.get(field_name)))
    return custom


def refresh_derived_fields(record: ShipmentRecord, changed_fields: Sequence[str]) -> None:
    """Rebuild the sub-structures derived from scalars filled in after the record was created."""
    changed = set(changed_fields)

    if changed & {'contactNumber', 'poNumber'}:
        dropoff = record.dropoff or DropoffDetail()
        if 'contactNumber' in changed:
            contact = parse_contact_string(record.contact_number)
            dropoff.recipient_contact_name = contact.names
            dropoff.recipient_contact_phone = contact.phones
        if 'poNumber' in changed:
            dropoff.customer_po_numbers = record.po_number
        record.dropoff = dropoff

    if changed & set(ADDRESS_FIELDS):
        record.destination = create_location_detail_from_address_fields(
            {name: record.canonical_value(name) for name in ADDRESS_FIELDS}
        )

    if 'remarks' in changed:
        record.custom_details = record.custom_details or CustomDetails()
        record.custom_details.remarks = record.remarks


def location_review_note(
    origin: Optional[LocationDetail],
    destination: Optional[LocationDetail],
) -> Optional[str]:
    """Review note when the resolved locations are too uncertain to trust, else None."""
    confidences = [
        location.resolution_confidence
        for location in (origin, destination)
        if location is not None and location.resolution_confidence > 0
    ]
    if confidences:
        average = sum(confidences) / len(confidences)
        if average < LOCATION_REVIEW_THRESHOLD:
            return f"Low location resolution confidence ({average:.2f})"

    for label, location in (("origin", origin), ("destination", destination)):
        if location is not None and location.resolution_method == "none" and location.raw_input:
            return f"Could not resolve {label} location '{location.raw_input}'"
    return None


class ShipmentBuilder:
    """Creates ShipmentRecords, resolving origin and destination on the way."""

    def __init__(self, location_resolver: Optional[LocationResolver] = None):
        self.location_resolver = location_resolver or LocationResolver()
        self.logger = logging.getLogger(__name__)

    async def create_shipment(
        self,
        row: MappedRow,
        options: ParsingOptions,
        potential_origin: Optional[str] = None,
    ) -> ShipmentRecord:
        fields = row.fields
        strings = {name: extract_string_field(fields.get(name)) for name in STRING_FIELDS}
        dates = {name: extract_date_field(fields.get(name)) for name in DATE_FIELDS}

        item = build_shipment_item(fields)
        items: List[ShipmentItem] = [item] if item else []

        miscellaneous = dict(row.miscellaneous)
        if row.sheet_name:
            miscellaneous['sheetName'] = row.sheet_name

        additional = {
            name: value for name, value in fields.items()
            if name not in _CONSUMED_FIELDS and not isinstance(value, list)
        }

        contact = parse_contact_string(strings['contactNumber'])
        origin_raw = extract_string_field(fields.get('pickupWarehouse')) or potential_origin
        origin = None
        if origin_raw:
            origin = await self.location_resolver.resolve_ambiguous_location(
                origin_raw, state_context=strings['shipToState']
            )
        destination = create_location_detail_from_address_fields(fields)

        record = ShipmentRecord(
            load_number=strings['loadNumber'],
            order_number=strings['orderNumber'],
            promised_ship_date=dates['promisedShipDate'],
            request_date=dates['requestDate'],
            actual_ship_date=dates['actualShipDate'],
            expected_delivery_date=dates['expectedDeliveryDate'],
            ship_to_area=strings['shipToArea'],
            ship_to_customer=strings['shipToCustomer'] or strings['shipToArea'],
            ship_to_address=strings['shipToAddress'],
            ship_to_city=strings['shipToCity'],
            ship_to_state=strings['shipToState'],
            ship_to_zip=strings['shipToZip'],
            ship_to_country=strings['shipToCountry'],
            contact_number=strings['contactNumber'],
            po_number=strings['poNumber'],
            remarks=strings['remarks'],
            status=normalize_status(fields.get('status')),
            items=items,
            total_weight=item.weight if item and item.weight else 0.0,
            origin=origin,
            destination=destination,
            pickup=PickupDetail(scheduled_date=dates['requestDate']),
            dropoff=DropoffDetail(
                scheduled_date=dates['promisedShipDate'],
                customer_po_numbers=strings['poNumber'],
                recipient_contact_name=contact.names,
                recipient_contact_phone=contact.phones,
            ),
            custom_details=build_custom_details(fields, strings['loadNumber'], strings['orderNumber']),
            driver=parse_truck_details(fields.get('truckDetails')) if fields.get('truckDetails') else None,
            ai_mapped_fields=list(row.ai_mapped_fields),
            miscellaneous_fields=miscellaneous,
            additional_fields=additional,
            source_info=SourceInfo(
                file_name=options.file_name,
                sheet_name=row.sheet_name,
                row_index=row.row_index,
                group_origin_raw_input=potential_origin,
            ),
            needs_review=row.needs_review,
            review_notes=list(row.notes),
        )

        note = location_review_note(origin, destination)
        if note:
            record.needs_review = True
            record.review_notes.append(note)
            self.logger.info(f"⚠️ Row {row.row_index}: {note}")

        return record
