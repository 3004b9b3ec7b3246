"""
Header tables used by the field mapper.

Each document type has a table of header spellings seen in real manifests.
Upper-case variants are generated so the exact-match tier catches the
shouting headers most ETD exports use.
"""

import re
from typing import Dict, List, Optional

from manifest_ingest.services.extraction_config import DEFAULT_DOCUMENT_TYPE, DocumentType


def _with_upper_variants(table: Dict[str, str]) -> Dict[str, str]:
    expanded: Dict[str, str] = {}
    for header, field_name in table.items():
        expanded[header] = field_name
        expanded.setdefault(header.upper(), field_name)
    return expanded


_COMMON_HEADERS = {
    'Load No': 'loadNumber',
    'Load Number': 'loadNumber',
    'load no': 'loadNumber',
    'load number': 'loadNumber',
    'Promised Ship Date': 'promisedShipDate',
    'Promise Date': 'promisedShipDate',
    'Ship Date': 'promisedShipDate',
    'Request Date': 'requestDate',
    'Requested Date': 'requestDate',
    'Actual Ship Date': 'actualShipDate',
    'Expected Delivery Date': 'expectedDeliveryDate',
    'Order Number': 'orderNumber',
    'Order No': 'orderNumber',
    'Ship To Area': 'shipToArea',
    'Area': 'shipToArea',
    'Ship To Customer Name': 'shipToCustomer',
    'Ship To Customer': 'shipToCustomer',
    'Customer Name': 'shipToCustomer',
    'Customer': 'shipToCustomer',
    'Address Line 1 and 2': 'shipToAddress',
    'Address': 'shipToAddress',
    'Ship To Address': 'shipToAddress',
    'City': 'shipToCity',
    'State/ Province': 'shipToState',
    'State': 'shipToState',
    'Province': 'shipToState',
    'Postcode': 'shipToZip',
    'Country': 'shipToCountry',
    'CONTACT NO': 'contactNumber',
    'Contact No': 'contactNumber',
    'Contact Number': 'contactNumber',
    'Phone': 'contactNumber',
    'Customer PO Number': 'poNumber',
    'PO Number': 'poNumber',
    'PO No': 'poNumber',
    'Remark': 'remarks',
    'Remarks': 'remarks',
    'Notes': 'remarks',
    'Note': 'remarks',
    'Comment': 'remarks',
    'Comments': 'remarks',
    'Status': 'status',

    # Item columns
    '2nd Item Number': 'itemNumber',
    'Item Number': 'itemNumber',
    'Item No': 'itemNumber',
    'Item': 'itemNumber',
    'Secondary Item Number': 'secondaryItemNumber',
    'Description 1': 'description',
    'Description': 'description',
    'Item Description': 'description',
    'Lot Serial Number': 'lotSerialNumber',
    'Lot Number': 'lotSerialNumber',
    'Serial Number': 'lotSerialNumber',
    'Serial No': 'lotSerialNumber',
    'Lot No': 'lotSerialNumber',
    'Quantity Ordered': 'quantity',
    'Quantity': 'quantity',
    'Qty': 'quantity',
    'UOM': 'uom',
    'Unit of Measure': 'uom',
    'Unit': 'uom',
    'Weight (KG)': 'weight',
    'Weight (kg)': 'weight',
    'Weight': 'weight',
    'Bin': 'bin',
}

_OUTSTATION_EXTRA_HEADERS = {
    'Load no': 'loadNumber',
    'Trip Rate': 'tripRate',
    'Drop Charge': 'dropCharge',
    'Manpower Charge': 'manpowerCharge',
    'Total Charge': 'totalCharge',
    'Truck Details': 'truckDetails',
    'Transporter': 'truckDetails',
    'Pickup Warehouse': 'pickupWarehouse',
    'Warehouse': 'pickupWarehouse',
}

FIELD_MAPPINGS: Dict[DocumentType, Dict[str, str]] = {
    DocumentType.ETD_REPORT: _with_upper_variants(_COMMON_HEADERS),
    DocumentType.OUTSTATION_RATES: _with_upper_variants({**_COMMON_HEADERS, **_OUTSTATION_EXTRA_HEADERS}),
    DocumentType.UNKNOWN: {},
}

# Tier 3: lower-cased, whitespace-collapsed header variants
FUZZY_MATCHES: Dict[str, str] = {
    # Load Number variations
    'load #': 'loadNumber',
    'load no': 'loadNumber',
    'load no.': 'loadNumber',
    'load': 'loadNumber',
    'ld.no': 'loadNumber',

    # Order Number variations
    'order #': 'orderNumber',
    'order no': 'orderNumber',
    'order no.': 'orderNumber',
    'order': 'orderNumber',
    'ord.no': 'orderNumber',

    # Ship Date variations
    'ship date': 'promisedShipDate',
    'shipping date': 'promisedShipDate',
    'shipment date': 'promisedShipDate',
    'etd': 'promisedShipDate',
    'date': 'promisedShipDate',

    # Request Date variations
    'request date': 'requestDate',
    'requested date': 'requestDate',
    'req. date': 'requestDate',

    # Ship To variations
    'ship to': 'shipToCustomer',
    'shipto': 'shipToCustomer',
    'customer': 'shipToCustomer',
    'client': 'shipToCustomer',
    'dealer': 'shipToCustomer',
    'consignee': 'shipToCustomer',

    # Address variations
    'address': 'shipToAddress',
    'shipping address': 'shipToAddress',
    'delivery address': 'shipToAddress',
    'ship to address': 'shipToAddress',

    # State variations
    'state': 'shipToState',
    'province': 'shipToState',
    'region': 'shipToState',

    # Contact variations
    'contact': 'contactNumber',
    'tel': 'contactNumber',
    'telephone': 'contactNumber',
    'phone': 'contactNumber',
    'contact #': 'contactNumber',
    'contact no': 'contactNumber',

    # PO variations
    'po': 'poNumber',
    'po #': 'poNumber',
    'po no': 'poNumber',
    'po no.': 'poNumber',
    'purchase order': 'poNumber',

    # Remarks variations
    'remarks': 'remarks',
    'notes': 'remarks',
    'comments': 'remarks',
    'special instructions': 'remarks',

    # Truck / driver block
    'truck details': 'truckDetails',
    'driver details': 'truckDetails',
}

# Column order assumed for sheets without a header row
POSITIONAL_FIELDS: Dict[int, str] = {
    0: 'loadNumber',
    1: 'orderNumber',
    2: 'promisedShipDate',
    3: 'shipToCustomer',
    4: 'shipToAddress',
    5: 'shipToState',
    6: 'contactNumber',
    7: 'poNumber',
    8: 'remarks',
}

# Fields a camel-cased header may name directly
STANDARD_FIELDS: List[str] = [
    'loadNumber', 'orderNumber', 'promisedShipDate', 'requestDate', 'actualShipDate',
    'expectedDeliveryDate', 'shipToCustomer', 'shipToAddress', 'shipToCity', 'shipToState',
    'shipToZip', 'shipToCountry', 'contactNumber', 'poNumber', 'remarks', 'itemNumber',
    'description', 'lotSerialNumber', 'quantity', 'uom', 'weight', 'totalWeight',
]


def get_field_mapping(document_type: Optional[DocumentType], override: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Header table for a document type, or the caller's override table."""
    if override:
        return override
    return FIELD_MAPPINGS.get(document_type or DEFAULT_DOCUMENT_TYPE, {})


def normalize_header(header: str) -> str:
    """Trim, lower-case and collapse runs of whitespace."""
    return re.sub(r'\s+', ' ', str(header).strip().lower())


def normalize_field_name(field_name: str) -> str:
    """'Ship To Customer' -> 'shipToCustomer'"""
    words = re.sub(r'\s+', ' ', re.sub(r'[^\w\s]', ' ', str(field_name))).strip().split(' ')
    return ''.join(
        word.lower() if index == 0 else word[:1].upper() + word[1:].lower()
        for index, word in enumerate(words)
    )


def is_standard_field(field_name: str) -> bool:
    return field_name in STANDARD_FIELDS


def misc_field_name(header: str) -> str:
    """Synthetic field name for a header that has no canonical field."""
    slug = re.sub(r'[^a-z0-9]+', '_', str(header).lower()).strip('_')
    return f"misc_{slug or 'column'}"
