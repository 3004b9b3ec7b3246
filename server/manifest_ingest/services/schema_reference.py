"""
Canonical shipment schema used to validate and shortlist AI field mappings.
"""

import re
from typing import Dict, List, Optional

CANONICAL_SCHEMA_FIELDS: Dict[str, str] = {
    # Core shipment fields
    "loadNumber": "The unique identifier for a shipment load",
    "orderNumber": "The customer's order number for the shipment",
    "promisedShipDate": "The date when the shipment is promised to be shipped",
    "requestDate": "The date when the shipment was requested by the customer",
    "actualShipDate": "The date the shipment actually left the warehouse",
    "expectedDeliveryDate": "The date the shipment is expected at the customer",
    "shipToArea": "The geographic area or region where the shipment is being delivered",
    "shipToCustomer": "The name of the customer receiving the shipment",
    "shipToAddress": "The delivery address for the shipment",
    "shipToCity": "The city of the delivery address",
    "shipToState": "The state or province for the delivery address",
    "shipToZip": "The postal code of the delivery address",
    "shipToCountry": "The country of the delivery address",
    "contactNumber": "The phone number of the contact person for the shipment",
    "poNumber": "The purchase order number associated with the shipment",
    "remarks": "Additional notes or comments about the shipment",
    "status": "Delivery status reported by the shipper",
    "pickupWarehouse": "The warehouse or hub the shipment is collected from",
    "truckDetails": "Free text block naming the driver, IC, phone and truck plate",
    "tripRate": "Rate charged for the trip",
    "dropCharge": "Charge per additional drop point",
    "manpowerCharge": "Charge for loading/unloading manpower",
    "totalCharge": "Total charge for the shipment",

    # Item fields
    "itemNumber": "The unique identifier for a product or item in the shipment",
    "secondaryItemNumber": "An alternate item identifier such as a customer SKU",
    "description": "The description of the item or product",
    "lotSerialNumber": "The lot or serial number for tracking the item",
    "quantity": "The number of units of the item",
    "uom": "The unit of measure for the item (e.g., kg, pcs, pallets)",
    "weight": "The weight of the item, typically in kilograms",
    "bin": "Warehouse bin location of the item",

    # Additional shipment fields
    "totalWeight": "The total weight of the entire shipment",
    "totalVolume": "The total volume of the entire shipment",
    "shipmentWeight": "The weight of the shipment",
    "shipmentVolume": "The volume of the shipment",
    "quantityOfItems": "The total number of items in the shipment",
    "totalPalettes": "The total number of palettes in the shipment",
    "customerDeliveryNumber": "The customer's delivery reference number",
    "customerPoNumbers": "Customer PO reference numbers",

    # Trip-related fields
    "pickUpDate": "Scheduled pickup date/time",
    "dropOffDate": "Scheduled dropoff date/time",
    "actualDateTimeOfArrival": "Actual arrival time",
    "actualDateTimeOfDeparture": "Actual departure time",
    "estimatedDateTimeOfArrival": "Estimated arrival time",
    "estimatedDateTimeOfDeparture": "Estimated departure time",

    # Status fields
    "activityStatus": "Status of the shipping activity",
    "cargoStatusId": "Identifier of the cargo status",
}

FIELD_SYNONYMS: Dict[str, List[str]] = {
    "loadNumber": ["load no", "load #", "load id", "load reference", "shipment number", "shipment id"],
    "orderNumber": ["order no", "order #", "order id", "sales order", "so number"],
    "promisedShipDate": ["ship date", "shipping date", "promised date", "delivery date", "ship by date"],
    "requestDate": ["requested date", "order date", "requested delivery", "request ship date"],
    "shipToCustomer": ["customer", "customer name", "recipient", "consignee", "ship to name", "receiver"],
    "shipToAddress": ["address", "delivery address", "destination", "ship to", "shipping address"],
    "shipToState": ["state", "province", "region", "destination state"],
    "contactNumber": ["phone", "telephone", "contact", "phone number", "mobile", "cell"],
    "poNumber": ["po#", "purchase order", "po", "purchase order number", "customer po"],
    "remarks": ["notes", "comments", "special instructions", "instructions", "additional info", "details"],
    "truckDetails": ["truck", "driver", "transporter", "lorry", "vehicle"],
    "pickupWarehouse": ["warehouse", "pickup point", "origin", "collection point"],
}

MAX_POTENTIAL_MATCHES = 5


def is_schema_field(field_name: Optional[str]) -> bool:
    return bool(field_name) and field_name in CANONICAL_SCHEMA_FIELDS


def _field_words(field_name: str) -> List[str]:
    return [word.lower() for word in re.findall(r'[A-Z]?[a-z]+|[A-Z]+(?![a-z])|\d+', field_name)]


def get_potential_matches(original_field_name: str, fields: Optional[List[str]] = None) -> List[Dict[str, str]]:
    """
    Shortlist canonical fields a raw header plausibly refers to.

    Scores: exact field name 1.0, synonym 0.9, substring 0.7 and shared
    words 0.5 scaled by overlap. Returns the best five as
    ``{"fieldName", "description"}`` dicts.
    """
    normalized_name = str(original_field_name).lower().strip()
    if not normalized_name:
        return []

    candidates = fields or list(CANONICAL_SCHEMA_FIELDS.keys())
    input_words = [word for word in re.split(r'\W+', normalized_name) if word]
    results = []

    for field_name in candidates:
        lowered = field_name.lower()
        description = CANONICAL_SCHEMA_FIELDS.get(field_name, "")

        if lowered == normalized_name:
            results.append((1.0, field_name, description))
            continue

        synonyms = FIELD_SYNONYMS.get(field_name, [])
        if any(synonym.lower() == normalized_name for synonym in synonyms):
            results.append((0.9, field_name, description))
            continue

        if lowered in normalized_name or normalized_name in lowered:
            results.append((0.7, field_name, description))
            continue

        field_words = _field_words(field_name)
        common_words = [word for word in field_words if word in input_words and len(word) > 2]
        if common_words:
            match_score = len(common_words) / max(len(field_words), len(input_words))
            results.append((0.5 * match_score, field_name, description))

    # sorted() is stable, so equal scores keep schema order
    results = sorted(results, key=lambda result: result[0], reverse=True)[:MAX_POTENTIAL_MATCHES]
    return [{"fieldName": field_name, "description": description} for _, field_name, description in results]
