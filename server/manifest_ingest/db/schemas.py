from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional, Dict, Literal
from datetime import datetime

ResolutionMethod = Literal[
    "direct-fields", "mock-keyword", "estimated-pattern", "estimated-pattern-context", "none"
]


class CamelModel(BaseModel):
    """Serialises with the camelCase field names used by upstream consumers."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AIMappedField(CamelModel):
    original_field: str
    field: str
    confidence: float


class FieldMappingResult(CamelModel):
    field_name: str
    confidence: float
    ai_mapped: bool = False
    original_field: Optional[str] = None
    is_miscellaneous: bool = False
    needs_review: bool = False
    reasoning: Optional[str] = None


class HeaderMapping(CamelModel):
    original_header: str
    mapped_field: str
    confidence: float
    ai_mapped: bool = False
    column_index: int


class HeaderMappingResult(CamelModel):
    """Header mapping computed once per sheet and reused for every data row."""
    detailed_mapping: List[HeaderMapping] = Field(default_factory=list)
    field_to_header: Dict[str, str] = Field(default_factory=dict)

    def find_actual_key_for_standard_field(self, standard_field: str) -> Optional[str]:
        """Original header carrying a canonical field, falling back to a misc_ column named like it."""
        if standard_field in self.field_to_header:
            return self.field_to_header[standard_field]
        needle = standard_field.lower()
        for entry in self.detailed_mapping:
            if entry.mapped_field.startswith("misc_") and needle in entry.original_header.lower():
                return entry.original_header
        return None


class HeaderDetectionResult(CamelModel):
    headers: List[str]
    filtered_header_index: int
    data_start_index: int
    potential_origin: Optional[str] = None


class ShipmentItem(CamelModel):
    item_number: Optional[str] = None
    secondary_item_number: Optional[str] = None
    description: Optional[str] = None
    lot_serial_number: Optional[str] = None
    quantity: int = 0
    uom: Optional[str] = None
    weight: Optional[float] = None
    bin: Optional[str] = None


class LocationDetail(CamelModel):
    raw_input: Optional[str] = None
    resolved_address: Optional[str] = None
    name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    resolution_method: ResolutionMethod = "none"
    resolution_confidence: float = 0.0

    @model_validator(mode="after")
    def _unresolved_has_no_position(self):
        if self.resolution_method == "none":
            self.resolution_confidence = 0.0
            self.latitude = None
            self.longitude = None
        return self


class ParsedContact(CamelModel):
    names: Optional[str] = None
    phones: Optional[str] = None


class DriverDetails(CamelModel):
    driver_name: Optional[str] = None
    driver_ic: Optional[str] = None
    driver_phone: Optional[str] = None
    truck_id: Optional[str] = None


class CustomDetails(CamelModel):
    customer_shipment_number: Optional[str] = None  # load number
    customer_document_number: Optional[str] = None  # order number
    trip_rate: Optional[float] = None
    drop_charge: Optional[float] = None
    manpower_charge: Optional[float] = None
    total_charge: Optional[float] = None
    raw_trip_rate_input: Optional[str] = None
    raw_drop_charge_input: Optional[str] = None
    raw_manpower_charge_input: Optional[str] = None
    raw_total_charge_input: Optional[str] = None
    remarks: Optional[str] = None


class PickupDetail(CamelModel):
    scheduled_date: Optional[datetime] = None


class DropoffDetail(CamelModel):
    scheduled_date: Optional[datetime] = None
    customer_po_numbers: Optional[str] = None
    recipient_contact_name: Optional[str] = None
    recipient_contact_phone: Optional[str] = None


class SourceInfo(CamelModel):
    file_name: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    group_origin_raw_input: Optional[str] = None


class ConfidenceScore(CamelModel):
    confidence: float
    needs_review: bool
    message: str


class ShipmentRecord(CamelModel):
    """One logical shipment assembled from one or more manifest rows."""

    load_number: Optional[str] = None
    order_number: Optional[str] = None

    promised_ship_date: Optional[datetime] = None
    request_date: Optional[datetime] = None
    actual_ship_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None

    ship_to_area: Optional[str] = None
    ship_to_customer: Optional[str] = None
    ship_to_address: Optional[str] = None
    ship_to_city: Optional[str] = None
    ship_to_state: Optional[str] = None
    ship_to_zip: Optional[str] = None
    ship_to_country: Optional[str] = None

    contact_number: Optional[str] = None
    po_number: Optional[str] = None
    remarks: Optional[str] = None
    status: str = "AWAITING_STATUS"

    items: List[ShipmentItem] = Field(default_factory=list)
    total_weight: float = 0.0

    origin: Optional[LocationDetail] = None
    destination: Optional[LocationDetail] = None
    pickup: Optional[PickupDetail] = None
    dropoff: Optional[DropoffDetail] = None
    custom_details: Optional[CustomDetails] = None
    driver: Optional[DriverDetails] = None

    ai_mapped_fields: List[AIMappedField] = Field(default_factory=list)
    miscellaneous_fields: Dict[str, Any] = Field(default_factory=dict)
    additional_fields: Dict[str, Any] = Field(default_factory=dict)
    source_info: Optional[SourceInfo] = None

    confidence: Optional[float] = None
    needs_review: bool = False
    message: Optional[str] = None
    review_notes: List[str] = Field(default_factory=list)

    def canonical_value(self, field_name: str) -> Any:
        """Value of a shipment-level field addressed by its camelCase name."""
        for attribute, info in type(self).model_fields.items():
            if info.alias == field_name or attribute == field_name:
                return getattr(self, attribute)
        return None

    def set_canonical_value(self, field_name: str, value: Any) -> bool:
        for attribute, info in type(self).model_fields.items():
            if info.alias == field_name:
                setattr(self, attribute, value)
                return True
        return False


class DocumentProcessingResult(CamelModel):
    data: List[ShipmentRecord] = Field(default_factory=list)
    confidence: float = 1.0
    needs_review: bool = False
    message: str = "Shipment processed successfully"
    ai_mapped: bool = False
