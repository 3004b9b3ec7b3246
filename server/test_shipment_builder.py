"""Tests for shipment record construction and its composite-field parsers."""

from datetime import datetime

import pytest

from manifest_ingest.constants.statuses import get_status_description, normalize_status
from manifest_ingest.db.schemas import LocationDetail
from manifest_ingest.services.extraction_config import ParsingOptions
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.shipment_builder import (
    ShipmentBuilder,
    build_shipment_item,
    location_review_note,
    parse_truck_details,
)


@pytest.fixture
def builder():
    return ShipmentBuilder()


class TestTruckDetails:
    def test_labelled_lines(self):
        details = "NAME: Ali bin Abu\nIC: 800101-01-1234\nPHONE: 012-3456789\nTRUCK: JKL 1234"
        driver = parse_truck_details(details)
        assert driver.driver_name == "Ali bin Abu"
        assert driver.driver_ic == "800101-01-1234"
        assert driver.driver_phone == "012-3456789"
        assert driver.truck_id == "JKL 1234"

    def test_unlabelled_text_yields_nothing(self):
        driver = parse_truck_details("Ali, JKL 1234")
        assert driver.driver_name is None
        assert driver.truck_id is None

    def test_empty(self):
        assert parse_truck_details(None).driver_name is None


class TestStatus:
    @pytest.mark.parametrize("raw", ["Delivered", "done", " SHIPPED ", "processed"])
    def test_completed_aliases(self, raw):
        assert normalize_status(raw) == "COMPLETED"

    def test_other_statuses(self):
        assert normalize_status("idle") == "PLANNED"
        assert normalize_status(None) == "AWAITING_STATUS"
        assert normalize_status("  ") == "AWAITING_STATUS"
        assert normalize_status("in transit") == "IN TRANSIT"

    def test_description(self):
        assert get_status_description("COMPLETED")


class TestShipmentItem:
    def test_requires_identity(self):
        assert build_shipment_item({"quantity": 3}) is None

    def test_item_fields(self):
        item = build_shipment_item({"itemNumber": 1001, "quantity": "4 PCS", "weight": "12.5", "uom": "CTN"})
        assert item.item_number == "1001"
        assert item.quantity == 4
        assert item.weight == 12.5
        assert item.uom == "CTN"


class TestCreateShipment:
    async def test_full_row(self, builder):
        row = MappedRow(
            row_index=5,
            sheet_name="JB",
            fields={
                "loadNumber": "L001",
                "orderNumber": "SO1",
                "promisedShipDate": 45000,
                "requestDate": "2023-03-10",
                "shipToArea": "SOUTH",
                "shipToAddress": "12 Jalan Mutiara 81300 Johor Bahru, Johor",
                "shipToCity": "Johor Bahru",
                "shipToState": "Johor",
                "contactNumber": "MR TAN 012-3456789",
                "poNumber": "HWSH1",
                "itemNumber": "A1",
                "weight": 7,
                "status": "delivered",
                "tripRate": "RM 350.00",
                "pickupWarehouse": "LOADUP JB",
                "customerDeliveryNumber": "DN-9",
            },
            miscellaneous={"Bay": "3"},
        )
        options = ParsingOptions(file_name="manifest.xlsx")
        record = await builder.create_shipment(row, options, potential_origin="ignored hint")

        assert record.load_number == "L001"
        assert record.promised_ship_date == datetime(2023, 3, 15)
        assert record.request_date == datetime(2023, 3, 10)
        # area stands in for a missing customer name
        assert record.ship_to_customer == "SOUTH"
        assert record.status == "COMPLETED"
        assert record.total_weight == 7.0
        assert record.items[0].item_number == "A1"

        assert record.pickup.scheduled_date == datetime(2023, 3, 10)
        assert record.dropoff.scheduled_date == datetime(2023, 3, 15)
        assert record.dropoff.customer_po_numbers == "HWSH1"
        assert record.dropoff.recipient_contact_name == "TAN"
        assert record.dropoff.recipient_contact_phone == "0123456789"

        assert record.custom_details.customer_shipment_number == "L001"
        assert record.custom_details.customer_document_number == "SO1"
        assert record.custom_details.trip_rate == 350.0
        assert record.custom_details.raw_trip_rate_input == "RM 350.00"

        assert record.origin.resolution_method == "mock-keyword"
        assert record.origin.city == "Johor Bahru"
        assert record.destination.resolution_method == "direct-fields"
        assert record.destination.postal_code == "81300"
        assert record.destination.country == "Malaysia"

        assert record.miscellaneous_fields == {"Bay": "3", "sheetName": "JB"}
        assert record.additional_fields == {"customerDeliveryNumber": "DN-9"}
        assert record.source_info.file_name == "manifest.xlsx"
        assert record.source_info.row_index == 5
        assert record.driver is None
        assert not record.needs_review

    async def test_sheet_origin_hint_used_without_warehouse_column(self, builder):
        row = MappedRow(row_index=0, fields={"loadNumber": "L1", "shipToState": "Penang"})
        record = await builder.create_shipment(row, ParsingOptions(), potential_origin="Pick up at NIRO")

        assert record.origin.raw_input == "Pick up at NIRO"
        assert record.source_info.group_origin_raw_input == "Pick up at NIRO"

    async def test_unresolvable_origin_flags_review(self, builder):
        row = MappedRow(row_index=0, fields={"loadNumber": "L1", "pickupWarehouse": "Somewhere Unknown"})
        record = await builder.create_shipment(row, ParsingOptions())

        assert record.origin.resolution_method == "none"
        assert record.origin.resolution_confidence == 0
        assert record.needs_review
        assert "Could not resolve origin location 'Somewhere Unknown'" in record.review_notes

    async def test_driver_block(self, builder):
        row = MappedRow(row_index=0, fields={"loadNumber": "L1", "truckDetails": "NAME: Ali\nTRUCK: JKL 1234"})
        record = await builder.create_shipment(row, ParsingOptions())
        assert record.driver.driver_name == "Ali"
        assert record.driver.truck_id == "JKL 1234"


class TestLocationReviewNote:
    def test_low_average_confidence(self):
        origin = LocationDetail(raw_input="NIRO", resolution_method="estimated-pattern-context", resolution_confidence=0.4)
        note = location_review_note(origin, None)
        assert note == "Low location resolution confidence (0.40)"

    def test_confident_locations(self):
        origin = LocationDetail(raw_input="PTP", resolution_method="mock-keyword", resolution_confidence=1.0)
        destination = LocationDetail(raw_input="x", resolution_method="direct-fields", resolution_confidence=0.8)
        assert location_review_note(origin, destination) is None
