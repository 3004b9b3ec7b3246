"""
Tests for header row detection: scoring, the ETD layout shortcut and the
keyword fallback.
"""

import pytest

from manifest_ingest.services.extraction_config import DocumentType, ParsingOptions
from manifest_ingest.services.header_detection_service import (
    HeaderDetectionService,
    detect_document_type,
    detect_document_type_from_rows,
    detect_header_row,
    find_potential_origin,
    is_etd_format,
    is_number_like,
    looks_like_data_row,
)


@pytest.fixture
def detector(field_mapper):
    return HeaderDetectionService(field_mapper)


def _manifest(etd_headers):
    data = ["L001", "SO-1", 45000, "ACME", "LOT 1 JALAN 2", "Johor", "012-3456789", "HWSH1", "A1", "Widget", 2, 10.5, None]
    return [
        ["ABC LOGISTICS SDN BHD"],
        ["Warehouse Address: LOT 5 JALAN KEMPAS"],
        [],
        etd_headers,
        data,
    ]


class TestHelpers:
    def test_number_like(self):
        assert is_number_like(12)
        assert is_number_like("1,250.00")
        assert is_number_like("(15.00)")
        assert not is_number_like("RM 12")
        assert not is_number_like(True)
        assert not is_number_like("   ")

    def test_data_like_rows(self):
        assert looks_like_data_row(["L001", "45000", ""])
        assert not looks_like_data_row(["LOAD NO", "45000"])
        assert not looks_like_data_row(["", ""])

    def test_potential_origin(self):
        rows = [["REPORT"], ["Pickup location: LOADUP JB", None]]
        assert find_potential_origin(rows) == "Pickup location: LOADUP JB"
        wide = [["Address", "City", "State", "Zip", "Country"]]
        assert find_potential_origin(wide) is None

    def test_etd_title(self):
        assert is_etd_format([["OUTSTATION ORDERS - ETD 12/05"], [], []])
        assert not is_etd_format([[], [], [], ["OUTSTATION ORDERS - ETD"]])

    def test_keyword_fallback(self):
        rows = [["title"], ["LOAD NO", "a", "b", "c", "d", "e"]]
        assert detect_header_row(rows) == 1
        assert detect_header_row([["LOAD NO", "x"]]) == 0

    def test_document_type(self):
        assert detect_document_type("OUTSTATION ORDERS - ETD\nLOAD NO") == DocumentType.ETD_REPORT
        assert detect_document_type("Outstation Rates 2024") == DocumentType.OUTSTATION_RATES
        assert detect_document_type("invoice") == DocumentType.UNKNOWN

    def test_document_type_from_rows(self):
        rows = [[], ["OUTSTATION", None, "RATES"], ["LOAD NO", "Warehouse"]]
        assert detect_document_type_from_rows(rows) == DocumentType.OUTSTATION_RATES
        # only the first non-empty rows are sampled
        late_title = [["x"]] * 5 + [["OUTSTATION RATES"]]
        assert detect_document_type_from_rows(late_title) == DocumentType.UNKNOWN


class TestFindHeaders:
    async def test_header_below_title_rows(self, detector, options, etd_headers):
        result = await detector.locate_header(_manifest(etd_headers), options, "Sheet1")

        assert result.headers == etd_headers
        # indices refer to the non-empty rows
        assert result.filtered_header_index == 2
        assert result.data_start_index == 3
        assert result.potential_origin == "Warehouse Address: LOT 5 JALAN KEMPAS"

    async def test_numeric_rows_never_win(self, detector, options):
        rows = [["1001", "2002"], ["3003", "4004"]]
        assert await detector.find_headers_and_data_start(rows, options) is None

    async def test_first_row_wins_ties(self, detector, options):
        rows = [
            ["LOAD NO", "Order Number", "Remarks"],
            ["LOAD NO", "Order Number", "Remarks"],
            ["L1", "O1", "x"],
        ]
        result = await detector.find_headers_and_data_start(rows, options)
        assert result.filtered_header_index == 0

    async def test_falls_back_to_keyword_row(self, detector, options):
        rows = [["foo", "bar"], ["baz", "qux"]]
        result = await detector.locate_header(rows, options)
        assert result.headers == ["foo", "bar"]
        assert result.data_start_index == 1

    async def test_no_header_row(self, detector, etd_headers):
        options = ParsingOptions(use_ai_mapping=False, has_header_row=False)
        result = await detector.locate_header(_manifest(etd_headers), options)
        assert result.headers == []
        assert result.data_start_index == 0

    async def test_explicit_header_index_counts_raw_rows(self, detector, etd_headers):
        options = ParsingOptions(use_ai_mapping=False, header_row_index=3)
        result = await detector.locate_header(_manifest(etd_headers), options)
        assert result.headers == etd_headers
        assert result.filtered_header_index == 2
        assert result.data_start_index == 3

    async def test_etd_layout_fixes_header_at_third_row(self, detector, options):
        rows = [
            ["OUTSTATION ORDERS - ETD 12/05/2024"],
            [],
            ["LOAD NO", "Mystery A", "Mystery B"],
            ["L001", "x", "y"],
        ]
        result = await detector.locate_header(rows, options)
        assert result.headers == ["LOAD NO", "Mystery A", "Mystery B"]
        assert result.filtered_header_index == 1
        assert result.data_start_index == 2
