"""End-to-end tests for workbook and text parsing."""

from datetime import datetime

import pytest

from conftest import FakeAIService
from manifest_ingest import config
from manifest_ingest.services.excel_parser_service import ExcelParserService, detect_delimiter
from manifest_ingest.services.exceptions import InputFileError, TextParsingError
from manifest_ingest.services.extraction_config import DocumentType, ParsingOptions, get_config
from manifest_ingest.services.field_mapper import FieldMapper


def _manifest_rows(etd_headers):
    return [
        ["MANIFEST REPORT"],
        ["Pickup location: LOADUP JB"],
        etd_headers,
        ["L001", "SO1", 45000, "ACME", "12 Jalan Mutiara 81300 Johor Bahru", "Johor",
         "MR TAN 012-3456789", "HWSH1", "A1", "Chair", 2, 10, None],
        [None, None, None, None, None, None, None, None, "A2", "Table", 1, 5.5, "fragile"],
        ["L002", "SO2", 45001, "BETA", "5 Jalan Kenari 13600 Perai", "Penang",
         "0198765432", "HWSH2", "B1", "Lamp", 4, 3, None],
    ]


class TestParseExcelFile:
    async def test_manifest_sheet(self, parser, options, workbook_factory, etd_headers):
        content = workbook_factory({"JB Orders": _manifest_rows(etd_headers)})
        shipments = await parser.parse_excel_file(content, options)

        assert [s.load_number for s in shipments] == ["L001", "L002"]
        first, second = shipments

        assert [item.item_number for item in first.items] == ["A1", "A2"]
        assert first.total_weight == pytest.approx(15.5)
        assert first.remarks == "fragile"
        assert first.promised_ship_date == datetime(2023, 3, 15)
        assert first.dropoff.recipient_contact_phone == "0123456789"
        assert first.miscellaneous_fields["sheetName"] == "JB Orders"
        assert first.origin.raw_input == "Pickup location: LOADUP JB"
        assert first.origin.resolution_method == "mock-keyword"
        assert first.confidence is not None

        assert [item.item_number for item in second.items] == ["B1"]
        assert second.destination.postal_code == "13600"

    async def test_every_sheet_is_parsed(self, parser, options, workbook_factory, etd_headers):
        rows = _manifest_rows(etd_headers)
        content = workbook_factory({"One": rows, "Two": rows})

        shipments = await parser.parse_excel_file(content, options)
        assert [s.miscellaneous_fields["sheetName"] for s in shipments] == ["One", "One", "Two", "Two"]

        only_second = await parser.parse_excel_file(content, options.merged(sheet_index=1))
        assert {s.miscellaneous_fields["sheetName"] for s in only_second} == {"Two"}

    async def test_missing_sheet_index(self, parser, options, workbook_factory, etd_headers):
        content = workbook_factory({"One": _manifest_rows(etd_headers)})
        with pytest.raises(InputFileError, match="Sheet at index 5 does not exist"):
            await parser.parse_excel_file(content, options.merged(sheet_index=5))

    async def test_missing_file(self, parser, options, tmp_path):
        with pytest.raises(InputFileError, match="File not found"):
            await parser.parse_excel_file(str(tmp_path / "missing.xlsx"), options)

    async def test_unreadable_container(self, parser, options):
        with pytest.raises(InputFileError, match="Failed to parse Excel file"):
            await parser.parse_excel_file(b"definitely not a workbook", options)

    async def test_failing_sheet_is_skipped(self, parser, options, workbook_factory, etd_headers, monkeypatch):
        rows = _manifest_rows(etd_headers)
        content = workbook_factory({"Bad": rows, "Good": rows})
        original = parser.process_sheet_rows

        async def flaky(raw_rows, parse_options, sheet_name=None):
            if sheet_name == "Bad":
                raise ValueError("unexpected cell shape")
            return await original(raw_rows, parse_options, sheet_name)

        monkeypatch.setattr(parser, "process_sheet_rows", flaky)
        shipments = await parser.parse_excel_file(content, options)
        assert {s.miscellaneous_fields["sheetName"] for s in shipments} == {"Good"}

    async def test_swapped_contact_and_po_repaired(self, parser, options, workbook_factory, etd_headers):
        rows = [
            etd_headers,
            ["L001", "SO1", 45000, "ACME", "LOT 1", "Johor", "HWSH12345", "MR TAN 012-3456789",
             "A1", "Chair", 1, 1, None],
        ]
        shipments = await parser.parse_excel_file(workbook_factory({"S": rows}), options)

        shipment = shipments[0]
        assert shipment.contact_number == "MR TAN 012-3456789"
        assert shipment.po_number == "HWSH12345"
        assert shipment.needs_review
        assert any("Automatically swapped" in note for note in shipment.review_notes)

    async def test_sheet_without_header_row(self, parser, workbook_factory):
        rows = [["L9", "SO9", 45000, "ACME", "LOT 1", "Johor", "0123456789", "PO9", "call first", "extra"]]
        options = ParsingOptions(use_ai_mapping=False, has_header_row=False)
        shipments = await parser.parse_excel_file(workbook_factory({"S": rows}), options)

        assert shipments[0].load_number == "L9"
        assert shipments[0].remarks == "call first"
        assert shipments[0].miscellaneous_fields["column_10"] == "extra"

    async def test_ai_mapped_header(self, clock, workbook_factory):
        ai = FakeAIService(answers={"Receiver": ("shipToCustomer", 0.92)})
        parser = ExcelParserService(field_mapper=FieldMapper(ai_service=ai, clock=clock))
        rows = [
            ["LOAD NO", "Order Number", "Receiver", "Ship To Address", "Promised Ship Date"],
            ["L1", "SO1", "ACME", "LOT 1", 45000],
        ]
        shipments = await parser.parse_excel_file(workbook_factory({"S": rows}), ParsingOptions(use_ai_mapping=True))

        shipment = shipments[0]
        assert shipment.ship_to_customer == "ACME"
        assert [(m.original_field, m.field) for m in shipment.ai_mapped_fields] == [("Receiver", "shipToCustomer")]
        # one AI round trip per distinct header, the rest came from the cache
        assert ai.calls.count("Receiver") == 1


class TestDocumentType:
    RATES_ROWS = [
        ["OUTSTATION RATES 2024"],
        ["LOAD NO", "Order Number", "Warehouse", "Weight"],
        ["L1", "SO1", "LOADUP JB", 12],
    ]

    async def test_detected_from_title_row(self, parser, options, workbook_factory):
        shipments = await parser.parse_excel_file(workbook_factory({"Rates": self.RATES_ROWS}), options)

        shipment = shipments[0]
        assert shipment.origin.raw_input == "LOADUP JB"
        assert "Warehouse" not in shipment.miscellaneous_fields

    async def test_explicit_type_wins(self, parser, workbook_factory):
        options = ParsingOptions(use_ai_mapping=False, document_type=DocumentType.ETD_REPORT)
        shipments = await parser.parse_excel_file(workbook_factory({"Rates": self.RATES_ROWS}), options)

        assert shipments[0].miscellaneous_fields["Warehouse"] == "LOADUP JB"
        assert shipments[0].origin is None


class TestConfiguration:
    def test_mapping_cache_ttl_from_environment(self, monkeypatch):
        monkeypatch.setattr(config, "AI_MAPPING_CACHE_TTL_SECONDS", 60)
        assert ExcelParserService().field_mapper.cache.ttl_seconds == 60

    def test_options_from_environment(self, monkeypatch):
        monkeypatch.setenv("USE_AI_MAPPING", "no")
        monkeypatch.setenv("HEADER_MAX_ROWS_TO_CHECK", "7")
        options = ParsingOptions.from_env()

        assert not options.use_ai_mapping
        assert options.max_rows_to_check == 7
        assert options.document_type is None

    def test_presets_are_copies(self):
        ocr = get_config("ocr")
        ocr.backfill_fields.append("remarks")

        assert get_config("ocr").is_ocr_data
        assert get_config("ocr").backfill_fields.count("remarks") == 1
        assert not get_config("no-such-preset").is_ocr_data


class TestParseText:
    PIPE_TEXT = (
        "LOAD NO | Order Number | Ship To Customer | Ship To Address | Promised Ship Date\n"
        "\n"
        "L1 | SO1 | ACME | LOT 1 | 2024-01-05\n"
        "x | y\n"
        "L2 | SO2 | BETA | LOT 2 | 2024-01-06\n"
    )

    async def test_pipe_table(self, parser, options):
        shipments = await parser.parse_text(self.PIPE_TEXT, options)

        assert [s.load_number for s in shipments] == ["L1", "L2"]
        assert shipments[0].promised_ship_date == datetime(2024, 1, 5)
        assert not shipments[0].needs_review
        assert "ocrProcessed" not in shipments[0].miscellaneous_fields

    async def test_ocr_metadata(self, parser):
        options = ParsingOptions(use_ai_mapping=False, is_ocr_data=True, ocr_source="scan.png")
        shipments = await parser.parse_text(self.PIPE_TEXT, options)

        misc = shipments[0].miscellaneous_fields
        assert misc["ocrProcessed"] is True
        assert misc["ocrSource"] == "scan.png"
        assert misc["ocrConfidence"] == 0.8

    async def test_comma_delimited(self, parser, options):
        shipments = await parser.parse_text("LOAD NO,Order Number,Remarks\nL1,SO1,leave at gate", options)
        assert shipments[0].remarks == "leave at gate"

    async def test_blank_text(self, parser, options):
        assert await parser.parse_text("  \n \n", options) == []

    async def test_failures_are_wrapped(self, parser, options, monkeypatch):
        async def broken(headers, parse_options):
            raise RuntimeError("mapper exploded")

        monkeypatch.setattr(parser.field_mapper, "build_header_mapping", broken)
        with pytest.raises(TextParsingError, match="Failed to parse text content: mapper exploded"):
            await parser.parse_text(self.PIPE_TEXT, options)


class TestDetectDelimiter:
    def test_preference_order(self):
        assert detect_delimiter(["a|b", "1|2,3"]) == "|"
        assert detect_delimiter(["a,b", "1,2\t3"]) == ","
        assert detect_delimiter(["a\tb", "1\t2"]) == "\t"
        assert detect_delimiter(["single"]) == "|"
