"""
Тесты для Stage 2: Extraction (маршрутизация по формату).
"""

from datetime import date

import pytest

from contracts.raw_input_dto import RawInput
from src.ingestion.s1_format_detection import FormatDetectionStage, FormatType
from src.ingestion.s2_extraction import ExtractionStage


@pytest.fixture
def detector(reference):
    return FormatDetectionStage(reference)


@pytest.fixture
def stage(reference):
    return ExtractionStage(reference)


@pytest.fixture
def extract(detector, stage):
    def run(content, hint=None):
        raw = RawInput(content=content, hint=hint)
        return stage.process(raw, detector.detect(raw))
    return run


class TestCsv:

    def test_scenario_b(self, extract):
        result = extract("containerNumber;status;location\nMSKU1111110;ON_RAIL;Новосибирск")

        assert result.errors == []
        assert len(result.items) == 1
        item = result.items[0]
        assert item.container_number == "MSKU1111110"
        assert item.status_code == "ON_RAIL"
        assert item.location == "Новосибирск"
        assert item.extraction_confidence >= 0.6

    def test_rows_are_independent(self, extract):
        content = (
            "ктк,статус,eta\n"
            "MSCU1234566,в пути,04.12.2025\n"
            "MSKU1111112,на жд,когда-нибудь\n"
            "CSQU3054383,в порту,10.12.2025"
        )
        result = extract(content)

        assert [i.container_number for i in result.items] == ["MSCU1234566", "MSKU1111112", "CSQU3054383"]
        assert result.warnings == ["Line 3: unparsable date in 'eta': 'когда-нибудь'"]

    def test_quoted_delimiter(self, stage):
        result = stage.parse_csv('containerNumber;status;comment\nMSCU1234566;ON_RAIL;"задержка; ждём"')
        assert result.items[0].operator_comment == "задержка; ждём"

    def test_doubled_quotes_inside_field(self, stage):
        result = stage.parse_csv(
            'containerNumber;status;comment\nMSCU1234566;ON_RAIL;"пломба ""ЕК-17"" цела"'
        )
        assert result.items[0].operator_comment == 'пломба "ЕК-17" цела'

    def test_header_only(self, stage):
        result = stage.parse_csv("containerNumber;status;location")

        assert result.items == []
        assert result.warnings == ["CSV contains only header row, no data"]

    def test_headerless_single_line(self, stage):
        result = stage.parse_csv("MSCU1234566;ON_RAIL;1857;Новосибирск")

        item = result.items[0]
        assert item.container_number == "MSCU1234566"
        assert item.distance_to_destination == 1857
        assert item.extraction_confidence == 0.6

    def test_empty(self, stage):
        assert stage.parse_csv("").errors == ["Empty CSV data"]


class TestArrays:

    def test_scenario_d(self, extract):
        rows = [
            {"containerNumber": "MSCU1234566", "status": "ON_RAIL", "eta": "04.12.2025"},
            {"containerNumber": "MSKU1111112", "status": "IN_PORT", "eta": "32.13.2025"},
            {"containerNumber": "CSQU3054383", "status": "ON_SHIP", "eta": "2025-12-10"},
        ]
        result = extract(rows)

        assert len(result.items) == 3
        assert result.warnings == ["Row 1: unparsable date in 'eta': '32.13.2025'"]
        assert result.items[0].eta == date(2025, 12, 4)
        assert result.items[1].eta is None
        assert result.items[1].status_code == "IN_PORT"
        assert result.items[2].eta == date(2025, 12, 10)

    def test_unsupported_row(self, extract):
        result = extract([{"containerNumber": "MSCU1234566", "status": "ON_RAIL"}, 42])

        assert len(result.items) == 1
        assert result.warnings == ["Failed to parse row 1: unsupported int"]

    def test_string_rows_parsed_as_text(self, extract):
        result = extract(["Контейнер MSCU1234566 на станции Гончарово", "без данных"])

        assert [i.container_number for i in result.items] == ["MSCU1234566"]
        assert result.errors == ["Row 1: No container number or useful data found in text"]

    def test_nested_rows(self, extract):
        result = extract({"rows": [
            {"ктк": "MSCU1234566", "статус": "в пути"},
            {"ктк": "MSKU1111112", "статус": "на жд"},
        ]})

        assert [i.status_code for i in result.items] == ["IN_TRANSIT", "ON_RAIL"]

    @pytest.mark.parametrize("content", [
        {"data": ["MSKU1111110;ON_RAIL;Новосибирск"]},
        '{"data": ["MSKU1111110;ON_RAIL;Новосибирск"]}',
    ])
    def test_nested_string_rows(self, detector, extract, content):
        assert detector.detect(RawInput(content=content)).type == FormatType.CSV_TEXT

        result = extract(content)

        assert [i.container_number for i in result.items] == ["MSKU1111110"]
        assert result.errors == []
        assert "CSV contains only header row, no data" not in result.warnings

    def test_infinite_distance_keeps_sibling_rows(self, extract):
        content = (
            '[{"containerNumber": "MSCU1234566", "status": "ON_RAIL"}, '
            '{"containerNumber": "MSCU1234560", "status": "ON_RAIL", "distance": 1e400}]'
        )
        result = extract(content)

        assert [i.container_number for i in result.items] == ["MSCU1234566", "MSCU1234560"]
        assert result.items[1].distance_to_destination is None
        assert result.warnings == ["Row 1: non-finite distance discarded: inf"]

    def test_deeply_nested_json(self, stage, extract):
        content = "[" * 100000 + "]" * 100000

        assert stage.parse_array(content).errors[0].startswith("Failed to parse JSON array")
        assert extract(content).items == []

    def test_json_string_row(self, extract):
        result = extract('{"containerNumber": "MSCU1234566", "status": "ON_RAIL"}')

        assert len(result.items) == 1
        assert result.items[0].status_code == "ON_RAIL"


class TestText:

    def test_one_item_per_container(self, extract):
        result = extract("Контейнеры MSCU1234566 и MSKU1111112 в порту Владивосток")

        assert [i.container_number for i in result.items] == ["MSCU1234566", "MSKU1111112"]
        assert result.errors == []

    def test_partial_without_container(self, extract):
        result = extract("Контейнер на станции Гончарово")

        assert len(result.items) == 1
        assert result.items[0].container_number is None
        assert result.warnings == ["Container number not found, extracted partial data"]

    def test_nothing_useful(self, extract):
        result = extract("Добрый день, спасибо")

        assert result.items == []
        assert result.errors == ["No container number or useful data found in text"]

    def test_envelope_carrier(self, extract):
        result = extract({"body": "Контейнер MSCU1234566 в порту Владивосток", "carrierName": "FESCO"})

        assert len(result.items) == 1
        assert result.items[0].carrier_name == "FESCO"
        assert result.items[0].status_code == "IN_PORT"

    def test_envelope_keeps_carrier_from_text(self, extract):
        result = extract({
            "body": "Контейнер MSCU1234566 линии Maersk в порту Владивосток",
            "carrierName": "FESCO",
        })
        assert result.items[0].carrier_name == "Maersk"


def test_unknown_format_falls_back_to_text(stage):
    from src.ingestion.s1_format_detection import DetectedFormat

    raw = RawInput(content="Контейнер MSCU1234566 в пути")
    result = stage.process(raw, DetectedFormat(type=FormatType.UNKNOWN, confidence=0.0))
    assert [i.container_number for i in result.items] == ["MSCU1234566"]
