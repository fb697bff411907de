"""
Unit-тесты для Stage 1: Format Detection.

ЦКП: Правильный тип формата и уверенность ветки решения.
"""

import pytest

from contracts.raw_input_dto import RawInput
from src.ingestion.s1_format_detection import FormatDetectionStage, FormatType


@pytest.fixture
def stage(reference):
    return FormatDetectionStage(reference)


def detect(stage, content, hint=None):
    return stage.detect(RawInput(content=content, hint=hint))


class TestArrays:

    def test_table_rows(self, stage):
        result = detect(stage, [
            {"containerNumber": "MSCU1234566", "status": "ON_RAIL"},
            {"containerNumber": "MSKU1111112", "status": "IN_PORT"},
        ])
        assert result.type == FormatType.TABLE_ROWS
        assert result.confidence == 0.9
        assert result.details.estimated_row_count == 2
        assert result.details.has_container_number

    def test_json_array_without_table_keys(self, stage):
        result = detect(stage, [{"foo": 1}, {"bar": 2}])
        assert result.type == FormatType.JSON_ARRAY
        assert result.confidence == 0.8

    def test_string_array_is_csv(self, stage):
        result = detect(stage, ["MSCU1234566;ON_RAIL", "MSKU1111112;IN_PORT"])
        assert result.type == FormatType.CSV_TEXT

    @pytest.mark.parametrize("content, hint", [
        ([], None),
        ([1, 2, 3], None),
        (["просто текст"], None),
        ([{"a": 1}], "text"),
        (["Контейнер MSCU1234566 на станции Гончарово"], "text"),
    ])
    def test_array_never_plain_text(self, stage, content, hint):
        result = detect(stage, content, hint)
        assert result.type != FormatType.PLAIN_TEXT
        assert 0.0 <= result.confidence <= 1.0

    def test_empty_array_unknown(self, stage):
        result = detect(stage, [])
        assert result.type == FormatType.UNKNOWN
        assert result.confidence == 0.0


class TestStrings:

    def test_plain_text(self, stage):
        result = detect(stage, "Контейнер MSCU1234560 на станции Гончарово, ETA 04.12.2025")
        assert result.type == FormatType.PLAIN_TEXT
        assert result.confidence == 0.9
        assert result.details.language == "ru"
        assert result.details.has_container_number
        assert result.details.has_date_info
        assert result.details.has_location_info

    def test_csv_text(self, stage):
        content = "containerNumber;status;location\nMSKU1111110;ON_RAIL;Новосибирск\nMSCU1234566;IN_PORT;Владивосток"
        result = detect(stage, content)
        assert result.type == FormatType.CSV_TEXT
        assert result.confidence == 0.8
        assert result.details.estimated_row_count == 2

    def test_inconsistent_delimiters_are_text(self, stage):
        content = "a;b;c;d;e\nпросто строка\nещё одна"
        assert detect(stage, content).type == FormatType.PLAIN_TEXT

    def test_json_string_object(self, stage):
        result = detect(stage, '{"containerNumber": "MSCU1234566", "status": "ON_RAIL"}')
        assert result.type == FormatType.TABLE_ROW

    def test_json_string_array(self, stage):
        result = detect(stage, '[{"containerNumber": "MSCU1234566", "status": "ON_RAIL"}]')
        assert result.type == FormatType.TABLE_ROWS

    def test_broken_json_falls_back(self, stage):
        result = detect(stage, '{"containerNumber": "MSCU1234566"')
        assert result.type == FormatType.PLAIN_TEXT

    def test_deeply_nested_json_falls_back(self, stage):
        content = "[" * 100000 + "]" * 100000

        assert detect(stage, content).type == FormatType.PLAIN_TEXT
        assert detect(stage, content, hint="json").type == FormatType.JSON_OBJECT

    @pytest.mark.parametrize("content", ["", "   ", "\n\n"])
    def test_empty_string_unknown(self, stage, content):
        result = detect(stage, content)
        assert result.type == FormatType.UNKNOWN
        assert result.confidence == 0.0

    def test_english_language(self, stage):
        result = detect(stage, "Container MSCU1234566 arrived at port Shanghai")
        assert result.details.language == "en"
        assert result.details.has_status_info


class TestObjects:

    def test_table_row(self, stage):
        result = detect(stage, {"containerNumber": "MSCU1234566", "status": "ON_RAIL", "eta": "04.12.2025"})
        assert result.type == FormatType.TABLE_ROW
        assert result.confidence == 0.9

    def test_nested_rows(self, stage):
        result = detect(stage, {"rows": [{"ктк": "MSCU1234566", "статус": "в пути"}]})
        assert result.type == FormatType.TABLE_ROWS

    def test_body_is_mixed(self, stage):
        result = detect(stage, {"body": "Контейнер MSCU1234566 в порту", "carrierName": "FESCO"})
        assert result.type == FormatType.MIXED
        assert result.confidence == 0.8

    def test_generic_object(self, stage):
        result = detect(stage, {"foo": "bar"})
        assert result.type == FormatType.JSON_OBJECT
        assert result.confidence == 0.7


class TestHints:

    @pytest.mark.parametrize("content, hint, expected", [
        ("a,b", "csv", FormatType.CSV_TEXT),
        ("MSCU1234566;ON_RAIL;Омск", "text", FormatType.PLAIN_TEXT),
        ('{"a": 1}', "json", FormatType.JSON_OBJECT),
        ('[{"a": 1}]', "json", FormatType.JSON_ARRAY),
        ({"a": 1}, "table", FormatType.TABLE_ROW),
        ('[{"a": 1}]', "table", FormatType.TABLE_ROWS),
    ])
    def test_hint_short_circuits(self, stage, content, hint, expected):
        result = detect(stage, content, hint)
        assert result.type == expected
        assert result.confidence == 0.95

    def test_api_hint_detects_by_content(self, stage):
        result = detect(stage, {"containerNumber": "MSCU1234566", "status": "ON_RAIL"}, "api")
        assert result.type == FormatType.TABLE_ROW
        assert result.confidence == 0.9

    def test_hint_is_normalized(self, stage):
        result = detect(stage, "a,b", " CSV ")
        assert result.type == FormatType.CSV_TEXT

    def test_process_alias(self, stage):
        raw = RawInput(content="Контейнер MSCU1234566")
        assert stage.process(raw) == stage.detect(raw)
