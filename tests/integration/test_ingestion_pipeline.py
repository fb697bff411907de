"""
Интеграционные тесты IngestionPipeline: сырые данные -> события.
"""

import json
from unittest.mock import MagicMock

import pytest

from contracts.raw_input_dto import InputMetadata, RawInput
from contracts.status_event_dto import SourceType, StatusCode
from src.ingestion import IngestionPipeline
from src.ingestion.s1_format_detection import FormatType
from src.ingestion.s5_validation import RecordValidator


SCENARIO_A = (
    "Контейнер MSCU1234560 на станции Гончарово, 1857 км до Иня-Восточная. "
    "ETA 04.12.2025"
)
SCENARIO_B = "containerNumber;status;location\nMSKU1111110;ON_RAIL;Новосибирск"
CLEAN_ROW = {"containerNumber": "CSQU3054383", "status": "ON_SHIP"}


@pytest.fixture
def pipeline(reference, fixed_clock):
    return IngestionPipeline(
        reference,
        record_validator=RecordValidator(reference, clock=fixed_clock),
        max_workers=4,
    )


class TestScenarios:

    def test_scenario_a_text(self, pipeline):
        result = pipeline.process(RawInput(content=SCENARIO_A))

        assert result.success
        assert result.confidence == 1.0
        assert result.detected_format.type == FormatType.PLAIN_TEXT
        assert result.source_type == SourceType.MANUAL
        assert result.errors == []
        assert result.warnings == [
            "[MSCU1234560] Контрольная цифра 0 не совпадает с расчётной 6",
            "[MSCU1234560] Контрольная цифра не соответствует ISO 6346",
        ]

        event = result.events[0]
        assert event.container_number == "MSCU1234560"
        assert event.status_code == StatusCode.ON_RAIL
        assert event.location == "Гончарово"
        assert event.distance_to_destination_km == 1857
        assert event.eta.isoformat() == "2025-12-04"
        assert event.destination == "Иня-Восточная"

    def test_scenario_b_csv(self, pipeline):
        result = pipeline.process(RawInput(content=SCENARIO_B))

        assert result.success
        assert result.detected_format.type == FormatType.CSV_TEXT
        assert result.source_type == SourceType.EXCEL
        assert result.extraction.items[0].extraction_confidence >= 0.6
        assert result.events[0].location == "Новосибирск"
        assert result.events[0].container_number == "MSKU1111110"

    def test_scenario_c_repaired_number(self, pipeline):
        result = pipeline.process(RawInput(content="Контейнер MSC01234560 в пути"))

        assert result.success
        assert result.events[0].container_number == "MSCO1234560"
        assert result.events[0].status_code == StatusCode.IN_TRANSIT

    def test_scenario_d_array(self, pipeline):
        rows = [
            {"containerNumber": "MSCU1234566", "status": "ON_RAIL", "eta": "04.12.2025"},
            {"containerNumber": "MSKU1111112", "status": "IN_PORT", "eta": "32.13.2025"},
            {"containerNumber": "CSQU3054383", "status": "ON_SHIP", "eta": "2025-12-10"},
        ]
        result = pipeline.process(RawInput(content=rows))

        assert result.success
        assert len(result.events) == 3
        assert result.warnings == ["Row 1: unparsable date in 'eta': '32.13.2025'"]
        assert result.events[1].eta is None
        assert result.events[0].eta is not None
        assert result.events[2].eta is not None
        assert result.source_type == SourceType.EXCEL


class TestOutcomes:

    def test_partial_without_container(self, pipeline):
        result = pipeline.process(RawInput(content="Контейнер на станции Гончарово"))

        assert result.success
        assert result.confidence == 0.35
        assert result.events[0].container_number is None
        assert "Container number not found, extracted partial data" in result.warnings
        assert "Частичные данные: без номера (уверенность 35%)" in result.warnings

    def test_rejected_item(self, pipeline):
        result = pipeline.process(RawInput(content={"containerNumber": "ABC", "foo": 1}))

        assert not result.success
        assert result.events == []
        assert result.confidence == 0.0
        assert result.errors == [
            "Ошибка валидации [ABC]: Неверный формат номера контейнера (должен быть 4 буквы + 6-7 цифр)"
        ]

    def test_empty_input(self, pipeline):
        result = pipeline.process(RawInput(content=""))

        assert not result.success
        assert result.confidence == 0.0
        assert result.detected_format.type == FormatType.UNKNOWN
        assert "Low format detection confidence: 0.0" in result.warnings

    def test_infinite_distance_does_not_drop_siblings(self, pipeline):
        content = (
            '[{"containerNumber": "CSQU3054383", "status": "ON_SHIP"}, '
            '{"containerNumber": "MSCU1234566", "status": "ON_RAIL", "distance": 1e400}]'
        )
        result = pipeline.process(RawInput(content=content))

        assert result.success
        assert [e.container_number for e in result.events] == ["CSQU3054383", "MSCU1234566"]
        assert result.events[1].distance_to_destination_km is None
        assert "Row 1: non-finite distance discarded: inf" in result.warnings

    def test_deeply_nested_json_is_contained(self, pipeline):
        result = pipeline.process(RawInput(content="[" * 100000 + "]" * 100000))

        assert not result.success
        assert result.detected_format.type == FormatType.PLAIN_TEXT
        assert result.errors == ["No container number or useful data found in text"]

    def test_unexpected_failure_is_contained(self, reference):
        extraction_stage = MagicMock()
        extraction_stage.process.side_effect = RuntimeError("boom")
        pipeline = IngestionPipeline(reference, extraction_stage=extraction_stage)

        result = pipeline.process(RawInput(content=SCENARIO_A))

        assert not result.success
        assert result.confidence == 0.0
        assert result.errors == ["Processing failed: RuntimeError: boom"]
        assert result.log_entry.success is False
        assert result.log_entry.errors == ["Processing failed: RuntimeError: boom"]

    def test_result_is_json_serializable(self, pipeline):
        data = json.loads(json.dumps(pipeline.process(RawInput(content=SCENARIO_A)).to_dict()))

        assert data["success"] is True
        assert data["events"][0]["status_code"] == "ON_RAIL"
        assert data["detected_format"]["type"] == "PLAIN_TEXT"
        assert data["log_id"].startswith("log_")


class TestSourceType:

    @pytest.mark.parametrize("raw, expected", [
        (RawInput(content=SCENARIO_A, metadata=InputMetadata(source_email="ops@carrier.ru")), SourceType.EMAIL),
        (RawInput(content=SCENARIO_A, metadata=InputMetadata(source_url="https://track.example.com")), SourceType.API),
        (RawInput(content=CLEAN_ROW, hint="api"), SourceType.API),
        (RawInput(content=CLEAN_ROW), SourceType.EXCEL),
        (RawInput(content=SCENARIO_A), SourceType.MANUAL),
    ])
    def test_source_type(self, pipeline, raw, expected):
        result = pipeline.process(raw)

        assert result.source_type == expected
        assert result.events[0].source_type == expected

    def test_envelope_email(self, pipeline):
        raw = RawInput(
            content={"body": "Контейнер CSQU3054383 в порту Владивосток", "carrierName": "FESCO"},
            metadata=InputMetadata(source_email="ops@fesco.ru"),
        )
        result = pipeline.process(raw)

        assert result.source_type == SourceType.EMAIL
        assert result.events[0].carrier_name == "FESCO"
        assert result.events[0].location == "Владивосток"


class TestBatch:

    def test_order_and_summary(self, pipeline):
        inputs = [RawInput(content=CLEAN_ROW), RawInput(content=""), RawInput(content=SCENARIO_A)]
        batch = pipeline.process_batch(inputs)

        assert [r.success for r in batch.results] == [True, False, True]
        assert batch.results[0].events[0].container_number == "CSQU3054383"
        assert batch.results[2].events[0].container_number == "MSCU1234560"
        assert batch.summary == {"total": 3, "successful": 1, "partial_success": 1, "failed": 1}

    def test_empty_batch(self, pipeline):
        batch = pipeline.process_batch([])

        assert batch.results == []
        assert batch.summary["total"] == 0

    def test_batch_items_independent(self, pipeline):
        inputs = [RawInput(content=SCENARIO_A) for _ in range(10)]
        batch = pipeline.process_batch(inputs)

        confidences = {r.confidence for r in batch.results}
        assert confidences == {1.0}
        assert len({r.log_entry.id for r in batch.results}) == 10

    def test_to_dict(self, pipeline):
        data = pipeline.process_batch([RawInput(content=CLEAN_ROW)]).to_dict()

        assert data["summary"]["successful"] == 1
        assert data["results"][0]["events"][0]["container_number"] == "CSQU3054383"


class TestAudit:

    def test_every_attempt_logged(self, pipeline):
        pipeline.process(RawInput(content=SCENARIO_A))
        pipeline.process(RawInput(content=""))

        entries = pipeline.processing_log.recent()
        assert len(entries) == 2
        assert entries[0].success is False
        assert entries[1].success is True
        assert entries[1].detected_format["type"] == "PLAIN_TEXT"
        assert entries[1].parsed_items_count == 1
        assert entries[1].output_items_count == 1

    def test_stats(self, pipeline):
        pipeline.process_batch([RawInput(content=SCENARIO_A), RawInput(content=SCENARIO_B)])
        stats = pipeline.processing_log.stats()

        assert stats["total_processed"] == 2
        assert stats["success_count"] == 2
        assert stats["format_breakdown"] == {"PLAIN_TEXT": 1, "CSV_TEXT": 1}
