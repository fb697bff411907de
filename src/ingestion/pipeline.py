"""
Ingestion Pipeline - оркестратор нормализации статусов контейнеров.

Координирует этапы в строгом порядке:
1. Format Detection -> 2. Extraction -> 3+4. Container + Location (внутри 5) ->
5. Validation

Возвращает нормализованные события (NormalizedStatusEvent) с уверенностью,
ошибками и предупреждениями. Пакет обрабатывается параллельно, элементы
пакета не влияют друг на друга.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from config import settings
from contracts.raw_input_dto import RawInput
from contracts.status_event_dto import NormalizedStatusEvent, SourceType

from .audit import ProcessingLog, ProcessingLogEntry
from .reference import ReferenceData, ReferenceLoader
from .s1_format_detection import DetectedFormat, FormatDetectionStage, FormatType
from .s2_extraction import ExtractionResult, ExtractionStage
from .s5_validation import RecordValidator, ValidationOutcome, ValidationResult


TABLE_FORMATS = (FormatType.CSV_TEXT, FormatType.TABLE_ROW, FormatType.TABLE_ROWS)
TEXT_FORMATS = (FormatType.PLAIN_TEXT, FormatType.MIXED)


@dataclass
class PipelineResult:
    """
    Результат обработки одного RawInput.

    ЦКП: События + уверенность + ошибки/предупреждения.
    """
    success: bool
    confidence: float
    events: List[NormalizedStatusEvent] = field(default_factory=list)
    detected_format: Optional[DetectedFormat] = None
    source_type: SourceType = SourceType.MANUAL
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    # Промежуточные результаты этапов
    extraction: Optional[ExtractionResult] = None
    validations: List[ValidationResult] = field(default_factory=list)

    log_entry: Optional[ProcessingLogEntry] = None
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "confidence": self.confidence,
            "source_type": self.source_type.value,
            "events": [e.model_dump(mode="json") for e in self.events],
            "detected_format": self.detected_format.to_dict() if self.detected_format else None,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "validations": [v.to_dict() for v in self.validations],
            "log_id": self.log_entry.id if self.log_entry else None,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class BatchResult:
    """Результат пакетной обработки: i-й результат соответствует i-му входу."""
    results: List[PipelineResult] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.results),
            "successful": sum(1 for r in self.results if r.success and not r.warnings),
            "partial_success": sum(1 for r in self.results if r.success and r.warnings),
            "failed": sum(1 for r in self.results if not r.success),
        }

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary,
        }


class IngestionPipeline:
    """
    Пайплайн нормализации сырых данных о статусе контейнеров.

    Все этапы опциональны: по умолчанию создаются стандартные поверх
    общих справочников. Этапы не хранят состояния между вызовами,
    единственное изменяемое состояние - журнал аудита (с блокировкой).
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        format_stage: Optional[FormatDetectionStage] = None,
        extraction_stage: Optional[ExtractionStage] = None,
        record_validator: Optional[RecordValidator] = None,
        processing_log: Optional[ProcessingLog] = None,
        max_workers: int = settings.BATCH_MAX_WORKERS,
    ):
        self.reference = reference or ReferenceLoader.load()
        self.format_stage = format_stage or FormatDetectionStage(self.reference)
        self.extraction_stage = extraction_stage or ExtractionStage(self.reference)
        self.record_validator = record_validator or RecordValidator(self.reference)
        self.processing_log = processing_log if processing_log is not None else ProcessingLog()
        self.max_workers = max_workers

        logger.info("[IngestionPipeline] Инициализирован (5 этапов)")

    def process(self, raw_input: RawInput) -> PipelineResult:
        """
        Обрабатывает один RawInput.

        Не бросает исключений: непредвиденный сбой превращается в
        неуспешный результат с уверенностью 0.
        """
        start_time = time.perf_counter()
        entry = self.processing_log.start_processing(raw_input)

        try:
            result = self._run(raw_input)
        except Exception as e:
            logger.exception(f"[IngestionPipeline] Сбой обработки {entry.id}: {e}")
            result = PipelineResult(
                success=False,
                confidence=0.0,
                errors=[f"Processing failed: {type(e).__name__}: {e}"],
            )

        result.processing_time_ms = round((time.perf_counter() - start_time) * 1000, 3)
        result.log_entry = self.processing_log.finish(
            entry,
            success=result.success,
            detected_format=result.detected_format.to_dict() if result.detected_format else None,
            parsed_items_count=len(result.extraction.items) if result.extraction else None,
            output_items_count=len(result.events),
            errors=result.errors,
            warnings=result.warnings,
        )

        logger.info(
            f"[IngestionPipeline] {entry.id}: {len(result.events)} событий, "
            f"confidence={result.confidence:.2f}, errors={len(result.errors)}, "
            f"warnings={len(result.warnings)} ({result.processing_time_ms:.1f}ms)"
        )
        return result

    def process_batch(self, inputs: Iterable[RawInput]) -> BatchResult:
        """
        Обрабатывает пакет независимо по элементам.

        Порядок результатов совпадает с порядком входов.
        """
        inputs = list(inputs)
        if not inputs:
            return BatchResult()

        workers = max(1, min(self.max_workers, len(inputs)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self.process, inputs))

        batch = BatchResult(results=results)
        logger.info(f"[IngestionPipeline] Пакет: {batch.summary}")
        return batch

    # -------------------------------------------------------------------------

    def _run(self, raw_input: RawInput) -> PipelineResult:
        errors: List[str] = []
        warnings: List[str] = []

        # Stage 1: Format Detection
        detected = self.format_stage.detect(raw_input)
        if detected.confidence < settings.FORMAT_LOW_CONFIDENCE:
            warnings.append(f"Low format detection confidence: {detected.confidence}")

        # Stage 2: Extraction
        extraction = self.extraction_stage.process(raw_input, detected)
        errors.extend(extraction.errors)
        warnings.extend(extraction.warnings)

        # Stage 3-5: Validation
        source_type = derive_source_type(raw_input, detected)
        events: List[NormalizedStatusEvent] = []
        validations: List[ValidationResult] = []
        confidences: List[float] = []

        for item in extraction.items:
            validation = self.record_validator.validate(item, raw_input.metadata, source_type)
            validations.append(validation)

            if validation.outcome == ValidationOutcome.VALID:
                events.append(validation.normalized)
                confidences.append(validation.confidence)
                number = validation.normalized.container_number
                warnings.extend(f"[{number}] {w}" for w in validation.warnings)
            elif validation.outcome == ValidationOutcome.PARTIAL:
                events.append(validation.partial_data)
                confidences.append(validation.confidence)
                number = validation.partial_data.container_number or "без номера"
                warnings.append(
                    f"Частичные данные: {number} "
                    f"(уверенность {round(validation.confidence * 100)}%)"
                )
            else:
                number = item.container_number or "без номера"
                errors.append(f"Ошибка валидации [{number}]: {', '.join(validation.errors)}")

        if confidences:
            confidence = sum(confidences) / len(confidences)
        else:
            confidence = fallback_confidence(detected, extraction, events, errors)

        return PipelineResult(
            success=bool(events),
            confidence=round(max(0.0, min(confidence, 1.0)), 4),
            events=events,
            detected_format=detected,
            source_type=source_type,
            errors=errors,
            warnings=warnings,
            extraction=extraction,
            validations=validations,
        )


def derive_source_type(raw_input: RawInput, detected: DetectedFormat) -> SourceType:
    """
    Канал источника по подсказке, метаданным и формату.

    api / source_url -> API, таблицы -> EXCEL, текст от email -> EMAIL.
    """
    metadata = raw_input.metadata
    if raw_input.hint == "api" or (metadata is not None and metadata.source_url):
        return SourceType.API
    if detected.type in TABLE_FORMATS:
        return SourceType.EXCEL
    if detected.type in TEXT_FORMATS and metadata is not None and metadata.source_email:
        return SourceType.EMAIL
    return SourceType.MANUAL


def fallback_confidence(
    detected: DetectedFormat,
    extraction: ExtractionResult,
    events: List[NormalizedStatusEvent],
    errors: List[str],
) -> float:
    """
    Уверенность, когда ни одна запись не прошла валидацию.

    Уверенность формата, штрафы за ошибки разбора и потерю элементов,
    множитель за среднюю полноту выходных событий.
    """
    confidence = detected.confidence

    if extraction.errors:
        confidence *= 0.8

    parsed_count = len(extraction.items)
    if parsed_count > 0 and len(events) < parsed_count:
        confidence *= len(events) / parsed_count

    if errors:
        confidence *= max(0.5, 1 - len(errors) * 0.1)

    completeness = sum(_completeness(e) for e in events) / max(len(events), 1)
    confidence *= 0.5 + completeness * 0.5

    return max(0.0, min(confidence, 1.0))


def _completeness(event: NormalizedStatusEvent) -> float:
    fields: List[Any] = [
        event.container_number,
        event.status_code,
        event.location,
        event.eta,
        event.distance_to_destination_km,
    ]
    return sum(1 for value in fields if value) / len(fields)
