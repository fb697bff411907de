"""
Stage 5: Validation

ЦКП: Нормализованное событие статуса + итоговая уверенность.

Input: ParsedItem (+ метаданные источника)
Output: ValidationResult (VALID / PARTIAL / REJECTED)

Правила валидации:
1. Номер контейнера обязателен и проверяется по ISO 6346 (Stage 3)
2. Локация ищется в справочнике (Stage 4), иначе нормализуется с предупреждением
3. Статус маппится на словарь, неизвестный токен = UNKNOWN с низкой уверенностью
4. Консистентность: тип локации vs статус, расстояние, ETA в прошлом
   (только предупреждения, никогда не ошибки)
5. Полнота = доля заполненных из 6 ключевых полей
6. Итоговая уверенность = уверенность номера + бонусы, иначе смесь под-оценок

Запись без номера контейнера может вернуться как PARTIAL, если в ней
остался полезный сигнал.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional

from loguru import logger

from config import settings
from contracts.raw_input_dto import InputMetadata
from contracts.status_event_dto import LocationType, NormalizedStatusEvent, SourceType, StatusCode

from ..reference import ReferenceData, ReferenceLoader
from ..s2_extraction.date_parser import DateParser
from ..s2_extraction.parsed_item import ParsedItem
from ..s3_container_validation.validator import ContainerValidationResult, ContainerValidator
from ..s4_location.resolver import LocationResolver


MAX_STRING_LENGTH = 500

_SPACES_RE = re.compile(r"\s+")


class ValidationOutcome(str, Enum):
    VALID = "VALID"
    PARTIAL = "PARTIAL"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class ValidationPolicy:
    """Веса и пороги итоговой уверенности (по умолчанию из config.settings)."""
    status_known: float = settings.STATUS_CONFIDENCE_KNOWN
    status_unrecognized: float = settings.STATUS_CONFIDENCE_UNRECOGNIZED
    status_missing: float = settings.STATUS_CONFIDENCE_MISSING

    location_unknown_name: float = settings.LOCATION_CONFIDENCE_UNKNOWN_NAME
    location_inferred_type_bonus: float = settings.LOCATION_BONUS_INFERRED_TYPE

    known_status_bonus: float = settings.RECORD_BONUS_KNOWN_STATUS
    known_location_bonus: float = settings.RECORD_BONUS_KNOWN_LOCATION
    completeness_bonus: float = settings.RECORD_BONUS_COMPLETENESS
    consistency_bonus: float = settings.RECORD_BONUS_CONSISTENCY
    completeness_threshold: float = settings.RECORD_COMPLETENESS_THRESHOLD

    weight_status: float = settings.RECORD_WEIGHT_STATUS
    weight_location: float = settings.RECORD_WEIGHT_LOCATION
    weight_completeness: float = settings.RECORD_WEIGHT_COMPLETENESS

    errors_penalty: float = settings.RECORD_PENALTY_ERRORS
    many_warnings_penalty: float = settings.RECORD_PENALTY_MANY_WARNINGS
    many_warnings: int = settings.RECORD_MANY_WARNINGS

    location_type_penalty: float = settings.CONSISTENCY_PENALTY_LOCATION_TYPE
    soft_penalty: float = settings.CONSISTENCY_PENALTY_SOFT

    distance_max_km: int = settings.DISTANCE_MAX_KM
    distance_suspicious_km: int = settings.DISTANCE_SUSPICIOUS_KM

    valid_threshold: float = settings.RECORD_VALID_THRESHOLD
    partial_threshold: float = settings.RECORD_PARTIAL_THRESHOLD


@dataclass
class ValidationDetails:
    """Под-оценки, из которых собрана итоговая уверенность."""
    container_validation: Optional[ContainerValidationResult] = None
    location_confidence: float = 0.0
    status_confidence: float = 0.0
    data_completeness: float = 0.0
    consistency_score: float = 1.0

    def to_dict(self) -> dict:
        return {
            "container_validation": (
                self.container_validation.to_dict() if self.container_validation else None
            ),
            "location_confidence": self.location_confidence,
            "status_confidence": self.status_confidence,
            "data_completeness": round(self.data_completeness, 4),
            "consistency_score": round(self.consistency_score, 4),
        }


@dataclass
class ValidationResult:
    """
    Результат Stage 5: Validation.

    ЦКП: Событие (normalized) или частичные данные (partial_data) + уверенность.
    """
    outcome: ValidationOutcome
    confidence: float
    normalized: Optional[NormalizedStatusEvent] = None
    partial_data: Optional[NormalizedStatusEvent] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: ValidationDetails = field(default_factory=ValidationDetails)

    @property
    def is_valid(self) -> bool:
        return self.outcome == ValidationOutcome.VALID

    @property
    def event(self) -> Optional[NormalizedStatusEvent]:
        """Событие независимо от исхода (для VALID и PARTIAL)."""
        return self.normalized or self.partial_data

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "normalized": self.normalized.model_dump(mode="json") if self.normalized else None,
            "partial_data": self.partial_data.model_dump(mode="json") if self.partial_data else None,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "details": self.details.to_dict(),
        }


class RecordValidator:
    """
    Stage 5: Validation.

    ЦКП: Сведение результатов Stage 3 и Stage 4 с остальными полями.

    Ничего не бросает: все проблемы записи попадают в errors/warnings.
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        container_validator: Optional[ContainerValidator] = None,
        location_resolver: Optional[LocationResolver] = None,
        policy: Optional[ValidationPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            reference: Справочники (по умолчанию из REFERENCE_DIR)
            container_validator: Валидатор номеров (Stage 3)
            location_resolver: Резолвер локаций (Stage 4)
            policy: Веса и пороги уверенности
            clock: Текущее время (для проверки "ETA в прошлом")
        """
        self.reference = reference or ReferenceLoader.load()
        self.container_validator = container_validator or ContainerValidator(self.reference)
        self.location_resolver = location_resolver or LocationResolver(self.reference)
        self.policy = policy or ValidationPolicy()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.date_parser = DateParser()

    def process(
        self,
        item: ParsedItem,
        metadata: Optional[InputMetadata] = None,
        source_type: SourceType = SourceType.MANUAL,
    ) -> ValidationResult:
        return self.validate(item, metadata, source_type)

    def validate(
        self,
        item: ParsedItem,
        metadata: Optional[InputMetadata] = None,
        source_type: SourceType = SourceType.MANUAL,
    ) -> ValidationResult:
        """
        Валидирует и нормализует один ParsedItem.

        Args:
            item: Кандидат из Stage 2
            metadata: Метаданные источника (время получения для event_time)
            source_type: Канал источника для нормализованного события

        Returns:
            ValidationResult: VALID, PARTIAL или REJECTED
        """
        policy = self.policy
        errors: List[str] = []
        warnings: List[str] = []
        consistency = 1.0

        # 1. Номер контейнера
        container_number = item.container_number
        container_validation = None
        if container_number:
            container_validation = self.container_validator.validate(container_number)
            if not container_validation.is_valid:
                errors.append(container_validation.error or "Invalid container number")
            else:
                container_number = container_validation.container_number
                warnings.extend(container_validation.corrections)
                if not container_validation.details.check_digit_valid:
                    warnings.append("Контрольная цифра не соответствует ISO 6346")
        else:
            errors.append("Номер контейнера обязателен")

        # 2. Локация
        location = None
        location_type = None
        location_confidence = 0.0
        if item.location:
            match = self.location_resolver.find(item.location)
            if match.found and match.registered:
                location = match.location.name
                location_type = match.location.type
                location_confidence = match.confidence
            else:
                warnings.append(f'Локация "{item.location}" не найдена в справочнике')
                if match.found:
                    location = match.location.name
                    location_type = match.location.type
                    location_confidence = match.confidence
                else:
                    location = self.location_resolver.normalize_name(item.location)
                    location_type = self.location_resolver.infer_location_type(item.location)
                    location_confidence = policy.location_unknown_name
                    if location_type is not None:
                        location_confidence += policy.location_inferred_type_bonus
        if location_type is None:
            location_type = _location_type(item.location_type)

        # 3. Статус
        status_code = self._map_status(item.status_code)
        if status_code != StatusCode.UNKNOWN:
            status_confidence = policy.status_known
        elif item.status_code and item.status_code.strip().upper() != StatusCode.UNKNOWN.value:
            warnings.append(f"Неизвестный статус: {item.status_code}")
            status_confidence = policy.status_unrecognized
        else:
            status_confidence = policy.status_missing

        # 4. Консистентность
        if status_code != StatusCode.UNKNOWN and location_type is not None:
            allowed = self.reference.statuses.allowed_location_types(status_code)
            if allowed and location_type not in allowed:
                warnings.append(
                    f"Тип локации {location_type.value} не соответствует статусу {status_code.value}"
                )
                consistency *= policy.location_type_penalty

        distance = item.distance_to_destination
        if distance is not None:
            if distance < 0:
                warnings.append(f"Расстояние не может быть отрицательным: {distance} км")
                distance = None
            elif distance > policy.distance_max_km:
                warnings.append(f"Нереальное расстояние: {distance} км")
                distance = None
            elif distance > policy.distance_suspicious_km:
                warnings.append(f"Необычно большое расстояние: {distance} км")
                consistency *= policy.soft_penalty

            if distance is not None and status_code == StatusCode.DELIVERED and distance > 0:
                warnings.append('Статус "доставлен", но расстояние > 0')
                consistency *= policy.soft_penalty

        # 5. Даты
        eta = self._to_date(item.eta)
        if item.eta and eta is None:
            warnings.append(f"Некорректная дата ETA: {item.eta}")

        if eta is not None and status_code != StatusCode.DELIVERED:
            if eta < self.clock().date():
                warnings.append("ETA в прошлом")
                consistency *= policy.soft_penalty

        eta_unload = self._to_date(item.eta_unload)
        if item.eta_unload and eta_unload is None:
            warnings.append(f"Некорректная дата разгрузки: {item.eta_unload}")

        event_time = self.date_parser.parse(item.event_time) if item.event_time else None
        if event_time is None:
            if metadata is not None and metadata.received_at is not None:
                event_time = metadata.received_at
            else:
                event_time = self.clock()

        # 6. Полнота
        filled = sum([
            bool(item.container_number),
            status_code != StatusCode.UNKNOWN,
            bool(location),
            eta is not None,
            distance is not None,
            bool(item.origin or item.destination),
        ])
        completeness = filled / 6

        # 7. Итоговая уверенность
        if container_validation is not None and container_validation.is_valid:
            confidence = container_validation.confidence
            if status_confidence > 0.9:
                confidence += policy.known_status_bonus
            if location_confidence > 0.9:
                confidence += policy.known_location_bonus
            if completeness > policy.completeness_threshold:
                confidence += policy.completeness_bonus
            if consistency >= 1:
                confidence += policy.consistency_bonus
            confidence = min(confidence, 1.0)
        else:
            confidence = (
                status_confidence * policy.weight_status
                + location_confidence * policy.weight_location
                + completeness * policy.weight_completeness
            )

        if errors:
            confidence *= policy.errors_penalty
        if len(warnings) > policy.many_warnings:
            confidence *= policy.many_warnings_penalty

        confidence = round(max(0.0, min(confidence, 1.0)), 2)

        # 8. Результат
        event = NormalizedStatusEvent(
            container_number=container_number,
            status_code=status_code,
            status_text=sanitize_string(item.status_text) or self.reference.statuses.label(status_code),
            location=location,
            location_type=location_type,
            distance_to_destination_km=distance,
            eta=eta,
            eta_unload=eta_unload,
            event_time=event_time,
            source_type=source_type,
            source_raw=item.raw_source or None,
            origin=sanitize_string(item.origin),
            destination=sanitize_string(item.destination),
            carrier_name=sanitize_string(item.carrier_name),
            source_info=sanitize_string(item.source_info),
            operator_comment=sanitize_string(item.operator_comment),
            confidence=confidence,
        )

        details = ValidationDetails(
            container_validation=container_validation,
            location_confidence=location_confidence,
            status_confidence=status_confidence,
            data_completeness=completeness,
            consistency_score=consistency,
        )

        has_signal = bool(container_number) or status_code != StatusCode.UNKNOWN or bool(location)

        if not errors and container_number and confidence >= policy.valid_threshold:
            outcome = ValidationOutcome.VALID
        elif has_signal and confidence > policy.partial_threshold:
            outcome = ValidationOutcome.PARTIAL
        else:
            outcome = ValidationOutcome.REJECTED

        logger.debug(
            f"[Stage 5: Validation] {container_number or '-'}: {outcome.value}, "
            f"status={status_code.value}, location={location}, confidence={confidence}, "
            f"errors={len(errors)}, warnings={len(warnings)}"
        )

        return ValidationResult(
            outcome=outcome,
            confidence=confidence,
            normalized=event if outcome == ValidationOutcome.VALID else None,
            partial_data=event if outcome == ValidationOutcome.PARTIAL else None,
            errors=errors,
            warnings=warnings,
            details=details,
        )

    # -------------------------------------------------------------------------

    def _map_status(self, raw: Optional[str]) -> StatusCode:
        if not raw:
            return StatusCode.UNKNOWN
        if raw in StatusCode.__members__:
            return StatusCode(raw)
        return self.reference.statuses.normalize_token(raw) or StatusCode.UNKNOWN

    def _to_date(self, value: Any) -> Optional[date]:
        if value is None or value == "":
            return None
        if isinstance(value, date) and not isinstance(value, datetime):
            return value if self.date_parser.parse(value) else None
        parsed = self.date_parser.parse(value)
        return parsed.date() if parsed else None


def _location_type(value: Any) -> Optional[LocationType]:
    if value is None or isinstance(value, LocationType):
        return value
    try:
        return LocationType(str(value).upper())
    except ValueError:
        return None


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Обрезка, схлопывание пробелов, удаление <>, не длиннее 500 символов."""
    if value is None:
        return None
    cleaned = _SPACES_RE.sub(" ", str(value).replace("<", "").replace(">", "")).strip()
    return cleaned[:MAX_STRING_LENGTH] or None
