"""
ParsedItem - кандидат в событие статуса, извлечённый из одного фрагмента.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Union

from contracts.status_event_dto import LocationType


@dataclass(frozen=True)
class ParsedItem:
    """
    Извлечённые поля одного контейнера (или строки таблицы).

    status_code: значение StatusCode либо исходный нераспознанный токен
    из колонки статуса (валидатор выдаст по нему предупреждение).
    Даты извлекаются уже разобранными; строка допустима для элементов,
    собранных вне экстрактора, и перепроверяется валидатором.
    """
    container_number: Optional[str] = None
    status_code: Optional[str] = None
    status_text: Optional[str] = None
    location: Optional[str] = None
    location_type: Optional[LocationType] = None
    distance_to_destination: Optional[int] = None
    eta: Optional[Union[date, str]] = None
    eta_unload: Optional[Union[date, str]] = None
    event_time: Optional[Union[datetime, str]] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    carrier_name: Optional[str] = None
    carrier_type: Optional[str] = None
    source_info: Optional[str] = None
    operator_comment: Optional[str] = None
    raw_source: str = ""
    extraction_confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "container_number": self.container_number,
            "status_code": self.status_code,
            "status_text": self.status_text,
            "location": self.location,
            "location_type": self.location_type.value if self.location_type else None,
            "distance_to_destination": self.distance_to_destination,
            "eta": _iso(self.eta),
            "eta_unload": _iso(self.eta_unload),
            "event_time": _iso(self.event_time),
            "origin": self.origin,
            "destination": self.destination,
            "carrier_name": self.carrier_name,
            "carrier_type": self.carrier_type,
            "source_info": self.source_info,
            "operator_comment": self.operator_comment,
            "raw_source": self.raw_source,
            "extraction_confidence": self.extraction_confidence,
        }


@dataclass
class ExtractionResult:
    """
    Результат Stage 2: Extraction.

    ЦКП: Кандидаты + ошибки/предупреждения разбора (исключения не пробрасываются).
    """
    items: List[ParsedItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def extend(self, other: "ExtractionResult", prefix: str = "") -> None:
        self.items.extend(other.items)
        self.errors.extend(f"{prefix}{e}" for e in other.errors)
        self.warnings.extend(f"{prefix}{w}" for w in other.warnings)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
