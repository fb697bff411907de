"""
Контракты DTO проекта Container Status Ingestion.

Все контракты используют Pydantic v2 для валидации.

Контракты:
- Транспорт -> Ingestion: RawInput (raw_input_dto.py)
- Ingestion -> Хранилище/Уведомления: NormalizedStatusEvent (status_event_dto.py)
"""

# Транспорт -> Ingestion
from .raw_input_dto import RawInput, InputMetadata, InputHint

# Ingestion -> внешние сервисы
from .status_event_dto import (
    NormalizedStatusEvent,
    StatusCode,
    LocationType,
    SourceType,
)

__all__ = [
    # Вход
    "RawInput",
    "InputMetadata",
    "InputHint",
    # Выход
    "NormalizedStatusEvent",
    "StatusCode",
    "LocationType",
    "SourceType",
]
