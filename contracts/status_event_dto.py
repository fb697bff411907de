"""
DTO контракт: Ingestion -> Внешние сервисы (хранилище, уведомления, аудит)

Нормализованное событие статуса контейнера.
Единственная сущность, пересекающая границу пайплайна.

ВАЛИДАЦИЯ: Pydantic гарантирует, что status_code всегда из словаря,
а confidence в диапазоне [0, 1].
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusCode(str, Enum):
    """Канонический словарь статусов контейнера."""

    LOADED = "LOADED"
    IN_PORT = "IN_PORT"
    ON_SHIP = "ON_SHIP"
    ON_ANCHORAGE = "ON_ANCHORAGE"
    ARRIVED_PORT = "ARRIVED_PORT"
    ON_WAREHOUSE = "ON_WAREHOUSE"
    CUSTOMS_CLEARED = "CUSTOMS_CLEARED"
    ON_RAIL = "ON_RAIL"
    RAIL_ARRIVED = "RAIL_ARRIVED"
    ON_AUTO = "ON_AUTO"
    DELIVERED = "DELIVERED"
    IN_TRANSIT = "IN_TRANSIT"
    UNKNOWN = "UNKNOWN"


class LocationType(str, Enum):
    """Тип локации из справочника или определённый по контексту."""

    STATION = "STATION"
    PORT = "PORT"
    CITY = "CITY"
    WAREHOUSE = "WAREHOUSE"
    CUSTOMS = "CUSTOMS"


class SourceType(str, Enum):
    """Канал, из которого пришло событие."""

    EMAIL = "EMAIL"
    EXCEL = "EXCEL"
    API = "API"
    MANUAL = "MANUAL"


class NormalizedStatusEvent(BaseModel):
    """
    Нормализованное событие статуса.

    Создаётся заново на каждый запрос, не изменяется после создания.
    """

    container_number: str | None = Field(None, description="Номер контейнера (ISO 6346)")
    status_code: StatusCode = Field(StatusCode.UNKNOWN, description="Канонический код статуса")
    status_text: str = Field(..., description="Человекочитаемый статус")
    location: str | None = Field(None, description="Каноническое название локации")
    location_type: LocationType | None = Field(None, description="Тип локации")
    distance_to_destination_km: int | None = Field(None, description="Расстояние до пункта назначения, км")
    eta: date | None = Field(None, description="Ориентировочная дата прибытия")
    eta_unload: date | None = Field(None, description="Ориентировочная дата разгрузки")
    event_time: datetime = Field(..., description="Время события")
    source_type: SourceType = Field(SourceType.MANUAL, description="Канал источника")
    source_raw: str | None = Field(None, description="Исходный фрагмент данных")
    origin: str | None = Field(None, description="Пункт отправления")
    destination: str | None = Field(None, description="Пункт назначения")
    carrier_name: str | None = Field(None, description="Перевозчик")
    source_info: str | None = Field(None, description="Источник данных (CRM, Excel, Email ...)")
    operator_comment: str | None = Field(None, description="Комментарий оператора")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Итоговая уверенность (0-1)")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("distance_to_destination_km")
    @classmethod
    def validate_distance(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("Distance must be non-negative")
        return v
