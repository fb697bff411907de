"""
DTO контракт: Внешний транспорт -> Ingestion

Сырые данные о статусе контейнера в том виде, в каком они пришли:
текст письма оператора, JSON объект/массив, CSV, строка таблицы.

ВАЖНО: Транспорт (HTTP, очередь, импорт файла) вне зоны ответственности
пайплайна. Контракт фиксирует только форму данных.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


InputHint = Literal["text", "json", "csv", "table", "api"]


class InputMetadata(BaseModel):
    """
    Метаданные источника сырых данных.
    """

    source_email: str | None = Field(None, description="Email отправителя письма")
    source_subject: str | None = Field(None, description="Тема письма")
    source_carrier_id: str | None = Field(None, description="ID перевозчика в учётной системе")
    source_url: str | None = Field(None, description="URL источника (API, сайт)")
    received_at: datetime | None = Field(None, description="Время получения данных")

    model_config = ConfigDict(frozen=True, from_attributes=True)


class RawInput(BaseModel):
    """
    Сырые входные данные одного запроса (или одного элемента пакета).

    content может быть:
    - строкой (текст, JSON-строка, CSV)
    - объектом (строка таблицы, JSON объект, письмо с полем body)
    - массивом строк или объектов
    """

    content: str | dict[str, Any] | list[Any] = Field(..., description="Сырые данные")
    hint: InputHint | None = Field(None, description="Подсказка формата, если известен")
    metadata: InputMetadata | None = Field(None, description="Метаданные источника")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("hint", mode="before")
    @classmethod
    def normalize_hint(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v
