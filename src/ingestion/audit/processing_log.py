"""
Processing Log - аудит попыток обработки.

ЦКП: Откуда пришли данные, какой формат определён, сколько извлечено,
какие ошибки/предупреждения и сколько заняла обработка.

Лог ограничен по размеру (старые записи вытесняются), новые записи
первыми. Доступ из нескольких потоков сериализуется через Lock.
"""

import json
import threading
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from loguru import logger

from config import settings
from contracts.raw_input_dto import RawInput


@dataclass
class ProcessingLogEntry:
    """Одна попытка обработки RawInput."""
    id: str
    timestamp: datetime
    input_type: str
    input_size: int
    input_preview: str
    metadata: Optional[Dict[str, Any]] = None
    detected_format: Optional[Dict[str, Any]] = None
    parsed_items_count: Optional[int] = None
    output_items_count: Optional[int] = None
    success: bool = False
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration_ms: Optional[float] = None
    started_at: float = field(default_factory=time.perf_counter, repr=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "input_type": self.input_type,
            "input_size": self.input_size,
            "input_preview": self.input_preview,
            "metadata": self.metadata,
            "detected_format": self.detected_format,
            "parsed_items_count": self.parsed_items_count,
            "output_items_count": self.output_items_count,
            "success": self.success,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duration_ms": self.duration_ms,
        }


class ProcessingLog:
    """
    Ограниченный журнал обработки.

    Внешний наблюдатель пайплайна: на результат обработки не влияет.
    """

    def __init__(
        self,
        capacity: int = settings.AUDIT_LOG_CAPACITY,
        preview_length: int = settings.AUDIT_PREVIEW_LENGTH,
    ):
        self.capacity = capacity
        self.preview_length = preview_length
        self._entries: Deque[ProcessingLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def start_processing(self, raw_input: RawInput) -> ProcessingLogEntry:
        """Создаёт запись в начале обработки (success=False до finish)."""
        content = raw_input.content
        text = content if isinstance(content, str) else json.dumps(content, ensure_ascii=False, default=str)

        preview = text[:self.preview_length]
        if len(text) > self.preview_length:
            preview += "..."

        entry = ProcessingLogEntry(
            id=f"log_{uuid.uuid4().hex[:12]}",
            timestamp=datetime.now(timezone.utc),
            input_type=determine_input_type(content),
            input_size=len(text),
            input_preview=preview,
            metadata=(
                raw_input.metadata.model_dump(mode="json", exclude_none=True)
                if raw_input.metadata else None
            ),
        )

        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def finish(
        self,
        entry: ProcessingLogEntry,
        success: bool,
        detected_format: Optional[Dict[str, Any]] = None,
        parsed_items_count: Optional[int] = None,
        output_items_count: Optional[int] = None,
        errors: Optional[List[str]] = None,
        warnings: Optional[List[str]] = None,
    ) -> ProcessingLogEntry:
        """Фиксирует итог обработки и длительность."""
        with self._lock:
            entry.success = success
            entry.detected_format = detected_format
            entry.parsed_items_count = parsed_items_count
            entry.output_items_count = output_items_count
            entry.errors = list(errors or [])
            entry.warnings = list(warnings or [])
            entry.duration_ms = round((time.perf_counter() - entry.started_at) * 1000, 3)

        logger.debug(
            f"[ProcessingLog] {entry.id}: success={success}, "
            f"items={parsed_items_count}->{output_items_count}, {entry.duration_ms} ms"
        )
        return entry

    def recent(self, limit: int = 100) -> List[ProcessingLogEntry]:
        with self._lock:
            return list(self._entries)[:limit]

    def errors_only(self, limit: int = 50) -> List[ProcessingLogEntry]:
        with self._lock:
            failed = [e for e in self._entries if not e.success or e.errors]
        return failed[:limit]

    def stats(self) -> Dict[str, Any]:
        """
        Сводка по журналу.

        Returns:
            total_processed, success_count, error_count,
            average_duration_ms, format_breakdown
        """
        with self._lock:
            entries = list(self._entries)

        success_count = sum(1 for e in entries if e.success)
        durations = [e.duration_ms for e in entries if e.duration_ms is not None]
        formats = Counter(e.detected_format["type"] for e in entries if e.detected_format)

        return {
            "total_processed": len(entries),
            "success_count": success_count,
            "error_count": len(entries) - success_count,
            "average_duration_ms": sum(durations) / len(durations) if durations else 0.0,
            "format_breakdown": dict(formats),
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def export_json(self) -> str:
        with self._lock:
            data = [e.to_dict() for e in self._entries]
        return json.dumps(data, ensure_ascii=False, indent=2)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def determine_input_type(content: Any) -> str:
    if isinstance(content, str):
        stripped = content.strip()
        if stripped.startswith("{"):
            return "json_string"
        if stripped.startswith("["):
            return "json_array_string"
        return "plain_text"
    if isinstance(content, list):
        return "array"
    if isinstance(content, dict):
        return "object"
    return "unknown"
