"""
Stage 1: Format Detection

ЦКП: Определение формата сырых данных (текст, JSON, CSV, строка таблицы).

Input: RawInput
Output: DetectedFormat (тип, уверенность, признаки содержимого)

Порядок решения:
1. Массив -> TABLE_ROWS / JSON_ARRAY / CSV_TEXT по первому элементу
2. Подсказка hint -> формат с уверенностью 0.95
3. Строка -> JSON (если парсится) -> CSV (стабильный разделитель) -> PLAIN_TEXT
4. Объект -> TABLE_ROW / вложенный rows|data / MIXED (поле body) / JSON_OBJECT

Никогда не бросает исключений: неопределимый вход = UNKNOWN, confidence 0.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from config import settings
from contracts.raw_input_dto import RawInput

from ..reference import ReferenceData, ReferenceLoader, normalize_key


# Глубоко вложенный JSON падает в декодере с RecursionError
JSON_ERRORS = (ValueError, RecursionError)


class FormatType(str, Enum):
    PLAIN_TEXT = "PLAIN_TEXT"
    JSON_OBJECT = "JSON_OBJECT"
    JSON_ARRAY = "JSON_ARRAY"
    CSV_TEXT = "CSV_TEXT"
    TABLE_ROW = "TABLE_ROW"
    TABLE_ROWS = "TABLE_ROWS"
    MIXED = "MIXED"
    UNKNOWN = "UNKNOWN"


@dataclass
class FormatDetails:
    """Признаки содержимого, найденные при детекции."""
    has_container_number: bool = False
    has_status_info: bool = False
    has_date_info: bool = False
    has_location_info: bool = False
    language: str = "unknown"                  # ru / en / mixed / unknown
    estimated_row_count: int = 0

    def to_dict(self) -> dict:
        return {
            "has_container_number": self.has_container_number,
            "has_status_info": self.has_status_info,
            "has_date_info": self.has_date_info,
            "has_location_info": self.has_location_info,
            "language": self.language,
            "estimated_row_count": self.estimated_row_count,
        }


@dataclass
class DetectedFormat:
    """
    Результат Stage 1: Format Detection.

    ЦКП: Тип формата + уверенность.
    """
    type: FormatType
    confidence: float
    details: FormatDetails = field(default_factory=FormatDetails)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "details": self.details.to_dict(),
        }


class FormatDetectionStage:
    """
    Stage 1: Format Detection.

    Уверенность задаётся веткой решения, а не длиной содержимого.
    """

    CSV_DELIMITERS = (";", ",", "\t")

    CONTAINER_RE = re.compile(r"[A-Z]{4}\d{6,7}", re.IGNORECASE)
    DATE_RE = re.compile(r"\d{1,2}[./-]\d{1,2}[./-]\d{2,4}|\d{4}[./-]\d{1,2}[./-]\d{1,2}")
    CYRILLIC_RE = re.compile(r"[а-яё]", re.IGNORECASE)
    LATIN_RE = re.compile(r"[a-z]", re.IGNORECASE)

    STATUS_KEYWORDS = (
        "статус", "status", "состояние", "state",
        "прибыл", "отгружен", "доставлен", "arrived", "delivered", "shipped",
        "в пути", "в порту", "на складе", "on rail", "in port",
    )
    LOCATION_KEYWORDS = (
        "ст.", "ст ", "станци", "station",
        "порт", "port",
        "склад", "warehouse", "свх",
        "город", "city",
    )

    def __init__(self, reference: Optional[ReferenceData] = None):
        self.reference = reference or ReferenceLoader.load()

    def process(self, raw_input: RawInput) -> DetectedFormat:
        return self.detect(raw_input)

    def detect(self, raw_input: RawInput) -> DetectedFormat:
        content = raw_input.content
        hint = raw_input.hint

        # Массив классифицируется по форме, подсказка не нужна
        if isinstance(content, list):
            result = self._detect_array(content)
        elif hint and hint != "api":
            result = self._detect_with_hint(content, hint)
        else:
            result = self._detect_content(content)

        logger.debug(
            f"[Stage 1: Format] {result.type.value} "
            f"(confidence={result.confidence}, hint={hint}, "
            f"language={result.details.language})"
        )
        return result

    # -------------------------------------------------------------------------
    # Ветки решения
    # -------------------------------------------------------------------------

    def _detect_content(self, content: Any) -> DetectedFormat:
        if isinstance(content, list):
            return self._detect_array(content)
        if isinstance(content, str):
            return self._detect_string(content)
        if isinstance(content, dict):
            return self._detect_object(content)
        return self._unknown()

    def _detect_string(self, content: str) -> DetectedFormat:
        trimmed = content.strip()
        if not trimmed:
            return self._unknown()

        if trimmed.startswith(("{", "[")):
            try:
                parsed = json.loads(trimmed)
            except JSON_ERRORS:
                parsed = None
            if isinstance(parsed, (list, dict)):
                return self._detect_content(parsed)

        if self.looks_like_csv(trimmed):
            data_lines = max(len([l for l in trimmed.splitlines() if l.strip()]) - 1, 1)
            return self._create(FormatType.CSV_TEXT, settings.FORMAT_CONFIDENCE_CSV, trimmed, data_lines)

        return self._create(FormatType.PLAIN_TEXT, settings.FORMAT_CONFIDENCE_PLAIN_TEXT, trimmed)

    def _detect_array(self, content: List[Any]) -> DetectedFormat:
        if not content:
            return self._unknown()

        first = content[0]
        rows = len(content)

        if isinstance(first, dict):
            if self.has_table_fields(first):
                return self._create(
                    FormatType.TABLE_ROWS, settings.FORMAT_CONFIDENCE_TABLE_ROWS, _dump(content), rows
                )
            return self._create(
                FormatType.JSON_ARRAY, settings.FORMAT_CONFIDENCE_JSON_ARRAY, _dump(content), rows
            )

        if isinstance(first, str):
            return self._create(
                FormatType.CSV_TEXT, settings.FORMAT_CONFIDENCE_STRING_ARRAY,
                "\n".join(str(c) for c in content), rows,
            )

        return self._create(
            FormatType.JSON_ARRAY, settings.FORMAT_CONFIDENCE_MIXED_ARRAY, _dump(content), rows
        )

    def _detect_object(self, content: Dict[str, Any]) -> DetectedFormat:
        if self.has_table_fields(content):
            return self._create(FormatType.TABLE_ROW, settings.FORMAT_CONFIDENCE_TABLE_ROW, _dump(content))

        for key in self.reference.nested_collections:
            if isinstance(content.get(key), list):
                return self._detect_array(content[key])

        body = content.get("body")
        if isinstance(body, str):
            return self._create(FormatType.MIXED, settings.FORMAT_CONFIDENCE_MIXED, body)

        return self._create(FormatType.JSON_OBJECT, settings.FORMAT_CONFIDENCE_JSON_OBJECT, _dump(content))

    def _detect_with_hint(self, content: Any, hint: str) -> DetectedFormat:
        text = content if isinstance(content, str) else _dump(content)
        confidence = settings.FORMAT_CONFIDENCE_HINTED
        is_array = _is_json_array(content)

        if hint == "text":
            return self._create(FormatType.PLAIN_TEXT, confidence, text)
        if hint == "json":
            if is_array:
                return self._create(FormatType.JSON_ARRAY, confidence, text)
            return self._create(FormatType.JSON_OBJECT, confidence, text)
        if hint == "csv":
            return self._create(FormatType.CSV_TEXT, confidence, text)
        if hint == "table":
            if is_array:
                return self._create(FormatType.TABLE_ROWS, confidence, text)
            return self._create(FormatType.TABLE_ROW, confidence, text)

        return self._detect_content(content)

    # -------------------------------------------------------------------------
    # Признаки
    # -------------------------------------------------------------------------

    def looks_like_csv(self, content: str) -> bool:
        """
        CSV = разделитель встречается >= 2 раз в первой строке и
        его количество стабильно (±1) в следующих строках.
        """
        lines = [line for line in content.split("\n") if line.strip()]
        if len(lines) < 2:
            return False

        for delimiter in self.CSV_DELIMITERS:
            first_count = lines[0].count(delimiter)
            if first_count < 2:
                continue
            following = lines[1:1 + settings.CSV_CONSISTENCY_LINES]
            if all(abs(line.count(delimiter) - first_count) <= 1 for line in following):
                return True
        return False

    def has_table_fields(self, obj: Dict[str, Any]) -> bool:
        keys = {normalize_key(k) for k in obj}
        matches = keys & self.reference.table_keys
        return len(matches) >= settings.TABLE_KEYS_MIN_MATCHES

    def detect_language(self, content: str) -> str:
        cyrillic = len(self.CYRILLIC_RE.findall(content))
        latin = len(self.LATIN_RE.findall(content))

        if cyrillic > latin * 2:
            return "ru"
        if latin > cyrillic * 2:
            return "en"
        if cyrillic > 0 and latin > 0:
            return "mixed"
        return "unknown"

    def _create(
        self,
        format_type: FormatType,
        confidence: float,
        content: str,
        row_count: int = 1,
    ) -> DetectedFormat:
        lower = content.lower()
        details = FormatDetails(
            has_container_number=bool(self.CONTAINER_RE.search(content)),
            has_status_info=any(kw in lower for kw in self.STATUS_KEYWORDS),
            has_date_info=bool(self.DATE_RE.search(content)),
            has_location_info=any(kw in lower for kw in self.LOCATION_KEYWORDS),
            language=self.detect_language(content),
            estimated_row_count=row_count,
        )
        return DetectedFormat(type=format_type, confidence=confidence, details=details)

    @staticmethod
    def _unknown() -> DetectedFormat:
        return DetectedFormat(type=FormatType.UNKNOWN, confidence=0.0, details=FormatDetails())


def _dump(content: Any) -> str:
    return json.dumps(content, ensure_ascii=False, default=str)


def _is_json_array(content: Any) -> bool:
    if isinstance(content, list):
        return True
    if isinstance(content, str) and content.strip().startswith("["):
        try:
            return isinstance(json.loads(content), list)
        except JSON_ERRORS:
            return False
    return False
