"""
Structured Extractor - маппинг строк таблиц / JSON объектов на ParsedItem.

ЦКП: Один ParsedItem на строку + предупреждения по испорченным полям.

Алгоритм:
1. Нормализация имён колонок (lower, без кавычек, пробелов, _ и -)
2. Поиск каждого канонического поля по таблице алиасов (field_aliases.yaml)
3. Номер контейнера: по колонке, иначе первое значение похожее на номер
4. Статус: по колонке, иначе по первой заполненной колонке-вехе 1С
5. Уверенность = база + бонусы за найденные поля
"""

import json
import math
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from config import settings
from contracts.status_event_dto import StatusCode

from ..domain.exceptions import ExtractionError
from ..reference import ReferenceData, normalize_key
from .container_finder import CONTAINER_SHAPE_RE
from .date_parser import DateParser
from .parsed_item import ParsedItem


DATE_FIELDS = ("eta", "eta_unload", "event_time")

_NUMBER_RE = re.compile(r"-?\d[\d\s]*")


class RowMapper:
    """
    Маппер строки таблицы.

    Reference данные (алиасы, вехи, словарь статусов) передаются снаружи.
    """

    def __init__(self, reference: ReferenceData, date_parser: Optional[DateParser] = None):
        self.reference = reference
        self.date_parser = date_parser or DateParser()

    def map_row(self, row: Dict[str, Any], row_label: str = "Row") -> Tuple[ParsedItem, List[str]]:
        """
        Маппит строку на ParsedItem.

        Returns:
            (item, warnings) - предупреждения по неразобранным полям строки

        Raises:
            ExtractionError: строка не является объектом
        """
        if not isinstance(row, dict):
            raise ExtractionError(
                f"expected an object, got {type(row).__name__}", component="RowMapper"
            )

        warnings: List[str] = []
        normalized = {normalize_key(k): v for k, v in row.items()}

        container = self._text(self._find(normalized, "container"))
        if container:
            container = re.sub(r"\s", "", container).upper()
        else:
            container = self._scan_for_container(normalized)

        status_raw = self._find(normalized, "status")
        status_code: Optional[str] = None
        known_status = False
        milestone_time = None

        if status_raw is not None:
            code = self.reference.statuses.normalize_token(status_raw)
            if code is not None:
                status_code = code.value
                known_status = code != StatusCode.UNKNOWN
            else:
                status_code = str(status_raw).strip()
        else:
            milestone = self._find_milestone(normalized)
            if milestone is not None:
                code, milestone_value = milestone
                status_code = code.value
                known_status = True
                milestone_time = self.date_parser.parse(milestone_value)

        dates = {}
        for field_name in DATE_FIELDS:
            raw = self._find(normalized, field_name)
            if raw is None:
                dates[field_name] = None
                continue
            parsed = self.date_parser.parse(raw)
            if parsed is None:
                warnings.append(f"{row_label}: unparsable date in '{field_name}': {raw!r}")
            dates[field_name] = parsed

        eta = dates["eta"].date() if dates["eta"] else None
        eta_unload = dates["eta_unload"].date() if dates["eta_unload"] else None
        event_time = dates["event_time"] or milestone_time

        location = self._text(self._find(normalized, "location"))
        raw_distance = self._find(normalized, "distance")
        distance = parse_number(raw_distance)
        if isinstance(raw_distance, float) and not math.isfinite(raw_distance):
            warnings.append(f"{row_label}: non-finite distance discarded: {raw_distance!r}")

        confidence = settings.ROW_BASE_CONFIDENCE
        if container:
            confidence += settings.ROW_BONUS_CONTAINER
        if known_status:
            confidence += settings.ROW_BONUS_STATUS
        if location:
            confidence += settings.ROW_BONUS_LOCATION
        if eta:
            confidence += settings.ROW_BONUS_ETA
        if distance is not None:
            confidence += settings.ROW_BONUS_DISTANCE

        item = ParsedItem(
            container_number=container,
            status_code=status_code,
            status_text=self._text(self._find(normalized, "status_text")),
            location=location,
            distance_to_destination=distance,
            eta=eta,
            eta_unload=eta_unload,
            event_time=event_time,
            origin=self._text(self._find(normalized, "origin")),
            destination=self._text(self._find(normalized, "destination")),
            carrier_name=self._text(self._find(normalized, "carrier")),
            carrier_type=self._text(self._find(normalized, "carrier_type")),
            source_info=self._text(self._find(normalized, "source_info")),
            operator_comment=self._text(self._find(normalized, "operator_comment")),
            raw_source=json.dumps(row, ensure_ascii=False, default=str),
            extraction_confidence=round(min(confidence, 1.0), 4),
        )

        logger.debug(
            f"[RowMapper] {row_label}: container={container}, status={status_code}, "
            f"location={location}, confidence={item.extraction_confidence}"
        )
        return item, warnings

    def map_headerless(self, values: Sequence[str]) -> ParsedItem:
        """
        Одиночная строка CSV без заголовка: поля угадываются по форме.

        Номер контейнера, имя кода статуса, целое число = расстояние,
        первое прочее значение = локация.
        """
        container = None
        status_code = None
        location = None
        distance = None

        for value in values:
            cleaned = value.strip().strip('"').strip()
            if not cleaned:
                continue
            upper = cleaned.upper()
            if container is None and CONTAINER_SHAPE_RE.match(upper):
                container = upper
            elif status_code is None and upper in StatusCode.__members__:
                status_code = upper
            elif distance is None and cleaned.isdigit():
                distance = int(cleaned)
            elif location is None and not cleaned.isdigit():
                location = cleaned

        confidence = (
            settings.HEADERLESS_CONFIDENCE_WITH_CONTAINER if container
            else settings.HEADERLESS_CONFIDENCE_WITHOUT_CONTAINER
        )
        return ParsedItem(
            container_number=container,
            status_code=status_code,
            status_text=status_code,
            location=location,
            distance_to_destination=distance,
            raw_source=";".join(values),
            extraction_confidence=confidence,
        )

    def find_field(self, row: Dict[str, Any], field_name: str) -> Any:
        """Поиск канонического поля в строке с ненормализованными ключами."""
        return self._find({normalize_key(k): v for k, v in row.items()}, field_name)

    # -------------------------------------------------------------------------

    def _find(self, normalized: Dict[str, Any], field_name: str) -> Any:
        for alias in self.reference.aliases_for(field_name):
            value = normalized.get(alias)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
        return None

    def _find_milestone(self, normalized: Dict[str, Any]) -> Optional[Tuple[StatusCode, Any]]:
        for milestone in self.reference.milestones:
            for column in milestone.columns:
                value = normalized.get(column)
                if value is None or (isinstance(value, str) and not value.strip()):
                    continue
                return milestone.code, value
        return None

    @staticmethod
    def _scan_for_container(normalized: Dict[str, Any]) -> Optional[str]:
        for value in normalized.values():
            if isinstance(value, str):
                cleaned = re.sub(r"[\"\s]", "", value).upper()
                if CONTAINER_SHAPE_RE.match(cleaned):
                    return cleaned
        return None

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip().strip('"').strip()
        return text or None


def parse_number(value: Any) -> Optional[int]:
    """
    Число из ячейки: 1857, "1 857 км", "1857.0" -> 1857.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return round(value)

    match = _NUMBER_RE.search(str(value))
    if not match:
        return None
    return int(re.sub(r"\s", "", match.group(0)))
