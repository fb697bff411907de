"""
Date Parser - разбор дат из писем операторов и выгрузок.

ЦКП: datetime в допустимом диапазоне лет или None.

Форматы (порядок = приоритет):
- DD.MM.YYYY, DD/MM/YYYY, DD-MM-YYYY (+ необязательное время HH:MM[:SS])
- DD.MM.YY (YY <= 50 -> 20YY)
- YYYY-MM-DD, YYYY.MM.DD, YYYY/MM/DD (+ время)
- ISO 8601 с "T"
- DD Mon YYYY (месяц словом, RU/EN)
- DDMMYYYY, YYYYMMDD

Неоднозначные числовые даты читаются как день-месяц-год.
"""

import re
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from loguru import logger

from config import settings


MONTHS = {
    "января": 1, "январь": 1, "янв": 1, "jan": 1, "january": 1,
    "февраля": 2, "февраль": 2, "фев": 2, "feb": 2, "february": 2,
    "марта": 3, "март": 3, "мар": 3, "mar": 3, "march": 3,
    "апреля": 4, "апрель": 4, "апр": 4, "apr": 4, "april": 4,
    "мая": 5, "май": 5, "may": 5,
    "июня": 6, "июнь": 6, "июн": 6, "jun": 6, "june": 6,
    "июля": 7, "июль": 7, "июл": 7, "jul": 7, "july": 7,
    "августа": 8, "август": 8, "авг": 8, "aug": 8, "august": 8,
    "сентября": 9, "сентябрь": 9, "сен": 9, "сент": 9, "sep": 9, "sept": 9, "september": 9,
    "октября": 10, "октябрь": 10, "окт": 10, "oct": 10, "october": 10,
    "ноября": 11, "ноябрь": 11, "ноя": 11, "nov": 11, "november": 11,
    "декабря": 12, "декабрь": 12, "дек": 12, "dec": 12, "december": 12,
}

# Regex-фрагмент названий месяцев (длинные формы первыми)
MONTH_NAMES_RE = "|".join(sorted(MONTHS, key=len, reverse=True))

_TIME = r"(?:[\sT]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?"


class DateParser:
    """
    Парсер дат с проверкой диапазона лет.
    """

    # (regex, порядок компонентов)
    PATTERNS: List[Tuple[re.Pattern, str]] = [
        (re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})" + _TIME + r"$"), "DMY"),
        (re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{2})" + _TIME + r"$"), "DMY"),
        (re.compile(r"^(\d{4})[./-](\d{1,2})[./-](\d{1,2})" + _TIME + r"$"), "YMD"),
        (re.compile(r"^(\d{1,2})\s+([A-Za-zА-Яа-яёЁ]{3,})\.?,?\s+(\d{4})$"), "DMY"),
        (re.compile(r"^(\d{2})(\d{2})(\d{4})$"), "DMY"),
        (re.compile(r"^(\d{4})(\d{2})(\d{2})$"), "YMD"),
    ]

    ISO_T_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T")

    def __init__(self, year_min: int = settings.DATE_YEAR_MIN, year_max: int = settings.DATE_YEAR_MAX):
        self.year_min = year_min
        self.year_max = year_max

    def parse(self, value: Any) -> Optional[datetime]:
        """
        Разбирает значение в datetime.

        Принимает datetime, date или строку. Год вне диапазона = None.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            return value if self._year_ok(value.year) else None
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day) if self._year_ok(value.year) else None

        text = str(value).strip()
        if not text:
            return None

        if self.ISO_T_RE.match(text):
            parsed = self._from_iso(text)
            if parsed:
                return parsed

        for pattern, order in self.PATTERNS:
            match = pattern.match(text)
            if not match:
                continue
            parsed = self._from_match(match, order)
            if parsed:
                return parsed

        return self._from_iso(text)

    def parse_date(self, value: Any) -> Optional[date]:
        parsed = self.parse(value)
        return parsed.date() if parsed else None

    def from_parts(self, day: Any, month_name: str, year: Any) -> Optional[datetime]:
        """Дата из частей с месяцем словом: ("15", "декабря", "2025")."""
        month = month_number(month_name)
        if month is None:
            return None
        return self._build(int(day), month, self._expand_year(int(year)))

    # -------------------------------------------------------------------------

    def _from_match(self, match: re.Match, order: str) -> Optional[datetime]:
        groups = match.groups()
        first, second, third = groups[0], groups[1], groups[2]

        if not second.isdigit():
            return self.from_parts(first, second, third)

        if order == "YMD":
            year, month, day = int(first), int(second), int(third)
        else:
            day, month, year = int(first), int(second), int(third)

        hour = minute = sec = 0
        if len(groups) > 3 and groups[3] is not None:
            hour, minute = int(groups[3]), int(groups[4])
            sec = int(groups[5]) if groups[5] else 0

        return self._build(day, month, self._expand_year(year), hour, minute, sec)

    def _from_iso(self, text: str) -> Optional[datetime]:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if self._year_ok(parsed.year) else None

    def _build(
        self, day: int, month: int, year: int, hour: int = 0, minute: int = 0, sec: int = 0
    ) -> Optional[datetime]:
        if not self._year_ok(year):
            logger.trace(f"[DateParser] Год {year} вне диапазона [{self.year_min}-{self.year_max}]")
            return None
        try:
            return datetime(year, month, day, hour, minute, sec)
        except ValueError as e:
            logger.trace(f"[DateParser] Некорректная дата {day}.{month}.{year}: {e}")
            return None

    @staticmethod
    def _expand_year(year: int) -> int:
        if year < 100:
            return year + (2000 if year <= 50 else 1900)
        return year

    def _year_ok(self, year: int) -> bool:
        return self.year_min <= year <= self.year_max


def month_number(name: str) -> Optional[int]:
    return MONTHS.get(name.strip(". ").lower())
