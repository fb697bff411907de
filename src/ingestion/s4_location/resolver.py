"""
Location Resolver - поиск локаций по справочнику (газеттиру).

ЦКП: Каноническое название + тип локации + уверенность.

Порядок поиска:
1. Вхождение имени/алиаса из индекса (длинные ключи первыми) -> 0.95
2. Контекст "ст. X" / "станция X" / "порт X":
   - X есть в индексе -> 0.95
   - X нет в индексе -> незарегистрированная локация типа по контексту, 0.7
3. Ничего не найдено -> found=False, 0.0
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple

from loguru import logger

from config import settings
from contracts.status_event_dto import LocationType

from ..reference import KnownLocation, ReferenceData, ReferenceLoader


NAME_CHARS = r"[А-Яа-яёЁA-Za-z\-]+"

_WORD_START_RE = re.compile(r"(?<![\w])(\w)")
_SPACES_RE = re.compile(r"\s+")


@dataclass
class LocationMatchResult:
    """
    Результат поиска локации.

    registered=False: локация угадана по контексту, в справочнике её нет.
    """
    found: bool
    location: Optional[KnownLocation] = None
    matched_text: str = ""
    confidence: float = 0.0
    registered: bool = False

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "location": self.location.to_dict() if self.location else None,
            "matched_text": self.matched_text,
            "confidence": self.confidence,
            "registered": self.registered,
        }


class LocationResolver:
    """
    Резолвер локаций.

    Индекс строится один раз в конструкторе из ReferenceData и дальше
    только читается.
    """

    def __init__(self, reference: Optional[ReferenceData] = None):
        self.reference = reference or ReferenceLoader.load()

        self._by_key: Dict[str, KnownLocation] = {}
        for location in self.reference.locations:
            self._by_key.setdefault(location.name.lower(), location)
            for alias in location.aliases:
                self._by_key.setdefault(alias.lower(), location)

        self._index: List[Tuple[Pattern, KnownLocation]] = [
            (self._key_pattern(key), self._by_key[key])
            for key in sorted(self._by_key, key=len, reverse=True)
        ]

        self._context_patterns: List[Tuple[Pattern, LocationType]] = [
            (
                re.compile(rf"(?<!\w)(?:{'|'.join(keywords)})\s+({NAME_CHARS})", re.IGNORECASE),
                location_type,
            )
            for location_type, keywords in self.reference.context_keywords.items()
            if keywords
        ]

        self._type_patterns: List[Tuple[Pattern, LocationType]] = [
            (re.compile(rf"(?<!\w)(?:{'|'.join(keywords)})", re.IGNORECASE), location_type)
            for location_type, keywords in self.reference.type_keywords.items()
            if keywords
        ]

        logger.debug(
            f"[LocationResolver] Индекс: {len(self._by_key)} ключей, "
            f"{len(self.reference.locations)} локаций"
        )

    def find(self, text: Optional[str]) -> LocationMatchResult:
        """Поиск локации в свободном тексте."""
        if not text or not text.strip():
            return LocationMatchResult(found=False)

        for pattern, location in self._index:
            match = pattern.search(text)
            if match:
                return LocationMatchResult(
                    found=True,
                    location=location,
                    matched_text=match.group(0),
                    confidence=settings.LOCATION_CONFIDENCE_KNOWN,
                    registered=True,
                )

        for pattern, location_type in self._context_patterns:
            match = pattern.search(text)
            if not match:
                continue

            name = match.group(1).strip("-")
            known = self.lookup(name)
            if known is not None:
                return LocationMatchResult(
                    found=True,
                    location=known,
                    matched_text=match.group(0),
                    confidence=settings.LOCATION_CONFIDENCE_KNOWN,
                    registered=True,
                )

            logger.debug(f"[LocationResolver] Незарегистрированная локация: {name} ({location_type.value})")
            return LocationMatchResult(
                found=True,
                location=KnownLocation(name=normalize_location_name(name), type=location_type),
                matched_text=match.group(0),
                confidence=settings.LOCATION_CONFIDENCE_UNREGISTERED,
                registered=False,
            )

        return LocationMatchResult(found=False)

    def lookup(self, name: Optional[str]) -> Optional[KnownLocation]:
        """Точный поиск по имени или алиасу (без учёта регистра)."""
        if not name:
            return None
        return self._by_key.get(_SPACES_RE.sub(" ", name.strip()).lower())

    def normalize_name(self, name: str) -> str:
        """Каноническое имя из справочника, иначе имя с заглавных букв."""
        known = self.lookup(name)
        if known is not None:
            return known.name
        return normalize_location_name(name)

    def infer_location_type(self, text: Optional[str]) -> Optional[LocationType]:
        """
        Тип локации по ключевым словам контекста, независимо от справочника.

        "ст. Кемерово" -> STATION, "СВХ Север" -> WAREHOUSE.
        """
        if not text:
            return None
        for pattern, location_type in self._type_patterns:
            if pattern.search(text):
                return location_type
        return None

    def _key_pattern(self, key: str) -> Pattern:
        escaped = re.escape(key)
        # Короткие алиасы (нск, спб, sha) только отдельным словом
        if len(key) <= self.reference.short_alias_length:
            return re.compile(rf"(?<!\w){escaped}(?!\w)", re.IGNORECASE)
        return re.compile(rf"(?<!\w){escaped}", re.IGNORECASE)


def normalize_location_name(name: str) -> str:
    """
    Приводит нераспознанное название к виду "Иня-Восточная".

    Регистр остальных букв сохраняется (СВХ остаётся СВХ).
    """
    cleaned = _SPACES_RE.sub(" ", name.strip())
    return _WORD_START_RE.sub(lambda m: m.group(1).upper(), cleaned)
