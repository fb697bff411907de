"""
Reference Loader - загрузка справочников Ingestion из YAML.

ЦКП: Единый неизменяемый ReferenceData для всех стадий пайплайна.

Архитектурный принцип:
- Справочники = данные, а не код (owner codes, газеттир, статусы, алиасы полей)
- Загружаются один раз на директорию, дальше только чтение
- Стадии получают ReferenceData через конструктор (тесты подставляют свой)
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Tuple, Union

import yaml
from loguru import logger

from config.settings import REFERENCE_DIR
from contracts.status_event_dto import LocationType, StatusCode

from ..domain.exceptions import ReferenceDataError


COMPONENT = "ReferenceLoader"

OWNER_CODES_FILE = "owner_codes.yaml"
GAZETTEER_FILE = "gazetteer.yaml"
STATUSES_FILE = "statuses.yaml"
FIELD_ALIASES_FILE = "field_aliases.yaml"
CARRIERS_FILE = "carriers.yaml"

_KEY_STRIP_RE = re.compile(r"[_\s\-]")


def normalize_key(value: Any) -> str:
    """
    Нормализует имя колонки / токен статуса для поиска.

    "Container_Number" -> "containernumber", "В пути по ЖД" -> "впутипожд"
    """
    text = str(value).strip().strip('"').strip("'").lower()
    return _KEY_STRIP_RE.sub("", text)


# =============================================================================
# Модели справочников
# =============================================================================

@dataclass(frozen=True)
class KnownLocation:
    """Локация из газеттира."""
    name: str
    type: LocationType
    aliases: Tuple[str, ...] = ()
    region: Optional[str] = None
    country: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "aliases": list(self.aliases),
            "region": self.region,
            "country": self.country,
        }


@dataclass(frozen=True)
class StatusKeywordRule:
    """Строка упорядоченной таблицы статусов для свободного текста."""
    code: StatusCode
    text: str
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class MilestoneColumn:
    """Колонка-веха выгрузки 1С: заполненная дата => статус."""
    code: StatusCode
    columns: Tuple[str, ...]   # нормализованные имена


@dataclass(frozen=True)
class StatusVocabulary:
    """
    Словарь статусов: текстовые ключевые слова, токены колонок,
    человекочитаемые метки и допустимые типы локаций.
    """
    text_rules: Tuple[StatusKeywordRule, ...]
    tokens: Mapping[str, StatusCode]
    labels: Mapping[StatusCode, str]
    location_rules: Mapping[StatusCode, FrozenSet[LocationType]]
    unknown_text: str = "Статус не определён"
    _token_order: Tuple[str, ...] = field(default=(), repr=False)

    def __post_init__(self):
        # Поиск по вхождению: длинные (специфичные) токены первыми
        order = tuple(sorted(self.tokens, key=len, reverse=True))
        object.__setattr__(self, "_token_order", order)

    def match_text(self, text: str) -> Tuple[StatusCode, str]:
        """
        Определяет статус по свободному тексту.

        Первое совпавшее правило выигрывает, порядок задан в statuses.yaml.
        """
        lower = text.lower()
        for rule in self.text_rules:
            if any(keyword in lower for keyword in rule.keywords):
                return rule.code, rule.text
        return StatusCode.UNKNOWN, self.unknown_text

    def normalize_token(self, raw: Any) -> Optional[StatusCode]:
        """
        Маппит значение колонки статуса на код.

        Сначала точное совпадение, затем вхождение токена. None = токен
        не распознан (в отличие от явного UNKNOWN).
        """
        if raw is None:
            return None
        key = normalize_key(raw)
        if not key:
            return None
        if key in self.tokens:
            return self.tokens[key]
        for token in self._token_order:
            if token in key:
                return self.tokens[token]
        return None

    def label(self, code: StatusCode) -> str:
        return self.labels.get(code, code.value)

    def allowed_location_types(self, code: StatusCode) -> Optional[FrozenSet[LocationType]]:
        """None = статус без правила, пустое множество = без требований."""
        return self.location_rules.get(code)


@dataclass(frozen=True)
class ReferenceData:
    """
    Все справочники пайплайна.

    Неизменяемый: безопасно разделять между потоками без блокировок.
    """
    owner_codes: FrozenSet[str]
    locations: Tuple[KnownLocation, ...]
    context_keywords: Mapping[LocationType, Tuple[str, ...]]
    type_keywords: Mapping[LocationType, Tuple[str, ...]]
    statuses: StatusVocabulary
    field_aliases: Mapping[str, Tuple[str, ...]]
    table_keys: FrozenSet[str]
    milestones: Tuple[MilestoneColumn, ...]
    nested_collections: Tuple[str, ...]
    known_carriers: Tuple[str, ...]
    carrier_label_patterns: Tuple[str, ...]
    short_alias_length: int = 3
    source_dir: Optional[Path] = None

    def aliases_for(self, field_name: str) -> Tuple[str, ...]:
        return self.field_aliases.get(field_name, ())


# =============================================================================
# Загрузчик
# =============================================================================

class ReferenceLoader:
    """
    Загрузчик справочников.

    Кеширует ReferenceData по директории: повторный load() не читает YAML.
    """

    _cache: ClassVar[Dict[str, ReferenceData]] = {}

    @classmethod
    def load(cls, reference_dir: Optional[Union[str, Path]] = None) -> ReferenceData:
        """
        Загружает справочники из директории (по умолчанию REFERENCE_DIR).

        Raises:
            ReferenceDataError: файл отсутствует или содержит некорректные данные
        """
        directory = Path(reference_dir) if reference_dir is not None else REFERENCE_DIR
        cache_key = str(directory.resolve())

        if cache_key in cls._cache:
            return cls._cache[cache_key]

        owner_raw = cls._read_yaml(directory / OWNER_CODES_FILE)
        gazetteer_raw = cls._read_yaml(directory / GAZETTEER_FILE)
        statuses_raw = cls._read_yaml(directory / STATUSES_FILE)
        aliases_raw = cls._read_yaml(directory / FIELD_ALIASES_FILE)
        carriers_raw = cls._read_yaml(directory / CARRIERS_FILE)

        try:
            reference = ReferenceData(
                owner_codes=cls._parse_owner_codes(owner_raw),
                locations=cls._parse_locations(gazetteer_raw.get("locations", [])),
                context_keywords=cls._parse_type_map(gazetteer_raw.get("context_keywords", {})),
                type_keywords=cls._parse_type_map(gazetteer_raw.get("type_keywords", {})),
                statuses=cls._parse_statuses(statuses_raw),
                field_aliases=cls._parse_field_aliases(aliases_raw.get("fields", {})),
                table_keys=frozenset(normalize_key(k) for k in aliases_raw.get("table_keys", [])),
                milestones=cls._parse_milestones(aliases_raw.get("milestones", [])),
                nested_collections=tuple(aliases_raw.get("nested_collections", [])),
                known_carriers=tuple(carriers_raw.get("known_carriers", [])),
                carrier_label_patterns=tuple(carriers_raw.get("label_patterns", [])),
                short_alias_length=int(gazetteer_raw.get("short_alias_length", 3)),
                source_dir=directory,
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"[{COMPONENT}] Некорректный справочник в {directory}: {e}")
            raise ReferenceDataError(
                f"Invalid reference data in {directory}",
                component=COMPONENT,
                original_error=e,
            ) from e

        cls._cache[cache_key] = reference

        logger.debug(
            f"[{COMPONENT}] Загружены справочники из {directory}: "
            f"{len(reference.owner_codes)} owner codes, "
            f"{len(reference.locations)} locations, "
            f"{len(reference.statuses.tokens)} status tokens"
        )
        return reference

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()

    # -------------------------------------------------------------------------

    @staticmethod
    def _read_yaml(path: Path) -> dict:
        if not path.exists():
            logger.error(f"[{COMPONENT}] Справочник не найден: {path}")
            raise ReferenceDataError(f"Reference file not found: {path}", component=COMPONENT)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ReferenceDataError(
                f"Malformed YAML: {path}", component=COMPONENT, original_error=e
            ) from e

        if not isinstance(data, dict):
            raise ReferenceDataError(f"Expected mapping at top level: {path}", component=COMPONENT)
        return data

    @staticmethod
    def _parse_owner_codes(raw: dict) -> FrozenSet[str]:
        codes = set()
        for prefixes in raw.get("owner_codes", {}).values():
            codes.update(str(p).strip().upper() for p in prefixes)
        return frozenset(codes)

    @staticmethod
    def _parse_locations(raw: list) -> Tuple[KnownLocation, ...]:
        locations = []
        for entry in raw:
            locations.append(KnownLocation(
                name=entry["name"],
                type=LocationType(entry["type"]),
                aliases=tuple(str(a) for a in entry.get("aliases", [])),
                region=entry.get("region"),
                country=entry.get("country"),
            ))
        return tuple(locations)

    @staticmethod
    def _parse_type_map(raw: dict) -> Mapping[LocationType, Tuple[str, ...]]:
        return MappingProxyType({
            LocationType(type_name): tuple(keywords)
            for type_name, keywords in raw.items()
        })

    @staticmethod
    def _parse_statuses(raw: dict) -> StatusVocabulary:
        text_rules = tuple(
            StatusKeywordRule(
                code=StatusCode(rule["code"]),
                text=rule["text"],
                keywords=tuple(str(k).lower() for k in rule["keywords"]),
            )
            for rule in raw.get("text_keywords", [])
        )

        tokens: Dict[str, StatusCode] = {}
        # Имена кодов распознаются всегда: ON_RAIL, on-rail, onrail
        for code in StatusCode:
            tokens[normalize_key(code.value)] = code
        for token, code_name in raw.get("tokens", {}).items():
            tokens[normalize_key(token)] = StatusCode(code_name)

        labels = {StatusCode(code): text for code, text in raw.get("labels", {}).items()}

        location_rules = {
            StatusCode(code): frozenset(LocationType(t) for t in types or [])
            for code, types in raw.get("location_rules", {}).items()
        }

        return StatusVocabulary(
            text_rules=text_rules,
            tokens=MappingProxyType(tokens),
            labels=MappingProxyType(labels),
            location_rules=MappingProxyType(location_rules),
            unknown_text=raw.get("unknown_text", "Статус не определён"),
        )

    @staticmethod
    def _parse_field_aliases(raw: dict) -> Mapping[str, Tuple[str, ...]]:
        return MappingProxyType({
            field_name: tuple(normalize_key(alias) for alias in aliases)
            for field_name, aliases in raw.items()
        })

    @staticmethod
    def _parse_milestones(raw: list) -> Tuple[MilestoneColumn, ...]:
        return tuple(
            MilestoneColumn(
                code=StatusCode(entry["code"]),
                columns=tuple(normalize_key(c) for c in entry["columns"]),
            )
            for entry in raw
        )
