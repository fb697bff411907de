"""
Text Extractor - извлечение полей из свободного текста (письма операторов).

ЦКП: ParsedItem для каждого номера контейнера в тексте.

Каждое поле ищется своим упорядоченным каскадом паттернов:
первый паттерн, давший допустимое значение, выигрывает.
Новые формулировки добавляются строкой в таблицу, без новых ветвлений.
"""

import re
from datetime import date, datetime
from typing import List, Optional, Tuple

from loguru import logger

from config import settings
from contracts.status_event_dto import LocationType, StatusCode

from ..reference import ReferenceData
from .date_parser import DateParser, MONTH_NAMES_RE
from .parsed_item import ParsedItem


WORD = r"[А-Яа-яёЁA-Za-z\-]+"
DATE = r"\d{1,2}[./-]\d{1,2}[./-]\d{2,4}"
DATE_YMD = r"\d{4}[./-]\d{1,2}[./-]\d{1,2}"
ARROW = r"[→\->–—]"
# Без пробелов допускаются только стрелки: "Hapag-Lloyd" не маршрут
ARROW_SEP = r"(?:\s*(?:→|->|–|—|>)\s*|\s+-\s+)"

# Граница слова слева: "port" не должен совпадать внутри "transport"
B = r"(?<!\w)"

IC = re.IGNORECASE


class TextExtractor:
    """
    Экстрактор полей из текста.
    """

    # (паттерн, тип локации по контексту)
    LOCATION_PATTERNS: List[Tuple[re.Pattern, Optional[LocationType]]] = [
        (re.compile(B + r"(?:местоположение|location)[:\s]+(?:порт\s+)?(" + WORD + r")(?:\.|,|$|\n)", IC | re.M), None),
        (re.compile(B + r"(?:порт|port)\s+(" + WORD + r")", IC), LocationType.PORT),
        (re.compile(B + r"(?:ст\.\s*|(?:станци[яи]|station)\s+)(" + WORD + r"(?:\s*-\s*[А-Яа-яёЁA-Za-z]+)?)", IC), LocationType.STATION),
        (re.compile(B + r"(?:в порту|in port)\s+(" + WORD + r")", IC), LocationType.PORT),
        (re.compile(B + r"(?:на станции|at station)\s+(" + WORD + r")", IC), LocationType.STATION),
        (re.compile(B + r"(?:прибыла?\s+в)\s+(" + WORD + r")", IC), None),
        (re.compile(B + r"(?:текущее местоположение|current location)[:\s]*(" + WORD + r")", IC), None),
        (re.compile(B + r"находится\s+(?:в|на)\s+(" + WORD + r")", IC), None),
    ]
    LOCATION_STOP_WORDS = {"назначения", "отправления", "destination", "origin"}

    DISTANCE_PATTERNS = [
        re.compile(r"(?<![\w.])(\d+(?:\s\d{3})?)\s*(?:км|km)\s*(?:до|to|от|from)(?!\w)", IC),
        re.compile(B + r"(?:расстояние|distance)[:\s]*(\d+(?:\s\d{3})?)\s*(?:км|km)?", IC),
        re.compile(r"(?<![\w.])(\d+(?:\s\d{3})?)\s*(?:км|km)\s+(?:до станции|до порта)", IC),
        re.compile(B + r"(?:осталось|remaining)[:\s]*(\d+(?:\s\d{3})?)", IC),
    ]

    ETA_PATTERNS = [
        re.compile(B + r"(?:eta|ета)[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"ориентир\w*\s*(?:дата\s*)?(?:прибыти[яе])?[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"(?:прибытие|прибудет|arrival)[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"(?:ожида[её]тся|expected|планируется)[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"(?:дата прибытия|arrival date|дата доставки)[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"(?:плановая дата|план\s*дата)[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"(?:eta|ориентир|прибытие)[:\s]*(" + DATE_YMD + r")", IC),
        re.compile(B + r"(?:ориентир|прибытие|eta)\s*[:\-]?\s*\(?(" + DATE + r")\)?", IC),
        re.compile(r"(" + DATE + r")\s*[-–—]?\s*(?:ориентир|прибытие|eta)(?!\w)", IC),
    ]
    ETA_MONTH_PATTERNS = [
        re.compile(B + r"(?:eta|ориентир\w*|прибытие)[:\s]*(\d{1,2})\s+(" + MONTH_NAMES_RE + r")\.?\s*(\d{4}|\d{2})(?!\d)", IC),
        re.compile(r"(?<!\d)(\d{1,2})\s+(" + MONTH_NAMES_RE + r")\.?\s*(\d{4}|\d{2})\s*[-–—]?\s*(?:ориентир|прибытие)", IC),
    ]

    UNLOAD_PATTERNS = [
        re.compile(B + r"(?:разгрузк[аи]|unload(?:ing)?|выгрузк[аи])[:\s]*(" + DATE + r")", IC),
        re.compile(B + r"ориентир\w*\s*разгрузк[аи][:\s]*(" + DATE + r")", IC),
        re.compile(r"(" + DATE + r")\s*[-–—]?\s*(?:разгрузк|выгрузк)", IC),
    ]

    ROUTE_PATTERNS = [
        re.compile(B + r"(?:маршрут|route)[:\s]*([A-Za-zА-Яа-яёЁ]+)\s*(?:\([A-Z]{2}\))?\s*" + ARROW + r"+\s*([A-Za-zА-Яа-яёЁ]+)\s*(?:\([A-Z]{2}\))?", IC),
        re.compile(r"([A-Z][a-z]{2,})\s*(?:\([A-Z]{2}\))?" + ARROW_SEP + r"([A-Z][a-z]{2,})\s*(?:\([A-Z]{2}\))?"),
        re.compile(B + r"из\s+(" + WORD + r")\s+(?:в|до|на)\s+(" + WORD + r")", IC),
        re.compile(B + r"from\s+([A-Za-z\-]+)\s+to\s+([A-Za-z\-]+)", IC),
    ]
    ROUTE_SKIP_WORDS = {"порт", "port", "станция", "station", "cn", "ru", "в", "на", "to", "from"}

    ORIGIN_PATTERNS = [
        re.compile(B + r"(?:из|from|откуда|отправление)[:\s]+(" + WORD + r")", IC),
        re.compile(B + r"пункт отправления[:\s]+(" + WORD + r")", IC),
    ]
    # (паттерн, номер группы с названием)
    DESTINATION_PATTERNS = [
        (re.compile(B + r"(?:до станции|до порта|в|to|куда|назначение)[:\s]+(" + WORD + r")", IC), 1),
        (re.compile(B + r"пункт назначения[:\s]+(" + WORD + r")", IC), 1),
        (re.compile(r"(\d+)\s*км\s+до\s+(?:станции|порта)?\s*(" + WORD + r")", IC), 2),
    ]
    # "в порт", "в пути" - не пункт назначения
    DESTINATION_STOP_WORDS = {"порт", "port", "порту", "пути"}

    EVENT_TIME_PATTERNS = [
        re.compile(B + r"(?:дата\s*(?:события|операции|обновления)|event\s*(?:time|date)|updated|обновлено|по\s*состоянию\s*на)[:\s]*(" + DATE + r"|" + DATE_YMD + r")", IC),
    ]
    ANY_DATE_RE = re.compile(r"(?<!\d)(" + DATE_YMD + r"|" + DATE + r")(?!\d)")

    SOURCE_PATTERNS = [
        re.compile(B + r"(?:источник\s*(?:данных)?|source)[:\s]*([^\n.]+)", IC),
        re.compile(B + r"получено\s*из[:\s]*([^\n.]+)", IC),
        re.compile(r"\(([^)]*(?:CRM|Excel|email|API|сайт|site|выгрузк)[^)]*)\)", IC),
    ]
    SOURCE_KEYWORDS = [
        (re.compile(r"\bcrm\b", IC), "CRM"),
        (re.compile(r"\bexcel\b", IC), "Excel"),
        (re.compile(r"\be-?mail\b|письм", IC), "Email"),
        (re.compile(r"\bapi\b", IC), "API"),
        (re.compile(r"сайт|\bsite\b", IC), "Сайт"),
    ]

    COMMENT_PATTERNS = [
        re.compile(B + r"(?:комментарий\s*оператора|operator\s*comment)[:\s]*([^\n]+)", IC),
        re.compile(B + r"(?:комментарий|comment)[:\s]*([^\n]+)", IC),
        re.compile(B + r"(?:примечани[ея]|note)[:\s]*([^\n]+)", IC),
        re.compile(B + r"(?:замечани[ея]|remark)[:\s]*([^\n]+)", IC),
        re.compile(B + r"(?:доп\.?\s*информация|additional\s*info)[:\s]*([^\n]+)", IC),
    ]

    def __init__(self, reference: ReferenceData, date_parser: Optional[DateParser] = None):
        self.reference = reference
        self.date_parser = date_parser or DateParser()
        self._carrier_label_patterns = [
            re.compile(B + r"(?:" + label + r")[:\s]+([А-Яа-яёЁA-Za-z\s\-]+?)(?:\n|$|\.)", IC)
            for label in reference.carrier_label_patterns
        ]
        self._known_carrier_patterns = [
            (re.compile(r"(?<!\w)" + re.escape(name) + r"(?!\w)", IC if len(name) > 3 else 0), name)
            for name in reference.known_carriers
        ]

    def extract(self, text: str, container_number: Optional[str] = None) -> ParsedItem:
        """
        Извлекает поля из текста для одного контейнера.

        Args:
            text: Полный текст сообщения
            container_number: Номер контейнера (None = частичные данные)
        """
        confidence = settings.TEXT_BASE_CONFIDENCE

        location, location_type = self.extract_location(text)
        if location:
            confidence += settings.TEXT_BONUS_LOCATION

        distance = self.extract_distance(text)
        if distance is not None:
            confidence += settings.TEXT_BONUS_DISTANCE

        eta = self.extract_eta(text)
        if eta:
            confidence += settings.TEXT_BONUS_ETA

        eta_unload = self.extract_unload_date(text)

        status_code, status_text = self.reference.statuses.match_text(text)
        if status_code != StatusCode.UNKNOWN:
            confidence += settings.TEXT_BONUS_STATUS

        origin, destination = self.extract_route(text)
        if not origin:
            origin = self.extract_origin(text)
        if not destination:
            destination = self.extract_destination(text)

        if origin:
            confidence += settings.TEXT_BONUS_ROUTE_ENDPOINT
        if destination:
            confidence += settings.TEXT_BONUS_ROUTE_ENDPOINT
        if container_number:
            confidence += settings.TEXT_BONUS_CONTAINER

        item = ParsedItem(
            container_number=container_number,
            status_code=status_code.value,
            status_text=status_text,
            location=location,
            location_type=location_type,
            distance_to_destination=distance,
            eta=eta,
            eta_unload=eta_unload,
            event_time=self.extract_event_time(text, exclude=(eta, eta_unload)),
            origin=origin,
            destination=destination,
            carrier_name=self.extract_carrier(text),
            source_info=self.extract_source_info(text),
            operator_comment=self.extract_operator_comment(text),
            raw_source=text,
            extraction_confidence=round(min(confidence, 1.0), 4),
        )

        logger.debug(
            f"[TextExtractor] {container_number}: status={status_code.value}, "
            f"location={location}, distance={distance}, eta={eta}"
        )
        return item

    # -------------------------------------------------------------------------
    # Поля
    # -------------------------------------------------------------------------

    def extract_location(self, text: str) -> Tuple[Optional[str], Optional[LocationType]]:
        for pattern, location_type in self.LOCATION_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            location = match.group(1).strip(" -")
            if len(location) > 2 and location.lower() not in self.LOCATION_STOP_WORDS:
                return location, location_type
        return None, None

    def extract_distance(self, text: str) -> Optional[int]:
        for pattern in self.DISTANCE_PATTERNS:
            match = pattern.search(text)
            if match:
                return int(re.sub(r"\s", "", match.group(1)))
        return None

    def extract_eta(self, text: str) -> Optional[date]:
        for pattern in self.ETA_PATTERNS:
            match = pattern.search(text)
            if match:
                parsed = self.date_parser.parse_date(match.group(1))
                if parsed:
                    return parsed

        for pattern in self.ETA_MONTH_PATTERNS:
            match = pattern.search(text)
            if match:
                parsed = self.date_parser.from_parts(match.group(1), match.group(2), match.group(3))
                if parsed:
                    return parsed.date()
        return None

    def extract_unload_date(self, text: str) -> Optional[date]:
        for pattern in self.UNLOAD_PATTERNS:
            match = pattern.search(text)
            if match:
                parsed = self.date_parser.parse_date(match.group(1))
                if parsed:
                    return parsed
        return None

    def extract_route(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        for pattern in self.ROUTE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            origin, destination = match.group(1).strip(), match.group(2).strip()
            if (
                len(origin) > 2 and len(destination) > 2
                and origin.lower() not in self.ROUTE_SKIP_WORDS
                and destination.lower() not in self.ROUTE_SKIP_WORDS
            ):
                return origin, destination
        return None, None

    def extract_origin(self, text: str) -> Optional[str]:
        for pattern in self.ORIGIN_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def extract_destination(self, text: str) -> Optional[str]:
        for pattern, group in self.DESTINATION_PATTERNS:
            match = pattern.search(text)
            if match:
                value = match.group(group)
                if value and not value.isdigit() and value.lower() not in self.DESTINATION_STOP_WORDS:
                    return value.strip()
        return None

    def extract_carrier(self, text: str) -> Optional[str]:
        for pattern in self._carrier_label_patterns:
            match = pattern.search(text)
            if match:
                carrier = match.group(1).strip()
                if 2 < len(carrier) < 100:
                    return carrier

        for pattern, name in self._known_carrier_patterns:
            if pattern.search(text):
                return name
        return None

    def extract_event_time(self, text: str, exclude: Tuple[Optional[date], ...] = ()) -> Optional[datetime]:
        """
        Дата события: подписанная дата, иначе первая дата в тексте,
        не совпадающая с ETA / датой разгрузки.
        """
        for pattern in self.EVENT_TIME_PATTERNS:
            match = pattern.search(text)
            if match:
                parsed = self.date_parser.parse(match.group(1))
                if parsed:
                    return parsed

        excluded = {d for d in exclude if d}
        for match in self.ANY_DATE_RE.finditer(text):
            parsed = self.date_parser.parse(match.group(1))
            if parsed and parsed.date() not in excluded:
                return parsed
        return None

    def extract_source_info(self, text: str) -> Optional[str]:
        for pattern in self.SOURCE_PATTERNS:
            match = pattern.search(text)
            if match:
                source = match.group(1).strip()
                if 3 < len(source) < 100:
                    return source

        for pattern, label in self.SOURCE_KEYWORDS:
            if pattern.search(text):
                return label
        return None

    def extract_operator_comment(self, text: str) -> Optional[str]:
        for pattern in self.COMMENT_PATTERNS:
            match = pattern.search(text)
            if match:
                comment = re.sub(r"^оператора[:\s]*", "", match.group(1).strip(), flags=IC).strip()
                if 5 < len(comment) < 500:
                    return comment
        return None
