"""
Stage 2: Extraction

ЦКП: Кандидаты ParsedItem из сырых данных любого формата.

Input: RawInput, DetectedFormat
Output: ExtractionResult (items, errors, warnings)

Ветки:
- PLAIN_TEXT -> поиск номеров контейнеров + каскады паттернов по тексту
- JSON_OBJECT / TABLE_ROW -> маппинг полей (вложенные rows/data/containers, body)
- JSON_ARRAY / TABLE_ROWS -> маппинг каждой строки независимо
- CSV_TEXT -> заголовок + строки (или одиночная строка без заголовка)
- MIXED -> body как текст, иначе как объект

Ошибки разбора одной строки не прерывают остальные: они становятся
записями в warnings.
"""

import csv
import json
from dataclasses import replace
from typing import Any, Dict, Optional

from loguru import logger

from contracts.raw_input_dto import RawInput

from ..domain.exceptions import ExtractionError
from ..reference import ReferenceData, ReferenceLoader
from ..s1_format_detection.stage import JSON_ERRORS, DetectedFormat, FormatType
from . import csv_reader
from .container_finder import ContainerFinder, looks_like_container
from .date_parser import DateParser
from .parsed_item import ExtractionResult, ParsedItem
from .structured_extractor import RowMapper
from .text_extractor import TextExtractor


ROW_ERRORS = (ExtractionError, ValueError, TypeError, OverflowError, csv.Error)


class ExtractionStage:
    """
    Stage 2: Extraction.

    Массив всегда разбирается построчно, независимо от определённого формата.
    """

    def __init__(self, reference: Optional[ReferenceData] = None):
        self.reference = reference or ReferenceLoader.load()
        date_parser = DateParser()
        self.container_finder = ContainerFinder()
        self.text_extractor = TextExtractor(self.reference, date_parser)
        self.row_mapper = RowMapper(self.reference, date_parser)

    def process(self, raw_input: RawInput, detected: DetectedFormat) -> ExtractionResult:
        content = raw_input.content

        if isinstance(content, list):
            result = self.parse_array(content)
        elif detected.type == FormatType.PLAIN_TEXT:
            result = self.parse_text(_as_text(content))
        elif detected.type == FormatType.JSON_OBJECT:
            result = self.parse_object(content)
        elif detected.type in (FormatType.JSON_ARRAY, FormatType.TABLE_ROWS):
            result = self.parse_array(content)
        elif detected.type == FormatType.TABLE_ROW:
            result = self.parse_table_row(content)
        elif detected.type == FormatType.CSV_TEXT:
            wrapper = self._nested_wrapper(content)
            if wrapper is not None:
                result = self.parse_object(wrapper)
            else:
                result = self.parse_csv(_as_text(content))
        elif detected.type == FormatType.MIXED:
            result = self.parse_mixed(content)
        else:
            result = self.parse_text(_as_text(content))

        logger.info(
            f"[Stage 2: Extraction] {detected.type.value}: {len(result.items)} items, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    # -------------------------------------------------------------------------
    # Текст
    # -------------------------------------------------------------------------

    def parse_text(self, text: str) -> ExtractionResult:
        result = ExtractionResult()
        containers = self.container_finder.find(text)

        if not containers:
            item = self.text_extractor.extract(text, None)
            if item.status_code != "UNKNOWN" or item.location:
                result.items.append(item)
                result.warnings.append("Container number not found, extracted partial data")
                logger.warning("[Stage 2: Extraction] Номер контейнера не найден, частичные данные")
            else:
                result.errors.append("No container number or useful data found in text")
            return result

        for container in containers:
            result.items.append(self.text_extractor.extract(text, container))
        return result

    # -------------------------------------------------------------------------
    # JSON / таблицы
    # -------------------------------------------------------------------------

    def parse_object(self, content: Any) -> ExtractionResult:
        result = ExtractionResult()
        try:
            obj = json.loads(content) if isinstance(content, str) else content
        except JSON_ERRORS as e:
            result.errors.append(f"Failed to parse JSON object: {e}")
            return result

        if isinstance(obj, list):
            return self.parse_array(obj)
        if not isinstance(obj, dict):
            result.errors.append(f"Failed to parse JSON object: unexpected {type(obj).__name__}")
            return result

        for key in self.reference.nested_collections:
            if isinstance(obj.get(key), list):
                return self.parse_array(obj[key])

        if isinstance(obj.get("body"), str):
            return self._parse_envelope(obj)

        self._map_row_into(result, obj, "Row 0")
        return result

    def parse_array(self, content: Any) -> ExtractionResult:
        result = ExtractionResult()
        try:
            rows = json.loads(content) if isinstance(content, str) else content
        except JSON_ERRORS as e:
            result.errors.append(f"Failed to parse JSON array: {e}")
            return result

        # {"rows": [...]} и подобные обёртки
        if isinstance(rows, dict):
            return self.parse_object(rows)
        if not isinstance(rows, list):
            rows = [rows]

        for index, row in enumerate(rows):
            label = f"Row {index}"
            if isinstance(row, str):
                result.extend(self.parse_text(row), prefix=f"{label}: ")
            elif isinstance(row, dict):
                self._map_row_into(result, row, label)
            else:
                result.warnings.append(f"Failed to parse row {index}: unsupported {type(row).__name__}")
        return result

    def parse_table_row(self, content: Any) -> ExtractionResult:
        result = ExtractionResult()
        try:
            row = json.loads(content) if isinstance(content, str) else content
        except JSON_ERRORS as e:
            result.errors.append(f"Failed to parse table row: {e}")
            return result

        if isinstance(row, list):
            return self.parse_array(row)
        try:
            item, warnings = self.row_mapper.map_row(row, "Row 0")
        except ROW_ERRORS as e:
            result.errors.append(f"Failed to parse table row: {e}")
            return result
        result.items.append(item)
        result.warnings.extend(warnings)
        return result

    def parse_mixed(self, content: Any) -> ExtractionResult:
        if isinstance(content, str):
            try:
                parsed = json.loads(content)
            except JSON_ERRORS:
                return self.parse_text(content)
            if isinstance(parsed, (dict, list)):
                return self.parse_object(parsed)
            return self.parse_text(content)
        if isinstance(content, dict):
            return self.parse_object(content)
        return self.parse_text(_as_text(content))

    # -------------------------------------------------------------------------
    # CSV
    # -------------------------------------------------------------------------

    def parse_csv(self, text: str) -> ExtractionResult:
        result = ExtractionResult()
        lines = csv_reader.split_lines(text)
        if not lines:
            result.errors.append("Empty CSV data")
            return result

        delimiter = csv_reader.detect_delimiter(lines[0])
        headers = csv_reader.split_line(lines[0], delimiter)

        if len(lines) == 1:
            values = csv_reader.split_line(lines[0], delimiter)
            if values and looks_like_container(values[0]):
                result.items.append(self.row_mapper.map_headerless(values))
            else:
                result.warnings.append("CSV contains only header row, no data")
            return result

        for line_number, line in enumerate(lines[1:], start=2):
            try:
                values = csv_reader.split_line(line, delimiter)
                row: Dict[str, str] = dict(zip(headers, values))
                item, warnings = self.row_mapper.map_row(row, f"Line {line_number}")
            except ROW_ERRORS as e:
                result.warnings.append(f"Failed to parse CSV line {line_number}: {e}")
                continue
            result.items.append(item)
            result.warnings.extend(warnings)

        logger.debug(
            f"[Stage 2: Extraction] CSV delimiter={delimiter!r}, headers={headers}, "
            f"rows={len(lines) - 1}"
        )
        return result

    # -------------------------------------------------------------------------

    def _map_row_into(self, result: ExtractionResult, row: Dict[str, Any], label: str) -> None:
        try:
            item, warnings = self.row_mapper.map_row(row, label)
        except ROW_ERRORS as e:
            result.warnings.append(f"Failed to parse {label.lower()}: {e}")
            return
        result.items.append(item)
        result.warnings.extend(warnings)

    def _nested_wrapper(self, content: Any) -> Optional[Dict[str, Any]]:
        """Объект {"data": ["MSKU...;ON_RAIL;..."]}: строки лежат во вложенном списке."""
        obj = content
        if isinstance(content, str) and content.strip().startswith("{"):
            try:
                obj = json.loads(content)
            except JSON_ERRORS:
                return None
        if not isinstance(obj, dict):
            return None
        for key in self.reference.nested_collections:
            if isinstance(obj.get(key), list):
                return obj
        return None

    def _parse_envelope(self, obj: Dict[str, Any]) -> ExtractionResult:
        """Письмо {body, carrierName, ...}: текст + перевозчик из конверта."""
        result = self.parse_text(obj["body"])
        carrier = self.row_mapper.find_field(obj, "carrier")
        if carrier:
            result.items = [
                item if item.carrier_name else _with_carrier(item, str(carrier).strip())
                for item in result.items
            ]
        return result


def _with_carrier(item: ParsedItem, carrier: str) -> ParsedItem:
    return replace(item, carrier_name=carrier)


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, default=str)
