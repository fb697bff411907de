"""
Stage 2: Extraction

ЦКП: Извлечение кандидатов ParsedItem из текста, JSON, CSV и таблиц.
"""

from .stage import ExtractionStage
from .parsed_item import ParsedItem, ExtractionResult
from .container_finder import ContainerFinder, looks_like_container, repair_prefix
from .date_parser import DateParser
from .structured_extractor import RowMapper, parse_number
from .text_extractor import TextExtractor

__all__ = [
    "ExtractionStage",
    "ParsedItem",
    "ExtractionResult",
    "ContainerFinder",
    "looks_like_container",
    "repair_prefix",
    "DateParser",
    "RowMapper",
    "parse_number",
    "TextExtractor",
]
