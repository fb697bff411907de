"""
CSV Reader - разбор CSV из выгрузок Excel/1С.

Разделитель определяется по строке заголовка (самый частый из ; , TAB |).
Поля читает модуль csv: разделитель внутри "..." не делит поле,
удвоенная кавычка "" внутри поля - это символ кавычки.
"""

import csv
from typing import List


DELIMITERS = (";", ",", "\t", "|")
DEFAULT_DELIMITER = ";"


def detect_delimiter(line: str) -> str:
    best, best_count = DEFAULT_DELIMITER, 0
    for delimiter in DELIMITERS:
        count = line.count(delimiter)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def split_line(line: str, delimiter: str) -> List[str]:
    """Поля одной строки без окружающих пробелов."""
    for values in csv.reader([line], delimiter=delimiter, skipinitialspace=True):
        return [value.strip() for value in values]
    return []


def split_lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.strip()]
