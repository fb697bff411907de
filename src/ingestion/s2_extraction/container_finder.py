"""
Container Finder - поиск номеров контейнеров в свободном тексте.

ЦКП: Упорядоченный список уникальных номеров вида AAAA000000[0].

Каскад паттернов от строгого к мягкому. Опечатки "цифра вместо буквы"
исправляются только в первых 4 символах (MSC0 -> MSCO), полная проверка
номера выполняется позже в ContainerValidator.
"""

import re
from typing import List

from loguru import logger


CONTAINER_SHAPE_RE = re.compile(r"^[A-Z]{4}\d{6,7}$")

PREFIX_DIGIT_TO_LETTER = str.maketrans({"0": "O", "1": "I", "5": "S", "8": "B"})


def repair_prefix(candidate: str) -> str:
    """Заменяет похожие на буквы цифры в коде владельца."""
    if len(candidate) < 10:
        return candidate
    return candidate[:4].translate(PREFIX_DIGIT_TO_LETTER) + candidate[4:]


def looks_like_container(value: str) -> bool:
    cleaned = re.sub(r"[\"'\s]", "", value).upper()
    return bool(CONTAINER_SHAPE_RE.match(cleaned))


class ContainerFinder:
    """
    Поиск номеров контейнеров.
    """

    PATTERNS = [
        # ISO: 4 буквы + 7 цифр
        re.compile(r"\b([A-Z]{4}\d{7})\b", re.IGNORECASE),
        re.compile(r"\b([A-Z]{4}\s?\d{6,7})\b", re.IGNORECASE),
        re.compile(r"\b([A-Z]{3}U\d{7})\b", re.IGNORECASE),
        # С упоминанием "контейнер"
        re.compile(r"(?:контейнер|ктк|container|cntr|k[тt]k)\s*[#№:]?\s*([A-Z0-9]{10,11})", re.IGNORECASE),
        # Опечатки: MSC0..., ABC1...
        re.compile(r"\b([A-Z]{3}[A-Z0-9]\d{6,7})\b", re.IGNORECASE),
        re.compile(r"\b([A-Z][A-Z0-9]{3}\d{6,7})\b", re.IGNORECASE),
    ]

    def find(self, text: str) -> List[str]:
        found: List[str] = []

        for pattern in self.PATTERNS:
            for match in pattern.finditer(text):
                candidate = re.sub(r"\s", "", match.group(1)).upper()
                candidate = repair_prefix(candidate)
                if CONTAINER_SHAPE_RE.match(candidate) and candidate not in found:
                    found.append(candidate)

        if found:
            logger.debug(f"[ContainerFinder] Найдено {len(found)}: {found}")
        return found
