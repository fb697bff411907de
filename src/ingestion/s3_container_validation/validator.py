"""
Container Validator - проверка номера контейнера по ISO 6346.

ЦКП: Исправленный номер + уверенность + разбор на компоненты.

Алгоритм:
1. Очистка (только A-Z0-9, верхний регистр)
2. Исправление опечаток: в коде владельца цифры -> буквы (0->O, 1->I, 5->S, 8->B),
   в серийной части буквы -> цифры (O->0, I/L->1, S->5, B->8)
3. Формат AAAA0000000; для AAAA000000 контрольная цифра дописывается
4. Расчёт контрольной цифры (взвешенная сумма mod 11)

Несовпадение контрольной цифры снижает уверенность, но номер остаётся
валидным: реальные номера иногда записаны с ошибкой в последней цифре,
а контейнер тот же.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from loguru import logger

from config import settings

from ..reference import ReferenceData, ReferenceLoader


# Значения символов ISO 6346 (числа, кратные 11, пропущены)
CHAR_VALUES = {
    "A": 10, "B": 12, "C": 13, "D": 14, "E": 15, "F": 16, "G": 17, "H": 18, "I": 19,
    "J": 20, "K": 21, "L": 23, "M": 24, "N": 25, "O": 26, "P": 27, "Q": 28, "R": 29,
    "S": 30, "T": 31, "U": 32, "V": 34, "W": 35, "X": 36, "Y": 37, "Z": 38,
    **{str(d): d for d in range(10)},
}

VALID_CATEGORIES = ("U", "J", "Z")

PREFIX_FIXES = str.maketrans({"0": "O", "1": "I", "5": "S", "8": "B"})
SUFFIX_FIXES = str.maketrans({"O": "0", "I": "1", "L": "1", "S": "5", "B": "8"})

FULL_RE = re.compile(r"^([A-Z]{4})(\d{7})$")
SHORT_RE = re.compile(r"^([A-Z]{4})(\d{6})$")


@dataclass(frozen=True)
class ConfidencePolicy:
    """Веса уверенности валидатора (по умолчанию из config.settings)."""
    base: float = settings.CONTAINER_BASE_CONFIDENCE
    check_digit_bonus: float = settings.CONTAINER_BONUS_CHECK_DIGIT
    known_owner_bonus: float = settings.CONTAINER_BONUS_KNOWN_OWNER
    no_corrections_bonus: float = settings.CONTAINER_BONUS_NO_CORRECTIONS


def calculate_check_digit(code: str) -> str:
    """
    Контрольная цифра для первых 10 символов номера.

    Raises:
        ValueError: длина не 10 или недопустимый символ
    """
    if len(code) != 10:
        raise ValueError(f"Expected 10 characters, got {len(code)}: {code!r}")

    total = 0
    for position, char in enumerate(code):
        if char not in CHAR_VALUES:
            raise ValueError(f"Invalid character {char!r} in {code!r}")
        total += CHAR_VALUES[char] * (2 ** position)

    remainder = total % 11
    return "0" if remainder == 10 else str(remainder)


@dataclass
class ContainerDetails:
    """Компоненты номера."""
    owner_code: str = ""                   # 3 буквы владельца (MSK)
    category_code: str = ""
    serial_number: str = ""
    check_digit: str = ""
    calculated_check_digit: str = ""
    is_known_owner: bool = False
    check_digit_valid: bool = False

    def to_dict(self) -> dict:
        return {
            "owner_code": self.owner_code,
            "category_code": self.category_code,
            "serial_number": self.serial_number,
            "check_digit": self.check_digit,
            "calculated_check_digit": self.calculated_check_digit,
            "is_known_owner": self.is_known_owner,
            "check_digit_valid": self.check_digit_valid,
        }


@dataclass
class ContainerValidationResult:
    """
    Результат проверки номера контейнера.

    ЦКП: is_valid + номер + уверенность.
    """
    is_valid: bool
    container_number: str
    confidence: float
    details: ContainerDetails = field(default_factory=ContainerDetails)
    corrections: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "container_number": self.container_number,
            "confidence": self.confidence,
            "details": self.details.to_dict(),
            "corrections": list(self.corrections),
            "error": self.error,
        }


class ContainerValidator:
    """
    Валидатор номеров контейнеров.

    Реестр кодов владельцев передаётся через ReferenceData.
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        policy: Optional[ConfidencePolicy] = None,
    ):
        reference = reference or ReferenceLoader.load()
        self.owner_codes: FrozenSet[str] = reference.owner_codes
        self.policy = policy or ConfidencePolicy()

    def validate(self, raw: str) -> ContainerValidationResult:
        corrections: List[str] = []

        original = re.sub(r"[^A-Z0-9]", "", str(raw).upper())
        cleaned = original
        if len(cleaned) >= 4:
            cleaned = cleaned[:4].translate(PREFIX_FIXES) + cleaned[4:].translate(SUFFIX_FIXES)

        chars_corrected = cleaned != original
        if chars_corrected:
            corrections.append(f"Исправлены опечатки: {original} → {cleaned}")

        if not FULL_RE.match(cleaned):
            short = SHORT_RE.match(cleaned)
            if not short:
                logger.debug(f"[ContainerValidator] Неверный формат: {raw!r}")
                return ContainerValidationResult(
                    is_valid=False,
                    container_number=str(raw),
                    confidence=0.0,
                    error="Неверный формат номера контейнера (должен быть 4 буквы + 6-7 цифр)",
                )
            digit = calculate_check_digit(cleaned)
            cleaned = cleaned + digit
            corrections.append(f"Добавлена контрольная цифра: {digit}")

        owner_code = cleaned[:3]
        category_code = cleaned[3]
        serial_number = cleaned[4:10]
        check_digit = cleaned[10]

        if category_code not in VALID_CATEGORIES:
            corrections.append(f"Необычный код категории: {category_code} (обычно U, J или Z)")

        # Реестр хранит префикс целиком: владелец + категория (MSKU)
        is_known_owner = cleaned[:4] in self.owner_codes
        calculated = calculate_check_digit(cleaned[:10])
        check_digit_valid = check_digit == calculated

        if not check_digit_valid:
            corrections.append(f"Контрольная цифра {check_digit} не совпадает с расчётной {calculated}")

        confidence = self.policy.base
        if check_digit_valid:
            confidence += self.policy.check_digit_bonus
        if is_known_owner:
            confidence += self.policy.known_owner_bonus
        if not chars_corrected:
            confidence += self.policy.no_corrections_bonus

        result = ContainerValidationResult(
            is_valid=True,
            container_number=cleaned,
            confidence=round(min(confidence, 1.0), 4),
            details=ContainerDetails(
                owner_code=owner_code,
                category_code=category_code,
                serial_number=serial_number,
                check_digit=check_digit,
                calculated_check_digit=calculated,
                is_known_owner=is_known_owner,
                check_digit_valid=check_digit_valid,
            ),
            corrections=corrections,
        )

        logger.debug(
            f"[ContainerValidator] {raw!r} -> {cleaned} "
            f"(check_digit_valid={check_digit_valid}, known_owner={is_known_owner}, "
            f"confidence={result.confidence})"
        )
        return result
