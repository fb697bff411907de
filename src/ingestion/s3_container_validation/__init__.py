"""Проверка номеров контейнеров (ISO 6346)."""

from .validator import (
    ContainerValidator,
    ContainerValidationResult,
    ContainerDetails,
    ConfidencePolicy,
    calculate_check_digit,
)

__all__ = [
    "ContainerValidator",
    "ContainerValidationResult",
    "ContainerDetails",
    "ConfidencePolicy",
    "calculate_check_digit",
]
