"""Stage 5: Validation - нормализация и итоговая уверенность записи."""

from .stage import (
    RecordValidator,
    ValidationResult,
    ValidationOutcome,
    ValidationDetails,
    ValidationPolicy,
    sanitize_string,
)

__all__ = [
    "RecordValidator",
    "ValidationResult",
    "ValidationOutcome",
    "ValidationDetails",
    "ValidationPolicy",
    "sanitize_string",
]
