"""
Доменные исключения Ingestion.
"""

from .exceptions import (
    IngestionError,
    ReferenceDataError,
    ExtractionError,
)

__all__ = [
    "IngestionError",
    "ReferenceDataError",
    "ExtractionError",
]
