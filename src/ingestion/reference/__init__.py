"""
Справочники Ingestion: коды владельцев, газеттир, статусы, алиасы полей.

Данные лежат в YAML рядом с модулем, код только загружает их.
"""

from .reference_loader import (
    ReferenceLoader,
    ReferenceData,
    KnownLocation,
    StatusVocabulary,
    StatusKeywordRule,
    MilestoneColumn,
    normalize_key,
)

__all__ = [
    "ReferenceLoader",
    "ReferenceData",
    "KnownLocation",
    "StatusVocabulary",
    "StatusKeywordRule",
    "MilestoneColumn",
    "normalize_key",
]
