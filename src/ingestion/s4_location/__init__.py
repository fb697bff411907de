"""Поиск локаций по справочнику станций, портов и складов."""

from .resolver import LocationResolver, LocationMatchResult, normalize_location_name

__all__ = [
    "LocationResolver",
    "LocationMatchResult",
    "normalize_location_name",
]
