"""Stage 1: определение формата сырых данных."""

from .stage import FormatDetectionStage, DetectedFormat, FormatDetails, FormatType

__all__ = ["FormatDetectionStage", "DetectedFormat", "FormatDetails", "FormatType"]
