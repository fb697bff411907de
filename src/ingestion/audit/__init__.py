"""Аудит-журнал попыток обработки."""

from .processing_log import ProcessingLog, ProcessingLogEntry, determine_input_type

__all__ = ["ProcessingLog", "ProcessingLogEntry", "determine_input_type"]
