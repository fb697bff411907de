"""
Исключения для домена Ingestion.

Внутри пайплайна исключения не пересекают границы стадий: стадии
превращают их в записи errors/warnings. Наружу пробрасывается только
ReferenceDataError при загрузке справочников.
"""


class IngestionError(Exception):
    """Базовое исключение для ошибок домена Ingestion."""

    def __init__(self, message: str, component: str = None, original_error: Exception = None):
        self.message = message
        self.component = component
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Ingestion Error: {self.message}"
        if self.component:
            msg += f" (Component: {self.component})"
        if self.original_error:
            msg += f" [Original: {type(self.original_error).__name__}: {str(self.original_error)}]"
        return msg


class ReferenceDataError(IngestionError):
    """Ошибка загрузки справочников (YAML)."""
    pass


class ExtractionError(IngestionError):
    """Ошибка извлечения полей из строки/фрагмента."""
    pass
