"""
Настройки проекта Container Status Ingestion.

Все веса уверенности и пороги пайплайна нормализации собраны здесь,
чтобы их можно было менять без правки кода стадий.
"""

import os
from pathlib import Path

# =============================================================================
# ПУТИ ПРОЕКТА
# =============================================================================
PROJECT_ROOT = Path(__file__).parent.parent

# Справочники (YAML): коды владельцев, станции/порты, статусы, алиасы полей
REFERENCE_DIR = PROJECT_ROOT / "src" / "ingestion" / "reference"

# =============================================================================
# ЛОГИРОВАНИЕ
# =============================================================================
LOG_LEVEL = os.getenv("INGEST_LOG_LEVEL", "INFO")
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | <level>{message}</level>"
)

# =============================================================================
# STAGE 1: ОПРЕДЕЛЕНИЕ ФОРМАТА
# =============================================================================
FORMAT_CONFIDENCE_HINTED = 0.95
FORMAT_CONFIDENCE_TABLE_ROWS = 0.9
FORMAT_CONFIDENCE_JSON_ARRAY = 0.8
FORMAT_CONFIDENCE_STRING_ARRAY = 0.6
FORMAT_CONFIDENCE_MIXED_ARRAY = 0.5
FORMAT_CONFIDENCE_PLAIN_TEXT = 0.9
FORMAT_CONFIDENCE_CSV = 0.8
FORMAT_CONFIDENCE_TABLE_ROW = 0.9
FORMAT_CONFIDENCE_MIXED = 0.8
FORMAT_CONFIDENCE_JSON_OBJECT = 0.7

# Минимум "табличных" ключей, чтобы объект считался строкой таблицы
TABLE_KEYS_MIN_MATCHES = 2

# Сколько строк после заголовка проверять на согласованность разделителей
CSV_CONSISTENCY_LINES = 4

# Ниже этого порога пайплайн добавляет предупреждение о формате
FORMAT_LOW_CONFIDENCE = 0.3

# =============================================================================
# STAGE 2: ИЗВЛЕЧЕНИЕ ПОЛЕЙ
# =============================================================================
# Текст: база + бонусы за найденные поля
TEXT_BASE_CONFIDENCE = 0.5
TEXT_BONUS_LOCATION = 0.1
TEXT_BONUS_DISTANCE = 0.1
TEXT_BONUS_ETA = 0.1
TEXT_BONUS_STATUS = 0.15
TEXT_BONUS_ROUTE_ENDPOINT = 0.05
TEXT_BONUS_CONTAINER = 0.05

# Структурированные строки: база + бонусы
ROW_BASE_CONFIDENCE = 0.3
ROW_BONUS_CONTAINER = 0.3
ROW_BONUS_STATUS = 0.2
ROW_BONUS_LOCATION = 0.1
ROW_BONUS_ETA = 0.05
ROW_BONUS_DISTANCE = 0.05

# CSV из одной строки без заголовка
HEADERLESS_CONFIDENCE_WITH_CONTAINER = 0.6
HEADERLESS_CONFIDENCE_WITHOUT_CONTAINER = 0.3

# Допустимый диапазон лет для дат (ETA, событие)
DATE_YEAR_MIN = 2020
DATE_YEAR_MAX = 2035

# =============================================================================
# STAGE 3: ВАЛИДАЦИЯ НОМЕРА КОНТЕЙНЕРА (ISO 6346)
# =============================================================================
CONTAINER_BASE_CONFIDENCE = 0.85
CONTAINER_BONUS_CHECK_DIGIT = 0.10
CONTAINER_BONUS_KNOWN_OWNER = 0.05
CONTAINER_BONUS_NO_CORRECTIONS = 0.02

# =============================================================================
# STAGE 4: СПРАВОЧНИК ЛОКАЦИЙ
# =============================================================================
LOCATION_CONFIDENCE_KNOWN = 0.95
LOCATION_CONFIDENCE_UNREGISTERED = 0.7
LOCATION_CONFIDENCE_UNKNOWN_NAME = 0.5
LOCATION_BONUS_INFERRED_TYPE = 0.2

# =============================================================================
# STAGE 5: ВАЛИДАЦИЯ ЗАПИСИ
# =============================================================================
STATUS_CONFIDENCE_KNOWN = 0.95
STATUS_CONFIDENCE_UNRECOGNIZED = 0.3
STATUS_CONFIDENCE_MISSING = 0.1

RECORD_BONUS_KNOWN_STATUS = 0.05
RECORD_BONUS_KNOWN_LOCATION = 0.05
RECORD_BONUS_COMPLETENESS = 0.03
RECORD_BONUS_CONSISTENCY = 0.02
RECORD_COMPLETENESS_THRESHOLD = 0.5

# Смесь под-оценок, если номер контейнера не прошёл валидацию
RECORD_WEIGHT_STATUS = 0.3
RECORD_WEIGHT_LOCATION = 0.3
RECORD_WEIGHT_COMPLETENESS = 0.4

RECORD_PENALTY_ERRORS = 0.5
RECORD_PENALTY_MANY_WARNINGS = 0.95
RECORD_MANY_WARNINGS = 3

CONSISTENCY_PENALTY_LOCATION_TYPE = 0.8
CONSISTENCY_PENALTY_SOFT = 0.9

# Расстояние: больше половины окружности Земли - отбрасываем
DISTANCE_MAX_KM = 20000
DISTANCE_SUSPICIOUS_KM = 15000

RECORD_VALID_THRESHOLD = 0.5
RECORD_PARTIAL_THRESHOLD = 0.3

# =============================================================================
# ОРКЕСТРАТОР И АУДИТ
# =============================================================================
BATCH_MAX_WORKERS = int(os.getenv("INGEST_BATCH_WORKERS", "4"))

AUDIT_LOG_CAPACITY = 1000
AUDIT_PREVIEW_LENGTH = 200
