"""
Общие фикстуры тестов Ingestion.
"""

import shutil
from datetime import datetime, timezone

import pytest

from config.settings import REFERENCE_DIR
from src.ingestion.reference import ReferenceLoader


# Фиксированное "сейчас" для проверок ETA в прошлом
FIXED_NOW = datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc)


SMALL_GAZETTEER = """
locations:
  - {name: Тестовая, type: STATION, aliases: [тестовая-сорт, tst], region: Тест, country: RU}
  - {name: Порт Пробный, type: PORT, aliases: [пробный], country: RU}

context_keywords:
  STATION: ['ст\\.', 'станци[яиюе]']
  PORT: ['порт[ау]?']

type_keywords:
  STATION: ['ст\\.', 'станци']
  PORT: ['порт']
  WAREHOUSE: ['свх', 'склад']

short_alias_length: 3
"""


@pytest.fixture(scope="session")
def reference():
    """Справочники проекта (YAML из src/ingestion/reference)."""
    return ReferenceLoader.load()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def small_reference_dir(tmp_path):
    """Копия справочников с маленьким газеттиром из двух локаций."""
    for path in REFERENCE_DIR.glob("*.yaml"):
        shutil.copy(path, tmp_path / path.name)
    (tmp_path / "gazetteer.yaml").write_text(SMALL_GAZETTEER, encoding="utf-8")
    return tmp_path
