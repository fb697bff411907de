#!/usr/bin/env python3
"""
Нормализация статусов контейнеров из файла или stdin.

Использование:
    python scripts/ingest_status.py email.txt
    python scripts/ingest_status.py export.csv --hint csv
    python scripts/ingest_status.py batch.json --batch
    cat email.txt | python scripts/ingest_status.py --verbose

--batch: файл содержит JSON массив; каждый элемент - либо объект
RawInput ({"content": ..., "hint": ..., "metadata": ...}), либо сами данные.
"""

import sys
import json
import argparse
from pathlib import Path
from typing import Any, List

from loguru import logger
from pydantic import ValidationError

# Добавляем корень проекта в путь
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import LOG_FORMAT, LOG_LEVEL
from contracts.raw_input_dto import RawInput
from src.ingestion import IngestionPipeline
from src.ingestion.domain.exceptions import ReferenceDataError


HINTS = ["text", "json", "csv", "table", "api"]


def read_source(path: str) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def build_input(text: str, hint: str = None, path: str = None) -> RawInput:
    """Файл .json (или hint json/table/api) разбирается в объект/массив."""
    content: Any = text
    wants_json = hint in ("json", "table", "api") or (path and path.endswith(".json"))
    if wants_json:
        try:
            content = json.loads(text)
        except (json.JSONDecodeError, RecursionError):
            logger.warning("[ingest_status] Невалидный JSON, обрабатываем как текст")
    return RawInput(content=content, hint=hint)


def build_batch(text: str) -> List[RawInput]:
    items = json.loads(text)
    if not isinstance(items, list):
        raise ValueError("--batch expects a JSON array")

    inputs = []
    for item in items:
        if isinstance(item, dict) and "content" in item:
            inputs.append(RawInput.model_validate(item))
        else:
            inputs.append(RawInput(content=item))
    return inputs


def main() -> int:
    """Главная функция."""
    parser = argparse.ArgumentParser(description="Нормализация статусов контейнеров")
    parser.add_argument("path", nargs="?", help="Путь к файлу (по умолчанию stdin)")
    parser.add_argument("--hint", choices=HINTS, help="Подсказка формата")
    parser.add_argument("--batch", action="store_true", help="Файл - JSON массив входов")
    parser.add_argument("--verbose", action="store_true", help="Подробный лог (DEBUG)")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if args.verbose else LOG_LEVEL)

    try:
        text = read_source(args.path)
    except OSError as e:
        logger.error(f"[ingest_status] Не удалось прочитать {args.path}: {e}")
        return 1

    try:
        pipeline = IngestionPipeline()
    except ReferenceDataError as e:
        logger.error(f"[ingest_status] {e}")
        return 1

    try:
        if args.batch:
            result = pipeline.process_batch(build_batch(text))
        else:
            result = pipeline.process(build_input(text, args.hint, args.path))
    except (ValueError, ValidationError, RecursionError) as e:
        logger.error(f"[ingest_status] Некорректный вход: {e}")
        return 1

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
