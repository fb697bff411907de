"""
Ingestion - нормализация сырых данных о статусе контейнеров.

Этапы:
1. s1_format_detection - определение формата
2. s2_extraction - извлечение полей (текст, JSON, CSV, таблицы)
3. s3_container_validation - номер контейнера по ISO 6346
4. s4_location - справочник станций, портов и складов
5. s5_validation - консистентность и итоговая уверенность
"""

from .pipeline import IngestionPipeline, PipelineResult, BatchResult

__all__ = ["IngestionPipeline", "PipelineResult", "BatchResult"]
