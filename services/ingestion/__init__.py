"""Ingestion Stage - discovery, skip rules, dedupe, staging."""

from services.ingestion.config import IngestionConfig, SkipRules
from services.ingestion.service import IngestResult, IngestionService

__all__ = ["IngestionConfig", "IngestResult", "IngestionService", "SkipRules"]
