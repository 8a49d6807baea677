"""Ingestion configuration snapshot.

Built once at run start from the settings table (plus DAILY_QUOTA from the
environment as the fallback quota) and passed into the stage.
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from db.models.setting import (
    ALLOWED_DOMAINS,
    COOLDOWN_DAYS,
    DAILY_QUOTA,
    PAGINATION_CURSOR,
    SEGMENT_FILTERS,
    SKIP_RULES,
)
from lib.apollo.models import normalize_domain

DEFAULT_DAILY_QUOTA = 40
DEFAULT_COOLDOWN_DAYS = 90


def _unwrap(value: Any) -> Any:
    """Settings written by the admin UI wrap scalars as {"value": x}."""
    if isinstance(value, dict) and set(value) == {"value"}:
        return value["value"]
    return value


def env_daily_quota() -> int:
    try:
        return int(os.getenv("DAILY_QUOTA", str(DEFAULT_DAILY_QUOTA)))
    except ValueError:
        return DEFAULT_DAILY_QUOTA


class SkipRules(BaseModel):
    """Candidates matching any rule are skipped before dedupe."""

    domains: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    title_keywords: List[str] = Field(default_factory=list)

    @field_validator("domains", mode="before")
    @classmethod
    def normalize_domains(cls, v):
        return [normalize_domain(d) for d in (v or []) if isinstance(d, str) and d.strip()]

    @field_validator("emails", "title_keywords", mode="before")
    @classmethod
    def lower(cls, v):
        return [s.strip().lower() for s in (v or []) if isinstance(s, str) and s.strip()]


class PaginationCursor(BaseModel):
    page: int = 1


class IngestionConfig(BaseModel):
    daily_quota: int = DEFAULT_DAILY_QUOTA
    segment_filters: Dict[str, Any] = Field(default_factory=dict)
    cooldown_days: int = DEFAULT_COOLDOWN_DAYS
    allowed_domains: List[str] = Field(default_factory=list)
    skip_rules: SkipRules = Field(default_factory=SkipRules)
    cursor: PaginationCursor = Field(default_factory=PaginationCursor)

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def normalize_allowed(cls, v):
        return [normalize_domain(d) for d in (v or []) if isinstance(d, str) and d.strip()]

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], default_quota: Optional[int] = None) -> "IngestionConfig":
        """Build a snapshot from key -> JSON value settings."""
        quota = _unwrap(settings.get(DAILY_QUOTA))
        cooldown = _unwrap(settings.get(COOLDOWN_DAYS))
        return cls(
            daily_quota=int(quota) if quota else (default_quota or env_daily_quota()),
            segment_filters=settings.get(SEGMENT_FILTERS) or {},
            cooldown_days=int(cooldown) if cooldown is not None else DEFAULT_COOLDOWN_DAYS,
            allowed_domains=_unwrap(settings.get(ALLOWED_DOMAINS)) or [],
            skip_rules=settings.get(SKIP_RULES) or {},
            cursor=settings.get(PAGINATION_CURSOR) or {},
        )
