"""Enrichment Stage - research, insight generation, approval block."""

from services.enrichment.service import EnrichmentService, insight_fields
from services.enrichment.urls import build_candidate_urls, company_slug

__all__ = ["EnrichmentService", "build_candidate_urls", "company_slug", "insight_fields"]
