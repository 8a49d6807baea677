"""Firecrawl integration - web research content."""

from lib.firecrawl.client import FirecrawlClient, ResearchPage

__all__ = ["FirecrawlClient", "ResearchPage"]
