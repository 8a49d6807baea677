"""Insight generation - classification, address and P.S. note for a contact."""

import os

from lib.insights.approval_block import render_approval_block
from lib.insights.classification import CLASSIFICATIONS, DEFAULT_CLASSIFICATION, classify
from lib.insights.client import AnthropicInsightGenerator
from lib.insights.models import FALLBACK_NOTE, Insight, InsightContact, InsightRequest
from lib.insights.rules import RuleBasedInsightGenerator


def get_insight_generator(kind: str = ""):
    """Build the generator named by INSIGHT_GENERATOR (llm or rules)."""
    kind = (kind or os.getenv("INSIGHT_GENERATOR", "llm")).lower()
    if kind == "rules":
        return RuleBasedInsightGenerator()
    return AnthropicInsightGenerator()


__all__ = [
    "AnthropicInsightGenerator",
    "CLASSIFICATIONS",
    "DEFAULT_CLASSIFICATION",
    "FALLBACK_NOTE",
    "Insight",
    "InsightContact",
    "InsightRequest",
    "RuleBasedInsightGenerator",
    "classify",
    "get_insight_generator",
    "render_approval_block",
]
