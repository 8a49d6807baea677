"""Offline Insight Generator.

Classifies from keyword signals and pulls a UK-style postal address out of
the research content. Never writes a personalized note.
"""

import re
from typing import Optional, Tuple

from lib.insights.approval_block import render_approval_block
from lib.insights.classification import classify
from lib.insights.models import FALLBACK_NOTE, Insight, InsightRequest

UK_POSTCODE = re.compile(r"\b([A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2})\b")

_ADDRESS_PAGE_HINTS = ("/contact", "/about", "/privacy", "/terms")


def _address_priority(url: str) -> int:
    for i, hint in enumerate(_ADDRESS_PAGE_HINTS):
        if hint in url:
            return i
    return len(_ADDRESS_PAGE_HINTS)


def find_address(content: str) -> Optional[Tuple[str, Optional[str], str]]:
    """Find (line1, city, postcode) on the first line holding a postcode."""
    for line in content.splitlines():
        match = UK_POSTCODE.search(line)
        if not match:
            continue
        before = line[: match.start()].strip(" ,*-#|")
        parts = [p.strip() for p in before.split(",") if p.strip()]
        if not parts:
            continue
        city = parts[-1] if len(parts) > 1 else None
        line1 = ", ".join(parts[:-1]) if city else parts[0]
        return line1, city, match.group(1)
    return None


class RuleBasedInsightGenerator:
    """Deterministic generator used when no LLM is configured."""

    async def generate(self, request: InsightRequest) -> Insight:
        contact = request.contact
        classification = classify(
            [contact.company_name, contact.company_domain] + [page.content for page in request.research]
        )

        address = None
        address_url = None
        for page in sorted(request.research, key=lambda p: _address_priority(p.url)):
            address = find_address(page.content)
            if address:
                address_url = page.url
                break

        line1, city, postcode = address if address else (None, None, None)
        country = "United Kingdom" if postcode else None
        block = render_approval_block(
            name=contact.full_name,
            company=contact.company_name,
            classification=classification,
            note=FALLBACK_NOTE,
            address_line1=line1,
            city=city,
            postcode=postcode,
            country=country,
            address_source_url=address_url,
        )
        return Insight(
            classification=classification,
            address_line1=line1,
            city=city,
            postcode=postcode,
            country=country,
            address_source_url=address_url,
            note=FALLBACK_NOTE,
            approval_block=block,
        )
