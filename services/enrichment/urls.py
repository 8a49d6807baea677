"""Candidate research URLs for a contact.

Pure and deterministic, so URL derivation can be tested without network.
"""

import re
from typing import List, Optional
from urllib.parse import quote

COMPANIES_HOUSE_SEARCH = "https://find-and-update.company-information.service.gov.uk/search?q="

DOMAIN_PATHS = ("", "/contact", "/about", "/privacy", "/terms")


def company_slug(company: str) -> str:
    """'Acme & Sons Ltd.' -> 'acme-sons-ltd'."""
    return re.sub(r"[^a-z0-9]+", "-", company.lower()).strip("-")


def build_candidate_urls(domain: Optional[str], company: Optional[str]) -> List[str]:
    """Ordered, de-duplicated URLs worth researching.

    Site pages from the domain first, then social/company-registry guesses
    from the company name.
    """
    urls: List[str] = []

    def add(url: str) -> None:
        if url not in urls:
            urls.append(url)

    if domain and domain.strip():
        host = re.sub(r"^https?://", "", domain.strip()).rstrip("/")
        for path in DOMAIN_PATHS:
            add(f"https://{host}{path}")

    slug = company_slug(company) if company else ""
    if slug:
        add(f"https://www.linkedin.com/company/{slug}")
        add(f"https://twitter.com/{slug}")
        add(f"https://www.facebook.com/{slug}")
        add(COMPANIES_HOUSE_SEARCH + quote(company.strip(), safe="-_.!~*'()"))

    return urls
