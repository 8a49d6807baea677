"""Company classification rules.

Rules are evaluated in a fixed priority order and the first match wins:

    Online Retailer > Direct Mail Agency > Ad Agency > eComm Agency > Marketing Agency

so a direct-to-consumer brand that also talks about its ecommerce platform
is still an Online Retailer.
"""

import re
from typing import Iterable, List, Optional, Tuple

ONLINE_RETAILER = "Online Retailer"
DIRECT_MAIL_AGENCY = "Direct Mail Agency"
AD_AGENCY = "Ad Agency"
ECOMM_AGENCY = "eComm Agency"
MARKETING_AGENCY = "Marketing Agency"

DEFAULT_CLASSIFICATION = MARKETING_AGENCY

CLASSIFICATIONS = (
    ONLINE_RETAILER,
    DIRECT_MAIL_AGENCY,
    AD_AGENCY,
    ECOMM_AGENCY,
    MARKETING_AGENCY,
)

# (label, signals) in priority order
CLASSIFICATION_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    (ONLINE_RETAILER, (
        r"direct[- ]to[- ]consumers?",
        r"sells? direct to consumers?",
        r"\bd2c\b",
        r"\bdtc\b",
        r"add to (?:cart|basket|bag)",
        r"shop now",
        r"free (?:uk )?(?:shipping|delivery|returns)",
        r"buy online",
        r"our online (?:shop|store)",
    )),
    (DIRECT_MAIL_AGENCY, (
        r"direct mail",
        r"print (?:and|&) mail",
        r"mailing house",
        r"door[- ]drops?",
        r"letterbox marketing",
    )),
    (AD_AGENCY, (
        r"media buy(?:ing|er|ers)?",
        r"paid media",
        r"media planning",
        r"programmatic",
        r"multi[- ]channel (?:advertising|campaigns|paid)",
        r"\bppc\b",
    )),
    (ECOMM_AGENCY, (
        r"e-?commerce (?:agency|specialists?|platforms?|partners?)",
        r"shopify (?:plus|partner|experts?|agency)",
        r"\bmagento\b",
        r"\bbigcommerce\b",
        r"\bwoocommerce\b",
    )),
]

_COMPILED = [
    (label, [re.compile(p, re.IGNORECASE) for p in patterns])
    for label, patterns in CLASSIFICATION_RULES
]

_ALIASES = {
    "retailer": ONLINE_RETAILER,
    "online retail": ONLINE_RETAILER,
    "ecommerce retailer": ONLINE_RETAILER,
    "direct mail": DIRECT_MAIL_AGENCY,
    "advertising agency": AD_AGENCY,
    "media agency": AD_AGENCY,
    "ecommerce agency": ECOMM_AGENCY,
    "e-commerce agency": ECOMM_AGENCY,
    "ecomm": ECOMM_AGENCY,
    "marketing": MARKETING_AGENCY,
}


def classify(texts: Iterable[Optional[str]]) -> str:
    """Return the label of the first rule with a signal in any of the texts."""
    corpus = "\n".join(t for t in texts if t)
    for label, patterns in _COMPILED:
        if any(p.search(corpus) for p in patterns):
            return label
    return DEFAULT_CLASSIFICATION


def normalize_label(value: Optional[str]) -> Optional[str]:
    """Map a free-form label onto the fixed label set. None if unrecognised."""
    if not value or not value.strip():
        return None
    cleaned = value.strip().strip('"').lower()
    for label in CLASSIFICATIONS:
        if cleaned == label.lower():
            return label
    return _ALIASES.get(cleaned)
