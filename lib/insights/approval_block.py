"""Fixed-template approval block shown to the human approver."""

from typing import Optional

NOT_CAPTURED = "Not captured"
APPROVAL_PROMPT = "Ready to update HubSpot?"


def format_address(
    address_line1: Optional[str],
    address_line2: Optional[str],
    city: Optional[str],
    postcode: Optional[str],
    country: Optional[str],
) -> str:
    parts = [address_line1, address_line2, city, postcode, country]
    return ", ".join(p for p in parts if p)


def render_approval_block(
    name: str,
    company: Optional[str],
    classification: str,
    note: str,
    address_line1: Optional[str] = None,
    address_line2: Optional[str] = None,
    city: Optional[str] = None,
    postcode: Optional[str] = None,
    country: Optional[str] = None,
    address_source_url: Optional[str] = None,
    note_source_url: Optional[str] = None,
) -> str:
    """Render the approval block. Values are inserted verbatim."""
    address = format_address(address_line1, address_line2, city, postcode, country)
    return "\n".join([
        f"CONTACT: {name} at {company or 'Unknown'}",
        f"ADDRESS FOUND: {address or NOT_CAPTURED}",
        f"SOURCE: {address_source_url or NOT_CAPTURED}",
        f"CLASSIFICATION: {classification}",
        f"P.S. LINE: {note}",
        f"P.S. SOURCE: {note_source_url or 'Fallback'}",
        "",
        APPROVAL_PROMPT,
    ])
