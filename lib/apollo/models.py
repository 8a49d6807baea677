"""Discovery Source contract types and the Apollo response boundary."""

from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError, field_validator


class Candidate(BaseModel):
    """A raw prospect from the discovery source, not yet deduplicated."""

    external_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company_name: Optional[str] = None
    company_domain: Optional[str] = None
    title: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip().lower()

    @field_validator("company_domain", mode="before")
    @classmethod
    def normalize_domain(cls, v):
        if not isinstance(v, str) or not v.strip():
            return None
        return normalize_domain(v)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()


def normalize_domain(value: str) -> str:
    """'https://www.Example.com/about' -> 'example.com'."""
    domain = value.strip().lower()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    domain = domain.split("/", 1)[0]
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def parse_candidate(person: Dict[str, Any]) -> Candidate:
    """Convert one Apollo person/contact object into a Candidate."""
    org = person.get("organization") or {}
    return Candidate(
        external_id=str(person["id"]),
        first_name=person.get("first_name"),
        last_name=person.get("last_name"),
        email=person.get("email"),
        company_name=org.get("name") or person.get("organization_name"),
        company_domain=(
            org.get("primary_domain")
            or org.get("domain")
            or org.get("website_url")
            or person.get("domain")
            or person.get("website")
        ),
        title=person.get("title"),
    )


def parse_search_response(payload: Dict[str, Any]) -> List[Candidate]:
    """Convert an Apollo search response into Candidates, in response order.

    Records without an id are dropped; everything else is kept so that the
    ingestion stage can record a skip for missing emails.
    """
    people = payload.get("contacts")
    if people is None:
        people = payload.get("people") or []

    candidates = []
    for person in people:
        if not isinstance(person, dict) or not person.get("id"):
            logger.debug(f"Dropping discovery record without id: {person!r:.80}")
            continue
        try:
            candidates.append(parse_candidate(person))
        except ValidationError as e:
            logger.warning(f"Dropping malformed discovery record {person.get('id')}: {e}")
    return candidates
