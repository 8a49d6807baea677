"""Insight Generator contract types.

Insight is the validation boundary for generator output: whatever the
generator returns is parsed here before the enrichment stage sees it.
"""

import re
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from lib.firecrawl.client import ResearchPage
from lib.insights.classification import DEFAULT_CLASSIFICATION, normalize_label

FALLBACK_NOTE = "P.S. Life's too short for boring mail. Enjoy the chocolate!"
MAX_NOTE_WORDS = 20


class InsightContact(BaseModel):
    """Identity fields handed to the generator. No email."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    company_domain: Optional[str] = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()


class InsightRequest(BaseModel):
    contact: InsightContact
    research: List[ResearchPage] = Field(default_factory=list)


def _blank_to_none(v):
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        v = str(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def count_words(text: str) -> int:
    return len(re.findall(r"\S+", text))


class Insight(BaseModel):
    """Structured research result for one contact.

    Accepts both snake_case and the camelCase keys the LLM prompt asks for.
    """

    model_config = ConfigDict(populate_by_name=True)

    classification: str = DEFAULT_CLASSIFICATION
    address_line1: Optional[str] = Field(None, validation_alias=AliasChoices("address_line1", "addressLine1"))
    address_line2: Optional[str] = Field(None, validation_alias=AliasChoices("address_line2", "addressLine2"))
    city: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None
    address_source_url: Optional[str] = Field(None, validation_alias=AliasChoices("address_source_url", "addressSourceUrl"))
    note: Optional[str] = Field(FALLBACK_NOTE, validation_alias=AliasChoices("note", "psLine"))
    note_source_url: Optional[str] = Field(None, validation_alias=AliasChoices("note_source_url", "psSourceUrl"))
    approval_block: str = Field(validation_alias=AliasChoices("approval_block", "approvalBlock"))

    @field_validator(
        "address_line1", "address_line2", "city", "postcode", "country",
        "address_source_url", "note_source_url",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator("classification", mode="before")
    @classmethod
    def normalize_classification(cls, v):
        return normalize_label(v) or DEFAULT_CLASSIFICATION

    @field_validator("approval_block")
    @classmethod
    def approval_block_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("approval block is empty")
        return v

    @model_validator(mode="after")
    def enforce_note_rules(self):
        """Personalized notes need a short text and their own source URL."""
        note = (self.note or "").strip()
        usable = (
            note
            and note != FALLBACK_NOTE
            and count_words(note) <= MAX_NOTE_WORDS
            and self.note_source_url
            and self.note_source_url != self.address_source_url
        )
        if usable:
            self.note = note
        else:
            self.note = FALLBACK_NOTE
            self.note_source_url = None
        return self

    @property
    def is_fallback_note(self) -> bool:
        return self.note == FALLBACK_NOTE
