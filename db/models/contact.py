from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class Contact(BaseModel):
    """Contact model matching the database schema."""

    id: int
    email: str  # Normalized (lower-cased), unique

    # Identity
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    company_domain: Optional[str] = None

    # External ids
    discovery_id: Optional[str] = None  # Id in the discovery source
    crm_id: Optional[str] = None  # Set by the first successful sync

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
