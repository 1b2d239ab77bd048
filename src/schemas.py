"""
Agent Roster Export - Pydantic Data Schemas

Core data models for crawl work items, extracted contacts and export rows.
Work items and contacts are immutable once created: partial context travels
with the work item, and a contact is appended to the sink exactly as built.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.pipeline.text import normalize_url


class PageKind(str, Enum):
    """Page types handled by the crawl state machine."""
    LISTING = "LISTING"
    PROFILE = "PROFILE"
    CONTACT_FALLBACK = "CONTACT_FALLBACK"


class PartialContext(BaseModel):
    """Data carried from a PROFILE visit to its CONTACT_FALLBACK visit."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    phone: str = ""
    profile_url: str


class WorkItem(BaseModel):
    """
    A unit of crawl work.

    LISTING items keep their (canonicalized) query string in the dedup key
    since the page-number parameter distinguishes listing pages. PROFILE and
    CONTACT_FALLBACK items are keyed by the URI without query string.
    """
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Absolute URI of the page to visit")
    kind: PageKind
    page_index: int = Field(default=1, ge=1)
    partial_context: Optional[PartialContext] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute HTTP/HTTPS URI")
        return normalize_url(v, keep_query=True)

    @model_validator(mode="after")
    def check_partial_context(self):
        if self.kind == PageKind.CONTACT_FALLBACK and self.partial_context is None:
            raise ValueError("CONTACT_FALLBACK items require partial_context")
        if self.kind != PageKind.CONTACT_FALLBACK and self.partial_context is not None:
            raise ValueError("partial_context is only valid on CONTACT_FALLBACK items")
        return self

    @property
    def dedup_key(self) -> str:
        if self.kind == PageKind.LISTING:
            return self.url
        return normalize_url(self.url)


class ExtractedContact(BaseModel):
    """One emitted record. Only ever built when an email was found."""
    model_config = ConfigDict(frozen=True)

    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    source_profile_url: str = ""
    source_contact_url: str = ""

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        v = (v or "").strip().lower()
        if not v:
            raise ValueError("email cannot be empty")
        return v


EXPORT_COLUMNS = ("EMAIL", "FIRSTNAME", "LASTNAME", "SMS")


class ExportRow(BaseModel):
    """Flat campaign-tool row: EMAIL, FIRSTNAME, LASTNAME, SMS."""
    model_config = ConfigDict(frozen=True)

    email: str
    first_name: str = ""
    last_name: str = ""
    sms: str = ""

    @classmethod
    def from_contact(cls, contact: ExtractedContact) -> "ExportRow":
        return cls(
            email=contact.email.lower(),
            first_name=contact.first_name,
            last_name=contact.last_name,
            sms=contact.phone,
        )

    def as_row(self) -> tuple:
        return (self.email, self.first_name, self.last_name, self.sms)
