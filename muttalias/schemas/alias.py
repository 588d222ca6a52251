"""Schemas for the alias-building pipeline.

Covers the full lifecycle:
  mail directory -> message headers -> parsed address -> alias entry -> alias file
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# --- Parsing ---


class ParsedAddress(BaseModel):
    """One recipient extracted from an address-list header."""

    email: str
    display_name: str = ""  # raw, possibly MIME-encoded


class ResolvedDate(BaseModel):
    """A message Date header, parsed if possible."""

    timestamp: datetime | None = None  # aware, UTC
    text: str  # canonical rendering when parsed, raw header text otherwise

    @property
    def parsed(self) -> bool:
        return self.timestamp is not None


class MessageHeaders(BaseModel):
    """Headers of one stored message, continuation lines already joined."""

    path: str
    to: str = ""
    date: str = ""


# --- Alias entries ---


class Provenance(StrEnum):
    """Who wrote an alias line."""

    TOOL_GENERATED = "tool_generated"
    PRE_EXISTING = "pre_existing"


class AliasEntry(BaseModel):
    """A single alias discovered in a message."""

    alias: str = Field(pattern=r"^[A-Za-z0-9-]+$")
    display_name: str = ""  # decoded, not yet escaped
    email: str  # lowercased
    sent: ResolvedDate
    provenance: Provenance = Provenance.TOOL_GENERATED


# --- Merge ---


class MergeOptions(BaseModel):
    """Knobs for one merge run."""

    max_age_days: int = Field(default=0, ge=0)  # 0 = unlimited
    purge: bool = False
    filter_new: bool = False
    filter_all: bool = False
    keep_comma_in_display_name: bool = True


class MergeOutcome(StrEnum):
    """How a run ended (fatal errors raise instead)."""

    UPDATED = "updated"
    NO_OP = "no_op"


class MergeResult(BaseModel):
    """Counters for one run."""

    outcome: MergeOutcome = MergeOutcome.NO_OP
    messages_scanned: int = 0
    candidates: int = 0
    added: int = 0
    duplicates: int = 0
    too_old: int = 0
    purged: int = 0
    filtered_new: int = 0
    filtered_all: int = 0
    total_lines: int = 0
