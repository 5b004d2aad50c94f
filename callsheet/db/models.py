"""Data models for Callsheet.

Timestamps are naive UTC datetimes, stored as ISO-8601 TEXT in SQLite.
Dataclasses use frozen=False for mutability during processing, except
Interaction, which is never mutated once the ledger has written it.

This module defines:
    - InteractionType: known interaction tags
    - Contact: a person to call
    - Interaction: one engagement event
    - Engagement: the (timestamp, actor) pair a contact caches
    - Helpers for timestamp and tag (de)serialization
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# =============================================================================
# ENUMERATIONS
# =============================================================================


class InteractionType(str, Enum):
    """Known interaction tags.

    The ledger accepts any non-empty string; these are the values the
    application itself writes.
    """

    NOTE = "note"
    CALL = "call"


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for a TEXT column (microsecond precision)."""
    if value is None:
        return None
    return value.isoformat(sep=" ", timespec="microseconds")


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a TEXT timestamp column; empty or missing becomes None."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def to_db_tags(tags: Optional[list[str]]) -> Optional[str]:
    """Serialize tags as a JSON array, or NULL when there are none."""
    if not tags:
        return None
    return json.dumps(list(tags))


def from_db_tags(value: Optional[str]) -> Optional[list[str]]:
    """Parse a JSON tag array; empty arrays collapse to None."""
    if not value:
        return None
    try:
        tags = json.loads(value)
    except ValueError:
        return None
    if not isinstance(tags, list):
        return None
    tags = [str(t) for t in tags if str(t).strip()]
    return tags or None


# =============================================================================
# DATACLASSES
# =============================================================================


@dataclass
class Contact:
    """A person to call.

    Attributes:
        id: Opaque unique id, assigned at persistence time
        full_name: Display name (mandatory)
        phone: Trimmed free-form phone number (mandatory)
        org: Organization
        email: Email address
        tags: Short labels; None when the contact has none
        last_engaged_at: Timestamp of the latest interaction, None if never engaged
        last_engaged_by: Actor of the latest interaction
        created_at: When the contact was persisted
    """

    id: str = ""
    full_name: str = ""
    phone: str = ""
    org: Optional[str] = None
    email: Optional[str] = None
    tags: Optional[list[str]] = None
    last_engaged_at: Optional[datetime] = None
    last_engaged_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_engaged(self) -> bool:
        """True once any interaction has been recorded."""
        return self.last_engaged_at is not None


@dataclass(frozen=True)
class Interaction:
    """One engagement event in the ledger.

    Attributes:
        id: Primary key
        contact_id: Owning contact (never reparented)
        type: Interaction tag ("note", "call", ...)
        note: Free text; required for notes
        actor: Who recorded it
        created_at: When it was recorded
    """

    id: Optional[int]
    contact_id: str
    type: str
    note: Optional[str]
    actor: str
    created_at: datetime

    @property
    def engagement(self) -> "Engagement":
        return Engagement(at=self.created_at, by=self.actor)


@dataclass(frozen=True)
class Engagement:
    """Latest-engagement pair cached on Contact."""

    at: datetime
    by: Optional[str]
