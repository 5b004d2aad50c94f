"""Calling queue builder.

Staleness first: contacts never engaged come before everyone else,
then the longest-ago engagement. Ties fall back to creation time, then
to the order the store delivered them, so repeated builds agree.

The builder is a pure function of the contacts passed in. Callers
re-read contacts after every mutation instead of patching a queue.

Usage:
    from callsheet.engine.queue import QueueFilter, build_queue

    ids = build_queue(db.list_contacts(), QueueFilter.NEVER)
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Union

from callsheet.db.models import Contact


class QueueFilter(str, Enum):
    """Which contacts the queue shows.

    Values:
        ALL: Every contact
        NEVER: Only contacts never engaged
    """

    ALL = "all"
    NEVER = "never"


@dataclass(frozen=True)
class QueueStats:
    """Header counts for calling mode."""

    total: int
    contacted: int

    @property
    def never_contacted(self) -> int:
        return self.total - self.contacted


def _sort_key(contact: Contact) -> tuple[bool, datetime, datetime]:
    engaged = contact.last_engaged_at is not None
    return (
        engaged,
        contact.last_engaged_at or datetime.min,
        contact.created_at or datetime.min,
    )


def order_contacts(
    contacts: Iterable[Contact],
    queue_filter: Union[QueueFilter, str] = QueueFilter.ALL,
) -> list[Contact]:
    """Contacts in calling order.

    Args:
        contacts: Current contact set, in the order the store delivered it
        queue_filter: ALL, or NEVER to keep only never-engaged contacts

    Returns:
        New list; the input is not modified
    """
    queue_filter = QueueFilter(queue_filter)
    ordered = sorted(contacts, key=_sort_key)
    if queue_filter is QueueFilter.NEVER:
        ordered = [c for c in ordered if c.last_engaged_at is None]
    return ordered


def build_queue(
    contacts: Iterable[Contact],
    queue_filter: Union[QueueFilter, str] = QueueFilter.ALL,
) -> list[str]:
    """Contact ids in calling order (see order_contacts)."""
    return [c.id for c in order_contacts(contacts, queue_filter)]


def queue_stats(contacts: Iterable[Contact]) -> QueueStats:
    contacts = list(contacts)
    contacted = sum(1 for c in contacts if c.last_engaged_at is not None)
    return QueueStats(total=len(contacts), contacted=contacted)
