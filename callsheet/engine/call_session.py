"""Call session service for calling mode.

Ties the pieces of a calling session together:
    - The staleness-ordered queue, with an optional AI overlay
    - Contacted / total counts
    - Saving notes and logging calls through the ledger
    - AI call scripts and prioritization
    - Dial and WhatsApp links for the current contact

The queue is re-read from the store after every mutation; it is never
patched in place.

Usage:
    from callsheet.engine.call_session import CallSession

    session = CallSession(db)
    queue = session.load_queue()
    session.save_note(queue[0], "Asked for a demo next week")
    session.stats()
"""

import threading
from collections.abc import Hashable
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence, Union

from callsheet.ai.advisor import CallAdvisor, ScriptSuggestion
from callsheet.core.config import get_config
from callsheet.core.exceptions import ActionInProgressError, ValidationError
from callsheet.core.logging import get_logger
from callsheet.db.database import Database
from callsheet.db.models import Contact, Interaction, InteractionType
from callsheet.engine.ledger import EngagementLedger
from callsheet.engine.overlay import apply_priority_overlay
from callsheet.engine.queue import (
    QueueFilter,
    QueueStats,
    build_queue,
    order_contacts,
    queue_stats,
)
from callsheet.integrations.dial_links import tel_link, whatsapp_link

logger = get_logger(__name__)

RECENT_NOTES_LIMIT = 5


@dataclass
class CallPrep:
    """Prepared data for one phone call.

    Attributes:
        contact: Contact being called
        tel_link: tel: URI, None if the phone has no digits
        whatsapp_link: wa.me link, None if the phone has no digits
        recent_notes: Most recent notes first
    """

    contact: Contact
    tel_link: Optional[str] = None
    whatsapp_link: Optional[str] = None
    recent_notes: list[str] = field(default_factory=list)


class CallSession:
    """Manages the business logic for calling mode.

    Attributes:
        queue: Contact ids in the current calling order
        queue_filter: Filter the queue was last loaded with
    """

    def __init__(
        self,
        db: Database,
        advisor: Optional[CallAdvisor] = None,
        ledger: Optional[EngagementLedger] = None,
    ) -> None:
        self._db = db
        self._advisor = advisor
        self._ledger = ledger or EngagementLedger(db)
        self._priority: Optional[list] = None
        self._pending: set[Hashable] = set()
        self._lock = threading.Lock()

        self.queue: list[str] = []
        self.queue_filter = QueueFilter.ALL

    @property
    def advisor(self) -> CallAdvisor:
        if self._advisor is None:
            self._advisor = CallAdvisor()
        return self._advisor

    @contextmanager
    def _in_flight(self, key: Hashable) -> Iterator[None]:
        """Reject a second submission of the same action while one runs."""
        with self._lock:
            if key in self._pending:
                raise ActionInProgressError(f"Already in progress: {key}")
            self._pending.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._pending.discard(key)

    # =========================================================================
    # QUEUE
    # =========================================================================

    def load_queue(
        self,
        queue_filter: Union[QueueFilter, str] = QueueFilter.ALL,
        priority: Optional[Sequence[Any]] = None,
    ) -> list[str]:
        """Read contacts and rebuild the queue.

        Args:
            queue_filter: ALL or NEVER
            priority: Optional external order merged on top

        Returns:
            The new queue (also kept on ``self.queue``)
        """
        self.queue_filter = QueueFilter(queue_filter)
        self._priority = list(priority) if priority else None

        ids = build_queue(self._db.list_contacts(), self.queue_filter)
        if self._priority:
            ids = apply_priority_overlay(ids, self._priority)
        self.queue = ids
        return list(ids)

    def _reload(self) -> None:
        """Re-read after an engagement; any AI ranking is dropped."""
        self.load_queue(self.queue_filter)

    def stats(self) -> QueueStats:
        """Contacted / total counts over all contacts."""
        return queue_stats(self._db.list_contacts())

    def prepare_call(self, contact_id: str) -> CallPrep:
        """Gather links and note history for a contact.

        Raises:
            ValidationError: If the contact does not exist
        """
        contact = self._get_contact(contact_id)
        return CallPrep(
            contact=contact,
            tel_link=tel_link(contact.phone),
            whatsapp_link=whatsapp_link(contact.phone, get_config().default_country_code),
            recent_notes=self._ledger.recent_notes(contact_id, RECENT_NOTES_LIMIT),
        )

    def _get_contact(self, contact_id: str) -> Contact:
        contact = self._db.get_contact(contact_id)
        if contact is None:
            raise ValidationError(f"Contact {contact_id} not found")
        return contact

    # =========================================================================
    # INTERACTIONS
    # =========================================================================

    def save_note(self, contact_id: str, note: str) -> Interaction:
        """Record a note and refresh the queue.

        Raises:
            ValidationError: Blank note or unknown contact
            ActionInProgressError: A save for this contact is already running
            DatabaseError: The write failed; the queue is left as it was
        """
        with self._in_flight(("interaction", contact_id)):
            interaction = self._ledger.record_interaction(
                contact_id, InteractionType.NOTE, note
            )
            self._reload()
        return interaction

    def log_call(self, contact_id: str, note: Optional[str] = None) -> Interaction:
        """Record a call (optionally with a note) and refresh the queue."""
        with self._in_flight(("interaction", contact_id)):
            interaction = self._ledger.record_interaction(
                contact_id, InteractionType.CALL, note
            )
            self._reload()
        return interaction

    # =========================================================================
    # AI SUGGESTIONS
    # =========================================================================

    def prioritization_payload(
        self, queue_filter: Union[QueueFilter, str] = QueueFilter.ALL
    ) -> dict[str, list[dict[str, Any]]]:
        """Contacts summary sent to the advisor for ranking."""
        counts = self._ledger.interaction_counts()
        contacts = order_contacts(self._db.list_contacts(), queue_filter)
        return {
            "contacts": [
                {
                    "id": c.id,
                    "full_name": c.full_name,
                    "last_engaged_at": (
                        c.last_engaged_at.isoformat() if c.last_engaged_at else None
                    ),
                    "interactions_count": counts.get(c.id, 0),
                    "tags": c.tags or [],
                }
                for c in contacts
            ]
        }

    def ai_prioritize(
        self, queue_filter: Union[QueueFilter, str] = QueueFilter.ALL
    ) -> list[str]:
        """Ask the advisor for an order and overlay it on the queue.

        Without a usable suggestion the queue keeps its current order.

        Returns:
            The queue after the merge
        """
        with self._in_flight(("prioritize",)):
            queue_filter = QueueFilter(queue_filter)
            payload = self.prioritization_payload(queue_filter)
            ordered = self.advisor.suggest_order(payload)

            if ordered is None:
                logger.info("No AI ordering; queue unchanged")
                return self.load_queue(queue_filter, self._priority)

            queue = self.load_queue(queue_filter, ordered)
            logger.info(
                "AI ordering applied",
                extra={"context": {"queue": len(queue), "suggested": len(ordered)}},
            )
            return queue

    def ai_script(self, contact_id: str) -> ScriptSuggestion:
        """Draft a call script from the contact and its recent notes.

        Raises:
            ValidationError: If the contact does not exist
        """
        with self._in_flight(("script", contact_id)):
            contact = self._get_contact(contact_id)
            notes = self._ledger.recent_notes(contact_id, RECENT_NOTES_LIMIT)
            return self.advisor.draft_script(contact, notes)
