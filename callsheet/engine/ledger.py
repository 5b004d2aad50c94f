"""Engagement ledger - append-only interaction log.

Every interaction is written together with the owning contact's
last_engaged_at / last_engaged_by in one transaction, so the contact's
cached fields always match the newest ledger entry.

Usage:
    from callsheet.engine.ledger import EngagementLedger

    ledger = EngagementLedger(db)
    ledger.record_interaction(contact_id, "note", "called, interested")
    ledger.latest_engagement(contact_id)
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from callsheet.core.config import get_config
from callsheet.core.exceptions import ValidationError
from callsheet.core.logging import get_logger
from callsheet.db.database import Database
from callsheet.db.models import Engagement, Interaction, InteractionType, utc_now

logger = get_logger(__name__)

# Smallest step used to keep timestamps strictly increasing per contact
_TICK = timedelta(microseconds=1)


class EngagementLedger:
    """Records interactions and answers "who engaged whom, and when".

    Attributes:
        db: Persistence collaborator
        actor: Default actor for new interactions (config actor if None)
    """

    def __init__(
        self,
        db: Database,
        actor: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.actor = actor
        self._clock = clock

    def _resolve_actor(self, actor: Optional[str]) -> str:
        return actor or self.actor or get_config().actor

    def record_interaction(
        self,
        contact_id: str,
        interaction_type: Union[InteractionType, str],
        note: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Interaction:
        """Append one interaction and refresh the contact's engagement cache.

        Args:
            contact_id: Contact engaged
            interaction_type: "note", "call" or any other non-empty tag
            note: Free text; required (non-blank) for notes
            actor: Who engaged (defaults to the ledger/config actor)

        Returns:
            The stored Interaction

        Raises:
            ValidationError: Empty type, blank note on a note, unknown contact.
                Nothing is written.
            DatabaseError: The transaction failed. Nothing is written.
        """
        kind = (
            interaction_type.value
            if isinstance(interaction_type, InteractionType)
            else str(interaction_type or "").strip()
        )
        if not kind:
            raise ValidationError("Interaction type is required")

        text = (note or "").strip() or None
        if kind == InteractionType.NOTE.value and text is None:
            raise ValidationError("A note interaction needs non-empty text")

        if self.db.get_contact(contact_id) is None:
            raise ValidationError(f"Contact {contact_id} not found")

        created_at = self._clock()
        latest = self.db.get_latest_interaction(contact_id)
        if latest is not None and created_at <= latest.created_at:
            created_at = latest.created_at + _TICK

        interaction = self.db.append_interaction(
            contact_id=contact_id,
            interaction_type=kind,
            note=text,
            actor=self._resolve_actor(actor),
            created_at=created_at,
        )

        logger.info(
            "Interaction recorded",
            extra={
                "context": {
                    "contact_id": contact_id,
                    "type": kind,
                    "actor": interaction.actor,
                }
            },
        )
        return interaction

    def latest_engagement(self, contact_id: str) -> Optional[Engagement]:
        """Newest engagement according to the ledger itself."""
        latest = self.db.get_latest_interaction(contact_id)
        return latest.engagement if latest is not None else None

    def is_consistent(self, contact_id: str) -> bool:
        """True when the contact's cached fields match the ledger."""
        contact = self.db.get_contact(contact_id)
        if contact is None:
            return False
        latest = self.latest_engagement(contact_id)
        if latest is None:
            return contact.last_engaged_at is None and contact.last_engaged_by is None
        return (contact.last_engaged_at, contact.last_engaged_by) == (latest.at, latest.by)

    def reconcile(self, contact_id: Optional[str] = None) -> int:
        """Recompute cached engagement fields from the ledger.

        Returns:
            Number of contacts corrected
        """
        return len(self.db.recompute_engagement(contact_id))

    def interactions_for(self, contact_id: str, limit: Optional[int] = None) -> list[Interaction]:
        """Interactions for a contact, most recent first."""
        return self.db.get_interactions(contact_id, limit=limit)

    def interaction_counts(self) -> dict[str, int]:
        return self.db.get_interaction_counts()

    def recent_notes(self, contact_id: str, limit: int = 5) -> list[str]:
        """Text of the most recent interactions that carry a note."""
        notes = [i.note for i in self.db.get_interactions(contact_id) if i.note]
        return notes[:limit]
