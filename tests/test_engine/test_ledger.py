"""Tests for the engagement ledger."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from callsheet.core.exceptions import DatabaseError, ValidationError
from callsheet.db.database import Database
from callsheet.db.models import Engagement, InteractionType
from callsheet.engine.ledger import EngagementLedger

# =========================================================================
# HELPERS
# =========================================================================


class FrozenClock:
    """Clock returning a fixed instant until moved."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 6, 1, 10, 0, 0))


@pytest.fixture
def ledger(memory_db: Database, clock: FrozenClock) -> EngagementLedger:
    return EngagementLedger(memory_db, actor="priya", clock=clock)


# =========================================================================
# RECORDING
# =========================================================================


class TestRecordInteraction:
    """Test record-and-refresh."""

    def test_note_updates_contact(self, memory_db, add_contacts, ledger, clock):
        """A note sets last_engaged_at/by on the contact."""
        (contact_id,) = add_contacts(("Asha", "1"))

        interaction = ledger.record_interaction(contact_id, "note", "  Interested  ")

        assert interaction.type == "note"
        assert interaction.note == "Interested"
        assert interaction.actor == "priya"
        assert interaction.created_at == clock.now

        contact = memory_db.get_contact(contact_id)
        assert contact.last_engaged_at == clock.now
        assert contact.last_engaged_by == "priya"

    def test_call_without_note(self, memory_db, add_contacts, ledger):
        """Calls do not need a note."""
        (contact_id,) = add_contacts(("Asha", "1"))
        interaction = ledger.record_interaction(contact_id, InteractionType.CALL)
        assert interaction.type == "call"
        assert interaction.note is None

    def test_custom_type_accepted(self, add_contacts, ledger):
        """Any non-empty tag is a valid interaction type."""
        (contact_id,) = add_contacts(("Asha", "1"))
        assert ledger.record_interaction(contact_id, "whatsapp").type == "whatsapp"

    def test_explicit_actor_overrides_default(self, add_contacts, ledger):
        """A per-call actor wins over the ledger default."""
        (contact_id,) = add_contacts(("Asha", "1"))
        assert ledger.record_interaction(contact_id, "call", actor="ravi").actor == "ravi"

    def test_default_actor_from_config(self, memory_db, add_contacts):
        """Without an actor the configured CALLSHEET_USER is used."""
        (contact_id,) = add_contacts(("Asha", "1"))
        interaction = EngagementLedger(memory_db).record_interaction(contact_id, "call")
        assert interaction.actor == "tester"

    @pytest.mark.parametrize("note", [None, "", "   "])
    def test_blank_note_rejected(self, memory_db, add_contacts, ledger, note):
        """A note interaction needs text; nothing is written."""
        (contact_id,) = add_contacts(("Asha", "1"))
        with pytest.raises(ValidationError):
            ledger.record_interaction(contact_id, "note", note)
        assert memory_db.get_interactions(contact_id) == []
        assert memory_db.get_contact(contact_id).last_engaged_at is None

    def test_empty_type_rejected(self, add_contacts, ledger):
        """The interaction type is required."""
        (contact_id,) = add_contacts(("Asha", "1"))
        with pytest.raises(ValidationError):
            ledger.record_interaction(contact_id, "  ")

    def test_unknown_contact_rejected(self, memory_db, ledger):
        """Interactions must reference an existing contact."""
        with pytest.raises(ValidationError, match="not found"):
            ledger.record_interaction("missing", "call")

    def test_database_failure_propagates(self, memory_db, add_contacts, ledger):
        """A failed write surfaces as DatabaseError and leaves no trace."""
        (contact_id,) = add_contacts(("Asha", "1"))
        with patch.object(
            memory_db, "append_interaction", side_effect=DatabaseError("locked")
        ):
            with pytest.raises(DatabaseError):
                ledger.record_interaction(contact_id, "call")
        assert memory_db.get_contact(contact_id).last_engaged_at is None


class TestMonotonicTimestamps:
    """Test per-contact ordering of interaction timestamps."""

    def test_same_instant_is_bumped(self, add_contacts, ledger, clock):
        """Two interactions in the same tick still order strictly."""
        (contact_id,) = add_contacts(("Asha", "1"))
        first = ledger.record_interaction(contact_id, "call")
        second = ledger.record_interaction(contact_id, "note", "follow-up")

        assert second.created_at > first.created_at
        assert ledger.latest_engagement(contact_id).at == second.created_at

    def test_clock_going_backwards(self, memory_db, add_contacts, ledger, clock):
        """A clock step backwards cannot reorder the ledger."""
        (contact_id,) = add_contacts(("Asha", "1"))
        first = ledger.record_interaction(contact_id, "call")
        clock.advance(hours=-1)
        second = ledger.record_interaction(contact_id, "note", "later")

        assert second.created_at > first.created_at
        assert memory_db.get_contact(contact_id).last_engaged_at == second.created_at

    def test_other_contacts_unaffected(self, add_contacts, ledger, clock):
        """The bump is per contact."""
        a, b = add_contacts(("A", "1"), ("B", "2"))
        ledger.record_interaction(a, "call")
        other = ledger.record_interaction(b, "call")
        assert other.created_at == clock.now


# =========================================================================
# READS
# =========================================================================


class TestLedgerReads:
    """Test ledger queries and consistency."""

    def test_latest_engagement_none_for_new_contact(self, add_contacts, ledger):
        """A never-engaged contact has no engagement."""
        (contact_id,) = add_contacts(("Asha", "1"))
        assert ledger.latest_engagement(contact_id) is None

    def test_cache_agrees_after_many_writes(self, memory_db, add_contacts, ledger, clock):
        """After any sequence of writes the cache matches the ledger."""
        a, b = add_contacts(("A", "1"), ("B", "2"))
        for i in range(5):
            clock.advance(minutes=1)
            ledger.record_interaction(a if i % 2 else b, "note", f"n{i}", actor=f"u{i}")

        for contact_id in (a, b):
            contact = memory_db.get_contact(contact_id)
            latest = ledger.latest_engagement(contact_id)
            assert latest == Engagement(at=contact.last_engaged_at, by=contact.last_engaged_by)
            assert ledger.is_consistent(contact_id)

    def test_is_consistent_detects_drift(self, memory_db, add_contacts, ledger):
        """A hand-edited cache is detected and reconciled."""
        (contact_id,) = add_contacts(("Asha", "1"))
        ledger.record_interaction(contact_id, "call")
        conn = memory_db._get_connection()
        conn.execute("UPDATE contacts SET last_engaged_by = 'ghost'")
        conn.commit()

        assert ledger.is_consistent(contact_id) is False
        assert ledger.reconcile() == 1
        assert ledger.is_consistent(contact_id) is True
        assert ledger.reconcile() == 0

    def test_is_consistent_unknown_contact(self, ledger):
        """Unknown contacts are never consistent."""
        assert ledger.is_consistent("missing") is False

    def test_recent_notes_most_recent_first(self, add_contacts, ledger, clock):
        """Only interactions with text, newest first, capped."""
        (contact_id,) = add_contacts(("Asha", "1"))
        for i in range(7):
            clock.advance(minutes=1)
            ledger.record_interaction(contact_id, "note", f"note {i}")
        clock.advance(minutes=1)
        ledger.record_interaction(contact_id, "call")

        assert ledger.recent_notes(contact_id) == [
            "note 6",
            "note 5",
            "note 4",
            "note 3",
            "note 2",
        ]

    def test_interactions_for_and_counts(self, add_contacts, ledger):
        """Per-contact history and counts come from the ledger."""
        a, b = add_contacts(("A", "1"), ("B", "2"))
        ledger.record_interaction(a, "call")
        ledger.record_interaction(a, "note", "x")

        assert [i.type for i in ledger.interactions_for(a)] == ["note", "call"]
        assert ledger.interactions_for(b) == []
        assert ledger.interaction_counts() == {a: 2}
