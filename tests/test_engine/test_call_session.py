"""Tests for call session service."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from callsheet.ai.advisor import CallAdvisor, ScriptSuggestion
from callsheet.core.exceptions import ActionInProgressError, DatabaseError, ValidationError
from callsheet.db.database import Database
from callsheet.engine.call_session import CallSession
from callsheet.engine.queue import QueueFilter, QueueStats


@pytest.fixture
def advisor() -> MagicMock:
    """Advisor double; real prompts are covered in test_advisor."""
    return MagicMock(spec=CallAdvisor)


@pytest.fixture
def session(populated_db: Database, advisor: MagicMock) -> CallSession:
    return CallSession(populated_db, advisor=advisor)


def _ids_by_name(db: Database) -> dict[str, str]:
    return {c.full_name: c.id for c in db.list_contacts()}


class TestLoadQueue:
    """Test queue loading and filters."""

    def test_staleness_order(self, session, populated_db):
        """Never-engaged contacts lead, engaged contacts follow."""
        ids = _ids_by_name(populated_db)
        assert session.load_queue() == [ids["Xavier"], ids["Zara"], ids["Yusuf"]]
        assert session.queue_filter is QueueFilter.ALL

    def test_never_filter(self, session, populated_db):
        """NEVER hides engaged contacts."""
        ids = _ids_by_name(populated_db)
        assert session.load_queue(QueueFilter.NEVER) == [ids["Xavier"], ids["Zara"]]

    def test_priority_overlay(self, session, populated_db):
        """A priority list reorders the queue without changing its members."""
        ids = _ids_by_name(populated_db)
        queue = session.load_queue(priority=[ids["Yusuf"], "unknown"])
        assert queue == [ids["Yusuf"], ids["Xavier"], ids["Zara"]]

    def test_stats(self, session):
        """Contacted / total counts over all contacts."""
        assert session.stats() == QueueStats(total=3, contacted=1)


class TestInteractions:
    """Test note saving and call logging."""

    def test_save_note_moves_contact_to_back(self, session, populated_db):
        """After a note the contact is the most recently engaged."""
        ids = _ids_by_name(populated_db)
        session.load_queue()

        interaction = session.save_note(ids["Xavier"], "Asked for pricing")

        assert interaction.note == "Asked for pricing"
        assert interaction.actor == "tester"
        assert session.queue == [ids["Zara"], ids["Yusuf"], ids["Xavier"]]
        assert session.stats().contacted == 2

    def test_save_note_under_never_filter_drops_contact(self, session, populated_db):
        """The re-read queue respects the current filter."""
        ids = _ids_by_name(populated_db)
        session.load_queue(QueueFilter.NEVER)
        session.save_note(ids["Zara"], "Left voicemail")
        assert session.queue == [ids["Xavier"]]

    def test_log_call(self, session, populated_db):
        """Calls are recorded with an optional note."""
        ids = _ids_by_name(populated_db)
        interaction = session.log_call(ids["Zara"])
        assert interaction.type == "call"
        assert interaction.note is None
        assert populated_db.get_contact(ids["Zara"]).last_engaged_by == "tester"

    def test_blank_note_rejected(self, session, populated_db):
        """Blank notes raise and leave the queue as it was."""
        ids = _ids_by_name(populated_db)
        before = session.load_queue()
        with pytest.raises(ValidationError):
            session.save_note(ids["Xavier"], "   ")
        assert session.queue == before

    def test_failed_write_keeps_queue(self, session, populated_db):
        """A database failure does not change the displayed queue."""
        ids = _ids_by_name(populated_db)
        before = session.load_queue()
        with patch.object(
            populated_db, "append_interaction", side_effect=DatabaseError("locked")
        ):
            with pytest.raises(DatabaseError):
                session.save_note(ids["Xavier"], "hello")
        assert session.queue == before
        assert populated_db.get_contact(ids["Xavier"]).last_engaged_at is None

    def test_double_submission_rejected(self, populated_db):
        """A second save for the same contact while one is running is refused."""
        ids = _ids_by_name(populated_db)
        ledger = MagicMock()
        session = CallSession(populated_db, ledger=ledger)

        def reentrant(contact_id, *args, **kwargs):
            with pytest.raises(ActionInProgressError):
                session.save_note(contact_id, "again")
            return MagicMock()

        ledger.record_interaction.side_effect = reentrant
        session.save_note(ids["Xavier"], "first")
        assert ledger.record_interaction.call_count == 1

    def test_guard_released_after_failure(self, session, populated_db):
        """A failed save does not block the next one."""
        ids = _ids_by_name(populated_db)
        with pytest.raises(ValidationError):
            session.save_note(ids["Xavier"], "")
        assert session.save_note(ids["Xavier"], "ok").note == "ok"


class TestPrepareCall:
    """Test call preparation."""

    def test_links_and_notes(self, session, populated_db, monkeypatch):
        """Dial links and the note history are gathered."""
        monkeypatch.setenv("DEFAULT_COUNTRY_CODE", "+91")
        ids = _ids_by_name(populated_db)
        session.save_note(ids["Xavier"], "Busy, call back")

        prep = session.prepare_call(ids["Xavier"])

        assert prep.contact.full_name == "Xavier"
        assert prep.tel_link == "tel:111"
        assert prep.whatsapp_link == "https://wa.me/91111"
        assert prep.recent_notes == ["Busy, call back"]

    def test_unknown_contact(self, session):
        """Unknown contacts raise ValidationError."""
        with pytest.raises(ValidationError):
            session.prepare_call("missing")


class TestAIPrioritize:
    """Test AI ordering through the session."""

    def test_payload_shape(self, session, populated_db):
        """The payload summarizes every contact in queue order."""
        ids = _ids_by_name(populated_db)
        payload = session.prioritization_payload()

        contacts = payload["contacts"]
        assert [c["id"] for c in contacts] == [ids["Xavier"], ids["Zara"], ids["Yusuf"]]
        yusuf = contacts[2]
        assert yusuf["full_name"] == "Yusuf"
        assert yusuf["last_engaged_at"] == datetime(2024, 1, 1, 9, 0).isoformat()
        assert yusuf["interactions_count"] == 1
        assert yusuf["tags"] == []
        assert contacts[0]["last_engaged_at"] is None
        assert contacts[0]["interactions_count"] == 0

    def test_payload_respects_filter(self, session):
        """NEVER only sends never-engaged contacts."""
        payload = session.prioritization_payload(QueueFilter.NEVER)
        assert [c["full_name"] for c in payload["contacts"]] == ["Xavier", "Zara"]

    def test_applies_suggested_order(self, session, populated_db, advisor):
        """Suggested ids come first; missing ones are appended."""
        ids = _ids_by_name(populated_db)
        advisor.suggest_order.return_value = [ids["Zara"], "hallucinated", ids["Zara"]]

        queue = session.ai_prioritize()

        assert queue == [ids["Zara"], ids["Xavier"], ids["Yusuf"]]
        assert session.queue == queue

    def test_no_suggestion_keeps_queue(self, session, populated_db, advisor):
        """A failed suggestion leaves the queue unchanged."""
        before = session.load_queue()
        advisor.suggest_order.return_value = None
        assert session.ai_prioritize() == before

    def test_engaging_ai_top_contact_moves_it_back(self, session, populated_db, advisor):
        """A note on the AI's first pick drops the ranking and re-sorts by staleness."""
        ids = _ids_by_name(populated_db)
        advisor.suggest_order.return_value = [ids["Yusuf"]]
        assert session.ai_prioritize()[0] == ids["Yusuf"]

        session.save_note(ids["Yusuf"], "Called, interested")

        assert session.queue == [ids["Xavier"], ids["Zara"], ids["Yusuf"]]

    def test_call_after_ai_order_restores_staleness_order(self, session, populated_db, advisor):
        """Logging a call re-reads the queue without the AI ranking."""
        ids = _ids_by_name(populated_db)
        advisor.suggest_order.return_value = [ids["Yusuf"], ids["Zara"]]
        assert session.ai_prioritize() == [ids["Yusuf"], ids["Zara"], ids["Xavier"]]

        session.log_call(ids["Xavier"])

        assert session.queue == [ids["Zara"], ids["Yusuf"], ids["Xavier"]]


class TestAIScript:
    """Test AI script requests through the session."""

    def test_passes_recent_notes(self, session, populated_db, advisor):
        """The advisor receives the contact and recent notes, newest first."""
        ids = _ids_by_name(populated_db)
        session.save_note(ids["Xavier"], "first")
        session.save_note(ids["Xavier"], "second")
        advisor.draft_script.return_value = ScriptSuggestion("Hi", "Hello")

        suggestion = session.ai_script(ids["Xavier"])

        assert suggestion.available is True
        contact, notes = advisor.draft_script.call_args[0]
        assert contact.id == ids["Xavier"]
        assert notes == ["second", "first"]

    def test_unavailable_passed_through(self, session, populated_db, advisor):
        """Advisor failures surface as an unavailable suggestion."""
        ids = _ids_by_name(populated_db)
        advisor.draft_script.return_value = ScriptSuggestion.unavailable()
        assert session.ai_script(ids["Zara"]).available is False

    def test_unknown_contact(self, session, advisor):
        """No advisor call for unknown contacts."""
        with pytest.raises(ValidationError):
            session.ai_script("missing")
        advisor.draft_script.assert_not_called()
