"""Shared pytest fixtures for Callsheet tests.

Fixtures:
    - temp_db: Fresh file-backed SQLite database
    - memory_db: Fresh in-memory SQLite database
    - mock_config: Test configuration with temp paths and no API keys
    - sample_contact: Unsaved Contact record
    - add_contacts: Helper that inserts contacts and returns their ids
    - populated_db: memory_db with three contacts, one already engaged
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Generator

import pytest

from callsheet.core.config import Config, reset_config
from callsheet.db.database import Database
from callsheet.db.models import Contact


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep the config singleton from leaking between tests."""
    monkeypatch.setenv("CALLSHEET_USER", "tester")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a temporary database for testing.

    Yields:
        Database connected to temp file, cleaned up after test
    """
    db_path = tmp_path / "test.db"
    db = Database(str(db_path))
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def memory_db() -> Generator[Database, None, None]:
    """Create an in-memory database for fast tests.

    Yields:
        Database using :memory:, no cleanup needed
    """
    db = Database(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Test configuration with temp paths."""
    return Config(
        db_path=tmp_path / "test.db",
        log_path=tmp_path / "logs",
        actor="tester",
        openrouter_api_key=None,
        claude_api_key=None,
        debug=True,
    )


@pytest.fixture
def sample_contact() -> Contact:
    """Sample Contact record for testing."""
    return Contact(
        full_name="Asha Rao",
        phone="+91 98450 12345",
        org="Rao Logistics",
        email="asha@raologistics.in",
        tags=["warm", "demo"],
    )


@pytest.fixture
def add_contacts(memory_db: Database) -> Callable[..., list[str]]:
    """Insert contacts by (name, phone) pairs into memory_db."""

    def _add(*pairs: tuple[str, str]) -> list[str]:
        return memory_db.insert_contacts(
            [Contact(full_name=name, phone=phone) for name, phone in pairs]
        )

    return _add


@pytest.fixture
def populated_db(memory_db: Database, add_contacts) -> Database:
    """Database with Xavier and Zara never engaged and Yusuf engaged."""
    ids = add_contacts(("Xavier", "111"), ("Yusuf", "222"), ("Zara", "333"))
    memory_db.append_interaction(
        contact_id=ids[1],
        interaction_type="call",
        note=None,
        actor="tester",
        created_at=datetime(2024, 1, 1, 9, 0),
    )
    return memory_db


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests requiring external services")
    config.addinivalue_line("markers", "database: marks tests requiring database")
