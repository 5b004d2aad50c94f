"""SQLite database connection and operations for Callsheet.

Provides:
    - Connection management with WAL mode
    - Schema creation
    - Contact batch insert and reads
    - The record-and-refresh interaction write (one transaction)
    - Ledger reads and cache recomputation

Usage:
    from callsheet.db.database import Database

    db = Database()
    db.initialize()

    ids = db.insert_contacts([Contact(full_name="Asha Rao", phone="98450 12345")])
"""

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from callsheet.core.config import get_config
from callsheet.core.exceptions import DatabaseError
from callsheet.core.logging import get_logger
from callsheet.db.models import (
    Contact,
    Interaction,
    from_db_tags,
    from_db_timestamp,
    to_db_tags,
    to_db_timestamp,
    utc_now,
)

logger = get_logger(__name__)


# Schema version for migrations
SCHEMA_VERSION = 1


class Database:
    """SQLite database manager.

    Attributes:
        db_path: Path to database file
    """

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database.

        Args:
            db_path: Path to database file. Use ":memory:" for in-memory.
                    Defaults to config path.
        """
        if db_path is None:
            self.db_path = str(get_config().db_path)
        else:
            self.db_path = str(db_path)

        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

                self._conn = sqlite3.connect(self.db_path)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA foreign_keys = ON")

                if self.db_path != ":memory:":
                    self._conn.execute("PRAGMA journal_mode = WAL")

            except sqlite3.Error as e:
                raise DatabaseError(f"Cannot connect to database: {e}") from e

        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def initialize(self) -> None:
        """Create schema if not exists."""
        conn = self._get_connection()

        try:
            conn.executescript(self._get_schema_ddl())
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()
            logger.info("Database initialized", extra={"context": {"path": self.db_path}})
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot initialize database: {e}") from e

    def _get_schema_ddl(self) -> str:
        """Return complete schema DDL.

        Timestamps are TEXT so microsecond ordering survives round trips.
        ``seq`` records insertion order for contacts created in one batch.
        """
        return """
        CREATE TABLE IF NOT EXISTS contacts (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            full_name TEXT NOT NULL CHECK (length(trim(full_name)) > 0),
            org TEXT,
            phone TEXT NOT NULL CHECK (length(trim(phone)) > 0),
            email TEXT,
            tags TEXT,
            last_engaged_at TEXT,
            last_engaged_by TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_contacts_last_engaged ON contacts(last_engaged_at);
        CREATE INDEX IF NOT EXISTS idx_contacts_phone ON contacts(phone);

        CREATE TABLE IF NOT EXISTS interactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            contact_id TEXT NOT NULL,
            type TEXT NOT NULL,
            note TEXT,
            actor TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (contact_id) REFERENCES contacts(id)
        );

        CREATE INDEX IF NOT EXISTS idx_interactions_contact
            ON interactions(contact_id, created_at);
        """

    def _row_to_contact(self, row: sqlite3.Row) -> Contact:
        """Convert a database row to a Contact dataclass."""
        return Contact(
            id=row["id"],
            full_name=row["full_name"],
            phone=row["phone"],
            org=row["org"],
            email=row["email"],
            tags=from_db_tags(row["tags"]),
            last_engaged_at=from_db_timestamp(row["last_engaged_at"]),
            last_engaged_by=row["last_engaged_by"],
            created_at=from_db_timestamp(row["created_at"]),
        )

    def _row_to_interaction(self, row: sqlite3.Row) -> Interaction:
        """Convert a database row to an Interaction dataclass."""
        created_at = from_db_timestamp(row["created_at"])
        if created_at is None:
            raise DatabaseError(f"Interaction {row['id']} has no created_at")
        return Interaction(
            id=row["id"],
            contact_id=row["contact_id"],
            type=row["type"],
            note=row["note"],
            actor=row["actor"],
            created_at=created_at,
        )

    # =========================================================================
    # CONTACT OPERATIONS
    # =========================================================================

    def insert_contacts(self, contacts: list[Contact]) -> list[str]:
        """Insert a batch of contacts in one transaction.

        Ids and created_at are assigned here; engagement fields are
        always written empty because a new contact has no ledger entries.

        Args:
            contacts: Contacts to create (their id/created_at are ignored)

        Returns:
            Ids of the created contacts, in batch order

        Raises:
            DatabaseError: If any row fails; nothing is committed
        """
        if not contacts:
            return []

        conn = self._get_connection()
        created_at = to_db_timestamp(utc_now())
        ids: list[str] = []

        try:
            for contact in contacts:
                contact_id = uuid.uuid4().hex
                conn.execute(
                    """INSERT INTO contacts
                       (id, full_name, org, phone, email, tags, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        contact_id,
                        contact.full_name,
                        contact.org,
                        contact.phone,
                        contact.email,
                        to_db_tags(contact.tags),
                        created_at,
                    ),
                )
                ids.append(contact_id)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to insert contacts: {e}") from e

        logger.info("Contacts inserted", extra={"context": {"count": len(ids)}})
        return ids

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        """Get contact by id."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read contact: {e}") from e
        if row is None:
            return None
        return self._row_to_contact(row)

    def list_contacts(self) -> list[Contact]:
        """All contacts in insertion order."""
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT * FROM contacts ORDER BY seq").fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to list contacts: {e}") from e
        return [self._row_to_contact(row) for row in rows]

    def count_contacts(self) -> int:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM contacts").fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count contacts: {e}") from e
        return int(row["cnt"])

    def find_contact_ids_by_phone(self, phone: str) -> list[str]:
        """Contacts whose stored phone equals ``phone`` exactly."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT id FROM contacts WHERE phone = ? ORDER BY seq", (phone,)
            ).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to look up phone: {e}") from e
        return [row["id"] for row in rows]

    # =========================================================================
    # INTERACTION OPERATIONS
    # =========================================================================

    def append_interaction(
        self,
        contact_id: str,
        interaction_type: str,
        note: Optional[str],
        actor: str,
        created_at: datetime,
    ) -> Interaction:
        """Append an interaction and refresh the contact's engagement cache.

        Both writes share one transaction: a reader never sees the
        interaction without the contact update, or the reverse.

        Raises:
            DatabaseError: If either write fails; neither is committed
        """
        conn = self._get_connection()
        stamp = to_db_timestamp(created_at)

        try:
            cursor = conn.execute(
                """INSERT INTO interactions (contact_id, type, note, actor, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (contact_id, interaction_type, note, actor, stamp),
            )
            interaction_id = cursor.lastrowid
            updated = conn.execute(
                """UPDATE contacts
                   SET last_engaged_at = ?, last_engaged_by = ?
                   WHERE id = ?""",
                (stamp, actor, contact_id),
            )
            if updated.rowcount != 1:
                raise sqlite3.IntegrityError(f"contact {contact_id} not found")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to record interaction: {e}") from e

        return Interaction(
            id=interaction_id,
            contact_id=contact_id,
            type=interaction_type,
            note=note,
            actor=actor,
            created_at=created_at,
        )

    def get_interactions(self, contact_id: str, limit: Optional[int] = None) -> list[Interaction]:
        """Interactions for a contact, most recent first."""
        conn = self._get_connection()
        sql = (
            "SELECT * FROM interactions WHERE contact_id = ? "
            "ORDER BY created_at DESC, id DESC"
        )
        params: tuple = (contact_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (contact_id, limit)
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read interactions: {e}") from e
        return [self._row_to_interaction(row) for row in rows]

    def get_latest_interaction(self, contact_id: str) -> Optional[Interaction]:
        """Most recent interaction for a contact, if any."""
        latest = self.get_interactions(contact_id, limit=1)
        return latest[0] if latest else None

    def get_interaction_counts(self) -> dict[str, int]:
        """Number of interactions per contact id (contacts with none omitted)."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT contact_id, COUNT(*) AS cnt FROM interactions GROUP BY contact_id"
            ).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count interactions: {e}") from e
        return {row["contact_id"]: int(row["cnt"]) for row in rows}

    def recompute_engagement(self, contact_id: Optional[str] = None) -> list[str]:
        """Rewrite cached engagement fields from the ledger.

        Args:
            contact_id: Limit the repair to one contact (default: all)

        Returns:
            Ids of contacts whose cache was corrected
        """
        conn = self._get_connection()
        where = "WHERE c.id = ?" if contact_id is not None else ""
        params: tuple = (contact_id,) if contact_id is not None else ()

        try:
            rows = conn.execute(
                f"""SELECT c.id, c.last_engaged_at, c.last_engaged_by,
                           (SELECT i.created_at FROM interactions i
                             WHERE i.contact_id = c.id
                             ORDER BY i.created_at DESC, i.id DESC LIMIT 1) AS ledger_at,
                           (SELECT i.actor FROM interactions i
                             WHERE i.contact_id = c.id
                             ORDER BY i.created_at DESC, i.id DESC LIMIT 1) AS ledger_by
                    FROM contacts c {where}""",
                params,
            ).fetchall()

            corrected: list[str] = []
            for row in rows:
                if (row["last_engaged_at"], row["last_engaged_by"]) == (
                    row["ledger_at"],
                    row["ledger_by"],
                ):
                    continue
                conn.execute(
                    "UPDATE contacts SET last_engaged_at = ?, last_engaged_by = ? WHERE id = ?",
                    (row["ledger_at"], row["ledger_by"], row["id"]),
                )
                corrected.append(row["id"])
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to recompute engagement: {e}") from e

        if corrected:
            logger.warning(
                "Engagement cache repaired from ledger",
                extra={"context": {"count": len(corrected)}},
            )
        return corrected
