"""Import gate between normalized rows and persisted contacts.

Provides:
    - ImportRow: a field-normalized, not-yet-persisted contact
    - Pre-insert validation (trimmed name and phone)
    - Batch insert with inserted/skipped accounting
    - Import preview before commit

The gate never drops rows silently: every submitted row is counted as
either inserted or skipped, and the two always sum to the batch size.
It does not skip duplicates. Rows whose phone already exists (or repeats
inside the batch) are only reported as ``possible_duplicates``.

Usage:
    from callsheet.db.intake import ImportGate

    gate = ImportGate(db)
    preview = gate.preview(rows)
    # Show preview to user...
    result = gate.commit(rows)
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from callsheet.core.logging import get_logger
from callsheet.db.database import Database
from callsheet.db.models import Contact

logger = get_logger(__name__)


@dataclass
class ImportRow:
    """A single normalized row from an import file.

    Attributes:
        full_name: Contact name (mandatory)
        phone: Phone number, whitespace-trimmed (mandatory)
        org: Organization
        email: Email address
        notes: Free-text notes from the file (shown in previews, not persisted)
        tags: Parsed tags, None when absent or empty
        raw_data: Original row mapping
    """

    full_name: str = ""
    phone: str = ""
    org: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    raw_data: Optional[dict] = None


@dataclass
class ImportPreview:
    """Rows split by the gate's validation, before anything is written."""

    accepted: list[ImportRow] = field(default_factory=list)
    rejected: list[ImportRow] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.accepted) + len(self.rejected)

    @property
    def can_import(self) -> bool:
        return bool(self.accepted)


@dataclass
class ImportResult:
    """Result of committing an import batch.

    Attributes:
        inserted_count: Contacts actually created
        skipped_count: Submitted rows that were not created
        contact_ids: Ids of the created contacts
        possible_duplicates: Accepted rows whose phone was already known
    """

    inserted_count: int = 0
    skipped_count: int = 0
    contact_ids: list[str] = field(default_factory=list)
    possible_duplicates: int = 0

    @property
    def submitted_count(self) -> int:
        return self.inserted_count + self.skipped_count

    def to_dict(self) -> dict[str, int]:
        """Counts in the shape the import surface reports."""
        return {"insertedCount": self.inserted_count, "skippedCount": self.skipped_count}


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def clean_row(row: ImportRow) -> Optional[Contact]:
    """Re-validate a row and build the contact to insert.

    Name and phone are re-trimmed and must still be non-empty; anything
    else returns None so the row is counted as skipped.
    """
    full_name = (row.full_name or "").strip()
    phone = (row.phone or "").strip()
    if not full_name or not phone:
        return None

    tags = [t.strip() for t in (row.tags or []) if t and t.strip()]

    return Contact(
        full_name=full_name,
        phone=phone,
        org=_clean_optional(row.org),
        email=_clean_optional(row.email),
        tags=tags or None,
    )


class ImportGate:
    """Validation and batch insert for normalized import rows."""

    def __init__(self, db: Database):
        """Initialize import gate.

        Args:
            db: Persistence collaborator (insert_contacts, find_contact_ids_by_phone)
        """
        self.db = db

    def preview(self, rows: Sequence[ImportRow]) -> ImportPreview:
        """Classify rows without touching the database."""
        preview = ImportPreview()
        for row in rows:
            if clean_row(row) is None:
                preview.rejected.append(row)
            else:
                preview.accepted.append(row)
        return preview

    def commit(self, rows: Sequence[ImportRow]) -> ImportResult:
        """Validate and insert a batch.

        Args:
            rows: Normalized rows

        Returns:
            ImportResult whose counts sum to len(rows)

        Raises:
            DatabaseError: If the batch insert fails; nothing was inserted
        """
        batch: list[Contact] = []
        for row in rows:
            contact = clean_row(row)
            if contact is not None:
                batch.append(contact)

        duplicates = self._count_possible_duplicates(batch)

        contact_ids = list(self.db.insert_contacts(batch)) if batch else []

        inserted = len(contact_ids)
        result = ImportResult(
            inserted_count=inserted,
            skipped_count=len(rows) - inserted,
            contact_ids=contact_ids,
            possible_duplicates=duplicates,
        )

        if inserted < len(batch):
            logger.warning(
                "Persistence inserted fewer contacts than requested",
                extra={"context": {"requested": len(batch), "inserted": inserted}},
            )

        logger.info(
            "Import committed",
            extra={
                "context": {
                    "submitted": len(rows),
                    "inserted": result.inserted_count,
                    "skipped": result.skipped_count,
                    "possible_duplicates": duplicates,
                }
            },
        )
        return result

    def _count_possible_duplicates(self, batch: list[Contact]) -> int:
        """Rows whose phone is already stored or appeared earlier in the batch."""
        seen: set[str] = set()
        duplicates = 0
        for contact in batch:
            if contact.phone in seen or self.db.find_contact_ids_by_phone(contact.phone):
                duplicates += 1
            seen.add(contact.phone)
        return duplicates
