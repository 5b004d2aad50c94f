"""CSV and XLSX contact importer with column-alias normalization.

Provides:
    - CSV (sniffed delimiter, several encodings) and XLSX parsing
    - Prioritized alias lookup per target field
    - Row normalization into ImportRow (name and phone mandatory)
    - Tag splitting on "," and ";"

Rows missing a name or phone are skipped without an error; callers get
the drop count from NormalizeResult. A file that cannot be parsed aborts
the whole import with a single ImportError_ and no partial rows.

Usage:
    from callsheet.integrations.csv_importer import CSVImporter

    importer = CSVImporter()
    preview = importer.parse_file(Path("contacts.csv"))
    result = importer.load(Path("contacts.csv"))
    gate.commit(result.rows)
"""

import csv
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from callsheet.core.exceptions import ImportError_
from callsheet.core.logging import get_logger
from callsheet.db.intake import ImportRow

logger = get_logger(__name__)


# Ordered, case-sensitive column labels per target field.
# The first label present with a non-empty value wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("full_name", "name", "Name", "Full Name"),
    "phone": ("phone", "Phone", "phone_number", "Phone Number"),
    "org": ("org", "organization", "company", "Org"),
    "email": ("email", "Email", "email_address"),
    "notes": ("notes", "Notes"),
    "tags": ("tags", "Tags"),
}

MANDATORY_FIELDS = ("name", "phone")

_TAG_SPLIT = re.compile(r"[,;]")

DELIMITED_SUFFIXES = (".csv", ".tsv", ".txt")
XLSX_SUFFIXES = (".xlsx", ".xlsm")


@dataclass
class ParseResult:
    """Result of parsing a CSV/XLSX file for preview.

    Attributes:
        headers: Column headers
        sample_rows: First 5 data rows as mappings
        total_rows: Total non-empty data rows
        matched_columns: Target field -> first alias found among the headers
        encoding: File encoding used ("xlsx" for workbooks)
    """

    headers: list[str]
    sample_rows: list[dict[str, str]]
    total_rows: int
    matched_columns: dict[str, str] = field(default_factory=dict)
    encoding: str = "utf-8"

    @property
    def missing_mandatory(self) -> list[str]:
        """Mandatory fields with no matching column at all."""
        return [f for f in MANDATORY_FIELDS if f not in self.matched_columns]


@dataclass
class NormalizeResult:
    """Normalized rows plus the silent-skip count."""

    rows: list[ImportRow]
    total_rows: int

    @property
    def dropped_count(self) -> int:
        return self.total_rows - len(self.rows)


# =============================================================================
# NORMALIZATION
# =============================================================================


def resolve_field(row: Mapping[str, object], aliases: Sequence[str]) -> Optional[str]:
    """Return the first non-empty value among ``aliases``.

    Values are not trimmed here; "non-empty" means not missing, not None
    and not the empty string.
    """
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        text = value if isinstance(value, str) else str(value)
        if text:
            return text
    return None


def parse_tags(value: Optional[str]) -> Optional[list[str]]:
    """Split a tag cell on "," and ";".

    "warm; demo, ,trial" -> ["warm", "demo", "trial"]
    "" or " ; " -> None
    """
    if not value:
        return None
    tags = [piece.strip() for piece in _TAG_SPLIT.split(value)]
    tags = [t for t in tags if t]
    return tags or None


def normalize_row(row: Mapping[str, object]) -> Optional[ImportRow]:
    """Normalize one raw row, or None when name or phone is missing."""
    name = resolve_field(row, FIELD_ALIASES["name"])
    phone = resolve_field(row, FIELD_ALIASES["phone"])
    if not name or not phone:
        return None

    return ImportRow(
        full_name=name,
        phone=phone.strip(),
        org=resolve_field(row, FIELD_ALIASES["org"]),
        email=resolve_field(row, FIELD_ALIASES["email"]),
        notes=resolve_field(row, FIELD_ALIASES["notes"]),
        tags=parse_tags(resolve_field(row, FIELD_ALIASES["tags"])),
        raw_data=dict(row),
    )


def normalize_rows(rows: Iterable[Mapping[str, object]]) -> list[ImportRow]:
    """Normalize rows in input order, skipping those without name or phone."""
    normalized: list[ImportRow] = []
    for row in rows:
        record = normalize_row(row)
        if record is not None:
            normalized.append(record)
    return normalized


def detect_columns(headers: Sequence[str]) -> dict[str, str]:
    """Map each target field to the first of its aliases present in ``headers``."""
    present = set(headers)
    matched: dict[str, str] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            if alias in present:
                matched[field_name] = alias
                break
    return matched


# =============================================================================
# FILE PARSING
# =============================================================================


class CSVImporter:
    """CSV and XLSX contact importer.

    Handles:
        - Multiple encodings (UTF-8 with/without BOM, CP1252, Latin-1)
        - Delimiter sniffing (comma, tab, semicolon, pipe)
        - Excel workbooks (first sheet, via openpyxl)
        - Blank lines and fully empty rows
    """

    # Delimiters the sniffer is allowed to detect; anything else
    # (e.g. ``@`` from email addresses) is treated as a mis-detection.
    _VALID_DELIMITERS = {",", "\t", ";", "|"}

    def parse_file(self, path: Path) -> ParseResult:
        """Parse a file for preview.

        Raises:
            ImportError_: If the file cannot be parsed
        """
        headers, rows, encoding = self._read_table(Path(path))
        return ParseResult(
            headers=headers,
            sample_rows=rows[:5],
            total_rows=len(rows),
            matched_columns=detect_columns(headers),
            encoding=encoding,
        )

    def read_rows(self, path: Path) -> list[dict[str, str]]:
        """Read every non-empty data row as a header -> value mapping.

        Raises:
            ImportError_: If the file cannot be parsed
        """
        _, rows, _ = self._read_table(Path(path))
        return rows

    def load(self, path: Path) -> NormalizeResult:
        """Read and normalize a file.

        Raises:
            ImportError_: If the file cannot be parsed
        """
        raw_rows = self.read_rows(path)
        rows = normalize_rows(raw_rows)
        result = NormalizeResult(rows=rows, total_rows=len(raw_rows))

        logger.info(
            "Import file normalized",
            extra={
                "context": {
                    "file": Path(path).name,
                    "rows_in": result.total_rows,
                    "rows_out": len(result.rows),
                    "dropped": result.dropped_count,
                }
            },
        )
        return result

    def _read_table(self, path: Path) -> tuple[list[str], list[dict[str, str]], str]:
        if not path.exists():
            raise ImportError_(f"File not found: {path}")

        suffix = path.suffix.lower()
        if suffix in XLSX_SUFFIXES:
            headers, data_rows = self._parse_xlsx(path)
            encoding = "xlsx"
        elif suffix in DELIMITED_SUFFIXES:
            headers, data_rows, encoding = self._parse_csv(path)
        else:
            raise ImportError_(f"Unsupported file type: {suffix}")

        if not any(headers):
            raise ImportError_("File contains no headers")

        return headers, self._to_mappings(headers, data_rows), encoding

    @staticmethod
    def _to_mappings(headers: list[str], data_rows: list[list[str]]) -> list[dict[str, str]]:
        """Zip rows with headers; blank headers are ignored, first duplicate wins."""
        mappings: list[dict[str, str]] = []
        for row in data_rows:
            if all(not (cell and cell.strip()) for cell in row):
                continue
            mapping: dict[str, str] = {}
            for header, cell in zip(headers, row):
                if header and header not in mapping:
                    mapping[header] = cell
            mappings.append(mapping)
        return mappings

    def _parse_csv(self, path: Path) -> tuple[list[str], list[list[str]], str]:
        """Parse a delimited file, trying multiple encodings.

        Returns:
            Tuple of (headers, all_rows, encoding)
        """
        encodings = ["utf-8-sig", "cp1252", "latin-1"]

        for encoding in encodings:
            try:
                with open(path, "r", encoding=encoding, newline="") as f:
                    sample = f.read(8192)
                    f.seek(0)

                    try:
                        dialect = csv.Sniffer().sniff(sample)
                        if dialect.delimiter in self._VALID_DELIMITERS:
                            reader = csv.reader(f, dialect, strict=True)
                        else:
                            reader = csv.reader(f, strict=True)
                    except csv.Error:
                        # Sniffer fails on single-column and tiny files
                        reader = csv.reader(f, strict=True)
                    rows = list(reader)

                    if not rows:
                        return [], [], encoding

                    headers = [str(h).strip() for h in rows[0]]
                    data_rows = [[str(cell) if cell else "" for cell in row] for row in rows[1:]]
                    return headers, data_rows, encoding

            except UnicodeDecodeError:
                continue
            except (csv.Error, OSError) as e:
                raise ImportError_(f"Cannot parse CSV: {e}") from e

        raise ImportError_(f"Cannot read file with any supported encoding: {path}")

    def _parse_xlsx(self, path: Path) -> tuple[list[str], list[list[str]]]:
        """Parse the first worksheet of an XLSX workbook.

        Returns:
            Tuple of (headers, all_rows)
        """
        try:
            import openpyxl
        except ImportError as e:
            raise ImportError_(
                "openpyxl is required for XLSX files. Install with: pip install openpyxl"
            ) from e

        try:
            wb = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
            try:
                ws = wb.active
                rows_iter = ws.iter_rows(values_only=True)

                header_row = next(rows_iter, None)
                if header_row is None:
                    return [], []

                headers = [str(cell).strip() if cell is not None else "" for cell in header_row]
                data_rows = [
                    [_xlsx_cell_text(cell) for cell in row] for row in rows_iter
                ]
                return headers, data_rows
            finally:
                wb.close()
        except Exception as e:
            raise ImportError_(f"Cannot parse XLSX: {e}") from e


def _xlsx_cell_text(cell: object) -> str:
    """Render a workbook cell as text; integral floats lose their ".0"."""
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell)
