#!/usr/bin/env python3
"""Callsheet - contact import and calling queue.

Single entry point for the application.

Usage:
    python run_callsheet.py import contacts.csv    # Import a CSV/XLSX file
    python run_callsheet.py import FILE --preview  # Check a file without importing
    python run_callsheet.py queue [--never] [--ai] # Show the calling queue
    python run_callsheet.py note ID "text"         # Save a note
    python run_callsheet.py call ID [--note T] [--dial] # Log a call
    python run_callsheet.py script ID              # Draft a call script
    python run_callsheet.py reconcile              # Repair engagement cache
    python run_callsheet.py --status               # Configuration report
    python run_callsheet.py --version              # Show version
"""

import argparse
import json
import sys
from typing import Optional

from callsheet import __version__
from callsheet.core.config import get_config, validate_config
from callsheet.core.exceptions import CallsheetError
from callsheet.core.logging import get_logger, setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Callsheet - contact import and calling queue"
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show configuration and database report and exit",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    p_import = sub.add_parser("import", help="Import contacts from a CSV/XLSX file")
    p_import.add_argument("file", help="Path to the file")
    p_import.add_argument(
        "--preview", action="store_true", help="Report column matching and row counts only"
    )

    p_queue = sub.add_parser("queue", help="Show the calling queue")
    p_queue.add_argument("--never", action="store_true", help="Only never-contacted")
    p_queue.add_argument("--ai", action="store_true", help="Apply AI prioritization")

    p_note = sub.add_parser("note", help="Save a note for a contact")
    p_note.add_argument("contact_id")
    p_note.add_argument("text")

    p_call = sub.add_parser("call", help="Log a call to a contact")
    p_call.add_argument("contact_id")
    p_call.add_argument("--note", default=None, help="Optional call note")
    p_call.add_argument("--dial", action="store_true", help="Open the system dialer first")

    p_script = sub.add_parser("script", help="Draft an AI call script")
    p_script.add_argument("contact_id")

    sub.add_parser("reconcile", help="Recompute engagement fields from the ledger")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for Callsheet.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"Callsheet v{__version__}")
        return 0

    # Load and validate configuration
    config = get_config()

    # Initialize logging
    setup_logging(log_dir=config.log_path, debug=args.debug or config.debug)
    logger = get_logger("main")
    logger.info(f"Callsheet v{__version__} starting...")

    issues = validate_config(config)
    for issue in issues:
        if issue.startswith("CRITICAL:"):
            logger.error(f"Configuration: {issue}")
        else:
            logger.warning(f"Configuration issue: {issue}")

    # Initialize database
    from callsheet.db.database import Database

    try:
        db = Database()
        db.initialize()
    except CallsheetError as e:
        logger.error(f"Failed to initialize database: {e}")
        return 1

    try:
        if args.status:
            _print_status(db, config, issues)
            return 0
        if args.command is None:
            parser.print_help()
            return 0
        return _run_command(args, db, config)
    except CallsheetError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


def _print_status(db, config, issues: list[str]) -> None:  # type: ignore[no-untyped-def]
    from callsheet.ai.advisor import CallAdvisor
    from callsheet.engine.queue import queue_stats

    stats = queue_stats(db.list_contacts())
    advisor = CallAdvisor(config)

    print(f"\nCallsheet v{__version__} - Status\n")
    print(f"  Database:   {config.db_path}")
    print(f"  Contacts:   {stats.total} ({stats.contacted} contacted)")
    print(f"  Actor:      {config.actor}")
    print(
        f"  AI:         {config.ai_provider} "
        f"({'ready' if advisor.is_available() else 'not configured'})"
    )
    if issues:
        print(f"\nConfiguration issues ({len(issues)}):")
        for issue in issues:
            print(f"  ! {issue}")
    print()


def _run_command(args: argparse.Namespace, db, config) -> int:  # type: ignore[no-untyped-def]
    from callsheet.engine.call_session import CallSession
    from callsheet.engine.queue import QueueFilter

    if args.command == "import":
        from callsheet.db.intake import ImportGate
        from callsheet.integrations.csv_importer import CSVImporter

        importer = CSVImporter()
        if args.preview:
            parsed = importer.parse_file(args.file)
            normalized = importer.load(args.file)
            preview = ImportGate(db).preview(normalized.rows)
            print(
                json.dumps(
                    {
                        "encoding": parsed.encoding,
                        "matchedColumns": parsed.matched_columns,
                        "missingMandatory": parsed.missing_mandatory,
                        "totalRows": parsed.total_rows,
                        "acceptedCount": len(preview.accepted),
                        "rejectedCount": len(preview.rejected),
                        "droppedCount": normalized.dropped_count,
                    }
                )
            )
            if not preview.can_import:
                print("Nothing to import", file=sys.stderr)
            return 0

        normalized = importer.load(args.file)
        result = ImportGate(db).commit(normalized.rows)
        report = result.to_dict()
        report["droppedCount"] = normalized.dropped_count
        print(json.dumps(report))
        if result.possible_duplicates:
            print(
                f"Note: {result.possible_duplicates} imported row(s) share a phone "
                "number with an existing contact",
                file=sys.stderr,
            )
        return 0

    if args.command == "reconcile":
        from callsheet.engine.ledger import EngagementLedger

        corrected = EngagementLedger(db).reconcile()
        print(f"Corrected {corrected} contact(s)")
        return 0

    session = CallSession(db)

    if args.command == "queue":
        queue_filter = QueueFilter.NEVER if args.never else QueueFilter.ALL
        if args.ai:
            queue = session.ai_prioritize(queue_filter)
        else:
            queue = session.load_queue(queue_filter)
        stats = session.stats()
        print(f"Contacted {stats.contacted} / {stats.total}")
        for position, contact_id in enumerate(queue, start=1):
            contact = db.get_contact(contact_id)
            if contact is None:
                continue
            last = (
                contact.last_engaged_at.strftime("%Y-%m-%d %H:%M")
                if contact.last_engaged_at
                else "never"
            )
            print(f"{position:3d}. {contact.full_name} | {contact.phone} | {last} | {contact.id}")
        return 0

    if args.command == "note":
        session.save_note(args.contact_id, args.text)
        print("Note saved")
        return 0

    if args.command == "call":
        prep = session.prepare_call(args.contact_id)
        if args.dial:
            from callsheet.integrations.dial_links import dial

            if not dial(prep.contact.phone):
                print("No dialer available", file=sys.stderr)
        session.log_call(args.contact_id, args.note)
        print(f"Call logged: {prep.contact.full_name}")
        if prep.tel_link:
            print(f"  Dial:     {prep.tel_link}")
        if prep.whatsapp_link:
            print(f"  WhatsApp: {prep.whatsapp_link}")
        return 0

    if args.command == "script":
        suggestion = session.ai_script(args.contact_id)
        if not suggestion.available:
            print("AI script unavailable", file=sys.stderr)
            return 1
        print("Call script:\n")
        print(suggestion.call_script)
        print("\nWhatsApp message:\n")
        print(suggestion.whatsapp_message)
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
