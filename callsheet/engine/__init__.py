"""Engine package - Business logic layer.

This package contains the calling workflow:
    - Engagement ledger (interactions and the contact cache)
    - Queue ordering and filters
    - Priority overlay merge
    - Call session facade

Modules:
    - ledger: Append-only interaction log
    - queue: Staleness-first queue builder
    - overlay: Merge an external ranking onto the queue
    - call_session: Queue, notes, calls and AI suggestions in one place
"""
