"""Database layer - SQLite store, models, import gate.

Modules:
    - database: Connection management and contact/interaction operations
    - models: Contact, Interaction and serialization helpers
    - intake: ImportRow validation and batch insert accounting
"""
