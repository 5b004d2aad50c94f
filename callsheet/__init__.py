"""Callsheet Source Package.

Serial outbound calling over a single contact queue.

Layers:
    - core: Configuration, logging, exceptions
    - db: Database, models, import gate
    - integrations: CSV/XLSX import, OpenRouter, dial links
    - engine: Engagement ledger, queue building, priority overlay
    - ai: Call scripts and AI prioritization
"""

__version__ = "0.1.0"
