"""Integrations package - external services and file formats.

Modules:
    - base: Abstract base class for external services
    - csv_importer: CSV/XLSX parsing and column-alias normalization
    - openrouter: OpenRouter chat completions over requests
    - dial_links: tel: and WhatsApp link construction
"""
