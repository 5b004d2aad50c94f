"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
"""

from callsheet.core.exceptions import (
    ActionInProgressError,
    AIServiceError,
    CallsheetError,
    ConfigurationError,
    DatabaseError,
    ImportError_,
    IntegrationError,
    ValidationError,
)

__all__ = [
    "CallsheetError",
    "ConfigurationError",
    "ValidationError",
    "ActionInProgressError",
    "DatabaseError",
    "IntegrationError",
    "AIServiceError",
    "ImportError_",
]
