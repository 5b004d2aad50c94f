"""Callsheet Exception Hierarchy.

All custom exceptions inherit from CallsheetError. Collaborator errors
(sqlite3, requests, anthropic, json) are converted into one of these at
the boundary of each core operation.

Exception Hierarchy:
    CallsheetError (base)
    ├── ConfigurationError
    ├── ValidationError
    │   └── ActionInProgressError
    ├── DatabaseError
    ├── IntegrationError
    │   └── AIServiceError
    └── ImportError_
"""


class CallsheetError(Exception):
    """Base exception for all Callsheet errors."""

    pass


class ConfigurationError(CallsheetError):
    """Configuration is invalid or missing.

    Raised when:
        - An AI provider is selected but its API key is missing
        - The configured AI provider is unknown
    """

    pass


class ValidationError(CallsheetError):
    """Data validation failed.

    Raised when:
        - A note interaction has an empty note
        - An interaction references an unknown contact
        - An interaction type is empty
    """

    pass


class ActionInProgressError(ValidationError):
    """A save for the same contact is already in flight.

    The second submission is rejected rather than raced.
    """

    pass


class DatabaseError(CallsheetError):
    """Database operation failed.

    Raised when:
        - Database file cannot be opened
        - Query execution fails
        - A batch insert or record-and-refresh transaction is rolled back
    """

    pass


class IntegrationError(CallsheetError):
    """External integration failed.

    Base class for integration-specific errors.
    """

    pass


class AIServiceError(IntegrationError):
    """Text-generation service request failed.

    Raised when:
        - The HTTP request fails or times out
        - The provider answers with a non-2xx status
        - The provider response has no usable content

    Callers treat this as advisory: scripts become "unavailable" and
    prioritization leaves the queue unchanged.
    """

    pass


class ImportError_(CallsheetError):
    """Import operation failed.

    Named with underscore to avoid shadowing builtin ImportError.

    Raised when:
        - File cannot be read
        - File format is invalid
        - File has no header row
        - Parse error occurs
    """

    pass
