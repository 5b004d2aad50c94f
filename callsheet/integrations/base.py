"""Base class for external integrations.

All integrations inherit from IntegrationBase, which provides:
    - Health check interface
    - Configuration check
    - Error conversion at the integration boundary

Integrations never retry on their own: a failed or timed-out request is
reported once and the caller decides what to do.
"""

from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from callsheet.core.exceptions import IntegrationError
from callsheet.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class IntegrationBase(ABC):
    """Abstract base class for all external integrations.

    Subclasses must implement:
        - health_check(): Check if service is available
        - is_configured(): Check if credentials are present
    """

    #: Exception raised by ``guarded`` when the wrapped call fails.
    error_class: type[IntegrationError] = IntegrationError

    @abstractmethod
    def health_check(self) -> bool:
        """Check if integration is healthy and available."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if required credentials/configuration are present."""
        pass

    def guarded(self, action: str, func: Callable[[], T]) -> T:
        """Run ``func`` once, converting unexpected errors to ``error_class``.

        Args:
            action: Short description used in the error message
            func: Zero-argument callable performing the request

        Returns:
            Function result

        Raises:
            IntegrationError: (or ``error_class``) wrapping the original error
        """
        try:
            return func()
        except IntegrationError:
            raise
        except Exception as e:
            logger.warning(
                f"{action} failed: {e}",
                extra={"context": {"integration": type(self).__name__}},
            )
            raise self.error_class(f"{action} failed: {e}") from e
