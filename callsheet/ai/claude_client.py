"""Shared Claude API client mixin.

Keeps the lazy _get_client() / is_available() boilerplate in one place
for anything that talks to Anthropic directly.
"""

from typing import Any, Optional

from callsheet.core.config import get_config
from callsheet.core.exceptions import AIServiceError, ConfigurationError
from callsheet.core.logging import get_logger

logger = get_logger(__name__)

CLAUDE_MAX_TOKENS = 1024


class ClaudeClientMixin:
    """Mixin providing lazy Anthropic client initialization.

    Classes using this mixin must NOT define their own ``_client`` attribute
    before calling ``super().__init__()`` (or should set ``self._client = None``
    in their own ``__init__``).
    """

    _client: Optional[object] = None

    def _get_claude_config(self):
        """Return the app config (override if config is stored differently)."""
        return get_config()

    def is_claude_available(self) -> bool:
        """Check if the Claude API key is configured."""
        return bool(self._get_claude_config().claude_api_key)

    def _get_client(self) -> Any:
        """Get or create the Anthropic client (lazy singleton).

        Raises:
            ConfigurationError: CLAUDE_API_KEY is not set or the
                anthropic package is missing
        """
        if self._client is None:
            config = self._get_claude_config()
            if not config.claude_api_key:
                raise ConfigurationError("CLAUDE_API_KEY not configured")
            try:
                import anthropic
            except ImportError as e:
                raise ConfigurationError(
                    "anthropic package not installed. Install with: pip install anthropic"
                ) from e

            self._client = anthropic.Anthropic(
                api_key=config.claude_api_key,
                timeout=config.ai_timeout,
                max_retries=0,
            )
        return self._client

    def _complete_claude(self, prompt: str) -> str:
        """Send one user prompt to Claude and return the text reply.

        Raises:
            ConfigurationError: Claude is not configured
            AIServiceError: The API call failed or returned no text
        """
        client = self._get_client()
        model = self._get_claude_config().claude_model

        try:
            response = client.messages.create(  # type: ignore[attr-defined]
                model=model,
                max_tokens=CLAUDE_MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.warning(f"Claude request failed: {e}")
            raise AIServiceError(f"Claude request failed: {e}") from e

        try:
            text = response.content[0].text  # type: ignore[attr-defined]
        except (AttributeError, IndexError, TypeError) as e:
            raise AIServiceError("Claude response has no text content") from e

        usage = getattr(response, "usage", None)
        logger.debug(
            "Claude completion",
            extra={
                "context": {
                    "model": model,
                    "input_tokens": getattr(usage, "input_tokens", None),
                    "output_tokens": getattr(usage, "output_tokens", None),
                }
            },
        )
        return str(text)
