"""OpenRouter chat-completions integration.

Sends a single user prompt and returns the model's message content.
JSON output is requested with ``response_format: json_object``.

Usage:
    from callsheet.integrations.openrouter import OpenRouterClient

    client = OpenRouterClient()
    if client.is_configured():
        text = client.complete("Return a JSON object ...")
"""

import json
from typing import Any, Optional

import requests  # type: ignore[import-untyped]

from callsheet.core.config import Config, get_config
from callsheet.core.exceptions import AIServiceError
from callsheet.core.logging import get_logger
from callsheet.integrations.base import IntegrationBase

logger = get_logger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
OPENROUTER_MODELS_URL = "https://openrouter.ai/api/v1/models"


class OpenRouterClient(IntegrationBase):
    """Minimal OpenRouter client for JSON completions."""

    error_class = AIServiceError

    def __init__(self, config: Optional[Config] = None) -> None:
        """Initialize client.

        Args:
            config: Configuration (defaults to the app config)
        """
        self._config = config or get_config()
        self._session = requests.Session()

    @property
    def model(self) -> str:
        return self._config.openrouter_model

    def is_configured(self) -> bool:
        """Check if an OpenRouter API key is configured."""
        return bool(self._config.openrouter_api_key)

    def health_check(self) -> bool:
        """Check if the OpenRouter API is reachable."""
        if not self.is_configured():
            return False
        try:
            response = self._session.get(
                OPENROUTER_MODELS_URL,
                headers=self._headers(),
                timeout=self._config.ai_timeout,
            )
            return bool(response.status_code == 200)
        except requests.RequestException:
            return False

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.openrouter_api_key}",
        }

    def complete(self, prompt: str) -> str:
        """Send one prompt and return the message content.

        Args:
            prompt: User message

        Returns:
            Message content text

        Raises:
            AIServiceError: On missing key, transport error, timeout,
                non-2xx status or a response without content
        """
        if not self.is_configured():
            raise AIServiceError("OpenRouter not configured")

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }

        response = self.guarded(
            "OpenRouter request",
            lambda: self._session.post(
                OPENROUTER_URL,
                json=payload,
                headers=self._headers(),
                timeout=self._config.ai_timeout,
            ),
        )

        if not response.ok:
            logger.error(
                "OpenRouter request failed",
                extra={
                    "context": {"status": response.status_code, "body": response.text[:200]}
                },
            )
            raise AIServiceError(f"OpenRouter API error ({response.status_code})")

        data = self.guarded("OpenRouter response decode", response.json)
        content = _message_content(data)
        if content is None:
            raise AIServiceError("OpenRouter response has no message content")
        return content


def _message_content(data: Any) -> Optional[str]:
    """Extract ``choices[0].message.content`` as text."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if content is None:
        return None
    if isinstance(content, str):
        return content
    # Some providers already return the parsed object
    try:
        return json.dumps(content)
    except (TypeError, ValueError) as e:
        raise AIServiceError(f"Unusable message content: {e}") from e
