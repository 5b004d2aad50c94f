"""Tests for the shared Claude client mixin."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from callsheet.ai.claude_client import CLAUDE_MAX_TOKENS, ClaudeClientMixin
from callsheet.core.exceptions import AIServiceError, ConfigurationError


class _Uses(ClaudeClientMixin):
    """Minimal class using the mixin with an injected config."""

    def __init__(self, config) -> None:
        self._config = config
        self._client = None

    def _get_claude_config(self):
        return self._config


def _reply(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


class TestClaudeClientMixin:
    """Lazy client creation and completion."""

    def test_not_available_without_key(self, mock_config):
        """No key, not available."""
        assert _Uses(mock_config).is_claude_available() is False

    def test_get_client_without_key_raises(self, mock_config):
        """Creating a client without a key is a configuration error."""
        with pytest.raises(ConfigurationError, match="CLAUDE_API_KEY"):
            _Uses(mock_config)._get_client()

    def test_client_created_once(self, mock_config):
        """The Anthropic client is created lazily and cached."""
        anthropic = pytest.importorskip("anthropic")
        mock_config.claude_api_key = "sk-ant-test"
        user = _Uses(mock_config)
        with patch.object(anthropic, "Anthropic") as factory:
            first = user._get_client()
            second = user._get_client()
        assert first is second
        factory.assert_called_once_with(
            api_key="sk-ant-test", timeout=mock_config.ai_timeout, max_retries=0
        )

    def test_complete_returns_text(self, mock_config):
        """The first content block's text is returned."""
        user = _Uses(mock_config)
        user._client = MagicMock()
        user._client.messages.create.return_value = _reply('{"ok": true}')

        assert user._complete_claude("prompt") == '{"ok": true}'
        kwargs = user._client.messages.create.call_args.kwargs
        assert kwargs["model"] == mock_config.claude_model
        assert kwargs["max_tokens"] == CLAUDE_MAX_TOKENS
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_api_error_wrapped(self, mock_config):
        """SDK errors become AIServiceError."""
        user = _Uses(mock_config)
        user._client = MagicMock()
        user._client.messages.create.side_effect = RuntimeError("overloaded")
        with pytest.raises(AIServiceError, match="overloaded"):
            user._complete_claude("prompt")

    def test_empty_content_raises(self, mock_config):
        """A reply without content blocks is an AIServiceError."""
        user = _Uses(mock_config)
        user._client = MagicMock()
        user._client.messages.create.return_value = SimpleNamespace(content=[])
        with pytest.raises(AIServiceError, match="no text"):
            user._complete_claude("prompt")
