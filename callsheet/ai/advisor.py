"""AI call advisor - call scripts and queue prioritization.

Talks to the configured provider (OpenRouter or Claude), asks for a JSON
object, and validates its shape. Suggestions are advisory: every failure
is logged and degrades to "unavailable" / "no suggestion", never to an
exception for the caller.

Usage:
    from callsheet.ai.advisor import CallAdvisor

    advisor = CallAdvisor()
    suggestion = advisor.draft_script(contact, notes=["Asked for pricing"])
    if suggestion.available:
        print(suggestion.call_script)

    ordered = advisor.suggest_order({"contacts": [...]})  # list of ids or None
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import jinja2

from callsheet.ai.claude_client import ClaudeClientMixin
from callsheet.core.config import Config, get_config
from callsheet.core.exceptions import AIServiceError, ConfigurationError
from callsheet.core.logging import get_logger
from callsheet.db.models import Contact
from callsheet.integrations.openrouter import OpenRouterClient

logger = get_logger(__name__)

NO_NOTES_TEXT = "No prior notes. First touch."

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


@dataclass
class ScriptSuggestion:
    """Drafted call script and WhatsApp message.

    Attributes:
        call_script: 3-6 line call opening with talking points
        whatsapp_message: Short message ready to paste
        available: False when no suggestion could be produced
    """

    call_script: str = ""
    whatsapp_message: str = ""
    available: bool = True

    @classmethod
    def unavailable(cls) -> "ScriptSuggestion":
        return cls(call_script="", whatsapp_message="", available=False)


def extract_json(text: str) -> dict[str, Any]:
    """Parse the JSON object out of a model reply.

    Accepts a bare object, an object wrapped in a Markdown code fence, or
    an object surrounded by stray prose.

    Raises:
        ValueError: No JSON object could be recovered
    """
    if not isinstance(text, str):
        raise ValueError("Model reply is not text")

    candidate = text.strip()
    fenced = _FENCE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        data = json.loads(candidate)
    except ValueError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in model reply")
        data = json.loads(candidate[start : end + 1])

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


PROMPT_TEMPLATE_DIR = Path(__file__).parent / "prompts"

# Jinja2 environment for prompt templates
_env: Optional[jinja2.Environment] = None


def _get_env() -> jinja2.Environment:
    """Get or create the Jinja2 environment for prompts."""
    global _env
    if _env is None:
        _env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(PROMPT_TEMPLATE_DIR)),
            autoescape=False,  # Plain text prompts, not HTML
            undefined=jinja2.StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def reset_env() -> None:
    """Reset the Jinja2 environment (for testing)."""
    global _env
    _env = None


def build_script_prompt(contact: Contact, notes: Optional[Sequence[str]] = None) -> str:
    """Prompt asking for a call script and a WhatsApp message."""
    template = _get_env().get_template("call_script.txt.j2")
    return template.render(
        contact=contact,
        notes=list(notes or []),
        no_notes_text=NO_NOTES_TEXT,
    )


def build_prioritize_prompt(contacts: Sequence[dict[str, Any]]) -> str:
    """Prompt asking for contact ids ranked by call priority."""
    template = _get_env().get_template("prioritize.txt.j2")
    return template.render(contacts_json=json.dumps(list(contacts)))


class CallAdvisor(ClaudeClientMixin):
    """Script drafting and queue prioritization over the configured provider.

    Attributes:
        provider: "openrouter" or "claude"
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        openrouter: Optional[OpenRouterClient] = None,
    ) -> None:
        """Initialize advisor.

        Args:
            config: Configuration (defaults to the app config)
            openrouter: Pre-built OpenRouter client (tests inject a fake)
        """
        self._config = config or get_config()
        self._openrouter = openrouter
        self._client: Optional[object] = None

    def _get_claude_config(self):
        return self._config

    @property
    def provider(self) -> str:
        return self._config.ai_provider

    def _get_openrouter(self) -> OpenRouterClient:
        if self._openrouter is None:
            self._openrouter = OpenRouterClient(self._config)
        return self._openrouter

    def is_available(self) -> bool:
        """True when the selected provider has credentials."""
        if self.provider == "claude":
            return self.is_claude_available()
        if self.provider == "openrouter":
            return self._get_openrouter().is_configured()
        return False

    def _complete(self, prompt: str) -> str:
        """Send a prompt to the selected provider.

        Raises:
            ConfigurationError: Unknown provider or missing credentials
            AIServiceError: The provider call failed
        """
        if self.provider == "claude":
            return self._complete_claude(prompt)
        if self.provider == "openrouter":
            return self._get_openrouter().complete(prompt)
        raise ConfigurationError(f"Unknown AI provider: {self.provider}")

    def draft_script(
        self, contact: Contact, notes: Optional[Sequence[str]] = None
    ) -> ScriptSuggestion:
        """Draft a call script and WhatsApp message for a contact.

        Args:
            contact: Contact to call
            notes: Recent notes, most recent first

        Returns:
            The suggestion, or ScriptSuggestion.unavailable() on any failure
        """
        prompt = build_script_prompt(contact, notes)

        try:
            data = extract_json(self._complete(prompt))
        except (AIServiceError, ConfigurationError, ValueError) as e:
            logger.warning(
                f"Script suggestion unavailable: {e}",
                extra={"context": {"contact_id": contact.id, "provider": self.provider}},
            )
            return ScriptSuggestion.unavailable()

        call_script = data.get("call_script")
        whatsapp = data.get("whatsapp_message")
        call_script = call_script.strip() if isinstance(call_script, str) else ""
        whatsapp = whatsapp.strip() if isinstance(whatsapp, str) else ""

        if not call_script and not whatsapp:
            logger.warning(
                "Script suggestion had no usable fields",
                extra={"context": {"contact_id": contact.id, "keys": sorted(data)}},
            )
            return ScriptSuggestion.unavailable()

        return ScriptSuggestion(call_script=call_script, whatsapp_message=whatsapp)

    def suggest_order(self, payload: Any) -> Optional[list]:
        """Ask for a priority order over a set of contacts.

        Args:
            payload: ``{"contacts": [{id, full_name, last_engaged_at,
                interactions_count, tags}, ...]}`` or the bare list

        Returns:
            Suggested ids (unvalidated against the queue), or None when
            there is nothing to rank or no usable suggestion came back
        """
        contacts = payload.get("contacts") if isinstance(payload, dict) else payload
        if not contacts:
            return None

        try:
            data = extract_json(self._complete(build_prioritize_prompt(contacts)))
        except (AIServiceError, ConfigurationError, ValueError) as e:
            logger.warning(
                f"Prioritization unavailable: {e}",
                extra={"context": {"contacts": len(contacts), "provider": self.provider}},
            )
            return None

        ordered = data.get("ordered_ids")
        if not isinstance(ordered, list) or not ordered:
            logger.warning(
                "Prioritization returned no ordered_ids",
                extra={"context": {"keys": sorted(data)}},
            )
            return None

        logger.info(
            "Prioritization received",
            extra={"context": {"contacts": len(contacts), "ordered": len(ordered)}},
        )
        return ordered
