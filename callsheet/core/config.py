"""Configuration management for Callsheet.

Loads configuration from environment variables and .env file.
Provides validation and sensible defaults.

Usage:
    from callsheet.core.config import get_config, validate_config

    config = get_config()
    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"Config issue: {issue}")
"""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# AI providers the advisor knows how to talk to
AI_PROVIDERS = ("openrouter", "claude")

DEFAULT_OPENROUTER_MODEL = "moonshotai/kimi-k2:free"
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-20250514"
DEFAULT_AI_TIMEOUT = 30.0
DEFAULT_COUNTRY_CODE = "+91"

# Default paths (defined once, used by both Config and load_config)
DEFAULT_DB_PATH = Path.home() / ".callsheet" / "callsheet.db"
DEFAULT_LOG_PATH = Path.home() / ".callsheet" / "logs"


def _default_actor() -> str:
    """Login name of the person running the app, or "user"."""
    try:
        return getpass.getuser() or "user"
    except (KeyError, OSError):
        return "user"


@dataclass
class Config:
    """Application configuration.

    Attributes:
        db_path: Path to SQLite database file
        log_path: Directory for log files
        actor: Identity recorded as last_engaged_by on every interaction
        ai_provider: "openrouter" or "claude"
        openrouter_api_key: OpenRouter API key
        openrouter_model: OpenRouter model slug
        claude_api_key: Anthropic Claude API key
        claude_model: Claude model name
        ai_timeout: Seconds before an AI request is abandoned
        default_country_code: Prefix for WhatsApp links without one
        debug: Enable debug logging on the console
    """

    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    log_path: Path = field(default_factory=lambda: DEFAULT_LOG_PATH)
    actor: str = field(default_factory=_default_actor)

    ai_provider: str = "openrouter"
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = DEFAULT_OPENROUTER_MODEL
    claude_api_key: Optional[str] = None
    claude_model: str = DEFAULT_CLAUDE_MODEL
    ai_timeout: float = DEFAULT_AI_TIMEOUT

    default_country_code: Optional[str] = DEFAULT_COUNTRY_CODE

    debug: bool = False


def load_env_file(path: Path) -> dict[str, str]:
    """Parse .env file.

    Handles:
        - KEY=VALUE format
        - Comments (lines starting with #)
        - Blank lines
        - Quoted values
        - An optional leading "export "

    Args:
        path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars: dict[str, str] = {}

    if not path.exists():
        return env_vars

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if line.startswith("export "):
                line = line[len("export ") :]

            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()

                if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]

                if key:
                    env_vars[key] = value

    return env_vars


def _get_path(key: str, default: Path, env_vars: dict[str, str]) -> Path:
    """Get path from environment, expanding ~ and resolving."""
    value = os.environ.get(key) or env_vars.get(key)
    if value:
        return Path(value).expanduser().resolve()
    return default


def _get_str(key: str, env_vars: dict[str, str]) -> Optional[str]:
    """Get string from environment."""
    return os.environ.get(key) or env_vars.get(key) or None


def _get_bool(key: str, default: bool, env_vars: dict[str, str]) -> bool:
    """Get boolean from environment."""
    value = os.environ.get(key) or env_vars.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_float(key: str, default: float, env_vars: dict[str, str]) -> float:
    """Get float from environment, falling back to default on garbage."""
    value = os.environ.get(key) or env_vars.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_config(env_file: Optional[Path] = None) -> Config:
    """Load configuration from environment and .env file.

    Priority:
        1. Environment variables (highest)
        2. .env file
        3. Default values (lowest)

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Loaded configuration
    """
    if env_file is None:
        env_file = Path.cwd() / ".env"

    env_vars = load_env_file(Path(env_file))

    return Config(
        db_path=_get_path("CALLSHEET_DB_PATH", DEFAULT_DB_PATH, env_vars),
        log_path=_get_path("CALLSHEET_LOG_PATH", DEFAULT_LOG_PATH, env_vars),
        actor=_get_str("CALLSHEET_USER", env_vars) or _default_actor(),
        ai_provider=(_get_str("CALLSHEET_AI_PROVIDER", env_vars) or "openrouter").lower(),
        openrouter_api_key=_get_str("OPENROUTER_API_KEY", env_vars),
        openrouter_model=_get_str("OPENROUTER_MODEL", env_vars) or DEFAULT_OPENROUTER_MODEL,
        claude_api_key=_get_str("CLAUDE_API_KEY", env_vars),
        claude_model=_get_str("CLAUDE_MODEL", env_vars) or DEFAULT_CLAUDE_MODEL,
        ai_timeout=_get_float("CALLSHEET_AI_TIMEOUT", DEFAULT_AI_TIMEOUT, env_vars),
        default_country_code=_get_str("DEFAULT_COUNTRY_CODE", env_vars) or DEFAULT_COUNTRY_CODE,
        debug=_get_bool("CALLSHEET_DEBUG", False, env_vars),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration.

    Checks:
        - Database and log directories exist or can be created
        - Directories are writable
        - AI provider is known and has a key
        - AI timeout is positive

    Args:
        config: Configuration to validate

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    db_dir = Path(config.db_path).parent
    try:
        db_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(db_dir, os.W_OK):
            issues.append(f"Database directory not writable: {db_dir}")
    except OSError as e:
        issues.append(f"Cannot create database directory {db_dir}: {e}")

    try:
        Path(config.log_path).mkdir(parents=True, exist_ok=True)
        if not os.access(config.log_path, os.W_OK):
            issues.append(f"Log directory not writable: {config.log_path}")
    except OSError as e:
        issues.append(f"Cannot create log directory {config.log_path}: {e}")

    if config.ai_provider not in AI_PROVIDERS:
        issues.append(
            f"CRITICAL: Unknown AI provider '{config.ai_provider}'. "
            f"Expected one of: {', '.join(AI_PROVIDERS)}."
        )
    elif config.ai_provider == "openrouter" and not config.openrouter_api_key:
        issues.append(
            "OPENROUTER_API_KEY is missing. AI scripts and prioritization will be unavailable."
        )
    elif config.ai_provider == "claude" and not config.claude_api_key:
        issues.append(
            "CLAUDE_API_KEY is missing. AI scripts and prioritization will be unavailable."
        )

    if config.ai_timeout <= 0:
        issues.append(f"CALLSHEET_AI_TIMEOUT must be positive, got {config.ai_timeout}")

    return issues


# Singleton config
_config: Optional[Config] = None


def get_config() -> Config:
    """Return cached configuration singleton.

    Loads configuration on first call, returns cached version thereafter.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset cached configuration.

    Used primarily for testing.
    """
    global _config
    _config = None
