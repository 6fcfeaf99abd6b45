"""
Configuration management for the anti-spam bot.

Loads configuration from environment variables and .env files,
validates required fields, and builds the spam monitor options.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from antispam.utils.options import AntiSpamOptions


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for the anti-spam bot.

    Attributes:
        token: Discord bot token
        prefix: Command prefix (default: !)
        log_level: Logging level (default: INFO)
        log_file: Optional log file path
        antispam: Spam monitor options
    """

    token: str
    prefix: str = "!"
    log_level: str = "INFO"
    log_file: str | None = None
    antispam: AntiSpamOptions = field(default_factory=AntiSpamOptions)

    @property
    def secrets(self) -> list[str]:
        """Values that should be filtered from logs."""
        return [s for s in (self.token,) if s]


# Numeric and boolean spam monitor options and the variables that set them
_INT_OPTIONS = {
    "warn_threshold": "ANTISPAM_WARN_THRESHOLD",
    "kick_threshold": "ANTISPAM_KICK_THRESHOLD",
    "ban_threshold": "ANTISPAM_BAN_THRESHOLD",
    "max_interval": "ANTISPAM_MAX_INTERVAL",
    "max_duplicates_warning": "ANTISPAM_MAX_DUPLICATES_WARNING",
    "max_duplicates_kick": "ANTISPAM_MAX_DUPLICATES_KICK",
    "max_duplicates_ban": "ANTISPAM_MAX_DUPLICATES_BAN",
    "delete_messages_after_ban_for_past_days": "ANTISPAM_BAN_DELETE_DAYS",
    "max_cached_messages": "ANTISPAM_MAX_CACHED_MESSAGES",
}

_BOOL_OPTIONS = {
    "ignore_bots": "ANTISPAM_IGNORE_BOTS",
    "verbose": "ANTISPAM_VERBOSE",
    "warn_enabled": "ANTISPAM_WARN_ENABLED",
    "kick_enabled": "ANTISPAM_KICK_ENABLED",
    "ban_enabled": "ANTISPAM_BAN_ENABLED",
    "notify_missing_permissions": "ANTISPAM_NOTIFY_MISSING_PERMISSIONS",
}

_LIST_OPTIONS = {
    "exempt_permissions": "ANTISPAM_EXEMPT_PERMISSIONS",
    "ignored_users": "ANTISPAM_IGNORED_USERS",
    "ignored_roles": "ANTISPAM_IGNORED_ROLES",
    "ignored_guilds": "ANTISPAM_IGNORED_GUILDS",
    "ignored_channels": "ANTISPAM_IGNORED_CHANNELS",
}

_TEXT_OPTIONS = {
    "warn_message": "ANTISPAM_WARN_MESSAGE",
    "kick_message": "ANTISPAM_KICK_MESSAGE",
    "ban_message": "ANTISPAM_BAN_MESSAGE",
}


def _parse_bool(value: str | None, default: bool | None = False) -> bool | None:
    """Parse a boolean from environment variable string."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int | None) -> int | None:
    """Parse an integer from environment variable string."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_list(value: str | None) -> list[str] | None:
    """Parse a comma-separated list. Unset stays None so defaults apply."""
    if value is None:
        return None
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _load_antispam_options() -> AntiSpamOptions:
    """Build spam monitor options from ANTISPAM_* variables."""
    overrides: dict[str, Any] = {}
    for name, env in _INT_OPTIONS.items():
        overrides[name] = _parse_int(os.getenv(env), None)
    for name, env in _BOOL_OPTIONS.items():
        overrides[name] = _parse_bool(os.getenv(env), None)
    for name, env in _LIST_OPTIONS.items():
        overrides[name] = _parse_list(os.getenv(env))
    for name, env in _TEXT_OPTIONS.items():
        # An empty value is meaningful: it turns the notice off
        overrides[name] = os.getenv(env)
    return AntiSpamOptions.from_mapping(overrides)


def load_config(env_file: str | Path | None = None) -> Config:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory and parent directories.

    Returns:
        Config: Validated configuration object

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    errors: list[str] = []

    token = os.getenv("DISCORD_TOKEN", "")
    if not token or token == "your_bot_token_here":
        errors.append("DISCORD_TOKEN is required")

    try:
        antispam = _load_antispam_options()
    except TypeError as e:
        errors.append(f"Invalid anti-spam option: {e}")
        antispam = AntiSpamOptions()

    if errors:
        error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)

    prefix = os.getenv("BOT_PREFIX", "!")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file = os.getenv("LOG_FILE") or None

    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if log_level not in valid_levels:
        log_level = "INFO"

    return Config(
        token=token,
        prefix=prefix,
        log_level=log_level,
        log_file=log_file,
        antispam=antispam,
    )
