"""
Logging utilities with secret filtering.

Provides a logging setup that:
- Filters the bot token and other secrets from logs
- Supports both console and file output
- Routes discord.py's own logger through the same handlers
- Lowers spam monitor diagnostics to DEBUG unless verbose mode is on
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from antispam.config import Config


class SecretFilter(logging.Filter):
    """
    Logging filter that redacts sensitive information.

    Replaces any occurrence of registered secrets with [REDACTED], both in
    the message itself and in its %-style arguments.
    """

    def __init__(self, secrets: list[str] | None = None) -> None:
        """
        Initialize the secret filter.

        Args:
            secrets: Secret strings to redact, usually `Config.secrets`
        """
        super().__init__()
        self._secrets: list[str] = []
        self._pattern: re.Pattern[str] | None = None
        if secrets:
            self.set_secrets(secrets)

    def set_secrets(self, secrets: list[str]) -> None:
        """
        Replace the secrets this filter redacts.

        Args:
            secrets: Secret strings to redact; values of three characters
                or fewer are skipped since they would match ordinary text
        """
        self._secrets = [s for s in secrets if s and len(s) > 3]
        if self._secrets:
            # One alternation so each record is scanned once
            escaped = [re.escape(s) for s in self._secrets]
            self._pattern = re.compile("|".join(escaped))
        else:
            self._pattern = None

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact secrets from a log record.

        Args:
            record: The log record to filter

        Returns:
            bool: Always True (records are rewritten, never dropped)
        """
        if self._pattern and record.msg:
            if isinstance(record.msg, str):
                record.msg = self._pattern.sub("[REDACTED]", record.msg)

            # discord.py passes HTTP payloads as arguments
            if record.args:
                if isinstance(record.args, dict):
                    record.args = {
                        k: self._pattern.sub("[REDACTED]", v) if isinstance(v, str) else v
                        for k, v in record.args.items()
                    }
                elif isinstance(record.args, tuple):
                    record.args = tuple(
                        self._pattern.sub("[REDACTED]", arg) if isinstance(arg, str) else arg
                        for arg in record.args
                    )

        return True


class ColoredFormatter(logging.Formatter):
    """
    Console formatter that colours records by level.

    Colors:
    - DEBUG: Cyan (ledger and escalation diagnostics)
    - INFO: Green (warns, kicks, bans, resets)
    - WARNING: Yellow (refused actions in verbose mode, bad thresholds)
    - ERROR: Red
    - CRITICAL: White on red background
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[41m",  # Red background
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str | None = None, use_colors: bool = True) -> None:
        """
        Initialize the colored formatter.

        Args:
            fmt: Log format string
            use_colors: Whether to colour output; ignored when stderr is
                not a terminal (e.g. under systemd or docker logs)
        """
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a record, wrapping it in its level's colour.

        Args:
            record: The log record to format

        Returns:
            str: The formatted line
        """
        message = super().format(record)
        if self.use_colors:
            color = self.COLORS.get(record.levelno, "")
            if color:
                message = f"{color}{message}{self.RESET}"
        return message


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Shared by every handler installed below
_secret_filter: SecretFilter | None = None


def setup_logging(config: Config) -> None:
    """
    Set up logging for the bot.

    Configures:
    - Console handler with colored output
    - Optional file handler
    - Secret filtering on all handlers
    - The discord.py logger, at WARNING, on the same handlers

    Args:
        config: Bot configuration with log settings
    """
    global _secret_filter

    # Every module logger lives under this namespace
    logger = logging.getLogger("antispam")
    logger.setLevel(getattr(logging, config.log_level, logging.INFO))

    # Calling setup twice must not duplicate output
    logger.handlers.clear()

    _secret_filter = SecretFilter(config.secrets)

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    console_handler.addFilter(_secret_filter)
    logger.addHandler(console_handler)

    # File handler if configured
    if config.log_file:
        log_path = Path(config.log_file)
        # Create parent directories if needed
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.addFilter(_secret_filter)
        logger.addHandler(file_handler)

    # discord.py logs gateway and HTTP events through its own namespace;
    # main() passes log_handler=None so it does not install a second one
    discord_logger = logging.getLogger("discord")
    discord_logger.setLevel(logging.WARNING)
    for handler in logger.handlers:
        discord_logger.addHandler(handler)

    logger.debug("Logging initialized with level %s", config.log_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (usually __name__)

    Returns:
        logging.Logger: Logger under the antispam namespace
    """
    # Bare names like "custom" become "antispam.custom"
    if not name.startswith("antispam"):
        name = f"antispam.{name}"
    return logging.getLogger(name)


def verbose_level(verbose: bool) -> int:
    """
    Level for diagnostics that only matter in verbose mode.

    Refused kicks and bans, failed notices and unresolvable authors are
    expected in a busy guild, so they stay at DEBUG unless the operator
    turned on `verbose`.

    Args:
        verbose: The monitor's verbose option

    Returns:
        int: logging.WARNING when verbose, logging.DEBUG otherwise
    """
    return logging.WARNING if verbose else logging.DEBUG
