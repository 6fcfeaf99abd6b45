"""
SpamGuard - per-user spam monitor for Discord guilds.

This package provides:
- A message rate and duplicate content monitor with warn, kick and ban tiers
- Ignore lists given as ids or predicates
- Lifecycle events for logging and custom handling
- A discord.py cog and bot to run it
"""

from antispam.utils.monitor import SpamMonitor, MonitorSnapshot
from antispam.utils.options import AntiSpamOptions, build_options
from antispam.utils.events import MonitorEvent

__version__ = "1.0.0"
__all__ = [
    "SpamMonitor",
    "MonitorSnapshot",
    "AntiSpamOptions",
    "build_options",
    "MonitorEvent",
    "main",
]


def main() -> None:
    """Entry point for the anti-spam bot."""
    import sys

    from antispam.bot import AntiSpamBot
    from antispam.config import load_config
    from antispam.utils.logging import get_logger, setup_logging

    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger = get_logger(__name__)

    logger.info("Starting SpamGuard v%s", __version__)

    bot = AntiSpamBot(config)

    try:
        # Our own logging setup already covers discord.py
        bot.run(config.token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.exception("Bot crashed with error: %s", e)
        sys.exit(1)
    finally:
        logger.info("Bot shutdown complete")
