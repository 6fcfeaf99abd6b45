"""
Main Discord bot class.

This module contains the AntiSpamBot class which handles:
- Connection to the Discord gateway
- Loading the anti-spam cog
- Event logging
"""

from __future__ import annotations

from datetime import datetime, timezone

import discord
from discord.ext import commands

from antispam.config import Config
from antispam.utils.logging import get_logger

logger = get_logger(__name__)

EXTENSIONS = ("antispam.cogs.antispam",)


class AntiSpamBot(commands.Bot):
    """
    Discord bot running the spam monitor.

    Attributes:
        config: Bot configuration
        start_time: Bot start timestamp for uptime tracking
    """

    def __init__(self, config: Config) -> None:
        """
        Initialize the bot.

        Args:
            config: Bot configuration object
        """
        self.config = config
        self.start_time = datetime.now(timezone.utc)

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(command_prefix=config.prefix, intents=intents)

    async def setup_hook(self) -> None:
        """Load extensions before connecting."""
        for extension in EXTENSIONS:
            try:
                await self.load_extension(extension)
                logger.info("Loaded extension: %s", extension)
            except commands.ExtensionError as e:
                logger.error("Failed to load extension %s: %s", extension, e)

    async def on_ready(self) -> None:
        logger.info("Bot is ready!")
        logger.info("Logged in as: %s (ID: %s)", self.user, self.user.id if self.user else "?")
        logger.info("Watching %d guilds", len(self.guilds))

    async def on_command_error(self, context: commands.Context, error: commands.CommandError) -> None:
        """
        Called when a command raises an error.

        Args:
            context: Command context
            error: The exception that was raised
        """
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, (commands.MissingPermissions, commands.NoPrivateMessage)):
            await context.send(f"{context.author.mention} You can't use that command here.")
            return

        logger.error(
            "Error in command %s: %s",
            context.command.qualified_name if context.command else "unknown",
            error,
            exc_info=error,
        )
        await context.send(f"{context.author.mention} An error occurred while processing your command.")

    @property
    def uptime(self) -> float:
        """Get bot uptime in seconds."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()
