"""
Anti-spam cog.

Feeds every guild message to the spam monitor and provides commands for
staff:
- !antispam status: Show the current counters
- !antispam reset: Clear all counters and escalation state
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import discord
from discord.ext import commands

from antispam.utils.events import MonitorEvent
from antispam.utils.logging import get_logger
from antispam.utils.monitor import SpamMonitor

if TYPE_CHECKING:
    from antispam.bot import AntiSpamBot

logger = get_logger(__name__)


class AntiSpam(commands.Cog):
    """
    Automatic spam moderation.

    Attributes:
        bot: The bot instance
        monitor: Spam monitor shared by every guild the bot is in
    """

    def __init__(self, bot: AntiSpamBot) -> None:
        self.bot = bot
        self.monitor = SpamMonitor(bot.config.antispam)

        self.monitor.on(MonitorEvent.WARN_THRESHOLD_REACHED, self._log_threshold("warn"))
        self.monitor.on(MonitorEvent.KICK_THRESHOLD_REACHED, self._log_threshold("kick"))
        self.monitor.on(MonitorEvent.BAN_THRESHOLD_REACHED, self._log_threshold("ban"))

        logger.info("AntiSpam cog initialized")

    @staticmethod
    def _log_threshold(tier: str) -> Callable[[discord.Member, bool], None]:
        def listener(member: discord.Member, duplicate: bool) -> None:
            logger.info(
                "%s (ID: %s) reached the %s threshold in %s%s",
                member, member.id, tier, member.guild.name,
                " (duplicates)" if duplicate else "",
            )
        return listener

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """Run every guild message through the monitor."""
        if message.guild is None:
            return
        await self.monitor.evaluate(message)

    @commands.group(name="antispam", invoke_without_command=True)
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    async def antispam(self, ctx: commands.Context) -> None:
        """
        Anti-spam management.

        Usage: !antispam <status|reset>
        """
        await ctx.send(f"Usage: {self.bot.config.prefix}antispam <status|reset>")

    @antispam.command(name="status")
    async def status(self, ctx: commands.Context) -> None:
        """Show how many messages and escalations are being tracked."""
        state = self.monitor.state
        await ctx.send(
            f"Tracking {state.cached_messages} messages | "
            f"Warned: {len(state.warned_users)} | "
            f"Kicked: {len(state.kicked_users)} | "
            f"Banned: {len(state.banned_users)}"
        )

    @antispam.command(name="reset")
    async def reset(self, ctx: commands.Context) -> None:
        """Clear every counter so all users start a fresh episode."""
        cleared = self.monitor.reset()
        logger.info("Anti-spam state reset by %s", ctx.author)
        await ctx.send(
            f"Anti-spam state cleared: {cleared.cached_messages} cached messages, "
            f"{len(cleared.warned_users)} warned, {len(cleared.kicked_users)} kicked, "
            f"{len(cleared.banned_users)} banned."
        )


async def setup(bot: AntiSpamBot) -> None:
    """Entry point used by discord.py when loading the extension."""
    await bot.add_cog(AntiSpam(bot))
