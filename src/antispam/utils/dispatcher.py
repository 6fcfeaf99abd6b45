"""
Moderation actions taken by the spam monitor.

Every call to Discord is made here and every failure is handled here:
- removal refused for lack of permissions: logged, optional channel notice
- removal failed on Discord's side: reported through the error event, or
  logged and announced in the channel when nobody listens for it
- notice delivery failed: swallowed
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from antispam.utils.events import MonitorEvent
from antispam.utils.formatting import send_notice
from antispam.utils.logging import get_logger, verbose_level

if TYPE_CHECKING:
    from antispam.utils.events import EventEmitter
    from antispam.utils.ledger import ActivityLedger
    from antispam.utils.options import AntiSpamOptions

logger = get_logger(__name__)

SPAM_REASON = "Spamming!"
MAX_BAN_DELETE_DAYS = 7


def _outranks(actor: discord.Member, member: discord.Member) -> bool:
    """Whether the actor's highest role sits above the member's."""
    return actor.top_role.position > member.top_role.position


def can_kick(member: discord.Member) -> bool:
    """
    Check whether the bot may kick a member.

    Requires Kick Members, and the bot's top role must be above the member's.
    The guild owner can never be kicked.
    """
    guild = member.guild
    me = guild.me
    if member.id == guild.owner_id or member.id == me.id:
        return False
    return me.guild_permissions.kick_members and _outranks(me, member)


def can_ban(member: discord.Member) -> bool:
    """Same as `can_kick` but for the Ban Members permission."""
    guild = member.guild
    me = guild.me
    if member.id == guild.owner_id or member.id == me.id:
        return False
    return me.guild_permissions.ban_members and _outranks(me, member)


class ActionDispatcher:
    """
    Carries out warn, kick and ban on behalf of the monitor.

    Attributes:
        options: Monitor options (templates, verbose flag, ban settings)
        ledger: Ledger purged for authors that get removed
        events: Emitter receiving lifecycle and error events
    """

    def __init__(
        self,
        options: AntiSpamOptions,
        ledger: ActivityLedger,
        events: EventEmitter,
    ) -> None:
        self.options = options
        self.ledger = ledger
        self.events = events

    @property
    def _level(self) -> int:
        return verbose_level(self.options.verbose)

    async def warn(self, message: discord.Message, member: discord.Member) -> bool:
        """Emit the warn event and post the warn notice."""
        await self.events.emit(MonitorEvent.MEMBER_WARNED, member)
        await send_notice(
            message.channel, self.options.warn_message, message, verbose=self.options.verbose
        )
        logger.info("Warned %s (ID: %s) for spamming", message.author, message.author.id)
        return True

    async def kick(self, message: discord.Message, member: discord.Member) -> bool:
        """
        Kick a member for spamming.

        Returns:
            bool: True if the member was kicked
        """
        return await self._remove(message, member, ban=False)

    async def ban(self, message: discord.Message, member: discord.Member) -> bool:
        """
        Ban a member for spamming.

        Returns:
            bool: True if the member was banned
        """
        return await self._remove(message, member, ban=True)

    async def _remove(self, message: discord.Message, member: discord.Member, *, ban: bool) -> bool:
        action = "ban" if ban else "kick"
        verb = "banned" if ban else "kicked"
        author = message.author
        opts = self.options

        # Fresh start if they come back
        self.ledger.purge_author(author.id)

        permitted = can_ban(member) if ban else can_kick(member)
        if not permitted:
            logger.log(
                self._level,
                "%s (ID: %s) could not be %s, insufficient permissions",
                author, author.id, verb,
            )
            if opts.notify_missing_permissions:
                await send_notice(
                    message.channel,
                    f"Could not {action} **{{user_tag}}** because of improper permissions.",
                    message,
                    verbose=opts.verbose,
                )
            return False

        try:
            if ban:
                days = min(max(opts.delete_messages_after_ban_for_past_days, 0), MAX_BAN_DELETE_DAYS)
                await member.ban(reason=SPAM_REASON, delete_message_seconds=days * 86400)
            else:
                await member.kick(reason=SPAM_REASON)
        except discord.HTTPException as e:
            await self._report_failure(message, e, action)
            return False
        except Exception as e:
            logger.exception("Unexpected error while trying to %s %s", action, author)
            await self._report_failure(message, e, action)
            return False

        await send_notice(
            message.channel,
            opts.ban_message if ban else opts.kick_message,
            message,
            verbose=opts.verbose,
        )
        await self.events.emit(
            MonitorEvent.MEMBER_BANNED if ban else MonitorEvent.MEMBER_KICKED, member
        )
        logger.info("%s %s (ID: %s) for spamming", verb.capitalize(), author, author.id)
        return True

    async def _report_failure(self, message: discord.Message, error: Exception, action: str) -> None:
        """Hand a failed removal to error listeners, or announce it ourselves."""
        if await self.events.emit(MonitorEvent.ERROR, message, error, action):
            return

        author = message.author
        logger.log(
            self._level,
            "%s (ID: %s) could not be %s, %s",
            author, author.id, "banned" if action == "ban" else "kicked", error,
        )
        try:
            await message.channel.send(
                f"Could not {action} **{author}** because of an error: `{error}`."
            )
        except discord.HTTPException as e:
            logger.log(self._level, "Could not report %s failure: %s", action, e)
