"""
Spam monitor for Discord guilds.

Feeds every guild message through:
- an exemption filter (DMs, the bot itself, the owner, bots, staff,
  ignored users/roles/guilds/channels)
- the activity ledger
- the escalation state machine (warn, kick, ban)
- the action dispatcher

Runs on a single event loop without locks. The escalation state for a
message is decided and marked before the first await that follows it, so
two messages from the same author cannot both pass a tier's guard.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional, Union

import discord

from antispam.utils.dispatcher import ActionDispatcher
from antispam.utils.escalation import (
    Counts,
    Decision,
    EscalationSnapshot,
    EscalationState,
    Tier,
    decide,
)
from antispam.utils.events import EventEmitter, MonitorEvent
from antispam.utils.ledger import ActivityLedger, LedgerSnapshot
from antispam.utils.logging import get_logger, verbose_level
from antispam.utils.options import AntiSpamOptions

logger = get_logger(__name__)

_THRESHOLD_EVENTS = {
    Tier.WARN: MonitorEvent.WARN_THRESHOLD_REACHED,
    Tier.KICK: MonitorEvent.KICK_THRESHOLD_REACHED,
    Tier.BAN: MonitorEvent.BAN_THRESHOLD_REACHED,
}


@dataclass(frozen=True)
class MonitorSnapshot:
    """Monitor state captured by `SpamMonitor.reset`."""
    ledger: LedgerSnapshot
    escalation: EscalationSnapshot

    @property
    def cached_messages(self) -> int:
        return len(self.ledger.messages)

    @property
    def warned_users(self) -> frozenset[int]:
        return self.escalation.warned

    @property
    def kicked_users(self) -> frozenset[int]:
        return self.escalation.kicked

    @property
    def banned_users(self) -> frozenset[int]:
        return self.escalation.banned


class SpamMonitor(EventEmitter):
    """
    Per-user message rate and duplicate content monitor.

    Example:
        monitor = SpamMonitor(warn_threshold=4, ignored_users=[1234])

        @monitor.on("member_kicked")
        async def on_kick(member):
            ...

        # inside on_message
        await monitor.evaluate(message)

    Args:
        options: Options object or partial mapping merged over the defaults
        clock: Monotonic clock in seconds, replaceable for tests
        **overrides: Extra options merged over `options`
    """

    def __init__(
        self,
        options: Union[AntiSpamOptions, Mapping[str, Any], None] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        **overrides: Any,
    ) -> None:
        super().__init__()
        if not isinstance(options, AntiSpamOptions):
            options = AntiSpamOptions.from_mapping({**dict(options or {}), **overrides})
        elif overrides:
            options = replace(options, **{k: v for k, v in overrides.items() if v is not None})
        self.options: AntiSpamOptions = options
        self.clock = clock
        self.ledger = ActivityLedger(max_records=options.max_cached_messages)
        self.escalation = EscalationState()
        self.dispatcher = ActionDispatcher(options, self.ledger, self)

        for problem in options.threshold_problems():
            logger.warning("Anti-spam thresholds out of order: %s", problem)

    def _now_ms(self) -> float:
        return self.clock() * 1000

    async def _resolve_member(self, message: discord.Message) -> Optional[discord.Member]:
        """
        The author as a guild member, fetched if the cache only has a User.

        Returns None when Discord has no member for the author, e.g. a
        webhook post or someone who left right after sending.
        """
        if isinstance(message.author, discord.Member):
            return message.author
        try:
            return await message.guild.fetch_member(message.author.id)
        except discord.HTTPException as e:
            logger.log(
                verbose_level(self.options.verbose),
                "Could not resolve %s (ID: %s) as a member of %s: %s",
                message.author, message.author.id, message.guild.id, e,
            )
            return None

    def is_exempt(self, message: discord.Message, member: discord.Member) -> bool:
        """
        Check the configured exemptions for a guild message.

        Args:
            message: Message being evaluated
            member: Its author as a guild member

        Returns:
            bool: True if the message must not be counted
        """
        opts = self.options
        author = message.author

        if opts.ignore_bots and author.bot:
            return True

        if opts.exempt_permissions:
            perms = member.guild_permissions
            if any(getattr(perms, name, False) for name in opts.exempt_permissions):
                return True

        if any(opts.ignored_roles.matches(role, role.id, role.name) for role in member.roles):
            return True

        return (
            opts.ignored_users.matches(author, author.id)
            or opts.ignored_guilds.matches(message.guild, message.guild.id)
            or opts.ignored_channels.matches(message.channel, message.channel.id)
        )

    async def evaluate(self, message: discord.Message) -> bool:
        """
        Check a message and act on it if it pushes its author over a tier.

        Args:
            message: Incoming guild message

        Returns:
            bool: True if a tier was reached, whether or not the matching
            action is enabled or succeeded
        """
        guild = message.guild
        if guild is None:
            return False
        author = message.author
        if author.id == guild.me.id or author.id == guild.owner_id:
            return False

        # Bots are skipped before the member lookup; webhooks have no member
        if self.options.ignore_bots and author.bot:
            return False

        member = await self._resolve_member(message)
        if member is None or self.is_exempt(message, member):
            return False

        now = self._now_ms()
        window = self.options.max_interval
        spam_before = self.ledger.count_recent(author.id, now, window)
        dup_before = self.ledger.count_duplicates(author.id, message.content)
        self.ledger.record(author.id, message.content, now)
        counts = Counts(
            spam_before=spam_before,
            spam_after=self.ledger.count_recent(author.id, now, window),
            dup_before=dup_before,
            dup_after=self.ledger.count_duplicates(author.id, message.content),
        )

        decision = decide(author.id, counts, self.escalation, self.options)
        if decision is None:
            return False

        self.escalation.mark(decision.tier, author.id)
        logger.debug(
            "%s (ID: %s) reached %s tier (spam=%d, duplicates=%d)",
            author, author.id, decision.action, counts.spam_after, counts.dup_after,
        )
        await self._act(decision, message, member)
        await self.emit(_THRESHOLD_EVENTS[decision.tier], member, decision.duplicate)
        return True

    async def _act(self, decision: Decision, message: discord.Message, member: discord.Member) -> None:
        opts = self.options
        if decision.tier is Tier.WARN and opts.warn_enabled:
            await self.dispatcher.warn(message, member)
        elif decision.tier is Tier.KICK and opts.kick_enabled:
            await self.dispatcher.kick(message, member)
        elif decision.tier is Tier.BAN and opts.ban_enabled:
            await self.dispatcher.ban(message, member)

    @property
    def state(self) -> MonitorSnapshot:
        """Current ledger and escalation state, for diagnostics."""
        return MonitorSnapshot(ledger=self.ledger.snapshot(), escalation=self.escalation.snapshot())

    def reset(self) -> MonitorSnapshot:
        """
        Clear the ledger and every escalation set.

        Returns:
            MonitorSnapshot: The state that was just cleared
        """
        snapshot = self.state
        self.ledger.clear()
        self.escalation.clear()
        logger.info(
            "Anti-spam state reset: %d cached messages, %d warned, %d kicked, %d banned",
            snapshot.cached_messages,
            len(snapshot.warned_users),
            len(snapshot.kicked_users),
            len(snapshot.banned_users),
        )
        return snapshot
