"""
Tests for the spam monitor.

These tests verify:
- Frequency and duplicate tiers
- One-shot warn/kick per episode
- Ban firing without a prior-state guard
- Exemptions
- Reset
- Failure handling during kicks and bans
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from antispam.utils.events import MonitorEvent
from antispam.utils.monitor import SpamMonitor


OWNER_ID = 1
BOT_ID = 999
AUTHOR_ID = 100


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_guild(*, can_kick: bool = True, can_ban: bool = True) -> MagicMock:
    guild = MagicMock()
    guild.id = 500
    guild.name = "Test Server"
    guild.owner_id = OWNER_ID
    guild.me = MagicMock()
    guild.me.id = BOT_ID
    guild.me.guild_permissions = discord.Permissions(kick_members=can_kick, ban_members=can_ban)
    guild.me.top_role.position = 10
    return guild


def make_member(guild: MagicMock, user_id: int = AUTHOR_ID, *, bot: bool = False) -> MagicMock:
    member = MagicMock()
    member.id = user_id
    member.bot = bot
    member.mention = f"<@{user_id}>"
    member.__str__.return_value = f"spammer{user_id}"
    member.roles = []
    member.guild = guild
    member.guild_permissions = discord.Permissions.none()
    member.top_role.position = 1
    member.kick = AsyncMock()
    member.ban = AsyncMock()
    return member


def make_role(role_id: int, name: str) -> MagicMock:
    role = MagicMock()
    role.id = role_id
    role.name = name
    return role


class Chat:
    """A guild with one channel and one member, producing messages."""

    def __init__(self, **guild_kwargs) -> None:
        self.guild = make_guild(**guild_kwargs)
        self.channel = MagicMock()
        self.channel.id = 600
        self.channel.send = AsyncMock()
        self.member = make_member(self.guild)
        self.guild.fetch_member = AsyncMock(return_value=self.member)

    def message(self, content: str = "hello", author: MagicMock | None = None) -> MagicMock:
        message = MagicMock()
        message.guild = self.guild
        message.channel = self.channel
        message.author = author or self.member
        message.content = content
        return message

    def sent(self) -> list[str]:
        return [c.args[0] for c in self.channel.send.await_args_list if c.args]


def run(coro):
    return asyncio.run(coro)


def record_events(monitor: SpamMonitor, event: MonitorEvent) -> list[tuple]:
    calls: list[tuple] = []
    monitor.on(event, lambda *args: calls.append(args))
    return calls


async def send_many(monitor: SpamMonitor, chat: Chat, count: int, clock: FakeClock,
                    *, step: float = 0.1, same: bool = False) -> list[bool]:
    results = []
    for i in range(count):
        content = "buy now" if same else f"message {clock.now}-{i}"
        results.append(await monitor.evaluate(chat.message(content)))
        clock.advance(step)
    return results


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chat() -> Chat:
    return Chat()


class TestFrequencyTiers:
    """Tests for the message frequency path."""

    def test_warn_fires_at_threshold(self, clock, chat) -> None:
        """Three messages inside the window trigger one warning."""
        monitor = SpamMonitor(clock=clock)
        warned = record_events(monitor, MonitorEvent.MEMBER_WARNED)
        reached = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)

        results = run(send_many(monitor, chat, 3, clock, step=0.5))

        assert results == [False, False, True]
        assert warned == [(chat.member,)]
        assert reached == [(chat.member, False)]
        assert AUTHOR_ID in monitor.escalation.warned
        assert chat.sent() == [f"<@{AUTHOR_ID}>, Please stop spamming."]

    def test_kick_follows_warn(self, clock, chat) -> None:
        """Messages four and five stay quiet until the kick threshold."""
        monitor = SpamMonitor(clock=clock)
        kicked = record_events(monitor, MonitorEvent.MEMBER_KICKED)

        results = run(send_many(monitor, chat, 5, clock, step=0.2))

        assert results == [False, False, True, False, True]
        chat.member.kick.assert_awaited_once_with(reason="Spamming!")
        assert kicked == [(chat.member,)]
        assert chat.sent()[-1] == f"**spammer{AUTHOR_ID}** has been kicked for spamming."
        assert AUTHOR_ID in monitor.escalation.kicked

    def test_kick_purges_ledger(self, clock, chat) -> None:
        """A kicked member starts from zero if they come back."""
        monitor = SpamMonitor(clock=clock)
        run(send_many(monitor, chat, 5, clock, step=0.1))

        assert all(r.author_id != AUTHOR_ID for r in monitor.ledger.activity)
        assert all(m.author_id != AUTHOR_ID for m in monitor.ledger.messages)

    def test_slow_messages_never_trigger(self, clock, chat) -> None:
        """Messages spread wider than the window are not spam."""
        monitor = SpamMonitor(clock=clock)

        results = run(send_many(monitor, chat, 10, clock, step=1.5))

        assert not any(results)
        chat.channel.send.assert_not_awaited()

    def test_warn_not_repeated_in_same_episode(self, clock, chat) -> None:
        """Reaching the warn count again does not warn twice."""
        monitor = SpamMonitor(clock=clock)
        reached = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)

        first = run(send_many(monitor, chat, 3, clock, step=0.1))
        clock.advance(10)
        second = run(send_many(monitor, chat, 3, clock, step=0.1))

        assert first == [False, False, True]
        assert second == [False, False, False]
        assert len(reached) == 1

    def test_disabled_action_still_reports_tier(self, clock, chat) -> None:
        """With kicks disabled the tier is reported but nobody is kicked."""
        monitor = SpamMonitor(clock=clock, kick_enabled=False)
        reached = record_events(monitor, MonitorEvent.KICK_THRESHOLD_REACHED)

        results = run(send_many(monitor, chat, 5, clock, step=0.1))

        assert results[-1] is True
        chat.member.kick.assert_not_awaited()
        assert reached == [(chat.member, False)]
        assert AUTHOR_ID in monitor.escalation.kicked

    def test_disabled_warn_still_reports_tier(self, clock, chat) -> None:
        """With warnings disabled the tier is reported but no notice goes out."""
        monitor = SpamMonitor(clock=clock, warn_enabled=False)
        reached = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)
        warned = record_events(monitor, MonitorEvent.MEMBER_WARNED)

        results = run(send_many(monitor, chat, 3, clock, step=0.1))

        assert results == [False, False, True]
        assert reached == [(chat.member, False)]
        assert warned == []
        assert AUTHOR_ID in monitor.escalation.warned
        chat.channel.send.assert_not_awaited()


class TestDuplicateTiers:
    """Tests for the duplicate content path."""

    def test_duplicates_warn_regardless_of_spacing(self, clock, chat) -> None:
        """Seven identical messages minutes apart trigger a duplicate warning."""
        monitor = SpamMonitor(clock=clock)
        reached = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)

        results = run(send_many(monitor, chat, 7, clock, step=60, same=True))

        assert results == [False] * 6 + [True]
        assert reached == [(chat.member, True)]

    def test_kick_wins_when_both_counts_hit_kick_tier(self, clock, chat) -> None:
        """Spam and duplicate counts reaching the kick tier together kick once."""
        monitor = SpamMonitor(
            clock=clock,
            max_duplicates_warning=3,
            max_duplicates_kick=5,
        )
        warn = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)
        kick = record_events(monitor, MonitorEvent.KICK_THRESHOLD_REACHED)

        results = run(send_many(monitor, chat, 5, clock, step=0.1, same=True))

        assert results == [False, False, True, False, True]
        assert warn == [(chat.member, True)]
        assert kick == [(chat.member, True)]
        chat.member.kick.assert_awaited_once()


class TestBanTier:
    """Tests for the ban tier, which has no prior-state guard."""

    def test_ban_fires_without_prior_warn_or_kick(self, clock, chat) -> None:
        """Ban fires on its own threshold even for a never warned user."""
        monitor = SpamMonitor(clock=clock, warn_threshold=20, kick_threshold=30, ban_threshold=3)
        banned = record_events(monitor, MonitorEvent.MEMBER_BANNED)

        results = run(send_many(monitor, chat, 3, clock, step=0.1))

        assert results == [False, False, True]
        chat.member.ban.assert_awaited_once_with(reason="Spamming!", delete_message_seconds=86400)
        assert banned == [(chat.member,)]
        assert monitor.escalation.warned == frozenset()
        assert AUTHOR_ID in monitor.escalation.banned

    def test_ban_can_fire_again_in_same_episode(self, clock, chat) -> None:
        """Known anomaly: the ban tier is not one-shot."""
        monitor = SpamMonitor(clock=clock, warn_threshold=20, kick_threshold=30, ban_threshold=3)
        reached = record_events(monitor, MonitorEvent.BAN_THRESHOLD_REACHED)

        run(send_many(monitor, chat, 3, clock, step=0.1))
        run(send_many(monitor, chat, 3, clock, step=0.1))

        assert len(reached) == 2
        assert chat.member.ban.await_count == 2

    def test_ban_delete_days_are_clamped(self, clock, chat) -> None:
        """Discord accepts at most seven days of message deletion."""
        monitor = SpamMonitor(
            clock=clock,
            warn_threshold=20,
            kick_threshold=30,
            ban_threshold=2,
            delete_messages_after_ban_for_past_days=30,
        )

        run(send_many(monitor, chat, 2, clock))

        chat.member.ban.assert_awaited_once_with(reason="Spamming!", delete_message_seconds=7 * 86400)


class TestExemptions:
    """Tests for messages that are never counted."""

    def test_direct_messages_ignored(self, chat) -> None:
        monitor = SpamMonitor()
        message = chat.message()
        message.guild = None

        assert run(monitor.evaluate(message)) is False
        assert monitor.ledger.activity == ()

    def test_owner_and_self_ignored(self, chat) -> None:
        """The guild owner and the bot itself are never counted."""
        monitor = SpamMonitor(warn_threshold=1)
        owner = make_member(chat.guild, OWNER_ID)
        me = make_member(chat.guild, BOT_ID)

        assert run(monitor.evaluate(chat.message(author=owner))) is False
        assert run(monitor.evaluate(chat.message(author=me))) is False
        assert monitor.ledger.activity == ()

    def test_bots_ignored_by_default(self, chat) -> None:
        monitor = SpamMonitor(warn_threshold=1)
        bot = make_member(chat.guild, 321, bot=True)
        chat.guild.fetch_member.return_value = bot

        assert run(monitor.evaluate(chat.message(author=bot))) is False

    def test_bots_counted_when_allowed(self, chat) -> None:
        monitor = SpamMonitor(warn_threshold=1, ignore_bots=False)
        bot = make_member(chat.guild, 321, bot=True)
        chat.guild.fetch_member.return_value = bot

        assert run(monitor.evaluate(chat.message(author=bot))) is True

    def test_exempt_permission(self, chat) -> None:
        """Members holding an exempt permission are skipped."""
        monitor = SpamMonitor(warn_threshold=1, exempt_permissions=["MANAGE_MESSAGES"])
        chat.member.guild_permissions = discord.Permissions(manage_messages=True)

        assert run(monitor.evaluate(chat.message())) is False

    def test_ignored_role_by_name(self, chat) -> None:
        monitor = SpamMonitor(warn_threshold=1, ignored_roles=["Trusted"])
        chat.member.roles = [make_role(1, "@everyone"), make_role(2, "Trusted")]

        assert run(monitor.evaluate(chat.message())) is False

    def test_ignored_role_predicate_receives_role(self, chat) -> None:
        seen = []
        monitor = SpamMonitor(
            warn_threshold=1,
            ignored_roles=lambda role: seen.append(role) or role.id == 2,
        )
        trusted = make_role(2, "Trusted")
        chat.member.roles = [trusted]

        assert run(monitor.evaluate(chat.message())) is False
        assert seen == [trusted]

    def test_ignored_user_predicate_with_empty_ledger(self, chat) -> None:
        """A predicate ignore list skips the author before anything is recorded."""
        monitor = SpamMonitor(warn_threshold=1, ignored_users=lambda user: user.id == AUTHOR_ID)

        assert run(monitor.evaluate(chat.message())) is False
        assert monitor.ledger.activity == ()
        assert monitor.ledger.messages == ()

    def test_ignored_channel_and_guild(self, chat) -> None:
        by_channel = SpamMonitor(warn_threshold=1, ignored_channels=["600"])
        by_guild = SpamMonitor(warn_threshold=1, ignored_guilds=lambda guild: guild.name == "Test Server")

        assert run(by_channel.evaluate(chat.message())) is False
        assert run(by_guild.evaluate(chat.message())) is False

    def test_member_fetched_when_author_is_user(self, chat) -> None:
        """A plain User author is resolved through the guild."""
        monitor = SpamMonitor(warn_threshold=1)

        assert run(monitor.evaluate(chat.message())) is True
        chat.guild.fetch_member.assert_awaited_once_with(AUTHOR_ID)

    def test_webhook_author_skipped_before_member_lookup(self, chat) -> None:
        """Webhook posts are bot authors with no member behind them."""
        monitor = SpamMonitor(warn_threshold=1)
        webhook = MagicMock()
        webhook.id = 777
        webhook.bot = True
        chat.guild.fetch_member.side_effect = discord.NotFound(
            MagicMock(status=404, reason="Not Found"), "Unknown Member"
        )

        assert run(monitor.evaluate(chat.message(author=webhook))) is False
        chat.guild.fetch_member.assert_not_awaited()

    def test_unresolvable_author_not_counted(self, chat) -> None:
        """An author who already left the guild is skipped without raising."""
        monitor = SpamMonitor(warn_threshold=1)
        chat.guild.fetch_member.side_effect = discord.NotFound(
            MagicMock(status=404, reason="Not Found"), "Unknown Member"
        )

        assert run(monitor.evaluate(chat.message())) is False
        chat.guild.fetch_member.assert_awaited_once_with(AUTHOR_ID)
        assert monitor.ledger.activity == ()
        assert monitor.ledger.messages == ()


class TestReset:
    """Tests for resetting the monitor."""

    def test_reset_returns_cleared_state(self, clock, chat) -> None:
        monitor = SpamMonitor(clock=clock)
        run(send_many(monitor, chat, 3, clock))

        cleared = monitor.reset()

        assert cleared.cached_messages == 3
        assert cleared.warned_users == frozenset({AUTHOR_ID})
        assert monitor.ledger.activity == ()
        assert monitor.escalation.warned == frozenset()

    def test_reset_starts_new_episode(self, clock, chat) -> None:
        """After a reset a previously warned author can be warned again."""
        monitor = SpamMonitor(clock=clock)
        reached = record_events(monitor, MonitorEvent.WARN_THRESHOLD_REACHED)

        run(send_many(monitor, chat, 3, clock))
        monitor.reset()
        clock.advance(10)
        results = run(send_many(monitor, chat, 3, clock))

        assert results == [False, False, True]
        assert len(reached) == 2


class TestFailures:
    """Tests for refused and failed moderation actions."""

    def test_kick_without_permission(self, clock) -> None:
        """A refused kick is a quiet no-op with a channel notice."""
        chat = Chat(can_kick=False)
        monitor = SpamMonitor(clock=clock)
        kicked = record_events(monitor, MonitorEvent.MEMBER_KICKED)

        results = run(send_many(monitor, chat, 5, clock))

        assert results[-1] is True
        chat.member.kick.assert_not_awaited()
        assert kicked == []
        assert chat.sent()[-1] == f"Could not kick **spammer{AUTHOR_ID}** because of improper permissions."

    def test_ban_without_permission(self, clock) -> None:
        chat = Chat(can_ban=False)
        monitor = SpamMonitor(clock=clock, warn_threshold=20, kick_threshold=30, ban_threshold=2)
        banned = record_events(monitor, MonitorEvent.MEMBER_BANNED)

        results = run(send_many(monitor, chat, 2, clock))

        assert results[-1] is True
        chat.member.ban.assert_not_awaited()
        assert banned == []
        assert chat.sent()[-1] == f"Could not ban **spammer{AUTHOR_ID}** because of improper permissions."

    def test_kick_refused_when_member_outranks_bot(self, clock, chat) -> None:
        """The bot cannot kick a member whose top role is above its own."""
        chat.member.top_role.position = 20
        monitor = SpamMonitor(clock=clock)
        kicked = record_events(monitor, MonitorEvent.MEMBER_KICKED)

        results = run(send_many(monitor, chat, 5, clock))

        assert results[-1] is True
        chat.member.kick.assert_not_awaited()
        assert kicked == []
        assert chat.sent()[-1] == f"Could not kick **spammer{AUTHOR_ID}** because of improper permissions."

    def test_kick_failure_goes_to_error_listener(self, clock, chat) -> None:
        """An attached error listener takes over failure reporting."""
        error = discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Missing Permissions")
        chat.member.kick.side_effect = error
        monitor = SpamMonitor(clock=clock)
        errors = record_events(monitor, MonitorEvent.ERROR)

        results = run(send_many(monitor, chat, 5, clock))

        assert results[-1] is True
        assert len(errors) == 1
        assert errors[0][1] is error
        assert errors[0][2] == "kick"
        assert not any("because of an error" in text for text in chat.sent())

    def test_ban_failure_without_listener_tells_channel(self, clock, chat) -> None:
        chat.member.ban.side_effect = discord.HTTPException(
            MagicMock(status=500, reason="Server Error"), "boom"
        )
        monitor = SpamMonitor(clock=clock, warn_threshold=20, kick_threshold=30, ban_threshold=2)

        results = run(send_many(monitor, chat, 2, clock))

        assert results[-1] is True
        assert "Could not ban **spammer100** because of an error" in chat.sent()[-1]

    def test_notice_failure_is_swallowed(self, clock, chat) -> None:
        chat.channel.send.side_effect = discord.HTTPException(
            MagicMock(status=403, reason="Forbidden"), "Cannot send messages"
        )
        monitor = SpamMonitor(clock=clock)

        results = run(send_many(monitor, chat, 3, clock))

        assert results == [False, False, True]
        assert AUTHOR_ID in monitor.escalation.warned

    def test_failing_listener_does_not_break_evaluation(self, clock, chat) -> None:
        monitor = SpamMonitor(clock=clock)

        @monitor.on(MonitorEvent.MEMBER_WARNED)
        def broken(member):
            raise RuntimeError("listener bug")

        results = run(send_many(monitor, chat, 3, clock))

        assert results[-1] is True
