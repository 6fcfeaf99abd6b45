"""
Escalation state machine for the spam monitor.

Three tiers, in order of severity: warn, kick, ban. Each tier remembers
which authors it already fired for during the current episode. Warn and
kick fire at most once per author per episode. Ban has no such guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from antispam.utils.options import AntiSpamOptions


class Tier(Enum):
    """Escalation tiers, lowest severity first."""
    WARN = "warn"
    KICK = "kick"
    BAN = "ban"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Tier.WARN: 1, Tier.KICK: 2, Tier.BAN: 3}


@dataclass(frozen=True)
class Counts:
    """Spam and duplicate counts for one author, before and after a message."""
    spam_before: int
    spam_after: int
    dup_before: int
    dup_after: int


@dataclass(frozen=True)
class Decision:
    """A tier reached by a message."""
    tier: Tier
    duplicate: bool

    @property
    def action(self) -> str:
        return self.tier.value


@dataclass(frozen=True)
class EscalationSnapshot:
    warned: frozenset[int]
    kicked: frozenset[int]
    banned: frozenset[int]


class EscalationState:
    """Authors each tier has already fired for."""

    def __init__(self) -> None:
        self._marked: dict[Tier, set[int]] = {tier: set() for tier in Tier}

    def mark(self, tier: Tier, author_id: int) -> None:
        self._marked[tier].add(author_id)

    def has(self, tier: Tier, author_id: int) -> bool:
        return author_id in self._marked[tier]

    def reached(self, tier: Tier, author_id: int) -> bool:
        """True if the author was marked for this tier or a more severe one."""
        return any(self.has(t, author_id) for t in Tier if t.rank >= tier.rank)

    @property
    def warned(self) -> frozenset[int]:
        return frozenset(self._marked[Tier.WARN])

    @property
    def kicked(self) -> frozenset[int]:
        return frozenset(self._marked[Tier.KICK])

    @property
    def banned(self) -> frozenset[int]:
        return frozenset(self._marked[Tier.BAN])

    def snapshot(self) -> EscalationSnapshot:
        return EscalationSnapshot(warned=self.warned, kicked=self.kicked, banned=self.banned)

    def clear(self) -> None:
        for marked in self._marked.values():
            marked.clear()


def crossed(before: int, after: int, threshold: int) -> bool:
    """True when a count moved from below the threshold to at or above it."""
    return before < threshold <= after


def decide(
    author_id: int,
    counts: Counts,
    state: EscalationState,
    options: AntiSpamOptions,
) -> Optional[Decision]:
    """
    Pick the tier reached by the latest message, if any.

    Tiers are checked warn first. Only the first tier that matches is
    returned, even if the counts also satisfy a later one.

    Args:
        author_id: Author of the message
        counts: Counts before and after recording the message
        state: Current escalation state
        options: Monitor options holding the thresholds

    Returns:
        Decision or None when no tier was reached
    """
    tiers = (
        (Tier.WARN, options.warn_threshold, options.max_duplicates_warning, True),
        (Tier.KICK, options.kick_threshold, options.max_duplicates_kick, True),
        # Ban is not guarded by prior state; see DESIGN.md
        (Tier.BAN, options.ban_threshold, options.max_duplicates_ban, False),
    )
    for tier, spam_threshold, dup_threshold, guarded in tiers:
        if guarded and state.reached(tier, author_id):
            continue
        duplicate = crossed(counts.dup_before, counts.dup_after, dup_threshold)
        if duplicate or crossed(counts.spam_before, counts.spam_after, spam_threshold):
            return Decision(tier=tier, duplicate=duplicate)
    return None
