"""
Options for the spam monitor.

Holds thresholds, notice templates, exemption lists and feature toggles.
Options are built by merging a partial mapping over the defaults: a key
that is missing or set to None takes the default, anything else (including
0, "" and False) is kept as given.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import discord

# A notice template is plain text with placeholders, or an embed
Template = Union[str, discord.Embed]

DEFAULT_WARN_MESSAGE = "{@user}, Please stop spamming."
DEFAULT_KICK_MESSAGE = "**{user_tag}** has been kicked for spamming."
DEFAULT_BAN_MESSAGE = "**{user_tag}** has been banned for spamming."


class IgnoreList:
    """Base class for ignore lists. Use `coerce_ignore_list` to build one."""

    def matches(self, entity: Any, *keys: Any) -> bool:
        raise NotImplementedError


class StaticIgnoreList(IgnoreList):
    """
    Ignore list backed by a fixed set of identifiers.

    Identifiers are compared as strings so Discord snowflakes can be given
    as ints or strings. Role lists may also contain role names.
    """

    def __init__(self, values: Iterable[Any] = ()) -> None:
        self.values: frozenset[str] = frozenset(str(v) for v in values)

    def matches(self, entity: Any, *keys: Any) -> bool:
        return any(str(key) in self.values for key in keys if key is not None)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"StaticIgnoreList({sorted(self.values)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StaticIgnoreList) and other.values == self.values

    def __hash__(self) -> int:
        return hash(self.values)


class PredicateIgnoreList(IgnoreList):
    """Ignore list backed by a function receiving the live entity."""

    def __init__(self, predicate: Callable[[Any], bool]) -> None:
        self.predicate = predicate

    def matches(self, entity: Any, *keys: Any) -> bool:
        return bool(self.predicate(entity))

    def __repr__(self) -> str:
        return f"PredicateIgnoreList({self.predicate!r})"


def coerce_ignore_list(value: Any) -> IgnoreList:
    """
    Build an ignore list from a user supplied value.

    Args:
        value: An IgnoreList, a callable, or a collection of ids

    Returns:
        IgnoreList: The matching variant

    Raises:
        TypeError: If the value is none of the supported shapes
    """
    if isinstance(value, IgnoreList):
        return value
    if callable(value):
        return PredicateIgnoreList(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return StaticIgnoreList(value)
    raise TypeError(
        f"Ignore lists must be a collection of ids or a callable, got {type(value).__name__}"
    )


def normalize_permission(name: str) -> str:
    """Turn 'MANAGE_MESSAGES' or 'Manage Messages' into 'manage_messages'."""
    return name.strip().lower().replace(" ", "_")


def coerce_template(value: Any) -> Template:
    """Accept str, Embed, or an embed dict in Discord JSON shape."""
    if isinstance(value, (str, discord.Embed)):
        return value
    if isinstance(value, Mapping):
        return discord.Embed.from_dict(dict(value))
    raise TypeError(f"Templates must be a string or an embed, got {type(value).__name__}")


@dataclass(frozen=True)
class AntiSpamOptions:
    """
    Immutable spam monitor options.

    Attributes:
        warn_threshold: Messages inside the window that trigger a warning
        kick_threshold: Messages inside the window that trigger a kick
        ban_threshold: Messages inside the window that trigger a ban
        max_interval: Length of the frequency window in milliseconds
        warn_message: Notice sent to the channel on warn
        kick_message: Notice sent to the channel on kick
        ban_message: Notice sent to the channel on ban
        max_duplicates_warning: Identical messages that trigger a warning
        max_duplicates_kick: Identical messages that trigger a kick
        max_duplicates_ban: Identical messages that trigger a ban
        delete_messages_after_ban_for_past_days: History deleted on ban (1-7)
        exempt_permissions: Members holding any of these are never checked
        ignore_bots: Skip messages from bot accounts
        verbose: Log refused and failed actions at INFO/WARNING
        ignored_users: Users to skip (ids or predicate on User)
        ignored_roles: Roles to skip (ids, names or predicate on Role)
        ignored_guilds: Guilds to skip (ids or predicate on Guild)
        ignored_channels: Channels to skip (ids or predicate on channel)
        warn_enabled: Actually warn when the warn tier is reached
        kick_enabled: Actually kick when the kick tier is reached
        ban_enabled: Actually ban when the ban tier is reached
        notify_missing_permissions: Tell the channel when a removal is refused
        max_cached_messages: Cap on cached ledger records (None = unbounded)
    """

    warn_threshold: int = 3
    kick_threshold: int = 5
    ban_threshold: int = 7
    max_interval: int = 2000

    warn_message: Template = DEFAULT_WARN_MESSAGE
    kick_message: Template = DEFAULT_KICK_MESSAGE
    ban_message: Template = DEFAULT_BAN_MESSAGE

    max_duplicates_warning: int = 7
    max_duplicates_kick: int = 10
    max_duplicates_ban: int = 10

    delete_messages_after_ban_for_past_days: int = 1

    exempt_permissions: tuple[str, ...] = ()
    ignore_bots: bool = True
    verbose: bool = False

    ignored_users: IgnoreList = field(default_factory=StaticIgnoreList)
    ignored_roles: IgnoreList = field(default_factory=StaticIgnoreList)
    ignored_guilds: IgnoreList = field(default_factory=StaticIgnoreList)
    ignored_channels: IgnoreList = field(default_factory=StaticIgnoreList)

    warn_enabled: bool = True
    kick_enabled: bool = True
    ban_enabled: bool = True

    notify_missing_permissions: bool = True
    max_cached_messages: Optional[int] = None

    def __post_init__(self) -> None:
        """Coerce loosely typed inputs into their canonical form."""
        # Use object.__setattr__ because dataclass is frozen
        for name in ("ignored_users", "ignored_roles", "ignored_guilds", "ignored_channels"):
            object.__setattr__(self, name, coerce_ignore_list(getattr(self, name)))
        for name in ("warn_message", "kick_message", "ban_message"):
            object.__setattr__(self, name, coerce_template(getattr(self, name)))
        permissions = self.exempt_permissions
        if isinstance(permissions, str):
            permissions = (permissions,)
        object.__setattr__(
            self,
            "exempt_permissions",
            tuple(normalize_permission(p) for p in permissions),
        )

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> AntiSpamOptions:
        """
        Build options from a partial mapping merged over the defaults.

        Args:
            options: Partial options; None values fall back to defaults

        Returns:
            AntiSpamOptions: The merged options

        Raises:
            TypeError: On unknown option names
        """
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise TypeError(f"Unknown anti-spam options: {', '.join(unknown)}")
        return cls(**{k: v for k, v in options.items() if v is not None})

    def threshold_problems(self) -> list[str]:
        """Describe frequency thresholds that are not strictly increasing."""
        problems: list[str] = []
        if self.warn_threshold >= self.kick_threshold:
            problems.append(
                f"warn_threshold ({self.warn_threshold}) should be below "
                f"kick_threshold ({self.kick_threshold})"
            )
        if self.kick_threshold >= self.ban_threshold:
            problems.append(
                f"kick_threshold ({self.kick_threshold}) should be below "
                f"ban_threshold ({self.ban_threshold})"
            )
        return problems


def build_options(**overrides: Any) -> AntiSpamOptions:
    """Shortcut for `AntiSpamOptions.from_mapping(overrides)`."""
    return AntiSpamOptions.from_mapping(overrides)
