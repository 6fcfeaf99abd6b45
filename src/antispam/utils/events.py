"""
Lifecycle events raised by the spam monitor.

Listeners may be plain functions or coroutine functions. They are called in
registration order; a listener that raises is logged and skipped.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Optional, Union

from antispam.utils.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]


class MonitorEvent(Enum):
    """Events emitted by the spam monitor."""

    MEMBER_WARNED = "member_warned"  # (member)
    MEMBER_KICKED = "member_kicked"  # (member)
    MEMBER_BANNED = "member_banned"  # (member)
    WARN_THRESHOLD_REACHED = "warn_threshold_reached"  # (member, duplicate)
    KICK_THRESHOLD_REACHED = "kick_threshold_reached"  # (member, duplicate)
    BAN_THRESHOLD_REACHED = "ban_threshold_reached"  # (member, duplicate)
    ERROR = "error"  # (message, error, action)


class EventEmitter:
    """Minimal async-aware event emitter."""

    def __init__(self) -> None:
        self._listeners: defaultdict[MonitorEvent, list[Listener]] = defaultdict(list)

    def on(
        self,
        event: Union[MonitorEvent, str],
        listener: Optional[Listener] = None,
    ) -> Any:
        """
        Register a listener for an event.

        Can be used directly or as a decorator:

            monitor.on(MonitorEvent.MEMBER_KICKED, log_kick)

            @monitor.on("member_banned")
            async def announce(member): ...

        Args:
            event: Event or its string name
            listener: Callback; omit to use as a decorator

        Returns:
            The listener, or a decorator when no listener was given
        """
        event = MonitorEvent(event)

        if listener is None:
            def decorator(func: Listener) -> Listener:
                self._listeners[event].append(func)
                return func
            return decorator

        self._listeners[event].append(listener)
        return listener

    def off(self, event: Union[MonitorEvent, str], listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        listeners = self._listeners.get(MonitorEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def listeners(self, event: Union[MonitorEvent, str]) -> list[Listener]:
        return list(self._listeners.get(MonitorEvent(event), []))

    async def emit(self, event: Union[MonitorEvent, str], *args: Any) -> bool:
        """
        Call every listener registered for an event.

        Args:
            event: Event to emit
            *args: Arguments passed to each listener

        Returns:
            bool: True if at least one listener was registered
        """
        event = MonitorEvent(event)
        listeners = self.listeners(event)
        for listener in listeners:
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener %r for %s failed", listener, event.value)
        return bool(listeners)
