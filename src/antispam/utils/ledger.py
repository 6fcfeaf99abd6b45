"""
In-memory activity ledger for the spam monitor.

Keeps two append-only logs:
- activity records (timestamp, author) used for frequency counting
- message records (content, author) used for duplicate counting

Nothing expires on its own. Old activity simply stops being counted once it
falls out of the window, and the whole ledger is cleared by an explicit reset.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ActivityRecord:
    """One non-exempt message seen at a point in time."""
    timestamp: float
    author_id: int


@dataclass(frozen=True)
class MessageRecord:
    """The content of one non-exempt message."""
    content: str
    author_id: int


@dataclass(frozen=True)
class LedgerSnapshot:
    """Copy of the ledger contents at one point in time."""
    activity: tuple[ActivityRecord, ...]
    messages: tuple[MessageRecord, ...]

    def __len__(self) -> int:
        return len(self.activity) + len(self.messages)


class ActivityLedger:
    """
    Per-process log of message activity.

    Args:
        max_records: Optional cap on each log. When reached, the oldest
            record is dropped. None keeps everything until cleared.
    """

    def __init__(self, max_records: Optional[int] = None) -> None:
        self.max_records = max_records
        self._activity: deque[ActivityRecord] = deque(maxlen=max_records)
        self._messages: deque[MessageRecord] = deque(maxlen=max_records)

    def record(self, author_id: int, content: str, timestamp: float) -> None:
        """Append one activity record and one message record."""
        self._activity.append(ActivityRecord(timestamp=timestamp, author_id=author_id))
        self._messages.append(MessageRecord(content=content, author_id=author_id))

    def count_recent(self, author_id: int, now: float, window: float) -> int:
        """
        Count activity for an author inside [now - window, now].

        Args:
            author_id: Author to count
            now: Current time, same unit as recorded timestamps
            window: Window length, same unit

        Returns:
            int: Number of records inside the window
        """
        start = now - window
        return sum(
            1 for r in self._activity
            if r.author_id == author_id and start <= r.timestamp <= now
        )

    def count_duplicates(self, author_id: int, content: str) -> int:
        """Count cached messages from an author with identical content."""
        return sum(
            1 for m in self._messages
            if m.author_id == author_id and m.content == content
        )

    def purge_author(self, author_id: int) -> int:
        """
        Remove every record belonging to an author.

        Returns:
            int: Number of records removed across both logs
        """
        before = len(self._activity) + len(self._messages)
        self._activity = deque(
            (r for r in self._activity if r.author_id != author_id),
            maxlen=self.max_records,
        )
        self._messages = deque(
            (m for m in self._messages if m.author_id != author_id),
            maxlen=self.max_records,
        )
        return before - (len(self._activity) + len(self._messages))

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(activity=tuple(self._activity), messages=tuple(self._messages))

    def clear(self) -> None:
        self._activity.clear()
        self._messages.clear()

    @property
    def activity(self) -> tuple[ActivityRecord, ...]:
        return tuple(self._activity)

    @property
    def messages(self) -> tuple[MessageRecord, ...]:
        return tuple(self._messages)
