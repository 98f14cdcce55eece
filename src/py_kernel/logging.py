"""Kernel log buffer — the simulated ``dmesg`` ring.

Every subsystem reports to one shared buffer: boot progress, process
lifecycle, crashes, interrupt handler faults, overlay sync failures,
and (at DEBUG) every syscall.

Like the Linux kernel ring buffer, the log has a fixed capacity.  When
it is full the oldest entry is overwritten and counted in ``dropped``,
so a long-running kernel never grows without bound.

Listeners receive each entry as it is recorded.  The CLI uses one to
echo ERROR entries to stderr, the way a console shows kernel oopses.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from time import time
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_LOG_CAPACITY = 1000


class LogLevel(IntEnum):
    """Severity, ordered so ``min_level`` filtering is a comparison."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """One immutable log record.

    Attributes:
        level: How serious the event is.
        message: What happened.
        source: The reporting subsystem ("vfs", "scheduler", ...).
        pid: The process concerned, if any.
        timestamp: Wall-clock time the entry was recorded.

    """

    level: LogLevel
    message: str
    source: str
    pid: int | None = None
    timestamp: float = field(default_factory=time)

    def __str__(self) -> str:
        """Render as ``[LEVEL] source[pid]: message``; the pid part is optional."""
        origin = self.source if self.pid is None else f"{self.source}[{self.pid}]"
        return f"[{self.level.name}] {origin}: {self.message}"


LogListener: TypeAlias = "Callable[[LogEntry], None]"


class Logger:
    """Bounded, append-only log with filtering and listeners."""

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        """Create an empty log holding at most *capacity* entries.

        Raises:
            ValueError: If *capacity* is not positive.

        """
        if capacity <= 0:
            msg = f"Log capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._ring: deque[LogEntry] = deque(maxlen=capacity)
        self._listeners: list[LogListener] = []
        self._dropped = 0

    @property
    def capacity(self) -> int:
        """Return the maximum number of retained entries."""
        assert self._ring.maxlen is not None  # noqa: S101
        return self._ring.maxlen

    @property
    def dropped(self) -> int:
        """Return how many entries were overwritten because the ring was full."""
        return self._dropped

    @property
    def entries(self) -> list[LogEntry]:
        """Return the retained entries, oldest first."""
        return list(self._ring)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int | None = None,
    ) -> LogEntry:
        """Record an event and notify listeners.

        Returns:
            The entry that was recorded.

        """
        if len(self._ring) == self.capacity:
            self._dropped += 1
        entry = LogEntry(level=level, message=message, source=source, pid=pid)
        self._ring.append(entry)
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def subscribe(self, listener: LogListener) -> None:
        """Call *listener* with every entry recorded from now on."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: LogListener) -> bool:
        """Stop notifying *listener*.  Return False if it was not subscribed."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return the retained entries matching every given criterion."""
        return [
            entry
            for entry in self._ring
            if (min_level is None or entry.level >= min_level)
            and (source is None or entry.source == source)
            and (pid is None or entry.pid == pid)
        ]

    def tail(self, count: int) -> list[LogEntry]:
        """Return the newest *count* entries, oldest first."""
        if count <= 0:
            return []
        return list(self._ring)[-count:]

    def clear(self) -> None:
        """Drop every retained entry and reset the overwrite counter."""
        self._ring.clear()
        self._dropped = 0
