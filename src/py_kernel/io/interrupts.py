"""Interrupt dispatcher — a serialized queue of numbered events.

In a real computer, **interrupts** are signals that tell the CPU:
"Stop what you're doing — something needs attention!"  Each source has
its own numbered **line**, and the controller looks up the handler
registered on that line to service it.

Our dispatcher models a *non-reentrant* controller:

- **Strict FIFO** — interrupts are serviced one at a time, in the order
  they were triggered, whatever line they arrived on.
- **Suspending handlers** — a handler may return an awaitable (e.g. be
  an ``async def``).  The dispatcher awaits it before dequeuing the next
  interrupt, so a slow handler delays everything behind it.
- **Containment** — a handler that raises is logged at ERROR and the
  drain moves on.  Interrupts on lines with no handler are dropped.

Draining starts on the first ``trigger`` after the queue went idle.
Inside a running event loop the drain runs as a task (``join()`` waits
for it); without one, ``trigger`` drains synchronously via
``asyncio.run`` before returning.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from time import time
from typing import TYPE_CHECKING, TypeAlias

from py_kernel.logging import LogLevel

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from py_kernel.logging import Logger


class InterruptLine(IntEnum):
    """Reserved interrupt lines.  Any other int may be registered too."""

    EXCEPTION = 0
    KEYBOARD = 1
    TIMER = 2
    SYSCALL = 3


@dataclass(frozen=True)
class Interrupt:
    """A triggered interrupt waiting for (or receiving) service."""

    line: int
    payload: object = None
    enqueued_at: float = field(default_factory=time)


Handler: TypeAlias = "Callable[[Interrupt], Awaitable[object] | object]"

_DEFAULT_LEVELS: dict[InterruptLine, LogLevel] = {
    InterruptLine.EXCEPTION: LogLevel.ERROR,
    InterruptLine.KEYBOARD: LogLevel.DEBUG,
    InterruptLine.TIMER: LogLevel.DEBUG,
    InterruptLine.SYSCALL: LogLevel.DEBUG,
}


class InterruptDispatcher:
    """Handler table plus a single FIFO queue of pending interrupts."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create a disabled dispatcher with no handlers."""
        self._logger = logger
        self._handlers: dict[int, Handler] = {}
        self._queue: deque[Interrupt] = deque()
        self._enabled = False
        self._processing = False
        self._drain_task: asyncio.Task[None] | None = None
        self._total_serviced = 0
        self._total_dropped = 0
        self._total_failed = 0

    @property
    def enabled(self) -> bool:
        """Return True while triggers are accepted."""
        return self._enabled

    @property
    def pending_count(self) -> int:
        """Return how many interrupts wait in the queue."""
        return len(self._queue)

    @property
    def total_serviced(self) -> int:
        """Return how many interrupts a handler completed without raising."""
        return self._total_serviced

    @property
    def total_dropped(self) -> int:
        """Return how many interrupts had no handler."""
        return self._total_dropped

    @property
    def total_failed(self) -> int:
        """Return how many handlers raised."""
        return self._total_failed

    @property
    def lines(self) -> list[int]:
        """Return the lines that currently have a handler, sorted."""
        return sorted(self._handlers)

    def enable(self) -> None:
        """Accept triggers and install the default logging handlers.

        Lines 0-3 get a handler that records the interrupt on the kernel
        log, unless a handler is already registered there.
        """
        self._enabled = True
        for line, level in _DEFAULT_LEVELS.items():
            self._handlers.setdefault(line, self._make_default_handler(line, level))

    def disable(self) -> None:
        """Reject further triggers.  Queued interrupts still drain."""
        self._enabled = False

    def register_handler(self, line: int, handler: Handler) -> None:
        """Attach *handler* to *line*, replacing any previous one.

        Raises:
            ValueError: If *line* is negative.

        """
        if line < 0:
            msg = f"Interrupt line must be non-negative, got {line}"
            raise ValueError(msg)
        self._handlers[line] = handler

    def unregister_handler(self, line: int) -> bool:
        """Detach the handler on *line*.  Return True if one was registered."""
        return self._handlers.pop(line, None) is not None

    def trigger(self, line: int, payload: object = None) -> bool:
        """Queue an interrupt and make sure the queue is draining.

        Args:
            line: The interrupt line.
            payload: Opaque data handed to the handler.

        Returns:
            False if the dispatcher is disabled (nothing is queued).

        """
        if not self._enabled:
            return False
        self._queue.append(Interrupt(line=line, payload=payload))
        if self._processing:
            return True

        self._processing = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is None:
            asyncio.run(self._drain())
        else:
            self._drain_task = loop.create_task(self._drain())
        return True

    async def process_queue(self) -> None:
        """Drain the queue on the current loop, or wait for a drain in progress."""
        if self._processing:
            await self.join()
            return
        self._processing = True
        await self._drain()

    async def join(self) -> None:
        """Wait until the current background drain (if any) finishes."""
        task = self._drain_task
        if task is not None and task is not asyncio.current_task():
            await task

    async def _drain(self) -> None:
        try:
            while self._queue:
                interrupt = self._queue.popleft()
                handler = self._handlers.get(interrupt.line)
                if handler is None:
                    self._total_dropped += 1
                    continue
                try:
                    result = handler(interrupt)
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:  # noqa: BLE001
                    self._total_failed += 1
                    self._log(LogLevel.ERROR, f"Handler for line {interrupt.line} failed: {exc!r}")
                else:
                    self._total_serviced += 1
        finally:
            self._processing = False
            self._drain_task = None

    def _make_default_handler(self, line: InterruptLine, level: LogLevel) -> Handler:
        def handler(interrupt: Interrupt) -> None:
            self._log(level, f"{line.name} interrupt (payload={interrupt.payload!r})")

        return handler

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source="interrupt")
