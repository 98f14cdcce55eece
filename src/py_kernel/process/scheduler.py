"""CPU scheduler — decides which READY process runs on the next tick.

The scheduler owns the ready queue (of PIDs, never of records) and
delegates the *ordering* decision to a pluggable SchedulingPolicy:

- **RoundRobinPolicy** (the default): plain FIFO.  A process that
  finishes its run without exiting goes to the back of the queue, so
  every ready process gets a turn before anyone gets a second one.
- **PriorityPolicy**: the lowest priority value runs first (1 beats 5).
  Ties are broken by arrival order.  Low-priority work can starve while
  higher-priority work keeps the queue busy.

One **tick** is one scheduling step: reap expired records, take at most
one PID off the queue, run its work function to completion, and put it
back if it is still alive.  There is no mid-run preemption — a work
function that never returns stalls the whole kernel, exactly like a
cooperative OS.

Ticks are driven either by the caller (``tick()``) or, when ``start()``
is called inside a running asyncio event loop, by a background task that
ticks every ``time_slice`` seconds until ``stop()``.

Design: Strategy pattern
    The Scheduler is the *context*; SchedulingPolicy is the *strategy*.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from time import perf_counter
from typing import TYPE_CHECKING, Protocol

from py_kernel.config import DEFAULT_TIME_SLICE
from py_kernel.logging import LogLevel
from py_kernel.process.pcb import CRASH_EXIT_CODE, ProcessState

if TYPE_CHECKING:
    from py_kernel.logging import Logger
    from py_kernel.process.table import ProcessTable


class SchedulingPolicy(Protocol):
    """Interface that every scheduling algorithm must satisfy.

    - select: remove and return the next PID from the ready queue.
    - on_preempt: decide where a PID goes after a run that did not exit.
    """

    def select(self, ready_queue: deque[int], table: ProcessTable) -> int | None:
        """Remove and return the next PID to run, or None if empty."""
        ...  # pragma: no cover

    def on_preempt(self, ready_queue: deque[int], pid: int) -> None:
        """Re-insert a PID after its run."""
        ...  # pragma: no cover


class RoundRobinPolicy:
    """Round Robin — FIFO selection, back of the queue after each run."""

    def select(self, ready_queue: deque[int], table: ProcessTable) -> int | None:  # noqa: ARG002
        """Pop the front of the queue."""
        if not ready_queue:
            return None
        return ready_queue.popleft()

    def on_preempt(self, ready_queue: deque[int], pid: int) -> None:
        """Append to the back — the round-robin cycle."""
        ready_queue.append(pid)


class PriorityPolicy:
    """Priority scheduling — lowest priority value runs first.

    Tiebreaker: equal priorities use FIFO, since we scan left-to-right
    and the deque preserves insertion order.  PIDs whose record has
    disappeared sort last so the scheduler can discard them.
    """

    def select(self, ready_queue: deque[int], table: ProcessTable) -> int | None:
        """Remove and return the most urgent PID, or None."""
        if not ready_queue:
            return None
        best_idx = 0
        best_priority = _priority_of(table, ready_queue[0])
        for i in range(1, len(ready_queue)):
            priority = _priority_of(table, ready_queue[i])
            if priority < best_priority:
                best_idx, best_priority = i, priority
        pid = ready_queue[best_idx]
        del ready_queue[best_idx]
        return pid

    def on_preempt(self, ready_queue: deque[int], pid: int) -> None:
        """Append to the back of the queue."""
        ready_queue.append(pid)


def _priority_of(table: ProcessTable, pid: int) -> float:
    process = table.get(pid)
    return float("inf") if process is None else process.priority


class Scheduler:
    """The CPU scheduler — owns the ready queue and runs one PID per tick."""

    def __init__(
        self,
        table: ProcessTable,
        *,
        time_slice: float = DEFAULT_TIME_SLICE,
        policy: SchedulingPolicy | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a stopped scheduler.

        Args:
            table: The process table holding the records behind the PIDs.
            time_slice: Seconds between ticks of the background task.
            policy: Ordering strategy; round robin when omitted.
            logger: Optional kernel log for crashes and start/stop.

        """
        if time_slice <= 0:
            msg = f"Time slice must be positive, got {time_slice}"
            raise ValueError(msg)
        self._table = table
        self._time_slice = time_slice
        self._policy: SchedulingPolicy = policy or RoundRobinPolicy()
        self._logger = logger
        self._ready_queue: deque[int] = deque()
        self._current: int | None = None
        self._running = False
        self._ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def policy(self) -> SchedulingPolicy:
        """Return the scheduling policy."""
        return self._policy

    @property
    def time_slice(self) -> float:
        """Return the seconds between background ticks."""
        return self._time_slice

    @property
    def is_running(self) -> bool:
        """Return True between ``start()`` and ``stop()``."""
        return self._running

    @property
    def ready_queue(self) -> list[int]:
        """Return a snapshot of the queued PIDs, front first."""
        return list(self._ready_queue)

    @property
    def current_pid(self) -> int | None:
        """Return the PID whose work is executing right now, or None."""
        return self._current

    @property
    def ticks(self) -> int:
        """Return how many scheduling steps have run."""
        return self._ticks

    def start(self) -> None:
        """Start scheduling.

        Inside a running event loop this also spawns the periodic tick
        task.  Without one, the caller drives the scheduler with
        ``tick()``.  Starting twice is a no-op.
        """
        if self._running:
            return
        self._running = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._task = loop.create_task(self._run())
        self._log(LogLevel.INFO, f"Started (time slice {self._time_slice}s)")

    def stop(self) -> None:
        """Stop scheduling and cancel the periodic task, if any.

        A run already in progress is synchronous and completes first.
        """
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._log(LogLevel.INFO, "Stopped")

    def enqueue(self, pid: int) -> None:
        """Append *pid* to the ready queue (policy order applies on select)."""
        self._ready_queue.append(pid)

    def discard(self, pid: int) -> bool:
        """Remove *pid* from the ready queue.  Return True if it was queued."""
        with contextlib.suppress(ValueError):
            self._ready_queue.remove(pid)
            return True
        return False

    def tick(self) -> int | None:
        """Run one scheduling step.

        Returns:
            The PID that ran, or None when stopped or nothing was runnable.

        """
        if not self._running:
            return None
        self._table.reap()
        pid = self._policy.select(self._ready_queue, self._table)
        if pid is None:
            return None
        self._ticks += 1
        process = self._table.get(pid)
        if process is None or process.state is not ProcessState.READY:
            return None

        process.dispatch()
        self._current = pid
        started = perf_counter()
        try:
            process.work(pid)
        except Exception as exc:  # noqa: BLE001
            self._log(LogLevel.ERROR, f"Process crashed: {exc!r}", pid=pid)
            if process.alive:
                self._table.exit(pid, CRASH_EXIT_CODE)
        finally:
            process.add_cpu_time(perf_counter() - started)
            self._current = None

        if process.state is ProcessState.RUNNING:
            process.preempt()
            self._policy.on_preempt(self._ready_queue, pid)
        return pid

    async def _run(self) -> None:
        while self._running:
            self.tick()
            await asyncio.sleep(self._time_slice)

    def _log(self, level: LogLevel, message: str, *, pid: int | None = None) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source="scheduler", pid=pid)
