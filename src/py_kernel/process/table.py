"""Process table — the owner of every Process record.

The table hands out PIDs, keeps the records, and performs the lifecycle
operations that are not scheduling decisions: create, fork, exit,
block, wake.  The scheduler only ever holds PIDs and asks the table for
the record behind them.

Terminated processes are not removed immediately.  They linger for a
short **grace window** so ``ps`` (and a parent) can still observe the
exit code, and are then purged lazily.  ``reap()`` runs on every
scheduler tick, every listing and every lookup, so a record past its
window is never handed out again.  The clock is injectable so tests
can move time forward without sleeping.
"""

from __future__ import annotations

from itertools import count
from time import monotonic
from typing import TYPE_CHECKING

from py_kernel.config import DEFAULT_GRACE_PERIOD
from py_kernel.logging import LogLevel
from py_kernel.process.pcb import CRASH_EXIT_CODE, DEFAULT_PRIORITY, Process, ProcessState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from py_kernel.logging import Logger
    from py_kernel.process.pcb import Work


class UnknownProcessError(ValueError):
    """Raised when a PID does not name a process in the table."""


class ProcessTable:
    """PID allocation and process records."""

    def __init__(
        self,
        *,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], float] = monotonic,
        logger: Logger | None = None,
    ) -> None:
        """Create an empty process table.

        Args:
            grace_period: Seconds a terminated record stays visible.
            clock: Time source used for grace-window bookkeeping.
            logger: Optional kernel log for lifecycle events.

        """
        self._grace_period = grace_period
        self._clock = clock
        self._logger = logger
        self._pids = count(start=1)
        self._processes: dict[int, Process] = {}

    @property
    def grace_period(self) -> float:
        """Return how long terminated records are kept."""
        return self._grace_period

    def create(
        self,
        name: str,
        work: Work,
        priority: int = DEFAULT_PRIORITY,
        parent_pid: int | None = None,
    ) -> Process:
        """Create a READY process and register it.

        The caller is responsible for handing the PID to a scheduler.
        """
        process = Process(
            pid=next(self._pids),
            name=name,
            work=work,
            priority=priority,
            parent_pid=parent_pid,
        )
        self._processes[process.pid] = process
        self._log(f"Created process '{name}'", pid=process.pid)
        return process

    def fork(self, parent_pid: int) -> Process:
        """Create ``<name>_child`` running the same work at the same priority.

        Args:
            parent_pid: PID of the process to copy.

        Returns:
            The new READY child.

        Raises:
            UnknownProcessError: If the parent is not in the table.

        """
        parent = self.get(parent_pid)
        if parent is None:
            msg = f"Cannot fork: no process with PID {parent_pid}"
            raise UnknownProcessError(msg)
        return self.create(
            f"{parent.name}_child",
            parent.work,
            priority=parent.priority,
            parent_pid=parent.pid,
        )

    def exit(self, pid: int, code: int = 0) -> bool:
        """Terminate a live process with *code*.

        Returns:
            False when the PID is unknown or already terminated.

        """
        process = self._processes.get(pid)
        if process is None or not process.alive:
            return False
        process.terminate(code, at=self._clock())
        self._log(f"Exited with code {code}", pid=pid)
        return True

    def get(self, pid: int) -> Process | None:
        """Return the process with *pid*, or None once it has been reaped."""
        self.reap()
        return self._processes.get(pid)

    def require(self, pid: int) -> Process:
        """Return the process with *pid*.

        Raises:
            UnknownProcessError: If no such process exists.

        """
        process = self.get(pid)
        if process is None:
            msg = f"No process with PID {pid}"
            raise UnknownProcessError(msg)
        return process

    def list_processes(self) -> list[dict[str, object]]:
        """Return ``ps``-style records for every visible process, by PID."""
        self.reap()
        return [self._processes[pid].to_dict() for pid in sorted(self._processes)]

    def block(self, pid: int) -> None:
        """Park a READY process so the scheduler skips it.

        Raises:
            UnknownProcessError: If no such process exists.
            RuntimeError: If the process is not READY.

        """
        self.require(pid).block()
        self._log("Blocked", pid=pid)

    def wake(self, pid: int) -> None:
        """Return a BLOCKED process to READY.

        Raises:
            UnknownProcessError: If no such process exists.
            RuntimeError: If the process is not BLOCKED.

        """
        self.require(pid).wake()
        self._log("Woken", pid=pid)

    def reap(self) -> list[int]:
        """Purge terminated records whose grace window has expired.

        Returns:
            The purged PIDs.

        """
        now = self._clock()
        expired = [
            pid
            for pid, process in self._processes.items()
            if process.terminated_at is not None
            and now - process.terminated_at >= self._grace_period
        ]
        for pid in expired:
            del self._processes[pid]
        if expired:
            self._log(f"Reaped {len(expired)} process(es)")
        return expired

    def kill_all(self) -> int:
        """Force-terminate every live process with the crash exit code.

        Returns:
            How many processes were terminated.

        """
        now = self._clock()
        killed = 0
        for process in self._processes.values():
            if process.alive:
                process.terminate(CRASH_EXIT_CODE, at=now)
                killed += 1
        return killed

    def live(self) -> list[Process]:
        """Return every process that has not terminated."""
        return [p for p in self._processes.values() if p.state is not ProcessState.TERMINATED]

    def __len__(self) -> int:
        """Return the number of records, terminated ones included."""
        return len(self._processes)

    def __contains__(self, pid: object) -> bool:
        """Return True if *pid* names a record in the table."""
        self.reap()
        return pid in self._processes

    def __iter__(self) -> Iterator[Process]:
        """Iterate over records in PID order."""
        return iter([self._processes[pid] for pid in sorted(self._processes)])

    def _log(self, message: str, *, pid: int | None = None) -> None:
        if self._logger is not None:
            self._logger.log(LogLevel.INFO, message, source="process", pid=pid)
