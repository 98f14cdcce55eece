"""Process and Process Control Block (PCB).

A process is a unit of schedulable work. The kernel tracks each one via
a PCB holding its PID, name, priority, state, parent, exit code, and
accounting (creation time, accumulated CPU time).

The "program" of a process is its **work function**: a callable that
receives the process's own PID.  Each time the scheduler picks the
process, the work function runs *to completion* — there is no
preemption in the middle of a run.  A work function ends its process
by calling the ``exit`` syscall with its PID; otherwise the process
goes back to the ready queue and runs again on a later tick.

State machine::

    READY ⇄ RUNNING → TERMINATED
      ↑  ↓
     BLOCKED

Each transition method enforces its source state, so misuse is a
``RuntimeError`` rather than silent corruption.  TERMINATED is
absorbing: nothing leaves it.
"""

from __future__ import annotations

from enum import StrEnum
from time import time
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_PRIORITY = 1
CRASH_EXIT_CODE = -1


class ProcessState(StrEnum):
    """Lifecycle states of a process.

    - READY: waiting in the ready queue for its next run.
    - RUNNING: its work function is executing right now.
    - BLOCKED: parked; the scheduler skips it until it is woken.
    - TERMINATED: finished, kept briefly so it can still be inspected.
    """

    READY = "ready"
    RUNNING = "running"
    BLOCKED = "blocked"
    TERMINATED = "terminated"


Work: TypeAlias = "Callable[[int], object]"


class Process:
    """A simulated process (the Process Control Block).

    PIDs are assigned by the owning ``ProcessTable`` — the PCB itself
    never invents one.
    """

    def __init__(
        self,
        *,
        pid: int,
        name: str,
        work: Work,
        priority: int = DEFAULT_PRIORITY,
        parent_pid: int | None = None,
    ) -> None:
        """Create a new process in the READY state.

        Args:
            pid: Identifier assigned by the process table.
            name: Human-readable label (e.g. "init", "shell").
            work: The callable run on each scheduling step.
            priority: Scheduling priority (positive; lower runs first
                under the priority policy).
            parent_pid: PID of the parent process, if any.

        Raises:
            ValueError: If *priority* is not positive.

        """
        if priority < 1:
            msg = f"Priority must be positive, got {priority}"
            raise ValueError(msg)
        self._pid = pid
        self._name = name
        self._work = work
        self._priority = priority
        self._parent_pid = parent_pid
        self._state = ProcessState.READY
        self._exit_code: int | None = None
        self._created_at = time()
        self._cpu_time = 0.0
        self._terminated_at: float | None = None

    @property
    def pid(self) -> int:
        """Return the unique process identifier."""
        return self._pid

    @property
    def name(self) -> str:
        """Return the process name."""
        return self._name

    @property
    def work(self) -> Work:
        """Return the work function."""
        return self._work

    @property
    def priority(self) -> int:
        """Return the scheduling priority."""
        return self._priority

    @property
    def parent_pid(self) -> int | None:
        """Return the parent's PID, or None for root processes."""
        return self._parent_pid

    @property
    def state(self) -> ProcessState:
        """Return the current process state."""
        return self._state

    @property
    def exit_code(self) -> int | None:
        """Return the exit code, or None while the process is alive."""
        return self._exit_code

    @property
    def created_at(self) -> float:
        """Return the wall-clock creation time."""
        return self._created_at

    @property
    def cpu_time(self) -> float:
        """Return the seconds spent inside the work function so far."""
        return self._cpu_time

    @property
    def terminated_at(self) -> float | None:
        """Return when the process terminated (table clock), or None."""
        return self._terminated_at

    @property
    def alive(self) -> bool:
        """Return True until the process terminates."""
        return self._state is not ProcessState.TERMINATED

    def add_cpu_time(self, seconds: float) -> None:
        """Account for time spent in one run."""
        self._cpu_time += seconds

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        """Enforce a state transition.

        Raises:
            RuntimeError: If the process is not in the expected state.

        """
        if self._state is not expected:
            msg = f"Cannot {action}: process {self._pid} is {self._state}, expected {expected}"
            raise RuntimeError(msg)
        self._state = target

    def dispatch(self) -> None:
        """Transition READY → RUNNING. The scheduler picked this process."""
        self._transition("dispatch", ProcessState.READY, ProcessState.RUNNING)

    def preempt(self) -> None:
        """Transition RUNNING → READY. The run finished without exiting."""
        self._transition("preempt", ProcessState.RUNNING, ProcessState.READY)

    def block(self) -> None:
        """Transition READY → BLOCKED."""
        self._transition("block", ProcessState.READY, ProcessState.BLOCKED)

    def wake(self) -> None:
        """Transition BLOCKED → READY."""
        self._transition("wake", ProcessState.BLOCKED, ProcessState.READY)

    def terminate(self, exit_code: int, *, at: float) -> None:
        """Move to TERMINATED from any live state.

        Args:
            exit_code: The code to record.
            at: Termination time on the owning table's clock.

        Raises:
            RuntimeError: If the process is already terminated.

        """
        if self._state is ProcessState.TERMINATED:
            msg = f"Cannot terminate: process {self._pid} is already terminated"
            raise RuntimeError(msg)
        self._state = ProcessState.TERMINATED
        self._exit_code = exit_code
        self._terminated_at = at

    def to_dict(self) -> dict[str, object]:
        """Return the ``ps`` record for this process."""
        return {
            "pid": self._pid,
            "name": self._name,
            "state": self._state,
            "priority": self._priority,
            "parent_pid": self._parent_pid,
            "exit_code": self._exit_code,
            "cpu_time": self._cpu_time,
        }

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"Process(pid={self._pid}, name={self._name!r}, state={self._state})"
