"""Tests for the process table.

The table owns every Process record: it allocates PIDs, forks, exits,
and purges terminated records once their grace window has passed.  A
fake clock lets the tests move time without sleeping.
"""

import pytest

from py_kernel.logging import Logger
from py_kernel.process import CRASH_EXIT_CODE, ProcessState, ProcessTable, UnknownProcessError

GRACE = 1.0


class FakeClock:
    """A hand-cranked monotonic clock."""

    def __init__(self) -> None:
        """Start at zero."""
        self.now = 0.0

    def __call__(self) -> float:
        """Return the current reading."""
        return self.now

    def advance(self, seconds: float) -> None:
        """Move time forward."""
        self.now += seconds


def _noop(pid: int) -> None:
    """Work that does nothing."""


def _table() -> tuple[ProcessTable, FakeClock]:
    clock = FakeClock()
    return ProcessTable(grace_period=GRACE, clock=clock), clock


class TestCreate:
    """Verify process creation."""

    def test_pids_start_at_one_and_increase(self) -> None:
        """PIDs are monotonic."""
        table, _ = _table()
        first = table.create("a", _noop)
        second = table.create("b", _noop)
        assert first.pid == 1
        assert second.pid == first.pid + 1

    def test_created_process_is_registered(self) -> None:
        """The new process can be looked up and is READY."""
        table, _ = _table()
        process = table.create("a", _noop, priority=3)
        assert process.pid in table
        assert table.get(process.pid) is process
        assert process.state is ProcessState.READY
        assert len(table) == 1

    def test_get_unknown_returns_none(self) -> None:
        """Unknown PIDs are simply absent."""
        table, _ = _table()
        unknown = 42
        assert table.get(unknown) is None
        assert unknown not in table

    def test_creation_is_logged(self) -> None:
        """Lifecycle events go to the kernel log under 'process'."""
        logger = Logger()
        table = ProcessTable(logger=logger)
        process = table.create("a", _noop)
        (entry,) = logger.filter(source="process")
        assert entry.pid == process.pid


class TestFork:
    """Verify fork semantics."""

    def test_child_copies_work_and_priority(self) -> None:
        """The child runs the same work at the same priority."""
        table, _ = _table()
        priority = 4
        parent = table.create("daemon", _noop, priority=priority)
        child = table.fork(parent.pid)
        assert child.pid != parent.pid
        assert child.work is parent.work
        assert child.priority == priority
        assert child.parent_pid == parent.pid
        assert child.name == "daemon_child"

    def test_child_state_is_independent(self) -> None:
        """Terminating the child leaves the parent alive."""
        table, _ = _table()
        parent = table.create("p", _noop)
        child = table.fork(parent.pid)
        table.exit(child.pid, 0)
        assert parent.alive

    def test_fork_unknown_parent_raises(self) -> None:
        """Forking a missing PID is an UnknownProcessError."""
        table, _ = _table()
        with pytest.raises(UnknownProcessError, match="99"):
            table.fork(99)

    def test_fork_after_grace_window_raises(self) -> None:
        """A parent past its grace window is gone even before a tick reaps it."""
        table, clock = _table()
        parent = table.create("p", _noop)
        table.exit(parent.pid)
        clock.advance(GRACE * 5)
        with pytest.raises(UnknownProcessError, match=str(parent.pid)):
            table.fork(parent.pid)
        assert table.get(parent.pid) is None
        assert len(table) == 0

    def test_fork_within_grace_window_succeeds(self) -> None:
        """A recently terminated parent can still be copied."""
        table, clock = _table()
        parent = table.create("p", _noop)
        table.exit(parent.pid)
        clock.advance(GRACE / 2)
        assert table.fork(parent.pid).parent_pid == parent.pid

    def test_unknown_process_is_value_error(self) -> None:
        """UnknownProcessError is a ValueError."""
        assert issubclass(UnknownProcessError, ValueError)


class TestExit:
    """Verify exit and the grace window."""

    def test_exit_records_code(self) -> None:
        """Exit terminates with the given code."""
        table, _ = _table()
        process = table.create("a", _noop)
        code = 7
        assert table.exit(process.pid, code) is True
        assert process.state is ProcessState.TERMINATED
        assert process.exit_code == code

    def test_exit_twice_returns_false(self) -> None:
        """A terminated process cannot exit again."""
        table, _ = _table()
        process = table.create("a", _noop)
        table.exit(process.pid)
        assert table.exit(process.pid) is False

    def test_exit_unknown_returns_false(self) -> None:
        """Exiting a missing PID is not an error."""
        table, _ = _table()
        assert table.exit(99) is False

    def test_terminated_record_visible_within_grace(self) -> None:
        """ps still shows the record before the window expires."""
        table, clock = _table()
        process = table.create("a", _noop)
        code = 2
        table.exit(process.pid, code)
        clock.advance(GRACE / 2)
        (record,) = table.list_processes()
        assert record["state"] == ProcessState.TERMINATED
        assert record["exit_code"] == code

    def test_terminated_record_purged_after_grace(self) -> None:
        """Listing after the window reaps the record."""
        table, clock = _table()
        process = table.create("a", _noop)
        table.exit(process.pid)
        clock.advance(GRACE)
        assert table.list_processes() == []
        assert process.pid not in table

    def test_reap_returns_purged_pids_only(self) -> None:
        """Live processes are never reaped."""
        table, clock = _table()
        live = table.create("live", _noop)
        dead = table.create("dead", _noop)
        table.exit(dead.pid)
        clock.advance(GRACE * 2)
        assert table.reap() == [dead.pid]
        assert live.pid in table

    def test_lookup_after_grace_window_misses(self) -> None:
        """get, require and membership all forget an expired record."""
        table, clock = _table()
        process = table.create("a", _noop)
        table.exit(process.pid)
        clock.advance(GRACE)
        assert table.get(process.pid) is None
        assert process.pid not in table
        with pytest.raises(UnknownProcessError):
            table.require(process.pid)

    def test_pids_not_reused_after_purge(self) -> None:
        """A reaped PID is never handed out again."""
        table, clock = _table()
        first = table.create("a", _noop)
        table.exit(first.pid)
        clock.advance(GRACE)
        table.reap()
        assert table.create("b", _noop).pid == first.pid + 1


class TestBlockWakeKill:
    """Verify block/wake and kill_all."""

    def test_block_then_wake(self) -> None:
        """Blocked processes return to READY when woken."""
        table, _ = _table()
        process = table.create("a", _noop)
        table.block(process.pid)
        assert process.state is ProcessState.BLOCKED
        table.wake(process.pid)
        assert process.state is ProcessState.READY

    def test_block_unknown_raises(self) -> None:
        """Blocking a missing PID is an UnknownProcessError."""
        table, _ = _table()
        with pytest.raises(UnknownProcessError):
            table.block(5)

    def test_kill_all_terminates_every_live_process(self) -> None:
        """Shutdown's force-kill uses the crash exit code."""
        table, _ = _table()
        a = table.create("a", _noop)
        b = table.create("b", _noop)
        table.block(b.pid)
        done = table.create("done", _noop)
        table.exit(done.pid, 0)
        expected_killed = 2
        assert table.kill_all() == expected_killed
        assert a.exit_code == CRASH_EXIT_CODE
        assert b.exit_code == CRASH_EXIT_CODE
        assert done.exit_code == 0
        assert table.live() == []

    def test_listing_is_sorted_by_pid(self) -> None:
        """Records come back in PID order."""
        table, _ = _table()
        for name in ("a", "b", "c"):
            table.create(name, _noop)
        assert [r["pid"] for r in table.list_processes()] == [1, 2, 3]
