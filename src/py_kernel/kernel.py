"""The kernel — the context object that owns every subsystem.

The kernel manages the system lifecycle and coordinates the subsystems:
page allocator, virtual file system, process table, scheduler, and
interrupt dispatcher.  There is no global instance: whoever boots a
``Kernel`` holds it and passes it around (to programs, to the web
gateway, to tests).

Lifecycle::

    SHUTDOWN → BOOTING → RUNNING → SHUTTING_DOWN → SHUTDOWN

Boot runs one step per subsystem, each contributing ``[OK]`` lines to
the boot log: logger, page allocator, file system (standard tree, then
host overlays), process table with scheduler, interrupt dispatcher.
Init (PID 1) is created last.  A failing step rolls the kernel back to
SHUTDOWN.

Shutdown tears the same subsystems down.  Nothing survives a reboot:
no pages, processes, or open handles.
"""

from __future__ import annotations

from enum import StrEnum
from time import monotonic
from typing import TYPE_CHECKING, Any

from py_kernel.config import KernelConfig
from py_kernel.fs.vfs import VirtualFileSystem
from py_kernel.io.interrupts import InterruptDispatcher
from py_kernel.logging import Logger, LogLevel
from py_kernel.memory.allocator import PageAllocator
from py_kernel.process.scheduler import Scheduler
from py_kernel.process.table import ProcessTable
from py_kernel.syscalls import dispatch_syscall

if TYPE_CHECKING:
    from py_kernel.process.pcb import Work
    from py_kernel.process.scheduler import SchedulingPolicy


class KernelState(StrEnum):
    """Represent the lifecycle phases of the kernel."""

    SHUTDOWN = "shutdown"
    BOOTING = "booting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


def _init_work(pid: int) -> None:  # noqa: ARG001
    """Init idles: it stays READY for the lifetime of the kernel."""


class Kernel:
    """The central coordinator of the simulated operating system.

    Subsystem references are None when the kernel is not running, and
    are initialised during boot.  Accessing one while the kernel is not
    running raises ``RuntimeError``.
    """

    def __init__(
        self,
        config: KernelConfig | None = None,
        *,
        policy: SchedulingPolicy | None = None,
    ) -> None:
        """Create a kernel in the SHUTDOWN state.

        Args:
            config: Boot configuration; defaults to ``KernelConfig()``.
            policy: Scheduling policy for every boot; round robin when
                omitted.

        """
        self._config = config or KernelConfig()
        self._policy = policy
        self._state = KernelState.SHUTDOWN
        self._boot_time: float | None = None

        self._logger: Logger | None = None
        self._memory: PageAllocator | None = None
        self._vfs: VirtualFileSystem | None = None
        self._processes: ProcessTable | None = None
        self._scheduler: Scheduler | None = None
        self._interrupts: InterruptDispatcher | None = None

        # Boot log — dmesg-style messages from subsystem initialisation
        self._boot_log: list[str] = []
        self._init_pid: int | None = None

    # -- Lifecycle ----------------------------------------------------------

    @property
    def state(self) -> KernelState:
        """Return the current kernel state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True while syscalls are accepted."""
        return self._state is KernelState.RUNNING

    @property
    def config(self) -> KernelConfig:
        """Return the boot configuration."""
        return self._config

    @property
    def uptime(self) -> float:
        """Return seconds elapsed since boot, or 0.0 if not running."""
        if self._boot_time is None:
            return 0.0
        return monotonic() - self._boot_time

    @property
    def init_pid(self) -> int | None:
        """Return the PID of the init process, or None before boot."""
        return self._init_pid

    def dmesg(self) -> list[str]:
        """Return the kernel boot log (like Linux dmesg)."""
        return list(self._boot_log)

    def boot(self) -> None:
        """Bring every subsystem up, in order, and start init.

        If any step fails, whatever was already built is torn down and
        the kernel is back in SHUTDOWN before the error propagates.

        Raises:
            RuntimeError: If the kernel is not in the SHUTDOWN state.

        """
        if self._state is not KernelState.SHUTDOWN:
            msg = f"Cannot boot: kernel is {self._state}, expected shutdown"
            raise RuntimeError(msg)

        self._state = KernelState.BOOTING
        self._boot_time = monotonic()
        steps = (
            self._start_logger,
            self._start_memory,
            self._start_file_system,
            self._start_processes,
            self._start_interrupts,
        )
        try:
            for step in steps:
                self._boot_log.extend(step())
            self._state = KernelState.RUNNING
            self._init_pid = self.create_process("init", _init_work)
        except Exception:
            self._teardown()
            raise
        self._boot_log.append(f"[OK] Init process (PID {self._init_pid})")
        self.logger.log(LogLevel.INFO, "Kernel boot complete", source="kernel")

    def _start_logger(self) -> list[str]:
        self._logger = Logger(self._config.log_capacity)
        return ["[OK] Logger"]

    def _start_memory(self) -> list[str]:
        self._memory = PageAllocator(
            total_bytes=self._config.total_memory,
            page_size=self._config.page_size,
            logger=self._logger,
        )
        pages, size = self._memory.total_pages, self._memory.page_size
        return [f"[OK] Page allocator ({pages} pages of {size} bytes)"]

    def _start_file_system(self) -> list[str]:
        self._vfs = VirtualFileSystem(logger=self._logger)
        self._vfs.mount(hostname=self._config.hostname)
        lines = ["[OK] Virtual file system"]
        for overlay in self._config.sync_dirs:
            self._vfs.mount_overlay(overlay.host_path, overlay.virtual_path)
            lines.append(f"[OK] Overlay {overlay.virtual_path} -> {overlay.host_path}")
        return lines

    def _start_processes(self) -> list[str]:
        self._processes = ProcessTable(grace_period=self._config.grace_period, logger=self._logger)
        self._scheduler = Scheduler(
            self._processes,
            time_slice=self._config.time_slice,
            policy=self._policy,
            logger=self._logger,
        )
        self._scheduler.start()
        return [f"[OK] Scheduler ({type(self._scheduler.policy).__name__})"]

    def _start_interrupts(self) -> list[str]:
        self._interrupts = InterruptDispatcher(logger=self._logger)
        self._interrupts.enable()
        return ["[OK] Interrupt dispatcher"]

    def shutdown(self) -> None:
        """Stop the scheduler, kill every process, and drop all subsystems.

        Raises:
            RuntimeError: If the kernel is not in the RUNNING state.

        """
        if self._state is not KernelState.RUNNING:
            msg = f"Cannot shutdown: kernel is {self._state}, expected running"
            raise RuntimeError(msg)
        self._state = KernelState.SHUTTING_DOWN
        self._teardown()

    def _teardown(self) -> None:
        """Release subsystems in reverse boot order and return to SHUTDOWN."""
        if self._scheduler is not None:
            self._scheduler.stop()
        if self._processes is not None:
            self._processes.kill_all()
        if self._interrupts is not None:
            self._interrupts.disable()
        self._interrupts = None
        self._scheduler = None
        self._processes = None
        self._vfs = None
        self._memory = None
        self._logger = None
        self._init_pid = None
        self._boot_log.clear()
        self._boot_time = None
        self._state = KernelState.SHUTDOWN

    def reboot(self) -> None:
        """Shut down (if running) and boot again from empty state."""
        if self._state is KernelState.RUNNING:
            self.shutdown()
        self.boot()

    def _require_running(self) -> None:
        """Raise if the kernel is not in the RUNNING state."""
        if self._state is not KernelState.RUNNING:
            msg = f"Kernel is not running (state: {self._state})"
            raise RuntimeError(msg)

    # -- Subsystems ---------------------------------------------------------

    @property
    def logger(self) -> Logger:
        """Return the kernel log."""
        self._require_running()
        assert self._logger is not None  # noqa: S101
        return self._logger

    @property
    def memory(self) -> PageAllocator:
        """Return the page allocator."""
        self._require_running()
        assert self._memory is not None  # noqa: S101
        return self._memory

    @property
    def vfs(self) -> VirtualFileSystem:
        """Return the virtual file system."""
        self._require_running()
        assert self._vfs is not None  # noqa: S101
        return self._vfs

    @property
    def processes(self) -> ProcessTable:
        """Return the process table."""
        self._require_running()
        assert self._processes is not None  # noqa: S101
        return self._processes

    @property
    def scheduler(self) -> Scheduler:
        """Return the scheduler."""
        self._require_running()
        assert self._scheduler is not None  # noqa: S101
        return self._scheduler

    @property
    def interrupts(self) -> InterruptDispatcher:
        """Return the interrupt dispatcher."""
        self._require_running()
        assert self._interrupts is not None  # noqa: S101
        return self._interrupts

    # -- Processes ----------------------------------------------------------

    def create_process(self, name: str, work: Work, priority: int = 1) -> int:
        """Create a process and put it on the ready queue.

        Args:
            name: Human-readable process name.
            work: Called with the PID on every scheduling step.
            priority: Scheduling priority (lower runs first under the
                priority policy).

        Returns:
            The new PID.

        """
        process = self.processes.create(name, work, priority=priority)
        self.scheduler.enqueue(process.pid)
        return process.pid

    def fork_process(self, parent_pid: int) -> int:
        """Fork *parent_pid* and enqueue the child.

        Raises:
            UnknownProcessError: If the parent does not exist.

        """
        child = self.processes.fork(parent_pid)
        self.scheduler.enqueue(child.pid)
        return child.pid

    def exit_process(self, pid: int, code: int = 0) -> bool:
        """Terminate *pid* with *code*.  Return False if it was not alive."""
        if not self.processes.exit(pid, code):
            return False
        self.scheduler.discard(pid)
        return True

    def block_process(self, pid: int) -> None:
        """Park a READY process; the scheduler skips it until woken."""
        self.processes.block(pid)
        self.scheduler.discard(pid)

    def wake_process(self, pid: int) -> None:
        """Return a BLOCKED process to the ready queue."""
        self.processes.wake(pid)
        self.scheduler.enqueue(pid)

    def tick(self) -> int | None:
        """Run one scheduling step.  Return the PID that ran, if any."""
        return self.scheduler.tick()

    # -- Syscalls -----------------------------------------------------------

    def syscall(self, name: str, *args: Any) -> Any:
        """Invoke a system call by name.

        Raises:
            RuntimeError: If the kernel is not running.
            UnknownSyscallError: If *name* is not a known syscall.

        """
        self._require_running()
        self.logger.log(LogLevel.DEBUG, f"{name}{args!r}", source="syscall")
        return dispatch_syscall(self, name, *args)
