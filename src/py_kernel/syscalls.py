"""System call interface — the gateway between callers and the kernel.

In a real OS, user programs cannot touch kernel structures directly.
They trigger a **trap** carrying a syscall identifier and arguments; the
kernel's dispatcher routes it to the owning subsystem.

Our simulation mirrors this pattern:

1. ``SyscallName`` — the closed set of operations the kernel exposes.
   A StrEnum, so the names travel as plain strings (the web gateway and
   programs just say ``"ls"``).

2. ``SyscallError`` — the base class for routing failures.  An unknown
   name raises ``UnknownSyscallError``.

3. ``dispatch_syscall()`` — the trap handler.  It maps each name 1:1 to
   one component operation and forwards the positional arguments.

The router adds no validation of its own: argument checking and error
production belong to the owning component, and its exceptions
(``OutOfMemoryError``, ``PathNotFoundError``, ``BadDescriptorError``...)
reach the caller unchanged.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from py_kernel.kernel import Kernel


class SyscallName(StrEnum):
    """Enumerate every system call the kernel supports."""

    # File descriptors
    OPEN = "open"
    READ = "read"
    WRITE = "write"
    CLOSE = "close"

    # Processes
    FORK = "fork"
    EXIT = "exit"
    SPAWN = "spawn"
    PS = "ps"

    # Memory
    MALLOC = "malloc"
    FREE = "free"
    MEMINFO = "meminfo"

    # Whole-file helpers
    LS = "ls"
    MKDIR = "mkdir"
    READFILE = "readfile"
    WRITEFILE = "writefile"


class SyscallError(Exception):
    """Raised when a syscall cannot be routed."""


class UnknownSyscallError(SyscallError):
    """Raised for a name outside the syscall table."""


def dispatch_syscall(kernel: Kernel, name: str, *args: Any) -> Any:
    """Route a system call to the subsystem that implements it.

    Args:
        kernel: The running kernel instance.
        name: The syscall name (a ``SyscallName`` or its string value).
        *args: Positional arguments forwarded to the operation.

    Returns:
        The operation's result (type depends on the syscall).

    Raises:
        UnknownSyscallError: If *name* is not in the syscall table.

    """
    try:
        syscall = SyscallName(name)
    except ValueError:
        msg = f"Unknown syscall: {name!r}"
        raise UnknownSyscallError(msg) from None

    handlers: dict[SyscallName, Callable[..., Any]] = {
        SyscallName.OPEN: _sys_open,
        SyscallName.READ: _sys_read,
        SyscallName.WRITE: _sys_write,
        SyscallName.CLOSE: _sys_close,
        SyscallName.FORK: _sys_fork,
        SyscallName.EXIT: _sys_exit,
        SyscallName.SPAWN: _sys_spawn,
        SyscallName.PS: _sys_ps,
        SyscallName.MALLOC: _sys_malloc,
        SyscallName.FREE: _sys_free,
        SyscallName.MEMINFO: _sys_meminfo,
        SyscallName.LS: _sys_ls,
        SyscallName.MKDIR: _sys_mkdir,
        SyscallName.READFILE: _sys_readfile,
        SyscallName.WRITEFILE: _sys_writefile,
    }
    return handlers[syscall](kernel, *args)


# -- File descriptors -------------------------------------------------------


def _sys_open(kernel: Kernel, path: str, mode: str = "r") -> int:
    """Open *path* and return a new descriptor."""
    return kernel.vfs.open(path, mode)


def _sys_read(kernel: Kernel, fd: int, max_len: int) -> str:
    """Read up to *max_len* characters from *fd*."""
    return kernel.vfs.read(fd, max_len)


def _sys_write(kernel: Kernel, fd: int, data: str) -> int:
    return kernel.vfs.write(fd, data)


def _sys_close(kernel: Kernel, fd: int) -> bool:
    return kernel.vfs.close(fd)


# -- Processes --------------------------------------------------------------


def _sys_fork(kernel: Kernel, parent_pid: int) -> int:
    """Fork *parent_pid* and return the child's PID."""
    return kernel.fork_process(parent_pid)


def _sys_exit(kernel: Kernel, pid: int, code: int = 0) -> bool:
    return kernel.exit_process(pid, code)


def _sys_spawn(
    kernel: Kernel,
    name: str,
    work: Callable[[int], object],
    priority: int = 1,
) -> int:
    """Create a process from a work callable and return its PID."""
    return kernel.create_process(name, work, priority)


def _sys_ps(kernel: Kernel) -> list[dict[str, object]]:
    return kernel.processes.list_processes()


# -- Memory -----------------------------------------------------------------


def _sys_malloc(kernel: Kernel, size: int, owner_pid: int | None = None) -> int:
    """Allocate *size* bytes and return the block id."""
    return kernel.memory.allocate(size, owner_pid=owner_pid)


def _sys_free(kernel: Kernel, block_id: int) -> bool:
    return kernel.memory.free(block_id)


def _sys_meminfo(kernel: Kernel) -> dict[str, object]:
    return kernel.memory.info()


# -- Whole-file helpers -----------------------------------------------------


def _sys_ls(kernel: Kernel, path: str = "/") -> list[dict[str, object]]:
    """List the immediate children of *path*."""
    return kernel.vfs.list_dir(path)


def _sys_mkdir(kernel: Kernel, path: str) -> bool:
    return kernel.vfs.mkdir(path)


def _sys_readfile(kernel: Kernel, path: str) -> str:
    return kernel.vfs.read_file(path)


def _sys_writefile(kernel: Kernel, path: str, data: str) -> bool:
    """Replace the content of *path*, creating the file if needed."""
    return kernel.vfs.write_file(path, data)
