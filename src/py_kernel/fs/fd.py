"""File descriptors — the open-handle table behind ``open``/``read``/``write``.

Programs interact with files through **file descriptors** (small
integers).  The workflow is:

1. ``open(path, mode)`` → the VFS loads the file into a handle and
   returns a new fd.
2. ``read(fd, n)`` / ``write(fd, data)`` → operate at the handle's
   cursor, then advance it.
3. ``close(fd)`` → discard the handle.

Key concepts:

- **File descriptor (fd)**: an integer naming one open handle.  Fds 0,
  1, 2 are reserved for stdin, stdout, stderr; allocation starts at 3
  and only ever counts up, so a closed fd is never handed out again.
- **Open file handle**: the bookkeeping record behind an fd — path,
  mode, an in-memory working copy of the content, and the cursor.
- **Fd table**: mapping from fd numbers to handles, owned by the VFS.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from itertools import count


class FdError(Exception):
    """Raise when a file descriptor operation fails."""


class BadDescriptorError(FdError):
    """Raise when an fd is not open (never opened, or already closed)."""


class WrongModeError(FdError):
    """Raise when a handle's mode does not permit the operation."""


class FileMode(StrEnum):
    """Access mode for an open file.

    - READ   — read-only access; writes fail.
    - WRITE  — writes splice into the content at the cursor.
    - APPEND — writes always land at the end of the content.
    """

    READ = "r"
    WRITE = "w"
    APPEND = "a"

    @property
    def writable(self) -> bool:
        """Return True for modes that accept writes."""
        return self is not FileMode.READ


@dataclass
class OpenFileHandle:
    """Track an open file's path, mode, working copy, and cursor.

    Not frozen — ``content`` and ``position`` change as the handle is
    read and written.
    """

    path: str
    mode: FileMode
    content: str = ""
    position: int = 0


class FdTable:
    """Map fd numbers to open file handles.

    Fd numbers 0, 1, 2 are reserved for the standard streams.
    Allocation starts at ``FIRST_FD`` (3) and increases monotonically.
    """

    FIRST_FD = 3

    def __init__(self) -> None:
        """Create an empty fd table."""
        self._handles: dict[int, OpenFileHandle] = {}
        self._next_fd = count(start=self.FIRST_FD)

    def allocate(self, handle: OpenFileHandle) -> int:
        """Register a handle under the next fd number.

        Args:
            handle: The open file handle to register.

        Returns:
            The newly assigned fd number.

        """
        fd = next(self._next_fd)
        self._handles[fd] = handle
        return fd

    def lookup(self, fd: int) -> OpenFileHandle:
        """Return the handle for a given fd.

        Raises:
            BadDescriptorError: If the fd is not open.

        """
        handle = self._handles.get(fd)
        if handle is None:
            msg = f"Bad file descriptor: {fd}"
            raise BadDescriptorError(msg)
        return handle

    def close(self, fd: int) -> bool:
        """Discard an fd's handle.

        Returns:
            True if a handle was discarded, False if the fd was not open.

        """
        return self._handles.pop(fd, None) is not None

    def list_fds(self) -> dict[int, OpenFileHandle]:
        """Return a snapshot of all open fds."""
        return dict(self._handles)

    def __len__(self) -> int:
        """Return the number of open handles."""
        return len(self._handles)
