"""Virtual file system — an in-memory tree of directories and files.

Models a classic hierarchical file system:

- **Directory**: a node whose ``children`` map names to child nodes.
- **File**: a node holding text content plus created/modified times.
- **Path resolution**: ``/home/u/notes.txt`` is split on ``/`` (empty
  segments ignored) and walked component by component from the root.
  A missing component — or a *file* where a directory is needed —
  means the path does not resolve.

There is exactly one root and every other node has exactly one parent:
no hard links, no symlinks, no cycles.

On top of the pure tree sits an optional **host overlay** (see
``py_kernel.fs.overlay``).  For a path under an overlaid prefix:

- ``read_file`` / ``list_dir`` read the host first and refresh the virtual
  tree from what they find;
- ``mkdir`` / ``write_file`` update the virtual tree *and* the host.

Host failures are never surfaced: they are logged at DEBUG and the
call proceeds on the virtual tree alone, which is always a valid
fallback.  The virtual tree therefore behaves as a cache of the host
directory that is refreshed on every touch.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from time import time
from typing import ClassVar

from py_kernel.fs.fd import FdTable, FileMode, OpenFileHandle, WrongModeError
from py_kernel.fs.overlay import OverlayTable, normalize
from py_kernel.logging import Logger, LogLevel

STANDARD_DIRECTORIES = ("/bin", "/etc", "/home", "/tmp")
ROOT_PASSWD = "root:x:0:0:root:/root:/bin/bash\n"

# Host I/O errors that make an overlay call fall back to the virtual tree.
_HOST_ERRORS = (OSError, UnicodeDecodeError)


class PathNotFoundError(FileNotFoundError):
    """Raise when a path (or one of its directories) does not resolve."""


class NoSuchFileError(FileNotFoundError):
    """Raise when the final component is missing or is not a file."""


class FileType(StrEnum):
    """The kind of object a node represents."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class _Node:
    """Shared shape of every node: a name, a type, and a creation time."""

    name: str
    created_at: float = field(default_factory=time)

    file_type: ClassVar[FileType]

    @property
    def size(self) -> int:
        """Return the node's size (0 for directories)."""
        return 0


@dataclass
class File(_Node):
    """A regular file."""

    content: str = ""
    modified_at: float = field(default_factory=time)

    file_type: ClassVar[FileType] = FileType.FILE

    @property
    def size(self) -> int:
        """Return the content length in characters, as ``read``/``write`` count."""
        return len(self.content)


@dataclass
class Directory(_Node):
    """A directory — owns its children."""

    children: dict[str, _Node] = field(default_factory=dict)  # pyright: ignore[reportUnknownVariableType]

    file_type: ClassVar[FileType] = FileType.DIRECTORY


def _split(path: str) -> list[str]:
    """Split a path into its non-empty components.

    Examples::

        "/foo/bar/baz.txt" → ["foo", "bar", "baz.txt"]
        "//foo//"          → ["foo"]
        "/"                → []

    """
    return [part for part in path.split("/") if part]


def _host_is_dir(host: Path) -> bool:
    try:
        return host.is_dir()
    except OSError:
        return False


class VirtualFileSystem:
    """An in-memory file tree with open handles and host overlays.

    All operations take absolute paths and resolve them from the root.
    """

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create a file system holding only an empty root directory."""
        self._root = Directory(name="/")
        self._fds = FdTable()
        self._overlays = OverlayTable()
        self._logger = logger

    @property
    def overlays(self) -> OverlayTable:
        """Return the overlay table."""
        return self._overlays

    # -- Resolution ------------------------------------------------------------

    def _walk(self, parts: list[str]) -> Directory | None:
        """Return the directory at *parts*, or None if it does not resolve."""
        current = self._root
        for part in parts:
            child = current.children.get(part)
            if not isinstance(child, Directory):
                return None
            current = child
        return current

    def _lookup(self, path: str) -> _Node | None:
        parts = _split(path)
        if not parts:
            return self._root
        parent = self._walk(parts[:-1])
        if parent is None:
            return None
        return parent.children.get(parts[-1])

    def _make_dirs(self, parts: list[str]) -> Directory:
        """Create every missing directory along *parts* (virtual tree only).

        Raises:
            PathNotFoundError: If a file sits where a directory is needed.

        """
        current = self._root
        for i, part in enumerate(parts):
            child = current.children.get(part)
            if child is None:
                child = Directory(name=part)
                current.children[part] = child
            elif not isinstance(child, Directory):
                blocked = "/" + "/".join(parts[: i + 1])
                msg = f"Not a directory: {blocked}"
                raise PathNotFoundError(msg)
            current = child
        return current

    def exists(self, path: str) -> bool:
        """Check whether a path exists in the virtual tree."""
        return self._lookup(path) is not None

    def is_dir(self, path: str) -> bool:
        """Check whether a path resolves to a directory."""
        return isinstance(self._lookup(path), Directory)

    # -- Tree operations -------------------------------------------------------

    def mount(self, *, hostname: str = "pykernel") -> None:
        """Create the standard directory layout and seed files."""
        for directory in STANDARD_DIRECTORIES:
            self.mkdir(directory)
        self.write_file("/etc/passwd", ROOT_PASSWD)
        self.write_file("/etc/hostname", f"{hostname}\n")

    def mkdir(self, path: str) -> bool:
        """Create a directory and every missing parent.

        Creating a directory that already exists is not an error.

        Raises:
            PathNotFoundError: If a file sits somewhere along the path.

        """
        self._make_dirs(_split(path))
        host = self._overlays.host_path(path)
        if host is not None:
            with self._overlay_guard("mkdir", path):
                host.mkdir(parents=True, exist_ok=True)
        return True

    def write_file(self, path: str, data: str) -> bool:
        """Write a whole file, replacing any existing content.

        Args:
            path: Absolute path of the file.
            data: The new content.

        Raises:
            PathNotFoundError: If the parent directory does not exist.
            IsADirectoryError: If *path* names a directory.

        """
        parts = _split(path)
        if not parts:
            msg = "Is a directory: /"
            raise IsADirectoryError(msg)
        parent_parts, name = parts[:-1], parts[-1]
        host = self._overlays.host_path(path)

        parent = self._walk(parent_parts)
        if parent is None and host is not None and _host_is_dir(host.parent):
            # The host already has the directory; reflect it first.
            parent = self._make_dirs(parent_parts)
        if parent is None:
            msg = f"Directory not found: /{'/'.join(parent_parts)}"
            raise PathNotFoundError(msg)

        self._store(parent, name, data)
        if host is not None:
            with self._overlay_guard("write", path):
                host.write_text(data, encoding="utf-8")
        return True

    def read_file(self, path: str) -> str:
        """Return the content of a file.

        Raises:
            PathNotFoundError: If the parent directory does not exist.
            NoSuchFileError: If the file is missing or is a directory.

        """
        parts = _split(path)
        if not parts:
            msg = "Not a file: /"
            raise NoSuchFileError(msg)

        host = self._overlays.host_path(path)
        if host is not None:
            data = self._host_read(host, path)
            if data is not None:
                parent = self._walk(parts[:-1])
                if parent is not None:
                    self._store(parent, parts[-1], data, replace_dirs=True)
                return data

        parent = self._walk(parts[:-1])
        if parent is None:
            msg = f"Directory not found: /{'/'.join(parts[:-1])}"
            raise PathNotFoundError(msg)
        node = parent.children.get(parts[-1])
        if not isinstance(node, File):
            msg = f"File not found: {path}"
            raise NoSuchFileError(msg)
        return node.content

    def list_dir(self, path: str = "/") -> list[dict[str, object]]:
        """List the immediate children of a directory.

        Returns:
            One ``{"name", "type", "size"}`` dict per child, sorted by name.

        Raises:
            PathNotFoundError: If *path* is not a directory.

        """
        parts = _split(path)
        host = self._overlays.host_path(path)
        if host is not None:
            directory = self._walk(parts)
            if directory is not None:
                self._refresh_from_host(directory, host, path)

        directory = self._walk(parts)
        if directory is None:
            msg = f"Directory not found: {path}"
            raise PathNotFoundError(msg)
        return [
            {"name": name, "type": str(node.file_type), "size": node.size}
            for name, node in sorted(directory.children.items())
        ]

    def _store(
        self, parent: Directory, name: str, data: str, *, replace_dirs: bool = False
    ) -> None:
        existing = parent.children.get(name)
        if isinstance(existing, File):
            existing.content = data
            existing.modified_at = time()
            return
        if isinstance(existing, Directory) and not replace_dirs:
            msg = f"Is a directory: {name}"
            raise IsADirectoryError(msg)
        parent.children[name] = File(name=name, content=data)

    # -- Open handles ------------------------------------------------------------

    def open(self, path: str, mode: str = "r") -> int:
        """Open a file and return a descriptor.

        Read mode loads the current content and fails if the file does
        not exist.  Write and append modes create an empty file first
        when it is missing.

        Raises:
            ValueError: If *mode* is not ``r``, ``w`` or ``a``.
            PathNotFoundError: If the parent directory does not exist.
            NoSuchFileError: If read mode is used on a missing file.

        """
        file_mode = FileMode(mode)
        try:
            content = self.read_file(path)
        except FileNotFoundError:
            if not file_mode.writable:
                raise
            self.write_file(path, "")
            content = ""
        handle = OpenFileHandle(path=normalize(path), mode=file_mode, content=content)
        fd = self._fds.allocate(handle)
        self._log(LogLevel.DEBUG, f"open {handle.path} ({file_mode}) -> fd {fd}", source="vfs")
        return fd

    def read(self, fd: int, max_len: int) -> str:
        """Read up to *max_len* characters at the handle's cursor.

        An empty string means end of content; it is never an error.

        Raises:
            BadDescriptorError: If the fd is not open.
            ValueError: If *max_len* is negative.

        """
        handle = self._fds.lookup(fd)
        if max_len < 0:
            msg = f"Cannot read a negative length: {max_len}"
            raise ValueError(msg)
        chunk = handle.content[handle.position : handle.position + max_len]
        handle.position += len(chunk)
        return chunk

    def write(self, fd: int, data: str) -> int:
        """Write through a handle and persist the result immediately.

        Append mode adds to the end regardless of the cursor; write mode
        splices *data* in at the cursor, overwriting and extending as
        needed.

        Returns:
            The number of characters written.

        Raises:
            BadDescriptorError: If the fd is not open.
            WrongModeError: If the handle was opened read-only.

        """
        handle = self._fds.lookup(fd)
        if not handle.mode.writable:
            msg = f"fd {fd} is not open for writing"
            raise WrongModeError(msg)
        if handle.mode is FileMode.APPEND:
            handle.content += data
        else:
            start = handle.position
            handle.content = handle.content[:start] + data + handle.content[start + len(data) :]
        handle.position += len(data)
        self.write_file(handle.path, handle.content)
        return len(data)

    def close(self, fd: int) -> bool:
        """Discard a handle.  Return False if the fd was not open."""
        return self._fds.close(fd)

    def open_handles(self) -> dict[int, OpenFileHandle]:
        """Return a snapshot of every open handle."""
        return self._fds.list_fds()

    # -- Host overlay ------------------------------------------------------------

    def mount_overlay(self, host_path: str | Path, virtual_path: str) -> None:
        """Mirror a host directory into the virtual tree.

        The virtual directory is created, the mapping registered, and
        the host subtree imported.  Import failures are logged and
        skipped.
        """
        virtual = normalize(virtual_path)
        self._make_dirs(_split(virtual))
        self._overlays.add(virtual, host_path)
        self._import_tree(Path(host_path), virtual)
        self._log(LogLevel.INFO, f"Overlay {host_path} -> {virtual}", source="overlay")

    def _import_tree(self, host_dir: Path, virtual_dir: str) -> None:
        with self._overlay_guard("import", virtual_dir):
            for entry in sorted(host_dir.iterdir()):
                child = f"{virtual_dir.rstrip('/')}/{entry.name}"
                if entry.is_dir():
                    self._make_dirs(_split(child))
                    self._import_tree(entry, child)
                elif entry.is_file():
                    data = self._host_read(entry, child)
                    if data is not None:
                        parent = self._make_dirs(_split(virtual_dir))
                        self._store(parent, entry.name, data, replace_dirs=True)

    def _host_read(self, host: Path, path: str) -> str | None:
        with self._overlay_guard("read", path):
            if host.is_file():
                return host.read_text(encoding="utf-8")
        return None

    def _refresh_from_host(self, directory: Directory, host: Path, path: str) -> None:
        """Replace a directory's children with what the host holds now."""
        if not _host_is_dir(host):
            return
        fresh: dict[str, _Node] = {}
        with self._overlay_guard("list", path):
            for entry in sorted(host.iterdir()):
                existing = directory.children.get(entry.name)
                if entry.is_dir():
                    if not isinstance(existing, Directory):
                        existing = Directory(name=entry.name)
                    fresh[entry.name] = existing
                elif entry.is_file():
                    content = entry.read_text(encoding="utf-8")
                    if isinstance(existing, File) and existing.content == content:
                        fresh[entry.name] = existing
                    else:
                        fresh[entry.name] = File(name=entry.name, content=content)
            directory.children = fresh

    @contextmanager
    def _overlay_guard(self, action: str, path: str) -> Generator[None]:
        """Swallow host I/O failures, logging them at DEBUG."""
        try:
            yield
        except _HOST_ERRORS as e:
            self._log(LogLevel.DEBUG, f"{action} {path}: host sync failed ({e})", source="overlay")

    def _log(self, level: LogLevel, message: str, *, source: str) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source=source)
