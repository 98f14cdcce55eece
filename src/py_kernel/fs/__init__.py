"""File system subsystem — the virtual tree, open handles, and host overlays.

Re-exports public symbols so callers can write::

    from py_kernel.fs import VirtualFileSystem, FileMode
"""

from py_kernel.fs.fd import (
    BadDescriptorError,
    FdError,
    FdTable,
    FileMode,
    OpenFileHandle,
    WrongModeError,
)
from py_kernel.fs.overlay import OverlayTable, normalize
from py_kernel.fs.vfs import (
    STANDARD_DIRECTORIES,
    Directory,
    File,
    FileType,
    NoSuchFileError,
    PathNotFoundError,
    VirtualFileSystem,
)

__all__ = [
    "STANDARD_DIRECTORIES",
    "BadDescriptorError",
    "Directory",
    "FdError",
    "FdTable",
    "File",
    "FileMode",
    "FileType",
    "NoSuchFileError",
    "OpenFileHandle",
    "OverlayTable",
    "PathNotFoundError",
    "VirtualFileSystem",
    "WrongModeError",
    "normalize",
]
