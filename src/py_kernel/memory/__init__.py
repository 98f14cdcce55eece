"""Memory subsystem — the page allocator.

Re-exports public symbols so callers can write::

    from py_kernel.memory import PageAllocator, OutOfMemoryError
"""

from py_kernel.memory.allocator import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_TOTAL_BYTES,
    MemoryBlock,
    OutOfMemoryError,
    PageAllocator,
    PageInfo,
    UnknownBlockError,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_TOTAL_BYTES",
    "MemoryBlock",
    "OutOfMemoryError",
    "PageAllocator",
    "PageInfo",
    "UnknownBlockError",
]
