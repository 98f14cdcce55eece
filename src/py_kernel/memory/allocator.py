"""Page allocator — a fixed arena of bytes carved into fixed-size pages.

Memory is a single arena (1 MiB by default) divided into **pages**
(4 KiB by default).  Callers never ask for pages directly; they ask for
a number of *bytes* and get back a **block** id.  The allocator rounds
the request up to whole pages::

    pages_needed = ceil(size / page_size)

A block owns those pages until it is freed.  Freeing zeroes every page
it held and puts the pages back on the free list.

Invariants:
    - A page is either on the free list or owned by exactly one block.
    - ``used_pages + free_pages == total_pages`` at every moment.
    - Block ids come from a monotonic counter and are never reused.

Why no compaction or defragmentation?
    Pages do not need to be contiguous — a block is just an ordered
    list of page indices — so any free page can satisfy any request.
    Either there are enough free pages or the request fails outright.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import count
from time import time

from py_kernel.logging import Logger, LogLevel

DEFAULT_TOTAL_BYTES = 1024 * 1024
DEFAULT_PAGE_SIZE = 4096


class OutOfMemoryError(Exception):
    """Raise when a memory allocation cannot be satisfied."""


class UnknownBlockError(Exception):
    """Raise when a block id is not currently allocated."""


@dataclass
class _Page:
    """Internal page record — one slot of the arena."""

    index: int
    data: bytearray
    allocated: bool = False
    block_id: int | None = None
    owner_pid: int | None = None


@dataclass(frozen=True)
class PageInfo:
    """Read-only snapshot of a page (returned by ``page_info``)."""

    index: int
    allocated: bool
    block_id: int | None
    owner_pid: int | None
    data: bytes


@dataclass(frozen=True)
class MemoryBlock:
    """An allocation: the pages handed out for one request."""

    block_id: int
    size: int
    pages: tuple[int, ...]
    owner_pid: int | None = None
    allocated_at: float = field(default_factory=time)


class PageAllocator:
    """Hand out and reclaim blocks of pages from a fixed arena.

    The allocator owns three data structures:
    - The **page table**: every page, indexed 0..total_pages-1.
    - A **free list** of page indices (popped from the end).
    - A **block table** mapping block ids to their ``MemoryBlock``.
    """

    def __init__(
        self,
        *,
        total_bytes: int = DEFAULT_TOTAL_BYTES,
        page_size: int = DEFAULT_PAGE_SIZE,
        logger: Logger | None = None,
    ) -> None:
        """Create an allocator with every page free.

        Args:
            total_bytes: Size of the arena.  Rounded down to whole pages.
            page_size: Size of one page in bytes.
            logger: Optional kernel log for allocation events.

        Raises:
            ValueError: If either size is not positive.

        """
        if page_size <= 0 or total_bytes <= 0:
            msg = f"Arena and page size must be positive (got {total_bytes}, {page_size})"
            raise ValueError(msg)
        self._page_size = page_size
        total_pages = total_bytes // page_size
        self._pages: list[_Page] = [
            _Page(index=i, data=bytearray(page_size)) for i in range(total_pages)
        ]
        self._free: list[int] = list(range(total_pages))
        self._blocks: dict[int, MemoryBlock] = {}
        self._next_block_id = count(start=1)
        self._logger = logger

    @property
    def page_size(self) -> int:
        """Return the size of one page in bytes."""
        return self._page_size

    @property
    def total_pages(self) -> int:
        """Return the total number of pages in the arena."""
        return len(self._pages)

    @property
    def total_bytes(self) -> int:
        """Return the usable size of the arena in bytes."""
        return self.total_pages * self._page_size

    @property
    def free_pages(self) -> int:
        """Return the number of pages on the free list."""
        return len(self._free)

    @property
    def used_pages(self) -> int:
        """Return the number of pages owned by blocks."""
        return self.total_pages - self.free_pages

    def pages_needed(self, size: int) -> int:
        """Return how many pages a request of *size* bytes occupies."""
        return math.ceil(size / self._page_size)

    def allocate(self, size: int, owner_pid: int | None = None) -> int:
        """Allocate enough pages to hold *size* bytes.

        Args:
            size: Requested size in bytes.
            owner_pid: The process the block belongs to, if any.

        Returns:
            The new block id.

        Raises:
            ValueError: If *size* is negative.
            OutOfMemoryError: If fewer pages are free than needed.

        """
        if size < 0:
            msg = f"Cannot allocate a negative size: {size}"
            raise ValueError(msg)
        needed = self.pages_needed(size)
        if needed > len(self._free):
            msg = f"Out of memory: need {needed} pages, only {len(self._free)} free"
            raise OutOfMemoryError(msg)

        block_id = next(self._next_block_id)
        indices: list[int] = []
        for _ in range(needed):
            page = self._pages[self._free.pop()]
            page.allocated = True
            page.block_id = block_id
            page.owner_pid = owner_pid
            indices.append(page.index)

        self._blocks[block_id] = MemoryBlock(
            block_id=block_id,
            size=size,
            pages=tuple(indices),
            owner_pid=owner_pid,
        )
        self._log(f"Allocated block {block_id}: {size} bytes in {needed} pages", owner_pid)
        return block_id

    def free(self, block_id: int) -> bool:
        """Free a block, zeroing its pages and returning them to the pool.

        Args:
            block_id: The block to release.

        Returns:
            True once the block is gone.

        Raises:
            UnknownBlockError: If the id is not currently allocated
                (including a second free of the same id).

        """
        block = self._blocks.pop(block_id, None)
        if block is None:
            msg = f"Block {block_id} not found"
            raise UnknownBlockError(msg)

        for index in block.pages:
            page = self._pages[index]
            page.data[:] = bytes(self._page_size)
            page.allocated = False
            page.block_id = None
            page.owner_pid = None
            self._free.append(index)

        self._log(f"Freed block {block_id} ({len(block.pages)} pages)", block.owner_pid)
        return True

    def block(self, block_id: int) -> MemoryBlock:
        """Return the record of an allocated block.

        Raises:
            UnknownBlockError: If the id is not currently allocated.

        """
        block = self._blocks.get(block_id)
        if block is None:
            msg = f"Block {block_id} not found"
            raise UnknownBlockError(msg)
        return block

    def blocks_for(self, owner_pid: int) -> list[MemoryBlock]:
        """Return every block owned by a process, oldest first."""
        return [b for b in self._blocks.values() if b.owner_pid == owner_pid]

    def page_info(self, index: int) -> PageInfo:
        """Return a read-only snapshot of one page.

        Raises:
            IndexError: If *index* is outside the arena.

        """
        if not 0 <= index < len(self._pages):
            msg = f"Page {index} out of range (0..{len(self._pages) - 1})"
            raise IndexError(msg)
        page = self._pages[index]
        return PageInfo(
            index=page.index,
            allocated=page.allocated,
            block_id=page.block_id,
            owner_pid=page.owner_pid,
            data=bytes(page.data),
        )

    def write_block(self, block_id: int, *, offset: int, data: bytes) -> int:
        """Copy *data* into a block starting at byte *offset*.

        The block is addressed as one contiguous range even though its
        pages may be scattered across the arena.

        Returns:
            The number of bytes written.

        Raises:
            UnknownBlockError: If the block is not allocated.
            ValueError: If the write would run past the block's pages.

        """
        block = self.block(block_id)
        capacity = len(block.pages) * self._page_size
        if offset < 0 or offset + len(data) > capacity:
            msg = (
                f"Write of {len(data)} bytes at {offset} exceeds block {block_id} "
                f"({capacity} bytes)"
            )
            raise ValueError(msg)
        for position, byte in enumerate(data, start=offset):
            page_slot, page_offset = divmod(position, self._page_size)
            self._pages[block.pages[page_slot]].data[page_offset] = byte
        return len(data)

    def read_block(self, block_id: int, *, offset: int, count: int) -> bytes:
        """Read up to *count* bytes from a block starting at *offset*.

        Reads stop at the end of the block's last page.

        Raises:
            UnknownBlockError: If the block is not allocated.
            ValueError: If *offset* or *count* is negative.

        """
        block = self.block(block_id)
        if offset < 0 or count < 0:
            msg = f"Invalid read range: offset={offset}, count={count}"
            raise ValueError(msg)
        capacity = len(block.pages) * self._page_size
        end = min(offset + count, capacity)
        out = bytearray()
        for position in range(offset, end):
            page_slot, page_offset = divmod(position, self._page_size)
            out.append(self._pages[block.pages[page_slot]].data[page_offset])
        return bytes(out)

    def info(self) -> dict[str, object]:
        """Return byte and page usage, shaped like ``meminfo``."""
        used = self.used_pages
        free = self.free_pages
        return {
            "total": self.total_bytes,
            "used": used * self._page_size,
            "free": free * self._page_size,
            "pages": {"total": self.total_pages, "used": used, "free": free},
        }

    def _log(self, message: str, pid: int | None) -> None:
        if self._logger is not None:
            self._logger.log(LogLevel.DEBUG, message, source="memory", pid=pid)
