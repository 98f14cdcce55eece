"""I/O subsystem — the interrupt dispatcher.

Re-exports public symbols so callers can write::

    from py_kernel.io import InterruptDispatcher, InterruptLine
"""

from py_kernel.io.interrupts import Interrupt, InterruptDispatcher, InterruptLine

__all__ = [
    "Interrupt",
    "InterruptDispatcher",
    "InterruptLine",
]
