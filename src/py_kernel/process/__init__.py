"""Process subsystem — PCB, process table, and scheduling.

Re-exports public symbols so callers can write::

    from py_kernel.process import ProcessTable, Scheduler
"""

from py_kernel.process.pcb import CRASH_EXIT_CODE, Process, ProcessState
from py_kernel.process.scheduler import (
    PriorityPolicy,
    RoundRobinPolicy,
    Scheduler,
    SchedulingPolicy,
)
from py_kernel.process.table import ProcessTable, UnknownProcessError

__all__ = [
    "CRASH_EXIT_CODE",
    "PriorityPolicy",
    "Process",
    "ProcessState",
    "ProcessTable",
    "RoundRobinPolicy",
    "Scheduler",
    "SchedulingPolicy",
    "UnknownProcessError",
]
