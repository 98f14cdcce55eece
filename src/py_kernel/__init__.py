"""py-kernel — a small, coherent operating-system kernel simulation.

The kernel ties together four subsystems behind one syscall surface:

- **memory** — a page allocator handing out blocks of fixed-size pages.
- **fs** — a virtual file system with optional host-directory overlays.
- **process** — a process table and a cooperative round-robin scheduler.
- **io** — a serialized interrupt dispatcher.

Build one with::

    from py_kernel.kernel import Kernel

    kernel = Kernel()
    kernel.boot()
    kernel.syscall("ls", "/")
"""
