"""Programs — user-space code that drives a booted kernel.

A program is any module exposing a ``run(kernel, args, cwd)`` callable.
It talks to the kernel only through ``kernel.syscall(...)``, just like
a real executable only talks to its kernel through traps.  Example::

    def run(kernel, args, cwd):
        for entry in kernel.syscall("ls", args[0] if args else cwd):
            print(entry["name"])

Programs are resolved and invoked by the driver (the ``py-kernel``
command), never by the kernel itself.  ``load_program`` accepts either
a path to a ``.py`` file or a dotted module name.
"""

from __future__ import annotations

import importlib
import importlib.util
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from py_kernel.kernel import Kernel


class ProgramLoadError(Exception):
    """Raised when a program cannot be imported or has no ``run``."""


class Program(Protocol):
    """The entry point every program provides."""

    def __call__(self, kernel: Kernel, args: Sequence[str], cwd: str) -> object:
        """Run against a booted kernel with command-line *args*."""
        ...  # pragma: no cover


def load_program(target: str) -> Program:
    """Import a program and return its ``run`` callable.

    Args:
        target: A ``.py`` file path, or a dotted module name.

    Returns:
        The module's ``run`` attribute.

    Raises:
        ProgramLoadError: If the module cannot be imported or ``run``
            is missing or not callable.

    """
    path = Path(target)
    if path.suffix == ".py" or path.exists():
        module = _load_file(path)
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as exc:
            msg = f"Cannot import program {target!r}: {exc}"
            raise ProgramLoadError(msg) from exc

    run = getattr(module, "run", None)
    if not callable(run):
        msg = f"Program {target!r} has no callable 'run'"
        raise ProgramLoadError(msg)
    return run


def _load_file(path: Path) -> object:
    resolved = path.resolve()
    if not resolved.is_file():
        msg = f"Program not found: {path}"
        raise ProgramLoadError(msg)
    spec = importlib.util.spec_from_file_location(f"py_kernel_program_{resolved.stem}", resolved)
    if spec is None or spec.loader is None:
        msg = f"Cannot load program from {path}"
        raise ProgramLoadError(msg)
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        msg = f"Program {path} failed to load: {exc}"
        raise ProgramLoadError(msg) from exc
    return module
