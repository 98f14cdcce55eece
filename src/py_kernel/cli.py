"""Command-line driver — boot a kernel, run a program, shut down.

This is the ``py-kernel`` console entry point::

    py-kernel                         # boot and keep ticking until Ctrl+C
    py-kernel tools/ls.py /home       # boot, run a program, shut down
    py-kernel --cwd /home tools/ls.py  # run it from /home in the virtual tree

Configuration comes from the environment (see ``py_kernel.config``):
``SYNC_DIRS=/srv/data:/mnt/data py-kernel`` mounts a host overlay at
boot.

The kernel is booted *inside* the asyncio event loop, so the scheduler
spawns its periodic tick task and interrupt handlers can suspend.  A
program's ``run`` may be a plain function or a coroutine function; its
``cwd`` is a path in the virtual tree, never the host's working
directory.  A program that raises is reported on the kernel log and
exits 1.
ERROR entries on the kernel log are echoed to stderr as they happen.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import sys
from typing import TYPE_CHECKING

from py_kernel.config import ConfigError, KernelConfig
from py_kernel.kernel import Kernel
from py_kernel.logging import LogLevel
from py_kernel.programs import ProgramLoadError, load_program

if TYPE_CHECKING:
    from collections.abc import Sequence

    from py_kernel.logging import LogEntry

_BANNER_WIDTH = 38
_EXIT_FAILURE = 1
_EXIT_INTERRUPTED = 130


def format_boot_log(boot_log: list[str]) -> str:
    """Format the boot log into a displayable banner string.

    Args:
        boot_log: Messages from ``Kernel.dmesg()``.

    Returns:
        A formatted string suitable for printing to the console.

    """
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n            py-kernel\n     A simulated kernel core\n  {border}\n\n"
    body = "\n".join(f"  {msg}" for msg in boot_log)
    return header + body + "\n"


def echo_errors(entry: LogEntry) -> None:
    """Print ERROR log entries to stderr as they happen."""
    if entry.level >= LogLevel.ERROR:
        print(entry, file=sys.stderr)  # noqa: T201


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``py-kernel``."""
    parser = argparse.ArgumentParser(
        prog="py-kernel",
        description="Boot the simulated kernel and optionally run a program against it.",
    )
    parser.add_argument(
        "program",
        nargs="?",
        help="path to a .py file (or a dotted module) exposing run(kernel, args, cwd)",
    )
    parser.add_argument("args", nargs=argparse.REMAINDER, help="arguments passed to the program")
    parser.add_argument("-q", "--quiet", action="store_true", help="do not print the boot log")
    parser.add_argument(
        "--cwd",
        default="/",
        help="virtual working directory handed to the program (default: /)",
    )
    return parser


async def serve(
    kernel: Kernel,
    program: str | None,
    args: Sequence[str],
    *,
    cwd: str = "/",
    quiet: bool = False,
) -> int:
    """Boot *kernel*, then run *program* or tick until cancelled.

    The kernel is always shut down before this returns.  A program that
    raises is logged as an ERROR under ``program`` and exits 1.

    Returns:
        The process exit status.

    """
    kernel.boot()
    kernel.logger.subscribe(echo_errors)
    try:
        if not quiet:
            print(format_boot_log(kernel.dmesg()))  # noqa: T201
        if program is None:
            if not quiet:
                print("Kernel running. Press Ctrl+C to shut down.")  # noqa: T201
            await asyncio.Event().wait()
            return 0
        run = load_program(program)
        try:
            result = run(kernel, list(args), cwd)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:  # noqa: BLE001
            kernel.logger.log(LogLevel.ERROR, f"{program}: {exc!r}", source="program")
            return _EXIT_FAILURE
        return result if isinstance(result, int) else 0
    finally:
        if kernel.is_running:
            kernel.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the ``py-kernel`` command.

    Returns:
        The process exit status.

    """
    options = build_parser().parse_args(argv)
    try:
        config = KernelConfig.from_env()
    except ConfigError as exc:
        print(f"py-kernel: {exc}", file=sys.stderr)  # noqa: T201
        return _EXIT_FAILURE

    kernel = Kernel(config)
    try:
        return asyncio.run(
            serve(
                kernel,
                options.program,
                options.args,
                cwd=options.cwd,
                quiet=options.quiet,
            )
        )
    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201
        return _EXIT_INTERRUPTED
    except ProgramLoadError as exc:
        print(f"py-kernel: {exc}", file=sys.stderr)  # noqa: T201
        return _EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
