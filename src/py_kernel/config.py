"""Boot configuration — the settings a kernel is built from.

A real kernel reads its configuration from the boot image and the
command line (``mem=``, ``root=``...).  Ours comes from a frozen
``KernelConfig`` that can be built in code or read from environment
variables:

- ``SYNC_DIRS`` — comma-separated ``hostPath:virtualPath`` pairs; each
  pair becomes a host overlay mounted during boot.
- ``PYKERNEL_MEMORY`` — size of the page arena in bytes.
- ``PYKERNEL_PAGE_SIZE`` — size of one page in bytes.
- ``PYKERNEL_TIME_SLICE`` — seconds between scheduler ticks.
- ``PYKERNEL_LOG_CAPACITY`` — entries kept in the kernel log ring.

Only the variables above are read; everything else keeps its default.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass

from py_kernel.logging import DEFAULT_LOG_CAPACITY

DEFAULT_TOTAL_MEMORY = 1024 * 1024
DEFAULT_PAGE_SIZE = 4096
DEFAULT_TIME_SLICE = 0.1
DEFAULT_GRACE_PERIOD = 1.0
DEFAULT_HOSTNAME = "pykernel"

ENV_SYNC_DIRS = "SYNC_DIRS"
ENV_MEMORY = "PYKERNEL_MEMORY"
ENV_PAGE_SIZE = "PYKERNEL_PAGE_SIZE"
ENV_TIME_SLICE = "PYKERNEL_TIME_SLICE"
ENV_LOG_CAPACITY = "PYKERNEL_LOG_CAPACITY"


class ConfigError(ValueError):
    """Raise when a configuration value cannot be parsed."""


@dataclass(frozen=True)
class OverlaySpec:
    """One host directory mirrored into the virtual tree."""

    host_path: str
    virtual_path: str


@dataclass(frozen=True)
class KernelConfig:
    """Everything the kernel needs to know at boot.

    Attributes:
        total_memory: Bytes in the page arena.
        page_size: Bytes per page.
        time_slice: Seconds between periodic scheduler ticks.
        grace_period: Seconds a terminated process stays visible.
        hostname: Seeded into ``/etc/hostname``.
        sync_dirs: Host overlays mounted during boot.
        log_capacity: Entries retained by the kernel log ring.

    """

    total_memory: int = DEFAULT_TOTAL_MEMORY
    page_size: int = DEFAULT_PAGE_SIZE
    time_slice: float = DEFAULT_TIME_SLICE
    grace_period: float = DEFAULT_GRACE_PERIOD
    hostname: str = DEFAULT_HOSTNAME
    sync_dirs: tuple[OverlaySpec, ...] = ()
    log_capacity: int = DEFAULT_LOG_CAPACITY

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> KernelConfig:
        """Build a configuration from environment variables.

        Args:
            environ: The variables to read (defaults to ``os.environ``).

        Raises:
            ConfigError: If a numeric variable is not a valid number.

        """
        env = os.environ if environ is None else environ
        return cls(
            total_memory=_int_var(env, ENV_MEMORY, DEFAULT_TOTAL_MEMORY),
            page_size=_int_var(env, ENV_PAGE_SIZE, DEFAULT_PAGE_SIZE),
            time_slice=_float_var(env, ENV_TIME_SLICE, DEFAULT_TIME_SLICE),
            sync_dirs=parse_sync_dirs(env.get(ENV_SYNC_DIRS, "")),
            log_capacity=_int_var(env, ENV_LOG_CAPACITY, DEFAULT_LOG_CAPACITY),
        )


def parse_sync_dirs(spec: str) -> tuple[OverlaySpec, ...]:
    """Parse a ``host:virtual,host:virtual`` list into overlay specs.

    Pairs missing either side are skipped, as are empty entries.  The
    split happens on the *last* colon so Windows drive letters survive
    in the host part.

    Examples::

        "/srv/data:/mnt/data"         → (OverlaySpec("/srv/data", "/mnt/data"),)
        "a:/x, bogus ,b:/y"           → two specs, "bogus" skipped

    """
    specs: list[OverlaySpec] = []
    for raw in spec.split(","):
        pair = raw.strip()
        if not pair or ":" not in pair:
            continue
        host, _, virtual = pair.rpartition(":")
        host, virtual = host.strip(), virtual.strip()
        if host and virtual:
            specs.append(OverlaySpec(host_path=host, virtual_path=virtual))
    return tuple(specs)


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigError(msg) from e
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)
    return value


def _float_var(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigError(msg) from e
    if not math.isfinite(value):
        msg = f"{name} must be finite, got {raw!r}"
        raise ConfigError(msg)
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)
    return value
