"""Host overlays — mirror a virtual subtree onto a real directory.

An overlay mapping says "everything under ``/mnt/data`` in the virtual
tree corresponds to ``/srv/data`` on the host".  The VFS consults the
overlay table on every operation: if the path falls under a mapping,
the equivalent host operation is attempted first and the virtual tree
is refreshed from (or written through to) the host.

Mappings are metadata, not nodes.  Two rules make resolution
deterministic:

- **Segment boundaries** — ``/mnt`` covers ``/mnt`` and ``/mnt/x`` but
  never ``/mnt2``.
- **Longest prefix wins** — with ``/mnt`` and ``/mnt/data`` both
  mapped, ``/mnt/data/f.txt`` resolves through ``/mnt/data`` no matter
  which mapping was registered first.
"""

from __future__ import annotations

from pathlib import Path


def normalize(path: str) -> str:
    """Return *path* as ``/a/b/c`` — empty segments dropped, no trailing slash.

    Examples::

        "home//u/"  → "/home/u"
        ""          → "/"

    """
    parts = [part for part in path.split("/") if part]
    return "/" + "/".join(parts)


class OverlayTable:
    """The set of virtual-prefix → host-path mappings."""

    def __init__(self) -> None:
        """Create an empty overlay table."""
        self._mappings: dict[str, Path] = {}

    def add(self, virtual_prefix: str, host_path: str | Path) -> None:
        """Register (or replace) a mapping.

        Args:
            virtual_prefix: Absolute virtual path of the mirrored subtree.
            host_path: The host directory it mirrors.

        """
        self._mappings[normalize(virtual_prefix)] = Path(host_path)

    def remove(self, virtual_prefix: str) -> bool:
        """Drop a mapping.  Return True if one was registered."""
        return self._mappings.pop(normalize(virtual_prefix), None) is not None

    def mappings(self) -> dict[str, Path]:
        """Return a snapshot of every mapping."""
        return dict(self._mappings)

    def host_path(self, virtual_path: str) -> Path | None:
        """Translate a virtual path to its host path, if it is overlaid.

        Returns:
            The host path under the longest matching prefix, or None.

        """
        path = normalize(virtual_path)
        best: str | None = None
        for prefix in self._mappings:
            if not _covers(prefix, path):
                continue
            if best is None or len(prefix) > len(best):
                best = prefix
        if best is None:
            return None
        relative = path[len(best) :].strip("/")
        root = self._mappings[best]
        return root / relative if relative else root

    def __len__(self) -> int:
        """Return the number of mappings."""
        return len(self._mappings)


def _covers(prefix: str, path: str) -> bool:
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")
