"""Tests for host overlays.

An overlay mirrors a virtual subtree onto a real directory.  These
tests use pytest's ``tmp_path`` as the host side and check both
directions: virtual writes land on the host, host edits show up on the
next read or listing, and host failures fall back to the virtual tree.
"""

from pathlib import Path

import pytest

from py_kernel.fs import NoSuchFileError, OverlayTable, VirtualFileSystem, normalize
from py_kernel.logging import Logger, LogLevel


def _overlaid(host: Path, virtual: str = "/mnt/data") -> VirtualFileSystem:
    vfs = VirtualFileSystem()
    vfs.mount()
    vfs.mount_overlay(host, virtual)
    return vfs


class TestNormalize:
    """Verify path normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("/a/b", "/a/b"), ("a//b/", "/a/b"), ("", "/"), ("///", "/")],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        """Empty segments and trailing slashes disappear."""
        assert normalize(raw) == expected


class TestOverlayTable:
    """Verify prefix resolution."""

    def test_unmapped_path_has_no_host(self) -> None:
        """Paths outside every prefix are purely virtual."""
        table = OverlayTable()
        table.add("/mnt", "/srv")
        assert table.host_path("/home/u") is None

    def test_prefix_itself_maps_to_root(self) -> None:
        """The mapped prefix resolves to the host root."""
        table = OverlayTable()
        table.add("/mnt", "/srv")
        assert table.host_path("/mnt") == Path("/srv")
        assert table.host_path("/mnt/a/b.txt") == Path("/srv/a/b.txt")

    def test_matching_respects_segment_boundaries(self) -> None:
        """/mnt does not cover /mnt2."""
        table = OverlayTable()
        table.add("/mnt", "/srv")
        assert table.host_path("/mnt2/x") is None

    @pytest.mark.parametrize("order", [("/mnt", "/mnt/data"), ("/mnt/data", "/mnt")])
    def test_longest_prefix_wins_regardless_of_order(self, order: tuple[str, str]) -> None:
        """The most specific mapping wins whichever was added first."""
        hosts = {"/mnt": "/srv/outer", "/mnt/data": "/srv/inner"}
        table = OverlayTable()
        for prefix in order:
            table.add(prefix, hosts[prefix])
        assert table.host_path("/mnt/data/f.txt") == Path("/srv/inner/f.txt")
        assert table.host_path("/mnt/other") == Path("/srv/outer/other")

    def test_remove_mapping(self) -> None:
        """Removed mappings no longer resolve."""
        table = OverlayTable()
        table.add("/mnt/", "/srv")
        assert table.remove("/mnt") is True
        assert table.remove("/mnt") is False
        assert len(table) == 0


class TestMountOverlay:
    """Verify the initial import of a host tree."""

    def test_host_tree_is_imported(self, tmp_path: Path) -> None:
        """Files and nested directories appear in the virtual tree."""
        (tmp_path / "notes.txt").write_text("hi", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deep.txt").write_text("deep", encoding="utf-8")
        vfs = _overlaid(tmp_path)
        assert vfs.read_file("/mnt/data/notes.txt") == "hi"
        assert vfs.is_dir("/mnt/data/sub")
        assert vfs.exists("/mnt/data/sub/deep.txt")

    def test_missing_host_directory_still_mounts(self, tmp_path: Path) -> None:
        """A host path that does not exist leaves an empty virtual dir."""
        vfs = _overlaid(tmp_path / "absent")
        assert vfs.list_dir("/mnt/data") == []

    def test_mount_is_logged(self, tmp_path: Path) -> None:
        """Mounting reports to the kernel log under 'overlay'."""
        logger = Logger()
        vfs = VirtualFileSystem(logger=logger)
        vfs.mount_overlay(tmp_path, "/mnt")
        infos = logger.filter(source="overlay", min_level=LogLevel.INFO)
        assert len(infos) == 1


class TestMirroring:
    """Verify that changes flow in both directions."""

    def test_write_file_lands_on_host(self, tmp_path: Path) -> None:
        """Virtual writes are applied to the host file."""
        vfs = _overlaid(tmp_path)
        vfs.write_file("/mnt/data/out.txt", "payload")
        assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "payload"

    def test_mkdir_lands_on_host(self, tmp_path: Path) -> None:
        """Virtual directories are created on the host too."""
        vfs = _overlaid(tmp_path)
        vfs.mkdir("/mnt/data/a/b")
        assert (tmp_path / "a" / "b").is_dir()

    def test_descriptor_writes_land_on_host(self, tmp_path: Path) -> None:
        """Writes through an fd persist all the way to the host."""
        vfs = _overlaid(tmp_path)
        fd = vfs.open("/mnt/data/log.txt", "a")
        vfs.write(fd, "one;")
        vfs.write(fd, "two;")
        assert (tmp_path / "log.txt").read_text(encoding="utf-8") == "one;two;"

    def test_host_edit_visible_on_read(self, tmp_path: Path) -> None:
        """read_file prefers the host's current content."""
        host_file = tmp_path / "f.txt"
        host_file.write_text("v1", encoding="utf-8")
        vfs = _overlaid(tmp_path)
        host_file.write_text("v2", encoding="utf-8")
        assert vfs.read_file("/mnt/data/f.txt") == "v2"

    def test_host_edit_visible_on_list(self, tmp_path: Path) -> None:
        """list_dir reflects files created and deleted on the host."""
        (tmp_path / "old.txt").write_text("x", encoding="utf-8")
        vfs = _overlaid(tmp_path)
        (tmp_path / "old.txt").unlink()
        (tmp_path / "new.txt").write_text("abc", encoding="utf-8")
        assert vfs.list_dir("/mnt/data") == [{"name": "new.txt", "type": "file", "size": 3}]
        with pytest.raises(NoSuchFileError):
            vfs.read_file("/mnt/data/old.txt")

    def test_list_keeps_existing_subdirectories(self, tmp_path: Path) -> None:
        """Refreshing a listing keeps the nodes of surviving subdirectories."""
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "inner.txt").write_text("i", encoding="utf-8")
        vfs = _overlaid(tmp_path)
        vfs.list_dir("/mnt/data")
        assert vfs.exists("/mnt/data/sub/inner.txt")

    def test_write_creates_virtual_parent_from_host(self, tmp_path: Path) -> None:
        """A directory that exists only on the host is reflected on write."""
        vfs = _overlaid(tmp_path)
        (tmp_path / "later").mkdir()
        vfs.write_file("/mnt/data/later/f.txt", "x")
        assert vfs.is_dir("/mnt/data/later")
        assert (tmp_path / "later" / "f.txt").read_text(encoding="utf-8") == "x"


class TestFallback:
    """Verify that host failures never surface."""

    def test_undecodable_host_file_falls_back_to_virtual(self, tmp_path: Path) -> None:
        """A host read failure uses the virtual copy instead."""
        vfs = _overlaid(tmp_path)
        vfs.write_file("/mnt/data/f.txt", "virtual")
        (tmp_path / "f.txt").write_bytes(b"\xff\xfe\xfa")
        assert vfs.read_file("/mnt/data/f.txt") == "virtual"

    def test_host_write_failure_keeps_virtual_write(self, tmp_path: Path) -> None:
        """If the host rejects a write, the virtual tree still has it."""
        host_root = tmp_path / "host"
        vfs = _overlaid(host_root)
        # A host file where the host directory should be makes every write fail.
        host_root.write_text("blocker", encoding="utf-8")
        vfs.mkdir("/mnt/data/d")
        assert vfs.write_file("/mnt/data/d/f.txt", "kept") is True
        assert vfs.read_file("/mnt/data/d/f.txt") == "kept"

    def test_host_failures_are_logged_at_debug(self, tmp_path: Path) -> None:
        """Swallowed host errors leave a DEBUG trace."""
        logger = Logger()
        vfs = VirtualFileSystem(logger=logger)
        vfs.mount_overlay(tmp_path, "/mnt")
        vfs.write_file("/mnt/f.txt", "virtual")
        (tmp_path / "f.txt").write_bytes(b"\xff")
        vfs.read_file("/mnt/f.txt")
        debug = [e for e in logger.filter(source="overlay") if e.level is LogLevel.DEBUG]
        assert any("host sync failed" in e.message for e in debug)
