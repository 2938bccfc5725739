"""Tests for SnapshotManager and installation records."""

import pytest

from roster.core.errors import SnapshotError
from roster.install.record import (
    UNKNOWN_VERSION,
    compare_versions,
    load_record,
    read_version,
    version_key,
    write_version,
)
from roster.install.snapshot import SnapshotManager


def tree(root):
    """Relative path -> bytes for every file under root."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.is_symlink()
    }


class TestSnapshotManager:
    """Tests for snapshot create/list/restore."""

    @pytest.fixture
    def source(self, tmp_path):
        config_dir = tmp_path / ".claude"
        config_dir.mkdir()
        (config_dir / "RULEBOOK.md").write_text("## Active Capabilities\n\n- a\n", encoding="utf-8")
        (config_dir / "nested").mkdir()
        (config_dir / "nested" / "file.txt").write_text("x", encoding="utf-8")
        return config_dir

    def test_create_copies_everything(self, source):
        """Test a snapshot is a full copy beside the source."""
        snapshot = SnapshotManager(source).create(reason="update")

        assert snapshot.snapshot_path.parent == source.parent
        assert snapshot.name.startswith(".claude.backup.")
        assert snapshot.name.endswith("-update")
        assert tree(snapshot.snapshot_path) == tree(source)

    def test_names_sort_chronologically(self, source):
        """Test list() returns snapshots oldest first."""
        manager = SnapshotManager(source)
        first = manager.create()
        second = manager.create(reason="Selection Reset!")

        snapshots = manager.list()
        assert [s.name for s in snapshots] == [first.name, second.name]
        assert snapshots[1].reason == "selection-reset"
        assert manager.latest().name == second.name

    def test_unrelated_directories_ignored(self, source):
        """Test only well-formed snapshot names are listed."""
        (source.parent / ".claude.backup.garbage").mkdir()
        assert SnapshotManager(source).list() == []

    def test_create_missing_source(self, tmp_path):
        """Test snapshotting a missing directory raises."""
        with pytest.raises(SnapshotError):
            SnapshotManager(tmp_path / "missing").create()

    def test_restore_is_byte_identical(self, source):
        """Test restore brings back the exact contents."""
        manager = SnapshotManager(source)
        before = tree(source)
        snapshot = manager.create()

        (source / "RULEBOOK.md").write_text("changed", encoding="utf-8")
        (source / "extra.txt").write_text("new", encoding="utf-8")
        manager.restore(snapshot)

        assert tree(source) == before

    def test_restore_keeps_symlinks(self, source, tmp_path):
        """Test links are copied as links."""
        target = tmp_path / "catalog"
        target.mkdir()
        (source / "agents").symlink_to(target, target_is_directory=True)

        manager = SnapshotManager(source)
        snapshot = manager.create()
        manager.restore(snapshot)

        assert (source / "agents").is_symlink()
        assert (source / "agents").resolve() == target.resolve()

    def test_restore_missing_snapshot(self, source):
        """Test restoring a deleted snapshot raises."""
        manager = SnapshotManager(source)
        snapshot = manager.create()
        snapshot.snapshot_path.rename(source.parent / "moved")

        with pytest.raises(SnapshotError):
            manager.restore(snapshot)


class TestVersions:
    """Tests for version files and comparison."""

    @pytest.mark.parametrize("left,right,expected", [
        ("1.0.0", "1.0.0", 0),
        ("1.10.0", "1.9.0", 1),
        ("1.0", "1.0.1", -1),
        ("v2.0.0", "1.99.99", 1),
        (None, "0.0.1", -1),
        ("garbage", "0.0.0", 0),
    ])
    def test_compare_versions(self, left, right, expected):
        """Test numeric tuple comparison with missing versions as 0.0.0."""
        assert compare_versions(left, right) == expected

    def test_version_key_ignores_suffix(self):
        """Test pre-release suffixes are ignored."""
        assert version_key("1.2.3-beta.1") == (1, 2, 3)

    def test_read_write_version(self, tmp_path):
        """Test a version file holds a single line."""
        path = tmp_path / ".toolkit-version"
        write_version(path, "1.2.3")

        assert path.read_text(encoding="utf-8") == "1.2.3\n"
        assert read_version(path) == "1.2.3"

    def test_write_replaces_symlink(self, tmp_path):
        """Test a linked version file becomes a plain file."""
        shared = tmp_path / "global-version"
        shared.write_text("1.0.0\n", encoding="utf-8")
        path = tmp_path / ".toolkit-version"
        path.symlink_to(shared)

        write_version(path, "2.0.0")

        assert not path.is_symlink()
        assert shared.read_text(encoding="utf-8") == "1.0.0\n"

    def test_write_rejects_invalid(self, tmp_path):
        """Test malformed versions are refused."""
        with pytest.raises(ValueError):
            write_version(tmp_path / ".toolkit-version", "latest")

    def test_read_missing_or_malformed(self, tmp_path):
        """Test absent and malformed files read as None."""
        path = tmp_path / ".toolkit-version"
        assert read_version(path) is None
        path.write_text("not-a-version\n", encoding="utf-8")
        assert read_version(path) is None

    def test_load_record(self, project, installed):
        """Test the record follows the project link."""
        record = load_record(installed, project)

        assert record.version == "1.0.0"
        assert record.catalog_root == installed.catalog_root.resolve()

    def test_load_record_pre_versioning(self, tmp_path, settings):
        """Test a missing version reads as 0.0.0."""
        record = load_record(settings, settings.project(tmp_path / "app"))
        assert record.version == UNKNOWN_VERSION
