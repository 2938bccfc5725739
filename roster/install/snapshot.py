"""
Backup Snapshots - Full copies of a project configuration directory.

Snapshots live next to the directory they copy and are named
<dir>.backup.<YYYYmmdd-HHMMSS-ffffff>[-<reason>], so the most recent one
sorts last. The core never deletes snapshots.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from roster.core.errors import SnapshotError
from roster.core.models import BackupSnapshot

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"
_REASON_PATTERN = re.compile(r"[^a-z0-9]+")


class SnapshotManager:
    """
    Create, list and restore snapshots of one directory.

    Usage:
        snapshots = SnapshotManager(Path(".claude"))
        snapshot = snapshots.create(reason="update")
        ...
        snapshots.restore(snapshot)
    """

    def __init__(self, source_dir: Path, backup_root: Optional[Path] = None):
        """
        Args:
            source_dir: Directory to snapshot (e.g. the project's .claude)
            backup_root: Where snapshots are stored (default: its parent)
        """
        self.source_dir = Path(source_dir)
        self.backup_root = Path(backup_root) if backup_root else self.source_dir.parent
        self.prefix = f"{self.source_dir.name}.backup."

    def _name_for(self, timestamp: datetime, reason: Optional[str]) -> str:
        name = f"{self.prefix}{timestamp.strftime(TIMESTAMP_FORMAT)}"
        if reason:
            slug = _REASON_PATTERN.sub("-", reason.lower()).strip("-")
            if slug:
                name += f"-{slug}"
        return name

    def create(self, reason: Optional[str] = None) -> BackupSnapshot:
        """
        Copy the whole source directory into a new snapshot.

        Raises:
            SnapshotError: Source missing or copy failed (partial copies
                are removed)
        """
        if not self.source_dir.is_dir():
            raise SnapshotError(f"Nothing to snapshot: {self.source_dir} is not a directory")

        timestamp = datetime.now()
        target = self.backup_root / self._name_for(timestamp, reason)
        while target.exists():
            timestamp += timedelta(microseconds=1)
            target = self.backup_root / self._name_for(timestamp, reason)

        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
            shutil.copytree(self.source_dir, target, symlinks=True)
        except OSError as e:
            shutil.rmtree(target, ignore_errors=True)
            raise SnapshotError(f"Failed to snapshot {self.source_dir}: {e}") from e

        logger.info(f"Snapshot created: {target}")
        return BackupSnapshot(
            timestamp=timestamp,
            source_path=self.source_dir,
            snapshot_path=target,
            reason=reason,
        )

    def list(self) -> List[BackupSnapshot]:
        """All snapshots of the source directory, oldest first."""
        if not self.backup_root.is_dir():
            return []

        snapshots = []
        for path in sorted(self.backup_root.glob(f"{self.prefix}*")):
            if not path.is_dir():
                continue
            # date-time-micros[-reason]
            parts = path.name[len(self.prefix):].split("-", 3)
            try:
                timestamp = datetime.strptime("-".join(parts[:3]), TIMESTAMP_FORMAT)
            except ValueError:
                logger.debug(f"Ignoring unrecognized backup directory: {path}")
                continue
            snapshots.append(BackupSnapshot(
                timestamp=timestamp,
                source_path=self.source_dir,
                snapshot_path=path,
                reason=parts[3] if len(parts) > 3 else None,
            ))
        return snapshots

    def latest(self) -> Optional[BackupSnapshot]:
        snapshots = self.list()
        return snapshots[-1] if snapshots else None

    def restore(self, snapshot: BackupSnapshot) -> None:
        """
        Replace the source directory with the snapshot's contents.

        The snapshot is copied to a staging directory first, so a failed
        copy leaves the current directory in place.

        Raises:
            SnapshotError: Snapshot missing or restore failed
        """
        if not snapshot.snapshot_path.is_dir():
            raise SnapshotError(f"Snapshot not found: {snapshot.snapshot_path}")

        staging = self.source_dir.with_name(f"{self.source_dir.name}.restoring")
        shutil.rmtree(staging, ignore_errors=True)

        try:
            shutil.copytree(snapshot.snapshot_path, staging, symlinks=True)
            if self.source_dir.is_symlink() or self.source_dir.is_file():
                self.source_dir.unlink()
            elif self.source_dir.exists():
                shutil.rmtree(self.source_dir)
            staging.rename(self.source_dir)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise SnapshotError(f"Failed to restore {snapshot.snapshot_path}: {e}") from e

        logger.info(f"Restored {self.source_dir} from snapshot {snapshot.name}")
