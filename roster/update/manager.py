"""
Update Manager - Refresh the catalog of an installation with rollback.

Pipeline:
    idle -> snapshotting -> refreshing -> reconciling -> finalizing -> done

Any failure after the snapshot reverts the catalog swap, restores the
project configuration directory from the snapshot and ends in
rolled_back. A failure while snapshotting aborts before anything is
touched.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from roster.catalog.catalog import BUNDLED_CATALOG_DIR, Catalog
from roster.core.errors import ProjectNotInitializedError, RosterError, SnapshotError, UpdateError
from roster.core.models import ActivationState, BackupSnapshot
from roster.document.writer import read_document, write_document
from roster.install.installer import stage_catalog, swap_catalog
from roster.install.record import (
    UNKNOWN_VERSION,
    compare_versions,
    is_valid_version,
    read_version,
    write_version,
)
from roster.install.settings import ProjectLayout, Settings
from roster.install.snapshot import SnapshotManager

logger = logging.getLogger(__name__)


class UpdateState(str, Enum):
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    REFRESHING = "refreshing"
    RECONCILING = "reconciling"
    FINALIZING = "finalizing"
    DONE = "done"
    ROLLED_BACK = "rolled_back"


@dataclass
class UpdateResult:
    """Outcome of one update or migration run."""
    from_version: str
    to_version: str
    state: UpdateState = UpdateState.IDLE
    snapshot: Optional[BackupSnapshot] = None
    rolled_back_from: Optional[BackupSnapshot] = None
    error: Optional[str] = None
    unknown_ids: List[str] = field(default_factory=list)
    transitions: List[UpdateState] = field(default_factory=list)
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state is UpdateState.DONE


class UpdateManager:
    """
    Update or migrate one project and the catalog it uses.

    Usage:
        manager = UpdateManager(settings, settings.project("."))
        if manager.check("2.0.0"):
            result = manager.run(Path("dist/agents"), version="2.0.0")
    """

    def __init__(self, settings: Settings, layout: ProjectLayout):
        self.settings = settings
        self.layout = layout

        # A legacy per-project copy is refreshed in place; otherwise the
        # global catalog is refreshed and the project linked to it.
        if layout.legacy_catalog.is_dir() and not layout.catalog_link.exists():
            self.catalog_root = layout.legacy_catalog
        else:
            self.catalog_root = settings.catalog_root

        self._result: Optional[UpdateResult] = None
        self._previous_catalog: Optional[Path] = None
        self._swapped = False
        self._global_version: Optional[str] = None

    @property
    def uses_global_catalog(self) -> bool:
        return self.catalog_root == self.settings.catalog_root

    def current_version(self) -> str:
        return (
            read_version(self.layout.version_file)
            or read_version(self.settings.version_file)
            or UNKNOWN_VERSION
        )

    def check(self, available_version: Optional[str]) -> bool:
        """True if `available_version` is newer than the installed one."""
        current = self.current_version()
        newer = compare_versions(available_version, current) > 0
        logger.info(f"Installed {current}, available {available_version or UNKNOWN_VERSION}")
        return newer

    # ==================== Entry points ====================

    def run(
        self,
        source: Path,
        version: Optional[str] = None,
        force: bool = False,
    ) -> UpdateResult:
        """
        Refresh the catalog from `source`.

        Args:
            source: Catalog source directory
            version: Version being installed (default: the source catalog's)
            force: Run even when the installed version is not older

        Raises:
            ProjectNotInitializedError: No project configuration directory
            SnapshotError: Snapshot failed; nothing was changed
            UpdateError: Target version is not a semantic version
        """
        to_version = self._target_version(source, version)
        from_version = self.current_version()

        if not force and compare_versions(to_version, from_version) <= 0:
            logger.info(f"Already up to date ({from_version})")
            return UpdateResult(from_version=from_version, to_version=to_version, skipped=True)

        return self._pipeline(source, from_version, to_version, normalize=False, reason="update")

    def migrate(self, source: Optional[Path] = None, version: Optional[str] = None) -> UpdateResult:
        """
        Bring a legacy or pre-versioning install to the current layout.

        Same pipeline as run(), always executed, plus the Active block is
        rewritten in canonical form.
        """
        source = Path(source) if source else BUNDLED_CATALOG_DIR
        to_version = self._target_version(source, version)
        from_version = read_version(self.layout.version_file) or UNKNOWN_VERSION
        return self._pipeline(source, from_version, to_version, normalize=True, reason="migrate")

    def _target_version(self, source: Path, version: Optional[str]) -> str:
        to_version = version or Catalog.load(source).version or UNKNOWN_VERSION
        if not is_valid_version(to_version):
            raise UpdateError(f"Invalid target version: {to_version!r}")
        return to_version

    # ==================== Pipeline ====================

    def _transition(self, state: UpdateState):
        self._result.state = state
        self._result.transitions.append(state)
        logger.info(f"Update state: {state.value}")

    def _pipeline(
        self,
        source: Path,
        from_version: str,
        to_version: str,
        normalize: bool,
        reason: str,
    ) -> UpdateResult:
        if not self.layout.exists:
            raise ProjectNotInitializedError(
                f"No {self.settings.project_dir_name} directory in {self.layout.root}"
            )

        self._result = UpdateResult(from_version=from_version, to_version=to_version)
        self._previous_catalog = None
        self._swapped = False
        self._global_version = read_version(self.settings.version_file)
        self._result.transitions.append(UpdateState.IDLE)

        self._transition(UpdateState.SNAPSHOTTING)
        snapshot = self._snapshot(reason)
        self._result.snapshot = snapshot

        try:
            self._transition(UpdateState.REFRESHING)
            self._refresh(source)

            self._transition(UpdateState.RECONCILING)
            catalog = self._reconcile()

            self._transition(UpdateState.FINALIZING)
            self._finalize(catalog, to_version, normalize)
        except Exception as e:
            logger.error(f"Update failed while {self._result.state.value}: {e}; rolling back")
            self._rollback(snapshot)
            self._result.error = str(e)
            self._result.rolled_back_from = snapshot
            self._transition(UpdateState.ROLLED_BACK)
            return self._result

        self._transition(UpdateState.DONE)
        logger.info(f"Updated {from_version} -> {to_version}")
        return self._result

    def _snapshot(self, reason: str) -> BackupSnapshot:
        try:
            return SnapshotManager(self.layout.config_dir).create(reason=reason)
        except SnapshotError:
            self._result.state = UpdateState.IDLE
            raise

    def _stage_catalog(self, source: Path) -> Path:
        return stage_catalog(source, self.catalog_root)

    def _refresh(self, source: Path):
        staging = self._stage_catalog(source)
        self._previous_catalog = swap_catalog(staging, self.catalog_root)
        self._swapped = True

    def _reconcile(self) -> Catalog:
        """Load the new catalog and report active ids it no longer knows."""
        catalog = Catalog.load(self.catalog_root)
        if self.layout.rulebook.is_file():
            active = ActivationState.of(read_document(self.layout.rulebook).active_ids())
            self._result.unknown_ids = active.unknown(catalog)
            for capability_id in self._result.unknown_ids:
                logger.warning(f"Active capability '{capability_id}' not in the new catalog; kept")
        return catalog

    def _finalize(self, catalog: Catalog, to_version: str, normalize: bool):
        if normalize and self.layout.rulebook.is_file():
            document = read_document(self.layout.rulebook)
            if document.active_section() is not None:
                normalized = document.normalized()
                if normalized.serialize() != document.serialize():
                    write_document(self.layout.rulebook, normalized)
                    logger.info(f"Normalized Active block in {self.layout.rulebook}")

        if self.uses_global_catalog:
            link = self.layout.catalog_link
            if not link.is_symlink() or link.resolve() != self.catalog_root.resolve():
                if link.is_symlink() or link.is_file():
                    link.unlink()
                elif link.is_dir():
                    shutil.rmtree(link)
                link.symlink_to(self.catalog_root.resolve(), target_is_directory=True)
            write_version(self.settings.version_file, to_version)

        write_version(self.layout.version_file, to_version)

        if self._previous_catalog is not None:
            shutil.rmtree(self._previous_catalog, ignore_errors=True)
            self._previous_catalog = None

    def _rollback(self, snapshot: BackupSnapshot):
        try:
            if self._swapped:
                if self.catalog_root.exists():
                    shutil.rmtree(self.catalog_root)
                if self._previous_catalog is not None:
                    self._previous_catalog.rename(self.catalog_root)
            shutil.rmtree(
                self.catalog_root.with_name(f"{self.catalog_root.name}.incoming"),
                ignore_errors=True,
            )

            if self.uses_global_catalog:
                if self._global_version is not None:
                    write_version(self.settings.version_file, self._global_version)
                elif self.settings.version_file.exists():
                    self.settings.version_file.unlink()

            SnapshotManager(self.layout.config_dir).restore(snapshot)
        except (RosterError, OSError) as e:
            raise UpdateError(f"Rollback from {snapshot.name} failed: {e}") from e

        logger.info(f"Rolled back to snapshot {snapshot.name}")
