"""
Installer - Global catalog install, project init and project uninstall.

Layout:
    ~/.claude-global/
        agents/              Catalog root (copied from a source)
        .toolkit-version
    <project>/.claude/
        agents -> ~/.claude-global/agents
        .toolkit-version
        RULEBOOK.md
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from roster.catalog.catalog import Catalog
from roster.core.errors import CatalogLoadError, ProjectNotInitializedError, RosterError
from roster.core.models import BackupSnapshot, InstallationRecord
from roster.document.parser import parse
from roster.document.writer import write_document
from roster.engine.detection import DetectionEngine
from roster.engine.manifest import ManifestInspector
from roster.install.record import UNKNOWN_VERSION, read_version, write_version
from roster.install.settings import ProjectLayout, Settings, get_settings
from roster.install.snapshot import SnapshotManager

logger = logging.getLogger(__name__)

RULEBOOK_TEMPLATE = """\
# RULEBOOK - {project_name}

## Project Overview

**Name:** {project_name}

Describe what this project does and who it is for.

## Tech Stack

{tech_stack}

## Active Capabilities

"""


# ============================================================
# Catalog staging
# ============================================================

def _file_count(root: Path) -> int:
    return sum(1 for p in root.rglob("*") if p.is_file())


def stage_catalog(source: Path, catalog_root: Path) -> Path:
    """
    Copy a catalog source next to the catalog root and verify it.

    The staged copy must load as a catalog and contain every file of the
    source, so a partial copy is never swapped in.

    Returns:
        Path of the staged copy (<catalog_root>.incoming)

    Raises:
        CatalogLoadError: Source missing, copy incomplete or catalog invalid
    """
    source = Path(source)
    if not source.is_dir():
        raise CatalogLoadError("Catalog source not found", source)

    staging = catalog_root.with_name(f"{catalog_root.name}.incoming")
    shutil.rmtree(staging, ignore_errors=True)
    catalog_root.parent.mkdir(parents=True, exist_ok=True)

    try:
        shutil.copytree(source, staging)
    except OSError as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise CatalogLoadError(f"Failed to copy catalog: {e}", source) from e

    expected, copied = _file_count(source), _file_count(staging)
    if copied != expected:
        shutil.rmtree(staging, ignore_errors=True)
        raise CatalogLoadError(f"Incomplete catalog copy: {copied}/{expected} files", source)

    try:
        Catalog.load(staging)
    except CatalogLoadError:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.debug(f"Staged catalog {source} -> {staging}")
    return staging


def swap_catalog(staging: Path, catalog_root: Path) -> Optional[Path]:
    """
    Move a staged catalog into place.

    Returns:
        Where the old catalog was moved (<catalog_root>.previous), or None
        when there was none
    """
    previous = None
    if catalog_root.exists():
        previous = catalog_root.with_name(f"{catalog_root.name}.previous")
        shutil.rmtree(previous, ignore_errors=True)
        catalog_root.rename(previous)
    staging.rename(catalog_root)
    return previous


def install(
    source: Path,
    settings: Optional[Settings] = None,
    version: Optional[str] = None,
) -> InstallationRecord:
    """
    Install a catalog into the global directory.

    An existing catalog is replaced wholesale.

    Args:
        source: Catalog source directory
        settings: Paths to use (default: environment)
        version: Version to record (default: the catalog's own)
    """
    settings = settings or get_settings()
    catalog_root = settings.catalog_root

    staging = stage_catalog(source, catalog_root)
    previous = swap_catalog(staging, catalog_root)
    if previous is not None:
        shutil.rmtree(previous, ignore_errors=True)

    version = version or Catalog.load(catalog_root).version or UNKNOWN_VERSION
    write_version(settings.version_file, version)

    logger.info(f"Installed catalog {version} into {catalog_root}")
    return InstallationRecord(version=version, catalog_root=catalog_root)


# ============================================================
# Projects
# ============================================================

def _default_catalog(settings: Settings) -> Catalog:
    if settings.is_installed:
        return Catalog.load(settings.catalog_root)
    logger.info("No global install; using the bundled catalog")
    return Catalog.bundled()


def _link_catalog(layout: ProjectLayout, catalog_root: Path):
    link = layout.catalog_link
    if link.is_symlink() or link.is_file():
        link.unlink()
    elif link.is_dir():
        shutil.rmtree(link)
    link.symlink_to(catalog_root.resolve(), target_is_directory=True)


def render_rulebook(project_name: str, tags: Iterable[str] = (), active: Iterable[str] = ()) -> str:
    """RULEBOOK text for a new project."""
    tags = list(tags)
    if tags:
        tech_stack = "\n".join([
            f"- Language: {tags[0]}",
            f"- Framework: {', '.join(tags[1:]) or 'none'}",
            f"- Detected: {', '.join(tags)}",
        ])
    else:
        tech_stack = "- Language: (fill in)\n- Framework: (fill in)"

    text = RULEBOOK_TEMPLATE.format(project_name=project_name, tech_stack=tech_stack)
    return parse(text).with_active_ids(active).serialize()


def init_project(
    project_root: Path,
    settings: Optional[Settings] = None,
    tags: Optional[List[str]] = None,
    force: bool = False,
    catalog: Optional[Catalog] = None,
) -> ProjectLayout:
    """
    Create a project's configuration directory.

    The RULEBOOK starts with the baseline plus every capability detected
    for the project active.

    Args:
        project_root: Project directory
        settings: Paths to use (default: environment)
        tags: Technology tags (default: detected from project files)
        force: Overwrite an existing RULEBOOK (a snapshot is taken first)
        catalog: Catalog to link (default: global install, else bundled)

    Raises:
        RosterError: Project already initialized and force is False
    """
    settings = settings or get_settings()
    layout = settings.project(project_root)

    if layout.rulebook.exists() and not force:
        raise RosterError(f"{layout.rulebook} already exists; use force to overwrite")

    # A real catalog copy in place of the link is replaced below
    local_copy = layout.catalog_link.exists() and not layout.catalog_link.is_symlink()
    if layout.rulebook.exists() or local_copy:
        SnapshotManager(layout.config_dir).create(reason="init")

    catalog = catalog or _default_catalog(settings)
    detection = DetectionEngine(catalog)
    if tags is None:
        tags = ManifestInspector(layout.root, known_tags=detection.known_tags()).detect_tags()

    active = set(catalog.baseline_ids())
    active.update(r.capability_id for r in detection.recommend(tags))

    layout.config_dir.mkdir(parents=True, exist_ok=True)
    _link_catalog(layout, catalog.root or settings.catalog_root)
    write_version(
        layout.version_file,
        read_version(settings.version_file) or catalog.version or UNKNOWN_VERSION,
    )
    write_document(layout.rulebook, render_rulebook(layout.root.name, tags, active))

    logger.info(f"Initialized {layout.config_dir} with {len(active)} active capabilities")
    return layout


def uninstall_project(
    project_root: Path,
    settings: Optional[Settings] = None,
    keep_rulebook: bool = False,
) -> BackupSnapshot:
    """
    Remove toolkit-owned files from a project, after a snapshot.

    The configuration directory itself is removed only when nothing else
    is left in it.

    Returns:
        The snapshot taken before removal
    """
    settings = settings or get_settings()
    layout = settings.project(project_root)
    if not layout.exists:
        raise ProjectNotInitializedError(f"No {settings.project_dir_name} directory in {layout.root}")

    snapshot = SnapshotManager(layout.config_dir).create(reason="uninstall")

    owned = [layout.catalog_link, layout.legacy_catalog, layout.version_file, layout.settings_file]
    if not keep_rulebook:
        owned.append(layout.rulebook)

    for path in owned:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
        else:
            continue
        logger.debug(f"Removed {path}")

    if not any(layout.config_dir.iterdir()):
        layout.config_dir.rmdir()
        logger.info(f"Removed empty {layout.config_dir}")

    logger.info(f"Uninstalled roster from {layout.root}")
    return snapshot
