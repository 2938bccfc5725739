"""
Installation Record - Version file and catalog location of an install.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from roster.core.models import InstallationRecord
from roster.document.writer import write_document
from roster.install.settings import ProjectLayout, Settings

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "0.0.0"
VERSION_PATTERN = re.compile(r"^v?\d+(?:\.\d+)*(?:[-+][0-9A-Za-z.\-+]*)?$")


def is_valid_version(version: str) -> bool:
    return bool(VERSION_PATTERN.match(version.strip()))


def version_key(version: Optional[str]) -> Tuple[int, ...]:
    """
    Sortable key for a semantic version string.

    Numeric components compare numerically; pre-release/build suffixes are
    ignored. Missing or unparseable versions sort as 0.0.0.
    """
    if not version or not is_valid_version(version):
        return (0, 0, 0)
    core = re.split(r"[-+]", version.strip().lstrip("v"), maxsplit=1)[0]
    parts = [int(p) for p in core.split(".")]
    while len(parts) < 3:
        parts.append(0)
    return tuple(parts)


def compare_versions(left: Optional[str], right: Optional[str]) -> int:
    """-1, 0 or 1 as left is older than, equal to, or newer than right."""
    a, b = version_key(left), version_key(right)
    return (a > b) - (a < b)


def read_version(path: Path) -> Optional[str]:
    """First line of a version file, or None when absent or empty."""
    path = Path(path)
    if not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    if not lines or not lines[0].strip():
        return None
    version = lines[0].strip()
    if not is_valid_version(version):
        logger.warning(f"Ignoring malformed version '{version}' in {path}")
        return None
    return version


def write_version(path: Path, version: str) -> None:
    """Persist a version as the sole content of a version file."""
    if not is_valid_version(version):
        raise ValueError(f"Invalid semantic version: {version!r}")
    path = Path(path)
    # A project version file may be a link to the global one
    if path.is_symlink():
        path.unlink()
    write_document(path, f"{version.strip()}\n")


def resolve_catalog_root(settings: Settings, layout: Optional[ProjectLayout] = None) -> Path:
    """
    Locate the catalog an install or project uses.

    A project's link (.claude/agents) wins, then a legacy per-project copy
    (.claude/agents-global), then the global catalog.
    """
    if layout is not None:
        if layout.catalog_link.exists():
            return layout.catalog_link.resolve()
        if layout.legacy_catalog.is_dir():
            return layout.legacy_catalog
    return settings.catalog_root


def load_record(settings: Settings, layout: Optional[ProjectLayout] = None) -> InstallationRecord:
    """Read the installation record for the global install or a project."""
    version = None
    if layout is not None:
        version = read_version(layout.version_file)
    if version is None:
        version = read_version(settings.version_file)

    return InstallationRecord(
        version=version or UNKNOWN_VERSION,
        catalog_root=resolve_catalog_root(settings, layout),
        project_link=layout.catalog_link if layout is not None else None,
    )
