"""
Config Transfer - Export a project's configuration to JSON and import it back.

Export payload:
    {
      "version": "1.0.0",
      "exportedAt": "2026-01-01T00:00:00Z",
      "scope": "full",
      "rulebook": {"content": "...", "exists": true},
      "activeAgents": ["code-reviewer", ...],
      "settings": {...}
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from roster.catalog.catalog import Catalog
from roster.core.errors import DocumentNotFoundError, ImportConfigError, ProjectNotInitializedError
from roster.core.models import ActivationState, BackupSnapshot, normalize_id
from roster.document.parser import ConfigDocument, parse
from roster.document.writer import read_document, write_document
from roster.install.record import UNKNOWN_VERSION, read_version
from roster.install.settings import ProjectLayout
from roster.install.snapshot import SnapshotManager

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    REPLACE = "replace"
    MERGE = "merge"


class TransferScope(str, Enum):
    FULL = "full"
    RULEBOOK = "rulebook"
    AGENTS = "agents"
    SETTINGS = "settings"

    def includes(self, part: "TransferScope") -> bool:
        return self is TransferScope.FULL or self is part


@dataclass
class ImportResult:
    """Outcome of import_config()."""
    mode: ImportMode
    scope: TransferScope
    snapshot: Optional[BackupSnapshot] = None
    active: ActivationState = field(default_factory=ActivationState)
    unknown_ids: List[str] = field(default_factory=list)


def _read_settings(layout: ProjectLayout) -> Dict[str, Any]:
    if not layout.settings_file.is_file():
        return {}
    try:
        data = json.loads(layout.settings_file.read_text(encoding="utf-8"))
    except ValueError as e:
        logger.warning(f"Ignoring invalid {layout.settings_file}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _read_rulebook(layout: ProjectLayout) -> Optional[ConfigDocument]:
    try:
        return read_document(layout.rulebook)
    except DocumentNotFoundError:
        return None


def export_config(layout: ProjectLayout, scope: TransferScope = TransferScope.FULL) -> Dict[str, Any]:
    """
    Build a JSON-ready export of a project's configuration.

    Raises:
        ProjectNotInitializedError: Project has no configuration directory
    """
    if not layout.exists:
        raise ProjectNotInitializedError(f"No configuration directory at {layout.config_dir}")

    scope = TransferScope(scope)
    document = _read_rulebook(layout)

    data: Dict[str, Any] = {
        "version": read_version(layout.version_file) or UNKNOWN_VERSION,
        "exportedAt": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "scope": scope.value,
    }
    if scope.includes(TransferScope.RULEBOOK):
        data["rulebook"] = {
            "content": document.serialize() if document else "",
            "exists": document is not None,
        }
    if scope.includes(TransferScope.AGENTS):
        data["activeAgents"] = sorted(document.active_ids()) if document else []
    if scope.includes(TransferScope.SETTINGS):
        data["settings"] = _read_settings(layout)

    logger.info(f"Exported {scope.value} configuration from {layout.config_dir}")
    return data


def _validate_payload(data: Any):
    if not isinstance(data, dict):
        raise ImportConfigError("Import payload must be a JSON object")

    rulebook = data.get("rulebook")
    if rulebook is not None:
        if not isinstance(rulebook, dict) or not isinstance(rulebook.get("content", ""), str):
            raise ImportConfigError("'rulebook' must be an object with string 'content'")

    agents = data.get("activeAgents")
    if agents is not None:
        if not isinstance(agents, list) or not all(isinstance(a, str) for a in agents):
            raise ImportConfigError("'activeAgents' must be a list of ids")

    settings = data.get("settings")
    if settings is not None and not isinstance(settings, dict):
        raise ImportConfigError("'settings' must be an object")


def import_config(
    layout: ProjectLayout,
    data: Dict[str, Any],
    mode: ImportMode = ImportMode.REPLACE,
    scope: TransferScope = TransferScope.FULL,
    catalog: Optional[Catalog] = None,
) -> ImportResult:
    """
    Apply an exported configuration to a project.

    A snapshot of the configuration directory is taken before anything is
    written.

    Args:
        layout: Target project
        data: Payload produced by export_config()
        mode: REPLACE overwrites; MERGE keeps the existing RULEBOOK body,
            unions active ids and overlays settings
        scope: Which parts of the payload to apply
        catalog: Used only to report unknown ids

    Raises:
        ImportConfigError: Malformed payload (nothing is written)
        ProjectNotInitializedError: Project has no configuration directory
    """
    mode, scope = ImportMode(mode), TransferScope(scope)
    _validate_payload(data)
    if not layout.exists:
        raise ProjectNotInitializedError(f"No configuration directory at {layout.config_dir}")

    result = ImportResult(mode=mode, scope=scope)
    result.snapshot = SnapshotManager(layout.config_dir).create(reason="import")

    document = _read_rulebook(layout)
    changed = False

    rulebook = data.get("rulebook")
    if scope.includes(TransferScope.RULEBOOK) and rulebook and rulebook.get("exists", True):
        if mode is ImportMode.REPLACE or document is None:
            document = parse(rulebook.get("content", ""))
            changed = True

    agents = data.get("activeAgents")
    if scope.includes(TransferScope.AGENTS) and agents is not None:
        document = document or parse("")
        ids = {normalize_id(capability_id) for capability_id in agents}
        if mode is ImportMode.MERGE:
            ids |= set(document.active_ids())
        document = document.with_active_ids(ids)
        changed = True

    if changed and document is not None:
        write_document(layout.rulebook, document)

    settings = data.get("settings")
    if scope.includes(TransferScope.SETTINGS) and settings is not None:
        if mode is ImportMode.MERGE:
            settings = {**_read_settings(layout), **settings}
        write_document(layout.settings_file, json.dumps(settings, indent=2) + "\n")

    if document is not None:
        result.active = ActivationState.of(document.active_ids())
    if catalog is not None:
        result.unknown_ids = result.active.unknown(catalog)
        for capability_id in result.unknown_ids:
            logger.warning(f"Imported unknown capability '{capability_id}'")

    logger.info(
        f"Imported {scope.value} configuration ({mode.value}) into {layout.config_dir}"
    )
    return result
