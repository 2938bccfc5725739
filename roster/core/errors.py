"""
Roster Errors - Exception taxonomy for the activation registry.

Fatal errors derive from RosterError and abort the operation in progress.
UnknownCapabilityWarning is recorded and surfaced, never raised.
Structural problems in a document are reported as Issue values by the
validation engine, not as exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


class RosterError(Exception):
    """Base error for roster operations."""
    pass


class CatalogLoadError(RosterError):
    """Catalog location missing or structurally malformed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path is not None:
            message = f"{message} ({path})"
        super().__init__(message)


class CapabilityNotFoundError(RosterError, KeyError):
    """Capability id not present in the catalog."""

    def __init__(self, capability_id: str):
        self.capability_id = capability_id
        super().__init__(f"Capability not found: {capability_id}")

    def __str__(self) -> str:
        return self.args[0]


class DocumentParseError(RosterError):
    """Configuration document could not be parsed."""
    pass


class DocumentNotFoundError(RosterError, FileNotFoundError):
    """Configuration document does not exist."""
    pass


class DocumentWriteError(RosterError, OSError):
    """Atomic document write failed; the original file is untouched."""
    pass


class SnapshotError(RosterError):
    """Backup snapshot could not be created or restored."""
    pass


class UpdateError(RosterError):
    """Update or migration failed."""
    pass


class SessionClosedError(RosterError):
    """Selection session was already committed or cancelled."""
    pass


class ConfirmationRequiredError(RosterError):
    """A destructive operation was requested without confirmation."""

    def __init__(self, operation: str, dropped: Iterable[str]):
        self.operation = operation
        self.dropped: List[str] = sorted(dropped)
        super().__init__(
            f"{operation} would deactivate {len(self.dropped)} capabilities; "
            f"confirmation required"
        )


class ProjectNotInitializedError(RosterError):
    """Project configuration directory is missing."""
    pass


class ImportConfigError(RosterError):
    """Exported configuration payload is invalid."""
    pass


class UnknownCapabilityWarning(UserWarning):
    """An id is not present in the current catalog; it is kept anyway."""

    def __init__(self, capability_id: str, operation: str = "toggle"):
        self.capability_id = capability_id
        self.operation = operation
        super().__init__(f"Unknown capability '{capability_id}' ({operation})")
