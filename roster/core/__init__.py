"""Core models, errors and types for Roster."""

from roster.core.errors import (
    CapabilityNotFoundError,
    CatalogLoadError,
    ConfirmationRequiredError,
    DocumentNotFoundError,
    DocumentParseError,
    DocumentWriteError,
    ImportConfigError,
    ProjectNotInitializedError,
    RosterError,
    SessionClosedError,
    SnapshotError,
    UnknownCapabilityWarning,
    UpdateError,
)
from roster.core.models import (
    BASELINE_CATEGORY,
    ActivationState,
    BackupSnapshot,
    CapabilityDescriptor,
    Category,
    CategoryCount,
    InstallationRecord,
    Issue,
    Recommendation,
    RecommendationLevel,
    Severity,
    normalize_id,
)

__all__ = [
    # Models
    "ActivationState",
    "BackupSnapshot",
    "BASELINE_CATEGORY",
    "CapabilityDescriptor",
    "Category",
    "CategoryCount",
    "InstallationRecord",
    "Issue",
    "Recommendation",
    "RecommendationLevel",
    "Severity",
    "normalize_id",
    # Errors
    "CapabilityNotFoundError",
    "CatalogLoadError",
    "ConfirmationRequiredError",
    "DocumentNotFoundError",
    "DocumentParseError",
    "DocumentWriteError",
    "ImportConfigError",
    "ProjectNotInitializedError",
    "RosterError",
    "SessionClosedError",
    "SnapshotError",
    "UnknownCapabilityWarning",
    "UpdateError",
]
