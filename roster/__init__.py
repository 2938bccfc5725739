"""
Roster - Capability activation registry for coding agents.

A catalog of categorized agent capabilities is shipped with the package
(or installed globally); each project lists the ones it activates in the
"Active Capabilities" section of its RULEBOOK.md.

Core Concepts:
- Catalog: The known capabilities, their categories and detection table
- ConfigDocument: The parsed RULEBOOK; only the Active block is rewritten
- SelectionSession: Activation commands applied in memory, committed once
- Engines: Detection, statistics and validation over (catalog, active set)
- UpdateManager: Catalog refresh with snapshot and rollback

Usage:
    from roster import Catalog, SelectionSession

    catalog = Catalog.bundled()
    session = SelectionSession.open(catalog, Path(".claude/RULEBOOK.md"))
    session.toggle("react-specialist")
    session.commit()
"""

__version__ = "1.0.0"

from roster.catalog.catalog import Catalog
from roster.core.errors import RosterError
from roster.core.models import ActivationState, CapabilityDescriptor, Category, Issue, Severity
from roster.document.parser import ConfigDocument, parse
from roster.engine import (
    DetectionEngine,
    HealthCheck,
    ManifestInspector,
    SelectionSession,
    StatisticsEngine,
    ValidationEngine,
)
from roster.install.settings import Settings, get_settings
from roster.update.manager import UpdateManager

__all__ = [
    # Core models
    "ActivationState",
    "CapabilityDescriptor",
    "Category",
    "Issue",
    "Severity",
    "RosterError",
    # Catalog and document
    "Catalog",
    "ConfigDocument",
    "parse",
    # Engines
    "DetectionEngine",
    "HealthCheck",
    "ManifestInspector",
    "SelectionSession",
    "StatisticsEngine",
    "ValidationEngine",
    "UpdateManager",
    # Settings
    "Settings",
    "get_settings",
]
