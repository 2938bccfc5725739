"""
Roster Engines - Selection, detection, statistics, validation and health.
"""

from roster.engine.detection import DetectionEngine
from roster.engine.health import HealthCheck
from roster.engine.manifest import ManifestInspector
from roster.engine.selection import SelectionChanges, SelectionSession, SessionState
from roster.engine.statistics import StatisticsEngine
from roster.engine.validation import ValidationEngine, ValidationReport

__all__ = [
    "DetectionEngine",
    "HealthCheck",
    "ManifestInspector",
    "SelectionChanges",
    "SelectionSession",
    "SessionState",
    "StatisticsEngine",
    "ValidationEngine",
    "ValidationReport",
]
