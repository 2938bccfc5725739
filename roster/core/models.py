"""
Roster Core Models - Activation registry data structures.

A capability ("agent") is a named, categorized unit a project can enable.
The models here describe:
- WHAT a capability is (CapabilityDescriptor, Category)
- WHICH capabilities a project has enabled (ActivationState)
- HOW a project's configuration is judged (Issue, Severity)
- WHAT is proposed to the user (Recommendation, RecommendationLevel)
- WHERE an installation lives (InstallationRecord, BackupSnapshot)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from roster.catalog.catalog import Catalog


SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def normalize_id(value: str) -> str:
    """Normalize a capability id to its slug form."""
    return value.strip().lower().replace("_", "-").replace(" ", "-")


def is_slug(value: str) -> bool:
    return bool(SLUG_PATTERN.match(value))


# ============================================================
# Enums
# ============================================================

class Category(str, Enum):
    """Capability category. CORE is the baseline category."""
    CORE = "core"
    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"
    LANGUAGE = "language"
    DATABASE = "database"
    INFRASTRUCTURE = "infrastructure"
    TESTING = "testing"
    SPECIALIZED = "specialized"

    @property
    def is_baseline(self) -> bool:
        return self is Category.CORE

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Parse a category name or label, case-insensitively."""
        key = value.strip().lower()
        for category in cls:
            if key in (category.value, category.name.lower(), category.label.lower()):
                return category
        raise ValueError(f"Unknown category: {value}")


_CATEGORY_LABELS: Dict[Category, str] = {
    Category.CORE: "Core Agents",
    Category.FRONTEND: "Frontend Frameworks",
    Category.BACKEND: "Backend Frameworks",
    Category.FULLSTACK: "Full-Stack Frameworks",
    Category.LANGUAGE: "Languages",
    Category.DATABASE: "Databases & ORMs",
    Category.INFRASTRUCTURE: "Infrastructure & DevOps",
    Category.TESTING: "Testing Frameworks",
    Category.SPECIALIZED: "Specialized Domains",
}

BASELINE_CATEGORY = Category.CORE


class Severity(str, Enum):
    """Outcome of a single check."""
    PASS = "pass"
    INFO = "info"   # Reported, never affects the aggregate result
    WARN = "warn"
    FAIL = "fail"


class RecommendationLevel(str, Enum):
    """Per-category activation advice."""
    CRITICAL = "critical"
    LOW = "low"
    BALANCED = "balanced"
    GOOD = "good"
    NONE = "none"


# ============================================================
# Catalog Descriptors
# ============================================================

class CapabilityDescriptor(BaseModel):
    """
    A single capability in the catalog.

    Immutable once loaded; category membership and content come from the
    shipped catalog, never from the project.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Globally unique slug (e.g., 'react-specialist')")
    category: Category
    description: str = ""
    examples: List[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure ID is a lowercase hyphenated slug."""
        v = normalize_id(v)
        if not is_slug(v):
            raise ValueError(f"Invalid capability id: {v!r}")
        return v

    @field_validator("examples", mode="before")
    @classmethod
    def coerce_examples(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    def __repr__(self) -> str:
        return f"CapabilityDescriptor(id='{self.id}', category={self.category.value})"


# ============================================================
# Activation State
# ============================================================

@dataclass(frozen=True)
class ActivationState:
    """
    The set of capability ids active for a project.

    Every operation returns a new state. Ids unknown to the catalog are
    kept; callers decide how to surface them.
    """
    ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, ids: Iterable[str]) -> "ActivationState":
        return cls(frozenset(ids))

    def __contains__(self, capability_id: object) -> bool:
        return capability_id in self.ids

    def __iter__(self) -> Iterator[str]:
        return iter(self.sorted())

    def __len__(self) -> int:
        return len(self.ids)

    def sorted(self) -> List[str]:
        return sorted(self.ids)

    def toggle(self, capability_id: str) -> "ActivationState":
        if capability_id in self.ids:
            return ActivationState(self.ids - {capability_id})
        return ActivationState(self.ids | {capability_id})

    def add(self, *capability_ids: str) -> "ActivationState":
        return ActivationState(self.ids | set(capability_ids))

    def remove(self, *capability_ids: str) -> "ActivationState":
        return ActivationState(self.ids - set(capability_ids))

    def union(self, other: Iterable[str]) -> "ActivationState":
        return ActivationState(self.ids | frozenset(other))

    def difference(self, other: Iterable[str]) -> "ActivationState":
        return ActivationState(self.ids - frozenset(other))

    def known(self, catalog: "Catalog") -> FrozenSet[str]:
        """Active ids present in the catalog."""
        return self.ids & catalog.all_ids()

    def unknown(self, catalog: "Catalog") -> List[str]:
        """Active ids absent from the catalog, sorted."""
        return sorted(self.ids - catalog.all_ids())


# ============================================================
# Reports
# ============================================================

class Issue(BaseModel):
    """A single check outcome."""
    model_config = ConfigDict(frozen=True)

    severity: Severity
    check: str
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.check}: {self.message}"


class Recommendation(BaseModel):
    """A capability proposed for activation."""
    model_config = ConfigDict(frozen=True)

    capability_id: str
    reason: str
    tag: Optional[str] = None


class CategoryCount(NamedTuple):
    """Active vs. total capabilities within one category."""
    active: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return self.active * 100 // self.total


# ============================================================
# Installation
# ============================================================

class InstallationRecord(BaseModel):
    """Where an installation lives and which catalog version it runs."""
    version: str = "0.0.0"
    catalog_root: Path
    project_link: Optional[Path] = None


class BackupSnapshot(BaseModel):
    """An immutable full copy of a project configuration directory."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source_path: Path
    snapshot_path: Path
    reason: Optional[str] = None

    @property
    def name(self) -> str:
        return self.snapshot_path.name
