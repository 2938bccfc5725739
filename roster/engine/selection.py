"""
Selection Session - Discrete activation commands with a single commit.

A session loads the active set once, applies any number of in-memory
commands, and writes the document exactly once on commit(). Nothing
touches disk before that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from roster.catalog.catalog import Catalog
from roster.core.errors import ConfirmationRequiredError, SessionClosedError, UnknownCapabilityWarning
from roster.core.models import ActivationState, Category, normalize_id
from roster.document.parser import ConfigDocument
from roster.document.writer import read_document, write_document
from roster.install.snapshot import SnapshotManager

logger = logging.getLogger(__name__)

CategoryLike = Union[Category, str]


class SessionState(str, Enum):
    """Lifecycle of a selection session."""
    OPEN = "open"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass
class SelectionChanges:
    """Difference between the loaded and the pending active set."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.added and not self.removed


class SelectionSession:
    """
    Toggle/activate/deactivate capabilities, then commit once.

    Usage:
        session = SelectionSession.open(catalog, Path(".claude/RULEBOOK.md"))
        session.toggle("react-specialist")
        session.activate_category(Category.TESTING)
        session.commit()
    """

    def __init__(
        self,
        catalog: Catalog,
        document: ConfigDocument,
        path: Optional[Path] = None,
        snapshots: Optional[SnapshotManager] = None,
    ):
        """
        Initialize a session over an already parsed document.

        Args:
            catalog: Catalog used to resolve categories and flag unknown ids
            document: Parsed configuration document
            path: Where commit() writes the document (None: in-memory only)
            snapshots: Snapshot manager used before destructive commits
        """
        self.catalog = catalog
        self.document = document
        self.path = Path(path) if path else None
        self.snapshots = snapshots

        self.initial = ActivationState.of(document.active_ids())
        self._active = self.initial
        self._state = SessionState.OPEN
        self._destructive = False

        self.warnings: List[UnknownCapabilityWarning] = []
        self.snapshot = None

    @classmethod
    def open(
        cls,
        catalog: Catalog,
        path: Path,
        snapshots: Optional[SnapshotManager] = None,
    ) -> "SelectionSession":
        """Load the document at `path` and start a session on it."""
        return cls(catalog, read_document(path), path=path, snapshots=snapshots)

    # ==================== State ====================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active(self) -> ActivationState:
        return self._active

    @property
    def destructive(self) -> bool:
        """True once an operation in this session dropped selections."""
        return self._destructive

    def _require_open(self):
        if self._state is not SessionState.OPEN:
            raise SessionClosedError(f"Session already {self._state.value}")

    def _check_known(self, capability_id: str, operation: str):
        if capability_id not in self.catalog:
            warning = UnknownCapabilityWarning(capability_id, operation)
            self.warnings.append(warning)
            logger.warning(str(warning))

    def _category(self, category: CategoryLike) -> Category:
        return category if isinstance(category, Category) else Category.parse(category)

    # ==================== Commands ====================

    def is_active(self, capability_id: str) -> bool:
        return normalize_id(capability_id) in self._active

    def toggle(self, capability_id: str) -> bool:
        """
        Flip membership of one id.

        Unknown ids are toggled too; a warning is recorded so stale
        references survive catalog changes.

        Returns:
            True if the id is now active
        """
        self._require_open()
        capability_id = normalize_id(capability_id)
        self._check_known(capability_id, "toggle")
        self._active = self._active.toggle(capability_id)
        return capability_id in self._active

    def activate(self, *capability_ids: str):
        self._require_open()
        ids = [normalize_id(c) for c in capability_ids]
        for capability_id in ids:
            self._check_known(capability_id, "activate")
        self._active = self._active.add(*ids)

    def deactivate(self, *capability_ids: str):
        self._require_open()
        self._active = self._active.remove(*(normalize_id(c) for c in capability_ids))

    def activate_category(self, category: CategoryLike):
        self._require_open()
        self._active = self._active.union(self.catalog.ids_in(self._category(category)))

    def deactivate_category(self, category: CategoryLike):
        self._require_open()
        category = self._category(category)
        if category.is_baseline:
            self._destructive = True
        self._active = self._active.difference(self.catalog.ids_in(category))

    def activate_all(self):
        self._require_open()
        self._active = self._active.union(self.catalog.all_ids())

    def deactivate_all(self):
        """Deactivate every non-baseline catalog capability; unknown ids stay."""
        self._require_open()
        removable = self.catalog.all_ids() - self.catalog.baseline_ids()
        if self._active.ids & removable:
            self._destructive = True
        self._active = self._active.difference(removable)

    def preview_reset(self) -> List[str]:
        """Ids reset_to_baseline() would drop."""
        return sorted(self._active.ids - self.catalog.baseline_ids())

    def reset_to_baseline(self, confirm: bool = False):
        """
        Replace the active set with exactly the baseline ids.

        Discards every other selection, unknown ids included.

        Raises:
            ConfirmationRequiredError: confirm is False and selections
                would be dropped
        """
        self._require_open()
        dropped = self.preview_reset()
        if dropped and not confirm:
            raise ConfirmationRequiredError("reset to baseline", dropped)
        if dropped:
            self._destructive = True
        self._active = ActivationState.of(self.catalog.baseline_ids())

    def changes(self) -> SelectionChanges:
        return SelectionChanges(
            added=sorted(self._active.ids - self.initial.ids),
            removed=sorted(self.initial.ids - self._active.ids),
        )

    # ==================== Lifecycle ====================

    def commit(self) -> ActivationState:
        """
        Write the pending active set to the document in one atomic rewrite.

        A snapshot is taken first when a destructive command ran and a
        snapshot manager was provided.

        Returns:
            The committed active set
        """
        self._require_open()
        changes = self.changes()

        if changes.empty and self.document.active_section() is not None:
            logger.info("No selection changes to commit")
            self._state = SessionState.COMMITTED
            return self._active

        if self._destructive and changes.removed and self.snapshots is not None:
            self.snapshot = self.snapshots.create(reason="selection")

        document = self.document.with_active_ids(self._active.ids)
        if self.path is not None:
            write_document(self.path, document)

        self.document = document
        self._state = SessionState.COMMITTED
        logger.info(
            f"Committed selection: +{len(changes.added)} -{len(changes.removed)} "
            f"({len(self._active)} active)"
        )
        return self._active

    def cancel(self):
        """Discard pending changes."""
        self._require_open()
        self._active = self.initial
        self._state = SessionState.CANCELLED
