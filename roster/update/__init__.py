"""Roster Update - Catalog refresh and migration with rollback."""

from roster.update.manager import UpdateManager, UpdateResult, UpdateState

__all__ = [
    "UpdateManager",
    "UpdateResult",
    "UpdateState",
]
