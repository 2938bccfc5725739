"""Roster Catalog - Capability descriptor registry."""

from roster.catalog.catalog import BUNDLED_CATALOG_DIR, Catalog, normalize_tag

__all__ = [
    "BUNDLED_CATALOG_DIR",
    "Catalog",
    "normalize_tag",
]
