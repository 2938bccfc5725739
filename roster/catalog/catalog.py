"""
Roster Catalog - The fixed registry of capability descriptors.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

import yaml
from pydantic import ValidationError

from roster.core.errors import CapabilityNotFoundError, CatalogLoadError
from roster.core.models import (
    BASELINE_CATEGORY,
    CapabilityDescriptor,
    Category,
    normalize_id,
)

logger = logging.getLogger(__name__)

BUNDLED_CATALOG_DIR = Path(__file__).parent / "data"

_TAG_STRIP = re.compile(r"[\s._\-/]+")


def normalize_tag(tag: str) -> str:
    """Canonical form of a technology tag ('Next.js' -> 'nextjs')."""
    return _TAG_STRIP.sub("", tag.strip().lower())


class Catalog:
    """
    Read-only registry of capability descriptors grouped by category.

    Responsibilities:
    - Load descriptors from a catalog root (manifest or Markdown files)
    - Look up descriptors by id and by category
    - Expose the baseline set and the detection table

    A catalog is either fully loaded or not at all; any structural
    problem raises CatalogLoadError.

    Usage:
        catalog = Catalog.load(Path("~/.claude-global/agents").expanduser())

        descriptor = catalog.lookup("react-specialist")
        frontend = catalog.by_category(Category.FRONTEND)
        baseline = catalog.baseline_ids()
    """

    MANIFEST_NAMES = ("catalog.yaml", "catalog.yml")
    DETECTION_NAMES = ("detection.yaml", "detection.yml")

    def __init__(
        self,
        descriptors: Iterable[CapabilityDescriptor],
        detection: Optional[Dict[str, List[str]]] = None,
        version: Optional[str] = None,
        root: Optional[Path] = None,
    ):
        """
        Build a catalog from descriptors.

        Args:
            descriptors: Capability descriptors, in display order
            detection: Technology tag -> capability ids table
            version: Catalog version string, if the source declares one
            root: Location the catalog was loaded from
        """
        self.version = version
        self.root = Path(root) if root else None

        self._descriptors: Dict[str, CapabilityDescriptor] = {}
        self._by_category: Dict[Category, List[CapabilityDescriptor]] = {}

        for descriptor in descriptors:
            existing = self._descriptors.get(descriptor.id)
            if existing is not None:
                raise CatalogLoadError(
                    f"Duplicate capability id '{descriptor.id}' in categories "
                    f"'{existing.category.value}' and '{descriptor.category.value}'",
                    self.root,
                )
            self._descriptors[descriptor.id] = descriptor
            self._by_category.setdefault(descriptor.category, []).append(descriptor)

        if not self._by_category.get(BASELINE_CATEGORY):
            raise CatalogLoadError(
                f"Baseline category '{BASELINE_CATEGORY.value}' is missing or empty",
                self.root,
            )

        self._detection = self._build_detection(detection or {})

    def _build_detection(self, table: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Normalize the detection table and check it references known ids."""
        result: Dict[str, List[str]] = {}
        for tag, ids in table.items():
            if isinstance(ids, str):
                ids = [ids]
            if not isinstance(ids, list):
                raise CatalogLoadError(f"Detection entry '{tag}' must be a list", self.root)

            key = normalize_tag(str(tag))
            targets = result.setdefault(key, [])
            for capability_id in ids:
                capability_id = normalize_id(str(capability_id))
                if capability_id not in self._descriptors:
                    raise CatalogLoadError(
                        f"Detection entry '{tag}' references unknown capability "
                        f"'{capability_id}'",
                        self.root,
                    )
                if capability_id not in targets:
                    targets.append(capability_id)
        return result

    # ==================== Loading ====================

    @classmethod
    def load(cls, root: Path) -> "Catalog":
        """
        Load a catalog from its storage location.

        Args:
            root: Directory holding catalog.yaml, or a tree of Markdown
                descriptors (<category>/<id>.md), or a manifest file path

        Returns:
            Fully loaded Catalog

        Raises:
            CatalogLoadError: Location missing or malformed
        """
        root = Path(root)
        if not root.exists():
            raise CatalogLoadError("Catalog location not found", root)

        if root.is_file():
            catalog = cls._load_manifest(root)
        else:
            manifest = next(
                (root / name for name in cls.MANIFEST_NAMES if (root / name).is_file()),
                None,
            )
            if manifest is not None:
                catalog = cls._load_manifest(manifest)
            else:
                catalog = cls._load_markdown_tree(root)

        logger.info(
            f"Loaded catalog: {len(catalog)} capabilities in "
            f"{len(catalog.categories())} categories from {root}"
        )
        return catalog

    @classmethod
    def bundled(cls) -> "Catalog":
        """Load the catalog shipped with the package."""
        return cls.load(BUNDLED_CATALOG_DIR)

    @classmethod
    def _load_manifest(cls, manifest: Path) -> "Catalog":
        """Load catalog.yaml: version, agents list and detection table."""
        data = _read_yaml(manifest)
        if not isinstance(data, dict):
            raise CatalogLoadError("Catalog manifest must be a mapping", manifest)

        entries = data.get("agents")
        if not isinstance(entries, list) or not entries:
            raise CatalogLoadError("Catalog manifest has no 'agents' list", manifest)

        descriptors = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise CatalogLoadError(f"Agent entry #{index} is not a mapping", manifest)
            descriptors.append(_build_descriptor(entry, manifest, f"entry #{index}"))

        detection = data.get("detection") or {}
        if not isinstance(detection, dict):
            raise CatalogLoadError("'detection' must be a mapping", manifest)

        version = data.get("version")
        return cls(
            descriptors,
            detection=detection,
            version=str(version) if version is not None else None,
            root=manifest.parent,
        )

    @classmethod
    def _load_markdown_tree(cls, root: Path) -> "Catalog":
        """Load <category>/<id>.md descriptors with YAML frontmatter."""
        descriptors = []
        for md_file in sorted(root.rglob("*.md")):
            content = _read_text(md_file)
            parsed = _parse_frontmatter(content, md_file)
            if parsed is None:
                logger.debug(f"Skipping documentation file: {md_file}")
                continue

            frontmatter, body = parsed
            entry = dict(frontmatter)
            entry.setdefault("id", frontmatter.get("name", md_file.stem))
            if "category" not in entry:
                category = _category_from_path(md_file, root)
                if category is not None:
                    entry["category"] = category.value
            if not entry.get("description") and body:
                entry["description"] = body.splitlines()[0].lstrip("# ").strip()

            descriptors.append(_build_descriptor(entry, md_file, md_file.stem))

        if not descriptors:
            raise CatalogLoadError("No capability descriptors found", root)

        detection: Dict[str, List[str]] = {}
        version = None
        for name in cls.DETECTION_NAMES:
            detection_file = root / name
            if detection_file.is_file():
                data = _read_yaml(detection_file) or {}
                if not isinstance(data, dict):
                    raise CatalogLoadError("Detection table must be a mapping", detection_file)
                version = data.pop("version", None)
                detection = data.get("detection", data)
                break

        return cls(
            descriptors,
            detection=detection,
            version=str(version) if version is not None else None,
            root=root,
        )

    # ==================== Core Operations ====================

    def lookup(self, capability_id: str) -> CapabilityDescriptor:
        """
        Get descriptor by id.

        Raises:
            CapabilityNotFoundError: Id not in catalog
        """
        descriptor = self._descriptors.get(capability_id)
        if descriptor is None:
            raise CapabilityNotFoundError(capability_id)
        return descriptor

    def get(self, capability_id: str) -> Optional[CapabilityDescriptor]:
        """Get descriptor by id, or None."""
        return self._descriptors.get(capability_id)

    def by_category(self, category: Category) -> List[CapabilityDescriptor]:
        """Descriptors of one category, in catalog order."""
        return list(self._by_category.get(category, []))

    def ids_in(self, category: Category) -> Set[str]:
        return {d.id for d in self._by_category.get(category, [])}

    def all_ids(self) -> Set[str]:
        return set(self._descriptors)

    def baseline_ids(self) -> Set[str]:
        return self.ids_in(BASELINE_CATEGORY)

    def categories(self) -> List[Category]:
        """Categories present in this catalog, in enum order."""
        return [c for c in Category if c in self._by_category]

    def detection_table(self) -> Dict[str, List[str]]:
        """Normalized technology tag -> capability ids."""
        return {tag: list(ids) for tag, ids in self._detection.items()}

    # ==================== Utility ====================

    def summary(self) -> Dict[str, Any]:
        """Get catalog summary."""
        return {
            "version": self.version,
            "total": len(self._descriptors),
            "by_category": {
                category.value: len(self._by_category[category])
                for category in self.categories()
            },
            "baseline": sorted(self.baseline_ids()),
            "detection_tags": len(self._detection),
        }

    def __contains__(self, capability_id: object) -> bool:
        return capability_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[CapabilityDescriptor]:
        return iter(self._descriptors.values())

    def __repr__(self) -> str:
        return f"Catalog(capabilities={len(self)}, version={self.version!r})"


# ============================================================
# Loader helpers
# ============================================================

def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(f"Cannot read catalog file: {e}", path) from e


def _read_yaml(path: Path) -> Any:
    text = _read_text(path)
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"Malformed YAML: {e}", path) from e


def _parse_frontmatter(content: str, path: Path) -> Optional[Tuple[Dict[str, Any], str]]:
    """Parse YAML frontmatter from a descriptor file; None if there is none."""
    match = re.match(r"^---\r?\n(.*?)\r?\n---\r?\n?(.*)", content, re.DOTALL)
    if not match:
        return None

    try:
        frontmatter = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"Malformed frontmatter: {e}", path) from e
    if not isinstance(frontmatter, dict):
        raise CatalogLoadError("Frontmatter must be a mapping", path)

    return frontmatter, match.group(2).strip()


def _category_from_path(md_file: Path, root: Path) -> Optional[Category]:
    """Use the nearest parent directory that names a category."""
    for parent in md_file.relative_to(root).parents:
        if parent == Path("."):
            break
        try:
            return Category.parse(parent.name)
        except ValueError:
            continue
    return None


def _build_descriptor(entry: Dict[str, Any], source: Path, label: str) -> CapabilityDescriptor:
    if not entry.get("category"):
        raise CatalogLoadError(f"Descriptor '{entry.get('id', label)}' has no category", source)

    try:
        category = Category.parse(str(entry["category"]))
    except ValueError as e:
        raise CatalogLoadError(f"Descriptor '{entry.get('id', label)}': {e}", source) from e

    try:
        return CapabilityDescriptor(
            id=str(entry.get("id", "")),
            category=category,
            description=str(entry.get("description") or "").strip(),
            examples=entry.get("examples"),
        )
    except ValidationError as e:
        raise CatalogLoadError(f"Invalid descriptor '{entry.get('id', label)}': {e}", source) from e
