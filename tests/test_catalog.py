"""Tests for Catalog loading and lookup."""

import pytest
from pathlib import Path

from roster.catalog.catalog import Catalog, normalize_tag
from roster.core.errors import CapabilityNotFoundError, CatalogLoadError
from roster.core.models import CapabilityDescriptor, Category

from conftest import CORE_IDS, FRONTEND_IDS, write_catalog


class TestCatalogLookup:
    """Tests for in-memory catalog operations."""

    def test_lookup_known_id(self, catalog):
        """Test lookup returns the descriptor."""
        descriptor = catalog.lookup("react-specialist")
        assert descriptor.category == Category.FRONTEND

    def test_lookup_unknown_id_raises(self, catalog):
        """Test lookup of a missing id raises CapabilityNotFoundError."""
        with pytest.raises(CapabilityNotFoundError) as exc_info:
            catalog.lookup("cobol-wizard")
        assert exc_info.value.capability_id == "cobol-wizard"

    def test_not_found_is_a_key_error(self, catalog):
        """Test CapabilityNotFoundError can be caught as KeyError."""
        with pytest.raises(KeyError):
            catalog.lookup("cobol-wizard")

    def test_get_returns_none(self, catalog):
        """Test get() does not raise."""
        assert catalog.get("cobol-wizard") is None

    def test_baseline_ids(self, catalog):
        """Test baseline is exactly the core category."""
        assert catalog.baseline_ids() == set(CORE_IDS)

    def test_by_category_keeps_order(self, catalog):
        """Test by_category returns descriptors in catalog order."""
        ids = [d.id for d in catalog.by_category(Category.FRONTEND)]
        assert ids == FRONTEND_IDS

    def test_categories_in_enum_order(self, catalog):
        """Test only populated categories are listed."""
        assert catalog.categories() == [Category.CORE, Category.FRONTEND]

    def test_len_and_contains(self, catalog):
        """Test container protocol."""
        assert len(catalog) == 18
        assert "code-reviewer" in catalog
        assert "cobol-wizard" not in catalog

    def test_summary(self, catalog):
        """Test summary counts."""
        summary = catalog.summary()
        assert summary["total"] == 18
        assert summary["by_category"] == {"core": 10, "frontend": 8}


class TestCatalogConstruction:
    """Tests for structural checks."""

    def test_duplicate_id_across_categories(self):
        """Test a duplicated id is rejected."""
        descriptors = [
            CapabilityDescriptor(id="code-reviewer", category=Category.CORE),
            CapabilityDescriptor(id="code-reviewer", category=Category.TESTING),
        ]
        with pytest.raises(CatalogLoadError, match="Duplicate"):
            Catalog(descriptors)

    def test_empty_baseline(self):
        """Test a catalog without core capabilities is rejected."""
        with pytest.raises(CatalogLoadError, match="Baseline"):
            Catalog([CapabilityDescriptor(id="react-specialist", category=Category.FRONTEND)])

    def test_detection_with_unknown_id(self):
        """Test the detection table may only reference known ids."""
        descriptors = [CapabilityDescriptor(id="code-reviewer", category=Category.CORE)]
        with pytest.raises(CatalogLoadError, match="unknown capability"):
            Catalog(descriptors, detection={"react": ["react-specialist"]})

    def test_detection_tags_normalized(self, catalog):
        """Test detection keys are stored normalized."""
        assert "nextjs" in catalog.detection_table()


class TestCatalogLoad:
    """Tests for loading from disk."""

    def test_load_manifest(self, tmp_path):
        """Test loading a catalog.yaml manifest."""
        root = write_catalog(tmp_path / "agents", version="2.1.0")
        catalog = Catalog.load(root)

        assert len(catalog) == 18
        assert catalog.version == "2.1.0"
        assert catalog.root == root

    def test_load_missing_location(self, tmp_path):
        """Test a missing location raises."""
        with pytest.raises(CatalogLoadError, match="not found"):
            Catalog.load(tmp_path / "nope")

    def test_load_malformed_yaml(self, tmp_path):
        """Test malformed YAML raises CatalogLoadError."""
        (tmp_path / "catalog.yaml").write_text("agents: [\n  - id: x", encoding="utf-8")
        with pytest.raises(CatalogLoadError, match="Malformed"):
            Catalog.load(tmp_path)

    def test_load_descriptor_without_category(self, tmp_path):
        """Test a descriptor with no category is fatal."""
        write_catalog(tmp_path, extra=[{"id": "orphan"}])
        with pytest.raises(CatalogLoadError, match="no category"):
            Catalog.load(tmp_path)

    def test_load_unknown_category(self, tmp_path):
        """Test an unknown category name is fatal."""
        write_catalog(tmp_path, extra=[{"id": "orphan", "category": "mainframe"}])
        with pytest.raises(CatalogLoadError, match="orphan"):
            Catalog.load(tmp_path)

    def test_load_markdown_tree(self, tmp_path):
        """Test loading <category>/<id>.md files with frontmatter."""
        core = tmp_path / "core"
        core.mkdir()
        (core / "code-reviewer.md").write_text(
            "---\nname: code-reviewer\ndescription: Reviews code\n---\n\n# Code Reviewer\n",
            encoding="utf-8",
        )
        pool = tmp_path / "pool" / "frontend"
        pool.mkdir(parents=True)
        (pool / "react-specialist.md").write_text(
            "---\nname: react-specialist\n---\n\n# React hooks and components\n",
            encoding="utf-8",
        )
        (tmp_path / "README.md").write_text("# Agents\n", encoding="utf-8")
        (tmp_path / "detection.yaml").write_text(
            "version: 1.2.0\nreact: [react-specialist]\n", encoding="utf-8"
        )

        catalog = Catalog.load(tmp_path)

        assert catalog.all_ids() == {"code-reviewer", "react-specialist"}
        assert catalog.lookup("react-specialist").category == Category.FRONTEND
        assert catalog.lookup("react-specialist").description == "React hooks and components"
        assert catalog.version == "1.2.0"
        assert catalog.detection_table() == {"react": ["react-specialist"]}

    def test_load_undecodable_descriptor(self, tmp_path):
        """Test a descriptor that is not UTF-8 raises CatalogLoadError."""
        core = tmp_path / "core"
        core.mkdir()
        (core / "code-reviewer.md").write_bytes(b"\xff\xfe---\nname: code-reviewer\n---\n")

        with pytest.raises(CatalogLoadError, match="Cannot read"):
            Catalog.load(tmp_path)

    def test_load_undecodable_manifest(self, tmp_path):
        """Test a manifest that is not UTF-8 raises CatalogLoadError."""
        (tmp_path / "catalog.yaml").write_bytes(b"\xff\xfeagents: []\n")

        with pytest.raises(CatalogLoadError, match="Cannot read"):
            Catalog.load(tmp_path)

    def test_bundled_catalog(self):
        """Test the shipped catalog loads and has a full baseline."""
        catalog = Catalog.bundled()

        assert len(catalog) == 72
        assert len(catalog.baseline_ids()) == 10
        assert len(catalog.categories()) == 9


class TestNormalizeTag:
    """Tests for technology tag normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("Next.js", "nextjs"),
        ("nextjs", "nextjs"),
        ("socket.io", "socketio"),
        ("Github Actions", "githubactions"),
        ("drizzle-orm", "drizzleorm"),
    ])
    def test_normalize(self, raw, expected):
        """Test punctuation and case are stripped."""
        assert normalize_tag(raw) == expected
