"""Shared fixtures: a small catalog, settings and an initialized project."""

import pytest
import yaml
from pathlib import Path

from roster.catalog.catalog import Catalog
from roster.core.models import CapabilityDescriptor, Category
from roster.install.settings import Settings, get_settings


CORE_IDS = [
    "architecture-advisor",
    "code-reviewer",
    "dependency-manager",
    "documentation-engineer",
    "git-workflow-specialist",
    "performance-optimizer",
    "project-analyzer",
    "refactoring-specialist",
    "security-auditor",
    "test-strategist",
]

FRONTEND_IDS = [
    "angular-specialist",
    "animation-specialist",
    "css-architect",
    "nextjs-specialist",
    "react-specialist",
    "svelte-specialist",
    "tailwind-expert",
    "vue-specialist",
]

DETECTION = {
    "react": ["react-specialist"],
    "nextjs": ["nextjs-specialist", "react-specialist"],
    "next": ["nextjs-specialist", "react-specialist"],
    "vue": ["vue-specialist"],
    "tailwind": ["tailwind-expert"],
}


def make_rulebook(active, tech_stack="- Language: TypeScript\n- Framework: Next.js\n"):
    """RULEBOOK text with the given active ids, in the given order."""
    entries = "".join(f"- {capability_id}\n" for capability_id in active)
    return (
        "# RULEBOOK - demo\n"
        "\n"
        "Project rules for the demo app.\n"
        "\n"
        "## Project Overview\n"
        "\n"
        "A demo project.\n"
        "\n"
        "## Tech Stack\n"
        "\n"
        f"{tech_stack}"
        "\n"
        "## Active Capabilities\n"
        "\n"
        f"{entries}"
    )


def write_catalog(root: Path, version="1.0.0", extra=()):
    """Write a catalog.yaml manifest with the core and frontend ids."""
    root.mkdir(parents=True, exist_ok=True)
    agents = [{"id": i, "category": "core", "description": f"{i} description"} for i in CORE_IDS]
    agents += [{"id": i, "category": "frontend"} for i in FRONTEND_IDS]
    agents += [dict(entry) for entry in extra]
    data = {"version": version, "agents": agents, "detection": DETECTION}
    (root / "catalog.yaml").write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return root


@pytest.fixture
def catalog():
    """In-memory catalog: 10 core + 8 frontend capabilities."""
    descriptors = [CapabilityDescriptor(id=i, category=Category.CORE) for i in CORE_IDS]
    descriptors += [CapabilityDescriptor(id=i, category=Category.FRONTEND) for i in FRONTEND_IDS]
    return Catalog(descriptors, detection=DETECTION, version="1.0.0")


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings rooted in a temporary home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("ROSTER_HOME", str(home))
    monkeypatch.delenv("ROSTER_PROJECT_DIR", raising=False)
    monkeypatch.delenv("ROSTER_RULEBOOK", raising=False)
    get_settings.cache_clear()
    yield Settings(home=home)
    get_settings.cache_clear()


@pytest.fixture
def installed(settings):
    """A global install of the small catalog, version 1.0.0."""
    write_catalog(settings.catalog_root)
    settings.version_file.write_text("1.0.0\n", encoding="utf-8")
    return settings


@pytest.fixture
def project(tmp_path, installed):
    """A project linked to the global catalog with baseline + react active."""
    root = tmp_path / "app"
    layout = installed.project(root)
    layout.config_dir.mkdir(parents=True)
    layout.catalog_link.symlink_to(installed.catalog_root, target_is_directory=True)
    layout.version_file.write_text("1.0.0\n", encoding="utf-8")
    layout.rulebook.write_text(make_rulebook(CORE_IDS + ["react-specialist"]), encoding="utf-8")
    return layout
