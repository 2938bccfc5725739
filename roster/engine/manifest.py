"""
Manifest Inspector - Detect technology tags from project files.

Default tag source for the detection engine. Reads dependency manifests
and well-known config files, plus the RULEBOOK's Tech Stack section.
Unreadable or malformed manifests are logged and skipped; detection
never fails an operation.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from pathlib import Path
from typing import Iterable, List, Optional

from roster.catalog.catalog import normalize_tag
from roster.document.parser import ConfigDocument

logger = logging.getLogger(__name__)

# File or glob -> tag it implies
MARKER_FILES = [
    ("tsconfig.json", "typescript"),
    ("next.config.*", "nextjs"),
    ("nuxt.config.*", "nuxt"),
    ("svelte.config.*", "svelte"),
    ("astro.config.*", "astro"),
    ("tailwind.config.*", "tailwind"),
    ("vite.config.*", "vite"),
    ("vitest.config.*", "vitest"),
    ("jest.config.*", "jest"),
    ("playwright.config.*", "playwright"),
    ("cypress.config.*", "cypress"),
    ("Dockerfile", "docker"),
    ("docker-compose.y*ml", "docker"),
    ("compose.y*ml", "docker"),
    ("vercel.json", "vercel"),
    ("wrangler.toml", "cloudflare"),
    ("nginx.conf", "nginx"),
    ("*.tf", "terraform"),
    ("Chart.yaml", "helm"),
    ("go.mod", "go"),
    ("Cargo.toml", "rust"),
    ("pom.xml", "java"),
    ("build.gradle*", "java"),
    ("*.csproj", "csharp"),
    ("composer.json", "php"),
    ("prisma/schema.prisma", "prisma"),
]

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._\-]*)")
_WORD = re.compile(r"[A-Za-z0-9][A-Za-z0-9.+#\-]*")


class ManifestInspector:
    """
    Collect technology tags for one project.

    Usage:
        inspector = ManifestInspector(Path("."))
        tags = inspector.detect_tags()
    """

    def __init__(
        self,
        project_root: Path,
        document: Optional[ConfigDocument] = None,
        known_tags: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            project_root: Project directory to inspect
            document: Parsed RULEBOOK, scanned for its Tech Stack section
            known_tags: Tags worth finding in free text (normalized form)
        """
        self.project_root = Path(project_root)
        self.document = document
        self.known_tags = {normalize_tag(t) for t in known_tags or []}

    def detect_tags(self) -> List[str]:
        """All detected tags, in discovery order, without duplicates."""
        tags: List[str] = []
        for source in (
            self._package_json_tags,
            self._python_tags,
            self._marker_tags,
            self._workflow_tags,
            self._tech_stack_tags,
        ):
            for tag in source():
                if tag not in tags:
                    tags.append(tag)
        logger.info(f"Detected {len(tags)} technology tags in {self.project_root}")
        return tags

    # ==================== Sources ====================

    def _package_json_tags(self) -> List[str]:
        package_json = self.project_root / "package.json"
        if not package_json.is_file():
            return []

        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable {package_json}: {e}")
            return []

        tags = ["javascript"]
        for key in ("dependencies", "devDependencies", "peerDependencies"):
            deps = data.get(key) or {}
            if not isinstance(deps, dict):
                continue
            for name in deps:
                tags.append(_package_tag(name))
        return tags

    def _python_tags(self) -> List[str]:
        names: List[str] = []
        requirement_files = sorted(self.project_root.glob("requirements*.txt"))
        for requirements in requirement_files:
            try:
                lines = requirements.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                logger.warning(f"Skipping unreadable {requirements}: {e}")
                continue
            for line in lines:
                if line.strip().startswith(("#", "-")):
                    continue
                match = _REQUIREMENT_NAME.match(line)
                if match:
                    names.append(match.group(1).lower())

        pyproject = self.project_root / "pyproject.toml"
        if pyproject.is_file():
            try:
                data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.warning(f"Skipping unreadable {pyproject}: {e}")
                data = {}
            for dep in data.get("project", {}).get("dependencies", []) or []:
                match = _REQUIREMENT_NAME.match(dep)
                if match:
                    names.append(match.group(1).lower())

        if not requirement_files and not pyproject.is_file():
            return []
        return ["python"] + names

    def _marker_tags(self) -> List[str]:
        tags = []
        for pattern, tag in MARKER_FILES:
            if any(self.project_root.glob(pattern)):
                tags.append(tag)
        return tags

    def _workflow_tags(self) -> List[str]:
        workflows = self.project_root / ".github" / "workflows"
        if workflows.is_dir() and any(workflows.glob("*.y*ml")):
            return ["github-actions"]
        return []

    def _tech_stack_tags(self) -> List[str]:
        """Known tags mentioned in the RULEBOOK's Tech Stack section."""
        if self.document is None or not self.known_tags:
            return []

        text = self.document.section_text("Tech Stack")
        words = _WORD.findall(text)
        tags = []
        for i, word in enumerate(words):
            candidates = [word]
            if i + 1 < len(words):
                candidates.insert(0, f"{word} {words[i + 1]}")
            for candidate in candidates:
                key = normalize_tag(candidate)
                if key in self.known_tags:
                    tags.append(key)
                    break
        return tags


def _package_tag(name: str) -> str:
    """'@nestjs/core' -> 'nestjs', 'react-dom' -> 'react-dom'."""
    if name.startswith("@") and "/" in name:
        return name[1:].split("/", 1)[0]
    return name
