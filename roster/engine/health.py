"""
Health Check - Installation integrity for the global install and a project.
"""

from __future__ import annotations

import json
import logging
import os

from roster.catalog.catalog import Catalog
from roster.core.errors import CatalogLoadError
from roster.core.models import Issue, Severity
from roster.engine.validation import ValidationReport
from roster.install.record import compare_versions, read_version, resolve_catalog_root
from roster.install.settings import ProjectLayout, Settings
from roster.install.snapshot import SnapshotManager

logger = logging.getLogger(__name__)

# More snapshots than this and the user is nudged to clean up
MAX_SNAPSHOTS = 5


class HealthCheck:
    """
    Diagnose an installation. Reports use the validation exit codes.

    Usage:
        report = HealthCheck(get_settings(), settings.project(".")).run()
    """

    def __init__(self, settings: Settings, layout: ProjectLayout):
        self.settings = settings
        self.layout = layout
        self.report = ValidationReport()

    def _add(self, severity: Severity, check: str, message: str):
        self.report.issues.append(Issue(severity=severity, check=check, message=message))

    def run(self) -> ValidationReport:
        self.report = ValidationReport()

        if not self._check_project_dir():
            return self.report

        self._check_permissions()
        self._check_version()
        self._check_catalog()
        self._check_rulebook()
        self._check_settings_file()
        self._check_snapshots()
        self._check_global_install()

        logger.info(f"Health check {self.report.result.value}")
        return self.report

    # ==================== Checks ====================

    def _check_project_dir(self) -> bool:
        if self.layout.exists:
            self._add(Severity.PASS, "project", f"{self.layout.config_dir} exists")
            return True
        self._add(
            Severity.FAIL, "project",
            f"No {self.settings.project_dir_name} directory in {self.layout.root}; run 'roster init'",
        )
        return False

    def _check_permissions(self):
        config_dir = self.layout.config_dir
        if os.access(config_dir, os.R_OK | os.X_OK):
            self._add(Severity.PASS, "permissions", f"{config_dir} is accessible")
        else:
            self._add(Severity.FAIL, "permissions", f"Incorrect permissions on {config_dir}")

    def _check_version(self):
        version = read_version(self.layout.version_file)
        if version is None:
            self._add(Severity.WARN, "version", "No version file (pre-versioning install); run 'roster migrate'")
            return
        self._add(Severity.PASS, "version", f"Installed version: {version}")

        global_version = read_version(self.settings.version_file)
        if global_version and compare_versions(version, global_version) < 0:
            self._add(
                Severity.WARN, "version",
                f"Project is on {version}, global install is {global_version}; run 'roster update'",
            )

    def _check_catalog(self):
        root = resolve_catalog_root(self.settings, self.layout)
        try:
            catalog = Catalog.load(root)
        except CatalogLoadError as e:
            self._add(Severity.FAIL, "catalog", str(e))
            return
        self._add(Severity.PASS, "catalog", f"Catalog at {root}: {len(catalog)} capabilities")

    def _check_rulebook(self):
        rulebook = self.layout.rulebook
        if not rulebook.is_file():
            self._add(Severity.WARN, "rulebook", f"No {rulebook.name} found; run 'roster init'")
            return
        self._add(Severity.PASS, "rulebook", f"{rulebook.name} exists")

        if os.access(rulebook, os.W_OK):
            self._add(Severity.PASS, "rulebook", f"{rulebook.name} is writable")
        else:
            self._add(Severity.WARN, "rulebook", f"{rulebook.name} is read-only")

    def _check_settings_file(self):
        settings_file = self.layout.settings_file
        if not settings_file.is_file():
            self._add(Severity.INFO, "settings", "No custom settings (using defaults)")
            return
        try:
            json.loads(settings_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._add(Severity.WARN, "settings", f"Invalid {settings_file.name}: {e}")
            return
        self._add(Severity.PASS, "settings", f"{settings_file.name} is valid JSON")

    def _check_snapshots(self):
        count = len(SnapshotManager(self.layout.config_dir).list())
        if count > MAX_SNAPSHOTS:
            self._add(
                Severity.WARN, "snapshots",
                f"Found {count} backup snapshots (consider cleaning old backups)",
            )
        else:
            self._add(Severity.PASS, "snapshots", f"Found {count} backup snapshots")

    def _check_global_install(self):
        if self.settings.is_installed:
            self._add(Severity.PASS, "global", f"Global install at {self.settings.home}")
        else:
            self._add(
                Severity.WARN, "global",
                f"No global install at {self.settings.home} (project-specific setup)",
            )
