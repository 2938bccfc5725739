"""
Roster Settings - Environment-driven paths for installs and projects.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ProjectLayout:
    """Paths inside one project's configuration directory."""
    root: Path
    config_dir: Path
    rulebook: Path
    version_file: Path
    catalog_link: Path
    legacy_catalog: Path
    settings_file: Path

    @property
    def exists(self) -> bool:
        return self.config_dir.is_dir()


class Settings:
    """Application settings."""

    VERSION_FILE_NAME = ".toolkit-version"
    CATALOG_DIR_NAME = "agents"
    LEGACY_CATALOG_DIR_NAME = "agents-global"
    SETTINGS_FILE_NAME = "settings.local.json"

    def __init__(
        self,
        home: Optional[PathLike] = None,
        project_dir_name: Optional[str] = None,
        rulebook_name: Optional[str] = None,
        log_level: Optional[str] = None,
    ):
        self.home = Path(
            home or os.environ.get("ROSTER_HOME", "~/.claude-global")
        ).expanduser()
        self.project_dir_name = project_dir_name or os.environ.get("ROSTER_PROJECT_DIR", ".claude")
        self.rulebook_name = rulebook_name or os.environ.get("ROSTER_RULEBOOK", "RULEBOOK.md")
        self.log_level = (log_level or os.environ.get("ROSTER_LOG_LEVEL", "WARNING")).upper()

    # Global installation
    @property
    def catalog_root(self) -> Path:
        return self.home / self.CATALOG_DIR_NAME

    @property
    def version_file(self) -> Path:
        return self.home / self.VERSION_FILE_NAME

    @property
    def is_installed(self) -> bool:
        return self.catalog_root.exists()

    # Projects
    def project(self, project_root: PathLike = ".") -> ProjectLayout:
        root = Path(project_root).resolve()
        config_dir = root / self.project_dir_name
        return ProjectLayout(
            root=root,
            config_dir=config_dir,
            rulebook=config_dir / self.rulebook_name,
            version_file=config_dir / self.VERSION_FILE_NAME,
            catalog_link=config_dir / self.CATALOG_DIR_NAME,
            legacy_catalog=config_dir / self.LEGACY_CATALOG_DIR_NAME,
            settings_file=config_dir / self.SETTINGS_FILE_NAME,
        )

    def __repr__(self) -> str:
        return f"Settings(home='{self.home}', project_dir='{self.project_dir_name}')"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
