"""
Roster Install - Settings, installation records, snapshots and transfer.
"""

from roster.install.installer import init_project, install, render_rulebook, uninstall_project
from roster.install.record import compare_versions, load_record, read_version, write_version
from roster.install.settings import ProjectLayout, Settings, get_settings
from roster.install.snapshot import SnapshotManager
from roster.install.transfer import ImportMode, ImportResult, TransferScope, export_config, import_config

__all__ = [
    # Settings
    "ProjectLayout",
    "Settings",
    "get_settings",
    # Records
    "compare_versions",
    "load_record",
    "read_version",
    "write_version",
    # Snapshots
    "SnapshotManager",
    # Install
    "init_project",
    "install",
    "render_rulebook",
    "uninstall_project",
    # Transfer
    "ImportMode",
    "ImportResult",
    "TransferScope",
    "export_config",
    "import_config",
]
