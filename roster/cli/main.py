"""CLI main entry point"""

import functools
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from roster import __version__
from roster.catalog.catalog import Catalog
from roster.core.errors import ConfirmationRequiredError, RosterError
from roster.core.models import ActivationState, Category, Severity
from roster.document.writer import read_document
from roster.engine.detection import DetectionEngine
from roster.engine.health import HealthCheck
from roster.engine.manifest import ManifestInspector
from roster.engine.selection import SelectionSession
from roster.engine.statistics import StatisticsEngine
from roster.engine.validation import ValidationEngine, ValidationReport
from roster.install.installer import init_project, install, uninstall_project
from roster.install.record import resolve_catalog_root
from roster.install.settings import ProjectLayout, Settings, get_settings
from roster.install.snapshot import SnapshotManager
from roster.install.transfer import ImportMode, TransferScope, export_config, import_config
from roster.update.manager import UpdateManager

console = Console()
logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    Severity.PASS: "[green]✓[/green]",
    Severity.INFO: "[blue]ℹ[/blue]",
    Severity.WARN: "[yellow]⚠[/yellow]",
    Severity.FAIL: "[red]✗[/red]",
}

CATEGORY_CHOICE = click.Choice([c.value for c in Category], case_sensitive=False)


class RosterCliError(click.ClickException):
    """Fatal error; exits with the same code as a failed validation."""
    exit_code = 2


@dataclass
class CliContext:
    settings: Settings
    layout: ProjectLayout

    def catalog(self) -> Catalog:
        root = resolve_catalog_root(self.settings, self.layout)
        if root.exists():
            return Catalog.load(root)
        logger.info(f"No catalog at {root}; using the bundled catalog")
        return Catalog.bundled()

    def snapshots(self) -> SnapshotManager:
        return SnapshotManager(self.layout.config_dir)

    def session(self) -> SelectionSession:
        return SelectionSession.open(self.catalog(), self.layout.rulebook, snapshots=self.snapshots())


def handle_errors(func):
    """Turn RosterError into a clean CLI error."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except RosterError as e:
            raise RosterCliError(str(e)) from e
    return wrapper


def _print_report(report: ValidationReport, as_json: bool):
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return
    for issue in report.issues:
        console.print(f"{SEVERITY_STYLES[issue.severity]} {issue.message}")
    counts = report.counts
    console.print(
        f"\n[bold]Result:[/bold] {report.result.value} "
        f"({counts[Severity.PASS]} passed, {counts[Severity.WARN]} warnings, "
        f"{counts[Severity.FAIL]} failed)"
    )


def _commit(session: SelectionSession):
    changes = session.changes()
    session.commit()
    for warning in session.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    if session.snapshot is not None:
        console.print(f"[cyan]Snapshot:[/cyan] {session.snapshot.snapshot_path}")
    if changes.empty:
        console.print("No changes")
        return
    for capability_id in changes.added:
        console.print(f"[green]+ {capability_id}[/green]")
    for capability_id in changes.removed:
        console.print(f"[red]- {capability_id}[/red]")
    console.print(f"[bold]{len(session.active)}[/bold] capabilities active")


@click.group()
@click.version_option(version=__version__, prog_name="roster")
@click.option("--project", "-C", "project_dir", default=".", type=click.Path(file_okay=False),
              help="Project directory (default: current directory)")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-vv for debug)")
@click.pass_context
def cli(ctx, project_dir: str, verbose: int):
    """Roster - Manage which agent capabilities a project activates."""
    settings = get_settings()
    if verbose > 1:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    ctx.obj = CliContext(settings=settings, layout=settings.project(project_dir))


# ==================== Installation ====================

@cli.command(name="install")
@click.argument("source", type=click.Path(exists=True, file_okay=False))
@click.option("--version", "version", help="Version to record (default: catalog version)")
@click.pass_obj
@handle_errors
def install_cmd(obj: CliContext, source: str, version: Optional[str]):
    """Install a catalog into the global directory."""
    record = install(Path(source), obj.settings, version=version)
    console.print(f"[green]✓ Installed catalog {record.version}[/green] at {record.catalog_root}")


@cli.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing RULEBOOK (snapshot first)")
@click.option("--tag", "tags", multiple=True, help="Technology tag (skips detection)")
@click.pass_obj
@handle_errors
def init_cmd(obj: CliContext, force: bool, tags: tuple):
    """Initialize the project configuration directory."""
    layout = init_project(
        obj.layout.root,
        obj.settings,
        tags=list(tags) if tags else None,
        force=force,
    )
    active = read_document(layout.rulebook).active_ids()
    console.print(f"[green]✓ Initialized {layout.config_dir}[/green]")
    console.print(f"  {len(active)} capabilities active")


@cli.command(name="uninstall")
@click.option("--keep-rulebook", is_flag=True, help="Keep RULEBOOK.md")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def uninstall_cmd(obj: CliContext, keep_rulebook: bool, yes: bool):
    """Remove roster files from the project (a snapshot is kept)."""
    if not yes:
        click.confirm(f"Remove roster files from {obj.layout.config_dir}?", abort=True)
    snapshot = uninstall_project(obj.layout.root, obj.settings, keep_rulebook=keep_rulebook)
    console.print("[green]✓ Uninstalled[/green]")
    console.print(f"  Snapshot: {snapshot.snapshot_path}")


# ==================== Selection ====================

@cli.command(name="list")
@click.option("--category", type=CATEGORY_CHOICE, help="Only this category")
@click.option("--active", "active_only", is_flag=True, help="Only active capabilities")
@click.pass_obj
@handle_errors
def list_cmd(obj: CliContext, category: Optional[str], active_only: bool):
    """List catalog capabilities and their activation."""
    catalog = obj.catalog()
    active = set()
    if obj.layout.rulebook.is_file():
        active = set(read_document(obj.layout.rulebook).active_ids())

    table = Table(title="Capabilities", show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan")
    table.add_column("Category", style="white")
    table.add_column("Description", style="white")

    categories = [Category.parse(category)] if category else catalog.categories()
    for cat in categories:
        for descriptor in catalog.by_category(cat):
            is_active = descriptor.id in active
            if active_only and not is_active:
                continue
            table.add_row(
                "[green]●[/green]" if is_active else "○",
                descriptor.id,
                cat.label,
                descriptor.description,
            )

    console.print(table)
    for capability_id in sorted(active - catalog.all_ids()):
        console.print(f"[yellow]⚠ Unknown active capability: {capability_id}[/yellow]")


@cli.command(name="toggle")
@click.argument("capability_ids", nargs=-1, required=True)
@click.pass_obj
@handle_errors
def toggle_cmd(obj: CliContext, capability_ids: tuple):
    """Flip the activation of one or more capabilities."""
    session = obj.session()
    for capability_id in capability_ids:
        session.toggle(capability_id)
    _commit(session)


@cli.command(name="activate")
@click.argument("capability_ids", nargs=-1)
@click.option("--category", "categories", multiple=True, type=CATEGORY_CHOICE,
              help="Activate a whole category")
@click.option("--all", "all_", is_flag=True, help="Activate every capability")
@click.pass_obj
@handle_errors
def activate_cmd(obj: CliContext, capability_ids: tuple, categories: tuple, all_: bool):
    """Activate capabilities, categories or everything."""
    if not (capability_ids or categories or all_):
        raise click.UsageError("Give capability ids, --category or --all")
    session = obj.session()
    if all_:
        session.activate_all()
    for category in categories:
        session.activate_category(category)
    if capability_ids:
        session.activate(*capability_ids)
    _commit(session)


@cli.command(name="deactivate")
@click.argument("capability_ids", nargs=-1)
@click.option("--category", "categories", multiple=True, type=CATEGORY_CHOICE,
              help="Deactivate a whole category")
@click.option("--all", "all_", is_flag=True, help="Deactivate everything except the baseline")
@click.pass_obj
@handle_errors
def deactivate_cmd(obj: CliContext, capability_ids: tuple, categories: tuple, all_: bool):
    """Deactivate capabilities, categories or everything but the baseline."""
    if not (capability_ids or categories or all_):
        raise click.UsageError("Give capability ids, --category or --all")
    session = obj.session()
    if all_:
        session.deactivate_all()
    for category in categories:
        session.deactivate_category(category)
    if capability_ids:
        session.deactivate(*capability_ids)
    _commit(session)


@cli.command(name="reset")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def reset_cmd(obj: CliContext, yes: bool):
    """Reset the active set to exactly the baseline."""
    session = obj.session()
    dropped = session.preview_reset()
    if dropped and not yes:
        console.print(f"Will deactivate {len(dropped)} capabilities:")
        for capability_id in dropped:
            console.print(f"  - {capability_id}")
        if not click.confirm("Continue?"):
            session.cancel()
            raise ConfirmationRequiredError("reset to baseline", dropped)
    session.reset_to_baseline(confirm=True)
    _commit(session)


@cli.command(name="detect")
@click.option("--apply", is_flag=True, help="Activate the recommendations")
@click.option("--tag", "tags", multiple=True, help="Technology tag (skips project scan)")
@click.pass_obj
@handle_errors
def detect_cmd(obj: CliContext, apply: bool, tags: tuple):
    """Recommend capabilities for the project's technology stack."""
    catalog = obj.catalog()
    engine = DetectionEngine(catalog)

    document = read_document(obj.layout.rulebook) if obj.layout.rulebook.is_file() else None
    if not tags:
        tags = ManifestInspector(obj.layout.root, document, engine.known_tags()).detect_tags()

    session = None
    if apply:
        session = obj.session()
        active = session.active
    else:
        active = None
        if document is not None:
            active = ActivationState.of(document.active_ids())

    recommendations = engine.recommend(tags, active)
    console.print(f"[bold]Detected:[/bold] {', '.join(tags) or 'nothing'}")
    if not recommendations:
        console.print("[green]✓ No new recommendations[/green]")
        return

    for rec in recommendations:
        console.print(f"  [cyan]{rec.capability_id}[/cyan]  {rec.reason}")

    if session is not None:
        session.activate(*(rec.capability_id for rec in recommendations))
        _commit(session)


@cli.command(name="stats")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_obj
@handle_errors
def stats_cmd(obj: CliContext, as_json: bool):
    """Show activation statistics."""
    catalog = obj.catalog()
    active = ActivationState.of(read_document(obj.layout.rulebook).active_ids())
    stats = StatisticsEngine(catalog, active)
    summary = stats.summary()

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    table = Table(title="Activation by Category", show_header=True, header_style="bold cyan")
    table.add_column("Category", style="white")
    table.add_column("Active", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Advice", style="white")
    for data in summary["categories"].values():
        table.add_row(
            data["label"],
            f"{data['active']}/{data['total']}",
            str(data["percentage"]),
            data["recommendation"],
        )
    console.print(table)

    console.print(
        f"\n[bold]Overall:[/bold] {summary['active']}/{summary['total']} "
        f"({summary['rate']}%, {summary['density']})"
    )
    console.print(f"[bold]Context:[/bold] ~{summary['context_tokens']} tokens ({summary['performance']} impact)")
    if summary["missing_baseline"]:
        console.print(f"[red]Missing baseline:[/red] {', '.join(summary['missing_baseline'])}")
    if summary["unknown"]:
        console.print(f"[yellow]Unknown:[/yellow] {', '.join(summary['unknown'])}")


# ==================== Checks ====================

@cli.command(name="validate")
@click.option("--strict", is_flag=True, help="Also run formatting and content lints")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_obj
@handle_errors
def validate_cmd(obj: CliContext, strict: bool, as_json: bool):
    """Validate the RULEBOOK. Exit code: 0 pass, 1 warnings, 2 errors."""
    document = read_document(obj.layout.rulebook)
    report = ValidationEngine(obj.catalog()).validate(document, strict=strict)
    _print_report(report, as_json)
    sys.exit(report.exit_code)


@cli.command(name="health")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_obj
@handle_errors
def health_cmd(obj: CliContext, as_json: bool):
    """Check installation health. Exit code: 0 pass, 1 warnings, 2 errors."""
    report = HealthCheck(obj.settings, obj.layout).run()
    _print_report(report, as_json)
    sys.exit(report.exit_code)


# ==================== Update ====================

@cli.command(name="update")
@click.argument("source", type=click.Path(exists=True, file_okay=False))
@click.option("--version", "version", help="Version being installed (default: catalog version)")
@click.option("--force", is_flag=True, help="Refresh even when already up to date")
@click.option("--check", "check_only", is_flag=True, help="Only report whether an update is available")
@click.pass_obj
@handle_errors
def update_cmd(obj: CliContext, source: str, version: Optional[str], force: bool, check_only: bool):
    """Refresh the catalog from SOURCE, rolling back on failure."""
    manager = UpdateManager(obj.settings, obj.layout)
    available = version or Catalog.load(Path(source)).version

    if check_only:
        if manager.check(available):
            console.print(f"Update available: {manager.current_version()} → {available}")
        else:
            console.print(f"[green]✓ Up to date ({manager.current_version()})[/green]")
        return

    result = manager.run(Path(source), version=version, force=force)
    if result.skipped:
        console.print(f"[green]✓ Already up to date ({result.from_version})[/green]; use --force to refresh")
        return
    _print_update(result)


@cli.command(name="migrate")
@click.option("--source", type=click.Path(exists=True, file_okay=False),
              help="Catalog source (default: bundled catalog)")
@click.pass_obj
@handle_errors
def migrate_cmd(obj: CliContext, source: Optional[str]):
    """Migrate a legacy install to the current layout."""
    manager = UpdateManager(obj.settings, obj.layout)
    result = manager.migrate(Path(source) if source else None)
    _print_update(result)


def _print_update(result):
    for capability_id in result.unknown_ids:
        console.print(f"[yellow]⚠ Kept unknown capability: {capability_id}[/yellow]")
    if result.succeeded:
        console.print(f"[green]✓ Updated {result.from_version} → {result.to_version}[/green]")
        if result.snapshot is not None:
            console.print(f"  Snapshot: {result.snapshot.snapshot_path}")
        return
    raise RosterCliError(
        f"Update failed ({result.error}); restored from {result.rolled_back_from.name}"
    )


@cli.command(name="snapshots")
@click.option("--restore", "restore_name", help="Restore the named snapshot")
@click.pass_obj
@handle_errors
def snapshots_cmd(obj: CliContext, restore_name: Optional[str]):
    """List backup snapshots, or restore one."""
    manager = obj.snapshots()
    snapshots = manager.list()

    if restore_name:
        match = next((s for s in snapshots if s.name == restore_name), None)
        if match is None:
            raise RosterCliError(f"No snapshot named {restore_name}")
        manager.restore(match)
        console.print(f"[green]✓ Restored {match.name}[/green]")
        return

    if not snapshots:
        console.print("No snapshots")
        return
    table = Table(title="Snapshots", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Created", style="white")
    table.add_column("Reason", style="white")
    for snapshot in snapshots:
        table.add_row(snapshot.name, snapshot.timestamp.isoformat(sep=" "), snapshot.reason or "")
    console.print(table)


# ==================== Transfer ====================

SCOPE_CHOICE = click.Choice([s.value for s in TransferScope])


@cli.command(name="export")
@click.option("--scope", type=SCOPE_CHOICE, default="full", show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@click.pass_obj
@handle_errors
def export_cmd(obj: CliContext, scope: str, output: Optional[str]):
    """Export the project configuration as JSON."""
    data = export_config(obj.layout, TransferScope(scope))
    payload = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(payload + "\n", encoding="utf-8")
        console.print(f"[green]✓ Exported to {output}[/green]")
    else:
        click.echo(payload)


@cli.command(name="import")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--merge", is_flag=True, help="Merge with the existing configuration")
@click.option("--scope", type=SCOPE_CHOICE, default="full", show_default=True)
@click.pass_obj
@handle_errors
def import_cmd(obj: CliContext, input_file: str, merge: bool, scope: str):
    """Import a configuration exported with 'roster export'."""
    try:
        data = json.loads(Path(input_file).read_text(encoding="utf-8"))
    except ValueError as e:
        raise RosterCliError(f"Invalid JSON in {input_file}: {e}") from e

    result = import_config(
        obj.layout,
        data,
        mode=ImportMode.MERGE if merge else ImportMode.REPLACE,
        scope=TransferScope(scope),
        catalog=obj.catalog(),
    )
    for capability_id in result.unknown_ids:
        console.print(f"[yellow]⚠ Unknown capability: {capability_id}[/yellow]")
    console.print(f"[green]✓ Imported ({result.mode.value}, {result.scope.value})[/green]")
    console.print(f"  {len(result.active)} capabilities active")
    if result.snapshot is not None:
        console.print(f"  Snapshot: {result.snapshot.snapshot_path}")


def main(argv: Optional[List[str]] = None):
    cli.main(args=argv, prog_name="roster")


if __name__ == "__main__":
    main()
