#!/usr/bin/env python3
"""
Save Migrator - Main Orchestrator
The CLI interface that ties all components together
"""

import typer
import logging
from pathlib import Path
from typing import Optional, List, Tuple
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from data_models import MigrationReport, PassReport, RegistryEntry
from errors import MigrationError
from migration_registry import discover_migrations
from migration_tracker import MigrationTracker
from migrator import Migrator
from mod_info import ModDiscovery, setup_logging
from report_writer import MigrationReportWriter
from state_io import decode_export_string, dump_state, encode_export_string, load_state
from versions import as_version

DEFAULT_MOD_NAME = "factoryplanner"
DEFAULT_MIGRATIONS_DIR = "./migrations"
DEFAULT_LOG_DIR = "./logs"
DEFAULT_REPORT_DIR = "./output"

app = typer.Typer(help="Factory Planner Save Migrator - Upgrade saved state across mod versions")
console = Console()
# Status output of commands whose stdout is data
err_console = Console(stderr=True)

class SaveMigrator:
    """Main orchestrator class"""

    def __init__(self, migrations_dir: Path, mod_version: Optional[str] = None,
                 mods_path: Optional[Path] = None, track_changes: bool = False):
        self.logger = logging.getLogger(__name__)
        self.registry = discover_migrations(Path(migrations_dir))
        self.mod_version = self._resolve_mod_version(mod_version, mods_path)
        self.tracker = MigrationTracker(track_changes=track_changes)
        self.migrator = Migrator(self.registry, self.mod_version, self.tracker)
        self.report_writer = MigrationReportWriter()

    def _resolve_mod_version(self, mod_version: Optional[str], mods_path: Optional[Path]) -> str:
        """Explicit version, else the installed mod's version, else the newest migration"""
        if mod_version:
            return str(as_version(mod_version))

        if mods_path:
            mod = ModDiscovery(Path(mods_path)).find_mod(DEFAULT_MOD_NAME)
            return str(mod.parsed_version)

        if self.registry.latest_version is not None:
            self.logger.warning(f"No mod version given, using newest migration {self.registry.latest_version}")
            return str(self.registry.latest_version)

        raise MigrationError("Cannot determine the mod version: pass --mod-version or --mods-path")

    def migrate_file(self, input_file: Path, output_file: Path,
                     players: Optional[List[int]] = None) -> MigrationReport:
        """Migrate a state dump; the output is only written if every pass succeeds"""
        state = load_state(input_file)
        report = self.migrator.migrate_save(state, players=players, source=str(input_file))
        dump_state(state, output_file)
        return report

    def migrate_export_string(self, export_string: str) -> Tuple[str, PassReport]:
        export_table = decode_export_string(export_string)
        pass_report = self.migrator.migrate_export_table(export_table)
        return encode_export_string(export_table), pass_report

    def plan(self, previous_version: str) -> List[RegistryEntry]:
        return self.registry.select_entries(previous_version)


def default_output_path(input_file: Path) -> Path:
    """save.json -> save.migrated.json"""
    return input_file.with_name(f"{input_file.stem}.migrated{input_file.suffix}")


def _print_report(report: MigrationReport):
    summary_table = Table(title="Migration Summary")
    summary_table.add_column("Pass", style="cyan")
    summary_table.add_column("From", style="magenta")
    summary_table.add_column("To", style="magenta")
    summary_table.add_column("Steps", justify="right")
    summary_table.add_column("Objects", justify="right")
    summary_table.add_column("Removed", style="yellow", justify="right")

    for pass_report in report.passes:
        previous = "new" if pass_report.new_installation else str(pass_report.previous_version)
        summary_table.add_row(pass_report.label, previous, str(pass_report.new_version),
                              str(len(pass_report.steps)), str(pass_report.objects_migrated),
                              str(pass_report.objects_removed))

    console.print(summary_table)


@app.command()
def migrate(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="State dump (.json or .lua)"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Where to write the migrated state (default: <input>.migrated.<ext>)"
    ),
    migrations_dir: Path = typer.Option(
        DEFAULT_MIGRATIONS_DIR, "--migrations-dir", "-d",
        envvar="FP_MIGRATOR_MIGRATIONS_DIR",
        help="Directory with migration_<version>.py modules"
    ),
    mod_version: Optional[str] = typer.Option(
        None, "--mod-version", "-v",
        envvar="FP_MIGRATOR_MOD_VERSION",
        help="Version to migrate to"
    ),
    mods_path: Optional[Path] = typer.Option(
        None, "--mods-path", "-m",
        envvar="FP_MIGRATOR_MODS_PATH",
        help="Factorio mods directory to read the installed mod version from"
    ),
    players: Optional[List[int]] = typer.Option(
        None, "--player", "-p",
        help="Only migrate these player indices (repeatable)"
    ),
    report_dir: Optional[Path] = typer.Option(
        None, "--report-dir", "-r",
        help="Write text/JSON migration reports here"
    ),
    track_changes: bool = typer.Option(
        False, "--track-changes/--no-track-changes",
        help="Record which keys each migration changed"
    ),
    log_dir: Path = typer.Option(DEFAULT_LOG_DIR, "--log-dir", help="Directory for log files"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging")
):
    """Migrate a saved global table to the current mod version"""
    setup_logging(log_dir, verbose)
    console.print(Panel.fit(
        "[bold blue]Factory Planner Save Migrator[/bold blue]\n"
        f"[dim]{input_file}[/dim]",
        border_style="blue"
    ))

    output_file = output_file or default_output_path(input_file)
    try:
        save_migrator = SaveMigrator(migrations_dir, mod_version, mods_path, track_changes)
        report = save_migrator.migrate_file(input_file, output_file, players or None)
    except MigrationError as e:
        logging.getLogger(__name__).error(str(e))
        console.print(f"[bold red]Migration failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    _print_report(report)

    if report_dir:
        outputs = save_migrator.report_writer.save_reports(report, report_dir,
                                                           save_migrator.tracker if track_changes else None)
        for key, value in outputs.items():
            console.print(f"  {key}: {value}")

    console.print(f"\n[bold green]Migrated state written to {output_file}[/bold green]")


@app.command("import-string")
def import_string(
    export_string: Optional[str] = typer.Argument(None, help="Export string to migrate"),
    input_file: Optional[Path] = typer.Option(
        None, "--file", "-f", exists=True, dir_okay=False,
        help="Read the export string from a file"
    ),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the migrated string here"),
    migrations_dir: Path = typer.Option(
        DEFAULT_MIGRATIONS_DIR, "--migrations-dir", "-d",
        envvar="FP_MIGRATOR_MIGRATIONS_DIR"
    ),
    mod_version: Optional[str] = typer.Option(None, "--mod-version", "-v", envvar="FP_MIGRATOR_MOD_VERSION"),
    mods_path: Optional[Path] = typer.Option(None, "--mods-path", "-m", envvar="FP_MIGRATOR_MODS_PATH"),
    log_dir: Path = typer.Option(DEFAULT_LOG_DIR, "--log-dir", help="Directory for log files")
):
    """Migrate the subfactories inside an export string"""
    setup_logging(log_dir)

    if input_file:
        export_string = input_file.read_text(encoding='utf-8')
    if not export_string:
        err_console.print("[red]No export string given[/red]")
        raise typer.Exit(code=2)

    try:
        save_migrator = SaveMigrator(migrations_dir, mod_version, mods_path)
        migrated, pass_report = save_migrator.migrate_export_string(export_string)
    except MigrationError as e:
        logging.getLogger(__name__).error(str(e))
        err_console.print(f"[bold red]Import failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    err_console.print(f"[green]{pass_report.objects_migrated} subfactories migrated "
                      f"{pass_report.previous_version} -> {pass_report.new_version} "
                      f"({len(pass_report.steps)} steps)[/green]", highlight=False)

    if output_file:
        output_file.write_text(migrated + "\n", encoding='utf-8')
        err_console.print(f"Written to {output_file}")
    else:
        typer.echo(migrated)


@app.command()
def plan(
    previous_version: str = typer.Argument(..., help="Version the save was written with"),
    migrations_dir: Path = typer.Option(
        DEFAULT_MIGRATIONS_DIR, "--migrations-dir", "-d",
        envvar="FP_MIGRATOR_MIGRATIONS_DIR"
    )
):
    """Show which migrations would run for a save at PREVIOUS_VERSION"""
    try:
        registry = discover_migrations(migrations_dir)
        entries = registry.select_entries(previous_version)
    except MigrationError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(code=1)

    if not entries:
        console.print(f"[yellow]No migrations apply to {previous_version}[/yellow]")
        return

    table = Table(title=f"Migrations for a save at {previous_version}")
    table.add_column("Version", style="magenta")
    table.add_column("Migration", style="cyan")
    table.add_column("Targets", style="green")

    for entry in entries:
        table.add_row(str(entry.version), entry.step.name,
                      ", ".join(kind.value for kind in entry.step.kinds) or "-")

    console.print(table)

if __name__ == "__main__":
    app()
