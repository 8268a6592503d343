"""skillsync CLI — keep one canonical copy of each skill in sync across AI assistants."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from skillsync import __version__
from skillsync.errors import ConfigError, SkillSyncError

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _resolve_base(directory: str | None, home: bool) -> Path:
    if home:
        return Path.home()
    return Path(directory or ".").resolve()


def _platforms(base_dir: Path, interactive: bool):
    from skillsync.config import enabled_platforms
    from skillsync.interactive import choose_platforms
    from skillsync.platforms import get_platform_configs

    names = enabled_platforms(base_dir, choose_platforms if interactive else None)
    return get_platform_configs(names)


def _base_options(func):
    func = click.option("--home", is_flag=True, help="Use the home directory as the base")(func)
    func = click.option("--directory", "-C", default=None, help="Base directory (default: cwd)")(func)
    return func


@click.group()
@click.version_option(version=__version__)
def main():
    """skillsync — one canonical copy of every skill, projected to each assistant.

    Skills live in .agents-common/skills. Each enabled platform (.claude,
    .codex, ...) holds a pointer to the canonical copy.
    """


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@_base_options
@click.option("--fail-on-conflict", "-f", is_flag=True, help="Fail instead of prompting on conflicts")
@click.option("--yes", "-y", is_flag=True, help="Resolve conflicts with canonical, without prompting")
@click.option("--keep-going", is_flag=True, help="Continue with other skills after a failure")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would change without writing")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def sync(
    directory: str | None,
    home: bool,
    fail_on_conflict: bool,
    yes: bool,
    keep_going: bool,
    dry_run: bool,
    verbose: bool,
):
    """Reconcile every skill with its canonical copy."""
    from skillsync.interactive import InteractiveDecisionProvider
    from skillsync.sync.decisions import PresetDecisionProvider, StrictDecisionProvider
    from skillsync.sync.engine import SyncEngine
    from skillsync.utils.file_store import DryRunFileStore, FileStore

    _setup_logging(verbose)
    base_dir = _resolve_base(directory, home)
    console.print(f"\n[bold blue]skillsync[/] — Syncing: {base_dir}\n")

    interactive = not (fail_on_conflict or yes)
    if fail_on_conflict:
        decisions = StrictDecisionProvider()
    elif yes:
        decisions = PresetDecisionProvider()
    else:
        decisions = InteractiveDecisionProvider(console)

    try:
        platforms = _platforms(base_dir, interactive)
        engine = SyncEngine(
            base_dir,
            decisions,
            store=DryRunFileStore() if dry_run else FileStore(),
            platforms=platforms,
            fail_fast=not keep_going,
        )
        report = engine.run()
    except SkillSyncError as e:
        console.print(f"[red]Sync failed:[/] {e}")
        sys.exit(1)

    table = Table(title=f"Skills ({len(report.results)})")
    table.add_column("Skill", style="cyan")
    table.add_column("Status")
    table.add_column("Changes")
    for result in report.results.values():
        detail = result.error or "; ".join(result.actions)
        table.add_row(result.skill_name, result.status, detail[:80])
    if report.results:
        console.print(table)

    if dry_run:
        console.print(
            f"\n[yellow]Dry run:[/] {len(engine.store.planned)} change(s) would be made."
        )
        for op in engine.store.planned:
            source = f" (from {op.source})" if op.source else ""
            console.print(f"  [dim]{op.kind}[/] {op.path}{source}")

    style = "green" if report.ok else "red"
    console.print(Panel(report.summary(), title="Sync Result", style=style))
    if not report.ok:
        sys.exit(1)


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@_base_options
def check(directory: str | None, home: bool):
    """Report drift and conflicts without changing anything."""
    from skillsync.config import read_config
    from skillsync.platforms import DEFAULT_PLATFORMS, get_platform_configs
    from skillsync.sync.drift import DriftDetector

    base_dir = _resolve_base(directory, home)
    console.print(f"\n[bold blue]skillsync[/] — Drift check: {base_dir}\n")

    config = read_config(base_dir)
    platforms = get_platform_configs(config.platforms if config else DEFAULT_PLATFORMS)
    reports = DriftDetector(base_dir, platforms).check_all()

    if not reports:
        console.print("[yellow]No skills found.[/]")
        return

    drifted = False
    for report in reports:
        if report.has_drift:
            drifted = True
            console.print(f"  [red]DRIFT[/] {report.summary()}")
            for skill in report.out_of_sync:
                console.print(f"    - {skill.summary()}")
            for conflict in report.conflicts:
                console.print(f"    - {conflict.summary()}")
        else:
            console.print(f"  [green]OK[/] {report.summary()}")

    if drifted:
        sys.exit(1)


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@_base_options
def list_skills(directory: str | None, home: bool):
    """List skills and where each one exists."""
    from skillsync.config import read_config
    from skillsync.platforms import PLATFORM_MAP, canonical_document_path, get_platform_configs
    from skillsync.utils.file_scanner import scan_skills
    from skillsync.utils.file_store import FileStore

    base_dir = _resolve_base(directory, home)
    config = read_config(base_dir)
    platforms = get_platform_configs(config.platforms if config else list(PLATFORM_MAP))
    index = scan_skills(base_dir, platforms)
    names = index.skill_names()

    if not names:
        console.print("[yellow]No skills found.[/]")
        return

    store = FileStore()
    table = Table(title=f"Skills ({len(names)})")
    table.add_column("Name", style="cyan")
    table.add_column("Sites")
    table.add_column("Description")

    for name in names:
        description = ""
        try:
            canonical = store.read_document(canonical_document_path(base_dir, name))
        except (SkillSyncError, OSError):
            canonical = None
            description = "[red]unreadable[/]"
        if canonical is not None:
            description = str(canonical.metadata.get("description", ""))
        table.add_row(name, ", ".join(index.sites(name)), description[:60])

    console.print(table)


# ── Config ───────────────────────────────────────────────────────────


@main.command(name="config")
@_base_options
@click.option("--platform", "-p", "platforms", multiple=True, help="Platform to enable (repeatable)")
@click.option("--show", is_flag=True, help="Print the current configuration")
def configure(directory: str | None, home: bool, platforms: tuple, show: bool):
    """Choose which platforms to sync to."""
    from skillsync.config import SyncConfig, config_path, detect_available_platforms, read_config, write_config
    from skillsync.interactive import choose_platforms
    from skillsync.platforms import PLATFORM_MAP

    base_dir = _resolve_base(directory, home)

    if show:
        config = read_config(base_dir)
        if config is None:
            console.print(f"[yellow]No configuration at {config_path(base_dir)}[/]")
            return
        console.print(f"  Platforms: [cyan]{', '.join(config.platforms)}[/]")
        return

    selected = list(platforms)
    if not selected:
        detected = detect_available_platforms(base_dir)
        if detected:
            console.print(f"  Detected: {', '.join(detected)}")
        selected = choose_platforms(list(PLATFORM_MAP))

    try:
        path = write_config(base_dir, SyncConfig(platforms=selected))
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        sys.exit(1)

    console.print(f"  Configured platforms: [cyan]{', '.join(selected)}[/] ({path})")


if __name__ == "__main__":
    main()
