"""Interactive decision provider — asks a human at the terminal."""

from __future__ import annotations

import difflib

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from skillsync.models.skill import (
    DependentConflict,
    DependentDecision,
    DependentResolution,
    Document,
    MetadataConflict,
    MetadataResolution,
    OutOfSyncAction,
    OutOfSyncSkill,
    PairwiseConflict,
    PairwiseResolution,
)
from skillsync.platforms import DEFAULT_PLATFORMS, PLATFORM_MAP
from skillsync.sync.decisions import DecisionProvider
from skillsync.sync.frontmatter import identity_metadata

PLATFORM_CHOICE_PREFIX = "use-platform:"


class InteractiveDecisionProvider(DecisionProvider):
    """Shows each conflict with a diff and prompts for a choice."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def resolve_metadata_conflict(self, conflict: MetadataConflict) -> MetadataResolution:
        table = Table(show_header=True)
        table.add_column("Side", style="dim")
        table.add_column("Value")
        table.add_row("canonical", _format_value(conflict.canonical_value))
        table.add_row("target", _format_value(conflict.target_value))

        self.console.print(
            Panel(
                table,
                title=f"{conflict.skill_name}: field '{conflict.field}' differs",
                subtitle=conflict.target_path or None,
            )
        )
        choice = self._ask([r.value for r in MetadataResolution], MetadataResolution.USE_CANONICAL.value)
        return MetadataResolution(choice)

    def resolve_dependent_conflict(self, conflict: DependentConflict) -> DependentDecision:
        table = Table(title=f"{conflict.key}: versions differ")
        table.add_column("Source", style="cyan")
        table.add_column("Hash", style="dim")
        if conflict.canonical_hash:
            table.add_row("canonical", _short(conflict.canonical_hash))
        for platform, file_hash in sorted(conflict.versions.items()):
            table.add_row(platform, _short(file_hash))
        self.console.print(table)

        choices = []
        if conflict.canonical_hash:
            choices.append(DependentResolution.USE_CANONICAL.value)
        choices.extend(PLATFORM_CHOICE_PREFIX + p for p in sorted(conflict.versions))
        choices.extend([DependentResolution.SKIP.value, DependentResolution.ABORT.value])

        choice = self._ask(choices, choices[0])
        if choice.startswith(PLATFORM_CHOICE_PREFIX):
            return DependentDecision(
                action=DependentResolution.USE_PLATFORM,
                platform=choice[len(PLATFORM_CHOICE_PREFIX):],
            )
        return DependentDecision(action=DependentResolution(choice))

    def resolve_out_of_sync(
        self, skill: OutOfSyncSkill, legal_actions: list[OutOfSyncAction]
    ) -> OutOfSyncAction:
        self.console.print(Panel(skill.summary(), title="Out of sync", style="yellow"))
        if skill.platform_document and skill.canonical_document:
            self._show_diff(
                skill.canonical_document, skill.platform_document, "canonical", skill.platform
            )
        if OutOfSyncAction.KEEP_PLATFORM not in legal_actions:
            self.console.print(
                "[dim]Keeping the platform version is not offered here: the pointer "
                "was altered or several platforms drifted.[/]"
            )

        default = OutOfSyncAction.KEEP_CANONICAL.value
        choice = self._ask([a.value for a in legal_actions], default)
        return OutOfSyncAction(choice)

    def resolve_pairwise_conflict(
        self, conflict: PairwiseConflict, legal_actions: list[PairwiseResolution]
    ) -> PairwiseResolution:
        self.console.print(Panel(conflict.summary(), title="Conflict", style="red"))
        if conflict.document_a and conflict.document_b:
            self._show_diff(
                conflict.document_a, conflict.document_b, conflict.platform_a, conflict.platform_b
            )
        self.console.print(
            f"  use-first = keep {conflict.platform_a}, use-second = keep {conflict.platform_b}"
        )

        values = [a.value for a in legal_actions]
        default = (
            PairwiseResolution.USE_CANONICAL.value
            if PairwiseResolution.USE_CANONICAL.value in values
            else values[0]
        )
        return PairwiseResolution(self._ask(values, default))

    def confirm_platform_creation(self, platform: str) -> bool:
        return click.confirm(
            f"{PLATFORM_MAP.get(platform, platform)} does not exist. Create it?", default=True
        )

    def _show_diff(self, old: Document, new: Document, old_label: str, new_label: str) -> None:
        diff = "".join(
            difflib.unified_diff(
                _diffable(old).splitlines(keepends=True),
                _diffable(new).splitlines(keepends=True),
                fromfile=old_label,
                tofile=new_label,
            )
        )
        if diff:
            self.console.print(Syntax(diff, "diff", theme="ansi_dark"))

    def _ask(self, choices: list[str], default: str) -> str:
        return click.prompt(
            "Choose",
            type=click.Choice(choices),
            default=default,
            show_choices=True,
        )


def choose_platforms(available: list[str]) -> list[str]:
    """Prompt for the platforms to enable when none could be detected."""
    answer = click.prompt(
        f"Platforms to sync ({', '.join(available)})",
        default=",".join(DEFAULT_PLATFORMS),
    )
    selected = [name.strip() for name in answer.split(",") if name.strip() in available]
    return selected or list(DEFAULT_PLATFORMS)


def _diffable(document: Document) -> str:
    header = yaml.safe_dump(identity_metadata(document.metadata), sort_keys=True, allow_unicode=True)
    return f"{header}---\n{document.body}"


def _format_value(value) -> str:
    if isinstance(value, (dict, list)):
        return yaml.safe_dump(value, sort_keys=True, default_flow_style=True).strip()
    return str(value)


def _short(file_hash: str) -> str:
    return file_hash[:19]
