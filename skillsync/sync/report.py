"""Sync report — what a reconciliation pass did, skill by skill."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


class SkillStatus:
    UNCHANGED = "unchanged"  # Already in sync, nothing written
    SYNCED = "synced"  # At least one change applied
    SKIPPED = "skipped"  # Could not be processed (e.g. corrupt canonical)
    FAILED = "failed"  # A conflict could not be resolved
    ABORTED = "aborted"  # The pass stopped at this skill


@dataclass
class SkillResult:
    """Outcome for a single skill."""

    skill_name: str
    status: str = SkillStatus.UNCHANGED
    actions: list[str] = field(default_factory=list)
    error: str = ""


@dataclass
class SyncReport:
    """Outcome of one reconciliation pass."""

    base_dir: str = ""
    dry_run: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    results: dict[str, SkillResult] = field(default_factory=dict)
    platforms_created: list[str] = field(default_factory=list)
    platforms_declined: list[str] = field(default_factory=list)
    aborted: bool = False
    aborted_at: str = ""

    def result_for(self, skill_name: str) -> SkillResult:
        if skill_name not in self.results:
            self.results[skill_name] = SkillResult(skill_name=skill_name)
        return self.results[skill_name]

    def record(self, skill_name: str, action: str) -> None:
        """Note an applied change."""
        result = self.result_for(skill_name)
        result.actions.append(action)
        if result.status == SkillStatus.UNCHANGED:
            result.status = SkillStatus.SYNCED

    def skip(self, skill_name: str, reason: str) -> None:
        result = self.result_for(skill_name)
        result.status = SkillStatus.SKIPPED
        result.error = reason

    def fail(self, skill_name: str, error: str) -> None:
        result = self.result_for(skill_name)
        result.status = SkillStatus.FAILED
        result.error = error

    def abort(self, skill_name: str) -> None:
        self.aborted = True
        self.aborted_at = skill_name
        self.result_for(skill_name).status = SkillStatus.ABORTED

    def with_status(self, status: str) -> list[SkillResult]:
        return [r for r in self.results.values() if r.status == status]

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.with_status(SkillStatus.FAILED)

    def summary(self) -> str:
        counts = {}
        for result in self.results.values():
            counts[result.status] = counts.get(result.status, 0) + 1
        parts = [f"{count} {status}" for status, count in sorted(counts.items())]
        text = ", ".join(parts) if parts else "no skills found"
        if self.aborted:
            text += f" (aborted at {self.aborted_at})"
        return text
