"""Reconciliation pass — brings every skill's canonical and projections in line.

For each skill, in name order:

1. Extract canonical from a raw-form projection if none exists
2. Refresh the canonical hash
3. Detect drift and apply the chosen resolution
4. Propagate canonical metadata to every projection
5. Resolve pairwise conflicts between projections
6. Create projections on enabled platforms that lack one
7. Consolidate dependent files, rehash canonical, propagate the hash

An ``abort`` decision stops the pass after the current skill. Changes already
written stay written.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path

from skillsync.errors import DocumentParseError, ResolutionError, UnresolvedConflictError
from skillsync.models.skill import (
    DependentFile,
    Document,
    MismatchType,
    OutOfSyncSkill,
    PairwiseResolution,
    StepOutcome,
)
from skillsync.platforms import (
    DEFAULT_PLATFORMS,
    PlatformConfig,
    canonical_document_path,
    get_platform_configs,
)
from skillsync.sync.conflicts import detect_pairwise_conflict, detect_pairwise_conflicts
from skillsync.sync.decisions import DecisionProvider
from skillsync.sync.dependents import (
    apply_dependent_resolutions,
    cleanup_platform_dependents,
    collect_dependents,
    collect_platform_dependents,
    consolidate_dependents,
)
from skillsync.sync.drift import detect_mismatch, detect_out_of_sync
from skillsync.sync.frontmatter import (
    get_sync_hash,
    identity_metadata,
    private_metadata,
    with_sync_record,
)
from skillsync.sync.merge import apply_bookkeeping_override, propagate_metadata
from skillsync.sync.policy import ResolutionContext, apply_resolution, legal_actions
from skillsync.sync.projection import build_projection, extract_canonical, restamp_canonical
from skillsync.sync.references import build_pointer, resolve_pointer
from skillsync.sync.report import SyncReport
from skillsync.utils.file_scanner import scan_skills
from skillsync.utils.file_store import DryRunFileStore, FileStore

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs reconciliation passes over one base directory."""

    def __init__(
        self,
        base_dir: str | Path,
        decisions: DecisionProvider,
        store: FileStore | None = None,
        platforms: list[PlatformConfig] | None = None,
        fail_fast: bool = True,
    ):
        self.base_dir = Path(base_dir)
        self.decisions = decisions
        self.store = store or FileStore()
        self.platforms = (
            platforms if platforms is not None else get_platform_configs(DEFAULT_PLATFORMS)
        )
        self.fail_fast = fail_fast

    def run(self, skill_names: list[str] | None = None) -> SyncReport:
        """Reconcile every known skill (or just ``skill_names``).

        With ``fail_fast`` an unresolved conflict is re-raised. Otherwise the
        skill is marked failed and the pass moves on.
        """
        report = SyncReport(
            base_dir=str(self.base_dir),
            dry_run=isinstance(self.store, DryRunFileStore),
        )
        active = self._prepare_platforms(report)

        names = sorted(skill_names) if skill_names else scan_skills(self.base_dir, active).skill_names()
        logger.debug("Reconciling %d skill(s) across %s", len(names), ", ".join(p.name for p in active))

        for name in names:
            try:
                outcome = self.sync_skill(name, report, active)
            except UnresolvedConflictError as e:
                report.fail(name, str(e))
                if self.fail_fast:
                    raise
                logger.warning("%s: %s", name, e)
                continue

            if outcome == StepOutcome.ABORT:
                report.abort(name)
                logger.warning("Sync aborted at %s", name)
                break

        return report

    def sync_skill(
        self, skill_name: str, report: SyncReport, platforms: list[PlatformConfig] | None = None
    ) -> StepOutcome:
        """Reconcile one skill across the given platforms."""
        platforms = platforms if platforms is not None else self.platforms
        canonical_path = canonical_document_path(self.base_dir, skill_name)
        report.result_for(skill_name)

        try:
            canonical = self.store.read_document(canonical_path)
        except (DocumentParseError, OSError) as e:
            logger.warning("Skipping %s: %s", skill_name, e)
            report.skip(skill_name, str(e))
            return StepOutcome.CONTINUE

        projections, unreadable = self._load_projections(skill_name, platforms)

        if canonical is None:
            canonical = self._extract(skill_name, canonical_path, projections, report)
            if canonical is None:
                return StepOutcome.CONTINUE

        canonical_files = collect_dependents(canonical_path.parent, self.store)
        restamped = restamp_canonical(canonical, canonical_files)
        if restamped is not None:
            self.store.write_document(canonical_path, restamped)
            canonical = restamped
            self._record(report, skill_name, "refreshed canonical hash")

        outcome, canonical = self._resolve_drift(
            skill_name, canonical, projections, canonical_files, report
        )
        if outcome == StepOutcome.ABORT:
            return outcome

        self._propagate(skill_name, canonical, projections, report)

        if self._resolve_pairwise(skill_name, canonical, projections, report) == StepOutcome.ABORT:
            return StepOutcome.ABORT

        for platform in platforms:
            if platform.name in projections or platform.name in unreadable:
                continue
            created = build_projection(canonical, platform.document_path(self.base_dir, skill_name))
            self.store.write_document(created.path, created)
            projections[platform.name] = created
            self._record(report, skill_name, f"created projection in {platform.name}")

        return self._consolidate(skill_name, canonical, projections, platforms, report)

    # ── Platforms and documents ──────────────────────────────────────

    def _prepare_platforms(self, report: SyncReport) -> list[PlatformConfig]:
        """Enabled platforms whose folder exists or may be created."""
        active = []
        for platform in self.platforms:
            if self.store.exists(platform.root(self.base_dir)):
                active.append(platform)
                continue
            if self.decisions.confirm_platform_creation(platform.name):
                self.store.ensure_dir(platform.skills_root(self.base_dir))
                report.platforms_created.append(platform.name)
                logger.info("Created %s", platform.skills_dir)
                active.append(platform)
            else:
                report.platforms_declined.append(platform.name)
                logger.info("Not syncing to %s (folder missing)", platform.name)
        return active

    def _load_projections(
        self, skill_name: str, platforms: list[PlatformConfig]
    ) -> tuple[dict[str, Document], set[str]]:
        projections = {}
        unreadable = set()
        for platform in platforms:
            path = platform.document_path(self.base_dir, skill_name)
            try:
                doc = self.store.read_document(path)
            except (DocumentParseError, OSError) as e:
                logger.warning("Skipping %s projection of %s: %s", platform.name, skill_name, e)
                unreadable.add(platform.name)
                continue
            if doc is not None:
                projections[platform.name] = doc
        return projections, unreadable

    def _extract(
        self,
        skill_name: str,
        canonical_path: Path,
        projections: dict[str, Document],
        report: SyncReport,
    ) -> Document | None:
        """Create canonical from the first raw-form projection, in platform order."""
        source = next(((p, d) for p, d in projections.items() if not d.is_pointer), None)
        if source is None:
            if projections:
                logger.warning("%s: projections point to a missing canonical", skill_name)
                report.skip(skill_name, "canonical document is missing")
            return None

        platform, raw = source
        canonical = extract_canonical(raw, canonical_path)
        self.store.write_document(canonical_path, canonical)
        self._record(report, skill_name, f"created canonical from {platform}")

        regenerated = build_projection(canonical, raw.path, existing=raw)
        self.store.write_document(regenerated.path, regenerated)
        projections[platform] = regenerated
        self._record(report, skill_name, f"converted {platform} to a pointer")
        return canonical

    # ── Drift ────────────────────────────────────────────────────────

    def _resolve_drift(
        self,
        skill_name: str,
        canonical: Document,
        projections: dict[str, Document],
        canonical_files: list[DependentFile],
        report: SyncReport,
    ) -> tuple[StepOutcome, Document]:
        drifted = []
        for platform, doc in projections.items():
            drift = detect_out_of_sync(skill_name, platform, doc, canonical)
            if drift is not None:
                drifted.append(drift)
        if not drifted:
            return StepOutcome.CONTINUE, canonical

        skill = drifted[0] if len(drifted) == 1 else _group_drift(drifted)
        action = self.decisions.resolve_out_of_sync(skill, legal_actions(skill))

        context = ResolutionContext(
            skill_name=skill_name,
            canonical=canonical,
            projections=projections,
            store=self.store,
            canonical_files=canonical_files,
        )
        outcome = apply_resolution(action, skill, context)
        if outcome == StepOutcome.CONTINUE:
            self._record(report, skill_name, f"{action.value} for {skill.summary()}")
        return outcome, context.canonical

    # ── Metadata propagation ─────────────────────────────────────────

    def _propagate(
        self,
        skill_name: str,
        canonical: Document,
        projections: dict[str, Document],
        report: SyncReport,
    ) -> None:
        for platform, doc in list(projections.items()):
            updated = propagate_metadata(
                canonical, doc, self.decisions.resolve_metadata_conflict, skill_name
            )
            current = updated or doc

            # Raw content that already matches canonical becomes a pointer
            if not current.is_pointer:
                expected = build_pointer(current.path, canonical.path)
                if detect_mismatch(current, canonical, expected) is None:
                    updated = build_projection(canonical, current.path, existing=current)

            if updated is not None:
                self.store.write_document(updated.path, updated)
                projections[platform] = updated
                self._record(report, skill_name, f"updated {platform} metadata")

    # ── Pairwise conflicts ───────────────────────────────────────────

    def _resolve_pairwise(
        self,
        skill_name: str,
        canonical: Document,
        projections: dict[str, Document],
        report: SyncReport,
    ) -> StepOutcome:
        for found in detect_pairwise_conflicts(skill_name, projections):
            # Earlier resolutions may already have settled this pair
            conflict = detect_pairwise_conflict(
                skill_name,
                found.platform_a,
                projections[found.platform_a],
                found.platform_b,
                projections[found.platform_b],
            )
            if conflict is None:
                continue

            allowed = _pairwise_actions(canonical)
            choice = self.decisions.resolve_pairwise_conflict(conflict, allowed)
            if choice not in allowed:
                raise ResolutionError(f"{choice.value} is not allowed for {conflict.summary()}")

            if choice == PairwiseResolution.ABORT:
                return StepOutcome.ABORT
            if choice == PairwiseResolution.KEEP_BOTH:
                self._record(report, skill_name, f"kept both {conflict.platform_a} and {conflict.platform_b}")
                continue

            if choice == PairwiseResolution.USE_CANONICAL:
                pairs = [(conflict.platform_a, None), (conflict.platform_b, None)]
            elif choice == PairwiseResolution.USE_FIRST:
                pairs = [(conflict.platform_b, projections[conflict.platform_a])]
            else:
                pairs = [(conflict.platform_a, projections[conflict.platform_b])]

            for target, winner in pairs:
                existing = projections[target]
                if winner is None:
                    updated = build_projection(canonical, existing.path, existing=existing)
                else:
                    updated = _copy_projection(winner, existing, canonical)
                self.store.write_document(updated.path, updated)
                projections[target] = updated
            self._record(report, skill_name, f"{choice.value} for {conflict.summary()}")

        return StepOutcome.CONTINUE

    # ── Dependent files ──────────────────────────────────────────────

    def _consolidate(
        self,
        skill_name: str,
        canonical: Document,
        projections: dict[str, Document],
        platforms: list[PlatformConfig],
        report: SyncReport,
    ) -> StepOutcome:
        canonical_dir = canonical.path.parent
        roots = {
            p.name: p.document_path(self.base_dir, skill_name).parent
            for p in platforms
            if p.name in projections
        }

        platform_files = collect_platform_dependents(skill_name, roots, self.store)
        result = consolidate_dependents(skill_name, platform_files, canonical_dir, self.store)
        for f in result.consolidated:
            if f.relative_path not in result.canonical_files:
                self._record(report, skill_name, f"consolidated {f.relative_path}")

        resolved = apply_dependent_resolutions(
            result, self.decisions.resolve_dependent_conflict, canonical_dir, self.store
        )
        if resolved.outcome == StepOutcome.ABORT:
            return StepOutcome.ABORT

        restamped = restamp_canonical(canonical, resolved.files)
        if restamped is not None:
            self.store.write_document(canonical.path, restamped)
            canonical = restamped
            self._record(report, skill_name, "updated canonical hash")

        for platform, doc in list(projections.items()):
            if get_sync_hash(doc.metadata) == get_sync_hash(canonical.metadata):
                continue
            metadata = apply_bookkeeping_override(copy.deepcopy(doc.metadata), canonical.metadata)
            updated = Document(metadata=metadata, body=doc.body, path=doc.path)
            self.store.write_document(updated.path, updated)
            projections[platform] = updated
            self._record(report, skill_name, f"updated {platform} hash")

        for platform, paths in resolved.cleanup.items():
            deleted = cleanup_platform_dependents(self.store, roots[platform], paths)
            if deleted:
                self._record(report, skill_name, f"removed {len(deleted)} file(s) from {platform}")

        return StepOutcome.CONTINUE

    def _record(self, report: SyncReport, skill_name: str, action: str) -> None:
        logger.info("%s: %s", skill_name, action)
        report.record(skill_name, action)


def _group_drift(drifted: list[OutOfSyncSkill]) -> OutOfSyncSkill:
    """Fold drift on several platforms into one decision.

    Keeping one platform's version would discard the others, so that choice
    is withheld.
    """
    first = drifted[0]
    kinds = {d.mismatch_type for d in drifted}
    grouped = copy.copy(first)
    grouped.mismatch_type = kinds.pop() if len(kinds) == 1 else MismatchType.BOTH
    grouped.is_pointer = any(d.is_pointer for d in drifted)
    grouped.allow_keep_platform = False
    grouped.platforms = [d.platform for d in drifted]
    return grouped


def _pairwise_actions(canonical: Document | None) -> list[PairwiseResolution]:
    actions = [PairwiseResolution.USE_FIRST, PairwiseResolution.USE_SECOND]
    if canonical is not None:
        actions.append(PairwiseResolution.USE_CANONICAL)
    actions.extend([PairwiseResolution.KEEP_BOTH, PairwiseResolution.ABORT])
    return actions


def _copy_projection(winner: Document, target: Document, canonical: Document) -> Document:
    """Give ``target`` the winner's identity fields and body.

    A pointer body is rebuilt for the target's own location so it still
    resolves to the same document. Target's private fields stay.
    """
    metadata = copy.deepcopy(identity_metadata(winner.metadata))
    metadata.update(copy.deepcopy(private_metadata(target.metadata)))
    canonical_hash = get_sync_hash(canonical.metadata)
    if canonical_hash:
        metadata = with_sync_record(metadata, canonical_hash)

    body = winner.body
    if winner.is_pointer:
        body = build_pointer(target.path, resolve_pointer(winner)) + "\n"

    return Document(metadata=metadata, body=body, path=target.path)
