"""Drift detection — find platform projections that diverged from canonical.

Drift happens when:
1. A pointer-form projection's pointer no longer matches the one we would build
2. A raw-form projection's body differs from canonical's body
3. Identity fields were edited on either side

Detection is read-only. Deciding what to do about drift is the policy's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import DocumentParseError
from skillsync.models.skill import Document, MismatchType, OutOfSyncSkill, PairwiseConflict
from skillsync.platforms import PlatformConfig, canonical_document_path
from skillsync.sync.conflicts import detect_pairwise_conflicts
from skillsync.sync.frontmatter import get_sync_hash, identity_metadata
from skillsync.sync.references import build_pointer
from skillsync.utils.file_scanner import scan_skills
from skillsync.utils.file_store import FileStore

logger = logging.getLogger(__name__)


def detect_mismatch(
    platform_doc: Document, canonical_doc: Document, expected_pointer: str
) -> MismatchType | None:
    """Classify how a projection differs from canonical, or None if in sync."""
    if platform_doc.is_pointer:
        body_mismatch = platform_doc.pointer != expected_pointer
    else:
        body_mismatch = platform_doc.body.strip() != canonical_doc.body.strip()

    frontmatter_mismatch = identity_metadata(platform_doc.metadata) != identity_metadata(
        canonical_doc.metadata
    )

    if body_mismatch and frontmatter_mismatch:
        return MismatchType.BOTH
    if body_mismatch:
        return MismatchType.BODY
    if frontmatter_mismatch:
        return MismatchType.FRONTMATTER
    return None


def detect_out_of_sync(
    skill_name: str,
    platform: str,
    platform_doc: Document | None,
    canonical_doc: Document | None,
) -> OutOfSyncSkill | None:
    """Check one projection against canonical.

    Skipped (None) when either document is missing or canonical has no
    recorded hash yet.
    """
    if platform_doc is None or canonical_doc is None:
        return None
    if get_sync_hash(canonical_doc.metadata) is None:
        logger.debug("Canonical %s has no hash yet, skipping drift check", skill_name)
        return None

    expected = build_pointer(platform_doc.path, canonical_doc.path)
    mismatch = detect_mismatch(platform_doc, canonical_doc, expected)
    if mismatch is None:
        return None

    return OutOfSyncSkill(
        skill_name=skill_name,
        platform=platform,
        platform_path=platform_doc.path,
        canonical_path=canonical_doc.path,
        mismatch_type=mismatch,
        is_pointer=platform_doc.is_pointer,
        platform_document=platform_doc,
        canonical_document=canonical_doc,
    )


@dataclass
class DriftReport:
    """Drift and pairwise conflicts found for a single skill."""

    skill_name: str
    out_of_sync: list[OutOfSyncSkill] = field(default_factory=list)
    conflicts: list[PairwiseConflict] = field(default_factory=list)
    has_canonical: bool = True
    details: list[str] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return bool(self.out_of_sync or self.conflicts or self.details)

    def summary(self) -> str:
        if not self.has_drift:
            return f"{self.skill_name}: in sync"
        where = ", ".join(s.platform for s in self.out_of_sync)
        parts = []
        if where:
            parts.append(f"drift in {where}")
        if self.conflicts:
            parts.append(f"{len(self.conflicts)} conflict(s)")
        parts.extend(self.details)
        return f"{self.skill_name}: " + "; ".join(parts)


class DriftDetector:
    """Reports drift for the skills in a base directory without changing anything."""

    def __init__(
        self,
        base_dir: str | Path,
        platforms: list[PlatformConfig],
        store: FileStore | None = None,
    ):
        self.base_dir = Path(base_dir)
        self.platforms = platforms
        self.store = store or FileStore()

    def check(self, skill_name: str) -> DriftReport:
        """Check every enabled platform's projection of one skill."""
        report = DriftReport(skill_name=skill_name)

        canonical = self._read(canonical_document_path(self.base_dir, skill_name), report)
        if canonical is None:
            report.has_canonical = False
        elif get_sync_hash(canonical.metadata) is None:
            report.details.append("canonical has no recorded hash")

        projections = {}
        for platform in self.platforms:
            doc = self._read(platform.document_path(self.base_dir, skill_name), report)
            if doc is None:
                continue
            projections[platform.name] = doc

            if canonical is None:
                if doc.is_pointer:
                    report.details.append(f"{platform.name} points to a missing canonical")
                else:
                    report.details.append(f"{platform.name} has not been extracted yet")
                continue

            drift = detect_out_of_sync(skill_name, platform.name, doc, canonical)
            if drift:
                report.out_of_sync.append(drift)

        report.conflicts = detect_pairwise_conflicts(skill_name, projections)
        return report

    def check_all(self) -> list[DriftReport]:
        """Check drift for every skill found in canonical or any platform."""
        index = scan_skills(self.base_dir, self.platforms)
        return [self.check(name) for name in index.skill_names()]

    def _read(self, path: Path, report: DriftReport) -> Document | None:
        try:
            return self.store.read_document(path)
        except (DocumentParseError, OSError) as e:
            logger.warning("Skipping %s: %s", path, e)
            report.details.append(f"unreadable: {path}")
            return None
