"""Dependent-file consolidation — move a skill's extra files into canonical.

Dependent files are every file in a skill folder other than the head
document. Each platform's copies are collected, agreed-on versions are
copied into the canonical folder, disagreements become conflicts, and the
platform copies that were consolidated are cleaned up afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import ResolutionError
from skillsync.models.skill import (
    DependentConflict,
    DependentDecision,
    DependentFile,
    DependentResolution,
    StepOutcome,
)
from skillsync.platforms import HEAD_DOCUMENT
from skillsync.utils.file_store import FileStore

logger = logging.getLogger(__name__)

DependentDecider = Callable[[DependentConflict], DependentDecision]


def collect_dependents(skill_dir: str | Path, store: FileStore) -> list[DependentFile]:
    """Hash every dependent file in one skill folder.

    Unreadable files are logged and left out.
    """
    skill_dir = Path(skill_dir)
    files = []
    for relative_path in store.list_dependent_files(skill_dir):
        absolute = skill_dir / relative_path
        try:
            file_hash = store.hash_file(absolute)
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", absolute, e)
            continue
        files.append(DependentFile(relative_path=relative_path, hash=file_hash, absolute_path=absolute))
    return files


def collect_platform_dependents(
    skill_name: str, platform_roots: dict[str, Path], store: FileStore
) -> dict[str, list[DependentFile]]:
    """Dependent files per platform for one skill.

    ``platform_roots`` maps platform name to that platform's skill folder.
    """
    collected = {}
    for platform, skill_dir in platform_roots.items():
        files = collect_dependents(skill_dir, store)
        if files:
            logger.debug("%s: %d dependent file(s) in %s", skill_name, len(files), platform)
        collected[platform] = files
    return collected


@dataclass
class ConsolidationResult:
    """Outcome of comparing platform dependent files against canonical."""

    skill_name: str
    consolidated: list[DependentFile] = field(default_factory=list)
    conflicts: list[DependentConflict] = field(default_factory=list)
    # relative path -> platforms that held a copy at collection time
    contributors: dict[str, list[str]] = field(default_factory=dict)
    # relative path -> platform -> absolute path of that platform's copy
    sources: dict[str, dict[str, Path]] = field(default_factory=dict)
    canonical_files: dict[str, str] = field(default_factory=dict)


def consolidate_dependents(
    skill_name: str,
    platform_files: dict[str, list[DependentFile]],
    canonical_dir: str | Path,
    store: FileStore,
) -> ConsolidationResult:
    """Compare every platform's dependent files and copy agreed versions to canonical.

    A path becomes a conflict when platforms disagree on its content, or when
    canonical already holds a different version than the platforms agree on.
    """
    canonical_dir = Path(canonical_dir)
    canonical_files = {f.relative_path: f.hash for f in collect_dependents(canonical_dir, store)}
    result = ConsolidationResult(skill_name=skill_name, canonical_files=canonical_files)

    by_path: dict[str, dict[str, DependentFile]] = {}
    for platform, files in platform_files.items():
        for f in files:
            by_path.setdefault(f.relative_path, {})[platform] = f

    for relative_path in sorted(by_path):
        holders = by_path[relative_path]
        result.contributors[relative_path] = list(holders)
        result.sources[relative_path] = {p: f.absolute_path for p, f in holders.items()}

        versions = {platform: f.hash for platform, f in holders.items()}
        canonical_hash = canonical_files.get(relative_path)
        distinct = set(versions.values())

        if len(distinct) == 1 and canonical_hash in (None, *distinct):
            platform, chosen = next(iter(holders.items()))
            target = canonical_dir / relative_path
            if canonical_hash is None:
                store.copy_file(chosen.absolute_path, target)
                logger.info("%s: consolidated %s from %s", skill_name, relative_path, platform)
            result.consolidated.append(
                DependentFile(relative_path=relative_path, hash=chosen.hash, absolute_path=target)
            )
            continue

        default_platform = sorted(holders)[0]
        default = holders[default_platform]
        result.conflicts.append(
            DependentConflict(
                skill_name=skill_name,
                relative_path=relative_path,
                versions=versions,
                platform=default_platform,
                platform_path=default.absolute_path,
                platform_hash=default.hash,
                canonical_path=canonical_dir / relative_path if canonical_hash else None,
                canonical_hash=canonical_hash,
            )
        )

    return result


@dataclass
class DependentPassResult:
    """Dependent files after conflicts were resolved."""

    files: list[DependentFile] = field(default_factory=list)  # Canonical set to hash
    skipped: set[str] = field(default_factory=set)
    # platform -> relative paths to remove from that platform's skill folder
    cleanup: dict[str, list[str]] = field(default_factory=dict)
    outcome: StepOutcome = StepOutcome.CONTINUE


def apply_dependent_resolutions(
    result: ConsolidationResult,
    decide: DependentDecider,
    canonical_dir: str | Path,
    store: FileStore,
) -> DependentPassResult:
    """Ask for a decision on each conflict and apply it.

    ``skip`` leaves the path untouched everywhere. A skipped path canonical
    does not hold yet stays out of the hash; one it already holds keeps its
    canonical version. ``abort`` stops immediately with ``StepOutcome.ABORT``.
    """
    canonical_dir = Path(canonical_dir)
    pass_result = DependentPassResult()
    consolidated = list(result.consolidated)

    for conflict in result.conflicts:
        decision = decide(conflict)
        action = decision.action

        if action == DependentResolution.ABORT:
            logger.info("%s: aborted at dependent file %s", result.skill_name, conflict.relative_path)
            pass_result.outcome = StepOutcome.ABORT
            return pass_result

        if action == DependentResolution.SKIP:
            logger.info("%s: skipped dependent file %s", result.skill_name, conflict.relative_path)
            pass_result.skipped.add(conflict.relative_path)
            continue

        target = canonical_dir / conflict.relative_path
        if action == DependentResolution.USE_CANONICAL:
            if conflict.canonical_hash is None:
                raise ResolutionError(f"{conflict.key}: there is no canonical version to keep")
            consolidated.append(
                DependentFile(conflict.relative_path, conflict.canonical_hash, target)
            )
            continue

        platform = decision.platform or conflict.platform
        if platform not in conflict.versions:
            raise ResolutionError(f"{conflict.key}: {platform} holds no version of this file")
        store.copy_file(result.sources[conflict.relative_path][platform], target)
        consolidated.append(
            DependentFile(conflict.relative_path, conflict.versions[platform], target)
        )
        logger.info("%s: kept %s version of %s", result.skill_name, platform, conflict.relative_path)

    final = dict(result.canonical_files)
    for f in consolidated:
        final[f.relative_path] = f.hash
        for platform in result.contributors.get(f.relative_path, []):
            pass_result.cleanup.setdefault(platform, []).append(f.relative_path)

    pass_result.files = [
        DependentFile(path, final[path], canonical_dir / path)
        for path in sorted(final)
        if path not in pass_result.skipped or path in result.canonical_files
    ]
    return pass_result


def cleanup_platform_dependents(
    store: FileStore, platform_skill_dir: str | Path, relative_paths: list[str]
) -> list[str]:
    """Delete consolidated files from one platform's skill folder.

    Only the given paths are touched and the head document never is. A
    failed delete is logged and the file stays. Returns the deleted paths.
    """
    platform_skill_dir = Path(platform_skill_dir)
    deleted = []
    for relative_path in relative_paths:
        if Path(relative_path).name == HEAD_DOCUMENT:
            continue
        try:
            store.delete_file(platform_skill_dir / relative_path)
            deleted.append(relative_path)
        except OSError as e:
            logger.warning("Could not delete %s: %s", platform_skill_dir / relative_path, e)

    store.prune_empty_dirs(platform_skill_dir)
    return deleted
