"""Resolution policy — which drift resolutions are allowed and how they apply.

A pointer-form projection whose pointer or body changed is treated as a
mechanical error, so keeping the platform's version is never offered for it.
The same holds when several platforms drifted at once and share a decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import ResolutionError
from skillsync.models.skill import (
    DependentFile,
    Document,
    MismatchType,
    OutOfSyncAction,
    OutOfSyncSkill,
    StepOutcome,
)
from skillsync.sync.frontmatter import SCHEMA_VERSION, identity_metadata, with_sync_record
from skillsync.sync.merge import propagate_metadata, use_canonical
from skillsync.sync.projection import build_projection, compute_canonical_hash
from skillsync.utils.file_store import FileStore

logger = logging.getLogger(__name__)

BODY_MISMATCHES = {MismatchType.BODY, MismatchType.BOTH}


@dataclass
class ResolutionContext:
    """State of one skill while a drift resolution is applied.

    ``canonical`` and ``projections`` are updated in place as documents are
    rewritten.
    """

    skill_name: str
    canonical: Document
    projections: dict[str, Document]
    store: FileStore
    canonical_files: list[DependentFile] = field(default_factory=list)


def legal_actions(skill: OutOfSyncSkill) -> list[OutOfSyncAction]:
    """Actions a decision provider may choose for a drifted projection."""
    restricted = skill.mismatch_type in BODY_MISMATCHES and skill.is_pointer
    if restricted or not skill.allow_keep_platform:
        return [OutOfSyncAction.KEEP_CANONICAL, OutOfSyncAction.ABORT]
    return [OutOfSyncAction.KEEP_PLATFORM, OutOfSyncAction.KEEP_CANONICAL, OutOfSyncAction.ABORT]


def apply_resolution(
    action: OutOfSyncAction, skill: OutOfSyncSkill, context: ResolutionContext
) -> StepOutcome:
    """Apply a chosen resolution. Raises ``ResolutionError`` for illegal actions."""
    allowed = legal_actions(skill)
    if action not in allowed:
        raise ResolutionError(
            f"{action.value} is not allowed for {skill.summary()} "
            f"(allowed: {', '.join(a.value for a in allowed)})"
        )

    if action == OutOfSyncAction.ABORT:
        logger.info("Aborting at %s", skill.summary())
        return StepOutcome.ABORT
    if action == OutOfSyncAction.KEEP_PLATFORM:
        apply_keep_platform(skill, context)
    else:
        apply_keep_canonical(skill, context)
    return StepOutcome.CONTINUE


def apply_keep_platform(skill: OutOfSyncSkill, context: ResolutionContext) -> Document:
    """Make the platform's version canonical and propagate it everywhere else."""
    source = context.projections.get(skill.platform) or skill.platform_document
    old = context.canonical

    body = old.body
    if skill.mismatch_type in BODY_MISMATCHES and not source.is_pointer:
        body = source.body

    canonical = Document(
        metadata=identity_metadata(source.metadata),
        body=body,
        path=old.path,
    )
    canonical_hash = compute_canonical_hash(canonical, context.canonical_files)
    canonical.metadata = with_sync_record(canonical.metadata, canonical_hash, SCHEMA_VERSION)

    context.store.write_document(canonical.path, canonical)
    context.canonical = canonical
    logger.info("%s: canonical updated from %s", skill.skill_name, skill.platform)

    regenerated = build_projection(canonical, source.path, existing=source)
    context.store.write_document(regenerated.path, regenerated)
    context.projections[skill.platform] = regenerated

    for name, doc in context.projections.items():
        if name == skill.platform:
            continue
        updated = propagate_metadata(canonical, doc, use_canonical, skill.skill_name)
        if updated is not None:
            context.store.write_document(updated.path, updated)
            context.projections[name] = updated
            logger.info("%s: propagated canonical metadata to %s", skill.skill_name, name)

    return canonical


def apply_keep_canonical(skill: OutOfSyncSkill, context: ResolutionContext) -> list[str]:
    """Regenerate every drifted projection from canonical.

    Platform-private fields are kept. Returns the regenerated platform names.
    """
    names = skill.platforms or [skill.platform]
    for name in names:
        existing = context.projections.get(name)
        path = existing.path if existing is not None else skill.platform_path
        regenerated = build_projection(context.canonical, Path(path), existing=existing)
        context.store.write_document(regenerated.path, regenerated)
        context.projections[name] = regenerated
        logger.info("%s: regenerated %s from canonical", skill.skill_name, name)
    return names
