"""Pairwise conflict detection between platform projections of one skill."""

from __future__ import annotations

import itertools
from typing import Any

from skillsync.models.skill import POINTER_MARKER, ConflictType, Document, PairwiseConflict
from skillsync.sync.frontmatter import identity_metadata, sort_keys
from skillsync.sync.hashing import compute_text_hash, stable_serialize
from skillsync.sync.references import resolve_pointer


def normalize_projection(document: Document) -> dict[str, Any]:
    """Comparable form of a projection.

    Only identity fields are kept, bookkeeping stripped and keys sorted.
    Pointer bodies become the absolute location they resolve to, so
    projections at different depths that reference the same canonical
    compare equal.
    """
    if document.is_pointer:
        target = resolve_pointer(document)
        body = POINTER_MARKER + (target.as_posix() if target else "")
    else:
        body = document.body.strip()

    return {"metadata": sort_keys(identity_metadata(document.metadata)), "body": body}


def hash_normalized(document: Document) -> str:
    return compute_text_hash(stable_serialize(normalize_projection(document)))


def classify_conflict(a: Document, b: Document) -> ConflictType:
    if a.is_pointer and b.is_pointer and resolve_pointer(a) == resolve_pointer(b):
        return ConflictType.FRONTMATTER
    return ConflictType.CONTENT


def detect_pairwise_conflict(
    skill_name: str,
    platform_a: str,
    document_a: Document,
    platform_b: str,
    document_b: Document,
) -> PairwiseConflict | None:
    hash_a = hash_normalized(document_a)
    hash_b = hash_normalized(document_b)
    if hash_a == hash_b:
        return None

    return PairwiseConflict(
        skill_name=skill_name,
        platform_a=platform_a,
        platform_b=platform_b,
        path_a=document_a.path,
        path_b=document_b.path,
        hash_a=hash_a,
        hash_b=hash_b,
        conflict_type=classify_conflict(document_a, document_b),
        document_a=document_a,
        document_b=document_b,
    )


def detect_pairwise_conflicts(
    skill_name: str, projections: dict[str, Document]
) -> list[PairwiseConflict]:
    """Compare every unordered pair of projections.

    ``projections`` maps platform name to document; pairs follow its order.
    """
    conflicts = []
    for (name_a, doc_a), (name_b, doc_b) in itertools.combinations(projections.items(), 2):
        conflict = detect_pairwise_conflict(skill_name, name_a, doc_a, name_b, doc_b)
        if conflict:
            conflicts.append(conflict)
    return conflicts
