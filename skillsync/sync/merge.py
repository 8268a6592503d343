"""Metadata merge policy — fold canonical identity fields into a projection.

Each canonical identity field is merged according to its strategy in
``FIELD_STRATEGIES``. Differing identity values become conflicts that an
external decision resolves. The bookkeeping record is handled separately by
``apply_bookkeeping_override`` after the generic pass.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from skillsync.models.skill import Document, MetadataConflict, MetadataResolution
from skillsync.sync.frontmatter import (
    BOOKKEEPING_KEY,
    FIELD_STRATEGIES,
    MergeStrategy,
    get_sync_hash,
    with_sync_record,
)

logger = logging.getLogger(__name__)

MetadataDecider = Callable[[MetadataConflict], MetadataResolution]


@dataclass
class MergeResult:
    """Merged metadata plus the conflicts still waiting for a decision.

    Conflicting fields hold the target's value until resolved.
    """

    merged: dict[str, Any]
    conflicts: list[MetadataConflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0


def merge_metadata(canonical_meta: dict[str, Any], target_meta: dict[str, Any]) -> MergeResult:
    """Merge canonical identity fields into a copy of the target's metadata.

    Fields outside the identity table are never touched.
    """
    merged = copy.deepcopy(target_meta)
    conflicts = []

    for name, strategy in FIELD_STRATEGIES.items():
        if name not in canonical_meta:
            continue

        canonical_value = copy.deepcopy(canonical_meta[name])
        if name == "metadata" and isinstance(canonical_value, dict):
            canonical_value.pop(BOOKKEEPING_KEY, None)
            if not canonical_value:
                continue

        if name not in merged:
            merged[name] = canonical_value
            continue

        target_value = merged[name]
        if target_value == canonical_value:
            continue

        if strategy == MergeStrategy.UNION:
            merged[name] = _union(_as_list(target_value), _as_list(canonical_value))
        elif strategy == MergeStrategy.SHALLOW and isinstance(target_value, dict) and isinstance(
            canonical_value, dict
        ):
            merged[name] = {**target_value, **canonical_value}
        else:
            conflicts.append(
                MetadataConflict(
                    field=name,
                    canonical_value=canonical_value,
                    target_value=copy.deepcopy(target_value),
                )
            )

    apply_bookkeeping_override(merged, canonical_meta)
    return MergeResult(merged=merged, conflicts=conflicts)


def apply_bookkeeping_override(merged: dict[str, Any], canonical_meta: dict[str, Any]) -> dict[str, Any]:
    """Write canonical's hash into the merged bookkeeping record.

    Runs after the generic merge and always wins, whatever the target held.
    Modifies ``merged`` in place and returns it.
    """
    canonical_hash = get_sync_hash(canonical_meta)
    if canonical_hash is None:
        return merged

    updated = with_sync_record(merged, canonical_hash)
    merged.clear()
    merged.update(updated)
    return merged


def resolve_merge(result: MergeResult, decide: MetadataDecider) -> dict[str, Any]:
    """Apply decisions to a merge result's conflicts, in order.

    ``skip-remaining`` stops asking; unresolved fields keep the target's value.
    Strict deciders raise ``UnresolvedConflictError`` instead of returning.
    """
    merged = copy.deepcopy(result.merged)

    for conflict in result.conflicts:
        resolution = decide(conflict)
        if resolution == MetadataResolution.USE_CANONICAL:
            merged[conflict.field] = copy.deepcopy(conflict.canonical_value)
        elif resolution == MetadataResolution.USE_TARGET:
            continue
        elif resolution == MetadataResolution.SKIP_REMAINING:
            logger.debug("Skipping remaining metadata conflicts for %s", conflict.skill_name)
            break

    return merged


def propagate_metadata(
    canonical: Document,
    target: Document,
    decide: MetadataDecider,
    skill_name: str = "",
) -> Document | None:
    """Merge canonical metadata into one projection.

    Returns the updated projection, or None when nothing changed.
    """
    result = merge_metadata(canonical.metadata, target.metadata)
    for conflict in result.conflicts:
        conflict.skill_name = skill_name
        conflict.target_path = str(target.path) if target.path else ""

    merged = resolve_merge(result, decide)
    if merged == target.metadata:
        return None

    return Document(metadata=merged, body=target.body, path=target.path)


def use_canonical(_conflict: MetadataConflict) -> MetadataResolution:
    """Decider that always takes canonical's value."""
    return MetadataResolution.USE_CANONICAL


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def _union(first: list, second: list) -> list:
    result = []
    for item in first + second:
        if item not in result:
            result.append(item)
    return result
