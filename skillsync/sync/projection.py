"""Building canonical documents and pointer-form projections."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from pathlib import Path

from skillsync.models.skill import DependentFile, Document
from skillsync.sync.frontmatter import (
    SCHEMA_VERSION,
    get_sync_hash,
    get_sync_record,
    identity_metadata,
    normalize_body,
    private_metadata,
    with_sync_record,
)
from skillsync.sync.hashing import compute_skill_hash, hash_matches
from skillsync.sync.references import build_pointer


def compute_canonical_hash(document: Document, dependent_files: Iterable[DependentFile] = ()) -> str:
    """Hash a canonical document's identity fields, body and dependent files."""
    return compute_skill_hash(
        identity_metadata(document.metadata),
        normalize_body(document.body),
        [(f.relative_path, f.hash) for f in dependent_files],
    )


def build_projection(
    canonical: Document, platform_path: str | Path, existing: Document | None = None
) -> Document:
    """Pointer-form projection of ``canonical`` at ``platform_path``.

    Identity fields come from canonical, platform-private fields from
    ``existing`` when given, and the bookkeeping record mirrors canonical's
    hash.
    """
    platform_path = Path(platform_path)
    metadata = copy.deepcopy(identity_metadata(canonical.metadata))
    if existing is not None:
        metadata.update(copy.deepcopy(private_metadata(existing.metadata)))

    canonical_hash = get_sync_hash(canonical.metadata)
    if canonical_hash:
        metadata = with_sync_record(metadata, canonical_hash)

    return Document(
        metadata=metadata,
        body=build_pointer(platform_path, canonical.path) + "\n",
        path=platform_path,
    )


def extract_canonical(
    raw: Document, canonical_path: str | Path, dependent_files: Iterable[DependentFile] = ()
) -> Document:
    """Create a canonical document from a raw-form projection.

    Only identity fields move to canonical; platform-private fields stay
    with the projection.
    """
    canonical = Document(
        metadata=copy.deepcopy(identity_metadata(raw.metadata)),
        body=normalize_body(raw.body),
        path=Path(canonical_path),
    )
    canonical_hash = compute_canonical_hash(canonical, dependent_files)
    canonical.metadata = with_sync_record(canonical.metadata, canonical_hash, SCHEMA_VERSION)
    return canonical


def restamp_canonical(
    canonical: Document, dependent_files: Iterable[DependentFile] = ()
) -> Document | None:
    """Canonical with a freshly computed hash, or None if the stored one is current."""
    canonical_hash = compute_canonical_hash(canonical, dependent_files)
    record = get_sync_record(canonical.metadata) or {}
    if hash_matches(record.get("hash"), canonical_hash) and record.get("version") == SCHEMA_VERSION:
        return None

    return Document(
        metadata=with_sync_record(canonical.metadata, canonical_hash, SCHEMA_VERSION),
        body=canonical.body,
        path=canonical.path,
    )
