"""Reference path resolver — pointer strings from a projection to canonical."""

from __future__ import annotations

import os
from pathlib import Path

from skillsync.models.skill import POINTER_MARKER, Document


def relative_canonical_path(
    platform_doc_path: str | Path, canonical_doc_path: str | Path
) -> str:
    """Relative path from the projection's folder to the canonical document.

    Both sides are made absolute first, so any nesting depth works. The
    result always uses ``/`` separators.
    """
    from_dir = Path(platform_doc_path).resolve().parent
    to_path = Path(canonical_doc_path).resolve()
    return os.path.relpath(to_path, from_dir).replace(os.sep, "/")


def build_pointer(platform_doc_path: str | Path, canonical_doc_path: str | Path) -> str:
    return POINTER_MARKER + relative_canonical_path(platform_doc_path, canonical_doc_path)


def extract_pointer(body: str) -> str | None:
    """Return the referenced path (marker removed), or None for real content."""
    text = body.strip()
    if not text.startswith(POINTER_MARKER):
        return None
    target = text[len(POINTER_MARKER):].strip()
    return target or None


def resolve_pointer(document: Document) -> Path | None:
    """Absolute location a pointer-form document references."""
    target = extract_pointer(document.body)
    if target is None:
        return None
    if document.path is None:
        return Path(target)
    return (Path(document.path).resolve().parent / target).resolve()
