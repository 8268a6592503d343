"""Hash primitive — deterministic fingerprints of a skill's full state.

A skill hash covers the identity metadata, the body, and every dependent
file's content hash. Metadata keys are serialized in sorted order and files
are sorted by relative path, so enumeration order never changes the result.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

HASH_PREFIX = "sha256-"


def stable_serialize(value: Any) -> str:
    """Serialize a metadata value with recursively sorted keys.

    Values YAML can produce but JSON cannot (dates, timestamps) fall back to
    their string form.
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_skill_hash(
    core_metadata: Mapping[str, Any],
    body: str,
    dependent_files: Iterable[tuple[str, str]] = (),
) -> str:
    """Compute the canonical hash of a skill.

    Args:
        core_metadata: Identity fields, with the bookkeeping record removed.
        body: Body text, hashed verbatim.
        dependent_files: ``(relative_path, content_hash)`` pairs in any order.

    Returns:
        Hash in the form ``sha256-<hex>``.
    """
    digest = hashlib.sha256()

    digest.update(stable_serialize(dict(core_metadata)).encode("utf-8"))
    digest.update(b"\n")

    digest.update(body.encode("utf-8"))
    digest.update(b"\n")

    for relative_path, file_hash in sorted(dependent_files, key=lambda f: f[0]):
        digest.update(f"{relative_path}:{file_hash}\n".encode("utf-8"))

    return HASH_PREFIX + digest.hexdigest()


def compute_text_hash(text: str) -> str:
    return HASH_PREFIX + hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_file_hash(path: str | Path) -> str:
    """Hash a file's bytes. Raises ``OSError`` if the file cannot be read."""
    return HASH_PREFIX + hashlib.sha256(Path(path).read_bytes()).hexdigest()


def hash_matches(a: str | None, b: str | None) -> bool:
    """Compare two hashes, tolerating a missing ``sha256-`` prefix."""
    if not a or not b:
        return False
    return _normalize(a) == _normalize(b)


def _normalize(value: str) -> str:
    return value if value.startswith(HASH_PREFIX) else HASH_PREFIX + value
