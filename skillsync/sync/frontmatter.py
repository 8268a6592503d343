"""Skill document codec and the identity-field table.

Documents are Markdown with a YAML front-matter block::

    ---
    name: code-review
    description: Check code quality
    ---
    Body text...

Only the identity fields in ``FIELD_STRATEGIES`` are compared, hashed and
merged. Everything else in the front matter is platform-private.
"""

from __future__ import annotations

import copy
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from skillsync.errors import DocumentParseError
from skillsync.models.skill import Document

SCHEMA_VERSION = 1

# Key under the ``metadata`` field that holds tool-managed {hash, version}
BOOKKEEPING_KEY = "sync"


class MergeStrategy(Enum):
    """How a canonical identity field is merged into a projection."""

    IDENTITY = "identity"  # Copy if absent, conflict if different
    UNION = "union"  # De-duplicated union, target entries first
    SHALLOW = "shallow"  # Shallow dict merge, canonical keys win


FIELD_STRATEGIES: dict[str, MergeStrategy] = {
    "name": MergeStrategy.IDENTITY,
    "description": MergeStrategy.IDENTITY,
    "license": MergeStrategy.IDENTITY,
    "compatibility": MergeStrategy.IDENTITY,
    "allowed-tools": MergeStrategy.UNION,
    "metadata": MergeStrategy.SHALLOW,
}

CORE_FIELDS = tuple(FIELD_STRATEGIES)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<header>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


# --- Codec ---


def parse_document(text: str, path: str | Path | None = None) -> Document:
    """Parse a skill document.

    Text without a front-matter block is a document with empty metadata.
    Raises ``DocumentParseError`` for an unterminated or invalid header.
    """
    text = text.lstrip("\ufeff")
    doc_path = Path(path) if path is not None else None

    if not text.startswith("---"):
        return Document(metadata={}, body=normalize_body(text), path=doc_path)

    match = _FRONTMATTER_RE.match(text)
    if not match:
        raise DocumentParseError(path, "front matter is not terminated by '---'")

    try:
        data = yaml.safe_load(match.group("header"))
    except yaml.YAMLError as e:
        raise DocumentParseError(path, f"invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DocumentParseError(path, "front matter must be a mapping")

    return Document(
        metadata=data,
        body=normalize_body(text[match.end():]),
        path=doc_path,
    )


def render_document(document: Document) -> str:
    header = ""
    if document.metadata:
        header = yaml.safe_dump(
            document.metadata,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
    return f"---\n{header}---\n{normalize_body(document.body)}"


def normalize_body(body: str) -> str:
    """Drop leading/trailing blank lines; non-empty bodies end with one newline."""
    body = body.lstrip("\r\n").rstrip("\r\n")
    return body + "\n" if body else ""


# --- Identity fields ---


def pick_core_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Identity fields with a non-empty value, in table order."""
    return {
        name: metadata[name]
        for name in CORE_FIELDS
        if name in metadata and not _is_empty(metadata[name])
    }


def identity_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Identity fields without the bookkeeping record.

    This is what gets compared between projections and hashed.
    """
    core = copy.deepcopy(pick_core_metadata(metadata))
    nested = core.get("metadata")
    if isinstance(nested, dict):
        nested.pop(BOOKKEEPING_KEY, None)
        if not nested:
            del core["metadata"]
    return core


def private_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Platform-private fields (everything outside the identity table)."""
    return {k: v for k, v in metadata.items() if k not in FIELD_STRATEGIES}


def sort_keys(value: Any) -> Any:
    """Recursively sort mapping keys for deterministic output."""
    if isinstance(value, dict):
        return {k: sort_keys(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, list):
        return [sort_keys(v) for v in value]
    return value


# --- Bookkeeping record ---


def get_sync_record(metadata: dict[str, Any]) -> dict[str, Any] | None:
    nested = metadata.get("metadata")
    if not isinstance(nested, dict):
        return None
    record = nested.get(BOOKKEEPING_KEY)
    return record if isinstance(record, dict) else None


def get_sync_hash(metadata: dict[str, Any]) -> str | None:
    record = get_sync_record(metadata) or {}
    value = record.get("hash")
    return value if isinstance(value, str) and value else None


def with_sync_record(
    metadata: dict[str, Any], hash_value: str, version: int | None = None
) -> dict[str, Any]:
    """Copy of ``metadata`` whose bookkeeping record carries ``hash_value``.

    Other keys already in the record are kept.
    """
    result = copy.deepcopy(metadata)
    nested = result.get("metadata")
    if not isinstance(nested, dict):
        nested = {}
    record = nested.get(BOOKKEEPING_KEY)
    record = dict(record) if isinstance(record, dict) else {}

    record["hash"] = hash_value
    if version is not None:
        record["version"] = version

    nested[BOOKKEEPING_KEY] = record
    result["metadata"] = nested
    return result


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}
