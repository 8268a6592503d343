"""Tests for the skill document codec and identity helpers."""

import pytest

from skillsync.errors import DocumentParseError
from skillsync.models.skill import Document
from skillsync.sync.frontmatter import (
    get_sync_hash,
    identity_metadata,
    normalize_body,
    parse_document,
    pick_core_metadata,
    private_metadata,
    render_document,
    with_sync_record,
)

SAMPLE = """---
name: code-review
description: Check code quality
model: opus
metadata:
  author: me
  sync:
    hash: sha256-abc
---
Review the diff carefully.
"""


def test_parse_document():
    doc = parse_document(SAMPLE, "SKILL.md")
    assert doc.metadata["name"] == "code-review"
    assert doc.metadata["model"] == "opus"
    assert doc.body == "Review the diff carefully.\n"
    assert str(doc.path) == "SKILL.md"


def test_parse_without_front_matter():
    doc = parse_document("Just a body\n")
    assert doc.metadata == {}
    assert doc.body == "Just a body\n"


def test_parse_strips_bom():
    doc = parse_document("\ufeff---\nname: x\n---\nbody\n")
    assert doc.metadata == {"name": "x"}


def test_parse_empty_header():
    doc = parse_document("---\n---\nbody\n")
    assert doc.metadata == {}
    assert doc.body == "body\n"


def test_parse_unterminated_header():
    with pytest.raises(DocumentParseError):
        parse_document("---\nname: x\nbody\n", "broken.md")


def test_parse_invalid_yaml():
    with pytest.raises(DocumentParseError) as exc:
        parse_document("---\nname: [unclosed\n---\nbody\n", "broken.md")
    assert "broken.md" in str(exc.value)


def test_parse_non_mapping_header():
    with pytest.raises(DocumentParseError):
        parse_document("---\n- a\n- b\n---\nbody\n")


def test_render_then_parse_keeps_content():
    doc = parse_document(SAMPLE)
    again = parse_document(render_document(doc))
    assert again.metadata == doc.metadata
    assert again.body == doc.body


def test_render_pointer_document():
    text = render_document(Document(metadata={"name": "x"}, body="@../SKILL.md"))
    assert text == "---\nname: x\n---\n@../SKILL.md\n"


def test_normalize_body():
    assert normalize_body("\n\nhello\n\n\n") == "hello\n"
    assert normalize_body("") == ""


def test_identity_metadata_strips_bookkeeping():
    doc = parse_document(SAMPLE)
    assert identity_metadata(doc.metadata) == {
        "name": "code-review",
        "description": "Check code quality",
        "metadata": {"author": "me"},
    }


def test_identity_metadata_drops_bookkeeping_only_metadata():
    meta = {"name": "x", "metadata": {"sync": {"hash": "sha256-1"}}}
    assert identity_metadata(meta) == {"name": "x"}
    # The input is left alone
    assert meta["metadata"]["sync"]["hash"] == "sha256-1"


def test_pick_core_metadata_skips_empty_values():
    assert pick_core_metadata({"name": "x", "license": "", "allowed-tools": []}) == {"name": "x"}


def test_private_metadata():
    doc = parse_document(SAMPLE)
    assert private_metadata(doc.metadata) == {"model": "opus"}


def test_with_sync_record():
    meta = {"name": "x", "metadata": {"author": "me", "sync": {"hash": "old", "extra": 1}}}
    updated = with_sync_record(meta, "sha256-new", version=1)
    assert updated["metadata"]["sync"] == {"hash": "sha256-new", "extra": 1, "version": 1}
    assert updated["metadata"]["author"] == "me"
    assert get_sync_hash(meta) == "old"
    assert get_sync_hash(updated) == "sha256-new"


def test_get_sync_hash_missing():
    assert get_sync_hash({}) is None
    assert get_sync_hash({"metadata": "not a dict"}) is None
