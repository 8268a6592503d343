"""Tests for the drift resolution policy."""

import tempfile
from pathlib import Path

import pytest

from skillsync.errors import ResolutionError
from skillsync.models.skill import Document, MismatchType, OutOfSyncAction, OutOfSyncSkill, StepOutcome
from skillsync.platforms import canonical_document_path
from skillsync.sync.drift import detect_out_of_sync
from skillsync.sync.frontmatter import get_sync_hash
from skillsync.sync.policy import ResolutionContext, apply_resolution, legal_actions
from skillsync.sync.projection import extract_canonical
from skillsync.sync.references import build_pointer
from skillsync.utils.file_store import FileStore

ALL_ACTIONS = [OutOfSyncAction.KEEP_PLATFORM, OutOfSyncAction.KEEP_CANONICAL, OutOfSyncAction.ABORT]
RESTRICTED = [OutOfSyncAction.KEEP_CANONICAL, OutOfSyncAction.ABORT]


def _skill(mismatch: MismatchType, is_pointer: bool, **kwargs) -> OutOfSyncSkill:
    return OutOfSyncSkill(
        skill_name="review",
        platform="claude",
        platform_path=Path("p/SKILL.md"),
        canonical_path=Path("c/SKILL.md"),
        mismatch_type=mismatch,
        is_pointer=is_pointer,
        **kwargs,
    )


def _setup(base: Path):
    """Canonical plus a raw claude projection and a pointer codex projection."""
    canonical_path = canonical_document_path(base, "review")
    canonical = extract_canonical(
        Document(metadata={"name": "review", "description": "Check code quality"}, body="Original content\n"),
        canonical_path,
    )
    store = FileStore()
    store.write_document(canonical_path, canonical)

    claude_path = base / ".claude/skills/review/SKILL.md"
    claude = Document(
        metadata={"name": "review", "description": "Check code quality", "model": "opus"},
        body="Modified content\n",
        path=claude_path,
    )
    codex_path = base / ".codex/skills/review/SKILL.md"
    codex = Document(
        metadata={"name": "review", "description": "Check code quality"},
        body=build_pointer(codex_path, canonical_path) + "\n",
        path=codex_path,
    )
    for doc in (claude, codex):
        store.write_document(doc.path, doc)

    context = ResolutionContext(
        skill_name="review",
        canonical=canonical,
        projections={"claude": claude, "codex": codex},
        store=store,
    )
    return context, detect_out_of_sync("review", "claude", claude, canonical)


@pytest.mark.parametrize("mismatch", [MismatchType.BODY, MismatchType.BOTH])
def test_pointer_body_drift_never_offers_keep_platform(mismatch):
    assert legal_actions(_skill(mismatch, is_pointer=True)) == RESTRICTED


def test_pointer_frontmatter_drift_offers_all():
    assert legal_actions(_skill(MismatchType.FRONTMATTER, is_pointer=True)) == ALL_ACTIONS


@pytest.mark.parametrize("mismatch", [MismatchType.BODY, MismatchType.FRONTMATTER, MismatchType.BOTH])
def test_raw_drift_offers_all(mismatch):
    assert legal_actions(_skill(mismatch, is_pointer=False)) == ALL_ACTIONS


def test_grouped_drift_never_offers_keep_platform():
    skill = _skill(MismatchType.BODY, is_pointer=False, allow_keep_platform=False, platforms=["claude", "codex"])
    assert legal_actions(skill) == RESTRICTED


def test_illegal_action_is_rejected():
    with pytest.raises(ResolutionError):
        apply_resolution(OutOfSyncAction.KEEP_PLATFORM, _skill(MismatchType.BOTH, True), None)


def test_abort_changes_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        context, skill = _setup(Path(tmpdir))
        before = skill.platform_path.read_text()
        outcome = apply_resolution(OutOfSyncAction.ABORT, skill, context)
        assert outcome == StepOutcome.ABORT
        assert skill.platform_path.read_text() == before


def test_keep_canonical_regenerates_projection():
    with tempfile.TemporaryDirectory() as tmpdir:
        context, skill = _setup(Path(tmpdir))
        outcome = apply_resolution(OutOfSyncAction.KEEP_CANONICAL, skill, context)
        assert outcome == StepOutcome.CONTINUE

        claude = FileStore().read_document(skill.platform_path)
        assert claude.is_pointer
        assert claude.metadata["model"] == "opus"
        assert get_sync_hash(claude.metadata) == get_sync_hash(context.canonical.metadata)
        assert detect_out_of_sync("review", "claude", claude, context.canonical) is None


def test_keep_platform_updates_canonical_and_propagates():
    with tempfile.TemporaryDirectory() as tmpdir:
        context, skill = _setup(Path(tmpdir))
        old_hash = get_sync_hash(context.canonical.metadata)

        apply_resolution(OutOfSyncAction.KEEP_PLATFORM, skill, context)

        store = FileStore()
        canonical = store.read_document(skill.canonical_path)
        new_hash = get_sync_hash(canonical.metadata)
        assert canonical.body == "Modified content\n"
        assert "model" not in canonical.metadata
        assert new_hash != old_hash

        claude = store.read_document(skill.platform_path)
        assert claude.is_pointer
        assert get_sync_hash(claude.metadata) == new_hash

        codex = store.read_document(context.projections["codex"].path)
        assert get_sync_hash(codex.metadata) == new_hash
