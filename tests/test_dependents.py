"""Tests for dependent-file consolidation and cleanup."""

import logging
import tempfile
from pathlib import Path

import pytest

from skillsync.errors import ResolutionError
from skillsync.models.skill import DependentDecision, DependentResolution, StepOutcome
from skillsync.sync.dependents import (
    apply_dependent_resolutions,
    cleanup_platform_dependents,
    collect_dependents,
    collect_platform_dependents,
    consolidate_dependents,
)
from skillsync.sync.hashing import compute_text_hash
from skillsync.utils.file_store import FileStore


def _write_file(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def _layout(base: Path):
    roots = {
        "claude": base / ".claude/skills/review",
        "codex": base / ".codex/skills/review",
    }
    for root in roots.values():
        _write_file(root, "SKILL.md", "---\nname: review\n---\nbody\n")
    canonical = base / ".agents-common/skills/review"
    _write_file(canonical, "SKILL.md", "---\nname: review\n---\nbody\n")
    return roots, canonical


def _decide(action, platform=None):
    return lambda conflict: DependentDecision(action=action, platform=platform)


def test_collect_skips_head_and_housekeeping():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _write_file(root, "SKILL.md", "head")
        _write_file(root, "scripts/run.sh", "echo hi")
        _write_file(root, "node_modules/pkg/index.js", "x")
        _write_file(root, ".git/config", "x")
        _write_file(root, ".DS_Store", "x")

        files = collect_dependents(root, FileStore())
        assert [f.relative_path for f in files] == ["scripts/run.sh"]
        assert files[0].hash == compute_text_hash("echo hi")


def test_agreeing_platforms_consolidate_without_conflict():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        for root in roots.values():
            _write_file(root, "scripts/run.sh", "echo hi")

        store = FileStore()
        platform_files = collect_platform_dependents("review", roots, store)
        result = consolidate_dependents("review", platform_files, canonical, store)

        assert result.conflicts == []
        assert [f.relative_path for f in result.consolidated] == ["scripts/run.sh"]
        assert result.contributors["scripts/run.sh"] == ["claude", "codex"]
        assert (canonical / "scripts/run.sh").read_text() == "echo hi"


def test_single_platform_file_is_consolidated():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["codex"], "notes.md", "notes")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        assert result.conflicts == []
        assert result.contributors == {"notes.md": ["codex"]}


def test_disagreeing_platforms_produce_one_conflict():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "config.json", "{}")
        _write_file(roots["codex"], "config.json", '{"a": 1}')
        for i in range(5):
            for root in roots.values():
                _write_file(root, f"docs/page{i}.md", f"page {i}")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.relative_path == "config.json"
        assert set(conflict.versions) == {"claude", "codex"}
        assert conflict.canonical_hash is None
        assert not (canonical / "config.json").exists()
        assert len(result.consolidated) == 5


def test_canonical_disagreement_is_a_conflict():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(canonical, "run.sh", "old")
        for root in roots.values():
            _write_file(root, "run.sh", "new")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        assert len(result.conflicts) == 1
        assert result.conflicts[0].conflicts_with_canonical
        assert (canonical / "run.sh").read_text() == "old"


def test_use_platform_resolution_copies_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "config.json", "claude")
        _write_file(roots["codex"], "config.json", "codex")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        resolved = apply_dependent_resolutions(
            result, _decide(DependentResolution.USE_PLATFORM, "codex"), canonical, store
        )
        assert resolved.outcome == StepOutcome.CONTINUE
        assert (canonical / "config.json").read_text() == "codex"
        assert [f.relative_path for f in resolved.files] == ["config.json"]
        assert resolved.cleanup == {"claude": ["config.json"], "codex": ["config.json"]}


def test_use_platform_rejects_unknown_platform():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "config.json", "claude")
        _write_file(roots["codex"], "config.json", "codex")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        with pytest.raises(ResolutionError):
            apply_dependent_resolutions(
                result, _decide(DependentResolution.USE_PLATFORM, "gemini"), canonical, store
            )


def test_use_canonical_keeps_canonical_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(canonical, "run.sh", "old")
        _write_file(roots["claude"], "run.sh", "new")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        resolved = apply_dependent_resolutions(
            result, _decide(DependentResolution.USE_CANONICAL), canonical, store
        )
        assert (canonical / "run.sh").read_text() == "old"
        assert resolved.files[0].hash == compute_text_hash("old")
        assert resolved.cleanup == {"claude": ["run.sh"]}


def test_skip_excludes_path_from_hash_and_cleanup():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "config.json", "claude")
        _write_file(roots["codex"], "config.json", "codex")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        resolved = apply_dependent_resolutions(result, _decide(DependentResolution.SKIP), canonical, store)
        assert resolved.skipped == {"config.json"}
        assert resolved.files == []
        assert resolved.cleanup == {}
        assert not (canonical / "config.json").exists()


def test_abort_stops_the_pass():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "a.txt", "1")
        _write_file(roots["codex"], "a.txt", "2")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        resolved = apply_dependent_resolutions(result, _decide(DependentResolution.ABORT), canonical, store)
        assert resolved.outcome == StepOutcome.ABORT


def test_cleanup_only_touches_given_paths(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, _ = _layout(Path(tmpdir))
        root = roots["claude"]
        _write_file(root, "scripts/run.sh", "x")
        _write_file(root, "keep.txt", "x")

        with caplog.at_level(logging.WARNING):
            deleted = cleanup_platform_dependents(FileStore(), root, ["scripts/run.sh", "SKILL.md"])

        assert deleted == ["scripts/run.sh"]
        assert not (root / "scripts").exists()
        assert (root / "keep.txt").exists()
        assert (root / "SKILL.md").exists()
        assert caplog.records == []


def test_platform_without_file_is_never_cleaned(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        roots, canonical = _layout(base)
        _write_file(roots["claude"], "run.sh", "x")
        # A platform created in this pass has nothing to contribute
        roots["cursor"] = base / ".cursor/skills/review"
        _write_file(roots["cursor"], "SKILL.md", "---\nname: review\n---\nbody\n")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        with caplog.at_level(logging.WARNING):
            resolved = apply_dependent_resolutions(result, _decide(DependentResolution.SKIP), canonical, store)
            for platform, paths in resolved.cleanup.items():
                cleanup_platform_dependents(store, roots[platform], paths)

        assert list(resolved.cleanup) == ["claude"]
        assert not (roots["claude"] / "run.sh").exists()
        assert caplog.records == []


class UnreadableStore(FileStore):
    """Fails to hash any file named ``locked.bin``."""

    def hash_file(self, path):
        if Path(path).name == "locked.bin":
            raise PermissionError(f"Permission denied: {path}")
        return super().hash_file(path)


class UndeletableStore(FileStore):
    def delete_file(self, path):
        raise PermissionError(f"Permission denied: {path}")


def test_unreadable_file_is_logged_and_excluded(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(roots["claude"], "locked.bin", "secret")
        _write_file(roots["claude"], "scripts/run.sh", "echo hi")

        store = UnreadableStore()
        with caplog.at_level(logging.WARNING):
            platform_files = collect_platform_dependents("review", roots, store)
            result = consolidate_dependents("review", platform_files, canonical, store)

        assert [f.relative_path for f in platform_files["claude"]] == ["scripts/run.sh"]
        assert [f.relative_path for f in result.consolidated] == ["scripts/run.sh"]
        assert not (canonical / "locked.bin").exists()
        assert any("locked.bin" in r.getMessage() for r in caplog.records)


def test_failed_delete_is_logged_and_file_kept(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, _ = _layout(Path(tmpdir))
        root = roots["claude"]
        _write_file(root, "scripts/run.sh", "x")
        _write_file(root, "notes.md", "x")

        with caplog.at_level(logging.WARNING):
            deleted = cleanup_platform_dependents(UndeletableStore(), root, ["notes.md", "scripts/run.sh"])

        assert deleted == []
        assert (root / "notes.md").exists()
        assert (root / "scripts/run.sh").exists()
        assert len([r for r in caplog.records if "Could not delete" in r.getMessage()]) == 2


def test_skipped_path_already_in_canonical_stays_hashed():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots, canonical = _layout(Path(tmpdir))
        _write_file(canonical, "a.txt", "X")
        _write_file(roots["claude"], "a.txt", "Y")

        store = FileStore()
        result = consolidate_dependents(
            "review", collect_platform_dependents("review", roots, store), canonical, store
        )
        resolved = apply_dependent_resolutions(result, _decide(DependentResolution.SKIP), canonical, store)

        assert resolved.skipped == {"a.txt"}
        assert [(f.relative_path, f.hash) for f in resolved.files] == [("a.txt", compute_text_hash("X"))]
        assert resolved.cleanup == {}
        assert (roots["claude"] / "a.txt").read_text() == "Y"
