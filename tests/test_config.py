"""Tests for persisted configuration and the platform table."""

import json
import tempfile
from pathlib import Path

import pytest

from skillsync.config import (
    PLATFORMS_ENV,
    SyncConfig,
    config_path,
    detect_available_platforms,
    enabled_platforms,
    ensure_config,
    read_config,
    write_config,
)
from skillsync.errors import ConfigError
from skillsync.platforms import get_platform_configs


def _write_raw(base: Path, data) -> None:
    path = config_path(base)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))


def test_write_and_read():
    with tempfile.TemporaryDirectory() as tmpdir:
        write_config(tmpdir, SyncConfig(platforms=["claude", "cursor"]))
        config = read_config(tmpdir)
        assert config.version == 1
        assert config.platforms == ["claude", "cursor"]


def test_read_missing():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert read_config(tmpdir) is None


@pytest.mark.parametrize(
    "data",
    [
        "{not json",
        {"version": 2, "platforms": ["claude"]},
        {"version": 1, "platforms": []},
        {"version": 1, "platforms": "claude"},
        {"version": 1, "platforms": [""]},
    ],
)
def test_read_invalid_returns_none(data):
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_raw(Path(tmpdir), data)
        assert read_config(tmpdir) is None


def test_write_rejects_unknown_platform():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            write_config(tmpdir, SyncConfig(platforms=["vim"]))


def test_write_rejects_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            write_config(tmpdir, SyncConfig(platforms=[]))


def test_detect_available_platforms():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        (base / ".claude").mkdir()
        (base / ".kilocode").mkdir()
        assert detect_available_platforms(base) == ["claude", "kilo"]


def test_ensure_config_uses_detected():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        (base / ".cursor").mkdir()
        assert ensure_config(base).platforms == ["cursor"]
        assert read_config(base).platforms == ["cursor"]


def test_ensure_config_asks_chooser():
    with tempfile.TemporaryDirectory() as tmpdir:
        offered = []

        def choose(available):
            offered.extend(available)
            return ["gemini"]

        assert ensure_config(tmpdir, choose).platforms == ["gemini"]
        assert "claude" in offered


def test_ensure_config_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert ensure_config(tmpdir).platforms == ["claude", "codex"]


def test_ensure_config_keeps_existing():
    with tempfile.TemporaryDirectory() as tmpdir:
        write_config(tmpdir, SyncConfig(platforms=["windsurf"]))
        (Path(tmpdir) / ".claude").mkdir()
        assert ensure_config(tmpdir).platforms == ["windsurf"]


def test_environment_override(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv(PLATFORMS_ENV, "codex, gemini")
        assert enabled_platforms(tmpdir) == ["codex", "gemini"]
        assert read_config(tmpdir) is None


def test_unknown_platform_names_are_ignored():
    configs = get_platform_configs(["claude", "nope", "kilo"])
    assert [c.name for c in configs] == ["claude", "kilo"]
    assert configs[1].skills_dir == ".kilocode/skills"
    assert configs[1].dir == ".kilocode"
