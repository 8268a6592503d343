"""Persisted configuration — which platforms a base directory syncs to.

Stored in ``.agents-common/config.json``::

    {"version": 1, "platforms": ["claude", "codex"]}

``SKILLSYNC_PLATFORMS`` (comma-separated) overrides the file for one run.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import ConfigError
from skillsync.platforms import COMMON_DIR, DEFAULT_PLATFORMS, PLATFORM_MAP, get_platform_configs

logger = logging.getLogger(__name__)

CONFIG_PATH = f"{COMMON_DIR}/config.json"
CONFIG_VERSION = 1
PLATFORMS_ENV = "SKILLSYNC_PLATFORMS"

PlatformChooser = Callable[[list[str]], list[str]]


@dataclass
class SyncConfig:
    version: int = CONFIG_VERSION
    platforms: list[str] = field(default_factory=list)


def config_path(base_dir: str | Path) -> Path:
    return Path(base_dir) / CONFIG_PATH


def read_config(base_dir: str | Path) -> SyncConfig | None:
    """Load the config file. Missing or invalid files give None."""
    path = config_path(base_dir)
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Config file %s is corrupted (%s), it will be recreated", path, e)
        return None

    try:
        return _validate(data, strict=False)
    except ConfigError as e:
        logger.warning("Invalid config in %s: %s", path, e)
        return None


def write_config(base_dir: str | Path, config: SyncConfig) -> Path:
    """Validate and write the config file. Raises ``ConfigError`` if invalid."""
    _validate({"version": config.version, "platforms": config.platforms}, strict=True)

    path = config_path(base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps({"version": config.version, "platforms": config.platforms}, indent=2) + "\n",
        encoding="utf-8",
    )
    logger.info("Wrote %s", path)
    return path


def detect_available_platforms(base_dir: str | Path) -> list[str]:
    """Platforms whose top-level folder (e.g. ``.claude``) already exists."""
    return [
        platform.name
        for platform in get_platform_configs()
        if platform.root(base_dir).is_dir()
    ]


def ensure_config(base_dir: str | Path, choose: PlatformChooser | None = None) -> SyncConfig:
    """Return the stored config, creating it on first use.

    A new config enables the platforms whose folders exist. With none
    present, ``choose`` is asked to pick from every known platform, and
    without a chooser the defaults are used.
    """
    existing = read_config(base_dir)
    if existing is not None:
        return existing

    platforms = detect_available_platforms(base_dir)
    if not platforms and choose is not None:
        platforms = choose(list(PLATFORM_MAP))
    if not platforms:
        platforms = list(DEFAULT_PLATFORMS)

    config = SyncConfig(platforms=platforms)
    write_config(base_dir, config)
    return config


def enabled_platforms(base_dir: str | Path, choose: PlatformChooser | None = None) -> list[str]:
    """Platform names for this run, honouring the environment override."""
    override = os.environ.get(PLATFORMS_ENV)
    if override:
        names = [name.strip() for name in override.split(",") if name.strip()]
        if names:
            logger.debug("Using platforms from %s: %s", PLATFORMS_ENV, ", ".join(names))
            return names
    return ensure_config(base_dir, choose).platforms


def _validate(data: object, strict: bool) -> SyncConfig:
    if not isinstance(data, dict):
        raise ConfigError("config must be a JSON object")

    version = data.get("version")
    if version != CONFIG_VERSION:
        raise ConfigError(f"unsupported version {version!r} (expected {CONFIG_VERSION})")

    platforms = data.get("platforms")
    if not isinstance(platforms, list):
        raise ConfigError("platforms must be a list")
    if not platforms:
        raise ConfigError("platforms cannot be empty")

    for name in platforms:
        if not isinstance(name, str) or not name.strip():
            raise ConfigError("platform names must be non-empty strings")
        # Unknown names in an existing file are ignored later with a warning
        if strict and name not in PLATFORM_MAP:
            raise ConfigError(f"unknown platform {name!r}")

    return SyncConfig(version=version, platforms=list(platforms))
