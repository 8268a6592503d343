"""Platform table — where each AI assistant keeps its skills.

Add a platform by adding one entry to ``PLATFORM_MAP``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

COMMON_DIR = ".agents-common"
COMMON_SKILLS_DIR = f"{COMMON_DIR}/skills"
HEAD_DOCUMENT = "SKILL.md"

# Platform name -> skills directory relative to the base directory
PLATFORM_MAP = {
    "claude": ".claude/skills",
    "codex": ".codex/skills",
    "kilo": ".kilocode/skills",
    "cursor": ".cursor/skills",
    "windsurf": ".windsurf/skills",
    "gemini": ".gemini/skills",
}

DEFAULT_PLATFORMS = ["claude", "codex"]


@dataclass(frozen=True)
class PlatformConfig:
    """One platform: its name, its top-level folder, and its skills folder."""

    name: str
    dir: str  # e.g. ".claude"
    skills_dir: str  # e.g. ".claude/skills"

    def root(self, base_dir: str | Path) -> Path:
        return Path(base_dir) / self.dir

    def skills_root(self, base_dir: str | Path) -> Path:
        return Path(base_dir) / self.skills_dir

    def document_path(self, base_dir: str | Path, skill_name: str) -> Path:
        return self.skills_root(base_dir) / skill_name / HEAD_DOCUMENT


def get_platform_configs(names: list[str] | None = None) -> list[PlatformConfig]:
    """Build platform configs for the given names (all platforms if omitted).

    Unknown names are logged and ignored. Order follows ``names``.
    """
    requested = names if names is not None else list(PLATFORM_MAP)
    configs = []
    invalid = []

    for name in requested:
        skills_dir = PLATFORM_MAP.get(name)
        if skills_dir is None:
            invalid.append(name)
            continue
        configs.append(
            PlatformConfig(name=name, dir=skills_dir.split("/")[0], skills_dir=skills_dir)
        )

    if invalid:
        logger.warning(
            "Ignoring unknown platforms: %s (valid: %s)",
            ", ".join(invalid),
            ", ".join(PLATFORM_MAP),
        )

    return configs


def canonical_skills_root(base_dir: str | Path) -> Path:
    return Path(base_dir) / COMMON_SKILLS_DIR


def canonical_document_path(base_dir: str | Path, skill_name: str) -> Path:
    return canonical_skills_root(base_dir) / skill_name / HEAD_DOCUMENT
