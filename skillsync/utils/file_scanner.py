"""File scanner — discover skills in the canonical store and platform folders."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from skillsync.platforms import HEAD_DOCUMENT, PlatformConfig, canonical_skills_root
from skillsync.utils.file_store import HOUSEKEEPING_DIRS

CANONICAL_SITE = "canonical"


def scan_skill_dirs(root: str | Path) -> list[str]:
    """Return the names of skill folders directly under ``root``.

    A skill folder holds a head document. Hidden and housekeeping folders
    are skipped.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    names = []
    for item in root.iterdir():
        if item.is_dir() and _should_include(item):
            names.append(item.name)
    return sorted(names)


def _should_include(path: Path) -> bool:
    if path.name.startswith(".") or path.name in HOUSEKEEPING_DIRS:
        return False
    return (path / HEAD_DOCUMENT).is_file()


@dataclass
class SkillIndex:
    """Which skills exist where, for one pass."""

    canonical: set[str] = field(default_factory=set)
    platforms: dict[str, set[str]] = field(default_factory=dict)

    def skill_names(self) -> list[str]:
        """Every known skill name, sorted."""
        names = set(self.canonical)
        for found in self.platforms.values():
            names |= found
        return sorted(names)

    def sites(self, skill_name: str) -> list[str]:
        """Where a skill exists: ``canonical`` first, then platforms in order."""
        sites = [CANONICAL_SITE] if skill_name in self.canonical else []
        sites.extend(name for name, found in self.platforms.items() if skill_name in found)
        return sites


def scan_skills(base_dir: str | Path, platforms: list[PlatformConfig]) -> SkillIndex:
    index = SkillIndex(canonical=set(scan_skill_dirs(canonical_skills_root(base_dir))))
    for platform in platforms:
        index.platforms[platform.name] = set(scan_skill_dirs(platform.skills_root(base_dir)))
    return index
