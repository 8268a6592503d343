"""Core data models for skills, their projections, and reconciliation results.

A skill has exactly one canonical document under ``.agents-common/skills``
and zero or more platform projections. A projection is either pointer-form
(its body is a single ``@relative/path`` reference to canonical) or raw-form
(its body is real content that has not been extracted yet).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

POINTER_MARKER = "@"


class MismatchType(Enum):
    """Which part of a projection has drifted from canonical."""

    BODY = "body"
    FRONTMATTER = "frontmatter"
    BOTH = "both"


class ConflictType(Enum):
    """How two platform projections of the same skill diverge."""

    CONTENT = "content"  # At least one holds real content, or targets differ
    FRONTMATTER = "frontmatter"  # Same canonical target, metadata differs


class MetadataResolution(Enum):
    USE_CANONICAL = "use-canonical"
    USE_TARGET = "use-target"
    SKIP_REMAINING = "skip-remaining"


class DependentResolution(Enum):
    USE_CANONICAL = "use-canonical"
    USE_PLATFORM = "use-platform"
    SKIP = "skip"
    ABORT = "abort"


class OutOfSyncAction(Enum):
    KEEP_PLATFORM = "keep-platform"
    KEEP_CANONICAL = "keep-canonical"
    ABORT = "abort"


class PairwiseResolution(Enum):
    USE_FIRST = "use-first"
    USE_SECOND = "use-second"
    USE_CANONICAL = "use-canonical"
    KEEP_BOTH = "keep-both"
    ABORT = "abort"


class StepOutcome(Enum):
    """Result of one reconciliation step, checked between skills."""

    CONTINUE = "continue"
    ABORT = "abort"


# --- Documents ---


@dataclass
class Document:
    """A parsed skill document: front-matter metadata plus body text."""

    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    path: Path | None = None

    @property
    def is_pointer(self) -> bool:
        return self.body.strip().startswith(POINTER_MARKER)

    @property
    def pointer(self) -> str | None:
        """The full pointer string (marker included) for pointer-form documents."""
        return self.body.strip() if self.is_pointer else None


@dataclass
class DependentFile:
    """A non-head file inside a skill folder."""

    relative_path: str  # Always uses "/" separators, e.g. "scripts/util.py"
    hash: str
    absolute_path: Path | None = None


# --- Conflicts ---


@dataclass
class MetadataConflict:
    """An identity field whose canonical and target values differ."""

    field: str
    canonical_value: Any
    target_value: Any
    skill_name: str = ""
    target_path: str = ""


@dataclass
class PairwiseConflict:
    """Two platform projections of one skill with differing normalized state."""

    skill_name: str
    platform_a: str
    platform_b: str
    path_a: Path
    path_b: Path
    hash_a: str
    hash_b: str
    conflict_type: ConflictType
    document_a: Document | None = None
    document_b: Document | None = None

    def summary(self) -> str:
        return (
            f"{self.skill_name}: {self.platform_a} and {self.platform_b} differ "
            f"({self.conflict_type.value})"
        )


@dataclass
class OutOfSyncSkill:
    """A platform projection whose state has drifted from canonical."""

    skill_name: str
    platform: str
    platform_path: Path
    canonical_path: Path
    mismatch_type: MismatchType
    is_pointer: bool
    platform_document: Document | None = None
    canonical_document: Document | None = None
    allow_keep_platform: bool = True
    # Every platform sharing this decision when several drifted at once
    platforms: list[str] = field(default_factory=list)

    def summary(self) -> str:
        where = ", ".join(self.platforms) if self.platforms else self.platform
        return f"{self.skill_name} [{where}]: {self.mismatch_type.value} out of sync"


@dataclass
class DependentConflict:
    """A dependent file with no automatic winner."""

    skill_name: str
    relative_path: str
    versions: dict[str, str]  # platform name -> content hash
    platform: str  # Default platform for a "use-platform" decision
    platform_path: Path
    platform_hash: str
    canonical_path: Path | None = None
    canonical_hash: str | None = None

    @property
    def key(self) -> str:
        return f"{self.skill_name}/{self.relative_path}"

    @property
    def conflicts_with_canonical(self) -> bool:
        return self.canonical_hash is not None and any(
            h != self.canonical_hash for h in self.versions.values()
        )


@dataclass
class DependentDecision:
    """A decision on a dependent conflict; ``platform`` picks the version to keep."""

    action: DependentResolution
    platform: str | None = None
