"""File store — the only place the engine touches the disk.

``FileStore`` reads and writes skill documents and dependent files.
``DryRunFileStore`` records the same operations without performing them.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import DocumentParseError
from skillsync.models.skill import Document
from skillsync.platforms import HEAD_DOCUMENT
from skillsync.sync.frontmatter import parse_document, render_document
from skillsync.sync.hashing import compute_file_hash

logger = logging.getLogger(__name__)

# Directories never treated as part of a skill
HOUSEKEEPING_DIRS = {
    ".git", ".github", "node_modules", "dist", "build", "coverage",
    ".vscode", ".idea", "__pycache__",
}

# Files never treated as dependent files
SKIP_FILES = {HEAD_DOCUMENT, ".DS_Store"}


class FileStore:
    """Filesystem-backed document and file operations."""

    def exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def read_document(self, path: str | Path) -> Document | None:
        """Read and parse a skill document, or None if it does not exist.

        Raises ``DocumentParseError`` for a corrupt header and ``OSError``
        for an unreadable file.
        """
        path = Path(path)
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            raise DocumentParseError(path, "not valid UTF-8") from None
        return parse_document(text, path)

    def write_document(self, path: str | Path, document: Document) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_document(document), encoding="utf-8")
        logger.debug("Wrote %s", path)

    def list_dependent_files(self, skill_dir: str | Path) -> list[str]:
        """Relative paths of every dependent file under a skill folder.

        Skips head documents and housekeeping directories. Paths use ``/``
        and are sorted.
        """
        root = Path(skill_dir)
        if not root.is_dir():
            return []

        found = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in HOUSEKEEPING_DIRS)
            for name in filenames:
                if name in SKIP_FILES:
                    continue
                full = Path(dirpath) / name
                found.append(full.relative_to(root).as_posix())
        return sorted(found)

    def hash_file(self, path: str | Path) -> str:
        return compute_file_hash(path)

    def read_text(self, path: str | Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def copy_file(self, source: str | Path, target: str | Path) -> None:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        logger.debug("Copied %s -> %s", source, target)

    def delete_file(self, path: str | Path) -> None:
        Path(path).unlink()
        logger.debug("Deleted %s", path)

    def ensure_dir(self, path: str | Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def prune_empty_dirs(self, root: str | Path) -> None:
        """Remove empty directories below ``root`` (``root`` itself is kept)."""
        root = Path(root)
        if not root.is_dir():
            return
        for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
            current = Path(dirpath)
            if current == root:
                continue
            try:
                if not any(current.iterdir()):
                    current.rmdir()
            except OSError:
                logger.debug("Could not remove directory %s", current, exc_info=True)


@dataclass
class PlannedOperation:
    """A change a dry run would have made."""

    kind: str  # write | copy | delete | mkdir
    path: str
    source: str = ""


@dataclass
class DryRunFileStore(FileStore):
    """A store that records changes instead of making them.

    Written documents are kept in an overlay so later reads in the same
    pass see them. Copies and deletions are only recorded.
    """

    planned: list[PlannedOperation] = field(default_factory=list)
    _overlay: dict[Path, Document] = field(default_factory=dict)

    def exists(self, path: str | Path) -> bool:
        return Path(path).resolve() in self._overlay or super().exists(path)

    def read_document(self, path: str | Path) -> Document | None:
        key = Path(path).resolve()
        if key in self._overlay:
            return self._overlay[key]
        return super().read_document(path)

    def write_document(self, path: str | Path, document: Document) -> None:
        self._overlay[Path(path).resolve()] = document
        self.planned.append(PlannedOperation(kind="write", path=str(path)))
        logger.info("[dry-run] Would write %s", path)

    def copy_file(self, source: str | Path, target: str | Path) -> None:
        self.planned.append(PlannedOperation(kind="copy", path=str(target), source=str(source)))
        logger.info("[dry-run] Would copy %s -> %s", source, target)

    def delete_file(self, path: str | Path) -> None:
        self.planned.append(PlannedOperation(kind="delete", path=str(path)))
        logger.info("[dry-run] Would delete %s", path)

    def ensure_dir(self, path: str | Path) -> None:
        self.planned.append(PlannedOperation(kind="mkdir", path=str(path)))

    def prune_empty_dirs(self, root: str | Path) -> None:
        pass
