"""Exceptions raised by skillsync."""


class SkillSyncError(Exception):
    """Base class for all skillsync errors."""


class ConfigError(SkillSyncError):
    """The configuration file is invalid or cannot be written."""


class DocumentParseError(SkillSyncError):
    """A skill document has a front-matter header that cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not parse {path}: {reason}")


class UnresolvedConflictError(SkillSyncError):
    """A conflict needs a decision but the run is non-interactive."""


class ResolutionError(SkillSyncError):
    """A decision provider returned an action that is not legal here."""
