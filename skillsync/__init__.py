"""skillsync — keep one canonical copy of each agent skill in sync across platforms."""

__version__ = "0.1.0"
