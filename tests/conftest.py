import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo global logging configuration (e.g. cli.main's basicConfig) between tests."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
