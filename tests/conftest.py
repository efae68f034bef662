"""Shared fixtures for the homestaff test suite.

Every test runs against a throwaway config file and a clean environment so
nothing reads or writes ``~/.homestaff``.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

_HOMESTAFF_ENV = (
    "HOMESTAFF_CONFIG",
    "HOMESTAFF_TAX_RATE",
    "HOMESTAFF_TRIAL_FEE",
    "HOMESTAFF_LOG_DIR",
    "HOMESTAFF_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Strip HOMESTAFF_* variables and point the config at a temp file."""
    for name in _HOMESTAFF_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOMESTAFF_CONFIG", str(tmp_path / "config.yaml"))


@pytest.fixture()
def config_path(tmp_path):
    return tmp_path / "config.yaml"


@pytest.fixture()
def restore_root_logger():
    """Undo handler and level changes made by configure_logging()."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    filters = {h: list(h.filters) for h in handlers}
    yield root
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and handler not in handlers:
            handler.close()
    root.handlers = handlers
    for handler, original in filters.items():
        handler.filters = original
    root.setLevel(level)
