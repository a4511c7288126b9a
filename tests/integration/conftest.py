"""Shared fixtures for integration tests."""

import sys
from pathlib import Path

import pytest

# Ensure tests/integration is on sys.path so ``import helpers`` works
# regardless of how pytest is invoked.
_INTEGRATION_DIR = str(Path(__file__).resolve().parent)
if _INTEGRATION_DIR not in sys.path:
    sys.path.insert(0, _INTEGRATION_DIR)

from swap_db import DatabaseFactory, DatabaseSettings

from swapbot.executor import SwapExecutor
from swapbot.store import GridStore


@pytest.fixture
def db_url(tmp_path):
    """File-backed SQLite so a second factory sees the same data after a restart."""
    return f"sqlite:///{tmp_path / 'gridswap.db'}"


@pytest.fixture
def open_store(db_url):
    """Factory opening a fresh DatabaseFactory and GridStore on the same file."""
    opened = []

    def _open():
        db = DatabaseFactory(DatabaseSettings(database_url=db_url))
        db.create_tables()
        opened.append(db)
        return GridStore(db)

    yield _open
    for db in opened:
        db.dispose()


@pytest.fixture
def shadow_executor():
    """Shadow-mode SwapExecutor."""
    return SwapExecutor(shadow_mode=True)
