"""Test fixtures for database tests."""

from datetime import datetime, timedelta, UTC

import pytest

from swap_db.database import DatabaseFactory
from swap_db.settings import DatabaseSettings
from swap_db.models import Grid, Trade

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def db_settings():
    """In-memory SQLite settings for testing."""
    return DatabaseSettings(
        db_type="sqlite",
        db_name=":memory:",
        echo_sql=False,
    )


@pytest.fixture
def db(db_settings):
    """Create fresh database for each test."""
    database = DatabaseFactory(db_settings)
    database.create_tables()
    yield database
    database.drop_tables()


@pytest.fixture
def session(db):
    """Provide a session for each test.

    Tests that raise IntegrityError should call session.rollback() after.
    """
    session = db.session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_grid():
    """Factory for unsaved SOL/USDC grid rows over 100-120."""
    def _make(**overrides):
        params = dict(
            source_token_symbol="SOL",
            source_token_id=SOL,
            target_token_symbol="USDC",
            target_token_id=USDC,
            lower_limit=100.0,
            upper_limit=120.0,
            level_count=4,
            quantity_invested=100.0,
            levels={"0": 100.0, "1": 105.0, "2": 110.0, "3": 115.0, "4": 120.0},
        )
        params.update(overrides)
        return Grid(**params)
    return _make


@pytest.fixture
def sample_grid(session, make_grid):
    """Create a sample grid for testing."""
    grid = make_grid()
    session.add(grid)
    session.flush()
    return grid


@pytest.fixture
def make_trade():
    """Factory for unsaved trade rows."""
    base_time = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    def _make(grid_id, index=0, **overrides):
        params = dict(
            grid_id=grid_id,
            intent_id=f"intent{index:010d}",
            side="SELL",
            grid_level=2,
            input_token="SOL",
            output_token="USDC",
            input_token_id=SOL,
            output_token_id=USDC,
            input_amount=0.2272,
            output_amount=25.0,
            level_price=110.0,
            profit=1.136,
            transaction_ref=f"sig-{index}",
            executed_at=base_time + timedelta(minutes=index),
        )
        params.update(overrides)
        return Trade(**params)
    return _make
