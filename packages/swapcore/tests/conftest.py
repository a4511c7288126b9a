"""Shared fixtures for swapcore tests."""

import pytest

from swapcore.config import GridConfig

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def make_config():
    """Factory for grid configs over SOL/USDC."""
    def _make(**overrides):
        params = dict(
            grid_id="g1",
            source_token_id=SOL,
            source_token_symbol="SOL",
            target_token_id=USDC,
            target_token_symbol="USDC",
            lower_limit=100.0,
            upper_limit=120.0,
            level_count=4,
            quantity_invested=100.0,
        )
        params.update(overrides)
        return GridConfig(**params)
    return _make


@pytest.fixture
def grid_config(make_config):
    """Default 100-120 grid with 4 levels."""
    return make_config()
