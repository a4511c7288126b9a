"""Tests for swapbot grid store."""

import dataclasses
from datetime import datetime, timedelta, UTC
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from swap_db import GridStatus
from swapcore.errors import ConfigError, PersistenceFailure
from swapcore.events import CrossingEvent, Direction
from swapcore.intents import build_intent
from swapcore.records import TradeRecord
from swapcore.recompute import recompute
from swapcore.state import Checkpoint

from swapbot.store import GridNotFound, GridStore, LevelTableChanged, PortfolioSummary

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _sell_record(config, level=2, tx="sig-1", executed_at=None):
    intent = build_intent(config, None, CrossingEvent(config.grid_id, level, Direction.SELL))
    record = TradeRecord.from_intent(intent, intent.expected_output_amount, tx)
    if executed_at is not None:
        record = dataclasses.replace(record, executed_at=executed_at)
    return record


class TestCreateGrid:
    """Tests for grid creation."""

    def test_create_and_load(self, store, stored_grid):
        loaded = store.load_grid_config(stored_grid.grid_id)

        assert loaded == stored_grid
        assert loaded.levels == (100.0, 105.0, 110.0, 115.0, 120.0)
        assert loaded.source_decimals == 9
        assert loaded.target_decimals == 6

    def test_new_grid_has_empty_checkpoint(self, store, stored_grid):
        state = store.load_state(stored_grid.grid_id)

        assert not state.initialized
        assert state.last_observed_price is None
        assert (state.total_buys, state.total_sells, state.realized_profit) == (0, 0, 0.0)

    @pytest.mark.parametrize("lower,upper,levels,invest", [
        (120.0, 100.0, 4, 100.0),
        (100.0, 100.0, 4, 100.0),
        (100.0, 120.0, 1, 100.0),
        (0.0, 120.0, 4, 100.0),
        (100.0, 120.0, 4, 0.0),
    ])
    def test_invalid_parameters_write_nothing(self, store, lower, upper, levels, invest):
        with pytest.raises(ConfigError):
            store.create_grid("SOL", SOL, "USDC", USDC, lower, upper, levels, invest)

        assert store.summary().grids == ()

    def test_missing_grid(self, store):
        assert store.load_grid_config("missing") is None
        assert store.load_state("missing") is None


class TestLoadGridConfigs:
    """Tests for loading the grids to trade."""

    def test_active_only(self, store, stored_grid):
        paused = store.create_grid("SOL", SOL, "USDC", USDC, 90.0, 110.0, 4, 50.0)
        store.set_status(paused.grid_id, GridStatus.PAUSED)

        assert [c.grid_id for c in store.load_grid_configs()] == [stored_grid.grid_id]

    def test_restricted_to_ids(self, store, stored_grid):
        other = store.create_grid("SOL", SOL, "USDC", USDC, 90.0, 110.0, 4, 50.0)

        assert [c.grid_id for c in store.load_grid_configs([other.grid_id])] == [other.grid_id]

    def test_invalid_stored_grid_is_skipped(self, store, db, stored_grid):
        from swap_db.models import Grid

        with db.get_session() as session:
            session.get(Grid, stored_grid.grid_id).levels = {"0": 100.0, "1": 90.0, "2": 120.0}

        assert store.load_grid_configs() == []


class TestCheckpoint:
    """Tests for checkpoint writes."""

    def test_round_trip(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 2, 111.0, 0.5, 40.0))

        state = store.load_state(stored_grid.grid_id)
        assert state.current_level == 2
        assert state.last_observed_price == 111.0
        assert state.source_inventory == 0.5
        assert state.target_inventory == 40.0

    def test_same_checkpoint_twice(self, store, stored_grid):
        checkpoint = Checkpoint(stored_grid.grid_id, 2, 111.0, 0.5, 40.0)

        assert store.save_checkpoint(checkpoint)
        assert store.save_checkpoint(checkpoint)

        assert store.load_state(stored_grid.grid_id).checkpoint() == checkpoint

    def test_unknown_grid(self, store):
        assert not store.save_checkpoint(Checkpoint("missing", 1, 100.0))

    def test_checkpoint_against_edited_table_is_refused(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0))
        store.edit_grid(stored_grid.grid_id, upper_limit=200.0, lower_limit=100.0)

        with pytest.raises(LevelTableChanged):
            store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0, levels_version=0))

        assert store.load_state(stored_grid.grid_id).current_level == 0
        assert store.save_checkpoint(Checkpoint(stored_grid.grid_id, 0, 107.0, levels_version=1))
        assert store.load_state(stored_grid.grid_id).last_observed_price == 107.0


class TestTradeRecords:
    """Tests for trade history and counters."""

    def test_record_fill_updates_counters(self, store, stored_grid):
        record = _sell_record(stored_grid)

        assert store.record_fill(record)

        state = store.load_state(stored_grid.grid_id)
        assert state.total_sells == 1
        assert state.total_buys == 0
        assert state.realized_profit == pytest.approx(record.profit)

    def test_record_fill_is_idempotent(self, store, stored_grid):
        record = _sell_record(stored_grid)

        assert store.record_fill(record)
        assert not store.record_fill(record)

        assert store.load_state(stored_grid.grid_id).total_sells == 1
        assert len(store.trades(stored_grid.grid_id)) == 1

    def test_record_fill_writes_checkpoint_with_trade(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0))
        record = _sell_record(stored_grid)

        store.record_fill(record, Checkpoint(stored_grid.grid_id, 2, 112.0, 0.0, 25.0, levels_version=0))

        state = store.load_state(stored_grid.grid_id)
        assert (state.current_level, state.last_observed_price) == (2, 112.0)
        assert (state.source_inventory, state.target_inventory) == (0.0, 25.0)
        assert state.total_sells == 1

    def test_record_fill_keeps_trade_when_table_was_edited(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0))
        store.edit_grid(stored_grid.grid_id, upper_limit=200.0, lower_limit=100.0)

        assert store.record_fill(
            _sell_record(stored_grid), Checkpoint(stored_grid.grid_id, 2, 112.0, levels_version=0),
        )

        state = store.load_state(stored_grid.grid_id)
        assert state.current_level == 0
        assert state.total_sells == 1

    def test_buy_fill_has_no_profit(self, store, stored_grid):
        intent = build_intent(stored_grid, None, CrossingEvent(stored_grid.grid_id, 1, Direction.BUY))
        store.record_fill(TradeRecord.from_intent(intent, 0.24, "sig-buy"))

        state = store.load_state(stored_grid.grid_id)
        assert state.total_buys == 1
        assert state.realized_profit == 0.0
        assert store.trades(stored_grid.grid_id)[0].profit is None

    def test_append_and_increment_separately(self, store, stored_grid):
        assert store.append_trade_record(_sell_record(stored_grid))
        assert store.increment_counters(stored_grid.grid_id, sells=1, profit=1.0)

        assert store.trade_summary(stored_grid.grid_id)["sells"] == 1
        assert store.load_state(stored_grid.grid_id).total_sells == 1

    def test_record_without_transaction_ref_rejected(self, store, stored_grid):
        with pytest.raises(ValueError):
            store.append_trade_record(_sell_record(stored_grid, tx=None))

    def test_trades_round_trip(self, store, stored_grid):
        record = _sell_record(stored_grid)
        store.record_fill(record)

        loaded = store.trades(stored_grid.grid_id)[0]
        assert loaded.side == Direction.SELL
        assert loaded.intent_id == record.intent_id
        assert loaded.grid_level == 2
        assert loaded.input_token == "SOL"
        assert loaded.output_amount == pytest.approx(record.output_amount)

    def test_trades_newest_first(self, store, stored_grid):
        base = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
        for level, minutes in ((2, 0), (3, 5), (4, 10)):
            store.record_fill(_sell_record(stored_grid, level, f"sig-{level}", base + timedelta(minutes=minutes)))

        assert [t.grid_level for t in store.trades(stored_grid.grid_id)] == [4, 3, 2]
        assert [t.grid_level for t in store.trades(limit=2)] == [4, 3]


class TestEditGrid:
    """Tests for range and level-count edits."""

    def test_reprojects_from_stored_price(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0))

        result = store.edit_grid(stored_grid.grid_id, upper_limit=130.0, lower_limit=90.0)

        assert result.levels == (90.0, 100.0, 110.0, 120.0, 130.0)
        assert result.current_level == 1
        assert store.load_grid_config(stored_grid.grid_id).levels == result.levels
        assert store.load_state(stored_grid.grid_id).current_level == 1
        assert store.load_grid_config(stored_grid.grid_id).levels_version == stored_grid.levels_version + 1

    def test_level_count_change(self, store, stored_grid):
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 1, 106.0))

        result = store.edit_grid(stored_grid.grid_id, upper_limit=120.0, lower_limit=100.0, level_count=8)

        assert result.config.level_count == 8
        assert result.current_level == 2
        assert store.load_grid_config(stored_grid.grid_id).level_count == 8

    def test_never_observed_grid_has_no_level(self, store, stored_grid):
        result = store.edit_grid(stored_grid.grid_id, upper_limit=130.0, lower_limit=90.0)

        assert result.current_level is None

    def test_invalid_edit_changes_nothing(self, store, stored_grid):
        with pytest.raises(ConfigError):
            store.edit_grid(stored_grid.grid_id, upper_limit=90.0, lower_limit=130.0)

        assert store.load_grid_config(stored_grid.grid_id) == stored_grid

    def test_unknown_grid(self, store):
        with pytest.raises(GridNotFound):
            store.edit_grid("missing", upper_limit=130.0, lower_limit=90.0)

    def test_apply_recomputation(self, store, stored_grid):
        result = recompute(stored_grid, 140.0, 100.0, last_price=112.0)

        store.apply_recomputation(stored_grid.grid_id, result)

        assert store.load_grid_config(stored_grid.grid_id) == result.config
        assert store.load_grid_config(stored_grid.grid_id).levels_version == 1
        assert store.load_state(stored_grid.grid_id).current_level == 1


class TestDeleteGrid:
    """Tests for grid deletion."""

    def test_delete_removes_trades(self, store, stored_grid):
        store.record_fill(_sell_record(stored_grid))

        assert store.delete_grid(stored_grid.grid_id)

        assert store.load_grid_config(stored_grid.grid_id) is None
        assert store.trades() == []

    def test_delete_unknown(self, store):
        assert not store.delete_grid("missing")


class TestSummary:
    """Tests for the portfolio summary."""

    def test_totals(self, store, stored_grid):
        other = store.create_grid("SOL", SOL, "USDC", USDC, 90.0, 110.0, 4, 300.0)
        store.record_fill(_sell_record(stored_grid))
        store.save_checkpoint(Checkpoint(stored_grid.grid_id, 2, 110.0, 0.0, 125.0))
        store.set_status(other.grid_id, GridStatus.PAUSED)

        summary = store.summary()

        assert len(summary.grids) == 2
        assert summary.total_invested == 400.0
        assert summary.total_sells == 1
        assert summary.active_grids == 1
        assert summary.total_value == pytest.approx(125.0)
        assert summary.profit_percentage == pytest.approx(summary.total_profit / 400.0 * 100)

    def test_profit_percentage_without_investment(self):
        summary = PortfolioSummary(
            grids=(), total_invested=0.0, total_profit=0.0, total_buys=0,
            total_sells=0, total_value=0.0, active_grids=0,
        )
        assert summary.profit_percentage == 0.0


class TestPersistenceFailure:
    """Database errors surface as PersistenceFailure."""

    @pytest.fixture
    def broken_store(self):
        db = MagicMock()
        db.get_session.side_effect = OperationalError("SELECT 1", {}, Exception("database is locked"))
        return GridStore(db)

    def test_read_failure(self, broken_store):
        with pytest.raises(PersistenceFailure, match="database is locked"):
            broken_store.load_state("g1")

    def test_write_failure(self, broken_store):
        with pytest.raises(PersistenceFailure):
            broken_store.save_checkpoint(Checkpoint("g1", 1, 100.0))

    def test_config_errors_are_not_wrapped(self, store, stored_grid):
        with pytest.raises(ConfigError):
            store.edit_grid(stored_grid.grid_id, upper_limit=100.0, lower_limit=100.0)
