"""Grid controller: the tick-driven grid state machine.

The controller owns every GridState. Each tick it fetches prices for all
tracked grids in one batch, locates each grid's level, replays the crossings
since the last tick in order through the executor, and checkpoints the
result. Grids are isolated: one grid's failure never affects another.

Example:
    controller = GridController(store, price_client, executor, notifier)
    await controller.start()
    run_task = asyncio.create_task(controller.run())
    ...
    await controller.stop()
    await run_task
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import StrEnum
from typing import Iterable, Optional, Protocol

from swapcore.config import GridConfig
from swapcore.crossing import resolve
from swapcore.errors import PersistenceFailure, PriceUnavailable
from swapcore.intents import build_intent
from swapcore.levels import locate
from swapcore.records import TradeRecord
from swapcore.recompute import Recomputation, recompute
from swapcore.state import GridSnapshot, GridState

from swapbot.executor import SwapExecutor
from swapbot.notifier import Notifier
from swapbot.reconciler import Reconciler
from swapbot.store import GridNotFound, GridStore, LevelTableChanged


logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    """Batch price lookup; missing tokens map to None."""

    async def get_prices(self, token_ids: Iterable[str]) -> dict[str, Optional[float]]: ...


class GridTickStatus(StrEnum):
    """What happened to one grid during a tick."""
    INITIALIZED = "initialized"
    UNCHANGED = "unchanged"
    TRADED = "traded"
    PARTIAL = "partial"
    STOPPED = "stopped"
    NO_PRICE = "no_price"
    REMOVED = "removed"
    ERROR = "error"


@dataclass
class GridOutcome:
    """Result of processing one grid in one tick."""

    grid_id: str
    status: GridTickStatus
    price: Optional[float] = None
    previous_level: Optional[int] = None
    observed_level: Optional[int] = None
    current_level: Optional[int] = None
    crossings: int = 0
    executed: int = 0
    failed_level: Optional[int] = None
    failed_direction: Optional[str] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    persistence_errors: int = 0
    levels_reloaded: bool = False


@dataclass
class TickReport:
    """Result of one tick across all grids."""

    tick: int
    skipped: bool = False
    price_failure: bool = False
    outcomes: dict[str, GridOutcome] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __post_init__(self):
        if self.started_at is None:
            self.started_at = datetime.now(UTC)

    @property
    def trades_executed(self) -> int:
        return sum(o.executed for o in self.outcomes.values())

    @property
    def failed_grids(self) -> list[str]:
        """Grids whose crossing replay stopped on an error this tick."""
        return [
            gid for gid, o in self.outcomes.items()
            if o.status in (GridTickStatus.PARTIAL, GridTickStatus.ERROR)
        ]


@dataclass
class _GridEntry:
    config: GridConfig
    state: GridState
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def pair_price(prices: dict[str, Optional[float]], config: GridConfig) -> Optional[float]:
    """Price of the source token in target-token units, or None if either side is unusable."""
    source = prices.get(config.source_token_id)
    target = prices.get(config.target_token_id)
    if source is None or target is None:
        return None
    if not (math.isfinite(source) and math.isfinite(target)) or source <= 0 or target <= 0:
        return None
    return source / target


class GridController:
    """Drives every tracked grid from price observations to executed swaps.

    Concurrency rules:
    - one tick at a time; a tick that starts while another runs is skipped and counted
    - one crossing sequence per grid at a time (per-grid lock)
    - at most ``max_concurrent_grids`` grids processed in parallel

    Shutdown sets a stopping flag that is checked between crossings, then
    waits for the in-flight tick. A swap already being executed is never
    cancelled.
    """

    def __init__(
        self,
        store: GridStore,
        price_source: PriceSource,
        executor: SwapExecutor,
        notifier: Optional[Notifier] = None,
        reconciler: Optional[Reconciler] = None,
        poll_interval: float = 5.0,
        max_concurrent_grids: int = 8,
        price_outage_alert_ticks: int = 12,
    ):
        """Initialize controller.

        Args:
            store: Persistence for checkpoints and trade records.
            price_source: Batch price lookup.
            executor: Swap executor (live or shadow).
            notifier: Alert sender; log-only if omitted.
            reconciler: Startup reconciler; built from ``store`` if omitted.
            poll_interval: Seconds between ticks in ``run``.
            max_concurrent_grids: Bound on grids processed in parallel.
            price_outage_alert_ticks: Consecutive failed price fetches before alerting.
        """
        self._store = store
        self._price_source = price_source
        self._executor = executor
        self._notifier = notifier or Notifier()
        self._reconciler = reconciler or Reconciler(store)
        self._poll_interval = poll_interval
        self._semaphore = asyncio.Semaphore(max_concurrent_grids)
        self._price_outage_alert_ticks = price_outage_alert_ticks

        self._grids: dict[str, _GridEntry] = {}
        self._tick_lock = asyncio.Lock()
        self._tick_tasks: set[asyncio.Task] = set()
        self._stop_event = asyncio.Event()
        self._running = False
        self._stopping = False

        self._tick_count = 0
        self._skipped_ticks = 0
        self._consecutive_price_failures = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def grid_ids(self) -> list[str]:
        return list(self._grids)

    @property
    def skipped_ticks(self) -> int:
        """Ticks skipped because the previous one was still running."""
        return self._skipped_ticks

    @property
    def consecutive_price_failures(self) -> int:
        return self._consecutive_price_failures

    # Lifecycle

    async def start(self, grid_ids: Optional[list[str]] = None) -> None:
        """Load active grids and seed their state from the last checkpoint.

        A grid whose checkpoint cannot be read is not tracked.

        Raises:
            PersistenceFailure: If the grid list itself cannot be loaded
        """
        if self._running:
            logger.warning("Controller already running")
            return

        for config in self._store.load_grid_configs(grid_ids):
            try:
                state, result = self._reconciler.reconcile_startup(config)
            except PersistenceFailure as e:
                self._notifier.alert(
                    f"Swapbot: grid {config.grid_id} not started, checkpoint unreadable: {e}",
                    error_key=f"persistence:{config.grid_id}",
                )
                continue
            for error in result.errors:
                logger.warning(f"Grid {config.grid_id} reconciliation: {error}")
            self.add_grid(config, state)

        self._stopping = False
        self._stop_event.clear()
        self._running = True
        logger.info(f"Grid controller started with {len(self._grids)} grids")

    async def run(self) -> None:
        """Trigger a tick every ``poll_interval`` seconds until stopped.

        Ticks are started on a fixed cadence; a tick that overlaps a slow
        predecessor is skipped by ``process_tick``.
        """
        while self._running and not self._stopping:
            task = asyncio.create_task(self._run_tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except TimeoutError:
                pass

        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks)

    async def stop(self) -> None:
        """Stop after the in-flight tick finishes."""
        if not self._running:
            return

        logger.info("Stopping grid controller")
        self._stopping = True
        self._stop_event.set()

        # Wait for the running tick without cancelling it
        async with self._tick_lock:
            pass
        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks)

        self._running = False
        logger.info("Grid controller stopped")

    async def _run_tick(self) -> None:
        try:
            await self.process_tick()
        except Exception as e:
            self._notifier.alert_exception("tick", e, error_key="tick")

    # Tick

    async def process_tick(self) -> TickReport:
        """Run one monitoring/execution cycle across all tracked grids."""
        if self._stopping:
            return TickReport(tick=self._tick_count, skipped=True)

        if self._tick_lock.locked():
            self._skipped_ticks += 1
            logger.warning(f"Previous tick still running, skipping (skipped {self._skipped_ticks} so far)")
            return TickReport(tick=self._tick_count, skipped=True)

        async with self._tick_lock:
            self._tick_count += 1
            report = TickReport(tick=self._tick_count)
            entries = dict(self._grids)

            if entries:
                prices = await self._fetch_prices(entries)
                if prices is None:
                    report.price_failure = True
                else:
                    outcomes = await asyncio.gather(
                        *(self._process_grid_isolated(grid_id, entry, prices) for grid_id, entry in entries.items())
                    )
                    report.outcomes = {o.grid_id: o for o in outcomes}

            report.finished_at = datetime.now(UTC)
            if report.trades_executed or report.failed_grids:
                logger.info(
                    f"Tick {report.tick}: {report.trades_executed} swaps executed, "
                    f"failed grids: {report.failed_grids or 'none'}"
                )
            return report

    async def _fetch_prices(self, entries: dict[str, _GridEntry]) -> Optional[dict[str, Optional[float]]]:
        token_ids = set()
        for entry in entries.values():
            token_ids.add(entry.config.source_token_id)
            token_ids.add(entry.config.target_token_id)

        try:
            prices = await self._price_source.get_prices(token_ids)
        except PriceUnavailable as e:
            self._consecutive_price_failures += 1
            logger.warning(
                f"Price fetch failed ({self._consecutive_price_failures} in a row), "
                f"no grids updated this tick: {e}"
            )
            if self._consecutive_price_failures >= self._price_outage_alert_ticks:
                self._notifier.alert(
                    f"Swapbot: prices unavailable for {self._consecutive_price_failures} consecutive ticks, "
                    f"trading is paused: {e}",
                    error_key="price_outage",
                )
            return None

        if self._consecutive_price_failures:
            logger.info(f"Prices recovered after {self._consecutive_price_failures} failed fetches")
            self._notifier.resolve(
                "price_outage",
                f"Swapbot: prices recovered after {self._consecutive_price_failures} failed fetches",
            )
        self._consecutive_price_failures = 0
        return prices

    async def _process_grid_isolated(
        self, grid_id: str, entry: _GridEntry, prices: dict[str, Optional[float]]
    ) -> GridOutcome:
        async with self._semaphore:
            try:
                return await self._process_grid(grid_id, entry, prices)
            except Exception as e:
                self._notifier.alert_exception(f"grid {grid_id}", e, error_key=f"grid:{grid_id}")
                return GridOutcome(grid_id=grid_id, status=GridTickStatus.ERROR, error=str(e))

    async def _process_grid(
        self, grid_id: str, entry: _GridEntry, prices: dict[str, Optional[float]]
    ) -> GridOutcome:
        async with entry.lock:
            if self._grids.get(grid_id) is not entry:
                return GridOutcome(grid_id=grid_id, status=GridTickStatus.REMOVED)

            config, state = entry.config, entry.state
            price = pair_price(prices, config)
            if price is None:
                logger.info(f"Grid {grid_id} ({config.pair}): no price this tick, skipped")
                return GridOutcome(grid_id=grid_id, status=GridTickStatus.NO_PRICE)

            observed_level = locate(config.levels, price)
            outcome = GridOutcome(
                grid_id=grid_id,
                status=GridTickStatus.UNCHANGED,
                price=price,
                previous_level=state.current_level,
                observed_level=observed_level,
            )

            if not state.initialized:
                state.initialize(observed_level, price)
                logger.info(f"Grid {grid_id} ({config.pair}): first price {price:.6f}, level {observed_level}")
                outcome.status = GridTickStatus.INITIALIZED
            else:
                state.observe(price)
                events = resolve(grid_id, state.current_level, observed_level)
                outcome.crossings = len(events)
                if events:
                    await self._replay(entry, events, outcome)

            outcome.current_level = state.current_level
            self._checkpoint(entry, outcome)
            return outcome

    def _checkpoint(self, entry: _GridEntry, outcome: GridOutcome) -> None:
        checkpoint = entry.state.checkpoint(entry.config.levels_version)
        try:
            self._persist(outcome, "checkpoint", self._store.save_checkpoint, checkpoint)
        except LevelTableChanged:
            self._reload_levels(entry, outcome)

    def _reload_levels(self, entry: _GridEntry, outcome: GridOutcome) -> None:
        """Adopt a level table edited outside this process.

        The level is reprojected from the last observed price, the same way
        an edit through ``apply_config_update`` does.
        """
        grid_id = entry.config.grid_id
        try:
            config = self._store.load_grid_config(grid_id)
        except PersistenceFailure as e:
            self._persist_failed(outcome, "level table reload", e)
            return
        if config is None:
            logger.warning(f"Grid {grid_id}: row deleted, checkpoint not saved")
            return

        price = entry.state.last_observed_price
        level = locate(config.levels, price) if price is not None else None
        logger.warning(
            f"Grid {grid_id}: level table edited externally (version {entry.config.levels_version} -> "
            f"{config.levels_version}), range {config.lower_limit}-{config.upper_limit}, "
            f"level {entry.state.current_level} reprojected to {level}"
        )
        entry.config = config
        entry.state.reproject(level)
        outcome.levels_reloaded = True
        outcome.current_level = level
        checkpoint = entry.state.checkpoint(config.levels_version)
        self._persist(outcome, "checkpoint", self._store.save_checkpoint, checkpoint)

    async def _replay(self, entry: _GridEntry, events: list, outcome: GridOutcome) -> None:
        """Execute crossings in order, stopping at the first failure."""
        config, state = entry.config, entry.state
        outcome.status = GridTickStatus.TRADED

        for index, event in enumerate(events):
            if self._stopping:
                logger.warning(
                    f"Grid {config.grid_id}: shutdown requested, {len(events) - index} crossings "
                    f"left from level {event.level} {event.direction}"
                )
                outcome.status = GridTickStatus.STOPPED
                return

            intent = build_intent(config, state, event)
            try:
                result = await self._executor.execute(intent)
            except Exception as e:
                self._notifier.alert_exception(
                    f"grid {config.grid_id} {event.direction} level {event.level}", e,
                    error_key=f"execute:{config.grid_id}",
                )
                self._mark_failed(outcome, event, None, str(e))
                return

            if not result.success:
                logger.warning(
                    f"Grid {config.grid_id}: {event.direction} at level {event.level} failed "
                    f"({result.error_kind}): {result.error}; "
                    f"{len(events) - index - 1} later crossings deferred to next tick"
                    + (f", transaction {result.transaction_ref}" if result.transaction_ref else "")
                )
                self._mark_failed(outcome, event, result.error_kind, result.error)
                return

            state.apply_fill(intent, result.executed_output_amount)
            outcome.executed += 1
            logger.info(
                f"Grid {config.grid_id}: {event.direction} level {event.level} at "
                f"{intent.level_price:.6f} ({intent.pair}) tx={result.transaction_ref}"
            )
            record = TradeRecord.from_intent(intent, result.executed_output_amount, result.transaction_ref)
            self._persist(
                outcome, f"trade {intent.intent_id}", self._store.record_fill,
                record, state.checkpoint(config.levels_version),
            )

    @staticmethod
    def _mark_failed(outcome: GridOutcome, event, error_kind, error: Optional[str]) -> None:
        outcome.status = GridTickStatus.PARTIAL
        outcome.failed_level = event.level
        outcome.failed_direction = str(event.direction)
        outcome.error_kind = str(error_kind) if error_kind else None
        outcome.error = error

    def _persist(self, outcome: GridOutcome, what: str, write, *args) -> None:
        key = f"persistence:{outcome.grid_id}"
        try:
            write(*args)
        except PersistenceFailure as e:
            self._persist_failed(outcome, what, e)
        else:
            self._notifier.resolve(key, f"Swapbot: grid {outcome.grid_id} persistence recovered")

    def _persist_failed(self, outcome: GridOutcome, what: str, error: PersistenceFailure) -> None:
        outcome.persistence_errors += 1
        self._notifier.alert(
            f"Swapbot: grid {outcome.grid_id} {what} not persisted, "
            f"in-memory state stays authoritative: {error}",
            error_key=f"persistence:{outcome.grid_id}",
        )

    # Administration

    def add_grid(self, config: GridConfig, state: Optional[GridState] = None) -> None:
        """Start tracking a grid. Without a state it starts uninitialized."""
        if config.grid_id in self._grids:
            raise ValueError(f"Grid {config.grid_id} is already tracked")
        self._grids[config.grid_id] = _GridEntry(config=config, state=state or GridState(grid_id=config.grid_id))
        logger.info(f"Tracking grid {config.grid_id} ({config.pair})")

    async def remove_grid(self, grid_id: str) -> bool:
        """Stop tracking a grid once its in-flight crossing sequence finishes."""
        entry = self._grids.get(grid_id)
        if entry is None:
            return False
        async with entry.lock:
            self._grids.pop(grid_id, None)
        logger.info(f"Stopped tracking grid {grid_id}")
        return True

    async def apply_config_update(
        self,
        grid_id: str,
        upper_limit: float,
        lower_limit: float,
        level_count: Optional[int] = None,
    ) -> Recomputation:
        """Change a tracked grid's range and/or level count.

        The new level table and the reprojected level are persisted first and
        then swapped into memory together under the grid lock.

        Raises:
            GridNotFound: If the grid is not tracked
            ConfigError: If the new parameters are invalid; nothing changes
            PersistenceFailure: If the update could not be stored; nothing changes
        """
        entry = self._grids.get(grid_id)
        if entry is None:
            raise GridNotFound(f"Grid {grid_id} is not tracked")

        async with entry.lock:
            result = recompute(
                entry.config, upper_limit, lower_limit, level_count,
                last_price=entry.state.last_observed_price,
            )
            self._store.apply_recomputation(grid_id, result)
            entry.config = result.config
            entry.state.reproject(result.current_level)
        return result

    def snapshot(self, grid_id: str) -> GridSnapshot:
        """Read-only copy of one grid's state."""
        entry = self._grids.get(grid_id)
        if entry is None:
            raise GridNotFound(f"Grid {grid_id} is not tracked")
        return entry.state.snapshot()

    def snapshots(self) -> dict[str, GridSnapshot]:
        """Read-only copies of every tracked grid's state."""
        return {gid: entry.state.snapshot() for gid, entry in self._grids.items()}

    def config(self, grid_id: str) -> GridConfig:
        """Current configuration of a tracked grid."""
        entry = self._grids.get(grid_id)
        if entry is None:
            raise GridNotFound(f"Grid {grid_id} is not tracked")
        return entry.config
