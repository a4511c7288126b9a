"""
Error taxonomy for grid trading.

Each error class maps to one handling policy in the controller:
- ConfigError: invalid grid parameters, surfaced synchronously, never repaired
- PriceUnavailable: transient, grid skipped for the tick, no state change
- ExecutionFailure: stops crossing replay for the grid this tick
- PersistenceFailure: in-memory state stays authoritative, alert loudly
"""

from enum import StrEnum
from typing import Optional


class GridswapError(Exception):
    """Base class for all grid trading errors."""


class ConfigError(GridswapError, ValueError):
    """Invalid grid configuration (bounds, level count, level table)."""


class PriceUnavailable(GridswapError):
    """Price data could not be obtained for one or more tokens."""

    def __init__(self, message: str, token_ids: Optional[set[str]] = None):
        super().__init__(message)
        self.token_ids = token_ids or set()


class ExecutionErrorKind(StrEnum):
    """Sub-kinds of execution failure reported by the venue layer."""
    QUOTE_REJECTED = "quote_rejected"
    SIMULATION_FAILED = "simulation_failed"
    SEND_FAILED = "send_failed"
    CONFIRM_FAILED = "confirm_failed"
    NETWORK = "network"
    WALLET = "wallet"


_TRANSIENT_KINDS = frozenset({ExecutionErrorKind.NETWORK, ExecutionErrorKind.SEND_FAILED})


class ExecutionFailure(GridswapError):
    """A swap could not be executed."""

    def __init__(self, kind: ExecutionErrorKind, message: str, transaction_ref: Optional[str] = None):
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.transaction_ref = transaction_ref

    @property
    def transient(self) -> bool:
        """Whether the same swap may succeed if attempted again later."""
        return self.kind in _TRANSIENT_KINDS


class PersistenceFailure(GridswapError):
    """A checkpoint or trade record could not be written or read."""
