"""Configuration models for swapbot.

Loads bot configuration from YAML file with Pydantic validation.
Wallet secrets come from the environment, never from the YAML file.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jupiter_adapter.rpc_client import COMMITMENT_ORDER, DEFAULT_RPC_URL
from jupiter_adapter.swap_client import DEFAULT_SLIPPAGE_BPS


class JupiterConfig(BaseModel):
    """Venue endpoints and execution parameters."""

    price_url: str = Field(default="https://api.jup.ag/price/v2", description="Jupiter price API")
    swap_api_url: str = Field(default="https://api.jup.ag/swap/v1", description="Jupiter quote/swap API")
    rpc_url: str = Field(default=DEFAULT_RPC_URL, description="Solana JSON-RPC endpoint")
    slippage_bps: int = Field(default=DEFAULT_SLIPPAGE_BPS, ge=1, le=10_000, description="Quote slippage")
    max_priority_fee_lamports: int = Field(default=1_000_000, ge=0)
    priority_level: str = Field(default="veryHigh")
    commitment: str = Field(default="processed", description="Commitment a swap must reach")
    confirm_timeout: float = Field(default=60.0, gt=0, description="Seconds to wait for confirmation")
    request_timeout: float = Field(default=30.0, gt=0)

    @field_validator("commitment")
    @classmethod
    def validate_commitment(cls, v):
        """Only Solana commitment levels are accepted."""
        if v not in COMMITMENT_ORDER:
            raise ValueError(f"commitment must be one of {', '.join(COMMITMENT_ORDER)}, got '{v}'")
        return v


class TelegramConfig(BaseModel):
    """Telegram notification configuration."""

    bot_token: str = Field(..., description="Telegram bot token")
    chat_id: str = Field(..., description="Telegram chat ID for alerts")


class NotificationConfig(BaseModel):
    """Notification configuration."""

    telegram: Optional[TelegramConfig] = None
    throttle_seconds: int = Field(default=60, ge=0, description="Min seconds between alerts per key")


class SwapbotConfig(BaseModel):
    """Root configuration for swapbot."""

    # Database; None falls back to GRIDSWAP_* environment settings
    database_url: Optional[str] = Field(default=None, description="Database connection URL")

    # Timing
    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between ticks")
    max_concurrent_grids: int = Field(default=8, ge=1, description="Grids processed in parallel per tick")
    price_outage_alert_ticks: int = Field(
        default=12,
        ge=1,
        description="Consecutive failed price fetches before alerting",
    )

    # Grids to trade; None trades every active grid
    grid_ids: Optional[list[str]] = None

    # Mode
    shadow_mode: bool = Field(default=False, description="Log intents without executing")

    jupiter: JupiterConfig = Field(default_factory=JupiterConfig)

    # Notifications
    notification: Optional[NotificationConfig] = None


class WalletSettings(BaseSettings):
    """Wallet and API secrets loaded from the environment.

    Environment variables:
        GRIDSWAP_WALLET_PRIVATE_KEY: base58 keypair secret
        GRIDSWAP_RPC_URL: RPC endpoint override (often carries an API key)
        GRIDSWAP_JUPITER_API_KEY: Jupiter API key
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDSWAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    wallet_private_key: Optional[SecretStr] = None
    rpc_url: Optional[str] = None
    jupiter_api_key: Optional[SecretStr] = None


def load_config(config_path: Optional[str] = None) -> SwapbotConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, checks:
            1. GRIDSWAP_CONFIG_PATH environment variable
            2. conf/gridswap.yaml
            3. gridswap.yaml

    Returns:
        Validated SwapbotConfig

    Raises:
        FileNotFoundError: If no config file found
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = os.environ.get("GRIDSWAP_CONFIG_PATH")

    if config_path is None:
        # Search default locations
        search_paths = [
            Path("conf/gridswap.yaml"),
            Path("gridswap.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Set GRIDSWAP_CONFIG_PATH or create conf/gridswap.yaml"
        )

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return SwapbotConfig(**(data or {}))
