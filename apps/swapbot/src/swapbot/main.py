"""Main entry point for swapbot.

Usage:
    swapbot run --config conf/gridswap.yaml
    swapbot init-db
    swapbot create-grid --source SOL:<mint> --target USDC:<mint> --lower 100 --upper 120 --levels 4 --invest 100
    swapbot edit-grid <grid_id> --lower 90 --upper 130
    swapbot delete-grid <grid_id>
    swapbot summary
    swapbot trades --grid-id <grid_id>

A running bot picks up a CLI grid edit at its next checkpoint. The edit bumps
the stored levels version, so the bot's checkpoint is refused and it reloads
the new table, reprojecting its level from the last price.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from swap_db import DatabaseFactory
from swap_db.utils import redact_db_url
from jupiter_adapter import JupiterPriceClient, JupiterSwapClient, KeypairSigner, SolanaRpcClient
from swapcore.config import DEFAULT_TOKEN_DECIMALS
from swapcore.errors import ConfigError, ExecutionFailure, GridswapError

from swapbot.config import SwapbotConfig, WalletSettings, load_config
from swapbot.controller import GridController
from swapbot.executor import SwapExecutor
from swapbot.notifier import Notifier
from swapbot.reporter import print_grid, print_recomputation, print_summary, print_trades
from swapbot.store import GridStore


def setup_logging(json_file: Optional[str] = None) -> None:
    """Set up logging with both console and optional JSON file output.

    Args:
        json_file: Path to JSON log file (optional).
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    if json_file:
        try:
            import json

            class JsonFormatter(logging.Formatter):
                def format(self, record):
                    log_dict = {
                        "timestamp": self.formatTime(record),
                        "level": record.levelname,
                        "logger": record.name,
                        "message": record.getMessage(),
                    }
                    if record.exc_info:
                        log_dict["exception"] = self.formatException(record.exc_info)
                    return json.dumps(log_dict)

            file_handler = logging.FileHandler(json_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JsonFormatter())
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.warning(f"Failed to set up JSON logging: {e}")

    # Every HTTP request is logged at INFO by httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("TeleBot").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def build_executor(config: SwapbotConfig, wallet: WalletSettings) -> SwapExecutor:
    """Create the shadow or live executor.

    Raises:
        ConfigError: If live mode has no wallet key
        ExecutionFailure: If the wallet key is unusable
    """
    if config.shadow_mode:
        logger.info("Shadow mode: swaps are logged, not executed")
        return SwapExecutor(shadow_mode=True, slippage_bps=config.jupiter.slippage_bps)

    if wallet.wallet_private_key is None:
        raise ConfigError("GRIDSWAP_WALLET_PRIVATE_KEY is required unless shadow_mode is enabled")

    jupiter = config.jupiter
    api_key = wallet.jupiter_api_key.get_secret_value() if wallet.jupiter_api_key else None
    signer = KeypairSigner(wallet.wallet_private_key.get_secret_value())
    swap_client = JupiterSwapClient(
        base_url=jupiter.swap_api_url,
        api_key=api_key,
        timeout=jupiter.request_timeout,
        max_priority_fee_lamports=jupiter.max_priority_fee_lamports,
        priority_level=jupiter.priority_level,
    )
    rpc_client = SolanaRpcClient(
        rpc_url=wallet.rpc_url or jupiter.rpc_url,
        timeout=jupiter.request_timeout,
        commitment=jupiter.commitment,
        confirm_timeout=jupiter.confirm_timeout,
    )
    return SwapExecutor(swap_client, rpc_client, signer, slippage_bps=jupiter.slippage_bps)


async def run_bot(config_path: Optional[str] = None) -> int:
    """Run the bot until SIGINT/SIGTERM.

    Args:
        config_path: Path to configuration file.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = load_config(config_path)
        wallet = WalletSettings()
    except FileNotFoundError as e:
        logger.error(f"Configuration file not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        executor = build_executor(config, wallet)
    except (ConfigError, ExecutionFailure) as e:
        logger.error(f"Cannot create executor: {e}")
        return 1

    db = DatabaseFactory.from_url(config.database_url)
    logger.info(f"Database: {redact_db_url(db.url)}")
    api_key = wallet.jupiter_api_key.get_secret_value() if wallet.jupiter_api_key else None
    price_client = JupiterPriceClient(price_url=config.jupiter.price_url, api_key=api_key)
    notifier = Notifier.from_config(config.notification)

    controller = GridController(
        GridStore(db),
        price_client,
        executor,
        notifier=notifier,
        poll_interval=config.poll_interval,
        max_concurrent_grids=config.max_concurrent_grids,
        price_outage_alert_ticks=config.price_outage_alert_ticks,
    )

    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, initiating shutdown")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    run_task = None
    try:
        await controller.start(config.grid_ids)
        run_task = asyncio.create_task(controller.run())
        logger.info("Swapbot started successfully")

        await shutdown_event.wait()

    except Exception as e:
        logger.error(f"Error during startup: {e}")
        return 1

    finally:
        logger.info("Shutting down swapbot")
        await controller.stop()
        if run_task is not None:
            await run_task
        await price_client.aclose()
        await executor.aclose()
        db.dispose()

    logger.info("Swapbot stopped")
    return 0


def _parse_token(value: str) -> tuple[str, str]:
    """Parse 'SYMBOL:MINT'."""
    symbol, sep, mint = value.partition(":")
    if not sep or not symbol or not mint:
        raise argparse.ArgumentTypeError(f"expected SYMBOL:MINT, got '{value}'")
    return symbol, mint


def _store_for(args) -> tuple[DatabaseFactory, GridStore]:
    database_url = args.db_url
    if database_url is None and args.config is not None:
        database_url = load_config(args.config).database_url
    db = DatabaseFactory.from_url(database_url)
    db.create_tables()
    return db, GridStore(db)


def _cmd_init_db(args) -> int:
    db, _ = _store_for(args)
    print(f"Database initialized: {redact_db_url(db.url)}")
    db.dispose()
    return 0


def _cmd_create_grid(args) -> int:
    db, store = _store_for(args)
    (source_symbol, source_mint), (target_symbol, target_mint) = args.source, args.target
    config = store.create_grid(
        source_symbol,
        source_mint,
        target_symbol,
        target_mint,
        lower_limit=args.lower,
        upper_limit=args.upper,
        level_count=args.levels,
        quantity_invested=args.invest,
        source_decimals=args.source_decimals,
        target_decimals=args.target_decimals,
    )
    print_grid(config)
    db.dispose()
    return 0


def _cmd_edit_grid(args) -> int:
    db, store = _store_for(args)
    result = store.edit_grid(args.grid_id, upper_limit=args.upper, lower_limit=args.lower, level_count=args.levels)
    print_recomputation(result)
    db.dispose()
    return 0


def _cmd_delete_grid(args) -> int:
    db, store = _store_for(args)
    deleted = store.delete_grid(args.grid_id)
    db.dispose()
    if not deleted:
        print(f"Grid {args.grid_id} not found", file=sys.stderr)
        return 1
    print(f"Deleted grid {args.grid_id}")
    return 0


def _cmd_summary(args) -> int:
    db, store = _store_for(args)
    print_summary(store.summary())
    db.dispose()
    return 0


def _cmd_trades(args) -> int:
    db, store = _store_for(args)
    print_trades(store.trades(args.grid_id, limit=args.limit))
    db.dispose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swapbot",
        description="Swapbot - grid trading bot for Jupiter swaps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: conf/gridswap.yaml)",
    )
    parser.add_argument("--db-url", type=str, default=None, help="Database URL for admin commands")
    parser.add_argument("--log-file", type=str, default=None, help="Path to JSON log file (optional)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run the bot (default)")
    sub.add_parser("init-db", help="Create database tables")

    create = sub.add_parser("create-grid", help="Create a grid")
    create.add_argument("--source", type=_parse_token, required=True, help="Source token as SYMBOL:MINT")
    create.add_argument("--target", type=_parse_token, required=True, help="Target token as SYMBOL:MINT")
    create.add_argument("--lower", type=float, required=True, help="Lower price limit")
    create.add_argument("--upper", type=float, required=True, help="Upper price limit")
    create.add_argument("--levels", type=int, required=True, help="Number of levels")
    create.add_argument("--invest", type=float, required=True, help="Quantity invested (target token units)")
    create.add_argument("--source-decimals", type=int, default=DEFAULT_TOKEN_DECIMALS)
    create.add_argument("--target-decimals", type=int, default=DEFAULT_TOKEN_DECIMALS)

    edit = sub.add_parser("edit-grid", help="Change a grid's range or level count")
    edit.add_argument("grid_id")
    edit.add_argument("--lower", type=float, required=True, help="New lower price limit")
    edit.add_argument("--upper", type=float, required=True, help="New upper price limit")
    edit.add_argument("--levels", type=int, default=None, help="New number of levels")

    delete = sub.add_parser("delete-grid", help="Delete a grid and its trades")
    delete.add_argument("grid_id")

    sub.add_parser("summary", help="Show all grids and totals")

    trades = sub.add_parser("trades", help="Show recent trades")
    trades.add_argument("--grid-id", default=None, help="Only this grid")
    trades.add_argument("--limit", type=int, default=20)

    return parser


_COMMANDS = {
    "init-db": _cmd_init_db,
    "create-grid": _cmd_create_grid,
    "edit-grid": _cmd_edit_grid,
    "delete-grid": _cmd_delete_grid,
    "summary": _cmd_summary,
    "trades": _cmd_trades,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and dispatch a subcommand.

    Returns:
        Exit code.
    """
    args = build_parser().parse_args(argv)

    setup_logging(json_file=args.log_file)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        for name in ("swapbot", "swapcore", "jupiter_adapter", "swap_db"):
            logging.getLogger(name).setLevel(logging.DEBUG)

    command = args.command or "run"
    if command == "run":
        return asyncio.run(run_bot(args.config))

    try:
        return _COMMANDS[command](args)
    except (FileNotFoundError, GridswapError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cli() -> None:
    """Command-line interface entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
