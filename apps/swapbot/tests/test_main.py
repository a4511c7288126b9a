"""Tests for swapbot main entry point."""

import argparse
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import SecretStr

from swap_db import DatabaseFactory, DatabaseSettings
from swapcore.errors import ConfigError

from swapbot.config import SwapbotConfig, WalletSettings
from swapbot.main import _parse_token, build_executor, cli, main, run_bot, setup_logging
from swapbot.store import GridStore

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def restore_root_handlers():
    """Remove handlers added by setup_logging."""
    root = logging.getLogger()
    initial_handlers = list(root.handlers)
    initial_level = root.level
    yield root
    for handler in root.handlers:
        if handler not in initial_handlers:
            handler.close()
    root.handlers = initial_handlers
    root.setLevel(initial_level)


# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_configures_console_handler(self, restore_root_handlers):
        initial = len(restore_root_handlers.handlers)

        setup_logging()

        assert len(restore_root_handlers.handlers) == initial + 1

    def test_json_file_handler(self, tmp_path, restore_root_handlers):
        initial = len(restore_root_handlers.handlers)
        log_file = tmp_path / "swapbot.log"

        setup_logging(json_file=str(log_file))
        logging.getLogger("swapbot.test").warning("hello")

        assert len(restore_root_handlers.handlers) == initial + 2
        assert '"message": "hello"' in log_file.read_text()

    def test_reduces_library_noise(self, restore_root_handlers):
        setup_logging()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


# ---------------------------------------------------------------------------
# build_executor
# ---------------------------------------------------------------------------


class TestBuildExecutor:
    def test_shadow_mode(self):
        executor = build_executor(SwapbotConfig(shadow_mode=True), WalletSettings(_env_file=None))
        assert executor.shadow_mode

    def test_live_without_key(self, monkeypatch):
        monkeypatch.delenv("GRIDSWAP_WALLET_PRIVATE_KEY", raising=False)
        with pytest.raises(ConfigError, match="GRIDSWAP_WALLET_PRIVATE_KEY"):
            build_executor(SwapbotConfig(shadow_mode=False), WalletSettings(_env_file=None))

    def test_live_wires_clients(self):
        wallet = WalletSettings(
            _env_file=None,
            wallet_private_key=SecretStr("key"),
            rpc_url="https://rpc.example.com",
        )
        config = SwapbotConfig(jupiter={"slippage_bps": 25, "commitment": "confirmed"})

        with patch("swapbot.main.KeypairSigner") as MockSigner, \
             patch("swapbot.main.JupiterSwapClient") as MockSwap, \
             patch("swapbot.main.SolanaRpcClient") as MockRpc:
            executor = build_executor(config, wallet)

        assert not executor.shadow_mode
        MockSigner.assert_called_once_with("key")
        assert MockSwap.call_args.kwargs["api_key"] is None
        assert MockRpc.call_args.kwargs["rpc_url"] == "https://rpc.example.com"
        assert MockRpc.call_args.kwargs["commitment"] == "confirmed"


# ---------------------------------------------------------------------------
# run_bot()
# ---------------------------------------------------------------------------


class TestRunBot:
    @pytest.fixture
    def shadow_config(self):
        return SwapbotConfig(database_url="sqlite+pysqlite:///:memory:", shadow_mode=True, grid_ids=["g1"])

    @pytest.mark.asyncio
    async def test_config_not_found(self):
        with patch("swapbot.main.load_config", side_effect=FileNotFoundError("not found")):
            result = await run_bot("/nonexistent/config.yaml")

        assert result == 1

    @pytest.mark.asyncio
    async def test_config_invalid(self):
        with patch("swapbot.main.load_config", side_effect=ValueError("bad config")):
            result = await run_bot("/bad/config.yaml")

        assert result == 1

    @pytest.mark.asyncio
    async def test_live_mode_without_wallet(self, monkeypatch):
        monkeypatch.delenv("GRIDSWAP_WALLET_PRIVATE_KEY", raising=False)
        with patch("swapbot.main.load_config", return_value=SwapbotConfig(shadow_mode=False)), \
             patch("swapbot.main.WalletSettings", return_value=WalletSettings(_env_file=None)), \
             patch("swapbot.main.GridController") as MockController:
            result = await run_bot("test.yaml")

        assert result == 1
        MockController.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_startup_and_shutdown(self, shadow_config):
        mock_controller = AsyncMock()

        with patch("swapbot.main.load_config", return_value=shadow_config), \
             patch("swapbot.main.GridController", return_value=mock_controller) as MockController, \
             patch("swapbot.main.asyncio.Event") as MockEvent:

            # Make shutdown_event.wait() return immediately
            mock_event = MagicMock()
            mock_event.wait = AsyncMock()
            MockEvent.return_value = mock_event

            result = await run_bot("test.yaml")

        assert result == 0
        mock_controller.start.assert_awaited_once_with(["g1"])
        mock_controller.run.assert_awaited_once()
        mock_controller.stop.assert_awaited_once()
        assert MockController.call_args.kwargs["poll_interval"] == shadow_config.poll_interval

    @pytest.mark.asyncio
    async def test_startup_error_returns_1(self, shadow_config):
        mock_controller = AsyncMock()
        mock_controller.start.side_effect = Exception("startup failed")

        with patch("swapbot.main.load_config", return_value=shadow_config), \
             patch("swapbot.main.GridController", return_value=mock_controller):

            result = await run_bot("test.yaml")

        assert result == 1
        mock_controller.stop.assert_awaited_once()
        mock_controller.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_built_from_config(self, shadow_config):
        mock_controller = AsyncMock()

        with patch("swapbot.main.load_config", return_value=shadow_config), \
             patch("swapbot.main.GridController", return_value=mock_controller), \
             patch("swapbot.main.Notifier") as MockNotifier, \
             patch("swapbot.main.asyncio.Event") as MockEvent:

            mock_event = MagicMock()
            mock_event.wait = AsyncMock()
            MockEvent.return_value = mock_event

            await run_bot("test.yaml")

        MockNotifier.from_config.assert_called_once_with(shadow_config.notification)


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


class TestParseToken:
    def test_symbol_and_mint(self):
        assert _parse_token(f"SOL:{SOL}") == ("SOL", SOL)

    @pytest.mark.parametrize("value", ["SOL", ":mint", "SOL:", ""])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_token(value)


class TestAdminCommands:
    """Admin subcommands against a file-backed SQLite database."""

    @pytest.fixture
    def db_url(self, tmp_path):
        return f"sqlite:///{tmp_path / 'admin.db'}"

    @pytest.fixture
    def run_main(self, db_url):
        def _run(*args):
            with patch("swapbot.main.setup_logging"):
                return main(["--db-url", db_url, *args])
        return _run

    @pytest.fixture
    def read_store(self, db_url):
        db = DatabaseFactory(DatabaseSettings(database_url=db_url))
        yield GridStore(db)
        db.dispose()

    def _create(self, run_main, *extra):
        return run_main(
            "create-grid",
            "--source", f"SOL:{SOL}",
            "--target", f"USDC:{USDC}",
            "--lower", "100", "--upper", "120", "--levels", "4", "--invest", "100",
            *extra,
        )

    def test_init_db(self, run_main, capsys):
        assert run_main("init-db") == 0
        assert "Database initialized" in capsys.readouterr().out

    def test_create_grid(self, run_main, read_store):
        assert self._create(run_main, "--source-decimals", "9") == 0

        grids = read_store.load_grid_configs()
        assert len(grids) == 1
        assert grids[0].levels == (100.0, 105.0, 110.0, 115.0, 120.0)
        assert grids[0].source_decimals == 9
        assert grids[0].target_decimals == 6

    def test_create_invalid_grid(self, run_main, read_store, capsys):
        result = run_main(
            "create-grid",
            "--source", f"SOL:{SOL}",
            "--target", f"USDC:{USDC}",
            "--lower", "120", "--upper", "100", "--levels", "4", "--invest", "100",
        )

        assert result == 1
        assert capsys.readouterr().err.startswith("Error:")
        assert read_store.load_grid_configs() == []

    def test_create_with_malformed_token(self, run_main):
        with pytest.raises(SystemExit) as exc_info:
            run_main("create-grid", "--source", "SOL", "--target", f"USDC:{USDC}",
                     "--lower", "100", "--upper", "120", "--levels", "4", "--invest", "100")
        assert exc_info.value.code == 2

    def test_edit_grid(self, run_main, read_store):
        self._create(run_main)
        grid_id = read_store.load_grid_configs()[0].grid_id

        assert run_main("edit-grid", grid_id, "--lower", "90", "--upper", "130", "--levels", "8") == 0

        edited = read_store.load_grid_config(grid_id)
        assert (edited.lower_limit, edited.upper_limit, edited.level_count) == (90.0, 130.0, 8)

    def test_edit_unknown_grid(self, run_main, capsys):
        run_main("init-db")
        assert run_main("edit-grid", "missing", "--lower", "90", "--upper", "130") == 1
        assert "missing" in capsys.readouterr().err

    def test_delete_grid(self, run_main, read_store):
        self._create(run_main)
        grid_id = read_store.load_grid_configs()[0].grid_id

        assert run_main("delete-grid", grid_id) == 0
        assert read_store.load_grid_config(grid_id) is None

    def test_delete_unknown_grid(self, run_main):
        assert run_main("delete-grid", "missing") == 1

    def test_summary_and_trades(self, run_main, capsys):
        self._create(run_main)
        capsys.readouterr()

        assert run_main("summary") == 0
        assert "Grid Summary" in capsys.readouterr().out

        assert run_main("trades") == 0
        assert "No trades recorded" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# main() / cli()
# ---------------------------------------------------------------------------


class TestCli:
    def test_default_command_runs_bot(self):
        mock_run_bot = AsyncMock(return_value=0)
        with patch("swapbot.main.setup_logging"), \
             patch("swapbot.main.run_bot", new=mock_run_bot), \
             patch("swapbot.main.asyncio.run", return_value=0) as mock_run:

            assert main(["--config", "myconfig.yaml"]) == 0

        mock_run_bot.assert_called_once_with("myconfig.yaml")
        # Close dangling coroutine from asyncio.run(run_bot(...))
        mock_run.call_args[0][0].close()

    def test_debug_flag(self, restore_root_handlers):
        mock_run_bot = AsyncMock(return_value=0)
        with patch("swapbot.main.setup_logging"), \
             patch("swapbot.main.run_bot", new=mock_run_bot), \
             patch("swapbot.main.asyncio.run", return_value=0) as mock_run:

            main(["--debug", "run"])

        assert logging.getLogger("swapbot").level == logging.DEBUG
        mock_run.call_args[0][0].close()
        for name in ("swapbot", "swapcore", "jupiter_adapter", "swap_db"):
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_cli_exit_code(self):
        with patch("swapbot.main.main", return_value=1), \
             pytest.raises(SystemExit) as exc_info:
            cli()

        assert exc_info.value.code == 1

    def test_keyboard_interrupt_returns_130(self):
        with patch("swapbot.main.main", side_effect=KeyboardInterrupt), \
             pytest.raises(SystemExit) as exc_info:
            cli()

        assert exc_info.value.code == 130
