"""Tests for swapbot notifier module."""

import time
from datetime import datetime, UTC, timedelta
from unittest.mock import MagicMock

import pytest

from swapbot.config import NotificationConfig, TelegramConfig
from swapbot.notifier import Notifier


class TestNotifierNoTelegram:
    """Tests for notifier without Telegram config."""

    def test_create_without_config(self):
        notifier = Notifier()
        assert notifier._bot is None

    def test_alert_logs_without_telegram(self, caplog):
        notifier = Notifier()
        notifier.alert("price feed down")
        assert "ALERT: price feed down" in caplog.text

    def test_alert_exception_logs_traceback(self, caplog):
        notifier = Notifier()
        try:
            raise ValueError("test error")
        except ValueError as e:
            notifier.alert_exception("grid g1", e)

        assert "Exception in grid g1: test error" in caplog.text
        assert "Traceback" in caplog.text


class TestNotifierFromConfig:
    """Tests for building a notifier from the notification section."""

    def test_none_section(self):
        notifier = Notifier.from_config(None)
        assert notifier._bot is None

    def test_throttle_from_config(self):
        notifier = Notifier.from_config(NotificationConfig(throttle_seconds=5))
        assert notifier._throttle == timedelta(seconds=5)
        assert notifier._bot is None


class TestNotifierWithTelegram:
    """Tests for notifier with Telegram bot injected."""

    @pytest.fixture
    def notifier_with_bot(self):
        """Create a notifier with a mocked bot injected."""
        config = TelegramConfig(bot_token="test_token", chat_id="12345")
        notifier = Notifier()  # no config, so no import attempt
        notifier._telegram_config = config
        notifier._bot = MagicMock()
        return notifier

    def test_alert_sends_telegram(self, notifier_with_bot):
        notifier_with_bot.alert("test message")
        time.sleep(0.1)

        notifier_with_bot._bot.send_message.assert_called_once_with(
            chat_id="12345",
            text="test message",
        )

    def test_alert_exception_sends_summary(self, notifier_with_bot):
        try:
            raise RuntimeError("swap blew up")
        except RuntimeError as e:
            notifier_with_bot.alert_exception("execute g1", e)

        time.sleep(0.1)

        notifier_with_bot._bot.send_message.assert_called_once()
        call_text = notifier_with_bot._bot.send_message.call_args.kwargs["text"]
        assert call_text.startswith("Swapbot: execute g1")
        assert "RuntimeError" in call_text
        assert "swap blew up" in call_text


class TestNotifierThrottle:
    """Tests for alert throttling."""

    @pytest.fixture
    def notifier_with_bot(self):
        config = TelegramConfig(bot_token="t", chat_id="c")
        notifier = Notifier(throttle_seconds=60)
        notifier._telegram_config = config
        notifier._bot = MagicMock()
        return notifier

    def test_throttle_blocks_duplicate(self, notifier_with_bot):
        notifier_with_bot.alert("first", error_key="price_outage")
        time.sleep(0.05)
        notifier_with_bot.alert("second", error_key="price_outage")
        time.sleep(0.1)

        assert notifier_with_bot._bot.send_message.call_count == 1

    def test_throttle_allows_different_keys(self, notifier_with_bot):
        notifier_with_bot.alert("msg1", error_key="persistence:a")
        notifier_with_bot.alert("msg2", error_key="persistence:b")
        time.sleep(0.1)

        assert notifier_with_bot._bot.send_message.call_count == 2

    def test_throttle_allows_after_window(self, notifier_with_bot):
        notifier_with_bot.alert("first", error_key="key1")
        time.sleep(0.05)

        # Backdate the last send past the window
        notifier_with_bot._last_sent["key1"] = datetime.now(UTC) - timedelta(seconds=61)

        notifier_with_bot.alert("second", error_key="key1")
        time.sleep(0.1)

        assert notifier_with_bot._bot.send_message.call_count == 2

    def test_send_failure_does_not_crash(self, notifier_with_bot):
        notifier_with_bot._bot.send_message.side_effect = Exception("network error")
        notifier_with_bot.alert("test")
        time.sleep(0.1)


class TestNotifierInit:
    """Tests for Notifier initialization with real telebot."""

    def test_init_with_telegram_config_creates_bot(self):
        config = TelegramConfig(bot_token="123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11", chat_id="12345")
        notifier = Notifier(config)
        assert notifier._bot is not None


class TestNotifierResolve:
    """Resolved conditions re-arm their key."""

    @pytest.fixture
    def notifier_with_bot(self):
        notifier = Notifier(throttle_seconds=60)
        notifier._telegram_config = TelegramConfig(bot_token="t", chat_id="c")
        notifier._bot = MagicMock()
        return notifier

    def test_resolve_sends_recovery_and_rearms(self, notifier_with_bot):
        notifier_with_bot.alert("prices down", error_key="price_outage")
        notifier_with_bot.resolve("price_outage", "prices recovered")
        notifier_with_bot.alert("prices down again", error_key="price_outage")
        time.sleep(0.1)

        texts = sorted(c.kwargs["text"] for c in notifier_with_bot._bot.send_message.call_args_list)
        assert texts == ["prices down", "prices down again", "prices recovered"]

    def test_resolve_unknown_key_sends_nothing(self, notifier_with_bot):
        notifier_with_bot.resolve("persistence:g1", "persistence recovered")
        time.sleep(0.1)

        notifier_with_bot._bot.send_message.assert_not_called()

    def test_active_keys(self):
        notifier = Notifier()
        notifier.alert("db down", error_key="persistence:g1")
        assert notifier.active_keys == ["persistence:g1"]

        notifier.resolve("persistence:g1")
        assert notifier.active_keys == []
