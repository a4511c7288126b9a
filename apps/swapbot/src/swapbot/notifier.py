"""Operator alerts: always logged, optionally pushed to Telegram.

Alert keys group repeats of the same condition (``price_outage``,
``persistence:<grid_id>``, ``execute:<grid_id>``). A key fires at most once per
throttle window until the condition is resolved, after which the next
occurrence fires immediately.
"""

import logging
import threading
import traceback
from datetime import datetime, UTC, timedelta
from typing import Optional

from swapbot.config import NotificationConfig, TelegramConfig

logger = logging.getLogger(__name__)

_DEFAULT_THROTTLE_SECONDS = 60


class Notifier:
    """Thread-safe alert sender. Without a Telegram config it only logs."""

    def __init__(
        self,
        telegram_config: Optional[TelegramConfig] = None,
        throttle_seconds: int = _DEFAULT_THROTTLE_SECONDS,
    ):
        self._telegram_config = telegram_config
        self._throttle = timedelta(seconds=throttle_seconds)
        self._bot = None
        self._lock = threading.Lock()
        self._last_sent: dict[str, datetime] = {}

        if telegram_config:
            self._bot = self._create_bot(telegram_config)

    @staticmethod
    def _create_bot(telegram_config: TelegramConfig):
        try:
            import telebot
        except ImportError:
            logger.warning("pyTelegramBotAPI not installed, Telegram alerts disabled")
            return None
        try:
            bot = telebot.TeleBot(telegram_config.bot_token)
        except Exception as e:
            logger.warning(f"Failed to initialize Telegram bot: {e}")
            return None
        logger.info(f"Telegram alerts enabled for chat {telegram_config.chat_id}")
        return bot

    @classmethod
    def from_config(cls, config: Optional[NotificationConfig]) -> "Notifier":
        """Build a notifier from the optional ``notification`` config section."""
        if config is None:
            return cls()
        return cls(config.telegram, throttle_seconds=config.throttle_seconds)

    @property
    def active_keys(self) -> list[str]:
        """Keys alerted and not yet resolved."""
        with self._lock:
            return list(self._last_sent)

    def alert(self, message: str, error_key: Optional[str] = None) -> None:
        """Log an alert and push it unless its key is throttled.

        Args:
            message: Alert text.
            error_key: Throttle key; defaults to the message itself.
        """
        logger.error(f"ALERT: {message}")
        if self._claim(error_key or message):
            self._push(message)

    def alert_exception(self, context: str, exc: Exception, error_key: Optional[str] = None) -> None:
        """Log the full traceback and alert with a one-line summary.

        Args:
            context: Where the error happened (e.g. 'grid <id>').
            exc: The exception.
            error_key: Throttle key; defaults to the context string.
        """
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        logger.error(f"Exception in {context}: {exc}\n{tb}")
        self.alert(f"Swapbot: {context} - {type(exc).__name__}: {exc}", error_key=error_key or context)

    def resolve(self, error_key: str, message: Optional[str] = None) -> None:
        """Mark a condition as cleared.

        If the key had alerted, the optional recovery message is pushed, and
        the next alert for the key bypasses the throttle.
        """
        with self._lock:
            was_active = self._last_sent.pop(error_key, None) is not None
        if was_active and message:
            logger.info(f"RESOLVED: {message}")
            self._push(message)

    def _claim(self, key: str) -> bool:
        """Record a send for ``key`` unless it is inside the throttle window."""
        now = datetime.now(UTC)
        with self._lock:
            last = self._last_sent.get(key)
            if last is not None and now - last < self._throttle:
                return False
            self._last_sent[key] = now
        return True

    def _push(self, message: str) -> None:
        if self._bot is None:
            return
        # Telegram can be slow; never block the event loop on it
        threading.Thread(target=self._send_telegram, args=(message,), daemon=True).start()

    def _send_telegram(self, message: str) -> None:
        try:
            self._bot.send_message(chat_id=self._telegram_config.chat_id, text=message)
        except Exception as e:
            logger.warning(f"Failed to send Telegram message: {e}")
