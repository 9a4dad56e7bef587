"""CI Telegram Notifier — Notifier Package.

Components:
  - formatters: HTML message composer for build/deployment events
  - telegram_bot: single-shot Telegram bot client
  - dispatcher: compose + deliver with outcome logging
"""

from ci_telegram.notifier.formatters import (
    compose_message,
    redact_keys_containing,
    redact_password_keys,
)
from ci_telegram.notifier.telegram_bot import TelegramNotifier
from ci_telegram.notifier.dispatcher import NotificationDispatcher

__all__ = [
    "compose_message",
    "redact_keys_containing",
    "redact_password_keys",
    "TelegramNotifier",
    "NotificationDispatcher",
]
