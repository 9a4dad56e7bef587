"""CI Telegram Notifier — shared utilities."""
