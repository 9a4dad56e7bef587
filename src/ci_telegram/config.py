"""CI Telegram Notifier — Configuration Loader.

Loads and validates the notifier configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax, so the
bot token can live in .env instead of the settings file.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from ci_telegram.models import DeliveryTarget
from ci_telegram.notifier.formatters import (
    DEFAULT_TIMESTAMP_FORMAT,
    RedactionPredicate,
    redact_keys_containing,
)
from ci_telegram.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
CONFIG_DIR = Path("config")
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"
ENV_PATH = Path(".env")

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Credentials and destination for Telegram notifications."""

    bot_token: str = field(repr=False)
    chat_id: int

    @property
    def target(self) -> DeliveryTarget:
        return DeliveryTarget(bot_token=self.bot_token, chat_id=self.chat_id)


@dataclass(frozen=True)
class MessageConfig:
    """Message composition settings."""

    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    redact_key_patterns: tuple[str, ...] = ("password",)

    @property
    def redaction_predicate(self) -> RedactionPredicate:
        return redact_keys_containing(*self.redact_key_patterns)


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    message: MessageConfig
    log_level: str = "INFO"
    log_file: Optional[str] = None


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all ${VAR_NAME} placeholders replaced
        by their environment variable values.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty, not a mapping or not valid YAML.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section.

    Raises:
        ValueError: If keys are missing, the token is blank or the chat
            id is not an integer.
    """
    _validate_keys(data, ["bot_token", "chat_id"], "telegram")

    bot_token = str(data["bot_token"]).strip()
    if not bot_token:
        raise ValueError("telegram.bot_token must not be empty")

    try:
        chat_id = int(str(data["chat_id"]).strip())
    except ValueError:
        raise ValueError(
            f"telegram.chat_id must be an integer, got {data['chat_id']!r}"
        ) from None

    return TelegramConfig(bot_token=bot_token, chat_id=chat_id)


def _build_message_config(data: dict[str, Any]) -> MessageConfig:
    """Build a MessageConfig from the optional 'message' section."""
    patterns = data.get("redact_key_patterns", ["password"])
    if isinstance(patterns, str) or not isinstance(patterns, list):
        raise ValueError("message.redact_key_patterns must be a list of strings")

    timestamp_format = data.get("timestamp_format") or DEFAULT_TIMESTAMP_FORMAT
    if not isinstance(timestamp_format, str):
        raise ValueError("message.timestamp_format must be a string")

    return MessageConfig(
        timestamp_format=timestamp_format,
        redact_key_patterns=tuple(str(p) for p in patterns),
    )


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads .env, then settings.yaml, resolves environment variables and
    validates required fields.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to the .env file. Defaults to ./.env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or ENV_PATH
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings_file = settings_path or SETTINGS_PATH
    settings = _resolve_env_vars(_load_yaml(settings_file))

    _validate_keys(settings, ["telegram"], "settings")
    logging_section = settings.get("logging") or {}

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"] or {}),
        message=_build_message_config(settings.get("message") or {}),
        log_level=str(logging_section.get("level", "INFO")),
        log_file=logging_section.get("file"),
    )

    logger.debug("Configuration loaded for chat %s", config.telegram.chat_id)
    return config
