"""CI Telegram Notifier — Command Line Entry Point.

Sends one build/deployment notification described by a JSON event file.
Meant to run as the last step of a CI job or from a webhook handler.

Usage:
    ci-telegram --event event.json
    ci-telegram --event - --dry-run < event.json
    python -m ci_telegram.main --event event.json --config config/settings.yaml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from ci_telegram.config import load_config
from ci_telegram.events import EventPayloadError, load_event_file
from ci_telegram.notifier.dispatcher import NotificationDispatcher
from ci_telegram.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

# ── Exit codes ────────────────────────────────────────────
EXIT_OK = 0
EXIT_NOT_DELIVERED = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ci-telegram",
        description="Send a CI build/deployment notification to Telegram.",
    )
    parser.add_argument(
        "--event", required=True,
        help="Path to the JSON event payload, or '-' for stdin",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Path to settings.yaml (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--env", type=Path, default=None,
        help="Path to the .env file (default: ./.env)",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the composed message instead of sending it",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the notifier once.

    Returns:
        0 when delivered or nothing to send, 1 when Telegram did not
        accept the message, 2 on configuration or payload errors.
    """
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(settings_path=args.config, env_path=args.env)
        setup_logging(config.log_level, config.log_file)
        event = load_event_file(args.event)
    except (FileNotFoundError, EventPayloadError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_USAGE

    dispatcher = NotificationDispatcher(
        should_redact=config.message.redaction_predicate,
        timestamp_format=config.message.timestamp_format,
    )

    if args.dry_run:
        text = dispatcher.compose(event)
        if text is None:
            logger.info("Event has no message content, nothing would be sent")
        else:
            sys.stdout.write(text)
        return EXIT_OK

    outcome = dispatcher.notify(event, config.telegram.target)
    if outcome is None:
        logger.info("Event has no message content, nothing sent")
        return EXIT_OK
    return EXIT_OK if outcome.ok else EXIT_NOT_DELIVERED


if __name__ == "__main__":
    sys.exit(main())
