"""CI Telegram Notifier — Notification Dispatcher.

Connects the message composer to the Telegram client. Each dispatch is a
single blocking sendMessage call whose outcome is logged once: INFO when
Telegram accepts the message, ERROR otherwise. Errors never propagate to
the CI host; callers inspect the returned DispatchOutcome instead.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ci_telegram.models import (
    DeliveryTarget,
    DispatchOutcome,
    DispatchStatus,
    NotificationEvent,
)
from ci_telegram.notifier.formatters import (
    DEFAULT_TIMESTAMP_FORMAT,
    RedactionPredicate,
    compose_message,
    redact_password_keys,
)
from ci_telegram.notifier.telegram_bot import (
    BotFactory,
    TelegramNotifier,
    default_bot_factory,
)
from ci_telegram.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationDispatcher:
    """Composes and delivers CI notifications to Telegram.

    Holds only composer settings and the bot factory; delivery
    credentials are passed per call, so one dispatcher can serve
    concurrent notifications without coordination.

    Attributes:
        should_redact: Predicate hiding sensitive variable values.
        timestamp_format: strftime format for deployment timestamps.
    """

    def __init__(
        self,
        should_redact: RedactionPredicate = redact_password_keys,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        bot_factory: BotFactory = default_bot_factory,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            should_redact: Decides which variable values are hidden.
            timestamp_format: strftime format for deployment timestamps.
            bot_factory: Builds a telegram Bot from a token.
        """
        self.should_redact = should_redact
        self.timestamp_format = timestamp_format
        self._bot_factory = bot_factory

    def compose(self, event: NotificationEvent) -> Optional[str]:
        """Compose the message text with this dispatcher's settings."""
        return compose_message(
            event,
            should_redact=self.should_redact,
            timestamp_format=self.timestamp_format,
        )

    async def dispatch_async(self, target: DeliveryTarget, text: str) -> DispatchOutcome:
        """Send already composed text and log the outcome.

        Args:
            target: Bot token and chat id for this delivery.
            text: Message body in Telegram HTML.

        Returns:
            The DispatchOutcome of the single attempt.
        """
        telegram = TelegramNotifier(target, bot_factory=self._bot_factory)
        outcome = await telegram.send_message(text)
        _log_outcome(target, outcome)
        return outcome

    def dispatch(self, target: DeliveryTarget, text: str) -> DispatchOutcome:
        """Blocking form of dispatch_async for synchronous hosts.

        Must not be called from a running event loop.
        """
        return asyncio.run(self.dispatch_async(target, text))

    def notify(
        self, event: NotificationEvent, target: DeliveryTarget
    ) -> Optional[DispatchOutcome]:
        """Compose an event and dispatch it.

        Args:
            event: The notification event from the CI host.
            target: Bot token and chat id for this delivery.

        Returns:
            The DispatchOutcome, or None when the event had no message.
        """
        text = self.compose(event)
        if text is None:
            logger.debug("Empty notification content, nothing sent to chat %s", target.chat_id)
            return None
        return self.dispatch(target, text)


def _log_outcome(target: DeliveryTarget, outcome: DispatchOutcome) -> None:
    if outcome.status is DispatchStatus.DELIVERED:
        logger.info(
            "Telegram message delivered to chat %s (msg=%s, %s)",
            target.chat_id, outcome.message_id, outcome.description,
        )
    elif outcome.status is DispatchStatus.REJECTED:
        logger.error(
            "Error using Telegram API. error code: %s message: %s",
            outcome.error_code, outcome.description,
        )
    else:
        logger.error("Error using Telegram API: %s", outcome.description)
