"""CI Telegram Notifier — Telegram Bot Client.

Single-shot Telegram client built on python-telegram-bot v22+.
One sendMessage call per instance, HTML parse mode, no retries: every
provider or network error is folded into a DispatchOutcome instead of
being raised.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import (
    BadRequest,
    ChatMigrated,
    Conflict,
    Forbidden,
    InvalidToken,
    NetworkError,
    RetryAfter,
    TelegramError,
)
from telegram.request import HTTPXRequest

from ci_telegram.models import DeliveryTarget, DispatchOutcome
from ci_telegram.utils.logger import get_logger

logger = get_logger(__name__)

BotFactory = Callable[[str], Bot]

# Bot API error_code behind each exception python-telegram-bot raises
# for an ``ok: false`` response. Only used for bots whose request does
# not record the response (see ResponseRecordingRequest).
_ERROR_CODES: tuple[tuple[type[TelegramError], int], ...] = (
    (InvalidToken, 401),
    (Forbidden, 403),
    (ChatMigrated, 400),
    (Conflict, 409),
    (RetryAfter, 429),
)


class ResponseRecordingRequest(HTTPXRequest):
    """HTTPXRequest that keeps the status and error_code of the last reply.

    python-telegram-bot folds several HTTP codes into one exception type
    (401 and 404 both raise InvalidToken, 5xx raise NetworkError), so the
    code Telegram actually returned is read here, before the library
    translates it.

    Attributes:
        status_code: HTTP status of the last response, None if no
            response arrived.
        error_code: ``error_code`` field of the last JSON body, if any.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.status_code: Optional[int] = None
        self.error_code: Optional[int] = None

    async def do_request(self, *args: Any, **kwargs: Any) -> tuple[int, bytes]:
        self.status_code = None
        self.error_code = None
        status_code, payload = await super().do_request(*args, **kwargs)
        self.status_code = status_code
        self.error_code = _body_error_code(payload)
        return status_code, payload

    @property
    def response_code(self) -> Optional[int]:
        """Code of a non-2xx reply: the body's error_code, else the status."""
        if self.status_code is None or 200 <= self.status_code < 300:
            return None
        return self.error_code or self.status_code


def _body_error_code(payload: bytes) -> Optional[int]:
    try:
        body = json.loads(payload.decode("utf-8", "replace"))
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    code = body.get("error_code")
    return code if isinstance(code, int) else None


def default_bot_factory(token: str, base_url: Optional[str] = None) -> Bot:
    """Build a Bot whose only HTTP client records every response.

    Args:
        token: Bot API token.
        base_url: Bot API endpoint prefix. None means api.telegram.org.
    """
    request = ResponseRecordingRequest()
    kwargs: dict[str, Any] = {"request": request, "get_updates_request": request}
    if base_url is not None:
        kwargs["base_url"] = base_url
    return Bot(token=token, **kwargs)


def provider_error_code(error: TelegramError) -> Optional[int]:
    """Recover the Bot API error code from a python-telegram-bot exception.

    Args:
        error: Exception raised for a rejected request.

    Returns:
        The HTTP-style error code, or None if the type is not mapped.
    """
    if isinstance(error, BadRequest):
        return 400
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return None


def _recording_request(bot: Any) -> Optional[ResponseRecordingRequest]:
    request = getattr(bot, "request", None)
    return request if isinstance(request, ResponseRecordingRequest) else None


def _describe(error: Exception) -> str:
    if isinstance(error, TelegramError):
        return error.message
    return str(error) or type(error).__name__


class TelegramNotifier:
    """Sends one HTML message to one chat.

    A fresh Bot is built from the target's token for every send and its
    HTTP client is shut down afterwards, so an instance holds no
    connection state between calls.

    Attributes:
        target: Bot token and destination chat id.
    """

    def __init__(
        self,
        target: DeliveryTarget,
        bot_factory: BotFactory = default_bot_factory,
    ) -> None:
        """Initialize the notifier.

        Args:
            target: DeliveryTarget with bot_token and chat_id.
            bot_factory: Builds a Bot from a token. Replaced in tests.
        """
        self.target = target
        self._bot_factory = bot_factory

    async def send_message(
        self,
        text: str,
        parse_mode: str = ParseMode.HTML,
    ) -> DispatchOutcome:
        """Send text to the configured chat_id.

        The text is sent as-is; an empty string is not filtered here.

        Args:
            text: Message content.
            parse_mode: Telegram parse mode.

        Returns:
            DispatchOutcome describing the single attempt.
        """
        bot = self._bot_factory(self.target.bot_token)
        request = _recording_request(bot)
        try:
            msg = await bot.send_message(
                chat_id=self.target.chat_id,
                text=text,
                parse_mode=parse_mode,
            )
        except Exception as e:
            if request is not None:
                return _recorded_failure(request, e)
            return _exception_failure(e)
        finally:
            if request is not None:
                await request.shutdown()

        return DispatchOutcome.delivered(
            message_id=msg.message_id,
            description=f"chat={msg.chat_id} date={msg.date}",
        )


def _recorded_failure(request: ResponseRecordingRequest, error: Exception) -> DispatchOutcome:
    """Classify a failure by what came back over the wire."""
    code = request.response_code
    if code is not None:
        return DispatchOutcome.rejected(code, _describe(error))
    if not isinstance(error, TelegramError):
        logger.debug("Telegram unexpected error", exc_info=error)
    return DispatchOutcome.transport_failed(_describe(error))


def _exception_failure(error: Exception) -> DispatchOutcome:
    """Classify a failure by exception type alone."""
    if isinstance(error, BadRequest):
        # BadRequest subclasses NetworkError but is a provider rejection
        return DispatchOutcome.rejected(400, error.message)
    if isinstance(error, NetworkError):
        return DispatchOutcome.transport_failed(error.message)
    if isinstance(error, TelegramError):
        return DispatchOutcome.rejected(provider_error_code(error), error.message)
    logger.debug("Telegram unexpected error", exc_info=error)
    return DispatchOutcome.transport_failed(_describe(error))
