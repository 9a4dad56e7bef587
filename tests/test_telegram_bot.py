"""Unit tests for the single-shot Telegram client."""

from __future__ import annotations

import asyncio
import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from unittest.mock import AsyncMock

import pytest
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
    TimedOut,
)

from ci_telegram.models import DispatchStatus
from ci_telegram.notifier.telegram_bot import (
    ResponseRecordingRequest,
    TelegramNotifier,
    default_bot_factory,
    provider_error_code,
)


def test_send_message_delivers_html_once(target, bot_factory) -> None:
    factory = bot_factory()
    notifier = TelegramNotifier(target, bot_factory=factory)

    outcome = asyncio.run(notifier.send_message("<b>hi</b>"))

    assert outcome.status is DispatchStatus.DELIVERED
    assert outcome.ok
    assert outcome.message_id == 42
    assert len(factory.bots) == 1
    bot = factory.bots[0]
    assert bot.token == target.bot_token
    bot.send_message.assert_awaited_once_with(
        chat_id=target.chat_id, text="<b>hi</b>", parse_mode=ParseMode.HTML,
    )


def test_empty_text_is_sent_as_is(target, bot_factory) -> None:
    factory = bot_factory()

    asyncio.run(TelegramNotifier(target, bot_factory=factory).send_message(""))

    assert factory.bots[0].send_message.await_args.kwargs["text"] == ""


def test_each_send_builds_a_fresh_bot(target, bot_factory) -> None:
    factory = bot_factory()
    notifier = TelegramNotifier(target, bot_factory=factory)

    asyncio.run(notifier.send_message("one"))
    asyncio.run(notifier.send_message("two"))

    assert len(factory.bots) == 2
    assert factory.bots[0] is not factory.bots[1]


@pytest.mark.parametrize(
    "error, code",
    [
        (InvalidToken("Unauthorized"), 401),
        (Forbidden("Forbidden: bot was kicked from the group chat"), 403),
        (BadRequest("Chat not found"), 400),
        (ChatMigrated(-100987), 400),
        (Conflict("Conflict: terminated by other request"), 409),
        (RetryAfter(30), 429),
        (TelegramError("Something odd"), None),
    ],
)
def test_provider_rejections_map_to_error_codes(target, bot_factory, error, code) -> None:
    notifier = TelegramNotifier(target, bot_factory=bot_factory(error))

    outcome = asyncio.run(notifier.send_message("text"))

    assert outcome.status is DispatchStatus.REJECTED
    assert outcome.error_code == code
    assert outcome.description == error.message
    assert not outcome.ok


@pytest.mark.parametrize(
    "error",
    [NetworkError("Connection reset by peer"), TimedOut(), OSError("DNS failure")],
)
def test_transport_errors_do_not_raise(target, bot_factory, error) -> None:
    notifier = TelegramNotifier(target, bot_factory=bot_factory(error))

    outcome = asyncio.run(notifier.send_message("text"))

    assert outcome.status is DispatchStatus.TRANSPORT_FAILED
    assert outcome.error_code is None
    assert outcome.description


def test_transport_error_description_uses_library_message(target, bot_factory) -> None:
    notifier = TelegramNotifier(target, bot_factory=bot_factory(NetworkError("Bad Gateway")))

    outcome = asyncio.run(notifier.send_message("text"))

    assert outcome.description == "Bad Gateway"


def test_provider_error_code_prefers_bad_request_over_network_error() -> None:
    assert issubclass(BadRequest, NetworkError)
    assert provider_error_code(BadRequest("Message is too long")) == 400
    assert provider_error_code(NetworkError("boom")) is None


# ═══════════════════════════════════════════════════════════
# Real Bot against a local Bot API stub
# ═══════════════════════════════════════════════════════════


class _BotApiStub(BaseHTTPRequestHandler):
    """Answers every POST with the server's canned (status, body) reply."""

    def do_POST(self) -> None:
        self.rfile.read(int(self.headers.get("Content-Length") or 0))
        status, body = self.server.reply  # type: ignore[attr-defined]
        payload = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        pass


_PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


@pytest.fixture
def no_proxy(monkeypatch) -> None:
    for name in _PROXY_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def bot_api(no_proxy):
    server = ThreadingHTTPServer(("127.0.0.1", 0), _BotApiStub)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


def _real_bots(base_url: str) -> tuple[list[Bot], Any]:
    """Factory building real Bots with a spy on their request shutdown."""
    bots: list[Bot] = []

    def factory(token: str) -> Bot:
        bot = default_bot_factory(token, base_url=base_url)
        bot.request.shutdown = AsyncMock(wraps=bot.request.shutdown)
        bots.append(bot)
        return bot

    return bots, factory


def _base_url(server: ThreadingHTTPServer) -> str:
    return f"http://127.0.0.1:{server.server_port}/bot"


def test_default_factory_records_responses(target) -> None:
    bot = default_bot_factory(target.bot_token)

    assert isinstance(bot.request, ResponseRecordingRequest)
    asyncio.run(bot.request.shutdown())


def test_real_bot_delivers(target, bot_api) -> None:
    bot_api.reply = (200, {
        "ok": True,
        "result": {
            "message_id": 7,
            "date": 1792315800,
            "chat": {"id": target.chat_id, "type": "supergroup"},
            "text": "hi",
        },
    })
    bots, factory = _real_bots(_base_url(bot_api))

    outcome = asyncio.run(TelegramNotifier(target, bot_factory=factory).send_message("hi"))

    assert outcome.status is DispatchStatus.DELIVERED
    assert outcome.message_id == 7
    bots[0].request.shutdown.assert_awaited_once()


@pytest.mark.parametrize(
    "status, body, code",
    [
        (404, {"ok": False, "error_code": 404, "description": "Not Found"}, 404),
        (401, {"ok": False, "error_code": 401, "description": "Unauthorized"}, 401),
        (400, {"ok": False, "error_code": 400,
               "description": "Bad Request: chat not found"}, 400),
        (429, {"ok": False, "error_code": 429, "description": "Too Many Requests: retry after 3",
               "parameters": {"retry_after": 3}}, 429),
        (500, {"ok": False, "error_code": 500, "description": "Internal Server Error"}, 500),
        (502, b"<html>Bad Gateway</html>", 502),
    ],
)
def test_real_bot_rejection_carries_telegram_code(target, bot_api, status, body, code) -> None:
    bot_api.reply = (status, body)
    bots, factory = _real_bots(_base_url(bot_api))

    outcome = asyncio.run(TelegramNotifier(target, bot_factory=factory).send_message("hi"))

    assert outcome.status is DispatchStatus.REJECTED
    assert outcome.error_code == code
    assert outcome.description
    bots[0].request.shutdown.assert_awaited_once()


def test_real_bot_without_response_is_transport_failure(target, no_proxy) -> None:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    bots, factory = _real_bots(f"http://127.0.0.1:{port}/bot")

    outcome = asyncio.run(TelegramNotifier(target, bot_factory=factory).send_message("hi"))

    assert outcome.status is DispatchStatus.TRANSPORT_FAILED
    assert outcome.error_code is None
    bots[0].request.shutdown.assert_awaited_once()
