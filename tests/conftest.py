"""Shared pytest fixtures for the notifier tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from ci_telegram.models import (
    BuildOutcome,
    DeliveryTarget,
    DeploymentOutcome,
    Issue,
    IssueDetail,
    Variable,
)


class FakeBot:
    """Stands in for telegram.Bot; records the token and send calls."""

    def __init__(self, token: str, *, result: Any = None, error: BaseException | None = None) -> None:
        self.token = token
        self.send_message = AsyncMock(return_value=result, side_effect=error)


@pytest.fixture
def target() -> DeliveryTarget:
    return DeliveryTarget(bot_token="123456:TEST-TOKEN", chat_id=-1001234567890)


@pytest.fixture
def started_at() -> datetime:
    """Stable UTC timestamp for deterministic assertions."""
    return datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def sent_message() -> SimpleNamespace:
    """Minimal stand-in for the telegram.Message returned by send_message."""
    return SimpleNamespace(
        message_id=42,
        chat_id=-1001234567890,
        date=datetime(2026, 10, 18, 9, 35, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def bot_factory(sent_message: SimpleNamespace) -> Callable[..., Any]:
    """Build a bot factory whose bots succeed or raise ``error``.

    The returned factory exposes ``.bots`` with every FakeBot it created.
    """

    def _build(error: BaseException | None = None) -> Callable[[str], FakeBot]:
        bots: list[FakeBot] = []

        def factory(token: str) -> FakeBot:
            bot = FakeBot(token, result=sent_message, error=error)
            bots.append(bot)
            return bot

        factory.bots = bots  # type: ignore[attr-defined]
        return factory

    return _build


@pytest.fixture
def build_factory() -> Callable[..., BuildOutcome]:
    """Build a BuildOutcome with empty collections and easy overrides."""

    def _build(**overrides: Any) -> BuildOutcome:
        defaults: dict[str, Any] = {
            "successful": True,
            "reason_summary": " completed",
            "author_names": (),
            "variables": (),
            "labels": (),
            "issues": frozenset(),
        }
        defaults.update(overrides)
        return BuildOutcome(**defaults)

    return _build


@pytest.fixture
def deployment_factory(started_at: datetime) -> Callable[..., DeploymentOutcome]:
    """Build a DeploymentOutcome that is still running by default."""

    def _build(**overrides: Any) -> DeploymentOutcome:
        defaults: dict[str, Any] = {
            "reason_summary": "manual trigger",
            "version_name": "release-42",
            "environment_name": "production",
            "started_at": started_at,
        }
        defaults.update(overrides)
        return DeploymentOutcome(**defaults)

    return _build


@pytest.fixture
def full_build(build_factory: Callable[..., BuildOutcome]) -> BuildOutcome:
    """A failed build with every section populated."""
    return build_factory(
        successful=False,
        reason_summary=" failed",
        author_names=("Ada", "Grace"),
        variables=(Variable("deploy_env", "staging"), Variable("db_password", "secret123")),
        labels=("nightly", "flaky"),
        issues=frozenset(
            {
                Issue("PRJ-1", IssueDetail("https://tracker.example.com/PRJ-1", "Fix login")),
                Issue("PRJ-2"),
            }
        ),
    )
