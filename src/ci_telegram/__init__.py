"""CI Telegram Notifier.

Composes build/deployment notifications from a CI/CD orchestrator and
delivers them to a Telegram chat.
"""

from ci_telegram.models import (
    BuildOutcome,
    DeliveryTarget,
    DeploymentOutcome,
    DispatchOutcome,
    DispatchStatus,
    Issue,
    IssueDetail,
    NotificationEvent,
    Variable,
)
from ci_telegram.notifier import (
    NotificationDispatcher,
    TelegramNotifier,
    compose_message,
    redact_keys_containing,
    redact_password_keys,
)

__version__ = "1.0.0"

__all__ = [
    "BuildOutcome",
    "DeliveryTarget",
    "DeploymentOutcome",
    "DispatchOutcome",
    "DispatchStatus",
    "Issue",
    "IssueDetail",
    "NotificationEvent",
    "Variable",
    "NotificationDispatcher",
    "TelegramNotifier",
    "compose_message",
    "redact_keys_containing",
    "redact_password_keys",
]
