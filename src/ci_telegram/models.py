"""CI Telegram Notifier — Data Models.

Dataclasses for everything that flows through the notification pipeline:
the build/deployment outcome supplied by the CI host, the notification
event wrapping it, the delivery target, and the dispatch outcome.

Outcome objects are read-only snapshots built by the host right before a
dispatch and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AbstractSet, Optional, Sequence


# ═══════════════════════════════════════════════════════════
# Outcome Models
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Variable:
    """A build variable that was overridden for the run."""

    key: str
    value: str


@dataclass(frozen=True)
class IssueDetail:
    """Tracker details for a linked issue."""

    url: str
    summary: str


@dataclass(frozen=True)
class Issue:
    """An issue linked to a build.

    Attributes:
        key: Issue key in the tracker (e.g. "PRJ-42").
        detail: Link and summary, when the tracker could resolve them.
    """

    key: str
    detail: Optional[IssueDetail] = None


@dataclass(frozen=True)
class BuildOutcome:
    """Result of a finished build.

    Attributes:
        successful: Whether the build passed.
        reason_summary: Orchestrator's short explanation of the result.
        author_names: Unique committers, in the order reported.
        variables: Manually overridden variables.
        labels: Labels attached to the build result.
        issues: Linked issues. Unordered.
    """

    successful: bool
    reason_summary: str = ""
    author_names: Sequence[str] = ()
    variables: Sequence[Variable] = ()
    labels: Sequence[str] = ()
    issues: AbstractSet[Issue] = frozenset()


@dataclass(frozen=True)
class DeploymentOutcome:
    """Result of a deployment to an environment.

    Attributes:
        reason_summary: Orchestrator's short explanation of the result.
        version_name: Name of the deployed release.
        environment_name: Target environment.
        started_at: When the deployment started.
        finished_at: When it finished. None while still running.
        version_creator_name: Who created the release, if known.
    """

    reason_summary: str
    version_name: str
    environment_name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    version_creator_name: Optional[str] = None


@dataclass(frozen=True)
class NotificationEvent:
    """Something happened in the build/deploy pipeline and should be announced.

    Build and deployment are independent; when both are set, both are
    rendered into the same message.
    """

    base_message: str
    build: Optional[BuildOutcome] = None
    deployment: Optional[DeploymentOutcome] = None


# ═══════════════════════════════════════════════════════════
# Delivery Models
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DeliveryTarget:
    """Telegram bot credentials and destination chat."""

    bot_token: str = field(repr=False)
    chat_id: int


class DispatchStatus(str, Enum):
    """Terminal states of a single dispatch."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    TRANSPORT_FAILED = "transport_failed"


@dataclass(frozen=True)
class DispatchOutcome:
    """Tagged result of one dispatch.

    Attributes:
        status: Which terminal state the dispatch reached.
        error_code: Provider error code for rejections, when known.
        description: Provider diagnostics or the transport error message.
        message_id: Telegram message id when delivered.
    """

    status: DispatchStatus
    error_code: Optional[int] = None
    description: str = ""
    message_id: Optional[int] = None

    @classmethod
    def delivered(cls, message_id: Optional[int], description: str = "") -> "DispatchOutcome":
        return cls(DispatchStatus.DELIVERED, description=description, message_id=message_id)

    @classmethod
    def rejected(cls, error_code: Optional[int], description: str) -> "DispatchOutcome":
        return cls(DispatchStatus.REJECTED, error_code=error_code, description=description)

    @classmethod
    def transport_failed(cls, message: str) -> "DispatchOutcome":
        return cls(DispatchStatus.TRANSPORT_FAILED, description=message)

    @property
    def ok(self) -> bool:
        """True only when Telegram accepted the message."""
        return self.status is DispatchStatus.DELIVERED
