"""CI Telegram Notifier — Message Formatters.

Turns a NotificationEvent into a Telegram message using HTML parse mode.
Only &, < and > need escaping in Telegram HTML, so every piece of free
text coming from the CI host goes through _e().

Layout:
  - status glyphs + headline on the first line
  - one labelled line (or header + item lines) per non-empty section
  - deployment block appended after the build block when both exist
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

from ci_telegram.models import BuildOutcome, DeploymentOutcome, Issue, NotificationEvent

RedactionPredicate = Callable[[str], bool]

# ── Presentation constants ───────────────────────────────
SUCCESS_GLYPHS = "😀 👌"
FAILURE_GLYPHS = "😱 🙅‍♂️"
REDACTED = "******"
DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


def _e(text: str) -> str:
    """Escape HTML special characters for Telegram HTML parse mode.

    Args:
        text: Raw text to escape.

    Returns:
        HTML-safe text.
    """
    if not text:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _link(text: str, url: str) -> str:
    """Build an HTML anchor.

    Args:
        text: Display text (will be escaped).
        url: Target URL (ampersands and quotes escaped).

    Returns:
        HTML anchor tag.
    """
    safe_url = url.replace("&", "&amp;").replace('"', "&quot;")
    return f'<a href="{safe_url}">{_e(text)}</a>'


def _format_timestamp(value: datetime, timestamp_format: str) -> str:
    # %Z is empty for naive datetimes
    return value.strftime(timestamp_format).strip()


# ═══════════════════════════════════════════════════════════
# Redaction
# ═══════════════════════════════════════════════════════════


def redact_keys_containing(*fragments: str) -> RedactionPredicate:
    """Build a predicate that flags keys containing any of the fragments.

    Matching is a plain, case-sensitive substring test.

    Args:
        fragments: Substrings marking a key as sensitive.

    Returns:
        Callable returning True for keys whose value must be hidden.
    """
    patterns = tuple(f for f in fragments if f)

    def should_redact(key: str) -> bool:
        return any(fragment in key for fragment in patterns)

    return should_redact


redact_password_keys = redact_keys_containing("password")


# ═══════════════════════════════════════════════════════════
# Sections
# ═══════════════════════════════════════════════════════════


def _joined(items: Iterable[str]) -> str:
    return ", ".join(_e(item) for item in items)


def _issue_line(issue: Issue) -> str:
    if issue.detail is None:
        return _e(issue.key)
    return f"{_link(issue.key, issue.detail.url)} - {_e(issue.detail.summary)}"


def _build_lines(
    base_message: str,
    build: BuildOutcome,
    should_redact: RedactionPredicate,
) -> list[str]:
    glyphs = SUCCESS_GLYPHS if build.successful else FAILURE_GLYPHS
    lines = [f"{glyphs} {_e(base_message)}{_e(build.reason_summary)}"]

    if build.author_names:
        lines.append(f"Responsible Users: {_joined(build.author_names)}")

    if build.variables:
        lines.append("Variables:")
        for variable in build.variables:
            value = REDACTED if should_redact(variable.key) else variable.value
            lines.append(f"{_e(variable.key)}: {_e(value)}")

    if build.labels:
        lines.append(f"Labels: {_joined(build.labels)}")

    if build.issues:
        lines.append("Issues:")
        lines.extend(_issue_line(issue) for issue in build.issues)

    return lines


def _deployment_lines(
    base_message: str,
    deployment: DeploymentOutcome,
    timestamp_format: str,
) -> list[str]:
    lines = [
        "Deployment notification.",
        f"Reason: {_e(base_message)}{_e(deployment.reason_summary)}",
        f"Deployed version name: {_e(deployment.version_name)}",
        f"Environment deployed to: {_e(deployment.environment_name)}",
        f"Started at: {_format_timestamp(deployment.started_at, timestamp_format)}",
    ]
    if deployment.finished_at is not None:
        lines.append(
            f"Finished at: {_format_timestamp(deployment.finished_at, timestamp_format)}"
        )
    if deployment.version_creator_name is not None:
        lines.append(f"Version created by: {_e(deployment.version_creator_name)}")
    return lines


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def compose_message(
    event: NotificationEvent,
    *,
    should_redact: RedactionPredicate = redact_password_keys,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> Optional[str]:
    """Compose the Telegram text for a notification event.

    An empty base message means there is nothing to announce; the event
    is dropped regardless of which outcome it carries.

    Args:
        event: The notification event from the CI host.
        should_redact: Decides which variable values are hidden.
        timestamp_format: strftime format for deployment timestamps.

    Returns:
        HTML formatted message, or None when the event is gated.
    """
    if not event.base_message:
        return None

    lines: list[str] = []
    if event.build is not None:
        lines.extend(_build_lines(event.base_message, event.build, should_redact))
    if event.deployment is not None:
        lines.extend(
            _deployment_lines(event.base_message, event.deployment, timestamp_format)
        )

    return "".join(f"{line}\n" for line in lines)
