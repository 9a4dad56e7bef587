"""CI Telegram Notifier — Event Payload Adapter.

Translates host-shaped payloads (a CI step's JSON, a webhook body) into
NotificationEvent objects. It validates shape and required fields only;
deciding what to render stays in the formatters.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ci_telegram.models import (
    BuildOutcome,
    DeploymentOutcome,
    Issue,
    IssueDetail,
    NotificationEvent,
    Variable,
)
from ci_telegram.utils.logger import get_logger

logger = get_logger(__name__)


class EventPayloadError(ValueError):
    """Raised when a payload cannot be turned into a NotificationEvent."""


def parse_event_payload(payload: Mapping[str, Any]) -> NotificationEvent:
    """Normalize a host payload into a NotificationEvent.

    Args:
        payload: Dict with "message" and optional "build"/"deployment".

    Returns:
        The parsed NotificationEvent.

    Raises:
        EventPayloadError: If a section has the wrong shape or misses
            a required field.
    """
    if not isinstance(payload, Mapping):
        raise EventPayloadError("Event payload must be an object")

    build_data = payload.get("build")
    deployment_data = payload.get("deployment")

    return NotificationEvent(
        base_message=_as_str(payload.get("message")),
        build=_parse_build(build_data) if build_data is not None else None,
        deployment=(
            _parse_deployment(deployment_data) if deployment_data is not None else None
        ),
    )


def load_event_file(path: Union[str, Path]) -> NotificationEvent:
    """Read a JSON event payload from a file, or stdin when path is "-".

    Raises:
        FileNotFoundError: If the file does not exist.
        EventPayloadError: If the content is not a valid event payload.
    """
    if str(path) == "-":
        raw = sys.stdin.read()
        source = "<stdin>"
    else:
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Event file not found: {file_path}")
        raw = file_path.read_text(encoding="utf-8")
        source = str(file_path)

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EventPayloadError(f"Invalid JSON in {source}: {e}") from e

    logger.debug("Loaded event payload from %s", source)
    return parse_event_payload(payload)


# ═══════════════════════════════════════════════════════════
# Section parsers
# ═══════════════════════════════════════════════════════════


def _parse_build(data: Any) -> BuildOutcome:
    data = _as_mapping(data, "build")
    if "successful" not in data:
        raise EventPayloadError("Missing required field: build.successful")

    return BuildOutcome(
        successful=_as_bool(data["successful"], "build.successful"),
        reason_summary=_as_str(data.get("reason_summary")),
        author_names=_unique(_as_str_list(data.get("authors"), "build.authors")),
        variables=_parse_variables(data.get("variables")),
        labels=tuple(_as_str_list(data.get("labels"), "build.labels")),
        issues=frozenset(
            _parse_issue(item) for item in _as_list(data.get("issues"), "build.issues")
        ),
    )


def _parse_variables(value: Any) -> tuple[Variable, ...]:
    if value is None:
        return ()
    if isinstance(value, Mapping):
        return tuple(Variable(key=str(k), value=_as_str(v)) for k, v in value.items())

    variables = []
    for item in _as_list(value, "build.variables"):
        item = _as_mapping(item, "build.variables[]")
        key = _as_str(item.get("key"))
        if not key:
            raise EventPayloadError("Missing required field: build.variables[].key")
        variables.append(Variable(key=key, value=_as_str(item.get("value"))))
    return tuple(variables)


def _parse_issue(item: Any) -> Issue:
    if isinstance(item, str):
        if not item.strip():
            raise EventPayloadError("Missing required field: build.issues[].key")
        return Issue(key=item.strip())

    item = _as_mapping(item, "build.issues[]")
    key = _as_str(item.get("key")).strip()
    if not key:
        raise EventPayloadError("Missing required field: build.issues[].key")

    url = _as_str(item.get("url")).strip()
    if not url:
        return Issue(key=key)
    return Issue(key=key, detail=IssueDetail(url=url, summary=_as_str(item.get("summary"))))


def _parse_deployment(data: Any) -> DeploymentOutcome:
    data = _as_mapping(data, "deployment")

    version_name = _required_str(data, "version_name", "deployment")
    environment = _required_str(data, "environment", "deployment")
    started_at = _as_datetime(data.get("started_at"), "deployment.started_at")
    if started_at is None:
        raise EventPayloadError("Missing required field: deployment.started_at")

    creator = data.get("version_creator")
    return DeploymentOutcome(
        reason_summary=_as_str(data.get("reason_summary")),
        version_name=version_name,
        environment_name=environment,
        started_at=started_at,
        finished_at=_as_datetime(data.get("finished_at"), "deployment.finished_at"),
        version_creator_name=str(creator) if creator is not None else None,
    )


# ═══════════════════════════════════════════════════════════
# Field helpers
# ═══════════════════════════════════════════════════════════


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise EventPayloadError(f"{field_name} must be a boolean")


def _required_str(data: Mapping[str, Any], key: str, section: str) -> str:
    text = _as_str(data.get(key)).strip()
    if not text:
        raise EventPayloadError(f"Missing required field: {section}.{key}")
    return text


def _as_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise EventPayloadError(f"Field {field_name} must be an object")
    return value


def _as_list(value: Any, field_name: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise EventPayloadError(f"Field {field_name} must be a list")
    return list(value)


def _as_str_list(value: Any, field_name: str) -> list[str]:
    return [str(item) for item in _as_list(value, field_name) if item is not None]


def _unique(names: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


def _as_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        # fromisoformat() before 3.11 rejects a trailing "Z"
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise EventPayloadError(f"Invalid timestamp in {field_name}: {value!r}") from e
