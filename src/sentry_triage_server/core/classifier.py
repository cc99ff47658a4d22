"""Classify raw webhook payloads and map them onto NormalizedRecord."""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from .models import NormalizedRecord, RecordKind, StackFrame
from .payloads import (
    ErrorEventPayload,
    IssueEventPayload,
    UnknownPayload,
    as_mapping,
    detect_payload,
    find_event,
    find_issue,
    first_text,
    text,
)
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"
UNKNOWN_ISSUE = "unknown issue"
UNKNOWN_SOURCE = "unknown source"
UNKNOWN_PROJECT = "unknown project"
UNKNOWN_ACTION = "unknown action"
UNKNOWN_LEVEL = "unknown"
UNKNOWN_VALUE = "unknown"

# Values of the Sentry-Hook-Resource header we know how to map.
RESOURCE_HINTS: dict[str, RecordKind] = {
    "event": RecordKind.ERROR_EVENT,
    "error": RecordKind.ERROR_EVENT,
    "event_alert": RecordKind.ERROR_EVENT,
    "issue": RecordKind.ISSUE_EVENT,
}


def new_record_id(now: datetime | None = None) -> str:
    """Time-ordered id with a random suffix."""
    millis = int((now.timestamp() if now is not None else time.time()) * 1000)
    return f"{millis}-{secrets.token_hex(5)}"


def _record_id(payload: Mapping[str, Any], natural: str | None, now: datetime) -> str:
    explicit = text(payload.get("id"))
    return explicit or natural or new_record_id(now)


def _frame(raw: Any) -> StackFrame:
    # Frames are expected to be objects; anything else is a malformed payload.
    return StackFrame(
        file=first_text(raw.get("filename"), raw.get("abs_path"), raw.get("module")) or "unknown file",
        line=text(raw.get("lineno")) or "?",
        function=text(raw.get("function")) or "unknown function",
    )


def map_error_event(
    view: ErrorEventPayload,
    *,
    resource_hint: str | None = None,
    now: datetime,
) -> NormalizedRecord:
    exc = view.first_exception
    frames = tuple(_frame(f) for f in view.raw_frames())
    event_id = view.event_id
    return NormalizedRecord(
        id=_record_id(view.payload, event_id, now),
        kind=RecordKind.ERROR_EVENT,
        occurred_at=normalize_timestamp(view.timestamp, now=now),
        received_at=now,
        severity=view.level or "error",
        message=view.message or UNKNOWN_ERROR,
        project=view.project or UNKNOWN_PROJECT,
        event_id=event_id or UNKNOWN_VALUE,
        exception_type=(text(exc.get("type")) if exc is not None else None) or UNKNOWN_VALUE,
        exception_value=(text(exc.get("value")) if exc is not None else None) or UNKNOWN_VALUE,
        frames=frames,
        resource_hint=resource_hint,
    )


def map_issue_event(
    view: IssueEventPayload,
    *,
    resource_hint: str | None = None,
    now: datetime,
) -> NormalizedRecord:
    issue_id = view.issue_id
    return NormalizedRecord(
        id=_record_id(view.payload, f"issue-{issue_id}" if issue_id else None, now),
        kind=RecordKind.ISSUE_EVENT,
        occurred_at=normalize_timestamp(view.timestamp, now=now),
        received_at=now,
        severity=view.level or UNKNOWN_LEVEL,
        message=view.title or UNKNOWN_ISSUE,
        issue_id=issue_id or UNKNOWN_VALUE,
        action=view.action or UNKNOWN_ACTION,
        title=view.title or UNKNOWN_ISSUE,
        culprit=view.culprit or UNKNOWN_SOURCE,
        resource_hint=resource_hint,
    )


def _summary(payload: Mapping[str, Any], limit: int = 300) -> str:
    try:
        s = json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        s = repr(payload)
    return s if len(s) <= limit else s[: limit - 3] + "..."


def map_unrecognized(
    view: UnknownPayload,
    *,
    resource_hint: str | None = None,
    now: datetime,
) -> NormalizedRecord:
    payload = view.payload
    return NormalizedRecord(
        id=_record_id(payload, None, now),
        kind=RecordKind.UNRECOGNIZED_EVENT,
        occurred_at=normalize_timestamp(payload.get("timestamp"), now=now),
        received_at=now,
        severity=first_text(payload.get("level")) or UNKNOWN_LEVEL,
        message=first_text(payload.get("message"), payload.get("title")) or _summary(payload),
        resource_hint=resource_hint,
        payload=dict(payload),
    )


def parse_failure(
    payload: object,
    reason: str,
    *,
    resource_hint: str | None = None,
    now: datetime,
) -> NormalizedRecord:
    body = as_mapping(payload)
    return NormalizedRecord(
        id=new_record_id(now),
        kind=RecordKind.PARSE_FAILURE,
        occurred_at=now,
        received_at=now,
        severity=UNKNOWN_LEVEL,
        message=f"failed to parse payload: {reason}",
        resource_hint=resource_hint,
        failure_reason=reason,
        payload=dict(body) if body else None,
    )


def _classify(
    hint_kind: RecordKind | None,
    body: Mapping[str, Any],
    hint: str | None,
    now: datetime,
) -> NormalizedRecord:
    if hint_kind is RecordKind.ERROR_EVENT:
        event = find_event(body) or {}
        return map_error_event(ErrorEventPayload(body, event), resource_hint=hint, now=now)

    if hint_kind is RecordKind.ISSUE_EVENT:
        issue = find_issue(body) or {}
        return map_issue_event(IssueEventPayload(body, issue), resource_hint=hint, now=now)

    view = detect_payload(body)
    if isinstance(view, ErrorEventPayload):
        return map_error_event(view, resource_hint=hint, now=now)
    if isinstance(view, IssueEventPayload):
        return map_issue_event(view, resource_hint=hint, now=now)

    embedded = view.embedded_event
    if embedded is not None:
        logger.info("Unrecognized payload carries an embedded event; extracting it as an error event")
        return map_error_event(ErrorEventPayload(body, embedded), resource_hint=hint, now=now)
    return map_unrecognized(view, resource_hint=hint, now=now)


def classify(
    resource_hint: str | None,
    payload: object,
    *,
    now: datetime | None = None,
) -> NormalizedRecord:
    """Build a NormalizedRecord from a raw payload and optional resource hint.

    Never raises: any failure while reading the payload yields a
    ParseFailure record so the notification stays visible.
    """
    now = now or datetime.now(UTC)
    hint = text(resource_hint)
    hint_kind = RESOURCE_HINTS.get(hint.lower()) if hint else None

    try:
        record = _classify(hint_kind, as_mapping(payload), hint, now)
    except Exception as e:
        logger.warning("Failed to map webhook payload (hint=%s): %s", hint, e)
        return parse_failure(payload, f"{type(e).__name__}: {e}", resource_hint=hint, now=now)

    logger.debug("Classified payload as %s (id=%s)", record.kind.value, record.id)
    return record
