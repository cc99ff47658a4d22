"""Typed views over raw webhook payloads.

Sentry delivers three payload shapes we care about: an error event
(``{"event": {...}}`` or ``{"data": {"event"|"error": {...}}}``), an issue
(``{"issue": {...}}`` or ``{"data": {"issue": {...}}}``) and anything else.
The views below only wrap the raw dicts and expose optional-field accessors;
they never copy or mutate the payload.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_EVENT_KEYS = ("event", "error")


def as_mapping(value: object) -> Mapping[str, Any]:
    """Return `value` when it is a mapping, else an empty one."""
    return value if isinstance(value, Mapping) else {}


def text(value: object) -> str | None:
    """Return a non-empty string form of a scalar, else None."""
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return None
    s = str(value).strip()
    return s or None


def first_text(*values: object) -> str | None:
    for v in values:
        s = text(v)
        if s is not None:
            return s
    return None


def _data(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    return as_mapping(payload.get("data"))


def find_event(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Locate an embedded event-like object, top level first."""
    for container in (payload, _data(payload)):
        for key in _EVENT_KEYS:
            candidate = container.get(key)
            if isinstance(candidate, Mapping):
                return candidate
    return None


def find_issue(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    for container in (payload, _data(payload)):
        candidate = container.get("issue")
        if isinstance(candidate, Mapping):
            return candidate
    return None


@dataclass(frozen=True, slots=True)
class ErrorEventPayload:
    """Payload carrying a single error event."""

    payload: Mapping[str, Any]
    event: Mapping[str, Any]

    @property
    def event_id(self) -> str | None:
        return text(self.event.get("event_id"))

    @property
    def level(self) -> str | None:
        return text(self.event.get("level"))

    @property
    def project(self) -> str | None:
        return first_text(self.payload.get("project"), self.event.get("project"))

    @property
    def message(self) -> str | None:
        logentry = as_mapping(self.event.get("logentry"))
        return first_text(
            logentry.get("formatted"),
            self.payload.get("message"),
            self.event.get("message"),
        )

    @property
    def timestamp(self) -> object:
        return self.event.get("timestamp")

    @property
    def first_exception(self) -> Mapping[str, Any] | None:
        """First entry of ``exception.values``, if any."""
        values = as_mapping(self.event.get("exception")).get("values")
        if isinstance(values, list) and values:
            return as_mapping(values[0])
        return None

    def raw_frames(self) -> list[Any]:
        exc = self.first_exception
        if exc is None:
            return []
        frames = as_mapping(exc.get("stacktrace")).get("frames")
        return list(frames) if isinstance(frames, list) else []


@dataclass(frozen=True, slots=True)
class IssueEventPayload:
    """Payload describing an issue state change."""

    payload: Mapping[str, Any]
    issue: Mapping[str, Any]

    @property
    def issue_id(self) -> str | None:
        return text(self.issue.get("id"))

    @property
    def action(self) -> str | None:
        return text(self.payload.get("action"))

    @property
    def title(self) -> str | None:
        return first_text(
            self.issue.get("title"),
            self.payload.get("title"),
            self.payload.get("message"),
        )

    @property
    def culprit(self) -> str | None:
        return first_text(self.issue.get("culprit"), self.payload.get("culprit"))

    @property
    def level(self) -> str | None:
        return first_text(self.issue.get("level"), self.payload.get("level"))

    @property
    def timestamp(self) -> object:
        for key in ("lastSeen", "last_seen"):
            if self.issue.get(key) is not None:
                return self.issue.get(key)
        return self.payload.get("timestamp")


@dataclass(frozen=True, slots=True)
class UnknownPayload:
    """Anything that is neither an error event nor an issue."""

    payload: Mapping[str, Any]

    @property
    def embedded_event(self) -> Mapping[str, Any] | None:
        return find_event(self.payload)


WebhookPayload = ErrorEventPayload | IssueEventPayload | UnknownPayload


def detect_payload(payload: object) -> WebhookPayload:
    """Pick the payload shape from the body alone (no resource hint)."""
    body = as_mapping(payload)
    event = find_event(body)
    if event is not None and text(event.get("event_id")) and text(event.get("level")):
        return ErrorEventPayload(payload=body, event=event)
    issue = find_issue(body)
    if issue is not None and text(issue.get("id")):
        return IssueEventPayload(payload=body, issue=issue)
    return UnknownPayload(payload=body)
