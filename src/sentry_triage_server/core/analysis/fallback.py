"""Deterministic diagnostics used when no model is configured or a call fails."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models import ErrorDiagnostic, GeneralDiagnostic, NormalizedRecord
from .models import PromptKind


@dataclass(frozen=True, slots=True)
class ErrorPattern:
    """One known error category with canned guidance."""

    name: str
    pattern: re.Pattern[str]
    cause: str
    remedy: str
    prevention: str
    code_fix: str


def _p(expr: str) -> re.Pattern[str]:
    return re.compile(expr, re.IGNORECASE)


# Order matters: the first matching category wins.
ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        name="null-reference",
        pattern=_p(
            r"cannot read propert|of undefined|of null|is not defined|is undefined|is null|"
            r"NoneType|null ?pointer|NullReference|AttributeError"
        ),
        cause="A value was null or undefined at the point where the code dereferenced it.",
        remedy="Guard the access with a null check or supply a default before using the value.",
        prevention="Validate inputs at boundaries and initialize state before it is read.",
        code_fix=(
            "// Guard before dereferencing\n"
            "const value = obj?.property ?? defaultValue;\n"
            "if (value == null) {\n"
            "  return handleMissing();\n"
            "}"
        ),
    ),
    ErrorPattern(
        name="type-error",
        pattern=_p(r"TypeError|is not a function|is not iterable|unsupported operand|not callable"),
        cause="A value had a different type than the code expected.",
        remedy="Check the value's actual type at the failing call and convert or reject it.",
        prevention="Add type checks or schema validation for data crossing module boundaries.",
        code_fix=(
            "if (typeof handler !== 'function') {\n"
            "  throw new TypeError(`expected a function, got ${typeof handler}`);\n"
            "}\n"
            "handler(payload);"
        ),
    ),
    ErrorPattern(
        name="async-promise",
        pattern=_p(r"promise|unhandled ?rejection|await|async|future|coroutine"),
        cause="An asynchronous operation rejected and nothing handled the rejection.",
        remedy="Wrap the awaited call in error handling and report or recover from the failure.",
        prevention="Attach a rejection handler to every promise chain and lint for floating promises.",
        code_fix=(
            "try {\n"
            "  const result = await doWork();\n"
            "} catch (err) {\n"
            "  logger.error('doWork failed', err);\n"
            "}"
        ),
    ),
    ErrorPattern(
        name="network",
        pattern=_p(
            r"network|timeout|timed out|ECONNREFUSED|ECONNRESET|ENOTFOUND|fetch failed|"
            r"connection (?:refused|reset)|socket|status code 5\d\d"
        ),
        cause="A network request failed or did not complete in time.",
        remedy="Check that the remote service is reachable and that the configured URL is correct.",
        prevention="Set explicit timeouts and surface connectivity failures to the caller.",
        code_fix=(
            "const controller = new AbortController();\n"
            "const timer = setTimeout(() => controller.abort(), 10_000);\n"
            "try {\n"
            "  const res = await fetch(url, { signal: controller.signal });\n"
            "} finally {\n"
            "  clearTimeout(timer);\n"
            "}"
        ),
    ),
    ErrorPattern(
        name="permission",
        pattern=_p(r"permission|denied|forbidden|unauthori[sz]ed|EACCES|EPERM|\b40[13]\b"),
        cause="The operation was rejected because the caller lacks the required permission.",
        remedy="Verify the credentials or file permissions used by the failing operation.",
        prevention="Check permissions up front and fail with a clear message when they are missing.",
        code_fix=(
            "if (!user.can('write', resource)) {\n"
            "  return res.status(403).json({ error: 'forbidden' });\n"
            "}"
        ),
    ),
    ErrorPattern(
        name="memory",
        pattern=_p(r"out of memory|heap|MemoryError|allocation failed|stack overflow|maximum call stack"),
        cause="The process ran out of memory or exceeded its stack depth.",
        remedy="Look for unbounded recursion or data that grows without limit on this code path.",
        prevention="Bound caches and buffers, and stream large inputs instead of loading them whole.",
        code_fix=(
            "// Process in bounded chunks instead of loading everything\n"
            "for await (const chunk of stream) {\n"
            "  handle(chunk);\n"
            "}"
        ),
    ),
)

GENERIC_PATTERN = ErrorPattern(
    name="generic",
    pattern=_p(r"(?!)"),
    cause="The error does not match a known category; inspect the message and stack trace.",
    remedy="Reproduce the failure locally with the same input and step through the failing frame.",
    prevention="Add tests around the failing code path and log enough context to reproduce it.",
    code_fix=(
        "try {\n"
        "  riskyOperation();\n"
        "} catch (err) {\n"
        "  logger.error('riskyOperation failed', { err });\n"
        "  throw err;\n"
        "}"
    ),
)


def match_error_pattern(record: NormalizedRecord) -> ErrorPattern:
    haystack = " ".join(
        s for s in (record.message, record.exception_type, record.exception_value) if s
    )
    for ep in ERROR_PATTERNS:
        if ep.pattern.search(haystack):
            return ep
    return GENERIC_PATTERN


def _root_cause(record: NormalizedRecord, ep: ErrorPattern) -> str:
    parts = [
        f"{record.exception_type or 'The error'} was raised "
        f"({ep.name} category): {record.exception_value or record.message or 'no message'}."
    ]
    frames = record.frames[:2]
    if frames:
        parts.append("It surfaced at " + frames[0].describe() + ".")
        if len(frames) > 1:
            parts.append("It was reached from " + frames[1].describe() + ".")
    else:
        parts.append("No stack trace was captured, so the failing location is unknown.")
    parts.append(ep.cause)
    return " ".join(parts)


def local_error_diagnostic(record: NormalizedRecord) -> ErrorDiagnostic:
    ep = match_error_pattern(record)
    return ErrorDiagnostic(
        cause=ep.cause,
        remedy=ep.remedy,
        prevention=ep.prevention,
        root_cause=_root_cause(record, ep),
        code_fix=ep.code_fix,
        source="local",
    )


def local_general_diagnostic(record: NormalizedRecord, kind: PromptKind) -> GeneralDiagnostic:
    subject = record.title or record.message or "this event"
    if kind is PromptKind.INFO:
        return GeneralDiagnostic(
            explanation=f"Informational event reported by the monitoring provider: {subject}",
            is_routine="Likely routine; informational events usually record expected activity.",
            recommended_action="No action needed unless the event repeats unexpectedly.",
            source="local",
        )

    level = record.level
    urgent = level in ("error", "fatal")
    if level == "warning":
        attention = "Worth reviewing soon; warnings often precede errors."
    elif urgent:
        attention = "Yes. The event was reported at error severity."
    else:
        attention = "Probably not urgent; review when convenient."
    return GeneralDiagnostic(
        explanation=f"{record.kind.value} received with severity '{record.severity}': {subject}",
        needs_attention=attention,
        next_steps=(
            "Open the issue in the monitoring provider, check how often it occurs, "
            "and assign an owner if it keeps recurring."
        ),
        source="local",
    )


def local_diagnostic(record: NormalizedRecord, kind: PromptKind) -> ErrorDiagnostic | GeneralDiagnostic:
    """Category-matched diagnostic built without a model call."""
    if kind is PromptKind.ERROR:
        return local_error_diagnostic(record)
    return local_general_diagnostic(record, kind)


def failed_diagnostic(
    kind: PromptKind,
    reason: str,
    raw_text: str | None = None,
) -> ErrorDiagnostic | GeneralDiagnostic:
    """Diagnostic describing a failed model call, with generic guidance."""
    if kind is PromptKind.ERROR:
        return ErrorDiagnostic(
            cause=f"Analysis unavailable: {reason}",
            remedy=GENERIC_PATTERN.remedy,
            prevention=GENERIC_PATTERN.prevention,
            root_cause="The model could not be reached, so no root-cause analysis was produced.",
            code_fix=GENERIC_PATTERN.code_fix,
            failed=True,
            failure_reason=reason,
            raw_text=raw_text,
        )
    return GeneralDiagnostic(
        explanation=f"Analysis unavailable: {reason}",
        is_routine="Unknown." if kind is PromptKind.INFO else None,
        recommended_action="Retry the analysis later." if kind is PromptKind.INFO else None,
        needs_attention="Unknown." if kind is not PromptKind.INFO else None,
        next_steps="Retry the analysis later or review the event manually." if kind is not PromptKind.INFO else None,
        failed=True,
        failure_reason=reason,
        raw_text=raw_text,
    )
