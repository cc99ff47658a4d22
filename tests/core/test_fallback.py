from __future__ import annotations

from collections.abc import Callable

import pytest

from sentry_triage_server.core.analysis.fallback import (
    failed_diagnostic,
    local_diagnostic,
    match_error_pattern,
)
from sentry_triage_server.core.analysis.models import PromptKind
from sentry_triage_server.core.models import ErrorDiagnostic, GeneralDiagnostic, NormalizedRecord, RecordKind, StackFrame

MakeRecord = Callable[..., NormalizedRecord]


@pytest.mark.parametrize(
    ("message", "exception_type", "expected"),
    [
        ("Cannot read properties of undefined (reading 'x')", "TypeError", "null-reference"),
        ("handler is not a function", "TypeError", "type-error"),
        ("Unhandled promise rejection", "Error", "async-promise"),
        ("connect ECONNREFUSED 10.0.0.1:5432", "Error", "network"),
        ("EACCES: permission denied, open '/etc/x'", "Error", "permission"),
        ("JavaScript heap out of memory", "RangeError", "memory"),
        ("Something odd happened", "CustomError", "generic"),
    ],
)
def test_category_match(make_record: MakeRecord, message: str, exception_type: str, expected: str) -> None:
    record = make_record(message=message, exception_type=exception_type, exception_value=message)

    assert match_error_pattern(record).name == expected


def test_local_error_diagnostic_uses_first_two_frames(make_record: MakeRecord) -> None:
    frames = (
        StackFrame(file="cart.js", line="42", function="sumCart"),
        StackFrame(file="app.js", line="123", function="checkout"),
        StackFrame(file="main.js", line="1", function="boot"),
    )
    record = make_record(message="x is undefined", exception_type="TypeError", frames=frames)

    d = local_diagnostic(record, PromptKind.ERROR)

    assert isinstance(d, ErrorDiagnostic)
    assert d.source == "local"
    assert "cart.js:42 - sumCart" in d.root_cause
    assert "app.js:123 - checkout" in d.root_cause
    assert "main.js" not in d.root_cause
    assert "?." in d.code_fix


def test_local_error_diagnostic_without_frames(make_record: MakeRecord) -> None:
    d = local_diagnostic(make_record(frames=()), PromptKind.ERROR)

    assert isinstance(d, ErrorDiagnostic)
    assert "No stack trace" in d.root_cause


def test_local_general_and_info(make_record: MakeRecord) -> None:
    issue = make_record(kind=RecordKind.ISSUE_EVENT, severity="warning", title="Slow query")
    info = make_record(severity="info", message="user signed in")

    general = local_diagnostic(issue, PromptKind.GENERAL)
    informational = local_diagnostic(info, PromptKind.INFO)

    assert isinstance(general, GeneralDiagnostic)
    assert "Slow query" in general.explanation
    assert general.needs_attention is not None and general.next_steps is not None
    assert isinstance(informational, GeneralDiagnostic)
    assert informational.is_routine is not None
    assert informational.recommended_action is not None
    assert informational.needs_attention is None


def test_failed_diagnostic_carries_reason() -> None:
    err = failed_diagnostic(PromptKind.ERROR, "RuntimeError: 503")
    gen = failed_diagnostic(PromptKind.GENERAL, "RuntimeError: 503")

    assert err.failed and err.failure_reason == "RuntimeError: 503"
    assert isinstance(err, ErrorDiagnostic) and "503" in err.cause
    assert gen.failed and isinstance(gen, GeneralDiagnostic)
    assert gen.next_steps is not None
