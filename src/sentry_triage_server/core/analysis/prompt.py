"""Prompt construction for record analysis."""

from __future__ import annotations

from ..models import NormalizedRecord, RecordKind
from .models import PromptKind
from .redaction import redact_text

SYSTEM_PROMPT = (
    "You are a senior engineer helping an on-call team understand monitoring alerts. "
    "Answer in plain prose, use the exact numbered section headings you are given, "
    "and do not invent details that are not supported by the event data."
)

ERROR_SECTIONS = (
    "1. Cause",
    "2. Remedy",
    "3. Prevention",
    "4. Root Cause Analysis",
    "5. Code Fix",
)
INFO_SECTIONS = (
    "1. Explanation",
    "2. Is This Routine",
    "3. Recommended Action",
)
GENERAL_SECTIONS = (
    "1. Explanation",
    "2. Needs Attention",
    "3. Next Steps",
)

SECTIONS: dict[PromptKind, tuple[str, ...]] = {
    PromptKind.ERROR: ERROR_SECTIONS,
    PromptKind.INFO: INFO_SECTIONS,
    PromptKind.GENERAL: GENERAL_SECTIONS,
}

_QUESTIONS: dict[PromptKind, str] = {
    PromptKind.ERROR: (
        "Diagnose this error. Cover, in order: the most likely cause; how to fix it now; "
        "how to prevent it from recurring; a deeper root-cause analysis that uses the stack "
        "trace; and a short code fix example."
    ),
    PromptKind.INFO: (
        "Explain this informational event. Cover, in order: what it means; whether it is a "
        "routine occurrence or something unusual; and whether any action is recommended."
    ),
    PromptKind.GENERAL: (
        "Triage this monitoring event. Cover, in order: what it means; whether it needs "
        "attention and how urgently; and the concrete next steps."
    ),
}


def _context_lines(record: NormalizedRecord, *, max_frames: int) -> list[str]:
    lines = [
        f"Event kind: {record.kind.value}",
        f"Severity: {record.severity}",
        f"Occurred at: {record.occurred_at.isoformat()}",
    ]
    if record.kind is RecordKind.ERROR_EVENT:
        lines += [
            f"Project: {record.project}",
            f"Message: {record.message}",
            f"Exception type: {record.exception_type}",
            f"Exception value: {record.exception_value}",
        ]
        if record.frames:
            lines.append("Stack frames (outermost first):")
            shown = record.frames[:max_frames]
            lines += [f"  [{i}] {f.describe()}" for i, f in enumerate(shown)]
            if len(record.frames) > len(shown):
                lines.append(f"  ... {len(record.frames) - len(shown)} more frame(s)")
    elif record.kind is RecordKind.ISSUE_EVENT:
        lines += [
            f"Issue: {record.title}",
            f"Action: {record.action}",
            f"Culprit: {record.culprit}",
        ]
    else:
        lines.append(f"Message: {record.message}")
        if record.failure_reason:
            lines.append(f"Parse failure: {record.failure_reason}")
    return lines


def build_analysis_prompt(
    record: NormalizedRecord,
    kind: PromptKind,
    *,
    redact: bool = True,
    max_frames: int = 10,
) -> str:
    """Build the prompt for one record."""
    context = "\n".join(_context_lines(record, max_frames=max_frames))
    if redact:
        context = redact_text(context)
    headings = "\n".join(SECTIONS[kind])
    return (
        f"{_QUESTIONS[kind]}\n\n"
        "Structure the answer with exactly these section headings, each on its own line:\n"
        f"{headings}\n\n"
        f"EVENT:\n{context}\n"
    )
