"""Best-effort extraction of typed diagnostics from free-text completions.

Models are asked for numbered sections, but the headings come back in many
shapes: ``1. Cause``, ``### 1. Cause``, ``**Cause:**``, or only the number.
Each field is therefore located by trying an ordered list of
(start marker, end marker) candidates; the first candidate that bounds a
non-empty region wins. Every candidate is first tried with markers anchored
at a line start, and only then with markers found anywhere in the text, so a
heading such as ``1. **Cause**`` wins over the same word in prose. Fields that
no candidate matches get NOT_EXTRACTED.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from ..models import NOT_EXTRACTED, ErrorDiagnostic, GeneralDiagnostic
from .models import PromptKind

logger = logging.getLogger(__name__)


class Boundary(Enum):
    END_OF_TEXT = "end_of_text"
    NEXT_SECTION = "next_section"  # next numbered item or markdown heading


END_OF_TEXT = Boundary.END_OF_TEXT
NEXT_SECTION = Boundary.NEXT_SECTION


@dataclass(frozen=True, slots=True)
class Marker:
    """A section label plus an optional heading title that may follow it."""

    label: str
    title: str | None = None


EndMarker = Marker | Boundary
Candidate = tuple[Marker, EndMarker]

# Tried after the undecorated label, most specific first.
_DECORATIONS = ("###", "##", "#", r"\*\*")
# Extra prefixes for word labels: "1. **Cause**", "### 1. Cause".
_NUMBERED_DECORATIONS = (r"#{1,6}[ \t]*\d+\.[ \t]*(?:\*\*)?", r"(?:\*\*)?[ \t]*\d+\.[ \t]*(?:\*\*)?")

_NEXT_SECTION_RE = re.compile(r"(?m)^[ \t]*(?:#{1,6}[ \t]+\S|(?:\*\*)?[ \t]*\d+\.(?!\d))")
_DECORATIVE_LINE_RE = re.compile(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,}|#+|\*\*)?[ \t]*(?:\d+\.)?[ \t]*(?:\*\*)?[ \t]*$")


def _m(label: str, title: str | None = None) -> Marker:
    return Marker(label, title)


ERROR_FIELDS: dict[str, tuple[Candidate, ...]] = {
    "cause": (
        (_m("1. Cause"), _m("2. Remedy")),
        (_m("Cause"), _m("Remedy")),
        (_m("Error Cause"), _m("Solution")),
        (_m("1.", "Cause"), _m("2.")),
        (_m("1. Cause"), NEXT_SECTION),
        (_m("Cause"), NEXT_SECTION),
    ),
    "remedy": (
        (_m("2. Remedy"), _m("3. Prevention")),
        (_m("Remedy"), _m("Prevention")),
        (_m("Solution"), _m("Prevention")),
        (_m("2.", "Remedy"), _m("3.")),
        (_m("2. Remedy"), NEXT_SECTION),
        (_m("Remedy"), NEXT_SECTION),
    ),
    "prevention": (
        (_m("3. Prevention"), _m("4. Root Cause")),
        (_m("Prevention"), _m("Root Cause")),
        (_m("3.", "Prevention"), _m("4.")),
        (_m("3. Prevention"), NEXT_SECTION),
        (_m("Prevention"), NEXT_SECTION),
    ),
    "root_cause": (
        (_m("4. Root Cause", "Analysis"), _m("5. Code Fix")),
        (_m("Root Cause", "Analysis"), _m("Code Fix")),
        (_m("4.", "Root Cause Analysis"), _m("5.")),
        (_m("4. Root Cause", "Analysis"), NEXT_SECTION),
        (_m("Root Cause", "Analysis"), NEXT_SECTION),
    ),
    "code_fix": (
        (_m("5. Code Fix"), END_OF_TEXT),
        (_m("Code Fix"), END_OF_TEXT),
        (_m("5.", "Code Fix"), END_OF_TEXT),
    ),
}

_EXPLANATION: tuple[Candidate, ...] = (
    (_m("1.", "Explanation"), _m("2.")),
    (_m("Explanation"), NEXT_SECTION),
    (_m("1.", "Explanation"), NEXT_SECTION),
)

INFO_FIELDS: dict[str, tuple[Candidate, ...]] = {
    "explanation": _EXPLANATION,
    "is_routine": (
        (_m("2.", "Is This Routine"), _m("3.")),
        (_m("Is This Routine"), _m("Recommended Action")),
        (_m("2.", "Is This Routine"), NEXT_SECTION),
        (_m("Routine"), NEXT_SECTION),
    ),
    # Last section: may hold its own numbered list.
    "recommended_action": (
        (_m("3.", "Recommended Action"), END_OF_TEXT),
        (_m("Recommended Action"), END_OF_TEXT),
    ),
}

GENERAL_FIELDS: dict[str, tuple[Candidate, ...]] = {
    "explanation": _EXPLANATION,
    "needs_attention": (
        (_m("2.", "Needs Attention"), _m("3.")),
        (_m("Needs Attention"), _m("Next Steps")),
        (_m("2.", "Needs Attention"), NEXT_SECTION),
        (_m("Needs Attention"), NEXT_SECTION),
    ),
    "next_steps": (
        (_m("3.", "Next Steps"), END_OF_TEXT),
        (_m("Next Steps"), END_OF_TEXT),
    ),
}


def _tail_guard(label: str) -> str:
    # "1." must not match "1.5"; "Cause" must not match "Causes".
    return r"(?![0-9])" if label.endswith(".") else r"(?![A-Za-z0-9])"


@lru_cache(maxsize=None)
def _start_patterns(label: str, anchored: bool) -> tuple[re.Pattern[str], ...]:
    core = re.escape(label) + _tail_guard(label)
    is_word = label[:1].isalpha()
    decorations = _DECORATIONS + (_NUMBERED_DECORATIONS if is_word else ())
    patterns = [re.compile(rf"(?im)^[ \t]*{core}")]
    patterns += [re.compile(rf"(?im)^[ \t]*{d}[ \t]*{core}") for d in decorations]
    if not anchored and any(ch.isalpha() for ch in label):
        patterns.append(re.compile(rf"(?i)(?<![A-Za-z0-9]){core}"))
    return tuple(patterns)


@lru_cache(maxsize=None)
def _suffix_pattern(title: str | None) -> re.Pattern[str]:
    title_part = rf"(?:{re.escape(title)})?" if title else ""
    return re.compile(rf"(?i)[ \t]*(?:\*\*)?[ \t]*{title_part}[ \t]*(?:\*\*)?[ \t]*:?[ \t]*(?:\*\*)?")


def find_marker(text: str, marker: Marker, pos: int = 0, *, anchored: bool = False) -> tuple[int, int] | None:
    """Locate `marker` at or after `pos`.

    With `anchored`, only line-start forms count. Returns (start of the
    marker, start of the content after it), or None.
    """
    for pattern in _start_patterns(marker.label, anchored):
        m = pattern.search(text, pos)
        if m is None:
            continue
        suffix = _suffix_pattern(marker.title).match(text, m.end())
        content_start = suffix.end() if suffix is not None else m.end()
        return m.start(), content_start
    return None


def _find_end(text: str, end: EndMarker, pos: int, *, anchored: bool) -> int | None:
    if end is END_OF_TEXT:
        return len(text)
    if end is NEXT_SECTION:
        m = _NEXT_SECTION_RE.search(text, pos)
        return m.start() if m is not None else len(text)
    found = find_marker(text, end, pos, anchored=anchored)
    return found[0] if found is not None else None


def _clean(section: str) -> str:
    s = section.strip()
    while s.startswith((":", "**")):
        s = s.removeprefix(":").removeprefix("**").strip()
    lines = s.splitlines()
    while lines and _DECORATIVE_LINE_RE.match(lines[-1]):
        lines.pop()
    return "\n".join(lines).strip()


def extract_section(text: str, candidates: tuple[Candidate, ...]) -> str | None:
    """Return the first non-empty region bounded by a candidate pair."""
    for anchored in (True, False):
        for start, end in candidates:
            found = find_marker(text, start, anchored=anchored)
            if found is None:
                continue
            _, content_start = found
            end_at = _find_end(text, end, content_start, anchored=anchored)
            if end_at is None:
                continue
            region = _clean(text[content_start:end_at])
            if region:
                return region
    return None


def _extract_fields(text: str, fields: dict[str, tuple[Candidate, ...]]) -> dict[str, str]:
    return {name: extract_section(text, cands) or NOT_EXTRACTED for name, cands in fields.items()}


def _extract(text: str, is_error_kind: bool, prompt_kind: PromptKind) -> ErrorDiagnostic | GeneralDiagnostic:
    if is_error_kind:
        return ErrorDiagnostic(raw_text=text, **_extract_fields(text, ERROR_FIELDS))

    fields = INFO_FIELDS if prompt_kind is PromptKind.INFO else GENERAL_FIELDS
    values = _extract_fields(text, fields)
    if values["explanation"] == NOT_EXTRACTED and text.strip():
        values["explanation"] = text.strip()
    return GeneralDiagnostic(raw_text=text, **values)


def extract_diagnostic(
    text: str,
    is_error_kind: bool,
    *,
    prompt_kind: PromptKind = PromptKind.GENERAL,
) -> ErrorDiagnostic | GeneralDiagnostic:
    """Parse a model completion into a diagnostic. Never raises."""
    try:
        return _extract(text or "", is_error_kind, prompt_kind)
    except Exception as e:
        logger.exception("Diagnostic extraction failed; keeping the raw completion")
        reason = f"extraction failed: {type(e).__name__}: {e}"
        raw = str(text) if text is not None else ""
        if is_error_kind:
            return ErrorDiagnostic(cause=raw or NOT_EXTRACTED, failed=True, failure_reason=reason, raw_text=raw)
        return GeneralDiagnostic(explanation=raw or NOT_EXTRACTED, failed=True, failure_reason=reason, raw_text=raw)
