"""Core data models for webhook triage."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

NOT_EXTRACTED = "(not extracted)"


class RecordKind(str, Enum):
    """What kind of upstream notification a record was built from."""

    ERROR_EVENT = "ErrorEvent"
    ISSUE_EVENT = "IssueEvent"
    UNRECOGNIZED_EVENT = "UnrecognizedEvent"
    PARSE_FAILURE = "ParseFailure"


class StackFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str = "unknown file"
    line: str = "?"
    function: str = "unknown function"

    def describe(self) -> str:
        return f"{self.file}:{self.line} - {self.function}"


class ErrorDiagnostic(BaseModel):
    """Five-part diagnostic produced for error records."""

    model_config = ConfigDict(frozen=True)

    shape: Literal["error"] = "error"
    cause: str = Field(default=NOT_EXTRACTED, description="Why the error happened.")
    remedy: str = Field(default=NOT_EXTRACTED, description="How to fix it now.")
    prevention: str = Field(default=NOT_EXTRACTED, description="How to avoid it next time.")
    root_cause: str = Field(default=NOT_EXTRACTED, description="Deeper root-cause narrative.")
    code_fix: str = Field(default=NOT_EXTRACTED, description="Suggested code change.")
    source: Literal["model", "local"] = "model"
    failed: bool = False
    failure_reason: str | None = None
    raw_text: str | None = None


class GeneralDiagnostic(BaseModel):
    """Explanatory diagnostic produced for non-error records.

    Fields the prompt did not ask for stay None; fields it asked for but the
    completion did not answer hold NOT_EXTRACTED.
    """

    model_config = ConfigDict(frozen=True)

    shape: Literal["general"] = "general"
    explanation: str = NOT_EXTRACTED
    is_routine: str | None = None
    needs_attention: str | None = None
    recommended_action: str | None = None
    next_steps: str | None = None
    source: Literal["model", "local"] = "model"
    failed: bool = False
    failure_reason: str | None = None
    raw_text: str | None = None


Diagnostic = Annotated[ErrorDiagnostic | GeneralDiagnostic, Field(discriminator="shape")]


class NormalizedRecord(BaseModel):
    """One normalized notification held in the record store.

    Kind-specific fields are None for kinds that do not carry them.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: RecordKind
    occurred_at: datetime
    severity: str
    received_at: datetime | None = None
    message: str | None = None

    # ErrorEvent
    project: str | None = None
    event_id: str | None = None
    exception_type: str | None = None
    exception_value: str | None = None
    frames: tuple[StackFrame, ...] = ()

    # IssueEvent
    issue_id: str | None = None
    action: str | None = None
    title: str | None = None
    culprit: str | None = None

    # UnrecognizedEvent / ParseFailure
    resource_hint: str | None = None
    failure_reason: str | None = None
    payload: dict[str, Any] | None = None

    diagnostic: Diagnostic | None = None

    @property
    def level(self) -> str:
        return (self.severity or "").strip().lower()

    def with_diagnostic(self, diagnostic: ErrorDiagnostic | GeneralDiagnostic) -> NormalizedRecord:
        return self.model_copy(update={"diagnostic": diagnostic})
