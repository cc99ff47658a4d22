"""Analysis configuration and prompt variants."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum

from ..models import NormalizedRecord, RecordKind

PLACEHOLDER_API_KEY = "your-gemini-api-key"


class PromptKind(str, Enum):
    """Which question the model is asked about a record."""

    ERROR = "error"  # five-part diagnosis
    INFO = "info"  # three-part explanation of an informational event
    GENERAL = "general"  # three-part triage for everything else


def prompt_kind_for(record: NormalizedRecord) -> PromptKind:
    if record.level == "info":
        return PromptKind.INFO
    if record.kind is RecordKind.ERROR_EVENT:
        return PromptKind.ERROR
    return PromptKind.GENERAL


def is_credential_configured(api_key: str | None) -> bool:
    if api_key is None:
        return False
    key = api_key.strip()
    return bool(key) and key != PLACEHOLDER_API_KEY


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    model: str = "gemini-2.5-flash-lite"
    api_key: str | None = None

    # Low randomness, bounded output.
    temperature: float = 0.2
    max_output_tokens: int = 2000

    redact: bool = True
    max_concurrent_requests: int = 2
    timeout_s: float = 180.0
    max_frames_in_prompt: int = 10


def _positive_int_env(name: str) -> int | None:
    env = os.getenv(name)
    if env is None or env == "":
        return None
    try:
        value = int(env)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1")
    return value


def resolve_analysis_config(cfg: AnalysisConfig | None) -> AnalysisConfig:
    """Return config with optional env overrides applied."""
    if cfg is None:
        cfg = AnalysisConfig()

    updates: dict[str, object] = {}

    if cfg.api_key is None:
        key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if key:
            updates["api_key"] = key

    model = os.getenv("SENTRY_TRIAGE_MODEL")
    if model:
        updates["model"] = model

    concurrency = _positive_int_env("SENTRY_TRIAGE_AI_MAX_CONCURRENCY")
    if concurrency is not None:
        updates["max_concurrent_requests"] = concurrency

    timeout = _positive_int_env("SENTRY_TRIAGE_ANALYSIS_TIMEOUT")
    if timeout is not None:
        updates["timeout_s"] = float(timeout)

    return replace(cfg, **updates) if updates else cfg
