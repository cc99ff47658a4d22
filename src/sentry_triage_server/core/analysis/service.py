"""Analysis orchestration.

Picks between a Gemini call and the local fallback, and turns the model's
free-text answer into a typed diagnostic.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

from ..models import ErrorDiagnostic, GeneralDiagnostic, NormalizedRecord
from ..store import RecordStore
from .extraction import extract_diagnostic
from .fallback import failed_diagnostic, local_diagnostic
from .models import AnalysisConfig, PromptKind, is_credential_configured, prompt_kind_for
from .prompt import SYSTEM_PROMPT, build_analysis_prompt

logger = logging.getLogger(__name__)


def _call_gemini_text(prompt: str, *, cfg: AnalysisConfig) -> str:
    """Call Gemini and return the completion text."""
    if not is_credential_configured(cfg.api_key):
        raise RuntimeError("Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")

    try:
        from google import genai
    except ImportError as e:  # pragma: no cover
        raise RuntimeError(
            "google-genai is required for model analysis. Install with: pip install '.[ai]'"
        ) from e

    client = genai.Client(api_key=cfg.api_key)
    resp = client.models.generate_content(
        model=cfg.model,
        contents=prompt,
        config={
            "system_instruction": SYSTEM_PROMPT,
            "temperature": cfg.temperature,
            "max_output_tokens": cfg.max_output_tokens,
        },
    )
    text = resp.text
    if not text:
        raise RuntimeError("Gemini returned an empty completion")
    return text


def _mask(api_key: str) -> str:
    key = api_key.strip()
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}***{key[-4:]}"


class Analyzer:
    """Produces diagnostics for records; never mutates the store."""

    def __init__(self, cfg: AnalysisConfig | None = None) -> None:
        self._cfg = cfg or AnalysisConfig()
        self._semaphore = asyncio.Semaphore(self._cfg.max_concurrent_requests)

    @property
    def config(self) -> AnalysisConfig:
        return self._cfg

    @property
    def remote_enabled(self) -> bool:
        return is_credential_configured(self._cfg.api_key)

    def set_api_key(self, api_key: str | None) -> None:
        key = (api_key or "").strip() or None
        self._cfg = replace(self._cfg, api_key=key)
        logger.info("Model credential %s", "updated" if self.remote_enabled else "cleared")

    def credential_status(self) -> dict[str, Any]:
        configured = self.remote_enabled
        return {
            "configured": configured,
            "model": self._cfg.model,
            "masked_key": _mask(self._cfg.api_key or "") if configured else None,
            "mode": "model" if configured else "local",
        }

    async def analyze(
        self,
        record: NormalizedRecord,
        *,
        force: bool = False,
    ) -> ErrorDiagnostic | GeneralDiagnostic:
        """Diagnose one record.

        An existing diagnostic is returned as-is unless `force` is set.
        Model failures come back as a failed diagnostic, not an exception.
        """
        if record.diagnostic is not None and not force:
            return record.diagnostic

        kind = prompt_kind_for(record)
        if not self.remote_enabled:
            logger.info("No model credential configured; using local analysis for %s", record.id)
            return local_diagnostic(record, kind)

        prompt = build_analysis_prompt(
            record,
            kind,
            redact=self._cfg.redact,
            max_frames=self._cfg.max_frames_in_prompt,
        )
        try:
            async with self._semaphore:
                text = await asyncio.to_thread(_call_gemini_text, prompt, cfg=self._cfg)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning("Model call failed for record %s: %s", record.id, reason)
            return failed_diagnostic(kind, reason)

        return extract_diagnostic(text, kind is PromptKind.ERROR, prompt_kind=kind)


async def analyze_record(
    store: RecordStore,
    analyzer: Analyzer,
    record_id: str,
    *,
    force: bool = False,
    timeout_s: float | None = None,
) -> NormalizedRecord:
    """Analyze a stored record and merge the diagnostic back onto it.

    Raises KeyError for an unknown id and TimeoutError when analysis
    exceeds the timeout; nothing is attached in either case.
    """
    record = store.get(record_id)
    if record is None:
        raise KeyError(record_id)
    if record.diagnostic is not None and not force:
        return record

    timeout = timeout_s if timeout_s is not None else analyzer.config.timeout_s
    try:
        diagnostic = await asyncio.wait_for(analyzer.analyze(record, force=force), timeout)
    except TimeoutError:
        logger.warning("Analysis of %s timed out after %.0fs", record_id, timeout)
        raise

    stored = await store.attach_diagnostic(record_id, diagnostic)
    if stored is None:
        # Deleted while the analysis was running.
        raise KeyError(record_id)
    logger.info("Attached %s diagnostic to %s", diagnostic.source, record_id)
    return stored
