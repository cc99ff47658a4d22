"""Record analysis package."""

from __future__ import annotations

from .extraction import extract_diagnostic
from .fallback import failed_diagnostic, local_diagnostic
from .models import AnalysisConfig, PromptKind, prompt_kind_for, resolve_analysis_config
from .service import Analyzer, analyze_record

__all__ = [
    "AnalysisConfig",
    "Analyzer",
    "PromptKind",
    "analyze_record",
    "extract_diagnostic",
    "failed_diagnostic",
    "local_diagnostic",
    "prompt_kind_for",
    "resolve_analysis_config",
]
