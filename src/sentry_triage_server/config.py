"""Server configuration resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sentry_triage_server.core.analysis import AnalysisConfig, resolve_analysis_config
from sentry_triage_server.core.log_buffer import DEFAULT_MAX_LINES
from sentry_triage_server.core.store import DEFAULT_CAPACITY, DEFAULT_FLUSH_INTERVAL_S, snapshot_path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_DATA_DIR = "./data"
MAX_RECORDS_ENV = "SENTRY_TRIAGE_MAX_RECORDS"


def _int_env(name: str, default: int, *, minimum: int = 1) -> int:
    env = os.getenv(name)
    if env is None or env.strip() == "":
        return default
    try:
        value = int(env)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value



def resolve_max_records() -> int:
    """Store capacity shared by the server and the snapshot tools."""
    return _int_env(MAX_RECORDS_ENV, DEFAULT_CAPACITY)


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    max_records: int = DEFAULT_CAPACITY
    flush_interval_s: float = DEFAULT_FLUSH_INTERVAL_S
    chat_webhook_url: str | None = None
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_buffer_lines: int = DEFAULT_MAX_LINES
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    @property
    def snapshot_path(self) -> Path:
        return snapshot_path(self.data_dir)

    @property
    def local_url(self) -> str:
        """Base URL for clients on this machine."""
        host = "127.0.0.1" if self.host in ("0.0.0.0", "::", "") else self.host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build a config from SENTRY_TRIAGE_* variables (and PORT).

        Raises ValueError when a numeric variable is malformed.
        """
        log_dir = os.getenv("SENTRY_TRIAGE_LOG_DIR")
        return cls(
            host=os.getenv("SENTRY_TRIAGE_HOST") or DEFAULT_HOST,
            port=_int_env("PORT", DEFAULT_PORT, minimum=0),
            data_dir=Path(os.getenv("SENTRY_TRIAGE_DATA_DIR") or DEFAULT_DATA_DIR),
            max_records=resolve_max_records(),
            flush_interval_s=float(_int_env("SENTRY_TRIAGE_FLUSH_INTERVAL", int(DEFAULT_FLUSH_INTERVAL_S))),
            chat_webhook_url=os.getenv("SENTRY_TRIAGE_CHAT_WEBHOOK_URL") or None,
            log_level=(os.getenv("SENTRY_TRIAGE_LOG_LEVEL") or "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
            log_buffer_lines=_int_env("SENTRY_TRIAGE_LOG_BUFFER", DEFAULT_MAX_LINES),
            analysis=resolve_analysis_config(None),
        )
