from __future__ import annotations

from sentry_triage_server.core.analysis.redaction import redact_text


def test_redact_replaces_sensitive_tokens() -> None:
    text = (
        "user@example.com 1.2.3.4 "
        "eyJaaaaaaaaaa.bbbbbbbbbb.cccccccccc "
        "Authorization: Bearer abc.def "
        "dsn https://0123456789abcdef0123@o1.ingest.sentry.io/42 "
        "api_key=sk-live-123 "
        "build abcdefghijklmnopqrstuvwxyz1234567890abcdefgh"
    )

    redacted = redact_text(text)

    assert "<REDACTED_EMAIL>" in redacted
    assert "<REDACTED_IP>" in redacted
    assert "<REDACTED_JWT>" in redacted
    assert "Bearer <REDACTED_SECRET>" in redacted
    assert "<REDACTED_DSN>" in redacted
    assert "api_key=<REDACTED_SECRET>" in redacted
    assert "<REDACTED_TOKEN>" in redacted
    assert "sk-live-123" not in redacted


def test_plain_prose_is_untouched() -> None:
    text = "password for the admin user was rotated; token refresh succeeded"

    assert redact_text(text) == text
