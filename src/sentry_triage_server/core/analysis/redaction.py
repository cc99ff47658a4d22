"""Scrub secrets and personal data from prompt context."""

from __future__ import annotations

import re

_DSN_RE = re.compile(r"(?i)\bhttps?://[0-9a-f]{16,}(?::[0-9a-f]+)?@[^\s/]+/\d+\b")
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[a-z0-9._~+/=-]+")
_ASSIGN_RE = re.compile(r"(?i)\b(token|api[_-]?key|secret|password|passwd)(\s*[:=]\s*)([^\s,;&\"']+)")
_EMAIL_RE = re.compile(r"(?i)\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b")
_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_JWT_RE = re.compile(r"\beyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\b")
_LONG_SECRET_RE = re.compile(r"\b(?=[a-zA-Z0-9_\-]*\d)(?=[a-zA-Z0-9_\-]*[a-zA-Z])[a-zA-Z0-9_\-]{40,}\b")


def redact_text(text: str) -> str:
    """Replace DSNs, credentials, emails, IPs and long secrets with tags."""
    text = _DSN_RE.sub("<REDACTED_DSN>", text)
    text = _JWT_RE.sub("<REDACTED_JWT>", text)
    text = _BEARER_RE.sub("Bearer <REDACTED_SECRET>", text)
    text = _ASSIGN_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}<REDACTED_SECRET>", text)
    text = _EMAIL_RE.sub("<REDACTED_EMAIL>", text)
    text = _IPV4_RE.sub("<REDACTED_IP>", text)
    text = _LONG_SECRET_RE.sub("<REDACTED_TOKEN>", text)
    return text
