from __future__ import annotations

import logging

import pytest

from sentry_triage_server.core.log_buffer import LogBuffer, LogBufferHandler


def test_buffer_is_bounded_and_keeps_newest() -> None:
    buf = LogBuffer(max_lines=3)
    for i in range(5):
        buf.append(f"line {i}")

    assert len(buf) == 3
    assert buf.tail() == ["line 2", "line 3", "line 4"]
    assert buf.tail(2) == ["line 3", "line 4"]
    assert buf.tail(0) == []


def test_buffer_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        LogBuffer(max_lines=0)


def test_handler_feeds_buffer() -> None:
    buf = LogBuffer()
    handler = LogBufferHandler(buf)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    log = logging.getLogger("sentry_triage_server.tests.log_buffer")
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        log.info("stored %s", "x1")
    finally:
        log.removeHandler(handler)

    assert buf.tail() == ["INFO stored x1"]
