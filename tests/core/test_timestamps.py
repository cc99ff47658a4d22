from __future__ import annotations

from datetime import UTC, datetime

import pytest

from sentry_triage_server.core.timestamps import normalize_timestamp, parse_timestamp


def test_seconds_scale_epoch_is_not_read_as_millis(now: datetime) -> None:
    dt = normalize_timestamp(1700000000, now=now)
    assert dt.year == 2023
    assert dt == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)


def test_millisecond_epoch(now: datetime) -> None:
    dt = normalize_timestamp(1700000000123, now=now)
    assert dt.year == 2023
    assert dt.microsecond == 123000


def test_float_seconds_and_numeric_string(now: datetime) -> None:
    assert normalize_timestamp(1700000000.5, now=now).microsecond == 500000
    assert normalize_timestamp("1700000000", now=now).year == 2023


@pytest.mark.parametrize(
    "raw",
    ["2025-12-30T08:12:01Z", "2025-12-30T08:12:01+00:00", "Tue, 30 Dec 2025 08:12:01 GMT"],
)
def test_string_forms(raw: str, now: datetime) -> None:
    assert normalize_timestamp(raw, now=now) == datetime(2025, 12, 30, 8, 12, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "not a date",
        0,
        12,
        True,
        {"t": 1},
        "1970-01-01T00:00:00Z",
        "9999-12-31T23:59:59-05:00",
        "0001-01-01T00:00:00+05:00",
    ],
)
def test_invalid_values_fall_back_to_now(raw: object, now: datetime) -> None:
    assert normalize_timestamp(raw, now=now) == now


def test_parse_timestamp_rejects_bool() -> None:
    assert parse_timestamp(True) is None


def test_naive_iso_is_treated_as_utc(now: datetime) -> None:
    dt = normalize_timestamp("2025-12-30T08:12:01", now=now)
    assert dt.tzinfo is not None
    assert dt.hour == 8
