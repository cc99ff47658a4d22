"""Severity buckets used for filtering and statistics."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from .models import NormalizedRecord, RecordKind


class Category(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"
    OTHER = "other"


def category_of(record: NormalizedRecord) -> Category:
    """Bucket a record; first matching rule wins."""
    level = record.level
    if level == "info":
        return Category.INFO
    if level in ("error", "fatal") or record.kind is RecordKind.ERROR_EVENT:
        return Category.ERROR
    if level == "warning" or (record.kind is RecordKind.ISSUE_EVENT and level != "error"):
        return Category.WARNING
    if level == "debug":
        return Category.DEBUG
    return Category.OTHER


def parse_category(value: str) -> Category:
    try:
        return Category(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(c.value for c in Category)
        raise ValueError(f"Unknown category '{value}'. Valid values: {valid}.") from e


def count_categories(records: Iterable[NormalizedRecord]) -> dict[str, int]:
    counts = {c.value: 0 for c in Category}
    for r in records:
        counts[category_of(r).value] += 1
    return counts
