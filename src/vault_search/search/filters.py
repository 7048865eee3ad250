"""
Metadata filter helpers.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from ..models import DateRange, SearchFilters


def parse_tags(raw: Any) -> set[str]:
    """Normalize a front-matter tag value (``a, b``, ``[a, b]`` or a list) to a set."""
    if raw is None:
        return set()
    if isinstance(raw, (list, tuple, set)):
        items = [str(item) for item in raw]
    else:
        text = str(raw).strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        items = text.split(",")

    tags: set[str] = set()
    for item in items:
        tag = item.strip().strip("'\"").lstrip("#").strip()
        if tag:
            tags.add(tag)
    return tags


def parse_date(raw: Any) -> date | None:
    """Parse an ISO date or datetime value; anything else yields None."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip().strip("'\"")
    if not text:
        return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _within(value: date | None, date_range: DateRange) -> bool:
    if value is None:
        return False
    if date_range.start is not None and value < date_range.start:
        return False
    if date_range.end is not None and value > date_range.end:
        return False
    return True


def matches_filters(metadata: dict[str, Any], filters: SearchFilters) -> bool:
    """Return True when a document's metadata satisfies every active filter."""
    if filters.categories:
        category = metadata.get("category")
        if category is None or str(category).strip() not in filters.categories:
            return False

    if filters.tags:
        if not parse_tags(metadata.get("tags")) & filters.tags:
            return False

    if filters.date_range is not None:
        if not _within(parse_date(metadata.get("date")), filters.date_range):
            return False

    return True
