"""Helpers for release timestamps, ages and version components."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from constants import Constants


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        if text.endswith("Z"):
            parsed = datetime.fromisoformat(text[:-1]).replace(tzinfo=timezone.utc)
        else:
            parsed = datetime.fromisoformat(text)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    except (ValueError, TypeError):
        return None


def age_days(published: datetime, now: Optional[datetime] = None) -> int:
    """Return release age in full (truncated) days."""
    now = now or datetime.now(timezone.utc)
    return int((now - published).total_seconds() // Constants.SECONDS_PER_DAY)


def age_years(published: datetime, now: Optional[datetime] = None) -> float:
    """Return release age in fractional years of 365.25 days."""
    now = now or datetime.now(timezone.utc)
    return (now - published).total_seconds() / Constants.SECONDS_PER_YEAR


def major_version(version: Optional[str]) -> int:
    """Leading dot-delimited integer of a version string; 0 when not numeric.

    >>> major_version("7.1.3")
    7
    >>> major_version("beta")
    0
    """
    head = str(version or "").split(".", 1)[0].strip()
    digits = ""
    for ch in head:
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else 0
