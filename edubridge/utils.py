"""Utility functions for Edubridge.

This module provides helpers for datetime handling, URL extraction,
storage paths and human-friendly relative times.
"""

import re
from datetime import UTC, datetime
from pathlib import PurePath

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

URL_REGEX = re.compile(r"https?://[^\s/$.?#].[^\s]*", re.IGNORECASE)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00.123456+00:00")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def epoch_millis(dt: datetime | None = None) -> int:
    """Milliseconds since the epoch for ``dt`` (defaults to now)."""
    return int((dt or utc_now()).timestamp() * 1000)


def extract_first_url(text: str | None) -> str | None:
    """Return the first http(s) URL found in ``text``, if any.

    Example:
        >>> extract_first_url("Great docs at https://react.dev/learn today")
        'https://react.dev/learn'
    """
    if not text:
        return None
    match = URL_REGEX.search(text)
    return match.group(0) if match else None


def storage_object_path(user_id: str, filename: str, now: datetime | None = None) -> str:
    """Build ``<user_id>/<epoch_ms>_<filename>`` for an upload.

    Only the final path component of ``filename`` is kept so a caller cannot
    write outside the user's folder.
    """
    name = PurePath(filename).name or "upload"
    return f"{user_id}/{epoch_millis(now)}_{name}"


def time_ago(value: str | datetime | None, now: datetime | None = None) -> str:
    """Describe how long ago ``value`` was, e.g. ``"5 minutes ago"``.

    Args:
        value: Timestamp (string or datetime)
        now: Reference time (defaults to current UTC time)

    Returns:
        Relative description, or an empty string for None
    """
    dt = parse_datetime(value)
    if dt is None:
        return ""

    seconds = int(((now or utc_now()) - dt).total_seconds())
    if seconds < 45:
        return "less than a minute ago"

    minutes = round(seconds / 60)
    if minutes < 45:
        return "1 minute ago" if minutes == 1 else f"{minutes} minutes ago"

    hours = round(minutes / 60)
    if hours < 24:
        return "about 1 hour ago" if hours == 1 else f"about {hours} hours ago"

    days = round(hours / 24)
    if days < 30:
        return "1 day ago" if days == 1 else f"{days} days ago"

    months = round(days / 30)
    if months < 12:
        return "about 1 month ago" if months == 1 else f"{months} months ago"

    years = round(months / 12)
    return "about 1 year ago" if years == 1 else f"about {years} years ago"
