"""Time Utilities - UTC timestamps and parsing"""
from datetime import datetime, timezone
from typing import Any, Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    dt = date_parser.isoparse(iso_string)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    Issue documents are written by several clients, so timestamps arrive as
    BSON dates (naive UTC from the driver), ISO strings, or epoch milliseconds.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        return parse_iso(value)
    raise ValueError(f"Unsupported timestamp value: {value!r}")
