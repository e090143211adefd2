from __future__ import annotations

from datetime import datetime, timezone

from dateutil import parser as date_parser


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def to_iso_or_empty(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        return ""
    parsed = parse_datetime(value.strip())
    return format_iso(parsed) if parsed else ""


def date_only(value: str, fallback: str) -> str:
    iso = to_iso_or_empty(value) or to_iso_or_empty(fallback)
    return iso[:10]


def time_only(value: str, fallback: str) -> str:
    iso = to_iso_or_empty(value) or to_iso_or_empty(fallback)
    return iso[11:19]


def day_of(value: str) -> str:
    if not value:
        return ""
    iso = to_iso_or_empty(value)
    return iso[:10] if iso else value[:10]


def run_id_for(timestamp: str) -> str:
    return timestamp.replace(":", "-").replace(".", "-")


def timestamp_or_zero(value: str) -> float:
    parsed = parse_datetime(value)
    return parsed.timestamp() * 1000 if parsed else 0.0
