from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from flask import request

from app.apex.errors import ValidationError


def json_body() -> dict:
    """Request JSON as a dict (empty dict for no/invalid body)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def clean_str(value: Any) -> str | None:
    """Strip strings; empty becomes None."""
    if value is None:
        return None
    return str(value).strip() or None


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD (an ISO datetime is truncated to its date)."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError as e:
        raise ValidationError(f"Invalid date: {s}") from e


def parse_datetime(s: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    if s is None:
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = str(s).strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {s}") from e
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be an integer.") from e


def optional_int(value: Any, field: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_int(value, field)


def query_int(name: str, *, required: bool = False) -> int | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        if required:
            raise ValidationError(f"Missing required query parameter: {name}")
        return None
    return parse_int(raw, name)


def as_list(value: Any) -> list[str]:
    """Lists pass through; comma-separated strings are split."""
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    raise ValidationError("Expected a list or a comma-separated string.")


def iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def format_display_date(value: date | datetime | None) -> str:
    if value is None:
        return "Not set"
    return value.strftime("%b %d, %Y")


def utcnow() -> datetime:
    return datetime.utcnow()
