from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def current_year() -> int:
    return datetime.now(timezone.utc).year


def normalize_iso_date(value: str) -> str:
    """Validate an ISO-8601 date or datetime and return it in stored form.

    A bare date is kept as YYYY-MM-DD. A datetime is converted to UTC and
    written like utcnow_iso(); naive datetimes are taken as UTC. Raises
    ValueError for anything that is not a real calendar date.
    """
    v = (value or "").strip()
    if len(v) == 10:
        return date.fromisoformat(v).isoformat()

    raw = v[:-1] + "+00:00" if v.endswith(("Z", "z")) else v
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")
