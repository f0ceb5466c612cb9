"""General-purpose helpers shared by services and routes.

All timestamps inside the service layer are naive datetimes in UTC, which is
also how they are stored.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .errors import ValidationError

Clock = Callable[[], datetime]

__all__ = [
    "Clock",
    "utc_now",
    "to_utc_naive",
    "epoch_seconds",
    "iso",
    "parse_datetime",
    "random_string",
    "normalize_email",
]

_ALNUM = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def epoch_seconds(dt: datetime) -> int:
    return int(to_utc_naive(dt).replace(tzinfo=timezone.utc).timestamp())


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return to_utc_naive(dt).isoformat(timespec="seconds") + "Z"


def parse_datetime(value: Any, *, field: str = "date") -> Optional[datetime]:
    """Accept RFC 3339 and the plain date/time layouts the web client sends."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return to_utc_naive(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    raise ValidationError(f"Invalid {field} format")


def random_string(length: int, alphabet: str = _ALNUM) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(max(1, int(length))))


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()
