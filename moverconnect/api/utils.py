from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser


def parse_any_date(value: Any) -> Optional[datetime]:
    """Best-effort date parser that returns naive UTC datetimes."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except Exception:
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            dt = datetime.fromisoformat(text)
        except Exception:
            try:
                dt = parser.parse(text, fuzzy=True)
            except Exception:
                return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def owner_uid_from_path(path: str) -> Optional[str]:
    """Owner of a per-user record, e.g. users/{uid}/requests/{id} -> uid."""
    parts = [p for p in str(path or "").split("/") if p]
    if len(parts) >= 2 and parts[0] == "users":
        return parts[1]
    return None


def email_local_part(email: Optional[str], default: str = "") -> str:
    text = str(email or "").strip()
    if not text:
        return default
    return text.split("@", 1)[0] or default


def as_float(value: Any) -> Optional[float]:
    """Coerce stored timestamps (epoch seconds or datetimes) to epoch seconds."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
