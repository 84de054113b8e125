# app/utils/formatting.py
from datetime import datetime, timezone
from typing import Optional
import pytz

from app.core.config import settings


def get_timezone(name: Optional[str] = None):
    return pytz.timezone(name or settings.TIME_ZONE)


def format_long_datetime(dt: datetime, tz_name: Optional[str] = None) -> str:
    """Ex. ``Sunday, October 18, 2026 06:00:00 (Asia/Dhaka)``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    tz = get_timezone(tz_name)
    return f"{dt.astimezone(tz).strftime('%A, %B %d, %Y %H:%M:%S')} ({tz.zone})"


def backup_timestamp(dt: Optional[datetime] = None) -> str:
    """Horodatage ISO-8601 UTC utilisable dans un nom de fichier (``:`` et ``.`` remplacés)."""
    dt = (dt or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")
