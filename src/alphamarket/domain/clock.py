# src/alphamarket/domain/clock.py
"""Time helpers. Markets run on IST; everything is stored in UTC."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def next_ist_6am(now: Optional[datetime] = None) -> datetime:
    """Groww access tokens lapse at 06:00 IST every day."""
    now_ist = (now or utcnow()).astimezone(IST)
    target = now_ist.replace(hour=6, minute=0, second=0, microsecond=0)
    if now_ist >= target:
        target += timedelta(days=1)
    return target.astimezone(timezone.utc)


def in_square_off_window(now: Optional[datetime] = None) -> bool:
    """True between 15:25 and 15:30 IST inclusive."""
    t = (now or utcnow()).astimezone(IST)
    return t.hour == 15 and 25 <= t.minute <= 30
