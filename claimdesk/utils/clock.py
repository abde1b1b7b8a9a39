# claimdesk/utils/clock.py
from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from flask import current_app

# Rows store naive UTC. Business dates (claim-number year, "today", report
# day boundaries) are taken in the service network's local time.
DEFAULT_BUSINESS_TZ = "Asia/Bangkok"


def business_tz() -> ZoneInfo:
    return ZoneInfo(current_app.config.get("BUSINESS_TZ") or DEFAULT_BUSINESS_TZ)


def business_now() -> datetime:
    """Aware local time in the business time zone."""
    return datetime.now(business_tz())


def to_business_time(value: datetime | None) -> datetime | None:
    """Naive UTC (as stored) -> aware local time."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(business_tz())


def local_midnight_utc(day: date, tz) -> datetime:
    """Naive UTC instant at which ``day`` starts in ``tz``."""
    start = datetime.combine(day, time.min)
    if tz is None:
        return start
    return start.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)
