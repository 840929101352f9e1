# shelter/common/clock.py
from datetime import timedelta
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone


def utc_day_key(now=None) -> str:
    """pair history 용 날짜 키 (UTC)."""
    now = now or timezone.now()
    return now.astimezone(ZoneInfo("UTC")).date().isoformat()


def metrics_day_key(now=None) -> str:
    """KPI 집계용 날짜 키 (METRICS_TIME_ZONE 기준)."""
    now = now or timezone.now()
    return now.astimezone(ZoneInfo(settings.METRICS_TIME_ZONE)).date().isoformat()


def minutes_from(now, minutes: int):
    return now + timedelta(minutes=minutes)


def hours_from(now, hours: int):
    return now + timedelta(hours=hours)


def seconds_between(earlier, later) -> int:
    if not earlier or not later:
        return 0
    return max(0, int((later - earlier).total_seconds()))
