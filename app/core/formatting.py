# ============================================================================
# FILE: app/core/formatting.py
# Human readable durations and dates for schedule display
# ============================================================================
from datetime import date, datetime
from typing import Union


def format_duration_compact(seconds: int) -> str:
    """Format seconds as "1h 5m" / "45m"; anything under a minute rounds up to "1m" """
    if not seconds or seconds <= 0:
        return "0m"

    total_minutes = max(1, int(seconds) // 60)
    hours, minutes = divmod(total_minutes, 60)

    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def format_duration_clock(seconds: int) -> str:
    """Format seconds as "m:ss" or "h:mm:ss" """
    total = max(0, int(seconds or 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_short_date(value: Union[date, str]) -> str:
    """Format a date as "Feb 14"; unparsable strings are returned unchanged"""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.strftime('%b')} {value.day}"
