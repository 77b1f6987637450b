# ============================================================================
# FILE: app/core/scheduler.py
# Day-by-day watch schedule for a playlist
# ============================================================================
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Sequence
from app.core.formatting import format_duration_compact, format_short_date
from app.schemas.schedule import ScheduledDay, ScheduleResult

# Slower speeds are treated as malformed and fall back to normal speed
MIN_PLAYBACK_SPEED = 0.1


def _parse_start_date(value: Any, today: date) -> date:
    """Accept a date or an ISO string; anything else means today"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    return today


def _is_completed(progress: Any) -> bool:
    if progress is None:
        return False
    if isinstance(progress, Mapping):
        return progress.get("completed") is True
    return getattr(progress, "completed", False) is True


def _playback_speed(value: Any) -> float:
    """Falsy, non-numeric, non-finite or implausibly slow speeds mean normal speed"""
    try:
        speed = float(value or 1)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(speed) or speed < MIN_PLAYBACK_SPEED:
        return 1
    return speed


def daily_budget_seconds(minutes_per_day: Any) -> int:
    """Per-day allowance in seconds, never below 1"""
    try:
        seconds = math.floor(float(minutes_per_day or 0) * 60)
    except (TypeError, ValueError, OverflowError):
        seconds = 0
    return max(1, seconds)


def effective_start_date(start_date: Any, today: date) -> date:
    """The schedule never starts before today"""
    configured = _parse_start_date(start_date, today)
    return max(configured, today)


def adjusted_duration(duration_sec: int, playback_speed: float) -> int:
    """Watch time at the given speed, rounded up and at least 1 second"""
    try:
        return max(1, math.ceil((duration_sec or 0) / playback_speed))
    except (OverflowError, ValueError, ZeroDivisionError):
        return max(1, int(duration_sec or 0))


def _latest_start_date(day_count: int) -> date:
    """Last start date that still leaves room for day_count consecutive days"""
    headroom = min(max(0, day_count - 1), (date.max - date.min).days)
    return date.max - timedelta(days=headroom)


def _label_day(day: ScheduledDay) -> ScheduledDay:
    day.date_label = format_short_date(day.date)
    day.planned_duration_label = format_duration_compact(day.planned_duration_sec)
    return day


def build_schedule(
    videos: Sequence[Any],
    plan_config: Any,
    progress_map: Optional[Mapping[str, Any]] = None,
    today: Optional[date] = None,
) -> ScheduleResult:
    """
    Bucket the not-yet-completed videos into calendar days

    Videos are packed greedily in position order: a day is closed as soon as
    the next video would push it over the daily budget, except that the first
    video of a day is always placed, however long it is.

    Args:
        videos: Objects with video_id, duration_sec and position
        plan_config: Object with minutes_per_day, start_date and playback_speed
        progress_map: video_id -> progress (object or dict with "completed")
        today: Reference date; sampled once from the clock when omitted

    Returns:
        ScheduleResult with the days and aggregate statistics
    """
    if today is None:
        today = date.today()
    progress_map = progress_map or {}

    pace = _playback_speed(getattr(plan_config, "playback_speed", None))
    budget_sec = daily_budget_seconds(getattr(plan_config, "minutes_per_day", None))
    start = effective_start_date(getattr(plan_config, "start_date", None), today)

    ordered = sorted(videos, key=lambda video: video.position)
    remaining = [v for v in ordered if not _is_completed(progress_map.get(v.video_id))]

    days = []
    current = None

    for video in remaining:
        duration = adjusted_duration(video.duration_sec, pace)
        if current is None or current.planned_duration_sec + duration > budget_sec:
            current = ScheduledDay(date=start)
            days.append(current)

        current.video_ids.append(video.video_id)
        current.planned_duration_sec += duration

    # consecutive days must fit before date.max
    start = min(start, _latest_start_date(len(days)))
    video_day_map: Dict[str, date] = {}
    for day_index, day in enumerate(days):
        day.date = start + timedelta(days=day_index)
        _label_day(day)
        for video_id in day.video_ids:
            video_day_map[video_id] = day.date

    total_videos = len(ordered)
    completed_videos = total_videos - len(remaining)

    return ScheduleResult(
        days=days,
        video_day_map=video_day_map,
        end_date=days[-1].date if days else None,
        total_duration_sec=sum(v.duration_sec for v in ordered),
        remaining_duration_sec=sum(v.duration_sec for v in remaining),
        total_adjusted_duration_sec=sum(adjusted_duration(v.duration_sec, pace) for v in ordered),
        remaining_adjusted_duration_sec=sum(adjusted_duration(v.duration_sec, pace) for v in remaining),
        daily_adjusted_budget_sec=budget_sec,
        total_videos=total_videos,
        remaining_videos=len(remaining),
        completed_videos=completed_videos,
        completion_rate=completed_videos / total_videos if total_videos else 0.0,
    )
