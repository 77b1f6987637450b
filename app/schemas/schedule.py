# ============================================================================
# FILE: app/schemas/schedule.py
# ============================================================================
from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import date

class ScheduledDay(BaseModel):
    """One calendar day of the watch plan"""
    date: date
    video_ids: List[str] = []
    planned_duration_sec: int = 0
    date_label: str = ""  # e.g. "Feb 14"
    planned_duration_label: str = ""  # e.g. "1h 5m"

class ScheduleResult(BaseModel):
    """Derived schedule view, recomputed on every read and never stored"""
    days: List[ScheduledDay] = []
    video_day_map: Dict[str, date] = {}
    end_date: Optional[date] = None
    total_duration_sec: int = 0
    remaining_duration_sec: int = 0
    total_adjusted_duration_sec: int = 0
    remaining_adjusted_duration_sec: int = 0
    daily_adjusted_budget_sec: int = 1
    total_videos: int = 0
    remaining_videos: int = 0
    completed_videos: int = 0
    completion_rate: float = 0.0
