
# ============================================================================
# FILE: app/schemas/playlist.py
# ============================================================================
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Literal
from datetime import date, datetime
from app.core.youtube import parse_playlist_id
from app.schemas.schedule import ScheduleResult

DATE_ONLY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

PlaybackSpeed = Literal[1, 1.5, 1.75, 2]
PLAYBACK_SPEEDS = (1, 1.5, 1.75, 2)

def _check_calendar_date(value: Optional[str]) -> Optional[str]:
    """Reject pattern-valid strings that are not real dates, e.g. 2026-02-30"""
    if value is not None:
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError(f"{value} is not a valid calendar date.")
    return value

class PlanConfig(BaseModel):
    """Schema for a playlist's watch plan"""
    minutes_per_day: int = Field(..., ge=1, le=600)
    start_date: str = Field(..., pattern=DATE_ONLY_PATTERN)
    playback_speed: PlaybackSpeed = 1

    @field_validator("start_date")
    @classmethod
    def check_start_date(cls, value):
        return _check_calendar_date(value)

class PlanConfigUpdate(BaseModel):
    """Schema for patching a plan; at least one field is required"""
    minutes_per_day: Optional[int] = Field(None, ge=1, le=600)
    start_date: Optional[str] = Field(None, pattern=DATE_ONLY_PATTERN)
    playback_speed: Optional[PlaybackSpeed] = None

    @field_validator("start_date")
    @classmethod
    def check_start_date(cls, value):
        return _check_calendar_date(value)

    @model_validator(mode="after")
    def check_not_empty(self):
        if self.minutes_per_day is None and self.start_date is None and self.playback_speed is None:
            raise ValueError("At least one plan config field is required.")
        return self

class VideoSchema(BaseModel):
    """Schema for one playlist video"""
    video_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    duration_sec: int = Field(..., ge=0)
    thumbnail_url: str = ""
    position: int = Field(..., ge=0)
    published_at: Optional[str] = None

    class Config:
        from_attributes = True

class VideoProgress(BaseModel):
    """Completion state of one video"""
    completed: bool
    completed_at: Optional[datetime] = None

class PlaylistSnapshot(BaseModel):
    """Playlist metadata as extracted at fetched_at"""
    playlist_id: str = Field(..., min_length=10, max_length=60)
    title: str = Field(..., min_length=1)
    channel_title: str = Field(..., min_length=1)
    fetched_at: datetime
    videos: List[VideoSchema] = []
    total_duration_sec: int = Field(0, ge=0)
    video_count: int = Field(0, ge=0)

class PlaylistState(BaseModel):
    """Everything tracked for one playlist"""
    snapshot: PlaylistSnapshot
    plan_config: PlanConfig
    progress_map: Dict[str, VideoProgress] = {}
    updated_at: datetime

class ImportPlaylistRequest(BaseModel):
    """Schema for importing a playlist by id or URL"""
    playlist_id: str
    plan_config: PlanConfig

    @field_validator("playlist_id")
    @classmethod
    def normalize_playlist_id(cls, value: str) -> str:
        playlist_id = parse_playlist_id(value)
        if not playlist_id:
            raise ValueError("Not a valid YouTube playlist id or URL.")
        return playlist_id

class UpdateProgressRequest(BaseModel):
    """Schema for toggling a video's completion"""
    video_id: str = Field(..., min_length=1)
    completed: bool

class MigrationPayload(BaseModel):
    """Schema for uploading locally stored playlist states; the key is derived from the states when omitted"""
    client_migration_key: Optional[str] = Field(None, min_length=1, max_length=256)
    playlists: List[PlaylistState] = []

class MigrationSummary(BaseModel):
    """Outcome of a local-state migration"""
    imported_playlists: int = 0
    skipped_playlists: int = 0
    imported_progress_entries: int = 0
    already_migrated: bool = False

class ExtractionMetadata(BaseModel):
    """How a playlist snapshot was obtained from yt-dlp"""
    mode: Literal["flat", "full"]
    elapsed_ms: int
    duration_coverage_pct: float
    video_count: int
    fallback_attempted: bool
    degraded: bool

class PlaylistResponse(BaseModel):
    """Playlist state together with its freshly computed schedule"""
    playlist: PlaylistState
    schedule: ScheduleResult
    extraction_metadata: Optional[ExtractionMetadata] = None

class PlaylistListResponse(BaseModel):
    """Schema for the tracked playlists list"""
    playlists: List[PlaylistResponse] = []

class PlaylistExtraction(BaseModel):
    """A freshly extracted snapshot and how it was obtained"""
    snapshot: PlaylistSnapshot
    extraction_metadata: ExtractionMetadata

class BatchImportRequest(BaseModel):
    """Schema for importing several playlists, one id or URL per line"""
    playlist_inputs: str = Field(..., min_length=1)
    plan_config: PlanConfig

class ImportFailure(BaseModel):
    """A playlist of a batch that could not be imported"""
    playlist_id: str
    message: str

class BatchImportResponse(BaseModel):
    """Outcome of a batch import"""
    imported: List[PlaylistResponse] = []
    skipped_existing: List[str] = []
    failures: List[ImportFailure] = []
    invalid_lines: int = 0
