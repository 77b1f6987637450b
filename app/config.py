# ============================================================================
# FILE: app/config.py
# ============================================================================
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    """Application configuration using Pydantic BaseSettings"""

    # App settings
    APP_NAME: str = "Playlist Planner"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./playlist_planner.db"  # Change to PostgreSQL in production

    # Redis cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    PLAYLIST_PREVIEW_CACHE_SECONDS: int = 600

    # Security
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # yt-dlp playlist extraction
    YTDLP_TIMEOUT_SEC: int = 30
    YTDLP_FALLBACK_TIMEOUT_SEC: Optional[int] = None  # defaults to max(90, 2 * YTDLP_TIMEOUT_SEC)
    YTDLP_MIN_DURATION_COVERAGE_PCT: int = 80
    YTDLP_COOKIES_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
