"""Shared fixtures: in-memory database, API client, authenticated user, fake yt-dlp."""

import os

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.core.security import create_access_token
from app.core.ytdlp_client import PlaylistUnavailableError, ytdlp_client
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.schemas.playlist import (
    ExtractionMetadata,
    PlaylistExtraction,
    PlaylistSnapshot,
    VideoSchema,
)
from app.schemas.user import UserCreate
from app.services.user_service import user_service

PLAYLIST_ID = "PL1234567890abcdef"


@pytest.fixture(autouse=True)
def reset_database():
    """Give every test an empty schema."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user(db_session):
    return user_service.create_user(
        db_session,
        UserCreate(username="alice", email="alice@example.com", password="correct-horse"),
    )


@pytest.fixture
def auth_headers(user):
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def make_snapshot(playlist_id=PLAYLIST_ID, durations=(600, 900, 1800), ids=None):
    """Build a snapshot with one video per duration (ids default to v0, v1, ...)."""
    ids = ids or [f"v{index}" for index in range(len(durations))]
    videos = [
        VideoSchema(video_id=video_id, title=f"Video {index + 1}", duration_sec=duration, position=index)
        for index, (video_id, duration) in enumerate(zip(ids, durations))
    ]
    return PlaylistSnapshot(
        playlist_id=playlist_id,
        title="Demo Playlist",
        channel_title="Demo Channel",
        fetched_at=datetime(2026, 2, 14, 8, 0, 0),
        videos=videos,
        total_duration_sec=sum(durations),
        video_count=len(videos),
    )


@pytest.fixture
def fake_extractor(monkeypatch):
    """Replace yt-dlp extraction with a queue of canned snapshots or errors."""
    responses = {}
    calls = []

    def _fake_fetch(playlist_id):
        calls.append(playlist_id)
        response = responses.get(playlist_id)
        if response is None:
            raise PlaylistUnavailableError("This playlist does not exist.")
        if isinstance(response, Exception):
            raise response
        return PlaylistExtraction(
            snapshot=response,
            extraction_metadata=ExtractionMetadata(
                mode="flat",
                elapsed_ms=5,
                duration_coverage_pct=100.0,
                video_count=response.video_count,
                fallback_attempted=False,
                degraded=False,
            ),
        )

    monkeypatch.setattr(ytdlp_client, "fetch_playlist_snapshot_detailed", _fake_fetch)
    monkeypatch.setattr(ytdlp_client, "fetch_playlist_preview", _fake_fetch)
    _fake_fetch.responses = responses
    _fake_fetch.calls = calls
    return _fake_fetch


@pytest.fixture
def snapshot_factory():
    return make_snapshot
