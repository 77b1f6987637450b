
# ============================================================================
# FILE: app/db/models/playlist.py
# ============================================================================
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Numeric, Boolean, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base

class Playlist(Base):
    """A YouTube playlist tracked by a user, together with its watch plan"""
    __tablename__ = "playlists"
    __table_args__ = (
        UniqueConstraint("user_id", "youtube_playlist_id", name="uq_playlists_user_playlist"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    youtube_playlist_id = Column(String(60), nullable=False)
    title = Column(String, nullable=False)
    channel_title = Column(String, nullable=False)
    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    # Plan config
    minutes_per_day = Column(Integer, nullable=False, default=45)
    start_date = Column(Date, nullable=False)
    playback_speed = Column(Numeric(4, 2), nullable=False, default=1)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="playlists")
    videos = relationship(
        "PlaylistVideo",
        back_populates="playlist",
        order_by="PlaylistVideo.position",
        cascade="all, delete-orphan",
    )
    progresses = relationship("VideoProgress", back_populates="playlist", cascade="all, delete-orphan")

class PlaylistVideo(Base):
    """One video of a playlist snapshot; duplicates of a video id are kept"""
    __tablename__ = "playlist_videos"
    
    id = Column(Integer, primary_key=True, index=True)
    playlist_id = Column(Integer, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False, index=True)
    youtube_video_id = Column(String, nullable=False)  # YouTube video ID
    title = Column(String, nullable=False)
    duration_sec = Column(Integer, nullable=False, default=0)
    thumbnail_url = Column(String, nullable=False, default="")
    position = Column(Integer, nullable=False)
    published_at = Column(String(10), nullable=True)  # YYYY-MM-DD
    
    # Relationships
    playlist = relationship("Playlist", back_populates="videos")

class VideoProgress(Base):
    """Completion of a video; a missing row means not completed"""
    __tablename__ = "video_progress"
    __table_args__ = (
        UniqueConstraint("playlist_id", "youtube_video_id", name="uq_video_progress_playlist_video"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    playlist_id = Column(Integer, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False, index=True)
    youtube_video_id = Column(String, nullable=False)
    completed = Column(Boolean, nullable=False, default=True)
    completed_at = Column(DateTime, nullable=True)
    
    # Relationships
    playlist = relationship("Playlist", back_populates="progresses")
