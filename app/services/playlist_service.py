# ============================================================================
# FILE: app/services/playlist_service.py
# ============================================================================
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.db.models.migration import MigrationEvent, UserSettings
from app.db.models.playlist import Playlist, PlaylistVideo, VideoProgress
from app.schemas.playlist import (
    PLAYBACK_SPEEDS,
    MigrationSummary,
    PlanConfig,
    PlanConfigUpdate,
    PlaylistSnapshot,
    PlaylistState,
    VideoProgress as VideoProgressSchema,
    VideoSchema,
)
import logging

logger = logging.getLogger(__name__)


def _parse_playback_speed(value) -> float:
    """Stored speeds outside the supported set read back as 1"""
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 1
    for speed in PLAYBACK_SPEEDS:
        if numeric == speed:
            return speed
    return 1


def _parse_start_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except (TypeError, ValueError):
        return date.today()


def _naive_utc(value: Optional[datetime]) -> datetime:
    """Columns store naive UTC; missing values mean now"""
    if value is None:
        return datetime.utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class PlaylistService:
    """Service layer for tracked playlists, their plans and progress"""

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _to_state(self, playlist: Playlist) -> PlaylistState:
        videos = [
            VideoSchema(
                video_id=video.youtube_video_id,
                title=video.title,
                duration_sec=video.duration_sec,
                thumbnail_url=video.thumbnail_url or "",
                position=video.position,
                published_at=video.published_at,
            )
            for video in sorted(playlist.videos, key=lambda v: v.position)
        ]
        start_date = playlist.start_date if isinstance(playlist.start_date, date) else date.today()

        return PlaylistState(
            snapshot=PlaylistSnapshot(
                playlist_id=playlist.youtube_playlist_id,
                title=playlist.title,
                channel_title=playlist.channel_title,
                fetched_at=playlist.fetched_at,
                videos=videos,
                total_duration_sec=sum(video.duration_sec for video in videos),
                video_count=len(videos),
            ),
            plan_config=PlanConfig(
                minutes_per_day=playlist.minutes_per_day,
                start_date=start_date.isoformat(),
                playback_speed=_parse_playback_speed(playlist.playback_speed),
            ),
            progress_map={
                progress.youtube_video_id: VideoProgressSchema(
                    completed=progress.completed,
                    completed_at=progress.completed_at,
                )
                for progress in playlist.progresses
            },
            updated_at=playlist.updated_at or playlist.created_at or datetime.utcnow(),
        )

    def _get_row(self, db: Session, user_id: int, playlist_id: str) -> Optional[Playlist]:
        return db.query(Playlist).filter(
            Playlist.user_id == user_id,
            Playlist.youtube_playlist_id == playlist_id
        ).first()

    def _apply_snapshot(self, playlist: Playlist, snapshot: PlaylistSnapshot, plan_config: PlanConfig):
        playlist.title = snapshot.title
        playlist.channel_title = snapshot.channel_title
        playlist.fetched_at = _naive_utc(snapshot.fetched_at)
        playlist.minutes_per_day = plan_config.minutes_per_day
        playlist.start_date = _parse_start_date(plan_config.start_date)
        playlist.playback_speed = plan_config.playback_speed
        playlist.updated_at = datetime.utcnow()

    def _sync_videos(self, playlist: Playlist, videos: Iterable[VideoSchema]):
        """Replace the video list and drop progress for videos that are gone"""
        videos = list(videos)
        video_ids = {video.video_id for video in videos}

        playlist.videos.clear()
        for video in videos:
            playlist.videos.append(PlaylistVideo(
                youtube_video_id=video.video_id,
                title=video.title,
                duration_sec=video.duration_sec,
                thumbnail_url=video.thumbnail_url,
                position=video.position,
                published_at=video.published_at,
            ))

        orphaned = [p for p in playlist.progresses if p.youtube_video_id not in video_ids]
        for progress in orphaned:
            playlist.progresses.remove(progress)
        if orphaned:
            logger.info(f"Pruned {len(orphaned)} progress entries from playlist {playlist.youtube_playlist_id}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_playlist_states(self, db: Session, user_id: int) -> List[PlaylistState]:
        """All tracked playlists of a user, most recently updated first"""
        playlists = db.query(Playlist).filter(
            Playlist.user_id == user_id
        ).order_by(Playlist.updated_at.desc(), Playlist.id.desc()).all()
        return [self._to_state(playlist) for playlist in playlists]

    def get_playlist_state(self, db: Session, user_id: int, playlist_id: str) -> Optional[PlaylistState]:
        playlist = self._get_row(db, user_id, playlist_id)
        if not playlist:
            return None
        return self._to_state(playlist)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_playlist(
        self, db: Session, user_id: int, snapshot: PlaylistSnapshot, plan_config: PlanConfig
    ) -> Optional[PlaylistState]:
        """Start tracking a playlist; None if the user already tracks it"""
        if self._get_row(db, user_id, snapshot.playlist_id):
            return None

        try:
            playlist = Playlist(user_id=user_id, youtube_playlist_id=snapshot.playlist_id)
            self._apply_snapshot(playlist, snapshot, plan_config)
            self._sync_videos(playlist, snapshot.videos)
            db.add(playlist)
            db.commit()
            db.refresh(playlist)
            logger.info(f"Playlist created: {snapshot.playlist_id} for user {user_id} ({snapshot.video_count} videos)")
            return self._to_state(playlist)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating playlist: {e}")
            raise

    def refresh_playlist(
        self, db: Session, user_id: int, snapshot: PlaylistSnapshot, plan_config: PlanConfig
    ) -> Optional[PlaylistState]:
        """Replace a tracked playlist's videos with a new snapshot"""
        playlist = self._get_row(db, user_id, snapshot.playlist_id)
        if not playlist:
            return None

        try:
            self._apply_snapshot(playlist, snapshot, plan_config)
            self._sync_videos(playlist, snapshot.videos)
            db.commit()
            db.refresh(playlist)
            logger.info(f"Playlist refreshed: {snapshot.playlist_id} ({snapshot.video_count} videos)")
            return self._to_state(playlist)
        except Exception as e:
            db.rollback()
            logger.error(f"Error refreshing playlist: {e}")
            raise

    def update_plan_config(
        self, db: Session, user_id: int, playlist_id: str, patch: PlanConfigUpdate
    ) -> Optional[PlaylistState]:
        """Apply the fields present in patch to the plan"""
        playlist = self._get_row(db, user_id, playlist_id)
        if not playlist:
            return None

        try:
            if patch.minutes_per_day is not None:
                playlist.minutes_per_day = patch.minutes_per_day
            if patch.start_date is not None:
                playlist.start_date = _parse_start_date(patch.start_date)
            if patch.playback_speed is not None:
                playlist.playback_speed = patch.playback_speed
            playlist.updated_at = datetime.utcnow()

            db.commit()
            db.refresh(playlist)
            logger.info(f"Plan config updated: {playlist_id}")
            return self._to_state(playlist)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating plan config: {e}")
            raise

    def set_video_completion(
        self, db: Session, user_id: int, playlist_id: str, video_id: str, completed: bool
    ) -> Optional[PlaylistState]:
        """Mark a video complete (upsert) or incomplete (delete); None if playlist or video is unknown"""
        playlist = self._get_row(db, user_id, playlist_id)
        if not playlist:
            return None

        video = db.query(PlaylistVideo).filter(
            PlaylistVideo.playlist_id == playlist.id,
            PlaylistVideo.youtube_video_id == video_id
        ).first()
        if not video:
            return None

        try:
            progress = db.query(VideoProgress).filter(
                VideoProgress.playlist_id == playlist.id,
                VideoProgress.youtube_video_id == video_id
            ).first()

            if completed:
                if progress is None:
                    progress = VideoProgress(playlist=playlist, youtube_video_id=video_id)
                    db.add(progress)
                progress.completed = True
                progress.completed_at = datetime.utcnow()
            elif progress is not None:
                playlist.progresses.remove(progress)

            playlist.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(playlist)
            logger.info(f"Video {video_id} in playlist {playlist_id} marked {'complete' if completed else 'incomplete'}")
            return self._to_state(playlist)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating video progress: {e}")
            raise

    def delete_playlist(self, db: Session, user_id: int, playlist_id: str) -> bool:
        """Stop tracking a playlist"""
        playlist = self._get_row(db, user_id, playlist_id)
        if not playlist:
            return False

        try:
            db.delete(playlist)
            db.commit()
            logger.info(f"Playlist deleted: {playlist_id}")
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting playlist: {e}")
            raise

    # ------------------------------------------------------------------
    # Local state migration
    # ------------------------------------------------------------------

    def _create_from_state(self, db: Session, user_id: int, state: PlaylistState) -> int:
        """Insert a playlist from an uploaded state; returns imported progress count"""
        playlist = Playlist(user_id=user_id, youtube_playlist_id=state.snapshot.playlist_id)
        self._apply_snapshot(playlist, state.snapshot, state.plan_config)
        playlist.updated_at = _naive_utc(state.updated_at)
        self._sync_videos(playlist, state.snapshot.videos)

        valid_ids = {video.video_id for video in state.snapshot.videos}
        completed = [
            (video_id, progress) for video_id, progress in state.progress_map.items()
            if progress.completed and video_id in valid_ids
        ]
        for video_id, progress in completed:
            playlist.progresses.append(VideoProgress(
                youtube_video_id=video_id,
                completed=True,
                completed_at=_naive_utc(progress.completed_at),
            ))

        db.add(playlist)
        return len(completed)

    def migrate_local_states(
        self, db: Session, user_id: int, client_migration_key: str, states: List[PlaylistState]
    ) -> MigrationSummary:
        """
        Import playlists kept in a client's local storage

        Runs at most once per (user, client_migration_key). Playlists the
        user already tracks are skipped, and only completed progress entries
        for videos present in the snapshot are imported.
        """
        existing = db.query(MigrationEvent).filter(
            MigrationEvent.user_id == user_id,
            MigrationEvent.client_migration_key == client_migration_key
        ).first()
        if existing:
            logger.info(f"Migration {client_migration_key} already applied for user {user_id}")
            return MigrationSummary(already_migrated=True)

        summary = MigrationSummary()
        try:
            db.add(MigrationEvent(user_id=user_id, client_migration_key=client_migration_key))

            user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
            if user_settings is None:
                user_settings = UserSettings(user_id=user_id)
                db.add(user_settings)
            user_settings.local_migration_completed_at = datetime.utcnow()

            seen = set()
            for state in states:
                playlist_id = state.snapshot.playlist_id
                if playlist_id in seen or self._get_row(db, user_id, playlist_id):
                    summary.skipped_playlists += 1
                    continue
                seen.add(playlist_id)
                summary.imported_progress_entries += self._create_from_state(db, user_id, state)
                summary.imported_playlists += 1

            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Concurrent migration detected for key {client_migration_key}")
            return MigrationSummary(already_migrated=True)
        except Exception as e:
            db.rollback()
            logger.error(f"Error migrating local state: {e}")
            raise

        logger.info(
            f"Migration {client_migration_key} for user {user_id}: "
            f"{summary.imported_playlists} imported, {summary.skipped_playlists} skipped"
        )
        return summary

# Create singleton instance
playlist_service = PlaylistService()
