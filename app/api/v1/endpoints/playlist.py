# ============================================================================
# FILE: app/api/v1/endpoints/playlist.py
# ============================================================================
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from app.db.session import get_db
from app.api.dependencies import require_current_user
from app.core.formatting import format_duration_clock
from app.core.scheduler import build_schedule
from app.core.youtube import count_invalid_playlist_lines, parse_playlist_ids_from_multiline
from app.core.ytdlp_client import ytdlp_client, YtDlpError, PlaylistUnavailableError
from app.schemas.playlist import (
    BatchImportRequest,
    BatchImportResponse,
    ExtractionMetadata,
    ImportFailure,
    ImportPlaylistRequest,
    PlanConfigUpdate,
    PlaylistListResponse,
    PlaylistResponse,
    PlaylistState,
    UpdateProgressRequest,
)
from app.schemas.schedule import ScheduleResult
from app.services.playlist_service import playlist_service
from app.db.models.user import User
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

def _with_schedule(state: PlaylistState, extraction_metadata: Optional[ExtractionMetadata] = None) -> PlaylistResponse:
    return PlaylistResponse(
        playlist=state,
        schedule=build_schedule(state.snapshot.videos, state.plan_config, state.progress_map),
        extraction_metadata=extraction_metadata,
    )

def _extraction_http_error(error: YtDlpError) -> HTTPException:
    if isinstance(error, PlaylistUnavailableError):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=500, detail=str(error) or "Playlist extraction failed")

def _log_imported(state: PlaylistState):
    snapshot = state.snapshot
    logger.info(
        f"Imported playlist {snapshot.playlist_id}: {snapshot.video_count} videos, "
        f"{format_duration_clock(snapshot.total_duration_sec)} total"
    )

@router.get("", response_model=PlaylistListResponse)
async def list_playlists(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Get all tracked playlists for the current user, each with its schedule
    Requires authentication
    """
    states = playlist_service.list_playlist_states(db, current_user.id)
    return PlaylistListResponse(playlists=[_with_schedule(state) for state in states])

@router.post("/import", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
def import_playlist(
    request: ImportPlaylistRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Extract a YouTube playlist with yt-dlp and start tracking it
    Requires authentication
    """
    if playlist_service.get_playlist_state(db, current_user.id, request.playlist_id):
        raise HTTPException(status_code=409, detail="Playlist already tracked for this account")

    try:
        extraction = ytdlp_client.fetch_playlist_snapshot_detailed(request.playlist_id)
    except YtDlpError as e:
        logger.error(f"Import extraction failed for {request.playlist_id}: {e}")
        raise _extraction_http_error(e)

    try:
        created = playlist_service.create_playlist(
            db, current_user.id, extraction.snapshot, request.plan_config
        )
    except Exception as e:
        logger.error(f"Import playlist error: {e}")
        raise HTTPException(status_code=500, detail="Failed to import playlist")

    if not created:
        raise HTTPException(status_code=409, detail="Playlist already tracked for this account")
    _log_imported(created)
    return _with_schedule(created, extraction.extraction_metadata)

@router.post("/import/batch", response_model=BatchImportResponse)
def import_playlists_batch(
    request: BatchImportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Import several playlists at once, one id or URL per line
    Already tracked playlists are skipped; failures are reported per playlist
    Requires authentication
    """
    playlist_ids = parse_playlist_ids_from_multiline(request.playlist_inputs)
    if not playlist_ids:
        raise HTTPException(
            status_code=400,
            detail="Enter at least one valid YouTube playlist URL or ID, one per line."
        )

    result = BatchImportResponse(invalid_lines=count_invalid_playlist_lines(request.playlist_inputs))

    for playlist_id in playlist_ids:
        if playlist_service.get_playlist_state(db, current_user.id, playlist_id):
            result.skipped_existing.append(playlist_id)
            continue

        try:
            extraction = ytdlp_client.fetch_playlist_snapshot_detailed(playlist_id)
            created = playlist_service.create_playlist(
                db, current_user.id, extraction.snapshot, request.plan_config
            )
        except YtDlpError as e:
            logger.warning(f"Batch import extraction failed for {playlist_id}: {e}")
            result.failures.append(ImportFailure(playlist_id=playlist_id, message=str(e) or "Playlist extraction failed"))
            continue
        except Exception as e:
            logger.error(f"Batch import error for {playlist_id}: {e}")
            result.failures.append(ImportFailure(playlist_id=playlist_id, message="Failed to import playlist"))
            continue

        if not created:
            result.skipped_existing.append(playlist_id)
            continue
        _log_imported(created)
        result.imported.append(_with_schedule(created, extraction.extraction_metadata))

    logger.info(
        f"Batch import for user {current_user.id}: {len(result.imported)} imported, "
        f"{len(result.skipped_existing)} skipped, {len(result.failures) + result.invalid_lines} failed"
    )
    return result

@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(
    playlist_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Get a tracked playlist with its current schedule
    Requires authentication and ownership
    """
    state = playlist_service.get_playlist_state(db, current_user.id, playlist_id)
    if not state:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return _with_schedule(state)

@router.get("/{playlist_id}/schedule", response_model=ScheduleResult)
async def get_playlist_schedule(
    playlist_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Get only the day-by-day schedule of a tracked playlist
    Requires authentication and ownership
    """
    state = playlist_service.get_playlist_state(db, current_user.id, playlist_id)
    if not state:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return build_schedule(state.snapshot.videos, state.plan_config, state.progress_map)

@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(
    playlist_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Stop tracking a playlist
    Requires authentication and ownership
    """
    if not playlist_service.delete_playlist(db, current_user.id, playlist_id):
        raise HTTPException(status_code=404, detail="Playlist not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.patch("/{playlist_id}/config", response_model=PlaylistResponse)
async def update_plan_config(
    playlist_id: str,
    patch: PlanConfigUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Update minutes per day, start date and/or playback speed
    Requires authentication and ownership
    """
    state = playlist_service.update_plan_config(db, current_user.id, playlist_id, patch)
    if not state:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return _with_schedule(state)

@router.patch("/{playlist_id}/progress", response_model=PlaylistResponse)
async def update_progress(
    playlist_id: str,
    update: UpdateProgressRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Mark a video as completed or not completed
    Requires authentication and ownership
    """
    state = playlist_service.set_video_completion(
        db, current_user.id, playlist_id, update.video_id, update.completed
    )
    if not state:
        raise HTTPException(status_code=404, detail="Playlist or video not found")
    return _with_schedule(state)

@router.post("/{playlist_id}/refresh", response_model=PlaylistResponse)
def refresh_playlist(
    playlist_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Re-extract a tracked playlist, keeping its plan config
    Progress for videos that left the playlist is dropped
    Requires authentication and ownership
    """
    current = playlist_service.get_playlist_state(db, current_user.id, playlist_id)
    if not current:
        raise HTTPException(status_code=404, detail="Playlist not found")

    try:
        extraction = ytdlp_client.fetch_playlist_snapshot_detailed(playlist_id)
    except YtDlpError as e:
        logger.error(f"Refresh extraction failed for {playlist_id}: {e}")
        raise _extraction_http_error(e)

    try:
        refreshed = playlist_service.refresh_playlist(
            db, current_user.id, extraction.snapshot, current.plan_config
        )
    except Exception as e:
        logger.error(f"Refresh playlist error: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh playlist")

    if not refreshed:
        raise HTTPException(status_code=404, detail="Playlist not found")
    ytdlp_client.invalidate_playlist_preview(playlist_id)
    return _with_schedule(refreshed, extraction.extraction_metadata)
