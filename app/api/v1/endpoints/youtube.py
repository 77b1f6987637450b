# ============================================================================
# FILE: app/api/v1/endpoints/youtube.py
# Playlist extraction preview (before a playlist is imported)
# ============================================================================
from fastapi import APIRouter, Depends, HTTPException, Query
from app.api.dependencies import require_current_user
from app.core.youtube import parse_playlist_id
from app.core.ytdlp_client import ytdlp_client, PlaylistUnavailableError, YtDlpError
from app.db.models.user import User
from app.schemas.playlist import PlaylistExtraction
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/playlist", response_model=PlaylistExtraction)
def preview_playlist(
    playlist_id: str = Query(..., min_length=10, description="Playlist id or playlist URL"),
    current_user: User = Depends(require_current_user)
):
    """
    Extract a playlist's videos and durations without tracking it
    
    **Caching**: Results are cached in Redis to avoid repeated yt-dlp runs
    
    Raises:
        HTTPException: 400 for an invalid id, 404 if the playlist is unavailable,
        500 if yt-dlp fails
    """
    parsed_id = parse_playlist_id(playlist_id)
    if not parsed_id:
        raise HTTPException(status_code=400, detail="Invalid playlist_id query parameter")

    logger.info(f"Previewing playlist: {parsed_id}")
    try:
        return ytdlp_client.fetch_playlist_preview(parsed_id)
    except PlaylistUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except YtDlpError as e:
        raise HTTPException(status_code=500, detail=str(e))
