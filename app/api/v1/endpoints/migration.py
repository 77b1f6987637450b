# ============================================================================
# FILE: app/api/v1/endpoints/migration.py
# Upload of playlist states kept in browser local storage
# ============================================================================
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.dependencies import require_current_user
from app.core.migration_key import build_client_migration_key
from app.schemas.playlist import MigrationPayload, MigrationSummary
from app.services.playlist_service import playlist_service
from app.db.models.user import User
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/local-state", response_model=MigrationSummary)
async def migrate_local_state(
    payload: MigrationPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_current_user)
):
    """
    Import locally stored playlists into the account
    Repeating a migration with the same client_migration_key is a no-op;
    when the key is omitted it is derived from the uploaded states
    Requires authentication
    """
    client_migration_key = payload.client_migration_key or build_client_migration_key(
        {state.snapshot.playlist_id: state for state in payload.playlists}
    )

    try:
        return playlist_service.migrate_local_states(
            db, current_user.id, client_migration_key, payload.playlists
        )
    except Exception as e:
        logger.error(f"Local state migration error: {e}")
        raise HTTPException(status_code=500, detail="Failed to migrate local state")
