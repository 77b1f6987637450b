# ============================================================================
# FILE: app/api/v1/router.py
# ============================================================================
from fastapi import APIRouter
from app.api.v1.endpoints import playlist, user, youtube, migration

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(playlist.router, prefix="/playlists", tags=["playlists"])
api_router.include_router(user.router, prefix="/user", tags=["user"])
api_router.include_router(youtube.router, prefix="/youtube", tags=["youtube"])
api_router.include_router(migration.router, prefix="/migration", tags=["migration"])
