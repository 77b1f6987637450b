# ============================================================================
# FILE: app/core/migration_key.py
# Deterministic key for a set of locally stored playlist states, used to make
# local-state migration idempotent
# ============================================================================
import json
from typing import Dict
from app.schemas.playlist import PlaylistState

KEY_PREFIX = "ps-v1-"

FNV_OFFSET_BASIS_64 = 0xCBF29CE484222325
FNV_PRIME_64 = 0x100000001B3
MASK_64 = 0xFFFFFFFFFFFFFFFF


def fnv1a_64(text: str) -> str:
    """64-bit FNV-1a over the code points of text, as 16 hex chars"""
    value = FNV_OFFSET_BASIS_64
    for char in text:
        value ^= ord(char)
        value = (value * FNV_PRIME_64) & MASK_64
    return f"{value:016x}"


def _isoformat(value):
    return value.isoformat() if value is not None else None


def _stable_state(state: PlaylistState) -> Dict:
    snapshot = state.snapshot
    return {
        "snapshot": {
            "playlist_id": snapshot.playlist_id,
            "title": snapshot.title,
            "channel_title": snapshot.channel_title,
            "fetched_at": _isoformat(snapshot.fetched_at),
            "total_duration_sec": snapshot.total_duration_sec,
            "video_count": snapshot.video_count,
            "videos": [
                {
                    "video_id": video.video_id,
                    "title": video.title,
                    "duration_sec": video.duration_sec,
                    "thumbnail_url": video.thumbnail_url,
                    "position": video.position,
                    "published_at": video.published_at,
                }
                for video in sorted(snapshot.videos, key=lambda v: v.position)
            ],
        },
        "plan_config": {
            "minutes_per_day": state.plan_config.minutes_per_day,
            "start_date": state.plan_config.start_date,
            "playback_speed": state.plan_config.playback_speed,
        },
        "progress": [
            {
                "video_id": video_id,
                "completed": progress.completed,
                "completed_at": _isoformat(progress.completed_at),
            }
            for video_id, progress in sorted(state.progress_map.items())
        ],
        "updated_at": _isoformat(state.updated_at),
    }


def build_client_migration_key(states: Dict[str, PlaylistState]) -> str:
    """
    Build the migration key for a mapping of playlist id -> PlaylistState

    The key only depends on content, not on dict ordering.
    """
    ordered = [_stable_state(state) for _, state in sorted(states.items())]
    payload = json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)
    return f"{KEY_PREFIX}{fnv1a_64(payload)}"
