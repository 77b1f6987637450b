# ============================================================================
# FILE: app/core/ytdlp_client.py
# Playlist metadata extraction with yt_dlp: fast flat listing first, full
# per-video extraction when the flat listing lacks durations
# ============================================================================
import math
import time
from datetime import datetime
from typing import Dict, List, Optional
import yt_dlp
from app.config import settings
from app.core.cache import cache
from app.core.formatting import format_duration_clock
from app.schemas.playlist import (
    ExtractionMetadata,
    PlaylistExtraction,
    PlaylistSnapshot,
    VideoSchema,
)
import logging

logger = logging.getLogger(__name__)

FLAT = "flat"
FULL = "full"

UNAVAILABLE_MARKERS = (
    "does not exist",
    "private",
    "unavailable",
    "not available",
    "this playlist does not",
)


class YtDlpError(Exception):
    """Base class for playlist extraction failures"""


class PlaylistUnavailableError(YtDlpError):
    """Playlist is private, deleted, empty or otherwise not accessible"""


class YtDlpExecutionError(YtDlpError):
    """yt-dlp failed for any other reason (timeouts, bad output, network)"""


class _CapturingLogger:
    """yt_dlp logger that keeps error text so failures can be classified"""

    def __init__(self):
        self.errors: List[str] = []

    def debug(self, msg):
        pass

    def info(self, msg):
        pass

    def warning(self, msg):
        logger.debug(f"[yt-dlp] {msg}")

    def error(self, msg):
        self.errors.append(str(msg))


def playlist_url_from_id(playlist_id: str) -> str:
    return f"https://www.youtube.com/playlist?list={playlist_id}"


def preview_cache_key(playlist_id: str) -> str:
    return f"ytdlp:playlist:{playlist_id}"


def _looks_unavailable(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in UNAVAILABLE_MARKERS)


def _parse_upload_date(upload_date: Optional[str]) -> Optional[str]:
    if not upload_date or len(upload_date) != 8 or not upload_date.isdigit():
        return None
    return f"{upload_date[:4]}-{upload_date[4:6]}-{upload_date[6:]}"


def _pick_thumbnail(entry: Dict) -> str:
    if entry.get("thumbnail"):
        return entry["thumbnail"]
    thumbnails = entry.get("thumbnails") or []
    if thumbnails and (thumbnails[-1] or {}).get("url"):
        return thumbnails[-1]["url"]
    return ""


def _parse_duration(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, int(math.floor(value)))


def map_dump_to_snapshot(playlist_id: str, dump: Dict) -> PlaylistSnapshot:
    """
    Convert a yt-dlp playlist dump into a PlaylistSnapshot

    Raises:
        PlaylistUnavailableError: If no entry carries a video id
    """
    entries = [entry for entry in (dump.get("entries") or []) if entry]
    videos = []

    for index, entry in enumerate(entries):
        video_id = entry.get("id") or ""
        if not video_id:
            continue
        videos.append(VideoSchema(
            video_id=video_id,
            title=(entry.get("title") or "").strip() or f"Video {index + 1}",
            duration_sec=_parse_duration(entry.get("duration")),
            thumbnail_url=_pick_thumbnail(entry),
            position=index,
            published_at=_parse_upload_date(entry.get("upload_date")),
        ))

    if not videos:
        raise PlaylistUnavailableError(
            "Playlist is unavailable, empty, or has no accessible videos."
        )

    return PlaylistSnapshot(
        playlist_id=playlist_id,
        title=(dump.get("title") or "").strip() or playlist_id,
        channel_title=(
            (dump.get("channel") or "").strip()
            or (dump.get("uploader") or "").strip()
            or "Unknown Channel"
        ),
        fetched_at=datetime.utcnow(),
        videos=videos,
        total_duration_sec=sum(video.duration_sec for video in videos),
        video_count=len(videos),
    )


def get_duration_coverage_pct(snapshot: PlaylistSnapshot) -> float:
    """Share of videos (in %) whose duration is known"""
    if snapshot.video_count == 0:
        return 0.0
    with_duration = sum(1 for video in snapshot.videos if video.duration_sec > 0)
    return with_duration / snapshot.video_count * 100


def should_fallback_to_full_extraction(duration_coverage_pct: float, min_coverage_pct: float) -> bool:
    return duration_coverage_pct < min_coverage_pct


class YtDlpClient:
    """Wrapper around yt_dlp for playlist metadata"""

    def _build_options(self, mode: str, timeout_sec: int, capture: _CapturingLogger) -> Dict:
        ydl_opts = {
            'quiet': True,
            'no_warnings': True,
            'noprogress': True,
            'skip_download': True,
            'ignoreerrors': True,
            'noplaylist': False,
            'socket_timeout': timeout_sec,
            'logger': capture,
        }
        if mode == FLAT:
            ydl_opts['extract_flat'] = 'in_playlist'
        if settings.YTDLP_COOKIES_FILE:
            ydl_opts['cookiefile'] = settings.YTDLP_COOKIES_FILE
        return ydl_opts

    def _extract(self, playlist_id: str, mode: str, timeout_sec: int) -> Dict:
        """Run one extraction pass and return the raw playlist dump"""
        capture = _CapturingLogger()
        ydl_opts = self._build_options(mode, timeout_sec, capture)

        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(playlist_url_from_id(playlist_id), download=False)
        except Exception as e:
            message = str(e)
            if _looks_unavailable(message):
                raise PlaylistUnavailableError(message)
            if "timed out" in message.lower():
                raise YtDlpExecutionError(f"yt-dlp timed out after {timeout_sec}s.")
            raise YtDlpExecutionError(message or "yt-dlp failed while extracting playlist metadata.")

        if not info:
            message = capture.errors[-1] if capture.errors else "yt-dlp returned an empty response."
            if _looks_unavailable(message):
                raise PlaylistUnavailableError(message)
            raise YtDlpExecutionError(message)

        return ydl.sanitize_info(info)

    def _run(self, playlist_id: str, mode: str, timeout_sec: int) -> PlaylistSnapshot:
        dump = self._extract(playlist_id, mode, timeout_sec)
        return map_dump_to_snapshot(playlist_id, dump)

    def fetch_playlist_snapshot_detailed(self, playlist_id: str) -> PlaylistExtraction:
        """
        Extract a playlist snapshot, falling back from flat to full extraction

        Flat extraction is fast but may miss durations. When it fails, or when
        fewer than YTDLP_MIN_DURATION_COVERAGE_PCT of its videos have a
        duration, a full extraction is attempted. If that fails too, a flat
        snapshot (if any) is returned marked as degraded.

        Raises:
            PlaylistUnavailableError, YtDlpExecutionError
        """
        timeout_sec = settings.YTDLP_TIMEOUT_SEC
        fallback_timeout_sec = settings.YTDLP_FALLBACK_TIMEOUT_SEC or max(90, timeout_sec * 2)
        min_coverage_pct = max(0, min(100, settings.YTDLP_MIN_DURATION_COVERAGE_PCT))

        started_at = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started_at) * 1000)

        flat_snapshot = None
        flat_coverage_pct = 0.0

        try:
            flat_snapshot = self._run(playlist_id, FLAT, timeout_sec)
            flat_coverage_pct = get_duration_coverage_pct(flat_snapshot)
            if not should_fallback_to_full_extraction(flat_coverage_pct, min_coverage_pct):
                return PlaylistExtraction(
                    snapshot=flat_snapshot,
                    extraction_metadata=ExtractionMetadata(
                        mode=FLAT,
                        elapsed_ms=elapsed_ms(),
                        duration_coverage_pct=flat_coverage_pct,
                        video_count=flat_snapshot.video_count,
                        fallback_attempted=False,
                        degraded=False,
                    ),
                )
            logger.info(
                f"Flat extraction for {playlist_id} has {flat_coverage_pct:.1f}% duration coverage, "
                f"trying full extraction"
            )
        except YtDlpError as e:
            logger.warning(f"Flat extraction failed for {playlist_id}: {str(e)[:120]}")

        try:
            full_snapshot = self._run(playlist_id, FULL, fallback_timeout_sec)
        except YtDlpError as e:
            if flat_snapshot is None:
                raise
            logger.warning(f"Full extraction failed for {playlist_id}, using flat result: {str(e)[:120]}")
            return PlaylistExtraction(
                snapshot=flat_snapshot,
                extraction_metadata=ExtractionMetadata(
                    mode=FLAT,
                    elapsed_ms=elapsed_ms(),
                    duration_coverage_pct=flat_coverage_pct,
                    video_count=flat_snapshot.video_count,
                    fallback_attempted=True,
                    degraded=True,
                ),
            )

        return PlaylistExtraction(
            snapshot=full_snapshot,
            extraction_metadata=ExtractionMetadata(
                mode=FULL,
                elapsed_ms=elapsed_ms(),
                duration_coverage_pct=get_duration_coverage_pct(full_snapshot),
                video_count=full_snapshot.video_count,
                fallback_attempted=True,
                degraded=False,
            ),
        )

    def fetch_playlist_snapshot(self, playlist_id: str) -> PlaylistSnapshot:
        return self.fetch_playlist_snapshot_detailed(playlist_id).snapshot

    def fetch_playlist_preview(self, playlist_id: str) -> PlaylistExtraction:
        """
        Same as fetch_playlist_snapshot_detailed, cached in Redis
        for PLAYLIST_PREVIEW_CACHE_SECONDS
        """
        cache_key = preview_cache_key(playlist_id)

        cached_data = cache.get_cache(cache_key)
        if cached_data:
            logger.info(f"Cache hit for playlist preview: {playlist_id}")
            return PlaylistExtraction.model_validate(cached_data)

        started_at = time.monotonic()
        try:
            extraction = self.fetch_playlist_snapshot_detailed(playlist_id)
        except YtDlpError as e:
            logger.error(
                f"[yt-dlp] playlist extraction failed: {playlist_id} "
                f"({int((time.monotonic() - started_at) * 1000)}ms): {e}"
            )
            raise

        meta = extraction.extraction_metadata
        logger.info(
            f"[yt-dlp] playlist extraction success: {playlist_id} mode={meta.mode} "
            f"elapsed={meta.elapsed_ms}ms fallback={meta.fallback_attempted} degraded={meta.degraded} "
            f"coverage={meta.duration_coverage_pct:.1f}% videos={meta.video_count} "
            f"total={format_duration_clock(extraction.snapshot.total_duration_sec)}"
        )
        cache.set_cache(cache_key, extraction.model_dump(mode="json"), settings.PLAYLIST_PREVIEW_CACHE_SECONDS)
        return extraction

    def invalidate_playlist_preview(self, playlist_id: str) -> bool:
        """Drop a cached preview once fresher data for the playlist exists"""
        return cache.delete_cache(preview_cache_key(playlist_id))

# Singleton instance
ytdlp_client = YtDlpClient()
