# ============================================================================
# FILE: app/core/youtube.py
# Parsing helpers for user-supplied playlist references
# ============================================================================
import re
from typing import List, Optional
from urllib.parse import urlparse, parse_qs

PLAYLIST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{10,60}$")
LIST_PARAM_PATTERN = re.compile(r"[?&]list=([a-zA-Z0-9_-]{10,60})")


def parse_playlist_id(text: str) -> Optional[str]:
    """
    Extract a YouTube playlist id from a bare id or a playlist URL

    Args:
        text: Raw user input, e.g. "PL123..." or "https://www.youtube.com/playlist?list=PL123..."

    Returns:
        The playlist id, or None when nothing usable is found
    """
    raw = (text or "").strip()
    if not raw:
        return None

    if PLAYLIST_ID_PATTERN.match(raw) and "http" not in raw:
        return raw

    parsed = urlparse(raw)
    if parsed.scheme and parsed.netloc:
        values = parse_qs(parsed.query).get("list") or []
        if values and PLAYLIST_ID_PATTERN.match(values[0]):
            return values[0]
        return None

    match = LIST_PARAM_PATTERN.search(raw)
    if match:
        return match.group(1)
    return None


def parse_playlist_ids_from_multiline(text: str) -> List[str]:
    """Parse one playlist reference per line, skipping invalid lines and duplicates"""
    seen = set()
    playlist_ids = []

    for line in re.split(r"\r?\n", text or ""):
        playlist_id = parse_playlist_id(line)
        if not playlist_id or playlist_id in seen:
            continue
        seen.add(playlist_id)
        playlist_ids.append(playlist_id)

    return playlist_ids


def count_invalid_playlist_lines(text: str) -> int:
    """Number of non-blank lines that do not hold a playlist reference"""
    return sum(
        1 for line in re.split(r"\r?\n", text or "")
        if line.strip() and not parse_playlist_id(line)
    )
