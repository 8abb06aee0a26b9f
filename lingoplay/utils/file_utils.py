import os
import re

# Safe pattern for keys used in filesystem paths
_SAFE_PART_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,128}$')


def get_cache_path(video_id: str, suffix: str = 'subtitles', cache_dir: str = None) -> str:
    """
    Generate cache file path for a video.

    Args:
        video_id: YouTube Video ID
        suffix: File suffix (language tag or 'lang')
        cache_dir: Directory to store cache (defaults to config.CACHE_DIR if None)

    Raises:
        ValueError: If video_id or suffix contains unsafe characters (path traversal prevention)
    """
    if cache_dir is None:
        from lingoplay.config import CACHE_DIR
        cache_dir = CACHE_DIR

    if not video_id or not _SAFE_PART_PATTERN.match(video_id):
        raise ValueError(f"Invalid video_id for cache path: {str(video_id)[:20]}")
    if not suffix or not _SAFE_PART_PATTERN.match(suffix):
        raise ValueError(f"Invalid cache suffix: {str(suffix)[:20]}")

    path = os.path.join(cache_dir, f"{video_id}_{suffix}.json")
    # Double-check the result stays within cache_dir
    if not os.path.normpath(path).startswith(os.path.normpath(cache_dir)):
        raise ValueError("Path traversal detected in cache path")
    return path
