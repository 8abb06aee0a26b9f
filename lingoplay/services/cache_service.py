import os
import json
import time
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from lingoplay.config import (
    CACHE_BACKEND,
    CACHE_DIR,
    CACHE_TTL_SECONDS,
    CACHE_CLEANUP_INTERVAL_MINUTES,
)
from lingoplay.utils.file_utils import get_cache_path

logger = logging.getLogger('lingoplay')

# Suffix used for availability lists, alongside per-language entries
LANGUAGES_KEY = 'lang'


def translated_key(lang: str) -> str:
    """Suffix for a machine-translated track; never fetched as a native caption tag."""
    return f'{lang}-translated'


CacheKey = Tuple[str, str]


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    payload: Any
    stored_at: float


class SubtitleCache(ABC):
    """
    Cache keyed by (video_id, language_tag) or (video_id, 'lang').

    An entry is valid only while now - stored_at < ttl; expired entries are
    reported as absent and dropped.
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.now() - entry.stored_at < self.ttl_seconds

    def get(self, video_id: str, suffix: str) -> Optional[Any]:
        entry = self._read((video_id, suffix))
        if entry is None:
            return None
        if not self.is_fresh(entry):
            logger.info(f"[CACHE] Expired: {video_id} ({suffix})")
            self._remove((video_id, suffix))
            return None
        logger.debug(f"[CACHE] Hit: {video_id} ({suffix})")
        return entry.payload

    def put(self, video_id: str, suffix: str, payload: Any):
        self._write(CacheEntry(key=(video_id, suffix), payload=payload, stored_at=self.now()))

    def delete(self, video_id: str, suffix: str) -> int:
        return 1 if self._remove((video_id, suffix)) else 0

    def delete_video(self, video_id: str) -> int:
        """Remove every entry belonging to a video. Returns the count removed."""
        removed = 0
        for key in self._keys():
            if key[0] == video_id and self._remove(key):
                removed += 1
        return removed

    def purge_expired(self) -> int:
        removed = 0
        for key in self._keys():
            entry = self._read(key)
            if entry is not None and not self.is_fresh(entry) and self._remove(key):
                removed += 1
        return removed

    @abstractmethod
    def _read(self, key: CacheKey) -> Optional[CacheEntry]:
        pass

    @abstractmethod
    def _write(self, entry: CacheEntry):
        pass

    @abstractmethod
    def _remove(self, key: CacheKey) -> bool:
        pass

    @abstractmethod
    def _keys(self) -> list:
        pass


class MemoryCache(SubtitleCache):
    """Process-wide cache. Lives as long as the process."""

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = None):
        super().__init__(ttl_seconds, clock)
        self._entries: Dict[CacheKey, CacheEntry] = {}
        # The WSGI server runs requests on threads
        self._lock = threading.Lock()

    def _read(self, key):
        with self._lock:
            return self._entries.get(key)

    def _write(self, entry):
        with self._lock:
            self._entries[entry.key] = entry

    def _remove(self, key):
        with self._lock:
            return self._entries.pop(key, None) is not None

    def _keys(self):
        with self._lock:
            return list(self._entries.keys())


class FileCache(SubtitleCache):
    """JSON documents under cache_dir; survives restarts of a single instance."""

    def __init__(self, cache_dir: str = CACHE_DIR, ttl_seconds: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = None):
        super().__init__(ttl_seconds, clock)
        self.cache_dir = cache_dir
        os.makedirs(cache_dir, exist_ok=True)

    def _path(self, key: CacheKey) -> str:
        return get_cache_path(key[0], key[1], cache_dir=self.cache_dir)

    def _read(self, key):
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return CacheEntry(key=key, payload=data['payload'], stored_at=float(data['stored_at']))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"[CACHE] Read error for {path}: {e}")
            return None

    def _write(self, entry):
        path = self._path(entry.key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump({'stored_at': entry.stored_at, 'payload': entry.payload}, f, ensure_ascii=False)
        os.replace(tmp_path, path)

    def _remove(self, key):
        path = self._path(key)
        try:
            os.unlink(path)
            return True
        except FileNotFoundError:
            return False

    def _keys(self):
        keys = []
        for p in Path(self.cache_dir).glob('*.json'):
            video_id, sep, suffix = p.stem.rpartition('_')
            if sep:
                keys.append((video_id, suffix))
        return keys


_cache: Optional[SubtitleCache] = None
_cache_lock = threading.Lock()


def create_cache(backend: str = CACHE_BACKEND) -> SubtitleCache:
    if backend == 'file':
        return FileCache()
    if backend != 'memory':
        logger.warning(f"[CACHE] Unknown CACHE_BACKEND '{backend}', using memory")
    return MemoryCache()


def get_cache() -> SubtitleCache:
    """Lazily create the process-wide cache."""
    global _cache
    with _cache_lock:
        if _cache is None:
            _cache = create_cache()
            logger.info(f"[CACHE] Using {type(_cache).__name__} (TTL {_cache.ttl_seconds / 3600:.0f}h)")
        return _cache


def cleanup_cache():
    """Drop expired entries from the active cache."""
    try:
        removed = get_cache().purge_expired()
        if removed:
            logger.info(f"[CACHE] Purged {removed} expired entries")
    except Exception as e:
        logger.error(f"[CACHE] Error during cache cleanup: {e}")


def start_cache_scheduler():
    """Start background thread for periodic cache cleanup."""
    def run_scheduler():
        while True:
            time.sleep(CACHE_CLEANUP_INTERVAL_MINUTES * 60)
            logger.info("[CACHE] Running scheduled cache cleanup...")
            cleanup_cache()

    thread = threading.Thread(target=run_scheduler, daemon=True)
    thread.start()
    logger.info(f"[CACHE] Cleanup scheduler started (Interval: {CACHE_CLEANUP_INTERVAL_MINUTES}min)")
    return thread
