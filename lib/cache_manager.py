"""Snapshot-keyed playlist cache (TTLCache settings & key builders)."""
from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Playlist cache settings
_ENV = os.getenv("ENV", "prod").lower()
PLAYLIST_CACHE_PREFIX = "spotify_playlist_cache"
PLAYLIST_CACHE_VERSION = os.getenv("PLAYLIST_CACHE_VERSION", "v1")
PLAYLIST_CACHE_MAXSIZE = int(os.getenv("PLAYLIST_CACHE_MAXSIZE", "256"))
PLAYLIST_CACHE_TTL_S = int(
    os.getenv("PLAYLIST_CACHE_TTL_S", "3600" if _ENV == "dev" else "21600")
)


def playlist_cache_prefix(playlist_id: str = "") -> str:
    base = f"{PLAYLIST_CACHE_PREFIX}:{PLAYLIST_CACHE_VERSION}:"
    return f"{base}{playlist_id}:" if playlist_id else base


def build_playlist_cache_key(playlist_id: str, snapshot_id: str) -> str:
    # any mutation of the playlist yields a new snapshot_id, hence a new key
    return f"{playlist_cache_prefix(playlist_id)}{snapshot_id}"


class PlaylistCache:
    """
    Small key-value store for playlist snapshots.

    get(key) / set(key, value) / clear(prefix) is all the callers rely on,
    so any mapping (TTLCache by default) can back it.
    """

    def __init__(self, store: Optional[Any] = None):
        if store is None:
            store = TTLCache(maxsize=PLAYLIST_CACHE_MAXSIZE, ttl=PLAYLIST_CACHE_TTL_S)
        self._store = store
        # TTLCache is not thread-safe; requests reach it from to_thread workers
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._store.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = value

    def clear(self, prefix: str = "") -> int:
        """Drop every key starting with `prefix`; returns how many were removed."""
        with self._lock:
            doomed = [k for k in list(self._store.keys()) if k.startswith(prefix)]
            for key in doomed:
                self._store.pop(key, None)
        if doomed:
            logger.debug(f"[cache] cleared {len(doomed)} entries prefix={prefix!r}")
        return len(doomed)

    def needs_refresh(self, playlist_id: str, snapshot_id: str) -> bool:
        with self._lock:
            return build_playlist_cache_key(playlist_id, snapshot_id) not in self._store

    def stats(self) -> Dict[str, int]:
        with self._lock:
            total = sum(1 for k in list(self._store.keys()) if k.startswith(playlist_cache_prefix()))
            return {"total": total, "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


# Lazy-initialized cache
_playlist_cache: PlaylistCache | None = None


_playlist_cache_lock = threading.Lock()


def get_playlist_cache() -> PlaylistCache:
    global _playlist_cache
    with _playlist_cache_lock:
        if _playlist_cache is None:
            _playlist_cache = PlaylistCache()
    return _playlist_cache
