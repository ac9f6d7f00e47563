#!/usr/bin/env python3
"""
Spotify の薄いラッパー。ユーザーのアクセストークンで
- プレイリスト一覧
- プレイリストの全トラック（ページング込み、snapshot_id キャッシュ付き）
- トラック削除
- アクセストークンのリフレッシュ

を行い、lib.dedup のデータモデルで返すコアモジュール。
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from lib.cache_manager import PlaylistCache, build_playlist_cache_key
from lib.dedup.models import PlaylistTracks, entries_from_spotify

# Configure logger for this module
logger = logging.getLogger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_HTTP_TIMEOUT_S = float(os.getenv("SPOTIFY_HTTP_TIMEOUT_S", "20"))
SPOTIFY_HTTP_RETRIES = int(os.getenv("SPOTIFY_HTTP_RETRIES", "3"))
SPOTIFY_BACKOFF_FACTOR = float(os.getenv("SPOTIFY_BACKOFF_FACTOR", "1.3"))

PLAYLISTS_PAGE_SIZE = 50
TRACKS_PAGE_SIZE = 100
REMOVE_BATCH_SIZE = 100  # Spotify API limit per request

_TRACK_FIELDS = (
    "items(added_at,track(id,name,uri,duration_ms,explicit,is_local,"
    "artists(id,name),album(id,name,images(url)))),next,total"
)


class SpotifyAPIError(Exception):
    """Upstream Spotify failure, carrying the HTTP status when there is one."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


def _wrap_spotify_error(action: str, e: Exception) -> SpotifyAPIError:
    status = getattr(e, "http_status", None) or getattr(e, "status", None)
    msg = getattr(e, "msg", None) or str(e)
    return SpotifyAPIError(f"Failed to {action} ({status}): {msg}", status=status)


# =========================
# Spotify クライアント
# =========================


def get_spotify_client(access_token: str) -> spotipy.Spotify:
    """
    ユーザーのアクセストークンから Spotipy クライアントを返す。

    429 (Retry-After を尊重) と 5xx は spotipy 内部の urllib3 Retry が
    指数バックオフで再試行する。
    """
    if not access_token:
        raise RuntimeError("Spotify access token is not set.")

    return spotipy.Spotify(
        auth=access_token,
        requests_timeout=SPOTIFY_HTTP_TIMEOUT_S,
        retries=SPOTIFY_HTTP_RETRIES,
        status_retries=SPOTIFY_HTTP_RETRIES,
        backoff_factor=SPOTIFY_BACKOFF_FACTOR,
    )


def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    """
    refresh_token を Spotify のトークンエンドポイントで交換する。

    必要な環境変数:
    - SPOTIFY_CLIENT_ID
    - SPOTIFY_CLIENT_SECRET

    Returns:
        {"access_token": ..., "expires_in": ..., ...}（Spotify の応答そのまま）
    """
    client_id = os.getenv("SPOTIFY_CLIENT_ID")
    client_secret = os.getenv("SPOTIFY_CLIENT_SECRET")

    if not client_id or not client_secret:
        raise RuntimeError(
            "Spotify client credentials are not set. "
            "Please set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET."
        )

    try:
        response = requests.post(
            SPOTIFY_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            auth=(client_id, client_secret),
            timeout=SPOTIFY_HTTP_TIMEOUT_S,
        )
    except requests.RequestException as e:
        raise SpotifyAPIError(f"Token refresh request failed: {e}") from e

    if response.status_code != 200:
        logger.warning(f"[spotify] token refresh rejected status={response.status_code}")
        raise SpotifyAPIError(
            f"Token refresh rejected ({response.status_code})",
            status=response.status_code,
        )

    return response.json()


# =========================
# プレイリストID抽出
# =========================


def extract_playlist_id(url_or_id: str) -> str:
    """Extract a Spotify playlist ID from a full URL or a raw ID.

    Supports formats like:
    - https://open.spotify.com/playlist/<id>
    - https://open.spotify.com/user/<user>/playlist/<id>
    - spotify:playlist:<id>
    - raw base62 ID
    """
    s = (url_or_id or "").strip()
    if not s:
        raise ValueError("Empty playlist URL or ID")

    # spotify:playlist:<id>
    m = re.match(r"^spotify:playlist:([a-zA-Z0-9]+)$", s)
    if m:
        return m.group(1)

    # URL forms
    parsed = urlparse(s)
    host = (parsed.netloc or "").lower()
    if "open.spotify.com" in host:
        parts = [p for p in (parsed.path or "").split("/") if p]
        # possible paths: playlist/<id> or user/<user>/playlist/<id>
        for i, p in enumerate(parts):
            if p == "playlist" and i + 1 < len(parts):
                return parts[i + 1]

    # Raw ID fallback (usually 22 chars base62)
    if re.match(r"^[A-Za-z0-9]+$", s):
        return s

    raise ValueError(f"Could not extract Spotify playlist ID from: {s}")


# =========================
# プレイリスト取得
# =========================


def playlist_to_dict(playlist: Dict[str, Any]) -> Dict[str, Any]:
    """Spotify の playlist オブジェクトから一覧表示に必要な項目だけ残す。"""
    owner = playlist.get("owner") or {}
    tracks = playlist.get("tracks") or {}
    return {
        "id": playlist.get("id") or "",
        "name": playlist.get("name") or "",
        "description": playlist.get("description") or None,
        "images": [{"url": img.get("url")} for img in (playlist.get("images") or []) if img],
        "tracks": {"total": int(tracks.get("total") or 0)},
        "owner": {"display_name": owner.get("display_name") or ""},
        "public": bool(playlist.get("public")),
        "external_urls": {"spotify": (playlist.get("external_urls") or {}).get("spotify", "")},
        "snapshot_id": playlist.get("snapshot_id") or "",
    }


def fetch_user_playlists(sp: spotipy.Spotify) -> Dict[str, Any]:
    """ログインユーザーのプレイリストを全件（50件ずつ）取得する。"""
    playlists: List[Dict[str, Any]] = []
    offset = 0
    total = 0
    while True:
        try:
            results = sp.current_user_playlists(limit=PLAYLISTS_PAGE_SIZE, offset=offset)
        except (SpotifyException, requests.RequestException) as e:
            raise _wrap_spotify_error("fetch playlists", e) from e

        items = results.get("items") or []
        total = int(results.get("total") or 0)
        playlists.extend(playlist_to_dict(p) for p in items if p)
        if not items or not results.get("next"):
            break
        offset += PLAYLISTS_PAGE_SIZE

    logger.debug(f"[spotify] playlists fetched count={len(playlists)} total={total}")
    return {"items": playlists, "total": total or len(playlists)}


def fetch_playlist_page(
    sp: spotipy.Spotify,
    playlist_id: str,
    limit: int = 50,
    offset: int = 0,
) -> PlaylistTracks:
    """1ページ分のトラックだけを取得する（プレビュー用）。"""
    try:
        results = sp.playlist_items(
            playlist_id,
            fields=_TRACK_FIELDS,
            limit=limit,
            offset=offset,
            additional_types=("track",),
        )
    except (SpotifyException, requests.RequestException) as e:
        raise _wrap_spotify_error("fetch playlist tracks", e) from e

    entries = entries_from_spotify(results.get("items") or [])
    return PlaylistTracks(
        playlist_id=playlist_id,
        snapshot_id=None,
        total=int(results.get("total") or len(entries)),
        entries=tuple(entries),
    )


def fetch_playlist_tracks(
    sp: spotipy.Spotify,
    playlist_id: str,
    cache: Optional[PlaylistCache] = None,
) -> PlaylistTracks:
    """
    プレイリストの全トラックを取得する（100曲以上にも対応）。

    snapshot_id をキーにキャッシュするので、変更のないプレイリストは
    メタ情報の1リクエストだけで済む。
    """
    try:
        meta = sp.playlist(playlist_id, fields="id,snapshot_id,tracks.total")
    except (SpotifyException, requests.RequestException) as e:
        raise _wrap_spotify_error(f"fetch playlist {playlist_id}", e) from e

    snapshot_id = meta.get("snapshot_id") or ""
    cache_key = build_playlist_cache_key(playlist_id, snapshot_id)
    if cache is not None and snapshot_id:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"[spotify] cache hit playlist={playlist_id} snapshot={snapshot_id}")
            return cached

    items: List[Dict[str, Any]] = []
    try:
        results = sp.playlist_items(
            playlist_id,
            fields=_TRACK_FIELDS,
            limit=TRACKS_PAGE_SIZE,
            offset=0,
            additional_types=("track",),
        )
        items.extend(results.get("items") or [])
        # paginate
        while results.get("next"):
            results = sp.next(results)
            items.extend(results.get("items") or [])
    except (SpotifyException, requests.RequestException) as e:
        raise _wrap_spotify_error(f"fetch tracks of playlist {playlist_id}", e) from e

    total = int((meta.get("tracks") or {}).get("total") or len(items))
    playlist_tracks = PlaylistTracks(
        playlist_id=playlist_id,
        snapshot_id=snapshot_id or None,
        total=total,
        entries=tuple(entries_from_spotify(items)),
    )
    logger.debug(
        f"[spotify] tracks fetched playlist={playlist_id} items={len(items)} total={total}"
    )

    if cache is not None and snapshot_id:
        cache.set(cache_key, playlist_tracks)
    return playlist_tracks


# =========================
# トラック削除
# =========================


def remove_tracks_from_playlist(
    sp: spotipy.Spotify,
    playlist_id: str,
    track_uris: List[str],
) -> Dict[str, Any]:
    """
    指定 URI をプレイリストから（全出現箇所）削除する。100件ずつ送信。

    Returns:
        {"snapshot_id": 最後のリクエスト後の snapshot_id}
    """
    snapshot_id = None
    for i in range(0, len(track_uris), REMOVE_BATCH_SIZE):
        batch = track_uris[i:i + REMOVE_BATCH_SIZE]
        try:
            result = sp.playlist_remove_all_occurrences_of_items(playlist_id, batch)
        except (SpotifyException, requests.RequestException) as e:
            raise _wrap_spotify_error(f"remove tracks from playlist {playlist_id}", e) from e
        snapshot_id = (result or {}).get("snapshot_id") or snapshot_id

    logger.info(
        f"[spotify] removed playlist={playlist_id} uris={len(track_uris)} snapshot={snapshot_id}"
    )
    return {"snapshot_id": snapshot_id}
