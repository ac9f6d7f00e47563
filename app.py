from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import (
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware

# .env があれば読み込む（本番はホスティング側の環境変数を使う）
load_dotenv()

from core import (  # noqa: E402
    SpotifyAPIError,
    extract_playlist_id,
    fetch_playlist_page,
    fetch_playlist_tracks,
    fetch_user_playlists,
    get_spotify_client,
    refresh_access_token,
    remove_tracks_from_playlist,
)
from lib.cache_manager import (  # noqa: E402
    PLAYLIST_CACHE_TTL_S,
    PlaylistCache,
    get_playlist_cache,
    playlist_cache_prefix,
)
from lib.dedup import (  # noqa: E402
    DeleteTarget,
    SelectionState,
    VariationType,
    find_duplicates,
    group_by_variation,
    groups_to_dict,
    summarize,
)

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)

MAX_BODY_BYTES = 1 * 1024 * 1024


# =========================
# Pydantic models
# =========================

class ArtistModel(BaseModel):
    id: Optional[str] = None
    name: str


class ImageModel(BaseModel):
    url: str


class AlbumModel(BaseModel):
    id: Optional[str] = None
    name: str
    images: List[ImageModel] = []


class TrackModel(BaseModel):
    id: Optional[str] = None
    name: str
    uri: str
    duration_ms: int = 0
    explicit: bool = False
    artists: List[ArtistModel] = []
    album: AlbumModel


class PlaylistTrackModel(BaseModel):
    added_at: Optional[str] = None
    track: Optional[TrackModel] = None


class PlaylistTracksResponse(BaseModel):
    items: List[PlaylistTrackModel]
    total: int
    snapshot_id: Optional[str] = None


class DuplicateModel(BaseModel):
    track: TrackModel
    inLeft: bool
    inRight: bool
    matchType: str  # "exact" | "similar"
    variationType: Optional[str] = None  # null when no qualifier was found


class CompareStatsModel(BaseModel):
    leftTotal: int
    rightTotal: int
    duplicatesFound: int
    exactCount: int = 0
    similarCount: int = 0
    byVariation: Dict[str, int] = {}


class CompareResponse(BaseModel):
    duplicates: List[DuplicateModel]
    stats: CompareStatsModel
    groups: Dict[str, List[str]] = {}  # variation type -> track URIs


class DeleteBody(BaseModel):
    leftPlaylistId: Optional[str] = None
    rightPlaylistId: Optional[str] = None
    trackUris: List[str] = []
    variationTypes: Optional[List[str]] = None
    deleteFrom: DeleteTarget = DeleteTarget.BOTH


class RefreshBody(BaseModel):
    refresh_token: Optional[str] = None


# =========================
# FastAPI app & middleware
# =========================

app = FastAPI(
    title="Spotify Playlist Duplicate Finder",
    version="1.0.0",
)

# Add GZip middleware for response compression (large playlists -> large JSON)
app.add_middleware(GZipMiddleware, minimum_size=1000)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length")
            try:
                body_bytes = int(content_length) if content_length else 0
            except ValueError:
                logger.warning(f"[RequestSizeLimit] Invalid Content-Length: {content_length!r} from {request.client}")
                return JSONResponse(
                    status_code=400,
                    content={"detail": "Invalid Content-Length header"}
                )
            if body_bytes > MAX_BODY_BYTES:
                logger.warning(f"[RequestSizeLimit] Rejected oversized request: {content_length} bytes from {request.client}")
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request body too large (max 1MB)"}
                )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)

# デフォルトの許可オリジン
default_origins = [
    "http://localhost:3000",
]

# 環境変数 ALLOWED_ORIGINS があればそれを優先（カンマ区切り）
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _log_startup():
    logger.info("playlist-dedup: startup event triggered")


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Dependencies
# =========================

def require_access_token(authorization: Optional[str] = Header(None)) -> str:
    """Authorization: Bearer <Spotify access token> を必須にする。"""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization[len("bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return token


def get_spotify(access_token: str = Depends(require_access_token)):
    try:
        return get_spotify_client(access_token)
    except RuntimeError as e:
        logger.error(f"[auth] failed to initialize Spotify client: {e}")
        raise HTTPException(status_code=500, detail="Failed to initialize Spotify client")


def get_cache() -> PlaylistCache:
    return get_playlist_cache()


# =========================
# Core helpers
# =========================

def _upstream_error(e: Exception, message: str) -> HTTPException:
    """Spotify 側の失敗は短いメッセージの 5xx に（期限切れトークンだけ 401）。"""
    if isinstance(e, SpotifyAPIError) and e.status == 401:
        return HTTPException(status_code=401, detail="Spotify token expired")
    return HTTPException(status_code=500, detail=message)


def _parse_playlist_id(raw: str) -> str:
    try:
        return extract_playlist_id(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_variation_types(raw: List[Optional[str]]) -> List[VariationType]:
    out: List[VariationType] = []
    for value in raw:
        try:
            out.append(VariationType(value or VariationType.NONE.value))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown variation type: {value}")
    return out


async def _compare(sp, cache: PlaylistCache, left_id: str, right_id: str):
    # both sides must be complete before matching; the fetches are independent
    left, right = await asyncio.gather(
        asyncio.to_thread(fetch_playlist_tracks, sp, left_id, cache),
        asyncio.to_thread(fetch_playlist_tracks, sp, right_id, cache),
    )
    duplicates = find_duplicates(left.entries, right.entries)
    return left, right, duplicates


# =========================
# Endpoints
# =========================

@app.post("/api/auth/refresh", tags=["auth"])
def refresh_token(body: RefreshBody) -> Dict[str, Any]:
    if not body.refresh_token:
        raise HTTPException(status_code=400, detail="refresh_token is required")
    try:
        token = refresh_access_token(body.refresh_token)
    except SpotifyAPIError as e:
        if e.status in (400, 401):
            raise HTTPException(status_code=401, detail="Refresh token rejected")
        logger.error(f"[api/auth/refresh] error: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh token")
    except RuntimeError as e:
        logger.error(f"[api/auth/refresh] error: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh token")
    return {
        "access_token": token.get("access_token"),
        "expires_in": token.get("expires_in"),
        "token_type": token.get("token_type", "Bearer"),
    }


@app.get("/api/playlists", tags=["playlists"])
async def list_playlists(
    sp=Depends(get_spotify),
    cache: PlaylistCache = Depends(get_cache),
) -> Dict[str, Any]:
    """ログインユーザーのプレイリスト一覧。snapshot_id が同じものは cached=true。"""
    try:
        result = await asyncio.to_thread(fetch_user_playlists, sp)
    except SpotifyAPIError as e:
        logger.error(f"[api/playlists] error: {e}")
        raise _upstream_error(e, "Failed to fetch playlists")

    for playlist in result["items"]:
        playlist["cached"] = not cache.needs_refresh(playlist["id"], playlist["snapshot_id"])
    result["meta"] = {"cache": cache.stats(), "cache_ttl_s": PLAYLIST_CACHE_TTL_S}
    return result


@app.get(
    "/api/playlists/{playlist_id}/tracks",
    response_model=PlaylistTracksResponse,
    tags=["playlists"],
)
async def get_playlist_tracks(
    playlist_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sp=Depends(get_spotify),
):
    pid = _parse_playlist_id(playlist_id)
    try:
        page = await asyncio.to_thread(fetch_playlist_page, sp, pid, limit, offset)
    except SpotifyAPIError as e:
        logger.error(f"[api/playlists/tracks] error playlist={pid}: {e}")
        raise _upstream_error(e, "Failed to fetch playlist tracks")
    return page.to_dict()


@app.get("/api/playlists/compare", response_model=CompareResponse, tags=["playlists"])
async def compare_playlists(
    leftId: Optional[str] = Query(None, description="Reference playlist ID or URL"),
    rightId: Optional[str] = Query(None, description="Playlist ID or URL to check against the left one"),
    sp=Depends(get_spotify),
    cache: PlaylistCache = Depends(get_cache),
):
    """
    2つのプレイリストを突き合わせて、right 側で left と重複するトラックを返す。
    """
    t0 = time.time()
    if not leftId or not rightId:
        raise HTTPException(status_code=400, detail="Missing playlist IDs")

    left_id = _parse_playlist_id(leftId)
    right_id = _parse_playlist_id(rightId)
    if left_id == right_id:
        raise HTTPException(status_code=400, detail="Cannot compare a playlist with itself")

    try:
        left, right, duplicates = await _compare(sp, cache, left_id, right_id)
    except SpotifyAPIError as e:
        logger.error(f"[api/compare] error left={left_id} right={right_id}: {e}")
        raise _upstream_error(e, "Failed to compare playlists")

    stats = summarize(duplicates, left.total, right.total)
    total_ms = (time.time() - t0) * 1000
    logger.info(
        f"[PERF] compare left={left_id} right={right_id} left_total={left.total} "
        f"right_total={right.total} duplicates={stats.duplicates_found} "
        f"exact={stats.exact_count} similar={stats.similar_count} total_api_ms={total_ms:.1f}"
    )

    return {
        "duplicates": [d.to_dict() for d in duplicates],
        "stats": stats.to_dict(),
        "groups": groups_to_dict(group_by_variation(duplicates)),
    }


@app.post("/api/playlists/delete", tags=["playlists"])
async def delete_tracks(
    body: DeleteBody,
    response: Response,
    sp=Depends(get_spotify),
    cache: PlaylistCache = Depends(get_cache),
) -> Dict[str, Any]:
    """
    選択したトラックを left / right / both から削除する。

    - trackUris: 明示的に選んだ URI
    - variationTypes: 指定した種類の重複をまとめて選択（サーバー側で再比較）
    - both の場合は左右を並行に削除し、結果は side ごとに返す
    """
    target = body.deleteFrom
    if target == DeleteTarget.LEFT and not body.leftPlaylistId:
        raise HTTPException(status_code=400, detail="Left playlist ID required")
    if target == DeleteTarget.RIGHT and not body.rightPlaylistId:
        raise HTTPException(status_code=400, detail="Right playlist ID required")
    if target == DeleteTarget.BOTH and (not body.leftPlaylistId or not body.rightPlaylistId):
        raise HTTPException(status_code=400, detail="Both playlist IDs required")

    playlist_ids = {
        "left": _parse_playlist_id(body.leftPlaylistId) if body.leftPlaylistId else None,
        "right": _parse_playlist_id(body.rightPlaylistId) if body.rightPlaylistId else None,
    }

    selection = SelectionState(selected=frozenset(body.trackUris), delete_from=target)
    records: list = []
    if body.variationTypes:
        variation_types = _parse_variation_types(body.variationTypes)
        if not playlist_ids["left"] or not playlist_ids["right"]:
            raise HTTPException(
                status_code=400,
                detail="Both playlist IDs required to select by variation type",
            )
        try:
            _, _, records = await _compare(sp, cache, playlist_ids["left"], playlist_ids["right"])
        except SpotifyAPIError as e:
            logger.error(f"[api/delete] compare error: {e}")
            raise _upstream_error(e, "Failed to delete tracks")
        groups = group_by_variation(records)
        for vt in variation_types:
            if not selection.is_variation_selected(groups, vt):
                selection = selection.toggle_variation(groups, vt)

    track_uris = selection.ordered(list(body.trackUris) + [r.uri for r in records])
    if not track_uris:
        raise HTTPException(status_code=400, detail="No tracks specified")

    sides = target.sides
    outcomes = await asyncio.gather(
        *(
            asyncio.to_thread(remove_tracks_from_playlist, sp, playlist_ids[side], track_uris)
            for side in sides
        ),
        return_exceptions=True,
    )

    results: Dict[str, Dict[str, Any]] = {}
    for side, outcome in zip(sides, outcomes):
        # the playlist may have changed even on a failed call
        cache.clear(playlist_cache_prefix(playlist_ids[side]))
        if isinstance(outcome, Exception):
            logger.error(f"[api/delete] side={side} playlist={playlist_ids[side]} error: {outcome}")
            results[side] = {
                "ok": False,
                "deletedCount": 0,
                "error": "Failed to remove tracks",
                "status": getattr(outcome, "status", None),
            }
        else:
            results[side] = {
                "ok": True,
                "deletedCount": len(track_uris),
                "snapshot_id": outcome.get("snapshot_id"),
            }

    ok_count = sum(1 for r in results.values() if r["ok"])
    if ok_count == 0:
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to delete tracks", "results": results},
        )

    success = ok_count == len(results)
    if not success:
        response.status_code = 207
    logger.info(
        f"[api/delete] deleteFrom={target.value} uris={len(track_uris)} "
        f"ok={ok_count}/{len(results)}"
    )
    return {
        "success": success,
        "partial": not success,
        "requestedCount": len(track_uris),
        "trackUris": track_uris,
        "results": results,
    }


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
