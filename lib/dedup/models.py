"""
Track / playlist data model for duplicate detection.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypedDict


class MatchType(str, Enum):
    """
    How a right-side track was matched against the left playlist.
    Priority: EXACT > SIMILAR
    """
    EXACT = "exact"       # same track URI
    SIMILAR = "similar"   # different URI, same normalized name + primary artist


class VariationType(str, Enum):
    """Qualifier detected in a similar track's name (live, remix, ...)."""
    LIVE = "live"
    REMIX = "remix"
    REMASTER = "remaster"
    ACOUSTIC = "acoustic"
    INSTRUMENTAL = "instrumental"
    RADIO_EDIT = "radio_edit"
    EXTENDED = "extended"
    DEMO = "demo"
    OTHER = "other"
    NONE = "none"

    def to_json(self) -> Optional[str]:
        # NONE goes over the wire as null
        return None if self is VariationType.NONE else self.value


class DeleteTarget(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"

    @property
    def sides(self) -> Tuple[str, ...]:
        if self is DeleteTarget.BOTH:
            return ("left", "right")
        return (self.value,)


class ComparisonStatsDict(TypedDict, total=False):
    """
    Summary block of a comparison response.

    Fields:
        leftTotal: track count reported by the service for the left playlist
        rightTotal: same for the right playlist
        duplicatesFound: number of DuplicateRecords
        exactCount / similarCount: split by MatchType
        byVariation: record count per variation type ("none" for NONE)
    """
    leftTotal: int
    rightTotal: int
    duplicatesFound: int
    exactCount: int
    similarCount: int
    byVariation: Dict[str, int]


@dataclass(frozen=True)
class Artist:
    id: Optional[str]
    name: str

    @classmethod
    def from_spotify(cls, data: Dict[str, Any]) -> "Artist":
        return cls(id=data.get("id"), name=data.get("name") or "")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Album:
    id: Optional[str]
    name: str
    images: Tuple[str, ...] = ()

    @classmethod
    def from_spotify(cls, data: Optional[Dict[str, Any]]) -> "Album":
        data = data or {}
        images = tuple(
            img["url"] for img in (data.get("images") or []) if img and img.get("url")
        )
        return cls(id=data.get("id"), name=data.get("name") or "", images=images)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "images": [{"url": url} for url in self.images],
        }


@dataclass(frozen=True)
class Track:
    """A playable item owned by the streaming service. Read-only."""
    id: Optional[str]
    name: str
    uri: str
    duration_ms: int = 0
    explicit: bool = False
    artists: Tuple[Artist, ...] = ()
    album: Album = field(default_factory=lambda: Album(id=None, name=""))

    @property
    def primary_artist(self) -> Optional[Artist]:
        return self.artists[0] if self.artists else None

    @classmethod
    def from_spotify(cls, data: Dict[str, Any]) -> "Track":
        """Build from a Spotify track object (as found in playlist items)."""
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            uri=data.get("uri") or "",
            duration_ms=int(data.get("duration_ms") or 0),
            explicit=bool(data.get("explicit")),
            artists=tuple(Artist.from_spotify(a) for a in (data.get("artists") or []) if a),
            album=Album.from_spotify(data.get("album")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "uri": self.uri,
            "duration_ms": self.duration_ms,
            "explicit": self.explicit,
            "artists": [a.to_dict() for a in self.artists],
            "album": self.album.to_dict(),
        }


@dataclass(frozen=True)
class PlaylistTrackEntry:
    """One row of a playlist. `track` is None for tombstoned items."""
    added_at: Optional[str]
    track: Optional[Track]

    @classmethod
    def from_spotify(cls, item: Dict[str, Any]) -> "PlaylistTrackEntry":
        raw = item.get("track")
        # podcast episodes and removed tracks come back without a usable uri
        track = Track.from_spotify(raw) if raw and raw.get("uri") else None
        return cls(added_at=item.get("added_at"), track=track)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added_at": self.added_at,
            "track": self.track.to_dict() if self.track else None,
        }


@dataclass(frozen=True)
class PlaylistTracks:
    """Full ordered track list of one playlist at a given snapshot."""
    playlist_id: str
    snapshot_id: Optional[str]
    total: int
    entries: Tuple[PlaylistTrackEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [e.to_dict() for e in self.entries],
            "total": self.total,
            "snapshot_id": self.snapshot_id,
        }


@dataclass(frozen=True)
class DuplicateRecord:
    """A right-side track that also exists (exactly or similarly) on the left."""
    track: Track
    match_type: MatchType
    variation_type: VariationType = VariationType.NONE
    in_left: bool = True
    in_right: bool = True

    @property
    def uri(self) -> str:
        return self.track.uri

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track": self.track.to_dict(),
            "inLeft": self.in_left,
            "inRight": self.in_right,
            "matchType": self.match_type.value,
            "variationType": self.variation_type.to_json(),
        }


def entries_from_spotify(items: List[Dict[str, Any]]) -> List[PlaylistTrackEntry]:
    return [PlaylistTrackEntry.from_spotify(item) for item in items if item is not None]
