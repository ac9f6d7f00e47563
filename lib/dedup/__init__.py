"""
Playlist duplicate detection.

Public API:
  - find_duplicates(left_entries, right_entries) -> list[DuplicateRecord]
  - normalize_signature(track) -> str
  - classify_variation(track_name) -> VariationType
  - group_by_variation(records) / summarize(records, left_total, right_total)
  - SelectionState
"""
from lib.dedup.classifier import classify_variation
from lib.dedup.matcher import find_duplicates
from lib.dedup.models import (
    Album,
    Artist,
    DeleteTarget,
    DuplicateRecord,
    MatchType,
    PlaylistTrackEntry,
    PlaylistTracks,
    Track,
    VariationType,
)
from lib.dedup.normalizer import normalize_signature
from lib.dedup.selection import (
    ComparisonStats,
    SelectionState,
    group_by_variation,
    groups_to_dict,
    summarize,
)

__all__ = [
    "find_duplicates",
    "normalize_signature",
    "classify_variation",
    "group_by_variation",
    "groups_to_dict",
    "summarize",
    "ComparisonStats",
    "SelectionState",
    "Album",
    "Artist",
    "DeleteTarget",
    "DuplicateRecord",
    "MatchType",
    "PlaylistTrackEntry",
    "PlaylistTracks",
    "Track",
    "VariationType",
]
