"""
Cross-reference two playlists and report the tracks they share.

Lookup order per right-side track: exact URI -> normalized signature.
"""
from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Set

from lib.dedup.classifier import classify_variation
from lib.dedup.models import (
    DuplicateRecord,
    MatchType,
    PlaylistTrackEntry,
    Track,
    VariationType,
)
from lib.dedup.normalizer import normalize_signature

logger = logging.getLogger(__name__)


def _index_left(
    entries: Iterable[PlaylistTrackEntry],
) -> tuple[Dict[str, Track], Dict[str, Track]]:
    by_uri: Dict[str, Track] = {}
    by_signature: Dict[str, Track] = {}

    for entry in entries:
        track = entry.track
        if track is None:
            continue

        by_uri[track.uri] = track

        # first track with a given signature wins
        signature = normalize_signature(track)
        if signature not in by_signature:
            by_signature[signature] = track

    return by_uri, by_signature


def find_duplicates(
    left_entries: Iterable[PlaylistTrackEntry],
    right_entries: Iterable[PlaylistTrackEntry],
) -> List[DuplicateRecord]:
    """
    Find right-side tracks that already exist on the left.

    1. Same URI -> MatchType.EXACT, variation NONE
    2. Different URI but same normalize_signature() -> MatchType.SIMILAR,
       variation = classify_variation(right track name)

    Null tracks are skipped on both sides and each URI is reported at most
    once, in the order of its first appearance on the right. Runs in
    O(n + m).

    Args:
        left_entries: entries of the playlist used as the reference
        right_entries: entries of the playlist being checked

    Returns:
        list of DuplicateRecord (only matches)
    """
    t0 = time.perf_counter()
    left_list = list(left_entries)
    by_uri, by_signature = _index_left(left_list)

    duplicates: List[DuplicateRecord] = []
    seen_uris: Set[str] = set()
    right_count = 0

    for entry in right_entries:
        right_count += 1
        track = entry.track
        if track is None:
            continue

        uri = track.uri
        if uri in seen_uris:
            continue

        if uri in by_uri:
            duplicates.append(
                DuplicateRecord(
                    track=track,
                    match_type=MatchType.EXACT,
                    variation_type=VariationType.NONE,
                )
            )
            seen_uris.add(uri)
            continue

        similar = by_signature.get(normalize_signature(track))
        if similar is not None and similar.uri != uri:
            duplicates.append(
                DuplicateRecord(
                    track=track,
                    match_type=MatchType.SIMILAR,
                    variation_type=classify_variation(track.name),
                )
            )
            seen_uris.add(uri)

    match_ms = int((time.perf_counter() - t0) * 1000)
    exact = sum(1 for d in duplicates if d.match_type is MatchType.EXACT)
    logger.debug(
        f"[dedup] match left={len(left_list)} right={right_count} "
        f"exact={exact} similar={len(duplicates) - exact} match_ms={match_ms}ms"
    )
    return duplicates
