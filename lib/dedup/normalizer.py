"""
Signature helper: reduce a track to a comparable "name|primary artist" key.
"""
from __future__ import annotations

import re

from lib.dedup.models import Track

UNKNOWN_ARTIST = "unknown"

# A group is removed together with the whitespace around it
_PAREN_GROUP_RE = re.compile(r"\s*\(.*?\)\s*")
_BRACKET_GROUP_RE = re.compile(r"\s*\[.*?\]\s*")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_primary_artist(track: Track) -> str:
    artist = track.primary_artist
    name = (artist.name if artist else "").lower().strip()
    return name or UNKNOWN_ARTIST


def clean_track_name(name: str) -> str:
    """
    Name normalization:
    - lower-case + trim
    - drop every (...) and [...] group (remastered, feat. X, radio edit, ...)
    - collapse whitespace
    """
    s = (name or "").lower().strip()
    s = _PAREN_GROUP_RE.sub("", s)
    s = _BRACKET_GROUP_RE.sub("", s)
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return s


def normalize_signature(track: Track) -> str:
    """
    Signature used for "similar" matching.

    Never fails: a track without artists lands in the "unknown" bucket.
    """
    return f"{clean_track_name(track.name)}|{normalize_primary_artist(track)}"
