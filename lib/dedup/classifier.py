"""
Variation classifier: label a near-duplicate by the qualifier in its name.

Rules are evaluated top to bottom and the first hit wins, so the order of
VARIATION_RULES matters ("Song (Live Edit)" is live, not remix).
"""
from __future__ import annotations

import re
from typing import Pattern, Tuple

from lib.dedup.models import VariationType


def _words(*alternatives: str) -> Pattern[str]:
    return re.compile(r"\b(" + "|".join(alternatives) + r")\b", re.IGNORECASE)


VARIATION_RULES: Tuple[Tuple[Pattern[str], VariationType], ...] = (
    (_words("live", "en vivo", "ao vivo"), VariationType.LIVE),
    # bare "edit" lands here, ahead of radio_edit
    (_words("remix", "rmx", "rework", "edit"), VariationType.REMIX),
    (_words("remaster", "remastered"), VariationType.REMASTER),
    (_words("acoustic", "unplugged", "stripped"), VariationType.ACOUSTIC),
    (_words("instrumental", "karaoke"), VariationType.INSTRUMENTAL),
    (_words("radio edit", "single version"), VariationType.RADIO_EDIT),
    (_words("extended", "long version", "full length"), VariationType.EXTENDED),
    (_words("demo", "rough mix"), VariationType.DEMO),
)

# Checked against the name as given, not the lower-cased one
_QUALIFIER_GROUP_RE = re.compile(r"[(\[].*?[)\]]")


def classify_variation(track_name: str) -> VariationType:
    lower_name = (track_name or "").lower()

    for pattern, variation in VARIATION_RULES:
        if pattern.search(lower_name):
            return variation

    if _QUALIFIER_GROUP_RE.search(track_name or ""):
        return VariationType.OTHER

    return VariationType.NONE
