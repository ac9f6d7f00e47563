"""
Result aggregation and bulk-selection helpers for a comparison result.

Everything here is pure: SelectionState methods return a new state.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Sequence

from lib.dedup.models import (
    ComparisonStatsDict,
    DeleteTarget,
    DuplicateRecord,
    MatchType,
    VariationType,
)

VariationGroups = Dict[VariationType, List[DuplicateRecord]]


def group_by_variation(records: Iterable[DuplicateRecord]) -> VariationGroups:
    """Group records by variation type, keeping first-seen order everywhere."""
    groups: VariationGroups = {}
    for record in records:
        groups.setdefault(record.variation_type, []).append(record)
    return groups


def groups_to_dict(groups: VariationGroups) -> Dict[str, List[str]]:
    """{"remaster": [uri, ...], "none": [...]} for JSON responses."""
    return {vt.value: [r.uri for r in records] for vt, records in groups.items()}


@dataclass(frozen=True)
class ComparisonStats:
    left_total: int
    right_total: int
    duplicates_found: int
    exact_count: int = 0
    similar_count: int = 0
    by_variation: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> ComparisonStatsDict:
        return {
            "leftTotal": self.left_total,
            "rightTotal": self.right_total,
            "duplicatesFound": self.duplicates_found,
            "exactCount": self.exact_count,
            "similarCount": self.similar_count,
            "byVariation": dict(self.by_variation),
        }


def summarize(
    records: Sequence[DuplicateRecord],
    left_total: int,
    right_total: int,
) -> ComparisonStats:
    exact = sum(1 for r in records if r.match_type is MatchType.EXACT)
    return ComparisonStats(
        left_total=left_total,
        right_total=right_total,
        duplicates_found=len(records),
        exact_count=exact,
        similar_count=len(records) - exact,
        by_variation={
            vt.value: len(group) for vt, group in group_by_variation(records).items()
        },
    )


@dataclass(frozen=True)
class SelectionState:
    """Chosen track URIs plus the playlist(s) they should be removed from."""
    selected: frozenset = frozenset()
    delete_from: DeleteTarget = DeleteTarget.BOTH

    def __contains__(self, uri: str) -> bool:
        return uri in self.selected

    def __len__(self) -> int:
        return len(self.selected)

    def select(self, uri: str) -> "SelectionState":
        return replace(self, selected=self.selected | {uri})

    def deselect(self, uri: str) -> "SelectionState":
        return replace(self, selected=self.selected - {uri})

    def toggle(self, uri: str) -> "SelectionState":
        if uri in self.selected:
            return self.deselect(uri)
        return self.select(uri)

    def select_all(self, records: Iterable[DuplicateRecord]) -> "SelectionState":
        return replace(self, selected=frozenset(r.uri for r in records))

    def deselect_all(self) -> "SelectionState":
        return replace(self, selected=frozenset())

    def is_all_selected(self, records: Sequence[DuplicateRecord]) -> bool:
        return bool(records) and len(self.selected) == len(records)

    def toggle_all(self, records: Sequence[DuplicateRecord]) -> "SelectionState":
        # compares sizes, like the result view's "Select All" button
        if len(self.selected) == len(records):
            return self.deselect_all()
        return self.select_all(records)

    def is_variation_selected(
        self, groups: VariationGroups, variation_type: VariationType
    ) -> bool:
        return all(r.uri in self.selected for r in groups.get(variation_type, []))

    def toggle_variation(
        self, groups: VariationGroups, variation_type: VariationType
    ) -> "SelectionState":
        """Select every record of one type, or clear them if all already are."""
        uris = {r.uri for r in groups.get(variation_type, [])}
        if self.is_variation_selected(groups, variation_type):
            return replace(self, selected=self.selected - uris)
        return replace(self, selected=self.selected | uris)

    def with_target(self, delete_from: DeleteTarget) -> "SelectionState":
        return replace(self, delete_from=DeleteTarget(delete_from))

    def ordered(self, uris: Iterable[str]) -> List[str]:
        """Selected URIs in the order they first appear in `uris`, the rest sorted."""
        out: List[str] = []
        for uri in uris:
            if uri in self.selected and uri not in out:
                out.append(uri)
        return out + sorted(self.selected - set(out))
