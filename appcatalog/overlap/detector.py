"""
Overlap Detector

Read-only analytics that flags apps doing the same job for the same
population so they can be reviewed for consolidation.

Algorithm:
1. Walk the taxonomy in order. A category's candidates are unclaimed apps
   whose name, description, category or subjects contain one of its keywords.
2. Greedily cluster candidates: each cluster starts at the first remaining
   app and takes every other remaining app with overlapping grades and
   overlapping audience.
3. Keep clusters of two or more. Savings = all costs except the cheapest.
4. Sort groups by savings, highest first.

An empty grade set or empty audience overlaps with everything.

Version: catalog_overlap_v1
"""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Set

from appcatalog.catalog.models import CatalogEntry
from appcatalog.catalog.vocabulary import format_grade_levels, grade_numbers

from .models import DivisionLabel, OverlapCategory, OverlapGroup, OverlapMember

logger = logging.getLogger(__name__)


# ============================================================================
# TAXONOMY
# ============================================================================

class OverlapTaxonomy:
    """
    Ordered tool-type keyword sets. Earlier categories claim apps first.
    """

    def __init__(self, taxonomy_path: Optional[str] = None):
        if taxonomy_path is None:
            taxonomy_path = os.path.join(
                os.path.dirname(__file__),
                '..', '..', 'config', 'catalog', 'overlap_taxonomy.v1.json'
            )

        self.taxonomy_path = Path(taxonomy_path)
        if not self.taxonomy_path.exists():
            raise FileNotFoundError(f"Overlap taxonomy not found: {self.taxonomy_path}")

        with open(self.taxonomy_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)

        self.version = raw.get("version", "unknown")
        self.categories: List[OverlapCategory] = [
            OverlapCategory(
                name=c["name"],
                keywords=[k.lower() for k in c.get("keywords", [])],
            )
            for c in raw.get("categories", [])
        ]


@lru_cache(maxsize=1)
def load_taxonomy() -> OverlapTaxonomy:
    return OverlapTaxonomy()


# ============================================================================
# PREDICATES
# ============================================================================

def division_from_grades(grades: Set[int], division_text: str = "") -> str:
    """
    Division label: division text first, then grade numbers.

    Pre-K is -1 and Kindergarten is 0.
    """
    div = (division_text or "").lower()
    if "elementary" in div or "early learning" in div:
        return DivisionLabel.ELEMENTARY
    if "middle" in div:
        return DivisionLabel.MIDDLE
    if "high" in div:
        return DivisionLabel.HIGH
    if "whole school" in div or "school-wide" in div:
        return DivisionLabel.WHOLE_SCHOOL

    if not grades:
        return DivisionLabel.UNKNOWN

    has_elementary = any(-1 <= g <= 5 for g in grades)
    has_middle = any(6 <= g <= 8 for g in grades)
    has_high = any(9 <= g <= 12 for g in grades)

    if has_elementary and has_middle and has_high:
        return DivisionLabel.WHOLE_SCHOOL
    if has_elementary and not has_middle and not has_high:
        return DivisionLabel.ELEMENTARY
    if has_middle and not has_elementary and not has_high:
        return DivisionLabel.MIDDLE
    if has_high and not has_elementary and not has_middle:
        return DivisionLabel.HIGH
    return DivisionLabel.MULTI_DIVISION


def grades_overlap(first: Set[int], second: Set[int]) -> bool:
    if not first or not second:
        return True
    return bool(first & second)


def audiences_overlap(first: str, second: str) -> bool:
    if not first or not second:
        return True
    if "student" in first and "student" in second:
        return True
    return "teacher" in first and "teacher" in second


class _Candidate:
    """Entry plus the derived values clustering compares."""

    def __init__(self, entry: CatalogEntry):
        self.entry = entry
        self.grades = grade_numbers(entry.grade_levels)
        self.division = division_from_grades(self.grades, entry.division)
        self.audience = ", ".join(entry.audience).lower()
        self.search_text = " ".join([
            entry.product_name,
            entry.description,
            entry.category,
            entry.subjects,
        ]).lower()

    def matches(self, category: OverlapCategory) -> bool:
        return any(keyword in self.search_text for keyword in category.keywords)

    def overlaps(self, other: "_Candidate") -> bool:
        return grades_overlap(self.grades, other.grades) and audiences_overlap(self.audience, other.audience)

    def to_member(self) -> OverlapMember:
        entry = self.entry
        return OverlapMember(
            name=entry.product_name,
            cost=entry.annual_cost or 0.0,
            license_type=entry.license_type or "Unknown",
            division=self.division,
            grade_levels=format_grade_levels(entry.grade_levels) or "Not specified",
            audience=", ".join(entry.audience) or "Not specified",
        )


def _format_cost(cost: float) -> str:
    if float(cost).is_integer():
        return f"{int(cost):,}"
    return f"{cost:,.2f}"


def _cluster(candidates: List[_Candidate]) -> List[List[_Candidate]]:
    remaining = list(candidates)
    clusters = []
    while remaining:
        first = remaining.pop(0)
        group = [first]
        # Reverse scan so removals do not shift unvisited positions
        for i in range(len(remaining) - 1, -1, -1):
            if first.overlaps(remaining[i]):
                group.append(remaining.pop(i))
        if len(group) >= 2:
            clusters.append(group)
    return clusters


def _build_group(category: str, cluster: List[_Candidate]) -> OverlapGroup:
    members = [c.to_member() for c in cluster]
    by_cost = sorted(members, key=lambda m: m.cost)
    savings = sum(m.cost for m in by_cost[1:])

    divisions = []
    for candidate in cluster:
        if candidate.division not in divisions:
            divisions.append(candidate.division)
    context = divisions[0] if len(divisions) == 1 else "multiple divisions"

    if savings > 0:
        cheapest = by_cost[0]
        recommendation = (
            f"Apps serving {context}: Consider consolidating to **{cheapest.name}** "
            f"(lowest cost at ${_format_cost(cheapest.cost)}). Review actual usage before changes."
        )
    else:
        recommendation = (
            f"Multiple free tools for {context}. Evaluate which best supports curriculum "
            f"needs and standardize to reduce training overhead."
        )

    return OverlapGroup(
        category=category,
        apps=members,
        potential_savings=savings,
        recommendation=recommendation,
        division_context=context,
    )


# ============================================================================
# PUBLIC API
# ============================================================================

def detect_overlaps(
    entries: Iterable[CatalogEntry],
    taxonomy: Optional[OverlapTaxonomy] = None,
) -> List[OverlapGroup]:
    """
    Find overlap groups among active entries.

    Args:
        entries: Catalog entries; inactive ones are ignored
        taxonomy: Category keyword sets (defaults to overlap_taxonomy.v1.json)

    Returns:
        OverlapGroups sorted by potential_savings descending
    """
    taxonomy = taxonomy or load_taxonomy()
    candidates = [_Candidate(e) for e in entries if e.active]
    claimed: Set[str] = set()
    groups: List[OverlapGroup] = []

    for category in taxonomy.categories:
        matching = [
            c for c in candidates
            if c.entry.identity_key not in claimed and c.matches(category)
        ]
        if len(matching) < 2:
            continue

        for cluster in _cluster(matching):
            groups.append(_build_group(category.name, cluster))
            claimed.update(c.entry.identity_key for c in cluster)

    groups.sort(key=lambda g: g.potential_savings, reverse=True)
    logger.debug(f"Detected {len(groups)} overlap groups across {len(candidates)} apps")
    return groups


def estimate_savings(groups: Iterable[OverlapGroup]) -> float:
    """Total potential savings across overlap groups."""
    return sum(g.potential_savings for g in groups)
