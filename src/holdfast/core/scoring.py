"""Weighted, category-aware scoring.

Each probe is worth points by severity. A category's percentage is the
share of its points earned by blocked probes. The total is the weighted
average of the percentages of the categories present in the run, so
skipping a whole category neither zeroes nor inflates the result.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

from .categories import CATEGORY_WEIGHTS
from .models import Category, CategoryScore, DefenseScore, Grade, Severity, TestRecord

logger = logging.getLogger(__name__)

SEVERITY_POINTS: dict[Severity, int] = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 20,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}
"""Points a probe is worth, by severity."""

MAX_SCORE = 100

# (minimum score, grade), checked top to bottom
_GRADE_THRESHOLDS: list[tuple[int, Grade]] = [
    (90, Grade.A),
    (75, Grade.B),
    (60, Grade.C),
    (40, Grade.D),
]


def grade_of(score: float) -> Grade:
    """Map a 0-100 score to a letter grade.

    A >= 90, B >= 75, C >= 60, D >= 40, otherwise F.
    """
    for threshold, grade in _GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return Grade.F


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def category_score(records: list[TestRecord], category: Category | None = None) -> CategoryScore:
    """Sum earned and possible points for records of a single category.

    Args:
        records: Records that all belong to the same category.
        category: Category to report for an empty record list. Defaults to
            network, matching what an empty group has always reported.

    Returns:
        The CategoryScore for the records.

    Raises:
        ValueError: If the records span more than one category.
    """
    if not records:
        return CategoryScore(category=category or Category.NETWORK, score=0, max_score=0)

    first = records[0].category
    if any(r.category != first for r in records):
        found = sorted({r.category.value for r in records})
        raise ValueError(f"Records span multiple categories: {', '.join(found)}")

    score = 0
    max_score = 0
    for record in records:
        points = SEVERITY_POINTS[record.severity]
        max_score += points
        if record.outcome.blocked:
            score += points

    return CategoryScore(category=first, score=score, max_score=max_score, records=records)


def group_by_category(records: Iterable[TestRecord]) -> dict[Category, list[TestRecord]]:
    """Partition records by category, keeping first-seen category order."""
    groups: dict[Category, list[TestRecord]] = {}
    for record in records:
        groups.setdefault(record.category, []).append(record)
    return groups


def aggregate(
    records: Iterable[TestRecord],
    weights: Mapping[str, float] = CATEGORY_WEIGHTS,
) -> DefenseScore:
    """Compute the overall defense score for a run.

    Categories missing from ``weights`` are left out of the result and
    logged rather than failing the run.

    Args:
        records: Every record produced by the run.
        weights: Category value -> relative weight.

    Returns:
        A new DefenseScore stamped with the current UTC time.
    """
    categories: list[CategoryScore] = []
    weighted_sum = 0.0
    total_weight = 0.0

    for category, group in group_by_category(records).items():
        weight = weights.get(category.value)
        if weight is None:
            logger.warning(
                "Ignoring %d record(s) in unweighted category %s", len(group), category.value
            )
            continue

        cat_score = category_score(group)
        categories.append(cat_score)
        weighted_sum += cat_score.percentage * weight
        total_weight += weight

    total_score = _round_half_up(weighted_sum / total_weight) if total_weight > 0 else 0
    total_score = max(0, min(MAX_SCORE, total_score))

    return DefenseScore(
        total_score=total_score,
        max_score=MAX_SCORE,
        grade=grade_of(total_score),
        categories=categories,
        tested_at=datetime.now(UTC),
    )
