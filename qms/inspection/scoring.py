"""
Score evaluation for quality inspections.

Pure functions that turn the six criteria scores an inspector enters
into an overall average and a predicted classification. Nothing here
touches storage; the record model and the report generator both call
into this module so the banding rules live in exactly one place.

Rounding uses ROUND_HALF_UP on the exact binary value of the mean,
which is what a browser's Number.toFixed(2) does, so the persisted
average is identical no matter which client produced it.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Mapping

from qms.exceptions import ValidationError

# Fixed, closed criteria set, in display order.
CRITERIA: tuple[str, ...] = (
    "fabric",
    "stitching",
    "fit",
    "color",
    "packaging",
    "labels",
)

CRITERIA_LABELS: dict[str, str] = {
    "fabric": "Fabric Quality",
    "stitching": "Stitching Quality",
    "fit": "Fit & Size",
    "color": "Color & Finish",
    "packaging": "Packaging",
    "labels": "Labels & Tags",
}

MIN_SCORE = 0.0
MAX_SCORE = 10.0

ACCEPT_THRESHOLD = 8.0
RECHECK_THRESHOLD = 6.0


class PredictedStatus(str, Enum):
    ACCEPTED = "Accepted (Predicted)"
    RECHECK = "Recheck (Predicted)"
    REJECTED = "Rejected (Predicted)"


# (lower bound, label), checked top-down
RATING_BANDS: tuple[tuple[float, str], ...] = (
    (9.0, "Excellent"),
    (8.0, "Very Good"),
    (7.0, "Good"),
    (6.0, "Average"),
)
LOWEST_RATING = "Needs Improvement"


def round_score(value: float) -> float:
    """Round to 2 decimals, half-up on the exact binary value."""
    quantized = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(quantized)


def score_problems(scores: Any) -> list[dict[str, str]]:
    """
    Collect every problem with a criteria-score mapping.

    Returns an empty list when the mapping is complete and in range.
    """
    if not isinstance(scores, Mapping):
        return [{"field": "scores", "message": "must be a mapping of criteria to scores"}]

    problems: list[dict[str, str]] = []
    for name in CRITERIA:
        if name not in scores:
            problems.append({"field": f"scores.{name}", "message": "is required"})
            continue
        value = scores[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            problems.append({"field": f"scores.{name}", "message": "must be a number"})
        elif not math.isfinite(value):
            problems.append({"field": f"scores.{name}", "message": "must be a finite number"})
        elif not MIN_SCORE <= value <= MAX_SCORE:
            problems.append({
                "field": f"scores.{name}",
                "message": f"must be between {MIN_SCORE:g} and {MAX_SCORE:g}",
            })

    for name in scores:
        if name not in CRITERIA:
            problems.append({"field": f"scores.{name}", "message": "is not a known criterion"})

    return problems


def average_score(scores: Mapping[str, float]) -> float:
    """
    Mean of the six criteria scores, rounded to 2 decimals.

    Raises:
        ValidationError: If a criterion is missing or unknown, or any
            value is non-numeric, non-finite or outside [0, 10].
    """
    problems = score_problems(scores)
    if problems:
        raise ValidationError(
            f"Invalid criteria scores ({len(problems)} problem(s))",
            errors=problems,
        )

    total = sum(float(scores[name]) for name in CRITERIA)
    return round_score(total / len(CRITERIA))


def predict(average: float) -> PredictedStatus:
    """
    Classify an average score.

    Bands are inclusive on their lower bound:
        >= 8       → Accepted (Predicted)
        6 .. < 8   → Recheck (Predicted)
        < 6        → Rejected (Predicted)

    The input is banded as given; callers pass the already-rounded
    average so the prediction always agrees with the stored field.
    """
    if average >= ACCEPT_THRESHOLD:
        return PredictedStatus.ACCEPTED
    if average >= RECHECK_THRESHOLD:
        return PredictedStatus.RECHECK
    return PredictedStatus.REJECTED


def rating_for(score: float) -> str:
    """Qualitative rating for a single criterion score."""
    for lower_bound, label in RATING_BANDS:
        if score >= lower_bound:
            return label
    return LOWEST_RATING


def criteria_label(name: str) -> str:
    """Display name for a criterion key (falls back to the key itself)."""
    return CRITERIA_LABELS.get(name, name)
