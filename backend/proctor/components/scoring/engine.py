"""Integrity scoring: fixed deductions per violation, clamped to 0..100.

GUARDRAIL: pure functions only. No database, no clock; the same event multiset
always yields the same score regardless of order.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from ...models.violation_event import ViolationCategory
from ...shared.utils import elapsed_seconds, ensure_utc
from .schemas import CategoryDeduction, IntegrityScore, RiskTier

BASE_SCORE = 100

# ---------------------------------------------------------------------------
# Points deducted per occurrence
# ---------------------------------------------------------------------------
DEDUCTION_POINTS = {
    ViolationCategory.FOCUS_LOST: 3,
    ViolationCategory.NO_FACE: 5,
    ViolationCategory.MULTIPLE_FACES: 8,
    ViolationCategory.DEVICE_DETECTED: 15,
    ViolationCategory.MATERIALS_DETECTED: 10,
}

CATEGORY_SEVERITY = {
    ViolationCategory.FOCUS_LOST: RiskTier.LOW,
    ViolationCategory.NO_FACE: RiskTier.MEDIUM,
    ViolationCategory.MULTIPLE_FACES: RiskTier.HIGH,
    ViolationCategory.DEVICE_DETECTED: RiskTier.CRITICAL,
    ViolationCategory.MATERIALS_DETECTED: RiskTier.HIGH,
}

CATEGORY_LABELS = {
    ViolationCategory.FOCUS_LOST: "Focus Lost",
    ViolationCategory.NO_FACE: "No Face Detected",
    ViolationCategory.MULTIPLE_FACES: "Multiple Faces",
    ViolationCategory.DEVICE_DETECTED: "Device Detected",
    ViolationCategory.MATERIALS_DETECTED: "Notes or Materials Detected",
}

# Lower bound (inclusive) of each tier, highest first
RISK_TIER_FLOORS = (
    (80, RiskTier.LOW),
    (60, RiskTier.MEDIUM),
    (40, RiskTier.HIGH),
)


def category_of(event: Any) -> ViolationCategory:
    """Accept a category token, a serialized event dict, or an ORM/event object."""
    if isinstance(event, ViolationCategory):
        return event
    if isinstance(event, str):
        return ViolationCategory(event)
    if isinstance(event, dict):
        return ViolationCategory(event["category"])
    return ViolationCategory(getattr(event, "category"))


def risk_tier_for(score: int) -> RiskTier:
    for floor, tier in RISK_TIER_FLOORS:
        if score >= floor:
            return tier
    return RiskTier.CRITICAL


def score_events(events: Iterable[Any]) -> IntegrityScore:
    counts = Counter(category_of(event) for event in events)
    breakdown = {}
    total = 0
    for category in ViolationCategory:
        count = counts.get(category, 0)
        points = DEDUCTION_POINTS[category]
        deduction = count * points
        total += deduction
        breakdown[category.value] = CategoryDeduction(
            category=category.value,
            label=CATEGORY_LABELS[category],
            count=count,
            points_each=points,
            deduction=deduction,
            severity=CATEGORY_SEVERITY[category],
        )
    score = max(0, BASE_SCORE - total)
    return IntegrityScore(
        score=score,
        base_score=BASE_SCORE,
        total_deductions=total,
        breakdown=breakdown,
        risk_tier=risk_tier_for(score),
    )


def _timestamp_of(event: Any) -> Optional[datetime]:
    value = event.get("timestamp") if isinstance(event, dict) else getattr(event, "timestamp", None)
    return ensure_utc(value)


def session_duration_seconds(
    events: Sequence[Any],
    started_at: Optional[datetime],
    ended_at: Optional[datetime],
) -> int:
    """``(last event or end) - (first event or start)`` in whole seconds, never negative."""
    stamps = sorted(ts for ts in (_timestamp_of(e) for e in events) if ts is not None)
    first = stamps[0] if stamps else ensure_utc(started_at)
    last = stamps[-1] if stamps else ensure_utc(ended_at)
    return max(0, int(round(elapsed_seconds(first, last))))
