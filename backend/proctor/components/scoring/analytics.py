"""Time-based violation analytics for integrity reports."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ...models.violation_event import ViolationCategory
from ...platform.config import DetectionPolicy, settings
from ...shared.utils import elapsed_seconds, ensure_utc, isoformat_or_none
from .engine import category_of


def estimated_seconds_by_category(policy: Optional[DetectionPolicy] = None) -> Dict[ViolationCategory, float]:
    """Fallback duration per event when the actual sustain time was not recorded.

    Sustained categories count their full (non-reliable) sustain window;
    immediate categories count nothing.
    """
    policy = policy or settings.detection_policy
    return {
        ViolationCategory.NO_FACE: policy.no_face_sustain_seconds,
        ViolationCategory.FOCUS_LOST: policy.focus_lost_sustain_seconds,
        ViolationCategory.MULTIPLE_FACES: 0.0,
        ViolationCategory.DEVICE_DETECTED: 0.0,
        ViolationCategory.MATERIALS_DETECTED: 0.0,
    }


def _violation_seconds(event: Dict[str, Any], estimates: Dict[ViolationCategory, float]) -> float:
    sustained = event.get("sustained_seconds")
    if sustained is not None:
        return float(sustained)
    return estimates[category_of(event)]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_time_analysis(
    events: Sequence[Dict[str, Any]],
    policy: Optional[DetectionPolicy] = None,
) -> Dict[str, Any]:
    estimates = estimated_seconds_by_category(policy)

    per_category: Dict[str, Dict[str, Any]] = {}
    durations: List[float] = []
    for category in ViolationCategory:
        matching = [e for e in events if category_of(e) == category]
        seconds = [_violation_seconds(e, estimates) for e in matching]
        durations.extend(seconds)
        per_category[category.value] = {
            "count": len(matching),
            "estimated_seconds": round(sum(seconds), 2),
            "average_confidence": round(_mean([float(e.get("confidence") or 0.0) for e in matching]), 2),
        }

    stamps = sorted(ensure_utc(e["timestamp"]) for e in events if e.get("timestamp") is not None)
    gaps = [elapsed_seconds(earlier, later) for earlier, later in zip(stamps, stamps[1:])]

    return {
        "per_category": per_category,
        "total_violation_seconds": round(sum(durations), 2),
        "total_focus_lost_seconds": per_category[ViolationCategory.FOCUS_LOST.value]["estimated_seconds"],
        "total_no_face_seconds": per_category[ViolationCategory.NO_FACE.value]["estimated_seconds"],
        "longest_violation_seconds": round(max(durations), 2) if durations else 0.0,
        "average_violation_gap_seconds": round(_mean(gaps), 2),
        "first_event_at": isoformat_or_none(stamps[0]) if stamps else None,
        "last_event_at": isoformat_or_none(stamps[-1]) if stamps else None,
    }
