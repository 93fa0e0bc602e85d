"""Signal samples produced by a perception backend and the violations derived from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ...models.violation_event import ViolationCategory


@dataclass(frozen=True)
class SignalSample:
    face_count: int
    confidence: float = 0.0
    object_classes: Tuple[str, ...] = ()
    # True when the sample comes from a real inference backend rather than a simulator
    reliable: bool = False


@dataclass(frozen=True)
class Violation:
    category: ViolationCategory
    description: str
    confidence: float
    sustained_seconds: Optional[float] = None
    object_classes: Tuple[str, ...] = field(default_factory=tuple)
