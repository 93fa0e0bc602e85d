"""Per-session state machine turning raw signal samples into violations.

Ambiguous conditions (no face, low-confidence single face) must hold for a
sustain window before they count; any sample that no longer meets the trigger
cancels the pending fire. Unambiguous conditions (several faces, prohibited
objects) fire on the first sample and are then held back by a cooldown.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from ...models.violation_event import ViolationCategory
from ...platform.config import DetectionPolicy
from ..errors import SessionNotActive
from .scheduler import Scheduler, TimerHandle
from .signals import SignalSample, Violation

logger = logging.getLogger(__name__)

ViolationSink = Callable[[str, Violation], None]

SUSTAINED_CATEGORIES = (ViolationCategory.NO_FACE, ViolationCategory.FOCUS_LOST)


@dataclass
class DebounceState:
    category: ViolationCategory
    cooldown_seconds: float = 0.0
    sustain_seconds: float = 0.0
    pending_deadline: Optional[float] = None
    armed_at: Optional[float] = None
    pending_token: int = 0
    pending_confidence: float = 0.0
    timer: Optional[TimerHandle] = None
    last_fired_at: Optional[float] = None

    @property
    def is_pending(self) -> bool:
        return self.pending_deadline is not None

    def in_cooldown(self, now: float) -> bool:
        if self.cooldown_seconds <= 0 or self.last_fired_at is None:
            return False
        return now - self.last_fired_at < self.cooldown_seconds

    def clear_pending(self) -> None:
        self.pending_deadline = None
        self.armed_at = None
        self.pending_token = 0
        self.pending_confidence = 0.0
        self.timer = None


def _describe_sustained(category: ViolationCategory, sustain_seconds: float) -> str:
    if category == ViolationCategory.NO_FACE:
        return f"No face visible for {sustain_seconds:g} seconds"
    return f"Looking away from screen for more than {sustain_seconds:g} seconds"


class SignalDebouncer:
    def __init__(
        self,
        session_id: str,
        sink: ViolationSink,
        scheduler: Scheduler,
        policy: DetectionPolicy,
    ):
        self.session_id = session_id
        self._sink = sink
        self._scheduler = scheduler
        self._policy = policy
        self._lock = threading.Lock()
        self._closed = False
        self._tokens = itertools.count(1)
        cooldowns = {
            ViolationCategory.MULTIPLE_FACES: policy.multiple_faces_cooldown_seconds,
            ViolationCategory.DEVICE_DETECTED: policy.device_cooldown_seconds,
            ViolationCategory.MATERIALS_DETECTED: policy.materials_cooldown_seconds,
        }
        self._states: Dict[ViolationCategory, DebounceState] = {
            category: DebounceState(category=category, cooldown_seconds=cooldowns.get(category, 0.0))
            for category in ViolationCategory
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_categories(self) -> List[ViolationCategory]:
        with self._lock:
            return [c for c, state in self._states.items() if state.is_pending]

    # ------------------------------------------------------------------
    # Sample evaluation
    # ------------------------------------------------------------------

    def process(self, sample: SignalSample) -> List[Violation]:
        """Evaluate every category against one sample; returns the immediate fires."""
        with self._lock:
            if self._closed:
                logger.debug("Sample dropped; debouncer closed session_id=%s", self.session_id)
                return []
            now = self._scheduler.now()

            self._evaluate_sustained(
                ViolationCategory.NO_FACE,
                triggered=sample.face_count == 0,
                sustain=self._policy.no_face_sustain(sample.reliable),
                confidence=sample.confidence,
                now=now,
            )
            self._evaluate_sustained(
                ViolationCategory.FOCUS_LOST,
                triggered=sample.face_count == 1 and sample.confidence < self._policy.focus_confidence_threshold,
                sustain=self._policy.focus_lost_sustain(sample.reliable),
                confidence=sample.confidence,
                now=now,
            )

            fired: List[Violation] = []
            if sample.face_count > 1:
                violation = self._fire_immediate(
                    ViolationCategory.MULTIPLE_FACES,
                    f"{sample.face_count} faces detected in frame",
                    sample.confidence,
                    now,
                )
                if violation:
                    fired.append(violation)

            for category, classes in self._match_objects(sample.object_classes).items():
                label = ", ".join(classes)
                if category == ViolationCategory.MATERIALS_DETECTED:
                    description = f"Written material ({label}) detected in frame"
                else:
                    description = f"Electronic device ({label}) detected in frame"
                violation = self._fire_immediate(category, description, sample.confidence, now, classes)
                if violation:
                    fired.append(violation)

        for violation in fired:
            self._emit(violation)
        return fired

    def _match_objects(self, object_classes: Iterable[str]) -> Dict[ViolationCategory, List[str]]:
        matches: Dict[ViolationCategory, List[str]] = {}
        for raw in object_classes:
            name = (raw or "").strip().lower()
            category = self._policy.object_class_categories.get(name)
            if not category:
                continue
            bucket = matches.setdefault(ViolationCategory(category), [])
            if name not in bucket:
                bucket.append(name)
        return matches

    def _evaluate_sustained(
        self,
        category: ViolationCategory,
        triggered: bool,
        sustain: float,
        confidence: float,
        now: float,
    ) -> None:
        state = self._states[category]
        if not triggered:
            if state.is_pending:
                self._cancel(state)
                logger.debug("Sustain cancelled session_id=%s category=%s", self.session_id, category.value)
            return
        if state.is_pending or state.in_cooldown(now):
            return
        token = next(self._tokens)
        state.pending_token = token
        state.armed_at = now
        state.sustain_seconds = sustain
        state.pending_deadline = now + sustain
        state.pending_confidence = confidence
        state.timer = self._scheduler.call_later(sustain, lambda: self._on_deadline(category, token))
        logger.debug(
            "Sustain armed session_id=%s category=%s window=%.1fs", self.session_id, category.value, sustain
        )

    def _fire_immediate(
        self,
        category: ViolationCategory,
        description: str,
        confidence: float,
        now: float,
        object_classes: Iterable[str] = (),
    ) -> Optional[Violation]:
        state = self._states[category]
        if state.in_cooldown(now):
            logger.debug("Suppressed by cooldown session_id=%s category=%s", self.session_id, category.value)
            return None
        state.last_fired_at = now
        return Violation(
            category=category,
            description=description,
            confidence=confidence,
            object_classes=tuple(object_classes),
        )

    @staticmethod
    def _cancel(state: DebounceState) -> None:
        if state.timer is not None:
            state.timer.cancel()
        state.clear_pending()

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _on_deadline(self, category: ViolationCategory, token: int) -> None:
        with self._lock:
            state = self._states[category]
            # A cancel or re-arm got here first.
            if self._closed or not state.is_pending or state.pending_token != token:
                return
            now = self._scheduler.now()
            violation = Violation(
                category=category,
                description=_describe_sustained(category, state.sustain_seconds),
                confidence=state.pending_confidence,
                sustained_seconds=round(now - state.armed_at, 2),
            )
            state.clear_pending()
            state.last_fired_at = now
        try:
            self._emit(violation)
        except Exception:
            logger.exception(
                "Failed to record sustained violation session_id=%s category=%s", self.session_id, category.value
            )

    def _emit(self, violation: Violation) -> None:
        try:
            self._sink(self.session_id, violation)
        except SessionNotActive:
            logger.debug(
                "Violation dropped; session no longer active session_id=%s category=%s",
                self.session_id,
                violation.category.value,
            )

    def close(self) -> None:
        """Cancel every pending fire; later samples and callbacks are ignored."""
        with self._lock:
            self._closed = True
            for state in self._states.values():
                if state.is_pending:
                    self._cancel(state)
