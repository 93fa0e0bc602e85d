"""Signal debouncer: sustain windows, cancellation, cooldowns and object matching."""
import pytest
from proctor.components.detection.debouncer import SignalDebouncer
from proctor.components.detection.signals import SignalSample
from proctor.components.errors import SessionNotActive
from proctor.models.violation_event import ViolationCategory
from tests.conftest import ManualScheduler

NO_FACE = SignalSample(face_count=0, confidence=0.0)
FOCUSED = SignalSample(face_count=1, confidence=0.9)
LOOKING_AWAY = SignalSample(face_count=1, confidence=0.3)
TWO_FACES = SignalSample(face_count=2, confidence=0.8)


class _Sink:
    def __init__(self):
        self.violations = []

    def __call__(self, session_id, violation):
        self.violations.append((session_id, violation))

    def categories(self):
        return [v.category for _, v in self.violations]


@pytest.fixture
def sink():
    return _Sink()


@pytest.fixture
def timers():
    return ManualScheduler()


@pytest.fixture
def debouncer(sink, timers, policy):
    return SignalDebouncer("sess-1", sink, timers, policy)


def _feed(debouncer, timers, sample, seconds, step=1.0):
    """Send ``sample`` every ``step`` seconds for ``seconds`` seconds."""
    elapsed = 0.0
    while elapsed < seconds:
        debouncer.process(sample)
        timers.advance(step)
        elapsed += step


# ===================================================================
# NO FACE
# ===================================================================

class TestNoFace:
    def test_sustained_absence_fires_once(self, debouncer, timers, sink):
        _feed(debouncer, timers, NO_FACE, 10)
        assert sink.categories() == [ViolationCategory.NO_FACE]
        _, violation = sink.violations[0]
        assert violation.sustained_seconds == 10.0
        assert violation.description == "No face visible for 10 seconds"

    def test_short_absence_does_not_fire(self, debouncer, timers, sink):
        _feed(debouncer, timers, NO_FACE, 9)
        assert sink.violations == []
        assert debouncer.pending_categories() == [ViolationCategory.NO_FACE]

    def test_interruption_cancels_and_resets_the_window(self, debouncer, timers, sink):
        _feed(debouncer, timers, NO_FACE, 6)
        debouncer.process(FOCUSED)
        assert debouncer.pending_categories() == []
        _feed(debouncer, timers, NO_FACE, 6)
        # 12s of absence in total, but never 10s in a row
        assert sink.violations == []
        _feed(debouncer, timers, NO_FACE, 4)
        assert sink.categories() == [ViolationCategory.NO_FACE]

    def test_reliable_source_uses_shorter_window(self, debouncer, timers, sink):
        reliable = SignalSample(face_count=0, confidence=0.0, reliable=True)
        _feed(debouncer, timers, reliable, 8)
        assert sink.categories() == [ViolationCategory.NO_FACE]
        assert sink.violations[0][1].sustained_seconds == 8.0

    def test_continued_absence_rearms_after_firing(self, debouncer, timers, sink):
        _feed(debouncer, timers, NO_FACE, 20)
        assert sink.categories() == [ViolationCategory.NO_FACE, ViolationCategory.NO_FACE]


# ===================================================================
# FOCUS LOST
# ===================================================================

class TestFocusLost:
    def test_low_confidence_single_face_fires_after_window(self, debouncer, timers, sink):
        _feed(debouncer, timers, LOOKING_AWAY, 5)
        assert sink.categories() == [ViolationCategory.FOCUS_LOST]
        assert sink.violations[0][1].description == "Looking away from screen for more than 5 seconds"
        assert sink.violations[0][1].confidence == 0.3

    def test_confident_face_cancels(self, debouncer, timers, sink):
        _feed(debouncer, timers, LOOKING_AWAY, 4)
        debouncer.process(FOCUSED)
        timers.advance(10)
        assert sink.violations == []

    def test_threshold_is_exclusive(self, debouncer, timers, sink):
        _feed(debouncer, timers, SignalSample(face_count=1, confidence=0.4), 10)
        assert sink.violations == []

    def test_no_face_does_not_count_as_focus_lost(self, debouncer, timers, sink):
        _feed(debouncer, timers, NO_FACE, 6)
        assert ViolationCategory.FOCUS_LOST not in sink.categories()


# ===================================================================
# MULTIPLE FACES
# ===================================================================

class TestMultipleFaces:
    def test_fires_immediately(self, debouncer, sink):
        fired = debouncer.process(TWO_FACES)
        assert [v.category for v in fired] == [ViolationCategory.MULTIPLE_FACES]
        assert sink.violations[0][1].description == "2 faces detected in frame"

    def test_second_sighting_within_cooldown_suppressed(self, debouncer, timers, sink):
        debouncer.process(TWO_FACES)
        timers.advance(5)
        debouncer.process(TWO_FACES)
        assert sink.categories() == [ViolationCategory.MULTIPLE_FACES]

    def test_second_sighting_after_cooldown_fires(self, debouncer, timers, sink):
        debouncer.process(TWO_FACES)
        timers.advance(30)
        debouncer.process(TWO_FACES)
        assert sink.categories() == [ViolationCategory.MULTIPLE_FACES, ViolationCategory.MULTIPLE_FACES]

    def test_multiple_faces_does_not_arm_sustained_categories(self, debouncer):
        debouncer.process(SignalSample(face_count=3, confidence=0.1))
        assert debouncer.pending_categories() == []


# ===================================================================
# PROHIBITED OBJECTS
# ===================================================================

class TestObjects:
    def test_device_and_material_in_one_frame(self, debouncer, sink):
        sample = SignalSample(face_count=1, confidence=0.9, object_classes=("Cell Phone", "book", "cup"))
        debouncer.process(sample)
        assert sorted(c.value for c in sink.categories()) == ["device_detected", "materials_detected"]
        by_category = {v.category: v for _, v in sink.violations}
        assert by_category[ViolationCategory.DEVICE_DETECTED].object_classes == ("cell phone",)
        assert by_category[ViolationCategory.MATERIALS_DETECTED].description == (
            "Written material (book) detected in frame"
        )

    def test_unlisted_objects_ignored(self, debouncer, sink):
        debouncer.process(SignalSample(face_count=1, confidence=0.9, object_classes=("cup", "chair")))
        assert sink.violations == []

    def test_device_cooldown(self, debouncer, timers, sink):
        phone = SignalSample(face_count=1, confidence=0.9, object_classes=("laptop",))
        debouncer.process(phone)
        timers.advance(19)
        debouncer.process(phone)
        timers.advance(2)
        debouncer.process(phone)
        assert sink.categories() == [ViolationCategory.DEVICE_DETECTED, ViolationCategory.DEVICE_DETECTED]


# ===================================================================
# CLOSE AND RACES
# ===================================================================

class TestCloseAndRaces:
    def test_close_cancels_pending_timers(self, debouncer, timers, sink):
        debouncer.process(NO_FACE)
        debouncer.process(LOOKING_AWAY)
        debouncer.close()
        timers.advance(30)
        assert sink.violations == []
        assert timers.pending() == []
        assert debouncer.closed

    def test_samples_after_close_dropped(self, debouncer, sink):
        debouncer.close()
        assert debouncer.process(TWO_FACES) == []
        assert sink.violations == []

    def test_stale_timer_callback_is_ignored(self, debouncer, timers, sink):
        debouncer.process(NO_FACE)
        stale = timers.pending()[0]
        debouncer.process(FOCUSED)
        # Callback already dequeued by the timer thread when cancel landed
        stale.callback()
        assert sink.violations == []

    def test_stale_callback_does_not_fire_rearmed_window(self, debouncer, timers, sink):
        debouncer.process(NO_FACE)
        stale = timers.pending()[0]
        debouncer.process(FOCUSED)
        timers.advance(3)
        debouncer.process(NO_FACE)
        stale.callback()
        assert sink.violations == []
        timers.advance(10)
        assert sink.categories() == [ViolationCategory.NO_FACE]

    def test_inactive_session_drops_violation_quietly(self, timers, policy):
        def rejecting_sink(session_id, violation):
            raise SessionNotActive("Can only log events for active sessions", session_id=session_id)

        debouncer = SignalDebouncer("sess-2", rejecting_sink, timers, policy)
        assert [v.category for v in debouncer.process(TWO_FACES)] == [ViolationCategory.MULTIPLE_FACES]
        debouncer.process(NO_FACE)
        timers.advance(10)
        assert debouncer.pending_categories() == []
