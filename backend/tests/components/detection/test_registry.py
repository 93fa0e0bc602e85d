"""Detection registry wired to the real lifecycle and event log."""
import pytest
from proctor.components.detection.signals import SignalSample
from proctor.components.errors import SessionNotFound
from proctor.models.violation_event import EventSource
from tests.conftest import create_active_session, create_session

NO_FACE = SignalSample(face_count=0, confidence=0.0)
TWO_FACES = SignalSample(face_count=2, confidence=0.85)


class TestIngest:
    def test_immediate_violation_is_logged(self, services):
        session_id = create_active_session(services)
        assert services.detection.ingest(session_id, TWO_FACES) is True
        events = services.events.list_by_session(session_id)
        assert [e["category"] for e in events] == ["multiple_faces"]
        assert events[0]["source"] == EventSource.LIVE_SIGNAL.value
        assert events[0]["confidence"] == 0.85

    def test_sustained_violation_logged_when_timer_fires(self, services, scheduler, clock):
        session_id = create_active_session(services)
        started = clock()
        services.detection.ingest(session_id, NO_FACE)
        scheduler.advance(10)
        events = services.events.list_by_session(session_id)
        assert [e["category"] for e in events] == ["no_face"]
        assert events[0]["sustained_seconds"] == 10.0
        assert (events[0]["timestamp"] - started).total_seconds() == 10

    def test_pending_session_drops_sample(self, services, scheduler):
        session_id = create_session(services)
        assert services.detection.ingest(session_id, NO_FACE) is False
        assert scheduler.pending() == []
        assert services.detection.active_sessions() == []

    def test_unknown_session(self, services):
        with pytest.raises(SessionNotFound):
            services.detection.ingest("missing", NO_FACE)

    def test_one_debouncer_per_session(self, services):
        first = create_active_session(services, email="a@example.com")
        second = create_active_session(services, email="b@example.com")
        services.detection.ingest(first, NO_FACE)
        services.detection.ingest(second, NO_FACE)
        assert sorted(services.detection.active_sessions()) == sorted([first, second])
        assert services.detection.debouncer_for(first) is not services.detection.debouncer_for(second)


class TestSessionClose:
    def test_complete_cancels_pending_timers(self, services, scheduler):
        session_id = create_active_session(services)
        services.detection.ingest(session_id, NO_FACE)
        services.lifecycle.complete(session_id)
        scheduler.advance(30)
        assert services.events.list_by_session(session_id) == []
        assert services.detection.debouncer_for(session_id) is None

    def test_samples_after_complete_dropped(self, services):
        session_id = create_active_session(services)
        services.lifecycle.complete(session_id)
        assert services.detection.ingest(session_id, TWO_FACES) is False
        assert services.events.list_by_session(session_id) == []

    def test_timer_racing_expiry_appends_nothing(self, services, scheduler, clock):
        session_id = create_active_session(services)
        services.detection.ingest(session_id, NO_FACE)
        # Deadline passes without anyone reading the session; the timer still fires.
        clock.advance(2 * 60 * 60)
        scheduler.advance(10)
        assert services.events.list_by_session(session_id) == []
        assert services.lifecycle.status_of(session_id).value == "expired"

    def test_shutdown_releases_everything(self, services, scheduler):
        session_id = create_active_session(services)
        services.detection.ingest(session_id, NO_FACE)
        services.detection.shutdown()
        assert services.detection.active_sessions() == []
        assert scheduler.pending() == []
