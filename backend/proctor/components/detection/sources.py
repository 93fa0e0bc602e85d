"""Signal sources: anything that yields ``SignalSample``s for one session.

The debouncer does not care whether samples come from a real inference backend
or from the simulator; picking one is the caller's decision.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable, Iterable, Iterator, Optional, Protocol

from .registry import DetectionRegistry
from .signals import SignalSample

logger = logging.getLogger(__name__)


class SignalSource(Protocol):
    def samples(self) -> Iterator[SignalSample]: ...


class ReplaySignalSource:
    """Replays a fixed sequence of samples, e.g. a recorded inference log."""

    def __init__(self, samples: Iterable[SignalSample]):
        self._samples = list(samples)

    def samples(self) -> Iterator[SignalSample]:
        return iter(self._samples)


class SimulatedSignalSource:
    """Synthetic face-detection feed used when no inference backend is available.

    Mostly produces a single well-focused face; occasionally emits a looking-away,
    no-face or multiple-faces reading, never more often than ``anomaly_spacing_seconds``.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        normal_probability: float = 0.85,
        anomaly_spacing_seconds: float = 30.0,
        limit: Optional[int] = None,
    ):
        self._rng = rng or random.Random()
        self._clock = clock
        self._normal_probability = normal_probability
        self._anomaly_spacing = anomaly_spacing_seconds
        self._limit = limit
        self._last_anomaly_at: Optional[float] = None

    def _next(self) -> SignalSample:
        rng = self._rng
        now = self._clock()
        recently_anomalous = (
            self._last_anomaly_at is not None and now - self._last_anomaly_at < self._anomaly_spacing
        )
        if recently_anomalous or rng.random() < self._normal_probability:
            return SignalSample(face_count=1, confidence=0.8 + rng.random() * 0.2)

        self._last_anomaly_at = now
        roll = rng.random()
        if roll < 0.33:
            return SignalSample(face_count=1, confidence=0.1 + rng.random() * 0.2)
        if roll < 0.66:
            return SignalSample(face_count=0, confidence=0.0)
        return SignalSample(face_count=2 + rng.randint(0, 1), confidence=0.7 + rng.random() * 0.2)

    def samples(self) -> Iterator[SignalSample]:
        produced = 0
        while self._limit is None or produced < self._limit:
            yield self._next()
            produced += 1


class SignalPump:
    """Drives one source into the registry on a background thread."""

    def __init__(
        self,
        source: SignalSource,
        registry: DetectionRegistry,
        session_id: str,
        interval_seconds: float = 1.5,
    ):
        self._source = source
        self._registry = registry
        self._session_id = session_id
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.samples_sent = 0

    def run(self) -> None:
        """Pump until the source is exhausted, the session stops being active, or stop() is called."""
        for sample in self._source.samples():
            if self._stop.is_set():
                break
            if not self._registry.ingest(self._session_id, sample):
                logger.info("Signal pump stopping; session inactive session_id=%s", self._session_id)
                break
            self.samples_sent += 1
            if self._interval > 0 and self._stop.wait(self._interval):
                break

    def _run_guarded(self) -> None:
        try:
            self.run()
        except Exception:
            logger.exception("Signal pump failed session_id=%s", self._session_id)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run_guarded, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
