"""Per-session re-entrant locks shared by the lifecycle and the event log.

Entries are reference counted: a lock exists only while some thread holds or
waits on it, so the table is bounded by concurrent work, not by how many
session ids have ever been seen.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class SessionLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _acquire_entry(self, session_id: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(session_id)
            if entry is None:
                entry = _Entry()
                self._entries[session_id] = entry
            entry.holders += 1
            return entry

    def _release_entry(self, session_id: str, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[session_id]

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        entry = self._acquire_entry(session_id)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(session_id, entry)
