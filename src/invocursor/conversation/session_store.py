"""Per-identity session store.

Each caller identity (an API key on the server, one browser tab in the
widget) owns exactly one ``Session``. Access goes through ``locked()`` so
that two requests of the same identity never interleave.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from invocursor.models.session import Session


class SessionStore:
    """Thread-safe in-memory map of identity to Session."""

    def __init__(self):
        self._guard = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, identity: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = self._locks[identity] = threading.Lock()
            return lock

    @contextmanager
    def locked(self, identity: str) -> Iterator[Session]:
        """Yields the identity's session while holding its lock."""
        with self._lock_for(identity):
            with self._guard:
                session = self._sessions.setdefault(identity, Session())
            yield session

    def get(self, identity: str) -> Session:
        with self._guard:
            return self._sessions.setdefault(identity, Session())

    def drop(self, identity: str) -> None:
        """Forgets an identity, e.g. when its key is revoked."""
        with self._guard:
            self._sessions.pop(identity, None)
            self._locks.pop(identity, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)
