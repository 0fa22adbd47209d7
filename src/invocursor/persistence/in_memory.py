"""In-memory implementation of the Repository.

This module provides a thread-safe, ephemeral repository suitable for
testing and local development.
"""

import threading
from datetime import date, datetime
from typing import Optional

from invocursor.models.account import ApiKeyRecord, RequestLogEntry
from invocursor.persistence.repository import Repository


MAX_LOGS_PER_KEY = 1000


class InMemoryRepository(Repository):
    """In-memory implementation of the Repository.

    Request logs are capped at ``MAX_LOGS_PER_KEY`` entries per key, the
    oldest entries being dropped first.
    """

    def __init__(self):
        """Initializes the empty in-memory stores."""
        self._lock = threading.Lock()
        self._keys: dict[str, ApiKeyRecord] = {}
        self._usage: dict[str, tuple[date, int]] = {}
        self._logs: dict[str, list[RequestLogEntry]] = {}

    def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        with self._lock:
            record = self._keys.get(key)
            return record.model_copy() if record else None

    def save_api_key(self, record: ApiKeyRecord):
        with self._lock:
            self._keys[record.key] = record.model_copy()

    def list_api_keys(self) -> list[ApiKeyRecord]:
        with self._lock:
            return [r.model_copy() for r in self._keys.values()]

    def get_weekly_usage(self, key: str) -> Optional[tuple[date, int]]:
        with self._lock:
            return self._usage.get(key)

    def save_weekly_usage(self, key: str, week_start: date, count: int):
        with self._lock:
            self._usage[key] = (week_start, count)

    def append_request_log(self, entry: RequestLogEntry):
        with self._lock:
            logs = self._logs.setdefault(entry.api_key, [])
            logs.append(entry)
            if len(logs) > MAX_LOGS_PER_KEY:
                del logs[: len(logs) - MAX_LOGS_PER_KEY]

    def list_request_logs(
        self, key: Optional[str] = None, since: Optional[datetime] = None
    ) -> list[RequestLogEntry]:
        with self._lock:
            if key is not None:
                entries = list(self._logs.get(key, []))
            else:
                entries = [e for logs in self._logs.values() for e in logs]
        if since is not None:
            entries = [e for e in entries if e.timestamp >= since]
        return sorted(entries, key=lambda e: e.timestamp)

    def check_health(self) -> bool:
        return True
