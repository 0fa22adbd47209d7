"""Abstract repository for API keys, usage counters and request logs.

The rest of the system treats persistence as a small key-value store with
read, write and append operations. Implementations must be safe to call
from concurrent request handlers.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from invocursor.models.account import ApiKeyRecord, RequestLogEntry


class Repository(ABC):
    """Interface for Invocursor persistence backends."""

    @abstractmethod
    def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        """Retrieves an API key record.

        Args:
            key: The full API key.

        Returns:
            The record, or None if the key was never issued.
        """
        pass  # pragma: no cover

    @abstractmethod
    def save_api_key(self, record: ApiKeyRecord):
        """Creates or replaces an API key record."""
        pass  # pragma: no cover

    @abstractmethod
    def list_api_keys(self) -> list[ApiKeyRecord]:
        """Lists every issued key."""
        pass  # pragma: no cover

    @abstractmethod
    def get_weekly_usage(self, key: str) -> Optional[tuple[date, int]]:
        """Retrieves the usage counter of a key.

        Returns:
            ``(week_start, count)`` or None if the key was never counted.
        """
        pass  # pragma: no cover

    @abstractmethod
    def save_weekly_usage(self, key: str, week_start: date, count: int):
        """Stores the usage counter of a key."""
        pass  # pragma: no cover

    @abstractmethod
    def append_request_log(self, entry: RequestLogEntry):
        """Appends one request log entry."""
        pass  # pragma: no cover

    @abstractmethod
    def list_request_logs(
        self, key: Optional[str] = None, since: Optional[datetime] = None
    ) -> list[RequestLogEntry]:
        """Lists request logs oldest first.

        Args:
            key: Only entries of this API key.
            since: Only entries at or after this timestamp.
        """
        pass  # pragma: no cover

    @abstractmethod
    def check_health(self) -> bool:
        """Whether the backing store is reachable."""
        pass  # pragma: no cover
