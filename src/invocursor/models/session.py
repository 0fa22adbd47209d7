"""Per-identity conversation session models."""

from datetime import datetime, timedelta
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from invocursor.models.enums import ExecutionMode


HISTORY_LIMIT = 20
HISTORY_SENT_PER_REQUEST = 6
HISTORY_IN_PROMPT = 4
ANALYTICS_AUTH_TIMEOUT = timedelta(minutes=5)


class HistoryTurn(BaseModel):
    """One side of a conversation turn."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant"] = Field(...)
    content: str = Field(...)


class PendingAnalyticsAuth(BaseModel):
    """Marks that the next message is expected to be the analytics password."""

    since: datetime = Field(
        ..., description="When the analytics export was requested."
    )

    def is_expired(self, now: datetime) -> bool:
        return now - self.since >= ANALYTICS_AUTH_TIMEOUT


class Session(BaseModel):
    """Conversation state for one caller identity.

    Attributes:
        history: Rolling window of the most recent turns.
        mode: Active execution cadence.
        pending_analytics_auth: Present while a password reply is awaited.
    """

    model_config = ConfigDict(validate_assignment=True)

    history: list[HistoryTurn] = Field(default_factory=list)
    mode: ExecutionMode = Field(default=ExecutionMode.FAST)
    pending_analytics_auth: Optional[PendingAnalyticsAuth] = Field(
        default=None
    )

    def append(self, role: str, content: str) -> None:
        """Appends a turn, keeping only the last ``HISTORY_LIMIT`` turns."""
        turns = [*self.history, HistoryTurn(role=role, content=content)]
        self.history = turns[-HISTORY_LIMIT:]

    def recent(self, n: int = HISTORY_SENT_PER_REQUEST) -> list[HistoryTurn]:
        return list(self.history[-n:]) if n > 0 else []
