"""Weekly per-key request limits.

Counters reset on the Monday of the current UTC week. The counter of a key is
kept in the repository so every worker process sees the same usage.
"""

import threading
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict

from invocursor.models.account import DEFAULT_TIER, TIERS, tier_policy
from invocursor.persistence.repository import Repository


def week_start(today: date) -> date:
    """Returns the Monday of the week containing ``today``."""
    return today - timedelta(days=today.weekday())


class RateDecision(BaseModel):
    """Outcome of a rate-limit check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining: int
    tier: str
    weekly_limit: int
    reset_at: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WeeklyRateLimiter:
    """Counts requests per key and rejects them past the tier's weekly limit."""

    def __init__(self, repository: Repository, clock=_utcnow):
        self.repository = repository
        self._clock = clock
        self._lock = threading.Lock()

    def check(self, key: str, tier: Optional[str]) -> RateDecision:
        """Counts one request for ``key`` if it is within the weekly limit.

        Args:
            key: The API key making the request.
            tier: The tier of the key; unknown tiers use the default tier.

        Returns:
            The decision. A rejected request is not counted.
        """
        policy = tier_policy(tier)
        tier_key = tier if tier in TIERS else DEFAULT_TIER
        current_week = week_start(self._clock().date())

        with self._lock:
            usage = self.repository.get_weekly_usage(key)
            count = usage[1] if usage and usage[0] == current_week else 0

            if count >= policy.weekly_limit:
                return RateDecision(
                    allowed=False,
                    remaining=0,
                    tier=tier_key,
                    weekly_limit=policy.weekly_limit,
                    reset_at="next Monday",
                )

            count += 1
            self.repository.save_weekly_usage(key, current_week, count)

        return RateDecision(
            allowed=True,
            remaining=policy.weekly_limit - count,
            tier=tier_key,
            weekly_limit=policy.weekly_limit,
        )
