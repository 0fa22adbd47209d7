"""Data models for API keys, tiers and request logs."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TierPolicy(BaseModel):
    """Request volume and feature access granted by an account tier."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    weekly_limit: int = Field(..., ge=0)
    description: str
    analytics_export: bool = Field(
        default=False,
        description="Whether the tier may export analytics workbooks.",
    )


TIERS: dict[str, TierPolicy] = {
    "free": TierPolicy(
        name="Free",
        weekly_limit=50,
        description="Free tier - 50 requests/week",
    ),
    "starter": TierPolicy(
        name="Starter",
        weekly_limit=1500,
        description="Starter tier - 1,500 requests/week",
    ),
    "growth": TierPolicy(
        name="Growth",
        weekly_limit=6500,
        description="Growth tier - 6,500 requests/week",
        analytics_export=True,
    ),
}

DEFAULT_TIER = "starter"


def tier_policy(tier: Optional[str]) -> TierPolicy:
    """Returns the policy for a tier, falling back to the default tier."""
    return TIERS.get(tier or DEFAULT_TIER, TIERS[DEFAULT_TIER])


def tiers_with_export() -> list[str]:
    return [key for key, policy in TIERS.items() if policy.analytics_export]


class ApiKeyRecord(BaseModel):
    """An issued API key and what it grants.

    Attributes:
        key: The full key (``inv_`` + 24 characters).
        name: Account display name.
        tier: Tier key in ``TIERS``.
        configs: Config names this key may use; ``["*"]`` allows all.
        analytics_password_hash: Hash of the analytics export password.
    """

    model_config = ConfigDict(extra="forbid")

    key: str
    name: str = "New Account"
    tier: str = DEFAULT_TIER
    configs: list[str] = Field(default_factory=list)
    created: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    analytics_password_hash: Optional[str] = None

    def allows_config(self, config_name: str) -> bool:
        if "*" in self.configs:
            return True
        return config_name in self.configs

    @property
    def masked_key(self) -> str:
        return mask_key(self.key)


def mask_key(key: Optional[str]) -> str:
    """Masks an API key for logs and listings."""
    if not key:
        return "none"
    return key[:10] + "..."


class RequestLogEntry(BaseModel):
    """One logged planning or chat request."""

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    api_key: str = Field(..., description="Full API key of the caller.")
    config: str
    goal: str
    success: bool
    response_time_ms: int = Field(default=0, ge=0)
