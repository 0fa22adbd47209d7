"""API key authentication and weekly rate limiting for the HTTP API.

Keys arrive in the ``X-API-Key`` header or the ``apiKey`` query parameter.
A request without a key is treated as the ``local`` development key.
"""

import hmac
from typing import Optional

from fastapi import HTTPException, Request, Response, status

from invocursor.execution.limits import RateDecision, WeeklyRateLimiter
from invocursor.models.account import TIERS, ApiKeyRecord
from invocursor.observability.logging import get_logger
from invocursor.persistence.repository import Repository
from invocursor.utils import generate_api_key, hash_password


logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "apiKey"
ADMIN_SECRET_HEADER = "X-Admin-Secret"
DEV_KEYS = ("local", "dev")


class AuthManager:
    """Validates API keys, counts requests and guards admin routes."""

    def __init__(
        self,
        repository: Repository,
        limiter: Optional[WeeklyRateLimiter] = None,
        admin_secret: Optional[str] = None,
    ):
        """Initializes the manager.

        Args:
            repository: Store of issued keys.
            limiter: Weekly limiter; defaults to one over ``repository``.
            admin_secret: Secret for admin routes. Admin routes reject every
                request when this is unset.
        """
        self.repository = repository
        self.limiter = limiter or WeeklyRateLimiter(repository)
        self.admin_secret = admin_secret

    # -------------------- keys --------------------

    def resolve(self, key: Optional[str]) -> Optional[ApiKeyRecord]:
        """Returns the record for ``key``, or None if it was never issued."""
        key = key or "local"
        record = self.repository.get_api_key(key)
        if record is not None:
            return record
        if key in DEV_KEYS:
            return ApiKeyRecord(
                key=key, name="Local Dev", tier="growth", configs=["*"]
            )
        return None

    def create_key(
        self,
        name: str,
        tier: str,
        configs: list[str],
        analytics_password: Optional[str] = None,
    ) -> ApiKeyRecord:
        """Issues a new key.

        Raises:
            ValueError: If ``tier`` is unknown.
        """
        if tier not in TIERS:
            raise ValueError(
                f"Invalid tier. Must be one of: {', '.join(TIERS)}"
            )
        record = ApiKeyRecord(
            key=generate_api_key(),
            name=name or "New Account",
            tier=tier,
            configs=list(configs),
            analytics_password_hash=(
                hash_password(analytics_password) if analytics_password else None
            ),
        )
        self.repository.save_api_key(record)
        logger.info(
            "API key created",
            extra={"api_key": record.masked_key, "tier": tier},
        )
        return record

    def find_key(self, prefix: str) -> Optional[ApiKeyRecord]:
        """Finds a key by its full value or an unambiguous prefix.

        A masked key (``inv_abc123...``) is accepted as a prefix.
        """
        if not prefix:
            return None
        if prefix in DEV_KEYS:
            return self.resolve(prefix)
        exact = self.repository.get_api_key(prefix)
        if exact is not None:
            return exact
        prefix = prefix.rstrip(".")
        matches = [
            r for r in self.repository.list_api_keys() if r.key.startswith(prefix)
        ]
        return matches[0] if len(matches) == 1 else None

    def set_analytics_password(self, record: ApiKeyRecord, password: str) -> None:
        record.analytics_password_hash = hash_password(password)
        self.repository.save_api_key(record)
        logger.info(
            "Analytics password set", extra={"api_key": record.masked_key}
        )

    def check_admin(self, secret: Optional[str]) -> bool:
        if not self.admin_secret or not secret:
            return False
        return hmac.compare_digest(secret, self.admin_secret)

    # -------------------- FastAPI dependencies --------------------

    def authenticate(self, request: Request) -> ApiKeyRecord:
        """Dependency: resolves the caller's key or raises 401."""
        key = request.headers.get(API_KEY_HEADER) or request.query_params.get(
            API_KEY_QUERY
        )
        record = self.resolve(key)
        if record is None:
            logger.info("Rejected unknown API key")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Invalid API key"},
            )
        return record

    def rate_limit(self, record: ApiKeyRecord, response: Response) -> RateDecision:
        """Counts one request for ``record`` or raises 429.

        Sets the ``X-RateLimit-*`` headers on ``response``.
        """
        decision = self.limiter.check(record.key, record.tier)
        headers = {
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Limit": str(decision.weekly_limit),
            "X-RateLimit-Tier": decision.tier,
        }
        if not decision.allowed:
            logger.info(
                "Weekly rate limit exceeded",
                extra={"api_key": record.masked_key, "tier": decision.tier},
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Weekly rate limit exceeded",
                    "tier": decision.tier,
                    "weeklyLimit": decision.weekly_limit,
                    "resetAt": decision.reset_at,
                    "upgradeInfo": "Contact us to upgrade your tier for more requests",
                },
                headers=headers,
            )
        response.headers.update(headers)
        return decision

    def require_admin(self, secret: Optional[str]) -> None:
        """Raises 401 unless ``secret`` matches the admin secret."""
        if not self.check_admin(secret):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Invalid admin secret"},
            )
