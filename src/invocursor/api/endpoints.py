"""HTTP API for Invocursor.

This module defines the FastAPI routes used by the widget (planning, chat,
configs, usage stats) and the admin routes that issue API keys.
"""

import time
from datetime import datetime, time as dt_time, timezone
from typing import Any, Optional

from fastapi import APIRouter, Header, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from invocursor.auth.manager import ADMIN_SECRET_HEADER, AuthManager
from invocursor.chat.adapter import PlannerAdapter
from invocursor.conversation.router import ConversationRouter
from invocursor.conversation.session_store import SessionStore
from invocursor.errors import (
    ConfigInvalidError,
    ConfigNotFoundError,
    ParseError,
    PlannerError,
)
from invocursor.execution.limits import RateDecision, week_start
from invocursor.models.account import TIERS, ApiKeyRecord, RequestLogEntry
from invocursor.models.api import (
    ChatRequest,
    CreateKeyRequest,
    PlanRequest,
    PlanResponse,
    SetPasswordRequest,
)
from invocursor.models.plan import plan_to_wire
from invocursor.observability.logging import get_logger
from invocursor.persistence.repository import Repository
from invocursor.registry.config_loader import ConfigLoader


logger = get_logger(__name__)

NO_CONFIG_ACCESS = "No access to this config"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class ApiEndpoints:
    """Handlers for the HTTP API, exposed through ``self.router``."""

    def __init__(
        self,
        conversation: ConversationRouter,
        auth: AuthManager,
        repository: Repository,
        config_loader: ConfigLoader,
        planner: PlannerAdapter,
        session_store: Optional[SessionStore] = None,
    ):
        self.conversation = conversation
        self.auth = auth
        self.repository = repository
        self.config_loader = config_loader
        self.planner = planner
        self.session_store = session_store or SessionStore()

        self.router = APIRouter()
        r = self.router
        r.add_api_route("/api/health", self.health, methods=["GET"])
        r.add_api_route("/api/plan", self.plan, methods=["POST"])
        r.add_api_route("/api/chat", self.chat, methods=["POST"])
        r.add_api_route("/api/config/{name}", self.get_config, methods=["GET"])
        r.add_api_route("/api/configs", self.list_configs, methods=["GET"])
        r.add_api_route("/api/stats", self.stats, methods=["GET"])
        r.add_api_route("/admin/keys", self.create_key, methods=["POST"])
        r.add_api_route("/admin/keys", self.list_keys, methods=["GET"])
        r.add_api_route(
            "/admin/keys/{prefix}/analytics-password",
            self.set_analytics_password,
            methods=["POST"],
        )

    def _caller(
        self, request: Request, response: Response
    ) -> tuple[ApiKeyRecord, RateDecision]:
        record = self.auth.authenticate(request)
        return record, self.auth.rate_limit(record, response)

    def _forbidden(self, response: Response) -> JSONResponse:
        headers = {
            k: v
            for k, v in response.headers.items()
            if k.lower().startswith("x-ratelimit")
        }
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": NO_CONFIG_ACCESS},
            headers=headers,
        )

    def _log_request(
        self,
        caller: ApiKeyRecord,
        config: str,
        goal: str,
        success: bool,
        started: float,
    ) -> None:
        entry = RequestLogEntry(
            api_key=caller.key,
            config=config,
            goal=goal,
            success=success,
            response_time_ms=_elapsed_ms(started),
        )
        try:
            self.repository.append_request_log(entry)
        except Exception:
            logger.exception(
                "Request log write failed", extra={"api_key": caller.masked_key}
            )

    # -------------------- widget routes --------------------

    def health(self) -> JSONResponse:
        """Reports liveness, the planner model and database reachability."""
        db_healthy = self.repository.check_health()
        return JSONResponse(
            status_code=status.HTTP_200_OK
            if db_healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ok" if db_healthy else "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "model": self.planner.model_name,
                "apiKeySet": self.planner.is_configured,
                "database": db_healthy,
            },
        )

    def plan(self, body: PlanRequest, request: Request, response: Response) -> Any:
        """Turns a goal into a plain step plan.

        Returns ``{"plan": [...]}`` or ``{"error": "..."}``; a config the key
        may not use is rejected with 403.
        """
        started = time.monotonic()
        caller, _ = self._caller(request, response)
        logger.info(
            "Plan request",
            extra={
                "api_key": caller.masked_key,
                "config": body.config_name,
                "current_page": body.current_page,
            },
        )

        if not caller.allows_config(body.config_name):
            self._log_request(caller, body.config_name, body.goal, False, started)
            return self._forbidden(response)

        try:
            steps = self.conversation.plan(body)
        except (ConfigNotFoundError, ConfigInvalidError) as e:
            self._log_request(caller, body.config_name, body.goal, False, started)
            return PlanResponse(error=str(e)).model_dump(exclude_none=True)
        except (PlannerError, ParseError, ValidationError) as e:
            logger.warning(
                "Plan request failed",
                extra={"config": body.config_name, "error": str(e)},
            )
            self._log_request(caller, body.config_name, body.goal, False, started)
            return PlanResponse(error=str(e)).model_dump(exclude_none=True)

        self._log_request(caller, body.config_name, body.goal, True, started)
        return PlanResponse(plan=plan_to_wire(steps)).model_dump(exclude_none=True)

    def chat(self, body: ChatRequest, request: Request, response: Response) -> Any:
        """Handles one conversational message and returns a tagged response."""
        started = time.monotonic()
        caller, _ = self._caller(request, response)
        logger.info(
            "Chat request",
            extra={
                "api_key": caller.masked_key,
                "config": body.config_name,
                "mode": body.mode.value,
            },
        )

        if not caller.allows_config(body.config_name):
            # a pending password prompt means the message may be a password
            session = self.session_store.get(caller.key)
            goal = "" if session.pending_analytics_auth else body.message
            self._log_request(caller, body.config_name, goal, False, started)
            return self._forbidden(response)

        with self.session_store.locked(caller.key) as session:
            result = self.conversation.handle(caller, body, session)

        if result.log_goal is not None:
            self._log_request(
                caller, body.config_name, result.log_goal, result.success, started
            )
        return result.response.to_wire()

    def get_config(self, name: str) -> Any:
        try:
            raw = self.config_loader.load_raw(name)
        except ConfigInvalidError as e:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": str(e)},
            )
        if raw is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Config not found"},
            )
        return raw

    def list_configs(self) -> dict[str, list[str]]:
        return {"configs": self.config_loader.list_names()}

    def stats(self, request: Request, response: Response) -> dict[str, Any]:
        """Usage summary for the calling key."""
        caller, decision = self._caller(request, response)
        logs = self.repository.list_request_logs(key=caller.key)

        monday = week_start(datetime.now(timezone.utc).date())
        since = datetime.combine(monday, dt_time.min, tzinfo=timezone.utc)
        week_logs = [e for e in logs if e.timestamp >= since]
        success_rate = (
            round(sum(1 for e in logs if e.success) / len(logs) * 100)
            if logs
            else 0
        )
        return {
            "totalRequests": len(logs),
            "weekRequests": len(week_logs),
            "successRate": success_rate,
            "tier": decision.tier,
            "weeklyLimit": decision.weekly_limit,
            "rateRemaining": decision.remaining,
        }

    # -------------------- admin routes --------------------

    def create_key(self, body: CreateKeyRequest) -> Any:
        self.auth.require_admin(body.admin_secret)
        try:
            record = self.auth.create_key(
                name=body.name,
                tier=body.tier,
                configs=body.configs,
                analytics_password=body.analytics_password,
            )
        except ValueError as e:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": str(e)},
            )

        policy = TIERS[record.tier]
        return {
            "apiKey": record.key,
            "tier": record.tier,
            "weeklyLimit": policy.weekly_limit,
            "message": (
                f"API key created successfully with {policy.name} tier "
                f"({policy.weekly_limit} requests/week)"
            ),
        }

    def list_keys(
        self,
        x_admin_secret: Optional[str] = Header(default=None, alias=ADMIN_SECRET_HEADER),
    ) -> dict[str, Any]:
        self.auth.require_admin(x_admin_secret)
        keys = {}
        for record in self.repository.list_api_keys():
            policy = TIERS.get(record.tier, TIERS["starter"])
            keys[record.masked_key] = {
                "name": record.name,
                "tier": record.tier,
                "weeklyLimit": policy.weekly_limit,
                "configs": record.configs,
                "created": record.created.isoformat(),
                "analyticsPassword": record.analytics_password_hash is not None,
            }
        tiers = {
            name: {
                "name": p.name,
                "weeklyLimit": p.weekly_limit,
                "description": p.description,
                "analyticsExport": p.analytics_export,
            }
            for name, p in TIERS.items()
        }
        return {"keys": keys, "tiers": tiers}

    def set_analytics_password(
        self,
        prefix: str,
        body: SetPasswordRequest,
        x_admin_secret: Optional[str] = Header(default=None, alias=ADMIN_SECRET_HEADER),
    ) -> Any:
        self.auth.require_admin(body.admin_secret or x_admin_secret)
        record = self.auth.find_key(prefix)
        if record is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "API key not found"},
            )
        self.auth.set_analytics_password(record, body.password)
        self.session_store.drop(record.key)
        return {"message": f"Analytics password set for {record.masked_key}"}
