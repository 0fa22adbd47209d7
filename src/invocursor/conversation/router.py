"""Conversation router.

Every inbound chat message is classified, in order, as a reply to a
pending analytics password prompt, an analytics-export trigger, or a
normal goal for the planner. Planner and parser failures never leave the
router as exceptions: they become ``error`` responses.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from invocursor.chat.adapter import PlannerAdapter
from invocursor.chat.parser import extract_plan, parse_conversation_response
from invocursor.chat.prompts import (
    build_smart_system_prompt,
    build_smart_user_message,
    build_system_prompt,
    build_user_message,
)
from invocursor.conversation.analytics import is_analytics_request, is_cancel
from invocursor.errors import (
    ConfigInvalidError,
    ConfigNotFoundError,
    ParseError,
    PlannerError,
)
from invocursor.models.account import (
    TIERS,
    ApiKeyRecord,
    tier_policy,
    tiers_with_export,
)
from invocursor.models.api import ChatRequest, PlanRequest
from invocursor.models.plan import Step
from invocursor.models.response import (
    AnalyticsDownloadResponse,
    ConversationResponse,
    ErrorResponse,
    ExplanationResponse,
    QuestionResponse,
)
from invocursor.models.session import PendingAnalyticsAuth, Session
from invocursor.observability.export import AnalyticsExporter
from invocursor.observability.logging import get_logger
from invocursor.registry.config_loader import ConfigLoader
from invocursor.utils import verify_password


logger = get_logger(__name__)

APOLOGY = "Sorry, I had trouble understanding that. Could you try rephrasing?"
PASSWORD_PROMPT = (
    "To export your analytics, please enter your analytics password. "
    "Type 'cancel' to stop."
)
WRONG_PASSWORD = (
    "That password is not correct. Please try again, or type 'cancel' to stop."
)
EXPORT_CANCELLED = "Analytics export cancelled. What would you like to do next?"
EXPORT_UNAVAILABLE = (
    "Analytics export is temporarily unavailable. Please try again later."
)
EXPORT_FAILED = "Sorry, I couldn't generate your analytics report."
NO_PASSWORD = (
    "No analytics password is set for this account. "
    "Ask your administrator to set one, then try again."
)


class RouteResult(BaseModel):
    """What the router decided for one message.

    Attributes:
        response: The response to send back.
        success: Whether the request should be logged as successful.
        log_goal: Text to record in the request log; None for messages
            that must not be recorded (password replies).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: ConversationResponse
    success: bool = True
    log_goal: Optional[str] = Field(default=None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationRouter:
    """Dispatches chat messages and plain planning requests."""

    def __init__(
        self,
        planner: PlannerAdapter,
        config_loader: ConfigLoader,
        exporter: Optional[AnalyticsExporter] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initializes the router.

        Args:
            planner: Language model adapter used for goals.
            config_loader: Source of page/element configurations.
            exporter: Analytics export backend; None means unavailable.
            clock: Returns the current aware UTC time.
        """
        self.planner = planner
        self.config_loader = config_loader
        self.exporter = exporter
        self._clock = clock

    # -------------------- chat --------------------

    def handle(
        self, caller: ApiKeyRecord, request: ChatRequest, session: Session
    ) -> RouteResult:
        """Routes one chat message for ``caller``.

        The caller's ``session`` is mutated in place; the caller of this
        method must hold the session's lock.
        """
        session.mode = request.mode
        message = request.message
        now = self._clock()

        pending = session.pending_analytics_auth
        if pending is not None and pending.is_expired(now):
            session.pending_analytics_auth = None
            pending = None

        if pending is not None:
            return self._handle_password_reply(caller, message, session)

        if is_analytics_request(message):
            return RouteResult(
                response=self._start_analytics_export(caller, session, now),
                log_goal=message,
            )

        return self._handle_goal(request, session)

    def _handle_password_reply(
        self, caller: ApiKeyRecord, message: str, session: Session
    ) -> RouteResult:
        password_hash = caller.analytics_password_hash
        if password_hash and verify_password(message.strip(), password_hash):
            session.pending_analytics_auth = None
            return self._export(caller)

        if is_cancel(message):
            session.pending_analytics_auth = None
            return RouteResult(
                response=ExplanationResponse(message=EXPORT_CANCELLED),
                log_goal=message,
            )

        logger.info(
            "Analytics password rejected",
            extra={"api_key": caller.masked_key},
        )
        return RouteResult(
            response=QuestionResponse(message=WRONG_PASSWORD),
            success=False,
        )

    def _start_analytics_export(
        self, caller: ApiKeyRecord, session: Session, now: datetime
    ) -> ConversationResponse:
        if not tier_policy(caller.tier).analytics_export:
            required = " or ".join(TIERS[t].name for t in tiers_with_export())
            return ExplanationResponse(
                message=(
                    f"Analytics export is available on the {required} tier. "
                    f"Your account is on the {caller.tier} tier; "
                    "upgrade to download your analytics."
                )
            )

        if self.exporter is None or not self.exporter.is_available():
            return ErrorResponse(message=EXPORT_UNAVAILABLE)

        if not caller.analytics_password_hash:
            return ExplanationResponse(message=NO_PASSWORD)

        session.pending_analytics_auth = PendingAnalyticsAuth(since=now)
        return QuestionResponse(message=PASSWORD_PROMPT)

    def _export(self, caller: ApiKeyRecord) -> RouteResult:
        if self.exporter is None or not self.exporter.is_available():
            return RouteResult(
                response=ErrorResponse(message=EXPORT_UNAVAILABLE),
                success=False,
            )
        try:
            data = self.exporter.export(caller.key)
        except Exception:
            logger.exception(
                "Analytics export failed",
                extra={"failure_kind": "export", "api_key": caller.masked_key},
            )
            return RouteResult(
                response=ErrorResponse(message=EXPORT_FAILED), success=False
            )

        return RouteResult(
            response=AnalyticsDownloadResponse(
                message="Here is your analytics report.",
                download_data=data,
            )
        )

    def _handle_goal(self, request: ChatRequest, session: Session) -> RouteResult:
        try:
            config = self.config_loader.load(request.config_name)
        except (ConfigNotFoundError, ConfigInvalidError) as e:
            return RouteResult(
                response=ErrorResponse(message=str(e)),
                success=False,
                log_goal=request.message,
            )

        history = request.history or session.history
        system_prompt = build_smart_system_prompt(config, request.mode)
        user_prompt = build_smart_user_message(
            request.message,
            request.current_page,
            request.current_state,
            history,
        )

        try:
            raw = self.planner.complete(system_prompt, user_prompt, json_mode=True)
            response = parse_conversation_response(raw)
        except PlannerError:
            logger.exception(
                "Planner call failed",
                extra={"failure_kind": "transport", "config": request.config_name},
            )
            return self._apology(request, session)
        except ParseError:
            logger.exception(
                "Planner output could not be parsed",
                extra={"failure_kind": "parse", "config": request.config_name},
            )
            return self._apology(request, session)

        if isinstance(response, AnalyticsDownloadResponse):
            # only the password flow may produce downloads
            logger.warning(
                "Planner produced a download response",
                extra={"failure_kind": "parse", "config": request.config_name},
            )
            return self._apology(request, session)

        session.append("user", request.message)
        session.append("assistant", response.message)
        return RouteResult(response=response, log_goal=request.message)

    def _apology(self, request: ChatRequest, session: Session) -> RouteResult:
        session.append("user", request.message)
        session.append("assistant", APOLOGY)
        return RouteResult(
            response=ErrorResponse(message=APOLOGY),
            success=False,
            log_goal=request.message,
        )

    # -------------------- plain planning --------------------

    def plan(self, request: PlanRequest) -> list[Step]:
        """Produces a plain plan for a goal.

        Raises:
            ConfigNotFoundError: If the config does not exist.
            ConfigInvalidError: If the config cannot be read or validated.
            PlannerError: If the planner call fails.
            NoValidPlan: If the planner output holds no valid plan.
        """
        config = self.config_loader.load(request.config_name)
        raw = self.planner.complete(
            build_system_prompt(config),
            build_user_message(request.goal, request.current_page),
        )
        steps = extract_plan(raw)
        logger.info(
            "Plan created",
            extra={"config": request.config_name, "steps": len(steps)},
        )
        return steps
