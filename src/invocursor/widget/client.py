"""HTTP client the widget uses to reach the Invocursor server."""

from typing import Any, Optional

import requests
from pydantic import ValidationError

from invocursor.errors import ApiRequestError
from invocursor.models.api import ChatRequest, PlanRequest
from invocursor.models.plan import Step, parse_plan
from invocursor.models.response import ConversationResponse, parse_response
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"


def _error_message(body: Any, reason: Optional[str]) -> str:
    if not isinstance(body, dict):
        return str(reason)
    detail = body.get("detail")
    # FastAPI wraps HTTPException payloads in "detail"
    if isinstance(detail, dict):
        detail = detail.get("error")
    return str(body.get("error") or detail or reason)


class InvocursorClient:
    """Calls ``/api/chat`` and ``/api/plan`` with the widget's API key."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key

        try:
            response = self.http.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(
                "Server request failed", extra={"path": path, "error": str(e)}
            )
            raise ApiRequestError(f"Could not reach the server: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            raise ApiRequestError(
                _error_message(body, response.reason),
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise ApiRequestError("Unexpected reply from the server")
        return body

    def chat(self, request: ChatRequest) -> ConversationResponse:
        """Sends one chat message.

        Raises:
            ApiRequestError: On transport failure, an HTTP error, or a reply
                that is not a known response variant.
        """
        body = self._post(
            "/api/chat", request.model_dump(mode="json", by_alias=True)
        )
        try:
            return parse_response(body)
        except ValidationError as e:
            raise ApiRequestError(f"Unexpected chat reply: {e}") from e

    def plan(self, request: PlanRequest) -> list[Step]:
        """Requests a plain plan for a goal.

        Raises:
            ApiRequestError: If the server returns an error instead of a plan.
        """
        body = self._post(
            "/api/plan", request.model_dump(mode="json", by_alias=True)
        )
        if body.get("error"):
            raise ApiRequestError(body["error"])
        try:
            return parse_plan(body.get("plan") or [])
        except ValidationError as e:
            raise ApiRequestError(f"Unexpected plan reply: {e}") from e
