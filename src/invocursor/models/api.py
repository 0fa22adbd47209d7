"""Data models for the HTTP API payloads."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from invocursor.models.enums import ExecutionMode
from invocursor.models.session import HistoryTurn


DEFAULT_CONFIG_NAME = "pheedloop"


class ChatRequest(BaseModel):
    """Inbound conversational request sent by the widget.

    Attributes:
        message: What the user typed.
        current_page: Identifier of the page the user is on.
        current_state: Visible control labels mapped to current values.
        history: Most recent conversation turns (the widget sends 6).
        config_name: Configuration document describing the host app.
        mode: Active execution cadence.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: str = Field(...)
    current_page: str = Field(default="home", alias="currentPage")
    current_state: dict[str, Any] = Field(
        default_factory=dict, alias="currentState"
    )
    history: list[HistoryTurn] = Field(default_factory=list)
    config_name: str = Field(default=DEFAULT_CONFIG_NAME, alias="configName")
    mode: ExecutionMode = Field(default=ExecutionMode.FAST)


class PlanRequest(BaseModel):
    """Inbound plain planning request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    goal: str = Field(...)
    current_page: str = Field(default="home", alias="currentPage")
    config_name: str = Field(default=DEFAULT_CONFIG_NAME, alias="configName")


class PlanResponse(BaseModel):
    """Either a plan or an error string."""

    plan: Optional[list[dict[str, Any]]] = None
    error: Optional[str] = None


class CreateKeyRequest(BaseModel):
    """Admin request to issue a new API key."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(default="New Account")
    configs: list[str] = Field(default_factory=list)
    tier: str = Field(default="starter")
    admin_secret: Optional[str] = Field(default=None, alias="adminSecret")
    analytics_password: Optional[str] = Field(
        default=None, alias="analyticsPassword"
    )


class SetPasswordRequest(BaseModel):
    """Admin request to set the analytics password of a key."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    admin_secret: Optional[str] = Field(default=None, alias="adminSecret")
    password: str = Field(..., min_length=1)
