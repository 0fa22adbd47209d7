"""Data models for conversational responses.

Every reply of the chat endpoint is exactly one of these variants,
serialized as a single JSON object tagged by ``type``.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from invocursor.models.plan import Step


SPREADSHEET_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)


class ResponseBase(BaseModel):
    """Fields shared by every response variant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: str = Field(
        default="",
        description="Human-readable text shown in the chat log.",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serializes the response for the HTTP transport."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QuestionResponse(ResponseBase):
    """The assistant asks the user something (including a password)."""

    type: Literal["question"] = "question"


class ExplanationResponse(ResponseBase):
    """Informational answer; nothing is executed."""

    type: Literal["explanation"] = "explanation"


class ActionResponse(ResponseBase):
    """A plan for the widget to perform.

    Attributes:
        plan: Ordered steps to execute.
        explanations: Guided-mode teaching text, index-aligned with ``plan``.
            May be shorter than ``plan``; missing entries show nothing.
    """

    type: Literal["action"] = "action"
    plan: list[Step] = Field(default_factory=list)
    explanations: Optional[list[Optional[str]]] = Field(default=None)

    def explanation_for(self, index: int) -> Optional[str]:
        if not self.explanations or index >= len(self.explanations):
            return None
        return self.explanations[index] or None


class StatusResponse(ResponseBase):
    """A report on the current state of the page."""

    type: Literal["status"] = "status"


class ErrorResponse(ResponseBase):
    """The request could not be handled."""

    type: Literal["error"] = "error"


class DownloadData(BaseModel):
    """Opaque payload descriptor for a downloadable artifact."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    base64: str = Field(..., description="Base64-encoded file contents.")
    mime_type: str = Field(SPREADSHEET_MIME_TYPE, alias="mimeType")


class AnalyticsDownloadResponse(ResponseBase):
    """An analytics workbook ready for download."""

    type: Literal["analytics_download"] = "analytics_download"
    download_data: DownloadData = Field(..., alias="downloadData")


ConversationResponse = Annotated[
    Union[
        QuestionResponse,
        ExplanationResponse,
        ActionResponse,
        StatusResponse,
        ErrorResponse,
        AnalyticsDownloadResponse,
    ],
    Field(discriminator="type"),
]

_response_adapter: TypeAdapter[ConversationResponse] = TypeAdapter(
    ConversationResponse
)


def parse_response(raw: Any) -> ConversationResponse:
    """Validates a decoded JSON object as a conversational response.

    Raises:
        pydantic.ValidationError: If the object is not a known variant.
    """
    return _response_adapter.validate_python(raw)
