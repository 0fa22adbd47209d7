"""Data models for action plans.

A plan is an ordered list of atomic DOM steps. On the wire each step is a
JSON object tagged by its ``type`` field, e.g.
``{"type": "toggle", "target": "#dark-mode", "value": true}``.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StepBase(BaseModel):
    """Fields shared by every step kind."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        coerce_numbers_to_str=True,
    )

    target: str = Field(
        ...,
        min_length=1,
        description="Page identifier for navigate, CSS selector otherwise.",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serializes the step in the planner's wire format."""
        return self.model_dump(mode="json", by_alias=True)


class NavigateStep(StepBase):
    """Switch to another page of the host application."""

    kind: Literal["navigate"] = Field("navigate", alias="type")

    def describe(self) -> str:
        return f"Go to **{self.target}**"


class ToggleStep(StepBase):
    """Bring a checkbox-like control to the desired checked state."""

    kind: Literal["toggle"] = Field("toggle", alias="type")
    value: bool = Field(..., description="Desired checked state.")

    def describe(self) -> str:
        verb = "Enable" if self.value else "Disable"
        return f"{verb} **{self.target}**"


class TypeStep(StepBase):
    """Type text into an input, one character at a time."""

    kind: Literal["type"] = Field("type", alias="type")
    value: str = Field(..., description="Text to type.")

    def describe(self) -> str:
        return f'Type "{self.value}" in **{self.target}**'


class ClickStep(StepBase):
    """Click an element."""

    kind: Literal["click"] = Field("click", alias="type")

    def describe(self) -> str:
        return f"Click **{self.target}**"


class SelectStep(StepBase):
    """Choose an option of a select element."""

    kind: Literal["select"] = Field("select", alias="type")
    value: str = Field(..., description="Option value to select.")

    def describe(self) -> str:
        return f'Select "{self.value}" in **{self.target}**'


Step = Annotated[
    Union[NavigateStep, ToggleStep, TypeStep, ClickStep, SelectStep],
    Field(discriminator="kind"),
]

Plan = list[Step]

_plan_adapter: TypeAdapter[list[Step]] = TypeAdapter(list[Step])


def parse_plan(raw: Any) -> list[Step]:
    """Validates a decoded JSON value as a plan.

    Args:
        raw: A decoded JSON array of step objects.

    Returns:
        The list of typed steps.

    Raises:
        pydantic.ValidationError: If any step is malformed.
    """
    return _plan_adapter.validate_python(raw)


def plan_to_wire(plan: list[Step]) -> list[dict[str, Any]]:
    return [step.to_wire() for step in plan]
