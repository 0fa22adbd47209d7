from pydantic import BaseModel, ConfigDict, Field


class AnimationTiming(BaseModel):
    """Delays, in milliseconds, that make step execution watchable."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cursor_move_ms: int = Field(800, ge=0, description="Pointer travel time.")
    click_ms: int = Field(300, ge=0, description="Click ripple duration.")
    highlight_ms: int = Field(200, ge=0, description="Pause after highlighting.")
    type_char_ms: int = Field(50, ge=0, description="Delay per typed character.")
    settle_ms: int = Field(500, ge=0, description="Settle delay after a step.")
    before_step_ms: int = Field(300, ge=0, description="Pause before a step.")
    between_steps_ms: int = Field(400, ge=0, description="Pause after a step.")
    plan_display_ms: int = Field(600, ge=0, description="Pause after showing the plan.")

    @classmethod
    def instant(cls) -> "AnimationTiming":
        """No delays at all; used by tests and headless batch runs."""
        return cls(
            cursor_move_ms=0,
            click_ms=0,
            highlight_ms=0,
            type_char_ms=0,
            settle_ms=0,
            before_step_ms=0,
            between_steps_ms=0,
            plan_display_ms=0,
        )
