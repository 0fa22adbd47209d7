"""Executes one plan step against the live page.

Each step first animates the pointer to its target so the user can follow
along, then performs the DOM mutation. A missing target is a failed step,
not an exception: the plan keeps running.

Only ``toggle`` verifies its outcome, because a checked state is cheap and
deterministic to read back. The other kinds report success once performed.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from invocursor.execution.dom import PageDriver
from invocursor.execution.timing import AnimationTiming
from invocursor.models.plan import (
    ClickStep,
    NavigateStep,
    SelectStep,
    Step,
    ToggleStep,
    TypeStep,
)
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

PAGE_NOT_FOUND = "Page not found"
ELEMENT_NOT_FOUND = "Element not found"
STATE_NOT_REACHED = "State did not change"


class StepResult(BaseModel):
    """Outcome of one step."""

    model_config = ConfigDict(frozen=True)

    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "StepResult":
        return cls(success=True)

    @classmethod
    def fail(cls, reason: str) -> "StepResult":
        return cls(success=False, reason=reason)


class StepExecutor:
    """Performs steps through a PageDriver."""

    def __init__(self, driver: PageDriver, timing: Optional[AnimationTiming] = None):
        self.driver = driver
        self.timing = timing or AnimationTiming()

    def execute(self, step: Step) -> StepResult:
        """Runs one step to completion.

        Args:
            step: The step to perform.

        Returns:
            Success, or failure with a reason shown next to the step.
        """
        match step:
            case NavigateStep():
                result = self._navigate(step)
            case ToggleStep():
                result = self._toggle(step)
            case TypeStep():
                result = self._type(step)
            case ClickStep():
                result = self._click(step)
            case SelectStep():
                result = self._select(step)
            case _:
                raise TypeError(f"Unsupported step: {step!r}")

        logger.debug(
            "Step executed",
            extra={
                "step": step.to_wire(),
                "success": result.success,
                "reason": result.reason,
            },
        )
        return result

    def _approach(self, element: Any) -> None:
        self.driver.move_cursor_to(element, self.timing.cursor_move_ms)
        self.driver.sleep(self.timing.highlight_ms)
        self.driver.show_click()
        self.driver.sleep(self.timing.click_ms)

    def _settle(self) -> None:
        self.driver.sleep(self.timing.settle_ms)
        self.driver.hide_cursor()

    def _navigate(self, step: NavigateStep) -> StepResult:
        control = self.driver.query_page_control(step.target)
        if control is None:
            return StepResult.fail(PAGE_NOT_FOUND)
        self._approach(control)
        self.driver.click(control)
        self._settle()
        return StepResult.ok()

    def _toggle(self, step: ToggleStep) -> StepResult:
        element = self.driver.query(step.target)
        if element is None:
            return StepResult.fail(ELEMENT_NOT_FOUND)
        self._approach(element)
        if self.driver.is_checked(element) != step.value:
            self.driver.click(element)
        self._settle()
        if self.driver.is_checked(element) == step.value:
            return StepResult.ok()
        return StepResult.fail(STATE_NOT_REACHED)

    def _type(self, step: TypeStep) -> StepResult:
        element = self.driver.query(step.target)
        if element is None:
            return StepResult.fail(ELEMENT_NOT_FOUND)
        self._approach(element)
        self.driver.focus_and_clear(element)
        for ch in step.value:
            self.driver.append_text(element, ch)
            self.driver.sleep(self.timing.type_char_ms)
        self._settle()
        return StepResult.ok()

    def _click(self, step: ClickStep) -> StepResult:
        element = self.driver.query(step.target)
        if element is None:
            return StepResult.fail(ELEMENT_NOT_FOUND)
        self._approach(element)
        self.driver.click(element)
        self._settle()
        return StepResult.ok()

    def _select(self, step: SelectStep) -> StepResult:
        element = self.driver.query(step.target)
        if element is None:
            return StepResult.fail(ELEMENT_NOT_FOUND)
        self._approach(element)
        self.driver.set_value(element, step.value)
        self._settle()
        return StepResult.ok()
