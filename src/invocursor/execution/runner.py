"""Plan runner: sequences steps under the fast or guided cadence.

State machine::

    IDLE/COMPLETE --start(fast)--> RUNNING --> COMPLETE
    IDLE/COMPLETE --start(guided)--> STEP_ACTIVE --> AWAITING_CONTINUE
    AWAITING_CONTINUE --continue_step--> STEP_ACTIVE --> AWAITING_CONTINUE | COMPLETE
    AWAITING_CONTINUE --skip_remaining--> RUNNING --> COMPLETE
    AWAITING_CONTINUE --cancel--> IDLE
    any active state --unexpected error--> IDLE

Steps run strictly in order and a step always runs to completion. Step
failures are recorded and shown but never abort the plan. Any other error
raised while a run is active (the page going away between steps, say)
ends the run, emits a ``failed`` event and is re-raised. At most one run
is active per runner, and the runner refuses re-entrant calls, so two runs
can never mutate the page at the same time.
"""

import random
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from invocursor.errors import InvalidRunTransition, RunnerBusyError
from invocursor.execution.step_executor import StepExecutor, StepResult
from invocursor.execution.timing import AnimationTiming
from invocursor.models.enums import ExecutionMode, RunEventKind, RunState
from invocursor.models.plan import Step
from invocursor.models.response import ActionResponse
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

DONE_MESSAGE = "✅ Done!"
GUIDED_TIPS = (
    "Nice work! Next time you can do this yourself from the same place.",
    "Pro tip: you can ask me to explain any setting before changing it.",
    "Great job following along! Switch to fast mode when you just want it done.",
    "You're getting the hang of it. Try the next change on your own!",
)


class RunEvent(BaseModel):
    """A user-visible event emitted while a plan runs."""

    model_config = ConfigDict(frozen=True)

    kind: RunEventKind
    message: str
    step_index: Optional[int] = None
    success: Optional[bool] = None
    reason: Optional[str] = None


class StepRecord(BaseModel):
    index: int
    step: Step
    result: StepResult


class ExecutionState(BaseModel):
    """State of one plan run.

    Attributes:
        steps: Steps to execute.
        explanations: Guided teaching text, index-aligned with ``steps``.
        cursor: Index of the next step to execute.
        awaiting_continue: Whether a guided run is paused for the user.
        records: Results of the steps executed so far.
    """

    mode: ExecutionMode
    steps: list[Step] = Field(..., min_length=1)
    explanations: list[Optional[str]] = Field(default_factory=list)
    cursor: int = Field(default=0, ge=0)
    awaiting_continue: bool = False
    records: list[StepRecord] = Field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.steps)

    def explanation_for(self, index: int) -> Optional[str]:
        if index < len(self.explanations) and self.explanations[index]:
            return self.explanations[index]
        return None


def format_plan(steps: list[Step]) -> str:
    lines = ["**Plan:**"]
    lines.extend(f"{i + 1}. {step.describe()}" for i, step in enumerate(steps))
    return "\n".join(lines)


class PlanRunner:
    """Runs plans through a StepExecutor and reports progress as events."""

    def __init__(
        self,
        executor: StepExecutor,
        on_event: Optional[Callable[[RunEvent], None]] = None,
        timing: Optional[AnimationTiming] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initializes the runner.

        Args:
            executor: Performs individual steps.
            on_event: Receives every event as it happens.
            timing: Cadence delays. Defaults to the executor's timing.
            rng: Chooses the guided-mode tip.
        """
        self.executor = executor
        self.on_event = on_event
        self.timing = timing or executor.timing
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self.state = RunState.IDLE
        self.execution: Optional[ExecutionState] = None
        self.last_run: Optional[ExecutionState] = None

    # -------------------- queries --------------------

    @property
    def accepts_input(self) -> bool:
        """Whether the chat input may submit a new goal."""
        return self.state in (RunState.IDLE, RunState.COMPLETE)

    @property
    def awaiting_continue(self) -> bool:
        return self.state == RunState.AWAITING_CONTINUE

    # -------------------- controls --------------------

    def start(self, action: ActionResponse, mode: ExecutionMode) -> None:
        """Starts running the plan of an ``action`` response.

        In fast mode this returns once every step has run. In guided mode it
        returns after the first step, paused for ``continue_step``.

        Raises:
            RunnerBusyError: If a run is already active.
            InvalidRunTransition: If the plan has no steps.
        """
        with self._exclusive():
            if not self.accepts_input:
                raise RunnerBusyError("A plan is already running")
            if not action.plan:
                raise InvalidRunTransition("Plan has no steps")

            explanations = (
                list(action.explanations or [])
                if mode == ExecutionMode.GUIDED
                else []
            )
            self.execution = ExecutionState(
                mode=mode, steps=list(action.plan), explanations=explanations
            )
            logger.info(
                "Plan run started",
                extra={"mode": mode.value, "steps": len(action.plan)},
            )

            with self._abort_on_error():
                self._emit(RunEventKind.PLAN, format_plan(self.execution.steps))
                self.executor.driver.sleep(self.timing.plan_display_ms)

                if mode == ExecutionMode.FAST:
                    self.state = RunState.RUNNING
                    self._drain()
                else:
                    self._guided_step()

    def continue_step(self) -> None:
        """Executes exactly the next guided step.

        Raises:
            InvalidRunTransition: If the run is not awaiting continue.
            RunnerBusyError: If another control is still executing.
        """
        with self._exclusive():
            self._require_awaiting("continue")
            with self._abort_on_error():
                self._guided_step()

    def skip_remaining(self) -> None:
        """Runs every remaining step at fast cadence, without explanations.

        Raises:
            InvalidRunTransition: If the run is not awaiting continue.
            RunnerBusyError: If another control is still executing.
        """
        with self._exclusive():
            self._require_awaiting("skip")
            remaining = len(self.execution.steps) - self.execution.cursor
            self.execution.awaiting_continue = False
            self.state = RunState.RUNNING
            with self._abort_on_error():
                self._emit(
                    RunEventKind.SKIPPED,
                    f"⏩ Running the remaining {remaining} step(s)...",
                )
                self._drain()

    def cancel(self) -> None:
        """Abandons a paused guided run without running further steps.

        Raises:
            InvalidRunTransition: If the run is not awaiting continue.
        """
        with self._exclusive():
            self._require_awaiting("cancel")
            self._emit(RunEventKind.CANCELLED, "Stopped. The remaining steps were not run.")
            self.last_run = self.execution
            self.execution = None
            self.state = RunState.IDLE

    # -------------------- internals --------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise RunnerBusyError("A step is currently executing")
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def _abort_on_error(self) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            self._abort(e)
            raise

    def _abort(self, error: Exception) -> None:
        execution = self.execution
        logger.exception(
            "Plan run aborted",
            extra={
                "state": self.state.value,
                "step_index": execution.cursor if execution else None,
            },
        )
        if execution is not None:
            self.last_run = execution
        self.execution = None
        self.state = RunState.IDLE
        self._emit(
            RunEventKind.FAILED, f"⚠️ The plan stopped unexpectedly: {error}"
        )

    def _require_awaiting(self, control: str) -> None:
        if self.state != RunState.AWAITING_CONTINUE or self.execution is None:
            raise InvalidRunTransition(
                f"Cannot {control} while {self.state.value}"
            )

    def _emit(self, kind: RunEventKind, message: str, **fields) -> None:
        event = RunEvent(kind=kind, message=message, **fields)
        if self.on_event is not None:
            self.on_event(event)

    def _run_one(self) -> StepResult:
        execution = self.execution
        index = execution.cursor
        step = execution.steps[index]

        self._emit(
            RunEventKind.STEP_STARTED,
            f"▶ Step {index + 1}: {step.describe()}",
            step_index=index,
        )
        self.executor.driver.sleep(self.timing.before_step_ms)

        try:
            result = self.executor.execute(step)
        except Exception as e:
            logger.exception(
                "Step raised an error", extra={"step_index": index}
            )
            result = StepResult.fail(f"Error: {e}")

        execution.records.append(
            StepRecord(index=index, step=step, result=result)
        )
        execution.cursor = index + 1

        if result.success:
            message = f"✓ Step {index + 1}: {step.describe()}"
        else:
            message = (
                f"✗ Step {index + 1}: {step.describe()} "
                f"({result.reason or 'failed'})"
            )
        self._emit(
            RunEventKind.STEP_FINISHED,
            message,
            step_index=index,
            success=result.success,
            reason=result.reason,
        )
        return result

    def _drain(self) -> None:
        while not self.execution.finished:
            self._run_one()
            self.executor.driver.sleep(self.timing.between_steps_ms)
        self._complete()

    def _guided_step(self) -> None:
        execution = self.execution
        execution.awaiting_continue = False
        self.state = RunState.STEP_ACTIVE

        explanation = execution.explanation_for(execution.cursor)
        if explanation:
            self._emit(
                RunEventKind.EXPLANATION,
                f"💡 {explanation}",
                step_index=execution.cursor,
            )

        self._run_one()

        if execution.finished:
            self._complete()
            return

        execution.awaiting_continue = True
        self.state = RunState.AWAITING_CONTINUE
        self._emit(
            RunEventKind.AWAITING_CONTINUE,
            f"Ready for step {execution.cursor + 1} of {len(execution.steps)}. "
            "Press Continue, or Skip remaining to finish quickly.",
            step_index=execution.cursor,
        )

    def _complete(self) -> None:
        execution = self.execution
        self._emit(RunEventKind.COMPLETE, DONE_MESSAGE)
        if execution.mode == ExecutionMode.GUIDED:
            self._emit(RunEventKind.TIP, self._rng.choice(GUIDED_TIPS))

        failed = sum(1 for r in execution.records if not r.result.success)
        logger.info(
            "Plan run complete",
            extra={"steps": len(execution.steps), "failed_steps": failed},
        )
        self.last_run = execution
        self.execution = None
        self.state = RunState.COMPLETE
