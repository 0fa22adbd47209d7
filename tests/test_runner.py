import random

import pytest

from invocursor.errors import InvalidRunTransition, RunnerBusyError
from invocursor.execution.runner import DONE_MESSAGE, PlanRunner, format_plan
from invocursor.execution.step_executor import StepExecutor
from invocursor.execution.timing import AnimationTiming
from invocursor.models.enums import ExecutionMode, RunEventKind, RunState
from invocursor.models.plan import ClickStep, NavigateStep, ToggleStep
from invocursor.models.response import ActionResponse


PLAN = [
    NavigateStep(target="settings"),
    ToggleStep(target="#dark-mode", value=True),
    ClickStep(target="#save"),
]
EXPLANATIONS = ["First go to settings", "Then enable dark mode", "Finally save"]


@pytest.fixture
def events():
    return []


@pytest.fixture
def runner(settings_page, events):
    executor = StepExecutor(settings_page, AnimationTiming.instant())
    return PlanRunner(executor, on_event=events.append, rng=random.Random(0))


def kinds(events):
    return [e.kind for e in events]


class TestFastMode:
    def test_runs_all_steps_back_to_back(self, runner, events, settings_page):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        assert runner.state == RunState.COMPLETE
        assert runner.accepts_input
        assert kinds(events) == [
            RunEventKind.PLAN,
            RunEventKind.STEP_STARTED,
            RunEventKind.STEP_FINISHED,
            RunEventKind.STEP_STARTED,
            RunEventKind.STEP_FINISHED,
            RunEventKind.STEP_STARTED,
            RunEventKind.STEP_FINISHED,
            RunEventKind.COMPLETE,
        ]
        assert events[-1].message == DONE_MESSAGE
        assert settings_page.elements["#dark-mode"].checked is True

    def test_fast_mode_ignores_explanations(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=EXPLANATIONS),
            ExecutionMode.FAST,
        )
        assert RunEventKind.EXPLANATION not in kinds(events)
        assert RunEventKind.TIP not in kinds(events)

    def test_failed_step_does_not_abort(self, runner, events):
        plan = [ClickStep(target="#missing"), ClickStep(target="#save")]

        runner.start(ActionResponse(plan=plan), ExecutionMode.FAST)

        finished = [e for e in events if e.kind == RunEventKind.STEP_FINISHED]
        assert [e.success for e in finished] == [False, True]
        assert finished[0].reason == "Element not found"
        assert "✗ Step 1" in finished[0].message
        assert "✓ Step 2" in finished[1].message
        assert runner.state == RunState.COMPLETE

    def test_plan_is_shown_first(self, runner, events):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        assert events[0].message == format_plan(PLAN)
        assert "1. Go to **settings**" in events[0].message
        assert "2. Enable **#dark-mode**" in events[0].message

    def test_empty_plan_is_rejected(self, runner):
        with pytest.raises(InvalidRunTransition):
            runner.start(ActionResponse(plan=[]), ExecutionMode.FAST)
        assert runner.state == RunState.IDLE


class TestGuidedMode:
    def test_pauses_after_each_step(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=EXPLANATIONS),
            ExecutionMode.GUIDED,
        )

        assert runner.state == RunState.AWAITING_CONTINUE
        assert not runner.accepts_input
        assert runner.execution.cursor == 1
        assert kinds(events) == [
            RunEventKind.PLAN,
            RunEventKind.EXPLANATION,
            RunEventKind.STEP_STARTED,
            RunEventKind.STEP_FINISHED,
            RunEventKind.AWAITING_CONTINUE,
        ]
        assert "First go to settings" in events[1].message

    def test_continue_runs_exactly_one_step(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=EXPLANATIONS),
            ExecutionMode.GUIDED,
        )
        events.clear()

        runner.continue_step()

        assert runner.execution.cursor == 2
        started = [e for e in events if e.kind == RunEventKind.STEP_STARTED]
        assert [e.step_index for e in started] == [1]
        assert events[0].kind == RunEventKind.EXPLANATION
        assert "Then enable dark mode" in events[0].message

    def test_completion_emits_done_and_one_tip(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=EXPLANATIONS),
            ExecutionMode.GUIDED,
        )
        runner.continue_step()
        runner.continue_step()

        assert runner.state == RunState.COMPLETE
        assert runner.execution is None
        assert kinds(events)[-2:] == [RunEventKind.COMPLETE, RunEventKind.TIP]
        assert kinds(events).count(RunEventKind.TIP) == 1
        assert len(runner.last_run.records) == 3

    def test_skip_drains_remaining_without_explanations(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=EXPLANATIONS),
            ExecutionMode.GUIDED,
        )
        events.clear()

        runner.skip_remaining()

        assert kinds(events)[0] == RunEventKind.SKIPPED
        assert RunEventKind.EXPLANATION not in kinds(events)
        assert RunEventKind.AWAITING_CONTINUE not in kinds(events)
        started = [e for e in events if e.kind == RunEventKind.STEP_STARTED]
        assert [e.step_index for e in started] == [1, 2]
        assert runner.state == RunState.COMPLETE

    def test_missing_explanations_show_nothing(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=["Only the first"]),
            ExecutionMode.GUIDED,
        )
        runner.continue_step()

        explanations = [e for e in events if e.kind == RunEventKind.EXPLANATION]
        assert len(explanations) == 1

    def test_null_explanations_are_skipped(self, runner, events):
        runner.start(
            ActionResponse(plan=PLAN, explanations=["First", None, "Finally"]),
            ExecutionMode.GUIDED,
        )
        runner.continue_step()
        runner.continue_step()

        explanations = [e for e in events if e.kind == RunEventKind.EXPLANATION]
        assert [e.step_index for e in explanations] == [0, 2]
        assert runner.state == RunState.COMPLETE

    def test_cancel_stops_without_running_more(self, runner, events):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.GUIDED)

        runner.cancel()

        assert runner.state == RunState.IDLE
        assert runner.accepts_input
        assert kinds(events)[-1] == RunEventKind.CANCELLED
        assert RunEventKind.COMPLETE not in kinds(events)
        assert len(runner.last_run.records) == 1

    def test_single_step_guided_plan_completes_immediately(self, runner, events):
        runner.start(
            ActionResponse(plan=[ClickStep(target="#save")]), ExecutionMode.GUIDED
        )
        assert runner.state == RunState.COMPLETE
        assert RunEventKind.AWAITING_CONTINUE not in kinds(events)


class TestTransitions:
    def test_controls_require_awaiting_continue(self, runner):
        for control in (runner.continue_step, runner.skip_remaining, runner.cancel):
            with pytest.raises(InvalidRunTransition):
                control()

    def test_cannot_start_while_paused(self, runner):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.GUIDED)
        with pytest.raises(RunnerBusyError):
            runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

    def test_reentrant_call_during_step_is_refused(self, settings_page):
        seen = []

        def on_event(event):
            if event.kind == RunEventKind.STEP_STARTED and not seen:
                with pytest.raises(RunnerBusyError):
                    runner.skip_remaining()
                seen.append(event)

        executor = StepExecutor(settings_page, AnimationTiming.instant())
        runner = PlanRunner(executor, on_event=on_event)
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        assert seen
        assert runner.state == RunState.COMPLETE

    def test_new_plan_after_completion(self, runner, events):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)
        runner.start(ActionResponse(plan=PLAN[:1]), ExecutionMode.FAST)
        assert kinds(events).count(RunEventKind.COMPLETE) == 2

    def test_step_exception_is_recorded_as_failure(self, runner, events):
        def boom(step):
            raise RuntimeError("page crashed")

        runner.executor.execute = boom
        runner.start(ActionResponse(plan=PLAN[:1]), ExecutionMode.FAST)

        finished = [e for e in events if e.kind == RunEventKind.STEP_FINISHED]
        assert finished[0].success is False
        assert "page crashed" in finished[0].reason


def close_page_on(page, marker_ms):
    """Makes ``page.sleep`` fail for one particular delay."""

    def sleep(ms):
        if ms == marker_ms:
            raise RuntimeError("page closed")
        page.slept.append(ms)

    page.sleep = sleep


class TestUnexpectedErrors:
    @pytest.fixture
    def runner(self, settings_page, events):
        executor = StepExecutor(settings_page, AnimationTiming.instant())
        timing = AnimationTiming.instant().model_copy(update={"between_steps_ms": 7})
        return PlanRunner(
            executor, on_event=events.append, timing=timing, rng=random.Random(0)
        )

    def test_error_between_steps_ends_the_run(self, runner, events, settings_page):
        close_page_on(settings_page, 7)

        with pytest.raises(RuntimeError, match="page closed"):
            runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        assert runner.state == RunState.IDLE
        assert runner.accepts_input
        assert runner.execution is None
        assert len(runner.last_run.records) == 1
        assert events[-1].kind == RunEventKind.FAILED
        assert "page closed" in events[-1].message
        assert RunEventKind.COMPLETE not in kinds(events)

    def test_runner_is_usable_after_an_error(self, runner, events, settings_page):
        close_page_on(settings_page, 7)
        with pytest.raises(RuntimeError):
            runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        del settings_page.sleep
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.FAST)

        assert runner.state == RunState.COMPLETE
        assert kinds(events)[-1] == RunEventKind.COMPLETE

    def test_error_during_skip_ends_the_run(self, runner, events, settings_page):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.GUIDED)
        assert runner.awaiting_continue
        close_page_on(settings_page, 7)

        with pytest.raises(RuntimeError):
            runner.skip_remaining()

        assert runner.state == RunState.IDLE
        assert not runner.awaiting_continue
        assert events[-1].kind == RunEventKind.FAILED
        with pytest.raises(InvalidRunTransition):
            runner.continue_step()

    def test_error_during_continue_ends_the_run(self, runner, events, settings_page):
        runner.start(ActionResponse(plan=PLAN), ExecutionMode.GUIDED)

        def explode(event):
            events.append(event)
            if event.kind == RunEventKind.STEP_STARTED and event.step_index == 1:
                raise RuntimeError("listener failed")

        runner.on_event = explode
        with pytest.raises(RuntimeError, match="listener failed"):
            runner.continue_step()

        assert runner.accepts_input
        assert runner.last_run.cursor == 1
        assert events[-1].kind == RunEventKind.FAILED
