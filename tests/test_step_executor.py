import pytest

from conftest import FakeElement, FakePageDriver
from invocursor.execution.step_executor import (
    ELEMENT_NOT_FOUND,
    PAGE_NOT_FOUND,
    STATE_NOT_REACHED,
    StepExecutor,
    StepResult,
)
from invocursor.execution.timing import AnimationTiming
from invocursor.models.plan import (
    ClickStep,
    NavigateStep,
    SelectStep,
    ToggleStep,
    TypeStep,
)


@pytest.fixture
def executor(settings_page):
    return StepExecutor(settings_page, AnimationTiming.instant())


class TestToggle:
    def test_enables_unchecked_checkbox(self, executor, settings_page):
        result = executor.execute(ToggleStep(target="#dark-mode", value=True))

        assert result == StepResult.ok()
        assert settings_page.elements["#dark-mode"].checked is True
        assert ("click", "#dark-mode") in settings_page.calls

    def test_already_in_state_is_not_clicked(self, executor, settings_page):
        settings_page.elements["#dark-mode"].checked = True

        result = executor.execute(ToggleStep(target="#dark-mode", value=True))

        assert result.success
        assert ("click", "#dark-mode") not in settings_page.calls
        assert settings_page.elements["#dark-mode"].checked is True

    def test_reports_failure_when_state_does_not_change(self):
        driver = FakePageDriver(elements=[FakeElement("#locked", stuck=True)])
        executor = StepExecutor(driver, AnimationTiming.instant())

        result = executor.execute(ToggleStep(target="#locked", value=True))

        assert result == StepResult.fail(STATE_NOT_REACHED)

    def test_missing_element(self, executor):
        result = executor.execute(ToggleStep(target="#nope", value=True))
        assert result == StepResult.fail(ELEMENT_NOT_FOUND)


def test_navigate_clicks_page_control(executor, settings_page):
    settings_page.page = "home"

    result = executor.execute(NavigateStep(target="settings"))

    assert result.success
    assert settings_page.page == "settings"


def test_navigate_unknown_page(executor, settings_page):
    result = executor.execute(NavigateStep(target="billing"))

    assert result == StepResult.fail(PAGE_NOT_FOUND)
    assert settings_page.calls == []


def test_type_replaces_value_character_by_character():
    driver = FakePageDriver(elements=[FakeElement("#event-name", value="Old")])
    timing = AnimationTiming.instant().model_copy(update={"type_char_ms": 50})
    executor = StepExecutor(driver, timing)

    result = executor.execute(TypeStep(target="#event-name", value="Summit"))

    assert result.success
    assert driver.elements["#event-name"].value == "Summit"
    assert driver.slept.count(50) == len("Summit")


def test_click_and_select(executor, settings_page):
    assert executor.execute(ClickStep(target="#save")).success
    assert executor.execute(SelectStep(target="#timezone", value="EST")).success
    assert settings_page.elements["#timezone"].value == "EST"
    assert ("set", "#timezone", "EST") in settings_page.calls


def test_missing_targets_for_other_kinds(executor):
    assert not executor.execute(ClickStep(target="#gone")).success
    assert not executor.execute(TypeStep(target="#gone", value="x")).success
    assert not executor.execute(SelectStep(target="#gone", value="x")).success


def test_cursor_animation_order(executor, settings_page):
    executor.execute(ClickStep(target="#save"))

    assert settings_page.calls == [
        ("move", "#save"),
        ("ripple",),
        ("click", "#save"),
        ("hide",),
    ]


def test_default_timing_pauses():
    driver = FakePageDriver(elements=[FakeElement("#save")])
    StepExecutor(driver).execute(ClickStep(target="#save"))

    # highlight, click ripple, settle
    assert driver.slept == [200, 300, 500]
