from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import Error as PlaywrightError

from invocursor.execution.dom import (
    ACTIVE_TAB_SELECTOR,
    OVERLAY_JS,
    PlaywrightPageDriver,
    page_control_selector,
)
from invocursor.widget.browser import BrowserHost


@pytest.fixture
def page():
    return MagicMock()


@pytest.fixture
def driver(page):
    return PlaywrightPageDriver(page, state_limit=10)


def test_page_control_selector_escapes_quotes():
    assert page_control_selector("settings") == '[data-page="settings"]'
    assert page_control_selector('a"b') == '[data-page="a\\"b"]'


def test_query(driver, page):
    element = MagicMock()
    page.query_selector.return_value = element

    assert driver.query("#dark-mode") is element
    assert driver.query_page_control("settings") is element
    page.query_selector.assert_called_with('[data-page="settings"]')


def test_invalid_selector_is_not_found(driver, page):
    page.query_selector.side_effect = PlaywrightError("bad selector")
    assert driver.query("##") is None


def test_cursor_animation_injects_overlay(driver, page):
    element = MagicMock()

    driver.move_cursor_to(element, 800)
    driver.show_click()
    driver.hide_cursor()

    overlay_calls = [c for c in page.evaluate.call_args_list if c.args[0] == OVERLAY_JS]
    assert len(overlay_calls) == 3
    assert element.evaluate.call_args.args[1] == 800


def test_mutations_go_through_element(driver):
    element = MagicMock()
    element.evaluate.return_value = 1

    assert driver.is_checked(element) is True
    driver.append_text(element, "a")
    assert element.evaluate.call_args.args[1] == "a"
    driver.set_value(element, "UTC")
    assert element.evaluate.call_args.args[1] == "UTC"
    assert "change" in element.evaluate.call_args.args[0]


def test_sleep_skips_zero(driver, page):
    driver.sleep(0)
    page.wait_for_timeout.assert_not_called()
    driver.sleep(250)
    page.wait_for_timeout.assert_called_once_with(250)


def test_page_context(driver, page):
    page.evaluate.side_effect = ["settings", {"Dark Mode": True}]

    assert driver.current_page() == "settings"
    assert driver.state_snapshot() == {"Dark Mode": True}
    assert page.evaluate.call_args_list[0].args[1] == ACTIVE_TAB_SELECTOR
    assert page.evaluate.call_args_list[1].args[1] == 10


@patch("invocursor.widget.browser.sync_playwright")
def test_browser_host_opens_page_once(mock_sync):
    playwright = mock_sync.return_value.start.return_value
    browser = playwright.chromium.launch.return_value
    page = browser.new_page.return_value

    host = BrowserHost("http://app.local", headless=True, state_limit=5)
    first = host.driver()
    second = host.driver()

    assert first is second
    assert first.page is page
    assert first.state_limit == 5
    playwright.chromium.launch.assert_called_once_with(headless=True)
    page.goto.assert_called_once_with("http://app.local")

    host.stop()

    browser.close.assert_called_once()
    playwright.stop.assert_called_once()


def test_browser_host_stop_without_start():
    BrowserHost("http://app.local").stop()
