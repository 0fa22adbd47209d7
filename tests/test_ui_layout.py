from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import gradio as gr
import pytest

from invocursor.models.enums import ExecutionMode
from invocursor.observability.metrics import WidgetMetrics
from invocursor.ui.layout import _panel, _stream, create_ui


@pytest.fixture
def controller():
    controller = MagicMock()
    controller.messages.return_value = [{"role": "assistant", "content": "Hi!"}]
    controller.metrics = WidgetMetrics()
    controller.mode = ExecutionMode.FAST
    controller.busy = False
    controller.awaiting_continue = False
    controller.input_enabled = True
    return controller


def test_panel_idle(controller):
    chat, msg, cont, skip, stop, metrics = _panel(controller)

    assert chat == [{"role": "assistant", "content": "Hi!"}]
    assert msg["interactive"] is True
    assert cont["visible"] is False
    assert metrics == "No metrics yet."


def test_panel_paused_shows_controls(controller):
    controller.awaiting_continue = True
    controller.input_enabled = False

    _, msg, cont, skip, stop, _ = _panel(controller)

    assert msg["interactive"] is False
    assert cont["visible"] and skip["visible"] and stop["visible"]
    assert cont["interactive"] is True


def test_stream_polls_until_done(controller):
    future = Future()
    updates = []

    with patch("invocursor.ui.layout.time.sleep", side_effect=lambda _: future.set_result(None)):
        for update in _stream(controller, future):
            updates.append(update)

    assert len(updates) == 2


def test_stream_surfaces_worker_errors(controller):
    future = Future()
    future.set_exception(RuntimeError("page crashed"))

    with pytest.raises(RuntimeError):
        list(_stream(controller, future))


def test_create_ui(controller):
    demo = create_ui(controller, title="Test")
    assert isinstance(demo, gr.Blocks)
