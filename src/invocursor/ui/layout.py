"""Gradio panel for the Invocursor widget.

The panel shows the chat log, a fast/guided mode selector and the guided
controls. While a plan is paused between steps the message box is locked
and only Continue, Skip remaining and Stop are offered.
"""

import time
from concurrent.futures import Future
from typing import Iterator

import gradio as gr

from invocursor.models.enums import ExecutionMode
from invocursor.widget.controller import WidgetController


POLL_INTERVAL_S = 0.2


def _panel(controller: WidgetController) -> tuple:
    """Current values for (chatbot, input, continue, skip, stop, metrics)."""
    paused = controller.awaiting_continue
    idle = not controller.busy
    return (
        controller.messages(),
        gr.update(interactive=controller.input_enabled),
        gr.update(visible=paused, interactive=idle),
        gr.update(visible=paused, interactive=idle),
        gr.update(visible=paused, interactive=idle),
        controller.metrics.render_markdown(),
    )


def _stream(controller: WidgetController, future: Future) -> Iterator[tuple]:
    """Yields panel updates until ``future`` completes."""
    while not future.done():
        yield _panel(controller)
        time.sleep(POLL_INTERVAL_S)
    # surface worker errors in the Gradio log
    future.result()
    yield _panel(controller)


def create_ui(controller: WidgetController, title: str = "Invocursor") -> gr.Blocks:
    """Constructs the widget panel and wires its events.

    Args:
        controller: The widget driving the page.
        title: Window title.

    Returns:
        A Gradio gr.Blocks object containing the panel.
    """
    with gr.Blocks(title=title) as demo:
        with gr.Row():
            with gr.Column(scale=3):
                chatbot = gr.Chatbot(
                    value=controller.messages(),
                    type="messages",
                    label="Invocursor",
                    height=520,
                )
                msg_input = gr.Textbox(
                    placeholder="What would you like to do?",
                    label="Message",
                    lines=1,
                )
                with gr.Row():
                    continue_btn = gr.Button(
                        "Continue", variant="primary", visible=False
                    )
                    skip_btn = gr.Button(
                        "Skip remaining", variant="secondary", visible=False
                    )
                    stop_btn = gr.Button("Stop", variant="stop", visible=False)

            with gr.Column(scale=1, min_width=220):
                mode_radio = gr.Radio(
                    choices=[m.value for m in ExecutionMode],
                    value=controller.mode.value,
                    label="Mode",
                    info="Fast runs the whole plan; guided pauses after each step.",
                )
                metrics_md = gr.Markdown(controller.metrics.render_markdown())

        outputs = [chatbot, msg_input, continue_btn, skip_btn, stop_btn, metrics_md]

        def on_submit(message: str):
            if not message.strip() or not controller.input_enabled:
                yield _panel(controller)
                return
            yield from _stream(controller, controller.send_async(message))

        def on_continue():
            yield from _stream(controller, controller.continue_async())

        def on_skip():
            yield from _stream(controller, controller.skip_async())

        def on_stop():
            yield from _stream(controller, controller.cancel_async())

        msg_input.submit(
            on_submit, inputs=[msg_input], outputs=outputs
        ).then(lambda: "", outputs=[msg_input])
        continue_btn.click(on_continue, outputs=outputs)
        skip_btn.click(on_skip, outputs=outputs)
        stop_btn.click(on_stop, outputs=outputs)
        mode_radio.change(controller.set_mode, inputs=[mode_radio])

    return demo
