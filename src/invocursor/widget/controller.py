"""The widget: chat log, client-side session and plan execution.

All page and server work runs on a single worker thread, which gives each
widget one logical thread of control over its page. Runner events are
appended to the chat log as they happen so a UI can poll ``messages()``
while a plan is running.
"""

import base64
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional, Union

from invocursor.conversation.analytics import is_analytics_request
from invocursor.errors import ApiRequestError, InvalidRunTransition, RunnerBusyError
from invocursor.execution.dom import PageDriver
from invocursor.execution.runner import PlanRunner, RunEvent
from invocursor.execution.step_executor import StepExecutor
from invocursor.execution.timing import AnimationTiming
from invocursor.models.api import DEFAULT_CONFIG_NAME, ChatRequest, PlanRequest
from invocursor.models.enums import ExecutionMode
from invocursor.models.response import (
    ActionResponse,
    AnalyticsDownloadResponse,
    ConversationResponse,
    ErrorResponse,
    QuestionResponse,
)
from invocursor.models.session import HISTORY_SENT_PER_REQUEST, Session
from invocursor.observability.logging import get_logger
from invocursor.observability.metrics import WidgetMetrics
from invocursor.widget.client import InvocursorClient


logger = get_logger(__name__)

GREETING = "Hi! Tell me what you'd like to change and I'll do it for you."
BUSY_NOTICE = "Please finish the current plan first: press Continue or Skip remaining."
NO_PLAN = "I couldn't create a plan for that. Could you rephrase?"
MASKED_PASSWORD = "••••••"


class WidgetController:
    """Drives one embedded widget against one page."""

    def __init__(
        self,
        client: InvocursorClient,
        driver_factory: Callable[[], PageDriver],
        config_name: str = DEFAULT_CONFIG_NAME,
        mode: ExecutionMode = ExecutionMode.FAST,
        timing: Optional[AnimationTiming] = None,
        download_dir: Union[str, Path] = ".",
        conversational: bool = True,
        on_close: Optional[Callable[[], None]] = None,
        worker: Optional[Executor] = None,
    ):
        """Initializes the widget.

        Args:
            client: Server client.
            driver_factory: Builds the page driver; called on the worker
                thread the first time the page is needed.
            config_name: Configuration document describing the host app.
            mode: Initial execution cadence.
            timing: Animation delays.
            download_dir: Where analytics workbooks are saved.
            conversational: Use ``/api/chat``; otherwise plain ``/api/plan``.
            on_close: Called on the worker thread by ``close()``.
            worker: Executor for page work. Must run one task at a time.
        """
        self.client = client
        self.config_name = config_name
        self.timing = timing or AnimationTiming()
        self.download_dir = Path(download_dir)
        self.conversational = conversational
        self.session = Session(mode=mode)
        self.metrics = WidgetMetrics()
        self.downloads: list[Path] = []

        self._driver_factory = driver_factory
        self._on_close = on_close
        self._worker = worker or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="invocursor-page"
        )
        self._runner: Optional[PlanRunner] = None
        self._log_lock = threading.Lock()
        self._messages: list[dict[str, str]] = [
            {"role": "assistant", "content": GREETING}
        ]
        self._pending: Optional[Future] = None
        self._expecting_password = False

    # -------------------- queries --------------------

    @property
    def mode(self) -> ExecutionMode:
        return self.session.mode

    def set_mode(self, mode: Union[ExecutionMode, str]) -> None:
        """Selects the cadence for the next plan."""
        self.session.mode = ExecutionMode(mode)

    def messages(self) -> list[dict[str, str]]:
        """Snapshot of the chat log in ``{"role", "content"}`` form."""
        with self._log_lock:
            return [dict(m) for m in self._messages]

    @property
    def busy(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def awaiting_continue(self) -> bool:
        return self._runner is not None and self._runner.awaiting_continue

    @property
    def input_enabled(self) -> bool:
        """Whether a new message may be submitted."""
        if self.busy:
            return False
        return self._runner is None or self._runner.accepts_input

    # -------------------- controls --------------------

    def send_async(self, message: str) -> Future:
        """Submits a message; the returned future completes when handled."""
        self._pending = self._worker.submit(self._handle_message, message)
        return self._pending

    def send(self, message: str) -> None:
        self.send_async(message).result()

    def continue_async(self) -> Future:
        self._pending = self._worker.submit(self._control, "continue_step")
        return self._pending

    def skip_async(self) -> Future:
        self._pending = self._worker.submit(self._control, "skip_remaining")
        return self._pending

    def cancel_async(self) -> Future:
        self._pending = self._worker.submit(self._control, "cancel")
        return self._pending

    def continue_step(self) -> None:
        self.continue_async().result()

    def skip_remaining(self) -> None:
        self.skip_async().result()

    def cancel(self) -> None:
        self.cancel_async().result()

    def close(self) -> None:
        """Releases the page and stops the worker."""
        if self._on_close is not None:
            self._worker.submit(self._on_close).result()
        self._worker.shutdown(wait=True)

    # -------------------- worker-thread internals --------------------

    def _append(self, role: str, content: str) -> None:
        if not content:
            return
        with self._log_lock:
            self._messages.append({"role": role, "content": content})

    def _on_run_event(self, event: RunEvent) -> None:
        self.metrics.record_event(event)
        self._append("assistant", event.message)

    def _runner_for_page(self) -> PlanRunner:
        if self._runner is None:
            driver = self._driver_factory()
            executor = StepExecutor(driver, self.timing)
            self._runner = PlanRunner(executor, on_event=self._on_run_event)
        return self._runner

    def _page_context(self, runner: PlanRunner) -> tuple[str, dict[str, Any]]:
        driver = runner.executor.driver
        try:
            return driver.current_page(), driver.state_snapshot()
        except Exception:
            logger.exception("Could not read page context")
            return "home", {}

    def _handle_message(self, message: str) -> None:
        message = message.strip()
        if not message:
            return

        runner = self._runner_for_page()
        if not runner.accepts_input:
            self._append("assistant", BUSY_NOTICE)
            return

        sensitive = self._expecting_password
        self._append("user", MASKED_PASSWORD if sensitive else message)
        current_page, current_state = self._page_context(runner)

        try:
            if self.conversational:
                response = self.client.chat(
                    ChatRequest(
                        message=message,
                        current_page=current_page,
                        current_state=current_state,
                        history=self.session.recent(HISTORY_SENT_PER_REQUEST),
                        config_name=self.config_name,
                        mode=self.session.mode,
                    )
                )
            else:
                steps = self.client.plan(
                    PlanRequest(
                        goal=message,
                        current_page=current_page,
                        config_name=self.config_name,
                    )
                )
                response = ActionResponse(plan=steps)
        except ApiRequestError as e:
            self.metrics.inc("request.failed")
            self._expecting_password = False
            self._append("assistant", f"Sorry, something went wrong: {e}")
            return

        self.metrics.inc(f"response.{response.type}")
        self._expecting_password = isinstance(response, QuestionResponse) and (
            sensitive or is_analytics_request(message)
        )
        if not sensitive:
            self.session.append("user", message)
            self.session.append("assistant", response.message)

        self._dispatch(runner, response)

    def _dispatch(self, runner: PlanRunner, response: ConversationResponse) -> None:
        match response:
            case ActionResponse():
                self._append("assistant", response.message)
                if not response.plan:
                    self._append("assistant", NO_PLAN)
                    return
                try:
                    runner.start(response, self.session.mode)
                except Exception as e:
                    logger.warning("Plan run failed", extra={"error": str(e)})
            case AnalyticsDownloadResponse():
                self._append("assistant", response.message)
                path = self._save_download(response)
                self._append("assistant", f"📥 Saved to `{path}`")
            case ErrorResponse():
                self._append("assistant", f"⚠️ {response.message}")
            case _:
                self._append("assistant", response.message)

    def _save_download(self, response: AnalyticsDownloadResponse) -> Path:
        data = response.download_data
        # never let a server-supplied name escape the download directory
        filename = Path(data.filename).name or "analytics.xlsx"
        self.download_dir.mkdir(parents=True, exist_ok=True)
        path = self.download_dir / filename
        path.write_bytes(base64.b64decode(data.base64))
        self.downloads.append(path)
        logger.info("Analytics workbook saved", extra={"path": str(path)})
        return path

    def _control(self, name: str) -> None:
        runner = self._runner
        if runner is None:
            return
        try:
            getattr(runner, name)()
        except (InvalidRunTransition, RunnerBusyError) as e:
            logger.warning(
                "Runner control ignored", extra={"control": name, "error": str(e)}
            )
        except Exception as e:
            logger.warning(
                "Plan run failed", extra={"control": name, "error": str(e)}
            )
