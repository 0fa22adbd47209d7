import json
from typing import Any, Optional

import pytest

from invocursor.chat.adapter import PlannerAdapter
from invocursor.errors import PlannerError
from invocursor.execution.dom import PageDriver
from invocursor.persistence.in_memory import InMemoryRepository
from invocursor.registry.config_loader import ConfigLoader


SAMPLE_CONFIG = {
    "app": {"name": "Acme", "description": "Event platform"},
    "pages": {
        "home": {"description": "Landing page", "elements": {}},
        "settings": {
            "description": "Preferences",
            "elements": {
                "#dark-mode": {
                    "type": "checkbox",
                    "label": "Dark Mode",
                    "synonyms": ["night mode"],
                },
                "#event-name": {"type": "text", "label": "Event Name"},
                "#timezone": {"type": "select", "label": "Timezone"},
                "#save": {"type": "button", "label": "Save"},
            },
        },
    },
}


class FakeElement:
    def __init__(
        self,
        selector: str,
        checked: bool = False,
        value: str = "",
        page: Optional[str] = None,
        stuck: bool = False,
    ):
        self.selector = selector
        self.checked = checked
        self.value = value
        self.page = page
        self.stuck = stuck


class FakePageDriver(PageDriver):
    """In-memory page: elements keyed by selector plus a set of page tabs."""

    def __init__(self, elements=None, pages=("home", "settings"), page="home"):
        self.elements: dict[str, FakeElement] = {
            e.selector: e for e in (elements or [])
        }
        self.pages = set(pages)
        self.page = page
        self.calls: list[tuple] = []
        self.slept: list[int] = []

    def query(self, selector: str) -> Optional[FakeElement]:
        return self.elements.get(selector)

    def query_page_control(self, page_id: str) -> Optional[FakeElement]:
        if page_id not in self.pages:
            return None
        return FakeElement(f'[data-page="{page_id}"]', page=page_id)

    def move_cursor_to(self, element: Any, duration_ms: int) -> None:
        self.calls.append(("move", element.selector))

    def show_click(self) -> None:
        self.calls.append(("ripple",))

    def hide_cursor(self) -> None:
        self.calls.append(("hide",))

    def click(self, element: Any) -> None:
        self.calls.append(("click", element.selector))
        if element.page is not None:
            self.page = element.page
        elif not element.stuck:
            element.checked = not element.checked

    def is_checked(self, element: Any) -> bool:
        return element.checked

    def focus_and_clear(self, element: Any) -> None:
        self.calls.append(("clear", element.selector))
        element.value = ""

    def append_text(self, element: Any, text: str) -> None:
        element.value += text

    def set_value(self, element: Any, value: str) -> None:
        self.calls.append(("set", element.selector, value))
        element.value = value

    def sleep(self, ms: int) -> None:
        self.slept.append(ms)

    def current_page(self) -> str:
        return self.page

    def state_snapshot(self) -> dict[str, Any]:
        return {
            sel: el.checked if el.value == "" else el.value
            for sel, el in self.elements.items()
        }


class ScriptedPlanner(PlannerAdapter):
    """Planner returning queued outputs; an exception in the queue is raised."""

    model_name = "scripted"

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls: list[tuple[str, str, bool]] = []

    def complete(self, system_prompt, user_prompt, json_mode=False):
        self.calls.append((system_prompt, user_prompt, json_mode))
        if not self.outputs:
            raise PlannerError("no scripted output left")
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        if isinstance(out, (dict, list)):
            return json.dumps(out)
        return out


@pytest.fixture
def configs_dir(tmp_path):
    path = tmp_path / "configs"
    path.mkdir()
    (path / "acme.json").write_text(json.dumps(SAMPLE_CONFIG))
    return path


@pytest.fixture
def config_loader(configs_dir):
    return ConfigLoader(configs_dir)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def settings_page():
    return FakePageDriver(
        elements=[
            FakeElement("#dark-mode"),
            FakeElement("#event-name", value="Old"),
            FakeElement("#timezone", value="UTC"),
            FakeElement("#save"),
        ],
        page="settings",
    )
