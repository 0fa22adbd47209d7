"""Page drivers: the only code that touches the host page's DOM.

``PageDriver`` is the narrow interface the step executor needs: locate
elements, animate the visible pointer, and perform the DOM mutations a
human would. ``PlaywrightPageDriver`` implements it over a Playwright
``Page`` by injecting a small overlay (pointer, click ripple, highlight)
into the page.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import ElementHandle, Page

from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

ACTIVE_TAB_SELECTOR = '.nav-tab.active, [data-active="true"], .tab.active'

OVERLAY_JS = """
() => {
  if (window.__invocursor) return;
  const style = document.createElement('style');
  style.textContent = `
    #cp-cursor { position: fixed; width: 24px; height: 24px; pointer-events: none;
      z-index: 999999; opacity: 0; transition: opacity 0.3s;
      filter: drop-shadow(0 2px 8px rgba(245, 158, 11, 0.6)); }
    #cp-cursor.visible { opacity: 1; }
    #cp-click-ripple { position: fixed; width: 40px; height: 40px; border-radius: 50%;
      background: rgba(245, 158, 11, 0.4); pointer-events: none; z-index: 999998;
      transform: scale(0); opacity: 0; }
    #cp-click-ripple.animate { animation: cp-ripple 0.4s ease-out forwards; }
    @keyframes cp-ripple { 0% { transform: scale(0); opacity: 1; }
      100% { transform: scale(2); opacity: 0; } }
    .cp-highlight { outline: 3px solid #f59e0b !important; outline-offset: 2px; }
  `;
  document.head.appendChild(style);

  const cursor = document.createElement('div');
  cursor.id = 'cp-cursor';
  cursor.innerHTML = '<svg viewBox="0 0 24 24" width="24" height="24">' +
    '<path d="M4 4l7 17 2-7 7-2L4 4z" fill="#f59e0b" stroke="#fff" stroke-width="1.5"/></svg>';
  document.body.appendChild(cursor);

  const ripple = document.createElement('div');
  ripple.id = 'cp-click-ripple';
  document.body.appendChild(ripple);

  const state = { x: window.innerWidth - 100, y: window.innerHeight - 100 };
  cursor.style.left = state.x + 'px';
  cursor.style.top = state.y + 'px';

  window.__invocursor = {
    move(el, duration) {
      const rect = el.getBoundingClientRect();
      const tx = rect.left + rect.width / 2 - 12;
      const ty = rect.top + rect.height / 2 - 12;
      const sx = state.x, sy = state.y;
      cursor.classList.add('visible');
      return new Promise(resolve => {
        const t0 = performance.now();
        const frame = now => {
          const p = duration > 0 ? Math.min((now - t0) / duration, 1) : 1;
          const eased = 1 - Math.pow(1 - p, 3);
          state.x = sx + (tx - sx) * eased;
          state.y = sy + (ty - sy) * eased;
          cursor.style.left = state.x + 'px';
          cursor.style.top = state.y + 'px';
          if (p < 1) { requestAnimationFrame(frame); }
          else { el.classList.add('cp-highlight'); resolve(); }
        };
        requestAnimationFrame(frame);
      });
    },
    click() {
      ripple.style.left = (state.x + 12 - 20) + 'px';
      ripple.style.top = (state.y + 12 - 20) + 'px';
      ripple.classList.remove('animate');
      void ripple.offsetWidth;
      ripple.classList.add('animate');
    },
    hide() {
      cursor.classList.remove('visible');
      document.querySelectorAll('.cp-highlight')
        .forEach(el => el.classList.remove('cp-highlight'));
    },
  };
}
"""

CURRENT_PAGE_JS = """
(selector) => {
  const active = document.querySelector(selector);
  if (active && active.dataset && active.dataset.page) return active.dataset.page;
  const last = window.location.pathname.split('/').pop();
  return last || 'home';
}
"""

STATE_SNAPSHOT_JS = """
(limit) => {
  const labelFor = el => {
    if (el.id) {
      const lbl = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (lbl && lbl.textContent.trim()) return lbl.textContent.trim();
    }
    if (el.getAttribute('aria-label')) return el.getAttribute('aria-label');
    const wrap = el.closest('label');
    if (wrap && wrap.textContent.trim()) return wrap.textContent.trim();
    return el.name || el.id || null;
  };
  const state = {};
  for (const el of document.querySelectorAll('input, select, textarea')) {
    if (Object.keys(state).length >= limit) break;
    if (el.type === 'hidden' || el.type === 'password') continue;
    if (el.offsetParent === null) continue;
    const label = labelFor(el);
    if (!label) continue;
    state[label] = (el.type === 'checkbox' || el.type === 'radio') ? el.checked : el.value;
  }
  return state;
}
"""


class PageDriver(ABC):
    """DOM operations available to the step executor.

    Element handles are opaque to callers: whatever ``query`` returns is
    passed back unchanged to the other methods.
    """

    @abstractmethod
    def query(self, selector: str) -> Optional[Any]:
        """Returns the first element matching ``selector``, or None."""

    @abstractmethod
    def query_page_control(self, page_id: str) -> Optional[Any]:
        """Returns the page-switch control whose ``data-page`` is ``page_id``."""

    @abstractmethod
    def move_cursor_to(self, element: Any, duration_ms: int) -> None:
        """Animates the pointer to the element and highlights it."""

    @abstractmethod
    def show_click(self) -> None:
        """Starts the click ripple at the pointer position."""

    @abstractmethod
    def hide_cursor(self) -> None:
        """Hides the pointer and clears highlights."""

    @abstractmethod
    def click(self, element: Any) -> None:
        """Fires a primary click on the element."""

    @abstractmethod
    def is_checked(self, element: Any) -> bool:
        pass

    @abstractmethod
    def focus_and_clear(self, element: Any) -> None:
        pass

    @abstractmethod
    def append_text(self, element: Any, text: str) -> None:
        """Appends text to the element's value and fires ``input``."""

    @abstractmethod
    def set_value(self, element: Any, value: str) -> None:
        """Sets the element's value and fires ``change``."""

    @abstractmethod
    def sleep(self, ms: int) -> None:
        pass

    @abstractmethod
    def current_page(self) -> str:
        """Identifier of the page the user is on."""

    @abstractmethod
    def state_snapshot(self) -> dict[str, Any]:
        """Visible control labels mapped to their current values."""


def page_control_selector(page_id: str) -> str:
    escaped = page_id.replace("\\", "\\\\").replace('"', '\\"')
    return f'[data-page="{escaped}"]'


class PlaywrightPageDriver(PageDriver):
    """PageDriver over a Playwright sync ``Page``.

    All calls must come from the thread that created the Playwright
    instance.
    """

    def __init__(self, page: Page, state_limit: int = 50):
        self.page = page
        self.state_limit = state_limit

    def _ensure_overlay(self) -> None:
        # navigation discards injected scripts, so re-check every time
        self.page.evaluate(OVERLAY_JS)

    def query(self, selector: str) -> Optional[ElementHandle]:
        try:
            return self.page.query_selector(selector)
        except PlaywrightError as e:
            logger.warning(
                "Selector could not be evaluated",
                extra={"selector": selector, "error": str(e)},
            )
            return None

    def query_page_control(self, page_id: str) -> Optional[ElementHandle]:
        return self.query(page_control_selector(page_id))

    def move_cursor_to(self, element: ElementHandle, duration_ms: int) -> None:
        self._ensure_overlay()
        element.evaluate(
            "(el, d) => window.__invocursor.move(el, d)", duration_ms
        )

    def show_click(self) -> None:
        self._ensure_overlay()
        self.page.evaluate("() => window.__invocursor.click()")

    def hide_cursor(self) -> None:
        self._ensure_overlay()
        self.page.evaluate("() => window.__invocursor.hide()")

    def click(self, element: ElementHandle) -> None:
        element.evaluate("el => el.click()")

    def is_checked(self, element: ElementHandle) -> bool:
        return bool(element.evaluate("el => !!el.checked"))

    def focus_and_clear(self, element: ElementHandle) -> None:
        element.evaluate("el => { el.focus(); el.value = ''; }")

    def append_text(self, element: ElementHandle, text: str) -> None:
        element.evaluate(
            "(el, ch) => { el.value += ch;"
            " el.dispatchEvent(new Event('input', { bubbles: true })); }",
            text,
        )

    def set_value(self, element: ElementHandle, value: str) -> None:
        element.evaluate(
            "(el, v) => { el.value = v;"
            " el.dispatchEvent(new Event('change', { bubbles: true })); }",
            value,
        )

    def sleep(self, ms: int) -> None:
        if ms > 0:
            self.page.wait_for_timeout(ms)

    def current_page(self) -> str:
        return str(self.page.evaluate(CURRENT_PAGE_JS, ACTIVE_TAB_SELECTOR))

    def state_snapshot(self) -> dict[str, Any]:
        return dict(self.page.evaluate(STATE_SNAPSHOT_JS, self.state_limit))
