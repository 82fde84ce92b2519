"""
Shared pytest fixtures for the TabGuard test suite.

Provides in-memory fakes for Playwright pages and the CDP connection,
so tool and registry tests run without a real Chrome instance.
"""

import io
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from PIL import Image
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from tabguard.browser.connection import BrowserConnectionError
from tabguard.config import ConfirmationMode, PolicyConfig, SelectorLogMode
from tabguard.core.orchestrator import GuardContext, GuardedTools
from tabguard.core.session_manager import SessionManager


# ---------------------------------------------------------------------------
# Browser fakes
# ---------------------------------------------------------------------------

class FakeCDPSession:
    def __init__(self, target_id: str, window_id: int = 1):
        self.target_id = target_id
        self.window_id = window_id
        self.detached = False

    async def send(self, method, params=None):
        if method == "Target.getTargetInfo":
            return {"targetInfo": {"targetId": self.target_id}}
        if method == "Browser.getWindowForTarget":
            return {"windowId": self.window_id}
        raise PlaywrightError(f"Unsupported CDP method {method}")

    async def detach(self):
        self.detached = True


class FakeBrowserContext:
    """Контекст без CDP: id вкладок назначаются как tab-N."""

    def __init__(self, target_ids: Optional[Dict[int, str]] = None):
        self.target_ids = target_ids or {}
        self.sessions: List[FakeCDPSession] = []

    async def new_cdp_session(self, page):
        target_id = self.target_ids.get(id(page))
        if target_id is None:
            raise PlaywrightError("CDP session unavailable")
        session = FakeCDPSession(target_id)
        self.sessions.append(session)
        return session


class FakeKeyboard:
    def __init__(self, page):
        self._page = page
        self.typed: List[str] = []
        self.pressed: List[str] = []

    async def type(self, text):
        self._page._maybe_fail("keyboard")
        self.typed.append(text)

    async def press(self, key):
        self._page._maybe_fail("keyboard")
        self.pressed.append(key)


def make_png(width: int = 10, height: int = 10) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakePage:
    """
    Минимальная подмена playwright Page.

    elements: селектор -> видимый текст (для eval_on_selector и
    wait_for_selector). Селектор вне elements считается отсутствующим.
    """

    def __init__(
        self,
        url: str = "https://example.com/",
        title: str = "Example",
        text: str = "Hello from example",
        focused: bool = False,
        elements: Optional[Dict[str, str]] = None,
        query_items: Optional[List[dict]] = None,
        png: Optional[bytes] = None,
        context: Optional[FakeBrowserContext] = None,
    ):
        self.url = url
        self._title = title
        self.text = text
        self.focused = focused
        self.elements = dict(elements or {})
        self.query_items = list(query_items or [])
        self.png = png or make_png()
        self.context = context or FakeBrowserContext()
        self.keyboard = FakeKeyboard(self)
        self.closed = False
        self.fail_on: set = set()
        self.clicked: List[str] = []
        self.filled: List[tuple] = []
        self.visited: List[str] = []
        self.brought_to_front = 0
        self.links: Dict[str, str] = {}

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PlaywrightError(f"{operation} failed")

    def is_closed(self) -> bool:
        return self.closed

    async def title(self) -> str:
        self._maybe_fail("title")
        return self._title

    async def evaluate(self, expression, arg=None):
        return self.focused

    async def goto(self, url, wait_until=None):
        self._maybe_fail("goto")
        self.visited.append(url)
        self.url = url

    async def wait_for_load_state(self, state="load", timeout=None):
        self._maybe_fail("load_state")
        if "networkidle_timeout" in self.fail_on and state == "networkidle":
            raise PlaywrightTimeoutError("networkidle timeout")

    async def inner_text(self, selector):
        return self.text

    async def content(self):
        return f"<html><body>{self.text}</body></html>"

    async def eval_on_selector(self, selector, expression, arg=None):
        if selector not in self.elements:
            raise PlaywrightError(f"No element for {selector}")
        return self.elements[selector]

    async def eval_on_selector_all(self, selector, expression, arg=None):
        self._maybe_fail("query")
        limit = (arg or {}).get("limit", len(self.query_items))
        return self.query_items[:limit]

    async def wait_for_selector(self, selector, timeout=None):
        if selector not in self.elements:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {selector}")

    async def click(self, selector):
        self._maybe_fail("click")
        self.clicked.append(selector)
        if selector in self.links:
            self.url = self.links[selector]

    async def fill(self, selector, value):
        self._maybe_fail("fill")
        self.filled.append((selector, value))

    async def screenshot(self, full_page=False, type="png", timeout=None):
        self._maybe_fail("screenshot")
        return self.png

    async def bring_to_front(self):
        self.brought_to_front += 1


class FakeConnection:
    def __init__(self, pages: Optional[List[FakePage]] = None, available: bool = True):
        self.pages = list(pages or [])
        self.available = available

    async def get_all_pages(self):
        if not self.available:
            raise BrowserConnectionError("Failed to connect to Chrome at http://localhost:9222")
        return [page for page in self.pages if not page.is_closed()]


# ---------------------------------------------------------------------------
# Config / guard fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def audit_path(tmp_path) -> Path:
    return tmp_path / "logs" / "audit.log"


@pytest.fixture
def policy_config(audit_path) -> PolicyConfig:
    """Политика: example.com разрешён, подтверждение для чувствительных действий."""
    return PolicyConfig(
        allowed_domains=frozenset({"example.com"}),
        confirmation_mode=ConfirmationMode.CONFIRM_ON_SENSITIVE,
        audit_log_path=audit_path,
        max_steps=30,
        selector_log_mode=SelectorLogMode.PLAINTEXT,
    )


@pytest.fixture
def page() -> FakePage:
    return FakePage(
        url="https://example.com/account",
        title="Account",
        elements={
            "#delete-account": "Delete account",
            "#profile-link": "Profile",
            "#email": "",
        },
    )


@pytest.fixture
def connection(page) -> FakeConnection:
    return FakeConnection([page])


def build_tools(config: PolicyConfig, connection: FakeConnection) -> GuardedTools:
    context = GuardContext(config=config, session=SessionManager(config.max_steps))
    return GuardedTools(context, connection)


@pytest.fixture
def tools(policy_config, connection) -> GuardedTools:
    return build_tools(policy_config, connection)
