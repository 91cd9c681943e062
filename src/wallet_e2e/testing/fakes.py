"""In-memory stand-ins for the Playwright surface used by the harness.

These fakes let the bootstrap loop, drivers and runner be exercised
deterministically without a browser. Locators are keyed the same way
:class:`~wallet_e2e.bootstrap.selectors.Selector` resolves them, so a
test can flip visibility on exactly the affordance a selector targets.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..bootstrap.selectors import Selector
from ..bootstrap.snapshot import UIStateSnapshot

LocatorKey = tuple[str, ...]

TARGET_CLOSED_MESSAGE = 'Target page, context or browser has been closed'


def selector_key(selector: Selector) -> LocatorKey:
    """Key a :class:`Selector` resolves to on a :class:`FakePage`."""
    if selector.kind == 'role':
        return ('role', selector.value, selector.name.pattern if selector.name else '')
    return (selector.kind, selector.value)


@dataclass
class FakeLocator:
    """A single UI element with scriptable state."""
    visible: bool = False
    enabled: bool = True
    checked: bool = False
    text: str = ''
    error: Exception | None = None
    on_click: Callable[[], None] | None = None
    clicks: int = 0
    fills: list[str] = field(default_factory=list)

    @property
    def first(self) -> FakeLocator:
        return self

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def is_visible(self) -> bool:
        self._check()
        return self.visible

    async def is_enabled(self) -> bool:
        self._check()
        return self.enabled

    async def is_checked(self) -> bool:
        self._check()
        return self.checked

    async def inner_text(self) -> str:
        self._check()
        return self.text

    async def click(self) -> None:
        self._check()
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()

    async def fill(self, value: str) -> None:
        self._check()
        self.fills.append(value)


EvaluateHandler = Callable[[str, Any], Any]


class FakePage:
    """Page double recording navigation and script evaluation.

    ``evaluate`` is answered by ``evaluate_handler(script, arg)``; it
    may return a value or raise. Without a handler it returns None.
    """

    def __init__(
        self,
        url: str = 'about:blank',
        *,
        title: str = '',
        evaluate_handler: EvaluateHandler | None = None,
    ) -> None:
        self.url = url
        self.title_text = title
        self.evaluate_handler = evaluate_handler
        self.closed = False
        self.goto_error: Exception | None = None
        self.locators: dict[LocatorKey, FakeLocator] = {}
        self.visits: list[str] = []
        self.reloads = 0
        self.init_scripts: list[str] = []
        self.evaluations: list[tuple[str, Any]] = []

    # ── Locators ──

    def _get(self, key: LocatorKey) -> FakeLocator:
        return self.locators.setdefault(key, FakeLocator())

    def get_by_role(self, role: str, name: Any = None) -> FakeLocator:
        pattern = getattr(name, 'pattern', name) or ''
        return self._get(('role', role, pattern))

    def get_by_test_id(self, test_id: str) -> FakeLocator:
        return self._get(('test_id', test_id))

    def locator(self, css: str) -> FakeLocator:
        return self._get(('css', css))

    def element(self, selector: Selector) -> FakeLocator:
        """The fake a :class:`Selector` resolves to on this page."""
        return self._get(selector_key(selector))

    def show(self, *selectors: Selector, visible: bool = True) -> None:
        for selector in selectors:
            self.element(selector).visible = visible

    # ── Page API ──

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    async def title(self) -> str:
        self._check_open()
        return self.title_text

    async def goto(self, url: str, **_: Any) -> None:
        self._check_open()
        if self.goto_error is not None:
            raise self.goto_error
        self.visits.append(url)
        self.url = url

    async def reload(self, **_: Any) -> None:
        self._check_open()
        self.reloads += 1

    async def bring_to_front(self) -> None:
        self._check_open()

    async def add_init_script(self, script: str | None = None, **_: Any) -> None:
        self.init_scripts.append(script or '')

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._check_open()
        self.evaluations.append((script, arg))
        if self.evaluate_handler is None:
            return None
        return self.evaluate_handler(script, arg)

    async def wait_for_function(
        self, expression: str, *, arg: Any = None, timeout: float | None = None, **_: Any,
    ) -> bool:
        if await self.evaluate(expression, arg):
            return True
        raise PlaywrightTimeoutError(f'Timeout {timeout}ms exceeded.')

    def _check_open(self) -> None:
        if self.closed:
            raise PlaywrightError(TARGET_CLOSED_MESSAGE)


@dataclass
class FakeWorker:
    url: str


class FakeContext:
    """Browser context double holding pages, workers and queued events."""

    def __init__(self, pages: list[FakePage] | None = None) -> None:
        self._pages: list[FakePage] = list(pages or [])
        self.service_workers: list[FakeWorker] = []
        self.pending_events: dict[str, list[Any]] = {}
        self.page_factory: Callable[[], FakePage] = FakePage
        self.closed = False

    @property
    def pages(self) -> list[FakePage]:
        return list(self._pages)

    def add_page(self, page: FakePage) -> FakePage:
        self._pages.append(page)
        return page

    async def new_page(self) -> FakePage:
        return self.add_page(self.page_factory())

    async def wait_for_event(self, event: str, timeout: float | None = None, **_: Any) -> Any:
        queued = self.pending_events.get(event) or []
        if queued:
            value = queued.pop(0)
            if isinstance(value, FakePage):
                self.add_page(value)
            return value
        raise PlaywrightTimeoutError(f'Timeout {timeout}ms exceeded while waiting for event "{event}"')

    async def close(self) -> None:
        self.closed = True


class ScriptedProbe:
    """Probe returning a fixed sequence of snapshots.

    The last snapshot repeats once the sequence is exhausted. An entry
    may be an exception instance, which is raised instead.
    """

    def __init__(self, snapshots: list[UIStateSnapshot | BaseException]) -> None:
        if not snapshots:
            raise ValueError('ScriptedProbe needs at least one snapshot')
        self._snapshots = list(snapshots)
        self._index = 0
        self.pages: list[Any] = []

    @property
    def calls(self) -> int:
        return len(self.pages)

    async def __call__(self, page: Any) -> UIStateSnapshot:
        self.pages.append(page)
        item = self._snapshots[min(self._index, len(self._snapshots) - 1)]
        self._index += 1
        if isinstance(item, BaseException):
            raise item
        return item


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingActions:
    """``WalletUiActions`` fake that records every call."""

    def __init__(
        self,
        *,
        locale: str = 'en-us',
        settle_result: bool = True,
        on_restart: Callable[[Any], None] | None = None,
    ) -> None:
        self.locale = locale
        self.settle_result = settle_result
        self.on_restart = on_restart
        self.calls: list[tuple[str, Any]] = []

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def restart(self, page: Any) -> None:
        self.calls.append(('restart', page))
        if self.on_restart is not None:
            self.on_restart(page)

    async def unlock(self, page: Any, password: str) -> None:
        self.calls.append(('unlock', password))

    async def settle_open_wallet(self, page: Any) -> bool:
        self.calls.append(('settle_open_wallet', page))
        return self.settle_result

    async def read_locale(self, page: Any) -> str:
        self.calls.append(('read_locale', page))
        return self.locale

    async def reload(self, page: Any) -> None:
        self.calls.append(('reload', page))


class RecordingSetup:
    """First-run setup collaborator that records its invocations."""

    def __init__(self, on_call: Callable[[Any, Any], None] | None = None) -> None:
        self.on_call = on_call
        self.calls: list[tuple[Any, Any]] = []

    async def __call__(self, context: Any, page: Any) -> None:
        self.calls.append((context, page))
        if self.on_call is not None:
            self.on_call(context, page)
