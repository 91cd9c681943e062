"""Per-run extension session context and live window re-resolution.

The extension may close and recreate its own windows at any time, so
no page handle is trusted across a wait boundary. The session holds
only what is stable for the run (browser context and extension id);
the live page is re-resolved from it on demand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger
from .errors import TargetClosedError

logger = get_logger(__name__)

EXTENSION_SCHEME = 'chrome-extension'
DEFAULT_ENTRY_PATH = 'home.html'

_TARGET_CLOSED_MARKERS = (
    'target page, context or browser has been closed',
    'target closed',
    'execution context was destroyed',
)


@dataclass(frozen=True, slots=True)
class ExtensionSession:
    """Everything about the automated extension that is stable for one run.

    Attributes:
        context: Playwright ``BrowserContext`` hosting the extension.
        extension_id: Identifier resolved at session start.
        entry_path: Canonical entry page inside the extension.
    """

    context: Any
    extension_id: str
    entry_path: str = DEFAULT_ENTRY_PATH

    @property
    def origin(self) -> str:
        return f'{EXTENSION_SCHEME}://{self.extension_id}/'

    @property
    def home_url(self) -> str:
        return f'{self.origin}{self.entry_path}'

    def url_for(self, path: str) -> str:
        return f'{self.origin}{path.lstrip("/")}'

    def extension_pages(self) -> list[Any]:
        """Open windows on the extension origin."""
        return [
            page for page in self.context.pages
            if not page.is_closed() and page.url.startswith(self.origin)
        ]


def is_target_closed_error(exc: BaseException) -> bool:
    """True for the "target destroyed" class of automation faults."""
    if isinstance(exc, TargetClosedError):
        return True
    if not isinstance(exc, PlaywrightError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _TARGET_CLOSED_MARKERS)


async def resolve_home_page(session: ExtensionSession) -> Any:
    """Return a live window for the extension's canonical entry page.

    Preference order: an open window already on the entry page, any
    window on the extension origin (navigated to the entry page), a
    newly created window.
    """
    pages = session.extension_pages()
    for page in pages:
        if page.url.startswith(session.home_url):
            return page

    if pages:
        page = pages[0]
        logger.info('home_page_renavigate', url=page.url)
    else:
        page = await session.context.new_page()
        logger.info('home_page_created')

    await goto_quietly(page, session.home_url)
    return page


async def goto_quietly(page: Any, url: str) -> None:
    """Navigate, logging (not raising) automation faults."""
    try:
        await page.goto(url)
    except PlaywrightError as exc:
        logger.info('navigation_failed', url=url, error=str(exc))
