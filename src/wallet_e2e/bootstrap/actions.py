"""Recovery actions the orchestrator applies to the extension UI.

The orchestrator only talks to :class:`WalletUiActions`; the default
:class:`ExtensionUiActions` drives a real extension through Playwright
locators, and tests substitute a recording fake.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger
from . import selectors as sel
from .readiness import Sleep
from .snapshot import UNKNOWN

logger = get_logger(__name__)

_LOCALE_JS = (
    "() => navigator.language || "
    "((navigator.languages && navigator.languages[0]) || 'unknown')"
)


@runtime_checkable
class WalletUiActions(Protocol):
    """UI-level recovery primitives used by the bootstrap loop."""

    async def restart(self, page: Any) -> None: ...
    async def unlock(self, page: Any, password: str) -> None: ...
    async def settle_open_wallet(self, page: Any) -> bool: ...
    async def read_locale(self, page: Any) -> str: ...
    async def reload(self, page: Any) -> None: ...


class ExtensionUiActions:
    """Playwright implementation of :class:`WalletUiActions`.

    Args:
        sleep: Injectable sleep for settle pauses.
        settle_s: Pause after clicks that trigger UI transitions.
        restart_settle_s: Pause after clicking the crash restart button.
    """

    def __init__(
        self,
        *,
        sleep: Sleep = asyncio.sleep,
        settle_s: float = 0.8,
        restart_settle_s: float = 2.0,
    ) -> None:
        self._sleep = sleep
        self._settle_s = settle_s
        self._restart_settle_s = restart_settle_s

    async def restart(self, page: Any) -> None:
        await sel.CRASH_RESTART.locate(page).click()
        await self._sleep(self._restart_settle_s)

    async def unlock(self, page: Any, password: str) -> None:
        await sel.UNLOCK_PASSWORD.locate(page).fill(password)
        await sel.UNLOCK_SUBMIT.locate(page).click()

    async def settle_open_wallet(self, page: Any) -> bool:
        """Dismiss the post-setup "open wallet" prompt.

        When the primary button is disabled, a round trip through the
        default-settings screen usually re-enables it.
        """
        if await self._click_open_wallet(page):
            return True

        manage_defaults = sel.MANAGE_DEFAULTS.locate(page)
        if not await _visible(manage_defaults):
            return False
        await manage_defaults.click()

        back = sel.PRIVACY_BACK.locate(page)
        if not await _visible(back):
            return False
        await back.click()
        await self._sleep(self._settle_s)
        return await self._click_open_wallet(page)

    async def read_locale(self, page: Any) -> str:
        try:
            locale = await page.evaluate(_LOCALE_JS)
        except PlaywrightError:
            return UNKNOWN
        return str(locale or UNKNOWN).lower()

    async def reload(self, page: Any) -> None:
        try:
            await page.reload(wait_until='domcontentloaded')
        except PlaywrightError as exc:
            logger.info('reload_failed', error=str(exc))

    async def _click_open_wallet(self, page: Any) -> bool:
        button = sel.OPEN_WALLET.locate(page)
        if not await _visible(button) or not await _enabled(button):
            return False
        await button.click()
        await self._sleep(self._settle_s)
        return True


async def _visible(locator: Any) -> bool:
    try:
        return bool(await locator.is_visible())
    except PlaywrightError:
        return False


async def _enabled(locator: Any) -> bool:
    try:
        return bool(await locator.is_enabled())
    except PlaywrightError:
        return False
