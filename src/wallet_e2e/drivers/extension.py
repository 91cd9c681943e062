"""WalletDriver backed by a real wallet extension's UI."""

from __future__ import annotations

import asyncio
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..bootstrap import BootstrapOrchestrator, BootstrapResult, ExtensionSession
from ..bootstrap import selectors as sel
from ..bootstrap.readiness import Sleep
from ..observability import get_logger
from .contract import assert_wallet_driver_contract, collect_provider_diagnostics

logger = get_logger(__name__)

DRIVER_NAME = 'extension'
NOTIFICATION_PATH = 'notification.html'

# Failure kinds that a fresh bootstrap run knows how to clear.
BOOTSTRAP_RECOVERABLE_KINDS = frozenset({'crash', 'locked', 'onboarding', 'bootstrap'})


class RealExtensionDriver:
    """Drive approvals through the extension's notification windows.

    Args:
        session: Extension session for the run.
        dapp_page: Page hosting the application under test.
        orchestrator: Bootstrap state machine for ``session``.
        approval_attempts: Upper bound on surface scans per approval.
        min_scans: Scans to keep going after the first click, since a
            single approval can span several confirmation screens.
        page_event_timeout_ms: How long one scan waits for a new window.
        click_settle_s: Pause after each click.
        sleep: Injectable sleep.
    """

    name = DRIVER_NAME

    def __init__(
        self,
        session: ExtensionSession,
        dapp_page: Any,
        orchestrator: BootstrapOrchestrator,
        *,
        approval_attempts: int = 12,
        min_scans: int = 3,
        page_event_timeout_ms: float = 500,
        click_settle_s: float = 0.25,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session
        self._dapp_page = dapp_page
        self._orchestrator = orchestrator
        self._approval_attempts = approval_attempts
        self._min_scans = min_scans
        self._page_event_timeout_ms = page_event_timeout_ms
        self._click_settle_s = click_settle_s
        self._sleep = sleep
        self.last_bootstrap: BootstrapResult | None = None
        assert_wallet_driver_contract(self, 'extension-driver')

    @property
    def session(self) -> ExtensionSession:
        return self._session

    async def bootstrap_wallet(self) -> BootstrapResult:
        self.last_bootstrap = await self._orchestrator.run()
        return self.last_bootstrap

    async def connect_to_dapp(self) -> bool:
        return await self._approve_from_extension_surfaces('connect_to_dapp')

    async def approve_signature(self, **_: Any) -> bool:
        return await self._approve_from_extension_surfaces('approve_signature')

    async def approve_transaction(self, **_: Any) -> bool:
        return await self._approve_from_extension_surfaces('approve_transaction')

    async def approve_network_change(self, **_: Any) -> bool:
        """Approve the add-network prompt, then the switch prompt."""
        added = await self._approve_from_extension_surfaces('approve_add_network')
        switched = await self._approve_from_extension_surfaces('approve_switch_network')
        return added or switched

    async def recover_from_failure(self, kind: str, payload: Any = None) -> dict[str, Any]:
        if kind not in BOOTSTRAP_RECOVERABLE_KINDS:
            logger.info('recovery_unsupported', driver=self.name, kind=kind)
            return {'recovered': False, 'kind': kind, 'reason': 'unsupported-kind'}

        result = await self.bootstrap_wallet()
        return {
            'recovered': True,
            'kind': kind,
            'delegatedTo': 'bootstrap',
            'usedRecovery': result.used_recovery,
            'usedUnlock': result.used_unlock,
            'softReady': result.soft_ready,
        }

    async def collect_wallet_diagnostics(self) -> dict[str, Any]:
        return await collect_provider_diagnostics(self._dapp_page, self.name)

    # ── Approval surfaces ───────────────────────────────────────────

    async def _approve_from_extension_surfaces(self, action: str) -> bool:
        """Click confirm-like controls on every extension window.

        Returns True if anything was clicked. Never raises.
        """
        clicks = 0
        opened = None
        try:
            opened = await self._ensure_notification_window()
            for scan in range(self._approval_attempts):
                for page in self._session.extension_pages():
                    clicks += await self._click_approval_controls(page)
                if clicks and scan + 1 >= self._min_scans:
                    break
                await self._wait_for_new_window()
        except PlaywrightError as exc:
            logger.warning('approval_scan_failed', action=action, error=str(exc))
        finally:
            if opened is not None:
                await _close_quietly(opened)

        if not clicks:
            logger.info('driver_action_unavailable', driver=self.name, action=action)
            return False
        logger.info('driver_action_approved', driver=self.name, action=action, clicks=clicks)
        return True

    async def _ensure_notification_window(self) -> Any:
        """Open the notification page if none is open.

        Returns the window this call opened, or None when one was
        already present. The caller closes what it opened.
        """
        notification_url = self._session.url_for(NOTIFICATION_PATH)
        if any(p.url.startswith(notification_url) for p in self._session.extension_pages()):
            return None
        page = await self._session.context.new_page()
        try:
            await page.goto(notification_url)
        except PlaywrightError as exc:
            logger.info('notification_open_failed', error=str(exc))
        return page

    async def _wait_for_new_window(self) -> None:
        try:
            await self._session.context.wait_for_event(
                'page', timeout=self._page_event_timeout_ms,
            )
        except PlaywrightError:
            pass

    async def _click_approval_controls(self, page: Any) -> int:
        clicks = 0
        candidates = [page.get_by_test_id(test_id).first for test_id in sel.APPROVAL_TEST_IDS]
        candidates.append(sel.GENERIC_APPROVAL.locate(page))
        for locator in candidates:
            if await _click_if_ready(locator):
                clicks += 1
                await self._sleep(self._click_settle_s)
        return clicks


async def _close_quietly(page: Any) -> None:
    if page.is_closed():
        return
    try:
        await page.close()
    except PlaywrightError as exc:
        logger.info('notification_close_failed', error=str(exc))


async def _click_if_ready(locator: Any) -> bool:
    try:
        if not await locator.is_visible() or not await locator.is_enabled():
            return False
        await locator.click()
    except PlaywrightError:
        return False
    return True
