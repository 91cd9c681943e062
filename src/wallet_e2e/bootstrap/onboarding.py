"""First-run setup: import an existing wallet from a recovery phrase.

:class:`SeedPhraseImport` is the default ``setup`` collaborator for
:class:`~wallet_e2e.bootstrap.orchestrator.BootstrapOrchestrator`. It
walks the onboarding screens once; the orchestrator re-probes
afterwards and decides whether setup actually took.
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger
from . import selectors as sel
from .readiness import Clock, Sleep

logger = get_logger(__name__)

_AGREE = re.compile(r'i agree|confirm|continue', re.IGNORECASE)


class SeedPhraseImport:
    """Import a wallet through the extension's onboarding flow.

    Args:
        seed_phrase: 12-24 word recovery phrase.
        password: Password set for the imported wallet.
        confirm_timeout_s: How long the import button may stay disabled.
        sleep: Injectable sleep.
        clock: Injectable monotonic clock.
    """

    def __init__(
        self,
        seed_phrase: str,
        password: str,
        *,
        confirm_timeout_s: float = 45.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._words = seed_phrase.split()
        if len(self._words) not in (12, 15, 18, 21, 24):
            raise ValueError(f'expected a 12-24 word recovery phrase, got {len(self._words)} words')
        self._password = password
        self._confirm_timeout_s = confirm_timeout_s
        self._sleep = sleep
        self._clock = clock

    async def __call__(self, context: Any, page: Any) -> None:
        await _check_if_unchecked(page.get_by_test_id('onboarding-terms-checkbox'))

        import_button = page.get_by_test_id('onboarding-import-wallet')
        if not await _click_if_visible(import_button):
            await sel.ONBOARDING_EXISTING.locate(page).click()
        await page.get_by_test_id('onboarding-import-with-srp-button').click()

        mode = await self._fill_phrase(page)
        logger.info('onboarding_phrase_filled', mode=mode, words=len(self._words))

        confirm = page.get_by_test_id('import-srp-confirm')
        if not await self._wait_enabled(confirm):
            raise RuntimeError('onboarding-import-confirm-disabled')
        await confirm.click()

        await page.get_by_test_id('create-password-new-input').fill(self._password)
        await page.get_by_test_id('create-password-confirm-input').fill(self._password)
        await _check_if_unchecked(page.get_by_test_id('create-password-terms'))
        await page.get_by_test_id('create-password-submit').click()

        if not await _click_if_visible(page.get_by_test_id('metametrics-i-agree')):
            await _click_if_visible(page.get_by_role('button', name=_AGREE).first)

        # The "open wallet" screen is left for the orchestrator to settle.
        logger.info(
            'onboarding_complete',
            open_wallet_visible=await _visible(sel.OPEN_WALLET.locate(page)),
        )

    async def _fill_phrase(self, page: Any) -> str:
        textarea = page.get_by_test_id('srp-input-import__srp-note')
        if await _visible(textarea):
            await textarea.fill(' '.join(self._words))
            return 'textarea'
        for index, word in enumerate(self._words):
            await page.get_by_test_id(f'import-srp__srp-word-{index}').fill(word)
        return 'word-inputs'

    async def _wait_enabled(self, locator: Any) -> bool:
        deadline = self._clock() + self._confirm_timeout_s
        while True:
            try:
                if await locator.is_enabled():
                    return True
            except PlaywrightError:
                pass
            if self._clock() >= deadline:
                return False
            await self._sleep(0.5)


async def _visible(locator: Any) -> bool:
    try:
        return bool(await locator.is_visible())
    except PlaywrightError:
        return False


async def _click_if_visible(locator: Any) -> bool:
    if not await _visible(locator):
        return False
    await locator.click()
    return True


async def _check_if_unchecked(locator: Any) -> None:
    if not await _visible(locator):
        return
    try:
        checked = await locator.is_checked()
    except PlaywrightError:
        checked = False
    if not checked:
        await locator.click()
