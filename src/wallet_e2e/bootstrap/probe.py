"""Fault-isolated sampling of wallet extension UI signals.

Every signal is checked on its own under a short timeout. A check that
raises or times out resolves to its default (``False`` / ``'unknown'``)
and sampling continues, so one missing element never aborts the whole
snapshot. The probe has no side effects on the page.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..observability import get_logger
from . import selectors as sel
from .selectors import Selector
from .snapshot import UNKNOWN, UIStateSnapshot

logger = get_logger(__name__)

T = TypeVar('T')

# field name -> selectors; the field is visible if any selector is.
DEFAULT_SIGNALS: tuple[tuple[str, tuple[Selector, ...]], ...] = (
    ('onboarding_visible', (sel.ONBOARDING_EXISTING, sel.ONBOARDING_CREATE)),
    ('open_wallet_visible', (sel.OPEN_WALLET,)),
    ('unlock_visible', (sel.UNLOCK_PASSWORD,)),
    ('network_visible', (sel.NETWORK_DISPLAY,)),
    ('account_menu_visible', (sel.ACCOUNT_MENU,)),
    ('account_options_visible', (sel.ACCOUNT_OPTIONS,)),
    ('app_header_logo_visible', (sel.APP_HEADER_LOGO,)),
    ('crash_visible', (sel.CRASH_HEADING,)),
    ('crash_restart_visible', (sel.CRASH_RESTART,)),
    ('loading_logo_visible', (sel.LOADING_LOGO,)),
    ('loading_spinner_visible', (sel.LOADING_SPINNER,)),
    ('loading_overlay_visible', (sel.LOADING_OVERLAY,)),
)

DEFAULT_CHECK_TIMEOUT_S = 2.0
BODY_SAMPLE_CHARS = 180


class StateProbe:
    """Sample a :class:`UIStateSnapshot` from a Playwright page.

    Args:
        signals: Field-to-selector table. Defaults to the extension's
            known affordances.
        check_timeout_s: Upper bound for each individual signal check.
        body_sample_chars: Length cap of the body text excerpt.
    """

    def __init__(
        self,
        *,
        signals: tuple[tuple[str, tuple[Selector, ...]], ...] = DEFAULT_SIGNALS,
        check_timeout_s: float = DEFAULT_CHECK_TIMEOUT_S,
        body_sample_chars: int = BODY_SAMPLE_CHARS,
    ) -> None:
        self._signals = signals
        self._check_timeout_s = check_timeout_s
        self._body_sample_chars = body_sample_chars

    async def __call__(self, page: Any) -> UIStateSnapshot:
        return await self.probe(page)

    async def probe(self, page: Any) -> UIStateSnapshot:
        """Capture one snapshot of *page*. Never raises."""
        values: dict[str, Any] = {
            'page_url': await self._safe('page_url', lambda: _read_url(page), UNKNOWN),
            'page_title': await self._safe('page_title', lambda: page.title(), UNKNOWN),
            'body_text_sample': await self._safe(
                'body_text_sample', lambda: self._body_sample(page), '',
            ),
        }

        for field_name, field_selectors in self._signals:
            values[field_name] = await self._any_visible(page, field_name, field_selectors)

        if values.get('open_wallet_visible'):
            values['open_wallet_enabled'] = await self._safe(
                'open_wallet_enabled',
                lambda: sel.OPEN_WALLET.locate(page).is_enabled(),
                False,
            )

        return UIStateSnapshot(**values)

    async def _any_visible(
        self,
        page: Any,
        field_name: str,
        field_selectors: tuple[Selector, ...],
    ) -> bool:
        for selector in field_selectors:
            visible = await self._safe(
                field_name,
                lambda selector=selector: selector.locate(page).is_visible(),
                False,
            )
            if visible:
                return True
        return False

    async def _body_sample(self, page: Any) -> str:
        text = await sel.BODY.locate(page).inner_text()
        return ' '.join(str(text).split())[: self._body_sample_chars]

    async def _safe(
        self,
        label: str,
        check: Callable[[], Awaitable[T]],
        default: T,
    ) -> T:
        try:
            result = await asyncio.wait_for(check(), timeout=self._check_timeout_s)
        except Exception as exc:
            logger.debug('signal_check_defaulted', signal=label, error=str(exc))
            return default
        if isinstance(default, bool):
            return bool(result)
        return str(result)


async def _read_url(page: Any) -> str:
    return str(page.url)
