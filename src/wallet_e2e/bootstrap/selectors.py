"""Locator descriptions for the wallet extension UI.

Selectors are plain data so the probe and the recovery actions share
one definition of every affordance, and so fakes can match on them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

SelectorKind = Literal['role', 'test_id', 'css']


@dataclass(frozen=True, slots=True)
class Selector:
    """One UI affordance, resolvable against a Playwright page."""

    kind: SelectorKind
    value: str
    name: re.Pattern[str] | None = None
    first: bool = False

    def locate(self, page: Any) -> Any:
        """Return a Playwright locator for this selector on *page*."""
        if self.kind == 'role':
            locator = page.get_by_role(self.value, name=self.name)
        elif self.kind == 'test_id':
            locator = page.get_by_test_id(self.value)
        else:
            locator = page.locator(self.value)
        return locator.first if self.first else locator


def _button(pattern: str, *, first: bool = False) -> Selector:
    return Selector('role', 'button', re.compile(pattern, re.IGNORECASE), first)


ONBOARDING_EXISTING = _button(r'i have an existing wallet')
ONBOARDING_CREATE = _button(r'create a new wallet')
OPEN_WALLET = _button(r'open wallet', first=True)
MANAGE_DEFAULTS = _button(r'manage default settings', first=True)
PRIVACY_BACK = Selector('test_id', 'privacy-settings-back-button')
UNLOCK_PASSWORD = Selector('test_id', 'unlock-password')
UNLOCK_SUBMIT = Selector('test_id', 'unlock-submit')
NETWORK_DISPLAY = Selector('css', '[data-testid="network-display"]')
ACCOUNT_MENU = Selector('css', '[data-testid="account-menu-icon"]')
ACCOUNT_OPTIONS = Selector('css', '[data-testid="account-options-menu-button"]')
APP_HEADER_LOGO = Selector('css', '[data-testid="app-header-logo"]', first=True)
CRASH_HEADING = Selector(
    'role', 'heading', re.compile(r'had trouble starting', re.IGNORECASE),
)
CRASH_RESTART = _button(r'restart metamask')
LOADING_LOGO = Selector('css', '.loading-logo')
LOADING_SPINNER = Selector(
    'css', '.loading-spinner, .loading-overlay__spinner, .spinner', first=True,
)
LOADING_OVERLAY = Selector('css', '.loading-overlay, .loading-indicator', first=True)
BODY = Selector('css', 'body')

# Confirmation controls on notification/approval surfaces, tried in order.
APPROVAL_TEST_IDS = (
    'confirm-btn',
    'confirm-footer-button',
    'page-container-footer-next',
    'request-confirm-button',
    'allow-authorize-button',
)
GENERIC_APPROVAL = _button(
    r'connect|next|approve|confirm|sign|submit|continue|ok', first=True,
)
