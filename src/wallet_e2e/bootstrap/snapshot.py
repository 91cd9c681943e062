"""UI state snapshot and priority-ordered state detection.

A snapshot is a point-in-time read of independent UI signals. Signals
are not mutually exclusive (a crash screen can coexist with a stale
network badge), so :func:`detect_state` resolves conflicts through the
fixed priority table :data:`STATE_PRIORITY`:

  CRASHED > LOCKED > OPEN_WALLET_PROMPT > ONBOARDING > LOADING > READY
  > INDETERMINATE
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

UNKNOWN = 'unknown'


class UIState(str, Enum):
    """Resolved bootstrap state of the wallet extension UI."""

    CRASHED = 'CRASHED'
    LOCKED = 'LOCKED'
    OPEN_WALLET_PROMPT = 'OPEN_WALLET_PROMPT'
    ONBOARDING = 'ONBOARDING'
    LOADING = 'LOADING'
    READY = 'READY'
    INDETERMINATE = 'INDETERMINATE'


@dataclass(frozen=True, slots=True)
class UIStateSnapshot:
    """Independent UI signals sampled from one extension window.

    Every field defaults to "no evidence": ``False`` for visibility
    signals, ``'unknown'`` for URL and title.
    """

    page_url: str = UNKNOWN
    page_title: str = UNKNOWN
    body_text_sample: str = ''
    onboarding_visible: bool = False
    open_wallet_visible: bool = False
    open_wallet_enabled: bool = False
    unlock_visible: bool = False
    network_visible: bool = False
    account_menu_visible: bool = False
    account_options_visible: bool = False
    app_header_logo_visible: bool = False
    crash_visible: bool = False
    crash_restart_visible: bool = False
    loading_logo_visible: bool = False
    loading_spinner_visible: bool = False
    loading_overlay_visible: bool = False

    @property
    def is_ready(self) -> bool:
        """True when any positive ready signal is visible."""
        return (
            self.network_visible
            or self.account_menu_visible
            or self.account_options_visible
            or self.app_header_logo_visible
        )

    @property
    def is_loading(self) -> bool:
        return (
            self.loading_logo_visible
            or self.loading_spinner_visible
            or self.loading_overlay_visible
        )

    @property
    def is_recoverable_crash(self) -> bool:
        """Crash screen with a restart affordance we can click."""
        return self.crash_visible and self.crash_restart_visible

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


STATE_PRIORITY: tuple[tuple[UIState, Callable[[UIStateSnapshot], bool]], ...] = (
    (UIState.CRASHED, lambda s: s.is_recoverable_crash),
    (UIState.LOCKED, lambda s: s.unlock_visible),
    (UIState.OPEN_WALLET_PROMPT, lambda s: s.open_wallet_visible),
    (UIState.ONBOARDING, lambda s: s.onboarding_visible),
    (UIState.LOADING, lambda s: s.is_loading),
    (UIState.READY, lambda s: s.is_ready),
)


def detect_state(snapshot: UIStateSnapshot) -> UIState:
    """Resolve *snapshot* to the highest-priority matching state."""
    for state, matches in STATE_PRIORITY:
        if matches(snapshot):
            return state
    return UIState.INDETERMINATE
