"""Driver selection by mode name."""

from __future__ import annotations

from typing import Any

from ..bootstrap import BootstrapOrchestrator, ExtensionSession
from .contract import WalletDriver
from .extension import RealExtensionDriver
from .simulated import SimulatedProviderDriver

EXTENSION_MODE = 'extension'
SIMULATED_MODE = 'simulated'
DRIVER_MODES: tuple[str, ...] = (EXTENSION_MODE, SIMULATED_MODE)
DEFAULT_DRIVER_MODE = EXTENSION_MODE


class UnsupportedDriverModeError(ValueError):
    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(
            f'unsupported-driver-mode:{mode}:expected-{"|".join(DRIVER_MODES)}',
        )


def resolve_driver_mode(value: str | None) -> str:
    """Normalize *value*; empty means the default mode."""
    mode = (value or DEFAULT_DRIVER_MODE).strip().lower()
    if mode not in DRIVER_MODES:
        raise UnsupportedDriverModeError(mode)
    return mode


def create_wallet_driver(
    mode: str | None,
    *,
    page: Any,
    base_url: str | None = None,
    session: ExtensionSession | None = None,
    orchestrator: BootstrapOrchestrator | None = None,
    **options: Any,
) -> WalletDriver:
    """Build the driver for *mode*.

    The extension driver needs ``session`` and ``orchestrator``; the
    simulated driver needs ``base_url``. Remaining keyword options are
    passed to the driver constructor.

    Raises:
        UnsupportedDriverModeError: For an unknown mode.
        ValueError: When a required collaborator is missing.
    """
    resolved = resolve_driver_mode(mode)
    if resolved == EXTENSION_MODE:
        if session is None or orchestrator is None:
            raise ValueError('extension driver requires session and orchestrator')
        return RealExtensionDriver(session, page, orchestrator, **options)

    if not base_url:
        raise ValueError('simulated driver requires base_url')
    return SimulatedProviderDriver(page, base_url=base_url, **options)
