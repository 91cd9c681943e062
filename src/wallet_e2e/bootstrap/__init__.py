"""Bootstrap/readiness state machine for the wallet extension."""

from .actions import ExtensionUiActions, WalletUiActions
from .errors import (
    BOOTSTRAP_NOT_READY,
    LOCALE_MISMATCH,
    ONBOARDING_PERSISTED,
    PAGE_RECOVERY_EXHAUSTED,
    BootstrapError,
    TargetClosedError,
)
from .orchestrator import (
    BootstrapConfig,
    BootstrapOrchestrator,
    BootstrapResult,
    SetupFn,
    SoftReadyPolicy,
    home_soft_ready,
)
from .onboarding import SeedPhraseImport
from .probe import StateProbe
from .readiness import ReadinessWaiter
from .recovery import PageRecovery
from .session import ExtensionSession, is_target_closed_error, resolve_home_page
from .snapshot import STATE_PRIORITY, UIState, UIStateSnapshot, detect_state

__all__ = [
    'BOOTSTRAP_NOT_READY',
    'LOCALE_MISMATCH',
    'ONBOARDING_PERSISTED',
    'PAGE_RECOVERY_EXHAUSTED',
    'STATE_PRIORITY',
    'BootstrapConfig',
    'BootstrapError',
    'BootstrapOrchestrator',
    'BootstrapResult',
    'ExtensionSession',
    'ExtensionUiActions',
    'PageRecovery',
    'ReadinessWaiter',
    'SeedPhraseImport',
    'SetupFn',
    'SoftReadyPolicy',
    'StateProbe',
    'TargetClosedError',
    'UIState',
    'UIStateSnapshot',
    'WalletUiActions',
    'detect_state',
    'home_soft_ready',
    'is_target_closed_error',
    'resolve_home_page',
]
