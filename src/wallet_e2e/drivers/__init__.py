"""Wallet drivers: the capability contract and its implementations."""

from .bridge import (
    AppCommandBridge,
    BridgeCommandError,
    BridgeError,
    BridgeProtocolError,
    BridgeResponse,
    BridgeTimeoutError,
)
from .contract import (
    DIAGNOSTICS_KEYS,
    WALLET_DRIVER_METHODS,
    WalletDiagnostics,
    WalletDriver,
    WalletDriverContractError,
    assert_wallet_driver_contract,
    collect_provider_diagnostics,
    missing_wallet_driver_methods,
)
from .extension import RealExtensionDriver
from .factory import (
    DRIVER_MODES,
    UnsupportedDriverModeError,
    create_wallet_driver,
    resolve_driver_mode,
)
from .simulated import DEFAULT_TEST_ACCOUNTS, SimulatedProviderDriver

__all__ = [
    'DEFAULT_TEST_ACCOUNTS',
    'DIAGNOSTICS_KEYS',
    'DRIVER_MODES',
    'WALLET_DRIVER_METHODS',
    'AppCommandBridge',
    'BridgeCommandError',
    'BridgeError',
    'BridgeProtocolError',
    'BridgeResponse',
    'BridgeTimeoutError',
    'RealExtensionDriver',
    'SimulatedProviderDriver',
    'UnsupportedDriverModeError',
    'WalletDiagnostics',
    'WalletDriver',
    'WalletDriverContractError',
    'assert_wallet_driver_contract',
    'collect_provider_diagnostics',
    'create_wallet_driver',
    'missing_wallet_driver_methods',
    'resolve_driver_mode',
]
