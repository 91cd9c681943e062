"""WalletDriver capability contract.

Scenarios only ever talk to a :class:`WalletDriver`. Two conforming
implementations exist: one drives a real extension's UI, the other
injects a scriptable in-page provider. Third-party drivers can be
checked with :func:`assert_wallet_driver_contract`, which both built-in
drivers also call from their constructors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger

logger = get_logger(__name__)

WALLET_DRIVER_METHODS: tuple[str, ...] = (
    'bootstrap_wallet',
    'connect_to_dapp',
    'approve_signature',
    'approve_transaction',
    'approve_network_change',
    'recover_from_failure',
    'collect_wallet_diagnostics',
)

DIAGNOSTICS_KEYS: tuple[str, ...] = ('driver', 'hasProvider', 'chainId', 'accounts')

# Reads the injected provider's view of the wallet; each request is
# isolated so a missing method never hides the others.
DIAGNOSTICS_JS = """
async () => {
  const provider = window.ethereum;
  let chainId = null;
  let accounts = [];
  if (provider) {
    try { chainId = await provider.request({ method: 'eth_chainId' }); } catch (_e) { chainId = null; }
    try { accounts = await provider.request({ method: 'eth_accounts' }); } catch (_e) { accounts = []; }
  }
  return { hasProvider: Boolean(provider), chainId, accounts: Array.isArray(accounts) ? accounts : [] };
}
"""


@runtime_checkable
class WalletDriver(Protocol):
    """Capabilities every wallet driver exposes to scenarios.

    Approval methods are best-effort: with no approval surface they log
    and return without raising. Scenario verdicts come from the
    provider request's own result.
    """

    async def bootstrap_wallet(self, *args: Any, **kwargs: Any) -> Any: ...
    async def connect_to_dapp(self) -> Any: ...
    async def approve_signature(self, **kwargs: Any) -> Any: ...
    async def approve_transaction(self, **kwargs: Any) -> Any: ...
    async def approve_network_change(self, **kwargs: Any) -> Any: ...
    async def recover_from_failure(self, kind: str, payload: Any = None) -> dict[str, Any]: ...
    async def collect_wallet_diagnostics(self) -> dict[str, Any]: ...


class WalletDriverContractError(TypeError):
    """Raised when an object does not implement the driver contract."""

    def __init__(self, label: str, missing_methods: tuple[str, ...] = ()) -> None:
        self.label = label
        self.missing_methods = missing_methods
        if missing_methods:
            message = f'{label}-missing-methods:{",".join(missing_methods)}'
        else:
            message = f'{label}-invalid-instance'
        super().__init__(message)


def missing_wallet_driver_methods(driver: Any) -> tuple[str, ...]:
    """Return the sorted names of required methods *driver* lacks."""
    return tuple(sorted(
        name for name in WALLET_DRIVER_METHODS
        if not callable(getattr(driver, name, None))
    ))


def assert_wallet_driver_contract(driver: Any, label: str = 'wallet-driver') -> None:
    """Fail fast unless every contract method is callable on *driver*.

    Raises:
        WalletDriverContractError: Naming every missing method, sorted.
    """
    if driver is None:
        raise WalletDriverContractError(label)
    missing = missing_wallet_driver_methods(driver)
    if missing:
        raise WalletDriverContractError(label, missing)


@dataclass(frozen=True, slots=True)
class WalletDiagnostics:
    """Driver-independent view of the wallet as seen by the dapp."""

    driver: str
    has_provider: bool
    chain_id: str | None = None
    accounts: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_provider_probe(cls, driver: str, raw: Any) -> WalletDiagnostics:
        """Build from the :data:`DIAGNOSTICS_JS` evaluation result."""
        data = raw if isinstance(raw, dict) else {}
        accounts = data.get('accounts') or []
        chain_id = data.get('chainId')
        return cls(
            driver=driver,
            has_provider=bool(data.get('hasProvider')),
            chain_id=str(chain_id) if chain_id is not None else None,
            accounts=tuple(str(a) for a in accounts),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'driver': self.driver,
            'hasProvider': self.has_provider,
            'chainId': self.chain_id,
            'accounts': list(self.accounts),
        }


async def collect_provider_diagnostics(page: Any, driver: str) -> dict[str, Any]:
    """Evaluate :data:`DIAGNOSTICS_JS` on the dapp page.

    An unreachable page yields ``hasProvider=False`` rather than an
    error, so both drivers always return the same key set.
    """
    try:
        raw = await page.evaluate(DIAGNOSTICS_JS)
    except PlaywrightError as exc:
        logger.info('diagnostics_unavailable', driver=driver, error=str(exc))
        raw = None
    return WalletDiagnostics.from_provider_probe(driver, raw).to_dict()
