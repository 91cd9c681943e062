"""WalletDriver backed by a scriptable in-page EIP-1193 provider.

The provider shim is installed as an init script, so it exists before
any application script runs. By default it auto-approves requests with
deterministic results; tests and scenarios can script specific answers
or rejections through ``window.__walletSim``.
"""

from __future__ import annotations

import json
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger
from .bridge import AppCommandBridge
from .contract import assert_wallet_driver_contract, collect_provider_diagnostics

logger = get_logger(__name__)

DRIVER_NAME = 'simulated'

# First accounts of the public development mnemonic used by local chain
# nodes ("test test ... junk").
DEFAULT_TEST_ACCOUNTS: tuple[str, ...] = (
    '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266',
    '0x70997970C51812dc3A010C7d01b50e0d17dc79C8',
    '0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC',
)
DEFAULT_CHAIN_ID = '0x1'
DEFAULT_PERSONAL_SIGNATURE = '0x' + '11' * 65
DEFAULT_TYPED_DATA_SIGNATURE = '0x' + '22' * 65
RECOVERY_EVENTS = frozenset({'accountsChanged', 'chainChanged'})

PROVIDER_SHIM_JS = """
(() => {
  if (window.__walletSim) return;
  const config = %(config)s;
  const state = {
    accounts: [],
    connected: false,
    chainId: config.chainId,
    scripted: new Map(),
    rejections: new Set(),
    listeners: new Map(),
    txCount: 0,
  };
  const key = (method, params) => method + '|' + (params === undefined ? '' : JSON.stringify(params));
  const emit = (event, payload) => {
    for (const fn of state.listeners.get(event) || []) {
      try { fn(payload); } catch (_e) { /* listener faults stay in the app */ }
    }
  };
  const reject = (code, message) => {
    const error = new Error(message);
    error.code = code;
    return Promise.reject(error);
  };
  const answer = (method, params, fallback) => {
    if (state.rejections.has(method)) {
      state.rejections.delete(method);
      return reject(4001, 'User rejected the request.');
    }
    const exact = key(method, params);
    if (state.scripted.has(exact)) return Promise.resolve(state.scripted.get(exact));
    if (state.scripted.has(key(method))) return Promise.resolve(state.scripted.get(key(method)));
    return Promise.resolve(fallback());
  };
  const provider = {
    isWalletSim: true,
    request({ method, params } = {}) {
      switch (method) {
        case 'eth_requestAccounts':
          return answer(method, params, () => { state.connected = true; return state.accounts.slice(); });
        case 'eth_accounts':
          return Promise.resolve(state.connected ? state.accounts.slice() : []);
        case 'eth_chainId':
          return Promise.resolve(state.chainId);
        case 'wallet_addEthereumChain':
          return answer(method, params, () => null);
        case 'wallet_switchEthereumChain':
          return answer(method, params, () => {
            const next = params && params[0] && params[0].chainId;
            if (next && next !== state.chainId) {
              state.chainId = next;
              emit('chainChanged', next);
            }
            return null;
          });
        case 'personal_sign':
          return answer(method, params, () => config.personalSignature);
        case 'eth_signTypedData_v4':
          return answer(method, params, () => config.typedDataSignature);
        case 'eth_sendTransaction':
          return answer(method, params, () => {
            state.txCount += 1;
            return '0x' + state.txCount.toString(16).padStart(64, '0');
          });
        default:
          return reject(4200, 'Unsupported method: ' + method);
      }
    },
    on(event, fn) {
      const list = state.listeners.get(event) || [];
      list.push(fn);
      state.listeners.set(event, list);
      return provider;
    },
    removeListener(event, fn) {
      const list = state.listeners.get(event) || [];
      state.listeners.set(event, list.filter((item) => item !== fn));
      return provider;
    },
  };
  window.ethereum = provider;
  window.__walletSim = {
    importAccounts(accounts) { state.accounts = accounts.slice(); },
    script(method, params, result) { state.scripted.set(key(method, params), result); },
    rejectNext(method) { state.rejections.add(method); },
    emit(event, payload) {
      if (event === 'chainChanged' && payload) state.chainId = payload;
      if (event === 'accountsChanged' && Array.isArray(payload)) state.accounts = payload.slice();
      emit(event, payload);
    },
  };
})();
"""

_REQUEST_JS = """
({ method, params }) => window.ethereum.request(
  params === null ? { method } : { method, params },
)
"""

_IMPORT_ACCOUNTS_JS = '(accounts) => window.__walletSim.importAccounts(accounts)'
_SCRIPT_JS = '({ method, params, result }) => window.__walletSim.script(method, params, result)'
_REJECT_NEXT_JS = '(method) => window.__walletSim.rejectNext(method)'
_EMIT_JS = '({ event, payload }) => window.__walletSim.emit(event, payload)'


def provider_shim_script(
    *,
    chain_id: str = DEFAULT_CHAIN_ID,
    personal_signature: str = DEFAULT_PERSONAL_SIGNATURE,
    typed_data_signature: str = DEFAULT_TYPED_DATA_SIGNATURE,
) -> str:
    """Render :data:`PROVIDER_SHIM_JS` with its configuration inlined."""
    config = json.dumps({
        'chainId': chain_id,
        'personalSignature': personal_signature,
        'typedDataSignature': typed_data_signature,
    })
    return PROVIDER_SHIM_JS % {'config': config}


def to_hex_quantity(value: int | str) -> str:
    """Encode a wei amount as a JSON-RPC hex quantity."""
    if isinstance(value, str):
        value = int(value, 16) if value.lower().startswith('0x') else int(value)
    if value < 0:
        raise ValueError(f'negative quantity: {value}')
    return hex(value)


class SimulatedProviderDriver:
    """Answer wallet requests from a provider injected into the app page.

    Args:
        page: Application page. The shim is registered on it before the
            first navigation.
        base_url: Application URL loaded after the shim is registered.
        accounts: Account set imported by :meth:`bootstrap_wallet`.
        chain_id: Initial chain of the simulated provider.
        bridge: Command bridge into the application; built from
            ``page`` when omitted.
    """

    name = DRIVER_NAME

    def __init__(
        self,
        page: Any,
        *,
        base_url: str,
        accounts: tuple[str, ...] = DEFAULT_TEST_ACCOUNTS,
        chain_id: str = DEFAULT_CHAIN_ID,
        bridge: AppCommandBridge | None = None,
    ) -> None:
        self._page = page
        self._base_url = base_url
        self._accounts = tuple(accounts)
        self._chain_id = chain_id
        self._installed = False
        self.bridge = bridge or AppCommandBridge(page)
        assert_wallet_driver_contract(self, 'simulated-driver')

    @property
    def accounts(self) -> tuple[str, ...]:
        return self._accounts

    async def install(self) -> None:
        """Register the provider shim and load the application once."""
        if self._installed:
            return
        await self._page.add_init_script(script=provider_shim_script(chain_id=self._chain_id))
        await self._page.goto(self._base_url)
        self._installed = True
        logger.info('provider_shim_installed', url=self._base_url, chain_id=self._chain_id)

    async def bootstrap_wallet(self) -> dict[str, Any]:
        await self.install()
        await self._page.evaluate(_IMPORT_ACCOUNTS_JS, list(self._accounts))
        return {'supported': True, 'accounts': list(self._accounts)}

    async def provider_request(self, method: str, params: Any = None) -> Any:
        """Issue an EIP-1193 request through the injected provider."""
        return await self._page.evaluate(_REQUEST_JS, {'method': method, 'params': params})

    async def connect_to_dapp(self) -> list[str]:
        return await self.provider_request('eth_requestAccounts')

    async def approve_signature(
        self,
        *,
        method: str = 'personal_sign',
        params: list[Any] | None = None,
        signature: str | None = None,
    ) -> str | None:
        """Script *signature* for ``(method, params)`` and request it.

        Without params there is no request to answer; the shim's
        auto-approval covers requests issued by the application.
        """
        if not params:
            logger.info('driver_action_unavailable', driver=self.name, action='approve_signature')
            return None
        if signature is None:
            signature = (
                DEFAULT_TYPED_DATA_SIGNATURE if method == 'eth_signTypedData_v4'
                else DEFAULT_PERSONAL_SIGNATURE
            )
        await self.script_response(method, params, signature)
        return await self.provider_request(method, params)

    async def approve_transaction(
        self,
        *,
        to: str | None = None,
        value: int | str = 0,
        sender: str | None = None,
    ) -> str | None:
        if not to:
            logger.info('driver_action_unavailable', driver=self.name, action='approve_transaction')
            return None
        tx = {
            'from': sender or self._accounts[0],
            'to': to,
            'value': to_hex_quantity(value),
        }
        return await self.provider_request('eth_sendTransaction', [tx])

    async def approve_network_change(self, *, chain_id: str | None = None) -> str:
        target = chain_id or self._chain_id
        try:
            await self.provider_request('wallet_switchEthereumChain', [{'chainId': target}])
        except PlaywrightError as exc:
            logger.warning('network_switch_failed', chain_id=target, error=str(exc))
            await self.emit('chainChanged', target)
        return target

    async def recover_from_failure(self, kind: str, payload: Any = None) -> dict[str, Any]:
        if kind not in RECOVERY_EVENTS:
            logger.info('recovery_unsupported', driver=self.name, kind=kind)
            return {'recovered': False, 'kind': kind, 'reason': 'unsupported-kind'}
        if payload is None:
            payload = list(self._accounts) if kind == 'accountsChanged' else self._chain_id
        await self.emit(kind, payload)
        return {'recovered': True, 'kind': kind, 'payload': payload}

    async def collect_wallet_diagnostics(self) -> dict[str, Any]:
        return await collect_provider_diagnostics(self._page, self.name)

    # ── Scripting ───────────────────────────────────────────────────

    async def script_response(self, method: str, params: Any, result: Any) -> None:
        await self._page.evaluate(
            _SCRIPT_JS, {'method': method, 'params': params, 'result': result},
        )

    async def reject_next(self, method: str) -> None:
        """Make the next *method* request fail with code 4001."""
        await self._page.evaluate(_REJECT_NEXT_JS, method)

    async def emit(self, event: str, payload: Any) -> None:
        await self._page.evaluate(_EMIT_JS, {'event': event, 'payload': payload})
