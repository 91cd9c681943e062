"""Execute parity scenarios through a WalletDriver.

The runner issues each provider request from the dapp page, lets the
driver approve it (best-effort), and judges the scenario by the
request's own result. Failures are triaged with
:func:`wallet_e2e.taxonomy.classify`; scenarios needing a chain node
that was not provisioned are reported as ``BLOCKED`` without running.

Usage::

    runner = ScenarioRunner(driver, dapp_page, RunnerConfig(anvil_available=True))
    results = await runner.run_all(select_scenarios(SIMULATED_PARITY_SCENARIOS))
    assert all(r.passed for r in results)
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..drivers.contract import WalletDriver
from ..observability import get_logger
from ..taxonomy import FailureTaxonomy, classify, triage_label
from .manifest import ScenarioDescriptor, ScenarioKind

logger = get_logger(__name__)

DEFAULT_RECIPIENT = '0x70997970C51812dc3A010C7d01b50e0d17dc79C8'
DEFAULT_MESSAGE_HEX = '0x77616c6c65742d6532652d706172697479'  # "wallet-e2e-parity"
DEFAULT_RECOVERY_CHAIN_ID = '0xaa36a7'
DEFAULT_SAFE_ADDRESS = '0x000000000000000000000000000000000000BEEF'

TYPED_DATA_PAYLOAD = json.dumps({
    'domain': {'name': 'WalletE2E', 'version': '1', 'chainId': 1},
    'message': {'contents': 'wallet-e2e typed data'},
    'primaryType': 'Mail',
    'types': {
        'EIP712Domain': [
            {'name': 'name', 'type': 'string'},
            {'name': 'version', 'type': 'string'},
            {'name': 'chainId', 'type': 'uint256'},
        ],
        'Mail': [{'name': 'contents', 'type': 'string'}],
    },
})

_ADDRESS_RE = re.compile(r'^0x[a-fA-F0-9]{40}$')
_SIGNATURE_RE = re.compile(r'^0x[a-fA-F0-9]{130}$')
_TX_HASH_RE = re.compile(r'^0x[a-fA-F0-9]{64}$')

_PROVIDER_REQUEST_JS = """
async ({ method, params }) => {
  if (!window.ethereum) throw new Error('provider-missing');
  return await window.ethereum.request(params === null ? { method } : { method, params });
}
"""

_RECORD_EVENTS_JS = """
(event) => {
  window.__walletE2eEvents = window.__walletE2eEvents || {};
  window.__walletE2eEvents[event] = [];
  window.ethereum.on(event, (payload) => window.__walletE2eEvents[event].push(payload));
}
"""

_EVENTS_SEEN_JS = '(event) => ((window.__walletE2eEvents || {})[event] || []).length > 0'
_READ_EVENTS_JS = '(event) => ((window.__walletE2eEvents || {})[event] || [])'


class ScenarioOutcome(str, Enum):
    """Outcome of one scenario."""

    PASS = 'PASS'
    FAIL = 'FAIL'
    SKIP = 'SKIP'
    BLOCKED = 'BLOCKED'


class ScenarioTimeoutError(TimeoutError):
    """The wallet interaction did not finish within the scenario deadline."""

    def __init__(self, method: str, timeout_ms: int) -> None:
        self.method = method
        self.timeout_ms = timeout_ms
        super().__init__(f'{method}-timeout-{timeout_ms}ms')


class ScenarioAssertionError(AssertionError):
    """The interaction finished but its result has the wrong shape."""

    def __init__(self, method: str, observed: Any) -> None:
        self.method = method
        self.observed = observed
        super().__init__(f'unexpected-result-shape:{method}:{observed!r}'[:240])


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    """Recorded outcome of a single scenario."""

    scenario_id: str
    title: str
    method: str
    outcome: ScenarioOutcome
    started_at: str  # ISO-8601
    finished_at: str  # ISO-8601
    duration_ms: float
    taxonomy: FailureTaxonomy | None = None
    triage_label: str | None = None
    reason: str | None = None
    observed: Any = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.outcome == ScenarioOutcome.PASS

    @property
    def failed(self) -> bool:
        return self.outcome == ScenarioOutcome.FAIL

    @property
    def blocked(self) -> bool:
        return self.outcome == ScenarioOutcome.BLOCKED

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            'scenario_id': self.scenario_id,
            'title': self.title,
            'method': self.method,
            'outcome': self.outcome.value,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'duration_ms': round(self.duration_ms, 2),
            'diagnostics': self.diagnostics,
        }
        if self.taxonomy is not None:
            result['taxonomy'] = self.taxonomy.value
            result['triage_label'] = self.triage_label
        if self.reason:
            result['reason'] = self.reason
        if self.observed is not None:
            result['observed'] = self.observed
        return result


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """Per-run inputs the scenarios need beyond the descriptors."""

    anvil_available: bool = False
    recipient: str = DEFAULT_RECIPIENT
    message_hex: str = DEFAULT_MESSAGE_HEX
    typed_data: str = TYPED_DATA_PAYLOAD
    transfer_value_wei: int = 1
    recovery_account: str = DEFAULT_RECIPIENT
    recovery_chain_id: str = DEFAULT_RECOVERY_CHAIN_ID
    app_bridge_enabled: bool = False
    safe_address: str = DEFAULT_SAFE_ADDRESS
    draft_nonce: int = 0
    fail_fast: bool = False


class ScenarioRunner:
    """Run scenario descriptors against one driver and dapp page.

    Args:
        driver: Any :class:`WalletDriver`.
        page: Dapp page the provider requests are issued from.
        config: Run inputs.
        clock: Injectable monotonic clock.
    """

    def __init__(
        self,
        driver: WalletDriver,
        page: Any,
        config: RunnerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._driver = driver
        self._page = page
        self._config = config or RunnerConfig()
        self._clock = clock

    async def run_all(self, descriptors: Iterable[ScenarioDescriptor]) -> list[ScenarioResult]:
        """Run *descriptors* in order.

        With ``fail_fast`` the scenarios after the first failure are
        recorded as ``SKIP``.
        """
        results: list[ScenarioResult] = []
        pending = list(descriptors)
        for index, descriptor in enumerate(pending):
            result = await self.run(descriptor)
            results.append(result)
            if result.failed and self._config.fail_fast:
                for remaining in pending[index + 1:]:
                    results.append(_skipped(remaining))
                break
        return results

    async def run(self, descriptor: ScenarioDescriptor) -> ScenarioResult:
        started_at = _now_iso()
        start = self._clock()
        log = logger.bind(scenario_id=descriptor.scenario_id, method=descriptor.method)

        if descriptor.requires_anvil and not self._config.anvil_available:
            log.info('scenario_blocked', reason='anvil-unavailable')
            return ScenarioResult(
                scenario_id=descriptor.scenario_id,
                title=descriptor.title,
                method=descriptor.method,
                outcome=ScenarioOutcome.BLOCKED,
                started_at=started_at,
                finished_at=_now_iso(),
                duration_ms=0.0,
                taxonomy=FailureTaxonomy.ENV_BLOCKER,
                triage_label=triage_label(FailureTaxonomy.ENV_BLOCKER),
                reason='anvil-unavailable',
            )

        if descriptor.requires_app_bridge and not self._config.app_bridge_enabled:
            log.info('scenario_skipped', reason='app-bridge-disabled')
            return _skipped(descriptor, 'app-bridge-disabled')

        outcome = ScenarioOutcome.PASS
        taxonomy: FailureTaxonomy | None = None
        reason: str | None = None
        observed: Any = None
        try:
            observed = await asyncio.wait_for(
                self._execute(descriptor), descriptor.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            error = ScenarioTimeoutError(descriptor.method, descriptor.timeout_ms)
            outcome, taxonomy, reason = ScenarioOutcome.FAIL, classify(error), str(error)
        except Exception as exc:
            outcome, taxonomy, reason = ScenarioOutcome.FAIL, classify(exc), str(exc)

        diagnostics = await self._driver.collect_wallet_diagnostics()
        duration_ms = (self._clock() - start) * 1000

        if outcome == ScenarioOutcome.PASS:
            log.info('scenario_passed', duration_ms=round(duration_ms, 1))
        else:
            log.warning(
                'scenario_failed',
                taxonomy=taxonomy.value,
                reason=reason,
                duration_ms=round(duration_ms, 1),
            )

        return ScenarioResult(
            scenario_id=descriptor.scenario_id,
            title=descriptor.title,
            method=descriptor.method,
            outcome=outcome,
            started_at=started_at,
            finished_at=_now_iso(),
            duration_ms=duration_ms,
            taxonomy=taxonomy,
            triage_label=triage_label(taxonomy) if taxonomy else None,
            reason=reason,
            observed=observed,
            diagnostics=diagnostics,
        )

    # ── Scenario bodies ─────────────────────────────────────────────

    async def _execute(self, descriptor: ScenarioDescriptor) -> Any:
        if descriptor.kind == ScenarioKind.RECOVERY:
            return await self._execute_recovery(descriptor)
        if descriptor.kind == ScenarioKind.APP_COMMAND:
            return await self._execute_app_command(descriptor)

        method = descriptor.method
        if method == 'eth_requestAccounts':
            accounts = await self._request_with_approval(method, None, self._driver.connect_to_dapp)
            return _expect(method, accounts, _is_account_list)

        account = await self._ensure_account()
        if method == 'personal_sign':
            params = [self._config.message_hex, account]
            signature = await self._request_with_approval(
                method, params, self._driver.approve_signature,
            )
            return _expect(method, signature, _matches(_SIGNATURE_RE))
        if method == 'eth_signTypedData_v4':
            params = [account, self._config.typed_data]
            signature = await self._request_with_approval(
                method, params, self._driver.approve_signature,
            )
            return _expect(method, signature, _matches(_SIGNATURE_RE))
        if method == 'eth_sendTransaction':
            params = [{
                'from': account,
                'to': self._config.recipient,
                'value': hex(self._config.transfer_value_wei),
            }]
            tx_hash = await self._request_with_approval(
                method, params, self._driver.approve_transaction,
            )
            return _expect(method, tx_hash, _matches(_TX_HASH_RE))

        raise ValueError(f'unsupported-scenario-method:{method}')

    async def _request_with_approval(
        self,
        method: str,
        params: Any,
        approve: Callable[[], Any],
    ) -> Any:
        """Start the provider request, approve it, then await its result."""
        request = asyncio.ensure_future(
            self._page.evaluate(_PROVIDER_REQUEST_JS, {'method': method, 'params': params}),
        )
        try:
            try:
                await approve()
            except PlaywrightError as exc:
                logger.info('driver_action_unavailable', method=method, error=str(exc))
            return await request
        finally:
            if not request.done():
                request.cancel()

    async def _ensure_account(self) -> str:
        accounts = await self._page.evaluate(_PROVIDER_REQUEST_JS, {
            'method': 'eth_accounts', 'params': None,
        })
        if not accounts:
            accounts = await self._request_with_approval(
                'eth_requestAccounts', None, self._driver.connect_to_dapp,
            )
        _expect('eth_requestAccounts', accounts, _is_account_list)
        return accounts[0]

    async def _execute_recovery(self, descriptor: ScenarioDescriptor) -> Any:
        event = descriptor.method
        if event == 'accountsChanged':
            payload: Any = [self._config.recovery_account]
        else:
            payload = self._config.recovery_chain_id

        await self._page.evaluate(_RECORD_EVENTS_JS, event)
        report = await self._driver.recover_from_failure(event, payload)
        if not report.get('recovered'):
            raise RuntimeError(f'recovery-unsupported:{event}')

        await self._page.wait_for_function(
            _EVENTS_SEEN_JS, arg=event, timeout=descriptor.timeout_ms,
        )
        events = await self._page.evaluate(_READ_EVENTS_JS, event)
        first = events[0] if events else None
        if _normalize(first) != _normalize(payload):
            raise ScenarioAssertionError(event, first)
        return first

    async def _execute_app_command(self, descriptor: ScenarioDescriptor) -> Any:
        """Create a signing-queue draft through the app bridge and read it back."""
        bridge = getattr(self._driver, 'bridge', None)
        if bridge is None:
            raise RuntimeError(f'app-bridge-unsupported:{self._driver.name}')

        await bridge.open_signing_tab('Queue')
        await bridge.acquire_writer_lock()
        draft = await bridge.create_raw_tx_draft(
            chainId=1,
            safeAddress=self._config.safe_address,
            nonce=self._config.draft_nonce,
            to=self._config.recipient,
            value='0',
            data='0x',
            threshold=1,
        )
        if isinstance(draft, dict):
            tx_hash = draft.get('safe_tx_hash') or draft.get('safeTxHash')
        else:
            tx_hash = None
        _expect(descriptor.method, tx_hash, _matches(_TX_HASH_RE))

        loaded = await bridge.load_tx(tx_hash)
        if not loaded:
            raise ScenarioAssertionError('load_tx', loaded)
        return tx_hash


# ── Helpers ────────────────────────────────────────────────────────


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _skipped(
    descriptor: ScenarioDescriptor, reason: str = 'skipped-after-failure',
) -> ScenarioResult:
    now = _now_iso()
    return ScenarioResult(
        scenario_id=descriptor.scenario_id,
        title=descriptor.title,
        method=descriptor.method,
        outcome=ScenarioOutcome.SKIP,
        started_at=now,
        finished_at=now,
        duration_ms=0.0,
        reason=reason,
    )


def _expect(method: str, observed: Any, check: Callable[[Any], bool]) -> Any:
    if not check(observed):
        raise ScenarioAssertionError(method, observed)
    return observed


def _is_account_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(a, str) and _ADDRESS_RE.match(a) for a in value)
    )


def _matches(pattern: re.Pattern[str]) -> Callable[[Any], bool]:
    return lambda value: isinstance(value, str) and bool(pattern.match(value))


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    return value
