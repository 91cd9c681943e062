"""Command-dispatch bridge into the embedded application under test.

The application exposes ``window.__walletE2eBridge`` with two entry
points: ``enqueue(json)`` accepts ``{id, method, params}`` and
``takeResult(id)`` returns the JSON-encoded ``{ok, result | error}``
once the command has been processed (``null`` until then). Commands
run asynchronously inside the app, so results are polled.

Usage::

    bridge = AppCommandBridge(page)
    await bridge.open_signing_tab('Queue')
    draft = await bridge.create_raw_tx_draft(chainId=1, nonce=7, ...)
    tx = await bridge.wait_for_tx_status(draft['safe_tx_hash'], 'Executed')
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from ..observability import get_logger

logger = get_logger(__name__)

BRIDGE_GLOBAL = '__walletE2eBridge'

_ENQUEUE_JS = f"""
(command) => {{
  const bridge = window.{BRIDGE_GLOBAL};
  if (!bridge || typeof bridge.enqueue !== 'function') {{
    throw new Error('app-bridge-missing');
  }}
  bridge.enqueue(command);
}}
"""

_TAKE_RESULT_JS = f"""
(id) => {{
  const bridge = window.{BRIDGE_GLOBAL};
  if (!bridge || typeof bridge.takeResult !== 'function') {{
    return null;
  }}
  const value = bridge.takeResult(id);
  return value === undefined ? null : value;
}}
"""

DEFAULT_TIMEOUT_S = 15.0
DEFAULT_POLL_INTERVAL_S = 0.1


class BridgeResponse(BaseModel):
    """Decoded command result."""

    ok: bool
    result: Any = None
    error: Any = None


class BridgeError(RuntimeError):
    """Base error for bridge commands; always names the method."""

    def __init__(self, message: str, *, method: str) -> None:
        self.method = method
        super().__init__(message)


class BridgeCommandError(BridgeError):
    """The application processed the command and reported an error."""

    def __init__(self, method: str, error: Any) -> None:
        self.error = error
        detail = error if isinstance(error, str) else json.dumps(error)
        super().__init__(f'bridge-command-failed:{method}:{detail}', method=method)


class BridgeTimeoutError(BridgeError):
    """No result arrived before the deadline."""

    def __init__(self, method: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(
            f'bridge-command-timeout:{method}:{timeout_s:g}s', method=method,
        )


class BridgeProtocolError(BridgeError):
    """The result string was not a valid ``{ok, result|error}`` payload."""

    def __init__(self, method: str, detail: str) -> None:
        super().__init__(f'bridge-malformed-result:{method}:{detail}', method=method)


class AppCommandBridge:
    """Enqueue commands in the page and poll for their keyed results.

    Args:
        page: Playwright page hosting the application.
        timeout_s: Default per-command deadline.
        poll_interval_s: Delay between result polls.
        sleep: Injectable sleep.
        clock: Injectable monotonic clock.
        id_factory: Produces unique command ids.
    """

    def __init__(
        self,
        page: Any,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._page = page
        self._timeout_s = timeout_s
        self._poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._clock = clock
        self._id_factory = id_factory or (lambda: f'cmd-{uuid.uuid4().hex[:12]}')

    async def dispatch(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> Any:
        """Run *method* in the application and return its result.

        Raises:
            BridgeCommandError: The command reported ``ok: false``.
            BridgeTimeoutError: No result before the deadline.
            BridgeProtocolError: The result could not be decoded.
        """
        command_id = self._id_factory()
        command = {'id': command_id, 'method': method, 'params': params or {}}
        timeout = self._timeout_s if timeout_s is None else timeout_s

        await self._page.evaluate(_ENQUEUE_JS, json.dumps(command))
        raw = await self._poll_result(command_id, method, timeout)

        try:
            response = BridgeResponse.model_validate_json(raw)
        except ValidationError as exc:
            raise BridgeProtocolError(method, str(exc.errors()[:1])) from exc

        if not response.ok:
            logger.warning('bridge_command_failed', method=method, error=response.error)
            raise BridgeCommandError(method, response.error)

        logger.debug('bridge_command_ok', method=method, command_id=command_id)
        return response.result

    async def _poll_result(self, command_id: str, method: str, timeout_s: float) -> str:
        deadline = self._clock() + timeout_s
        while True:
            raw = await self._page.evaluate(_TAKE_RESULT_JS, command_id)
            if raw is not None:
                return raw if isinstance(raw, str) else json.dumps(raw)
            if self._clock() >= deadline:
                raise BridgeTimeoutError(method, timeout_s)
            await self._sleep(self._poll_interval_s)

    # ── Application commands ────────────────────────────────────────

    async def open_signing_tab(self, surface: str = 'Queue') -> Any:
        return await self.dispatch('open_signing_tab', {'surface': surface})

    async def acquire_writer_lock(self) -> Any:
        return await self.dispatch('acquire_writer_lock')

    async def create_raw_tx_draft(self, **fields: Any) -> dict[str, Any]:
        return await self.dispatch('create_raw_tx_draft', fields)

    async def load_tx(self, safe_tx_hash: str) -> dict[str, Any] | None:
        return await self.dispatch('load_tx', {'safeTxHash': safe_tx_hash})

    async def read_status_banner(self) -> dict[str, Any]:
        return await self.dispatch('read_status_banner')

    async def wait_for_tx_status(
        self,
        safe_tx_hash: str,
        status: str,
        *,
        timeout_s: float = 30.0,
        poll_interval_s: float = 0.5,
    ) -> dict[str, Any]:
        """Poll :meth:`load_tx` until the transaction reaches *status*.

        Raises:
            BridgeTimeoutError: If the status is not reached in time.
        """
        deadline = self._clock() + timeout_s
        last_status = None
        while self._clock() < deadline:
            tx = await self.load_tx(safe_tx_hash)
            last_status = (tx or {}).get('status')
            if str(last_status) == status:
                return tx
            await self._sleep(poll_interval_s)
        logger.warning(
            'tx_status_wait_expired',
            safe_tx_hash=safe_tx_hash,
            expected=status,
            last_status=last_status,
        )
        raise BridgeTimeoutError('wait_for_tx_status', timeout_s)
