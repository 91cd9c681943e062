"""Adaptive polling until the wallet UI reports ready."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .errors import TargetClosedError
from .snapshot import UIStateSnapshot

Probe = Callable[[Any], Awaitable[UIStateSnapshot]]
Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

LOADING_POLL_INTERVAL_S = 0.75
IDLE_POLL_INTERVAL_S = 0.5


class ReadinessWaiter:
    """Poll a probe until the ready predicate holds or a deadline passes.

    The interval adapts to observed state: while a loading indicator is
    visible the waiter backs off to :data:`LOADING_POLL_INTERVAL_S`,
    otherwise it polls every :data:`IDLE_POLL_INTERVAL_S`.

    Args:
        probe: Async callable producing a snapshot for a page.
        sleep: Injectable sleep (tests pass a fake clock's sleep).
        clock: Injectable monotonic clock in seconds.
    """

    def __init__(
        self,
        probe: Probe,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        loading_interval_s: float = LOADING_POLL_INTERVAL_S,
        idle_interval_s: float = IDLE_POLL_INTERVAL_S,
    ) -> None:
        self._probe = probe
        self._sleep = sleep
        self._clock = clock
        self._loading_interval_s = loading_interval_s
        self._idle_interval_s = idle_interval_s

    async def wait_for_ready(self, page: Any, timeout_s: float) -> UIStateSnapshot:
        """Return the first ready snapshot, or the last one at the deadline.

        A timed-out snapshot is returned, not raised; callers decide
        whether it is fatal.

        Raises:
            TargetClosedError: If *page* is closed at a poll boundary.
        """
        deadline = self._clock() + timeout_s
        latest = await self._sample(page)
        while self._clock() < deadline:
            if latest.is_ready:
                return latest
            interval = (
                self._loading_interval_s if latest.is_loading
                else self._idle_interval_s
            )
            await self._sleep(interval)
            latest = await self._sample(page)
        return latest

    async def _sample(self, page: Any) -> UIStateSnapshot:
        if page.is_closed():
            raise TargetClosedError('target page was closed during readiness wait')
        return await self._probe(page)
