"""Readiness waits that survive the extension tearing down its window."""

from __future__ import annotations

from typing import Any

from ..observability import get_logger
from .errors import PAGE_RECOVERY_EXHAUSTED, BootstrapError
from .readiness import ReadinessWaiter
from .session import ExtensionSession, is_target_closed_error, resolve_home_page
from .snapshot import UIStateSnapshot

logger = get_logger(__name__)

MAX_PAGE_RECOVERIES = 4


class PageRecovery:
    """Wrap :class:`ReadinessWaiter` with bounded window re-acquisition.

    When a wait fails with a target-closed fault the live window is
    re-resolved from the session and the wait restarts. Any other fault
    propagates unchanged.
    """

    def __init__(
        self,
        session: ExtensionSession,
        waiter: ReadinessWaiter,
        *,
        max_recoveries: int = MAX_PAGE_RECOVERIES,
    ) -> None:
        self._session = session
        self._waiter = waiter
        self._max_recoveries = max_recoveries

    async def wait_for_ready(
        self,
        page: Any,
        timeout_s: float,
    ) -> tuple[UIStateSnapshot, Any]:
        """Wait for readiness, returning ``(snapshot, live_page)``.

        Raises:
            BootstrapError: ``PAGE_RECOVERY_EXHAUSTED`` once every
                recovery attempt has hit a closed target.
        """
        active = page
        for attempt in range(1, self._max_recoveries + 1):
            try:
                snapshot = await self._waiter.wait_for_ready(active, timeout_s)
            except Exception as exc:
                if not is_target_closed_error(exc):
                    raise
                logger.warning(
                    'page_recovery',
                    attempt=attempt,
                    max_attempts=self._max_recoveries,
                    error=str(exc),
                )
                active = await resolve_home_page(self._session)
                continue
            return snapshot, active

        raise BootstrapError(
            PAGE_RECOVERY_EXHAUSTED,
            attempts=self._max_recoveries,
        )
