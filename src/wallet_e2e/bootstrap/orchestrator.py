"""Bootstrap state machine for the wallet extension.

Drives the extension UI from an unknown starting condition into a
usable ready state. Each iteration of a bounded loop navigates to the
canonical entry page, checks the locale precondition, captures a
snapshot, resolves it through the priority table in
:mod:`.snapshot` and applies exactly one recovery action:

  =====================  ==============================================
  State                  Action
  =====================  ==============================================
  CRASHED                click restart, continue
  LOCKED                 submit credential, recovery wait
  OPEN_WALLET_PROMPT     settle the prompt, recovery wait
  ONBOARDING             run the setup collaborator, recovery wait
  LOADING                extended recovery wait, reload if still loading
  READY                  done
  INDETERMINATE          fresh navigation, continue
  =====================  ==============================================

After ``max_attempts`` iterations a single best-effort final pass runs
before the loop gives up with a terminal :class:`BootstrapError`.

Usage::

    session = ExtensionSession(context=context, extension_id=extension_id)
    orchestrator = BootstrapOrchestrator(
        session, setup=run_first_time_setup, password='secret',
    )
    result = await orchestrator.run(page)
    assert result.state.is_ready or result.soft_ready
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Error as PlaywrightError

from ..observability import get_logger
from .actions import ExtensionUiActions, WalletUiActions
from .errors import (
    BOOTSTRAP_NOT_READY,
    LOCALE_MISMATCH,
    ONBOARDING_PERSISTED,
    BootstrapError,
)
from .probe import StateProbe
from .readiness import Clock, Probe, ReadinessWaiter, Sleep
from .recovery import PageRecovery
from .session import (
    ExtensionSession,
    goto_quietly,
    is_target_closed_error,
    resolve_home_page,
)
from .snapshot import UNKNOWN, UIState, UIStateSnapshot, detect_state

logger = get_logger(__name__)

SetupFn = Callable[[Any, Any], Awaitable[None]]
"""First-run setup collaborator, called as ``setup(context, page)``."""

SoftReadyPolicy = Callable[[UIStateSnapshot, ExtensionSession], bool]
"""Decides whether a snapshot without a ready signal is usable anyway."""


def home_soft_ready(snapshot: UIStateSnapshot, session: ExtensionSession) -> bool:
    """Accept the canonical home page when nothing is blocking it.

    Some extension builds render an interactive home page without any
    of the positive ready markers. The page counts as soft-ready when it
    is on the entry URL and is neither locked, onboarding nor crashed.
    """
    return (
        snapshot.page_url.startswith(session.home_url)
        and not snapshot.unlock_visible
        and not snapshot.onboarding_visible
        and not snapshot.crash_visible
    )


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
    """Attempt budget, locale precondition and readiness deadlines."""

    max_attempts: int = 3
    expected_locale_prefix: str = 'en'
    strict_locale: bool = False
    locale_retries: int = 3
    locale_retry_pause_s: float = 0.3
    navigation_settle_s: float = 1.0
    unlock_timeout_s: float = 10.0
    open_wallet_timeout_s: float = 10.0
    onboarding_timeout_s: float = 12.0
    loading_timeout_s: float = 15.0
    final_timeout_s: float = 25.0
    final_rewait_timeout_s: float = 15.0

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.max_attempts < 1:
            errors.append('max_attempts must be >= 1')
        if self.locale_retries < 1:
            errors.append('locale_retries must be >= 1')
        if not self.expected_locale_prefix:
            errors.append('expected_locale_prefix is required')
        for name in (
            'unlock_timeout_s',
            'open_wallet_timeout_s',
            'onboarding_timeout_s',
            'loading_timeout_s',
            'final_timeout_s',
            'final_rewait_timeout_s',
        ):
            if getattr(self, name) <= 0:
                errors.append(f'{name} must be > 0')
        return errors


@dataclass(frozen=True, slots=True)
class BootstrapResult:
    """Outcome of one successful orchestration run."""

    used_recovery: bool
    used_unlock: bool
    state: UIStateSnapshot
    attempts: int
    soft_ready: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            'used_recovery': self.used_recovery,
            'used_unlock': self.used_unlock,
            'attempts': self.attempts,
            'soft_ready': self.soft_ready,
            'state': self.state.to_dict(),
        }


@dataclass(slots=True)
class _Run:
    """Mutable progress of one orchestration run."""

    page: Any
    attempts: int = 0
    used_recovery: bool = False
    used_unlock: bool = False
    history: list[UIState] = field(default_factory=list)


class BootstrapOrchestrator:
    """Bounded state machine that brings the wallet extension to ready.

    Args:
        session: Session context for the run.
        setup: Opaque first-run setup collaborator.
        password: Credential submitted on the lock screen.
        config: Attempt budget and deadlines.
        actions: UI recovery primitives.
        probe: Snapshot source; defaults to :class:`StateProbe`.
        soft_ready_policy: Final-pass leniency for pages without a
            positive ready signal.
        sleep: Injectable sleep.
        clock: Injectable monotonic clock.
    """

    def __init__(
        self,
        session: ExtensionSession,
        *,
        setup: SetupFn,
        password: str,
        config: BootstrapConfig | None = None,
        actions: WalletUiActions | None = None,
        probe: Probe | None = None,
        soft_ready_policy: SoftReadyPolicy = home_soft_ready,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._session = session
        self._setup = setup
        self._password = password
        self._config = config or BootstrapConfig()
        errors = self._config.validate()
        if errors:
            raise ValueError(f'invalid bootstrap config: {"; ".join(errors)}')
        self._actions = actions or ExtensionUiActions(sleep=sleep)
        self._probe = probe or StateProbe()
        self._soft_ready_policy = soft_ready_policy
        self._sleep = sleep
        self._recovery = PageRecovery(
            session, ReadinessWaiter(self._probe, sleep=sleep, clock=clock),
        )
        self._handlers = {
            UIState.CRASHED: self._on_crashed,
            UIState.LOCKED: self._on_locked,
            UIState.OPEN_WALLET_PROMPT: self._on_open_wallet_prompt,
            UIState.ONBOARDING: self._on_onboarding,
            UIState.LOADING: self._on_loading,
            UIState.READY: self._on_ready,
            UIState.INDETERMINATE: self._on_indeterminate,
        }

    @property
    def session(self) -> ExtensionSession:
        return self._session

    @property
    def config(self) -> BootstrapConfig:
        return self._config

    async def run(self, page: Any = None) -> BootstrapResult:
        """Drive the extension to ready.

        Args:
            page: Optional starting window; re-resolved when missing or
                closed.

        Raises:
            BootstrapError: ``ONBOARDING_PERSISTED``,
                ``BOOTSTRAP_NOT_READY``, ``PAGE_RECOVERY_EXHAUSTED`` or
                (strict locale only) ``LOCALE_MISMATCH``.
        """
        run = _Run(page=page)

        for attempt in range(1, self._config.max_attempts + 1):
            run.attempts = attempt
            snapshot = await self._enter(run)
            state = detect_state(snapshot)
            run.history.append(state)
            logger.info(
                'bootstrap_attempt',
                attempt=attempt,
                max_attempts=self._config.max_attempts,
                state=state.value,
                snapshot=snapshot.to_dict(),
            )

            ready = await self._handlers[state](run, snapshot)
            if ready is not None:
                return self._result(run, ready)

        return await self._final_pass(run)

    # ── Loop entry ──────────────────────────────────────────────────

    async def _enter(self, run: _Run) -> UIStateSnapshot:
        if run.page is None or run.page.is_closed():
            run.page = await resolve_home_page(self._session)

        await self._navigate_home(run)
        await self._sleep(self._config.navigation_settle_s)
        await self._check_locale(run.page)
        return await self._snapshot(run)

    async def _navigate_home(self, run: _Run) -> None:
        try:
            await run.page.goto(self._session.home_url)
        except Exception as exc:
            if not is_target_closed_error(exc):
                raise
            logger.info('navigation_target_closed', error=str(exc))
            run.page = await resolve_home_page(self._session)
            await run.page.goto(self._session.home_url)

    async def _snapshot(self, run: _Run) -> UIStateSnapshot:
        if run.page.is_closed():
            run.page = await resolve_home_page(self._session)
        return await self._probe(run.page)

    async def _check_locale(self, page: Any) -> None:
        """Verify the UI locale so text-based selectors can match.

        An unresolvable locale is tolerated: the runtime-profile
        preflight is the authority in that case.
        """
        prefix = self._config.expected_locale_prefix.lower()
        observed = UNKNOWN
        for attempt in range(self._config.locale_retries):
            observed = await self._actions.read_locale(page)
            if observed != UNKNOWN:
                break
            if attempt + 1 < self._config.locale_retries:
                await self._sleep(self._config.locale_retry_pause_s)

        if observed == UNKNOWN:
            logger.info('locale_unresolved', expected_prefix=prefix)
            return
        if observed.startswith(prefix):
            return
        if self._config.strict_locale:
            raise BootstrapError(LOCALE_MISMATCH, observed=observed, expected=prefix)
        logger.warning('locale_mismatch', observed=observed, expected_prefix=prefix)

    # ── State handlers ──────────────────────────────────────────────
    # Each returns a ready snapshot to finish the run, or None to loop.

    async def _on_crashed(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        await self._restart(run)
        return None

    async def _on_locked(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        run.used_unlock = True
        try:
            await self._actions.unlock(run.page, self._password)
        except PlaywrightError as exc:
            await self._action_failed(run, 'unlock', exc)
            return None
        return await self._wait_ready(run, self._config.unlock_timeout_s)

    async def _on_open_wallet_prompt(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        try:
            settled = await self._actions.settle_open_wallet(run.page)
        except PlaywrightError as exc:
            await self._action_failed(run, 'settle_open_wallet', exc)
            return None
        if not settled:
            logger.info('open_wallet_unsettled', enabled=snapshot.open_wallet_enabled)
            return None
        return await self._wait_ready(run, self._config.open_wallet_timeout_s)

    async def _on_onboarding(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        logger.info('onboarding_setup_start', url=snapshot.page_url)
        run.used_recovery = True
        try:
            await self._setup(self._session.context, run.page)
        except PlaywrightError as exc:
            await self._action_failed(run, 'setup', exc)
            return None
        run.page = await resolve_home_page(self._session)
        return await self._wait_ready(run, self._config.onboarding_timeout_s)

    async def _on_loading(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        after, run.page = await self._recovery.wait_for_ready(
            run.page, self._config.loading_timeout_s,
        )
        if after.is_recoverable_crash:
            return await self._on_crashed(run, after)
        if after.is_ready:
            return after
        if after.is_loading:
            logger.info('loading_persisted_reload')
            await self._actions.reload(run.page)
            await self._sleep(self._config.navigation_settle_s)
        return None

    async def _on_ready(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        return snapshot

    async def _on_indeterminate(
        self, run: _Run, snapshot: UIStateSnapshot,
    ) -> UIStateSnapshot | None:
        logger.info('indeterminate_state_renavigate', url=snapshot.page_url)
        await goto_quietly(run.page, self._session.home_url)
        await self._sleep(self._config.navigation_settle_s)
        return None

    # ── Termination ─────────────────────────────────────────────────

    async def _final_pass(self, run: _Run) -> BootstrapResult:
        run.page = await resolve_home_page(self._session)
        await goto_quietly(run.page, self._session.home_url)
        await self._sleep(self._config.navigation_settle_s)
        final, run.page = await self._recovery.wait_for_ready(
            run.page, self._config.final_timeout_s,
        )

        if not final.is_ready and final.is_loading:
            logger.info('final_state_loading_reload')
            await self._actions.reload(run.page)
            await self._sleep(self._config.navigation_settle_s)
            final, run.page = await self._recovery.wait_for_ready(
                run.page, self._config.final_rewait_timeout_s,
            )

        if not final.is_ready and final.is_recoverable_crash:
            logger.info('final_state_crash_restart')
            await self._restart(run)
            final, run.page = await self._recovery.wait_for_ready(
                run.page, self._config.final_rewait_timeout_s,
            )

        logger.info(
            'bootstrap_final_state',
            state=detect_state(final).value,
            history=[s.value for s in run.history],
            snapshot=final.to_dict(),
        )

        if final.onboarding_visible:
            raise BootstrapError(ONBOARDING_PERSISTED, url=final.page_url)
        if final.is_ready:
            return self._result(run, final)
        if self._soft_ready_policy(final, self._session):
            logger.warning('soft_ready_accepted', url=final.page_url)
            return self._result(run, final, soft_ready=True)

        raise BootstrapError(
            BOOTSTRAP_NOT_READY,
            url=final.page_url,
            title=final.page_title,
            body_excerpt=final.body_text_sample,
        )

    # ── Helpers ─────────────────────────────────────────────────────

    async def _wait_ready(self, run: _Run, timeout_s: float) -> UIStateSnapshot | None:
        snapshot, run.page = await self._recovery.wait_for_ready(run.page, timeout_s)
        return snapshot if snapshot.is_ready else None

    async def _restart(self, run: _Run) -> None:
        try:
            await self._actions.restart(run.page)
        except PlaywrightError as exc:
            await self._action_failed(run, 'restart', exc)

    async def _action_failed(self, run: _Run, action: str, exc: PlaywrightError) -> None:
        """Log a faulted recovery action; the loop moves to its next attempt.

        A target-closed fault also re-acquires the extension window so the
        next attempt starts from a live page.
        """
        logger.warning('recovery_action_failed', action=action, error=str(exc))
        if is_target_closed_error(exc):
            run.page = await resolve_home_page(self._session)

    def _result(
        self,
        run: _Run,
        snapshot: UIStateSnapshot,
        *,
        soft_ready: bool = False,
    ) -> BootstrapResult:
        result = BootstrapResult(
            used_recovery=run.used_recovery,
            used_unlock=run.used_unlock,
            state=snapshot,
            attempts=run.attempts,
            soft_ready=soft_ready,
        )
        logger.info('bootstrap_ready', **result.to_dict())
        return result
