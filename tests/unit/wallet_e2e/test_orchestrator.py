"""Tests for the BootstrapOrchestrator state machine."""

from __future__ import annotations

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from wallet_e2e.bootstrap import (
    BOOTSTRAP_NOT_READY,
    LOCALE_MISMATCH,
    ONBOARDING_PERSISTED,
    BootstrapConfig,
    BootstrapError,
    BootstrapOrchestrator,
    ExtensionSession,
    TargetClosedError,
    UIStateSnapshot,
    home_soft_ready,
)
from wallet_e2e.testing import (
    FakeClock,
    FakeContext,
    FakePage,
    RecordingActions,
    RecordingSetup,
    ScriptedProbe,
)

EXTENSION_ID = 'abcdefghijklmnop'
HOME = f'chrome-extension://{EXTENSION_ID}/home.html'

READY = UIStateSnapshot(page_url=HOME, network_visible=True)
CRASHED = UIStateSnapshot(page_url=HOME, crash_visible=True, crash_restart_visible=True)
LOCKED = UIStateSnapshot(page_url=HOME, unlock_visible=True)
ONBOARDING = UIStateSnapshot(page_url=HOME, onboarding_visible=True)
LOADING = UIStateSnapshot(page_url=HOME, loading_spinner_visible=True)
OPEN_WALLET = UIStateSnapshot(page_url=HOME, open_wallet_visible=True)
BLANK_HOME = UIStateSnapshot(page_url=HOME)


class _StatefulProbe:
    """Probe returning ``first`` once, then whatever ``current`` is."""

    def __init__(self, current: UIStateSnapshot, *, first: UIStateSnapshot) -> None:
        self.current = current
        self.first = first
        self.calls = 0

    async def __call__(self, page):
        self.calls += 1
        return self.first if self.calls == 1 else self.current


class _Harness:
    def __init__(
        self, probe, *, actions=None, setup=None, config=None, pages=None,
        soft_ready_policy=home_soft_ready,
    ):
        self.clock = FakeClock()
        self.page = FakePage(HOME)
        self.context = FakeContext(pages if pages is not None else [self.page])
        self.session = ExtensionSession(context=self.context, extension_id=EXTENSION_ID)
        self.actions = actions or RecordingActions()
        self.setup = setup or RecordingSetup()
        self.probe = probe
        self.orchestrator = BootstrapOrchestrator(
            self.session,
            setup=self.setup,
            password='correct horse',
            config=config or BootstrapConfig(),
            actions=self.actions,
            probe=probe,
            sleep=self.clock.sleep,
            clock=self.clock,
            soft_ready_policy=soft_ready_policy,
        )

    async def run(self):
        return await self.orchestrator.run(self.page)


# =====================================================================
# 1. Recovery sequences
# =====================================================================


class TestRecoverySequences:

    @pytest.mark.asyncio
    async def test_ready_on_first_attempt(self):
        h = _Harness(ScriptedProbe([READY]))
        result = await h.run()
        assert result.attempts == 1
        assert not result.used_unlock
        assert not result.used_recovery
        assert not result.soft_ready
        assert h.page.visits == [HOME]

    @pytest.mark.asyncio
    async def test_crash_crash_locked_ready(self):
        h = _Harness(
            ScriptedProbe([CRASHED, CRASHED, LOCKED, READY]),
            config=BootstrapConfig(max_attempts=5),
        )
        result = await h.run()

        assert result.used_unlock is True
        assert result.used_recovery is False
        assert result.attempts == 3
        assert result.state is READY
        assert h.actions.count('restart') == 2
        assert ('unlock', 'correct horse') in h.actions.calls

    @pytest.mark.asyncio
    async def test_onboarding_runs_setup_then_ready(self):
        h = _Harness(ScriptedProbe([ONBOARDING, READY]))
        result = await h.run()
        assert result.used_recovery is True
        assert h.setup.calls == [(h.context, h.page)]

    @pytest.mark.asyncio
    async def test_open_wallet_prompt_settled(self):
        h = _Harness(ScriptedProbe([OPEN_WALLET, READY]))
        result = await h.run()
        assert result.attempts == 1
        assert h.actions.count('settle_open_wallet') == 1

    @pytest.mark.asyncio
    async def test_unsettled_open_wallet_moves_to_next_attempt(self):
        h = _Harness(
            ScriptedProbe([OPEN_WALLET, READY]),
            actions=RecordingActions(settle_result=False),
        )
        result = await h.run()
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_loading_that_persists_is_reloaded(self):
        h = _Harness(
            ScriptedProbe([LOADING] * 30 + [READY]),
            config=BootstrapConfig(max_attempts=3, loading_timeout_s=5),
        )
        result = await h.run()
        assert h.actions.count('reload') >= 1
        assert result.state is READY

    @pytest.mark.asyncio
    async def test_indeterminate_renavigates(self):
        h = _Harness(ScriptedProbe([BLANK_HOME, READY]))
        result = await h.run()
        assert result.attempts == 2
        # one entry navigation per attempt plus the re-navigation
        assert h.page.visits == [HOME, HOME, HOME]


# =====================================================================
# 2. Page faults
# =====================================================================


class TestPageFaults:

    @pytest.mark.asyncio
    async def test_single_injected_fault_is_recovered(self):
        h = _Harness(ScriptedProbe([LOADING, TargetClosedError('window gone'), READY]))
        result = await h.run()
        assert result.state is READY
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_closed_start_page_is_replaced(self):
        h = _Harness(ScriptedProbe([READY]), pages=[])
        h.page.closed = True
        result = await h.run()
        assert result.state is READY
        created = h.context.pages
        assert len(created) == 1
        assert created[0] is not h.page
        assert created[0].url == HOME

    @pytest.mark.asyncio
    async def test_navigation_target_closed_retried_once(self):
        h = _Harness(ScriptedProbe([READY]))
        h.page.url = 'about:blank'
        h.page.goto_error = PlaywrightError('Target page, context or browser has been closed')
        replacement = FakePage(f'chrome-extension://{EXTENSION_ID}/notification.html')
        h.context.add_page(replacement)

        result = await h.run()
        assert result.state is READY
        assert replacement.visits[-1] == HOME


# =====================================================================
# 3. Termination
# =====================================================================


class TestTermination:

    @pytest.mark.asyncio
    async def test_onboarding_persisting_raises(self):
        h = _Harness(ScriptedProbe([ONBOARDING]), config=BootstrapConfig(max_attempts=2))
        with pytest.raises(BootstrapError) as exc_info:
            await h.run()
        assert exc_info.value.code == ONBOARDING_PERSISTED
        assert str(exc_info.value).startswith('wallet-bootstrap-onboarding-persisted')
        assert len(h.setup.calls) == 2

    @pytest.mark.asyncio
    async def test_soft_ready_on_blank_home(self):
        h = _Harness(ScriptedProbe([BLANK_HOME]), config=BootstrapConfig(max_attempts=1))
        result = await h.run()
        assert result.soft_ready is True
        assert result.state.page_url == HOME

    @pytest.mark.asyncio
    async def test_not_ready_off_home_raises_with_context(self):
        elsewhere = UIStateSnapshot(
            page_url=f'chrome-extension://{EXTENSION_ID}/settings.html',
            page_title='Settings',
            body_text_sample='nothing here',
        )
        h = _Harness(ScriptedProbe([elsewhere]), config=BootstrapConfig(max_attempts=1))
        with pytest.raises(BootstrapError) as exc_info:
            await h.run()
        err = exc_info.value
        assert err.code == BOOTSTRAP_NOT_READY
        assert err.prefix == 'wallet-bootstrap-not-ready'
        assert err.context['title'] == 'Settings'
        assert err.context['body_excerpt'] == 'nothing here'
        assert 'settings.html' in str(err)

    @pytest.mark.asyncio
    async def test_custom_soft_ready_policy(self):
        elsewhere = UIStateSnapshot(page_url='chrome-extension://x/other.html')
        h = _Harness(
            ScriptedProbe([elsewhere]),
            config=BootstrapConfig(max_attempts=1),
            soft_ready_policy=lambda snapshot, session: True,
        )
        result = await h.run()
        assert result.soft_ready

    @pytest.mark.asyncio
    async def test_final_pass_restarts_crash(self):
        elsewhere = UIStateSnapshot(page_url='chrome-extension://x/other.html')
        probe = _StatefulProbe(CRASHED, first=elsewhere)

        def to_ready(page):
            probe.current = READY

        actions = RecordingActions(on_restart=to_ready)
        h = _Harness(probe, actions=actions, config=BootstrapConfig(max_attempts=1))
        result = await h.run()

        assert result.state is READY
        assert result.attempts == 1
        assert actions.count('restart') == 1


# =====================================================================
# 4. Locale precondition and config
# =====================================================================


class TestLocaleAndConfig:

    @pytest.mark.asyncio
    async def test_mismatch_tolerated_by_default(self):
        h = _Harness(ScriptedProbe([READY]), actions=RecordingActions(locale='de-de'))
        result = await h.run()
        assert result.state is READY

    @pytest.mark.asyncio
    async def test_mismatch_raises_when_strict(self):
        h = _Harness(
            ScriptedProbe([READY]),
            actions=RecordingActions(locale='de-de'),
            config=BootstrapConfig(strict_locale=True),
        )
        with pytest.raises(BootstrapError) as exc_info:
            await h.run()
        assert exc_info.value.code == LOCALE_MISMATCH
        assert exc_info.value.context == {'observed': 'de-de', 'expected': 'en'}

    @pytest.mark.asyncio
    async def test_unknown_locale_retried_then_tolerated(self):
        h = _Harness(
            ScriptedProbe([READY]),
            actions=RecordingActions(locale='unknown'),
            config=BootstrapConfig(strict_locale=True),
        )
        result = await h.run()
        assert result.state is READY
        assert h.actions.count('read_locale') == 3
        assert h.clock.sleeps.count(0.3) == 2

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError, match='max_attempts'):
            _Harness(ScriptedProbe([READY]), config=BootstrapConfig(max_attempts=0))

    def test_config_validate_lists_all_errors(self):
        errors = BootstrapConfig(max_attempts=0, final_timeout_s=0).validate()
        assert 'max_attempts must be >= 1' in errors
        assert 'final_timeout_s must be > 0' in errors


# =====================================================================
# 5. Loading paths
# =====================================================================


class TestLoadingPaths:

    @pytest.mark.asyncio
    async def test_crash_exposed_by_loading_wait_is_restarted(self):
        probe = _StatefulProbe(CRASHED, first=LOADING)

        def to_ready(page):
            probe.current = READY

        actions = RecordingActions(on_restart=to_ready)
        h = _Harness(probe, actions=actions)
        result = await h.run()

        assert result.state is READY
        assert result.attempts == 2
        assert actions.count('restart') == 1
        assert actions.count('reload') == 0

    @pytest.mark.asyncio
    async def test_final_pass_reloads_before_soft_ready_decision(self):
        reloads_at_decision = []

        def policy(snapshot, session):
            reloads_at_decision.append(h.actions.count('reload'))
            return True

        h = _Harness(
            ScriptedProbe([LOADING]),
            config=BootstrapConfig(max_attempts=1),
            soft_ready_policy=policy,
        )
        result = await h.run()

        assert result.soft_ready is True
        # one reload from the attempt, one from the final pass
        assert reloads_at_decision == [2]

    @pytest.mark.asyncio
    async def test_final_pass_still_loading_off_home_raises(self):
        elsewhere = UIStateSnapshot(
            page_url=f'chrome-extension://{EXTENSION_ID}/other.html',
            loading_spinner_visible=True,
        )
        h = _Harness(ScriptedProbe([elsewhere]), config=BootstrapConfig(max_attempts=1))
        with pytest.raises(BootstrapError) as exc_info:
            await h.run()

        assert exc_info.value.code == BOOTSTRAP_NOT_READY
        assert h.actions.count('reload') == 2


# =====================================================================
# 6. Recovery action faults
# =====================================================================


class _TimingOutUnlock(RecordingActions):
    async def unlock(self, page, password):
        await super().unlock(page, password)
        raise PlaywrightTimeoutError(
            'Timeout 30000ms exceeded. waiting for get_by_test_id("unlock-password")'
        )


class _ClosingSettle(RecordingActions):
    async def settle_open_wallet(self, page):
        await super().settle_open_wallet(page)
        raise PlaywrightError('Target page, context or browser has been closed')


class TestRecoveryActionFaults:

    @pytest.mark.asyncio
    async def test_unlock_timeout_moves_to_next_attempt(self):
        h = _Harness(ScriptedProbe([LOCKED, READY]), actions=_TimingOutUnlock())
        result = await h.run()

        assert result.state is READY
        assert result.attempts == 2
        assert result.used_unlock is True

    @pytest.mark.asyncio
    async def test_unlock_timeout_every_attempt_ends_not_ready(self):
        h = _Harness(
            ScriptedProbe([LOCKED]),
            actions=_TimingOutUnlock(),
            config=BootstrapConfig(max_attempts=2),
        )
        with pytest.raises(BootstrapError) as exc_info:
            await h.run()

        err = exc_info.value
        assert err.code == BOOTSTRAP_NOT_READY
        assert set(err.context) == {'url', 'title', 'body_excerpt'}
        assert err.context['url'] == HOME
        assert h.actions.count('unlock') == 2

    @pytest.mark.asyncio
    async def test_settle_target_closed_reacquires_window(self):
        h = _Harness(ScriptedProbe([OPEN_WALLET, READY]), actions=_ClosingSettle())
        result = await h.run()

        assert result.state is READY
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_setup_fault_moves_to_next_attempt(self):
        def fail(context, page):
            raise PlaywrightTimeoutError('Timeout 30000ms exceeded.')

        h = _Harness(ScriptedProbe([ONBOARDING, READY]), setup=RecordingSetup(on_call=fail))
        result = await h.run()

        assert result.state is READY
        assert result.attempts == 2
        assert result.used_recovery is True
        assert len(h.setup.calls) == 1
