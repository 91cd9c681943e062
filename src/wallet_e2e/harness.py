"""End-to-end harness run: preflight, bootstrap, scenarios, evidence.

Every run ends in an :class:`EvidenceEnvelope`. Environment problems,
bootstrap failures and any other automation fault are folded into the
envelope (``BLOCKED`` or ``FAIL`` with a taxonomy) instead of escaping
as exceptions, so the CLI always has something to persist.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterable
from typing import Any

from .bootstrap import BootstrapError, BootstrapOrchestrator, SeedPhraseImport
from .config import HarnessSettings
from .drivers import create_wallet_driver
from .drivers.factory import EXTENSION_MODE
from .evidence import EvidenceEnvelope
from .launch import DEFAULT_LOCALE, launch_extension_session
from .observability import get_logger, run_id_ctx
from .preflight import EnvironmentBlockedError, check_app_reachable, check_runtime_profile
from .scenarios import ScenarioDescriptor, ScenarioRunner, manifest_for_mode, select_scenarios
from .taxonomy import classify

logger = get_logger(__name__)


async def run_harness(
    settings: HarnessSettings,
    playwright: Any,
    *,
    run_id: str,
    scenario_ids: Iterable[str] | None = None,
    fail_fast: bool = False,
    artifacts: dict[str, str] | None = None,
) -> EvidenceEnvelope:
    """Run the parity suite for ``settings.driver_mode``.

    Raises:
        ValueError: Invalid settings.
        UnknownScenarioError: *scenario_ids* names an unknown scenario.
    """
    errors = settings.validate()
    if errors:
        raise ValueError(f'invalid harness settings: {"; ".join(errors)}')

    mode = settings.driver_mode
    descriptors = select_scenarios(manifest_for_mode(mode), scenario_ids)
    token = run_id_ctx.set(run_id)
    try:
        logger.info(
            'harness_start',
            scenarios=[d.scenario_id for d in descriptors],
            settings=settings.redacted(),
        )
        try:
            await check_app_reachable(settings.app_base_url)
            if mode == EXTENSION_MODE:
                envelope = await _run_extension(
                    settings, playwright, descriptors,
                    run_id=run_id, fail_fast=fail_fast, artifacts=artifacts,
                )
            else:
                envelope = await _run_simulated(
                    settings, playwright, descriptors,
                    run_id=run_id, fail_fast=fail_fast, artifacts=artifacts,
                )
        except EnvironmentBlockedError as exc:
            logger.warning('harness_blocked', reason=exc.reason, **exc.details)
            envelope = EvidenceEnvelope.aborted(
                driver_mode=mode, reason=exc.reason, run_id=run_id, artifacts=artifacts,
            )
        except BootstrapError as exc:
            logger.error('harness_bootstrap_failed', code=exc.code, **exc.context)
            envelope = EvidenceEnvelope.aborted(
                driver_mode=mode,
                reason=str(exc),
                taxonomy=classify(exc),
                run_id=run_id,
                artifacts=artifacts,
            )
        except Exception as exc:
            logger.exception('harness_run_failed', error_type=type(exc).__name__)
            envelope = EvidenceEnvelope.aborted(
                driver_mode=mode,
                reason=f'{type(exc).__name__}: {exc}',
                taxonomy=classify(exc),
                run_id=run_id,
                artifacts=artifacts,
            )

        logger.info(
            'harness_complete',
            status=envelope.status,
            taxonomy=envelope.taxonomy,
            reason=envelope.reason,
        )
        return envelope
    finally:
        run_id_ctx.reset(token)


async def _run_simulated(
    settings: HarnessSettings,
    playwright: Any,
    descriptors: tuple[ScenarioDescriptor, ...],
    *,
    run_id: str,
    fail_fast: bool,
    artifacts: dict[str, str] | None,
) -> EvidenceEnvelope:
    browser = await playwright.chromium.launch(headless=not settings.headed)
    try:
        context = await browser.new_context(locale=DEFAULT_LOCALE)
        page = await context.new_page()
        driver = create_wallet_driver(
            settings.driver_mode, page=page, base_url=settings.app_base_url,
        )
        bootstrap = await driver.bootstrap_wallet()
        profile = await check_runtime_profile(page, settings.expected_locale_prefix)

        runner = ScenarioRunner(driver, page, settings.to_runner_config(fail_fast=fail_fast))
        results = await runner.run_all(descriptors)
        return EvidenceEnvelope.from_results(
            results,
            driver_mode=settings.driver_mode,
            locale=profile.locale,
            run_id=run_id,
            artifacts=artifacts,
            bootstrap=bootstrap,
        )
    finally:
        await browser.close()


async def _run_extension(
    settings: HarnessSettings,
    playwright: Any,
    descriptors: tuple[ScenarioDescriptor, ...],
    *,
    run_id: str,
    fail_fast: bool,
    artifacts: dict[str, str] | None,
) -> EvidenceEnvelope:
    with tempfile.TemporaryDirectory(prefix='wallet-e2e-profile-') as user_data_dir:
        session = await launch_extension_session(
            playwright, settings.extension_path, user_data_dir, headed=settings.headed,
        )
        try:
            orchestrator = BootstrapOrchestrator(
                session,
                setup=SeedPhraseImport(settings.seed_phrase, settings.wallet_password),
                password=settings.wallet_password,
                config=settings.to_bootstrap_config(),
            )
            dapp_page = await session.context.new_page()
            driver = create_wallet_driver(
                settings.driver_mode,
                page=dapp_page,
                session=session,
                orchestrator=orchestrator,
            )
            bootstrap = await driver.bootstrap_wallet()

            await dapp_page.goto(settings.app_base_url)
            profile = await check_runtime_profile(dapp_page, settings.expected_locale_prefix)

            runner = ScenarioRunner(driver, dapp_page, settings.to_runner_config(fail_fast=fail_fast))
            results = await runner.run_all(descriptors)
            return EvidenceEnvelope.from_results(
                results,
                driver_mode=settings.driver_mode,
                locale=profile.locale,
                run_id=run_id,
                artifacts=artifacts,
                bootstrap=bootstrap.to_dict(),
            )
        finally:
            await session.context.close()
