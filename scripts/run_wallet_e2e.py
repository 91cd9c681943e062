#!/usr/bin/env python3
"""Run the wallet parity suite and write an evidence envelope.

Usage::

    # Simulated provider against a local app:
    python scripts/run_wallet_e2e.py --driver-mode simulated

    # Real extension, one scenario, headed:
    WALLET_E2E_WALLET_PASSWORD=... python scripts/run_wallet_e2e.py \\
        --driver-mode extension --extension-path ./wallet-extension \\
        --scenario MM-PARITY-002 --headed

    # Validate an existing evidence file:
    python scripts/run_wallet_e2e.py --validate artifacts/wallet-e2e/run-abc.json

Exit codes: 0 PASS, 1 FAIL, 2 BLOCKED or invalid input.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path

# Add project root to path for imports.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / 'src'))

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from wallet_e2e.config import HarnessSettings
from wallet_e2e.drivers import DRIVER_MODES
from wallet_e2e.evidence import EvidenceEnvelope, load_evidence, validate_evidence
from wallet_e2e.harness import run_harness
from wallet_e2e.observability import configure_logging
from wallet_e2e.scenarios import UnknownScenarioError


ARTIFACTS_DIR = _PROJECT_ROOT / 'artifacts' / 'wallet-e2e'
EXIT_CODES = {'PASS': 0, 'FAIL': 1, 'BLOCKED': 2}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Run wallet signing parity scenarios through a wallet driver.',
    )
    parser.add_argument(
        '--driver-mode',
        choices=DRIVER_MODES,
        help='Wallet driver (default: WALLET_E2E_DRIVER_MODE or extension)',
    )
    parser.add_argument(
        '--scenario',
        action='append',
        default=[],
        help='Run only this scenario id, repeatable (e.g., WM-PARITY-002)',
    )
    parser.add_argument(
        '--app-base-url',
        help='Application URL (default: WALLET_E2E_APP_BASE_URL)',
    )
    parser.add_argument(
        '--extension-path',
        type=Path,
        help='Unpacked wallet extension directory (extension mode)',
    )
    parser.add_argument(
        '--headed',
        action='store_true',
        default=None,
        help='Show the browser window',
    )
    parser.add_argument(
        '--anvil',
        action='store_true',
        default=None,
        dest='anvil_available',
        help='A local chain node is provisioned; run transaction scenarios',
    )
    parser.add_argument(
        '--app-bridge',
        action='store_true',
        default=None,
        dest='app_bridge_enabled',
        help='The app exposes its command bridge; run the app-command lane',
    )
    parser.add_argument(
        '--fail-fast',
        action='store_true',
        help='Skip remaining scenarios after the first failure',
    )
    parser.add_argument(
        '--artifacts-dir',
        type=Path,
        default=ARTIFACTS_DIR,
        help=f'Where to write the evidence envelope (default: {ARTIFACTS_DIR})',
    )
    parser.add_argument(
        '--run-id',
        default='',
        help='Run identifier (default: generated)',
    )
    parser.add_argument(
        '--validate',
        type=Path,
        metavar='EVIDENCE_JSON',
        help='Only validate an existing evidence file and exit',
    )
    parser.add_argument(
        '--json',
        action='store_true',
        dest='json_output',
        help='Print the evidence envelope as JSON',
    )
    return parser.parse_args(argv)


def validate_file(path: Path) -> int:
    if not path.is_file():
        print(f'ERROR: missing evidence file: {path}', file=sys.stderr)
        return 2
    try:
        data = load_evidence(path)
    except json.JSONDecodeError as exc:
        print(f'ERROR: invalid json: {path}: {exc}', file=sys.stderr)
        return 2

    errors = validate_evidence(data, artifact_root=_PROJECT_ROOT)
    for error in errors:
        print(f'[schema] {error}', file=sys.stderr)
    if errors:
        return 2
    print(f'[schema] PASS {path}')
    return 0


def print_text_results(envelope: EvidenceEnvelope) -> None:
    for scenario in envelope.scenarios:
        outcome = scenario['outcome']
        icon = {'PASS': '✔', 'SKIP': '⏩', 'BLOCKED': '⏸'}.get(outcome, '✘')
        print(f'{icon} {scenario["scenario_id"]}: {scenario["title"]} '
              f'[{outcome}] ({scenario["duration_ms"]:.0f}ms)')
        if scenario.get('reason'):
            print(f'      {scenario.get("triage_label", "")} {scenario["reason"]}')

    print(f'\n{"=" * 60}')
    print(f'{envelope.status} driver={envelope.driver_mode} '
          f'locale={envelope.locale} taxonomy={envelope.taxonomy}')
    if envelope.reason:
        print(f'reason: {envelope.reason}')


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.validate:
        return validate_file(args.validate)

    configure_logging()
    settings = HarnessSettings.from_env().with_overrides(
        driver_mode=args.driver_mode,
        app_base_url=args.app_base_url,
        extension_path=args.extension_path,
        headed=args.headed,
        anvil_available=args.anvil_available,
        app_bridge_enabled=args.app_bridge_enabled,
    )
    errors = settings.validate()
    if errors:
        for error in errors:
            print(f'ERROR: {error}', file=sys.stderr)
        return 2

    run_id = args.run_id or f'run-{uuid.uuid4().hex[:12]}'
    evidence_path = args.artifacts_dir / f'{run_id}.json'
    try:
        relative = evidence_path.resolve().relative_to(_PROJECT_ROOT)
    except ValueError:
        relative = evidence_path.resolve()

    try:
        async with async_playwright() as playwright:
            envelope = await run_harness(
                settings,
                playwright,
                run_id=run_id,
                scenario_ids=args.scenario,
                fail_fast=args.fail_fast,
                artifacts={'json_report': str(relative)},
            )
    except UnknownScenarioError as exc:
        print(f'ERROR: {exc}', file=sys.stderr)
        return 2
    except PlaywrightError as exc:
        # Browser runtime failed to start or stop.
        envelope = EvidenceEnvelope.aborted(
            driver_mode=settings.driver_mode,
            reason=f'playwright-unavailable:{exc}',
            run_id=run_id,
            artifacts={'json_report': str(relative)},
        )

    envelope.write(evidence_path)
    if args.json_output:
        print(envelope.to_json())
    else:
        print_text_results(envelope)
        print(f'evidence: {evidence_path}')

    return EXIT_CODES[envelope.status]


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
