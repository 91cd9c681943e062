"""Tests for the parity scenario manifests."""

from __future__ import annotations

import pytest

from wallet_e2e.scenarios import (
    EXTENSION_PARITY_SCENARIOS,
    SIMULATED_PARITY_SCENARIOS,
    ScenarioKind,
    UnknownScenarioError,
    manifest_for_mode,
    select_scenarios,
)


class TestManifests:

    def test_extension_manifest(self):
        assert [d.scenario_id for d in EXTENSION_PARITY_SCENARIOS] == [
            'MM-PARITY-001', 'MM-PARITY-002', 'MM-PARITY-003', 'MM-PARITY-004',
        ]
        assert [d.method for d in EXTENSION_PARITY_SCENARIOS] == [
            'eth_requestAccounts', 'personal_sign', 'eth_signTypedData_v4', 'eth_sendTransaction',
        ]

    def test_only_transaction_needs_anvil(self):
        needs_anvil = [d.scenario_id for d in SIMULATED_PARITY_SCENARIOS if d.requires_anvil]
        assert needs_anvil == ['WM-PARITY-004']

    def test_timeouts(self):
        timeouts = {d.scenario_id: d.timeout_ms for d in SIMULATED_PARITY_SCENARIOS}
        assert timeouts['WM-PARITY-001'] == 45_000
        assert timeouts['WM-PARITY-004'] == 60_000
        assert timeouts['WM-PARITY-005'] == 5_000

    def test_request_scenarios_shared_across_lanes(self):
        extension = [(d.method, d.parity_ids) for d in EXTENSION_PARITY_SCENARIOS]
        simulated = [(d.method, d.parity_ids) for d in SIMULATED_PARITY_SCENARIOS[:4]]
        assert extension == simulated

    def test_simulated_recovery_scenarios(self):
        recovery = [d for d in SIMULATED_PARITY_SCENARIOS if d.kind == ScenarioKind.RECOVERY]
        assert [d.method for d in recovery] == ['accountsChanged', 'chainChanged']

    def test_app_command_lane_is_opt_in(self):
        lane = [d for d in SIMULATED_PARITY_SCENARIOS if d.kind == ScenarioKind.APP_COMMAND]
        assert [d.scenario_id for d in lane] == ['WM-BSS-001']
        assert all(d.requires_app_bridge for d in lane)
        assert not any(d.requires_app_bridge for d in EXTENSION_PARITY_SCENARIOS)

    def test_ids_unique(self):
        for manifest in (EXTENSION_PARITY_SCENARIOS, SIMULATED_PARITY_SCENARIOS):
            ids = [d.scenario_id for d in manifest]
            assert len(ids) == len(set(ids))

    def test_to_dict(self):
        assert EXTENSION_PARITY_SCENARIOS[3].to_dict() == {
            'scenario_id': 'MM-PARITY-004',
            'method': 'eth_sendTransaction',
            'title': 'transaction send via eth_sendTransaction',
            'timeout_ms': 60_000,
            'requires_anvil': True,
            'parity_ids': ['PARITY-TX-02'],
            'kind': 'request',
            'requires_app_bridge': False,
        }

    def test_manifest_for_mode(self):
        assert manifest_for_mode('extension') is EXTENSION_PARITY_SCENARIOS
        assert manifest_for_mode('simulated') is SIMULATED_PARITY_SCENARIOS
        with pytest.raises(ValueError, match='no scenario manifest'):
            manifest_for_mode('hardware')


class TestSelection:

    @pytest.mark.parametrize('ids', [None, [], ['', '  ']])
    def test_no_ids_selects_all(self, ids):
        assert select_scenarios(SIMULATED_PARITY_SCENARIOS, ids) == SIMULATED_PARITY_SCENARIOS

    def test_keeps_manifest_order(self):
        selected = select_scenarios(SIMULATED_PARITY_SCENARIOS, ['WM-PARITY-006', ' WM-PARITY-002'])
        assert [d.scenario_id for d in selected] == ['WM-PARITY-002', 'WM-PARITY-006']

    def test_unknown_ids_rejected(self):
        with pytest.raises(UnknownScenarioError) as exc_info:
            select_scenarios(EXTENSION_PARITY_SCENARIOS, ['WM-PARITY-005', 'MM-PARITY-001', 'ZZ-1'])
        assert str(exc_info.value) == 'unknown-scenario-ids:WM-PARITY-005,ZZ-1'
        assert exc_info.value.unknown == ('WM-PARITY-005', 'ZZ-1')
