"""Tests for the WalletDriver contract helpers and diagnostics."""

from __future__ import annotations

import pytest
from playwright.async_api import Error as PlaywrightError

from wallet_e2e.drivers.contract import (
    DIAGNOSTICS_KEYS,
    WALLET_DRIVER_METHODS,
    WalletDiagnostics,
    WalletDriver,
    WalletDriverContractError,
    assert_wallet_driver_contract,
    collect_provider_diagnostics,
    missing_wallet_driver_methods,
)
from wallet_e2e.testing import FakePage


class _CompleteDriver:
    async def bootstrap_wallet(self): ...
    async def connect_to_dapp(self): ...
    async def approve_signature(self, **kwargs): ...
    async def approve_transaction(self, **kwargs): ...
    async def approve_network_change(self, **kwargs): ...
    async def recover_from_failure(self, kind, payload=None): return {}
    async def collect_wallet_diagnostics(self): return {}


class _PartialDriver:
    async def bootstrap_wallet(self): ...
    async def connect_to_dapp(self): ...
    async def approve_signature(self, **kwargs): ...
    async def approve_network_change(self, **kwargs): ...
    async def recover_from_failure(self, kind, payload=None): return {}
    # approve_transaction absent; diagnostics present but not callable
    collect_wallet_diagnostics = 'not callable'


class TestContractCheck:

    def test_complete_driver_passes(self):
        assert_wallet_driver_contract(_CompleteDriver())
        assert isinstance(_CompleteDriver(), WalletDriver)

    def test_missing_methods_reported_sorted(self):
        with pytest.raises(WalletDriverContractError) as exc_info:
            assert_wallet_driver_contract(_PartialDriver(), 'custom-driver')
        err = exc_info.value
        assert err.missing_methods == ('approve_transaction', 'collect_wallet_diagnostics')
        assert str(err) == (
            'custom-driver-missing-methods:approve_transaction,collect_wallet_diagnostics'
        )

    def test_none_is_invalid_instance(self):
        with pytest.raises(WalletDriverContractError, match='wallet-driver-invalid-instance'):
            assert_wallet_driver_contract(None)

    def test_contract_error_is_type_error(self):
        assert issubclass(WalletDriverContractError, TypeError)

    def test_empty_object_misses_everything(self):
        assert missing_wallet_driver_methods(object()) == tuple(sorted(WALLET_DRIVER_METHODS))


class TestDiagnostics:

    def test_from_probe_normalizes_values(self):
        diag = WalletDiagnostics.from_provider_probe(
            'simulated', {'hasProvider': 1, 'chainId': '0x1', 'accounts': ['0xabc']},
        )
        assert diag.to_dict() == {
            'driver': 'simulated',
            'hasProvider': True,
            'chainId': '0x1',
            'accounts': ['0xabc'],
        }

    def test_from_probe_tolerates_garbage(self):
        diag = WalletDiagnostics.from_provider_probe('extension', None)
        assert diag.to_dict() == {
            'driver': 'extension', 'hasProvider': False, 'chainId': None, 'accounts': [],
        }

    def test_key_set_matches_contract(self):
        diag = WalletDiagnostics('extension', True)
        assert tuple(diag.to_dict()) == DIAGNOSTICS_KEYS

    @pytest.mark.asyncio
    async def test_collect_reads_page(self):
        page = FakePage(evaluate_handler=lambda script, arg: {
            'hasProvider': True, 'chainId': '0xaa36a7', 'accounts': [],
        })
        result = await collect_provider_diagnostics(page, 'simulated')
        assert result['chainId'] == '0xaa36a7'
        assert result['hasProvider'] is True

    @pytest.mark.asyncio
    async def test_collect_survives_page_fault(self):
        def boom(script, arg):
            raise PlaywrightError('Execution context was destroyed')

        result = await collect_provider_diagnostics(FakePage(evaluate_handler=boom), 'extension')
        assert result == {
            'driver': 'extension', 'hasProvider': False, 'chainId': None, 'accounts': [],
        }
