"""Tests for failure classification and triage routing."""

from __future__ import annotations

import pytest

from wallet_e2e.bootstrap import PAGE_RECOVERY_EXHAUSTED, BootstrapError
from wallet_e2e.taxonomy import FailureTaxonomy, classify, is_user_rejection, triage_label


class _CodedError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


class TestClassifyPriority:

    def test_user_rejected_code_is_app_fail(self):
        taxonomy = classify({'code': 4001, 'message': 'User rejected the request.'})
        assert taxonomy == FailureTaxonomy.APP_FAIL
        assert triage_label(taxonomy) == 'triage/app'

    def test_user_rejected_code_without_message(self):
        assert classify(_CodedError(4001, 'nope')) == FailureTaxonomy.APP_FAIL

    def test_timeout_message_is_harness_fail(self):
        assert classify({'message': 'personal_sign-timeout-45000ms'}) == FailureTaxonomy.HARNESS_FAIL

    def test_chain_mismatch_is_app_fail(self):
        assert classify(RuntimeError('Chain mismatch: expected 0x1')) == FailureTaxonomy.APP_FAIL

    def test_crash_phrase_beats_timeout(self):
        message = 'MetaMask had trouble starting (timeout waiting for background)'
        assert classify(message) == FailureTaxonomy.WALLET_FAIL

    def test_background_unresponsive_is_wallet_fail(self):
        assert classify('Background connection unresponsive') == FailureTaxonomy.WALLET_FAIL

    def test_harness_beats_user_rejection(self):
        error = _CodedError(4001, 'probe timed out while user rejected')
        assert classify(error) == FailureTaxonomy.HARNESS_FAIL

    @pytest.mark.parametrize('message', [
        'getNotificationPageAndWaitForLoad failed',
        'Probe timed out',
        'Timeout 30000ms exceeded.',
    ])
    def test_harness_signatures(self, message):
        assert classify(message) == FailureTaxonomy.HARNESS_FAIL

    def test_page_recovery_exhausted_error_is_harness_fail(self):
        error = BootstrapError(PAGE_RECOVERY_EXHAUSTED, attempts=4)
        assert classify(error) == FailureTaxonomy.HARNESS_FAIL

    def test_unknown_error_defaults_to_app_fail(self):
        assert classify(ValueError('something else')) == FailureTaxonomy.APP_FAIL


class TestClassifyInputs:

    def test_none_is_app_fail(self):
        assert classify(None) == FailureTaxonomy.APP_FAIL

    def test_string_code_is_coerced(self):
        assert classify({'code': '4001', 'message': ''}) == FailureTaxonomy.APP_FAIL

    def test_non_numeric_code_is_ignored(self):
        assert classify({'code': 'E_BAD', 'message': 'boom'}) == FailureTaxonomy.APP_FAIL

    def test_mapping_without_message(self):
        assert classify({}) == FailureTaxonomy.APP_FAIL


class TestTriageLabel:

    @pytest.mark.parametrize('taxonomy, label', [
        (FailureTaxonomy.ENV_BLOCKER, 'triage/env'),
        (FailureTaxonomy.HARNESS_FAIL, 'triage/harness'),
        (FailureTaxonomy.WALLET_FAIL, 'triage/wallet'),
        (FailureTaxonomy.APP_FAIL, 'triage/app'),
    ])
    def test_known_buckets(self, taxonomy, label):
        assert triage_label(taxonomy) == label

    def test_accepts_plain_string(self):
        assert triage_label('WALLET_FAIL') == 'triage/wallet'

    def test_unknown_routes_to_app(self):
        assert triage_label('SOMETHING_ELSE') == 'triage/app'
        assert triage_label(None) == 'triage/app'


class TestIsUserRejection:

    @pytest.mark.parametrize('code', [4001, '4001', 4001.0])
    def test_integral_codes_match(self, code):
        assert is_user_rejection({'code': code, 'message': 'denied'})

    @pytest.mark.parametrize('code', [4001.9, '4001.5', 4002, True, None, 'E_BAD'])
    def test_other_codes_do_not_match(self, code):
        assert not is_user_rejection({'code': code, 'message': 'denied'})

    def test_message_alone_matches(self):
        assert is_user_rejection(_CodedError(None, 'User rejected the request.'))
