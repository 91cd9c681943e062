"""Failure taxonomy for triaging wallet E2E failures.

Maps any raised error (or error-like mapping/string) onto one of four
buckets so that flaky-harness failures are distinguishable from genuine
application regressions:

  - ``ENV_BLOCKER``: environment not provisioned (surfaced by
    collaborators such as the runtime preflight).
  - ``HARNESS_FAIL``: automation/probe infrastructure failure.
  - ``WALLET_FAIL``: the wallet extension itself is crashed or wedged.
  - ``APP_FAIL``: the application under test misbehaved, including
    explicit user rejection.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any


class FailureTaxonomy(str, Enum):
    """Closed set of failure buckets."""

    ENV_BLOCKER = 'ENV_BLOCKER'
    HARNESS_FAIL = 'HARNESS_FAIL'
    WALLET_FAIL = 'WALLET_FAIL'
    APP_FAIL = 'APP_FAIL'


USER_REJECTED_CODE = 4001

# Matches the extension's crash screen ("MetaMask had trouble starting").
WALLET_CRASH_PHRASES = (
    'had trouble starting',
    'background connection unresponsive',
)

HARNESS_PHRASES = (
    'getnotificationpageandwaitforload',
    'probe timed out',
    'page-recovery-exhausted',
    'timeout',
)

_TRIAGE_LABELS = {
    FailureTaxonomy.ENV_BLOCKER: 'triage/env',
    FailureTaxonomy.HARNESS_FAIL: 'triage/harness',
    FailureTaxonomy.WALLET_FAIL: 'triage/wallet',
    FailureTaxonomy.APP_FAIL: 'triage/app',
}


def classify(error_like: Any) -> FailureTaxonomy:
    """Classify an error-like value into a taxonomy bucket.

    Accepts exceptions (``code`` attribute optional), mappings with
    ``code``/``message`` keys, or anything else (stringified). Never
    raises.
    """
    code, message = _extract(error_like)

    if any(phrase in message for phrase in WALLET_CRASH_PHRASES):
        return FailureTaxonomy.WALLET_FAIL

    if any(phrase in message for phrase in HARNESS_PHRASES):
        return FailureTaxonomy.HARNESS_FAIL

    if code == USER_REJECTED_CODE or 'user rejected' in message:
        return FailureTaxonomy.APP_FAIL

    if 'chain mismatch' in message:
        return FailureTaxonomy.APP_FAIL

    return FailureTaxonomy.APP_FAIL


def is_user_rejection(error_like: Any) -> bool:
    """True when *error_like* carries the EIP-1193 user-rejected code (4001)."""
    code, message = _extract(error_like)
    return code == USER_REJECTED_CODE or 'user rejected' in message


def triage_label(taxonomy: Any) -> str:
    """Return the triage routing label for *taxonomy*.

    Unrecognized values route like ``APP_FAIL``.
    """
    try:
        key = FailureTaxonomy(taxonomy)
    except ValueError:
        return _TRIAGE_LABELS[FailureTaxonomy.APP_FAIL]
    return _TRIAGE_LABELS[key]


# ── Helpers ────────────────────────────────────────────────────────


def _extract(error_like: Any) -> tuple[int | None, str]:
    if isinstance(error_like, Mapping):
        raw_code = error_like.get('code')
        raw_message = error_like.get('message', '')
    elif isinstance(error_like, BaseException):
        raw_code = getattr(error_like, 'code', None)
        raw_message = getattr(error_like, 'message', None) or str(error_like)
    else:
        raw_code = None
        raw_message = '' if error_like is None else error_like

    return _coerce_code(raw_code), str(raw_message or '').lower()


def _coerce_code(raw: Any) -> int | None:
    """Integral numeric code, or None. ``4001.0`` counts; ``4001.9`` does not."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not value.is_integer():
        return None
    return int(value)
