"""Test doubles for the browser surface."""

from .fakes import (
    FakeClock,
    FakeContext,
    FakeLocator,
    FakePage,
    FakeWorker,
    RecordingActions,
    RecordingSetup,
    ScriptedProbe,
    selector_key,
)

__all__ = [
    'FakeClock',
    'FakeContext',
    'FakeLocator',
    'FakePage',
    'FakeWorker',
    'RecordingActions',
    'RecordingSetup',
    'ScriptedProbe',
    'selector_key',
]
