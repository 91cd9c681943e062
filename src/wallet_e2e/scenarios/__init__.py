"""Parity scenario manifests and their runner."""

from .manifest import (
    EXTENSION_PARITY_SCENARIOS,
    SIMULATED_PARITY_SCENARIOS,
    ScenarioDescriptor,
    ScenarioKind,
    UnknownScenarioError,
    manifest_for_mode,
    select_scenarios,
)
from .runner import (
    RunnerConfig,
    ScenarioAssertionError,
    ScenarioOutcome,
    ScenarioResult,
    ScenarioRunner,
    ScenarioTimeoutError,
)

__all__ = [
    'EXTENSION_PARITY_SCENARIOS',
    'SIMULATED_PARITY_SCENARIOS',
    'RunnerConfig',
    'ScenarioAssertionError',
    'ScenarioDescriptor',
    'ScenarioKind',
    'ScenarioOutcome',
    'ScenarioResult',
    'ScenarioRunner',
    'ScenarioTimeoutError',
    'UnknownScenarioError',
    'manifest_for_mode',
    'select_scenarios',
]
