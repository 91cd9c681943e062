"""Parity scenario manifests for both driver modes.

Each descriptor names one wallet interaction and the deadline it must
complete within. The extension and simulated manifests share their
first four scenarios; the simulated lane adds event-recovery checks
that only a scriptable provider can trigger deterministically, and an
opt-in application lane driven through the app command bridge.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class ScenarioKind(str, Enum):
    REQUEST = 'request'
    RECOVERY = 'recovery'
    APP_COMMAND = 'app_command'


@dataclass(frozen=True, slots=True)
class ScenarioDescriptor:
    """One parity scenario.

    Attributes:
        scenario_id: Stable identifier, e.g. ``MM-PARITY-002``.
        method: Provider method, or provider event for recovery checks.
        title: Human-readable summary.
        timeout_ms: Deadline for the whole interaction.
        requires_anvil: Needs a provisioned local chain node.
        parity_ids: Cross-lane parity requirement ids.
        kind: Provider request, event recovery or app command.
        requires_app_bridge: Drives the application through its
            command bridge; skipped unless the run enables it.
    """

    scenario_id: str
    method: str
    title: str
    timeout_ms: int
    requires_anvil: bool = False
    parity_ids: tuple[str, ...] = ()
    kind: ScenarioKind = ScenarioKind.REQUEST
    requires_app_bridge: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            'scenario_id': self.scenario_id,
            'method': self.method,
            'title': self.title,
            'timeout_ms': self.timeout_ms,
            'requires_anvil': self.requires_anvil,
            'parity_ids': list(self.parity_ids),
            'kind': self.kind.value,
            'requires_app_bridge': self.requires_app_bridge,
        }


class UnknownScenarioError(ValueError):
    def __init__(self, unknown: Iterable[str]) -> None:
        self.unknown = tuple(sorted(unknown))
        super().__init__(f'unknown-scenario-ids:{",".join(self.unknown)}')


def _request_scenarios(prefix: str) -> tuple[ScenarioDescriptor, ...]:
    return (
        ScenarioDescriptor(
            f'{prefix}-PARITY-001', 'eth_requestAccounts',
            'connect via eth_requestAccounts', 45_000,
            parity_ids=('PARITY-TX-01',),
        ),
        ScenarioDescriptor(
            f'{prefix}-PARITY-002', 'personal_sign',
            'message signing via personal_sign', 45_000,
            parity_ids=('PARITY-MSG-01',),
        ),
        ScenarioDescriptor(
            f'{prefix}-PARITY-003', 'eth_signTypedData_v4',
            'typed data signing via eth_signTypedData_v4', 45_000,
            parity_ids=('PARITY-MSG-01',),
        ),
        ScenarioDescriptor(
            f'{prefix}-PARITY-004', 'eth_sendTransaction',
            'transaction send via eth_sendTransaction', 60_000,
            requires_anvil=True, parity_ids=('PARITY-TX-02',),
        ),
    )


EXTENSION_PARITY_SCENARIOS: tuple[ScenarioDescriptor, ...] = _request_scenarios('MM')

SIMULATED_PARITY_SCENARIOS: tuple[ScenarioDescriptor, ...] = _request_scenarios('WM') + (
    ScenarioDescriptor(
        'WM-PARITY-005', 'accountsChanged',
        'accountsChanged deterministic recovery', 5_000,
        kind=ScenarioKind.RECOVERY,
    ),
    ScenarioDescriptor(
        'WM-PARITY-006', 'chainChanged',
        'chainChanged deterministic recovery', 5_000,
        kind=ScenarioKind.RECOVERY,
    ),
    ScenarioDescriptor(
        'WM-BSS-001', 'create_raw_tx_draft',
        'signing queue draft via the app command bridge', 30_000,
        kind=ScenarioKind.APP_COMMAND, requires_app_bridge=True,
    ),
)

MANIFESTS: dict[str, tuple[ScenarioDescriptor, ...]] = {
    'extension': EXTENSION_PARITY_SCENARIOS,
    'simulated': SIMULATED_PARITY_SCENARIOS,
}


def manifest_for_mode(mode: str) -> tuple[ScenarioDescriptor, ...]:
    try:
        return MANIFESTS[mode]
    except KeyError:
        raise ValueError(f'no scenario manifest for driver mode: {mode}') from None


def select_scenarios(
    manifest: tuple[ScenarioDescriptor, ...],
    ids: Iterable[str] | None = None,
) -> tuple[ScenarioDescriptor, ...]:
    """Return the descriptors named by *ids*, in manifest order.

    No ids selects the whole manifest.

    Raises:
        UnknownScenarioError: If any id is not in *manifest*.
    """
    wanted = {i.strip() for i in ids or () if i and i.strip()}
    if not wanted:
        return manifest
    known = {d.scenario_id for d in manifest}
    unknown = wanted - known
    if unknown:
        raise UnknownScenarioError(unknown)
    return tuple(d for d in manifest if d.scenario_id in wanted)
