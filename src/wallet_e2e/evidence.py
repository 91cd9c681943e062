"""Machine-readable evidence envelope for one harness run.

Aggregates scenario results, the bootstrap outcome and run metadata into
a single JSON document with a versioned schema, so CI gates and triage
tooling can consume runs without parsing logs.

Usage::

    envelope = EvidenceEnvelope.from_results(
        results, driver_mode='simulated', locale='en-us',
    )
    envelope.write(Path('artifacts/wallet-e2e/run.json'))
    assert validate_evidence(envelope.to_dict()) == []
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from .scenarios.runner import ScenarioResult
from .taxonomy import FailureTaxonomy, triage_label

SCHEMA_VERSION = 'wallet-e2e-v1'
NO_TAXONOMY = 'NONE'
NO_TRIAGE = 'none'

RunStatus = Literal['PASS', 'FAIL', 'BLOCKED']


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _generate_run_id() -> str:
    return f'run-{uuid.uuid4().hex[:12]}'


@dataclass(frozen=True, slots=True)
class EvidenceEnvelope:
    """Evidence for one run.

    ``status`` is FAIL if any scenario failed, else BLOCKED if any was
    blocked, else PASS. ``taxonomy`` and ``reason`` come from the first
    failing (or, absent failures, first blocked) scenario.
    """

    run_id: str
    generated: str
    status: RunStatus
    taxonomy: str
    triage_label: str
    driver_mode: str
    locale: str
    reason: str
    scenarios: tuple[dict[str, Any], ...]
    artifacts: dict[str, str] = field(default_factory=dict)
    bootstrap: dict[str, Any] | None = None

    @staticmethod
    def from_results(
        results: Iterable[ScenarioResult],
        *,
        driver_mode: str,
        locale: str = 'unknown',
        run_id: str = '',
        artifacts: dict[str, str] | None = None,
        bootstrap: dict[str, Any] | None = None,
    ) -> EvidenceEnvelope:
        results = tuple(results)
        failed = [r for r in results if r.failed]
        blocked = [r for r in results if r.blocked]

        if failed:
            status: RunStatus = 'FAIL'
            cause: ScenarioResult | None = failed[0]
        elif blocked:
            status = 'BLOCKED'
            cause = blocked[0]
        else:
            status = 'PASS'
            cause = None

        return EvidenceEnvelope(
            run_id=run_id or _generate_run_id(),
            generated=_now_iso(),
            status=status,
            taxonomy=cause.taxonomy.value if cause and cause.taxonomy else NO_TAXONOMY,
            triage_label=(cause.triage_label or NO_TRIAGE) if cause else NO_TRIAGE,
            driver_mode=driver_mode,
            locale=locale,
            reason=(cause.reason or '') if cause else '',
            scenarios=tuple(r.to_dict() for r in results),
            artifacts=dict(artifacts or {}),
            bootstrap=bootstrap,
        )

    @staticmethod
    def aborted(
        *,
        driver_mode: str,
        reason: str,
        taxonomy: FailureTaxonomy = FailureTaxonomy.ENV_BLOCKER,
        locale: str = 'unknown',
        run_id: str = '',
        artifacts: dict[str, str] | None = None,
        bootstrap: dict[str, Any] | None = None,
    ) -> EvidenceEnvelope:
        """Envelope for a run stopped before the scenarios executed.

        Environment blockers yield ``BLOCKED``; anything else ``FAIL``.
        """
        status: RunStatus = 'BLOCKED' if taxonomy == FailureTaxonomy.ENV_BLOCKER else 'FAIL'
        return EvidenceEnvelope(
            run_id=run_id or _generate_run_id(),
            generated=_now_iso(),
            status=status,
            taxonomy=taxonomy.value,
            triage_label=triage_label(taxonomy),
            driver_mode=driver_mode,
            locale=locale,
            reason=reason,
            scenarios=(),
            artifacts=dict(artifacts or {}),
            bootstrap=bootstrap,
        )

    @property
    def passed(self) -> bool:
        return self.status == 'PASS'

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            'schema_version': SCHEMA_VERSION,
            'generated': self.generated,
            'run_id': self.run_id,
            'status': self.status,
            'taxonomy': self.taxonomy,
            'triage_label': self.triage_label,
            'driver_mode': self.driver_mode,
            'locale': self.locale,
            'reason': self.reason,
            'artifacts': self.artifacts,
            'scenarios': list(self.scenarios),
            'bootstrap': self.bootstrap,
        }

    def to_json(self, *, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def write(self, path: Path) -> None:
        """Write the envelope to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding='utf-8')


# ── Validation ─────────────────────────────────────────────────────


class _EvidenceSchema(BaseModel):
    model_config = ConfigDict(extra='allow')

    schema_version: Literal['wallet-e2e-v1']
    generated: str
    run_id: str
    status: RunStatus
    taxonomy: Literal['NONE', 'ENV_BLOCKER', 'HARNESS_FAIL', 'WALLET_FAIL', 'APP_FAIL']
    triage_label: str
    driver_mode: str
    locale: str
    reason: str
    artifacts: dict[str, str]
    scenarios: list[dict[str, Any]]
    bootstrap: dict[str, Any] | None = None


def validate_evidence(data: Any, *, artifact_root: Path | None = None) -> list[str]:
    """Return a list of schema errors. Empty means valid.

    With *artifact_root*, every artifact path must also exist on disk
    relative to it.
    """
    if not isinstance(data, dict):
        return ['evidence must be a JSON object']

    try:
        parsed = _EvidenceSchema.model_validate(data)
    except ValidationError as exc:
        return [
            f'{".".join(str(p) for p in err["loc"]) or "<root>"}: {err["msg"]}'
            for err in exc.errors()
        ]

    errors: list[str] = []
    for key, value in parsed.artifacts.items():
        if not value:
            errors.append(f'artifacts.{key}: empty path')
        elif artifact_root is not None and not (artifact_root / value).exists():
            errors.append(f'artifacts.{key}: missing on disk: {value}')
    if parsed.status == 'PASS' and parsed.taxonomy != NO_TAXONOMY:
        errors.append(f'taxonomy: must be {NO_TAXONOMY} for a passing run')
    if parsed.status != 'PASS' and parsed.taxonomy == NO_TAXONOMY:
        errors.append(f'taxonomy: required for status {parsed.status}')
    return errors


def load_evidence(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding='utf-8'))
