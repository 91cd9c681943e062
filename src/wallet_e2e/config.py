"""Harness configuration.

HarnessSettings is a plain frozen dataclass so tests can build it
directly; ``from_env`` reads the ``WALLET_E2E_*`` variables for CLI use.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from .bootstrap import BootstrapConfig
from .drivers.factory import DRIVER_MODES, DEFAULT_DRIVER_MODE
from .scenarios.runner import RunnerConfig

ENV_PREFIX = "WALLET_E2E_"
DEFAULT_APP_BASE_URL = "http://127.0.0.1:7272/"
DEFAULT_SEED_PHRASE = "test test test test test test test test test test test junk"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class HarnessSettings:
    """Configuration for one harness run."""

    # ── Environment ────────────────────────────────────────────────
    expected_locale_prefix: str = "en"
    strict_locale: bool = False
    app_base_url: str = DEFAULT_APP_BASE_URL
    anvil_available: bool = False
    app_bridge_enabled: bool = False
    """Run the app-command lane (simulated mode only)."""

    # ── Driver ─────────────────────────────────────────────────────
    driver_mode: str = DEFAULT_DRIVER_MODE
    """One of: extension, simulated."""

    extension_path: Path | None = None
    """Unpacked extension directory (extension mode only)."""

    headed: bool = False

    # ── Wallet credentials ─────────────────────────────────────────
    wallet_password: str = ""
    """Lock-screen password. Never log this."""

    seed_phrase: str = DEFAULT_SEED_PHRASE
    """Recovery phrase for first-run setup. Never log this."""

    # ── Bootstrap ──────────────────────────────────────────────────
    max_attempts: int = 3

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.driver_mode not in DRIVER_MODES:
            errors.append(
                f"driver_mode must be one of {', '.join(DRIVER_MODES)}, got {self.driver_mode!r}"
            )
        if self.max_attempts < 1:
            errors.append("max_attempts must be >= 1")
        if not self.expected_locale_prefix:
            errors.append("expected_locale_prefix is required")
        if not self.app_base_url.startswith(("http://", "https://")):
            errors.append(f"app_base_url must be an http(s) URL, got {self.app_base_url!r}")
        if self.driver_mode == "extension":
            if self.extension_path is None:
                errors.append("extension: extension_path is required")
            if not self.wallet_password:
                errors.append("extension: wallet_password is required")
            if len(self.seed_phrase.split()) not in (12, 15, 18, 21, 24):
                errors.append("extension: seed_phrase must have 12-24 words")
        return errors

    def to_bootstrap_config(self) -> BootstrapConfig:
        return BootstrapConfig(
            max_attempts=self.max_attempts,
            expected_locale_prefix=self.expected_locale_prefix,
            strict_locale=self.strict_locale,
        )

    def to_runner_config(self, *, fail_fast: bool = False) -> RunnerConfig:
        return RunnerConfig(
            anvil_available=self.anvil_available,
            app_bridge_enabled=self.app_bridge_enabled,
            fail_fast=fail_fast,
        )

    def with_overrides(self, **changes: object) -> HarnessSettings:
        """Copy with the non-None *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def redacted(self) -> dict[str, object]:
        """Loggable view with credentials masked."""
        return {
            "expected_locale_prefix": self.expected_locale_prefix,
            "strict_locale": self.strict_locale,
            "app_base_url": self.app_base_url,
            "anvil_available": self.anvil_available,
            "app_bridge_enabled": self.app_bridge_enabled,
            "driver_mode": self.driver_mode,
            "extension_path": str(self.extension_path) if self.extension_path else None,
            "headed": self.headed,
            "wallet_password": "***" if self.wallet_password else "",
            "seed_phrase": "***",
            "max_attempts": self.max_attempts,
        }

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> HarnessSettings:
        """Build settings from ``WALLET_E2E_*`` environment variables.

        Raises:
            ValueError: If ``WALLET_E2E_MAX_ATTEMPTS`` is not an integer.
        """
        if env is None:
            env = dict(os.environ)

        def get(name: str, default: str = "") -> str:
            return env.get(f"{ENV_PREFIX}{name}", default).strip()

        max_attempts_raw = get("MAX_ATTEMPTS", "3")
        try:
            max_attempts = int(max_attempts_raw)
        except ValueError:
            raise ValueError(
                f"{ENV_PREFIX}MAX_ATTEMPTS must be an integer, got {max_attempts_raw!r}"
            ) from None

        extension_path = get("EXTENSION_PATH")

        return cls(
            expected_locale_prefix=(get("EXPECTED_LOCALE_PREFIX") or "en").lower(),
            strict_locale=_flag(get("STRICT_LOCALE")),
            app_base_url=get("APP_BASE_URL") or DEFAULT_APP_BASE_URL,
            anvil_available=_flag(get("ANVIL_AVAILABLE")),
            app_bridge_enabled=_flag(get("APP_BRIDGE")),
            driver_mode=(get("DRIVER_MODE") or DEFAULT_DRIVER_MODE).lower(),
            extension_path=Path(extension_path) if extension_path else None,
            headed=_flag(get("HEADED")),
            wallet_password=get("WALLET_PASSWORD"),
            seed_phrase=get("SEED_PHRASE") or DEFAULT_SEED_PHRASE,
            max_attempts=max_attempts,
        )
