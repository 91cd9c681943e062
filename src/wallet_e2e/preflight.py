"""Environment preflight checks run before any scenario.

A failing check raises :class:`EnvironmentBlockedError`; the run is
then reported as ``BLOCKED`` with ``ENV_BLOCKER`` instead of producing
misleading scenario failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from .observability import get_logger
from .taxonomy import FailureTaxonomy

logger = get_logger(__name__)

_PROFILE_JS = """
() => ({
  navigatorLanguage: navigator.language || null,
  navigatorLanguages: Array.from(navigator.languages || []),
  intlLocale: Intl.DateTimeFormat().resolvedOptions().locale || null,
})
"""


class EnvironmentBlockedError(RuntimeError):
    """The environment cannot support a meaningful run.

    Attributes:
        reason: Stable, parseable reason string.
        details: Structured context for the evidence envelope.
    """

    taxonomy = FailureTaxonomy.ENV_BLOCKER

    def __init__(self, reason: str, **details: Any) -> None:
        self.reason = reason
        self.details = details
        super().__init__(reason)

    def __repr__(self) -> str:
        return f'EnvironmentBlockedError(reason={self.reason!r}, details={self.details!r})'


@dataclass(frozen=True, slots=True)
class RuntimeProfile:
    navigator_language: str | None
    navigator_languages: tuple[str, ...]
    intl_locale: str | None

    @property
    def locale(self) -> str:
        return str(self.navigator_language or self.intl_locale or 'unknown').lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            'navigatorLanguage': self.navigator_language,
            'navigatorLanguages': list(self.navigator_languages),
            'intlLocale': self.intl_locale,
        }


async def read_runtime_profile(page: Any) -> RuntimeProfile:
    raw = await page.evaluate(_PROFILE_JS) or {}
    return RuntimeProfile(
        navigator_language=raw.get('navigatorLanguage'),
        navigator_languages=tuple(raw.get('navigatorLanguages') or ()),
        intl_locale=raw.get('intlLocale'),
    )


async def check_runtime_profile(page: Any, expected_prefix: str = 'en') -> RuntimeProfile:
    """Verify the browser locale starts with *expected_prefix*.

    Raises:
        EnvironmentBlockedError: ``runtime-profile-locale-mismatch:...``.
    """
    profile = await read_runtime_profile(page)
    prefix = expected_prefix.lower()
    logger.info('runtime_profile', expected_prefix=prefix, **profile.to_dict())
    if not profile.locale.startswith(prefix):
        raise EnvironmentBlockedError(
            f'runtime-profile-locale-mismatch:{profile.locale}:expected-prefix-{prefix}',
            profile=profile.to_dict(),
        )
    return profile


async def check_app_reachable(
    base_url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout_s: float = 10.0,
) -> int:
    """GET *base_url* and return the status code.

    Raises:
        EnvironmentBlockedError: On transport failure or a 5xx answer.
    """
    owns_client = client is None
    client = client or httpx.AsyncClient(follow_redirects=True)
    try:
        response = await client.get(base_url, timeout=timeout_s)
    except httpx.HTTPError as exc:
        raise EnvironmentBlockedError(
            f'app-unreachable:{base_url}',
            error=f'{type(exc).__name__}: {exc}',
        ) from exc
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code >= 500:
        raise EnvironmentBlockedError(
            f'app-unhealthy:{base_url}:status-{response.status_code}',
            status=response.status_code,
        )
    logger.info('app_reachable', url=base_url, status=response.status_code)
    return response.status_code
