"""Start a Chromium context with the wallet extension loaded."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from .bootstrap import ExtensionSession
from .bootstrap.session import EXTENSION_SCHEME
from .observability import get_logger
from .preflight import EnvironmentBlockedError

logger = get_logger(__name__)

DEFAULT_LOCALE = 'en-US'


def extension_id_from_url(url: str) -> str | None:
    """``chrome-extension://<id>/...`` -> ``<id>``; anything else -> None."""
    parsed = urlparse(url)
    if parsed.scheme != EXTENSION_SCHEME or not parsed.netloc:
        return None
    return parsed.netloc


async def resolve_extension_id(context: Any, timeout_s: float = 30.0) -> str:
    """Read the extension id from its background service worker.

    Waits for the worker to register when none is running yet.

    Raises:
        EnvironmentBlockedError: If no extension worker appears in time.
    """
    for worker in context.service_workers:
        extension_id = extension_id_from_url(worker.url)
        if extension_id:
            return extension_id

    try:
        worker = await context.wait_for_event('serviceworker', timeout=timeout_s * 1000)
    except PlaywrightError as exc:
        raise EnvironmentBlockedError('extension-service-worker-missing', error=str(exc)) from exc

    extension_id = extension_id_from_url(worker.url)
    if not extension_id:
        raise EnvironmentBlockedError('extension-id-unresolved', worker_url=worker.url)
    return extension_id


async def launch_extension_session(
    playwright: Any,
    extension_path: Path | str,
    user_data_dir: Path | str,
    *,
    headed: bool = False,
    locale: str = DEFAULT_LOCALE,
    worker_timeout_s: float = 30.0,
) -> ExtensionSession:
    """Launch a persistent context with the unpacked extension at *extension_path*.

    The caller owns the returned session's context and must close it.

    Raises:
        EnvironmentBlockedError: Missing extension directory or no
            extension worker after launch.
    """
    extension_dir = Path(extension_path).expanduser().resolve()
    if not extension_dir.is_dir():
        raise EnvironmentBlockedError('extension-path-missing', path=str(extension_dir))

    language = locale.split('-')[0]
    context = await playwright.chromium.launch_persistent_context(
        str(user_data_dir),
        headless=not headed,
        locale=locale,
        args=[
            f'--disable-extensions-except={extension_dir}',
            f'--load-extension={extension_dir}',
            f'--lang={locale}',
            f'--accept-lang={locale},{language}',
        ],
    )
    try:
        extension_id = await resolve_extension_id(context, worker_timeout_s)
    except EnvironmentBlockedError:
        await context.close()
        raise

    logger.info('extension_session_started', extension_id=extension_id, headed=headed)
    return ExtensionSession(context=context, extension_id=extension_id)
