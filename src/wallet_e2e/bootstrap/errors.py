"""Typed errors for the bootstrap state machine.

Terminal conditions carry a stable code, a parseable message prefix
(``wallet-bootstrap-<code>``) and structured diagnostic context.
"""

from __future__ import annotations

from typing import Any

ONBOARDING_PERSISTED = 'ONBOARDING_PERSISTED'
BOOTSTRAP_NOT_READY = 'BOOTSTRAP_NOT_READY'
PAGE_RECOVERY_EXHAUSTED = 'PAGE_RECOVERY_EXHAUSTED'
LOCALE_MISMATCH = 'LOCALE_MISMATCH'

MESSAGE_PREFIX = 'wallet-bootstrap'


class TargetClosedError(RuntimeError):
    """The automated extension window was torn down under us."""


class BootstrapError(Exception):
    """Terminal bootstrap failure.

    Attributes:
        code: One of the module-level code constants.
        context: Structured diagnostics (url, title, body excerpt, ...).
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = dict(context)
        super().__init__(format_message(code, self.context))

    @property
    def prefix(self) -> str:
        return f'{MESSAGE_PREFIX}-{code_slug(self.code)}'

    def __repr__(self) -> str:
        parts = [f'{type(self).__name__}({self.code!r}']
        for key, value in self.context.items():
            parts.append(f'{key}={value!r}')
        return ', '.join(parts) + ')'


def code_slug(code: str) -> str:
    """``BOOTSTRAP_NOT_READY`` -> ``not-ready``."""
    slug = code.lower().replace('_', '-')
    return slug.removeprefix('bootstrap-')


def format_message(code: str, context: dict[str, Any]) -> str:
    message = f'{MESSAGE_PREFIX}-{code_slug(code)}'
    for key, value in context.items():
        message += f':{key}={value}'
    return message
