"""Structured logging for harness runs.

Every entry carries the ``run_id`` of the harness run that emitted it,
so the JSON log stream can be joined against the evidence envelope
written for the same run. Credential-bearing fields are masked before
rendering.

Logs go to stderr by default: stdout is reserved for the evidence
envelope when the CLI runs with ``--json``.

Usage::

    from wallet_e2e.observability.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", json_output=False)
    logger = get_logger(__name__)
    logger.info("bootstrap_attempt", attempt=1, state="LOCKED")
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import IO

import structlog

# Context variable for run-scoped correlation ID.
run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)

HANDLER_NAME = "wallet_e2e"
REDACTED = "***"

SECRET_KEYS = frozenset({"password", "wallet_password", "seed_phrase", "mnemonic"})

# Libraries that log every request or protocol frame at DEBUG.
NOISY_LOGGERS = ("playwright", "httpx", "httpcore", "asyncio")


def _add_run_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the current run_id from context into every log entry."""
    rid = run_id_ctx.get()
    if rid is not None:
        event_dict["run_id"] = rid
    return event_dict


def _redact_secrets(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Mask top-level fields named like credentials."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Configure structlog and route stdlib logging through it.

    Safe to call again: each call replaces the handler installed by the
    previous one and leaves other root handlers alone.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
            Defaults to LOG_LEVEL env var or INFO.
        json_output: If True, emit JSON lines. If False, emit
            human-readable console output. Defaults to LOG_FORMAT
            env var == "json".
        stream: Destination; defaults to stderr.

    Returns:
        The installed handler.
    """
    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_run_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Module-level loggers must pick up a later reconfiguration.
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)
