"""Observability infrastructure for wallet-e2e.

Quick start::

    from wallet_e2e.observability import configure_logging, run_id_ctx

    configure_logging()
    run_id_ctx.set('run-abc')
"""

from .logging import configure_logging, get_logger, run_id_ctx

__all__ = [
    "configure_logging",
    "get_logger",
    "run_id_ctx",
]
