"""Observability helpers for the extraction pipeline."""

from src.observability.logging import (
    bind_batch_context,
    clear_batch_context,
    configure_logging,
    get_logger,
)


__all__ = [
    "bind_batch_context",
    "clear_batch_context",
    "configure_logging",
    "get_logger",
]
