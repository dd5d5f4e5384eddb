"""
Observability Module

Structured logging with per-run context.
"""

from plancouncil.observability.logging import (
    ContextFilter,
    StructuredFormatter,
    configure_logging,
    current_log_context,
    log_context,
)

__all__ = [
    "ContextFilter",
    "StructuredFormatter",
    "configure_logging",
    "current_log_context",
    "log_context",
]
