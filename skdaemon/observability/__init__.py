"""Observability helpers."""

from skdaemon.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_completion,
    record_cache_lookup,
    record_project_refresh,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_completion",
    "record_cache_lookup",
    "record_project_refresh",
]
