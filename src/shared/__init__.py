"""Shared utilities and helpers."""
from shared.diagnostics import (
    log_cache_stats,
    log_memory_usage,
    log_thread_status,
)

__all__ = [
    'log_cache_stats',
    'log_memory_usage',
    'log_thread_status',
]
