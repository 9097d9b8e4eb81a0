"""
Diagnostic utilities.

This module reports process resources and cache state to the log.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import psutil

from shared.constants import MB

if TYPE_CHECKING:
    from tiles.cache import CacheStats

logger = logging.getLogger(__name__)


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / MB, 2),
            'process_vms_mb': round(memory_info.vms / MB, 2),
            'system_total_mb': round(system_memory.total / MB, 2),
            'system_available_mb': round(system_memory.available / MB, 2),
            'system_used_percent': system_memory.percent,
            'process_memory_percent': round(process.memory_percent(), 2),
        }
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}


def get_thread_info() -> dict[str, Any]:
    """Get information about active threads."""
    info: dict[str, Any] = {
        'active_count': threading.active_count(),
        'thread_names': [t.name for t in threading.enumerate()],
    }
    try:
        info['system_threads'] = psutil.Process().num_threads()
    except psutil.Error as e:
        logger.debug('Failed to get system thread count: %s', e)
    return info


def get_http_cache_info(cache_dir: Path) -> dict[str, Any]:
    """SQLite files of the on-disk HTTP cache."""
    sqlite_files = []
    if cache_dir.exists():
        for sqlite_file in cache_dir.rglob('*.sqlite*'):
            try:
                stat = sqlite_file.stat()
            except OSError as e:
                logger.debug('Failed to stat %s: %s', sqlite_file, e)
                continue
            sqlite_files.append(
                {
                    'file': str(sqlite_file),
                    'size_mb': round(stat.st_size / MB, 2),
                    'modified': time.ctime(stat.st_mtime),
                },
            )
    return {
        'cache_dir': str(cache_dir),
        'sqlite_files': sqlite_files,
        'total_files': len(sqlite_files),
    }


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def log_thread_status(context: str = '') -> None:
    """Quick thread status logging."""
    thread_info = get_thread_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Thread status%s: Active=%s, System=%s',
        context_label,
        thread_info.get('active_count', 'N/A'),
        thread_info.get('system_threads', 'N/A'),
    )


def log_cache_stats(stats: CacheStats, context: str = '') -> None:
    """One-line summary of the decoded tile cache."""
    context_label = f' ({context})' if context else ''
    lookups = stats.hits + stats.misses
    hit_rate = stats.hits / lookups * 100 if lookups else 0.0
    logger.info(
        'Tile cache%s: %d entries, %.1f/%.1f MB, hits=%d misses=%d (%.0f%%), '
        'failures=%d evictions=%d in_flight=%d',
        context_label,
        stats.entry_count,
        stats.size_bytes / MB,
        stats.budget_bytes / MB,
        stats.hits,
        stats.misses,
        hit_rate,
        stats.failures,
        stats.evictions,
        stats.in_flight,
    )
