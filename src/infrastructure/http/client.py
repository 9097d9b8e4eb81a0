from __future__ import annotations

import logging
import os
import sqlite3
import ssl
import time
from datetime import timedelta
from pathlib import Path

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from shared.constants import (
    HTTP_CACHE_DIR,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_RESPECT_HEADERS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
)

logger = logging.getLogger(__name__)

HTTP_CACHE_FILE = 'http_cache.sqlite'


def resolve_cache_dir(configured: str | None = None) -> Path:
    """Directory for the on-disk HTTP cache of raw tile bytes."""
    raw_dir = Path(configured or HTTP_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir

    xdg = os.getenv('XDG_CACHE_HOME')
    if xdg:
        return (Path(xdg) / 'forest_loss' / 'tiles').resolve()
    return (Path.home() / raw_dir / 'tiles').resolve()


def cleanup_sqlite_cache(cache_dir: Path) -> None:
    """Fold the WAL back into the cache database after the session is closed."""
    cache_file = cache_dir / HTTP_CACHE_FILE
    if not cache_file.exists():
        return
    conn = sqlite3.connect(cache_file)
    try:
        conn.execute('PRAGMA wal_checkpoint(TRUNCATE);')
    finally:
        conn.close()
    # let the OS release the file handles
    time.sleep(0.1)


def _tls_connector() -> aiohttp.TCPConnector:
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    return aiohttp.TCPConnector(ssl=ssl_context)


def _prepare_cache_file(cache_dir: Path) -> Path:
    cache_dir.mkdir(parents=True, exist_ok=True)
    cache_path = cache_dir / HTTP_CACHE_FILE
    if not cache_path.exists():
        try:
            with sqlite3.connect(cache_path) as conn:
                conn.execute('PRAGMA journal_mode=WAL;')
        except sqlite3.Error as e:
            logger.warning('Cannot switch %s to WAL mode: %s', cache_path, e)
    return cache_path


def make_http_session(
    cache_dir: Path | None,
    *,
    expire_hours: int = HTTP_CACHE_EXPIRE_HOURS,
    stale_if_error_hours: int = HTTP_CACHE_STALE_IF_ERROR_HOURS,
    respect_headers: bool = HTTP_CACHE_RESPECT_HEADERS,
) -> aiohttp.ClientSession:
    """
    Create the session used for tile downloads.

    With a cache_dir the raw responses are kept in a SQLite HTTP cache, so
    tiles evicted from the in-memory cache are not downloaded again. A stale
    response is served for stale_if_error_hours when the origin fails.
    """
    if cache_dir is None:
        return aiohttp.ClientSession(connector=_tls_connector())

    cache_path = _prepare_cache_file(cache_dir)
    expire_after = timedelta(hours=max(0, int(expire_hours)))
    stale: bool | timedelta = False
    if stale_if_error_hours > 0:
        stale = timedelta(hours=int(stale_if_error_hours))

    logger.debug('HTTP cache at %s, expire after %s', cache_path, expire_after)
    return CachedSession(
        cache=SQLiteBackend(str(cache_path), expire_after=expire_after),
        connector=_tls_connector(),
        expire_after=expire_after,
        cache_control=respect_headers,
        stale_if_error=stale,
    )
