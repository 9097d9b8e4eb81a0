"""Tests for http_client module."""

import sqlite3
from pathlib import Path

import pytest
from aiohttp_client_cache import CachedSession

from infrastructure.http.client import (
    HTTP_CACHE_FILE,
    cleanup_sqlite_cache,
    make_http_session,
    resolve_cache_dir,
)


class TestResolveCacheDir:
    """Tests for resolve_cache_dir function."""

    def test_absolute_path_kept(self, tmp_path):
        """An absolute configured directory is used as is."""
        assert resolve_cache_dir(str(tmp_path)) == tmp_path

    def test_xdg_cache_home(self, tmp_path, monkeypatch):
        """Relative defaults go under $XDG_CACHE_HOME when it is set."""
        monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path))
        result = resolve_cache_dir()
        assert result == (tmp_path / 'forest_loss' / 'tiles').resolve()

    def test_fallback_to_home(self, tmp_path, monkeypatch):
        """Without XDG_CACHE_HOME the home directory is used."""
        monkeypatch.delenv('XDG_CACHE_HOME', raising=False)
        monkeypatch.setattr(Path, 'home', classmethod(lambda cls: tmp_path))
        result = resolve_cache_dir('.cache/forest_loss')
        assert result == (tmp_path / '.cache' / 'forest_loss' / 'tiles').resolve()


class TestCleanupSqliteCache:
    """Tests for cleanup_sqlite_cache function."""

    def test_cleanup_nonexistent_cache(self, tmp_path):
        """Should handle non-existent cache directory gracefully."""
        cleanup_sqlite_cache(tmp_path / 'nonexistent')

    def test_cleanup_existing_cache(self, tmp_path):
        """Checkpoints the WAL and keeps the cache file."""
        cache_file = tmp_path / HTTP_CACHE_FILE
        conn = sqlite3.connect(cache_file)
        conn.execute('CREATE TABLE test (id INTEGER)')
        conn.close()

        cleanup_sqlite_cache(tmp_path)

        assert cache_file.exists()


class TestMakeHttpSession:
    """Tests for make_http_session function."""

    @pytest.mark.asyncio
    async def test_creates_session_without_cache(self):
        """Should create a plain session when cache_dir is None."""
        session = make_http_session(None)
        assert session is not None
        assert not isinstance(session, CachedSession)
        await session.close()

    @pytest.mark.asyncio
    async def test_creates_cached_session(self, tmp_path):
        """Should create a SQLite-backed session when cache_dir is given."""
        cache_dir = tmp_path / 'cache'
        session = make_http_session(cache_dir)
        assert isinstance(session, CachedSession)
        assert cache_dir.is_dir()
        await session.close()
