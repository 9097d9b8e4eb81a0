"""Raw byte transport for source tiles."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

import aiohttp

from domain.errors import FetchFailure
from shared.constants import HTTP_OK, HTTP_TIMEOUT_DEFAULT

if TYPE_CHECKING:
    from domain.models import RendererSettings

logger = logging.getLogger(__name__)


def _is_http(locator: str) -> bool:
    return locator.startswith(('http://', 'https://'))


class TileSource:
    """Fetch collaborator for the tile cache.

    http(s) locators go through an aiohttp session, ``file://`` URLs and plain
    paths are read from disk in a worker thread. There are no retries: a
    failed fetch is reported once and the cache decides nothing about retrying.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        concurrency: int | None = None,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self._sem = asyncio.Semaphore(concurrency) if concurrency else None
        self._stats_downloads = 0
        self._stats_errors = 0

    @classmethod
    def from_settings(
        cls,
        settings: RendererSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> TileSource:
        return cls(
            session,
            timeout=settings.fetch_timeout_s,
            concurrency=settings.concurrency,
        )

    @property
    def stats(self) -> dict[str, int]:
        return {
            'downloads': self._stats_downloads,
            'errors': self._stats_errors,
        }

    async def fetch(self, locator: str) -> bytes:
        """
        Return the raw bytes behind a locator.

        Raises:
            FetchFailure: missing file, transport error, non-200 status or timeout.
        """
        if self._sem is None:
            return await self._fetch(locator)
        async with self._sem:
            return await self._fetch(locator)

    async def _fetch(self, locator: str) -> bytes:
        try:
            if _is_http(locator):
                data = await self._fetch_http(locator)
            else:
                data = await asyncio.to_thread(self._read_file, locator)
        except FetchFailure:
            self._stats_errors += 1
            raise
        self._stats_downloads += 1
        return data

    async def _fetch_http(self, url: str) -> bytes:
        if self.session is None:
            msg = 'No HTTP session configured'
            raise FetchFailure(url, msg)

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            resp = await self.session.get(url, timeout=timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise FetchFailure(url, f'Request failed: {e!r}') from e
        try:
            sc = resp.status
            if sc != HTTP_OK:
                msg = f'Unexpected HTTP {sc}'
                raise FetchFailure(url, msg)
            try:
                return await resp.read()
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                raise FetchFailure(url, f'Body read failed: {e!r}') from e
        finally:
            # Both aiohttp and cached responses
            with contextlib.suppress(Exception):
                release = getattr(resp, 'release', None)
                if callable(release):
                    release()

    @staticmethod
    def _read_file(locator: str) -> bytes:
        if locator.startswith('file://'):
            path = Path(unquote(urlparse(locator).path))
        else:
            path = Path(locator)
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchFailure(locator, f'Cannot read file: {e}') from e
