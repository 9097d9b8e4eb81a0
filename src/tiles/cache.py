"""In-memory cache of decoded source tiles with LRU eviction.

This module provides TileCache class for loading, holding and evicting
decoded tile payloads under a byte budget.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from domain.errors import DecodeFailure, FetchFailure, TileLoadError
from shared.constants import HTTP_TIMEOUT_DEFAULT
from tiles.payload import decode_payload

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from domain.models import RendererSettings, TileDescriptor
    from shared.constants import TileKind
    from tiles.payload import Payload

    FetchFn = Callable[[str], Awaitable[bytes]]
    DecodeFn = Callable[[TileKind, str, bytes], Payload]

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A decoded payload held by the cache."""

    locator: str
    payload: Payload
    size_bytes: int
    last_access: int
    pins: int = 0


@dataclass(frozen=True)
class CacheStats:
    """Read-only snapshot of the cache state."""

    entry_count: int
    size_bytes: int
    budget_bytes: int
    hits: int
    misses: int
    failures: int
    evictions: int
    in_flight: int


class TileCache:
    """Bounded store of decoded tiles keyed by locator.

    Features:
    - LRU eviction against a byte budget, run before each fetch
    - Single-flight loading: concurrent misses for one locator share a fetch
    - Borrowed (pinned) entries are never evicted
    - Failed loads are not cached; the next request tries again

    Usage:
        cache = TileCache(source.fetch, budget_bytes=200 * MB)
        payload = await cache.get(descriptor)
        async with cache.borrow(descriptor) as payload:
            ...
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        budget_bytes: int,
        entry_size_estimate: int,
        fetch_timeout: float = HTTP_TIMEOUT_DEFAULT,
        exact_sizes: bool = True,
        decode: DecodeFn = decode_payload,
    ) -> None:
        """Initialize tile cache.

        Args:
            fetch: Coroutine returning raw bytes for a locator.
            budget_bytes: Upper bound for the summed entry sizes.
            entry_size_estimate: Size assumed for an entry before it is decoded,
                and the accounted size of every entry when exact_sizes is False.
            fetch_timeout: Seconds before a fetch counts as failed.
            exact_sizes: Account entries by decoded array size.
            decode: Bytes -> payload decoder, dispatched on tile kind.
        """
        if budget_bytes <= 0:
            msg = f'Cache budget must be positive, got {budget_bytes}'
            raise ValueError(msg)
        self._fetch = fetch
        self._decode = decode
        self._budget = int(budget_bytes)
        self._estimate = int(entry_size_estimate)
        self._fetch_timeout = fetch_timeout
        self._exact_sizes = exact_sizes

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[Payload]] = {}
        # active borrows per locator, counted from before the load starts
        self._borrows: Counter[str] = Counter()
        self._size = 0
        self._tick = 0
        self._hits = 0
        self._misses = 0
        self._failures = 0
        self._evictions = 0

        if self._estimate > self._budget:
            logger.warning(
                'Entry size estimate (%d bytes) exceeds cache budget (%d bytes): '
                'nothing will stay cached',
                self._estimate,
                self._budget,
            )
        logger.info(
            'TileCache initialized: budget=%.1f MB, estimate=%.1f MB',
            self._budget / 1024 / 1024,
            self._estimate / 1024 / 1024,
        )

    @classmethod
    def from_settings(cls, fetch: FetchFn, settings: RendererSettings) -> TileCache:
        return cls(
            fetch,
            budget_bytes=settings.cache_budget_bytes,
            entry_size_estimate=settings.entry_size_estimate_bytes,
            fetch_timeout=settings.fetch_timeout_s,
            exact_sizes=settings.exact_entry_sizes,
        )

    async def get(self, descriptor: TileDescriptor) -> Payload:
        """Get the decoded payload for a descriptor, loading it on a miss.

        Args:
            descriptor: Source tile; its kind selects the decoder.

        Returns:
            Decoded payload.

        Raises:
            FetchFailure: transport error or timeout.
            DecodeFailure: bytes do not parse as the declared kind.
        """
        return await self.get_or_load(
            descriptor.locator, lambda: self._load(descriptor)
        )

    async def get_or_load(
        self,
        locator: str,
        factory: Callable[[], Awaitable[Payload]],
    ) -> Payload:
        """Return the cached payload or run factory once for all waiters.

        The load runs as a task of its own: a caller that is cancelled stops
        waiting, while the load completes and populates the cache.
        """
        entry = self._entries.get(locator)
        if entry is not None:
            self._touch(entry)
            self._hits += 1
            return entry.payload

        task = self._inflight.get(locator)
        if task is None:
            self._misses += 1
            self._make_room(self._estimate)
            task = asyncio.ensure_future(self._run_load(locator, factory))
            task.add_done_callback(_consume_exception)
            self._inflight[locator] = task
        return await asyncio.shield(task)

    @contextlib.asynccontextmanager
    async def borrow(
        self, descriptor: TileDescriptor
    ) -> AsyncIterator[Payload | None]:
        """Hold a payload for the duration of a composite.

        Yields None when the tile cannot be loaded; the failure is logged here
        and does not propagate. While borrowed, the entry is not evicted; a
        payload still loading is inserted already pinned.
        """
        locator = descriptor.locator
        self._pin(locator, 1)
        try:
            try:
                payload = await self.get(descriptor)
            except TileLoadError as e:
                logger.warning('Tile unavailable: %s', e)
                yield None
                return
            yield payload
        finally:
            self._pin(locator, -1)

    def clear(self) -> None:
        """Drop all entries. In-flight loads still complete and insert."""
        count = len(self._entries)
        self._entries.clear()
        self._size = 0
        logger.info('TileCache cleared: %d entries dropped', count)

    def stats(self) -> CacheStats:
        return CacheStats(
            entry_count=len(self._entries),
            size_bytes=self._size,
            budget_bytes=self._budget,
            hits=self._hits,
            misses=self._misses,
            failures=self._failures,
            evictions=self._evictions,
            in_flight=len(self._inflight),
        )

    def is_loading(self, locator: str) -> bool:
        return locator in self._inflight

    def entry(self, locator: str) -> CacheEntry | None:
        """Entry metadata without touching last_access."""
        return self._entries.get(locator)

    def __contains__(self, locator: object) -> bool:
        return locator in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def _run_load(
        self,
        locator: str,
        factory: Callable[[], Awaitable[Payload]],
    ) -> Payload:
        try:
            payload = await factory()
        except TileLoadError:
            self._failures += 1
            raise
        finally:
            self._inflight.pop(locator, None)
        self._insert(locator, payload)
        return payload

    async def _load(self, descriptor: TileDescriptor) -> Payload:
        locator = descriptor.locator
        try:
            data = await asyncio.wait_for(
                self._fetch(locator), timeout=self._fetch_timeout
            )
        except TileLoadError:
            raise
        except asyncio.TimeoutError as e:
            msg = f'Fetch timed out after {self._fetch_timeout:.1f}s'
            raise FetchFailure(locator, msg) from e
        except Exception as e:
            raise FetchFailure(locator, f'Fetch failed: {e}') from e

        try:
            return await asyncio.to_thread(
                self._decode, descriptor.kind, locator, data
            )
        except TileLoadError:
            raise
        except Exception as e:
            raise DecodeFailure(locator, f'Decode failed: {e}') from e

    def _insert(self, locator: str, payload: Payload) -> None:
        size = payload.nbytes if self._exact_sizes else self._estimate
        if size > self._budget:
            logger.warning(
                'Tile %s (%d bytes) is larger than the cache budget (%d bytes); '
                'not cached',
                locator,
                size,
                self._budget,
            )
            return

        previous = self._entries.pop(locator, None)
        if previous is not None:
            self._size -= previous.size_bytes

        if not self._make_room(size):
            logger.warning(
                'No evictable entries left for %s; served without caching', locator
            )
            return

        self._tick += 1
        self._entries[locator] = CacheEntry(
            locator=locator,
            payload=payload,
            size_bytes=size,
            last_access=self._tick,
            pins=self._borrows[locator],
        )
        self._size += size
        logger.debug(
            'Cached %s: %d bytes, total %d/%d', locator, size, self._size, self._budget
        )

    def _make_room(self, needed: int) -> bool:
        """Evict least recently used unpinned entries until needed bytes fit."""
        while self._size + needed > self._budget:
            victim = next((e for e in self._entries.values() if e.pins == 0), None)
            if victim is None:
                return False
            self._evict(victim)
        return True

    def _evict(self, entry: CacheEntry) -> None:
        del self._entries[entry.locator]
        self._size -= entry.size_bytes
        self._evictions += 1
        logger.debug('Evicted %s (%d bytes)', entry.locator, entry.size_bytes)

    def _pin(self, locator: str, delta: int) -> None:
        # entry.pins mirrors the borrow count for as long as the entry exists
        self._borrows[locator] += delta
        if self._borrows[locator] <= 0:
            del self._borrows[locator]
        entry = self._entries.get(locator)
        if entry is not None:
            entry.pins += delta

    def _touch(self, entry: CacheEntry) -> None:
        self._tick += 1
        entry.last_access = self._tick
        self._entries.move_to_end(entry.locator)


def _consume_exception(task: asyncio.Task) -> None:
    # Marks the failure as retrieved when no caller is left waiting
    if not task.cancelled():
        task.exception()
