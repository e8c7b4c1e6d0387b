from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Awaitable, Callable

from pydantic import BaseModel, ConfigDict

from corsproxy.errors import NoCacheAvailable, UpstreamError

log = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[bytes]]


class CacheStatus(str, enum.Enum):
    """Value of the X-Proxy-Cache response header."""

    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


class CacheState(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    EMPTY = "empty"


class CacheEntry(BaseModel):
    """Body of the last successful upstream fetch."""

    model_config = ConfigDict(frozen=True)

    body: bytes
    fetched_at: float


class CacheResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: bytes
    status: CacheStatus
    error: str | None = None


def _retrieve_exception(task: asyncio.Task) -> None:
    # Mark the failure as seen even when every waiter has gone away.
    if not task.cancelled():
        task.exception()


class ResourceCache:
    """Single-slot cache for one upstream document.

    A fresh entry is served as-is.  Otherwise callers share one in-flight
    refresh: the first caller starts it and everyone arriving before it
    resolves awaits the same task.  When the refresh fails, the previous
    body (however old) is served instead; only an empty cache turns an
    upstream failure into ``NoCacheAvailable``.

    The entry is replaced wholesale after a successful fetch and left
    untouched by a failed one.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        ttl: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._refresh: asyncio.Task[bytes] | None = None
        self._lock = asyncio.Lock()
        self.last_error: str | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    @property
    def refreshing(self) -> bool:
        return self._refresh is not None

    def age(self) -> float | None:
        """Seconds since the last successful fetch, or None."""
        if self._entry is None:
            return None
        return self._clock() - self._entry.fetched_at

    def state(self) -> CacheState:
        age = self.age()
        if age is None:
            return CacheState.EMPTY
        if age < self.ttl:
            return CacheState.FRESH
        return CacheState.STALE

    async def get(self) -> CacheResult:
        """Serve the cached body, refreshing it first when not fresh.

        Raises ``NoCacheAvailable`` if the refresh fails and nothing was
        ever cached.
        """
        async with self._lock:
            state = self.state()
            if state is CacheState.FRESH:
                log.info("cache hit age=%.1fs", self.age())
                return CacheResult(body=self._entry.body, status=CacheStatus.HIT)
            refresh = self._resolve_refresh_locked(state)

        try:
            # A client disconnect cancels this await, never the shared refresh.
            body = await asyncio.shield(refresh)
        except UpstreamError as e:
            entry = self._entry
            if entry is None:
                log.error("upstream failed, no cached copy to serve: %s", e)
                raise NoCacheAvailable(e) from e
            log.warning(
                "upstream failed, serving stale copy age=%.1fs: %s",
                self._clock() - entry.fetched_at,
                e,
            )
            return CacheResult(body=entry.body, status=CacheStatus.STALE, error=str(e))
        return CacheResult(body=body, status=CacheStatus.MISS)

    async def resolve_refresh(self) -> asyncio.Task[bytes]:
        """Return the in-flight refresh, starting one if none is running."""
        async with self._lock:
            return self._resolve_refresh_locked(self.state())

    async def refresh(self) -> bytes:
        """Refetch regardless of freshness; raises ``UpstreamError``."""
        return await asyncio.shield(await self.resolve_refresh())

    def _resolve_refresh_locked(self, state: CacheState) -> asyncio.Task[bytes]:
        if self._refresh is not None:
            log.info("cache %s, joining in-flight refresh", state.value)
            return self._refresh

        log.info("cache %s, starting upstream refresh", state.value)
        task = asyncio.create_task(self._run_refresh())
        task.add_done_callback(self._refresh_done)
        task.add_done_callback(_retrieve_exception)
        self._refresh = task
        return task

    async def _run_refresh(self) -> bytes:
        try:
            body = await self._fetcher()
        except UpstreamError as e:
            self.last_error = str(e)
            raise
        else:
            self._entry = CacheEntry(body=body, fetched_at=self._clock())
            self.last_error = None
            log.info("cache updated bytes=%d", len(body))
            return body
        finally:
            self._refresh = None

    async def aclose(self) -> None:
        """Cancel an in-flight refresh before its HTTP client goes away."""
        task = self._refresh
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def _refresh_done(self, task: asyncio.Task) -> None:
        # Covers a task cancelled by aclose() before its body ever ran.
        if self._refresh is task:
            self._refresh = None
