"""
Signing certificate store.

Downloads certificates over HTTPS and keeps a bounded, age-limited LRU
cache of the raw bytes keyed by the exact URL they were fetched from.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, TYPE_CHECKING

import httpx

from shared.errors import CertFetchError
from shared.logging import get_logger

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector


DEFAULT_CACHE_SIZE = 0
DEFAULT_CACHE_AGE = 60 * 60 * 24
DEFAULT_FETCH_TIMEOUT = 10.0


@dataclass(frozen=True)
class CachedCertificate:
    """Certificate bytes and the (monotonic) time they were fetched."""

    data: bytes
    fetched_at: float


class CertificateStore:
    """Fetch-and-cache store for signing certificates."""

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_CACHE_SIZE,
        max_age: float = DEFAULT_CACHE_AGE,
        http_timeout: float = DEFAULT_FETCH_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.max_entries = max_entries
        self.max_age = max_age
        self.metrics = metrics
        self.logger = get_logger("verifier.cert_store")
        self.network_fetches = 0

        self._clock = clock
        self._cache: "OrderedDict[str, CachedCertificate]" = OrderedDict()
        self._inflight: Dict[str, "asyncio.Task[bytes]"] = {}
        self._lock = asyncio.Lock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=http_timeout)

    @property
    def cache_enabled(self) -> bool:
        return self.max_entries > 0

    def __len__(self) -> int:
        return len(self._cache)

    async def close(self) -> None:
        """Close the underlying HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    def clear_cache(self) -> None:
        """Drop every cached certificate."""
        self._cache.clear()
        self.logger.info("Certificate cache cleared")

    async def fetch(self, url: str) -> bytes:
        """
        Return the certificate bytes for `url`.

        A live cache entry is returned without touching the network. Callers
        asking for the same URL while a download is in flight share it.
        """
        async with self._lock:
            cached = self._lookup(url)
            if cached is not None:
                self.logger.debug("found certificate in cache", url=url)
                self._record("cache")
                return cached

            task = self._inflight.get(url)
            if task is None:
                task = asyncio.ensure_future(self._download(url))
                self._inflight[url] = task
                task.add_done_callback(lambda done, key=url: self._forget(key, done))
            else:
                self.logger.debug("joining in-flight certificate fetch", url=url)

        # One waiter being cancelled must not abort the download for the others.
        return await asyncio.shield(task)

    def _lookup(self, url: str) -> Optional[bytes]:
        if not self.cache_enabled:
            return None

        entry = self._cache.get(url)
        if entry is None:
            return None

        if self._clock() - entry.fetched_at > self.max_age:
            self.logger.debug("cached certificate expired", url=url)
            del self._cache[url]
            return None

        self._cache.move_to_end(url)
        return entry.data

    def _store(self, url: str, data: bytes) -> None:
        if not self.cache_enabled:
            return

        self._cache.pop(url, None)
        while len(self._cache) >= self.max_entries:
            evicted, _ = self._cache.popitem(last=False)
            self.logger.debug("evicted certificate from cache", url=evicted)
        self._cache[url] = CachedCertificate(data=data, fetched_at=self._clock())

    def _forget(self, url: str, task: "asyncio.Task[bytes]") -> None:
        if self._inflight.get(url) is task:
            del self._inflight[url]
        # Every waiter may have gone away; the failure is logged by _download.
        if not task.cancelled():
            task.exception()

    async def _download(self, url: str) -> bytes:
        self.logger.debug("getting certificate", url=url)
        self.network_fetches += 1
        start_time = time.perf_counter()

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            self.logger.warning("error getting certificate", url=url, error=str(exc))
            self._record("error")
            raise CertFetchError(details={"url": url}) from exc

        if not response.is_success:
            self.logger.warning("invalid certificate response", url=url, status_code=response.status_code)
            self._record("error")
            raise CertFetchError(
                "Invalid certificate response.",
                details={"url": url, "status_code": response.status_code},
            )

        data = response.content
        self._store(url, data)
        self._record("network", time.perf_counter() - start_time)
        self.logger.debug("got certificate", url=url, size=len(data))
        return data

    def _record(self, source: str, duration: Optional[float] = None) -> None:
        if self.metrics is not None:
            self.metrics.record_certificate_fetch(source, duration)
