"""
Unit tests for CertificateStore.
"""

import asyncio
import gc

import httpx
import pytest

from service_verifier.app.certs.store import CertificateStore
from shared.errors import CertFetchError
from shared.metrics import MetricsCollector
from shared.test_helpers import CERT_URL


OTHER_URL = "https://s3.amazonaws.com/echo.api/other-cert.pem"
THIRD_URL = "https://s3.amazonaws.com/echo.api/third-cert.pem"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestCertificateStore:
    """Test cases for CertificateStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def caching_store(self, cert_host, clock):
        """Store with caching enabled and a hand-driven clock."""
        return CertificateStore(max_entries=2, max_age=60, client=cert_host.client(), clock=clock)

    @pytest.mark.asyncio
    async def test_fetch_downloads_certificate(self, cert_host, certificate_pem):
        """A cold fetch hits the network and returns the body bytes."""
        store = CertificateStore(client=cert_host.client())

        result = await store.fetch(CERT_URL)

        assert result == certificate_pem
        assert cert_host.requests == [CERT_URL]
        assert store.network_fetches == 1

    @pytest.mark.asyncio
    async def test_second_fetch_within_max_age_is_cached(self, caching_store, cert_host, clock):
        """Repeated fetches inside max age return identical bytes without network I/O."""
        first = await caching_store.fetch(CERT_URL)
        clock.advance(60)
        second = await caching_store.fetch(CERT_URL)

        assert first == second
        assert cert_host.calls == 1
        assert len(caching_store) == 1

    @pytest.mark.asyncio
    async def test_fetch_after_max_age_goes_to_network(self, caching_store, cert_host, clock):
        """An entry older than max age is never served."""
        await caching_store.fetch(CERT_URL)
        clock.advance(61)
        await caching_store.fetch(CERT_URL)

        assert cert_host.calls == 2

    @pytest.mark.asyncio
    async def test_zero_entries_disables_cache(self, cert_host):
        """With max_entries=0 every fetch is a download."""
        store = CertificateStore(max_entries=0, client=cert_host.client())

        await store.fetch(CERT_URL)
        await store.fetch(CERT_URL)

        assert cert_host.calls == 2
        assert len(store) == 0
        assert store.cache_enabled is False

    @pytest.mark.asyncio
    async def test_least_recently_used_entry_is_evicted(self, caching_store, cert_host):
        """At capacity the least recently used URL makes room."""
        await caching_store.fetch(CERT_URL)
        await caching_store.fetch(OTHER_URL)
        await caching_store.fetch(CERT_URL)  # refreshes CERT_URL
        await caching_store.fetch(THIRD_URL)  # evicts OTHER_URL

        await caching_store.fetch(CERT_URL)
        assert cert_host.calls == 3

        await caching_store.fetch(OTHER_URL)
        assert cert_host.calls == 4
        assert len(caching_store) == 2

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self, cert_host):
        """Non-2xx responses become CertFetchError and are not cached."""
        cert_host.status_code = 404
        store = CertificateStore(max_entries=5, client=cert_host.client())

        with pytest.raises(CertFetchError) as exc_info:
            await store.fetch(CERT_URL)

        assert exc_info.value.code == "CERT_FETCH_FAILED"
        assert exc_info.value.details == {"url": CERT_URL, "status_code": 404}
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_transport_error_is_normalized(self, cert_host):
        """Transport failures do not leak their detail into the error."""
        cert_host.error = httpx.ConnectError("connection refused by 10.0.0.7")
        store = CertificateStore(client=cert_host.client())

        with pytest.raises(CertFetchError) as exc_info:
            await store.fetch(CERT_URL)

        assert "10.0.0.7" not in str(exc_info.value)
        assert exc_info.value.details == {"url": CERT_URL}

    @pytest.mark.asyncio
    async def test_failed_fetch_is_retried_on_next_call(self, cert_host):
        """A failure is surfaced immediately and the next fetch starts fresh."""
        cert_host.status_code = 503
        store = CertificateStore(max_entries=5, client=cert_host.client())

        with pytest.raises(CertFetchError):
            await store.fetch(CERT_URL)

        cert_host.status_code = 200
        assert await store.fetch(CERT_URL) == cert_host.pem
        assert cert_host.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_fetches_are_coalesced(self, certificate_pem):
        """Simultaneous fetches of one URL share a single download."""
        gate = asyncio.Event()
        calls = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            await gate.wait()
            return httpx.Response(200, content=certificate_pem)

        store = CertificateStore(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        first = asyncio.create_task(store.fetch(CERT_URL))
        second = asyncio.create_task(store.fetch(CERT_URL))
        for _ in range(3):
            await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(first, second)

        assert results == [certificate_pem, certificate_pem]
        assert calls == [CERT_URL]
        assert store.network_fetches == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_abort_shared_fetch(self, certificate_pem):
        """Cancelling one caller leaves the other's download running."""
        gate = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            return httpx.Response(200, content=certificate_pem)

        store = CertificateStore(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        cancelled = asyncio.create_task(store.fetch(CERT_URL))
        survivor = asyncio.create_task(store.fetch(CERT_URL))
        for _ in range(3):
            await asyncio.sleep(0)

        cancelled.cancel()
        gate.set()

        assert await survivor == certificate_pem
        with pytest.raises(asyncio.CancelledError):
            await cancelled

    @pytest.mark.asyncio
    async def test_abandoned_failed_download_is_not_reported(self):
        """A download that fails after its only caller left raises no loop warning."""
        gate = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            raise httpx.ConnectError("connection refused", request=request)

        store = CertificateStore(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        try:
            waiter = asyncio.create_task(store.fetch(CERT_URL))
            for _ in range(3):
                await asyncio.sleep(0)
            download = store._inflight[CERT_URL]

            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
            gate.set()
            await asyncio.wait([download])

            assert download.done() and not download.cancelled()
            assert CERT_URL not in store._inflight
            del download, waiter
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert reported == []

    @pytest.mark.asyncio
    async def test_records_fetch_sources(self, cert_host, clock):
        """Cache hits and downloads are counted separately."""
        metrics = MetricsCollector("verifier")
        store = CertificateStore(max_entries=1, client=cert_host.client(), clock=clock, metrics=metrics)

        await store.fetch(CERT_URL)
        await store.fetch(CERT_URL)

        registry = metrics.registry
        assert registry.get_sample_value("certificate_fetches_total", {"source": "network"}) == 1.0
        assert registry.get_sample_value("certificate_fetches_total", {"source": "cache"}) == 1.0

    def test_clear_cache(self, caching_store):
        caching_store._cache["x"] = object()
        caching_store.clear_cache()
        assert len(caching_store) == 0

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValueError):
            CertificateStore(max_entries=-1)
