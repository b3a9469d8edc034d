"""
Speed test client.

Entering the context loads the speedtest.net settings and server list,
probes the closest servers in the client's country and keeps them ranked
by latency.  The tests then run against the fastest server unless another
one is passed in::

    async with SpeedTestClient() as client:
        ping_ms = await client.test_latency()
        down_kbps = await client.test_download()
        up_kbps = await client.test_upload()
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

from .api import Server, Settings, SpeedtestAPI, select_candidates
from .constants import (
    CANDIDATE_LIMIT,
    CONFIG_URL,
    DEFAULT_DOWNLOAD_RETRIES,
    DEFAULT_LATENCY_RETRIES,
    DEFAULT_UPLOAD_RETRIES,
    SERVERS_URL,
)
from .download import DownloadTester
from .errors import InitializationError, NoMatchedServers, SpeedtestException
from .executor import BatchResult, ProgressFn
from .latency import LatencyTester
from .upload import UploadTester

LOGGER = logging.getLogger(__name__)


class SpeedTestClient:
    """Async context manager exposing the latency, download and upload tests."""

    def __init__(
        self,
        config_url: str = CONFIG_URL,
        servers_url: str = SERVERS_URL,
        candidate_limit: int = CANDIDATE_LIMIT,
        latency_retries: int = DEFAULT_LATENCY_RETRIES,
        download_concurrency: Optional[int] = None,
        upload_concurrency: Optional[int] = None,
        tolerate_failures: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config_url = config_url
        self.servers_url = servers_url
        self.candidate_limit = candidate_limit
        self.latency_retries = latency_retries
        self.download_concurrency = download_concurrency
        self.upload_concurrency = upload_concurrency
        self.tolerate_failures = tolerate_failures
        self.clock = clock

        self._settings: Optional[Settings] = None
        self._servers: Tuple[Server, ...] = ()

    # -- Initialisation -----------------------------------------------------

    async def __aenter__(self) -> SpeedTestClient:
        async with SpeedtestAPI(self.config_url, self.servers_url) as api:
            settings = await api.get_settings()
            servers = await api.fetch_servers(settings.client.coordinate, settings.ignore_ids)

        candidates = select_candidates(servers, settings.default_country, self.candidate_limit)
        if not candidates:
            raise NoMatchedServers(
                f"No servers in country {settings.default_country!r} "
                f"among {len(servers)} listed servers"
            )

        try:
            ranked = await LatencyTester(clock=self.clock).rank(candidates, self.latency_retries)
        except SpeedtestException as exc:
            raise InitializationError(f"Server ranking failed: {exc}") from exc

        self._settings = settings
        self._servers = ranked
        LOGGER.info(
            "Best server: %s (%s) at %d ms", ranked[0].name, ranked[0].sponsor, ranked[0].latency
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self._settings = None
        self._servers = ()

    # -- State --------------------------------------------------------------

    def _ensure_ready(self) -> Settings:
        if self._settings is None:
            raise RuntimeError(
                "SpeedTestClient must be used as an async context manager "
                "(async with SpeedTestClient() as client: ...)"
            )
        return self._settings

    @property
    def settings(self) -> Settings:
        return self._ensure_ready()

    @property
    def servers(self) -> Tuple[Server, ...]:
        """Candidate servers, fastest first."""
        self._ensure_ready()
        return self._servers

    @property
    def best_server(self) -> Server:
        return self.servers[0]

    def _resolve(self, server: Optional[Server]) -> Server:
        self._ensure_ready()
        return server if server is not None else self.best_server

    # -- Tests --------------------------------------------------------------

    async def test_latency(
        self,
        server: Optional[Server] = None,
        retry_count: int = DEFAULT_LATENCY_RETRIES,
    ) -> int:
        """Latency in milliseconds."""
        target = self._resolve(server)
        return await LatencyTester(clock=self.clock).measure(target, retry_count)

    async def run_download(
        self,
        retry_count: int = DEFAULT_DOWNLOAD_RETRIES,
        server: Optional[Server] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> BatchResult:
        target = self._resolve(server)
        concurrency = self.download_concurrency or self.settings.download_concurrency
        tester = DownloadTester(concurrency, clock=self.clock)
        tester.on_progress = on_progress
        tester.tolerate_failures = self.tolerate_failures
        LOGGER.info("Download test against %s with %d connections", target.host, tester.concurrency)
        return await tester.test(target, retry_count)

    async def run_upload(
        self,
        retry_count: int = DEFAULT_UPLOAD_RETRIES,
        server: Optional[Server] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> BatchResult:
        target = self._resolve(server)
        concurrency = self.upload_concurrency or self.settings.upload_concurrency
        tester = UploadTester(concurrency, clock=self.clock)
        tester.on_progress = on_progress
        tester.tolerate_failures = self.tolerate_failures
        LOGGER.info("Upload test against %s with %d connections", target.host, tester.concurrency)
        return await tester.test(target, retry_count)

    async def test_download(
        self,
        retry_count: int = DEFAULT_DOWNLOAD_RETRIES,
        server: Optional[Server] = None,
    ) -> float:
        """Download speed in Kbps."""
        result = await self.run_download(retry_count, server)
        return result.speed_kbps

    async def test_upload(
        self,
        retry_count: int = DEFAULT_UPLOAD_RETRIES,
        server: Optional[Server] = None,
    ) -> float:
        """Upload speed in Kbps."""
        result = await self.run_upload(retry_count, server)
        return result.speed_kbps
