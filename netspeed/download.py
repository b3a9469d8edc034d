"""
Download speed test module.

Fetches ``random{N}xN.jpg`` test images of four increasing sizes through the
bounded executor.  Each unit opens and closes its own HTTP session so no
connection is shared between units.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

import aiohttp

from .api import Server
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_DOWNLOAD_RETRIES,
    MAX_CONCURRENCY,
    MIN_CONCURRENCY,
    READ_TIMEOUT,
)
from .executor import BatchResult, run_batch
from .payload import DownloadUnit, generate_download_units


class DownloadTester:
    """Parallel download speed tester."""

    def __init__(
        self,
        concurrency: int,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.concurrency = max(MIN_CONCURRENCY, min(concurrency, MAX_CONCURRENCY))
        self.timeout = aiohttp.ClientTimeout(
            total=None, connect=connect_timeout, sock_read=read_timeout
        )
        self.clock = clock
        self.on_progress: Optional[Callable[[float, float], None]] = None
        self.tolerate_failures = False

    async def _fetch(self, unit: DownloadUnit) -> int:
        """GET one test image and return its length in bytes."""
        headers = {**COMMON_HEADERS, "Accept-Encoding": "identity"}
        async with aiohttp.ClientSession(headers=headers, timeout=self.timeout) as session:
            async with session.get(unit.url) as resp:
                resp.raise_for_status()
                data = await resp.read()
        return len(data)

    async def test(self, server: Server, retry_count: int = DEFAULT_DOWNLOAD_RETRIES) -> BatchResult:
        return await run_batch(
            generate_download_units(server, retry_count),
            self._fetch,
            self.concurrency,
            clock=self.clock,
            on_progress=self.on_progress,
            tolerate_failures=self.tolerate_failures,
        )
