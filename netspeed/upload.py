"""
Upload speed test module.
Uses form POSTs of 1..4 MB blobs to measure upload speed.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

import aiohttp

from .api import Server
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_UPLOAD_RETRIES,
    MAX_CONCURRENCY,
    MAX_UPLOAD_TIER,
    MIN_CONCURRENCY,
    READ_TIMEOUT,
)
from .executor import BatchResult, run_batch
from .payload import UploadUnit, generate_upload_units


class UploadTester:
    """
    Upload speed tester.

    Every blob is posted as a urlencoded form field to the server's
    ``upload.php``; the bytes counted are the blob size, not the encoded
    request size.
    """

    def __init__(
        self,
        concurrency: int,
        max_tier: int = MAX_UPLOAD_TIER,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.concurrency = max(MIN_CONCURRENCY, min(concurrency, MAX_CONCURRENCY))
        self.max_tier = max_tier
        self.timeout = aiohttp.ClientTimeout(
            total=None, connect=connect_timeout, sock_read=read_timeout
        )
        self.clock = clock
        self.on_progress: Optional[Callable[[float, float], None]] = None
        self.tolerate_failures = False

    async def test(self, server: Server, retry_count: int = DEFAULT_UPLOAD_RETRIES) -> BatchResult:
        """Perform upload speed test."""
        url = server.upload_url

        async def _post(unit: UploadUnit) -> int:
            async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=self.timeout) as session:
                form = {unit.key: unit.payload.decode("ascii")}
                async with session.post(url, data=form) as resp:
                    resp.raise_for_status()
                    await resp.read()
            return unit.size

        return await run_batch(
            generate_upload_units(retry_count, self.max_tier),
            _post,
            self.concurrency,
            clock=self.clock,
            on_progress=self.on_progress,
            tolerate_failures=self.tolerate_failures,
        )
