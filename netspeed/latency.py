"""
HTTP latency measurement and server ranking.

Probe flow::

    1. GET  {server base}/latency.txt
    2. Expect the body  test=test
    3. Repeat for the desired number of attempts.

One timer spans all attempts, failed ones included, and the result is the
elapsed time divided by the attempt count.  A slow or flaky server is
therefore priced by the time it wasted rather than dropped from the average.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Tuple

import aiohttp

from .api import Server
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_LATENCY_RETRIES,
    LATENCY_MARKER,
    READ_TIMEOUT,
)
from .errors import TRANSPORT_ERRORS, ProtocolMismatchError

LOGGER = logging.getLogger(__name__)


class LatencyTester:
    """Measure round-trip latency to speedtest.net servers over HTTP."""

    def __init__(
        self,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.timeout = aiohttp.ClientTimeout(
            total=None, connect=connect_timeout, sock_read=read_timeout
        )
        self.clock = clock

    # -- Single server ------------------------------------------------------

    async def measure(self, server: Server, retry_count: int = DEFAULT_LATENCY_RETRIES) -> int:
        """Return the latency to *server* in whole milliseconds."""
        if retry_count < 1:
            raise ValueError(f"retry_count must be >= 1, got {retry_count}")

        url = server.latency_url
        failures = 0

        async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=self.timeout) as session:
            start = self.clock()
            for attempt in range(retry_count):
                try:
                    body = await self._probe(session, url)
                except TRANSPORT_ERRORS as exc:
                    failures += 1
                    LOGGER.debug("Latency probe %d to %s failed: %s", attempt + 1, url, exc)
                    continue

                if body.strip() != LATENCY_MARKER:
                    raise ProtocolMismatchError(
                        f"Server returned incorrect test string for {url}: {body[:50]!r}"
                    )
            elapsed_ms = (self.clock() - start) * 1000

        if failures == retry_count:
            LOGGER.warning("All %d latency probes to %s failed", retry_count, url)

        return int(elapsed_ms) // retry_count

    @staticmethod
    async def _probe(session: aiohttp.ClientSession, url: str) -> bytes:
        async with session.get(url) as resp:
            resp.raise_for_status()
            return await resp.read()

    # -- Multiple servers ---------------------------------------------------

    async def rank(
        self,
        candidates: Iterable[Server],
        retry_count: int = DEFAULT_LATENCY_RETRIES,
    ) -> Tuple[Server, ...]:
        """Probe *candidates* one after another and return them fastest first.

        The sort is stable, so servers with equal latency keep their
        (distance) order.
        """
        probed: List[Server] = []
        for server in candidates:
            latency = await self.measure(server, retry_count)
            LOGGER.info("Server %s (%s, %.0f km): %d ms", server.id, server.name, server.distance, latency)
            probed.append(server.with_latency(latency))

        return tuple(sorted(probed, key=lambda s: s.latency))
