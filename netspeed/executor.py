"""
Bounded transfer executor.

Runs every unit of a batch as its own task, admitting at most
``concurrency`` of them into their transfer at once.  The rate is derived
once, from the aggregate byte count and the wall-clock time of the whole
batch, so it reflects total throughput across all parallel connections.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from .errors import TRANSPORT_ERRORS, TransferError
from .stats import calculate_kbps, kbps_to_mbps

LOGGER = logging.getLogger(__name__)

Unit = TypeVar("Unit")
TransferFn = Callable[[Unit], Awaitable[int]]
ProgressFn = Callable[[float, float], None]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class BatchResult:
    """Aggregate outcome of one throughput batch."""

    units: int = 0
    bytes_total: int = 0
    duration_ms: float = 0.0
    speed_kbps: float = 0.0
    failed_units: int = 0

    def calculate(self) -> None:
        """Derive speed from total bytes and wall-clock duration."""
        self.speed_kbps = calculate_kbps(self.bytes_total, self.duration_ms / 1000)

    @property
    def speed_mbps(self) -> float:
        return kbps_to_mbps(self.speed_kbps)

    def to_dict(self) -> dict:
        return {
            "units": self.units,
            "failed_units": self.failed_units,
            "bytes_total": self.bytes_total,
            "duration_ms": round(self.duration_ms, 2),
            "speed_kbps": round(self.speed_kbps, 2),
            "speed_mbps": round(self.speed_mbps, 2),
        }


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

async def run_batch(
    units: Iterable[Unit],
    transfer: TransferFn,
    concurrency: int,
    *,
    clock: Callable[[], float] = time.perf_counter,
    on_progress: Optional[ProgressFn] = None,
    tolerate_failures: bool = False,
) -> BatchResult:
    """
    Transfer every unit with at most *concurrency* in flight.

    *transfer* performs the I/O for one unit and returns the number of
    bytes it moved.  By default the first transport failure cancels the
    rest of the batch and raises :class:`TransferError`; with
    *tolerate_failures* a failed unit contributes zero bytes instead and is
    counted in ``failed_units``.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    batch: List[Unit] = list(units)
    result = BatchResult(units=len(batch))
    sem = asyncio.Semaphore(concurrency)
    completed = 0
    moved_so_far = 0

    start = clock()

    async def _guarded(unit: Unit) -> int:
        nonlocal completed, moved_so_far

        async with sem:
            try:
                moved = await transfer(unit)
            except TRANSPORT_ERRORS as exc:
                if not tolerate_failures:
                    raise
                LOGGER.warning("Transfer failed, counting zero bytes: %r (%s)", unit, exc)
                result.failed_units += 1
                moved = 0

        completed += 1
        moved_so_far += moved
        if on_progress:
            on_progress(completed / len(batch), calculate_kbps(moved_so_far, clock() - start))
        return moved

    tasks = [asyncio.ensure_future(_guarded(unit)) for unit in batch]

    try:
        sizes = await asyncio.gather(*tasks)
    except Exception as exc:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if isinstance(exc, TRANSPORT_ERRORS):
            raise TransferError(f"Transfer failed, batch aborted: {exc}") from exc
        raise

    result.duration_ms = (clock() - start) * 1000
    result.bytes_total = sum(sizes)
    result.calculate()

    LOGGER.debug(
        "Batch of %d units: %d bytes in %.1f ms (%.2f Kbps, %d failed)",
        result.units,
        result.bytes_total,
        result.duration_ms,
        result.speed_kbps,
        result.failed_units,
    )
    return result
