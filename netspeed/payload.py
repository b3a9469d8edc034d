"""
Transfer units for the throughput tests.

Download units address ``random{N}xN.jpg`` objects of increasing size with a
``r=`` index so that caches along the path never answer a repeat request.
Upload units carry one pseudo-random blob per size tier; only the size of
the blob matters, so the same content is reused for every repeat.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from .api import Server
from .constants import DOWNLOAD_SIZES, MAX_UPLOAD_TIER, UPLOAD_CHARS, UPLOAD_TIER_BYTES


@dataclass(frozen=True)
class DownloadUnit:
    """One GET of a test image."""

    url: str
    size: int
    index: int


@dataclass(frozen=True)
class UploadUnit:
    """One form POST carrying ``payload`` under ``key``."""

    key: str
    payload: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.payload)


def _check_retry_count(retry_count: int) -> None:
    if retry_count < 0:
        raise ValueError(f"retry_count must be >= 0, got {retry_count}")


def generate_download_units(
    server: Server,
    retry_count: int,
    sizes: Sequence[int] = DOWNLOAD_SIZES,
) -> Iterator[DownloadUnit]:
    """Yield ``retry_count`` units per size tier, smallest tier first."""
    _check_retry_count(retry_count)
    return _download_units(server, retry_count, tuple(sizes))


def _download_units(server: Server, retry_count: int, sizes: Sequence[int]) -> Iterator[DownloadUnit]:
    for size in sizes:
        for index in range(retry_count):
            yield DownloadUnit(url=server.download_url(size, index), size=size, index=index)


def random_blob(size: int, rng: Optional[random.Random] = None) -> bytes:
    """*size* bytes of uppercase letters and digits."""
    rng = rng or random
    return "".join(rng.choices(UPLOAD_CHARS, k=size)).encode("ascii")


def generate_upload_units(retry_count: int, max_tier: int = MAX_UPLOAD_TIER) -> List[UploadUnit]:
    """Build ``retry_count * max_tier`` units, tiers of 1..max_tier MB."""
    _check_retry_count(retry_count)
    units: List[UploadUnit] = []
    if retry_count == 0:
        return units

    for tier in range(1, max_tier + 1):
        unit = UploadUnit(key=f"content{tier}", payload=random_blob(tier * UPLOAD_TIER_BYTES))
        units.extend([unit] * retry_count)

    return units
