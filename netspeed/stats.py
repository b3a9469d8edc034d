"""
Rate derivation and formatting.

Pure functions -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

from .constants import BITS_PER_BYTE, BITS_PER_KILOBIT


def calculate_kbps(bytes_total: float, seconds: float) -> float:
    """Aggregate bitrate in Kbps (1 Kb = 1024 bits); 0.0 when no time elapsed."""
    if seconds <= 0:
        return 0.0
    return (bytes_total * BITS_PER_BYTE / BITS_PER_KILOBIT) / seconds


def kbps_to_mbps(speed_kbps: float) -> float:
    return speed_kbps / BITS_PER_KILOBIT


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_kbps: float) -> str:
    """Kbps below 1024, Mbps above, two decimals either way."""
    if speed_kbps > BITS_PER_KILOBIT:
        return f"{kbps_to_mbps(speed_kbps):.2f} Mbps"
    return f"{speed_kbps:.2f} Kbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.0f} ms"


def format_bytes(count: int) -> str:
    if count >= 1024 * 1024:
        return f"{count / (1024 * 1024):.1f} MB"
    if count >= 1024:
        return f"{count / 1024:.1f} KB"
    return f"{count} B"
