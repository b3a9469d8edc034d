"""
Output formatting -- JSON document and plain text.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from netspeed.stats import format_speed


def create_result_json(
    client_info: Dict[str, Any],
    server_info: Dict[str, Any],
    latency_ms: Optional[int],
    download_results: Optional[Dict[str, Any]],
    upload_results: Optional[Dict[str, Any]],
    server_selection: Optional[List[dict]] = None,
) -> Dict[str, Any]:
    """Build the JSON result document; skipped tests are ``None``."""
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "client": client_info,
        "server": server_info,
        "latency_ms": latency_ms,
        "download": download_results,
        "upload": upload_results,
    }

    if server_selection:
        result["serverSelection"] = server_selection

    return result


def format_text_result(
    latency_ms: Optional[int],
    download_kbps: Optional[float],
    upload_kbps: Optional[float],
) -> str:
    """Plain lines in the same units the dashboard uses."""
    lines = []
    if latency_ms is not None:
        lines.append(f"Latency: {latency_ms} ms")
    if download_kbps is not None:
        lines.append(f"Download speed: {format_speed(download_kbps)}")
    if upload_kbps is not None:
        lines.append(f"Upload speed: {format_speed(upload_kbps)}")
    return "\n".join(lines)
