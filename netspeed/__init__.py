"""Speed test library -- server ranking, latency probes, and throughput batches."""

from .api import ClientInfo, Server, Settings, SpeedtestAPI, distance, select_candidates
from .client import SpeedTestClient
from .download import DownloadTester
from .errors import (
    ConfigRetrievalError,
    InitializationError,
    NoMatchedServers,
    ProtocolMismatchError,
    ServersRetrievalError,
    SpeedtestConfigError,
    SpeedtestException,
    SpeedtestServersError,
    TransferError,
)
from .executor import BatchResult, run_batch
from .latency import LatencyTester
from .payload import DownloadUnit, UploadUnit, generate_download_units, generate_upload_units
from .stats import calculate_kbps, format_latency, format_speed
from .upload import UploadTester

__all__ = [
    "BatchResult",
    "ClientInfo",
    "ConfigRetrievalError",
    "DownloadTester",
    "DownloadUnit",
    "InitializationError",
    "LatencyTester",
    "NoMatchedServers",
    "ProtocolMismatchError",
    "Server",
    "ServersRetrievalError",
    "Settings",
    "SpeedTestClient",
    "SpeedtestAPI",
    "SpeedtestConfigError",
    "SpeedtestException",
    "SpeedtestServersError",
    "TransferError",
    "UploadTester",
    "UploadUnit",
    "calculate_kbps",
    "distance",
    "format_latency",
    "format_speed",
    "generate_download_units",
    "generate_upload_units",
    "run_batch",
    "select_candidates",
]
