"""
Shared constants used across all netspeed modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# Speedtest.net endpoints
# ---------------------------------------------------------------------------

CONFIG_URL = "http://www.speedtest.net/speedtest-config.php"
SERVERS_URL = "http://c.speedtest.net/speedtest-servers-static.php"

LATENCY_FILE = "latency.txt"
LATENCY_MARKER = b"test=test"
DOWNLOAD_FILE = "random{size}x{size}.jpg?r={index}"

# ---------------------------------------------------------------------------
# Server selection
# ---------------------------------------------------------------------------

CANDIDATE_LIMIT = 10             # servers probed for latency at start-up
EARTH_RADIUS_KM = 6371

# ---------------------------------------------------------------------------
# Retry counts (units per size tier / probe attempts)
# ---------------------------------------------------------------------------

DEFAULT_LATENCY_RETRIES = 3
DEFAULT_DOWNLOAD_RETRIES = 2
DEFAULT_UPLOAD_RETRIES = 2
MIN_RETRIES = 1
MAX_RETRIES = 20

# ---------------------------------------------------------------------------
# Concurrency limits
# ---------------------------------------------------------------------------

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 32
DEFAULT_CONCURRENCY = 2          # used when the remote config omits threadsperurl

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

DOWNLOAD_SIZES = (350, 750, 1500, 4000)   # random{N}xN.jpg object tiers
MAX_UPLOAD_TIER = 4                       # upload blobs of 1..4 MB
UPLOAD_TIER_BYTES = 1024 * 1024
UPLOAD_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# ---------------------------------------------------------------------------
# Timeouts (seconds)
# ---------------------------------------------------------------------------

CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 30.0
FETCH_TIMEOUT = 30.0             # config / server list documents

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

BITS_PER_BYTE = 8
BITS_PER_KILOBIT = 1024
