"""
Speedtest.net configuration and server-list client.

Handles settings and server discovery.  All HTTP work goes through a single
``aiohttp.ClientSession`` managed via async-context-manager protocol
(``async with SpeedtestAPI() as api: ...``).  Both documents are XML and are
parsed with ``xml.etree.ElementTree``.
"""
from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

import aiohttp

from .constants import (
    COMMON_HEADERS,
    CONFIG_URL,
    DEFAULT_CONCURRENCY,
    DOWNLOAD_FILE,
    EARTH_RADIUS_KM,
    FETCH_TIMEOUT,
    LATENCY_FILE,
    SERVERS_URL,
)
from .errors import (
    TRANSPORT_ERRORS,
    ConfigRetrievalError,
    ServersRetrievalError,
    SpeedtestConfigError,
    SpeedtestServersError,
)

LOGGER = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Server:
    """A single speedtest.net server.

    ``distance`` is filled in when the server list is loaded and ``latency``
    when the server is probed; both are set through the ``with_*`` copies so
    a ranked server never changes afterwards.
    """

    id: int
    name: str
    sponsor: str
    host: str
    url: str
    country: str
    cc: str
    lat: float
    lon: float
    distance: float = 0.0
    latency: Optional[int] = None

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_attrib(cls, data: Dict[str, str]) -> Server:
        return cls(
            id=int(data.get("id", 0) or 0),
            name=data.get("name", ""),
            sponsor=data.get("sponsor", ""),
            host=data.get("host", ""),
            url=data.get("url", ""),
            country=data.get("country", ""),
            cc=data.get("cc", ""),
            lat=float(data.get("lat", 0) or 0),
            lon=float(data.get("lon", 0) or 0),
        )

    def with_distance(self, km: float) -> Server:
        return replace(self, distance=km)

    def with_latency(self, ms: int) -> Server:
        return replace(self, latency=ms)

    # -- Derived URLs -------------------------------------------------------

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)

    @property
    def base_url(self) -> str:
        """Directory of the upload URL; the other test files live beside it."""
        return urljoin(self.url, ".")

    @property
    def latency_url(self) -> str:
        return self.base_url + LATENCY_FILE

    @property
    def upload_url(self) -> str:
        return self.url

    def download_url(self, size: int, index: int) -> str:
        return self.base_url + DOWNLOAD_FILE.format(size=size, index=index)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sponsor": self.sponsor,
            "host": self.host,
            "url": self.url,
            "country": self.country,
            "cc": self.cc,
            "lat": self.lat,
            "lon": self.lon,
            "distance": round(self.distance, 2),
            "latency_ms": self.latency,
        }


@dataclass
class ClientInfo:
    """Information about the client, as reported by speedtest.net."""

    ip: str
    isp: str
    lat: float
    lon: float
    country: str

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "isp": self.isp,
            "lat": self.lat,
            "lon": self.lon,
            "country": self.country,
        }


@dataclass
class Settings:
    """Tunables read from ``speedtest-config.php``."""

    client: ClientInfo
    download_concurrency: int = DEFAULT_CONCURRENCY
    upload_concurrency: int = DEFAULT_CONCURRENCY
    ignore_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def default_country(self) -> str:
        return self.client.country


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------

def distance(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance between two ``(lat, lon)`` pairs in km."""
    lat1, lon1 = origin
    lat2, lon2 = destination

    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) *
         math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _int_attr(attrib: Dict[str, str], key: str, default: int) -> int:
    try:
        return int(attrib.get(key, default))
    except (TypeError, ValueError):
        return default


def parse_settings(document: bytes) -> Settings:
    """Build :class:`Settings` from the raw ``speedtest-config.php`` body."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise SpeedtestConfigError(f"Malformed speedtest.net configuration: {exc}") from exc

    client = root.find("client")
    if client is None:
        raise SpeedtestConfigError("Configuration has no <client> element")

    attrib = client.attrib
    try:
        info = ClientInfo(
            ip=attrib.get("ip", ""),
            isp=attrib.get("isp", ""),
            lat=float(attrib["lat"]),
            lon=float(attrib["lon"]),
            country=attrib.get("country", ""),
        )
    except (KeyError, ValueError) as exc:
        raise SpeedtestConfigError(
            f"Unknown location: lat={attrib.get('lat')!r} lon={attrib.get('lon')!r}"
        ) from exc

    download = root.find("download")
    upload = root.find("upload")
    server_config = root.find("server-config")

    ignore_raw = server_config.attrib.get("ignoreids", "") if server_config is not None else ""
    ignore_ids = frozenset(int(i) for i in ignore_raw.split(",") if i.strip().isdigit())

    return Settings(
        client=info,
        download_concurrency=_int_attr(
            download.attrib if download is not None else {}, "threadsperurl", DEFAULT_CONCURRENCY
        ),
        upload_concurrency=_int_attr(
            upload.attrib if upload is not None else {}, "threadsperurl", DEFAULT_CONCURRENCY
        ),
        ignore_ids=ignore_ids,
    )


def parse_servers(
    document: bytes,
    origin: Coordinate,
    ignore_ids: Iterable[int] = (),
) -> List[Server]:
    """Parse the server list and return it sorted by distance from *origin*."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise SpeedtestServersError(f"Malformed server list: {exc}") from exc

    ignored = set(ignore_ids)
    servers: List[Server] = []

    for element in root.iter("server"):
        try:
            server = Server.from_attrib(element.attrib)
        except ValueError:
            LOGGER.debug("Skipping unparsable server entry %r", element.attrib)
            continue
        if server.id in ignored:
            continue
        servers.append(server.with_distance(distance(origin, server.coordinate)))

    servers.sort(key=lambda s: s.distance)
    return servers


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class SpeedtestAPI:
    """Async context-manager wrapping the speedtest.net settings endpoints."""

    def __init__(
        self,
        config_url: str = CONFIG_URL,
        servers_url: str = SERVERS_URL,
    ) -> None:
        self.config_url = config_url
        self.servers_url = servers_url
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedtestAPI:
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=aiohttp.ClientTimeout(total=FETCH_TIMEOUT),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SpeedtestAPI must be used as an async context manager "
                "(async with SpeedtestAPI() as api: ...)"
            )
        return self._session

    async def _fetch(self, url: str) -> bytes:
        session = self._ensure_session()
        async with session.get(url) as resp:
            resp.raise_for_status()
            return await resp.read()

    # -- Public methods -----------------------------------------------------

    async def get_settings(self) -> Settings:
        """Download and parse ``speedtest-config.php``."""
        try:
            document = await self._fetch(self.config_url)
        except TRANSPORT_ERRORS as exc:
            raise ConfigRetrievalError(f"{self.config_url}: {exc}") from exc

        settings = parse_settings(document)
        LOGGER.debug(
            "Settings: country=%s download_concurrency=%d upload_concurrency=%d",
            settings.default_country,
            settings.download_concurrency,
            settings.upload_concurrency,
        )
        return settings

    async def fetch_servers(
        self,
        origin: Coordinate,
        ignore_ids: Iterable[int] = (),
    ) -> List[Server]:
        """Return every listed server, sorted by distance from *origin*."""
        try:
            document = await self._fetch(self.servers_url)
        except TRANSPORT_ERRORS as exc:
            raise ServersRetrievalError(f"{self.servers_url}: {exc}") from exc

        servers = parse_servers(document, origin, ignore_ids)
        LOGGER.debug("Loaded %d servers", len(servers))
        return servers


def select_candidates(servers: Iterable[Server], country: str, limit: int) -> List[Server]:
    """Keep the first *limit* servers located in *country* (order preserved)."""
    return [s for s in servers if s.cc == country][:limit]
