"""End-to-end tests for netspeed.client against a local mock of speedtest.net."""

import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from netspeed.api import Server
from netspeed.client import SpeedTestClient
from netspeed.download import DownloadTester
from netspeed.errors import (
    ConfigRetrievalError,
    InitializationError,
    NoMatchedServers,
    ProtocolMismatchError,
    SpeedtestServersError,
    TransferError,
)
from netspeed.upload import UploadTester

MB = 1024 * 1024
CANNED = b"\xff\xd8" + b"x" * 4094  # 4 KiB "jpeg"

CONFIG_XML = """<?xml version="1.0" encoding="UTF-8"?>
<settings>
<client ip="10.0.0.1" lat="52.52" lon="13.40" isp="Mock ISP" country="{country}"/>
<server-config threadcount="4" ignoreids="99"/>
<download testlength="10" threadsperurl="{download_threads}"/>
<upload testlength="10" threadsperurl="{upload_threads}"/>
</settings>
"""

SERVERS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<settings>
<servers>
<server url="http://{host}/near/upload.php" lat="52.52" lon="13.41" name="Near" country="Germany" cc="DE" sponsor="Slow Co" id="1" host="{host}"/>
<server url="http://{host}/far/upload.php" lat="48.14" lon="11.58" name="Far" country="Germany" cc="DE" sponsor="Fast Co" id="2" host="{host}"/>
<server url="http://{host}/abroad/upload.php" lat="48.86" lon="2.35" name="Abroad" country="France" cc="FR" sponsor="Other" id="3" host="{host}"/>
<server url="http://{host}/ignored/upload.php" lat="52.52" lon="13.40" name="Ignored" country="Germany" cc="DE" sponsor="Nope" id="99" host="{host}"/>
</servers>
</settings>
"""

# Seconds the fake clock moves per request, per server path.
LATENCY_DELAY = {"near": 0.25, "far": 0.125, "abroad": 0.0, "ignored": 0.0}
TRANSFER_DELAY = 0.5


class FakeClock:
    """Deterministic stand-in for time.perf_counter."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockSpeedtest:
    """aiohttp application imitating speedtest.net and its test servers."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.country = "DE"
        self.config_status = 200
        self.servers_body = None
        self.latency_body = b"test=test"
        self.download_threads = 2
        self.upload_threads = 2
        self.hold = 0.0
        self.in_flight = 0
        self.peak = {"download": 0, "upload": 0}
        self.failing_size = None
        self.downloads = []
        self.uploads = []

        self.app = web.Application(client_max_size=64 * MB)
        self.app.router.add_get("/speedtest-config.php", self.config)
        self.app.router.add_get("/speedtest-servers-static.php", self.servers)
        self.app.router.add_get("/{sid}/latency.txt", self.latency)
        self.app.router.add_get("/{sid}/{filename}", self.download)
        self.app.router.add_post("/{sid}/upload.php", self.upload)

    async def config(self, request):
        if self.config_status != 200:
            return web.Response(status=self.config_status)
        body = CONFIG_XML.format(
            country=self.country,
            download_threads=self.download_threads,
            upload_threads=self.upload_threads,
        )
        return web.Response(body=body.encode(), content_type="text/xml")

    async def servers(self, request):
        body = self.servers_body or SERVERS_XML.format(host=request.host)
        return web.Response(body=body.encode(), content_type="text/xml")

    async def latency(self, request):
        self.clock.advance(LATENCY_DELAY[request.match_info["sid"]])
        return web.Response(body=self.latency_body, content_type="text/plain", charset="utf-8")

    async def _track(self, kind: str) -> None:
        self.in_flight += 1
        self.peak[kind] = max(self.peak[kind], self.in_flight)
        if self.hold:
            await asyncio.sleep(self.hold)
        self.in_flight -= 1

    async def download(self, request):
        filename = request.match_info["filename"]
        self.downloads.append((request.match_info["sid"], filename, request.query.get("r")))
        await self._track("download")
        self.clock.advance(TRANSFER_DELAY)
        if self.failing_size and filename == f"random{self.failing_size}x{self.failing_size}.jpg":
            return web.Response(status=404)
        return web.Response(body=CANNED, content_type="image/jpeg")

    async def upload(self, request):
        data = await request.post()
        self.uploads.append((request.match_info["sid"], sorted(data.keys())))
        await self._track("upload")
        self.clock.advance(TRANSFER_DELAY)
        return web.Response(text="size=ok")


class ClientTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.clock = FakeClock()
        self.mock = MockSpeedtest(self.clock)
        self.http = TestServer(self.mock.app)
        await self.http.start_server()

    async def asyncTearDown(self):
        await self.http.close()

    def make_client(self, **kwargs) -> SpeedTestClient:
        return SpeedTestClient(
            config_url=str(self.http.make_url("/speedtest-config.php")),
            servers_url=str(self.http.make_url("/speedtest-servers-static.php")),
            clock=self.clock,
            **kwargs,
        )


class TestInitialization(ClientTestCase):
    async def test_ranks_candidates_by_latency(self):
        async with self.make_client() as client:
            self.assertEqual([s.name for s in client.servers], ["Far", "Near"])
            self.assertEqual(client.best_server.name, "Far")
            self.assertEqual(client.best_server.latency, 125)
            self.assertEqual(client.servers[1].latency, 250)

    async def test_foreign_and_ignored_servers_excluded(self):
        async with self.make_client() as client:
            ids = {s.id for s in client.servers}
        self.assertNotIn(3, ids)
        self.assertNotIn(99, ids)

    async def test_candidate_limit(self):
        async with self.make_client(candidate_limit=1) as client:
            self.assertEqual([s.name for s in client.servers], ["Near"])

    async def test_settings_loaded(self):
        async with self.make_client() as client:
            self.assertEqual(client.settings.client.isp, "Mock ISP")
            self.assertEqual(client.settings.download_concurrency, 2)

    async def test_config_failure_is_fatal(self):
        self.mock.config_status = 500
        with self.assertRaises(ConfigRetrievalError):
            async with self.make_client():
                pass

    async def test_malformed_server_list(self):
        self.mock.servers_body = "<settings><servers>"
        with self.assertRaises(SpeedtestServersError):
            async with self.make_client():
                pass

    async def test_no_servers_in_country(self):
        self.mock.country = "JP"
        with self.assertRaises(NoMatchedServers):
            async with self.make_client():
                pass

    async def test_protocol_mismatch_during_ranking(self):
        self.mock.latency_body = b"nope"
        with self.assertRaises(InitializationError):
            async with self.make_client():
                pass

    async def test_undecodable_latency_during_ranking(self):
        self.mock.latency_body = b"\xff\xfe\xfa"
        with self.assertRaises(InitializationError) as ctx:
            async with self.make_client():
                pass
        self.assertIsInstance(ctx.exception.__cause__, ProtocolMismatchError)

    async def test_unusable_outside_context(self):
        client = self.make_client()
        with self.assertRaises(RuntimeError):
            client.best_server
        with self.assertRaises(RuntimeError):
            await client.test_download()

    async def test_explicit_server_unusable_outside_context(self):
        client = self.make_client()
        server = Server.from_attrib({"id": "2", "url": str(self.http.make_url("/far/upload.php"))})
        with self.assertRaises(RuntimeError):
            await client.test_latency(server)
        with self.assertRaises(RuntimeError):
            await client.test_upload(server=server)


class TestOperations(ClientTestCase):
    async def test_latency_defaults_to_best_server(self):
        async with self.make_client() as client:
            self.assertEqual(await client.test_latency(), 125)

    async def test_latency_for_given_server(self):
        async with self.make_client() as client:
            near = client.servers[1]
            self.assertEqual(await client.test_latency(near, retry_count=2), 250)

    async def test_download_bitrate(self):
        async with self.make_client(download_concurrency=2) as client:
            kbps = await client.test_download(retry_count=2)

        units = len(self.mock.downloads)
        self.assertEqual(units, 8)
        total_bytes = units * len(CANNED)
        elapsed = units * TRANSFER_DELAY
        expected = (total_bytes * 8 / 1024) / elapsed
        self.assertAlmostEqual(kbps, expected, delta=expected * 0.01)

    async def test_download_hits_best_server_with_cache_busting(self):
        async with self.make_client() as client:
            await client.test_download(retry_count=2)

        self.assertEqual({sid for sid, _, _ in self.mock.downloads}, {"far"})
        self.assertEqual(
            sorted((name, r) for _, name, r in self.mock.downloads),
            sorted(
                (f"random{size}x{size}.jpg", str(i))
                for size in (350, 750, 1500, 4000)
                for i in range(2)
            ),
        )

    async def test_download_zero_retries(self):
        async with self.make_client() as client:
            self.assertEqual(await client.test_download(retry_count=0), 0.0)
        self.assertEqual(self.mock.downloads, [])

    async def test_download_failure_aborts(self):
        self.mock.failing_size = 750
        async with self.make_client() as client:
            with self.assertRaises(TransferError):
                await client.test_download(retry_count=1)

    async def test_download_failure_tolerated(self):
        self.mock.failing_size = 750
        async with self.make_client(tolerate_failures=True) as client:
            result = await client.run_download(retry_count=1)
        self.assertEqual(result.failed_units, 1)
        self.assertEqual(result.bytes_total, 3 * len(CANNED))

    async def test_upload_bitrate(self):
        async with self.make_client(upload_concurrency=2) as client:
            result = await client.run_upload(retry_count=1)

        self.assertEqual(result.units, 4)
        self.assertEqual(result.bytes_total, (1 + 2 + 3 + 4) * MB)
        expected = ((1 + 2 + 3 + 4) * MB * 8 / 1024) / (4 * TRANSFER_DELAY)
        self.assertAlmostEqual(result.speed_kbps, expected, delta=expected * 0.01)
        self.assertEqual(
            sorted(self.mock.uploads),
            [("far", [f"content{tier}"]) for tier in (1, 2, 3, 4)],
        )

    async def test_concurrency_limits_from_settings(self):
        self.mock.download_threads = 3
        self.mock.upload_threads = 1
        self.mock.hold = 0.1
        async with self.make_client() as client:
            await client.test_download(retry_count=2)
            await client.test_upload(retry_count=1)

        self.assertEqual(self.mock.peak, {"download": 3, "upload": 1})

    async def test_concurrency_override_replaces_settings(self):
        self.mock.download_threads = 3
        self.mock.hold = 0.1
        async with self.make_client(download_concurrency=1) as client:
            await client.test_download(retry_count=1)

        self.assertEqual(self.mock.peak["download"], 1)

    async def test_operations_repeatable(self):
        async with self.make_client() as client:
            first = await client.test_download(retry_count=1)
            second = await client.test_download(retry_count=1)
            self.assertEqual(first, second)
            self.assertEqual(client.best_server.name, "Far")


class TestConnectionLimits(unittest.TestCase):
    def test_remote_limit_clamped(self):
        self.assertEqual(DownloadTester(40).concurrency, 32)
        self.assertEqual(UploadTester(0).concurrency, 1)

    def test_limit_in_range_kept(self):
        self.assertEqual(DownloadTester(3).concurrency, 3)
        self.assertEqual(UploadTester(1).concurrency, 1)


if __name__ == "__main__":
    unittest.main()
