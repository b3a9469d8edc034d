"""Tests for ui.output -- JSON document and plain-text rendering."""

import json
import unittest

from netspeed.api import Server
from netspeed.executor import BatchResult
from ui.output import create_result_json, format_text_result


class TestCreateResultJson(unittest.TestCase):
    def _result(self, **overrides):
        server = Server.from_attrib({"id": "7", "name": "Berlin", "cc": "DE"}).with_latency(12)
        dl = BatchResult(units=8, bytes_total=4096, duration_ms=1000.0, speed_kbps=32.0)
        kwargs = {
            "client_info": {"ip": "1.2.3.4"},
            "server_info": server.to_dict(),
            "latency_ms": 12,
            "download_results": dl.to_dict(),
            "upload_results": None,
            "server_selection": [server.to_dict()],
        }
        kwargs.update(overrides)
        return create_result_json(**kwargs)

    def test_structure(self):
        result = self._result()
        self.assertIn("timestamp", result)
        self.assertEqual(result["latency_ms"], 12)
        self.assertEqual(result["server"]["id"], 7)
        self.assertEqual(result["download"]["speed_kbps"], 32.0)
        self.assertIsNone(result["upload"])
        self.assertEqual(len(result["serverSelection"]), 1)

    def test_serializable(self):
        json.dumps(self._result())

    def test_no_selection(self):
        result = self._result(server_selection=None)
        self.assertNotIn("serverSelection", result)


class TestFormatTextResult(unittest.TestCase):
    def test_all_values(self):
        text = format_text_result(15, 2048.0, 512.0)
        self.assertEqual(
            text.splitlines(),
            ["Latency: 15 ms", "Download speed: 2.00 Mbps", "Upload speed: 512.00 Kbps"],
        )

    def test_skipped_tests_omitted(self):
        text = format_text_result(15, None, None)
        self.assertEqual(text, "Latency: 15 ms")


if __name__ == "__main__":
    unittest.main()
