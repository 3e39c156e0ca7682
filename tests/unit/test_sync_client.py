import json
import sys
from pathlib import Path
import unittest

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.infrastructure.sync_client import HttpSyncClient


class HttpSyncClientTests(unittest.TestCase):
    def _client(self, handler, retries: int = 0) -> HttpSyncClient:
        http_client = httpx.Client(base_url="http://sync.test", transport=httpx.MockTransport(handler))
        return HttpSyncClient(base_url="http://sync.test", retries=retries, backoff_seconds=0.0, http_client=http_client)

    def test_push_posts_payload_to_record_path(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True})

        client = self._client(handler)
        response = client.push("character", "c1", {"level": 3})
        client.close()

        self.assertEqual({"ok": True}, response)
        self.assertEqual([("POST", "/v1/sync/character/c1", {"level": 3})], seen)

    def test_push_retries_transient_status(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        client = self._client(handler, retries=1)
        self.assertEqual({"ok": True}, client.push("task", "t1", {"status": "completed"}))
        self.assertEqual(2, calls["count"])

    def test_push_raises_when_retries_exhausted(self) -> None:
        client = self._client(lambda request: httpx.Response(503))

        with self.assertRaises(httpx.HTTPStatusError):
            client.push("task", "t1", {})


if __name__ == "__main__":
    unittest.main()
