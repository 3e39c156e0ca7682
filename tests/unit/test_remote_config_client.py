import json
import sys
from pathlib import Path
import unittest

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.infrastructure.remote_config_client import RemoteConfigClient
from questcore.infrastructure.sync_client import HttpSyncClient


class RemoteConfigClientTests(unittest.TestCase):
    def test_get_table_requests_active_rows(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["active"] = request.url.params.get("active")
            seen["accept"] = request.headers.get("Accept")
            return httpx.Response(200, json={"results": [{"level": 1}]})

        http_client = httpx.Client(base_url="https://config.example.invalid", transport=httpx.MockTransport(handler))
        client = RemoteConfigClient(http_client=http_client, retries=0)

        payload = client.get_table("Drop_Rates")

        self.assertEqual({"results": [{"level": 1}]}, payload)
        self.assertEqual("/v1/tables/drop_rates", seen["path"])
        self.assertEqual("true", seen["active"])
        self.assertEqual("application/json", seen["accept"])
        client.close()

    def test_unknown_table_is_rejected_without_a_request(self) -> None:
        calls = []
        http_client = httpx.Client(
            base_url="https://config.example.invalid",
            transport=httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200, json={})),
        )
        client = RemoteConfigClient(http_client=http_client)

        with self.assertRaises(ValueError):
            client.get_table("loot_boxes")
        self.assertEqual([], calls)


class HttpSyncClientTests(unittest.TestCase):
    def test_push_posts_payload_to_record_path(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"accepted": True})

        http_client = httpx.Client(base_url="https://sync.example.invalid", transport=httpx.MockTransport(handler))
        client = HttpSyncClient(base_url="https://sync.example.invalid", http_client=http_client, retries=0)

        response = client.push("character", "c1", {"gold": 25})

        self.assertEqual({"accepted": True}, response)
        self.assertEqual("POST", seen["method"])
        self.assertEqual("/v1/sync/character/c1", seen["path"])
        self.assertEqual({"gold": 25}, seen["body"])


if __name__ == "__main__":
    unittest.main()
