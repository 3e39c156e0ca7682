import os
import sys
from pathlib import Path
import unittest
from unittest import mock

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.infrastructure.resilient_http import (
    CircuitBreaker,
    CircuitOpenError,
    get_json_with_retry,
    is_circuit_open,
    post_json_with_retry,
    reset_circuit_breakers,
)


class _AlwaysTimeoutClient:
    def __init__(self) -> None:
        self.base_url = "https://config.example.invalid"
        self.calls = 0

    def get(self, path, params=None, headers=None):
        self.calls += 1
        raise httpx.TimeoutException("timeout")


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(base_url="https://sync.example.invalid", transport=httpx.MockTransport(handler))


class ResilientHttpTests(unittest.TestCase):
    def tearDown(self) -> None:
        reset_circuit_breakers()

    def test_returns_json_payload_on_success(self) -> None:
        client = _mock_client(lambda request: httpx.Response(200, json={"results": [{"level": 1}]}))
        payload = get_json_with_retry(client, "/v1/tables/enhancement_rules", retries=0)
        self.assertEqual(1, payload["results"][0]["level"])

    def test_list_payload_is_wrapped_in_results(self) -> None:
        client = _mock_client(lambda request: httpx.Response(200, json=[{"level": 1}]))
        payload = get_json_with_retry(client, "/list", retries=0)
        self.assertEqual({"results": [{"level": 1}]}, payload)

    def test_retries_retryable_status_then_succeeds(self) -> None:
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        payload = get_json_with_retry(_mock_client(handler), "/flaky", retries=2, backoff_seconds=0.0)
        self.assertEqual({"ok": True}, payload)
        self.assertEqual(3, len(calls))

    def test_non_retryable_status_raises_immediately(self) -> None:
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(404)

        with self.assertRaises(httpx.HTTPStatusError):
            get_json_with_retry(_mock_client(handler), "/missing", retries=3)
        self.assertEqual(1, len(calls))

    def test_post_sends_json_body_and_accepts_empty_response(self) -> None:
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.content
            return httpx.Response(204)

        payload = post_json_with_retry(_mock_client(handler), "/v1/sync/character/c1", {"gold": 10})
        self.assertEqual({}, payload)
        self.assertEqual("POST", seen["method"])
        self.assertIn(b'"gold"', seen["body"])

    def test_circuit_opens_after_threshold_and_short_circuits_next_call(self) -> None:
        client = _AlwaysTimeoutClient()
        env = {
            "QUEST_HTTP_CIRCUIT_BREAKER_ENABLED": "1",
            "QUEST_HTTP_CIRCUIT_FAILURE_THRESHOLD": "3",
            "QUEST_HTTP_CIRCUIT_RESET_SECONDS": "600",
        }

        with mock.patch.dict(os.environ, env, clear=False):
            for _ in range(3):
                with self.assertRaises(httpx.TimeoutException):
                    get_json_with_retry(client, "/timeout", retries=0)

            self.assertTrue(is_circuit_open(client))
            calls_before = client.calls
            with self.assertRaises(CircuitOpenError):
                get_json_with_retry(client, "/timeout", retries=0)
            self.assertEqual(calls_before, client.calls)

    def test_disabled_circuit_never_opens(self) -> None:
        client = _AlwaysTimeoutClient()
        with mock.patch.dict(os.environ, {"QUEST_HTTP_CIRCUIT_BREAKER_ENABLED": "0"}, clear=False):
            for _ in range(5):
                with self.assertRaises(httpx.TimeoutException):
                    get_json_with_retry(client, "/timeout", retries=0)
        self.assertFalse(is_circuit_open(client))
        self.assertEqual(5, client.calls)


class CircuitBreakerTests(unittest.TestCase):
    def test_opens_at_threshold_and_reports_reopen_time(self) -> None:
        breaker = CircuitBreaker(key="https://config.test", failure_threshold=2, reset_seconds=30)
        breaker.record_failure(now=100.0)
        self.assertFalse(breaker.is_open(now=100.0))
        breaker.record_failure(now=101.0)

        self.assertTrue(breaker.is_open(now=120.0))
        with self.assertRaises(CircuitOpenError) as raised:
            breaker.guard(now=120.0)
        self.assertEqual("https://config.test", raised.exception.key)
        self.assertEqual(131.0, raised.exception.reopens_at)

    def test_guard_lets_a_trial_through_after_the_window(self) -> None:
        breaker = CircuitBreaker(key="k", failure_threshold=1, reset_seconds=30)
        breaker.record_failure(now=100.0)

        breaker.guard(now=131.0)

        self.assertEqual(0, breaker.failures)
        self.assertIsNone(breaker.opened_at)

    def test_from_env_reads_thresholds(self) -> None:
        env = {"QUEST_HTTP_CIRCUIT_FAILURE_THRESHOLD": "0", "QUEST_HTTP_CIRCUIT_RESET_SECONDS": "15"}
        with mock.patch.dict(os.environ, env, clear=False):
            breaker = CircuitBreaker.from_env("k")
        self.assertEqual(1, breaker.failure_threshold)
        self.assertEqual(15.0, breaker.reset_seconds)


if __name__ == "__main__":
    unittest.main()
