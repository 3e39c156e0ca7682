import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import httpx

from questcore.domain.errors import QuestCoreError


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class CircuitOpenError(QuestCoreError, RuntimeError):
    def __init__(self, key: str, reopens_at: float) -> None:
        super().__init__(f"HTTP circuit open for {key} until {int(reopens_at)}")
        self.key = key
        self.reopens_at = reopens_at


def _is_truthy(value: str | None, *, default: str) -> bool:
    normalized = str(value if value is not None else default).strip().lower()
    return normalized in {"1", "true", "yes"}


def circuit_breaker_enabled() -> bool:
    return _is_truthy(os.getenv("QUEST_HTTP_CIRCUIT_BREAKER_ENABLED"), default="1")


@dataclass
class CircuitBreaker:
    """Failure counter for one base URL.

    After ``failure_threshold`` retryable failures the circuit opens for
    ``reset_seconds``; the first call after that window is let through as a trial.
    """

    key: str
    failure_threshold: int = 3
    reset_seconds: float = 120.0
    failures: int = 0
    opened_at: float | None = None

    @classmethod
    def from_env(cls, key: str) -> "CircuitBreaker":
        return cls(
            key=key,
            failure_threshold=max(1, int(os.getenv("QUEST_HTTP_CIRCUIT_FAILURE_THRESHOLD", "3"))),
            reset_seconds=max(0.0, float(os.getenv("QUEST_HTTP_CIRCUIT_RESET_SECONDS", "120"))),
        )

    @property
    def reopens_at(self) -> float:
        return (self.opened_at or 0.0) + self.reset_seconds

    def is_open(self, now: float | None = None) -> bool:
        if self.opened_at is None:
            return False
        return (time.time() if now is None else now) < self.reopens_at

    def guard(self, now: float | None = None) -> None:
        if self.is_open(now):
            raise CircuitOpenError(self.key, self.reopens_at)
        if self.opened_at is not None:
            logger.info("HTTP circuit for %s is half-open; allowing a trial request", self.key)
            self.record_success()

    def record_success(self) -> None:
        self.failures = 0
        self.opened_at = None

    def record_failure(self, now: float | None = None) -> None:
        self.failures += 1
        if self.failures >= self.failure_threshold and self.opened_at is None:
            self.opened_at = time.time() if now is None else now
            logger.warning("HTTP circuit opened for %s after %d failures", self.key, self.failures)


_BREAKERS: dict[str, CircuitBreaker] = {}
_BREAKERS_LOCK = threading.Lock()


def _breaker_key(client: httpx.Client) -> str:
    return str(getattr(client, "base_url", "") or "unknown")


def breaker_for(client: httpx.Client) -> CircuitBreaker | None:
    if not circuit_breaker_enabled():
        return None
    key = _breaker_key(client)
    with _BREAKERS_LOCK:
        breaker = _BREAKERS.get(key)
        if breaker is None:
            breaker = _BREAKERS[key] = CircuitBreaker.from_env(key)
        return breaker


def is_circuit_open(client: httpx.Client) -> bool:
    breaker = _BREAKERS.get(_breaker_key(client))
    return breaker is not None and breaker.is_open()


def reset_circuit_breakers() -> None:
    with _BREAKERS_LOCK:
        _BREAKERS.clear()


def _should_retry(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


def _send(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    params: dict[str, Any] | None,
    json_body: Any,
    headers: dict[str, str] | None,
) -> httpx.Response:
    if method == "POST":
        response = client.post(path, params=params, json=json_body, headers=headers)
    else:
        response = client.get(path, params=params, headers=headers)
    if response.status_code in RETRYABLE_STATUS_CODES:
        raise httpx.HTTPStatusError(
            f"Retryable HTTP status: {response.status_code}",
            request=response.request,
            response=response,
        )
    response.raise_for_status()
    return response


def _decode(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    payload = response.json()
    return payload if isinstance(payload, dict) else {"results": payload}


def request_json_with_retry(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    headers: dict[str, str] | None = None,
    retries: int = 0,
    backoff_seconds: float = 0.2,
) -> dict[str, Any]:
    """Send one JSON request with exponential backoff on transient failures.

    Only timeouts, network errors and the statuses in ``RETRYABLE_STATUS_CODES``
    are retried, and only those count against the client's circuit breaker.
    """
    attempts = max(0, int(retries)) + 1
    breaker = breaker_for(client)

    for attempt in range(1, attempts + 1):
        if breaker is not None:
            breaker.guard()
        try:
            response = _send(client, method, path, params=params, json_body=json_body, headers=headers)
        except httpx.HTTPError as exc:
            retryable = _should_retry(exc)
            if retryable and breaker is not None:
                breaker.record_failure()
            if not retryable or attempt == attempts:
                raise
            delay = max(0.0, backoff_seconds) * (2 ** (attempt - 1))
            logger.debug("Retrying %s %s after %s (attempt %d of %d)", method, path, type(exc).__name__, attempt, attempts)
            if delay > 0:
                time.sleep(delay)
            continue

        if breaker is not None:
            breaker.record_success()
        return _decode(response)

    return {}


def get_json_with_retry(
    client: httpx.Client,
    path: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    retries: int = 0,
    backoff_seconds: float = 0.2,
) -> dict[str, Any]:
    return request_json_with_retry(
        client, "GET", path, params=params, headers=headers, retries=retries, backoff_seconds=backoff_seconds
    )


def post_json_with_retry(
    client: httpx.Client,
    path: str,
    payload: Any,
    *,
    headers: dict[str, str] | None = None,
    retries: int = 0,
    backoff_seconds: float = 0.2,
) -> dict[str, Any]:
    return request_json_with_retry(
        client, "POST", path, json_body=payload, headers=headers, retries=retries, backoff_seconds=backoff_seconds
    )
