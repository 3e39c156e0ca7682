import logging
from typing import Any

import httpx

from questcore.infrastructure.resilient_http import post_json_with_retry


logger = logging.getLogger(__name__)


class HttpSyncClient:
    """Pushes changed records to the remote store. Callers run it off the request path."""

    API_PREFIX = "/v1/sync"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        backoff_seconds: float = 0.2,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self.client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def push(self, record_type: str, record_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = post_json_with_retry(
            self.client,
            f"{self.API_PREFIX}/{record_type}/{record_id}",
            payload,
            headers={"Accept": "application/json"},
            retries=self._retries,
            backoff_seconds=self._backoff_seconds,
        )
        logger.debug("Synced %s %s", record_type, record_id)
        return response

    def close(self) -> None:
        self.client.close()
