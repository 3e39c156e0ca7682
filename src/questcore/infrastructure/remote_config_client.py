import httpx

from questcore.application.services.tuning_tables import TABLE_NAMES
from questcore.infrastructure.resilient_http import get_json_with_retry


class RemoteConfigClient:
    """Fetches tuning tables from the hosted config service."""

    BASE_URL = "https://config.questcore.invalid"
    API_PREFIX = "/v1/tables"
    SUPPORTED_TABLES = set(TABLE_NAMES)

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        retries: int = 2,
        backoff_seconds: float = 0.2,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self.client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    @classmethod
    def _normalize_table(cls, name: str) -> str:
        value = str(name or "").strip().lower()
        if value not in cls.SUPPORTED_TABLES:
            allowed = ", ".join(sorted(cls.SUPPORTED_TABLES))
            raise ValueError(f"Unsupported tuning table '{name}'. Allowed values: {allowed}")
        return value

    def get_table(self, name: str) -> dict:
        table = self._normalize_table(name)
        return get_json_with_retry(
            self.client,
            f"{self.API_PREFIX}/{table}",
            params={"active": "true"},
            headers={"Accept": "application/json"},
            retries=self._retries,
            backoff_seconds=self._backoff_seconds,
        )

    def close(self) -> None:
        self.client.close()

