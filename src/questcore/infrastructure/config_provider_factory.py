import os

from questcore.infrastructure.tuning_cache import TuningTableCache
from questcore.infrastructure.local_tuning_provider import LocalTuningProvider
from questcore.infrastructure.remote_config_client import RemoteConfigClient
from questcore.infrastructure.sync_client import HttpSyncClient
from questcore.infrastructure.tuning_table_client import TuningTableClient


def _is_truthy(value: str | None, *, default: str = "0") -> bool:
    normalized = str(value if value is not None else default).strip().lower()
    return normalized in {"1", "true", "yes"}


def _http_settings(prefix: str) -> tuple[float, int, float]:
    timeout = float(os.getenv(f"{prefix}_TIMEOUT_S", "10"))
    retries = int(os.getenv(f"{prefix}_RETRIES", "2"))
    backoff_seconds = float(os.getenv(f"{prefix}_BACKOFF_S", "0.2"))
    return timeout, retries, backoff_seconds


def create_tuning_table_client() -> TuningTableClient:
    cache_ttl_seconds = int(os.getenv("QUEST_CONFIG_CACHE_TTL_S", "3600"))
    cache_dir = os.getenv("QUEST_CONFIG_CACHE_DIR", ".quest_cache/tuning")
    base_url = os.getenv("QUEST_CONFIG_BASE_URL", "").strip()
    remote_enabled = _is_truthy(os.getenv("QUEST_CONFIG_REMOTE_ENABLED"), default="1" if base_url else "0")

    providers: list[object] = []
    if remote_enabled and base_url:
        timeout, retries, backoff_seconds = _http_settings("QUEST_CONFIG")
        providers.append(
            RemoteConfigClient(
                base_url=base_url,
                timeout=timeout,
                retries=retries,
                backoff_seconds=backoff_seconds,
            )
        )

    return TuningTableClient(
        cache=TuningTableCache(cache_dir),
        providers=providers,
        cache_ttl_seconds=cache_ttl_seconds,
        defaults=LocalTuningProvider(),
    )


def create_sync_gateway():
    base_url = os.getenv("QUEST_SYNC_BASE_URL", "").strip()
    if not base_url:
        return None
    timeout, retries, backoff_seconds = _http_settings("QUEST_SYNC")
    return HttpSyncClient(base_url=base_url, timeout=timeout, retries=retries, backoff_seconds=backoff_seconds)
