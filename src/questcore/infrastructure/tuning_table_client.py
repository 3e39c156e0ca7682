import logging
from typing import Any

from questcore.application.services.tuning_tables import TABLE_NAMES, TuningTables
from questcore.infrastructure.local_tuning_provider import LocalTuningProvider
from questcore.infrastructure.tuning_cache import TuningTableCache


logger = logging.getLogger(__name__)


class TuningTableClient:
    """Resolves each tuning table from the first source that can answer.

    Order is a fresh cache entry, each provider in turn, a stale cache entry and
    finally the bundled defaults. Provider answers are written back to the cache.
    """

    def __init__(
        self,
        cache: TuningTableCache | None,
        providers: list[object] | None = None,
        cache_ttl_seconds: int = 3600,
        defaults: LocalTuningProvider | None = None,
    ) -> None:
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.providers = list(providers or [])
        self.defaults = defaults or LocalTuningProvider()

    def _fetch_remote(self, name: str) -> dict[str, Any] | None:
        for provider in self.providers:
            label = type(provider).__name__
            try:
                payload = provider.get_table(name)
            except Exception:
                logger.info("Tuning provider %s failed for %s", label, name, exc_info=True)
                continue
            if isinstance(payload, dict):
                return payload
            logger.warning("Tuning provider %s returned %s for %s", label, type(payload).__name__, name)
        return None

    def _remember(self, name: str, payload: dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.store(name, payload)
        except OSError:
            logger.warning("Could not cache tuning table %s", name, exc_info=True)

    def get_table(self, name: str) -> dict:
        if self.cache is not None:
            cached = self.cache.fresh(name, self.cache_ttl_seconds)
            if cached is not None:
                return cached

        payload = self._fetch_remote(name)
        if payload is not None:
            self._remember(name, payload)
            return payload

        if self.cache is not None:
            stale = self.cache.stale(name)
            if stale is not None:
                logger.info("Serving stale tuning table %s", name)
                return stale

        logger.warning("Tuning table %s fell back to bundled defaults", name)
        return self.defaults.get_table(name)

    def load_tables(self) -> TuningTables:
        return TuningTables.from_payloads({name: self.get_table(name) for name in TABLE_NAMES})

    def close(self) -> None:
        for provider in self.providers:
            close = getattr(provider, "close", None)
            if not callable(close):
                continue
            try:
                close()
            except Exception:
                logger.debug("Closing tuning provider %s failed", type(provider).__name__, exc_info=True)
