import sys
import tempfile
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.tuning_tables import DEFAULT_TUNING_TABLES, DROP_RATES, ENHANCEMENT_RULES
from questcore.infrastructure.tuning_cache import TuningTableCache
from questcore.infrastructure.local_tuning_provider import LocalTuningProvider
from questcore.infrastructure.tuning_table_client import TuningTableClient


class _FakeProvider:
    def __init__(self, tables=None, should_fail: bool = False):
        self.tables = tables or {}
        self.should_fail = should_fail
        self.calls = 0
        self.closed = False

    def get_table(self, name: str) -> dict:
        self.calls += 1
        if self.should_fail:
            raise RuntimeError("config service unavailable")
        return self.tables[name]

    def close(self) -> None:
        self.closed = True


_REMOTE_ENHANCEMENT = {
    "results": [
        {"enhancement_level": level, "success_rate": 0.5, "cost_multiplier": 2.0, "stat_gain": 4, "active": True}
        for level in range(1, 11)
    ]
}


class TuningTableClientTests(unittest.TestCase):
    def test_prefers_fresh_cache_before_providers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = TuningTableCache(tmp)
            cache.store(ENHANCEMENT_RULES, _REMOTE_ENHANCEMENT)
            provider = _FakeProvider(should_fail=True)

            client = TuningTableClient(cache=cache, providers=[provider], cache_ttl_seconds=3600)
            payload = client.get_table(ENHANCEMENT_RULES)

            self.assertEqual(_REMOTE_ENHANCEMENT, payload)
            self.assertEqual(0, provider.calls)

    def test_provider_payload_is_written_to_cache(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = TuningTableCache(tmp)
            provider = _FakeProvider(tables={ENHANCEMENT_RULES: _REMOTE_ENHANCEMENT})

            client = TuningTableClient(cache=cache, providers=[provider], cache_ttl_seconds=3600)
            client.get_table(ENHANCEMENT_RULES)
            client.get_table(ENHANCEMENT_RULES)

            self.assertEqual(1, provider.calls)
            self.assertEqual(
                _REMOTE_ENHANCEMENT,
                cache.fresh(ENHANCEMENT_RULES, ttl_seconds=3600),
            )

    def test_serves_stale_cache_when_providers_fail(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = TuningTableCache(tmp)
            cache.store(ENHANCEMENT_RULES, _REMOTE_ENHANCEMENT, now=0)
            provider = _FakeProvider(should_fail=True)

            client = TuningTableClient(cache=cache, providers=[provider], cache_ttl_seconds=60)
            payload = client.get_table(ENHANCEMENT_RULES)

            self.assertEqual(_REMOTE_ENHANCEMENT, payload)
            self.assertEqual(1, provider.calls)

    def test_falls_back_to_bundled_defaults_last(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            client = TuningTableClient(
                cache=TuningTableCache(tmp),
                providers=[_FakeProvider(should_fail=True)],
                cache_ttl_seconds=60,
            )
            with self.assertLogs("questcore.infrastructure.tuning_table_client", level="WARNING"):
                payload = client.get_table(DROP_RATES)

            self.assertEqual(DEFAULT_TUNING_TABLES[DROP_RATES], payload)

    def test_load_tables_parses_remote_rows(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            provider = _FakeProvider(
                tables={
                    ENHANCEMENT_RULES: _REMOTE_ENHANCEMENT,
                    "salvage_rules": DEFAULT_TUNING_TABLES["salvage_rules"],
                    DROP_RATES: DEFAULT_TUNING_TABLES[DROP_RATES],
                }
            )
            client = TuningTableClient(cache=TuningTableCache(tmp), providers=[provider])

            tables = client.load_tables()

            self.assertEqual(0.5, tables.enhancement_rule(1).success_rate)
            self.assertEqual(4, tables.enhancement_rule(10).stat_gain)

    def test_close_closes_every_provider(self) -> None:
        providers = [_FakeProvider(), _FakeProvider()]
        client = TuningTableClient(cache=None, providers=providers)
        client.close()
        self.assertTrue(all(provider.closed for provider in providers))

    def test_local_provider_rejects_unknown_table(self) -> None:
        with self.assertRaises(ValueError):
            LocalTuningProvider().get_table("mystery")


if __name__ == "__main__":
    unittest.main()
