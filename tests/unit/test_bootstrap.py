import os
import sys
import tempfile
from pathlib import Path
import unittest
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore import bootstrap
from questcore.application.services.tuning_tables import TuningTables
from questcore.infrastructure.config_provider_factory import create_sync_gateway, create_tuning_table_client
from questcore.infrastructure.db.inmemory.repos import InMemoryCharacterRepository
from questcore.infrastructure.remote_config_client import RemoteConfigClient
from questcore.infrastructure.sync_client import HttpSyncClient


class BootstrapTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._env = mock.patch.dict(
            os.environ,
            {
                "QUEST_DATABASE_URL": "",
                "QUEST_CONFIG_BASE_URL": "",
                "QUEST_SYNC_BASE_URL": "",
                "QUEST_CONFIG_CACHE_DIR": self._tmp.name,
                "QUEST_DISPATCH_WORKERS": "0",
            },
            clear=False,
        )
        self._env.start()

    def tearDown(self) -> None:
        self._env.stop()
        self._tmp.cleanup()

    def test_inmemory_service_without_database_url(self) -> None:
        service = bootstrap.create_game_service()

        self.assertIsInstance(service.character_repo, InMemoryCharacterRepository)
        self.assertIsInstance(service.tuning, TuningTables)
        self.assertIsNone(service.sync_gateway)
        service.close()

    def test_skips_sql_when_local_mysql_is_unreachable(self) -> None:
        with mock.patch.dict(
            os.environ,
            {"QUEST_DATABASE_URL": "mysql+mysqlconnector://root@127.0.0.1:3307/questcore"},
            clear=False,
        ), mock.patch("questcore.bootstrap.socket.create_connection", side_effect=OSError("refused")), mock.patch.object(
            bootstrap, "_build_sql_game_service", side_effect=AssertionError("sql path should be skipped")
        ):
            service = bootstrap.create_game_service()

        self.assertIsInstance(service.character_repo, InMemoryCharacterRepository)
        service.close()

    def test_falls_back_when_sql_bootstrap_fails(self) -> None:
        with mock.patch.dict(os.environ, {"QUEST_DATABASE_URL": "sqlite:///quest.db"}, clear=False), mock.patch.object(
            bootstrap, "_build_sql_game_service", side_effect=RuntimeError("database unreachable")
        ):
            with self.assertLogs("questcore.bootstrap", level="WARNING"):
                service = bootstrap.create_game_service()

        self.assertIsInstance(service.character_repo, InMemoryCharacterRepository)
        service.close()

    def test_factories_follow_environment(self) -> None:
        self.assertIsNone(create_sync_gateway())
        self.assertEqual([], create_tuning_table_client().providers)

        with mock.patch.dict(
            os.environ,
            {"QUEST_SYNC_BASE_URL": "http://sync.test", "QUEST_CONFIG_BASE_URL": "http://config.test"},
            clear=False,
        ):
            gateway = create_sync_gateway()
            client = create_tuning_table_client()

        self.assertIsInstance(gateway, HttpSyncClient)
        self.assertIsInstance(client.providers[0], RemoteConfigClient)
        gateway.close()
        client.close()


if __name__ == "__main__":
    unittest.main()
