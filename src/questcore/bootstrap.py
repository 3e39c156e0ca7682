import logging
import os
import socket
from urllib.parse import urlparse

from questcore.application.services.collaborators import FireAndForgetDispatcher, LoggingNotifier
from questcore.application.services.event_bus import EventBus
from questcore.application.services.game_service import GameService
from questcore.application.services.tuning_tables import TuningTables
from questcore.infrastructure.config_provider_factory import create_sync_gateway, create_tuning_table_client
from questcore.infrastructure.db.inmemory.atomic_persistence import create_inmemory_atomic_persistor
from questcore.infrastructure.db.inmemory.repos import (
    InMemoryAchievementRepository,
    InMemoryCharacterRepository,
    InMemoryDungeonRunRepository,
    InMemoryTaskRepository,
)


logger = logging.getLogger(__name__)


def _looks_like_local_mysql_unreachable(database_url: str) -> bool:
    if not database_url:
        return False

    parsed = urlparse(database_url)
    if not parsed.scheme.startswith("mysql"):
        return False

    host = (parsed.hostname or "").strip().lower()
    if host not in {"localhost", "127.0.0.1", "::1"}:
        return False

    port = parsed.port or 3306
    timeout = float(os.getenv("QUEST_DB_CONNECT_PROBE_TIMEOUT_S", "0.35"))

    try:
        with socket.create_connection((host, port), timeout=timeout):
            return False
    except OSError:
        return True


def load_tuning_tables() -> TuningTables:
    client = create_tuning_table_client()
    try:
        return client.load_tables()
    finally:
        client.close()


def _dispatcher() -> FireAndForgetDispatcher:
    return FireAndForgetDispatcher(max_workers=int(os.getenv("QUEST_DISPATCH_WORKERS", "2")))


def _build_inmemory_game_service() -> GameService:
    char_repo = InMemoryCharacterRepository()
    task_repo = InMemoryTaskRepository()
    run_repo = InMemoryDungeonRunRepository()
    achievement_repo = InMemoryAchievementRepository()
    return GameService(
        char_repo,
        task_repo,
        run_repo,
        achievement_repo,
        tuning=load_tuning_tables(),
        atomic_state_persistor=create_inmemory_atomic_persistor(char_repo, task_repo, run_repo, achievement_repo),
        notifier=LoggingNotifier(),
        sync_gateway=create_sync_gateway(),
        dispatcher=_dispatcher(),
        event_bus=EventBus(),
    )


def _build_sql_game_service() -> GameService:
    from questcore.infrastructure.db.sql.atomic_persistence import create_sql_atomic_persistor
    from questcore.infrastructure.db.sql.connection import DATABASE_URL
    from questcore.infrastructure.db.sql.migrate import create_schema
    from questcore.infrastructure.db.sql.repos import (
        SqlAchievementRepository,
        SqlCharacterRepository,
        SqlDungeonRunRepository,
        SqlTaskRepository,
    )

    # Force an early connectivity check so fallback happens before any state is touched.
    try:
        create_schema(DATABASE_URL)
    except Exception as exc:
        raise RuntimeError(f"Database bootstrap probe failed: {exc}") from exc

    return GameService(
        SqlCharacterRepository(),
        SqlTaskRepository(),
        SqlDungeonRunRepository(),
        SqlAchievementRepository(),
        tuning=load_tuning_tables(),
        atomic_state_persistor=create_sql_atomic_persistor(),
        notifier=LoggingNotifier(),
        sync_gateway=create_sync_gateway(),
        dispatcher=_dispatcher(),
        event_bus=EventBus(),
    )


def create_game_service() -> GameService:
    database_url = os.getenv("QUEST_DATABASE_URL")
    if database_url:
        if _looks_like_local_mysql_unreachable(database_url):
            logger.warning("MySQL appears unreachable, falling back to in-memory.")
            return _build_inmemory_game_service()
        try:
            return _build_sql_game_service()
        except RuntimeError as exc:
            logger.warning("Database unavailable, falling back to in-memory. Reason: %s", exc)

    return _build_inmemory_game_service()
