import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import text

from questcore.domain.models.achievement import Achievement
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.dungeon import DungeonRun
from questcore.domain.models.task import GameTask
from questcore.domain.repositories import (
    AchievementRepository,
    CharacterRepository,
    DungeonRunRepository,
    TaskRepository,
)
from questcore.infrastructure.db.codec import (
    achievement_from_payload,
    achievement_to_payload,
    character_from_payload,
    character_to_payload,
    dungeon_run_from_payload,
    dungeon_run_to_payload,
    task_from_payload,
    task_to_payload,
)
from .connection import SessionLocal


def _dialect(session) -> str:
    return session.bind.dialect.name if session.bind is not None else "mysql"


def _load_payload(raw_value) -> Dict[str, Any]:
    if isinstance(raw_value, dict):
        return raw_value
    if not raw_value:
        return {}
    return json.loads(raw_value)


def _matches(record: object, equals: Dict[str, Any]) -> bool:
    return all(getattr(record, name, None) == expected for name, expected in equals.items())


def upsert_statement(session, table: str, key_columns: Sequence[str], columns: Sequence[str]):
    """Build an insert-or-update for ``table`` in the session's dialect."""
    all_columns = list(key_columns) + [name for name in columns if name not in key_columns]
    column_list = ", ".join(all_columns)
    value_list = ", ".join(f":{name}" for name in all_columns)
    if _dialect(session) == "mysql":
        updates = ",\n                ".join(f"{name} = VALUES({name})" for name in columns)
        return text(
            f"""
            INSERT INTO {table} ({column_list})
            VALUES ({value_list})
            ON DUPLICATE KEY UPDATE
                {updates}
            """
        )
    conflict = ", ".join(key_columns)
    updates = ",\n                ".join(f"{name} = excluded.{name}" for name in columns)
    return text(
        f"""
        INSERT INTO {table} ({column_list})
        VALUES ({value_list})
        ON CONFLICT({conflict}) DO UPDATE SET
            {updates}
        """
    )


class _PayloadTable:
    table: str = ""
    key_column: str = ""
    indexed: Sequence[str] = ()

    def __init__(self, to_payload: Callable[[Any], Dict[str, Any]], from_payload: Callable[[Dict[str, Any]], Any]):
        self._to_payload = to_payload
        self._from_payload = from_payload

    def _get(self, key: str):
        with SessionLocal() as session:
            row = session.execute(
                text(f"SELECT payload_json FROM {self.table} WHERE {self.key_column} = :key"),
                {"key": key},
            ).first()
        if not row:
            return None
        return self._from_payload(_load_payload(row.payload_json))

    def _list(self, equals: Dict[str, Any]) -> List[Any]:
        clauses = []
        params: Dict[str, Any] = {}
        remaining = dict(equals)
        for column in self.indexed:
            if column in remaining:
                value = remaining.pop(column)
                clauses.append(f"{column} = :{column}")
                params[column] = getattr(value, "value", value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with SessionLocal() as session:
            rows = session.execute(
                text(f"SELECT payload_json FROM {self.table}{where} ORDER BY {self.key_column}"),
                params,
            ).all()
        records = [self._from_payload(_load_payload(row.payload_json)) for row in rows]
        return [record for record in records if _matches(record, remaining)]

    def _save(self, session, record, key: str) -> None:
        params = {name: getattr(getattr(record, name, None), "value", getattr(record, name, None)) for name in self.indexed}
        params[self.key_column] = key
        params["payload_json"] = json.dumps(self._to_payload(record), sort_keys=True)
        statement = upsert_statement(session, self.table, [self.key_column], list(self.indexed) + ["payload_json"])
        session.execute(statement, params)

    def _upsert(self, record, key: str) -> None:
        with SessionLocal.begin() as session:
            self._save(session, record, key)

    def _delete(self, key: str) -> bool:
        with SessionLocal.begin() as session:
            result = session.execute(text(f"DELETE FROM {self.table} WHERE {self.key_column} = :key"), {"key": key})
        return bool(result.rowcount)


class SqlCharacterRepository(_PayloadTable, CharacterRepository):
    table = "quest_character"
    key_column = "character_id"
    indexed = ("name", "level", "partner_id")

    def __init__(self) -> None:
        super().__init__(character_to_payload, character_from_payload)

    def get(self, character_id: str) -> Optional[PlayerCharacter]:
        return self._get(character_id)

    def list_where(self, **equals: Any) -> List[PlayerCharacter]:
        return self._list(equals)

    def save(self, character: PlayerCharacter) -> None:
        self._upsert(character, character.id)

    def save_in(self, session, character: PlayerCharacter) -> None:
        self._save(session, character, character.id)

    def delete(self, character_id: str) -> bool:
        return self._delete(character_id)


class SqlTaskRepository(_PayloadTable, TaskRepository):
    table = "quest_task"
    key_column = "task_id"
    indexed = ("owner_id", "status")

    def __init__(self) -> None:
        super().__init__(task_to_payload, task_from_payload)

    def get(self, task_id: str) -> Optional[GameTask]:
        return self._get(task_id)

    def list_where(self, **equals: Any) -> List[GameTask]:
        return self._list(equals)

    def save(self, task: GameTask) -> None:
        self._upsert(task, task.id)

    def save_in(self, session, task: GameTask) -> None:
        self._save(session, task, task.id)

    def delete(self, task_id: str) -> bool:
        return self._delete(task_id)


class SqlDungeonRunRepository(_PayloadTable, DungeonRunRepository):
    table = "quest_dungeon_run"
    key_column = "run_id"
    indexed = ("dungeon_id", "status")

    def __init__(self) -> None:
        super().__init__(dungeon_run_to_payload, dungeon_run_from_payload)

    def get(self, run_id: str) -> Optional[DungeonRun]:
        return self._get(run_id)

    def list_where(self, **equals: Any) -> List[DungeonRun]:
        return self._list(equals)

    def save(self, run: DungeonRun) -> None:
        self._upsert(run, run.id)

    def save_in(self, session, run: DungeonRun) -> None:
        self._save(session, run, run.id)

    def delete(self, run_id: str) -> bool:
        return self._delete(run_id)


class SqlAchievementRepository(AchievementRepository):
    def list_for_character(self, character_id: str) -> List[Achievement]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT payload_json
                    FROM quest_achievement
                    WHERE character_id = :cid
                    ORDER BY achievement_key
                    """
                ),
                {"cid": character_id},
            ).all()
        return [achievement_from_payload(_load_payload(row.payload_json)) for row in rows]

    def save_for_character(self, character_id: str, achievement: Achievement) -> None:
        with SessionLocal.begin() as session:
            self.save_in(session, character_id, achievement)

    def save_in(self, session, character_id: str, achievement: Achievement) -> None:
        statement = upsert_statement(
            session,
            "quest_achievement",
            ["character_id", "achievement_key"],
            ["is_unlocked", "payload_json"],
        )
        session.execute(
            statement,
            {
                "character_id": character_id,
                "achievement_key": achievement.key,
                "is_unlocked": 1 if achievement.is_unlocked else 0,
                "payload_json": json.dumps(achievement_to_payload(achievement), sort_keys=True),
            },
        )

    def delete_for_character(self, character_id: str) -> int:
        with SessionLocal.begin() as session:
            result = session.execute(
                text("DELETE FROM quest_achievement WHERE character_id = :cid"),
                {"cid": character_id},
            )
        return int(result.rowcount or 0)
