from __future__ import annotations

from collections.abc import Callable, Sequence

from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.dungeon import DungeonRun
from questcore.domain.models.task import GameTask
from questcore.infrastructure.db.sql.repos import (
    SqlAchievementRepository,
    SqlCharacterRepository,
    SqlDungeonRunRepository,
    SqlTaskRepository,
)
from .connection import SessionLocal


def save_character_state_atomic(
    character: PlayerCharacter,
    tasks: Sequence[GameTask] = (),
    runs: Sequence[DungeonRun] = (),
    operations: Sequence[Callable[[object], None]] | None = None,
) -> None:
    """Persist a character with its touched tasks, runs and achievements in one DB transaction."""
    characters = SqlCharacterRepository()
    task_repo = SqlTaskRepository()
    run_repo = SqlDungeonRunRepository()
    achievements = SqlAchievementRepository()
    with SessionLocal.begin() as session:
        characters.save_in(session, character)
        for task in tasks:
            task_repo.save_in(session, task)
        for run in runs:
            run_repo.save_in(session, run)
        for record in character.achievements.values():
            achievements.save_in(session, character.id, record)
        for operation in operations or ():
            operation(session)


def create_sql_atomic_persistor() -> Callable[..., None]:
    return save_character_state_atomic
