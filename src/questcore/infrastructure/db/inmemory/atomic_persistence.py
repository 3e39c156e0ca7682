from __future__ import annotations

import copy
from collections.abc import Callable, Sequence

from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.dungeon import DungeonRun
from questcore.domain.models.task import GameTask


def create_inmemory_atomic_persistor(character_repo, task_repo, run_repo, achievement_repo) -> Callable[..., None]:
    def _persist(
        character: PlayerCharacter,
        tasks: Sequence[GameTask] = (),
        runs: Sequence[DungeonRun] = (),
        operations: Sequence[Callable[[object], None]] | None = None,
    ) -> None:
        snapshot = {
            "characters": copy.deepcopy(getattr(character_repo, "_characters", {})),
            "tasks": copy.deepcopy(getattr(task_repo, "_tasks", {})),
            "runs": copy.deepcopy(getattr(run_repo, "_runs", {})),
            "achievements": copy.deepcopy(getattr(achievement_repo, "_records", {})),
        }
        try:
            character_repo.save(character)
            for task in tasks:
                task_repo.save(task)
            for run in runs:
                run_repo.save(run)
            for record in character.achievements.values():
                achievement_repo.save_for_character(character.id, record)
            for operation in operations or ():
                operation(None)
        except Exception:
            if hasattr(character_repo, "_characters"):
                character_repo._characters = snapshot["characters"]
            if hasattr(task_repo, "_tasks"):
                task_repo._tasks = snapshot["tasks"]
            if hasattr(run_repo, "_runs"):
                run_repo._runs = snapshot["runs"]
            if hasattr(achievement_repo, "_records"):
                achievement_repo._records = snapshot["achievements"]
            raise

    return _persist
