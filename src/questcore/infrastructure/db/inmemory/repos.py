from typing import Any, Dict, List, Optional

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


def _matches(record: object, equals: Dict[str, Any]) -> bool:
    for name, expected in equals.items():
        if getattr(record, name, None) != expected:
            return False
    return True


class InMemoryCharacterRepository(CharacterRepository):
    def __init__(self, initial: Optional[Dict[str, PlayerCharacter]] = None) -> None:
        self._characters = dict(initial or {})

    def get(self, character_id: str) -> PlayerCharacter | None:
        return self._characters.get(character_id)

    def list_where(self, **equals: Any) -> List[PlayerCharacter]:
        return [c for c in self._characters.values() if _matches(c, equals)]

    def save(self, character: PlayerCharacter) -> None:
        self._characters[character.id] = character

    def delete(self, character_id: str) -> bool:
        return self._characters.pop(character_id, None) is not None


class InMemoryTaskRepository(TaskRepository):
    def __init__(self, tasks: Optional[List[GameTask]] = None) -> None:
        self._tasks: Dict[str, GameTask] = {task.id: task for task in tasks or []}

    def get(self, task_id: str) -> GameTask | None:
        return self._tasks.get(task_id)

    def list_where(self, **equals: Any) -> List[GameTask]:
        return [t for t in self._tasks.values() if _matches(t, equals)]

    def save(self, task: GameTask) -> None:
        self._tasks[task.id] = task

    def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None


class InMemoryDungeonRunRepository(DungeonRunRepository):
    def __init__(self) -> None:
        self._runs: Dict[str, DungeonRun] = {}

    def get(self, run_id: str) -> DungeonRun | None:
        return self._runs.get(run_id)

    def list_where(self, **equals: Any) -> List[DungeonRun]:
        return [r for r in self._runs.values() if _matches(r, equals)]

    def save(self, run: DungeonRun) -> None:
        self._runs[run.id] = run

    def delete(self, run_id: str) -> bool:
        return self._runs.pop(run_id, None) is not None


class InMemoryAchievementRepository(AchievementRepository):
    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Achievement]] = {}

    def list_for_character(self, character_id: str) -> List[Achievement]:
        return list(self._records.get(character_id, {}).values())

    def save_for_character(self, character_id: str, achievement: Achievement) -> None:
        self._records.setdefault(character_id, {})[achievement.key] = achievement

    def delete_for_character(self, character_id: str) -> int:
        return len(self._records.pop(character_id, {}))
