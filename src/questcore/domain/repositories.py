from abc import ABC, abstractmethod
from typing import Any, List, Optional

from questcore.domain.models.achievement import Achievement
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.dungeon import DungeonRun
from questcore.domain.models.task import GameTask


class CharacterRepository(ABC):
    @abstractmethod
    def get(self, character_id: str) -> Optional[PlayerCharacter]:
        raise NotImplementedError

    @abstractmethod
    def list_where(self, **equals: Any) -> List[PlayerCharacter]:
        raise NotImplementedError

    @abstractmethod
    def save(self, character: PlayerCharacter) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, character_id: str) -> bool:
        raise NotImplementedError

    def list_all(self) -> List[PlayerCharacter]:
        return self.list_where()


class TaskRepository(ABC):
    @abstractmethod
    def get(self, task_id: str) -> Optional[GameTask]:
        raise NotImplementedError

    @abstractmethod
    def list_where(self, **equals: Any) -> List[GameTask]:
        raise NotImplementedError

    @abstractmethod
    def save(self, task: GameTask) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        raise NotImplementedError

    def list_for_owner(self, owner_id: str) -> List[GameTask]:
        return self.list_where(owner_id=owner_id)


class DungeonRunRepository(ABC):
    @abstractmethod
    def get(self, run_id: str) -> Optional[DungeonRun]:
        raise NotImplementedError

    @abstractmethod
    def list_where(self, **equals: Any) -> List[DungeonRun]:
        raise NotImplementedError

    @abstractmethod
    def save(self, run: DungeonRun) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, run_id: str) -> bool:
        raise NotImplementedError


class AchievementRepository(ABC):
    @abstractmethod
    def list_for_character(self, character_id: str) -> List[Achievement]:
        raise NotImplementedError

    @abstractmethod
    def save_for_character(self, character_id: str, achievement: Achievement) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_for_character(self, character_id: str) -> int:
        raise NotImplementedError
