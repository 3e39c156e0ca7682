from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from questcore.domain.models.task import GameTask, TaskStatus


ROUTINE_MIN_HABITS = 3
ROUTINE_MAX_HABITS = 6
ROUTINE_COMPLETION_BONUS = 0.5


@dataclass
class RoutineBundle:
    """A themed group of habits that pays a bonus once every habit is done for the day."""

    name: str
    owner_id: str
    habit_ids: List[str] = field(default_factory=list)
    time_of_day: str = "morning"
    is_archived: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def habit_count(self) -> int:
        return len(self.habit_ids)

    @property
    def is_valid(self) -> bool:
        return ROUTINE_MIN_HABITS <= self.habit_count <= ROUTINE_MAX_HABITS

    def add_habit(self, task_id: str) -> bool:
        if self.habit_count >= ROUTINE_MAX_HABITS or task_id in self.habit_ids:
            return False
        self.habit_ids.append(task_id)
        return True

    def remove_habit(self, task_id: str) -> None:
        self.habit_ids = [habit_id for habit_id in self.habit_ids if habit_id != task_id]

    def completed_count(self, tasks: Iterable[GameTask], today: date, *, assume_done: Optional[str] = None) -> int:
        members = set(self.habit_ids)
        done = set()
        for task in tasks:
            if task.id not in members:
                continue
            if task.id == assume_done:
                done.add(task.id)
                continue
            if task.status is TaskStatus.COMPLETED and task.completed_at is not None and task.completed_at.date() == today:
                done.add(task.id)
        if assume_done in members:
            done.add(assume_done)
        return len(done)

    def is_complete_today(self, tasks: Iterable[GameTask], today: date, *, assume_done: Optional[str] = None) -> bool:
        if self.habit_count == 0:
            return False
        return self.completed_count(tasks, today, assume_done=assume_done) >= self.habit_count
