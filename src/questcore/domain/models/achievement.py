from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


class AchievementKey(str, Enum):
    FIRST_STEPS = "first_steps"
    DEDICATED = "dedicated"
    CENTURION = "centurion"
    LEGENDARY_WORKER = "legendary_worker"
    CONSISTENT = "consistent"
    MONTHLY_MASTER = "monthly_master"
    UNSTOPPABLE = "unstoppable"
    APPRENTICE = "apprentice"
    JOURNEYMAN = "journeyman"
    MASTER = "master"
    TRANSCENDENT = "transcendent"
    DUNGEON_DELVER = "dungeon_delver"
    DUNGEON_MASTER = "dungeon_master"
    BETTER_TOGETHER = "better_together"
    POWER_COUPLE = "power_couple"
    RARE_FIND = "rare_find"
    LEGENDARY_COLLECTOR = "legendary_collector"
    SPECIALIZED = "specialized"
    SKILL_MASTER = "skill_master"


class TrackedValue(str, Enum):
    """What an achievement's progress is derived from.

    ``COUNTER`` entries read an explicitly incremented counter on the character.
    ``UNSUPPORTED`` marks definitions whose source of progress does not exist in
    this core; they are reported instead of silently tracking zero.
    """

    TASKS_COMPLETED = "tasks_completed"
    LONGEST_STREAK = "longest_streak"
    LEVEL = "level"
    HAS_PARTNER = "has_partner"
    HAS_CLASS = "has_class"
    COUNTER = "counter"
    UNSUPPORTED = "unsupported"


class RewardType(str, Enum):
    EXP = "exp"
    GOLD = "gold"
    GEMS = "gems"


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    name: str
    description: str
    tracked_value: TrackedValue
    target_value: int
    reward_type: RewardType
    reward_amount: int

    @property
    def is_supported(self) -> bool:
        return self.tracked_value is not TrackedValue.UNSUPPORTED

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "AchievementDefinition":
        raw_tracked = str(payload.get("tracked_value", "") or "").strip().lower()
        try:
            tracked = TrackedValue(raw_tracked)
        except ValueError:
            tracked = TrackedValue.UNSUPPORTED
        try:
            reward_type = RewardType(str(payload.get("reward_type", "exp")).strip().lower())
        except ValueError:
            reward_type = RewardType.EXP
        return cls(
            key=str(payload.get("key", "")).strip(),
            name=str(payload.get("name", "")),
            description=str(payload.get("description", "")),
            tracked_value=tracked,
            target_value=max(1, int(payload.get("target_value", 1) or 1)),
            reward_type=reward_type,
            reward_amount=max(0, int(payload.get("reward_amount", 0) or 0)),
        )


@dataclass
class Achievement:
    key: str
    target_value: int
    current_value: int = 0
    is_unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    reward_claimed: bool = False

    @property
    def progress(self) -> float:
        if self.target_value <= 0:
            return 1.0
        return min(1.0, self.current_value / self.target_value)

    def record(self, value: int, now: datetime) -> bool:
        """Raise progress to ``value`` and unlock at target. Returns True on a new unlock."""
        if self.is_unlocked:
            return False
        self.current_value = max(self.current_value, int(value))
        if self.current_value >= self.target_value:
            self.is_unlocked = True
            self.unlocked_at = now
            return True
        return False


def _definition(
    key: AchievementKey,
    name: str,
    description: str,
    tracked: TrackedValue,
    target: int,
    reward_type: RewardType,
    amount: int,
) -> AchievementDefinition:
    return AchievementDefinition(
        key=key.value,
        name=name,
        description=description,
        tracked_value=tracked,
        target_value=target,
        reward_type=reward_type,
        reward_amount=amount,
    )


DEFAULT_ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    _definition(AchievementKey.FIRST_STEPS, "First Steps", "Complete your first task", TrackedValue.TASKS_COMPLETED, 1, RewardType.EXP, 50),
    _definition(AchievementKey.DEDICATED, "Dedicated", "Complete 50 tasks", TrackedValue.TASKS_COMPLETED, 50, RewardType.GOLD, 500),
    _definition(AchievementKey.CENTURION, "Centurion", "Complete 100 tasks", TrackedValue.TASKS_COMPLETED, 100, RewardType.GEMS, 5),
    _definition(AchievementKey.LEGENDARY_WORKER, "Legendary Worker", "Complete 500 tasks", TrackedValue.TASKS_COMPLETED, 500, RewardType.GEMS, 20),
    _definition(AchievementKey.CONSISTENT, "Consistent", "Maintain a 7-day streak", TrackedValue.LONGEST_STREAK, 7, RewardType.EXP, 200),
    _definition(AchievementKey.MONTHLY_MASTER, "Monthly Master", "Maintain a 30-day streak", TrackedValue.LONGEST_STREAK, 30, RewardType.GEMS, 3),
    _definition(AchievementKey.UNSTOPPABLE, "Unstoppable", "Maintain a 100-day streak", TrackedValue.LONGEST_STREAK, 100, RewardType.GEMS, 15),
    _definition(AchievementKey.APPRENTICE, "Apprentice", "Reach Level 10", TrackedValue.LEVEL, 10, RewardType.GOLD, 200),
    _definition(AchievementKey.JOURNEYMAN, "Journeyman", "Reach Level 25", TrackedValue.LEVEL, 25, RewardType.GOLD, 500),
    _definition(AchievementKey.MASTER, "Master", "Reach Level 50", TrackedValue.LEVEL, 50, RewardType.GEMS, 10),
    _definition(AchievementKey.TRANSCENDENT, "Transcendent", "Reach Level 100", TrackedValue.LEVEL, 100, RewardType.GEMS, 50),
    _definition(AchievementKey.DUNGEON_DELVER, "Dungeon Delver", "Complete your first dungeon", TrackedValue.COUNTER, 1, RewardType.EXP, 150),
    _definition(AchievementKey.DUNGEON_MASTER, "Dungeon Master", "Complete 10 dungeons", TrackedValue.COUNTER, 10, RewardType.GEMS, 5),
    _definition(AchievementKey.BETTER_TOGETHER, "Better Together", "Link with your partner", TrackedValue.HAS_PARTNER, 1, RewardType.EXP, 100),
    _definition(AchievementKey.POWER_COUPLE, "Power Couple", "Complete 10 partner tasks", TrackedValue.COUNTER, 10, RewardType.GEMS, 5),
    _definition(AchievementKey.RARE_FIND, "Rare Find", "Obtain a Rare or better item", TrackedValue.COUNTER, 1, RewardType.GOLD, 300),
    _definition(AchievementKey.LEGENDARY_COLLECTOR, "Legendary Collector", "Obtain a Legendary item", TrackedValue.COUNTER, 1, RewardType.GEMS, 10),
    _definition(AchievementKey.SPECIALIZED, "Specialized", "Choose your character class", TrackedValue.HAS_CLASS, 1, RewardType.EXP, 100),
    _definition(AchievementKey.SKILL_MASTER, "Skill Master", "Max out a Tier 3 capstone skill", TrackedValue.UNSUPPORTED, 1, RewardType.GEMS, 15),
)
