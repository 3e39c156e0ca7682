from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from questcore.domain.models.character import CharacterClass, ClassLine
from questcore.domain.models.stats import StatRequirement, StatType, Stats

if TYPE_CHECKING:
    from questcore.domain.models.character import PlayerCharacter
    from questcore.domain.models.loot import Equipment


MAX_MISSION_SUCCESS_RATE = 0.99


class MissionType(str, Enum):
    COMBAT = "combat"
    EXPLORATION = "exploration"
    RESEARCH = "research"
    NEGOTIATION = "negotiation"
    STEALTH = "stealth"
    GATHERING = "gathering"

    @property
    def primary_stat(self) -> StatType:
        return _MISSION_PRIMARY_STATS[self]


_MISSION_PRIMARY_STATS = {
    MissionType.COMBAT: StatType.STRENGTH,
    MissionType.EXPLORATION: StatType.DEXTERITY,
    MissionType.RESEARCH: StatType.WISDOM,
    MissionType.NEGOTIATION: StatType.CHARISMA,
    MissionType.STEALTH: StatType.DEXTERITY,
    MissionType.GATHERING: StatType.LUCK,
}


class MissionRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def stat_reward_chance(self) -> float:
        return {
            MissionRarity.COMMON: 0.50,
            MissionRarity.UNCOMMON: 0.60,
            MissionRarity.RARE: 0.70,
            MissionRarity.EPIC: 0.80,
            MissionRarity.LEGENDARY: 0.90,
        }[self]

    @property
    def drop_tier(self) -> int:
        return {
            MissionRarity.COMMON: 1,
            MissionRarity.UNCOMMON: 1,
            MissionRarity.RARE: 2,
            MissionRarity.EPIC: 3,
            MissionRarity.LEGENDARY: 4,
        }[self]


@dataclass
class Mission:
    """Template for a timed training session."""

    name: str
    mission_type: MissionType
    rarity: MissionRarity
    duration_seconds: int
    exp_reward: int
    gold_reward: int
    stat_requirements: List[StatRequirement] = field(default_factory=list)
    level_requirement: int = 1
    base_success_rate: float = 0.8
    can_drop_equipment: bool = False
    class_requirement: Optional[ClassLine] = None
    training_stat: Optional[StatType] = None
    rank_up_target: Optional[CharacterClass] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_rank_up(self) -> bool:
        return self.rank_up_target is not None

    @property
    def reward_stat(self) -> StatType:
        return self.training_stat or self.mission_type.primary_stat

    def item_drop_chance(self, luck: int) -> float:
        if not self.can_drop_equipment:
            return 0.0
        return min(0.10 + luck * 0.01, 0.50)

    def success_rate(self, stats: Stats) -> float:
        rate = float(self.base_success_rate)
        for requirement in self.stat_requirements:
            excess = stats.value(requirement.stat) - requirement.minimum
            if excess > 0:
                rate += excess * 0.01
        rate += stats.luck * 0.005
        return min(rate, MAX_MISSION_SUCCESS_RATE)

    def meets_requirements(self, character: "PlayerCharacter") -> bool:
        if character.level < self.level_requirement:
            return False
        if self.class_requirement is not None and character.character_class is not None:
            if character.character_class.class_line is not self.class_requirement:
                return False
        if self.rank_up_target is not None:
            current = character.character_class
            if current is None or self.rank_up_target not in current.evolution_options:
                return False
        effective = character.effective_stats
        for requirement in self.stat_requirements:
            if effective.value(requirement.stat) < requirement.minimum:
                return False
        return True


class MissionPhase(str, Enum):
    RUNNING = "running"
    CLAIMED = "claimed"


@dataclass
class MissionResolution:
    mission_id: str
    success: bool
    exp_earned: int
    gold_earned: int
    stat_gained: Optional[StatType] = None
    item: Optional["Equipment"] = None
    research_tokens: int = 0
    new_class: Optional[CharacterClass] = None
    levels_gained: List[int] = field(default_factory=list)


@dataclass
class ActiveMission:
    mission_id: str
    character_id: str
    started_at: datetime
    completes_at: datetime
    phase: MissionPhase = MissionPhase.RUNNING
    resolution: Optional[MissionResolution] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def begin(cls, mission: Mission, character_id: str, now: datetime, duration_seconds: int) -> "ActiveMission":
        return cls(
            mission_id=mission.id,
            character_id=character_id,
            started_at=now,
            completes_at=now + timedelta(seconds=max(0, int(duration_seconds))),
        )

    def is_complete(self, now: datetime) -> bool:
        return now >= self.completes_at

    @property
    def is_claimed(self) -> bool:
        return self.phase is MissionPhase.CLAIMED

    @property
    def was_successful(self) -> bool:
        return bool(self.resolution and self.resolution.success)

    @property
    def earned_exp(self) -> int:
        return self.resolution.exp_earned if self.resolution else 0

    @property
    def earned_gold(self) -> int:
        return self.resolution.gold_earned if self.resolution else 0

    @property
    def earned_item(self) -> Optional["Equipment"]:
        return self.resolution.item if self.resolution else None

    @property
    def earned_research_tokens(self) -> int:
        return self.resolution.research_tokens if self.resolution else 0

    def time_remaining(self, now: datetime) -> float:
        return max(0.0, (self.completes_at - now).total_seconds())

    def progress(self, now: datetime) -> float:
        total = (self.completes_at - self.started_at).total_seconds()
        if total <= 0:
            return 1.0
        elapsed = (now - self.started_at).total_seconds()
        return max(0.0, min(1.0, elapsed / total))

    def claim(self, resolution: MissionResolution) -> None:
        self.resolution = resolution
        self.phase = MissionPhase.CLAIMED
