from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional

from questcore.domain.models.character import ClassLine
from questcore.domain.models.loot import Equipment
from questcore.domain.models.stats import StatRequirement, StatType

if TYPE_CHECKING:
    from questcore.domain.models.character import PlayerCharacter


class DungeonDifficulty(str, Enum):
    NORMAL = "normal"
    HARD = "hard"
    HEROIC = "heroic"
    MYTHIC = "mythic"

    @property
    def reward_multiplier(self) -> float:
        return _DIFFICULTY_TABLE[self][0]

    @property
    def damage_multiplier(self) -> float:
        return _DIFFICULTY_TABLE[self][1]

    @property
    def success_floor(self) -> float:
        return _DIFFICULTY_TABLE[self][2]

    @property
    def seconds_per_room(self) -> int:
        return int(_DIFFICULTY_TABLE[self][3])


# reward multiplier, damage multiplier, success floor, seconds per room
_DIFFICULTY_TABLE = {
    DungeonDifficulty.NORMAL: (1.0, 1.0, 0.25, 600),
    DungeonDifficulty.HARD: (1.5, 1.5, 0.15, 900),
    DungeonDifficulty.HEROIC: (2.5, 2.5, 0.10, 1200),
    DungeonDifficulty.MYTHIC: (4.0, 4.0, 0.05, 1800),
}


class EncounterType(str, Enum):
    COMBAT = "combat"
    PUZZLE = "puzzle"
    TRAP = "trap"
    TREASURE = "treasure"
    BOSS = "boss"

    @property
    def approaches(self) -> list["RoomApproach"]:
        return list(_APPROACHES.get(self, []))


@dataclass(frozen=True)
class RoomApproach:
    name: str
    primary_stat: StatType
    power_modifier: float = 1.0
    risk_modifier: float = 1.0

    @property
    def is_risky(self) -> bool:
        return self.power_modifier > 1.1


_APPROACHES = {
    EncounterType.COMBAT: [
        RoomApproach("Aggressive Strike", StatType.STRENGTH, 1.25, 1.5),
        RoomApproach("Defensive Stance", StatType.DEFENSE, 0.9, 0.7),
        RoomApproach("Tactical Maneuver", StatType.DEXTERITY, 1.1, 1.0),
    ],
    EncounterType.PUZZLE: [
        RoomApproach("Analyze", StatType.WISDOM, 1.0, 0.8),
        RoomApproach("Intuition", StatType.LUCK, 1.3, 1.5),
        RoomApproach("Negotiate", StatType.CHARISMA, 1.05, 1.0),
    ],
    EncounterType.TRAP: [
        RoomApproach("Disarm", StatType.DEXTERITY, 1.1, 1.0),
        RoomApproach("Tank Through", StatType.DEFENSE, 0.85, 0.6),
        RoomApproach("Find Alternate Route", StatType.WISDOM, 1.2, 1.3),
    ],
    EncounterType.TREASURE: [
        RoomApproach("Open Carefully", StatType.DEXTERITY, 1.0, 0.7),
        RoomApproach("Detect Magic", StatType.WISDOM, 1.1, 1.0),
        RoomApproach("Just Grab It", StatType.LUCK, 1.35, 1.6),
    ],
    EncounterType.BOSS: [
        RoomApproach("All-Out Assault", StatType.STRENGTH, 1.3, 1.6),
        RoomApproach("Endurance Battle", StatType.DEFENSE, 0.95, 0.7),
        RoomApproach("Exploit Weakness", StatType.WISDOM, 1.2, 1.2),
    ],
}


@dataclass
class DungeonRoom:
    name: str
    encounter_type: EncounterType
    primary_stat: StatType
    difficulty_rating: int
    is_boss_room: bool = False
    bonus_loot_chance: float = 0.0
    is_bonus_room: bool = False
    class_gate: Optional[ClassLine] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def can_enter(self, party: Iterable["PlayerCharacter"]) -> bool:
        if self.class_gate is None:
            return True
        for member in party:
            if member.character_class is not None and member.character_class.class_line is self.class_gate:
                return True
        return False


@dataclass
class Dungeon:
    name: str
    difficulty: DungeonDifficulty
    rooms: List[DungeonRoom]
    base_exp_reward: int
    base_gold_reward: int
    level_requirement: int = 1
    loot_tier: int = 1
    max_party_size: int = 4
    stat_requirements: List[StatRequirement] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def room_count(self) -> int:
        return len(self.rooms)

    @property
    def duration_seconds(self) -> int:
        return self.room_count * self.difficulty.seconds_per_room


class RunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class FeedEntryType(str, Enum):
    ROOM_ENTERED = "room_entered"
    APPROACH_CHOSEN = "approach_chosen"
    OUTCOME_SUCCESS = "outcome_success"
    OUTCOME_FAIL = "outcome_fail"
    LOOT_FOUND = "loot_found"
    PARTNER_ACTION = "partner_action"
    DUNGEON_COMPLETE = "dungeon_complete"
    DUNGEON_FAILED = "dungeon_failed"
    SECRET_DISCOVERY = "secret_discovery"


@dataclass(frozen=True)
class FeedEntry:
    entry_type: FeedEntryType
    message: str


@dataclass
class RoomResult:
    room_index: int
    room_name: str
    success: bool
    player_power: int
    required_power: int
    exp_earned: int
    gold_earned: int
    hp_lost: int
    loot_dropped: bool
    approach_name: str = ""
    card_dropped: bool = False


@dataclass
class DungeonCompletionResult:
    success: bool
    dungeon_name: str
    total_exp: int
    total_gold: int
    rooms_cleared: int
    total_rooms: int
    hp_remaining: int
    max_hp: int
    loot_drops: List[Equipment]
    room_results: List[RoomResult]
    is_coop_run: bool = False
    bond_exp_earned: int = 0
    performance_rating: str = "C"
    performance_score: float = 0.0
    loot_multiplier: float = 1.0
    secret_discovery: bool = False
    secret_bonus_gold: int = 0
    secret_bonus_materials: int = 0
    secret_equipment_drop: bool = False

    @property
    def clear_percentage(self) -> float:
        if self.total_rooms <= 0:
            return 0.0
        return self.rooms_cleared / self.total_rooms


@dataclass
class DungeonRun:
    dungeon_id: str
    party_member_ids: List[str]
    party_hp: int
    max_party_hp: int
    is_coop_run: bool = False
    selected_rooms: List[DungeonRoom] = field(default_factory=list)
    room_results: List[RoomResult] = field(default_factory=list)
    current_room_index: int = 0
    total_exp_earned: int = 0
    total_gold_earned: int = 0
    status: RunStatus = RunStatus.IN_PROGRESS
    feed: List[FeedEntry] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    performance_rating: str = ""
    performance_score: float = 0.0
    result: Optional[DungeonCompletionResult] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def for_party(cls, dungeon: Dungeon, party: List["PlayerCharacter"], now: datetime | None = None) -> "DungeonRun":
        lead = party[0] if party else None
        run = cls(
            dungeon_id=dungeon.id,
            party_member_ids=[member.id for member in party],
            party_hp=int(getattr(lead, "current_hp", 100) or 100),
            max_party_hp=int(getattr(lead, "max_hp", 100) or 100),
            is_coop_run=len(party) > 1,
            started_at=now,
        )
        suffix = " as a party" if run.is_coop_run else " solo"
        run.add_feed(FeedEntryType.ROOM_ENTERED, f"Entered {dungeon.name}{suffix}")
        return run

    @property
    def is_resolved(self) -> bool:
        return self.result is not None

    @property
    def hp_ratio(self) -> float:
        if self.max_party_hp <= 0:
            return 0.0
        return max(0, self.party_hp) / self.max_party_hp

    def add_feed(self, entry_type: FeedEntryType, message: str) -> None:
        self.feed.append(FeedEntry(entry_type=entry_type, message=message))
