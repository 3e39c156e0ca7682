from dataclasses import dataclass


@dataclass
class LevelUpPendingEvent:
    character_id: str
    from_level: int
    to_level: int
    exp: int


@dataclass
class LevelUpAppliedEvent:
    character_id: str
    from_level: int
    to_level: int
    stat_points_gained: int
    gold_gained: int


@dataclass
class TaskCompletedEvent:
    character_id: str
    task_id: str
    exp_awarded: int
    gold_awarded: int


@dataclass
class TaskEscrowedEvent:
    character_id: str
    task_id: str
    exp_pending: int
    gold_pending: int


@dataclass
class TaskConfirmedEvent:
    character_id: str
    task_id: str
    exp_awarded: int
    gold_awarded: int
    automatic: bool


@dataclass
class TaskDisputedEvent:
    character_id: str
    task_id: str
    reason: str


@dataclass
class MissionResolvedEvent:
    character_id: str
    mission_id: str
    success: bool
    exp_awarded: int
    gold_awarded: int


@dataclass
class DungeonResolvedEvent:
    run_id: str
    dungeon_name: str
    success: bool
    rooms_cleared: int
    total_rooms: int
    performance_rating: str


@dataclass
class AchievementUnlockedEvent:
    character_id: str
    key: str
    name: str


@dataclass
class StreakAtRiskEvent:
    character_id: str
    current_streak: int
    freezes_remaining: int


@dataclass
class ResearchUnlockedEvent:
    character_id: str
    node_id: str
    name: str
