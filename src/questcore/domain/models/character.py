from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from questcore.domain.models.loot import Equipment
from questcore.domain.models.stats import ResearchBonuses, StatType, Stats

if TYPE_CHECKING:
    from questcore.domain.models.achievement import Achievement
    from questcore.domain.models.mission import ActiveMission


class ClassLine(str, Enum):
    WARRIOR = "warrior"
    MAGE = "mage"
    ARCHER = "archer"


class CharacterClass(str, Enum):
    WARRIOR = "warrior"
    MAGE = "mage"
    ARCHER = "archer"
    BERSERKER = "berserker"
    PALADIN = "paladin"
    SORCERER = "sorcerer"
    ENCHANTER = "enchanter"
    RANGER = "ranger"
    TRICKSTER = "trickster"

    @property
    def class_line(self) -> ClassLine:
        return _CLASS_LINES[self]

    @property
    def is_starter(self) -> bool:
        return self in (CharacterClass.WARRIOR, CharacterClass.MAGE, CharacterClass.ARCHER)

    @property
    def primary_stat(self) -> StatType:
        return _PRIMARY_STATS[self]

    @property
    def evolution_options(self) -> list["CharacterClass"]:
        return list(_EVOLUTIONS.get(self, []))

    @property
    def bonus_encounter_type(self) -> str | None:
        return _ENCOUNTER_AFFINITY.get(self, (None, 0.0))[0]

    @property
    def encounter_power_multiplier(self) -> float:
        return _ENCOUNTER_AFFINITY.get(self, (None, 0.0))[1]

    @property
    def party_power_multiplier(self) -> float:
        return 0.20 if self is CharacterClass.ENCHANTER else 0.0

    @property
    def damage_reduction_multiplier(self) -> float:
        return 0.50 if self is CharacterClass.PALADIN else 0.0

    @property
    def loot_drop_bonus(self) -> float:
        return 0.25 if self is CharacterClass.TRICKSTER else 0.0

    @classmethod
    def normalize(cls, value: "CharacterClass | str | None") -> "CharacterClass | None":
        if isinstance(value, CharacterClass):
            return value
        raw = str(value or "").strip().lower()
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


_CLASS_LINES = {
    CharacterClass.WARRIOR: ClassLine.WARRIOR,
    CharacterClass.BERSERKER: ClassLine.WARRIOR,
    CharacterClass.PALADIN: ClassLine.WARRIOR,
    CharacterClass.MAGE: ClassLine.MAGE,
    CharacterClass.SORCERER: ClassLine.MAGE,
    CharacterClass.ENCHANTER: ClassLine.MAGE,
    CharacterClass.ARCHER: ClassLine.ARCHER,
    CharacterClass.RANGER: ClassLine.ARCHER,
    CharacterClass.TRICKSTER: ClassLine.ARCHER,
}

_PRIMARY_STATS = {
    CharacterClass.WARRIOR: StatType.STRENGTH,
    CharacterClass.BERSERKER: StatType.STRENGTH,
    CharacterClass.MAGE: StatType.WISDOM,
    CharacterClass.SORCERER: StatType.WISDOM,
    CharacterClass.ARCHER: StatType.DEXTERITY,
    CharacterClass.RANGER: StatType.DEXTERITY,
    CharacterClass.PALADIN: StatType.DEXTERITY,
    CharacterClass.ENCHANTER: StatType.CHARISMA,
    CharacterClass.TRICKSTER: StatType.LUCK,
}

_EVOLUTIONS = {
    CharacterClass.WARRIOR: [CharacterClass.BERSERKER, CharacterClass.PALADIN],
    CharacterClass.MAGE: [CharacterClass.SORCERER, CharacterClass.ENCHANTER],
    CharacterClass.ARCHER: [CharacterClass.RANGER, CharacterClass.TRICKSTER],
}

_ENCOUNTER_AFFINITY = {
    CharacterClass.WARRIOR: ("combat", 0.25),
    CharacterClass.MAGE: ("puzzle", 0.25),
    CharacterClass.ARCHER: ("trap", 0.20),
    CharacterClass.BERSERKER: ("combat", 0.40),
    CharacterClass.SORCERER: ("puzzle", 0.40),
    CharacterClass.RANGER: ("trap", 0.30),
}

CLASS_PASSIVE_BONUS = 2
ZODIAC_BONUS = 2


@dataclass
class PlayerCharacter:
    name: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    level: int = 1
    current_exp: int = 0
    gold: int = 0
    gems: int = 0
    stats: Stats = field(default_factory=Stats)
    equipment: List[Equipment] = field(default_factory=list)
    character_class: Optional[CharacterClass] = None
    zodiac_stat: Optional[StatType] = None
    unspent_stat_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    streak_freezes: int = 0
    last_active_on: Optional[date] = None
    tasks_completed: int = 0
    tasks_completed_today: int = 0
    last_daily_reset_on: Optional[date] = None
    achievements: Dict[str, "Achievement"] = field(default_factory=dict)
    achievement_counters: Dict[str, int] = field(default_factory=dict)
    research_bonuses: ResearchBonuses = field(default_factory=ResearchBonuses)
    research_tokens: int = 0
    wisdom_buff_expires_at: Optional[datetime] = None
    current_hp: int = 100
    max_hp: int = 100
    partner_id: Optional[str] = None
    active_mission: Optional["ActiveMission"] = None
    active_dungeon_run_id: Optional[str] = None
    materials: Dict[str, int] = field(default_factory=dict)
    consumables: Dict[str, int] = field(default_factory=dict)
    pity_counters: Dict[str, int] = field(default_factory=dict)
    pending_class_evolution: bool = False
    recent_completions: List[datetime] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.level = max(1, int(self.level or 1))
        self.current_exp = max(0, int(self.current_exp or 0))
        self.gold = max(0, int(self.gold or 0))
        self.gems = max(0, int(self.gems or 0))
        self.unspent_stat_points = max(0, int(self.unspent_stat_points or 0))
        self.character_class = CharacterClass.normalize(self.character_class)
        self.zodiac_stat = StatType.normalize(self.zodiac_stat)

    @property
    def has_partner(self) -> bool:
        return bool(self.partner_id)

    @property
    def equipped_items(self) -> list[Equipment]:
        return [item for item in self.equipment if item.is_equipped]

    @property
    def effective_stats(self) -> Stats:
        effective = self.stats.copy()
        for item in self.equipped_items:
            effective.increase(item.primary_stat, item.stat_bonus)
            if item.secondary_stat is not None:
                effective.increase(item.secondary_stat, item.secondary_bonus)
        if self.character_class is not None:
            effective.increase(self.character_class.primary_stat, CLASS_PASSIVE_BONUS)
        if self.zodiac_stat is not None:
            effective.increase(self.zodiac_stat, ZODIAC_BONUS)
        return effective

    def has_wisdom_buff(self, now: datetime) -> bool:
        return self.wisdom_buff_expires_at is not None and self.wisdom_buff_expires_at > now

    def add_material(self, key: str, amount: int) -> None:
        if amount <= 0:
            return
        self.materials[key] = int(self.materials.get(key, 0)) + int(amount)

    def add_consumable(self, name: str, amount: int = 1) -> None:
        if amount <= 0:
            return
        self.consumables[name] = int(self.consumables.get(name, 0)) + int(amount)

    def spend_gold(self, amount: int) -> bool:
        if amount < 0 or self.gold < amount:
            return False
        self.gold -= int(amount)
        return True

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "exp": self.current_exp,
            "gold": self.gold,
            "gems": self.gems,
            "class": self.character_class.value if self.character_class else None,
            "streak": self.current_streak,
        }
