from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class StatType(str, Enum):
    STRENGTH = "strength"
    WISDOM = "wisdom"
    CHARISMA = "charisma"
    DEXTERITY = "dexterity"
    LUCK = "luck"
    DEFENSE = "defense"

    @classmethod
    def normalize(cls, value: "StatType | str | None") -> "StatType | None":
        if isinstance(value, StatType):
            return value
        raw = str(value or "").strip().lower()
        if not raw:
            return None
        aliases = {
            "str": cls.STRENGTH,
            "wis": cls.WISDOM,
            "cha": cls.CHARISMA,
            "dex": cls.DEXTERITY,
            "lck": cls.LUCK,
            "def": cls.DEFENSE,
        }
        if raw in aliases:
            return aliases[raw]
        try:
            return cls(raw)
        except ValueError:
            return None


STAT_ORDER = [
    StatType.STRENGTH,
    StatType.WISDOM,
    StatType.CHARISMA,
    StatType.DEXTERITY,
    StatType.LUCK,
    StatType.DEFENSE,
]


@dataclass
class Stats:
    """Six-dimension stat block shared by characters, equipment and proxies.

    Values are clamped at zero on every mutation so callers can apply signed
    deltas without checking the current value first.
    """

    strength: int = 5
    wisdom: int = 5
    charisma: int = 5
    dexterity: int = 5
    luck: int = 5
    defense: int = 5

    def __post_init__(self) -> None:
        for stat in STAT_ORDER:
            try:
                value = int(getattr(self, stat.value, 0) or 0)
            except Exception:
                value = 0
            setattr(self, stat.value, max(0, value))

    def value(self, stat: StatType | str) -> int:
        resolved = StatType.normalize(stat)
        if resolved is None:
            return 0
        return int(getattr(self, resolved.value, 0) or 0)

    def increase(self, stat: StatType | str, by: int = 1) -> int:
        resolved = StatType.normalize(stat)
        if resolved is None:
            return 0
        updated = max(0, self.value(resolved) + int(by))
        setattr(self, resolved.value, updated)
        return updated

    def total(self) -> int:
        return sum(self.value(stat) for stat in STAT_ORDER)

    def plus(self, other: "Stats") -> "Stats":
        return Stats(**{stat.value: self.value(stat) + other.value(stat) for stat in STAT_ORDER})

    def copy(self) -> "Stats":
        return Stats(**self.as_dict())

    def as_dict(self) -> dict[str, int]:
        return {stat.value: self.value(stat) for stat in STAT_ORDER}

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "Stats":
        data = payload or {}
        values: dict[str, int] = {}
        for stat in STAT_ORDER:
            try:
                values[stat.value] = int(data.get(stat.value, 5))
            except Exception:
                values[stat.value] = 5
        return cls(**values)


@dataclass(frozen=True)
class StatRequirement:
    stat: StatType
    minimum: int


@dataclass
class ResearchBonuses:
    """Permanent percentage modifiers unlocked through the research track."""

    dungeon_success_bonus: float = 0.0
    boss_damage_bonus: float = 0.0
    crit_chance_bonus: float = 0.0
    combat_power_bonus: float = 0.0
    mission_duration_reduction: float = 0.0
    task_exp_bonus: float = 0.0
    all_exp_bonus: float = 0.0
    gold_bonus: float = 0.0
    material_drop_rate_bonus: float = 0.0
    rare_drop_chance_bonus: float = 0.0
    affix_chance_bonus: float = 0.0
    all_loot_bonus: float = 0.0
    completed_nodes: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "dungeon_success_bonus": self.dungeon_success_bonus,
            "boss_damage_bonus": self.boss_damage_bonus,
            "crit_chance_bonus": self.crit_chance_bonus,
            "combat_power_bonus": self.combat_power_bonus,
            "mission_duration_reduction": self.mission_duration_reduction,
            "task_exp_bonus": self.task_exp_bonus,
            "all_exp_bonus": self.all_exp_bonus,
            "gold_bonus": self.gold_bonus,
            "material_drop_rate_bonus": self.material_drop_rate_bonus,
            "rare_drop_chance_bonus": self.rare_drop_chance_bonus,
            "affix_chance_bonus": self.affix_chance_bonus,
            "all_loot_bonus": self.all_loot_bonus,
            "completed_nodes": list(self.completed_nodes),
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "ResearchBonuses":
        data = dict(payload or {})
        nodes = data.pop("completed_nodes", []) or []
        kwargs: dict[str, float] = {}
        for key in (
            "dungeon_success_bonus",
            "boss_damage_bonus",
            "crit_chance_bonus",
            "combat_power_bonus",
            "mission_duration_reduction",
            "task_exp_bonus",
            "all_exp_bonus",
            "gold_bonus",
            "material_drop_rate_bonus",
            "rare_drop_chance_bonus",
            "affix_chance_bonus",
            "all_loot_bonus",
        ):
            try:
                kwargs[key] = float(data.get(key, 0.0) or 0.0)
            except Exception:
                kwargs[key] = 0.0
        return cls(completed_nodes=[str(node) for node in nodes], **kwargs)
