from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Set


BOND_LEVEL_CAP = 50
LEGENDARY_BOND_AMPLIFIER = 1.5


class BondPerk(str, Enum):
    SHARED_DUTY_BOARD = "shared_duty_board"
    TASK_ASSIGNMENT = "task_assignment"
    QUICK_LEARNER = "quick_learner"
    BOND_EXP_BOOST = "bond_exp_boost"
    FORTUNE_SEEKER = "fortune_seeker"
    PARTY_STREAK_BONUS = "party_streak_bonus"
    RELENTLESS = "relentless"
    COOP_DUNGEONS = "coop_dungeons"
    SHARED_LOOT = "shared_loot"
    PARTY_ACHIEVEMENTS = "party_achievements"
    LEGENDARY_BOND = "legendary_bond"

    @property
    def required_level(self) -> int:
        return _PERK_LEVELS[self]


_PERK_LEVELS = {
    BondPerk.SHARED_DUTY_BOARD: 1,
    BondPerk.TASK_ASSIGNMENT: 2,
    BondPerk.QUICK_LEARNER: 3,
    BondPerk.BOND_EXP_BOOST: 5,
    BondPerk.FORTUNE_SEEKER: 7,
    BondPerk.PARTY_STREAK_BONUS: 10,
    BondPerk.RELENTLESS: 12,
    BondPerk.COOP_DUNGEONS: 15,
    BondPerk.SHARED_LOOT: 20,
    BondPerk.PARTY_ACHIEVEMENTS: 25,
    BondPerk.LEGENDARY_BOND: 50,
}

# (minimum streak days, bonus), highest tier first.
PARTY_STREAK_EXP_TIERS = ((30, 0.25), (14, 0.20), (7, 0.15), (3, 0.10))
PARTY_STREAK_GOLD_TIERS = ((30, 0.20), (14, 0.15), (7, 0.10))
PARTY_STREAK_LOOT_TIERS = ((30, 0.10), (14, 0.05))

PARTY_POWER_MULTIPLIERS = {1: 1.0, 2: 1.5, 3: 1.85, 4: 2.1}


def bond_exp_required_for_level(level: int) -> int:
    if level <= 1:
        return 0
    return int(50 * (level - 1) ** 1.3)


def perks_for_level(level: int) -> Set[BondPerk]:
    return {perk for perk in BondPerk if perk.required_level <= int(level)}


def _tier_bonus(days: int, tiers: tuple[tuple[int, float], ...]) -> float:
    for minimum, bonus in tiers:
        if days >= minimum:
            return bonus
    return 0.0


@dataclass
class Bond:
    """Cooperative relationship shared by the members of a party."""

    member_ids: list[str] = field(default_factory=list)
    level: int = 1
    bond_exp: int = 0
    party_streak_days: int = 0
    perks: Set[BondPerk] = field(default_factory=set)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.level = min(BOND_LEVEL_CAP, max(1, int(self.level or 1)))
        self.perks = set(self.perks or set())
        if not self.perks:
            self.perks = perks_for_level(self.level)

    def has_perk(self, perk: BondPerk) -> bool:
        return perk in self.perks

    @property
    def perk_scale(self) -> int:
        return self.level // 5 + 1

    def _amplified(self, value: float) -> float:
        if self.has_perk(BondPerk.LEGENDARY_BOND):
            return value * LEGENDARY_BOND_AMPLIFIER
        return value

    @property
    def exp_bonus(self) -> float:
        bonus = _tier_bonus(self.party_streak_days, PARTY_STREAK_EXP_TIERS)
        if self.has_perk(BondPerk.QUICK_LEARNER):
            bonus += 0.05 * self.perk_scale
        return self._amplified(bonus)

    @property
    def gold_bonus(self) -> float:
        bonus = _tier_bonus(self.party_streak_days, PARTY_STREAK_GOLD_TIERS)
        if self.has_perk(BondPerk.FORTUNE_SEEKER):
            bonus += 0.05 * self.perk_scale
        return self._amplified(bonus)

    @property
    def loot_bonus(self) -> float:
        return self._amplified(_tier_bonus(self.party_streak_days, PARTY_STREAK_LOOT_TIERS))

    def gain_exp(self, amount: int) -> list[int]:
        """Add bond EXP and return the list of levels reached."""
        if self.has_perk(BondPerk.BOND_EXP_BOOST):
            amount = int(amount * 1.1)
        self.bond_exp += max(0, int(amount))
        reached: list[int] = []
        while self.level < BOND_LEVEL_CAP and self.bond_exp >= bond_exp_required_for_level(self.level + 1):
            self.bond_exp -= bond_exp_required_for_level(self.level + 1)
            self.level += 1
            self.perks |= perks_for_level(self.level)
            reached.append(self.level)
        return reached

    def tick_party_streak(self) -> int:
        self.party_streak_days += 1
        return self.party_streak_days

    def break_party_streak(self) -> None:
        self.party_streak_days = 0

    @staticmethod
    def party_power_multiplier(member_count: int) -> float:
        return PARTY_POWER_MULTIPLIERS.get(max(1, min(4, int(member_count))), 1.0)
