from __future__ import annotations


LEVEL_CAP = 100
LEVEL_UP_STAT_POINTS = 1
LEVEL_UP_GOLD_PER_LEVEL = 10
CLASS_EVOLUTION_LEVEL = 20

LEVEL_SCALE_STEP = 0.1

STREAK_BONUS_PERCENT_PER_DAY = 5
STREAK_BONUS_PERCENT_CAP = 50

CLASS_AFFINITY_EXP_BONUS = 0.15
WISDOM_BUFF_EXP_BONUS = 0.05
PARTNER_TASK_BONUS = 0.15
COOP_DUTY_BONUS = 0.5
COOP_DUTY_BOND_EXP = 25
PARTNER_TASK_BOND_EXP = 15
BONUS_STAT_ROLL_SIDES = 10
LUCK_ROLL_SIDES = 20

AUTO_CONFIRM_AFTER_SECONDS = 24 * 60 * 60

MISSION_CONSOLATION_DIVISOR = 4
MISSION_CONSOLATION_MIN_EXP = 5
MISSION_CONSOLATION_MIN_GOLD = 2

DUNGEON_COOP_BOND_EXP = 25
DUNGEON_MAX_SUCCESS_CHANCE = 0.95
DUNGEON_PARTY_DIFFICULTY_STEP = 0.5
DUNGEON_READINESS_PENALTY = 0.4
DUNGEON_MAX_MITIGATION = 0.75
DUNGEON_MIN_FAILURE_DAMAGE = 5
DUNGEON_CONSOLATION_EXP_RATIO = 0.02
DUNGEON_BONUS_ROOM_CHANCE = 0.3
DUNGEON_CARD_DROP_CHANCE = 0.15
DUNGEON_ROOM_TARGET_MIN = 5
DUNGEON_ROOM_TARGET_MAX = 7

SECRET_DISCOVERY_BASE = 0.03
SECRET_DISCOVERY_PER_LUCK = 0.002
SECRET_DISCOVERY_CAP = 0.15

DEFAULT_PITY_THRESHOLD = 30

# (minimum score, grade, loot multiplier), best grade first.
PERFORMANCE_GRADES = (
    (0.95, "S", 1.5),
    (0.85, "A", 1.25),
    (0.70, "B", 1.10),
    (0.50, "C", 1.0),
    (0.30, "D", 0.8),
    (0.0, "F", 0.5),
)

# research token (chance, min count, max count) by mission rarity
RESEARCH_TOKEN_TABLE = {
    "common": (0.20, 1, 1),
    "uncommon": (0.30, 1, 1),
    "rare": (0.45, 1, 2),
    "epic": (0.60, 1, 3),
    "legendary": (0.80, 2, 4),
}


def exp_required_for_level(level: int) -> int:
    safe_level = int(level)
    if safe_level <= 1:
        return 0
    return int(100 * (safe_level - 1) ** 1.5)


def total_exp_to_level(level: int) -> int:
    return sum(exp_required_for_level(step) for step in range(1, max(1, int(level)) + 1))


def level_scale_factor(level: int) -> float:
    return max(1.0, 1.0 + (int(level) - 1) * LEVEL_SCALE_STEP)


def streak_bonus_percent(streak: int) -> int:
    return min(max(0, int(streak)) * STREAK_BONUS_PERCENT_PER_DAY, STREAK_BONUS_PERCENT_CAP)


def performance_grade(score: float) -> tuple[str, float]:
    for minimum, grade, multiplier in PERFORMANCE_GRADES:
        if score >= minimum:
            return grade, multiplier
    return "F", 0.5
