from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from questcore.domain.models.loot import ItemRarity, MaterialType
from questcore.domain.models.stats import ResearchBonuses


class ResearchBranch(str, Enum):
    COMBAT = "combat"
    EFFICIENCY = "efficiency"
    FORTUNE = "fortune"


class ResearchBonusType(str, Enum):
    """Each value names the ``ResearchBonuses`` field the node adds to."""

    DUNGEON_SUCCESS = "dungeon_success_bonus"
    BOSS_DAMAGE = "boss_damage_bonus"
    CRIT_CHANCE = "crit_chance_bonus"
    COMBAT_POWER = "combat_power_bonus"
    MISSION_DURATION = "mission_duration_reduction"
    TASK_EXP = "task_exp_bonus"
    MATERIAL_DROP_RATE = "material_drop_rate_bonus"
    ALL_EXP = "all_exp_bonus"
    RARE_DROP_CHANCE = "rare_drop_chance_bonus"
    GOLD = "gold_bonus"
    AFFIX_CHANCE = "affix_chance_bonus"
    ALL_LOOT = "all_loot_bonus"


@dataclass(frozen=True)
class MaterialCost:
    material_type: MaterialType
    rarity: ItemRarity
    quantity: int


@dataclass(frozen=True)
class ResearchNode:
    id: str
    name: str
    branch: ResearchBranch
    tier: int
    bonus_type: ResearchBonusType
    bonus_value: float
    prerequisite_id: Optional[str]
    token_cost: int
    gold_cost: int
    material_costs: tuple[MaterialCost, ...] = ()


def _node(
    node_id: str,
    name: str,
    bonus_type: ResearchBonusType,
    bonus_value: float,
    materials: tuple[tuple[MaterialType, ItemRarity, int], ...],
) -> ResearchNode:
    branch_name, tier_text = node_id.rsplit("_", 1)
    tier = int(tier_text)
    return ResearchNode(
        id=node_id,
        name=name,
        branch=ResearchBranch(branch_name),
        tier=tier,
        bonus_type=bonus_type,
        bonus_value=bonus_value,
        prerequisite_id=f"{branch_name}_{tier - 1}" if tier > 1 else None,
        token_cost=_TIER_TOKENS[tier],
        gold_cost=_TIER_GOLD[tier],
        material_costs=tuple(MaterialCost(kind, rarity, quantity) for kind, rarity, quantity in materials),
    )


_TIER_TOKENS = {1: 1, 2: 2, 3: 3, 4: 5, 5: 8}
_TIER_GOLD = {1: 50, 2: 100, 3: 200, 4: 400, 5: 800}

_C = ItemRarity.COMMON
_U = ItemRarity.UNCOMMON
_R = ItemRarity.RARE

RESEARCH_NODES: tuple[ResearchNode, ...] = (
    _node("combat_1", "Battle Training I", ResearchBonusType.DUNGEON_SUCCESS, 0.02, ((MaterialType.ESSENCE, _C, 3),)),
    _node("combat_2", "War Tactics", ResearchBonusType.BOSS_DAMAGE, 0.05, ((MaterialType.ORE, _C, 5),)),
    _node("combat_3", "Critical Eye", ResearchBonusType.CRIT_CHANCE, 0.01, ((MaterialType.CRYSTAL, _U, 5),)),
    _node("combat_4", "Battle Training II", ResearchBonusType.DUNGEON_SUCCESS, 0.04, ((MaterialType.ESSENCE, _U, 10),)),
    _node(
        "combat_5",
        "Combat Mastery",
        ResearchBonusType.COMBAT_POWER,
        0.03,
        ((MaterialType.ORE, _R, 8), (MaterialType.CRYSTAL, _R, 8)),
    ),
    _node("efficiency_1", "Swift Training I", ResearchBonusType.MISSION_DURATION, 0.05, ((MaterialType.HERB, _C, 3),)),
    _node("efficiency_2", "Scholarly Focus", ResearchBonusType.TASK_EXP, 0.03, ((MaterialType.ESSENCE, _C, 5),)),
    _node(
        "efficiency_3",
        "Material Mastery",
        ResearchBonusType.MATERIAL_DROP_RATE,
        0.02,
        ((MaterialType.FRAGMENT, _U, 5),),
    ),
    _node("efficiency_4", "Swift Training II", ResearchBonusType.MISSION_DURATION, 0.08, ((MaterialType.HERB, _U, 10),)),
    _node(
        "efficiency_5",
        "Efficiency Expert",
        ResearchBonusType.ALL_EXP,
        0.05,
        ((MaterialType.ESSENCE, _R, 8), (MaterialType.HERB, _R, 8)),
    ),
    _node("fortune_1", "Lucky Find I", ResearchBonusType.RARE_DROP_CHANCE, 0.02, ((MaterialType.CRYSTAL, _C, 3),)),
    _node("fortune_2", "Gold Rush", ResearchBonusType.GOLD, 0.05, ((MaterialType.ORE, _C, 5),)),
    _node("fortune_3", "Affix Sense", ResearchBonusType.AFFIX_CHANCE, 0.01, ((MaterialType.HIDE, _U, 5),)),
    _node("fortune_4", "Lucky Find II", ResearchBonusType.RARE_DROP_CHANCE, 0.04, ((MaterialType.CRYSTAL, _U, 10),)),
    _node(
        "fortune_5",
        "Fortune's Favor",
        ResearchBonusType.ALL_LOOT,
        0.03,
        ((MaterialType.HIDE, _R, 8), (MaterialType.CRYSTAL, _R, 8)),
    ),
)

_NODES_BY_ID = {node.id: node for node in RESEARCH_NODES}


def research_node(node_id: str) -> Optional[ResearchNode]:
    return _NODES_BY_ID.get(str(node_id or "").strip().lower())


def nodes_for_branch(branch: ResearchBranch) -> list[ResearchNode]:
    return sorted((node for node in RESEARCH_NODES if node.branch is branch), key=lambda node: node.tier)


def calculate_research_bonuses(completed_node_ids: Iterable[str]) -> ResearchBonuses:
    """Sum every known node's bonus; unknown ids are kept in the list but add nothing."""
    completed = [str(node_id) for node_id in completed_node_ids]
    bonuses = ResearchBonuses(completed_nodes=completed)
    for node_id in completed:
        node = research_node(node_id)
        if node is None:
            continue
        field_name = node.bonus_type.value
        setattr(bonuses, field_name, getattr(bonuses, field_name) + node.bonus_value)
    return bonuses
