from dataclasses import dataclass, field
from typing import Dict, List, Optional

from questcore.domain.models.loot import LootDrop
from questcore.domain.models.verification import VerificationTier


@dataclass
class ActionResult:
    messages: List[str] = field(default_factory=list)
    ok: bool = True


@dataclass
class LevelUpPendingView:
    character_id: str
    current_level: int
    next_level: int
    exp_current: int
    exp_required: int
    summary: str = ""


@dataclass(frozen=True)
class RewardStage:
    name: str
    exp: int
    gold: int


@dataclass
class RewardResult:
    task_id: str
    exp: int
    gold: int
    stages: List[RewardStage] = field(default_factory=list)
    bonus_stats: Dict[str, int] = field(default_factory=dict)
    loot: Optional[LootDrop] = None
    pity_triggered: bool = False
    bond_exp: int = 0
    routine_bonus_exp: int = 0
    coop_bonus_exp: int = 0
    coop_bonus_gold: int = 0
    coop_duty_awarded: bool = False
    verification_tier: VerificationTier = VerificationTier.QUICK
    verification_multiplier: float = 1.0
    pending_partner_confirmation: bool = False
    applied: bool = False

    @property
    def total_exp(self) -> int:
        return self.exp + self.coop_bonus_exp + self.routine_bonus_exp

    @property
    def total_gold(self) -> int:
        return self.gold + self.coop_bonus_gold

    def stage(self, name: str) -> Optional[RewardStage]:
        for row in self.stages:
            if row.name == name:
                return row
        return None


@dataclass
class EnhancementResult:
    success: bool
    critical: bool
    stat_gained: int
    new_level: int
    gold_spent: int
    reason: str = ""


@dataclass
class SalvageResult:
    materials_returned: int
    fragments_returned: int
    gold_returned: int
    recovered_affix_scroll: bool


@dataclass
class CharacterSummaryView:
    id: str
    name: str
    level: int
    exp: int
    exp_to_next: int
    gold: int
    gems: int
    class_name: str
    streak: int
    unlocked_achievements: int
