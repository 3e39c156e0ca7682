from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Iterable, Optional

from questcore.application.dtos import RewardResult, RewardStage
from questcore.application.services import verification as verification_rules
from questcore.application.services.balance_tables import (
    BONUS_STAT_ROLL_SIDES,
    CLASS_AFFINITY_EXP_BONUS,
    COOP_DUTY_BOND_EXP,
    COOP_DUTY_BONUS,
    LUCK_ROLL_SIDES,
    PARTNER_TASK_BOND_EXP,
    PARTNER_TASK_BONUS,
    WISDOM_BUFF_EXP_BONUS,
    level_scale_factor,
    streak_bonus_percent,
)
from questcore.application.services.loot_service import LootService
from questcore.domain.models.bond import Bond
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.routine import ROUTINE_COMPLETION_BONUS, RoutineBundle
from questcore.domain.models.stats import StatType
from questcore.domain.models.task import GameTask
from questcore.domain.models.verification import VerificationSignals


logger = logging.getLogger(__name__)


class RewardPipeline:
    """Turns one task completion into EXP, gold, stat gains and loot.

    ``compute`` never mutates anything; ``apply`` commits a computed result.
    The multiplier stages run in a fixed order, each on the running total of
    the previous stage with integer truncation after every step.
    """

    def __init__(self, loot_service: LootService | None = None, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()
        self.loot_service = loot_service or LootService(rng=self.rng)

    @staticmethod
    def is_escrowed(task: GameTask, bond: Optional[Bond], partner_confirmed: bool) -> bool:
        return bool(task.is_from_partner and bond is not None and not partner_confirmed)

    @staticmethod
    def class_affinity(character: PlayerCharacter, task: GameTask) -> float:
        if character.character_class is None:
            return 0.0
        if character.character_class.primary_stat is task.category.bonus_stat:
            return CLASS_AFFINITY_EXP_BONUS
        return 0.0

    def compute(
        self,
        task: GameTask,
        character: PlayerCharacter,
        *,
        now: datetime,
        bond: Optional[Bond] = None,
        signals: Optional[VerificationSignals] = None,
        partner_confirmed: Optional[bool] = None,
        routines: Iterable[RoutineBundle] = (),
        sibling_tasks: Iterable[GameTask] = (),
        completed_at: Optional[datetime] = None,
    ) -> RewardResult:
        confirmed = task.partner_confirmed if partner_confirmed is None else bool(partner_confirmed)
        escrowed = self.is_escrowed(task, bond, confirmed)
        stages: list[RewardStage] = []

        scale = level_scale_factor(character.level)
        exp = int(task.base_exp * scale)
        gold = int(task.base_gold * scale)
        stages.append(RewardStage("level_scale", exp, gold))

        check = verification_rules.verify(task, signals, partner_confirmed=confirmed, completed_at=completed_at or now)
        exp = int(exp * check.multiplier)
        gold = int(gold * check.multiplier)
        stages.append(RewardStage("verification", exp, gold))

        affinity = self.class_affinity(character, task)
        if affinity > 0:
            exp += int(exp * affinity)
        stages.append(RewardStage("class_affinity", exp, gold))

        if character.has_wisdom_buff(now):
            exp += int(exp * WISDOM_BUFF_EXP_BONUS)
        stages.append(RewardStage("timed_buffs", exp, gold))

        streak_pct = streak_bonus_percent(character.current_streak)
        if streak_pct > 0:
            exp += exp * streak_pct // 100
            gold += gold * streak_pct // 100
        stages.append(RewardStage("streak", exp, gold))

        bonus_stats: dict[str, int] = {}
        if task.is_from_partner:
            exp += int(exp * PARTNER_TASK_BONUS)
            gold += int(gold * PARTNER_TASK_BONUS)
            self._add_stat(bonus_stats, StatType.CHARISMA)
        stages.append(RewardStage("partner_bonus", exp, gold))

        if bond is not None:
            exp += int(exp * bond.exp_bonus)
            gold += int(gold * bond.gold_bonus)
        stages.append(RewardStage("bond", exp, gold))

        research = character.research_bonuses
        if research.task_exp_bonus > 0:
            exp += int(exp * research.task_exp_bonus)
        if research.all_exp_bonus > 0:
            exp += int(exp * research.all_exp_bonus)
        if research.gold_bonus > 0:
            gold += int(gold * research.gold_bonus)
        stages.append(RewardStage("research", exp, gold))

        if self.rng.randint(1, BONUS_STAT_ROLL_SIDES) == 1:
            self._add_stat(bonus_stats, task.category.bonus_stat)
        if self.rng.randint(1, LUCK_ROLL_SIDES) == 1:
            self._add_stat(bonus_stats, StatType.LUCK)

        result = RewardResult(
            task_id=task.id,
            exp=exp,
            gold=gold,
            stages=stages,
            bonus_stats=bonus_stats,
            verification_tier=check.tier,
            verification_multiplier=check.multiplier,
            pending_partner_confirmation=escrowed,
        )
        if escrowed:
            return result

        if task.is_from_partner and bond is not None:
            result.bond_exp += PARTNER_TASK_BOND_EXP

        if task.is_coop_duty and not task.coop_bonus_awarded:
            result.coop_bonus_exp = int(exp * COOP_DUTY_BONUS)
            result.coop_bonus_gold = int(gold * COOP_DUTY_BONUS)
            result.coop_duty_awarded = True
            result.bond_exp += COOP_DUTY_BOND_EXP
            self._add_stat(bonus_stats, StatType.CHARISMA)

        loot_bonus = check.loot_bonus + research.all_loot_bonus
        if bond is not None:
            loot_bonus += bond.loot_bonus
        pity_due = self.loot_service.pity_due(character)
        result.loot = self.loot_service.roll_task_loot(character, loot_bonus, force_equipment=pity_due)
        result.pity_triggered = pity_due

        if task.is_habit:
            result.routine_bonus_exp = self.routine_bonus(
                task, character, routines, sibling_tasks, completed_at or now
            )
        return result

    @staticmethod
    def routine_bonus(
        task: GameTask,
        character: PlayerCharacter,
        routines: Iterable[RoutineBundle],
        sibling_tasks: Iterable[GameTask],
        now: datetime,
    ) -> int:
        siblings = list(sibling_tasks)
        for bundle in routines:
            if bundle.is_archived or task.id not in bundle.habit_ids:
                continue
            if bundle.is_complete_today(siblings, now.date(), assume_done=task.id):
                per_habit = int(task.base_exp * level_scale_factor(character.level))
                return int(per_habit * ROUTINE_COMPLETION_BONUS) * bundle.habit_count
        return 0

    def apply(
        self,
        result: RewardResult,
        task: GameTask,
        character: PlayerCharacter,
        *,
        bond: Optional[Bond] = None,
    ) -> RewardResult:
        if result.pending_partner_confirmation or result.applied:
            return result
        character.current_exp += result.total_exp
        character.gold += result.total_gold
        for stat, amount in result.bonus_stats.items():
            character.stats.increase(stat, amount)
        self.loot_service.apply_drop(character, result.loot)
        self.loot_service.record_task_pity(character, result.loot)
        if result.coop_duty_awarded:
            task.coop_bonus_awarded = True
        if bond is not None and result.bond_exp > 0:
            reached = bond.gain_exp(result.bond_exp)
            if reached:
                logger.info("Bond %s reached level %s", bond.id, reached[-1])
        result.applied = True
        return result

    @staticmethod
    def _add_stat(bonus_stats: dict[str, int], stat: StatType) -> None:
        bonus_stats[stat.value] = bonus_stats.get(stat.value, 0) + 1
