import sys
from datetime import datetime, timedelta
from pathlib import Path
import unittest
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.reward_pipeline import RewardPipeline
from questcore.domain.models.bond import Bond, BondPerk
from questcore.domain.models.character import CharacterClass, PlayerCharacter
from questcore.domain.models.loot import LootKind
from questcore.domain.models.routine import RoutineBundle
from questcore.domain.models.task import GameTask, TaskCategory, TaskStatus
from questcore.domain.models.verification import AnomalyFlag, VerificationSignals, VerificationTier


NOW = datetime(2024, 5, 4, 12, 0)


class RewardPipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pipeline = RewardPipeline()
        self._patches = [
            mock.patch.object(self.pipeline.rng, "randint", return_value=2),
            mock.patch.object(self.pipeline.rng, "random", return_value=0.99),
        ]
        for patcher in self._patches:
            patcher.start()

    def tearDown(self) -> None:
        for patcher in self._patches:
            patcher.stop()

    def test_stages_run_in_fixed_order(self) -> None:
        character = PlayerCharacter(name="Ayla")
        result = self.pipeline.compute(GameTask(title="Walk"), character, now=NOW)

        self.assertEqual(
            [
                "level_scale",
                "verification",
                "class_affinity",
                "timed_buffs",
                "streak",
                "partner_bonus",
                "bond",
                "research",
            ],
            [stage.name for stage in result.stages],
        )
        self.assertEqual((20, 10), (result.exp, result.gold))
        self.assertIs(VerificationTier.QUICK, result.verification_tier)
        self.assertIsNone(result.loot)

    def test_level_scale_multiplies_base_rewards(self) -> None:
        character = PlayerCharacter(name="Vet", level=11)
        result = self.pipeline.compute(GameTask(title="Walk"), character, now=NOW)
        self.assertEqual((40, 20), (result.exp, result.gold))

    def test_class_affinity_applies_when_primary_stat_matches_category(self) -> None:
        warrior = PlayerCharacter(name="Tor", character_class=CharacterClass.WARRIOR)

        physical = self.pipeline.compute(GameTask(title="Lift", category=TaskCategory.PHYSICAL), warrior, now=NOW)
        mental = self.pipeline.compute(GameTask(title="Read", category=TaskCategory.MENTAL), warrior, now=NOW)

        self.assertEqual(23, physical.exp)
        self.assertEqual(20, mental.exp)

    def test_streak_bonus_truncates_after_each_stage(self) -> None:
        character = PlayerCharacter(name="Streaky", current_streak=3)
        result = self.pipeline.compute(GameTask(title="Walk"), character, now=NOW)
        self.assertEqual((23, 11), (result.exp, result.gold))
        self.assertEqual(23, result.stage("streak").exp)

    def test_wisdom_buff_adds_five_percent_while_active(self) -> None:
        character = PlayerCharacter(name="Sage", current_streak=0)
        character.wisdom_buff_expires_at = NOW + timedelta(hours=1)
        result = self.pipeline.compute(GameTask(title="Walk", exp_reward=100), character, now=NOW)
        self.assertEqual(105, result.exp)

    def test_anomalies_reduce_rewards(self) -> None:
        character = PlayerCharacter(name="Night")
        signals = VerificationSignals(anomalies=frozenset({AnomalyFlag.RAPID_COMPLETION}))
        result = self.pipeline.compute(GameTask(title="Walk"), character, now=NOW, signals=signals)
        self.assertEqual((10, 5), (result.exp, result.gold))

    def test_partner_task_with_bond_is_escrowed_without_loot(self) -> None:
        character = PlayerCharacter(name="Ari", partner_id="p2")
        bond = Bond(member_ids=[character.id, "p2"])
        task = GameTask(title="Dishes", is_from_partner=True, assigned_by="p2")

        result = self.pipeline.compute(task, character, now=NOW, bond=bond)

        self.assertTrue(result.pending_partner_confirmation)
        self.assertIsNone(result.loot)
        self.assertEqual(0, result.bond_exp)

    def test_confirmed_partner_task_pays_party_tier_and_bond_exp(self) -> None:
        character = PlayerCharacter(name="Ari", partner_id="p2")
        bond = Bond(member_ids=[character.id, "p2"])
        task = GameTask(title="Dishes", is_from_partner=True, assigned_by="p2")

        result = self.pipeline.compute(task, character, now=NOW, bond=bond, partner_confirmed=True)

        self.assertFalse(result.pending_partner_confirmation)
        self.assertIs(VerificationTier.PARTY_VERIFIED, result.verification_tier)
        self.assertEqual((34, 17), (result.exp, result.gold))
        self.assertEqual({"charisma": 1}, result.bonus_stats)
        self.assertEqual(15, result.bond_exp)

    def test_legendary_bond_amplifies_bond_stage(self) -> None:
        character = PlayerCharacter(name="Ari", partner_id="p2")
        bond = Bond(
            member_ids=[character.id, "p2"],
            level=10,
            perks={BondPerk.QUICK_LEARNER, BondPerk.LEGENDARY_BOND},
        )
        task = GameTask(title="Dishes", exp_reward=50, gold_reward=20, is_from_partner=True, assigned_by="p2")

        result = self.pipeline.compute(task, character, now=NOW, bond=bond, partner_confirmed=True)

        self.assertAlmostEqual(0.225, bond.exp_bonus)
        self.assertEqual((86, 34), (result.stage("partner_bonus").exp, result.stage("partner_bonus").gold))
        self.assertEqual((105, 34), (result.stage("bond").exp, result.stage("bond").gold))
        self.assertEqual((105, 34), (result.exp, result.gold))

    def test_partner_bonus_applies_to_the_post_streak_total(self) -> None:
        character = PlayerCharacter(name="Streaky", current_streak=10)
        task = GameTask(title="Dishes", exp_reward=9, gold_reward=5, is_from_partner=True, assigned_by="p2")

        result = self.pipeline.compute(task, character, now=NOW)

        streak = result.stage("streak")
        partner = result.stage("partner_bonus")
        self.assertEqual((13, 7), (streak.exp, streak.gold))
        self.assertEqual((14, 8), (partner.exp, partner.gold))
        self.assertEqual(streak.exp + int(streak.exp * 0.15), partner.exp)

    def test_bonus_stat_rolls_are_independent(self) -> None:
        character = PlayerCharacter(name="Lucky")
        with mock.patch.object(self.pipeline.rng, "randint", return_value=1):
            result = self.pipeline.compute(GameTask(title="Read", category=TaskCategory.MENTAL), character, now=NOW)
        self.assertEqual({"wisdom": 1, "luck": 1}, result.bonus_stats)

    def test_coop_duty_bonus_is_paid_once(self) -> None:
        character = PlayerCharacter(name="Duo")
        task = GameTask(title="Shared chore", is_coop_duty=True)

        first = self.pipeline.compute(task, character, now=NOW)
        self.pipeline.apply(first, task, character)
        second = self.pipeline.compute(task, character, now=NOW)

        self.assertTrue(first.coop_duty_awarded)
        self.assertEqual((10, 5), (first.coop_bonus_exp, first.coop_bonus_gold))
        self.assertEqual(25, first.bond_exp)
        self.assertTrue(task.coop_bonus_awarded)
        self.assertFalse(second.coop_duty_awarded)
        self.assertEqual(0, second.coop_bonus_exp)

    def test_pity_counter_forces_equipment(self) -> None:
        character = PlayerCharacter(name="Unlucky")
        character.pity_counters["tasks"] = 30

        result = self.pipeline.compute(GameTask(title="Walk"), character, now=NOW)
        self.pipeline.apply(result, GameTask(title="Walk"), character)

        self.assertTrue(result.pity_triggered)
        self.assertIs(LootKind.EQUIPMENT, result.loot.kind)
        self.assertEqual(0, character.pity_counters["tasks"])
        self.assertEqual(character.id, character.equipment[0].owner_id)

    def test_missed_loot_advances_pity_counter(self) -> None:
        character = PlayerCharacter(name="Dry")
        task = GameTask(title="Walk")
        result = self.pipeline.compute(task, character, now=NOW)
        self.pipeline.apply(result, task, character)
        self.assertEqual(1, character.pity_counters["tasks"])

    def test_apply_is_idempotent_and_skips_escrow(self) -> None:
        character = PlayerCharacter(name="Once")
        task = GameTask(title="Walk")
        result = self.pipeline.compute(task, character, now=NOW)

        self.pipeline.apply(result, task, character)
        self.pipeline.apply(result, task, character)

        self.assertEqual(20, character.current_exp)
        self.assertEqual(10, character.gold)

        escrowed = self.pipeline.compute(
            GameTask(title="Held", is_from_partner=True),
            character,
            now=NOW,
            bond=Bond(member_ids=[character.id]),
        )
        self.pipeline.apply(escrowed, task, character)
        self.assertEqual(20, character.current_exp)

    def test_routine_bonus_pays_when_last_habit_completes(self) -> None:
        character = PlayerCharacter(name="Habitual")
        habits = [GameTask(title=f"Habit {index}", is_habit=True, owner_id=character.id) for index in range(3)]
        for habit in habits[:2]:
            habit.status = TaskStatus.COMPLETED
            habit.completed_at = NOW - timedelta(hours=1)
        bundle = RoutineBundle(name="Morning", owner_id=character.id, habit_ids=[habit.id for habit in habits])

        result = self.pipeline.compute(habits[2], character, now=NOW, routines=[bundle], sibling_tasks=habits)

        self.assertEqual(30, result.routine_bonus_exp)
        self.assertEqual(result.exp + 30, result.total_exp)

    def test_routine_bonus_is_zero_while_habits_remain(self) -> None:
        character = PlayerCharacter(name="Habitual")
        habits = [GameTask(title=f"Habit {index}", is_habit=True) for index in range(3)]
        bundle = RoutineBundle(name="Morning", owner_id=character.id, habit_ids=[habit.id for habit in habits])

        result = self.pipeline.compute(habits[0], character, now=NOW, routines=[bundle], sibling_tasks=habits)

        self.assertEqual(0, result.routine_bonus_exp)


if __name__ == "__main__":
    unittest.main()
