import sys
from datetime import datetime
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.achievement_tracker import AchievementTracker, validate_definitions
from questcore.domain.errors import UnsupportedAchievementError
from questcore.domain.events import AchievementUnlockedEvent
from questcore.domain.models.achievement import (
    DEFAULT_ACHIEVEMENTS,
    AchievementDefinition,
    AchievementKey,
    TrackedValue,
)
from questcore.domain.models.character import CharacterClass, PlayerCharacter
from questcore.domain.models.loot import Equipment, EquipmentSlot, ItemRarity
from questcore.domain.models.stats import StatType


NOW = datetime(2024, 3, 3, 10, 0)


def _item(rarity: ItemRarity) -> Equipment:
    return Equipment(
        name="Trinket",
        slot=EquipmentSlot.ACCESSORY,
        rarity=rarity,
        primary_stat=StatType.LUCK,
        stat_bonus=2,
    )


class AchievementTrackerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.events = []
        self.tracker = AchievementTracker(event_publisher=self.events.append)
        self.character = PlayerCharacter(name="Collector")

    def test_check_all_derives_progress_from_character_state(self) -> None:
        self.character.tasks_completed = 1
        self.character.character_class = CharacterClass.MAGE

        unlocked = self.tracker.check_all(self.character, NOW)

        self.assertEqual({"first_steps", "specialized"}, {record.key for record in unlocked})
        self.assertEqual(NOW, self.character.achievements["first_steps"].unlocked_at)
        self.assertAlmostEqual(0.02, self.character.achievements["dedicated"].progress)
        self.assertEqual(2, len([event for event in self.events if isinstance(event, AchievementUnlockedEvent)]))

    def test_unlock_happens_once(self) -> None:
        self.character.tasks_completed = 1
        self.tracker.check_all(self.character, NOW)
        self.assertEqual([], self.tracker.check_all(self.character, NOW))
        self.assertEqual(1, len(self.events))

    def test_unsupported_definition_never_progresses(self) -> None:
        self.tracker.check_all(self.character, NOW)
        record = self.character.achievements[AchievementKey.SKILL_MASTER.value]
        self.assertFalse(record.is_unlocked)
        self.assertEqual(0, record.current_value)

    def test_counter_achievements_increment(self) -> None:
        for _ in range(9):
            self.assertIsNone(self.tracker.increment(self.character, AchievementKey.POWER_COUPLE, now=NOW))
        record = self.tracker.increment(self.character, AchievementKey.POWER_COUPLE, now=NOW)

        self.assertTrue(record.is_unlocked)
        self.assertEqual(10, self.character.achievement_counters["power_couple"])

    def test_increment_rejects_non_counter_keys(self) -> None:
        with self.assertRaises(UnsupportedAchievementError):
            self.tracker.increment(self.character, AchievementKey.FIRST_STEPS, now=NOW)
        with self.assertRaises(UnsupportedAchievementError):
            self.tracker.increment(self.character, "made_up", now=NOW)

    def test_note_item_counts_rare_and_legendary(self) -> None:
        self.tracker.note_item(self.character, _item(ItemRarity.UNCOMMON), now=NOW)
        self.assertNotIn("rare_find", self.character.achievement_counters)

        self.tracker.note_item(self.character, _item(ItemRarity.LEGENDARY), now=NOW)
        self.assertTrue(self.character.achievements["rare_find"].is_unlocked)
        self.assertTrue(self.character.achievements["legendary_collector"].is_unlocked)

    def test_claim_reward_pays_once(self) -> None:
        self.character.tasks_completed = 50
        self.tracker.check_all(self.character, NOW)

        self.assertTrue(self.tracker.claim_reward(self.character, AchievementKey.FIRST_STEPS))
        self.assertTrue(self.tracker.claim_reward(self.character, "dedicated"))
        self.assertFalse(self.tracker.claim_reward(self.character, AchievementKey.FIRST_STEPS))
        self.assertFalse(self.tracker.claim_reward(self.character, AchievementKey.CENTURION))

        self.assertEqual(50, self.character.current_exp)
        self.assertEqual(500, self.character.gold)


class DefinitionValidationTests(unittest.TestCase):
    def test_defaults_report_only_skill_master(self) -> None:
        self.assertEqual(["skill_master"], validate_definitions(DEFAULT_ACHIEVEMENTS))

    def test_strict_mode_raises(self) -> None:
        with self.assertRaises(UnsupportedAchievementError):
            validate_definitions(DEFAULT_ACHIEVEMENTS, strict=True)

    def test_duplicate_keys_raise(self) -> None:
        definition = DEFAULT_ACHIEVEMENTS[0]
        with self.assertRaises(UnsupportedAchievementError):
            validate_definitions([definition, definition])

    def test_unknown_tracked_value_parses_as_unsupported(self) -> None:
        definition = AchievementDefinition.from_mapping(
            {"key": "skill_tree", "name": "Skill Tree", "tracked_value": "skill_points", "target_value": 3}
        )
        self.assertIs(TrackedValue.UNSUPPORTED, definition.tracked_value)
        self.assertFalse(definition.is_supported)

    def test_tracker_warns_about_unsupported_definitions(self) -> None:
        with self.assertLogs("questcore.application.services.achievement_tracker", level="WARNING") as captured:
            AchievementTracker()
        self.assertIn("skill_master", captured.output[0])


if __name__ == "__main__":
    unittest.main()
