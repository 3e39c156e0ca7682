import random
import sys
from pathlib import Path
import unittest
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.forge_service import AFFIX_SCROLL_NAME, ForgeService
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.loot import Equipment, EquipmentSlot, ItemRarity
from questcore.domain.models.stats import StatType


def _sword(rarity=ItemRarity.UNCOMMON, level: int = 0) -> Equipment:
    return Equipment(
        name="Iron Sword",
        slot=EquipmentSlot.WEAPON,
        rarity=rarity,
        primary_stat=StatType.STRENGTH,
        stat_bonus=3,
        enhancement_level=level,
    )


class ForgeServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.forge = ForgeService(rng=random.Random(11))
        self.character = PlayerCharacter(name="Smith", gold=1000)

    def test_cost_scales_with_rarity_and_level(self) -> None:
        self.assertEqual(100, self.forge.enhancement_cost(_sword()))
        self.assertEqual(300, self.forge.enhancement_cost(_sword(level=3)))
        self.assertEqual(8000, self.forge.enhancement_cost(_sword(ItemRarity.RARE, level=9)))
        self.assertIsNone(self.forge.enhancement_cost(_sword(level=10)))

    def test_successful_enhancement_raises_item(self) -> None:
        item = _sword()
        with mock.patch.object(self.forge.rng, "random", side_effect=[0.5, 0.9]):
            result = self.forge.enhance(self.character, item)

        self.assertTrue(result.success)
        self.assertFalse(result.critical)
        self.assertEqual(1, item.enhancement_level)
        self.assertEqual(4, item.stat_bonus)
        self.assertEqual(900, self.character.gold)
        self.assertEqual(100, result.gold_spent)

    def test_critical_doubles_stat_gain(self) -> None:
        item = _sword()
        with mock.patch.object(self.forge.rng, "random", side_effect=[0.5, 0.05]):
            result = self.forge.enhance(self.character, item)

        self.assertTrue(result.critical)
        self.assertEqual(2, result.stat_gained)
        self.assertEqual(5, item.stat_bonus)

    def test_failed_enhancement_still_costs_gold(self) -> None:
        item = _sword(level=3)
        with mock.patch.object(self.forge.rng, "random", return_value=0.95):
            result = self.forge.enhance(self.character, item)

        self.assertFalse(result.success)
        self.assertEqual(3, item.enhancement_level)
        self.assertEqual(700, self.character.gold)
        self.assertEqual(300, result.gold_spent)

    def test_insufficient_gold_spends_nothing(self) -> None:
        self.character.gold = 50
        result = self.forge.enhance(self.character, _sword())

        self.assertFalse(result.success)
        self.assertEqual(0, result.gold_spent)
        self.assertEqual(50, self.character.gold)

    def test_fully_enhanced_item_is_rejected(self) -> None:
        result = self.forge.enhance(self.character, _sword(level=10))
        self.assertFalse(result.success)
        self.assertEqual(1000, self.character.gold)

    def test_salvage_returns_materials_and_removes_item(self) -> None:
        item = _sword(ItemRarity.RARE)
        item.is_equipped = True
        self.character.equipment.append(item)

        with mock.patch.object(self.forge.rng, "random", return_value=0.1):
            result = self.forge.salvage(self.character, item)

        self.assertEqual((3, 1, 40), (result.materials_returned, result.fragments_returned, result.gold_returned))
        self.assertTrue(result.recovered_affix_scroll)
        self.assertEqual(1040, self.character.gold)
        self.assertEqual(1, self.character.materials["fragment:common"])
        self.assertEqual(4, sum(self.character.materials.values()))
        self.assertEqual(1, self.character.consumables[AFFIX_SCROLL_NAME])
        self.assertNotIn(item, self.character.equipment)
        self.assertFalse(item.is_equipped)

    def test_research_crit_bonus_widens_critical_window(self) -> None:
        self.character.research_bonuses.crit_chance_bonus = 0.01
        item = _sword()
        with mock.patch.object(self.forge.rng, "random", side_effect=[0.5, 0.105]):
            result = self.forge.enhance(self.character, item)

        self.assertTrue(result.critical)

    def test_research_affix_bonus_applies_to_common_salvage(self) -> None:
        self.character.research_bonuses.affix_chance_bonus = 0.01
        item = _sword(ItemRarity.COMMON)
        self.character.equipment.append(item)

        with mock.patch.object(self.forge.rng, "random", return_value=0.005):
            result = self.forge.salvage(self.character, item)

        self.assertTrue(result.recovered_affix_scroll)
        self.assertEqual(1, self.character.consumables[AFFIX_SCROLL_NAME])

    def test_salvage_requires_ownership(self) -> None:
        self.assertIsNone(self.forge.salvage(self.character, _sword()))


if __name__ == "__main__":
    unittest.main()
