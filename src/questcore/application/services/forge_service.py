from __future__ import annotations

import logging
import random

from questcore.application.dtos import EnhancementResult, SalvageResult
from questcore.application.services.loot_service import material_key
from questcore.application.services.tuning_tables import ENHANCEMENT_BASE_PRICE, TuningTables
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.loot import MAX_ENHANCEMENT_LEVEL, Equipment, ItemRarity, MaterialType


logger = logging.getLogger(__name__)

AFFIX_SCROLL_NAME = "Recovered Affix Scroll"
SALVAGE_MATERIALS = (MaterialType.ORE, MaterialType.CRYSTAL, MaterialType.HIDE)


class ForgeService:
    def __init__(self, tuning: TuningTables | None = None, rng: random.Random | None = None) -> None:
        self.tuning = tuning or TuningTables.defaults()
        self.rng = rng or random.Random()

    def enhancement_cost(self, item: Equipment) -> int | None:
        rule = self.tuning.enhancement_rule(item.enhancement_level + 1)
        if rule is None:
            return None
        base_price = ENHANCEMENT_BASE_PRICE.get(item.rarity.value, ENHANCEMENT_BASE_PRICE["common"])
        return int(base_price * rule.cost_multiplier)

    def enhance(self, character: PlayerCharacter, item: Equipment) -> EnhancementResult:
        next_level = item.enhancement_level + 1
        if next_level > MAX_ENHANCEMENT_LEVEL:
            return EnhancementResult(False, False, 0, item.enhancement_level, 0, reason="Item is fully enhanced.")
        rule = self.tuning.enhancement_rule(next_level)
        cost = self.enhancement_cost(item)
        if rule is None or cost is None:
            return EnhancementResult(False, False, 0, item.enhancement_level, 0, reason="No enhancement rule.")
        if not character.spend_gold(cost):
            return EnhancementResult(False, False, 0, item.enhancement_level, 0, reason="Not enough gold.")

        if self.rng.random() > rule.success_rate:
            logger.debug("Enhancement of %s to +%s failed", item.name, next_level)
            return EnhancementResult(False, False, 0, item.enhancement_level, cost, reason="The forge fizzled.")

        critical = self.rng.random() <= rule.critical_chance + character.research_bonuses.crit_chance_bonus
        gain = rule.stat_gain * 2 if critical else rule.stat_gain
        item.enhancement_level = next_level
        item.stat_bonus += gain
        return EnhancementResult(True, critical, gain, next_level, cost)

    def salvage(self, character: PlayerCharacter, item: Equipment) -> SalvageResult | None:
        """Break an owned item down; returns ``None`` when the character does not hold it."""
        if item not in character.equipment:
            return None
        rule = self.tuning.salvage_rule(item.rarity.value)
        if rule is None:
            return None

        if rule.materials_returned > 0:
            kind = self.rng.choice(SALVAGE_MATERIALS)
            character.add_material(material_key(kind, ItemRarity.COMMON), rule.materials_returned)
        if rule.fragments_returned > 0:
            character.add_material(material_key(MaterialType.FRAGMENT, ItemRarity.COMMON), rule.fragments_returned)
        character.gold += rule.gold_returned

        affix_chance = rule.affix_recovery_chance + character.research_bonuses.affix_chance_bonus
        scroll = affix_chance > 0 and self.rng.random() <= affix_chance
        if scroll:
            character.add_consumable(AFFIX_SCROLL_NAME)

        item.is_equipped = False
        character.equipment.remove(item)
        return SalvageResult(
            materials_returned=rule.materials_returned,
            fragments_returned=rule.fragments_returned,
            gold_returned=rule.gold_returned,
            recovered_affix_scroll=scroll,
        )
