from __future__ import annotations

import random
from typing import Iterable, Mapping, Optional

from questcore.application.services.tuning_tables import EQUIPMENT_LUCK_SCALING, TuningTables
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.dungeon import DungeonDifficulty, RoomResult
from questcore.domain.models.loot import (
    ConsumableDrop,
    Equipment,
    EquipmentSlot,
    ItemRarity,
    LootDrop,
    LootKind,
    MaterialDrop,
    MaterialType,
)
from questcore.domain.models.stats import STAT_ORDER, StatType


TASK_PITY_KEY = "tasks"
TASK_LOOT_MATERIALS = (
    MaterialType.ORE,
    MaterialType.CRYSTAL,
    MaterialType.HIDE,
    MaterialType.HERB,
    MaterialType.ESSENCE,
)
TASK_LOOT_CONSUMABLES = ("Herbal Tea", "Energy Bar", "Lucky Coin", "Trail Mix")

_STAT_BONUS_RANGES = {
    ItemRarity.COMMON: (1, 3),
    ItemRarity.UNCOMMON: (2, 5),
    ItemRarity.RARE: (4, 8),
    ItemRarity.EPIC: (7, 12),
    ItemRarity.LEGENDARY: (10, 18),
}

# (chance, min bonus, max bonus)
_SECONDARY_STAT_ROLLS = {
    ItemRarity.UNCOMMON: (0.3, 1, 2),
    ItemRarity.RARE: (0.6, 2, 4),
    ItemRarity.EPIC: (0.8, 3, 6),
    ItemRarity.LEGENDARY: (1.0, 5, 10),
}

_PREFIXES = {
    ItemRarity.COMMON: ["Worn", "Rusty", "Simple", "Basic", "Crude", "Old"],
    ItemRarity.UNCOMMON: ["Iron", "Steel", "Sturdy", "Polished", "Fine", "Hardened"],
    ItemRarity.RARE: ["Enchanted", "Arcane", "Blessed", "Tempered", "Gleaming", "Runic"],
    ItemRarity.EPIC: ["Mythril", "Shadowforged", "Dragonscale", "Celestial", "Soulbound"],
    ItemRarity.LEGENDARY: ["Divine", "Abyssal", "Primordial", "Eternal", "Astral", "Godforged"],
}

_BASES = {
    EquipmentSlot.WEAPON: ["Sword", "Axe", "Staff", "Dagger", "Bow", "Wand", "Mace", "Spear"],
    EquipmentSlot.ARMOR: ["Plate", "Chainmail", "Robes", "Leather Armor", "Breastplate", "Helm"],
    EquipmentSlot.ACCESSORY: ["Ring", "Amulet", "Cloak", "Bracelet", "Charm", "Pendant"],
}

_SUFFIXES = {
    StatType.STRENGTH: ["of Power", "of the Bear", "of Might"],
    StatType.WISDOM: ["of Insight", "of the Owl", "of Clarity"],
    StatType.CHARISMA: ["of Charm", "of Grace", "of Leadership"],
    StatType.DEXTERITY: ["of Agility", "of the Fox", "of the Wind"],
    StatType.LUCK: ["of Fortune", "of the Rabbit", "of Fate"],
    StatType.DEFENSE: ["of Warding", "of the Tortoise", "of the Bastion"],
}

_DEFAULT_MATERIAL_WEIGHTS = {"common": 0.60, "uncommon": 0.25, "rare": 0.12, "epic": 0.03}


def material_key(material_type: MaterialType, rarity: ItemRarity) -> str:
    return f"{material_type.value}:{rarity.value}"


def equipment_tier_for_level(level: int) -> int:
    return max(1, int(level) // 10 + 1)


class LootService:
    def __init__(self, tuning: TuningTables | None = None, rng: random.Random | None = None) -> None:
        self.tuning = tuning or TuningTables.defaults()
        self.rng = rng or random.Random()

    def roll_rarity(self, tier: int, luck: int, rare_bonus: float = 0.0) -> ItemRarity:
        # rare_bonus is a fraction; 0.02 shifts the roll by two points
        adjusted = self.rng.uniform(0, 100) + luck * 0.5 + tier * 3.0 + rare_bonus * 100
        if adjusted >= 95:
            return ItemRarity.LEGENDARY
        if adjusted >= 82:
            return ItemRarity.EPIC
        if adjusted >= 65:
            return ItemRarity.RARE
        if adjusted >= 40:
            return ItemRarity.UNCOMMON
        return ItemRarity.COMMON

    def roll_stat_bonus(self, rarity: ItemRarity) -> int:
        low, high = _STAT_BONUS_RANGES[rarity]
        return self.rng.randint(low, high)

    def roll_secondary_stat(self, rarity: ItemRarity, primary: StatType) -> tuple[StatType, int] | None:
        roll = _SECONDARY_STAT_ROLLS.get(rarity)
        if roll is None:
            return None
        chance, low, high = roll
        if self.rng.random() > chance:
            return None
        stat = self.rng.choice([stat for stat in STAT_ORDER if stat is not primary])
        return stat, self.rng.randint(low, high)

    def generate_equipment(
        self,
        tier: int,
        luck: int,
        *,
        slot: EquipmentSlot | None = None,
        rarity: ItemRarity | None = None,
        rare_bonus: float = 0.0,
    ) -> Equipment:
        chosen_slot = slot or self.rng.choice(list(EquipmentSlot))
        chosen_rarity = rarity or self.roll_rarity(tier, luck, rare_bonus)
        primary = self.rng.choice(STAT_ORDER)
        secondary = self.roll_secondary_stat(chosen_rarity, primary)
        name = f"{self.rng.choice(_PREFIXES[chosen_rarity])} {self.rng.choice(_BASES[chosen_slot])}"
        if chosen_rarity is not ItemRarity.COMMON:
            name = f"{name} {self.rng.choice(_SUFFIXES[primary])}"
        return Equipment(
            name=name,
            slot=chosen_slot,
            rarity=chosen_rarity,
            primary_stat=primary,
            stat_bonus=self.roll_stat_bonus(chosen_rarity),
            secondary_stat=secondary[0] if secondary else None,
            secondary_bonus=secondary[1] if secondary else 0,
            tier=max(1, int(tier)),
        )

    def _roll_weighted_rarity(self, weights: Mapping[str, float]) -> ItemRarity:
        total = sum(max(0.0, float(value)) for value in weights.values())
        if total <= 0:
            return ItemRarity.COMMON
        roll = self.rng.random() * total
        running = 0.0
        chosen = ItemRarity.COMMON
        for rarity in ItemRarity:
            weight = max(0.0, float(weights.get(rarity.value, 0.0)))
            if weight <= 0:
                continue
            chosen = rarity
            running += weight
            if roll < running:
                return rarity
        return chosen

    def roll_material(self, weights: Mapping[str, float] | None = None) -> MaterialDrop:
        material_type = self.rng.choice(TASK_LOOT_MATERIALS)
        rarity = self._roll_weighted_rarity(weights or _DEFAULT_MATERIAL_WEIGHTS)
        quantity = self.rng.randint(1, 3) if rarity is ItemRarity.COMMON else 1
        return MaterialDrop(material_type=material_type, rarity=rarity, quantity=quantity)

    def task_pity_threshold(self) -> int:
        rate = self.tuning.drop_rate("task", "equipment")
        if rate is None or rate.pity_threshold is None:
            return 0
        return max(0, int(rate.pity_threshold))

    def pity_due(self, character: PlayerCharacter) -> bool:
        threshold = self.task_pity_threshold()
        return threshold > 0 and int(character.pity_counters.get(TASK_PITY_KEY, 0)) >= threshold

    def roll_task_loot(
        self,
        character: PlayerCharacter,
        loot_bonus: float = 0.0,
        *,
        force_equipment: bool = False,
    ) -> Optional[LootDrop]:
        """Single uniform draw over cumulative equipment/material/consumable bands."""
        luck = character.effective_stats.luck
        tier = equipment_tier_for_level(character.level)
        research = character.research_bonuses
        if force_equipment:
            equipment = self.generate_equipment(tier, luck, rare_bonus=research.rare_drop_chance_bonus)
            return LootDrop(kind=LootKind.EQUIPMENT, equipment=equipment)

        equipment_rate = self.tuning.drop_rate("task", "equipment")
        material_rate = self.tuning.drop_rate("task", "material")
        consumable_rate = self.tuning.drop_rate("task", "consumable")

        equipment_band = (equipment_rate.base_chance if equipment_rate else 0.065) + loot_bonus
        equipment_band += luck * (equipment_rate.luck_scaling if equipment_rate else EQUIPMENT_LUCK_SCALING)
        material_chance = (material_rate.base_chance if material_rate else 0.35) + research.material_drop_rate_bonus
        material_band = equipment_band + material_chance
        consumable_band = material_band + (consumable_rate.base_chance if consumable_rate else 0.175)

        roll = self.rng.random()
        if roll < equipment_band:
            equipment = self.generate_equipment(tier, luck, rare_bonus=research.rare_drop_chance_bonus)
            return LootDrop(kind=LootKind.EQUIPMENT, equipment=equipment)
        if roll < material_band:
            weights = material_rate.rarity_weights if material_rate and material_rate.rarity_weights else None
            return LootDrop(kind=LootKind.MATERIAL, material=self.roll_material(weights))
        if roll < consumable_band:
            return LootDrop(kind=LootKind.CONSUMABLE, consumable=ConsumableDrop(name=self.rng.choice(TASK_LOOT_CONSUMABLES)))
        return None

    def generate_dungeon_loot(
        self,
        tier: int,
        luck: int,
        room_results: Iterable[RoomResult],
        difficulty: DungeonDifficulty,
        class_loot_bonus: float = 0.0,
        *,
        rare_bonus: float = 0.0,
    ) -> list[Equipment]:
        drops: list[Equipment] = []
        for result in room_results:
            if not result.success:
                continue
            chance = 0.15 + tier * 0.05 + class_loot_bonus + luck * 0.005
            if result.loot_dropped:
                chance += 0.3
            if self.rng.random() <= min(0.8, chance):
                drops.append(self.generate_equipment(tier, luck, rare_bonus=rare_bonus))
        if difficulty is not DungeonDifficulty.NORMAL:
            drops.append(self.generate_equipment(tier + 1, luck, rare_bonus=rare_bonus))
        return drops

    @staticmethod
    def record_task_pity(character: PlayerCharacter, drop: Optional[LootDrop]) -> None:
        if drop is not None and drop.kind is LootKind.EQUIPMENT:
            character.pity_counters[TASK_PITY_KEY] = 0
        else:
            character.pity_counters[TASK_PITY_KEY] = int(character.pity_counters.get(TASK_PITY_KEY, 0)) + 1

    @staticmethod
    def apply_drop(character: PlayerCharacter, drop: Optional[LootDrop]) -> None:
        if drop is None:
            return
        if drop.equipment is not None:
            drop.equipment.owner_id = character.id
            character.equipment.append(drop.equipment)
        elif drop.material is not None:
            character.add_material(material_key(drop.material.material_type, drop.material.rarity), drop.material.quantity)
        elif drop.consumable is not None:
            character.add_consumable(drop.consumable.name, drop.consumable.quantity)
