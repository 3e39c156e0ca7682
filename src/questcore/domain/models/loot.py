from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from questcore.domain.models.stats import StatType


MAX_ENHANCEMENT_LEVEL = 10


class ItemRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def order(self) -> int:
        return list(ItemRarity).index(self)


class EquipmentSlot(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"


class MaterialType(str, Enum):
    ORE = "ore"
    CRYSTAL = "crystal"
    HIDE = "hide"
    HERB = "herb"
    ESSENCE = "essence"
    FRAGMENT = "fragment"


class LootKind(str, Enum):
    EQUIPMENT = "equipment"
    MATERIAL = "material"
    CONSUMABLE = "consumable"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Equipment:
    name: str
    slot: EquipmentSlot
    rarity: ItemRarity
    primary_stat: StatType
    stat_bonus: int
    secondary_stat: StatType | None = None
    secondary_bonus: int = 0
    enhancement_level: int = 0
    tier: int = 1
    is_equipped: bool = False
    owner_id: str | None = None
    id: str = field(default_factory=_new_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slot": self.slot.value,
            "rarity": self.rarity.value,
            "primary_stat": self.primary_stat.value,
            "stat_bonus": int(self.stat_bonus),
            "secondary_stat": self.secondary_stat.value if self.secondary_stat else None,
            "secondary_bonus": int(self.secondary_bonus),
            "enhancement_level": int(self.enhancement_level),
            "tier": int(self.tier),
            "is_equipped": bool(self.is_equipped),
            "owner_id": self.owner_id,
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Equipment":
        secondary = payload.get("secondary_stat")
        return cls(
            id=str(payload.get("id") or _new_id()),
            name=str(payload.get("name", "")),
            slot=EquipmentSlot(str(payload.get("slot", "weapon"))),
            rarity=ItemRarity(str(payload.get("rarity", "common"))),
            primary_stat=StatType(str(payload.get("primary_stat", "strength"))),
            stat_bonus=int(payload.get("stat_bonus", 0) or 0),
            secondary_stat=StatType(str(secondary)) if secondary else None,
            secondary_bonus=int(payload.get("secondary_bonus", 0) or 0),
            enhancement_level=int(payload.get("enhancement_level", 0) or 0),
            tier=int(payload.get("tier", 1) or 1),
            is_equipped=bool(payload.get("is_equipped", False)),
            owner_id=payload.get("owner_id"),
        )


@dataclass
class MaterialDrop:
    material_type: MaterialType
    rarity: ItemRarity
    quantity: int = 1


@dataclass
class ConsumableDrop:
    name: str
    quantity: int = 1


@dataclass
class LootDrop:
    kind: LootKind
    equipment: Equipment | None = None
    material: MaterialDrop | None = None
    consumable: ConsumableDrop | None = None

    @property
    def label(self) -> str:
        if self.equipment is not None:
            return self.equipment.name
        if self.material is not None:
            return f"{self.material.quantity}x {self.material.rarity.value} {self.material.material_type.value}"
        if self.consumable is not None:
            return self.consumable.name
        return self.kind.value
