from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from questcore.application.services.balance_tables import DEFAULT_PITY_THRESHOLD


logger = logging.getLogger(__name__)

ENHANCEMENT_RULES = "enhancement_rules"
SALVAGE_RULES = "salvage_rules"
DROP_RATES = "drop_rates"
TABLE_NAMES = (ENHANCEMENT_RULES, SALVAGE_RULES, DROP_RATES)

EQUIPMENT_LUCK_SCALING = 0.002

ENHANCEMENT_BASE_PRICE = {
    "common": 50,
    "uncommon": 100,
    "rare": 200,
    "epic": 500,
    "legendary": 1000,
}


def _enhancement_row(level: int, success_rate: float, cost_multiplier: float, stat_gain: int) -> dict[str, Any]:
    return {
        "id": f"enhance-{level}",
        "enhancement_level": level,
        "success_rate": success_rate,
        "cost_multiplier": cost_multiplier,
        "stat_gain": stat_gain,
        "critical_chance": 0.10,
        "active": True,
    }


def _salvage_row(rarity: str, materials: int, fragments: int, gold: int, affix_chance: float) -> dict[str, Any]:
    return {
        "id": f"salvage-{rarity}",
        "item_rarity": rarity,
        "materials_returned": materials,
        "fragments_returned": fragments,
        "gold_returned": gold,
        "affix_recovery_chance": affix_chance,
        "active": True,
    }


def _drop_row(source: str, drop_type: str, base_chance: float, **extra: Any) -> dict[str, Any]:
    row = {
        "id": f"{source}-{drop_type}",
        "content_source": source,
        "drop_type": drop_type,
        "base_chance": base_chance,
        "rarity_weights": {},
        "luck_scaling": 0.0,
        "pity_threshold": None,
        "active": True,
    }
    row.update(extra)
    return row


DEFAULT_TUNING_TABLES: dict[str, dict[str, Any]] = {
    ENHANCEMENT_RULES: {
        "results": [
            _enhancement_row(1, 1.0, 1.0, 1),
            _enhancement_row(2, 1.0, 1.5, 1),
            _enhancement_row(3, 1.0, 2.0, 1),
            _enhancement_row(4, 0.8, 3.0, 1),
            _enhancement_row(5, 0.8, 4.0, 1),
            _enhancement_row(6, 0.8, 5.0, 1),
            _enhancement_row(7, 0.6, 8.0, 2),
            _enhancement_row(8, 0.6, 12.0, 2),
            _enhancement_row(9, 0.4, 20.0, 2),
            _enhancement_row(10, 0.25, 40.0, 3),
        ]
    },
    SALVAGE_RULES: {
        "results": [
            _salvage_row("common", 0, 1, 5, 0.0),
            _salvage_row("uncommon", 2, 0, 15, 0.10),
            _salvage_row("rare", 3, 1, 40, 0.20),
            _salvage_row("epic", 5, 2, 100, 0.30),
            _salvage_row("legendary", 8, 4, 250, 0.50),
        ]
    },
    DROP_RATES: {
        "results": [
            _drop_row(
                "task",
                "equipment",
                0.065,
                luck_scaling=EQUIPMENT_LUCK_SCALING,
                pity_threshold=DEFAULT_PITY_THRESHOLD,
            ),
            _drop_row(
                "task",
                "material",
                0.35,
                rarity_weights={"common": 0.60, "uncommon": 0.25, "rare": 0.12, "epic": 0.03},
            ),
            _drop_row("task", "consumable", 0.175),
        ]
    },
}


@dataclass(frozen=True)
class EnhancementRule:
    enhancement_level: int
    success_rate: float
    cost_multiplier: float
    stat_gain: int
    critical_chance: float = 0.10


@dataclass(frozen=True)
class SalvageRule:
    item_rarity: str
    materials_returned: int
    fragments_returned: int
    gold_returned: int
    affix_recovery_chance: float


@dataclass(frozen=True)
class DropRate:
    content_source: str
    drop_type: str
    base_chance: float
    rarity_weights: Mapping[str, float] = field(default_factory=dict)
    luck_scaling: float = 0.0
    pity_threshold: int | None = None


def _rows(payload: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    if not isinstance(payload, Mapping):
        return []
    rows = payload.get("results") or payload.get("items") or []
    if not isinstance(rows, list):
        return []
    return [row for row in rows if isinstance(row, dict) and row.get("active", True)]


@dataclass
class TuningTables:
    """Parsed view over the remote tuning payloads.

    Any table that is missing or fails to parse is replaced by the matching
    entry from ``DEFAULT_TUNING_TABLES``.
    """

    enhancement: dict[int, EnhancementRule]
    salvage: dict[str, SalvageRule]
    drop_rates: dict[tuple[str, str], DropRate]

    @classmethod
    def defaults(cls) -> "TuningTables":
        return cls.from_payloads(DEFAULT_TUNING_TABLES)

    @classmethod
    def from_payloads(cls, payloads: Mapping[str, Mapping[str, Any]] | None) -> "TuningTables":
        payloads = payloads or {}
        return cls(
            enhancement=cls._parse_table(payloads, ENHANCEMENT_RULES, cls._parse_enhancement),
            salvage=cls._parse_table(payloads, SALVAGE_RULES, cls._parse_salvage),
            drop_rates=cls._parse_table(payloads, DROP_RATES, cls._parse_drop_rates),
        )

    @staticmethod
    def _parse_table(payloads, name, parser):
        payload = payloads.get(name)
        if payload is not None:
            try:
                parsed = parser(_rows(payload))
                if parsed:
                    return parsed
            except (TypeError, ValueError, KeyError):
                logger.warning("Tuning table %s is malformed; using defaults", name)
        return parser(_rows(DEFAULT_TUNING_TABLES[name]))

    @staticmethod
    def _parse_enhancement(rows: list[dict[str, Any]]) -> dict[int, EnhancementRule]:
        parsed: dict[int, EnhancementRule] = {}
        for row in rows:
            level = int(row["enhancement_level"])
            parsed[level] = EnhancementRule(
                enhancement_level=level,
                success_rate=float(row["success_rate"]),
                cost_multiplier=float(row["cost_multiplier"]),
                stat_gain=int(row["stat_gain"]),
                critical_chance=float(row.get("critical_chance", 0.10) or 0.0),
            )
        return parsed

    @staticmethod
    def _parse_salvage(rows: list[dict[str, Any]]) -> dict[str, SalvageRule]:
        parsed: dict[str, SalvageRule] = {}
        for row in rows:
            rarity = str(row["item_rarity"]).strip().lower()
            parsed[rarity] = SalvageRule(
                item_rarity=rarity,
                materials_returned=int(row["materials_returned"]),
                fragments_returned=int(row["fragments_returned"]),
                gold_returned=int(row["gold_returned"]),
                affix_recovery_chance=float(row.get("affix_recovery_chance", 0.0) or 0.0),
            )
        return parsed

    @staticmethod
    def _parse_drop_rates(rows: list[dict[str, Any]]) -> dict[tuple[str, str], DropRate]:
        parsed: dict[tuple[str, str], DropRate] = {}
        for row in rows:
            source = str(row["content_source"]).strip().lower()
            drop_type = str(row["drop_type"]).strip().lower()
            weights = row.get("rarity_weights") or {}
            pity = row.get("pity_threshold")
            luck_scaling = row.get("luck_scaling")
            if luck_scaling is None:
                # an omitted column keeps the luck band on equipment rows
                luck_scaling = EQUIPMENT_LUCK_SCALING if drop_type == "equipment" else 0.0
            parsed[(source, drop_type)] = DropRate(
                content_source=source,
                drop_type=drop_type,
                base_chance=float(row["base_chance"]),
                rarity_weights={str(k).lower(): float(v) for k, v in dict(weights).items()},
                luck_scaling=float(luck_scaling),
                pity_threshold=int(pity) if pity is not None else None,
            )
        return parsed

    def enhancement_rule(self, level: int) -> EnhancementRule | None:
        return self.enhancement.get(int(level))

    def salvage_rule(self, rarity: str) -> SalvageRule | None:
        return self.salvage.get(str(rarity).strip().lower())

    def drop_rate(self, source: str, drop_type: str) -> DropRate | None:
        return self.drop_rates.get((source, drop_type))
