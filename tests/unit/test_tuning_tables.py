import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.tuning_tables import (
    DEFAULT_TUNING_TABLES,
    DROP_RATES,
    ENHANCEMENT_RULES,
    EQUIPMENT_LUCK_SCALING,
    SALVAGE_RULES,
    TuningTables,
)


class TuningTablesTests(unittest.TestCase):
    def test_defaults_cover_every_enhancement_level(self) -> None:
        tables = TuningTables.defaults()
        self.assertEqual(list(range(1, 11)), sorted(tables.enhancement))
        self.assertEqual(0.25, tables.enhancement_rule(10).success_rate)
        self.assertEqual(30, tables.drop_rate("task", "equipment").pity_threshold)
        self.assertEqual(40, tables.salvage_rule("RARE").gold_returned)

    def test_remote_rows_override_defaults(self) -> None:
        payloads = {
            SALVAGE_RULES: {
                "results": [
                    {
                        "item_rarity": "Common",
                        "materials_returned": 1,
                        "fragments_returned": 0,
                        "gold_returned": 9,
                    }
                ]
            }
        }
        tables = TuningTables.from_payloads(payloads)

        self.assertEqual(9, tables.salvage_rule("common").gold_returned)
        self.assertIsNone(tables.salvage_rule("rare"))
        self.assertEqual(10, len(tables.enhancement))

    def test_inactive_rows_are_ignored(self) -> None:
        payloads = {
            DROP_RATES: {
                "items": [
                    {"content_source": "task", "drop_type": "equipment", "base_chance": 0.5, "active": False},
                    {"content_source": "Task", "drop_type": "Material", "base_chance": 0.2},
                ]
            }
        }
        tables = TuningTables.from_payloads(payloads)

        self.assertIsNone(tables.drop_rate("task", "equipment"))
        self.assertEqual(0.2, tables.drop_rate("task", "material").base_chance)

    def test_equipment_row_without_luck_scaling_keeps_default_band(self) -> None:
        payloads = {
            DROP_RATES: {
                "results": [
                    {"content_source": "task", "drop_type": "equipment", "base_chance": 0.1},
                    {"content_source": "task", "drop_type": "material", "base_chance": 0.3},
                    {"content_source": "dungeon", "drop_type": "equipment", "base_chance": 0.2, "luck_scaling": 0},
                ]
            }
        }
        tables = TuningTables.from_payloads(payloads)

        self.assertEqual(EQUIPMENT_LUCK_SCALING, tables.drop_rate("task", "equipment").luck_scaling)
        self.assertEqual(0.0, tables.drop_rate("task", "material").luck_scaling)
        self.assertEqual(0.0, tables.drop_rate("dungeon", "equipment").luck_scaling)

    def test_malformed_table_falls_back_to_defaults(self) -> None:
        payloads = {ENHANCEMENT_RULES: {"results": [{"enhancement_level": 1, "success_rate": "lots"}]}}
        with self.assertLogs("questcore.application.services.tuning_tables", level="WARNING"):
            tables = TuningTables.from_payloads(payloads)

        self.assertEqual(TuningTables.defaults().enhancement, tables.enhancement)

    def test_empty_table_falls_back_to_defaults(self) -> None:
        tables = TuningTables.from_payloads({DROP_RATES: {"results": []}})
        expected = TuningTables.from_payloads(DEFAULT_TUNING_TABLES)
        self.assertEqual(expected.drop_rates, tables.drop_rates)


if __name__ == "__main__":
    unittest.main()
