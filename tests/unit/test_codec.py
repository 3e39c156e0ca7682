import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.domain.models.character import PlayerCharacter
from questcore.infrastructure.db.codec import character_from_payload, character_to_payload


class CharacterPayloadTests(unittest.TestCase):
    def test_stored_rows_with_retired_buff_column_still_load(self) -> None:
        payload = {
            "id": "c1",
            "name": "Veteran",
            "gold": 40,
            "regen_buff_expires_at": "2024-08-01T09:00:00",
            "research_bonuses": {"completed_nodes": ["fortune_1"], "rare_drop_chance_bonus": 0.02},
        }

        character = character_from_payload(payload)

        self.assertEqual(("c1", 40), (character.id, character.gold))
        self.assertEqual(["fortune_1"], character.research_bonuses.completed_nodes)
        self.assertNotIn("regen_buff_expires_at", character_to_payload(character))

    def test_research_bonus_fields_survive_a_save(self) -> None:
        character = PlayerCharacter(name="Scholar")
        character.research_bonuses.crit_chance_bonus = 0.01
        character.research_bonuses.combat_power_bonus = 0.03

        loaded = character_from_payload(character_to_payload(character))

        self.assertAlmostEqual(0.01, loaded.research_bonuses.crit_chance_bonus)
        self.assertAlmostEqual(0.03, loaded.research_bonuses.combat_power_bonus)


if __name__ == "__main__":
    unittest.main()
