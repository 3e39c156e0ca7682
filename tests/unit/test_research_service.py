import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.research_service import ResearchService
from questcore.domain.events import ResearchUnlockedEvent
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.research import (
    RESEARCH_NODES,
    ResearchBranch,
    calculate_research_bonuses,
    nodes_for_branch,
    research_node,
)


class ResearchCatalogueTests(unittest.TestCase):
    def test_three_branches_of_five_chained_tiers(self) -> None:
        self.assertEqual(15, len(RESEARCH_NODES))
        for branch in ResearchBranch:
            nodes = nodes_for_branch(branch)
            self.assertEqual([1, 2, 3, 4, 5], [node.tier for node in nodes])
            self.assertIsNone(nodes[0].prerequisite_id)
            for previous, node in zip(nodes, nodes[1:]):
                self.assertEqual(previous.id, node.prerequisite_id)

    def test_costs_follow_tier(self) -> None:
        node = research_node("fortune_4")
        self.assertEqual((5, 400), (node.token_cost, node.gold_cost))
        self.assertEqual(2, len(research_node("combat_5").material_costs))
        self.assertIsNone(research_node("combat_9"))

    def test_calculate_sums_bonuses_and_ignores_unknown_ids(self) -> None:
        bonuses = calculate_research_bonuses(["combat_1", "combat_4", "efficiency_1", "retired_node"])

        self.assertAlmostEqual(0.06, bonuses.dungeon_success_bonus)
        self.assertAlmostEqual(0.05, bonuses.mission_duration_reduction)
        self.assertEqual(0.0, bonuses.gold_bonus)
        self.assertEqual(["combat_1", "combat_4", "efficiency_1", "retired_node"], bonuses.completed_nodes)


class ResearchServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.events = []
        self.service = ResearchService(event_publisher=self.events.append)
        self.character = PlayerCharacter(name="Scholar", gold=500)
        self.character.research_tokens = 4
        self.character.materials = {"essence:common": 3, "ore:common": 7}

    def test_unlock_spends_costs_and_recomputes_bonuses(self) -> None:
        node = self.service.unlock_node(self.character, "combat_1")

        self.assertEqual("combat_1", node.id)
        self.assertEqual(3, self.character.research_tokens)
        self.assertEqual(450, self.character.gold)
        self.assertNotIn("essence:common", self.character.materials)
        self.assertEqual(["combat_1"], self.character.research_bonuses.completed_nodes)
        self.assertAlmostEqual(0.02, self.character.research_bonuses.dungeon_success_bonus)
        self.assertEqual([ResearchUnlockedEvent], [type(event) for event in self.events])

    def test_prerequisite_is_required(self) -> None:
        self.assertIsNone(self.service.unlock_node(self.character, "combat_2"))
        self.assertEqual("requires combat_1", self.service.missing_requirement(self.character, research_node("combat_2")))

        self.service.unlock_node(self.character, "combat_1")
        node = self.service.unlock_node(self.character, "combat_2")

        self.assertEqual("combat_2", node.id)
        self.assertEqual(2, self.character.materials["ore:common"])
        self.assertAlmostEqual(0.05, self.character.research_bonuses.boss_damage_bonus)

    def test_failed_unlock_spends_nothing(self) -> None:
        self.character.research_tokens = 0

        self.assertIsNone(self.service.unlock_node(self.character, "combat_1"))

        self.assertEqual(500, self.character.gold)
        self.assertEqual(3, self.character.materials["essence:common"])
        self.assertEqual([], self.character.research_bonuses.completed_nodes)
        self.assertEqual([], self.events)

    def test_missing_requirement_reasons(self) -> None:
        node = research_node("combat_1")
        self.character.gold = 10
        self.assertEqual("not enough gold", self.service.missing_requirement(self.character, node))

        self.character.gold = 500
        self.character.materials["essence:common"] = 2
        self.assertEqual("not enough common essence", self.service.missing_requirement(self.character, node))

        self.character.materials["essence:common"] = 3
        self.assertIsNone(self.service.missing_requirement(self.character, node))

    def test_node_cannot_be_researched_twice(self) -> None:
        self.character.materials["essence:common"] = 6
        self.service.unlock_node(self.character, "combat_1")

        self.assertIsNone(self.service.unlock_node(self.character, "combat_1"))
        self.assertEqual(3, self.character.research_tokens)

    def test_unknown_node_is_rejected(self) -> None:
        self.assertIsNone(self.service.unlock_node(self.character, "alchemy_1"))


if __name__ == "__main__":
    unittest.main()
