from __future__ import annotations

import logging
from typing import Optional

from questcore.application.services.loot_service import material_key
from questcore.domain.events import ResearchUnlockedEvent
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.research import ResearchNode, calculate_research_bonuses, research_node
from questcore.domain.models.stats import ResearchBonuses


logger = logging.getLogger(__name__)


class ResearchService:
    """Spends research tokens, gold and materials on permanent research nodes."""

    def __init__(self, event_publisher=None) -> None:
        self._event_publisher = event_publisher

    def _publish(self, event: object) -> None:
        if callable(self._event_publisher):
            self._event_publisher(event)

    @staticmethod
    def missing_requirement(character: PlayerCharacter, node: ResearchNode) -> Optional[str]:
        """Why ``node`` cannot be researched right now, or ``None`` when it can."""
        completed = character.research_bonuses.completed_nodes
        if node.id in completed:
            return "already researched"
        if node.prerequisite_id is not None and node.prerequisite_id not in completed:
            return f"requires {node.prerequisite_id}"
        if character.research_tokens < node.token_cost:
            return "not enough research tokens"
        if character.gold < node.gold_cost:
            return "not enough gold"
        for cost in node.material_costs:
            held = int(character.materials.get(material_key(cost.material_type, cost.rarity), 0))
            if held < cost.quantity:
                return f"not enough {cost.rarity.value} {cost.material_type.value}"
        return None

    def unlock_node(self, character: PlayerCharacter, node_id: str) -> Optional[ResearchNode]:
        node = research_node(node_id)
        if node is None:
            logger.debug("Unknown research node %s", node_id, extra={"character_id": character.id})
            return None
        blocker = self.missing_requirement(character, node)
        if blocker is not None:
            logger.debug("Research %s blocked: %s", node.id, blocker, extra={"character_id": character.id})
            return None

        character.research_tokens -= node.token_cost
        character.gold -= node.gold_cost
        for cost in node.material_costs:
            key = material_key(cost.material_type, cost.rarity)
            character.materials[key] -= cost.quantity
            if character.materials[key] <= 0:
                del character.materials[key]

        self.recalculate(character, [*character.research_bonuses.completed_nodes, node.id])
        logger.info("Researched %s", node.name, extra={"character_id": character.id})
        self._publish(ResearchUnlockedEvent(character_id=character.id, node_id=node.id, name=node.name))
        return node

    @staticmethod
    def recalculate(character: PlayerCharacter, completed_node_ids=None) -> ResearchBonuses:
        """Rebuild the bonus aggregate from the completed node list."""
        if completed_node_ids is None:
            completed_node_ids = character.research_bonuses.completed_nodes
        character.research_bonuses = calculate_research_bonuses(completed_node_ids)
        return character.research_bonuses
