from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Optional

from questcore.application.services.balance_tables import (
    MISSION_CONSOLATION_DIVISOR,
    MISSION_CONSOLATION_MIN_EXP,
    MISSION_CONSOLATION_MIN_GOLD,
    RESEARCH_TOKEN_TABLE,
)
from questcore.application.services.loot_service import LootService
from questcore.application.services.progression_service import ProgressionService
from questcore.domain.events import MissionResolvedEvent
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.mission import ActiveMission, Mission, MissionRarity, MissionResolution


logger = logging.getLogger(__name__)


class MissionService:
    """Timed training sessions: one slot per character, resolved once."""

    def __init__(
        self,
        progression: ProgressionService | None = None,
        loot_service: LootService | None = None,
        rng: random.Random | None = None,
        event_publisher=None,
    ) -> None:
        self.rng = rng or random.Random()
        self.progression = progression or ProgressionService(event_publisher=event_publisher)
        self.loot_service = loot_service or LootService(rng=self.rng)
        self._event_publisher = event_publisher

    def _publish(self, event: object) -> None:
        if callable(self._event_publisher):
            self._event_publisher(event)

    @staticmethod
    def effective_duration(mission: Mission, character: PlayerCharacter) -> int:
        reduction = min(1.0, max(0.0, float(character.research_bonuses.mission_duration_reduction)))
        return int(mission.duration_seconds * (1.0 - reduction))

    def start(self, mission: Mission, character: PlayerCharacter, now: datetime) -> Optional[ActiveMission]:
        active = character.active_mission
        if active is not None and not active.is_claimed:
            return None
        if character.active_dungeon_run_id:
            return None
        if not mission.meets_requirements(character):
            return None
        started = ActiveMission.begin(mission, character.id, now, self.effective_duration(mission, character))
        character.active_mission = started
        logger.debug("Mission %s started", mission.name, extra={"character_id": character.id})
        return started

    def check_completion(
        self,
        character: PlayerCharacter,
        mission: Mission,
        now: datetime,
    ) -> Optional[MissionResolution]:
        """Resolve the active mission once its deadline passed.

        Safe to poll: before the deadline nothing happens, and after the
        mission was claimed the stored resolution is returned unchanged.
        """
        active = character.active_mission
        if active is None or active.mission_id != mission.id:
            return None
        if active.is_claimed:
            return active.resolution
        if not active.is_complete(now):
            return None

        success = self.rng.uniform(0, 1) <= mission.success_rate(character.effective_stats)
        if success:
            resolution = self._resolve_success(character, mission)
        else:
            resolution = self._resolve_failure(character, mission)

        active.claim(resolution)
        character.active_mission = None
        self._publish(
            MissionResolvedEvent(
                character_id=character.id,
                mission_id=mission.id,
                success=resolution.success,
                exp_awarded=resolution.exp_earned,
                gold_awarded=resolution.gold_earned,
            )
        )
        return resolution

    def _resolve_success(self, character: PlayerCharacter, mission: Mission) -> MissionResolution:
        resolution = MissionResolution(
            mission_id=mission.id,
            success=True,
            exp_earned=int(mission.exp_reward),
            gold_earned=int(mission.gold_reward),
        )
        resolution.levels_gained = self._grant(character, resolution.exp_earned, resolution.gold_earned)

        if self.rng.random() <= mission.rarity.stat_reward_chance:
            character.stats.increase(mission.reward_stat, 1)
            resolution.stat_gained = mission.reward_stat

        luck = character.effective_stats.luck
        drop_chance = mission.item_drop_chance(luck)
        if drop_chance > 0 and self.rng.random() <= drop_chance:
            item = self.loot_service.generate_equipment(
                mission.rarity.drop_tier,
                luck,
                rare_bonus=character.research_bonuses.rare_drop_chance_bonus,
            )
            item.owner_id = character.id
            character.equipment.append(item)
            resolution.item = item

        resolution.research_tokens = self.roll_research_tokens(mission.rarity)
        character.research_tokens += resolution.research_tokens

        if mission.rank_up_target is not None and self.progression.evolve_class(character, mission.rank_up_target):
            resolution.new_class = mission.rank_up_target
            logger.info(
                "Class changed to %s",
                mission.rank_up_target.value,
                extra={"character_id": character.id},
            )
        return resolution

    def _resolve_failure(self, character: PlayerCharacter, mission: Mission) -> MissionResolution:
        exp = max(MISSION_CONSOLATION_MIN_EXP, int(mission.exp_reward) // MISSION_CONSOLATION_DIVISOR)
        gold = max(MISSION_CONSOLATION_MIN_GOLD, int(mission.gold_reward) // MISSION_CONSOLATION_DIVISOR)
        resolution = MissionResolution(mission_id=mission.id, success=False, exp_earned=exp, gold_earned=gold)
        resolution.levels_gained = self._grant(character, exp, gold)
        return resolution

    def _grant(self, character: PlayerCharacter, exp: int, gold: int) -> list[int]:
        before = character.level
        character.gold += max(0, int(gold))
        self.progression.gain_exp(character, exp, auto_level=True)
        return list(range(before + 1, character.level + 1))

    def roll_research_tokens(self, rarity: MissionRarity) -> int:
        chance, low, high = RESEARCH_TOKEN_TABLE[rarity.value]
        if self.rng.random() > chance:
            return 0
        return self.rng.randint(low, high)

