from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from questcore.domain.errors import UnsupportedAchievementError
from questcore.domain.events import AchievementUnlockedEvent
from questcore.domain.models.achievement import (
    DEFAULT_ACHIEVEMENTS,
    Achievement,
    AchievementDefinition,
    AchievementKey,
    RewardType,
    TrackedValue,
)
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.loot import Equipment, ItemRarity


logger = logging.getLogger(__name__)


def validate_definitions(definitions: Iterable[AchievementDefinition], *, strict: bool = False) -> list[str]:
    """Return keys whose tracked value is unsupported; raise on the first one when strict."""
    unsupported: list[str] = []
    seen: set[str] = set()
    for definition in definitions:
        if not definition.key:
            raise UnsupportedAchievementError("", "definition has no key")
        if definition.key in seen:
            raise UnsupportedAchievementError(definition.key, "duplicate key")
        seen.add(definition.key)
        if not definition.is_supported:
            if strict:
                raise UnsupportedAchievementError(definition.key)
            unsupported.append(definition.key)
    return unsupported


class AchievementTracker:
    def __init__(
        self,
        definitions: Iterable[AchievementDefinition] = DEFAULT_ACHIEVEMENTS,
        event_publisher=None,
    ) -> None:
        self.definitions = {definition.key: definition for definition in definitions}
        self._event_publisher = event_publisher
        for key in validate_definitions(self.definitions.values()):
            logger.warning("Achievement %s has no supported tracked value and will never progress", key)

    def ensure_records(self, character: PlayerCharacter) -> None:
        for key, definition in self.definitions.items():
            if key not in character.achievements:
                character.achievements[key] = Achievement(key=key, target_value=definition.target_value)

    def tracked_value(self, character: PlayerCharacter, definition: AchievementDefinition) -> int:
        tracked = definition.tracked_value
        if tracked is TrackedValue.TASKS_COMPLETED:
            return int(character.tasks_completed)
        if tracked is TrackedValue.LONGEST_STREAK:
            return int(character.longest_streak)
        if tracked is TrackedValue.LEVEL:
            return int(character.level)
        if tracked is TrackedValue.HAS_PARTNER:
            return 1 if character.has_partner else 0
        if tracked is TrackedValue.HAS_CLASS:
            return 1 if character.character_class is not None else 0
        if tracked is TrackedValue.COUNTER:
            return int(character.achievement_counters.get(definition.key, 0))
        raise UnsupportedAchievementError(definition.key)

    def check_all(self, character: PlayerCharacter, now: datetime) -> list[Achievement]:
        """Re-derive progress for every locked achievement and return the ones unlocked now."""
        self.ensure_records(character)
        unlocked: list[Achievement] = []
        for key, definition in self.definitions.items():
            record = character.achievements[key]
            if record.is_unlocked or not definition.is_supported:
                continue
            if record.record(self.tracked_value(character, definition), now):
                unlocked.append(record)
                self._announce(character, definition)
        return unlocked

    def increment(
        self,
        character: PlayerCharacter,
        key: AchievementKey | str,
        amount: int = 1,
        *,
        now: datetime,
    ) -> Optional[Achievement]:
        raw_key = key.value if isinstance(key, AchievementKey) else str(key)
        definition = self.definitions.get(raw_key)
        if definition is None:
            raise UnsupportedAchievementError(raw_key, "unknown key")
        if definition.tracked_value is not TrackedValue.COUNTER:
            raise UnsupportedAchievementError(raw_key, "not a counter achievement")
        character.achievement_counters[raw_key] = int(character.achievement_counters.get(raw_key, 0)) + max(0, int(amount))
        self.ensure_records(character)
        record = character.achievements[raw_key]
        if record.record(character.achievement_counters[raw_key], now):
            self._announce(character, definition)
            return record
        return None

    def note_item(self, character: PlayerCharacter, item: Optional[Equipment], *, now: datetime) -> None:
        if item is None:
            return
        if item.rarity.order >= ItemRarity.RARE.order:
            self.increment(character, AchievementKey.RARE_FIND, now=now)
        if item.rarity is ItemRarity.LEGENDARY:
            self.increment(character, AchievementKey.LEGENDARY_COLLECTOR, now=now)

    def claim_reward(self, character: PlayerCharacter, key: AchievementKey | str) -> bool:
        raw_key = key.value if isinstance(key, AchievementKey) else str(key)
        definition = self.definitions.get(raw_key)
        record = character.achievements.get(raw_key)
        if definition is None or record is None or not record.is_unlocked or record.reward_claimed:
            return False
        if definition.reward_type is RewardType.EXP:
            character.current_exp += definition.reward_amount
        elif definition.reward_type is RewardType.GOLD:
            character.gold += definition.reward_amount
        else:
            character.gems += definition.reward_amount
        record.reward_claimed = True
        return True

    def _announce(self, character: PlayerCharacter, definition: AchievementDefinition) -> None:
        logger.info("Achievement unlocked: %s", definition.key, extra={"character_id": character.id})
        if callable(self._event_publisher):
            self._event_publisher(
                AchievementUnlockedEvent(character_id=character.id, key=definition.key, name=definition.name)
            )
