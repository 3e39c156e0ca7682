from __future__ import annotations

from datetime import date

from questcore.application.dtos import LevelUpPendingView
from questcore.application.services.balance_tables import (
    CLASS_EVOLUTION_LEVEL,
    LEVEL_CAP,
    LEVEL_UP_GOLD_PER_LEVEL,
    LEVEL_UP_STAT_POINTS,
    exp_required_for_level,
)
from questcore.domain.events import LevelUpAppliedEvent, LevelUpPendingEvent, StreakAtRiskEvent
from questcore.domain.models.character import CharacterClass, PlayerCharacter
from questcore.domain.models.stats import StatType


class ProgressionService:
    def __init__(self, event_publisher=None) -> None:
        self._event_publisher = event_publisher

    def _publish(self, event: object) -> None:
        if callable(self._event_publisher):
            self._event_publisher(event)

    def preview_pending(self, character: PlayerCharacter) -> LevelUpPendingView | None:
        current_level = max(1, int(getattr(character, "level", 1) or 1))
        exp = max(0, int(getattr(character, "current_exp", 0) or 0))
        if current_level >= LEVEL_CAP:
            return None
        next_level = current_level + 1
        required = exp_required_for_level(next_level)
        if exp < required:
            return None
        return LevelUpPendingView(
            character_id=character.id,
            current_level=current_level,
            next_level=next_level,
            exp_current=exp,
            exp_required=int(required),
            summary=f"You can level up to {next_level}.",
        )

    def gain_exp(self, character: PlayerCharacter, amount: int, *, auto_level: bool = False) -> list[str]:
        character.current_exp = max(0, int(character.current_exp) + max(0, int(amount)))
        if auto_level:
            return self.apply_level_progression(character)
        return []

    def apply_level_progression(self, character: PlayerCharacter) -> list[str]:
        """Resolve every level-up the current EXP pays for.

        Each step consumes the threshold for the next level, so the invariant
        ``current_exp < exp_required_for_level(level + 1)`` holds on return
        unless the character sits at the cap.
        """
        current_level = max(1, int(getattr(character, "level", 1) or 1))
        messages: list[str] = []
        while current_level < LEVEL_CAP and character.current_exp >= exp_required_for_level(current_level + 1):
            target_level = current_level + 1
            self._publish(
                LevelUpPendingEvent(
                    character_id=character.id,
                    from_level=current_level,
                    to_level=target_level,
                    exp=int(character.current_exp),
                )
            )
            character.current_exp -= exp_required_for_level(target_level)
            current_level = target_level
            character.level = current_level

            gold_gain = current_level * LEVEL_UP_GOLD_PER_LEVEL
            character.unspent_stat_points += LEVEL_UP_STAT_POINTS
            character.gold += gold_gain
            messages.append(
                f"Level up! You reached level {current_level} (+{LEVEL_UP_STAT_POINTS} stat point, +{gold_gain} gold)."
            )
            if (
                current_level == CLASS_EVOLUTION_LEVEL
                and character.character_class is not None
                and character.character_class.is_starter
            ):
                character.pending_class_evolution = True
                messages.append("Your class is ready to evolve.")

            self._publish(
                LevelUpAppliedEvent(
                    character_id=character.id,
                    from_level=current_level - 1,
                    to_level=current_level,
                    stat_points_gained=LEVEL_UP_STAT_POINTS,
                    gold_gained=gold_gain,
                )
            )
        return messages

    @staticmethod
    def spend_stat_point(character: PlayerCharacter, stat: StatType | str) -> bool:
        resolved = StatType.normalize(stat)
        if resolved is None or character.unspent_stat_points <= 0:
            return False
        character.unspent_stat_points -= 1
        character.stats.increase(resolved, 1)
        return True

    @staticmethod
    def evolve_class(character: PlayerCharacter, target) -> bool:
        target = CharacterClass.normalize(target)
        current = character.character_class
        if current is None or target not in current.evolution_options:
            return False
        character.character_class = target
        character.pending_class_evolution = False
        return True

    def update_streak(self, character: PlayerCharacter, today: date, *, completed_task: bool = True) -> int:
        last = character.last_active_on
        gap = (today - last).days if last is not None else None

        if completed_task:
            if gap is None or gap == 0:
                if character.current_streak == 0:
                    character.current_streak = 1
            elif gap == 1:
                character.current_streak += 1
            elif gap == 2 and self._consume_freeze(character):
                character.current_streak += 1
            else:
                character.current_streak = 1
            character.longest_streak = max(character.longest_streak, character.current_streak)
        elif gap is not None and gap > 1:
            if not (gap == 2 and self._consume_freeze(character)):
                character.current_streak = 0

        character.last_active_on = today
        return character.current_streak

    def _consume_freeze(self, character: PlayerCharacter) -> bool:
        if character.streak_freezes <= 0:
            return False
        character.streak_freezes -= 1
        self._publish(
            StreakAtRiskEvent(
                character_id=character.id,
                current_streak=int(character.current_streak),
                freezes_remaining=int(character.streak_freezes),
            )
        )
        return True

    @staticmethod
    def reset_daily_counters_if_needed(character: PlayerCharacter, today: date) -> bool:
        if character.last_daily_reset_on == today:
            return False
        character.tasks_completed_today = 0
        character.last_daily_reset_on = today
        return True
