from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from questcore.application.dtos import RewardResult
from questcore.application.services.achievement_tracker import AchievementTracker
from questcore.application.services.balance_tables import AUTO_CONFIRM_AFTER_SECONDS
from questcore.application.services.progression_service import ProgressionService
from questcore.application.services.reward_pipeline import RewardPipeline
from questcore.application.services.verification import detect_anomalies
from questcore.domain.events import (
    TaskCompletedEvent,
    TaskConfirmedEvent,
    TaskDisputedEvent,
    TaskEscrowedEvent,
)
from questcore.domain.models.achievement import AchievementKey
from questcore.domain.models.bond import Bond
from questcore.domain.models.character import PlayerCharacter
from questcore.domain.models.routine import RoutineBundle
from questcore.domain.models.task import DEFAULT_DISPUTE_REASON, GameTask, Recurrence, TaskStatus
from questcore.domain.models.verification import VerificationSignals


logger = logging.getLogger(__name__)

RECENT_COMPLETION_WINDOW = timedelta(days=1)


def _months_between(start: datetime, end: datetime) -> int:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if (end.day, end.time()) < (start.day, start.time()):
        months -= 1
    return months


def recurrence_window_elapsed(recurrence: Recurrence, completed_at: datetime, now: datetime) -> bool:
    same_day = completed_at.date() == now.date()
    if recurrence is Recurrence.DAILY:
        return not same_day
    if recurrence is Recurrence.WEEKDAYS:
        return now.weekday() < 5 and not same_day
    if recurrence is Recurrence.WEEKENDS:
        return now.weekday() >= 5 and not same_day
    if recurrence is Recurrence.WEEKLY:
        return (now - completed_at).days >= 7
    if recurrence is Recurrence.BIWEEKLY:
        return (now - completed_at).days >= 14
    if recurrence is Recurrence.MONTHLY:
        return _months_between(completed_at, now) >= 1
    return False


class TaskLifecycleService:
    """Pending -> completed, with a partner escrow branch that ends confirmed or disputed."""

    def __init__(
        self,
        pipeline: RewardPipeline | None = None,
        progression: ProgressionService | None = None,
        achievements: AchievementTracker | None = None,
        event_publisher=None,
    ) -> None:
        self.pipeline = pipeline or RewardPipeline()
        self.progression = progression or ProgressionService(event_publisher=event_publisher)
        self.achievements = achievements or AchievementTracker(event_publisher=event_publisher)
        self._event_publisher = event_publisher

    def _publish(self, event: object) -> None:
        if callable(self._event_publisher):
            self._event_publisher(event)

    def complete_task(
        self,
        task: GameTask,
        character: PlayerCharacter,
        *,
        now: datetime,
        bond: Optional[Bond] = None,
        signals: Optional[VerificationSignals] = None,
        routines: Iterable[RoutineBundle] = (),
        sibling_tasks: Iterable[GameTask] = (),
    ) -> Optional[RewardResult]:
        if task.status is not TaskStatus.PENDING:
            return None

        if signals is None:
            signals = VerificationSignals(
                health_verified=task.health_verified,
                geofence_in_range=task.geofence_in_range,
                anomalies=detect_anomalies(character.recent_completions, now),
            )
        result = self.pipeline.compute(
            task,
            character,
            now=now,
            bond=bond,
            signals=signals,
            routines=routines,
            sibling_tasks=sibling_tasks,
        )

        task.completed_at = now
        task.completed_by = character.id
        if result.pending_partner_confirmation:
            task.status = TaskStatus.PENDING_PARTNER_CONFIRMATION
            task.pending_partner_confirmation = True
            self._publish(
                TaskEscrowedEvent(
                    character_id=character.id,
                    task_id=task.id,
                    exp_pending=result.exp,
                    gold_pending=result.gold,
                )
            )
            return result

        task.status = TaskStatus.COMPLETED
        self.pipeline.apply(result, task, character, bond=bond)
        self._record_completion(character, now, completed_at=now)
        self._after_reward(task, character, result, now)
        self._publish(
            TaskCompletedEvent(
                character_id=character.id,
                task_id=task.id,
                exp_awarded=result.total_exp,
                gold_awarded=result.total_gold,
            )
        )
        return result

    def confirm_task(
        self,
        task: GameTask,
        character: PlayerCharacter,
        *,
        now: datetime,
        bond: Optional[Bond] = None,
        automatic: bool = False,
        routines: Iterable[RoutineBundle] = (),
        sibling_tasks: Iterable[GameTask] = (),
    ) -> Optional[RewardResult]:
        """Release an escrowed completion by recomputing its rewards as partner-verified.

        The counters, streak and routine check that a direct completion runs
        happen here instead, once the rewards are actually granted.
        """
        if not task.awaiting_partner:
            return None

        signals = VerificationSignals(health_verified=task.health_verified)
        result = self.pipeline.compute(
            task,
            character,
            now=now,
            bond=bond,
            signals=signals.without_anomalies(),
            partner_confirmed=True,
            routines=routines,
            sibling_tasks=sibling_tasks,
            completed_at=task.completed_at,
        )
        task.pending_partner_confirmation = False
        task.partner_confirmed = True
        task.status = TaskStatus.COMPLETED
        self.pipeline.apply(result, task, character, bond=bond)
        self._record_completion(character, now, completed_at=task.completed_at or now)
        self._after_reward(task, character, result, now)
        self._publish(
            TaskConfirmedEvent(
                character_id=character.id,
                task_id=task.id,
                exp_awarded=result.total_exp,
                gold_awarded=result.total_gold,
                automatic=automatic,
            )
        )
        return result

    def dispute_task(self, task: GameTask, character: PlayerCharacter, reason: Optional[str] = None) -> bool:
        if not task.awaiting_partner:
            return False
        task.clear_completion()
        task.partner_dispute_reason = reason or DEFAULT_DISPUTE_REASON
        self._publish(TaskDisputedEvent(character_id=character.id, task_id=task.id, reason=task.partner_dispute_reason))
        return True

    def auto_confirm_expired(
        self,
        tasks: Iterable[GameTask],
        character: PlayerCharacter,
        *,
        now: datetime,
        bond: Optional[Bond] = None,
        routines: Iterable[RoutineBundle] = (),
        sibling_tasks: Iterable[GameTask] = (),
    ) -> list[RewardResult]:
        cutoff = now - timedelta(seconds=AUTO_CONFIRM_AFTER_SECONDS)
        routines = list(routines)
        sibling_tasks = list(sibling_tasks)
        confirmed: list[RewardResult] = []
        for task in tasks:
            if not task.awaiting_partner or task.completed_by != character.id:
                continue
            if task.completed_at is None or task.completed_at >= cutoff:
                continue
            result = self.confirm_task(
                task,
                character,
                now=now,
                bond=bond,
                automatic=True,
                routines=routines,
                sibling_tasks=sibling_tasks,
            )
            if result is not None:
                confirmed.append(result)
        if confirmed:
            logger.info("Auto-confirmed %s escrowed task(s)", len(confirmed), extra={"character_id": character.id})
        return confirmed

    @staticmethod
    def reset_recurring_tasks(tasks: Iterable[GameTask], now: datetime) -> list[GameTask]:
        reset: list[GameTask] = []
        for task in tasks:
            if not task.is_recurring or task.status is not TaskStatus.COMPLETED or task.completed_at is None:
                continue
            if recurrence_window_elapsed(task.recurrence, task.completed_at, now):
                task.clear_completion()
                task.coop_bonus_awarded = False
                reset.append(task)
        return reset

    def _record_completion(self, character: PlayerCharacter, now: datetime, *, completed_at: datetime) -> None:
        self.progression.reset_daily_counters_if_needed(character, now.date())
        character.tasks_completed += 1
        character.tasks_completed_today += 1
        character.recent_completions = [
            stamp for stamp in character.recent_completions if stamp > now - RECENT_COMPLETION_WINDOW
        ]
        character.recent_completions.append(completed_at)
        self.progression.update_streak(character, now.date())

    def _after_reward(self, task: GameTask, character: PlayerCharacter, result: RewardResult, now: datetime) -> None:
        if result.loot is not None:
            self.achievements.note_item(character, result.loot.equipment, now=now)
        if task.is_from_partner:
            self.achievements.increment(character, AchievementKey.POWER_COUPLE, now=now)
        self.achievements.check_all(character, now)
        pending = self.progression.preview_pending(character)
        if pending is not None:
            logger.debug("Level %s is ready to claim", pending.next_level, extra={"character_id": character.id})
