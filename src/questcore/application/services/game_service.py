from __future__ import annotations

import inspect
import logging
import random
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Optional

from questcore.application.dtos import (
    ActionResult,
    CharacterSummaryView,
    EnhancementResult,
    LevelUpPendingView,
    RewardResult,
    SalvageResult,
)
from questcore.application.services.achievement_tracker import AchievementTracker
from questcore.application.services.balance_tables import LEVEL_CAP, exp_required_for_level
from questcore.application.services.character_lock import CharacterLockRegistry
from questcore.application.services.collaborators import (
    FireAndForgetDispatcher,
    LoggingNotifier,
    NotificationGateway,
    SyncGateway,
)
from questcore.application.services.dungeon_service import DungeonService
from questcore.application.services.event_bus import EventBus
from questcore.application.services.forge_service import ForgeService
from questcore.application.services.loot_service import LootService
from questcore.application.services.mission_service import MissionService
from questcore.application.services.progression_service import ProgressionService
from questcore.application.services.research_service import ResearchService
from questcore.application.services.reward_pipeline import RewardPipeline
from questcore.application.services.task_lifecycle import TaskLifecycleService
from questcore.application.services.tuning_tables import TuningTables
from questcore.domain.events import (
    AchievementUnlockedEvent,
    LevelUpAppliedEvent,
    ResearchUnlockedEvent,
    StreakAtRiskEvent,
    TaskDisputedEvent,
    TaskEscrowedEvent,
)
from questcore.domain.models.bond import Bond
from questcore.domain.models.character import CharacterClass, PlayerCharacter
from questcore.domain.models.dungeon import Dungeon, DungeonCompletionResult, DungeonRun
from questcore.domain.models.mission import ActiveMission, Mission, MissionResolution
from questcore.domain.models.research import ResearchNode
from questcore.domain.models.routine import RoutineBundle
from questcore.domain.models.task import GameTask
from questcore.domain.models.verification import VerificationSignals
from questcore.domain.repositories import (
    AchievementRepository,
    CharacterRepository,
    DungeonRunRepository,
    TaskRepository,
)


logger = logging.getLogger(__name__)


class GameService:
    """Entry point for callers that want locking, persistence and side effects handled.

    Every mutating call holds the character lock, runs one engine, re-checks
    achievements, persists the touched records together and then hands sync and
    notification work to the dispatcher.
    """

    def __init__(
        self,
        character_repo: CharacterRepository,
        task_repo: TaskRepository,
        run_repo: DungeonRunRepository | None = None,
        achievement_repo: AchievementRepository | None = None,
        *,
        tuning: TuningTables | None = None,
        rng: random.Random | None = None,
        atomic_state_persistor: Callable[..., None] | None = None,
        notifier: NotificationGateway | None = None,
        sync_gateway: SyncGateway | None = None,
        dispatcher: FireAndForgetDispatcher | None = None,
        event_bus: EventBus | None = None,
        locks: CharacterLockRegistry | None = None,
    ) -> None:
        self.character_repo = character_repo
        self.task_repo = task_repo
        self.run_repo = run_repo
        self.achievement_repo = achievement_repo
        self.atomic_state_persistor = atomic_state_persistor
        self.notifier = notifier or LoggingNotifier()
        self.sync_gateway = sync_gateway
        self.dispatcher = dispatcher or FireAndForgetDispatcher()
        self.event_bus = event_bus or EventBus()
        self.locks = locks or CharacterLockRegistry()
        self.rng = rng or random.Random()
        self.tuning = tuning or TuningTables.defaults()

        publish = self.event_bus.publish
        self.progression_service = ProgressionService(event_publisher=publish)
        self.achievements = AchievementTracker(event_publisher=publish)
        self.loot_service = LootService(tuning=self.tuning, rng=self.rng)
        self.lifecycle = TaskLifecycleService(
            pipeline=RewardPipeline(loot_service=self.loot_service, rng=self.rng),
            progression=self.progression_service,
            achievements=self.achievements,
            event_publisher=publish,
        )
        self.missions = MissionService(
            progression=self.progression_service,
            loot_service=self.loot_service,
            rng=self.rng,
            event_publisher=publish,
        )
        self.dungeons = DungeonService(
            progression=self.progression_service,
            loot_service=self.loot_service,
            rng=self.rng,
            event_publisher=publish,
        )
        self.forge = ForgeService(tuning=self.tuning, rng=self.rng)
        self.research = ResearchService(event_publisher=publish)

        self._bonds: dict[str, Bond] = {}
        self._routines: dict[str, list[RoutineBundle]] = {}

        self.event_bus.subscribe(AchievementUnlockedEvent, self._on_achievement_unlocked)
        self.event_bus.subscribe(LevelUpAppliedEvent, self._on_level_up)
        self.event_bus.subscribe(StreakAtRiskEvent, self._on_streak_at_risk)
        self.event_bus.subscribe(TaskEscrowedEvent, self._on_task_escrowed)
        self.event_bus.subscribe(TaskDisputedEvent, self._on_task_disputed)
        self.event_bus.subscribe(ResearchUnlockedEvent, self._on_research_unlocked)

    # -- characters -----------------------------------------------------

    def create_character(
        self,
        name: str,
        *,
        character_class: CharacterClass | str | None = None,
        partner_id: str | None = None,
    ) -> PlayerCharacter:
        character = PlayerCharacter(name=name, character_class=character_class, partner_id=partner_id)
        with self.locks.hold(character.id):
            self.achievements.ensure_records(character)
            self._persist(character)
        return character

    def _require_character(self, character_id: str) -> PlayerCharacter:
        character = self.character_repo.get(character_id)
        if character is None:
            raise ValueError(f"Unknown character '{character_id}'")
        if self.achievement_repo is not None and not character.achievements:
            for record in self.achievement_repo.list_for_character(character_id):
                character.achievements[record.key] = record
        return character

    def get_character_summary(self, character_id: str) -> CharacterSummaryView | None:
        character = self.character_repo.get(character_id)
        if character is None:
            return None
        at_cap = character.level >= LEVEL_CAP
        return CharacterSummaryView(
            id=character.id,
            name=character.name,
            level=character.level,
            exp=character.current_exp,
            exp_to_next=0 if at_cap else max(0, exp_required_for_level(character.level + 1) - character.current_exp),
            gold=character.gold,
            gems=character.gems,
            class_name=character.character_class.value if character.character_class else "",
            streak=character.current_streak,
            unlocked_achievements=sum(1 for record in character.achievements.values() if record.is_unlocked),
        )

    def preview_level_up(self, character_id: str) -> LevelUpPendingView | None:
        return self.progression_service.preview_pending(self._require_character(character_id))

    def claim_level_up(self, character_id: str, now: datetime) -> ActionResult:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            messages = self.progression_service.apply_level_progression(character)
            if not messages:
                return ActionResult(messages=["No level-up is ready."], ok=False)
            self.achievements.check_all(character, now)
            self._persist(character)
        return ActionResult(messages=messages)

    def spend_stat_point(self, character_id: str, stat) -> bool:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            if not self.progression_service.spend_stat_point(character, stat):
                return False
            self._persist(character)
        return True

    def evolve_class(self, character_id: str, target: CharacterClass | str, now: datetime) -> bool:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            if not self.progression_service.evolve_class(character, target):
                return False
            self.achievements.check_all(character, now)
            self._persist(character)
        return True

    def claim_achievement_reward(self, character_id: str, key) -> bool:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            if not self.achievements.claim_reward(character, key):
                return False
            self._persist(character)
        return True

    # -- bonds and routines ---------------------------------------------

    def register_bond(self, bond: Bond) -> None:
        for member_id in bond.member_ids:
            self._bonds[member_id] = bond

    def bond_for(self, character_id: str | None) -> Optional[Bond]:
        if not character_id:
            return None
        return self._bonds.get(character_id)

    def _bonded_ids(self, character_id: str) -> tuple[str, ...]:
        """The character plus every bond partner; the bond is shared state."""
        ids = [character_id]
        bond = self.bond_for(character_id)
        if bond is not None:
            ids.extend(member_id for member_id in bond.member_ids if member_id != character_id)
        return tuple(ids)

    def register_routine(self, routine: RoutineBundle) -> None:
        routines = self._routines.setdefault(routine.owner_id, [])
        routines[:] = [row for row in routines if row.id != routine.id]
        routines.append(routine)

    # -- tasks ----------------------------------------------------------

    def add_task(self, task: GameTask) -> GameTask:
        self.task_repo.save(task)
        return task

    def _require_task(self, task_id: str) -> GameTask:
        task = self.task_repo.get(task_id)
        if task is None:
            raise ValueError(f"Unknown task '{task_id}'")
        return task

    def complete_task(
        self,
        character_id: str,
        task_id: str,
        now: datetime,
        *,
        signals: VerificationSignals | None = None,
    ) -> RewardResult | None:
        with self.locks.hold(*self._bonded_ids(character_id)):
            character = self._require_character(character_id)
            task = self._require_task(task_id)
            owner_id = task.owner_id or character.id
            result = self.lifecycle.complete_task(
                task,
                character,
                now=now,
                bond=self.bond_for(character.id),
                signals=signals,
                routines=self._routines.get(owner_id, ()),
                sibling_tasks=self.task_repo.list_for_owner(owner_id),
            )
            if result is None:
                return None
            self._persist(character, tasks=[task])
        self._after_commit(character, tasks=[task])
        return result

    def confirm_task(self, task_id: str, now: datetime) -> RewardResult | None:
        """Partner confirmation; rewards go to whoever completed the task."""
        task = self._require_task(task_id)
        if not task.awaiting_partner or not task.completed_by:
            return None
        with self.locks.hold(*self._bonded_ids(task.completed_by)):
            character = self._require_character(task.completed_by)
            task = self._require_task(task_id)
            owner_id = task.owner_id or character.id
            result = self.lifecycle.confirm_task(
                task,
                character,
                now=now,
                bond=self.bond_for(character.id),
                routines=self._routines.get(owner_id, ()),
                sibling_tasks=self.task_repo.list_for_owner(owner_id),
            )
            if result is None:
                return None
            self._persist(character, tasks=[task])
        self._after_commit(character, tasks=[task])
        return result

    def dispute_task(self, task_id: str, reason: str | None = None) -> bool:
        task = self._require_task(task_id)
        if not task.awaiting_partner or not task.completed_by:
            return False
        with self.locks.hold(task.completed_by):
            character = self._require_character(task.completed_by)
            if not self.lifecycle.dispute_task(task, character, reason):
                return False
            self._persist(character, tasks=[task])
        self._after_commit(character, tasks=[task])
        return True

    def auto_confirm_expired(self, character_id: str, now: datetime) -> list[RewardResult]:
        with self.locks.hold(*self._bonded_ids(character_id)):
            character = self._require_character(character_id)
            escrowed = [task for task in self.task_repo.list_where(completed_by=character_id) if task.awaiting_partner]
            results = self.lifecycle.auto_confirm_expired(
                escrowed,
                character,
                now=now,
                bond=self.bond_for(character_id),
                routines=self._routines.get(character_id, ()),
                sibling_tasks=self.task_repo.list_for_owner(character_id),
            )
            if not results:
                return []
            touched = [task for task in escrowed if not task.awaiting_partner]
            self._persist(character, tasks=touched)
        self._after_commit(character, tasks=touched)
        return results

    def reset_recurring_tasks(self, owner_id: str, now: datetime) -> list[GameTask]:
        with self.locks.hold(owner_id):
            reset = self.lifecycle.reset_recurring_tasks(self.task_repo.list_for_owner(owner_id), now)
            for task in reset:
                self.task_repo.save(task)
        return reset

    # -- missions -------------------------------------------------------

    def start_mission(self, character_id: str, mission: Mission, now: datetime) -> ActiveMission | None:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            active = self.missions.start(mission, character, now)
            if active is None:
                return None
            self._persist(character)
        return active

    def check_mission(self, character_id: str, mission: Mission, now: datetime) -> MissionResolution | None:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            resolution = self.missions.check_completion(character, mission, now)
            if resolution is None:
                return None
            if resolution.item is not None:
                self.achievements.note_item(character, resolution.item, now=now)
            self.achievements.check_all(character, now)
            self._persist(character)
        self._after_commit(character)
        return resolution

    # -- dungeons -------------------------------------------------------

    def run_dungeon(
        self,
        dungeon: Dungeon,
        party_ids: Sequence[str],
        now: datetime,
    ) -> DungeonCompletionResult | None:
        """Resolve a full run for the party and pay every member; None when the party cannot enter."""
        if not party_ids or len(party_ids) > dungeon.max_party_size:
            return None
        with self.locks.hold(*party_ids):
            party = [self._require_character(character_id) for character_id in party_ids]
            if any(member.active_dungeon_run_id for member in party):
                return None
            if any(member.level < dungeon.level_requirement for member in party):
                return None

            run = DungeonRun.for_party(dungeon, party, now)
            for member in party:
                member.active_dungeon_run_id = run.id
            result = self.dungeons.auto_run(dungeon, run, party, now)

            for member in party:
                self.dungeons.apply_completion(member, result, achievements=self.achievements, now=now)
            if result.bond_exp_earned > 0:
                bond = self.bond_for(party[0].id)
                if bond is not None and all(member.id in bond.member_ids for member in party):
                    bond.gain_exp(result.bond_exp_earned)

            for index, member in enumerate(party):
                self._persist(member, runs=[run] if index == 0 else ())
        for member in party:
            self._after_commit(member)
        return result

    # -- research -------------------------------------------------------

    def unlock_research(self, character_id: str, node_id: str) -> ResearchNode | None:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            node = self.research.unlock_node(character, node_id)
            if node is None:
                return None
            self._persist(character)
        self._after_commit(character)
        return node

    # -- forge ----------------------------------------------------------

    def _find_item(self, character: PlayerCharacter, item_id: str):
        for item in character.equipment:
            if item.id == item_id:
                return item
        return None

    def enhance_item(self, character_id: str, item_id: str) -> EnhancementResult | None:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            item = self._find_item(character, item_id)
            if item is None:
                return None
            result = self.forge.enhance(character, item)
            if result.gold_spent > 0:
                self._persist(character)
        return result

    def salvage_item(self, character_id: str, item_id: str) -> SalvageResult | None:
        with self.locks.hold(character_id):
            character = self._require_character(character_id)
            item = self._find_item(character, item_id)
            if item is None:
                return None
            result = self.forge.salvage(character, item)
            if result is None:
                return None
            self._persist(character)
        return result

    # -- persistence and side effects ----------------------------------

    def _persist(
        self,
        character: PlayerCharacter,
        *,
        tasks: Sequence[GameTask] = (),
        runs: Sequence[DungeonRun] = (),
        operations: Sequence[Callable[[object], None]] | None = None,
    ) -> None:
        if self.atomic_state_persistor is not None:
            if operations and not self._persistor_supports_operations(self.atomic_state_persistor):
                raise ValueError(
                    "Configured atomic_state_persistor does not accept operation batches; "
                    "cannot persist side-effect operations atomically."
                )
            self.atomic_state_persistor(character, tasks, runs, operations)
            return

        self.character_repo.save(character)
        for task in tasks:
            self.task_repo.save(task)
        if self.run_repo is not None:
            for run in runs:
                self.run_repo.save(run)
        if self.achievement_repo is not None:
            for record in character.achievements.values():
                self.achievement_repo.save_for_character(character.id, record)

    @staticmethod
    def _persistor_supports_operations(persistor: Callable[..., None]) -> bool:
        try:
            signature = inspect.signature(persistor)
        except (TypeError, ValueError):
            return True
        params = list(signature.parameters.values())
        if any(param.kind is inspect.Parameter.VAR_POSITIONAL for param in params):
            return True
        return len(params) >= 4

    def _after_commit(self, character: PlayerCharacter, *, tasks: Sequence[GameTask] = ()) -> None:
        if self.sync_gateway is None:
            return
        self.dispatcher.submit("sync.character", self.sync_gateway.push, "character", character.id, character.summary())
        for task in tasks:
            payload = {
                "status": task.status.value,
                "owner_id": task.owner_id,
                "completed_by": task.completed_by,
                "completed_at": task.completed_at.isoformat() if task.completed_at else None,
            }
            self.dispatcher.submit("sync.task", self.sync_gateway.push, "task", task.id, payload)

    def _notify(self, character_id: str | None, kind: str, message: str) -> None:
        if not character_id:
            return
        self.dispatcher.submit(f"notify.{kind}", self.notifier.notify, character_id, kind, message)

    def _on_achievement_unlocked(self, event: AchievementUnlockedEvent) -> None:
        self._notify(event.character_id, "achievement", f"Achievement unlocked: {event.name}")

    def _on_level_up(self, event: LevelUpAppliedEvent) -> None:
        self._notify(event.character_id, "level_up", f"Reached level {event.to_level}")

    def _on_streak_at_risk(self, event: StreakAtRiskEvent) -> None:
        self._notify(
            event.character_id,
            "streak_freeze",
            f"A streak freeze saved your {event.current_streak}-day streak ({event.freezes_remaining} left)",
        )

    def _on_task_escrowed(self, event: TaskEscrowedEvent) -> None:
        character = self.character_repo.get(event.character_id)
        partner_id = character.partner_id if character is not None else None
        self._notify(partner_id, "confirm_request", f"Please confirm task {event.task_id}")

    def _on_task_disputed(self, event: TaskDisputedEvent) -> None:
        self._notify(event.character_id, "task_disputed", event.reason)

    def _on_research_unlocked(self, event: ResearchUnlockedEvent) -> None:
        self._notify(event.character_id, "research", f"Research complete: {event.name}")

    def close(self) -> None:
        self.dispatcher.shutdown(wait=True)
