from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from questcore.application.services.balance_tables import (
    DUNGEON_BONUS_ROOM_CHANCE,
    DUNGEON_CARD_DROP_CHANCE,
    DUNGEON_CONSOLATION_EXP_RATIO,
    DUNGEON_COOP_BOND_EXP,
    DUNGEON_MAX_MITIGATION,
    DUNGEON_MAX_SUCCESS_CHANCE,
    DUNGEON_MIN_FAILURE_DAMAGE,
    DUNGEON_PARTY_DIFFICULTY_STEP,
    DUNGEON_READINESS_PENALTY,
    DUNGEON_ROOM_TARGET_MAX,
    DUNGEON_ROOM_TARGET_MIN,
    SECRET_DISCOVERY_BASE,
    SECRET_DISCOVERY_CAP,
    SECRET_DISCOVERY_PER_LUCK,
    performance_grade,
)
from questcore.application.services.loot_service import LootService, material_key
from questcore.application.services.progression_service import ProgressionService
from questcore.domain.events import DungeonResolvedEvent
from questcore.domain.models.achievement import AchievementKey
from questcore.domain.models.character import CharacterClass, PlayerCharacter
from questcore.domain.models.dungeon import (
    Dungeon,
    DungeonCompletionResult,
    DungeonRoom,
    DungeonRun,
    EncounterType,
    FeedEntryType,
    RoomApproach,
    RoomResult,
    RunStatus,
)
from questcore.domain.models.loot import ItemRarity, MaterialType
from questcore.domain.models.stats import StatType

logger = logging.getLogger(__name__)

SECRET_MATERIALS = (MaterialType.ORE, MaterialType.CRYSTAL, MaterialType.ESSENCE)


class DungeonService:
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

    def select_rooms_for_run(
        self,
        rooms: Sequence[DungeonRoom],
        party: Sequence[PlayerCharacter],
        target: Optional[int] = None,
    ) -> List[DungeonRoom]:
        bosses = [room for room in rooms if room.is_boss_room]
        bonus = [room for room in rooms if room.is_bonus_room and not room.is_boss_room and room.can_enter(party)]
        regular = [room for room in rooms if not room.is_boss_room and not room.is_bonus_room and room.can_enter(party)]

        if target is None:
            target = min(DUNGEON_ROOM_TARGET_MAX, max(DUNGEON_ROOM_TARGET_MIN, len(rooms) - 2))

        selected = list(bosses)
        self.rng.shuffle(bonus)
        for room in bonus:
            if self.rng.random() <= DUNGEON_BONUS_ROOM_CHANCE:
                selected.append(room)

        self.rng.shuffle(regular)
        selected.extend(regular[: max(0, target - len(selected))])

        non_boss = [room for room in selected if not room.is_boss_room]
        self.rng.shuffle(non_boss)
        return non_boss + [room for room in selected if room.is_boss_room]

    @staticmethod
    def party_power(
        party: Iterable[PlayerCharacter],
        room: DungeonRoom,
        stat_override: Optional[StatType] = None,
    ) -> int:
        stat = stat_override or room.primary_stat
        members = list(party)
        total = 0
        for member in members:
            value = member.effective_stats.value(stat)
            power = value
            character_class = member.character_class
            if character_class is not None and character_class.bonus_encounter_type is not None:
                affinity = character_class.bonus_encounter_type == room.encounter_type.value
                if affinity or (room.encounter_type is EncounterType.BOSS and character_class is CharacterClass.WARRIOR):
                    power += int(value * character_class.encounter_power_multiplier)
            if member.research_bonuses.combat_power_bonus > 0:
                power += int(power * member.research_bonuses.combat_power_bonus)
            total += power
        if any(member.character_class is CharacterClass.ENCHANTER for member in members):
            total += int(total * CharacterClass.ENCHANTER.party_power_multiplier)
        return total

    @staticmethod
    def scaled_difficulty(room: DungeonRoom, party_size: int) -> float:
        return room.difficulty_rating * (1.0 + DUNGEON_PARTY_DIFFICULTY_STEP * (max(1, party_size) - 1))

    @staticmethod
    def stat_readiness(party: Iterable[PlayerCharacter], dungeon: Dungeon) -> float:
        """Average over requirements of the best member's stat / minimum, each capped at 1."""
        if not dungeon.stat_requirements:
            return 1.0
        members = list(party)
        total = 0.0
        for requirement in dungeon.stat_requirements:
            best = max((member.effective_stats.value(requirement.stat) for member in members), default=0)
            total += min(1.0, best / max(1, requirement.minimum))
        return total / len(dungeon.stat_requirements)

    def success_chance(
        self,
        party: Sequence[PlayerCharacter],
        room: DungeonRoom,
        approach: Optional[RoomApproach] = None,
        dungeon: Optional[Dungeon] = None,
    ) -> float:
        power = self.party_power(party, room, approach.primary_stat if approach else None)
        modified = power * (approach.power_modifier if approach else 1.0)
        difficulty = self.scaled_difficulty(room, len(party))
        chance = modified / difficulty if difficulty > 0 else DUNGEON_MAX_SUCCESS_CHANCE

        if party:
            chance += sum(member.research_bonuses.dungeon_success_bonus for member in party) / len(party)
            if room.is_boss_room:
                chance += sum(member.research_bonuses.boss_damage_bonus for member in party) / len(party)

        if dungeon is not None:
            readiness = self.stat_readiness(party, dungeon)
            if readiness < 1.0:
                chance -= (1.0 - readiness) * DUNGEON_READINESS_PENALTY

        floor = dungeon.difficulty.success_floor if dungeon is not None else 0.05
        return min(DUNGEON_MAX_SUCCESS_CHANCE, max(floor, chance))

    @staticmethod
    def damage_mitigation(party: Iterable[PlayerCharacter]) -> float:
        classes = {member.character_class for member in party if member.character_class is not None}
        return min(DUNGEON_MAX_MITIGATION, sum(item.damage_reduction_multiplier for item in classes))

    def resolve_room(
        self,
        room: DungeonRoom,
        room_index: int,
        party: Sequence[PlayerCharacter],
        dungeon: Dungeon,
        approach: Optional[RoomApproach] = None,
    ) -> RoomResult:
        power = self.party_power(party, room, approach.primary_stat if approach else None)
        modified_power = int(power * (approach.power_modifier if approach else 1.0))
        required = int(self.scaled_difficulty(room, len(party)))
        chance = self.success_chance(party, room, approach, dungeon)

        success = self.rng.uniform(0, 1) <= chance
        exp = gold = hp_lost = 0
        loot_dropped = card_dropped = False

        if success:
            share = 1.0 / dungeon.room_count if dungeon.room_count > 0 else 1.0
            multiplier = dungeon.difficulty.reward_multiplier
            exp = int(dungeon.base_exp_reward * share * multiplier)
            gold = int(dungeon.base_gold_reward * share * multiplier)
            if room.is_boss_room:
                exp *= 2
                gold *= 2
            if approach is not None and approach.is_risky:
                bonus = 1.0 + (approach.power_modifier - 1.0) * 0.5
                exp = int(exp * bonus)
                gold = int(gold * bonus)
            trickster = any(member.character_class is CharacterClass.TRICKSTER for member in party)
            loot_chance = room.bonus_loot_chance + (CharacterClass.TRICKSTER.loot_drop_bonus if trickster else 0.0)
            loot_dropped = self.rng.uniform(0, 1) <= loot_chance
            card_dropped = self.rng.random() < DUNGEON_CARD_DROP_CHANCE
        else:
            base_damage = max(DUNGEON_MIN_FAILURE_DAMAGE, required - modified_power)
            risk = approach.risk_modifier if approach else 1.0
            risked = int(base_damage * risk * dungeon.difficulty.damage_multiplier)
            hp_lost = max(1, int(risked * (1.0 - self.damage_mitigation(party))))
            exp = int(dungeon.base_exp_reward * DUNGEON_CONSOLATION_EXP_RATIO)

        return RoomResult(
            room_index=room_index,
            room_name=room.name,
            success=success,
            player_power=modified_power,
            required_power=required,
            exp_earned=exp,
            gold_earned=gold,
            hp_lost=hp_lost,
            loot_dropped=loot_dropped,
            approach_name=approach.name if approach else "",
            card_dropped=card_dropped,
        )

    def auto_select_best_approach(self, party: Sequence[PlayerCharacter], room: DungeonRoom) -> RoomApproach:
        approaches = room.encounter_type.approaches
        if not approaches:
            return RoomApproach("Direct", room.primary_stat)
        best = approaches[0]
        best_power = 0.0
        for approach in approaches:
            effective = self.party_power(party, room, approach.primary_stat) * approach.power_modifier
            if effective > best_power:
                best_power = effective
                best = approach
        return best

    def overall_success_estimate(self, party: Sequence[PlayerCharacter], dungeon: Dungeon) -> float:
        rooms = [room for room in dungeon.rooms if not room.is_bonus_room and room.can_enter(party)]
        if not rooms:
            return 0.0
        total = sum(self.success_chance(party, room, self.auto_select_best_approach(party, room)) for room in rooms)
        return total / len(rooms)

    def auto_run(
        self,
        dungeon: Dungeon,
        run: DungeonRun,
        party: Sequence[PlayerCharacter],
        now: Optional[datetime] = None,
    ) -> DungeonCompletionResult:
        """Resolve every selected room in order; a resolved run returns its stored result."""
        if run.is_resolved:
            return run.result

        run.selected_rooms = self.select_rooms_for_run(dungeon.rooms, party)
        for index, room in enumerate(run.selected_rooms):
            if run.party_hp <= 0:
                break
            approach = self.auto_select_best_approach(party, room)
            run.add_feed(FeedEntryType.ROOM_ENTERED, f"Room {index + 1}: {room.name}")
            run.add_feed(FeedEntryType.APPROACH_CHOSEN, f"Used {approach.name} ({approach.primary_stat.value})")

            result = self.resolve_room(room, index, party, dungeon, approach)
            run.room_results.append(result)
            run.total_exp_earned += result.exp_earned
            run.total_gold_earned += result.gold_earned
            run.party_hp = max(0, run.party_hp - result.hp_lost)
            run.current_room_index = index + 1

            if result.success:
                run.add_feed(
                    FeedEntryType.OUTCOME_SUCCESS,
                    f"Success! +{result.exp_earned} EXP, +{result.gold_earned} Gold",
                )
                if result.loot_dropped:
                    run.add_feed(FeedEntryType.LOOT_FOUND, f"Loot found in {room.name}!")
                if result.card_dropped:
                    run.add_feed(FeedEntryType.LOOT_FOUND, f"A monster card was discovered in {room.name}!")
            else:
                run.add_feed(FeedEntryType.OUTCOME_FAIL, f"Failed! Lost {result.hp_lost} HP")

            if run.is_coop_run and len(party) > 1:
                ally = party[self.rng.randint(1, len(party) - 1)]
                verb = "fought alongside you" if result.success else "took the hit alongside you"
                run.add_feed(FeedEntryType.PARTNER_ACTION, f"{ally.name} {verb}.")

            if run.party_hp <= 0:
                run.status = RunStatus.FAILED
                run.completed_at = now
                run.add_feed(FeedEntryType.DUNGEON_FAILED, "Party HP reached zero. Dungeon failed!")
                break

        if run.party_hp > 0:
            run.status = RunStatus.COMPLETED
            run.completed_at = now
            run.add_feed(
                FeedEntryType.DUNGEON_COMPLETE,
                f"Dungeon cleared! +{run.total_exp_earned} EXP, +{run.total_gold_earned} Gold",
            )
        return self.complete_run(dungeon, run, party)

    def performance(
        self,
        run: DungeonRun,
        dungeon: Dungeon,
        party: Sequence[PlayerCharacter],
    ) -> tuple[str, float, float]:
        cleared = sum(1 for result in run.room_results if result.success)
        cleared_ratio = cleared / dungeon.room_count if dungeon.room_count > 0 else 0.0
        score = cleared_ratio * 0.5 + run.hp_ratio * 0.3 + self.stat_readiness(party, dungeon) * 0.2
        grade, multiplier = performance_grade(score)
        return grade, score, multiplier

    def complete_run(
        self,
        dungeon: Dungeon,
        run: DungeonRun,
        party: Sequence[PlayerCharacter],
    ) -> DungeonCompletionResult:
        if run.is_resolved:
            return run.result

        success = run.status is RunStatus.COMPLETED
        luck = max((member.effective_stats.luck for member in party), default=0)
        class_loot_bonus = max(
            (member.character_class.loot_drop_bonus for member in party if member.character_class is not None),
            default=0.0,
        )
        rare_bonus = max((member.research_bonuses.rare_drop_chance_bonus for member in party), default=0.0)
        lead_id = party[0].id if party else None

        loot = []
        if success:
            loot = self.loot_service.generate_dungeon_loot(
                dungeon.loot_tier,
                luck,
                run.room_results,
                dungeon.difficulty,
                class_loot_bonus,
                rare_bonus=rare_bonus,
            )
            for item in loot:
                item.owner_id = lead_id

        grade, score, loot_multiplier = self.performance(run, dungeon, party)
        run.performance_rating = grade
        run.performance_score = score

        result = DungeonCompletionResult(
            success=success,
            dungeon_name=dungeon.name,
            total_exp=run.total_exp_earned,
            total_gold=run.total_gold_earned,
            rooms_cleared=sum(1 for room in run.room_results if room.success),
            total_rooms=dungeon.room_count,
            hp_remaining=run.party_hp,
            max_hp=run.max_party_hp,
            loot_drops=loot,
            room_results=list(run.room_results),
            is_coop_run=run.is_coop_run,
            bond_exp_earned=DUNGEON_COOP_BOND_EXP if run.is_coop_run and success else 0,
            performance_rating=grade,
            performance_score=score,
            loot_multiplier=loot_multiplier,
        )

        if success:
            chance = min(SECRET_DISCOVERY_BASE + luck * SECRET_DISCOVERY_PER_LUCK, SECRET_DISCOVERY_CAP)
            if self.rng.uniform(0, 1) <= chance:
                result.secret_discovery = True
                result.secret_bonus_gold = int(dungeon.base_gold_reward * 2.0 * dungeon.difficulty.reward_multiplier)
                result.secret_bonus_materials = self.rng.randint(2, 3)
                result.secret_equipment_drop = self.rng.uniform(0, 1) <= 0.25
                if result.secret_equipment_drop:
                    item = self.loot_service.generate_equipment(
                        dungeon.loot_tier, luck, rarity=ItemRarity.RARE
                    )
                    item.owner_id = lead_id
                    result.loot_drops.append(item)
                run.add_feed(FeedEntryType.SECRET_DISCOVERY, "A hidden cache was discovered!")

        run.result = result
        self._publish(
            DungeonResolvedEvent(
                run_id=run.id,
                dungeon_name=dungeon.name,
                success=result.success,
                rooms_cleared=result.rooms_cleared,
                total_rooms=result.total_rooms,
                performance_rating=grade,
            )
        )
        return result

    def apply_completion(
        self,
        character: PlayerCharacter,
        result: DungeonCompletionResult,
        *,
        achievements=None,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Pay out a completion to one party member; loot goes to its recorded owner."""
        character.gold += result.total_gold + result.secret_bonus_gold
        messages = self.progression.gain_exp(character, result.total_exp, auto_level=True)
        if result.secret_bonus_materials > 0:
            kind = self.rng.choice(SECRET_MATERIALS)
            character.add_material(material_key(kind, ItemRarity.UNCOMMON), result.secret_bonus_materials)
        for item in result.loot_drops:
            if item.owner_id == character.id and item not in character.equipment:
                character.equipment.append(item)
        character.active_dungeon_run_id = None

        if achievements is not None and now is not None:
            if result.success:
                achievements.increment(character, AchievementKey.DUNGEON_DELVER, now=now)
                achievements.increment(character, AchievementKey.DUNGEON_MASTER, now=now)
            for item in result.loot_drops:
                if item.owner_id == character.id:
                    achievements.note_item(character, item, now=now)
            achievements.check_all(character, now)
        return messages
