"""JSON-ready payloads for the aggregates the repositories persist."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional

from questcore.domain.models.achievement import Achievement
from questcore.domain.models.character import ClassLine, PlayerCharacter
from questcore.domain.models.dungeon import (
    DungeonCompletionResult,
    DungeonRoom,
    DungeonRun,
    EncounterType,
    FeedEntry,
    FeedEntryType,
    RoomResult,
    RunStatus,
)
from questcore.domain.models.loot import Equipment
from questcore.domain.models.mission import ActiveMission, MissionPhase
from questcore.domain.models.stats import ResearchBonuses, StatType, Stats
from questcore.domain.models.task import (
    GameTask,
    Recurrence,
    TaskCategory,
    TaskStatus,
    VerificationType,
)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def achievement_to_payload(record: Achievement) -> dict[str, Any]:
    return {
        "key": record.key,
        "target_value": int(record.target_value),
        "current_value": int(record.current_value),
        "is_unlocked": bool(record.is_unlocked),
        "unlocked_at": _dt(record.unlocked_at),
        "reward_claimed": bool(record.reward_claimed),
    }


def achievement_from_payload(payload: Mapping[str, Any]) -> Achievement:
    return Achievement(
        key=str(payload["key"]),
        target_value=int(payload.get("target_value", 1) or 1),
        current_value=int(payload.get("current_value", 0) or 0),
        is_unlocked=bool(payload.get("is_unlocked", False)),
        unlocked_at=_parse_dt(payload.get("unlocked_at")),
        reward_claimed=bool(payload.get("reward_claimed", False)),
    )


def _mission_to_payload(active: Optional[ActiveMission]) -> Optional[dict[str, Any]]:
    if active is None:
        return None
    return {
        "id": active.id,
        "mission_id": active.mission_id,
        "character_id": active.character_id,
        "started_at": _dt(active.started_at),
        "completes_at": _dt(active.completes_at),
        "phase": active.phase.value,
    }


def _mission_from_payload(payload: Optional[Mapping[str, Any]]) -> Optional[ActiveMission]:
    if not payload:
        return None
    return ActiveMission(
        id=str(payload["id"]),
        mission_id=str(payload["mission_id"]),
        character_id=str(payload["character_id"]),
        started_at=_parse_dt(payload["started_at"]),
        completes_at=_parse_dt(payload["completes_at"]),
        phase=MissionPhase(str(payload.get("phase", "running"))),
    )


def character_to_payload(character: PlayerCharacter) -> dict[str, Any]:
    return {
        "id": character.id,
        "name": character.name,
        "level": character.level,
        "current_exp": character.current_exp,
        "gold": character.gold,
        "gems": character.gems,
        "stats": character.stats.as_dict(),
        "equipment": [item.as_dict() for item in character.equipment],
        "character_class": character.character_class.value if character.character_class else None,
        "zodiac_stat": character.zodiac_stat.value if character.zodiac_stat else None,
        "unspent_stat_points": character.unspent_stat_points,
        "current_streak": character.current_streak,
        "longest_streak": character.longest_streak,
        "streak_freezes": character.streak_freezes,
        "last_active_on": character.last_active_on.isoformat() if character.last_active_on else None,
        "tasks_completed": character.tasks_completed,
        "tasks_completed_today": character.tasks_completed_today,
        "last_daily_reset_on": character.last_daily_reset_on.isoformat() if character.last_daily_reset_on else None,
        "achievements": {key: achievement_to_payload(row) for key, row in character.achievements.items()},
        "achievement_counters": dict(character.achievement_counters),
        "research_bonuses": character.research_bonuses.as_dict(),
        "research_tokens": character.research_tokens,
        "wisdom_buff_expires_at": _dt(character.wisdom_buff_expires_at),
        "current_hp": character.current_hp,
        "max_hp": character.max_hp,
        "partner_id": character.partner_id,
        "active_mission": _mission_to_payload(character.active_mission),
        "active_dungeon_run_id": character.active_dungeon_run_id,
        "materials": dict(character.materials),
        "consumables": dict(character.consumables),
        "pity_counters": dict(character.pity_counters),
        "pending_class_evolution": character.pending_class_evolution,
        "recent_completions": [_dt(stamp) for stamp in character.recent_completions],
    }


def character_from_payload(payload: Mapping[str, Any]) -> PlayerCharacter:
    return PlayerCharacter(
        id=str(payload["id"]),
        name=str(payload.get("name", "")),
        level=int(payload.get("level", 1) or 1),
        current_exp=int(payload.get("current_exp", 0) or 0),
        gold=int(payload.get("gold", 0) or 0),
        gems=int(payload.get("gems", 0) or 0),
        stats=Stats.from_mapping(payload.get("stats")),
        equipment=[Equipment.from_mapping(row) for row in payload.get("equipment") or []],
        character_class=payload.get("character_class"),
        zodiac_stat=payload.get("zodiac_stat"),
        unspent_stat_points=int(payload.get("unspent_stat_points", 0) or 0),
        current_streak=int(payload.get("current_streak", 0) or 0),
        longest_streak=int(payload.get("longest_streak", 0) or 0),
        streak_freezes=int(payload.get("streak_freezes", 0) or 0),
        last_active_on=_parse_date(payload.get("last_active_on")),
        tasks_completed=int(payload.get("tasks_completed", 0) or 0),
        tasks_completed_today=int(payload.get("tasks_completed_today", 0) or 0),
        last_daily_reset_on=_parse_date(payload.get("last_daily_reset_on")),
        achievements={
            str(key): achievement_from_payload(row) for key, row in (payload.get("achievements") or {}).items()
        },
        achievement_counters={str(k): int(v) for k, v in (payload.get("achievement_counters") or {}).items()},
        research_bonuses=ResearchBonuses.from_mapping(payload.get("research_bonuses")),
        research_tokens=int(payload.get("research_tokens", 0) or 0),
        wisdom_buff_expires_at=_parse_dt(payload.get("wisdom_buff_expires_at")),
        current_hp=int(payload.get("current_hp", 100) or 0),
        max_hp=int(payload.get("max_hp", 100) or 100),
        partner_id=payload.get("partner_id"),
        active_mission=_mission_from_payload(payload.get("active_mission")),
        active_dungeon_run_id=payload.get("active_dungeon_run_id"),
        materials={str(k): int(v) for k, v in (payload.get("materials") or {}).items()},
        consumables={str(k): int(v) for k, v in (payload.get("consumables") or {}).items()},
        pity_counters={str(k): int(v) for k, v in (payload.get("pity_counters") or {}).items()},
        pending_class_evolution=bool(payload.get("pending_class_evolution", False)),
        recent_completions=[_parse_dt(stamp) for stamp in payload.get("recent_completions") or [] if stamp],
    )


_TASK_PLAIN_FIELDS = (
    "id",
    "title",
    "exp_reward",
    "gold_reward",
    "has_photo_proof",
    "has_location_proof",
    "geofence_in_range",
    "health_verified",
    "is_habit",
    "is_from_partner",
    "assigned_by",
    "owner_id",
    "pending_partner_confirmation",
    "partner_confirmed",
    "partner_dispute_reason",
    "completed_by",
    "is_coop_duty",
    "coop_bonus_awarded",
    "routine_bundle_id",
)


def task_to_payload(task: GameTask) -> dict[str, Any]:
    payload = {name: getattr(task, name) for name in _TASK_PLAIN_FIELDS}
    payload.update(
        {
            "category": task.category.value,
            "verification_type": task.verification_type.value,
            "recurrence": task.recurrence.value,
            "status": task.status.value,
            "started_at": _dt(task.started_at),
            "completed_at": _dt(task.completed_at),
        }
    )
    return payload


def task_from_payload(payload: Mapping[str, Any]) -> GameTask:
    values = {name: payload.get(name) for name in _TASK_PLAIN_FIELDS if name in payload}
    values["title"] = str(payload.get("title", ""))
    values["gold_reward"] = int(payload.get("gold_reward", 0) or 0)
    for flag in (
        "has_photo_proof",
        "has_location_proof",
        "health_verified",
        "is_habit",
        "is_from_partner",
        "pending_partner_confirmation",
        "partner_confirmed",
        "is_coop_duty",
        "coop_bonus_awarded",
    ):
        values[flag] = bool(payload.get(flag, False))
    return GameTask(
        category=TaskCategory(str(payload.get("category", "physical"))),
        verification_type=VerificationType(str(payload.get("verification_type", "none"))),
        recurrence=Recurrence(str(payload.get("recurrence", "none"))),
        status=TaskStatus(str(payload.get("status", "pending"))),
        started_at=_parse_dt(payload.get("started_at")),
        completed_at=_parse_dt(payload.get("completed_at")),
        **values,
    )


def _room_to_payload(room: DungeonRoom) -> dict[str, Any]:
    return {
        "id": room.id,
        "name": room.name,
        "encounter_type": room.encounter_type.value,
        "primary_stat": room.primary_stat.value,
        "difficulty_rating": room.difficulty_rating,
        "is_boss_room": room.is_boss_room,
        "bonus_loot_chance": room.bonus_loot_chance,
        "is_bonus_room": room.is_bonus_room,
        "class_gate": room.class_gate.value if room.class_gate else None,
    }


def _room_from_payload(payload: Mapping[str, Any]) -> DungeonRoom:
    gate = payload.get("class_gate")
    return DungeonRoom(
        id=str(payload["id"]),
        name=str(payload.get("name", "")),
        encounter_type=EncounterType(str(payload["encounter_type"])),
        primary_stat=StatType(str(payload["primary_stat"])),
        difficulty_rating=int(payload.get("difficulty_rating", 1)),
        is_boss_room=bool(payload.get("is_boss_room", False)),
        bonus_loot_chance=float(payload.get("bonus_loot_chance", 0.0) or 0.0),
        is_bonus_room=bool(payload.get("is_bonus_room", False)),
        class_gate=ClassLine(str(gate)) if gate else None,
    )


def _room_result_to_payload(result: RoomResult) -> dict[str, Any]:
    return dict(vars(result))


def _completion_to_payload(result: Optional[DungeonCompletionResult]) -> Optional[dict[str, Any]]:
    if result is None:
        return None
    payload = dict(vars(result))
    payload["loot_drops"] = [item.as_dict() for item in result.loot_drops]
    payload["room_results"] = [_room_result_to_payload(row) for row in result.room_results]
    return payload


def _completion_from_payload(payload: Optional[Mapping[str, Any]]) -> Optional[DungeonCompletionResult]:
    if not payload:
        return None
    values = dict(payload)
    values["loot_drops"] = [Equipment.from_mapping(row) for row in payload.get("loot_drops") or []]
    values["room_results"] = [RoomResult(**row) for row in payload.get("room_results") or []]
    return DungeonCompletionResult(**values)


def dungeon_run_to_payload(run: DungeonRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "dungeon_id": run.dungeon_id,
        "party_member_ids": list(run.party_member_ids),
        "party_hp": run.party_hp,
        "max_party_hp": run.max_party_hp,
        "is_coop_run": run.is_coop_run,
        "selected_rooms": [_room_to_payload(room) for room in run.selected_rooms],
        "room_results": [_room_result_to_payload(row) for row in run.room_results],
        "current_room_index": run.current_room_index,
        "total_exp_earned": run.total_exp_earned,
        "total_gold_earned": run.total_gold_earned,
        "status": run.status.value,
        "feed": [{"entry_type": row.entry_type.value, "message": row.message} for row in run.feed],
        "started_at": _dt(run.started_at),
        "completed_at": _dt(run.completed_at),
        "performance_rating": run.performance_rating,
        "performance_score": run.performance_score,
        "result": _completion_to_payload(run.result),
    }


def dungeon_run_from_payload(payload: Mapping[str, Any]) -> DungeonRun:
    return DungeonRun(
        id=str(payload["id"]),
        dungeon_id=str(payload["dungeon_id"]),
        party_member_ids=[str(item) for item in payload.get("party_member_ids") or []],
        party_hp=int(payload.get("party_hp", 0)),
        max_party_hp=int(payload.get("max_party_hp", 0)),
        is_coop_run=bool(payload.get("is_coop_run", False)),
        selected_rooms=[_room_from_payload(row) for row in payload.get("selected_rooms") or []],
        room_results=[RoomResult(**row) for row in payload.get("room_results") or []],
        current_room_index=int(payload.get("current_room_index", 0)),
        total_exp_earned=int(payload.get("total_exp_earned", 0)),
        total_gold_earned=int(payload.get("total_gold_earned", 0)),
        status=RunStatus(str(payload.get("status", "in_progress"))),
        feed=[FeedEntry(FeedEntryType(row["entry_type"]), str(row["message"])) for row in payload.get("feed") or []],
        started_at=_parse_dt(payload.get("started_at")),
        completed_at=_parse_dt(payload.get("completed_at")),
        performance_rating=str(payload.get("performance_rating", "")),
        performance_score=float(payload.get("performance_score", 0.0) or 0.0),
        result=_completion_from_payload(payload.get("result")),
    )
