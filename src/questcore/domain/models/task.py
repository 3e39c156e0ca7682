from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from questcore.domain.models.stats import StatType


DEFAULT_TASK_EXP = 20
DEFAULT_TASK_GOLD = 10
DEFAULT_DISPUTE_REASON = "Partner disputed this completion"


class TaskCategory(str, Enum):
    PHYSICAL = "physical"
    MENTAL = "mental"
    SOCIAL = "social"
    HOUSEHOLD = "household"
    WELLNESS = "wellness"
    CREATIVE = "creative"

    @property
    def bonus_stat(self) -> StatType:
        return _CATEGORY_STATS[self]


_CATEGORY_STATS = {
    TaskCategory.PHYSICAL: StatType.STRENGTH,
    TaskCategory.MENTAL: StatType.WISDOM,
    TaskCategory.SOCIAL: StatType.CHARISMA,
    TaskCategory.HOUSEHOLD: StatType.DEFENSE,
    TaskCategory.WELLNESS: StatType.LUCK,
    TaskCategory.CREATIVE: StatType.DEXTERITY,
}


class VerificationType(str, Enum):
    NONE = "none"
    PHOTO = "photo"
    LOCATION = "location"
    PHOTO_AND_LOCATION = "photo_and_location"

    @property
    def wants_photo(self) -> bool:
        return self in (VerificationType.PHOTO, VerificationType.PHOTO_AND_LOCATION)

    @property
    def wants_location(self) -> bool:
        return self in (VerificationType.LOCATION, VerificationType.PHOTO_AND_LOCATION)


class Recurrence(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    PENDING_PARTNER_CONFIRMATION = "pending_partner_confirmation"


@dataclass
class GameTask:
    title: str
    category: TaskCategory = TaskCategory.PHYSICAL
    exp_reward: Optional[int] = None
    gold_reward: int = DEFAULT_TASK_GOLD
    verification_type: VerificationType = VerificationType.NONE
    has_photo_proof: bool = False
    has_location_proof: bool = False
    geofence_in_range: Optional[bool] = None
    health_verified: bool = False
    started_at: Optional[datetime] = None
    is_habit: bool = False
    recurrence: Recurrence = Recurrence.NONE
    is_from_partner: bool = False
    assigned_by: Optional[str] = None
    owner_id: Optional[str] = None
    pending_partner_confirmation: bool = False
    partner_confirmed: bool = False
    partner_dispute_reason: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    is_coop_duty: bool = False
    coop_bonus_awarded: bool = False
    routine_bundle_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def base_exp(self) -> int:
        if self.exp_reward is None:
            return DEFAULT_TASK_EXP
        return max(0, int(self.exp_reward))

    @property
    def base_gold(self) -> int:
        return max(0, int(self.gold_reward or 0))

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not Recurrence.NONE

    @property
    def awaiting_partner(self) -> bool:
        return self.status is TaskStatus.PENDING_PARTNER_CONFIRMATION

    def clear_completion(self) -> None:
        self.status = TaskStatus.PENDING
        self.completed_at = None
        self.completed_by = None
        self.pending_partner_confirmation = False
        self.partner_confirmed = False
