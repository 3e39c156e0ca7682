from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from questcore.domain.models.task import GameTask, TaskCategory, VerificationType
from questcore.domain.models.verification import (
    AnomalyFlag,
    VerificationResult,
    VerificationSignals,
    VerificationTier,
)


ANOMALY_MULTIPLIER_FLOOR = 0.25
RAPID_WINDOW = timedelta(minutes=10)
RAPID_COMPLETION_LIMIT = 5
EXCESSIVE_DAILY_LIMIT = 20
LATE_NIGHT_HOURS = range(2, 5)

_LOCATION_MINIMUMS = {
    TaskCategory.PHYSICAL: 300,
    TaskCategory.MENTAL: 120,
    TaskCategory.CREATIVE: 120,
}


def minimum_duration_seconds(task: GameTask) -> int:
    if task.verification_type is VerificationType.NONE:
        return 0
    if task.verification_type.wants_photo:
        return 60
    return _LOCATION_MINIMUMS.get(task.category, 60)


def can_complete(task: GameTask, now: datetime) -> tuple[bool, int]:
    """Whether the minimum duration has elapsed, and the seconds still to wait."""
    if task.started_at is None:
        return True, 0
    remaining = minimum_duration_seconds(task) - (now - task.started_at).total_seconds()
    if remaining > 0:
        return False, int(remaining)
    return True, 0


def detect_anomalies(recent_completions: Iterable[datetime], now: datetime) -> frozenset[AnomalyFlag]:
    last_day = [stamp for stamp in recent_completions if stamp > now - timedelta(days=1)]
    flags: set[AnomalyFlag] = set()
    if sum(1 for stamp in last_day if stamp > now - RAPID_WINDOW) > RAPID_COMPLETION_LIMIT:
        flags.add(AnomalyFlag.RAPID_COMPLETION)
    if now.hour in LATE_NIGHT_HOURS:
        flags.add(AnomalyFlag.LATE_NIGHT)
    if len(last_day) > EXCESSIVE_DAILY_LIMIT:
        flags.add(AnomalyFlag.EXCESSIVE_DAILY)
    return frozenset(flags)


def anomaly_multiplier(flags: Iterable[AnomalyFlag]) -> float:
    multiplier = 1.0
    for flag in flags:
        multiplier *= flag.multiplier
    return max(ANOMALY_MULTIPLIER_FLOOR, multiplier)


def resolve_tier(
    task: GameTask,
    *,
    partner_confirmed: bool = False,
    health_verified: bool = False,
    geofence_in_range: Optional[bool] = None,
    completed_at: Optional[datetime] = None,
) -> VerificationTier:
    if partner_confirmed:
        return VerificationTier.PARTY_VERIFIED

    has_photo = task.verification_type.wants_photo and task.has_photo_proof
    if geofence_in_range is not None:
        has_location = bool(geofence_in_range)
    else:
        has_location = task.verification_type.wants_location and task.has_location_proof
    if has_photo or has_location or health_verified:
        return VerificationTier.VERIFIED

    minimum = minimum_duration_seconds(task)
    if task.started_at is not None and minimum > 0:
        finished = completed_at or task.completed_at
        if finished is not None and (finished - task.started_at).total_seconds() >= minimum:
            return VerificationTier.STANDARD
    return VerificationTier.QUICK


def verify(
    task: GameTask,
    signals: Optional[VerificationSignals],
    *,
    partner_confirmed: bool,
    completed_at: Optional[datetime] = None,
) -> VerificationResult:
    """Combine the proof tier with the anomaly penalty.

    Anomalies only ever pull the tier multiplier down, and never below the
    floor.
    """
    signals = signals or VerificationSignals()
    geofence = signals.geofence_in_range if signals.geofence_in_range is not None else task.geofence_in_range
    tier = resolve_tier(
        task,
        partner_confirmed=partner_confirmed,
        health_verified=signals.health_verified or task.health_verified,
        geofence_in_range=geofence,
        completed_at=completed_at,
    )
    penalty = anomaly_multiplier(signals.anomalies)
    multiplier = min(tier.multiplier, max(ANOMALY_MULTIPLIER_FLOOR, tier.multiplier * penalty))
    return VerificationResult(tier=tier, anomalies=frozenset(signals.anomalies), multiplier=multiplier)
