from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional


class VerificationTier(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    VERIFIED = "verified"
    PARTY_VERIFIED = "party_verified"

    @property
    def multiplier(self) -> float:
        return _TIER_MULTIPLIERS[self]

    @property
    def loot_bonus(self) -> float:
        return _TIER_LOOT_BONUS[self]


_TIER_MULTIPLIERS = {
    VerificationTier.QUICK: 1.0,
    VerificationTier.STANDARD: 1.15,
    VerificationTier.VERIFIED: 1.3,
    VerificationTier.PARTY_VERIFIED: 1.5,
}

_TIER_LOOT_BONUS = {
    VerificationTier.QUICK: 0.0,
    VerificationTier.STANDARD: 0.02,
    VerificationTier.VERIFIED: 0.05,
    VerificationTier.PARTY_VERIFIED: 0.08,
}


class AnomalyFlag(str, Enum):
    RAPID_COMPLETION = "rapid_completion"
    LATE_NIGHT = "late_night"
    EXCESSIVE_DAILY = "excessive_daily"

    @property
    def multiplier(self) -> float:
        return _ANOMALY_MULTIPLIERS[self]


_ANOMALY_MULTIPLIERS = {
    AnomalyFlag.RAPID_COMPLETION: 0.5,
    AnomalyFlag.LATE_NIGHT: 0.85,
    AnomalyFlag.EXCESSIVE_DAILY: 0.6,
}


@dataclass(frozen=True)
class VerificationSignals:
    """Out-of-band verification inputs gathered by the caller at completion time."""

    health_verified: bool = False
    geofence_in_range: Optional[bool] = None
    anomalies: FrozenSet[AnomalyFlag] = field(default_factory=frozenset)

    def without_anomalies(self) -> "VerificationSignals":
        return VerificationSignals(
            health_verified=self.health_verified,
            geofence_in_range=self.geofence_in_range,
            anomalies=frozenset(),
        )


@dataclass(frozen=True)
class VerificationResult:
    tier: VerificationTier
    anomalies: FrozenSet[AnomalyFlag]
    multiplier: float

    @property
    def loot_bonus(self) -> float:
        return self.tier.loot_bonus
