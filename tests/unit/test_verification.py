import sys
from datetime import datetime, timedelta
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.verification import (
    anomaly_multiplier,
    can_complete,
    detect_anomalies,
    minimum_duration_seconds,
    resolve_tier,
    verify,
)
from questcore.domain.models.task import GameTask, TaskCategory, VerificationType
from questcore.domain.models.verification import AnomalyFlag, VerificationSignals, VerificationTier


NOON = datetime(2024, 5, 4, 12, 0)


class VerificationTests(unittest.TestCase):
    def test_minimum_duration_depends_on_proof_and_category(self) -> None:
        self.assertEqual(0, minimum_duration_seconds(GameTask(title="Plain")))
        self.assertEqual(60, minimum_duration_seconds(GameTask(title="Pic", verification_type=VerificationType.PHOTO)))
        self.assertEqual(
            300,
            minimum_duration_seconds(
                GameTask(title="Run", category=TaskCategory.PHYSICAL, verification_type=VerificationType.LOCATION)
            ),
        )
        self.assertEqual(
            120,
            minimum_duration_seconds(
                GameTask(title="Read", category=TaskCategory.MENTAL, verification_type=VerificationType.LOCATION)
            ),
        )

    def test_can_complete_reports_remaining_seconds(self) -> None:
        task = GameTask(title="Run", verification_type=VerificationType.LOCATION, started_at=NOON)

        allowed, remaining = can_complete(task, NOON + timedelta(seconds=100))

        self.assertFalse(allowed)
        self.assertEqual(200, remaining)
        self.assertEqual((True, 0), can_complete(task, NOON + timedelta(seconds=300)))

    def test_partner_confirmation_outranks_every_other_proof(self) -> None:
        task = GameTask(title="Pic", verification_type=VerificationType.PHOTO, has_photo_proof=True)
        self.assertIs(VerificationTier.PARTY_VERIFIED, resolve_tier(task, partner_confirmed=True))
        self.assertIs(VerificationTier.VERIFIED, resolve_tier(task))

    def test_health_or_geofence_signal_gives_verified_tier(self) -> None:
        task = GameTask(title="Walk")
        self.assertIs(VerificationTier.VERIFIED, resolve_tier(task, health_verified=True))
        self.assertIs(VerificationTier.VERIFIED, resolve_tier(task, geofence_in_range=True))
        self.assertIs(VerificationTier.QUICK, resolve_tier(task, geofence_in_range=False))

    def test_timer_satisfied_gives_standard_tier(self) -> None:
        task = GameTask(title="Study", category=TaskCategory.MENTAL, verification_type=VerificationType.LOCATION)
        task.started_at = NOON

        self.assertIs(
            VerificationTier.STANDARD,
            resolve_tier(task, completed_at=NOON + timedelta(minutes=3)),
        )
        self.assertIs(
            VerificationTier.QUICK,
            resolve_tier(task, completed_at=NOON + timedelta(minutes=1)),
        )

    def test_detects_rapid_and_excessive_completions(self) -> None:
        rapid = [NOON - timedelta(minutes=minute) for minute in range(6)]
        self.assertEqual(frozenset({AnomalyFlag.RAPID_COMPLETION}), detect_anomalies(rapid, NOON))

        spread = [NOON - timedelta(minutes=30 * index) for index in range(21)]
        self.assertIn(AnomalyFlag.EXCESSIVE_DAILY, detect_anomalies(spread, NOON))

    def test_late_night_window(self) -> None:
        self.assertIn(AnomalyFlag.LATE_NIGHT, detect_anomalies([], datetime(2024, 5, 4, 3, 15)))
        self.assertNotIn(AnomalyFlag.LATE_NIGHT, detect_anomalies([], datetime(2024, 5, 4, 5, 0)))

    def test_anomaly_multiplier_is_floored(self) -> None:
        self.assertEqual(1.0, anomaly_multiplier([]))
        self.assertAlmostEqual(0.5, anomaly_multiplier([AnomalyFlag.RAPID_COMPLETION]))
        self.assertAlmostEqual(0.5 * 0.85 * 0.6, anomaly_multiplier(list(AnomalyFlag)))
        self.assertEqual(0.25, anomaly_multiplier([AnomalyFlag.RAPID_COMPLETION] * 3))

    def test_anomalies_only_reduce_the_tier_multiplier(self) -> None:
        task = GameTask(title="Walk")
        clean = verify(task, VerificationSignals(health_verified=True), partner_confirmed=False)
        flagged = verify(
            task,
            VerificationSignals(health_verified=True, anomalies=frozenset({AnomalyFlag.LATE_NIGHT})),
            partner_confirmed=False,
        )

        self.assertAlmostEqual(1.3, clean.multiplier)
        self.assertAlmostEqual(1.3 * 0.85, flagged.multiplier)
        self.assertLessEqual(flagged.multiplier, clean.multiplier)
        self.assertEqual(frozenset({AnomalyFlag.LATE_NIGHT}), flagged.anomalies)


if __name__ == "__main__":
    unittest.main()
