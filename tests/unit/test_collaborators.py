import sys
import threading
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from questcore.application.services.character_lock import CharacterLockRegistry
from questcore.application.services.collaborators import (
    FireAndForgetDispatcher,
    LoggingNotifier,
    NullSyncGateway,
)


class FireAndForgetDispatcherTests(unittest.TestCase):
    def test_inline_dispatch_runs_immediately(self) -> None:
        dispatcher = FireAndForgetDispatcher(max_workers=0)
        calls = []

        self.assertIsNone(dispatcher.submit("record", calls.append, "payload"))
        self.assertEqual(["payload"], calls)

    def test_failures_are_logged_not_raised(self) -> None:
        dispatcher = FireAndForgetDispatcher(max_workers=0)

        def broken():
            raise ConnectionError("sync offline")

        with self.assertLogs("questcore.application.services.collaborators", level="ERROR") as captured:
            dispatcher.submit("sync", broken)
        self.assertIn("Collaborator call failed", captured.output[0])

    def test_threaded_dispatch_completes_off_thread(self) -> None:
        dispatcher = FireAndForgetDispatcher(max_workers=1)
        names = []
        future = dispatcher.submit("thread-name", lambda: names.append(threading.current_thread().name))
        future.result(timeout=5)
        dispatcher.shutdown()

        self.assertTrue(names[0].startswith("questcore-dispatch"))

    def test_submit_after_shutdown_is_dropped(self) -> None:
        dispatcher = FireAndForgetDispatcher(max_workers=1)
        dispatcher.shutdown()

        with self.assertLogs("questcore.application.services.collaborators", level="WARNING"):
            self.assertIsNone(dispatcher.submit("late", lambda: None))


class GatewayTests(unittest.TestCase):
    def test_logging_notifier_logs_kind(self) -> None:
        with self.assertLogs("questcore.application.services.collaborators", level="INFO") as captured:
            LoggingNotifier().notify("c1", "achievement", "Unlocked First Steps")
        self.assertIn("achievement: Unlocked First Steps", captured.output[0])

    def test_null_sync_gateway_accepts_anything(self) -> None:
        self.assertIsNone(NullSyncGateway().push("character", "c1", {"level": 3}))


class CharacterLockRegistryTests(unittest.TestCase):
    def test_same_id_returns_same_lock(self) -> None:
        registry = CharacterLockRegistry()
        self.assertIs(registry.lock_for("a"), registry.lock_for("a"))
        self.assertIsNot(registry.lock_for("a"), registry.lock_for("b"))
        self.assertEqual(["a", "b"], registry.known_ids())

    def test_hold_is_reentrant_and_releases(self) -> None:
        registry = CharacterLockRegistry()
        with registry.hold("b", "a", "a"):
            with registry.hold("a"):
                pass
        self.assertTrue(registry.lock_for("a").acquire(blocking=False))
        registry.lock_for("a").release()

    def test_hold_blocks_other_threads(self) -> None:
        registry = CharacterLockRegistry()
        acquired = []

        def contender():
            lock = registry.lock_for("a")
            acquired.append(lock.acquire(timeout=0.05))
            if acquired[-1]:
                lock.release()

        with registry.hold("a"):
            worker = threading.Thread(target=contender)
            worker.start()
            worker.join()

        self.assertEqual([False], acquired)

    def test_hold_releases_on_error(self) -> None:
        registry = CharacterLockRegistry()
        with self.assertRaises(ValueError):
            with registry.hold("a"):
                raise ValueError("boom")

        outcome = []
        worker = threading.Thread(target=lambda: outcome.append(registry.lock_for("a").acquire(timeout=1)))
        worker.start()
        worker.join()
        self.assertEqual([True], outcome)


if __name__ == "__main__":
    unittest.main()
