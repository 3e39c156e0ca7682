import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class CharacterLockRegistry:
    """One re-entrant lock per character id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, character_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(character_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[character_id] = lock
            return lock

    @contextmanager
    def hold(self, *character_ids: str) -> Iterator[None]:
        # sorted so two parties sharing members always acquire in the same order
        locks = [self.lock_for(character_id) for character_id in sorted(set(character_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def known_ids(self) -> list[str]:
        with self._guard:
            return sorted(self._locks)
