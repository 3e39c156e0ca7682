from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional, Protocol


logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    def notify(self, character_id: str, kind: str, message: str) -> None: ...


class SyncGateway(Protocol):
    def push(self, record_type: str, record_id: str, payload: Mapping[str, Any]) -> None: ...


class LoggingNotifier:
    def notify(self, character_id: str, kind: str, message: str) -> None:
        logger.info("%s: %s", kind, message, extra={"character_id": character_id, "kind": kind})


class NullSyncGateway:
    def push(self, record_type: str, record_id: str, payload: Mapping[str, Any]) -> None:
        return None


class FireAndForgetDispatcher:
    """Runs collaborator calls off the caller's thread.

    The caller never sees the outcome: exceptions are logged and dropped.
    With ``max_workers=0`` calls run inline, which keeps tests deterministic.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers > 0:
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="questcore-dispatch")

    def submit(self, label: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        if self._executor is None:
            self._run(label, func, *args, **kwargs)
            return None
        try:
            return self._executor.submit(self._run, label, func, *args, **kwargs)
        except RuntimeError:
            logger.warning("Dispatcher is shut down; dropped %s", label)
            return None

    @staticmethod
    def _run(label: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            func(*args, **kwargs)
        except Exception:
            logger.exception("Collaborator call failed and was ignored", extra={"collaborator": label})

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
