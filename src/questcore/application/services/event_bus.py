from collections import defaultdict
import logging
from typing import Callable, DefaultDict, List, NamedTuple, Type


logger = logging.getLogger(__name__)

Handler = Callable[[object], None]


class _Subscription(NamedTuple):
    priority: int
    order: int
    handler: Handler


class EventBus:
    """In-process publisher for domain events.

    Handlers registered for a base class also receive its subclasses, so a
    subscription on ``object`` sees every event. Lower priorities run first.
    A failing handler is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._subscriptions: DefaultDict[Type[object], List[_Subscription]] = defaultdict(list)
        self._next_order = 0
        self._last_publish_errors: List[Exception] = []

    def subscribe(self, event_type: Type[object], handler: Handler, *, priority: int = 100) -> None:
        self._subscriptions[event_type].append(_Subscription(int(priority), self._next_order, handler))
        self._next_order += 1

    def unsubscribe(self, event_type: Type[object], handler: Handler) -> bool:
        current = self._subscriptions.get(event_type, [])
        kept = [row for row in current if row.handler is not handler]
        self._subscriptions[event_type] = kept
        return len(kept) != len(current)

    def _subscriptions_for(self, event_type: Type[object]) -> List[_Subscription]:
        matched = [row for klass in event_type.__mro__ for row in self._subscriptions.get(klass, ())]
        return sorted(matched)

    def publish(self, event: object) -> None:
        self._last_publish_errors = []
        event_name = type(event).__name__
        for subscription in self._subscriptions_for(type(event)):
            try:
                subscription.handler(event)
            except Exception as exc:
                self._last_publish_errors.append(exc)
                logger.exception(
                    "Event handler failed and was isolated",
                    extra={
                        "event_type": event_name,
                        "handler": getattr(subscription.handler, "__qualname__", repr(subscription.handler)),
                        "priority": subscription.priority,
                    },
                )

    __call__ = publish

    def last_publish_errors(self) -> List[Exception]:
        return list(self._last_publish_errors)
