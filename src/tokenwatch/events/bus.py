"""In-process publish/subscribe bus.

Handlers are plain callables invoked synchronously in subscription
order. A handler that raises is logged and does not stop delivery to the
remaining handlers.
"""

from collections import defaultdict
from collections.abc import Callable
from typing import TypeVar

import structlog

from tokenwatch.events.models import Event

log = structlog.get_logger(__name__)

E = TypeVar("E", bound=Event)


class EventBus:
    """Typed event bus keyed by event class.

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe(WalletUnlocked, on_unlock)
        bus.publish(WalletUnlocked())
        unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[Callable[[Event], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register ``handler`` for ``event_type``.

        Returns:
            A callable that removes the subscription.
        """
        self._handlers[event_type].append(handler)  # type: ignore[arg-type]
        log.debug("event_handler_subscribed", event_type=event_type.__name__)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)  # type: ignore[arg-type]
                log.debug("event_handler_unsubscribed", event_type=event_type.__name__)

        return unsubscribe

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to every handler of its type.

        Returns:
            Number of handlers that ran without raising.
        """
        event_name = type(event).__name__
        delivered = 0
        for handler in list(self._handlers.get(type(event), [])):
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                log.error("event_handler_failed", event_type=event_name, error=str(e))
        return delivered

    def handler_count(self, event_type: type[Event]) -> int:
        """Number of handlers subscribed to ``event_type``."""
        return len(self._handlers.get(event_type, []))
