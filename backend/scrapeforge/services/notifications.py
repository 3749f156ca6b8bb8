"""In-process notification bus for job events.

The bus is passed into the JobManager at construction; an external transport
(websocket relay, SSE endpoint) subscribes to it and forwards events to
clients.
"""

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Union

import structlog

logger = structlog.get_logger(__name__)


class JobEvent:
    """Event names published by the JobManager."""

    UPDATE = "job:update"
    LOG = "job:log"
    COMPLETE = "job:complete"
    CREATED = "job:created"
    CANCELLED = "job:cancelled"

    ALL = (UPDATE, LOG, COMPLETE, CREATED, CANCELLED)


Handler = Callable[[str, Dict[str, Any]], Union[None, Awaitable[None]]]

# Key under which subscribe_all handlers are stored
_WILDCARD = "*"


class NotificationBus:
    """Publish/subscribe relay.

    Handlers receive ``(event, payload)`` and may be plain functions or
    coroutine functions. A failing handler is logged and skipped; it never
    affects the publisher or the other handlers.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.logger = logger.bind(service="notification_bus")

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``.

        Returns:
            Callable that removes the subscription; calling it twice is a no-op
        """
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for every event."""
        return self.subscribe(_WILDCARD, handler)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        handlers = list(self._handlers.get(event, ())) + list(self._handlers.get(_WILDCARD, ()))
        for handler in handlers:
            try:
                result = handler(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "notification_handler_failed",
                    event_name=event,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )
