"""Handler table keyed by event class."""

from collections.abc import Callable

import structlog

from eventbus.errors import UnhandledEvent

logger = structlog.get_logger(__name__)


class HandlerSet:
    """Routes a decoded event to the one handler registered for its class.

    The routing keys a consumer binds are derived from this table, and
    ``check_bindings`` refuses a queue whose bindings drift from it.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, Callable] = {}

    def register(self, event_cls: type, handler: Callable | None = None):
        """Register ``handler`` for ``event_cls``; usable as a decorator."""

        def decorator(func: Callable) -> Callable:
            if event_cls in self._handlers:
                raise ValueError(f"A handler is already registered for {event_cls.EVENT_TYPE}")
            self._handlers[event_cls] = func
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    @property
    def event_classes(self) -> tuple[type, ...]:
        return tuple(self._handlers)

    def routing_keys(self) -> tuple[str, ...]:
        return tuple(sorted(event_cls.EVENT_TYPE for event_cls in self._handlers))

    def check_bindings(self, routing_keys) -> None:
        bound = set(routing_keys)
        handled = set(self.routing_keys())
        if bound != handled:
            raise ValueError(
                f"Bindings do not match handlers: unhandled={sorted(bound - handled)} "
                f"unbound={sorted(handled - bound)}"
            )

    def dispatch(self, event) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise UnhandledEvent(f"No handler registered for {event.event_type}")
        handler(event)
