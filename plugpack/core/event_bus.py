"""
Event Bus - runtime event delivery for deferred plugin setup.

This module implements:
1. Exact and glob-pattern event subscriptions
2. Priority-based execution (higher priority = earlier execution)
3. Unsubscription, so one-shot listeners can detach after firing

A failing handler never stops delivery to the remaining handlers.
"""

import re
import warnings
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


class EventBusError(Exception):
    """Base exception for event bus errors."""

    pass


class RegistrationError(EventBusError):
    """Raised when handler registration fails."""

    pass


@dataclass(frozen=True)
class EventArgs:
    """
    Payload delivered with every event.

    Attributes:
        event: Name of the event that fired
        file: File or buffer name the event refers to ("" if none)
        data: Arbitrary extra payload
    """

    event: str
    file: str = ""
    data: Any = None


@dataclass(eq=False)
class Handler:
    """
    Represents a registered event handler.

    Attributes:
        event_id: Event ID or glob pattern the handler was registered for
        callback: The handler function, called with EventArgs
        priority: Higher priority executes first
        registration_order: Tie-breaker for same priority (lower = earlier)
        pattern: Compiled regex for glob subscriptions, None for exact ones
    """

    event_id: str
    callback: Callable[[EventArgs], None]
    priority: int
    registration_order: int
    pattern: re.Pattern | None = None

    def matches(self, event_id: str) -> bool:
        if self.pattern is None:
            return self.event_id == event_id
        return self.pattern.match(event_id) is not None

    def __call__(self, args: EventArgs) -> None:
        """Execute the handler."""
        self.callback(args)


class EventBus:
    """
    Event bus owned by a single Pack context.

    Exact subscriptions are indexed by event ID; glob subscriptions are
    scanned on every dispatch.
    """

    def __init__(self):
        self._event_routes: dict[str, list[Handler]] = {}
        self._event_patterns: list[Handler] = []
        self._registration_counter = 0

    def _next_registration_order(self) -> int:
        order = self._registration_counter
        self._registration_counter += 1
        return order

    def _glob_to_regex(self, pattern: str) -> re.Pattern:
        """
        Convert glob pattern to compiled regex.

        ``*`` matches any characters within a segment (not across dots).

        Example:
            'Buf*' matches 'BufRead' and 'BufEnter'
        """
        escaped = re.escape(pattern)
        regex_pattern = escaped.replace(r"\*", "[^.]*")
        return re.compile(f"^{regex_pattern}$")

    def register_event_consumer(
        self, event_id: str, callback: Callable[[EventArgs], None], priority: int = 0
    ) -> Handler:
        """
        Register a consumer for an event ID or glob pattern.

        Args:
            event_id: Exact event ID, or a pattern containing '*'
            callback: Handler function taking (args: EventArgs)
            priority: Execution priority (higher = earlier)

        Returns:
            The registered Handler, usable with unregister()

        Raises:
            RegistrationError: If the event ID is empty or callback is not callable
        """
        if not event_id:
            raise RegistrationError("Event ID must be a non-empty string")
        if not callable(callback):
            raise RegistrationError(f"Handler for '{event_id}' is not callable")

        handler = Handler(
            event_id=event_id,
            callback=callback,
            priority=priority,
            registration_order=self._next_registration_order(),
            pattern=self._glob_to_regex(event_id) if "*" in event_id else None,
        )
        if handler.pattern is not None:
            self._event_patterns.append(handler)
        else:
            self._event_routes.setdefault(event_id, []).append(handler)
        return handler

    def unregister(self, handler: Handler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        if handler.pattern is not None:
            if handler in self._event_patterns:
                self._event_patterns.remove(handler)
            return

        handlers = self._event_routes.get(handler.event_id, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._event_routes.pop(handler.event_id, None)

    def consumer(self, event_id: str, priority: int = 0):
        """
        Decorator to register a consumer.

        Example:
            @bus.consumer('BufRead*')
            def on_read(args: EventArgs):
                ...
        """

        def decorator(func: Callable) -> Callable:
            self.register_event_consumer(event_id, func, priority)
            return func

        return decorator

    def _find_handlers(self, event_id: str) -> list[Handler]:
        """Find all handlers matching the event ID, sorted by priority."""
        handlers = list(self._event_routes.get(event_id, []))
        handlers.extend(h for h in self._event_patterns if h.matches(event_id))
        return sorted(handlers, key=lambda h: (-h.priority, h.registration_order))

    def has_handlers(self, event_id: str) -> bool:
        return bool(self._find_handlers(event_id))

    def dispatch_event(self, event_id: str, args: EventArgs | None = None) -> None:
        """
        Dispatch an event to every matching handler in priority order.

        Handlers may unregister themselves while being dispatched; the handler
        list is snapshotted before delivery.

        Args:
            event_id: The event identifier
            args: The event payload (defaults to EventArgs(event_id))
        """
        if args is None:
            args = EventArgs(event_id)

        for handler in self._find_handlers(event_id):
            try:
                handler(args)
            except Exception as e:
                # Log but don't stop execution
                warnings.warn(
                    f"Event handler failed for '{event_id}': {e}",
                    RuntimeWarning,
                    stacklevel=2,
                )
