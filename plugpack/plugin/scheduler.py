"""
Setup Scheduler.

This module activates plugin setup actions in dependency order.

Key features:
- Depth-first dependency walk with circular dependency detection
- Idempotent re-entry (completed setups never run twice)
- Event-gated activation with debounce
- Transient-buffer filtering for unreliable events
"""

import asyncio
from collections.abc import Callable

from plugpack.core.event_bus import EventArgs, EventBus, Handler
from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin.registry import SetupRegistry, SetupState

Defer = Callable[[float, Callable[[], None]], None]


def default_defer(delay: float, callback: Callable[[], None]) -> None:
    """
    Run callback after delay on the running event loop.

    Without a running loop there is nothing to wait on, so the callback runs
    immediately.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return
    loop.call_later(delay, callback)


class SetupScheduler:
    """
    Walks the setup registry and runs setup actions.

    Failures (cycles, missing installs, raising actions) are reported through
    notify and abort only the branch they occur in.
    """

    def __init__(
        self,
        registry: SetupRegistry,
        bus: EventBus,
        *,
        debounce: float = 0.01,
        enter_event: str = "enter",
        transient_prefixes: tuple[str, ...] = ("oil://",),
        defer: Defer | None = None,
        notify: Notifier = default_notify,
    ):
        """
        Initialize SetupScheduler.

        Args:
            registry: Setup descriptors and activation state
            bus: Event bus delivering trigger events
            debounce: Delay in seconds between an event and the setup action
            enter_event: Event exempt from the transient-buffer filter
            transient_prefixes: File prefixes whose events are ignored
            defer: Scheduler for delayed callbacks (default: event loop)
            notify: Diagnostic sink
        """
        self.registry = registry
        self.bus = bus
        self.debounce = debounce
        self.enter_event = enter_event
        self.transient_prefixes = tuple(transient_prefixes)
        self._defer = defer or default_defer
        self._notify = notify
        self._listeners: dict[str, list[Handler]] = {}
        # dependency identity -> dependents blocked on it
        self._blocked: dict[str, list[str]] = {}

    def activate(self, identity: str, active_path: set[str] | None = None) -> bool:
        """
        Activate a plugin's setup after its dependencies.

        Args:
            identity: Plugin identity
            active_path: Identities on the current dependency chain

        Returns:
            False if this branch aborted (cycle, not installed, failing action)
        """
        descriptor = self.registry.get(identity)
        if descriptor is None:
            return True

        state = self.registry.state(identity)
        if state.setup in (SetupState.COMPLETED, SetupState.WAITING, SetupState.BLOCKED):
            return True

        if not state.installed:
            self._notify(
                f"Cannot set up {identity}: plugin is not installed", Level.ERROR
            )
            return False

        if active_path is None:
            active_path = set()

        active_path.add(identity)
        try:
            for dependency in descriptor.dependencies:
                if self.registry.is_completed(dependency):
                    continue
                if dependency in active_path:
                    self._notify(
                        f"Circular dependency detected for {identity} -> {dependency}",
                        Level.ERROR,
                    )
                    return False
                if not self.activate(dependency, active_path):
                    return False
        finally:
            active_path.discard(identity)

        if descriptor.action is None:
            self.registry.set_setup_state(identity, SetupState.COMPLETED)
            return True

        if descriptor.trigger_events:
            self._arm(identity, descriptor.trigger_events)
            return True

        return self._run(identity)

    def activate_all(self) -> dict[str, bool]:
        """
        Activate every registered plugin in registration order.

        Returns:
            identity -> result of activate()
        """
        return {
            identity: self.activate(identity, set())
            for identity in self.registry.identities()
        }

    def _arm(self, identity: str, events: tuple[str, ...]) -> None:
        """Register one-shot listeners for a plugin's trigger events."""

        def on_event(args: EventArgs) -> None:
            if args.event != self.enter_event and args.file.startswith(
                self.transient_prefixes
            ):
                return
            self._defer(self.debounce, lambda: self._fire(identity))

        self._listeners[identity] = [
            self.bus.register_event_consumer(event, on_event) for event in events
        ]
        self.registry.set_setup_state(identity, SetupState.WAITING)

    def _fire(self, identity: str) -> None:
        # Several firings may be queued; only the first one runs the action
        if self.registry.state(identity).setup is not SetupState.WAITING:
            return
        for handler in self._listeners.pop(identity, []):
            self.bus.unregister(handler)
        self._run(identity)

    def _run(self, identity: str) -> bool:
        """Run the setup action once every registered dependency completed."""
        descriptor = self.registry.get(identity)
        if descriptor is None or self.registry.is_completed(identity):
            return True

        pending = [
            dependency
            for dependency in descriptor.dependencies
            if self.registry.get(dependency) is not None
            and not self.registry.is_completed(dependency)
        ]
        if pending:
            # An event-gated dependency has not fired yet
            self.registry.set_setup_state(identity, SetupState.BLOCKED)
            for dependency in pending:
                self._blocked.setdefault(dependency, []).append(identity)
            return True

        self.registry.set_setup_state(identity, SetupState.ACTIVATING)
        try:
            if descriptor.action is not None:
                descriptor.action()
        except Exception as e:
            self.registry.set_setup_state(identity, SetupState.REGISTERED)
            self._notify(f"Setup for {identity} failed: {e}", Level.ERROR)
            return False

        self.registry.set_setup_state(identity, SetupState.COMPLETED)

        for dependent in self._blocked.pop(identity, []):
            if self.registry.state(dependent).setup is SetupState.BLOCKED:
                self._run(dependent)
        return True
