"""
Setup Registry.

This module tracks per-plugin setup descriptors and activation state, and
expands registered sources into the flat installation set.

Key features:
- Explicit setup state machine per plugin identity
- Monotonic completion
- Branch override bookkeeping for update checks
- Install-time flattening with event inheritance
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from plugpack.plugin.identity import plugin_identity
from plugpack.plugin.spec import (
    DEFAULT_HOST,
    Group,
    PluginDescriptor,
    PluginSpec,
    SinglePlugin,
    normalize,
)


class SetupState(Enum):
    """Setup state enumeration."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    WAITING = "waiting"
    BLOCKED = "blocked"
    ACTIVATING = "activating"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SetupDescriptor:
    """
    What to run once a plugin is installed.

    Attributes:
        action: Zero-argument setup action (None = nothing to run)
        dependencies: Identities that must complete setup first, in order
        trigger_events: Events gating the action (None = run immediately)
    """

    action: Callable[[], Any] | None
    dependencies: tuple[str, ...] = ()
    trigger_events: tuple[str, ...] | None = None


@dataclass
class ActivationState:
    """
    Install and setup status of one plugin.

    Attributes:
        installed: Set once the installer confirms the package is present
        setup: Current setup state
    """

    installed: bool = False
    setup: SetupState = SetupState.UNREGISTERED

    @property
    def setup_completed(self) -> bool:
        return self.setup is SetupState.COMPLETED


class SetupRegistry:
    """
    Per-context table of setup descriptors and activation state.

    Each Pack owns one registry; nothing here is process-wide.
    """

    def __init__(self):
        self._setups: dict[str, SetupDescriptor] = {}
        self._states: dict[str, ActivationState] = {}
        self._branch_overrides: dict[str, str] = {}

    def register(self, identity: str, descriptor: SetupDescriptor) -> None:
        """
        Register (or replace) the setup descriptor for a plugin.

        A plugin whose setup already completed keeps its COMPLETED state.
        """
        self._setups[identity] = descriptor
        state = self.state(identity)
        if state.setup is SetupState.UNREGISTERED:
            state.setup = SetupState.REGISTERED

    def get(self, identity: str) -> SetupDescriptor | None:
        return self._setups.get(identity)

    def identities(self) -> list[str]:
        """Identities with a registered setup, in registration order."""
        return list(self._setups)

    def state(self, identity: str) -> ActivationState:
        """Get the activation state for a plugin, creating it on first use."""
        if identity not in self._states:
            self._states[identity] = ActivationState()
        return self._states[identity]

    def set_setup_state(self, identity: str, setup: SetupState) -> None:
        state = self.state(identity)
        # Completion is absorbing
        if state.setup is SetupState.COMPLETED:
            return
        state.setup = setup

    def mark_installed(self, identity: str) -> None:
        self.state(identity).installed = True

    def is_installed(self, identity: str) -> bool:
        return identity in self._states and self._states[identity].installed

    def is_completed(self, identity: str) -> bool:
        return identity in self._states and self._states[identity].setup_completed

    def set_branch_override(self, identity: str, branch: str) -> None:
        self._branch_overrides[identity] = branch

    def branch_override(self, identity: str) -> str | None:
        return self._branch_overrides.get(identity)


def prepare(
    spec: PluginSpec,
    registry: SetupRegistry,
    plugins: list[PluginDescriptor],
    parent_events: tuple[str, ...] | None = None,
    default_host: str = DEFAULT_HOST,
) -> None:
    """
    Expand one registered source into the flat installation set.

    Dependencies are expanded first (depth-first, declared order) and inherit
    the effective trigger events of their parent unless they declare their
    own. A root declaring a setup action gets a SetupDescriptor registered
    under its identity.

    Args:
        spec: Registered plugin source
        registry: Registry receiving setup descriptors and branch overrides
        plugins: Flat installation list, appended to in place
        parent_events: Trigger events inherited from the parent
        default_host: Host prefix for shorthand sources
    """
    if isinstance(spec, SinglePlugin):
        events = spec.event or parent_events
        for dep in spec.deps:
            prepare(dep, registry, plugins, events, default_host)

        if spec.setup is not None:
            identity = plugin_identity(spec, default_host)
            if identity is not None:
                dependencies = []
                for dep in spec.deps:
                    dep_identity = plugin_identity(dep, default_host)
                    if dep_identity is not None:
                        dependencies.append(dep_identity)
                registry.register(
                    identity,
                    SetupDescriptor(
                        action=spec.setup,
                        dependencies=tuple(dependencies),
                        trigger_events=events,
                    ),
                )
    elif isinstance(spec, Group):
        # Nested single plugins may carry their own setup and deps
        for item in spec.items:
            prepare(item, registry, plugins, parent_events, default_host)
        return

    for descriptor in normalize(spec, default_host):
        if descriptor.branch_override is not None:
            identity = plugin_identity(descriptor, default_host)
            if identity is not None:
                registry.set_branch_override(identity, descriptor.branch_override)
        plugins.append(descriptor)
