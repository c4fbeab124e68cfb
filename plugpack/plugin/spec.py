"""
Plugin Specifications.

This module turns declarative plugin sources into canonical descriptors.

Key features:
- Tagged spec types: Identifier, SinglePlugin, Group
- Conversion from untyped data (TOML tables, module attributes)
- Shorthand expansion (owner/repo -> https://github.com/owner/repo)
- Order-preserving depth-first flattening
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

DEFAULT_HOST = "https://github.com/"

# scheme://... or scp-style user@host:path
_URL_RE = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.-]*://|[\w.-]+@[\w.-]+:)")

# Keys on a raw plugin table that the core interprets itself
_RESERVED_KEYS = frozenset({"src", "version", "setup", "deps", "event"})


class SpecError(Exception):
    """Raised when a plugin source cannot be interpreted."""

    pass


@dataclass(frozen=True)
class Identifier:
    """A bare plugin source: ``owner/repo`` shorthand or an absolute URL."""

    value: str


@dataclass(frozen=True)
class SinglePlugin:
    """
    One plugin with its configuration.

    Attributes:
        source: Repository URL or owner/repo shorthand
        version: Branch, tag or version to track (None = remote default)
        setup: Zero-argument setup action run after install
        deps: Plugins that must be installed and set up first
        event: Runtime events that gate the setup action (None = immediate)
        options: Passthrough configuration forwarded to the installer
    """

    source: str
    version: str | None = None
    setup: Callable[[], Any] | None = None
    deps: tuple["PluginSpec", ...] = ()
    event: tuple[str, ...] | None = None
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Group:
    """An ordered collection of plugin specs."""

    items: tuple["PluginSpec", ...] = ()


PluginSpec = Union[Identifier, SinglePlugin, Group]


@dataclass(frozen=True)
class PluginDescriptor:
    """
    Canonical, flattened install-time description of one plugin.

    Attributes:
        source: Absolute fetch URL
        branch_override: Branch/tag/version to track, if declared
        options: Read-only passthrough fields (includes 'version' when declared)
    """

    source: str
    branch_override: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.source:
            raise SpecError("Plugin descriptor requires a non-empty source")
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def to_dict(self) -> dict[str, Any]:
        """Installer-facing form: {'src': source, **options}."""
        return {"src": self.source, **self.options}


def normalize_url(value: str, default_host: str = DEFAULT_HOST) -> str:
    """
    Expand a plugin source into an absolute URL.

    Args:
        value: Absolute URL or owner/repo shorthand
        default_host: Host prefix for shorthand sources

    Returns:
        Absolute URL

    Raises:
        SpecError: If value is empty
    """
    value = value.strip()
    if not value:
        raise SpecError("Plugin source must be a non-empty string")
    if _URL_RE.match(value):
        return value
    if not default_host.endswith("/"):
        default_host += "/"
    return default_host + value.lstrip("/")


def _events_from_raw(raw: Any) -> tuple[str, ...] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, (list, tuple)) and all(isinstance(e, str) for e in raw):
        return tuple(raw) or None
    raise SpecError(f"'event' must be a string or a list of strings, got {raw!r}")


def _deps_from_raw(raw: Any) -> tuple[PluginSpec, ...]:
    if raw is None:
        return ()
    # A single dependency may be given without wrapping it in a list
    if isinstance(raw, (str, Identifier, SinglePlugin)) or (
        isinstance(raw, Mapping) and "src" in raw
    ):
        return (spec_from_raw(raw),)
    if isinstance(raw, Group):
        return raw.items
    if isinstance(raw, (list, tuple)):
        return tuple(spec_from_raw(item) for item in raw)
    raise SpecError(f"'deps' must be a plugin spec or a list of specs, got {raw!r}")


def spec_from_raw(raw: Any) -> PluginSpec:
    """
    Build a typed spec from untyped data.

    Strings become Identifier, mappings carrying 'src' become SinglePlugin,
    lists and tuples become Group. Typed specs pass through unchanged.

    Args:
        raw: String, mapping, list/tuple, typed spec or None

    Returns:
        Typed plugin spec

    Raises:
        SpecError: If the value has no interpretation
    """
    if isinstance(raw, (Identifier, SinglePlugin, Group)):
        return raw
    if raw is None:
        return Group()
    if isinstance(raw, str):
        if not raw.strip():
            raise SpecError("Plugin source must be a non-empty string")
        return Identifier(raw)
    if isinstance(raw, Mapping):
        source = raw.get("src")
        if not isinstance(source, str) or not source.strip():
            raise SpecError(f"Plugin table needs a non-empty string 'src': {dict(raw)!r}")

        setup = raw.get("setup")
        if setup is not None and not callable(setup):
            raise SpecError(f"'setup' for {source} must be callable")

        version = raw.get("version")
        if version is not None and not isinstance(version, str):
            raise SpecError(f"'version' for {source} must be a string")

        return SinglePlugin(
            source=source,
            version=version,
            setup=setup,
            deps=_deps_from_raw(raw.get("deps")),
            event=_events_from_raw(raw.get("event")),
            options={k: v for k, v in raw.items() if k not in _RESERVED_KEYS},
        )
    if isinstance(raw, (list, tuple)):
        return Group(tuple(spec_from_raw(item) for item in raw))

    raise SpecError(f"Unsupported plugin source type: {type(raw).__name__}")


def normalize(spec: PluginSpec | None, default_host: str = DEFAULT_HOST) -> list[PluginDescriptor]:
    """
    Flatten a spec into descriptors, depth-first in declaration order.

    Pure transformation: no network or filesystem access.

    Args:
        spec: Typed plugin spec (None yields an empty list)
        default_host: Host prefix for shorthand sources

    Returns:
        Ordered list of PluginDescriptor
    """
    if spec is None:
        return []

    if isinstance(spec, Identifier):
        return [PluginDescriptor(source=normalize_url(spec.value, default_host))]

    if isinstance(spec, SinglePlugin):
        options = dict(spec.options)
        if spec.version is not None:
            options["version"] = spec.version
        return [
            PluginDescriptor(
                source=normalize_url(spec.source, default_host),
                branch_override=spec.version,
                options=options,
            )
        ]

    if isinstance(spec, Group):
        descriptors = []
        for item in spec.items:
            descriptors.extend(normalize(item, default_host))
        return descriptors

    raise SpecError(f"Not a plugin spec: {spec!r}")
