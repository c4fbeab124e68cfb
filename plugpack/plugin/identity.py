"""
Plugin identity.

A plugin's identity is the path portion of its source URL (``owner/repo``).
It keys the setup registry, the activation state and branch overrides.
"""

from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlsplit

from plugpack.plugin.spec import (
    DEFAULT_HOST,
    Group,
    Identifier,
    PluginDescriptor,
    SinglePlugin,
    SpecError,
    normalize_url,
)


def identity_from_url(url: str) -> str | None:
    """
    Extract ``owner/repo`` from an absolute URL.

    Handles ``scheme://host/path`` and scp-style ``user@host:path``.
    """
    if "://" in url:
        path = urlsplit(url).path
    elif "@" in url and ":" in url:
        path = url.split(":", 1)[1]
    else:
        path = url

    path = path.strip("/")
    return path or None


def _source_of(value: Any) -> str | None:
    if isinstance(value, PluginDescriptor):
        return value.source
    if isinstance(value, SinglePlugin):
        return value.source
    if isinstance(value, Identifier):
        return value.value
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        source = value.get("src")
        return source if isinstance(source, str) else None
    if isinstance(value, Group):
        return _source_of(value.items[0]) if value.items else None
    if isinstance(value, Sequence) and value:
        return _source_of(value[0])
    return None


def plugin_identity(value: Any, default_host: str = DEFAULT_HOST) -> str | None:
    """
    Derive the stable identity of a plugin.

    Args:
        value: Descriptor, typed spec, raw URL/shorthand, mapping with 'src',
            or a group/sequence whose first element carries a source
        default_host: Host prefix used to expand shorthand

    Returns:
        Identity string, or None when no source can be found
    """
    source = _source_of(value)
    if not source:
        return None
    try:
        url = normalize_url(source, default_host)
    except SpecError:
        return None
    return identity_from_url(url)
