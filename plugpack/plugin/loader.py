"""
Module-path Plugin Loader.

This module registers plugin specs declared in Python configuration modules.

Key features:
- Dotted path resolution against a configuration directory
- Single-module and whole-directory loading
- importlib integration for dynamic loading
- Errors reported, never raised
"""

import importlib.util
import sys
from pathlib import Path
from types import ModuleType

from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin.spec import SinglePlugin, SpecError, spec_from_raw

# Module attribute holding the plugin spec
SPEC_ATTRIBUTE = "plugin"


class LoaderError(Exception):
    """Raised when a configuration module cannot be loaded."""

    pass


def _module_name(module_path: str) -> str:
    return f"plugpack_config_{module_path.replace('.', '_')}"


def load_config_module(file_path: Path, module_path: str) -> ModuleType:
    """
    Load a configuration module from a file.

    Args:
        file_path: Path to the .py file
        module_path: Dotted path the module was requested as

    Returns:
        Loaded module

    Raises:
        LoaderError: If loading fails
    """
    module_name = _module_name(module_path)
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    if spec is None or spec.loader is None:
        raise LoaderError(f"Failed to create module spec for {file_path}")

    module = importlib.util.module_from_spec(spec)

    # Add to sys.modules before execution
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        # Clean up sys.modules on failure
        sys.modules.pop(module_name, None)
        raise LoaderError(f"Failed to load {module_path}: {e}") from e

    return module


def _plugin_from_module(module_path: str, file_path: Path, notify: Notifier) -> SinglePlugin | None:
    try:
        module = load_config_module(file_path, module_path)
    except LoaderError as e:
        notify(str(e), Level.ERROR)
        return None

    raw = getattr(module, SPEC_ATTRIBUTE, None)
    if raw is None:
        return None
    try:
        spec = spec_from_raw(raw)
    except SpecError as e:
        notify(f"Invalid plugin spec in {module_path}: {e}", Level.ERROR)
        return None

    # Only modules describing exactly one plugin are registered
    return spec if isinstance(spec, SinglePlugin) else None


def load_sources(
    module_path: str,
    base_dir: Path,
    notify: Notifier = default_notify,
) -> list[SinglePlugin]:
    """
    Collect plugin specs from a configuration module or package directory.

    ``a.b`` resolves to ``base_dir/a/b.py`` or, for a directory, to every
    immediate ``*.py`` child of ``base_dir/a/b/`` in name order.

    Args:
        module_path: Dotted module path
        base_dir: Configuration root directory
        notify: Diagnostic sink

    Returns:
        Specs found, in load order
    """
    config_path = Path(base_dir).joinpath(*module_path.split("."))
    file_path = config_path.with_name(config_path.name + ".py")

    if file_path.is_file():
        plugin = _plugin_from_module(module_path, file_path, notify)
        return [plugin] if plugin is not None else []

    if config_path.is_dir():
        plugins = []
        for child in sorted(config_path.glob("*.py")):
            if child.name == "__init__.py":
                continue
            plugin = _plugin_from_module(f"{module_path}.{child.stem}", child, notify)
            if plugin is not None:
                plugins.append(plugin)
        return plugins

    notify(f"Path {config_path} is neither a file nor a directory", Level.ERROR)
    return []
