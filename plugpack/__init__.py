"""
plugpack - plugin registration, dependency-ordered setup and update checks.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from plugpack.config import PackConfig, load_config
from plugpack.pack import Pack
from plugpack.plugin.installer import GitInstaller
from plugpack.plugin.selector import ALL
from plugpack.plugin.spec import Group, Identifier, PluginDescriptor, SinglePlugin

__all__ = [
    "__version__",
    "ALL",
    "GitInstaller",
    "Group",
    "Identifier",
    "Pack",
    "PackConfig",
    "PluginDescriptor",
    "SinglePlugin",
    "load_config",
]
