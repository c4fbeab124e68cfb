"""
Shared setup for pm commands.
"""

from typing import Any

from plugpack.config import ConfigError, load_config
from plugpack.core.notify import Level, stderr_notifier
from plugpack.pack import Pack
from pm.cli import PMError


def build_pack(args: Any) -> Pack:
    """
    Create a Pack from the command-line configuration.

    Raises:
        PMError: If the configuration file is invalid
    """
    try:
        config = load_config(args.config)
    except ConfigError as e:
        raise PMError(f"Invalid configuration: {e}") from e

    notify = stderr_notifier(Level.DEBUG if args.verbose else Level.INFO)
    return Pack(config, notify=notify)
