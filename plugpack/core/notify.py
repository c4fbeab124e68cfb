"""
User-visible diagnostics.

Every component reports recoverable failures through a ``notify(message, level)``
callable instead of raising across its boundary. The default notifier surfaces
warnings and errors as ``RuntimeWarning`` and drops informational messages.
"""

import sys
import warnings
from collections.abc import Callable
from enum import IntEnum


class Level(IntEnum):
    """Diagnostic severity."""

    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40


Notifier = Callable[[str, Level], None]


def default_notify(message: str, level: Level = Level.INFO) -> None:
    """Raise WARN/ERROR diagnostics as RuntimeWarning; ignore the rest."""
    if level >= Level.WARN:
        warnings.warn(message, RuntimeWarning, stacklevel=3)


def stderr_notifier(min_level: Level = Level.INFO) -> Notifier:
    """
    Build a notifier that prints to stderr.

    Args:
        min_level: Messages below this level are dropped

    Returns:
        Notifier callable
    """

    def notify(message: str, level: Level = Level.INFO) -> None:
        if level < min_level:
            return
        prefix = "" if level == Level.INFO else f"{level.name.lower()}: "
        print(f"{prefix}{message}", file=sys.stderr)

    return notify
