"""
plugpack core - runtime plumbing shared by the plugin subsystem.

This module contains:
- Event Bus: runtime events that gate deferred plugin setup
- Notify: user-visible diagnostics
"""

__all__ = []
