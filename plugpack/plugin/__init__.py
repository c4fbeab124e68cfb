"""
plugpack plugin system - plugin specs, setup scheduling and reconciliation.

This module handles:
- Spec normalization and plugin identity
- Setup registration and dependency-ordered activation
- Git-based installation
- Concurrent update checking and update dispatch
- Module-path based bulk registration
"""

__all__ = []
