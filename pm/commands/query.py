"""
pm query command (-Q).

List installed plugins.
"""

from typing import Any

from pm.commands.common import build_pack


def query_command(args: Any) -> int:
    """
    Execute query command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    pack = build_pack(args)

    for package in pack.installer.installed():
        if args.verbose:
            print(f"{package.identity}\t{package.path}\t{package.source}")
        else:
            print(package.identity)
    return 0
