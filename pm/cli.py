"""
pm CLI - plugpack Package Manager.

Pacman-style interface for managing plugins.

Usage:
    pm -S [owner/repo[@version] ...]   Install targets (or every configured plugin)
    pm -U                              Check for and apply updates
    pm -Q                              List installed plugins
"""

import argparse
import sys
from pathlib import Path


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="plugpack Package Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugins")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Upgrade plugins")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Common options
    parser.add_argument(
        "--config", type=Path, default=None, help="Configuration file (TOML)"
    )
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin sources")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - plugpack Package Manager

Usage:
    pm -S [owner/repo[@version] ...]   Install targets (or every configured plugin)
    pm -U                              Check for and apply updates
    pm -Q                              List installed plugins

Options:
    --config PATH                Configuration file (default: config/plugpack.toml)
    --noconfirm                  Update everything without asking
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.help or not (args.sync or args.upgrade or args.query):
            print_help()
            return 0

        if args.sync:
            from pm.commands.install import install_command

            return install_command(args)

        elif args.upgrade:
            from pm.commands.upgrade import upgrade_command

            return upgrade_command(args)

        elif args.query:
            from pm.commands.query import query_command

            return query_command(args)

    except PMError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
