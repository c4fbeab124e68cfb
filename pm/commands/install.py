"""
pm install command (-S).

Install plugins from the command line or from the configured plugin list.
"""

import sys
from typing import Any

from plugpack.config import ConfigError, load_plugin_sources
from plugpack.plugin.identity import plugin_identity
from pm.cli import PMError
from pm.commands.common import build_pack


def parse_target(target: str) -> dict[str, str]:
    """
    Parse plugin target.

    Args:
        target: owner/repo, URL, or either followed by @version

    Returns:
        Plugin table with 'src' and optional 'version'
    """
    # URLs may contain '@' (git@host:...), so only split after the last '/'
    head, _, tail = target.rpartition("/")
    if "@" in tail:
        name, version = tail.split("@", 1)
        return {"src": f"{head}/{name}" if head else name, "version": version}
    return {"src": target}


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    pack = build_pack(args)

    if args.targets:
        sources = [parse_target(target) for target in args.targets]
    else:
        try:
            sources = load_plugin_sources(args.config)
        except ConfigError as e:
            raise PMError(str(e)) from e

    if not sources:
        print("Error: No targets specified and no plugins configured", file=sys.stderr)
        print("Usage: pm -S <owner/repo>[@version]", file=sys.stderr)
        return 1

    for source in sources:
        pack.src(source)

    plugins = pack.install()
    missing = [
        descriptor.source
        for descriptor in plugins
        if not pack.registry.is_installed(plugin_identity(descriptor) or "")
    ]

    if args.verbose:
        print(f"\nInstalled: {len(plugins) - len(missing)}, Failed: {len(missing)}")

    return 0 if not missing else 1
