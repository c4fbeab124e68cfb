"""
pm upgrade command (-U).

Check installed plugins against their remotes and update the chosen ones.
"""

import asyncio
import sys
from typing import Any

from plugpack.config import ConfigError, load_plugin_sources
from plugpack.plugin.registry import prepare
from plugpack.plugin.selector import ALL, Selection, select_all
from plugpack.plugin.spec import SpecError, spec_from_raw
from plugpack.plugin.updates import UpdateRecord
from pm.cli import PMError
from pm.commands.common import build_pack


def prompt_selection(records: list[UpdateRecord]) -> Selection:
    """
    Ask which divergent plugins to update.

    Accepts space/comma separated numbers, 'all', or an empty answer.

    Raises:
        PMError: On a malformed answer
    """
    for index, record in enumerate(records, 1):
        print(f"{index:>3}) {record.describe()}")

    answer = input(f"Plugins to update (1-{len(records)}, '{ALL}', empty to skip): ").strip()
    if not answer:
        return None
    if answer.lower() == ALL:
        return ALL

    chosen = []
    for token in answer.replace(",", " ").split():
        if not token.isdigit() or not 1 <= int(token) <= len(records):
            raise PMError(f"Invalid selection: {token}")
        chosen.append(records[int(token) - 1].identity)
    return chosen


def upgrade_command(args: Any) -> int:
    """
    Execute upgrade command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    pack = build_pack(args)

    # Configured versions decide which remote ref each plugin tracks
    try:
        sources = load_plugin_sources(args.config)
    except ConfigError as e:
        raise PMError(str(e)) from e
    for source in sources:
        try:
            prepare(spec_from_raw(source), pack.registry, [], default_host=pack.config.default_host)
        except SpecError as e:
            print(f"Ignoring plugin source: {e}", file=sys.stderr)

    def on_progress(phase: str, identity: str, done: int, total: int) -> None:
        if args.verbose:
            print(f"[{done}/{total}] {phase} {identity}", file=sys.stderr)

    selector = select_all if args.noconfirm else prompt_selection
    updated = asyncio.run(pack.update(selector, on_progress))

    if args.verbose:
        print(f"\nUpdated: {len(updated)}")
    return 0
