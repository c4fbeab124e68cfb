"""
Update selection and dispatch.

The selection surface receives the divergence list and returns the identities
to update, the ALL sentinel, or nothing.
"""

from collections.abc import Callable, Sequence

from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin.installer import Installer
from plugpack.plugin.updates import UpdateRecord

ALL = "all"

Selection = Sequence[str] | str | None
Selector = Callable[[list[UpdateRecord]], Selection]


def select_all(records: list[UpdateRecord]) -> Selection:
    """Non-interactive selector: update everything that diverged."""
    return ALL if records else None


def dispatch_updates(
    records: Sequence[UpdateRecord],
    selection: Selection,
    installer: Installer,
    notify: Notifier = default_notify,
) -> list[str]:
    """
    Pass the selected identities to the installer's batch update.

    Args:
        records: Divergence list the selection was made from
        selection: Identities, ALL, or None/empty for no update
        installer: Installer performing the update
        notify: Diagnostic sink

    Returns:
        Identities handed to the installer (empty when nothing was selected)
    """
    if not selection:
        return []

    known = [record.identity for record in records]
    if isinstance(selection, str):
        if selection != ALL:
            selection = [selection]
        else:
            selection = known

    names = []
    for name in selection:
        if name not in known:
            notify(f"{name} has no pending update, skipping", Level.WARN)
        elif name not in names:
            names.append(name)

    if names:
        installer.update(names)
    return names
