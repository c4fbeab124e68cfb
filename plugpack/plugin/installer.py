"""
Plugin Installer.

This module defines the installer contract used by Pack and a git-backed
implementation of it.

Key features:
- Idempotent installation of a flat descriptor list
- Discovery of installed clones by their remote URL
- Batch fast-forward updates
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin import git_ops
from plugpack.plugin.git_ops import GitError
from plugpack.plugin.identity import plugin_identity
from plugpack.plugin.spec import PluginDescriptor
from plugpack.plugin.updates import InstalledPackage


class InstallError(Exception):
    """Raised when the installer cannot run at all."""

    pass


class Installer(Protocol):
    """Contract between Pack and whatever fetches packages onto disk."""

    def add(self, descriptors: Sequence[PluginDescriptor]) -> list[str]:
        """Install anything missing; return identities confirmed present."""
        ...

    def installed(self) -> list[InstalledPackage]:
        """List currently installed packages."""
        ...

    def update(self, identities: Sequence[str]) -> None:
        """Bring each named package up to its latest remote state."""
        ...


def _checkout_name(identity: str) -> str:
    name = identity.rstrip("/").rsplit("/", 1)[-1]
    return name.removesuffix(".git")


class GitInstaller:
    """
    Installs plugins as git clones under a single root directory.

    Each plugin lives in ``root/<repo-name>``.
    """

    def __init__(
        self,
        root: Path,
        *,
        remote: str = "origin",
        notify: Notifier = default_notify,
    ):
        self.root = Path(root)
        self.remote = remote
        self._notify = notify

    def path_for(self, identity: str) -> Path:
        return self.root / _checkout_name(identity)

    def _occupant(self, path: Path) -> str | None:
        """Identity of the clone at path, or None if it cannot be read."""
        try:
            return plugin_identity(git_ops.remote_url(path, self.remote))
        except GitError:
            return None

    def _check_occupant(self, identity: str, path: Path) -> bool:
        # Repositories sharing a name map to the same checkout directory
        occupant = self._occupant(path)
        if occupant == identity:
            return True
        self._notify(
            f"Cannot use {path} for {identity}: it holds {occupant or 'an unknown repository'}",
            Level.ERROR,
        )
        return False

    def add(self, descriptors: Sequence[PluginDescriptor]) -> list[str]:
        """
        Clone every descriptor that is not present yet.

        Args:
            descriptors: Flat installation set, in install order

        Returns:
            Identities present on disk afterwards

        Raises:
            InstallError: If the install root cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Cannot create install root {self.root}: {e}") from e

        confirmed = []
        for descriptor in descriptors:
            identity = plugin_identity(descriptor)
            if identity is None or identity in confirmed:
                continue

            target = self.path_for(identity)
            if not (target / ".git").exists():
                self._notify(f"Installing {identity}", Level.INFO)
                try:
                    git_ops.clone_plugin(
                        descriptor.source, target, branch=descriptor.branch_override
                    )
                except GitError as e:
                    self._notify(f"Failed to install {identity}: {e}", Level.ERROR)
                    continue
            elif not self._check_occupant(identity, target):
                continue

            confirmed.append(identity)
        return confirmed

    def installed(self) -> list[InstalledPackage]:
        """List clones under the root, identified by their remote URL."""
        if not self.root.is_dir():
            return []

        packages = []
        for path in sorted(self.root.iterdir()):
            if not (path / ".git").exists():
                continue
            try:
                source = git_ops.remote_url(path, self.remote)
            except GitError as e:
                self._notify(f"Skipping {path.name}: {e}", Level.WARN)
                continue

            identity = plugin_identity(source)
            if identity is None:
                continue
            packages.append(InstalledPackage(identity=identity, path=path, source=source))
        return packages

    def update(self, identities: Sequence[str]) -> None:
        """Fast-forward each named package; failures are reported per package."""
        for identity in identities:
            path = self.path_for(identity)
            if not (path / ".git").exists():
                self._notify(f"Cannot update {identity}: not installed", Level.ERROR)
                continue
            if not self._check_occupant(identity, path):
                continue
            try:
                git_ops.pull(path, self.remote)
            except GitError as e:
                self._notify(f"Failed to update {identity}: {e}", Level.ERROR)
                continue
            self._notify(f"Updated {identity}", Level.INFO)
