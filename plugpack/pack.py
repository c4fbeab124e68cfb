"""
Pack - the plugin registration and lifecycle context.

A Pack owns the registration queue, the setup registry, the event bus and the
scheduler. Instances are independent; nothing is process-wide.

Example:
    pack = Pack(installer=GitInstaller(Path("pack/plugins")))
    pack.src("owner/colors")
    pack.src({"src": "owner/lsp", "deps": ["owner/util"], "setup": setup_lsp})
    pack.install()
    pack.fire("enter")
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from plugpack.config import PackConfig
from plugpack.core.event_bus import EventArgs, EventBus
from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin.installer import GitInstaller, InstallError, Installer
from plugpack.plugin.loader import load_sources
from plugpack.plugin.registry import SetupRegistry, prepare
from plugpack.plugin.scheduler import Defer, SetupScheduler
from plugpack.plugin.selector import Selector, dispatch_updates, select_all
from plugpack.plugin.spec import PluginDescriptor, PluginSpec, SpecError, spec_from_raw
from plugpack.plugin.updates import (
    GitBackend,
    InstalledPackage,
    ProgressCallback,
    UpdateChecker,
    UpdateRecord,
)


class Pack:
    """
    Plugin registration and lifecycle context.

    Errors never escape the public methods; they are reported via notify.
    """

    def __init__(
        self,
        config: PackConfig | None = None,
        installer: Installer | None = None,
        *,
        notify: Notifier = default_notify,
        defer: Defer | None = None,
        git: GitBackend | None = None,
    ):
        """
        Initialize Pack.

        Args:
            config: Settings (defaults when None)
            installer: Package installer (default: GitInstaller at install_root)
            notify: Diagnostic sink
            defer: Scheduler for debounced setup callbacks
            git: Git backend for update checks
        """
        self.config = config or PackConfig()
        self.notify = notify
        self.installer = installer or GitInstaller(
            Path(self.config.install_root), remote=self.config.remote, notify=notify
        )
        self.queue: list[PluginSpec] = []
        self.registry = SetupRegistry()
        self.bus = EventBus()
        self.scheduler = SetupScheduler(
            self.registry,
            self.bus,
            debounce=self.config.debounce_ms / 1000,
            enter_event=self.config.enter_event,
            transient_prefixes=tuple(self.config.transient_prefixes),
            defer=defer,
            notify=notify,
        )
        self.checker = UpdateChecker(
            git,
            parallel_limit=self.config.parallel_limit,
            remote=self.config.remote,
            fallback_branches=self.config.fallback_branches,
            notify=notify,
        )

    def src(self, source: Any) -> None:
        """
        Register a plugin source: string, plugin table, list, or typed spec.

        An uninterpretable source is reported and skipped.
        """
        try:
            self.queue.append(spec_from_raw(source))
        except SpecError as e:
            self.notify(f"Ignoring plugin source: {e}", Level.ERROR)

    def require(self, module_path: str, base_dir: Path) -> None:
        """Register every plugin declared by a configuration module or directory."""
        for spec in load_sources(module_path, base_dir, self.notify):
            self.queue.append(spec)

    def install(self) -> list[PluginDescriptor]:
        """
        Install all registered plugins and run their setup.

        Returns:
            The flat installation set handed to the installer
        """
        plugins: list[PluginDescriptor] = []
        for spec in self.queue:
            try:
                prepare(spec, self.registry, plugins, default_host=self.config.default_host)
            except SpecError as e:
                self.notify(f"Skipping plugin source: {e}", Level.ERROR)

        if self.config.clear_queue_after_install:
            self.queue.clear()

        if plugins:
            try:
                confirmed = self.installer.add(plugins)
            except InstallError as e:
                self.notify(f"Install failed: {e}", Level.ERROR)
                return plugins

            for identity in confirmed:
                self.registry.mark_installed(identity)

        # Setups that failed earlier are retried even when nothing new was queued
        self.scheduler.activate_all()
        return plugins

    def fire(self, event: str, file: str = "", data: Any = None) -> None:
        """
        Deliver a runtime event to waiting setups.

        The debounce delay is applied on the running event loop. Called
        outside a loop (with the default defer), gated setups run
        immediately; fire from within a loop when the delay matters.
        """
        self.bus.dispatch_event(event, EventArgs(event=event, file=file, data=data))

    def installed_packages(self) -> list[InstalledPackage]:
        """Installed packages with their registered branch overrides attached."""
        packages = []
        for package in self.installer.installed():
            branch = self.registry.branch_override(package.identity)
            if branch is not None and package.branch is None:
                package = InstalledPackage(
                    identity=package.identity,
                    path=package.path,
                    source=package.source,
                    branch=branch,
                )
            packages.append(package)
        return packages

    async def check_updates(
        self, on_progress: ProgressCallback | None = None
    ) -> list[UpdateRecord]:
        """Reconcile installed packages with their remotes (read-only)."""
        return await self.checker.check(self.installed_packages(), on_progress)

    async def update(
        self,
        selector: Selector = select_all,
        on_progress: ProgressCallback | None = None,
    ) -> list[str]:
        """
        Check for updates, let the selector choose, and dispatch the update.

        Returns:
            Identities passed to the installer's batch update
        """
        records = await self.check_updates(on_progress)
        if not records:
            self.notify("All plugins are up to date", Level.INFO)
            return []
        return self.apply_updates(records, selector(records))

    def apply_updates(self, records: Sequence[UpdateRecord], selection) -> list[str]:
        return dispatch_updates(records, selection, self.installer, self.notify)
