"""
Tests for the Pack context.

This test suite covers:
1. Registration and install flow
2. Queue clearing vs. keeping
3. Configuration and installer errors
4. Runtime events
5. Update trigger with branch overrides
6. Module-path bulk registration
"""

import asyncio
from pathlib import Path

import pytest

from plugpack import ALL, Pack, PackConfig
from plugpack.core.notify import Level
from plugpack.plugin.identity import plugin_identity
from plugpack.plugin.installer import InstallError
from plugpack.plugin.updates import InstalledPackage


def immediate(delay, callback):
    callback()


class Recorder:
    def __init__(self):
        self.messages = []

    def __call__(self, message, level=Level.INFO):
        self.messages.append((level, message))

    def at(self, level):
        return [m for lvl, m in self.messages if lvl == level]


class FakeInstaller:
    """Installer that confirms everything except the identities in ``missing``."""

    def __init__(self, missing=(), packages=(), fail=False):
        self.missing = set(missing)
        self.packages = list(packages)
        self.fail = fail
        self.added = []
        self.updated = []

    def add(self, descriptors):
        if self.fail:
            raise InstallError("disk full")
        self.added.append(list(descriptors))
        identities = [plugin_identity(d) for d in descriptors]
        return [i for i in identities if i not in self.missing]

    def installed(self):
        return list(self.packages)

    def update(self, identities):
        self.updated.append(list(identities))


class FakeGit:
    def __init__(self, refs):
        self.refs = refs
        self.resolved = []

    async def fetch(self, repo_dir, remote="origin"):
        pass

    async def rev_parse(self, repo_dir, ref):
        from plugpack.plugin.git_ops import GitError

        self.resolved.append((str(repo_dir), ref))
        try:
            return self.refs[str(repo_dir)][ref]
        except KeyError:
            raise GitError(f"unknown ref {ref}") from None

    async def upstream(self, repo_dir):
        return "origin/main"

    async def remote_head(self, repo_dir, remote="origin"):
        return "origin/main"


def make_pack(installer=None, config=None, git=None):
    notify = Recorder()
    pack = Pack(
        config,
        installer or FakeInstaller(),
        notify=notify,
        defer=immediate,
        git=git,
    )
    return pack, notify


class TestInstall:
    """Test the install flow."""

    def test_install_runs_setup_after_dependencies(self):
        calls = []
        installer = FakeInstaller()
        pack, notify = make_pack(installer)

        pack.src(
            {
                "src": "x/app",
                "deps": [{"src": "x/lib", "setup": lambda: calls.append("lib")}],
                "setup": lambda: calls.append("app"),
            }
        )
        plugins = pack.install()

        assert [plugin_identity(p) for p in plugins] == ["x/lib", "x/app"]
        assert installer.added == [plugins]
        assert calls == ["lib", "app"]
        assert notify.at(Level.ERROR) == []

    def test_install_marks_confirmed_identities(self):
        pack, _ = make_pack(FakeInstaller(missing={"x/b"}))

        pack.src("x/a")
        pack.src("x/b")
        pack.install()

        assert pack.registry.is_installed("x/a")
        assert not pack.registry.is_installed("x/b")

    def test_missing_package_reported(self):
        calls = []
        pack, notify = make_pack(FakeInstaller(missing={"x/app"}))

        pack.src({"src": "x/app", "setup": lambda: calls.append("app")})
        pack.install()

        assert calls == []
        assert notify.at(Level.ERROR) == ["Cannot set up x/app: plugin is not installed"]

    def test_empty_queue(self):
        installer = FakeInstaller()
        pack, _ = make_pack(installer)

        assert pack.install() == []
        assert installer.added == []

    def test_invalid_source_skipped(self):
        pack, notify = make_pack()

        pack.src({"version": "v1"})
        pack.src("x/ok")

        assert len(pack.queue) == 1
        assert any("Ignoring plugin source" in m for m in notify.at(Level.ERROR))

    def test_failed_setup_retried_without_new_sources(self):
        """A later install() re-runs a failed setup and releases its dependents."""
        attempts = []

        def flaky():
            attempts.append("lib")
            if len(attempts) == 1:
                raise RuntimeError("not ready")

        calls = []
        installer = FakeInstaller()
        pack, notify = make_pack(installer)
        pack.src(
            {
                "src": "x/app",
                "event": "BufRead",
                "deps": [{"src": "x/lib", "setup": flaky}],
                "setup": lambda: calls.append("app"),
            }
        )
        pack.install()
        pack.fire("BufRead")

        assert calls == []
        assert notify.at(Level.ERROR) == ["Setup for x/lib failed: not ready"]

        assert pack.install() == []
        pack.fire("BufRead")

        assert attempts == ["lib", "lib"]
        assert calls == ["app"]
        assert len(installer.added) == 1

    def test_installer_failure_reported(self):
        calls = []
        pack, notify = make_pack(FakeInstaller(fail=True))

        pack.src({"src": "x/app", "setup": lambda: calls.append("app")})
        pack.install()

        assert calls == []
        assert notify.at(Level.ERROR) == ["Install failed: disk full"]


class TestQueue:
    """Test registration queue lifetime."""

    def test_queue_cleared_by_default(self):
        installer = FakeInstaller()
        pack, _ = make_pack(installer)

        pack.src("x/a")
        pack.install()
        pack.install()

        assert pack.queue == []
        assert len(installer.added) == 1

    def test_queue_kept_when_configured(self):
        calls = []
        installer = FakeInstaller()
        pack, _ = make_pack(installer, PackConfig(clear_queue_after_install=False))

        pack.src({"src": "x/a", "setup": lambda: calls.append("a")})
        pack.install()
        pack.install()

        assert len(installer.added) == 2
        assert installer.added[0] == installer.added[1]
        # Setup still runs exactly once
        assert calls == ["a"]

    def test_contexts_are_independent(self):
        first, _ = make_pack()
        second, _ = make_pack()

        first.src({"src": "x/a", "setup": lambda: None})
        first.install()

        assert first.registry.is_completed("x/a")
        assert not second.registry.is_completed("x/a")
        assert second.queue == []


class TestEvents:
    """Test runtime event delivery."""

    def test_fire_runs_gated_setup(self):
        calls = []
        pack, _ = make_pack()

        pack.src({"src": "x/lazy", "event": ["BufRead"], "setup": lambda: calls.append("lazy")})
        pack.install()
        assert calls == []

        pack.fire("BufRead", file="init.lua")

        assert calls == ["lazy"]

    def test_transient_buffer_ignored(self):
        calls = []
        pack, _ = make_pack()

        pack.src({"src": "x/lazy", "event": "BufRead", "setup": lambda: calls.append("lazy")})
        pack.install()
        pack.fire("BufRead", file="oil:///tmp")

        assert calls == []

        pack.fire("BufRead", file="/tmp/a.txt")

        assert calls == ["lazy"]

    @pytest.mark.asyncio
    async def test_fire_inside_loop_is_debounced(self):
        """With the default defer, firing from a running loop waits debounce_ms."""
        calls = []
        pack = Pack(PackConfig(debounce_ms=20), FakeInstaller(), notify=Recorder())

        pack.src({"src": "x/lazy", "event": "BufRead", "setup": lambda: calls.append("lazy")})
        pack.install()
        pack.fire("BufRead", file="init.lua")

        assert calls == []
        await asyncio.sleep(0.1)
        assert calls == ["lazy"]

    def test_fire_outside_loop_runs_immediately(self):
        calls = []
        pack = Pack(PackConfig(debounce_ms=20), FakeInstaller(), notify=Recorder())

        pack.src({"src": "x/lazy", "event": "BufRead", "setup": lambda: calls.append("lazy")})
        pack.install()
        pack.fire("BufRead")

        assert calls == ["lazy"]

    def test_configured_enter_event(self):
        calls = []
        pack, _ = make_pack(config=PackConfig(enter_event="VimEnter"))

        pack.src({"src": "x/ui", "event": "VimEnter", "setup": lambda: calls.append("ui")})
        pack.install()
        pack.fire("VimEnter", file="oil:///")

        assert calls == ["ui"]


class TestUpdate:
    """Test the update trigger."""

    def _packages(self):
        return [
            InstalledPackage("x/a", Path("a"), "https://github.com/x/a"),
            InstalledPackage("x/b", Path("b"), "https://github.com/x/b"),
        ]

    @pytest.mark.asyncio
    async def test_update_dispatches_divergent(self):
        installer = FakeInstaller(packages=self._packages())
        git = FakeGit(
            {
                "a": {"HEAD": "111", "origin/main": "222"},
                "b": {"HEAD": "333", "origin/main": "333"},
            }
        )
        pack, _ = make_pack(installer, git=git)

        updated = await pack.update()

        assert updated == ["x/a"]
        assert installer.updated == [["x/a"]]

    @pytest.mark.asyncio
    async def test_branch_override_attached(self):
        installer = FakeInstaller(packages=self._packages()[:1])
        git = FakeGit({"a": {"HEAD": "111", "refs/remotes/origin/stable": "999"}})
        pack, _ = make_pack(installer, git=git)

        pack.src({"src": "x/a", "version": "stable"})
        pack.install()
        (package,) = pack.installed_packages()
        records = await pack.check_updates()

        assert package.branch == "stable"
        assert records[0].remote_revision == "999"
        assert ("a", "refs/remotes/origin/stable") in git.resolved

    @pytest.mark.asyncio
    async def test_nothing_to_update(self):
        installer = FakeInstaller(packages=self._packages()[:1])
        git = FakeGit({"a": {"HEAD": "111", "origin/main": "111"}})
        pack, notify = make_pack(installer, git=git)

        assert await pack.update() == []
        assert notify.at(Level.INFO) == ["All plugins are up to date"]
        assert installer.updated == []

    @pytest.mark.asyncio
    async def test_selector_declines(self):
        installer = FakeInstaller(packages=self._packages()[:1])
        git = FakeGit({"a": {"HEAD": "111", "origin/main": "222"}})
        pack, _ = make_pack(installer, git=git)

        assert await pack.update(selector=lambda records: None) == []
        assert installer.updated == []

    def test_apply_updates_all(self):
        from plugpack.plugin.updates import UpdateRecord

        installer = FakeInstaller()
        pack, _ = make_pack(installer)
        records = [UpdateRecord("x/a", Path("a"), "1", "2")]

        assert pack.apply_updates(records, ALL) == ["x/a"]


class TestRequire:
    """Test module-path bulk registration."""

    def test_require_single_module(self, tmp_path):
        (tmp_path / "plugins").mkdir()
        (tmp_path / "plugins" / "colors.py").write_text(
            'plugin = {"src": "x/colors", "version": "v2"}\n', encoding="utf-8"
        )
        pack, _ = make_pack()

        pack.require("plugins.colors", tmp_path)

        assert len(pack.queue) == 1
        assert pack.queue[0].source == "x/colors"
        assert pack.queue[0].version == "v2"

    def test_require_directory(self, tmp_path):
        lang = tmp_path / "plugins" / "lang"
        lang.mkdir(parents=True)
        (lang / "__init__.py").write_text('plugin = {"src": "x/never"}\n', encoding="utf-8")
        (lang / "rust.py").write_text('plugin = {"src": "x/rust"}\n', encoding="utf-8")
        (lang / "go.py").write_text('plugin = {"src": "x/go"}\n', encoding="utf-8")
        (lang / "helpers.py").write_text("VALUE = 1\n", encoding="utf-8")
        (lang / "list.py").write_text('plugin = ["x/one", "x/two"]\n', encoding="utf-8")
        pack, _ = make_pack()

        pack.require("plugins.lang", tmp_path)

        assert [spec.source for spec in pack.queue] == ["x/go", "x/rust"]

    def test_require_missing_path(self, tmp_path):
        pack, notify = make_pack()

        pack.require("plugins.absent", tmp_path)

        assert pack.queue == []
        assert any("neither a file nor a directory" in m for m in notify.at(Level.ERROR))

    def test_require_broken_module(self, tmp_path):
        (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n", encoding="utf-8")
        pack, notify = make_pack()

        pack.require("broken", tmp_path)

        assert pack.queue == []
        assert any("Failed to load broken" in m for m in notify.at(Level.ERROR))
