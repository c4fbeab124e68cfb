"""
Update Checker.

This module reconciles installed packages against their remote state.

Key features:
- Sliding-window concurrent fetches (fixed-size worker pool)
- Per-package failure isolation
- Remote revision fallback chain (override, upstream, remote HEAD, defaults)
- Progress reporting and a single completion barrier
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from plugpack.core.notify import Level, Notifier, default_notify
from plugpack.plugin.git_ops import AsyncGit, GitError

ProgressCallback = Callable[[str, str, int, int], None]


@dataclass(frozen=True)
class InstalledPackage:
    """
    A package reported by the installer.

    Attributes:
        identity: Plugin identity (owner/repo)
        path: Checkout directory
        source: Configured fetch URL
        branch: Configured branch/tag override, if any
    """

    identity: str
    path: Path
    source: str = ""
    branch: str | None = None


@dataclass(frozen=True)
class UpdateRecord:
    """
    A package whose local and remote revisions differ.

    Attributes:
        identity: Plugin identity
        path: Checkout directory
        local_revision: Short hash of the checked-out commit
        remote_revision: Short hash of the resolved remote ref
    """

    identity: str
    path: Path
    local_revision: str
    remote_revision: str

    def describe(self) -> str:
        return f"{self.identity}: {self.local_revision} -> {self.remote_revision}"


class GitBackend(Protocol):
    """Read-only git queries used by the checker (see AsyncGit)."""

    async def fetch(self, repo_dir: Path, remote: str = "origin") -> None: ...

    async def rev_parse(self, repo_dir: Path, ref: str) -> str: ...

    async def upstream(self, repo_dir: Path) -> str: ...

    async def remote_head(self, repo_dir: Path, remote: str = "origin") -> str: ...


class UpdateChecker:
    """
    Concurrent, read-only update check over many repositories.

    At most ``parallel_limit`` fetches are outstanding at any time. Failures
    are reported as warnings and exclude only the failing package.
    """

    def __init__(
        self,
        git: GitBackend | None = None,
        *,
        parallel_limit: int = 4,
        remote: str = "origin",
        fallback_branches: Sequence[str] = ("main", "master"),
        notify: Notifier = default_notify,
    ):
        """
        Initialize UpdateChecker.

        Args:
            git: Git backend (default: AsyncGit)
            parallel_limit: Maximum number of concurrent fetches
            remote: Remote to compare against
            fallback_branches: Branch names tried when nothing else resolves
            notify: Diagnostic sink

        Raises:
            ValueError: If parallel_limit is less than 1
        """
        if parallel_limit < 1:
            raise ValueError(f"parallel_limit must be a positive integer, got {parallel_limit}")

        self.git = git or AsyncGit()
        self.parallel_limit = parallel_limit
        self.remote = remote
        self.fallback_branches = tuple(fallback_branches)
        self._notify = notify

    async def check(
        self,
        packages: Sequence[InstalledPackage],
        on_progress: ProgressCallback | None = None,
        on_complete: Callable[[list[UpdateRecord]], None] | None = None,
    ) -> list[UpdateRecord]:
        """
        Find packages whose local revision differs from the remote one.

        Args:
            packages: Installed packages to check
            on_progress: Called as (phase, identity, done, total) after each
                fetch ("fetch") and each comparison ("compare")
            on_complete: Called once with the final records

        Returns:
            Update records in input order
        """
        fetched = await self._fetch_all(packages, on_progress)

        total = len(fetched)
        done = 0
        semaphore = asyncio.Semaphore(self.parallel_limit)

        async def compare(package: InstalledPackage) -> UpdateRecord | None:
            nonlocal done
            async with semaphore:
                try:
                    return await self._compare(package)
                except (GitError, OSError) as e:
                    self._notify(
                        f"Could not check {package.identity} for updates: {e}", Level.WARN
                    )
                    return None
                finally:
                    done += 1
                    if on_progress is not None:
                        on_progress("compare", package.identity, done, total)

        results = await asyncio.gather(*(compare(package) for package in fetched))
        records = [record for record in results if record is not None]

        if on_complete is not None:
            on_complete(records)
        return records

    async def _fetch_all(
        self,
        packages: Sequence[InstalledPackage],
        on_progress: ProgressCallback | None,
    ) -> list[InstalledPackage]:
        """Fetch every package through a fixed-size worker pool."""
        queue: asyncio.Queue[tuple[int, InstalledPackage]] = asyncio.Queue()
        for index, package in enumerate(packages):
            queue.put_nowait((index, package))

        total = len(packages)
        done = 0
        failed: set[int] = set()

        async def worker() -> None:
            nonlocal done
            while True:
                try:
                    index, package = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    await self.git.fetch(package.path, self.remote)
                except (GitError, OSError) as e:
                    failed.add(index)
                    self._notify(f"Failed to fetch {package.identity}: {e}", Level.WARN)
                finally:
                    done += 1
                    if on_progress is not None:
                        on_progress("fetch", package.identity, done, total)
                    queue.task_done()

        workers = [
            asyncio.create_task(worker())
            for _ in range(min(self.parallel_limit, total))
        ]
        await asyncio.gather(*workers)

        return [package for index, package in enumerate(packages) if index not in failed]

    async def _compare(self, package: InstalledPackage) -> UpdateRecord | None:
        local = await self.git.rev_parse(package.path, "HEAD")
        remote = await self.resolve_remote_revision(package)
        if local == remote:
            return None
        return UpdateRecord(
            identity=package.identity,
            path=package.path,
            local_revision=local,
            remote_revision=remote,
        )

    async def resolve_remote_revision(self, package: InstalledPackage) -> str:
        """
        Resolve the remote revision a package should be compared against.

        Precedence: configured branch (or tag of that name), upstream of the
        current branch, the remote's default branch, then fallback branches.

        Raises:
            GitError: If nothing in the chain resolves
        """
        path = package.path
        attempts: list[Callable[[], Awaitable[str]]]

        if package.branch:
            # A pinned name never falls through to the unpinned chain
            attempts = [
                lambda: self.git.rev_parse(path, f"refs/remotes/{self.remote}/{package.branch}"),
                lambda: self.git.rev_parse(path, f"refs/tags/{package.branch}"),
            ]
        else:

            async def from_upstream() -> str:
                return await self.git.rev_parse(path, await self.git.upstream(path))

            async def from_remote_head() -> str:
                return await self.git.rev_parse(
                    path, await self.git.remote_head(path, self.remote)
                )

            attempts = [from_upstream, from_remote_head]
            attempts.extend(
                lambda name=name: self.git.rev_parse(path, f"refs/remotes/{self.remote}/{name}")
                for name in self.fallback_branches
            )

        errors = []
        for attempt in attempts:
            try:
                return await attempt()
            except GitError as e:
                errors.append(str(e))

        wanted = package.branch or "a remote branch"
        raise GitError(
            f"Could not resolve {wanted} for {package.identity}"
            + (f" ({errors[-1]})" if errors else "")
        )
