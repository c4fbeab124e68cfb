"""
Git Operations for Plugin Management.

This module provides git operations for plugin installation and update checks.

Key features:
- Clone plugins from git repositories (optionally at a branch or tag)
- Fast-forward updates and remote URL lookup
- Async, read-only revision queries for concurrent update checks
"""

import asyncio
import subprocess
from pathlib import Path


class GitError(Exception):
    """Base exception for git-related errors."""

    pass


def _check_checkout(repo_dir: Path | None) -> None:
    # A missing cwd also surfaces as FileNotFoundError from the subprocess
    if repo_dir is not None and not Path(repo_dir).is_dir():
        raise GitError(f"Checkout missing: {repo_dir}")


def _run_git(args: list[str], cwd: Path | None = None) -> str:
    """
    Run a git command and return its stripped stdout.

    Raises:
        GitError: If git is missing, cwd does not exist, or the command fails
    """
    _check_checkout(cwd)
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("git command not found. Please install git.") from e

    if result.returncode != 0:
        raise GitError(
            f"git {' '.join(args)} failed: {(result.stderr or result.stdout).strip()}"
        )
    return result.stdout.strip()


def clone_plugin(repo_url: str, target_dir: Path, branch: str | None = None) -> None:
    """
    Clone a plugin repository.

    Args:
        repo_url: Git repository URL
        target_dir: Target directory for clone
        branch: Optional branch or tag to check out

    Raises:
        GitError: If clone operation fails
    """
    # Ensure parent directory exists
    target_dir.parent.mkdir(parents=True, exist_ok=True)

    cmd = ["clone"]
    if branch:
        cmd.extend(["--branch", branch])
    cmd.extend([repo_url, str(target_dir)])

    _run_git(cmd)


def remote_url(repo_dir: Path, remote: str = "origin") -> str:
    """
    Get the fetch URL of a remote.

    Raises:
        GitError: If the repository has no such remote
    """
    return _run_git(["remote", "get-url", remote], cwd=repo_dir)


def current_branch(repo_dir: Path) -> str | None:
    """Get the checked-out branch name, or None when HEAD is detached."""
    try:
        return _run_git(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=repo_dir)
    except GitError:
        return None


def pull(repo_dir: Path, remote: str = "origin") -> None:
    """
    Fetch and fast-forward the current branch.

    Raises:
        GitError: If HEAD is detached or the merge is not a fast-forward
    """
    if current_branch(repo_dir) is None:
        raise GitError(f"{repo_dir} is pinned to a detached revision")
    _run_git(["fetch", "--tags", remote], cwd=repo_dir)
    _run_git(["merge", "--ff-only", "@{upstream}"], cwd=repo_dir)


class AsyncGit:
    """
    Non-blocking, read-only git queries.

    Each call spawns one git subprocess and suspends until it exits.
    """

    async def _run(self, repo_dir: Path, *args: str) -> str:
        _check_checkout(repo_dir)
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=repo_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitError("git command not found. Please install git.") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            message = (stderr or stdout).decode(errors="replace").strip()
            raise GitError(f"git {' '.join(args)} failed in {repo_dir}: {message}")
        return stdout.decode(errors="replace").strip()

    async def fetch(self, repo_dir: Path, remote: str = "origin") -> None:
        """Update remote-tracking refs and tags without touching the worktree."""
        await self._run(repo_dir, "fetch", "--quiet", "--tags", remote)

    async def rev_parse(self, repo_dir: Path, ref: str) -> str:
        """
        Resolve a ref to a short commit hash.

        Raises:
            GitError: If the ref does not resolve to a commit
        """
        return await self._run(
            repo_dir, "rev-parse", "--verify", "--quiet", "--short", f"{ref}^{{commit}}"
        )

    async def upstream(self, repo_dir: Path) -> str:
        """
        Get the upstream tracking ref of the current branch (e.g. origin/main).

        Raises:
            GitError: If HEAD is detached or has no upstream
        """
        return await self._run(
            repo_dir, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"
        )

    async def remote_head(self, repo_dir: Path, remote: str = "origin") -> str:
        """
        Get the remote's default branch ref (e.g. origin/main).

        Raises:
            GitError: If refs/remotes/<remote>/HEAD is not set
        """
        return await self._run(
            repo_dir, "symbolic-ref", "--quiet", "--short", f"refs/remotes/{remote}/HEAD"
        )
