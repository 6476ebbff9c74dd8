"""
Git Operations for Source Installation.

This module provides the git operations used to install git sources.

Key features:
- Clone repositories (with submodules)
- Fetch updates from origin
- Resolve and check out branches, tags and commits
"""

import subprocess
from pathlib import Path

from tether.config.model import GitReference


class GitError(Exception):
    """Base exception for git-related errors."""

    pass


def run_git(args: list[str], cwd: Path | None = None) -> str:
    """
    Run a git command and return its stripped stdout.

    Args:
        args: Arguments after "git"
        cwd: Working directory

    Returns:
        Standard output of the command

    Raises:
        GitError: If git is missing or the command fails
    """
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("git command not found. Please install git.") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip() or f"exit status {result.returncode}"
        raise GitError(f"`git {' '.join(args)}` failed: {detail}")
    return result.stdout.strip()


def clone_repo(repo_url: str, target_dir: Path) -> None:
    """
    Clone a repository.

    Args:
        repo_url: Git repository URL
        target_dir: Target directory for clone (must not exist)

    Raises:
        GitError: If clone operation fails
    """
    target_dir.parent.mkdir(parents=True, exist_ok=True)
    run_git(["clone", "--quiet", "--recurse-submodules", repo_url, str(target_dir)])


def fetch(repo_dir: Path) -> None:
    """
    Fetch branches and tags from origin.

    Args:
        repo_dir: Repository directory

    Raises:
        GitError: If fetch operation fails
    """
    run_git(["fetch", "--quiet", "--tags", "--force", "origin"], cwd=repo_dir)


def resolve_reference(repo_dir: Path, reference: GitReference | None) -> str:
    """
    Resolve a reference to a commit SHA.

    Branches resolve against origin so that fetched updates are picked up.
    No reference means the remote's default branch.

    Args:
        repo_dir: Repository directory
        reference: Branch, tag or commit, or None

    Returns:
        Full commit SHA

    Raises:
        GitError: If the reference cannot be resolved
    """
    if reference is None:
        revision = "origin/HEAD"
    elif reference.kind == "branch":
        revision = f"origin/{reference.value}"
    elif reference.kind == "tag":
        revision = f"refs/tags/{reference.value}"
    else:
        revision = reference.value
    return run_git(["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"], cwd=repo_dir)


def checkout(repo_dir: Path, commit: str) -> None:
    """
    Check out a commit (detached) and sync submodules.

    Args:
        repo_dir: Repository directory
        commit: Commit SHA

    Raises:
        GitError: If checkout fails
    """
    run_git(["-c", "advice.detachedHead=false", "checkout", "--quiet", "--force", commit], cwd=repo_dir)
    run_git(["submodule", "update", "--quiet", "--init", "--recursive"], cwd=repo_dir)


def head_commit(repo_dir: Path) -> str:
    """
    Return the commit currently checked out.

    Args:
        repo_dir: Repository directory

    Returns:
        Full commit SHA

    Raises:
        GitError: If the repository is invalid
    """
    return run_git(["rev-parse", "HEAD"], cwd=repo_dir)
