"""
Source installation.

Makes a Source present on disk and reports where it lives:
- Git sources are cloned under the clone directory
- Remote sources are downloaded under the download directory
- Local sources are checked for existence

Each call touches only the subtree belonging to its own source, so calls
for different sources can run concurrently.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from tether.config.model import GitSource, LocalSource, RemoteSource, Source
from tether.context import LockContext, LockMode
from tether.lock import git_ops
from tether.lock.git_ops import GitError

DOWNLOAD_TIMEOUT = 30.0


class SourceInstallError(Exception):
    """Raised when a source cannot be installed."""

    pass


@dataclass(frozen=True)
class LockedSource:
    """
    An installed source.

    Attributes:
        dir: Root directory of the installed source
        file: The downloaded file, for remote sources
    """

    dir: Path
    file: Path | None = None


def lock_source(ctx: LockContext, source: Source) -> LockedSource:
    """
    Install a source according to the context's lock mode.

    Args:
        ctx: Lock context (paths, mode, output)
        source: Source to install

    Returns:
        LockedSource describing the installed location

    Raises:
        GitError: If a git operation fails
        SourceInstallError: If a download fails or a local directory is missing
    """
    if isinstance(source, GitSource):
        return _lock_git(ctx, source)
    if isinstance(source, RemoteSource):
        return _lock_remote(ctx, source)
    if isinstance(source, LocalSource):
        return _lock_local(ctx, source)
    raise SourceInstallError(f"unsupported source type: {type(source).__name__}")


def url_to_path(url: str) -> Path:
    """
    Map a URL to a relative directory path: <host>/<path>.

    Handles scp-like git URLs (git@host:owner/repo.git) and strips a
    trailing ".git".

    Args:
        url: Source URL

    Returns:
        Relative path under the managed root

    Raises:
        SourceInstallError: If no host or path can be derived
    """
    if "://" not in url and ":" in url:
        host, _, path = url.partition(":")
        host = host.rpartition("@")[2]
    else:
        parts = urlsplit(url)
        host = parts.hostname or ""
        path = parts.path

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    segments = [s for s in path.split("/") if s and s not in (".", "..")]
    if not host or not segments:
        raise SourceInstallError(f"cannot derive an install path from `{url}`")
    return Path(host, *segments)


def install_dir(ctx: LockContext, source: Source) -> Path | None:
    """
    Return the path a source installs to, or None if it installs nothing.

    Sources that differ only by git reference, or by URL spelling, can map
    to the same path; installs of such sources must not overlap.

    Args:
        ctx: Lock context
        source: Source to locate

    Returns:
        Clone directory, download file, or None for local sources

    Raises:
        SourceInstallError: If no install path can be derived from the URL
    """
    if isinstance(source, GitSource):
        return ctx.clone_dir / url_to_path(source.url)
    if isinstance(source, RemoteSource):
        return ctx.download_dir / url_to_path(source.url)
    return None


def _lock_git(ctx: LockContext, source: GitSource) -> LockedSource:
    directory = install_dir(ctx, source)

    if ctx.mode is LockMode.REINSTALL and directory.exists():
        shutil.rmtree(directory)

    if not directory.exists():
        _clone(source, directory)
        ctx.output.log_status("Cloned", str(source))
        return LockedSource(directory)

    if ctx.mode is LockMode.UPDATE:
        git_ops.fetch(directory)
        commit = git_ops.resolve_reference(directory, source.reference)
    else:
        try:
            commit = git_ops.resolve_reference(directory, source.reference)
        except GitError:
            # The reference may be newer than the existing clone.
            git_ops.fetch(directory)
            commit = git_ops.resolve_reference(directory, source.reference)

    if git_ops.head_commit(directory) != commit:
        git_ops.checkout(directory, commit)
        ctx.output.log_status("Updated", str(source))
    else:
        ctx.output.log_status("Checked", str(source))
    return LockedSource(directory)


def _clone(source: GitSource, directory: Path) -> None:
    directory.parent.mkdir(parents=True, exist_ok=True)
    temp_dir = Path(tempfile.mkdtemp(prefix=".tether-clone-", dir=directory.parent))
    try:
        git_ops.clone_repo(source.url, temp_dir)
        commit = git_ops.resolve_reference(temp_dir, source.reference)
        git_ops.checkout(temp_dir, commit)
        os.replace(temp_dir, directory)
    finally:
        if temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)


def _lock_remote(ctx: LockContext, source: RemoteSource) -> LockedSource:
    file = install_dir(ctx, source)

    if file.exists() and ctx.mode is LockMode.NORMAL:
        ctx.output.log_status("Checked", str(source))
        return LockedSource(file.parent, file)

    try:
        with httpx.Client(follow_redirects=True, timeout=DOWNLOAD_TIMEOUT) as client:
            response = client.get(source.url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise SourceInstallError(f"failed to download `{source.url}`") from e

    file.parent.mkdir(parents=True, exist_ok=True)
    temp_file = file.with_name(f".{file.name}.part")
    try:
        temp_file.write_bytes(response.content)
        os.replace(temp_file, file)
    finally:
        if temp_file.exists():
            temp_file.unlink()

    ctx.output.log_status("Downloaded", str(source))
    return LockedSource(file.parent, file)


def _lock_local(ctx: LockContext, source: LocalSource) -> LockedSource:
    directory = source.dir
    if directory.parts and directory.parts[0] == "~":
        directory = ctx.settings.home.joinpath(*directory.parts[1:])
    elif not directory.is_absolute():
        directory = ctx.settings.config_dir / directory

    if not directory.is_dir():
        raise SourceInstallError(f"`{directory}` directory does not exist")

    ctx.output.log_status("Checked", str(directory))
    return LockedSource(directory)
