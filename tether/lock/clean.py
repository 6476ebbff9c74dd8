"""
Stale-state cleaning.

Removes installed sources that the current lock no longer references and
prunes directories left empty by the removal. Cleaning is best-effort: every
filesystem failure is recorded as a warning and the walk carries on.
"""

import shutil
from pathlib import Path

from tether.context import LockContext
from tether.lock.file import LockedConfig, LockedExternalPlugin


class CleanWarning(Exception):
    """A path that could not be removed while cleaning."""

    def __init__(self, message: str, path: Path):
        super().__init__(message)
        self.path = path


def clean(locked: LockedConfig, ctx: LockContext, warnings: list[Exception]) -> None:
    """
    Remove unreferenced entries from the clone and download directories.

    Args:
        locked: Freshly produced lock
        ctx: Current lock context
        warnings: List that removal failures are appended to
    """
    externals = [p for p in locked.plugins if isinstance(p, LockedExternalPlugin)]
    source_dirs = {p.source_dir for p in externals}
    files = {file for p in externals for file in p.files}

    clone_dir = ctx.settings.clone_dir
    if clone_dir.is_dir():
        keep = {d for d in source_dirs if _is_within(d, clone_dir)}
        _clean_tree(clone_dir, clone_dir, keep, ctx, warnings)

    download_dir = ctx.settings.download_dir
    if download_dir.is_dir():
        keep = {f for f in files if _is_within(f, download_dir)}
        _clean_tree(download_dir, download_dir, keep, ctx, warnings)


def _clean_tree(
    root: Path,
    current: Path,
    keep: set[Path],
    ctx: LockContext,
    warnings: list[Exception],
) -> None:
    try:
        entries = sorted(current.iterdir())
    except OSError as e:
        _warn(warnings, f"failed to read directory `{current}`", current, e)
        return

    for entry in entries:
        if entry in keep:
            continue
        if entry.is_dir() and not entry.is_symlink() and any(_is_within(k, entry) for k in keep):
            _clean_tree(root, entry, keep, ctx, warnings)
            continue
        if _remove(entry, warnings):
            ctx.output.log_verbose("Removed", str(entry))
            _prune_empty_parents(root, entry.parent, warnings)


def _remove(path: Path, warnings: list[Exception]) -> bool:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        _warn(warnings, f"failed to remove `{path}`", path, e)
        return False
    return True


def _prune_empty_parents(root: Path, directory: Path, warnings: list[Exception]) -> None:
    # Walk upwards until the managed root, stopping at the first non-empty directory.
    while directory != root and _is_within(directory, root):
        try:
            if any(directory.iterdir()):
                return
            directory.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            _warn(warnings, f"failed to remove empty directory `{directory}`", directory, e)
            return
        directory = directory.parent


def _warn(warnings: list[Exception], message: str, path: Path, cause: OSError) -> None:
    warning = CleanWarning(message, path)
    warning.__cause__ = cause
    warnings.append(warning)


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents
