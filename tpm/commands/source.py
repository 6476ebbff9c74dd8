"""
tpm source command.

Print the shell script that loads every plugin, reusing the lock file when
it is still valid and locking again otherwise.
"""

import sys

from tether.context import LockContext, LockMode
from tether.lock import LockedConfig, LockFileError, from_path
from tether.lock.script import render_script
from tpm.commands.lock import lock_and_save


def source_command(ctx: LockContext, relock: bool = False) -> int:
    """
    Execute source command.

    Args:
        ctx: Lock context built from the command line
        relock: Ignore an existing lock file

    Returns:
        Exit code (0 for success, 1 if locking failed)
    """
    locked = None
    if not relock and ctx.mode is LockMode.NORMAL:
        locked = load_valid_lock(ctx)

    if locked is None:
        locked = lock_and_save(ctx)
        if locked is None:
            return 1

    sys.stdout.write(render_script(locked))
    return 0


def load_valid_lock(ctx: LockContext) -> LockedConfig | None:
    """
    Load the lock file if it exists, parses, and still verifies.

    Args:
        ctx: Lock context

    Returns:
        The LockedConfig, or None if a fresh lock is needed
    """
    lock_file = ctx.settings.lock_file
    config_file = ctx.settings.config_file
    if not lock_file.exists():
        return None
    if config_file.exists() and config_file.stat().st_mtime > lock_file.stat().st_mtime:
        ctx.output.log_verbose("Stale", f"{config_file} is newer than the lock file")
        return None

    try:
        locked = from_path(lock_file)
    except LockFileError as e:
        ctx.output.log_warning(e)
        return None

    if not locked.verify(ctx):
        ctx.output.log_verbose("Stale", "lock file does not match settings or disk")
        return None
    return locked
