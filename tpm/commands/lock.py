"""
tpm lock command.

Install every plugin in the config and write the lock file.
"""

from tether.config import load_config
from tether.context import LockContext
from tether.lock import LockedConfig, lock_config


def lock_command(ctx: LockContext) -> int:
    """
    Execute lock command.

    Args:
        ctx: Lock context built from the command line

    Returns:
        Exit code (0 for success, 1 if any plugin failed)
    """
    return 0 if lock_and_save(ctx) is not None else 1


def lock_and_save(ctx: LockContext) -> LockedConfig | None:
    """
    Lock the config, clean stale sources and write the lock file.

    Nothing is cleaned or written when any source or plugin failed, so a
    previous good lock file and its installed sources survive a bad run.

    Args:
        ctx: Lock context

    Returns:
        The new LockedConfig, or None if locking recorded errors

    Raises:
        ConfigError: If the config file cannot be loaded
        LockFileError: If the lock file cannot be written
    """
    config = load_config(ctx.settings.config_file)
    locked = lock_config(ctx, config)

    if locked.errors:
        for error in locked.errors:
            ctx.output.log_error(error)
        ctx.output.log_error(f"failed to lock {len(locked.errors)} source(s) or plugin(s)")
        return None

    warnings: list[Exception] = []
    locked.clean(ctx, warnings)
    for warning in warnings:
        ctx.output.log_warning(warning)

    locked.to_path(ctx.settings.lock_file)
    ctx.output.log_status("Locked", str(ctx.settings.lock_file))
    return locked
