"""
tpm CLI - Tether Plugin Manager.

Usage:
    tpm lock [--update | --reinstall]              Install plugins and write the lock file
    tpm source [--relock] [--update | --reinstall] Print the shell script that loads plugins

Global options select paths (--home, --config-dir, --data-dir, --config-file,
--lock-file, --clone-dir, --download-dir) and verbosity (-q, -v). Paths also
read TETHER_* environment variables.
"""

import argparse
import sys
from pathlib import Path

from tether import __version__
from tether.config import ConfigError
from tether.context import LockContext, LockMode, Output, Settings, Verbosity
from tether.lock import LockFileError
from tether.lock.script import ScriptError


class TPMError(Exception):
    """Base exception for tpm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with global options and subcommands."""
    parser = argparse.ArgumentParser(
        prog="tpm",
        description="Tether Plugin Manager - lock and load shell plugins",
    )
    parser.add_argument("--version", action="version", version=f"tpm {__version__}")

    # Path overrides
    for option in (
        "home",
        "config-dir",
        "data-dir",
        "config-file",
        "lock-file",
        "clone-dir",
        "download-dir",
    ):
        parser.add_argument(f"--{option}", type=Path, metavar="PATH")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Suppress status output")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    lock = commands.add_parser("lock", help="Install plugins and write the lock file")
    _add_mode_flags(lock)

    source = commands.add_parser("source", help="Print the script that loads plugins")
    source.add_argument(
        "--relock", action="store_true", help="Lock again even if the lock file is valid"
    )
    _add_mode_flags(source)

    return parser


def _add_mode_flags(parser: argparse.ArgumentParser) -> None:
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--update", action="store_true", help="Update git and remote sources")
    mode.add_argument("--reinstall", action="store_true", help="Reinstall all sources")


def build_context(args: argparse.Namespace) -> LockContext:
    """
    Build the lock context from parsed arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        LockContext for this invocation
    """
    settings = Settings.resolve(
        home=args.home,
        config_dir=args.config_dir,
        data_dir=args.data_dir,
        config_file=args.config_file,
        lock_file=args.lock_file,
        clone_dir=args.clone_dir,
        download_dir=args.download_dir,
    )

    if args.quiet:
        verbosity = Verbosity.QUIET
    elif args.verbose:
        verbosity = Verbosity.VERBOSE
    else:
        verbosity = Verbosity.NORMAL

    if getattr(args, "reinstall", False):
        mode = LockMode.REINSTALL
    elif getattr(args, "update", False):
        mode = LockMode.UPDATE
    else:
        mode = LockMode.NORMAL

    return LockContext(settings=settings, output=Output(verbosity), mode=mode)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for tpm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    ctx = build_context(args)

    try:
        if args.command == "lock":
            from tpm.commands.lock import lock_command

            return lock_command(ctx)

        elif args.command == "source":
            from tpm.commands.source import source_command

            return source_command(ctx, relock=args.relock)

        raise TPMError(f"unknown command `{args.command}`")

    except (TPMError, ConfigError, LockFileError, ScriptError) as e:
        ctx.output.log_error(e)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        ctx.output.log_error(f"unexpected error: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
