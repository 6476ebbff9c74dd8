"""
Lock Context - settings, mode and output sink passed through a lock run.

This module provides:
- Settings: resolved paths and version tag, compared to detect drift
- LockMode: reuse, update or reinstall sources
- Output: thread-safe stderr sink for status lines, warnings and errors
- LockContext: the bundle handed to every locking operation
"""

import os
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TextIO


class LockMode(Enum):
    """How sources that are already on disk are treated."""

    NORMAL = "normal"
    UPDATE = "update"
    REINSTALL = "reinstall"


class Verbosity(Enum):
    """Output verbosity."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2


@dataclass(frozen=True)
class Settings:
    """
    Resolved paths and version in effect for a lock run.

    Two Settings compare equal only if every field matches, which is how a
    stale lock file is detected.

    Attributes:
        version: Version of tether that produced the lock
        home: User home directory
        config_dir: Directory holding the config file
        data_dir: Directory holding the lock file and installed sources
        config_file: Path to plugins.toml
        lock_file: Path to plugins.lock
        clone_dir: Root directory for git clones
        download_dir: Root directory for remote file downloads
    """

    version: str
    home: Path
    config_dir: Path
    data_dir: Path
    config_file: Path
    lock_file: Path
    clone_dir: Path
    download_dir: Path

    @classmethod
    def resolve(
        cls,
        home: Path | None = None,
        config_dir: Path | None = None,
        data_dir: Path | None = None,
        config_file: Path | None = None,
        lock_file: Path | None = None,
        clone_dir: Path | None = None,
        download_dir: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> "Settings":
        """
        Resolve settings from explicit values, the environment and defaults.

        Explicit arguments win over TETHER_* environment variables, which win
        over the XDG base directory defaults.

        Args:
            home: Home directory override
            config_dir: Config directory override
            data_dir: Data directory override
            config_file: Config file override
            lock_file: Lock file override
            clone_dir: Clone directory override
            download_dir: Download directory override
            env: Environment mapping (defaults to os.environ)

        Returns:
            Resolved Settings
        """
        from tether import __version__

        env = os.environ if env is None else env

        def pick(value: Path | None, var: str) -> Path | None:
            if value is not None:
                return Path(value).expanduser()
            if env.get(var):
                return Path(env[var]).expanduser()
            return None

        home = pick(home, "TETHER_HOME") or Path(env.get("HOME") or Path.home())

        xdg_config = Path(env["XDG_CONFIG_HOME"]) if env.get("XDG_CONFIG_HOME") else home / ".config"
        xdg_data = Path(env["XDG_DATA_HOME"]) if env.get("XDG_DATA_HOME") else home / ".local" / "share"

        config_dir = pick(config_dir, "TETHER_CONFIG_DIR") or xdg_config / "tether"
        data_dir = pick(data_dir, "TETHER_DATA_DIR") or xdg_data / "tether"

        return cls(
            version=__version__,
            home=home,
            config_dir=config_dir,
            data_dir=data_dir,
            config_file=pick(config_file, "TETHER_CONFIG_FILE") or config_dir / "plugins.toml",
            lock_file=pick(lock_file, "TETHER_LOCK_FILE") or data_dir / "plugins.lock",
            clone_dir=pick(clone_dir, "TETHER_CLONE_DIR") or data_dir / "repos",
            download_dir=pick(download_dir, "TETHER_DOWNLOAD_DIR") or data_dir / "downloads",
        )


class Output:
    """
    Output sink for status lines, warnings and errors.

    Writes go to stderr so that stdout stays free for generated scripts.
    Writes are serialised with a lock since sources are installed from
    worker threads.
    """

    def __init__(self, verbosity: Verbosity = Verbosity.NORMAL, stream: TextIO | None = None):
        """
        Initialize Output.

        Args:
            verbosity: How much to print
            stream: Stream to write to (defaults to sys.stderr at write time)
        """
        self.verbosity = verbosity
        self._stream = stream
        self._lock = threading.Lock()

    def _write(self, line: str) -> None:
        with self._lock:
            print(line, file=self._stream or sys.stderr, flush=True)

    def log_status(self, status: str, message: str) -> None:
        """Print a right-aligned status verb followed by a message."""
        if self.verbosity.value >= Verbosity.NORMAL.value:
            self._write(f"{status:>10} {message}")

    def log_verbose(self, status: str, message: str) -> None:
        """Print a status line only in verbose mode."""
        if self.verbosity.value >= Verbosity.VERBOSE.value:
            self._write(f"{status:>10} {message}")

    def log_warning(self, warning: BaseException | str) -> None:
        """Print a warning and its cause chain unless quiet."""
        if self.verbosity.value >= Verbosity.NORMAL.value:
            self._write(format_error("warning", warning))

    def log_error(self, error: BaseException | str) -> None:
        """Print an error and its cause chain."""
        self._write(format_error("error", error))


def format_error(prefix: str, error: BaseException | str) -> str:
    """
    Format an error with its `raise ... from` chain.

    Args:
        prefix: Leading label ("error" or "warning")
        error: Exception or plain message

    Returns:
        Multi-line message, one "caused by" line per chained cause
    """
    if isinstance(error, str):
        return f"{prefix}: {error}"

    lines = [f"{prefix}: {error}"]
    cause = error.__cause__
    while cause is not None:
        lines.append(f"  caused by: {cause}")
        cause = cause.__cause__
    return "\n".join(lines)


@dataclass
class LockContext:
    """
    Everything a lock run needs besides the config itself.

    Attributes:
        settings: Resolved settings for this run
        output: Sink for status lines and non-fatal reports
        mode: How existing sources are treated
    """

    settings: Settings
    output: Output = field(default_factory=Output)
    mode: LockMode = LockMode.NORMAL

    @property
    def clone_dir(self) -> Path:
        return self.settings.clone_dir

    @property
    def download_dir(self) -> Path:
        return self.settings.download_dir
