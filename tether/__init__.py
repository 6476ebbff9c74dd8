"""
Tether - a shell plugin manager with a reproducible lock file.

This is the main package that exports the public API:
- Config loading (plugins.toml)
- Locking plugins into a LockedConfig
- Reading, verifying, cleaning and rendering a LockedConfig
"""

__version__ = "0.1.0"

from tether.config import Config, load_config
from tether.context import LockContext, LockMode, Output, Settings, Verbosity
from tether.lock import LockedConfig, from_path, lock_config
from tether.lock.script import render_script

__all__ = [
    "__version__",
    "Config",
    "LockContext",
    "LockMode",
    "LockedConfig",
    "Output",
    "Settings",
    "Verbosity",
    "from_path",
    "load_config",
    "lock_config",
    "render_script",
]
