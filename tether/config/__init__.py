"""
Tether Configuration - TOML-based plugin declarations.

This module provides:
- The configuration model (Shell, Source variants, Template, plugins)
- Loading and validating plugins.toml

Example plugins.toml:
    shell = "zsh"

    [plugins.zsh-autosuggestions]
    github = "zsh-users/zsh-autosuggestions"
    use = ["{{ name }}.zsh"]

    [plugins.aliases]
    inline = "alias ll='ls -la'"
"""

from pathlib import Path

from tether.config.model import (
    Config,
    ExternalPlugin,
    GitReference,
    GitSource,
    InlinePlugin,
    LocalSource,
    Plugin,
    RemoteSource,
    Shell,
    Source,
    Template,
)
from tether.config.schema import SchemaError, parse_config
from tether.config.toml_handler import TOMLError, read_toml


class ConfigError(Exception):
    """Raised when the config file cannot be loaded."""

    pass


def load_config(path: Path) -> Config:
    """
    Read and validate a plugins.toml file.

    Args:
        path: Path to the config file

    Returns:
        Config object

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    try:
        data = read_toml(path)
    except TOMLError as e:
        raise ConfigError(f"failed to load config from `{path}`") from e

    try:
        return parse_config(data)
    except SchemaError as e:
        raise ConfigError(f"invalid config in `{path}`") from e


__all__ = [
    "Config",
    "ConfigError",
    "ExternalPlugin",
    "GitReference",
    "GitSource",
    "InlinePlugin",
    "LocalSource",
    "Plugin",
    "RemoteSource",
    "Shell",
    "Source",
    "Template",
    "load_config",
]
