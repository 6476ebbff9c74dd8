"""
TOML File I/O Handler.

This module provides TOML parsing and writing for config and lock files.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Write TOML documents using tomlkit (stable, human-diffable formatting)
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"`{file_path}` does not exist") from e
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise TOMLError(f"`{file_path}` is not valid TOML: {e}") from e
    except OSError as e:
        raise TOMLError(f"failed to read `{file_path}`: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any] | tomlkit.TOMLDocument) -> None:
    """
    Write data to a TOML file using tomlkit.

    A ready-made tomlkit document is written as-is, so callers that need
    byte-stable output build the document themselves.

    Args:
        file_path: Path to the TOML file
        data: Data or document to write

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        # Ensure parent directory exists
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8", newline="\n") as f:
            tomlkit.dump(data, f)
    except Exception as e:
        raise TOMLError(f"failed to write `{file_path}`: {e}") from e
