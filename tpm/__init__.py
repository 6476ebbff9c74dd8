"""
tpm - Tether plugin manager command-line tool.

Locks plugins declared in plugins.toml and prints the script that loads them.
"""

__all__ = []
