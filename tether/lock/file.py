"""
Locked Config - the persisted, filesystem-verifiable result of a lock run.

This module provides:
- LockedExternalPlugin and the LockedConfig container
- Serialization to a stable TOML representation (tomlkit)
- Deserialization with shape validation (tomllib)
- Verification against current settings and disk state
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit

from tether.config.model import InlinePlugin, Template
from tether.config.toml_handler import TOMLError, read_toml, write_toml
from tether.context import LockContext, Settings


class LockFileError(Exception):
    """Raised when a lock file cannot be read, parsed or written."""

    pass


SETTINGS_KEYS = (
    "version",
    "home",
    "config_dir",
    "data_dir",
    "config_file",
    "lock_file",
    "clone_dir",
    "download_dir",
)

EXTERNAL_KEYS = {"kind", "name", "source_dir", "plugin_dir", "files", "apply"}
INLINE_KEYS = {"kind", "name", "raw"}


@dataclass
class LockedExternalPlugin:
    """
    An installed plugin with its files and templates resolved.

    Attributes:
        name: Plugin name
        source_dir: Root directory of the installed source
        plugin_dir: Subdirectory of the source, if the plugin set one
        files: Matched files (absolute paths)
        apply: Names of the templates to apply
    """

    name: str
    source_dir: Path
    plugin_dir: Path | None = None
    files: list[Path] = field(default_factory=list)
    apply: list[str] = field(default_factory=list)

    def dir(self) -> Path:
        """Return the plugin directory, falling back to the source directory."""
        return self.plugin_dir if self.plugin_dir is not None else self.source_dir


LockedPlugin = LockedExternalPlugin | InlinePlugin


@dataclass
class LockedConfig:
    """
    The result of locking a Config.

    Attributes:
        settings: Settings in effect when the lock was produced
        templates: Merged templates, in order
        plugins: Locked plugins in declaration order
        errors: Non-fatal errors from the lock run (never persisted)
    """

    settings: Settings
    templates: dict[str, Template] = field(default_factory=dict)
    plugins: list[LockedPlugin] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list, compare=False)

    def verify(self, ctx: LockContext) -> bool:
        """
        Check that this lock still matches the current environment.

        Returns False if the settings have changed since locking, or if any
        external plugin's directory or files are gone. Inline plugins never
        invalidate a lock.

        Args:
            ctx: Current lock context

        Returns:
            True if the lock can be reused as-is
        """
        if self.settings != ctx.settings:
            return False
        for plugin in self.plugins:
            if not isinstance(plugin, LockedExternalPlugin):
                continue
            if not plugin.dir().exists():
                return False
            for file in plugin.files:
                if not file.exists():
                    return False
        return True

    def clean(self, ctx: LockContext, warnings: list[Exception]) -> None:
        """Remove installed sources that no plugin in this lock references."""
        from tether.lock.clean import clean

        clean(self, ctx, warnings)

    def to_document(self) -> tomlkit.TOMLDocument:
        """
        Build the TOML document for this lock.

        The document is built from scratch in a fixed key order, so the
        output depends only on the value.
        """
        doc = tomlkit.document()
        for key in SETTINGS_KEYS:
            doc.add(key, str(getattr(self.settings, key)))

        if self.plugins:
            plugins = tomlkit.aot()
            for plugin in self.plugins:
                plugins.append(_plugin_table(plugin))
            doc.add("plugins", plugins)
        else:
            doc.add("plugins", tomlkit.array())

        templates = tomlkit.table()
        for name, template in self.templates.items():
            entry = tomlkit.inline_table()
            entry.append("value", template.value)
            entry.append("each", template.each)
            templates.add(name, entry)
        doc.add("templates", templates)
        return doc

    def to_string(self) -> str:
        """Serialize this lock to TOML text."""
        return tomlkit.dumps(self.to_document())

    def to_path(self, path: Path) -> None:
        """
        Write this lock to a file.

        Args:
            path: Destination path (parent directories are created)

        Raises:
            LockFileError: If the file cannot be written
        """
        try:
            write_toml(Path(path), self.to_document())
        except TOMLError as e:
            raise LockFileError(f"failed to write locked config to `{path}`") from e


def _plugin_table(plugin: LockedPlugin) -> tomlkit.items.Table:
    table = tomlkit.table()
    if isinstance(plugin, InlinePlugin):
        table.add("kind", "inline")
        table.add("name", plugin.name)
        table.add("raw", plugin.raw)
        return table

    table.add("kind", "external")
    table.add("name", plugin.name)
    table.add("source_dir", str(plugin.source_dir))
    if plugin.plugin_dir is not None:
        table.add("plugin_dir", str(plugin.plugin_dir))
    table.add("files", [str(file) for file in plugin.files])
    table.add("apply", list(plugin.apply))
    return table


def from_path(path: Path) -> LockedConfig:
    """
    Read a LockedConfig from a lock file.

    Args:
        path: Path to the lock file

    Returns:
        LockedConfig object (with no errors)

    Raises:
        LockFileError: If the file cannot be read or does not match the schema
    """
    try:
        data = read_toml(Path(path))
    except TOMLError as e:
        raise LockFileError(f"failed to read locked config from `{path}`") from e
    try:
        return parse_locked_config(data)
    except LockFileError as e:
        raise LockFileError(f"failed to deserialize locked config from `{path}`") from e


def parse_locked_config(data: dict[str, Any]) -> LockedConfig:
    """
    Validate parsed lock file data and build a LockedConfig.

    Args:
        data: Parsed TOML content

    Returns:
        LockedConfig object

    Raises:
        LockFileError: If the data does not match the lock file schema
    """
    expected = set(SETTINGS_KEYS) | {"plugins", "templates"}
    for key in data:
        if key not in expected:
            raise LockFileError(f"unknown field `{key}`")

    version = _required_str(data, "version", "locked config")
    paths = {key: Path(_required_str(data, key, "locked config")) for key in SETTINGS_KEYS[1:]}
    settings = Settings(version=version, **paths)

    plugins_raw = data.get("plugins")
    if not isinstance(plugins_raw, list):
        raise LockFileError("missing or invalid field `plugins`, expected an array")
    plugins = [_parse_plugin(item) for item in plugins_raw]

    templates_raw = data.get("templates")
    if not isinstance(templates_raw, dict):
        raise LockFileError("missing or invalid field `templates`, expected a table")
    templates = {name: _parse_template(name, value) for name, value in templates_raw.items()}

    return LockedConfig(settings=settings, templates=templates, plugins=plugins)


def _parse_plugin(item: Any) -> LockedPlugin:
    if not isinstance(item, dict):
        raise LockFileError("invalid plugin entry, expected a table")
    kind = item.get("kind")
    allowed = None
    if isinstance(kind, str):
        allowed = {"external": EXTERNAL_KEYS, "inline": INLINE_KEYS}.get(kind)
    if allowed is None:
        raise LockFileError(f"invalid plugin kind {kind!r}, expected 'external' or 'inline'")
    for key in item:
        if key not in allowed:
            raise LockFileError(f"unknown field `{key}` in {kind} plugin")

    name = _required_str(item, "name", "plugin")
    if kind == "inline":
        raw = item.get("raw")
        if not isinstance(raw, str):
            raise LockFileError(f"missing or invalid field `raw` in plugin `{name}`")
        return InlinePlugin(name=name, raw=raw)

    where = f"plugin `{name}`"
    plugin_dir = item.get("plugin_dir")
    if plugin_dir is not None and not isinstance(plugin_dir, str):
        raise LockFileError(f"invalid field `plugin_dir` in {where}")
    return LockedExternalPlugin(
        name=name,
        source_dir=Path(_required_str(item, "source_dir", where)),
        plugin_dir=Path(plugin_dir) if plugin_dir is not None else None,
        files=[Path(file) for file in _required_str_list(item, "files", where)],
        apply=_required_str_list(item, "apply", where),
    )


def _parse_template(name: str, value: Any) -> Template:
    if not isinstance(value, dict):
        raise LockFileError(f"invalid template `{name}`, expected a table")
    for key in value:
        if key not in ("value", "each"):
            raise LockFileError(f"unknown field `{key}` in template `{name}`")
    text = value.get("value")
    each = value.get("each")
    if not isinstance(text, str) or not isinstance(each, bool):
        raise LockFileError(f"invalid template `{name}`, expected `value` and `each`")
    return Template(text, each)


def _required_str(payload: dict[str, Any], key: str, where: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise LockFileError(f"missing or invalid field `{key}` in {where}")
    return value


def _required_str_list(payload: dict[str, Any], key: str, where: str) -> list[str]:
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise LockFileError(f"missing or invalid field `{key}` in {where}")
    return list(value)
