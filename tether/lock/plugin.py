"""
Plugin locking.

Resolves a plugin against its installed source: which directory it lives
in, which files it provides and which templates will be applied to it.
The installed source itself is only read, never modified, so several
plugins can be locked against the same source.
"""

from pathlib import Path

from tether.config.model import ExternalPlugin, Template
from tether.context import LockContext
from tether.lock.file import LockedExternalPlugin
from tether.lock.source import LockedSource
from tether.lock.template import TemplateError, compile_template, render


class PluginLockError(Exception):
    """Raised when a plugin cannot be resolved against its source."""

    pass


def lock_plugin(
    ctx: LockContext,
    templates: dict[str, Template],
    source: LockedSource,
    matches: list[str],
    apply: list[str],
    plugin: ExternalPlugin,
) -> LockedExternalPlugin:
    """
    Lock a single external plugin.

    Args:
        ctx: Lock context
        templates: Merged template map
        source: The plugin's installed source
        matches: Global match patterns, used when the plugin sets no `use`
        apply: Global template names, used when the plugin sets no `apply`
        plugin: The plugin to lock

    Returns:
        LockedExternalPlugin with matched files and template names

    Raises:
        PluginLockError: If files or templates cannot be resolved
    """
    apply = list(plugin.apply) if plugin.apply is not None else list(apply)

    plugin_dir = None
    if plugin.dir is not None:
        plugin_dir = source.dir / _render_pattern(plugin.dir, plugin.name)
        if not plugin_dir.is_dir():
            raise PluginLockError(f"`{plugin_dir}` directory does not exist")
    directory = plugin_dir if plugin_dir is not None else source.dir

    files: list[Path] = []
    if source.file is not None:
        files.append(source.file)
    elif plugin.uses is not None:
        for pattern in plugin.uses:
            if pattern.startswith("!"):
                excluded = set(_match(directory, _render_pattern(pattern[1:], plugin.name)))
                files = [f for f in files if f not in excluded]
                continue
            rendered = _render_pattern(pattern, plugin.name)
            matched = _match(directory, rendered)
            if not matched:
                raise PluginLockError(f"failed to find any files matching `{rendered}`")
            _extend_unique(files, matched)
    else:
        for pattern in matches:
            matched = _match(directory, _render_pattern(pattern, plugin.name))
            if matched:
                _extend_unique(files, matched)
                break

    for name in apply:
        if name not in templates:
            raise PluginLockError(f"unknown template `{name}`")
        try:
            compile_template(templates[name].value)
        except TemplateError as e:
            raise PluginLockError(f"invalid template `{name}`") from e

    ctx.output.log_verbose("Locked", f"{plugin.name} ({len(files)} files)")
    return LockedExternalPlugin(
        name=plugin.name,
        source_dir=source.dir,
        plugin_dir=plugin_dir,
        files=files,
        apply=apply,
    )


def _render_pattern(pattern: str, name: str) -> str:
    try:
        return render(pattern, name=name)
    except TemplateError as e:
        raise PluginLockError(f"failed to render `{pattern}`") from e


def _match(directory: Path, pattern: str) -> list[Path]:
    if not directory.is_dir():
        return []
    try:
        return sorted(directory.glob(pattern))
    except (ValueError, NotImplementedError) as e:
        raise PluginLockError(f"invalid match pattern `{pattern}`") from e


def _extend_unique(files: list[Path], matched: list[Path]) -> None:
    seen = set(files)
    for path in matched:
        if path not in seen:
            files.append(path)
            seen.add(path)
