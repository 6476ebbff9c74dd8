"""
Tether Lock - turn a Config into a LockedConfig.

This module handles:
- Merging shell default templates with user templates
- Deduplicating plugins by Source
- Installing each unique Source once, in parallel across sources
- Locking each plugin against its installed Source
- Recording failures per source or per plugin without aborting the run
- Restoring declaration order in the result
"""

from concurrent.futures import ThreadPoolExecutor

from tether.config.model import Config, ExternalPlugin, InlinePlugin, Source, Template
from tether.context import LockContext
from tether.lock.defaults import default_apply, default_matches, merge_templates
from tether.lock.file import (
    LockedConfig,
    LockedExternalPlugin,
    LockedPlugin,
    LockFileError,
    from_path,
)
from tether.lock.plugin import lock_plugin
from tether.lock.source import SourceInstallError, install_dir, lock_source

# Upper bound on concurrent source installs.
MAX_WORKERS = 16


class LockError(Exception):
    """Base exception for failures recorded in LockedConfig.errors."""

    pass


class SourceError(LockError):
    """A source failed to install; none of its plugins were locked."""

    def __init__(self, message: str, source: str):
        super().__init__(message)
        self.source = source


class PluginError(LockError):
    """A single plugin failed to lock."""

    def __init__(self, message: str, plugin: str):
        super().__init__(message)
        self.plugin = plugin


PluginResult = tuple[int, LockedExternalPlugin | PluginError]
SourceGroup = tuple[Source, list[tuple[int, ExternalPlugin]]]


def lock_config(ctx: LockContext, config: Config) -> LockedConfig:
    """
    Lock a Config, installing every remote source it needs.

    Failures never abort the run: a source that fails to install yields one
    SourceError and drops all plugins using it, a plugin that fails to lock
    yields one PluginError and drops only that plugin.

    Args:
        ctx: Lock context (settings, mode, output)
        config: User configuration

    Returns:
        LockedConfig with plugins in declaration order and any errors
    """
    templates = merge_templates(config.shell, config.templates)
    matches = config.matches if config.matches is not None else default_matches(config.shell)
    apply = config.apply if config.apply is not None else default_apply(config.shell)

    # Tag every plugin with its declaration index before any reordering.
    externals: list[tuple[int, ExternalPlugin]] = []
    inlines: list[tuple[int, LockedPlugin]] = []
    for index, plugin in enumerate(config.plugins):
        if isinstance(plugin, InlinePlugin):
            inlines.append((index, plugin))
        else:
            externals.append((index, plugin))

    groups: dict[Source, list[tuple[int, ExternalPlugin]]] = {}
    for index, plugin in externals:
        groups.setdefault(plugin.source, []).append((index, plugin))

    # Sources sharing an install path run in one task, one after another.
    batches: dict[object, list[SourceGroup]] = {}
    for source, group in groups.items():
        batches.setdefault(_install_key(ctx, source), []).append((source, group))

    errors: list[Exception] = []

    if not batches:
        plugins = [plugin for _, plugin in inlines]
    else:
        with ThreadPoolExecutor(max_workers=min(len(batches), MAX_WORKERS)) as pool:
            futures = [
                pool.submit(_lock_batch, ctx, templates, matches, apply, batch)
                for batch in batches.values()
            ]
        # The executor has joined; everything below runs on this thread only.
        located: list[tuple[int, LockedPlugin]] = []
        for future in futures:
            for outcome in future.result():
                if isinstance(outcome, SourceError):
                    errors.append(outcome)
                    continue
                for index, result in outcome:
                    if isinstance(result, PluginError):
                        errors.append(result)
                    else:
                        located.append((index, result))
        located.extend(inlines)
        located.sort(key=lambda item: item[0])
        plugins = [plugin for _, plugin in located]

    return LockedConfig(
        settings=ctx.settings,
        templates=templates,
        plugins=plugins,
        errors=errors,
    )


def _install_key(ctx: LockContext, source: Source) -> object:
    try:
        path = install_dir(ctx, source)
    except SourceInstallError:
        path = None
    return path if path is not None else source


def _lock_batch(
    ctx: LockContext,
    templates: dict[str, Template],
    matches: list[str],
    apply: list[str],
    batch: list[SourceGroup],
) -> list[list[PluginResult] | SourceError]:
    """Lock sources that share an install path, in declaration order."""
    outcomes: list[list[PluginResult] | SourceError] = []
    for source, group in batch:
        try:
            outcomes.append(_lock_group(ctx, templates, matches, apply, source, group))
        except SourceError as e:
            outcomes.append(e)
    return outcomes


def _lock_group(
    ctx: LockContext,
    templates: dict[str, Template],
    matches: list[str],
    apply: list[str],
    source: Source,
    group: list[tuple[int, ExternalPlugin]],
) -> list[PluginResult]:
    """Install one source, then lock each of its plugins in order."""
    try:
        locked_source = lock_source(ctx, source)
    except Exception as e:
        raise SourceError(f"failed to install source `{source}`", str(source)) from e

    results: list[PluginResult] = []
    for index, plugin in group:
        try:
            locked = lock_plugin(ctx, templates, locked_source, matches, apply, plugin)
        except Exception as e:
            error = PluginError(f"failed to install plugin `{plugin.name}`", plugin.name)
            error.__cause__ = e
            results.append((index, error))
        else:
            results.append((index, locked))
    return results


__all__ = [
    "LockError",
    "LockFileError",
    "LockedConfig",
    "LockedExternalPlugin",
    "PluginError",
    "SourceError",
    "from_path",
    "lock_config",
]
