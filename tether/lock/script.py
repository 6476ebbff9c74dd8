"""
Render a LockedConfig into the shell script that loads every plugin.
"""

from tether.config.model import InlinePlugin
from tether.lock.file import LockedConfig
from tether.lock.template import TemplateError, render


class ScriptError(Exception):
    """Raised when a plugin's templates cannot be rendered."""

    pass


def render_script(locked: LockedConfig) -> str:
    """
    Render the shell script for a lock.

    External plugins render each applied template with `name` and `dir`;
    templates marked `each` are rendered once per file with `file` set.
    Inline plugins render their raw text with `name`.

    Args:
        locked: Lock to render

    Returns:
        The script, one fragment per line

    Raises:
        ScriptError: If a template is missing or fails to render
    """
    fragments: list[str] = []
    for plugin in locked.plugins:
        if isinstance(plugin, InlinePlugin):
            try:
                fragments.append(render(plugin.raw, name=plugin.name).rstrip("\n"))
            except TemplateError as e:
                raise ScriptError(f"failed to render inline plugin `{plugin.name}`") from e
            continue

        directory = str(plugin.dir())
        for name in plugin.apply:
            template = locked.templates.get(name)
            if template is None:
                raise ScriptError(f"unknown template `{name}` for plugin `{plugin.name}`")
            try:
                if template.each:
                    for file in plugin.files:
                        fragments.append(
                            render(template.value, name=plugin.name, dir=directory, file=str(file))
                        )
                else:
                    fragments.append(render(template.value, name=plugin.name, dir=directory))
            except TemplateError as e:
                raise ScriptError(
                    f"failed to render template `{name}` for plugin `{plugin.name}`"
                ) from e

    if not fragments:
        return ""
    return "\n".join(fragments) + "\n"
