"""
Shell defaults for file matching and templates.

The tables are built once per shell on first use and cached for the life of
the process. Callers always receive fresh copies, so the cached tables are
never mutated after construction.
"""

from functools import lru_cache

from tether.config.model import Shell, Template


@lru_cache(maxsize=None)
def _matches(shell: Shell) -> tuple[str, ...]:
    if shell is Shell.BASH:
        return (
            "{{ name }}.plugin.bash",
            "{{ name }}.plugin.sh",
            "{{ name }}.bash",
            "{{ name }}.sh",
            "*.plugin.bash",
            "*.plugin.sh",
            "*.bash",
            "*.sh",
        )
    return (
        "{{ name }}.plugin.zsh",
        "{{ name }}.zsh",
        "{{ name }}.sh",
        "{{ name }}.zsh-theme",
        "*.plugin.zsh",
        "*.zsh",
        "*.sh",
        "*.zsh-theme",
    )


@lru_cache(maxsize=None)
def _templates(shell: Shell) -> tuple[tuple[str, Template], ...]:
    path = ("PATH", Template('export PATH="{{ dir }}:$PATH"'))
    source = ("source", Template('source "{{ file }}"', each=True))
    if shell is Shell.BASH:
        return (path, source)
    return (
        path,
        ("path", Template('path=( "{{ dir }}" $path )')),
        ("fpath", Template('fpath=( "{{ dir }}" $fpath )')),
        source,
    )


def default_matches(shell: Shell) -> list[str]:
    """Return the default file match patterns for a shell, in priority order."""
    return list(_matches(shell))


def default_templates(shell: Shell) -> dict[str, Template]:
    """Return the default templates for a shell, in definition order."""
    return dict(_templates(shell))


def default_apply(shell: Shell) -> list[str]:
    """Return the template names applied when neither config nor plugin says."""
    return ["source"]


def merge_templates(shell: Shell, templates: dict[str, Template]) -> dict[str, Template]:
    """
    Merge user templates over the shell defaults.

    A user template with a default's name replaces it in place; new names are
    appended in the order they were declared.

    Args:
        shell: Shell dialect
        templates: User declared templates

    Returns:
        New ordered mapping of template name to Template
    """
    merged = default_templates(shell)
    for name, template in templates.items():
        merged[name] = template
    return merged
