"""
Template rendering shared by the plugin locker and the script renderer.

Templates use jinja2 syntax. Undefined variables are errors rather than
empty strings, so a typo in a template fails loudly at lock time.
"""

from functools import lru_cache

import jinja2


class TemplateError(Exception):
    """Raised when a template fails to compile or render."""

    pass


_environment = jinja2.Environment(
    autoescape=False,
    keep_trailing_newline=True,
    undefined=jinja2.StrictUndefined,
)


@lru_cache(maxsize=256)
def compile_template(source: str) -> jinja2.Template:
    """
    Compile template text, caching the result.

    Args:
        source: Template text

    Returns:
        Compiled jinja2 template

    Raises:
        TemplateError: If the text is not a valid template
    """
    try:
        return _environment.from_string(source)
    except jinja2.TemplateSyntaxError as e:
        raise TemplateError(f"failed to compile template `{source}`: {e}") from e


def render(source: str, **context: str) -> str:
    """
    Render template text with the given variables.

    Args:
        source: Template text
        **context: Variables such as name, dir and file

    Returns:
        Rendered text

    Raises:
        TemplateError: If compiling or rendering fails
    """
    template = compile_template(source)
    try:
        return template.render(**context)
    except jinja2.TemplateError as e:
        raise TemplateError(f"failed to render template `{source}`: {e}") from e
