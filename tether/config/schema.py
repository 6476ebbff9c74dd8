"""
Configuration Schema.

This module validates raw TOML data from plugins.toml and converts it into
the typed configuration model.

Key features:
- Strict key checking (unknown keys are rejected)
- Source sugar: github / gist / git / remote / local / inline
- Git references: branch / rev / tag (at most one)
- Templates given as a plain string or as { value, each }
"""

from pathlib import Path
from typing import Any

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


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when a config value fails validation."""

    pass


TOP_LEVEL_KEYS = {"shell", "match", "apply", "templates", "plugins"}
SOURCE_KEYS = ("github", "gist", "git", "remote", "local", "inline")
REFERENCE_KEYS = ("branch", "rev", "tag")
PLUGIN_KEYS = set(SOURCE_KEYS) | set(REFERENCE_KEYS) | {"dir", "use", "apply"}


def parse_config(data: dict[str, Any]) -> Config:
    """
    Validate raw TOML data and build a Config.

    Args:
        data: Parsed plugins.toml content

    Returns:
        Config object

    Raises:
        ValidationError: If the data does not match the schema
    """
    for key in data:
        if key not in TOP_LEVEL_KEYS:
            raise ValidationError(f"Unknown configuration field: {key}")

    shell_name = data.get("shell", Shell.ZSH.value)
    try:
        shell = Shell(shell_name)
    except ValueError as e:
        choices = ", ".join(s.value for s in Shell)
        raise ValidationError(
            f"Invalid shell {shell_name!r}, expected one of: {choices}"
        ) from e

    templates_raw = data.get("templates", {})
    if not isinstance(templates_raw, dict):
        raise ValidationError("'templates' field must be a table")
    templates = {
        name: _parse_template(name, value) for name, value in templates_raw.items()
    }

    plugins_raw = data.get("plugins", {})
    if not isinstance(plugins_raw, dict):
        raise ValidationError("'plugins' field must be a table")
    plugins = [_parse_plugin(name, value) for name, value in plugins_raw.items()]

    return Config(
        shell=shell,
        matches=_optional_str_list(data, "match", "config"),
        apply=_optional_str_list(data, "apply", "config"),
        templates=templates,
        plugins=plugins,
    )


def _parse_template(name: str, value: Any) -> Template:
    if isinstance(value, str):
        return Template(value)
    if isinstance(value, dict):
        for key in value:
            if key not in ("value", "each"):
                raise ValidationError(f"Unknown field '{key}' in template '{name}'")
        text = value.get("value")
        each = value.get("each", False)
        if not isinstance(text, str):
            raise ValidationError(f"Template '{name}' requires a string 'value'")
        if not isinstance(each, bool):
            raise ValidationError(f"Template '{name}' field 'each' must be a boolean")
        return Template(text, each)
    raise ValidationError(f"Template '{name}' must be a string or a table")


def _parse_plugin(name: str, value: Any) -> Plugin:
    if not isinstance(value, dict):
        raise ValidationError(f"Plugin '{name}' must be a table")

    for key in value:
        if key not in PLUGIN_KEYS:
            raise ValidationError(f"Unknown field '{key}' in plugin '{name}'")

    given = [key for key in SOURCE_KEYS if key in value]
    if len(given) != 1:
        raise ValidationError(
            f"Plugin '{name}' requires exactly one of: {', '.join(SOURCE_KEYS)}"
        )
    kind = given[0]

    if kind == "inline":
        extra = [key for key in value if key != "inline"]
        if extra:
            raise ValidationError(
                f"Inline plugin '{name}' does not support: {', '.join(extra)}"
            )
        raw = value["inline"]
        if not isinstance(raw, str):
            raise ValidationError(f"Plugin '{name}' field 'inline' must be a string")
        return InlinePlugin(name=name, raw=raw)

    dir_ = value.get("dir")
    if dir_ is not None and not isinstance(dir_, str):
        raise ValidationError(f"Plugin '{name}' field 'dir' must be a string")

    return ExternalPlugin(
        name=name,
        source=_parse_source(name, kind, value),
        dir=dir_,
        uses=_optional_str_list(value, "use", f"plugin '{name}'"),
        apply=_optional_str_list(value, "apply", f"plugin '{name}'"),
    )


def _parse_source(name: str, kind: str, value: dict[str, Any]) -> Source:
    location = value[kind]
    if not isinstance(location, str) or not location:
        raise ValidationError(f"Plugin '{name}' field '{kind}' must be a non-empty string")

    references = [key for key in REFERENCE_KEYS if key in value]
    if len(references) > 1:
        raise ValidationError(
            f"Plugin '{name}' may only set one of: {', '.join(REFERENCE_KEYS)}"
        )
    if references and kind not in ("github", "gist", "git"):
        raise ValidationError(
            f"Plugin '{name}' field '{references[0]}' is only valid for git sources"
        )

    if kind == "remote":
        return RemoteSource(location)
    if kind == "local":
        return LocalSource(Path(location))

    reference = None
    if references:
        ref_value = value[references[0]]
        if not isinstance(ref_value, str) or not ref_value:
            raise ValidationError(
                f"Plugin '{name}' field '{references[0]}' must be a non-empty string"
            )
        reference = GitReference(references[0], ref_value)

    if kind == "github":
        if location.count("/") != 1:
            raise ValidationError(
                f"Plugin '{name}' github repository must look like 'owner/repo'"
            )
        url = f"https://github.com/{location}"
    elif kind == "gist":
        url = f"https://gist.github.com/{location}"
    else:
        url = location
    return GitSource(url, reference)


def _optional_str_list(data: dict[str, Any], key: str, where: str) -> list[str] | None:
    if key not in data:
        return None
    value = data[key]
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"Field '{key}' in {where} must be a list of strings")
    return list(value)
