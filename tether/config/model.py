"""
Configuration Model.

Plain data types describing what the user asked for in plugins.toml.
Sources are frozen so that they can be used as dictionary keys: two plugins
declaring identical sources share a single install.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Shell(Enum):
    """Supported shell dialects."""

    BASH = "bash"
    ZSH = "zsh"


@dataclass(frozen=True)
class GitReference:
    """
    A git branch, tag or commit to check out.

    Attributes:
        kind: One of "branch", "rev", "tag"
        value: Branch name, commit SHA or tag name
    """

    kind: str
    value: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


@dataclass(frozen=True)
class GitSource:
    """A git repository, optionally pinned to a reference."""

    url: str
    reference: GitReference | None = None

    def __str__(self) -> str:
        if self.reference is None:
            return self.url
        return f"{self.url}@{self.reference}"


@dataclass(frozen=True)
class RemoteSource:
    """A single file downloaded over HTTP(S)."""

    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class LocalSource:
    """A directory that already exists on disk."""

    dir: Path

    def __str__(self) -> str:
        return str(self.dir)


Source = GitSource | RemoteSource | LocalSource


@dataclass(frozen=True)
class Template:
    """
    A named snippet rendered into the generated shell script.

    Attributes:
        value: jinja2 template text, e.g. 'source "{{ file }}"'
        each: Render once per matched file instead of once per plugin
    """

    value: str
    each: bool = False


@dataclass
class ExternalPlugin:
    """
    A plugin backed by a Source that needs installing.

    Attributes:
        name: Plugin name
        source: Where the plugin comes from
        dir: Optional subdirectory of the source (may use {{ name }})
        uses: Optional file match patterns overriding the global ones
        apply: Optional template names overriding the global apply list
    """

    name: str
    source: Source
    dir: str | None = None
    uses: list[str] | None = None
    apply: list[str] | None = None


@dataclass
class InlinePlugin:
    """A plugin whose script content is written directly in the config."""

    name: str
    raw: str


Plugin = ExternalPlugin | InlinePlugin


@dataclass
class Config:
    """
    The whole user configuration.

    Attributes:
        shell: Shell dialect, selects default matches and templates
        matches: Global file match patterns (None means shell defaults)
        apply: Global template names to apply (None means shell defaults)
        templates: User templates, merged over the shell defaults
        plugins: Plugins in declaration order
    """

    shell: Shell = Shell.ZSH
    matches: list[str] | None = None
    apply: list[str] | None = None
    templates: dict[str, Template] = field(default_factory=dict)
    plugins: list[Plugin] = field(default_factory=list)
