"""The closed set of supported harnesses and their static descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cache
from pathlib import Path
from typing import Literal

from bridle.adapters.amp_code import AmpCodeAdapter
from bridle.adapters.base import Capabilities, SchemaAdapter
from bridle.adapters.claude_code import ClaudeCodeAdapter
from bridle.adapters.goose import GooseAdapter
from bridle.adapters.opencode import OpencodeAdapter
from bridle.formats import ConfigFormat
from bridle.models import ResourceCategory

LayoutKind = Literal["dirs", "files", "tree"]

# Directory names checked for categories a harness does not support
GENERIC_RESOURCE_DIRS: dict[ResourceCategory, tuple[str, ...]] = {
    ResourceCategory.SKILLS: ("skills", "skill"),
    ResourceCategory.COMMANDS: ("commands", "command"),
    ResourceCategory.AGENTS: ("agents", "agent"),
    ResourceCategory.PLUGINS: ("plugins", "plugin"),
}


class Harness(str, Enum):
    """Supported harnesses."""

    CLAUDE_CODE = "claude-code"
    OPENCODE = "opencode"
    GOOSE = "goose"
    AMP_CODE = "amp-code"

    @classmethod
    def parse(cls, value: str) -> Harness:
        """Resolve a harness id or a common alias."""
        key = value.strip().lower().replace("_", "-").replace(" ", "-")
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            known = ", ".join(h.value for h in cls)
            raise ValueError(f"Unknown harness '{value}'. Expected one of: {known}") from None

    @property
    def spec(self) -> HarnessSpec:
        return harness_spec(self)

    @property
    def display_name(self) -> str:
        return harness_spec(self).display_name


_ALIASES = {
    "claude": "claude-code",
    "claudecode": "claude-code",
    "open-code": "opencode",
    "amp": "amp-code",
    "ampcode": "amp-code",
}


@dataclass(frozen=True)
class ResourceLayout:
    """Where a harness keeps one category of resources on disk.

    ``dirs`` means one directory per resource holding ``marker``; ``files``
    means one file per resource matching ``patterns``; ``tree`` is copied as a
    whole but its contents are not enumerated.
    """

    category: ResourceCategory
    directory: str
    kind: LayoutKind
    patterns: tuple[str, ...] = ("*.md",)
    marker: str = "SKILL.md"


@dataclass(frozen=True)
class HarnessSpec:
    """Static description of one harness."""

    harness: Harness
    display_name: str
    config_subdir: tuple[str, ...]
    config_files: tuple[str, ...]
    config_format: ConfigFormat
    adapter: SchemaAdapter
    resources: tuple[ResourceLayout, ...] = field(default_factory=tuple)
    rules_file: str | None = None
    # Files outside the live dir, relative to the home directory
    external_files: tuple[str, ...] = ()

    @property
    def capabilities(self) -> Capabilities:
        return self.adapter.capabilities

    def live_dir(self, home: Path | None = None) -> Path:
        """Return the live config directory for this harness."""
        return (home or Path.home()).joinpath(*self.config_subdir)

    def find_config_file(self, directory: Path) -> Path | None:
        """Return the first existing config file in ``directory``."""
        for name in self.config_files:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        return None

    @property
    def default_config_file(self) -> str:
        return self.config_files[0]

    def external_paths(self, home: Path | None = None) -> list[Path]:
        return [(home or Path.home()) / name for name in self.external_files]

    def layouts(self, category: ResourceCategory) -> list[ResourceLayout]:
        return [layout for layout in self.resources if layout.category is category]


@cache
def harness_spec(harness: Harness) -> HarnessSpec:
    """Return the static description of a harness."""
    match harness:
        case Harness.CLAUDE_CODE:
            return HarnessSpec(
                harness=harness,
                display_name="Claude Code",
                config_subdir=(".claude",),
                config_files=("settings.json",),
                config_format=ConfigFormat.JSON,
                adapter=ClaudeCodeAdapter(),
                resources=(
                    ResourceLayout(ResourceCategory.SKILLS, "skills", "dirs"),
                    ResourceLayout(ResourceCategory.COMMANDS, "commands", "files"),
                    ResourceLayout(ResourceCategory.AGENTS, "agents", "files"),
                    ResourceLayout(ResourceCategory.PLUGINS, "plugins", "tree"),
                ),
                rules_file="CLAUDE.md",
                external_files=(".claude.json",),
            )
        case Harness.OPENCODE:
            return HarnessSpec(
                harness=harness,
                display_name="OpenCode",
                config_subdir=(".config", "opencode"),
                config_files=("opencode.json", "opencode.jsonc"),
                config_format=ConfigFormat.JSONC,
                adapter=OpencodeAdapter(),
                resources=(
                    ResourceLayout(ResourceCategory.SKILLS, "skill", "dirs"),
                    ResourceLayout(ResourceCategory.COMMANDS, "command", "files"),
                    ResourceLayout(ResourceCategory.AGENTS, "agent", "files"),
                    ResourceLayout(
                        ResourceCategory.PLUGINS, "plugin", "files", patterns=("*.js", "*.ts")
                    ),
                ),
                rules_file="AGENTS.md",
            )
        case Harness.GOOSE:
            return HarnessSpec(
                harness=harness,
                display_name="Goose",
                config_subdir=(".config", "goose"),
                config_files=("config.yaml", "config.yml"),
                config_format=ConfigFormat.YAML,
                adapter=GooseAdapter(),
                resources=(ResourceLayout(ResourceCategory.SKILLS, "skills", "dirs"),),
                rules_file=".goosehints",
            )
        case Harness.AMP_CODE:
            return HarnessSpec(
                harness=harness,
                display_name="Amp",
                config_subdir=(".config", "amp"),
                config_files=("settings.json", "settings.jsonc"),
                config_format=ConfigFormat.JSONC,
                adapter=AmpCodeAdapter(),
                resources=(
                    ResourceLayout(ResourceCategory.SKILLS, "skills", "dirs"),
                    ResourceLayout(ResourceCategory.COMMANDS, "commands", "files"),
                ),
                rules_file="AGENTS.md",
            )
    raise ValueError(f"Unsupported harness: {harness!r}")
