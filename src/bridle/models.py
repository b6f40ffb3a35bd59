"""Harness-agnostic configuration model."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from bridle.errors import InvalidName

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,62}[a-z0-9])?$")
_RESOURCE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")


class ProfileName(str):
    """Validated profile identifier.

    1-64 characters of lowercase ASCII letters, digits and hyphens, with no
    leading or trailing hyphen.
    """

    def __new__(cls, value: str) -> ProfileName:
        if not isinstance(value, str) or not value:
            raise InvalidName(str(value), "profile name must not be empty")
        if len(value) > 64:
            raise InvalidName(value, "profile name must be at most 64 characters")
        if not _PROFILE_NAME_PATTERN.match(value):
            raise InvalidName(
                value,
                "use lowercase letters, digits and hyphens, not starting or ending with a hyphen",
            )
        return super().__new__(cls, value)


def is_valid_resource_name(name: str) -> bool:
    return bool(_RESOURCE_NAME_PATTERN.match(name))


def sanitize_resource_name(name: str) -> str:
    """Map a declared resource name onto the harness identifier grammar.

    ``"Hook Development"`` becomes ``"hook-development"``.
    """
    cleaned = re.sub(r"\s+", "-", name.strip().lower())
    cleaned = re.sub(r"[^a-z0-9._-]", "", cleaned)
    cleaned = re.sub(r"-{2,}", "-", cleaned).strip("-._")
    if not cleaned:
        raise InvalidName(name, "nothing left after sanitizing")
    return cleaned


Transport = Literal["stdio", "http", "sse"]


class McpServerSpec(BaseModel):
    """One MCP server definition."""

    transport: Transport = Field("stdio", description="How the harness talks to the server")
    command: str | None = Field(None, description="Executable for stdio servers")
    args: list[str] = Field(default_factory=list, description="Command arguments, ordered")
    env: dict[str, str] = Field(default_factory=dict, description="Environment for the process")
    url: str | None = Field(None, description="Endpoint for remote servers")
    headers: dict[str, str] = Field(default_factory=dict, description="HTTP headers")
    enabled: bool = Field(True, description="Whether the harness loads the server")
    extra: dict[str, Any] = Field(default_factory=dict, description="Unmodeled harness keys")


class PluginRef(BaseModel):
    """Plugin declared in a harness config."""

    name: str
    enabled: bool = True
    extra: dict[str, Any] = Field(default_factory=dict)


class CommandRef(BaseModel):
    """Custom slash command declared inline in a harness config."""

    name: str
    description: str | None = None
    template: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class SkillRef(BaseModel):
    """Skill declared inline in a harness config."""

    name: str
    description: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class AgentRef(BaseModel):
    """Agent declared inline in a harness config."""

    name: str
    description: str | None = None
    model: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class NormalizedConfig(BaseModel):
    """Harness-agnostic view of a harness config file.

    ``passthrough`` keeps every top-level key the adapter does not map, so
    applying the config back onto its source tree reproduces it.
    """

    model: str | None = None
    theme: str | None = None
    mcp_servers: dict[str, McpServerSpec] = Field(default_factory=dict)
    plugins: list[PluginRef] = Field(default_factory=list)
    commands: list[CommandRef] = Field(default_factory=list)
    skills: list[SkillRef] = Field(default_factory=list)
    agents: list[AgentRef] = Field(default_factory=list)
    passthrough: dict[str, Any] = Field(default_factory=dict)


class ResourceCategory(str, Enum):
    """Kinds of resources a profile can carry."""

    SKILLS = "skills"
    COMMANDS = "commands"
    AGENTS = "agents"
    PLUGINS = "plugins"
    MCP_SERVERS = "mcp_servers"


class ResourceEntry(BaseModel):
    """One installed resource recorded in a manifest."""

    name: str = Field(..., description="Name as stored by the harness")
    declared_name: str = Field(..., description="Name as declared by the resource itself")
    path: str | None = Field(None, description="Path relative to the config root, if on disk")
    enabled: bool = True
    sanitized: bool = Field(False, description="Stored name was derived by sanitizing")


class UnsupportedResource(BaseModel):
    """Resource found for a category the harness cannot use; shown disabled."""

    category: ResourceCategory
    name: str
    path: str | None = None
    reason: str

    @property
    def enabled(self) -> bool:
        return False


class ResourceManifest(BaseModel):
    """Resources associated with a profile, per category."""

    skills: list[ResourceEntry] = Field(default_factory=list)
    commands: list[ResourceEntry] = Field(default_factory=list)
    agents: list[ResourceEntry] = Field(default_factory=list)
    plugins: list[ResourceEntry] = Field(default_factory=list)
    mcp_servers: list[ResourceEntry] = Field(default_factory=list)
    unsupported: list[UnsupportedResource] = Field(default_factory=list)
    sources: dict[str, str] = Field(
        default_factory=dict, description="Provenance keyed by '<category>/<name>'"
    )

    def entries(self, category: ResourceCategory) -> list[ResourceEntry]:
        entries: list[ResourceEntry] = getattr(self, category.value)
        return entries

    def names(self, category: ResourceCategory) -> list[str]:
        return [entry.name for entry in self.entries(category)]

    def sanitized_entries(self) -> list[tuple[ResourceCategory, ResourceEntry]]:
        """Entries whose stored name had to be sanitized, for warnings."""
        return [
            (category, entry)
            for category in ResourceCategory
            for entry in self.entries(category)
            if entry.sanitized
        ]

    def source_for(self, category: ResourceCategory, name: str) -> str | None:
        return self.sources.get(f"{category.value}/{name}")
