"""OpenCode schema adapter.

OpenCode reads ``~/.config/opencode/opencode.json`` (JSONC):

- ``model`` and ``theme``
- ``mcp``: object keyed by server name; ``type`` is ``local`` or ``remote``,
  ``command`` is a single list holding the executable and its arguments,
  ``environment`` holds env vars and ``enabled`` toggles the server
- ``plugin``: list of plugin package specs
- ``command``: object of custom commands (``template``, ``description``)
- ``agent``: object of agent definitions (``description``, ``model``)

Skills live in ``skill/<name>/SKILL.md``.
"""

from __future__ import annotations

from typing import Any

from bridle.adapters.base import (
    Capabilities,
    SchemaAdapter,
    is_present,
    is_truthy,
    merge_entry,
    merge_named_map,
    str_dict,
)
from bridle.formats import RawTree
from bridle.models import AgentRef, CommandRef, McpServerSpec, NormalizedConfig, PluginRef

MCP_KEY = "mcp"
PLUGIN_KEY = "plugin"
COMMAND_KEY = "command"
AGENT_KEY = "agent"

_SERVER_KEYS = ("type", "command", "environment", "url", "headers", "enabled")
_COMMAND_KEYS = ("template", "description")
_AGENT_KEYS = ("description", "model")


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _server_from_entry(entry: dict[str, Any]) -> McpServerSpec:
    kwargs: dict[str, Any] = {}
    extra = {key: value for key, value in entry.items() if key not in _SERVER_KEYS}

    kind = entry.get("type")
    if kind == "local":
        kwargs["transport"] = "stdio"
    elif kind == "remote":
        kwargs["transport"] = "http"
    else:
        if "type" in entry:
            extra["type"] = kind
        if "url" in entry and "command" not in entry:
            kwargs["transport"] = "http"

    command = entry.get("command")
    if isinstance(command, list):
        parts = [str(part) for part in command]
        kwargs["command"] = parts[0] if parts else None
        kwargs["args"] = parts[1:]
    elif "command" in entry:
        extra["command"] = command

    if "environment" in entry:
        kwargs["env"] = str_dict(entry["environment"])
    if "url" in entry:
        kwargs["url"] = _optional_str(entry["url"])
    if "headers" in entry:
        kwargs["headers"] = str_dict(entry["headers"])
    if "enabled" in entry:
        kwargs["enabled"] = is_truthy(entry["enabled"])
    return McpServerSpec(extra=extra, **kwargs)


def _server_to_entry(spec: McpServerSpec, existing: dict[str, Any] | None) -> dict[str, Any]:
    modeled: dict[str, Any] = {}
    if "type" not in spec.extra and (existing is None or "type" in existing):
        modeled["type"] = "local" if spec.transport == "stdio" else "remote"
    if "command" not in spec.extra and (
        is_present(spec, "command", None) or is_present(spec, "args", [])
    ):
        modeled["command"] = ([spec.command] if spec.command else []) + list(spec.args)
    if is_present(spec, "env", {}):
        modeled["environment"] = dict(spec.env)
    if is_present(spec, "url", None):
        modeled["url"] = spec.url
    if is_present(spec, "headers", {}):
        modeled["headers"] = dict(spec.headers)
    if is_present(spec, "enabled", True):
        previous = existing.get("enabled") if existing else None
        modeled["enabled"] = (
            previous if previous is not None and is_truthy(previous) == spec.enabled
            else spec.enabled
        )
    return merge_entry(existing, modeled, _SERVER_KEYS, spec.extra)


def _all_dicts(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(entry, dict) for entry in value.values())


class OpencodeAdapter(SchemaAdapter):
    """Adapter for OpenCode config."""

    capabilities = Capabilities(
        mcp_servers=True, agents=True, commands=True, skills=True, plugins=True
    )
    inline_fields = frozenset({"mcp_servers", "plugins", "commands", "agents"})

    @property
    def name(self) -> str:
        return "opencode"

    @property
    def display_name(self) -> str:
        return "OpenCode"

    def _extract_resources(self, raw: RawTree, owned: set[str]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}

        servers = raw.get(MCP_KEY)
        if _all_dicts(servers):
            kwargs["mcp_servers"] = {
                str(name): _server_from_entry(entry) for name, entry in servers.items()
            }
            owned.add(MCP_KEY)

        plugins = raw.get(PLUGIN_KEY)
        if isinstance(plugins, list) and all(isinstance(item, str) for item in plugins):
            kwargs["plugins"] = [PluginRef(name=item) for item in plugins]
            owned.add(PLUGIN_KEY)

        commands = raw.get(COMMAND_KEY)
        if _all_dicts(commands):
            kwargs["commands"] = [
                CommandRef(
                    name=str(name),
                    extra={k: v for k, v in entry.items() if k not in _COMMAND_KEYS},
                    **{k: _optional_str(entry[k]) for k in _COMMAND_KEYS if k in entry},
                )
                for name, entry in commands.items()
            ]
            owned.add(COMMAND_KEY)

        agents = raw.get(AGENT_KEY)
        if _all_dicts(agents):
            kwargs["agents"] = [
                AgentRef(
                    name=str(name),
                    extra={k: v for k, v in entry.items() if k not in _AGENT_KEYS},
                    **{k: _optional_str(entry[k]) for k in _AGENT_KEYS if k in entry},
                )
                for name, entry in agents.items()
            ]
            owned.add(AGENT_KEY)

        return kwargs

    def _apply_resources(self, config: NormalizedConfig, tree: RawTree) -> None:
        if self.owns(config, MCP_KEY):
            existing = tree.get(MCP_KEY)
            existing = existing if isinstance(existing, dict) else {}
            if is_present(config, "mcp_servers", {}):
                entries = {
                    name: _server_to_entry(spec, existing.get(name))
                    for name, spec in config.mcp_servers.items()
                }
                tree[MCP_KEY] = merge_named_map(existing, entries)
            else:
                tree.pop(MCP_KEY, None)

        if self.owns(config, PLUGIN_KEY):
            if is_present(config, "plugins", []):
                tree[PLUGIN_KEY] = [plugin.name for plugin in config.plugins if plugin.enabled]
            else:
                tree.pop(PLUGIN_KEY, None)

        if self.owns(config, COMMAND_KEY):
            self._apply_named(tree, COMMAND_KEY, config, "commands", _COMMAND_KEYS)

        if self.owns(config, AGENT_KEY):
            self._apply_named(tree, AGENT_KEY, config, "agents", _AGENT_KEYS)

    def _apply_named(
        self,
        tree: RawTree,
        key: str,
        config: NormalizedConfig,
        field: str,
        modeled_keys: tuple[str, ...],
    ) -> None:
        if not is_present(config, field, []):
            tree.pop(key, None)
            return

        existing = tree.get(key)
        existing = existing if isinstance(existing, dict) else {}
        entries: dict[str, dict[str, Any]] = {}
        for ref in getattr(config, field):
            modeled = {
                attr: getattr(ref, attr)
                for attr in modeled_keys
                if is_present(ref, attr, None)
            }
            entries[ref.name] = merge_entry(
                existing.get(ref.name), modeled, modeled_keys, ref.extra
            )
        tree[key] = merge_named_map(existing, entries)
