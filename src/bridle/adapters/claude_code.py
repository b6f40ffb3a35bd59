"""Claude Code schema adapter.

Claude Code keeps its user settings in ``~/.claude/settings.json``:

- ``model``: default model
- ``mcpServers``: object keyed by server name (``type``, ``command``,
  ``args``, ``env``, ``url``, ``headers``)
- ``disabledMcpjsonServers``: names of servers that are configured but off
- ``enabledPlugins``: object mapping ``plugin@marketplace`` to a boolean

Skills, commands and agents live in sibling directories, not in the file.
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
    str_list,
)
from bridle.formats import RawTree
from bridle.models import McpServerSpec, NormalizedConfig, PluginRef

MCP_KEY = "mcpServers"
DISABLED_KEY = "disabledMcpjsonServers"
PLUGINS_KEY = "enabledPlugins"

_SERVER_KEYS = ("type", "command", "args", "env", "url", "headers")
_TRANSPORTS = ("stdio", "http", "sse")


def _server_from_entry(entry: dict[str, Any], disabled: bool) -> McpServerSpec:
    kwargs: dict[str, Any] = {}
    kind = entry.get("type")
    if kind in _TRANSPORTS:
        kwargs["transport"] = kind
    elif "url" in entry and "command" not in entry:
        kwargs["transport"] = "http"
    if "command" in entry:
        kwargs["command"] = None if entry["command"] is None else str(entry["command"])
    if "args" in entry:
        kwargs["args"] = str_list(entry["args"])
    if "env" in entry:
        kwargs["env"] = str_dict(entry["env"])
    if "url" in entry:
        kwargs["url"] = None if entry["url"] is None else str(entry["url"])
    if "headers" in entry:
        kwargs["headers"] = str_dict(entry["headers"])
    if disabled:
        kwargs["enabled"] = False

    extra = {key: value for key, value in entry.items() if key not in _SERVER_KEYS}
    if "type" in entry and kind not in _TRANSPORTS:
        # Unknown transport names are kept as-is
        extra["type"] = kind
    return McpServerSpec(extra=extra, **kwargs)


def _server_to_entry(spec: McpServerSpec, existing: dict[str, Any] | None) -> dict[str, Any]:
    modeled: dict[str, Any] = {}
    inferred = "http" if spec.url is not None and spec.command is None else "stdio"
    if "type" not in spec.extra and (
        (existing is not None and "type" in existing) or spec.transport != inferred
    ):
        modeled["type"] = spec.transport
    if is_present(spec, "command", None):
        modeled["command"] = spec.command
    if is_present(spec, "args", []):
        modeled["args"] = list(spec.args)
    if is_present(spec, "env", {}):
        modeled["env"] = dict(spec.env)
    if is_present(spec, "url", None):
        modeled["url"] = spec.url
    if is_present(spec, "headers", {}):
        modeled["headers"] = dict(spec.headers)
    return merge_entry(existing, modeled, _SERVER_KEYS, spec.extra)


class ClaudeCodeAdapter(SchemaAdapter):
    """Adapter for Claude Code settings."""

    capabilities = Capabilities(
        mcp_servers=True, agents=True, commands=True, skills=True, plugins=True
    )
    theme_key = None
    inline_fields = frozenset({"mcp_servers", "plugins"})

    @property
    def name(self) -> str:
        return "claude-code"

    @property
    def display_name(self) -> str:
        return "Claude Code"

    def _extract_resources(self, raw: RawTree, owned: set[str]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}

        servers = raw.get(MCP_KEY)
        disabled_names = raw.get(DISABLED_KEY, [])
        if isinstance(servers, dict) and isinstance(disabled_names, list):
            disabled = {str(name) for name in disabled_names}
            kwargs["mcp_servers"] = {
                str(name): _server_from_entry(entry, str(name) in disabled)
                for name, entry in servers.items()
                if isinstance(entry, dict)
            }
            if len(kwargs["mcp_servers"]) == len(servers):
                owned.add(MCP_KEY)
                if DISABLED_KEY in raw:
                    owned.add(DISABLED_KEY)
            else:
                del kwargs["mcp_servers"]

        plugins = raw.get(PLUGINS_KEY)
        if isinstance(plugins, dict):
            kwargs["plugins"] = [
                PluginRef(name=str(name), enabled=is_truthy(enabled))
                for name, enabled in plugins.items()
            ]
            owned.add(PLUGINS_KEY)

        return kwargs

    def _apply_resources(self, config: NormalizedConfig, tree: RawTree) -> None:
        if self.owns(config, MCP_KEY):
            self._apply_servers(config, tree)

        if self.owns(config, PLUGINS_KEY):
            if is_present(config, "plugins", []):
                existing = tree.get(PLUGINS_KEY)
                result: dict[str, Any] = {}
                for plugin in config.plugins:
                    previous = existing.get(plugin.name) if isinstance(existing, dict) else None
                    result[plugin.name] = (
                        previous if previous is not None and is_truthy(previous) == plugin.enabled
                        else plugin.enabled
                    )
                tree[PLUGINS_KEY] = merge_named_map(
                    existing if isinstance(existing, dict) else None, result
                )
            else:
                tree.pop(PLUGINS_KEY, None)

    def _apply_servers(self, config: NormalizedConfig, tree: RawTree) -> None:
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

        if not self.owns(config, DISABLED_KEY):
            return
        current = tree.get(DISABLED_KEY)
        current_names = [str(name) for name in current] if isinstance(current, list) else []
        disabled = [name for name, spec in config.mcp_servers.items() if not spec.enabled]
        names = [
            name
            for name in current_names
            if name not in config.mcp_servers or name in disabled
        ]
        names.extend(name for name in disabled if name not in names)
        if names or DISABLED_KEY in tree:
            tree[DISABLED_KEY] = names
