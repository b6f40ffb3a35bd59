"""Amp schema adapter.

Amp stores ``~/.config/amp/settings.json`` (JSONC) as a flat object of
dotted keys. Servers live under ``amp.mcpServers``, keyed by name, with
``command``/``args``/``env`` for local servers and ``url``/``headers`` for
remote ones; ``disabled: true`` turns a server off. Amp has no model or theme
setting in this file.
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
from bridle.models import McpServerSpec, NormalizedConfig

MCP_KEY = "amp.mcpServers"

_SERVER_KEYS = ("command", "args", "env", "url", "headers", "disabled")


def _server_from_entry(entry: dict[str, Any]) -> McpServerSpec:
    kwargs: dict[str, Any] = {}
    if "url" in entry and "command" not in entry:
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
    if "disabled" in entry:
        kwargs["enabled"] = not is_truthy(entry["disabled"])
    extra = {key: value for key, value in entry.items() if key not in _SERVER_KEYS}
    return McpServerSpec(extra=extra, **kwargs)


def _server_to_entry(spec: McpServerSpec, existing: dict[str, Any] | None) -> dict[str, Any]:
    modeled: dict[str, Any] = {}
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
    if is_present(spec, "enabled", True):
        modeled["disabled"] = not spec.enabled
    return merge_entry(existing, modeled, _SERVER_KEYS, spec.extra)


class AmpCodeAdapter(SchemaAdapter):
    """Adapter for Amp settings."""

    capabilities = Capabilities(mcp_servers=True, commands=True, skills=True)
    model_key = None
    theme_key = None
    inline_fields = frozenset({"mcp_servers"})

    @property
    def name(self) -> str:
        return "amp-code"

    @property
    def display_name(self) -> str:
        return "Amp"

    def _extract_resources(self, raw: RawTree, owned: set[str]) -> dict[str, Any]:
        servers = raw.get(MCP_KEY)
        if not isinstance(servers, dict) or not all(
            isinstance(entry, dict) for entry in servers.values()
        ):
            return {}
        owned.add(MCP_KEY)
        return {
            "mcp_servers": {
                str(name): _server_from_entry(entry) for name, entry in servers.items()
            }
        }

    def _apply_resources(self, config: NormalizedConfig, tree: RawTree) -> None:
        if not self.owns(config, MCP_KEY):
            return
        existing = tree.get(MCP_KEY)
        existing = existing if isinstance(existing, dict) else {}
        if not is_present(config, "mcp_servers", {}):
            tree.pop(MCP_KEY, None)
            return
        entries = {
            name: _server_to_entry(spec, existing.get(name))
            for name, spec in config.mcp_servers.items()
        }
        tree[MCP_KEY] = merge_named_map(existing, entries)
