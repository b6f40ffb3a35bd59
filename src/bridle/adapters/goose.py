"""Goose schema adapter.

Goose keeps ``~/.config/goose/config.yaml`` with environment-variable style
top-level keys (``GOOSE_MODEL``, ``GOOSE_PROVIDER``, ``GOOSE_CLI_THEME``...)
and an ``extensions`` object keyed by extension id. Only extensions whose
``type`` is an MCP transport are servers; ``builtin`` and ``platform``
extensions belong to Goose itself and are carried through untouched.

Flags may be written as YAML booleans or as strings (``"true"``, ``"0"``);
they are read as booleans and written back in the style already on disk.
"""

from __future__ import annotations

from typing import Any

from bridle.adapters.base import (
    Capabilities,
    SchemaAdapter,
    encode_bool,
    is_present,
    is_truthy,
    merge_entry,
    merge_named_map,
    str_dict,
    str_list,
)
from bridle.formats import RawTree
from bridle.models import McpServerSpec, NormalizedConfig

EXTENSIONS_KEY = "extensions"
MCP_TYPES = frozenset({"stdio", "sse", "streamable_http", "http"})

_SERVER_KEYS = ("type", "cmd", "args", "envs", "uri", "headers", "enabled")


def is_mcp_extension(entry: Any) -> bool:
    return isinstance(entry, dict) and entry.get("type") in MCP_TYPES


def _server_from_entry(entry: dict[str, Any]) -> McpServerSpec:
    kind = entry["type"]
    kwargs: dict[str, Any] = {
        "transport": "stdio" if kind == "stdio" else "sse" if kind == "sse" else "http"
    }
    if "cmd" in entry:
        kwargs["command"] = None if entry["cmd"] is None else str(entry["cmd"])
    if "args" in entry:
        kwargs["args"] = str_list(entry["args"])
    if "envs" in entry:
        kwargs["env"] = str_dict(entry["envs"])
    if "uri" in entry:
        kwargs["url"] = None if entry["uri"] is None else str(entry["uri"])
    if "headers" in entry:
        kwargs["headers"] = str_dict(entry["headers"])
    if "enabled" in entry:
        kwargs["enabled"] = is_truthy(entry["enabled"])
    extra = {key: value for key, value in entry.items() if key not in _SERVER_KEYS}
    return McpServerSpec(extra=extra, **kwargs)


def _server_to_entry(spec: McpServerSpec, existing: dict[str, Any] | None) -> dict[str, Any]:
    previous_type = existing.get("type") if existing else None
    if spec.transport == "http":
        kind = previous_type if previous_type in ("streamable_http", "http") else "streamable_http"
    else:
        kind = spec.transport

    modeled: dict[str, Any] = {"type": kind}
    if is_present(spec, "command", None):
        modeled["cmd"] = spec.command
    if is_present(spec, "args", []):
        modeled["args"] = list(spec.args)
    if is_present(spec, "env", {}):
        modeled["envs"] = dict(spec.env)
    if is_present(spec, "url", None):
        modeled["uri"] = spec.url
    if is_present(spec, "headers", {}):
        modeled["headers"] = dict(spec.headers)
    if existing is None or is_present(spec, "enabled", True):
        previous = existing.get("enabled") if existing else None
        modeled["enabled"] = encode_bool(spec.enabled, previous)
    return merge_entry(existing, modeled, _SERVER_KEYS, spec.extra)


class GooseAdapter(SchemaAdapter):
    """Adapter for Goose config."""

    capabilities = Capabilities(mcp_servers=True, skills=True)
    model_key = "GOOSE_MODEL"
    theme_key = "GOOSE_CLI_THEME"
    inline_fields = frozenset({"mcp_servers"})

    @property
    def name(self) -> str:
        return "goose"

    @property
    def display_name(self) -> str:
        return "Goose"

    def _extract_resources(self, raw: RawTree, owned: set[str]) -> dict[str, Any]:
        extensions = raw.get(EXTENSIONS_KEY)
        if not isinstance(extensions, dict):
            return {}

        owned.add(EXTENSIONS_KEY)
        servers = {
            str(key): _server_from_entry(entry)
            for key, entry in extensions.items()
            if is_mcp_extension(entry)
        }
        kwargs: dict[str, Any] = {"mcp_servers": servers}
        others = {key: entry for key, entry in extensions.items() if not is_mcp_extension(entry)}
        if others:
            kwargs["passthrough"] = {EXTENSIONS_KEY: others}
        return kwargs

    def _apply_resources(self, config: NormalizedConfig, tree: RawTree) -> None:
        carried = config.passthrough.get(EXTENSIONS_KEY, {})
        if not isinstance(carried, dict):
            return

        existing = tree.get(EXTENSIONS_KEY)
        if not isinstance(existing, dict):
            if not config.mcp_servers:
                return
            existing = {}

        entries: dict[str, dict[str, Any]] = {}
        for name, spec in config.mcp_servers.items():
            previous = existing.get(name)
            entries[name] = _server_to_entry(spec, previous if is_mcp_extension(previous) else None)
        keep = [key for key, entry in existing.items() if not is_mcp_extension(entry)]
        tree[EXTENSIONS_KEY] = merge_named_map(existing, entries, keep=keep)
