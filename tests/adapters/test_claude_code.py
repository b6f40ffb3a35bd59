"""Tests for Claude Code adapter."""

import json

import pytest

from bridle.adapters.claude_code import ClaudeCodeAdapter
from bridle.errors import HarnessCapabilityMissing
from bridle.formats import ConfigFormat, parse, serialize
from bridle.models import McpServerSpec, NormalizedConfig, PluginRef

SETTINGS = {
    "$schema": "https://json.schemastore.org/claude-code-settings.json",
    "model": "opus",
    "permissions": {"allow": ["Bash(git status)"], "deny": []},
    "mcpServers": {
        "search": {"command": "npx", "args": ["-y", "search-mcp"], "env": {"KEY": "x"}},
        "remote": {"type": "http", "url": "https://mcp.example.com", "timeout": 30},
        "legacy": {"type": "websocket", "url": "ws://localhost:9000"},
    },
    "disabledMcpjsonServers": ["remote"],
    "enabledPlugins": {"formatter@official": True, "linter@official": False},
    "statusLine": {"type": "command", "command": "~/.claude/status.sh"},
}


def _copy(tree: dict) -> dict:
    return json.loads(json.dumps(tree))


def test_adapter_properties() -> None:
    """Test adapter name properties."""
    adapter = ClaudeCodeAdapter()
    assert adapter.name == "claude-code"
    assert adapter.display_name == "Claude Code"
    assert adapter.version == "0.1.0"


def test_extract() -> None:
    config = ClaudeCodeAdapter().extract(_copy(SETTINGS))

    assert config.model == "opus"
    assert config.theme is None
    assert list(config.mcp_servers) == ["search", "remote", "legacy"]

    search = config.mcp_servers["search"]
    assert search.transport == "stdio"
    assert search.command == "npx"
    assert search.args == ["-y", "search-mcp"]
    assert search.env == {"KEY": "x"}
    assert search.enabled is True

    remote = config.mcp_servers["remote"]
    assert remote.transport == "http"
    assert remote.enabled is False
    assert remote.extra == {"timeout": 30}

    assert config.mcp_servers["legacy"].extra["type"] == "websocket"
    assert [(p.name, p.enabled) for p in config.plugins] == [
        ("formatter@official", True),
        ("linter@official", False),
    ]
    assert list(config.passthrough) == ["$schema", "permissions", "statusLine"]


def test_round_trip_preserves_tree_and_order() -> None:
    adapter = ClaudeCodeAdapter()
    tree = _copy(SETTINGS)
    result = adapter.apply(adapter.extract(tree), tree)
    assert json.dumps(result) == json.dumps(SETTINGS)


def test_round_trip_empty() -> None:
    adapter = ClaudeCodeAdapter()
    assert adapter.apply(adapter.extract({}), {}) == {}


def test_apply_onto_other_tree_keeps_live_only_keys() -> None:
    adapter = ClaudeCodeAdapter()
    profile = {"model": "sonnet", "mcpServers": {"search": {"command": "uvx", "args": ["search"]}}}
    live = _copy(SETTINGS)

    result = adapter.apply(adapter.extract(profile), live)

    assert result["model"] == "sonnet"
    assert result["permissions"] == SETTINGS["permissions"]
    assert list(result["mcpServers"]) == ["search"]
    assert result["mcpServers"]["search"]["command"] == "uvx"
    assert result["mcpServers"]["search"]["args"] == ["search"]
    # Modeled keys the profile leaves out are dropped
    assert "env" not in result["mcpServers"]["search"]
    assert "enabledPlugins" not in result
    # Names of servers the profile does not define are left alone
    assert result["disabledMcpjsonServers"] == ["remote"]


def test_disabling_a_server_updates_disabled_list() -> None:
    adapter = ClaudeCodeAdapter()
    tree = _copy(SETTINGS)
    config = adapter.extract(tree)
    config.mcp_servers["search"].enabled = False
    config.mcp_servers["remote"].enabled = True

    result = adapter.apply(config, tree)

    assert result["disabledMcpjsonServers"] == ["search"]


def test_new_server_and_plugin() -> None:
    adapter = ClaudeCodeAdapter()
    config = NormalizedConfig(
        mcp_servers={"docs": McpServerSpec(transport="sse", url="https://docs.example/sse")},
        plugins=[PluginRef(name="tool@market")],
    )

    result = adapter.apply(config, {})

    assert result["mcpServers"] == {"docs": {"type": "sse", "url": "https://docs.example/sse"}}
    assert result["enabledPlugins"] == {"tool@market": True}


def test_theme_is_not_supported() -> None:
    with pytest.raises(HarnessCapabilityMissing):
        ClaudeCodeAdapter().apply(NormalizedConfig(theme="dark"), {})


def test_unmodelable_servers_fall_through() -> None:
    adapter = ClaudeCodeAdapter()
    tree = {"mcpServers": {"odd": "not-an-object"}}
    config = adapter.extract(tree)
    assert config.mcp_servers == {}
    assert config.passthrough == tree
    assert adapter.apply(config, tree) == tree


def test_normalized_config_survives_rendering_from_scratch() -> None:
    adapter = ClaudeCodeAdapter()
    config = adapter.extract(_copy(SETTINGS))

    rendered = adapter.apply(config, {})

    assert adapter.extract(rendered) == config
    reparsed = parse(serialize(rendered, ConfigFormat.JSON), ConfigFormat.JSON)
    assert adapter.extract(reparsed) == config
    assert rendered["disabledMcpjsonServers"] == ["remote"]
