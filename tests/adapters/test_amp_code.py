"""Tests for Amp adapter."""

import json

import pytest

from bridle.adapters.amp_code import AmpCodeAdapter
from bridle.errors import HarnessCapabilityMissing
from bridle.formats import ConfigFormat, parse, serialize
from bridle.models import NormalizedConfig

SETTINGS = {
    "amp.notifications.enabled": True,
    "amp.mcpServers": {
        "search": {"command": "npx", "args": ["-y", "search-mcp"], "env": {"K": "v"}},
        "remote": {
            "url": "https://mcp.example.com",
            "headers": {"Authorization": "Bearer t"},
            "disabled": True,
        },
    },
    "amp.commands.allowlist": ["git status"],
}


def _tree() -> dict:
    return json.loads(json.dumps(SETTINGS))


def test_adapter_properties() -> None:
    """Test adapter name properties."""
    adapter = AmpCodeAdapter()
    assert adapter.name == "amp-code"
    assert adapter.display_name == "Amp"


def test_extract() -> None:
    config = AmpCodeAdapter().extract(_tree())

    assert config.model is None
    assert config.mcp_servers["search"].command == "npx"
    assert config.mcp_servers["remote"].transport == "http"
    assert config.mcp_servers["remote"].enabled is False
    assert list(config.passthrough) == ["amp.notifications.enabled", "amp.commands.allowlist"]


def test_round_trip() -> None:
    adapter = AmpCodeAdapter()
    tree = _tree()
    result = adapter.apply(adapter.extract(tree), tree)
    assert json.dumps(result) == json.dumps(SETTINGS)


def test_enable_server() -> None:
    adapter = AmpCodeAdapter()
    tree = _tree()
    config = adapter.extract(tree)
    config.mcp_servers["remote"].enabled = True

    result = adapter.apply(config, tree)

    assert result["amp.mcpServers"]["remote"]["disabled"] is False


def test_model_is_not_supported() -> None:
    with pytest.raises(HarnessCapabilityMissing):
        AmpCodeAdapter().apply(NormalizedConfig(model="gpt-5"), {})


def test_normalized_config_survives_rendering_from_scratch() -> None:
    adapter = AmpCodeAdapter()
    config = adapter.extract(_tree())

    rendered = adapter.apply(config, {})

    assert adapter.extract(rendered) == config
    reparsed = parse(serialize(rendered, ConfigFormat.JSONC), ConfigFormat.JSONC)
    assert adapter.extract(reparsed) == config
