"""Tests for resource extraction."""

from pathlib import Path

from bridle.harness import Harness
from bridle.models import ResourceCategory, ResourceEntry, ResourceManifest
from bridle.resources import extract_resources, read_frontmatter


def _skill(root: Path, dirname: str, frontmatter: str | None) -> Path:
    skill_dir = root / dirname
    skill_dir.mkdir(parents=True)
    body = "# Skill\n"
    if frontmatter is not None:
        body = f"---\n{frontmatter}\n---\n{body}"
    (skill_dir / "SKILL.md").write_text(body)
    return skill_dir


class TestFrontmatter:
    """SKILL.md frontmatter parsing."""

    def test_reads_mapping(self, tmp_path: Path) -> None:
        path = _skill(tmp_path, "pdf", "name: pdf\ndescription: Work with PDFs") / "SKILL.md"
        assert read_frontmatter(path) == {"name": "pdf", "description": "Work with PDFs"}

    def test_missing_frontmatter(self, tmp_path: Path) -> None:
        path = _skill(tmp_path, "plain", None) / "SKILL.md"
        assert read_frontmatter(path) == {}


def test_claude_layout(tmp_path: Path) -> None:
    _skill(tmp_path / "skills", "pdf", "name: pdf")
    _skill(tmp_path / "skills", "hook-development", "name: Hook Development")
    _skill(tmp_path / "skills", "broken", "name: [unclosed")
    (tmp_path / "skills" / "notes").mkdir()
    (tmp_path / "skills" / "node_modules").mkdir()
    (tmp_path / "commands").mkdir()
    (tmp_path / "commands" / "review.md").write_text("Review the diff")
    (tmp_path / "commands" / "README.txt").write_text("ignored")
    (tmp_path / "agents").mkdir()
    (tmp_path / "agents" / "planner.md").write_text("Plan")
    raw = {
        "mcpServers": {"search": {"command": "npx"}},
        "disabledMcpjsonServers": ["search"],
        "enabledPlugins": {"fmt@official": True},
    }
    errors: list[str] = []

    manifest = extract_resources(Harness.CLAUDE_CODE, tmp_path, raw, errors=errors)

    assert manifest.names(ResourceCategory.SKILLS) == ["broken", "hook-development", "pdf"]
    hook = manifest.skills[1]
    assert hook.declared_name == "Hook Development"
    assert hook.sanitized
    assert hook.path == "skills/hook-development"
    assert manifest.names(ResourceCategory.COMMANDS) == ["review"]
    assert manifest.names(ResourceCategory.AGENTS) == ["planner"]
    assert manifest.names(ResourceCategory.PLUGINS) == ["fmt@official"]
    assert manifest.mcp_servers == [
        ResourceEntry(name="search", declared_name="search", enabled=False)
    ]
    assert manifest.unsupported == []
    assert len(errors) == 1
    assert "broken" in errors[0]


def test_directory_names_are_sanitized(tmp_path: Path) -> None:
    _skill(tmp_path / "skill", "My Skill", None)

    manifest = extract_resources(Harness.OPENCODE, tmp_path, {})

    entry = manifest.skills[0]
    assert entry.name == "my-skill"
    assert entry.declared_name == "My Skill"
    assert entry.sanitized


def test_renamed_skill_is_not_flagged_as_sanitized(tmp_path: Path) -> None:
    _skill(tmp_path / "skill", "pdf", "name: pdf-tools")

    manifest = extract_resources(Harness.OPENCODE, tmp_path, {})

    entry = manifest.skills[0]
    assert entry.name == "pdf"
    assert entry.declared_name == "pdf-tools"
    assert not entry.sanitized
    assert manifest.sanitized_entries() == []


def test_unsupported_categories_on_goose(tmp_path: Path) -> None:
    _skill(tmp_path / "skills", "pdf", "name: pdf")
    (tmp_path / "agents").mkdir()
    (tmp_path / "agents" / "reviewer.md").write_text("Review")
    (tmp_path / "commands").mkdir()
    (tmp_path / "commands" / ".DS_Store").write_text("")

    manifest = extract_resources(Harness.GOOSE, tmp_path, {})

    assert manifest.names(ResourceCategory.SKILLS) == ["pdf"]
    assert manifest.agents == []
    assert len(manifest.unsupported) == 1
    unsupported = manifest.unsupported[0]
    assert unsupported.category is ResourceCategory.AGENTS
    assert unsupported.name == "reviewer"
    assert unsupported.enabled is False
    assert "Goose" in unsupported.reason


def test_opencode_inline_and_file_commands_are_merged(tmp_path: Path) -> None:
    (tmp_path / "command").mkdir()
    (tmp_path / "command" / "test.md").write_text("Run tests")
    (tmp_path / "command" / "deploy.md").write_text("Deploy")
    raw = {"command": {"test": {"template": "Run tests"}}}

    manifest = extract_resources(Harness.OPENCODE, tmp_path, raw)

    assert manifest.names(ResourceCategory.COMMANDS) == ["test", "deploy"]
    assert manifest.commands[0].path is None


def test_sources_carried_forward_only_for_existing(tmp_path: Path) -> None:
    _skill(tmp_path / "skills", "pdf", "name: pdf")
    previous = ResourceManifest(
        sources={"skills/pdf": "github:acme/skills", "skills/gone": "github:acme/old"}
    )

    manifest = extract_resources(Harness.CLAUDE_CODE, tmp_path, {}, previous=previous)

    assert manifest.sources == {"skills/pdf": "github:acme/skills"}
