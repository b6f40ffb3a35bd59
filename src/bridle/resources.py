"""Resource extraction: build a manifest of what a config root carries."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from bridle.errors import InvalidName
from bridle.formats import RawTree
from bridle.fsutil import EXCLUDED_NAMES, is_staging_name
from bridle.harness import GENERIC_RESOURCE_DIRS, Harness, ResourceLayout, harness_spec
from bridle.models import (
    ResourceCategory,
    ResourceEntry,
    ResourceManifest,
    UnsupportedResource,
    is_valid_resource_name,
    sanitize_resource_name,
)

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)


class FrontmatterError(ValueError):
    """Raised when a markdown file has malformed YAML frontmatter."""

    pass


def read_frontmatter(file_path: Path) -> dict[str, Any]:
    """
    Read the YAML frontmatter of a markdown file.

    Args:
        file_path: Path to a SKILL.md or other markdown resource

    Returns:
        The frontmatter mapping, or an empty dict when the file has none.

    Raises:
        FrontmatterError: If the file cannot be read or the YAML is invalid
    """
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FrontmatterError(f"Failed to read {file_path}: {e}") from e

    match = _FRONTMATTER.match(content)
    if not match:
        return {}

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid YAML frontmatter in {file_path}: {e}") from e

    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise FrontmatterError(f"YAML frontmatter must be a mapping in {file_path}")
    return metadata


def _visible_children(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return [
        child
        for child in sorted(directory.iterdir())
        if child.name not in EXCLUDED_NAMES
        and not child.name.startswith(".")
        and not is_staging_name(child.name)
    ]


def _entry(stored: str, declared: str, path: str | None, errors: list[str]) -> ResourceEntry | None:
    if is_valid_resource_name(stored):
        name = stored
    else:
        try:
            name = sanitize_resource_name(stored)
        except InvalidName as e:
            errors.append(str(e))
            logger.warning("Skipping resource %s: %s", path or stored, e)
            return None
    return ResourceEntry(
        name=name,
        declared_name=declared,
        path=path,
        sanitized=name != stored or _sanitizes_to(declared, name),
    )


def _sanitizes_to(declared: str, name: str) -> bool:
    if declared == name or is_valid_resource_name(declared):
        return False
    try:
        return sanitize_resource_name(declared) == name
    except InvalidName:
        return False


def _scan_layout(root: Path, layout: ResourceLayout, errors: list[str]) -> list[ResourceEntry]:
    directory = root / layout.directory
    entries: list[ResourceEntry] = []

    if layout.kind == "dirs":
        for child in _visible_children(directory):
            if not child.is_dir():
                continue
            marker = child / layout.marker
            if not marker.is_file():
                logger.debug("Ignoring %s: no %s", child, layout.marker)
                continue
            declared = child.name
            try:
                frontmatter = read_frontmatter(marker)
            except FrontmatterError as e:
                errors.append(str(e))
                logger.warning("%s", e)
            else:
                if frontmatter.get("name"):
                    declared = str(frontmatter["name"])
            entry = _entry(child.name, declared, child.relative_to(root).as_posix(), errors)
            if entry is not None:
                entries.append(entry)

    elif layout.kind == "files":
        for child in _visible_children(directory):
            if not child.is_file() or not any(child.match(p) for p in layout.patterns):
                continue
            entry = _entry(child.stem, child.stem, child.relative_to(root).as_posix(), errors)
            if entry is not None:
                entries.append(entry)

    return entries


def extract_resources(
    harness: Harness,
    root: Path,
    raw_tree: RawTree,
    previous: ResourceManifest | None = None,
    errors: list[str] | None = None,
) -> ResourceManifest:
    """Build the resource manifest for a config root.

    ``root`` is either the harness's live directory or a profile directory;
    both share the same layout. Problems that do not stop extraction are
    appended to ``errors``.
    """
    spec = harness_spec(harness)
    problems = errors if errors is not None else []
    config = spec.adapter.extract(raw_tree)
    manifest = ResourceManifest()

    manifest.mcp_servers = [
        ResourceEntry(name=name, declared_name=name, enabled=server.enabled)
        for name, server in config.mcp_servers.items()
    ]
    manifest.plugins = [
        ResourceEntry(name=ref.name, declared_name=ref.name, enabled=ref.enabled)
        for ref in config.plugins
    ]
    for category, refs in (
        (ResourceCategory.COMMANDS, config.commands),
        (ResourceCategory.SKILLS, config.skills),
        (ResourceCategory.AGENTS, config.agents),
    ):
        manifest.entries(category).extend(
            ResourceEntry(name=ref.name, declared_name=ref.name) for ref in refs
        )

    for layout in spec.resources:
        bucket = manifest.entries(layout.category)
        known = {entry.name for entry in bucket}
        for entry in _scan_layout(root, layout, problems):
            if entry.name in known:
                continue
            known.add(entry.name)
            bucket.append(entry)

    for category, candidates in GENERIC_RESOURCE_DIRS.items():
        if spec.capabilities.supports(category):
            continue
        for dirname in candidates:
            for child in _visible_children(root / dirname):
                manifest.unsupported.append(
                    UnsupportedResource(
                        category=category,
                        name=child.stem if child.is_file() else child.name,
                        path=child.relative_to(root).as_posix(),
                        reason=f"{spec.display_name} does not support {category.value}",
                    )
                )

    if previous is not None:
        for key, source in previous.sources.items():
            category_name, _, name = key.partition("/")
            try:
                category = ResourceCategory(category_name)
            except ValueError:
                continue
            if name in manifest.names(category):
                manifest.sources[key] = source

    return manifest
