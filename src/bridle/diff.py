"""Structural diff between normalized configs and resource manifests."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from bridle.adapters.base import DEFAULT_FIELD_MODES, CompareMode
from bridle.models import NormalizedConfig, ResourceCategory, ResourceManifest

_LIST_FIELDS = ("plugins", "commands", "skills", "agents")


class ChangeKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class DiffEntry(BaseModel):
    """One difference between two snapshots."""

    path: str = Field(..., description="Dotted path of the changed value")
    kind: ChangeKind
    before: Any = None
    after: Any = None


class DiffResult(BaseModel):
    """Ordered differences between two profiles of one harness."""

    harness: str
    left: str
    right: str
    entries: list[DiffEntry] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def at(self, path: str) -> DiffEntry | None:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None


def _same(a: Any, b: Any) -> bool:
    # 1 == True and 1 == 1.0 in Python; a config diff must tell them apart
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_same(a[key], b[key]) for key in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_same(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def _compare(path: str, before: Any, after: Any) -> Iterator[DiffEntry]:
    if isinstance(before, dict) and isinstance(after, dict):
        yield from _compare_maps(path, before, after)
    elif not _same(before, after):
        yield DiffEntry(path=path, kind=ChangeKind.CHANGED, before=before, after=after)


def _compare_maps(
    prefix: str, before: Mapping[str, Any], after: Mapping[str, Any]
) -> Iterator[DiffEntry]:
    for key in _ordered_keys(before, after):
        path = f"{prefix}.{key}" if prefix else str(key)
        if key not in after:
            yield DiffEntry(path=path, kind=ChangeKind.REMOVED, before=before[key])
        elif key not in before:
            yield DiffEntry(path=path, kind=ChangeKind.ADDED, after=after[key])
        else:
            yield from _compare(path, before[key], after[key])


def _ordered_keys(before: Iterable[Any], after: Iterable[Any]) -> list[Any]:
    return sorted(set(before) | set(after), key=str)


def _dump(item: BaseModel) -> dict[str, Any]:
    data: dict[str, Any] = item.model_dump(mode="json")
    return data


def diff_configs(
    a: NormalizedConfig,
    b: NormalizedConfig,
    modes: Mapping[str, CompareMode] | None = None,
) -> list[DiffEntry]:
    """Compare two normalized configs field by field."""
    field_modes = modes or DEFAULT_FIELD_MODES
    entries: list[DiffEntry] = []

    for field in ("model", "theme"):
        before, after = getattr(a, field), getattr(b, field)
        if before is None and after is not None:
            entries.append(DiffEntry(path=field, kind=ChangeKind.ADDED, after=after))
        elif before is not None and after is None:
            entries.append(DiffEntry(path=field, kind=ChangeKind.REMOVED, before=before))
        elif before != after:
            entries.append(
                DiffEntry(path=field, kind=ChangeKind.CHANGED, before=before, after=after)
            )

    servers_a = {name: _dump(spec) for name, spec in a.mcp_servers.items()}
    servers_b = {name: _dump(spec) for name, spec in b.mcp_servers.items()}
    for name in _ordered_keys(servers_a, servers_b):
        path = f"mcp_servers.{name}"
        if name not in servers_b:
            entries.append(DiffEntry(path=path, kind=ChangeKind.REMOVED, before=servers_a[name]))
        elif name not in servers_a:
            entries.append(DiffEntry(path=path, kind=ChangeKind.ADDED, after=servers_b[name]))
        else:
            for key in _ordered_keys(servers_a[name], servers_b[name]):
                before, after = servers_a[name].get(key), servers_b[name].get(key)
                if not _same(before, after):
                    entries.append(
                        DiffEntry(
                            path=f"{path}.{key}",
                            kind=ChangeKind.CHANGED,
                            before=before,
                            after=after,
                        )
                    )

    for field in _LIST_FIELDS:
        items_a: list[BaseModel] = getattr(a, field)
        items_b: list[BaseModel] = getattr(b, field)
        if field_modes.get(field, CompareMode.SET) is CompareMode.ORDERED:
            dumped_a = [_dump(item) for item in items_a]
            dumped_b = [_dump(item) for item in items_b]
            entries.extend(_compare(field, dumped_a, dumped_b))
            continue
        by_name_a = {item.name: _dump(item) for item in items_a}  # type: ignore[attr-defined]
        by_name_b = {item.name: _dump(item) for item in items_b}  # type: ignore[attr-defined]
        entries.extend(_compare_maps(field, by_name_a, by_name_b))

    entries.extend(_compare_maps("passthrough", a.passthrough, b.passthrough))
    return entries


def diff_manifests(a: ResourceManifest, b: ResourceManifest) -> list[DiffEntry]:
    """Compare resource manifests by category and name.

    MCP servers are left to :func:`diff_configs`.
    """
    entries: list[DiffEntry] = []
    for category in ResourceCategory:
        if category is ResourceCategory.MCP_SERVERS:
            continue
        by_name_a = {entry.name: _dump(entry) for entry in a.entries(category)}
        by_name_b = {entry.name: _dump(entry) for entry in b.entries(category)}
        entries.extend(_compare_maps(f"resources.{category.value}", by_name_a, by_name_b))

    unsupported_a = {f"{u.category.value}.{u.name}": _dump(u) for u in a.unsupported}
    unsupported_b = {f"{u.category.value}.{u.name}": _dump(u) for u in b.unsupported}
    entries.extend(_compare_maps("resources.unsupported", unsupported_a, unsupported_b))
    return entries


def diff_profiles(
    harness: str,
    left: str,
    right: str,
    configs: tuple[NormalizedConfig, NormalizedConfig],
    manifests: tuple[ResourceManifest, ResourceManifest],
    modes: Mapping[str, CompareMode] | None = None,
) -> DiffResult:
    """Diff two profiles: config first, then resources."""
    entries = diff_configs(configs[0], configs[1], modes)
    entries.extend(diff_manifests(manifests[0], manifests[1]))
    return DiffResult(harness=harness, left=left, right=right, entries=entries)
