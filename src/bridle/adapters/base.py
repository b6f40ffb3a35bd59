"""Base classes for harness schema adapters.

An adapter maps one harness's raw config tree onto :class:`NormalizedConfig`
and back. Adapters are pure: they never touch the filesystem.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from bridle.errors import HarnessCapabilityMissing
from bridle.formats import RawTree
from bridle.models import NormalizedConfig, ResourceCategory

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


class CompareMode(str, Enum):
    """How the diff engine compares a list field."""

    SET = "set"
    ORDERED = "ordered"


DEFAULT_FIELD_MODES: Mapping[str, CompareMode] = {
    "plugins": CompareMode.SET,
    "commands": CompareMode.SET,
    "skills": CompareMode.SET,
    "agents": CompareMode.SET,
}


@dataclass(frozen=True)
class Capabilities:
    """Resource categories a harness supports."""

    mcp_servers: bool = False
    agents: bool = False
    commands: bool = False
    skills: bool = False
    plugins: bool = False

    def supports(self, category: ResourceCategory) -> bool:
        return bool(getattr(self, category.value))

    def supported(self) -> list[ResourceCategory]:
        return [category for category in ResourceCategory if self.supports(category)]


def is_truthy(value: Any) -> bool:
    """Interpret booleans written as strings or numbers, as env-style keys do."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def encode_bool(value: bool, like: Any) -> Any:
    """Encode a boolean in the same style as an existing value."""
    if isinstance(like, str):
        encoded = "true" if value else "false"
        return encoded.upper() if like.isupper() else encoded
    if isinstance(like, int) and not isinstance(like, bool):
        return int(value)
    return value


def is_present(model: BaseModel, field: str, default: Any) -> bool:
    """True when a field was given explicitly or differs from its default."""
    return field in model.model_fields_set or getattr(model, field) != default


def str_dict(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): "" if item is None else str(item) for key, item in value.items()}


def str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def merge_entry(
    existing: Mapping[str, Any] | None,
    modeled: Mapping[str, Any],
    modeled_keys: Iterable[str],
    extra: Mapping[str, Any],
) -> dict[str, Any]:
    """Rebuild one mapping entry on top of its previous version.

    Keys keep the position they had in ``existing``. Modeled keys missing from
    ``modeled`` are dropped, unmodeled keys come from ``extra`` first and then
    from ``existing``.
    """
    owned = set(modeled_keys)
    result: dict[str, Any] = {}
    for key, value in (existing or {}).items():
        if key in modeled:
            result[key] = modeled[key]
        elif key in extra:
            result[key] = copy.deepcopy(extra[key])
        elif key not in owned:
            result[key] = copy.deepcopy(value)
    for key, value in modeled.items():
        if key not in result:
            result[key] = value
    for key, value in extra.items():
        if key not in result:
            result[key] = copy.deepcopy(value)
    return result


def merge_passthrough(tree: dict[str, Any], overlay: Mapping[str, Any]) -> None:
    """Deep-merge ``overlay`` into ``tree``; overlay values win, other keys stay put."""
    for key, value in overlay.items():
        current = tree.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merge_passthrough(current, value)
        else:
            tree[key] = copy.deepcopy(value)


def merge_named_map(
    existing: Mapping[str, Any] | None,
    entries: Mapping[str, dict[str, Any]],
    keep: Iterable[str] = (),
) -> dict[str, Any]:
    """Rebuild a name-keyed map in the order of ``existing``, then new names.

    Names in ``existing`` that are neither rebuilt nor listed in ``keep`` are
    removed.
    """
    kept = set(keep)
    result: dict[str, Any] = {}
    for name, value in (existing or {}).items():
        if name in entries:
            result[name] = entries[name]
        elif name in kept:
            result[name] = copy.deepcopy(value)
    for name, value in entries.items():
        if name not in result:
            result[name] = value
    return result


class SchemaAdapter(ABC):
    """Base class for harness schema adapters."""

    version: str = "0.1.0"
    capabilities: Capabilities = Capabilities()
    field_modes: Mapping[str, CompareMode] = DEFAULT_FIELD_MODES

    # Top-level keys for the scalar fields; None when the harness has none
    model_key: str | None = "model"
    theme_key: str | None = "theme"

    # List/map fields this adapter stores in the config file itself
    inline_fields: frozenset[str] = frozenset()

    @property
    @abstractmethod
    def name(self) -> str:
        """Machine-friendly harness id."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-friendly harness name."""

    @abstractmethod
    def _extract_resources(self, raw: RawTree, owned: set[str]) -> dict[str, Any]:
        """Return NormalizedConfig kwargs for inline resources.

        Keys whose value cannot be modeled must be left out of ``owned`` so
        they fall through to passthrough.
        """

    @abstractmethod
    def _apply_resources(self, config: NormalizedConfig, tree: RawTree) -> None:
        """Write inline resources from ``config`` into ``tree`` in place."""

    def extract(self, raw: RawTree) -> NormalizedConfig:
        """Build the normalized view of a raw tree."""
        owned: set[str] = set()
        kwargs: dict[str, Any] = {}

        for field, key in (("model", self.model_key), ("theme", self.theme_key)):
            if key is None or key not in raw:
                continue
            value = raw[key]
            if value is None or isinstance(value, str):
                kwargs[field] = value
                owned.add(key)

        kwargs.update(self._extract_resources(raw, owned))
        # Adapters may hand back the unmodeled part of an owned key
        partial = kwargs.pop("passthrough", {})
        passthrough: dict[str, Any] = {}
        for key, value in raw.items():
            if key in partial:
                passthrough[key] = partial[key]
            elif key not in owned:
                passthrough[key] = copy.deepcopy(value)
        return NormalizedConfig(passthrough=passthrough, **kwargs)

    def apply(self, config: NormalizedConfig, base: RawTree) -> RawTree:
        """Merge a normalized config onto ``base`` and return the new tree.

        ``base`` is not modified. Keys only ``base`` knows about survive.
        """
        self.check_supported(config)
        tree = copy.deepcopy(base)
        merge_passthrough(tree, config.passthrough)

        for field, key in (("model", self.model_key), ("theme", self.theme_key)):
            if key is None or key in config.passthrough:
                continue
            if is_present(config, field, None):
                tree[key] = getattr(config, field)
            else:
                tree.pop(key, None)

        self._apply_resources(config, tree)
        return tree

    def check_supported(self, config: NormalizedConfig) -> None:
        """Raise if the config uses a field this harness cannot store."""
        if self.model_key is None and config.model is not None:
            raise HarnessCapabilityMissing(self.name, "model")
        if self.theme_key is None and config.theme is not None:
            raise HarnessCapabilityMissing(self.name, "theme")
        for category in ResourceCategory:
            if not getattr(config, category.value):
                continue
            if not self.capabilities.supports(category):
                raise HarnessCapabilityMissing(self.name, category.value)
            if category.value not in self.inline_fields:
                raise HarnessCapabilityMissing(self.name, f"inline {category.value}")

    def owns(self, config: NormalizedConfig, key: str) -> bool:
        """True when ``key`` is handled by modeled fields rather than passthrough."""
        return key not in config.passthrough
