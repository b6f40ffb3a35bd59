"""Format layer: parse harness config text into raw trees and back.

Harnesses store their settings as strict JSON, JSON with comments (JSONC) or
YAML. Everything above this module works on plain ordered ``dict`` trees.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from bridle.errors import ParseError, StoreIOError

RawTree = dict[str, Any]


class ConfigFormat(str, Enum):
    """Serialization format of a config file."""

    JSON = "json"
    JSONC = "jsonc"
    YAML = "yaml"


_SUFFIX_FORMATS = {
    ".json": ConfigFormat.JSON,
    ".jsonc": ConfigFormat.JSONC,
    ".yaml": ConfigFormat.YAML,
    ".yml": ConfigFormat.YAML,
}


def detect_format(path: Path) -> ConfigFormat:
    """Guess a config format from a file suffix."""
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise ParseError(path.suffix or "unknown", None, f"Unsupported config file {path.name}")
    return fmt


def _location(text: str, index: int) -> str:
    line = text.count("\n", 0, index) + 1
    column = index - (text.rfind("\n", 0, index) + 1) + 1
    return f"{line}:{column}"


def _skip_trivia(text: str, index: int) -> int:
    """Return the index of the next character that is not whitespace or a comment."""
    length = len(text)
    while index < length:
        if text[index].isspace():
            index += 1
        elif text.startswith("//", index):
            end = text.find("\n", index)
            index = length if end == -1 else end
        elif text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = length if end == -1 else end + 2
        else:
            break
    return index


def strip_jsonc(text: str) -> str:
    """Remove comments and trailing commas from JSONC text.

    String literals are copied untouched, so ``"http://host"`` or ``"/* x */"``
    inside a value survive. Block comments are replaced by the newlines they
    contained to keep line numbers in later error messages accurate.
    """
    out: list[str] = []
    length = len(text)
    index = 0
    in_string = False

    while index < length:
        char = text[index]

        if in_string:
            out.append(char)
            if char == "\\" and index + 1 < length:
                out.append(text[index + 1])
                index += 2
                continue
            if char == '"':
                in_string = False
            index += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            index += 1
            continue

        if text.startswith("//", index):
            end = text.find("\n", index)
            index = length if end == -1 else end
            continue

        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            if end == -1:
                raise ParseError(
                    ConfigFormat.JSONC.value, _location(text, index), "Unterminated block comment"
                )
            out.append("\n" * text.count("\n", index, end) or " ")
            index = end + 2
            continue

        if char == ",":
            following = _skip_trivia(text, index + 1)
            if following < length and text[following] in "}]":
                index += 1
                continue

        out.append(char)
        index += 1

    return "".join(out)


def parse(text: str, fmt: ConfigFormat) -> RawTree:
    """Parse config text into a raw tree.

    Raises:
        ParseError: If the text is malformed or its top level is not a mapping.
    """
    data: Any
    if fmt is ConfigFormat.YAML:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            location = f"{mark.line + 1}:{mark.column + 1}" if mark is not None else None
            problem = getattr(e, "problem", None) or str(e)
            raise ParseError(fmt.value, location, str(problem)) from e
    else:
        source = strip_jsonc(text) if fmt is ConfigFormat.JSONC else text
        if not source.strip():
            return {}
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise ParseError(fmt.value, f"{e.lineno}:{e.colno}", e.msg) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(fmt.value, None, "Top-level value must be a mapping")
    if fmt is ConfigFormat.YAML:
        _require_string_keys(data, fmt)
    return data


def _require_string_keys(value: Any, fmt: ConfigFormat, path: str = "") -> None:
    # YAML allows `2024:` or a bare `on:`; the raw tree is keyed by strings only
    if isinstance(value, dict):
        for key, item in value.items():
            where = f"{path}.{key}" if path else str(key)
            if not isinstance(key, str):
                raise ParseError(fmt.value, where, f"Mapping key {key!r} is not a string")
            _require_string_keys(item, fmt, where)
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _require_string_keys(item, fmt, f"{path}[{index}]")


def serialize(tree: RawTree, fmt: ConfigFormat) -> str:
    """Serialize a raw tree, keeping its key order."""
    if fmt is ConfigFormat.YAML:
        dumped: str = yaml.safe_dump(
            tree, sort_keys=False, default_flow_style=False, allow_unicode=True
        )
        return dumped
    return json.dumps(tree, indent=2, ensure_ascii=False) + "\n"


def read_text(path: Path) -> str:
    """Read a config file, wrapping filesystem errors."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise StoreIOError("read", path, e) from e


def load_tree(path: Path, fmt: ConfigFormat | None = None) -> RawTree:
    """Read and parse a config file."""
    return parse(read_text(path), fmt or detect_format(path))
