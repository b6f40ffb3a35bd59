"""Schema adapters - one per supported harness."""

from bridle.adapters.amp_code import AmpCodeAdapter
from bridle.adapters.base import Capabilities, CompareMode, SchemaAdapter
from bridle.adapters.claude_code import ClaudeCodeAdapter
from bridle.adapters.goose import GooseAdapter
from bridle.adapters.opencode import OpencodeAdapter

__all__ = [
    "AmpCodeAdapter",
    "Capabilities",
    "ClaudeCodeAdapter",
    "CompareMode",
    "GooseAdapter",
    "OpencodeAdapter",
    "SchemaAdapter",
]
