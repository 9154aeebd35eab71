"""Content hashing and size estimation for cache entries"""
from __future__ import annotations
import hashlib
import json
from typing import Any

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"

# Fallback estimate for values that do not serialize to JSON
UNKNOWN_SIZE = 1024


def hash_content(content: str, digest_size: int = 8) -> str:
    """Hex digest of file content, used as a cache key"""
    return hashlib.blake2b(content.encode("utf-8"), digest_size=digest_size).hexdigest()


def estimate_size(value: Any) -> int:
    """Rough size in bytes of a cached value from its JSON form

    Args:
        value: A dict/list tree or an object exposing `to_dict`-style
            serialization through `default=`

    Returns:
        int: Twice the JSON length, or `UNKNOWN_SIZE`
    """
    try:
        return len(json.dumps(value, default=_json_default)) * 2
    except (TypeError, ValueError):
        return UNKNOWN_SIZE


def _json_default(value: Any) -> Any:
    from scriptflow.core.ast.nodes import Script
    from scriptflow.core.graph.flow_graph import FlowGraph
    from scriptflow.utils.serializers import flow_graph_to_dict, script_to_dict

    if isinstance(value, Script):
        return script_to_dict(value)
    if isinstance(value, FlowGraph):
        return flow_graph_to_dict(value)
    raise TypeError(f"Cannot estimate size of {type(value).__name__}")


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
