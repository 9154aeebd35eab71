"""
Caches parsed script trees and derived flow graphs by content hash

Two kinds of entries share one LRU list:

- `("ast", path, hash)`: the script tree parsed from a file's content
- `("graph", ast_hash)`: the flow graph built from a script tree

A hit is only returned when the stored hash equals the hash of the content
currently considered authoritative. Mutating a tree in memory must be
followed by `invalidate(path)` and `register_ast(path, ast)` so the file is
tracked under the hash of its new tree and the stale graph is dropped
"""
from __future__ import annotations
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.ast.nodes import Script
from scriptflow.core.ast.walker import hash_script
from scriptflow.core.graph.flow_graph import FlowGraph
from scriptflow.cache.hash_utils import estimate_size, format_bytes, hash_content

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"

CacheKey = Tuple[str, ...]
ParseFn = Callable[[str, Optional[str]], Script]


@dataclass
class CacheEntry:
    hash: str
    value: Any
    size: int
    created_at: float = field(default_factory=time.time)
    last_accessed_at: float = field(default_factory=time.time)


def _default_parse(content: str, file_path: Optional[str]) -> Script:
    from scriptflow.utils.serializers import parse_script_content
    return parse_script_content(content, file_path)


@dataclass
class ContentCache:
    """LRU cache of script trees and flow graphs for one open project

    Attributes:
        parse_fn: Turns file content into a script tree; defaults to the
            JSON/YAML tree codec
        app_config: Configuration (size limits, digest size, logging flag)
    """

    parse_fn: Optional[ParseFn] = None
    app_config: AppConfig = field(default_factory=lambda: global_config)

    _entries: "OrderedDict[CacheKey, CacheEntry]" = field(init=False, default_factory=OrderedDict)
    # path -> hash of the content (or registered tree) the path is tracked under
    _file_hashes: Dict[str, str] = field(init=False, default_factory=dict)
    # path -> hash of the tree whose graph may be cached
    _ast_hashes: Dict[str, str] = field(init=False, default_factory=dict)
    _hits: int = field(init=False, default=0)
    _misses: int = field(init=False, default=0)
    _evictions: int = field(init=False, default=0)
    _memory_bytes: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.parse_fn is None:
            self.parse_fn = _default_parse

    @property
    def digest_size(self) -> int:
        return self.app_config.cache.hash_digest_size

    def get_ast(self, path: str, content: str) -> Script:
        """Return the script tree of `content`, parsing it on a miss

        A previously tracked hash for `path` that differs from the hash of
        `content` invalidates the path first
        """
        content_hash = hash_content(content, self.digest_size)
        known = self._file_hashes.get(path)
        if known is not None and known != content_hash:
            self._log(f"Content of {path} changed ({known} -> {content_hash})")
            self.invalidate(path)

        key = ("ast", path, content_hash)
        entry = self._touch(key)
        if entry is not None:
            self._hits += 1
            self._log(f"AST cache hit for {path} ({content_hash})")
            return entry.value

        self._misses += 1
        self._log(f"AST cache miss for {path} ({content_hash})")
        ast = self.parse_fn(content, path)
        self._store(key, content_hash, ast)
        self._file_hashes[path] = content_hash
        self._ast_hashes[path] = hash_script(ast, self.digest_size)
        return ast

    def get_flow_graph(self, ast_hash: str, build_fn: Callable[[], FlowGraph]) -> FlowGraph:
        """Return the graph cached for `ast_hash`, building it on a miss"""
        key = ("graph", ast_hash)
        entry = self._touch(key)
        if entry is not None:
            self._hits += 1
            self._log(f"Flow graph cache hit ({ast_hash})")
            return entry.value

        self._misses += 1
        self._log(f"Flow graph cache miss ({ast_hash})")
        graph = build_fn()
        self._store(key, ast_hash, graph)
        return graph

    def get_file_hash(self, path: str) -> Optional[str]:
        return self._file_hashes.get(path)

    def get_ast_hash(self, path: str) -> Optional[str]:
        """Hash of the tree tracked for `path`, the key of its cached graph"""
        return self._ast_hashes.get(path)

    def get_cached_ast(self, path: str) -> Optional[Script]:
        file_hash = self._file_hashes.get(path)
        entry = self._entries.get(("ast", path, file_hash)) if file_hash else None
        return entry.value if entry is not None else None

    def register_ast(self, path: str, ast: Script) -> str:
        """Track `path` under the hash of an in-memory tree

        Used after a graph edit mutated the tree; the file content on disk is
        not authoritative again until it is re-read

        Returns:
            str: The new hash of the tree
        """
        ast_hash = hash_script(ast, self.digest_size)
        self._store(("ast", path, ast_hash), ast_hash, ast)
        self._file_hashes[path] = ast_hash
        self._ast_hashes[path] = ast_hash
        self._log(f"Registered in-memory tree for {path} ({ast_hash})")
        return ast_hash

    def invalidate(self, path: str) -> None:
        """Drop every tree cached for `path` and the graph of its last tree"""
        stale = [key for key in self._entries if key[0] == "ast" and key[1] == path]
        ast_hash = self._ast_hashes.pop(path, None)
        if ast_hash is not None:
            stale.append(("graph", ast_hash))
        for key in stale:
            self._remove(key)
        if self._file_hashes.pop(path, None) is not None:
            self._log(f"Invalidated cache for {path}")

    def is_cached(self, path: str) -> bool:
        file_hash = self._file_hashes.get(path)
        return file_hash is not None and ("ast", path, file_hash) in self._entries

    def clear(self) -> None:
        self._entries.clear()
        self._file_hashes.clear()
        self._ast_hashes.clear()
        self._memory_bytes = 0
        self._log("Cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Hit/miss counters, entry counts and estimated memory use

        `hit_rate` is a fraction in [0, 1]
        """
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "ast_entries": sum(1 for key in self._entries if key[0] == "ast"),
            "graph_entries": sum(1 for key in self._entries if key[0] == "graph"),
            "evictions": self._evictions,
            "memory_bytes": self._memory_bytes,
            "hit_rate": self._hits / total if total else 0.0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def _touch(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        entry.last_accessed_at = time.time()
        return entry

    def _store(self, key: CacheKey, entry_hash: str, value: Any) -> None:
        self._remove(key)
        entry = CacheEntry(hash=entry_hash, value=value, size=estimate_size(value))
        self._entries[key] = entry
        self._memory_bytes += entry.size
        self._evict_if_needed()

    def _remove(self, key: CacheKey) -> None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._memory_bytes -= entry.size

    def _evict_if_needed(self) -> None:
        limits = self.app_config.cache
        while self._entries and (
            len(self._entries) > limits.max_entries or self._memory_bytes > limits.max_memory_bytes
        ):
            key, entry = self._entries.popitem(last=False)
            self._memory_bytes -= entry.size
            self._evictions += 1
            self._log(f"Evicted {key[0]} entry {entry.hash} ({format_bytes(entry.size)})")

    def _log(self, message: str) -> None:
        if self.app_config.developer_options.cache_log:
            logger.debug(message)
