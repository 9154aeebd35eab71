from __future__ import annotations

import json

import pytest

from scriptflow.cache import ContentCache, format_bytes, hash_content, estimate_size
from scriptflow.core.ast.nodes import Dialogue
from scriptflow.core.ast.walker import hash_script
from scriptflow.core.graph import FlowGraph
from scriptflow.utils.serializers import parse_script_content, script_to_dict
from tests.conftest import make_story


class CountingParser:
    def __init__(self):
        self.calls = 0

    def __call__(self, content, file_path):
        self.calls += 1
        return parse_script_content(content, file_path)


@pytest.fixture
def parser():
    return CountingParser()


@pytest.fixture
def cache(parser, app_config):
    return ContentCache(parse_fn=parser, app_config=app_config)


@pytest.fixture
def content():
    return json.dumps(script_to_dict(make_story()))


def test_same_content_is_parsed_once(cache, parser, content):
    first = cache.get_ast("story.json", content)
    second = cache.get_ast("story.json", content)
    assert first is second
    assert parser.calls == 1
    stats = cache.get_stats()
    assert (stats["hits"], stats["misses"], stats["ast_entries"]) == (1, 1, 1)
    assert stats["hit_rate"] == pytest.approx(0.5)


def test_changed_content_invalidates_the_path(cache, parser, content):
    cache.get_ast("story.json", content)
    old_hash = cache.get_file_hash("story.json")
    cache.get_ast("story.json", content + "\n")
    assert parser.calls == 2
    assert cache.get_file_hash("story.json") != old_hash
    assert cache.get_stats()["ast_entries"] == 1


def test_file_hash_is_content_hash(cache, content, app_config):
    cache.get_ast("story.json", content)
    assert cache.get_file_hash("story.json") == hash_content(content, app_config.cache.hash_digest_size)
    assert cache.get_file_hash("other.json") is None


def test_flow_graph_is_built_once_per_hash(cache):
    builds = []

    def build():
        builds.append(1)
        return FlowGraph()

    first = cache.get_flow_graph("abc", build)
    assert cache.get_flow_graph("abc", build) is first
    assert len(builds) == 1


def test_invalidate_drops_tree_and_graph(cache, content):
    ast = cache.get_ast("story.json", content)
    ast_hash = cache.get_ast_hash("story.json")
    assert ast_hash == hash_script(ast, cache.digest_size)
    cache.get_flow_graph(ast_hash, FlowGraph)

    cache.invalidate("story.json")
    assert not cache.is_cached("story.json")
    assert cache.get_file_hash("story.json") is None
    assert len(cache) == 0


def test_register_ast_tracks_mutated_tree(cache, content):
    ast = cache.get_ast("story.json", content)
    before = cache.get_file_hash("story.json")
    ast.get_label("good").body.insert(0, Dialogue(id="extra", text="More"))

    cache.invalidate("story.json")
    new_hash = cache.register_ast("story.json", ast)

    assert new_hash != before
    assert cache.get_file_hash("story.json") == new_hash
    assert cache.get_cached_ast("story.json") is ast
    assert cache.is_cached("story.json")


def test_entry_limit_evicts_least_recently_used(small_cache_config):
    cache = ContentCache(app_config=small_cache_config)
    cache.get_flow_graph("a", FlowGraph)
    cache.get_flow_graph("b", FlowGraph)
    cache.get_flow_graph("a", FlowGraph)
    cache.get_flow_graph("c", FlowGraph)

    stats = cache.get_stats()
    assert stats["graph_entries"] == 2
    assert stats["evictions"] == 1
    misses = stats["misses"]
    cache.get_flow_graph("a", FlowGraph)
    assert cache.get_stats()["misses"] == misses


def test_clear_keeps_counters(cache, content):
    cache.get_ast("story.json", content)
    cache.clear()
    stats = cache.get_stats()
    assert stats["ast_entries"] == 0 and stats["memory_bytes"] == 0
    assert stats["misses"] == 1


def test_default_parser_reads_json(content, app_config):
    cache = ContentCache(app_config=app_config)
    ast = cache.get_ast("story.json", content)
    assert ast.label_names == ["start", "good"]
    assert ast.file_path == "story.json"


def test_memory_usage_is_tracked(cache, content):
    cache.get_ast("story.json", content)
    assert cache.get_stats()["memory_bytes"] == estimate_size(cache.get_cached_ast("story.json"))


@pytest.mark.parametrize("size,text", [(512, "512 B"), (2048, "2.0 KB"), (3 * 1024 * 1024, "3.0 MB")])
def test_format_bytes(size, text):
    assert format_bytes(size) == text


def test_estimate_size_of_unserializable_value():
    assert estimate_size(object()) == 1024
