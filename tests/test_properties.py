"""Structural guarantees of the graph/script synchronization, checked over hand-built scripts"""
from __future__ import annotations

import networkx as nx
import pytest

from scriptflow.builders import FlowGraphBuilder, auto_layout
from scriptflow.config.config import LayoutConfig
from scriptflow.core.ast.nodes import (
    Script, Label, Dialogue, Menu, Choice, If, Branch, Jump, Call, Return, Set, Scene, Show,
)
from scriptflow.core.ast.walker import iter_body
from scriptflow.core.graph import (
    Connection, FlowEdge, FlowGraph, FlowNode, NodeConnectionResolver, NodeType,
    create_edge_id, detect_cycles, find_disconnected_nodes, is_valid_connection, reduce_to_statements,
)
from scriptflow.session.editor_session import EditorSession
from tests.conftest import make_story, make_branching, snapshot


def make_nested() -> Script:
    return Script(statements=[
        Label(id="a", name="a", body=[
            If(id="if1", branches=[
                Branch(condition="x", body=[
                    Menu(id="m1", choices=[
                        Choice(text="one", body=[Dialogue(id="n1", text="1")]),
                        Choice(text="two"),
                        Choice(text="three", body=[Return(id="n3")]),
                    ]),
                    Set(id="v1", variable="x", operator="+=", value="1"),
                ]),
                Branch(condition="y"),
                Branch(condition=None, body=[Call(id="c1", target="b"), Dialogue(id="n4", text="back")]),
            ]),
            Scene(id="sc", image="bg night"),
            Show(id="sh", image="moon"),
            Jump(id="ja", target="b"),
        ]),
        Label(id="b", name="b", body=[Dialogue(id="bb", text="b"), Return(id="br")]),
        Label(id="empty", name="empty"),
    ])


SCRIPTS = {"story": make_story, "branching": make_branching, "nested": make_nested}


@pytest.mark.parametrize("name", sorted(SCRIPTS))
def test_graph_order_reproduces_statement_order(name, app_config):
    script = SCRIPTS[name]()
    graph = FlowGraphBuilder(app_config=app_config).build_graph(script)
    expected = {label.name: [s.id for s, _ in iter_body(label.body, label.name)] for label in script.labels}
    assert reduce_to_statements(graph) == expected


@pytest.mark.parametrize("name", sorted(SCRIPTS))
def test_orphans_are_exactly_the_unresolvable_nodes(name, app_config):
    script = SCRIPTS[name]()
    script.labels[0].body.extend([Dialogue(id="dead", text="x"), Return(id="dead_r")])
    graph = FlowGraphBuilder(app_config=app_config).build_graph(script)
    resolver = NodeConnectionResolver(app_config=app_config)

    orphans = {n.id for n in resolver.get_orphan_nodes(graph.nodes, graph.edges)}
    for node in graph.nodes:
        unresolved = resolver.resolve_node_label(node.id, graph.edges, graph.nodes) is None
        assert (node.id in orphans) == (node.type != NodeType.SCENE and unresolved)

@pytest.mark.parametrize("name", sorted(SCRIPTS))
def test_disconnected_are_exactly_the_undirected_unreachable_nodes(name, app_config):
    script = SCRIPTS[name]()
    script.labels[0].body.extend([Dialogue(id="dead", text="x"), Return(id="dead_r")])
    graph = FlowGraphBuilder(app_config=app_config).build_graph(script)
    view = graph.to_networkx().to_undirected()

    reachable = set()
    for scene in graph.scene_nodes:
        reachable |= nx.node_connected_component(view, scene.id)
    assert find_disconnected_nodes(graph.nodes, graph.edges) == {n.id for n in graph.nodes} - reachable


def test_connect_then_disconnect_restores_the_script(handler, story, story_graph):
    before = snapshot(story)
    pending_id = handler.create_node(NodeType.DIALOGUE_BLOCK, data_overrides={"dialogues": [{"text": "Inserted"}]})

    assert handler.connect_nodes("start", pending_id, None, story_graph, story)
    assert story.get_label("start").body[0].id == pending_id

    rebuilt = FlowGraphBuilder(app_config=handler.app_config).build_graph(story)
    assert handler.remove_connection("start", pending_id, None, rebuilt, story)
    assert snapshot(story) == before
    assert handler.is_pending_node(pending_id)


def test_removing_a_jump_keeps_sibling_statements(handler, app_config):
    script = Script(statements=[
        Label(id="A", name="A", body=[
            Dialogue(id="p", text="first"),
            Dialogue(id="q", text="second"),
            Jump(id="J", target="B"),
        ]),
        Label(id="B", name="B", body=[Return(id="rb")]),
    ])
    graph = FlowGraphBuilder(app_config=app_config).build_graph(script)

    result = handler.remove_connection("J", "B", None, graph, script)

    assert result
    assert result.removed_statements == ["J"]
    assert [s.id for s in script.get_label("A").body] == ["p", "q"]


def test_cycles_are_allowed_and_reported():
    nodes = [
        FlowNode(id="A", type=NodeType.SCENE, data={"label": "A"}),
        FlowNode(id="B", type=NodeType.SCENE, data={"label": "B"}),
    ]
    forward = FlowEdge(id=create_edge_id("A", "B"), source="A", target="B")

    assert is_valid_connection(Connection("A", "B"), nodes, [])
    assert is_valid_connection(Connection("B", "A"), nodes, [forward])
    back = FlowEdge(id=create_edge_id("B", "A"), source="B", target="A")
    assert detect_cycles(nodes, [forward, back]) == [["A", "B", "A"]]


def test_edit_moves_the_file_to_a_new_hash(story_file, app_config):
    session = EditorSession(app_config=app_config)
    path = str(story_file)
    session.open_file(path, story_file.read_text(encoding="utf-8"))
    old_file_hash = session.cache.get_file_hash(path)
    old_ast_hash = session.cache.get_ast_hash(path)
    session.current_graph()

    pending_id = session.create_node(NodeType.DIALOGUE_BLOCK)
    assert session.connect("start", pending_id)

    assert session.cache.get_file_hash(path) != old_file_hash
    builds = []

    def counting_build():
        builds.append(1)
        return FlowGraph()

    session.cache.get_flow_graph(old_ast_hash, counting_build)
    assert builds == [1]


def test_layout_is_a_deterministic_grid():
    graph = FlowGraph()
    for node_id in "abcd":
        graph.add_node(FlowNode(id=node_id, type=NodeType.SCENE, data={"label": node_id}))

    first = auto_layout(graph, layout=LayoutConfig())
    second = auto_layout(graph, layout=LayoutConfig())

    positions = [n.position.as_tuple() for n in first.nodes]
    assert positions == [(0, 0), (320, 0), (0, 190), (320, 190)]
    assert positions == [n.position.as_tuple() for n in second.nodes]
    assert all(n.position is None for n in graph.nodes)
