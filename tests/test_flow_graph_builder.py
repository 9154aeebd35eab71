from __future__ import annotations

import pytest

from scriptflow.builders import FlowGraphBuilder, apply_saved_positions, auto_layout, grid_columns
from scriptflow.config.config import AppConfig, DeveloperOptions, LayoutConfig
from scriptflow.core.ast.nodes import Script, Label, Menu, Dialogue, Jump, Return, Define
from scriptflow.core.graph import EdgeType, FlowGraph, FlowNode, NodeType, Position


def test_builds_one_scene_per_label(story_graph):
    assert [n.id for n in story_graph.scene_nodes] == ["start", "good"]
    assert story_graph.get_node("start").data["exit_type"] == "return"
    assert story_graph.get_node("good").data["has_incoming"] is True
    assert story_graph.get_node("start").data["has_incoming"] is False


def test_scene_preview_uses_narrator_for_unnamed_lines(story_graph):
    assert story_graph.get_node("start").data["preview"] == ["narrator: Hello", "eileen: After"]


def test_story_nodes_and_edges(story_graph):
    assert len(story_graph.nodes) == 9
    assert [e.id for e in story_graph.edges] == [
        "e-start-d1", "e-d1-m1", "e-m1-j1-choice-0", "e-m1-d2-choice-1", "e-d2-r1",
        "e-good-d3", "e-d3-r2", "e-j1-good",
    ]


def test_empty_choice_falls_through(story_graph):
    fall_through = story_graph.find_edges("m1", "d2", "choice-1")
    assert len(fall_through) == 1
    assert fall_through[0].type == EdgeType.NORMAL


def test_jump_gets_typed_transfer_edge(story_graph):
    transfer = story_graph.get_edge("e-j1-good")
    assert transfer.type == EdgeType.JUMP
    # the node after the menu is not reached from the jump
    assert not story_graph.find_edges("j1", "d2")


def test_return_has_no_outgoing_edge(story_graph):
    assert [e for e in story_graph.edges if e.source in ("r1", "r2")] == []


def test_menu_choices_record_ports_and_targets(story_graph):
    choices = story_graph.get_node("m1").data["choices"]
    assert [c["port_id"] for c in choices] == ["choice-0", "choice-1"]
    assert [c["target_label"] for c in choices] == ["good", None]


def test_linear_statements_merge_into_one_block(branching, builder):
    graph = builder.build_graph(branching)
    block = graph.get_node("s1")
    assert block.type == NodeType.DIALOGUE_BLOCK
    assert block.ast_nodes == ["s1", "sh1", "i1"]
    assert [c["type"] for c in block.data["visual_commands"]] == ["scene", "show"]
    assert block.data["dialogues"][0]["text"] == "Pick one"


def test_condition_branches_and_join(branching, builder):
    graph = builder.build_graph(branching)
    branches = graph.get_node("if1").data["branches"]
    assert [b["kind"] for b in branches] == ["if", "else"]
    joins = sorted((e.source, e.source_handle) for e in graph.edges if e.target == "i2")
    assert joins == [("b0", None), ("b1", None), ("c1", None), ("m1", "choice-2")]


def test_call_continues_and_transfers(branching, builder):
    graph = builder.build_graph(branching)
    outgoing = {(e.target, e.type) for e in graph.edges if e.source == "c1"}
    assert outgoing == {("i2", EdgeType.NORMAL), ("side", EdgeType.CALL)}


def test_dangling_jump_has_no_transfer_edge(builder):
    script = Script(statements=[
        Label(id="a", name="a", body=[Jump(id="j", target="nowhere")]),
    ])
    graph = builder.build_graph(script)
    assert [e.id for e in graph.edges] == ["e-a-j"]


def test_menu_without_choices_is_a_dead_end(builder):
    script = Script(statements=[
        Label(id="a", name="a", body=[Menu(id="m"), Dialogue(id="after", text="x")]),
    ])
    graph = builder.build_graph(script)
    assert graph.get_node("m").data["choices"] == []
    assert not [e for e in graph.edges if e.source == "m"]


def test_statements_after_a_jump_have_no_incoming_edge(builder):
    script = Script(statements=[
        Label(id="a", name="a", body=[Jump(id="j", target="a"), Dialogue(id="dead", text="x"), Return(id="r")]),
    ])
    graph = builder.build_graph(script)
    assert not [e for e in graph.edges if e.target == "dead"]
    assert graph.find_edges("dead", "r")


def test_top_level_statements_outside_labels_are_ignored(builder):
    script = Script(statements=[Define(id="def", name="e", value="Character('E')"), Label(id="a", name="a")])
    graph = builder.build_graph(script)
    assert graph.node_ids == ["a"]


def test_duplicate_label_is_built_once(builder):
    script = Script(statements=[
        Label(id="a", name="a", body=[Dialogue(id="x", text="1")]),
        Label(id="a2", name="a", body=[Dialogue(id="y", text="2")]),
    ])
    graph = builder.build_graph(script)
    assert graph.node_ids == ["a", "x"]


def test_missing_script_is_a_caller_error(builder):
    with pytest.raises(ValueError):
        builder.build_graph(None)


def test_networkx_view_keeps_parallel_edges_apart(story_graph):
    view = story_graph.to_networkx()
    assert view.number_of_nodes() == 9
    assert view.number_of_edges() == 8
    assert view.nodes["m1"]["type"] == "menu"


@pytest.mark.parametrize("count,cap,expected", [(1, None, 1), (4, None, 2), (5, None, 3), (10, 2, 2), (3, 0, 2)])
def test_grid_columns(count, cap, expected):
    assert grid_columns(count, cap) == expected


def test_layout_keeps_explicit_positions():
    graph = FlowGraph(nodes=[
        FlowNode("a", NodeType.SCENE, position=Position(7, 9), data={"label": "a"}),
        FlowNode("b", NodeType.SCENE, data={"label": "b"}),
    ])
    placed = auto_layout(graph, layout=LayoutConfig())
    assert placed.get_node("a").position == Position(7, 9)
    assert placed.get_node("b").position == Position(0, 0)
    assert graph.get_node("b").position is None


def test_layout_column_cap():
    graph = FlowGraph(nodes=[FlowNode(str(i), NodeType.DIALOGUE_BLOCK) for i in range(3)])
    placed = auto_layout(graph, max_columns=1, layout=LayoutConfig())
    assert [n.position.as_tuple() for n in placed.nodes] == [(0, 0), (0, 190), (0, 380)]


def test_saved_positions_by_label_or_id(story_graph):
    placed = apply_saved_positions(story_graph, {"good": {"x": 10, "y": 20}, "d1": (1, 2)})
    assert placed.get_node("good").position == Position(10, 20)
    assert placed.get_node("d1").position == Position(1, 2)
    assert story_graph.get_node("good").position is None


def test_rich_output_does_not_change_the_graph(story):
    app_config = AppConfig()
    app_config.developer_options = DeveloperOptions(show_rich=True, flow_graph_builder_log=True)
    graph = FlowGraphBuilder(app_config=app_config).build_graph(story)
    assert len(graph.edges) == 8
