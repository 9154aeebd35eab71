from __future__ import annotations

import json

import pytest

from scriptflow.core.ast.nodes import Dialogue, Jump
from scriptflow.core.graph import NodeType, Position
from scriptflow.core.operations import ErrorKind
from scriptflow.session.editor_session import EditorSession
from scriptflow.utils.serializers import script_to_dict
from tests.conftest import make_story, make_branching


@pytest.fixture
def session(app_config):
    return EditorSession(app_config=app_config)


@pytest.fixture
def opened(session):
    session.open_file("story.json", json.dumps(script_to_dict(make_story())))
    return session


def test_requires_an_open_file(session):
    with pytest.raises(ValueError):
        session.current_graph()


def test_current_graph_positions_every_node(opened):
    graph = opened.current_graph()
    assert len(graph.nodes) == 9
    assert all(node.position is not None for node in graph.nodes)


def test_graph_is_cached_per_tree(opened):
    assert opened.ast_graph() is opened.ast_graph()
    assert opened.cache.get_stats()["graph_entries"] == 1


def test_pending_nodes_appear_in_the_graph(opened):
    node_id = opened.create_node("dialogue-block", {"x": 900, "y": 900})
    graph = opened.current_graph()
    assert graph.get_node(node_id).position == Position(900, 900)
    assert node_id not in opened.ast_graph().node_ids


def test_saved_positions_are_respected(opened):
    opened.move_node("d1", {"x": 3, "y": 4})
    opened.move_node("good", Position(5, 6))
    graph = opened.current_graph()
    assert graph.get_node("d1").position == Position(3, 4)
    assert graph.get_node("good").position == Position(5, 6)


def test_committed_node_keeps_its_position(opened):
    node_id = opened.create_node("return", {"x": 77, "y": 88})
    assert opened.connect("d2", node_id)
    assert opened.current_graph().get_node(node_id).position == Position(77, 88)


def test_switching_files_resets_state(opened):
    opened.create_node("return")
    opened.move_node("d1", {"x": 1, "y": 1})
    opened.open_file("branching.json", json.dumps(script_to_dict(make_branching())))
    assert opened.pool.get_all() == []
    assert opened.saved_positions == {}
    assert opened.cache.get_file_hash("story.json") is None
    assert opened.ast.label_names == ["intro", "side"]


def test_reopening_same_file_keeps_pending_nodes(opened):
    node_id = opened.create_node("return")
    opened.open_file("story.json", json.dumps(script_to_dict(make_story())))
    assert opened.pool.is_pending(node_id)


def test_close_resets_everything(opened):
    opened.create_node("return")
    opened.close()
    assert opened.ast is None and opened.file_path is None
    assert len(opened.pool) == 0
    assert len(opened.cache) == 0


def test_status_reports_all_checks(opened):
    opened.ast.get_label("good").body.append(Dialogue(id="dz", text="dead"))
    opened.ast.get_label("good").body.append(Jump(id="jx", target="nowhere"))
    opened.cache.invalidate("story.json")
    pending = opened.create_node("return")

    status = opened.status()
    assert status.disconnected == {"dz", "jx", pending}
    assert set(status.orphans) == {"dz", "jx", pending}
    assert status.invalid_targets == {"jx"}
    assert status.cycles == []
    assert not status.is_clean


def test_clean_story_status(opened):
    status = opened.status()
    assert status.is_clean


def test_session_edit_round_trip(opened):
    before = script_to_dict(opened.ast)
    node_id = opened.create_node("dialogue-block")
    assert opened.connect("m1", node_id, "choice-1")
    assert opened.current_graph().get_node(node_id).type == NodeType.DIALOGUE_BLOCK
    assert opened.remove_connection("m1", node_id, "choice-1")
    assert script_to_dict(opened.ast) == before
    assert opened.pool.is_pending(node_id)


def test_session_delete_and_failed_edit(opened):
    assert opened.delete_node("d2")
    result = opened.connect("d1", "r1")
    assert result.kind == ErrorKind.INVALID_CONNECTION
