from __future__ import annotations

import pytest

from scriptflow.core.graph import FlowEdge, NodeType, Position
from scriptflow.core.operations import PendingNodePool, PendingStatus, create_pending_node


@pytest.fixture
def pool(app_config):
    return PendingNodePool(app_config=app_config)


def test_dialogue_block_defaults(app_config):
    node = create_pending_node("dialogue-block", app_config=app_config)
    assert node.type == NodeType.DIALOGUE_BLOCK
    assert node.data["dialogues"][0]["text"] == "New dialogue"
    assert node.status == PendingStatus.CREATED
    assert node.id.startswith("dialogue-block-")


def test_overrides_replace_defaults_and_renumber_ports(app_config):
    node = create_pending_node(
        NodeType.MENU,
        {"x": 5, "y": 6},
        {"choices": [{"text": "Only", "port_id": "bogus"}]},
        app_config=app_config,
    )
    assert node.position == Position(5, 6)
    assert node.data["choices"] == [{"text": "Only", "port_id": "choice-0"}]


def test_unknown_type_is_rejected(app_config):
    with pytest.raises(ValueError):
        create_pending_node("teleport", app_config=app_config)


def test_add_get_remove(pool, app_config):
    node = create_pending_node("return", app_config=app_config)
    pool.add(node)
    assert pool.is_pending(node.id)
    assert pool.get(node.id) is node
    assert len(pool) == pool.size() == 1
    assert pool.remove(node.id)
    assert not pool.remove(node.id)
    assert pool.get_all() == []


def test_updates(pool, app_config):
    node = create_pending_node("jump", app_config=app_config)
    pool.add(node)
    assert pool.update_data(node.id, {"target": "start"})
    assert pool.get(node.id).data["target"] == "start"
    assert pool.update_position(node.id, {"x": 1, "y": 2})
    assert pool.get(node.id).position == Position(1, 2)
    assert pool.update_status(node.id, PendingStatus.ORPHAN)
    assert pool.get_by_status(PendingStatus.ORPHAN) == [node]
    assert not pool.update_data("missing", {})


def test_orphans_are_unreferenced_nodes(pool, app_config):
    linked = create_pending_node("return", app_config=app_config)
    loose = create_pending_node("return", app_config=app_config)
    pool.add(linked)
    pool.add(loose)
    edges = [FlowEdge("e", "somewhere", linked.id)]
    assert pool.get_orphan_nodes(edges) == [loose]


def test_snapshot_is_independent(pool, app_config):
    node = create_pending_node("jump", app_config=app_config)
    pool.add(node)
    saved = pool.snapshot()
    pool.update_data(node.id, {"target": "changed"})
    pool.clear()
    pool.restore(saved)
    assert pool.get(node.id).data["target"] == ""


def test_pending_scene_labels(pool, app_config):
    pool.add(create_pending_node("scene", data_overrides={"label": "epilogue"}, app_config=app_config))
    pool.add(create_pending_node("return", app_config=app_config))
    assert pool.labels() == ["epilogue"]


def test_to_flow_node_copies_data(app_config):
    node = create_pending_node("jump", data_overrides={"target": "a"}, app_config=app_config)
    flow_node = node.to_flow_node()
    flow_node.data["target"] = "b"
    assert node.data["target"] == "a"
