from __future__ import annotations
import json

import pytest

from scriptflow.config.config import AppConfig, CacheConfig
from scriptflow.core.ast.nodes import (
    Script, Label, Dialogue, Scene, Show, Menu, Choice, If, Branch, Jump, Call, Return, Set,
)
from scriptflow.builders.flow_graph_builder.flow_graph_builder import FlowGraphBuilder
from scriptflow.core.operations.pending_node_pool import PendingNodePool
from scriptflow.core.operations.node_operation_handler import NodeOperationHandler
from scriptflow.utils.serializers import script_to_dict


def make_story() -> Script:
    """Two labels; the first menu has a jump in choice 0 and an empty choice 1

    label start:
        "Hello"
        menu:
            "Be good":
                jump good
            "Wait":
        "After"
        return
    label good:
        "Good end"
        return
    """
    return Script(
        statements=[
            Label(id="start", name="start", body=[
                Dialogue(id="d1", text="Hello"),
                Menu(id="m1", choices=[
                    Choice(text="Be good", body=[Jump(id="j1", target="good")]),
                    Choice(text="Wait"),
                ]),
                Dialogue(id="d2", speaker="eileen", text="After"),
                Return(id="r1"),
            ]),
            Label(id="good", name="good", body=[
                Dialogue(id="d3", text="Good end"),
                Return(id="r2"),
            ]),
        ],
        file_path="story.json",
    )


def make_branching() -> Script:
    """Nested menu/if bodies that join again, plus a call"""
    return Script(
        statements=[
            Label(id="intro", name="intro", body=[
                Scene(id="s1", image="bg room"),
                Show(id="sh1", image="eileen happy"),
                Dialogue(id="i1", speaker="eileen", text="Pick one"),
                Menu(id="m1", choices=[
                    Choice(text="Left", body=[
                        Set(id="v1", variable="left", value="True"),
                        If(id="if1", branches=[
                            Branch(condition="points > 3", body=[Dialogue(id="b0", text="Lucky")]),
                            Branch(condition=None, body=[Dialogue(id="b1", text="Unlucky")]),
                        ]),
                    ]),
                    Choice(text="Right", body=[Call(id="c1", target="side")]),
                    Choice(text="Stay"),
                ]),
                Dialogue(id="i2", text="Moving on"),
                Jump(id="j1", target="side"),
            ]),
            Label(id="side", name="side", body=[
                Dialogue(id="x1", text="A detour"),
                Return(id="x2"),
            ]),
        ],
        file_path="branching.json",
    )


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def story() -> Script:
    return make_story()


@pytest.fixture
def branching() -> Script:
    return make_branching()


@pytest.fixture
def builder(app_config) -> FlowGraphBuilder:
    return FlowGraphBuilder(app_config=app_config)


@pytest.fixture
def story_graph(builder, story):
    return builder.build_graph(story)


@pytest.fixture
def handler(app_config) -> NodeOperationHandler:
    return NodeOperationHandler(pool=PendingNodePool(app_config=app_config), app_config=app_config)


@pytest.fixture
def small_cache_config() -> AppConfig:
    app_config = AppConfig()
    app_config.cache = CacheConfig(max_entries=2)
    return app_config


@pytest.fixture
def story_file(tmp_path):
    path = tmp_path / "story.json"
    path.write_text(json.dumps(script_to_dict(make_story())), encoding="utf-8")
    return path


def snapshot(script: Script) -> dict:
    return script_to_dict(script)
