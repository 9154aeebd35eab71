"""
Derives a flow graph from a script tree

The `FlowGraphBuilder` walks every top-level label and emits:

1.  One `scene` node per label
2.  `dialogue-block` nodes for runs of linear statements (dialogue, visual,
    audio and variable statements); a `scene` statement starts a new block
3.  `menu` / `condition` nodes with one port per choice/branch, each port
    wired to the first node of its body. An empty body falls through to
    whatever follows the menu/if in the parent body
4.  `jump` / `call` / `return` nodes; jumps and calls get a transfer edge to
    the target scene only if that label exists

Sequential edges carry the flow from each node to the next. The node after
a menu/if is reached from the tail of every body that does not end in a
`jump`/`return`. Statements after a terminal statement get no incoming edge
and therefore surface as orphans

Malformed input degrades structurally: a menu with no choices has no ports,
a dangling jump has no transfer edge
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from rich.console import Console
from loguru import logger

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.ast.nodes import (
    AstNode, Script, Label, Dialogue, Scene, Show, Menu, If, Jump, Call, Return,
    LINEAR_TYPES,
)
from scriptflow.core.ast.walker import ContainerPath, StatementLocation
from scriptflow.core.graph.flow_graph import (
    EdgeType, FlowEdge, FlowGraph, FlowNode, NodeType, Position,
)
from scriptflow.core.graph.connection_utils import create_edge_id
from scriptflow.core.graph.ports import PortKind, make_handle
from scriptflow.utils.serializers import node_to_dict
from scriptflow.utils.logging_helpers import print_flow_graph_rich, _NullConsole

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


# A point the flow leaves from: node id and source handle (None = default port)
Tail = Tuple[str, Optional[str]]

VISUAL_COMMAND_TYPES = frozenset({"scene", "show", "hide", "with"})


@dataclass
class FlowGraphBuilder:
    """
    Builds a `FlowGraph` from a `Script`

    Input state:
        - Script (read only)
        - Configuration (preview limits, logging flags)

    Output state:
        - A new FlowGraph with no positions assigned; see `auto_layout`
    """

    app_config: AppConfig = field(default_factory=lambda: global_config)

    console: Optional[Union[Console, _NullConsole]] = field(init=False, default=None)
    _graph: FlowGraph = field(init=False, default_factory=FlowGraph)
    _transfers: List[Tuple[str, EdgeType, str]] = field(init=False, default_factory=list)

    def build_graph(self, script: Script) -> FlowGraph:
        """Build the flow graph of a script

        Args:
            script (Script): The parsed script

        Returns:
            FlowGraph: Nodes and edges in build order

        Raises:
            ValueError: If no script is given
        """
        if script is None:
            raise ValueError("build_graph requires a script")

        if self.app_config.developer_options.show_rich:
            self.console = Console()
        else:
            self.console = _NullConsole()

        self._graph = FlowGraph()
        self._transfers = []
        scene_ids: Dict[str, str] = {}
        labels: List[Label] = []

        for label in script.labels:
            if label.name in scene_ids:
                logger.warning(f"Duplicate label '{label.name}'; later definition ignored")
                continue
            scene = self._graph.add_node(self._create_scene_node(label))
            scene_ids[label.name] = scene.id
            labels.append(label)

        for label in labels:
            self._build_body(label.body, label.name, (), [(label.id, None)])

        for node_id, edge_type, target in self._transfers:
            scene_id = scene_ids.get(target)
            if scene_id is None:
                if self.app_config.developer_options.flow_graph_builder_log:
                    logger.debug(f"Transfer from {node_id} to unknown label '{target}' left unconnected")
                continue
            self._add_edge(node_id, scene_id, None, edge_type)

        targeted = {edge.target for edge in self._graph.edges}
        for scene in self._graph.scene_nodes:
            scene.data["has_incoming"] = scene.id in targeted

        if self.app_config.developer_options.flow_graph_builder_log:
            logger.info(f"Built flow graph: {len(self._graph.nodes)} nodes, {len(self._graph.edges)} edges")
        print_flow_graph_rich(self._graph, self.console)  # type: ignore[arg-type]
        return self._graph

    def _build_body(
        self,
        body: List[AstNode],
        label_name: str,
        path: ContainerPath,
        incoming: List[Tail],
    ) -> List[Tail]:
        """Emit nodes for one statement body

        Args:
            body: Statements of the body
            label_name: Owning label
            path: Container path of the body
            incoming: Points whose flow enters the first node of the body

        Returns:
            List[Tail]: Points whose flow leaves the end of the body
        """
        current: List[Tail] = list(incoming)
        block: Optional[FlowNode] = None

        for index, statement in enumerate(body):
            location = StatementLocation(label_name, path, index)

            if statement.type in LINEAR_TYPES:
                if block is None or isinstance(statement, Scene):
                    block = self._graph.add_node(FlowNode(
                        id=statement.id,
                        type=NodeType.DIALOGUE_BLOCK,
                        data={"dialogues": [], "visual_commands": [], "commands": [], "ast_nodes": []},
                        location=location,
                    ))
                    self._connect(current, block.id)
                    current = [(block.id, None)]
                self._append_to_block(block, statement)
                continue

            block = None
            if isinstance(statement, Menu):
                current = self._build_menu(statement, label_name, path, location, current)
            elif isinstance(statement, If):
                current = self._build_condition(statement, label_name, path, location, current)
            elif isinstance(statement, Jump):
                node = self._add_transfer_node(statement, NodeType.JUMP, location, current)
                self._transfers.append((node.id, EdgeType.JUMP, statement.target))
                current = []
            elif isinstance(statement, Call):
                node = self._add_transfer_node(statement, NodeType.CALL, location, current)
                self._transfers.append((node.id, EdgeType.CALL, statement.target))
                current = [(node.id, None)]
            elif isinstance(statement, Return):
                node = self._graph.add_node(FlowNode(
                    id=statement.id,
                    type=NodeType.RETURN,
                    data={"value": statement.value, "ast_nodes": [statement.id]},
                    location=location,
                ))
                self._connect(current, node.id)
                current = []
            else:
                logger.warning(f"Skipping '{statement.type}' statement {statement.id} inside label '{label_name}'")

        return current

    def _build_menu(
        self,
        menu: Menu,
        label_name: str,
        path: ContainerPath,
        location: StatementLocation,
        incoming: List[Tail],
    ) -> List[Tail]:
        choices = []
        for index, choice in enumerate(menu.choices):
            choices.append({
                "port_id": make_handle(PortKind.CHOICE, index),
                "text": choice.text,
                "condition": choice.condition,
                "target_label": next(
                    (s.target for s in choice.body if isinstance(s, Jump)), None
                ),
            })
        node = self._graph.add_node(FlowNode(
            id=menu.id,
            type=NodeType.MENU,
            data={"prompt": menu.prompt, "choices": choices, "ast_nodes": [menu.id]},
            location=location,
        ))
        self._connect(incoming, node.id)

        if not menu.choices:
            logger.warning(f"Menu {menu.id} in label '{label_name}' has no choices")

        outgoing: List[Tail] = []
        for index, choice in enumerate(menu.choices):
            port = (node.id, make_handle(PortKind.CHOICE, index))
            outgoing.extend(self._build_body(choice.body, label_name, path + ((menu.id, index),), [port]))
        return outgoing

    def _build_condition(
        self,
        statement: If,
        label_name: str,
        path: ContainerPath,
        location: StatementLocation,
        incoming: List[Tail],
    ) -> List[Tail]:
        branches = []
        for index, branch in enumerate(statement.branches):
            if index == 0:
                kind = "if"
            elif branch.condition is None:
                kind = "else"
            else:
                kind = "elif"
            branches.append({
                "port_id": make_handle(PortKind.BRANCH, index),
                "condition": branch.condition,
                "kind": kind,
            })
        node = self._graph.add_node(FlowNode(
            id=statement.id,
            type=NodeType.CONDITION,
            data={"branches": branches, "ast_nodes": [statement.id]},
            location=location,
        ))
        self._connect(incoming, node.id)

        outgoing: List[Tail] = []
        for index, branch in enumerate(statement.branches):
            port = (node.id, make_handle(PortKind.BRANCH, index))
            outgoing.extend(self._build_body(branch.body, label_name, path + ((statement.id, index),), [port]))
        return outgoing

    def _add_transfer_node(
        self,
        statement: Union[Jump, Call],
        node_type: NodeType,
        location: StatementLocation,
        incoming: List[Tail],
    ) -> FlowNode:
        data: Dict[str, Any] = {
            "target": statement.target,
            "expression": statement.expression,
            "ast_nodes": [statement.id],
        }
        if isinstance(statement, Call):
            data["arguments"] = statement.arguments
        node = self._graph.add_node(FlowNode(id=statement.id, type=node_type, data=data, location=location))
        self._connect(incoming, node.id)
        return node

    def _append_to_block(self, block: FlowNode, statement: AstNode) -> None:
        block.data["ast_nodes"].append(statement.id)
        if isinstance(statement, Dialogue):
            block.data["dialogues"].append({
                "id": statement.id,
                "speaker": statement.speaker,
                "text": statement.text,
                "attributes": statement.attributes,
            })
        elif statement.type in VISUAL_COMMAND_TYPES:
            block.data["visual_commands"].append(node_to_dict(statement))
        else:
            block.data["commands"].append(node_to_dict(statement))

    def _connect(self, tails: List[Tail], target_id: str) -> None:
        for source_id, handle in tails:
            self._add_edge(source_id, target_id, handle, EdgeType.NORMAL)

    def _add_edge(self, source: str, target: str, handle: Optional[str], edge_type: EdgeType) -> None:
        self._graph.add_edge(FlowEdge(
            id=create_edge_id(source, target, handle),
            source=source, target=target, source_handle=handle, type=edge_type,
        ))

    def _create_scene_node(self, label: Label) -> FlowNode:
        return FlowNode(
            id=label.id,
            type=NodeType.SCENE,
            data={
                "label": label.name,
                "preview": self._scene_preview(label),
                "exit_type": self._exit_type(label),
                "has_incoming": False,
                "ast_nodes": [label.id],
            },
            location=StatementLocation(None, (), 0),
        )

    def _scene_preview(self, label: Label) -> List[str]:
        """First dialogue/visual lines of a label, as short strings"""
        preview_conf = self.app_config.preview
        lines: List[str] = []
        for statement in label.body:
            if len(lines) >= preview_conf.max_lines:
                break
            if isinstance(statement, Dialogue):
                speaker = statement.speaker or preview_conf.narrator_name
                text = statement.text
                if len(text) > preview_conf.max_text_length:
                    text = text[:preview_conf.max_text_length] + "..."
                lines.append(f"{speaker}: {text}")
            elif isinstance(statement, Scene):
                lines.append(f"scene {statement.image}")
            elif isinstance(statement, Show):
                lines.append(f"show {statement.image}")
        return lines

    @staticmethod
    def _exit_type(label: Label) -> str:
        if not label.body:
            return "fall-through"
        last = label.body[-1]
        if isinstance(last, Return):
            return "return"
        if isinstance(last, Jump):
            return "jump"
        if isinstance(last, Menu):
            return "menu"
        return "fall-through"


def apply_saved_positions(graph: FlowGraph, positions: Dict[str, Any]) -> FlowGraph:
    """Copy externally persisted positions onto a graph

    Keys are scene label names or node ids; values are `{x, y}` mappings or
    `(x, y)` pairs. Returns a new graph; the input is left untouched
    """
    placed = graph.copy()
    for node in placed.nodes:
        saved = None
        if node.label is not None and node.label in positions:
            saved = positions[node.label]
        elif node.id in positions:
            saved = positions[node.id]
        if saved is None:
            continue
        if isinstance(saved, dict):
            node.position = Position(saved.get("x", 0), saved.get("y", 0))
        else:
            x, y = saved
            node.position = Position(x, y)
    return placed
