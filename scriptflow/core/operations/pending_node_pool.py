"""
Holds flow nodes created in the graph view that have no statements yet

A pending node is pure editor state: it owns nothing in the script tree.
It leaves the pool when a connection commits it (its data is turned into
statements) or when it is deleted. One pool belongs to one open file and is
cleared when the editor switches files
"""
from __future__ import annotations
import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.ast.nodes import new_statement_id
from scriptflow.core.graph.flow_graph import FlowEdge, FlowNode, NodeType, Position
from scriptflow.core.graph.ports import PortKind, make_handle

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


class PendingStatus(str, Enum):
    CREATED = "created"
    ORPHAN = "orphan"
    # A committed node returned to the pool after its incoming connection was removed
    DETACHED = "detached"


@dataclass
class PendingNode:
    """A user created node waiting to be wired into a scene"""
    id: str
    type: NodeType
    position: Optional[Position] = None
    data: Dict[str, Any] = field(default_factory=dict)
    status: PendingStatus = PendingStatus.CREATED
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def to_flow_node(self) -> FlowNode:
        return FlowNode(
            id=self.id,
            type=self.type,
            position=Position(self.position.x, self.position.y) if self.position else None,
            data=copy.deepcopy(self.data),
        )


def default_node_data(node_type: NodeType, app_config: AppConfig = global_config) -> Dict[str, Any]:
    """Return fresh default data for a node created in the graph view"""
    defaults = app_config.node_defaults
    if node_type == NodeType.DIALOGUE_BLOCK:
        return {
            "dialogues": [{"id": new_statement_id("dialogue"), "speaker": None, "text": defaults.dialogue_text}],
            "visual_commands": [],
            "commands": [],
        }
    if node_type == NodeType.MENU:
        return {
            "prompt": None,
            "choices": [
                {"port_id": make_handle(PortKind.CHOICE, i), "text": text, "condition": None, "target_label": None}
                for i, text in enumerate(defaults.choice_texts)
            ],
        }
    if node_type == NodeType.CONDITION:
        return {
            "branches": [
                {"port_id": make_handle(PortKind.BRANCH, 0), "condition": defaults.condition, "kind": "if"},
                {"port_id": make_handle(PortKind.BRANCH, 1), "condition": None, "kind": "else"},
            ],
        }
    if node_type == NodeType.SCENE:
        return {"label": defaults.new_label_name, "preview": [], "exit_type": "fall-through", "has_incoming": False}
    if node_type in (NodeType.JUMP, NodeType.CALL):
        return {"target": "", "expression": False}
    if node_type == NodeType.RETURN:
        return {"value": None}
    return {}


def _normalize_ports(data: Dict[str, Any]) -> None:
    """Renumber choice/branch port ids after overrides replaced the lists"""
    for key, kind in (("choices", PortKind.CHOICE), ("branches", PortKind.BRANCH)):
        if isinstance(data.get(key), list):
            for index, item in enumerate(data[key]):
                item["port_id"] = make_handle(kind, index)


def create_pending_node(
    node_type: Union[NodeType, str],
    position: Optional[Union[Position, Dict[str, float]]] = None,
    data_overrides: Optional[Dict[str, Any]] = None,
    node_id: Optional[str] = None,
    app_config: AppConfig = global_config,
) -> PendingNode:
    """Build a pending node with type defaults merged with `data_overrides`

    Raises:
        ValueError: If `node_type` is not a flow node type
    """
    node_type = NodeType(node_type)
    data = default_node_data(node_type, app_config)
    data.update(copy.deepcopy(data_overrides or {}))
    _normalize_ports(data)
    if isinstance(position, dict):
        position = Position(position.get("x", 0), position.get("y", 0))
    return PendingNode(
        id=node_id or new_statement_id(node_type.value),
        type=node_type,
        position=position,
        data=data,
    )


@dataclass
class PendingNodePool:
    """Pending nodes of one open file, keyed by id"""

    app_config: AppConfig = field(default_factory=lambda: global_config)
    _nodes: Dict[str, PendingNode] = field(init=False, default_factory=dict)

    def _log(self, message: str) -> None:
        if self.app_config.developer_options.operations_log:
            logger.debug(message)

    def add(self, node: PendingNode) -> None:
        node.updated_at = time.time()
        self._nodes[node.id] = node
        self._log(f"Pending node added: {node.id} ({node.type.value})")

    def get(self, node_id: str) -> Optional[PendingNode]:
        return self._nodes.get(node_id)

    def remove(self, node_id: str) -> bool:
        removed = self._nodes.pop(node_id, None) is not None
        if removed:
            self._log(f"Pending node removed: {node_id}")
        return removed

    def get_all(self) -> List[PendingNode]:
        return list(self._nodes.values())

    def is_pending(self, node_id: str) -> bool:
        return node_id in self._nodes

    def clear(self) -> None:
        self._nodes.clear()

    def size(self) -> int:
        return len(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def update_status(self, node_id: str, status: PendingStatus) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.status = status
        node.updated_at = time.time()
        return True

    def update_data(self, node_id: str, data: Dict[str, Any]) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.data = {**node.data, **copy.deepcopy(data)}
        # Edited content no longer matches the statements a detached node was cut from
        if "statements" not in data:
            node.data.pop("statements", None)
        _normalize_ports(node.data)
        node.updated_at = time.time()
        return True

    def update_position(self, node_id: str, position: Union[Position, Dict[str, float]]) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        if isinstance(position, dict):
            position = Position(position.get("x", 0), position.get("y", 0))
        node.position = position
        node.updated_at = time.time()
        return True

    def get_by_status(self, status: PendingStatus) -> List[PendingNode]:
        return [node for node in self._nodes.values() if node.status == status]

    def get_orphan_nodes(self, edges: Iterable[FlowEdge] = ()) -> List[PendingNode]:
        """Pending nodes marked orphan or not referenced by any of `edges`"""
        referenced = set()
        for edge in edges:
            referenced.add(edge.source)
            referenced.add(edge.target)
        return [
            node for node in self._nodes.values()
            if node.status == PendingStatus.ORPHAN or node.id not in referenced
        ]

    def snapshot(self) -> Dict[str, PendingNode]:
        return copy.deepcopy(self._nodes)

    def restore(self, nodes: Dict[str, PendingNode]) -> None:
        self._nodes = nodes

    def labels(self) -> List[str]:
        """Labels of pending scene nodes"""
        return [n.data.get("label") for n in self._nodes.values() if n.type == NodeType.SCENE and n.data.get("label")]
