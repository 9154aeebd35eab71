"""
Defines the flow graph derived from a script tree

A `FlowGraph` is a flat list of `FlowNode`s and `FlowEdge`s, the contract the
graph view renders. Node ids equal the id of the first statement a node
stands for, so a rebuild of an unchanged region yields the same ids. Graph
algorithms that need more than edge filters work on the networkx view
returned by `FlowGraph.to_networkx`
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

import networkx as nx

from scriptflow.core.ast.walker import StatementLocation

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


class NodeType(str, Enum):
    """Kinds of flow nodes"""
    SCENE = "scene"
    DIALOGUE_BLOCK = "dialogue-block"
    MENU = "menu"
    CONDITION = "condition"
    JUMP = "jump"
    CALL = "call"
    RETURN = "return"


class EdgeType(str, Enum):
    NORMAL = "normal"
    JUMP = "jump"
    CALL = "call"
    RETURN = "return"


@dataclass
class Position:
    x: float = 0
    y: float = 0

    def as_tuple(self):
        return (self.x, self.y)


@dataclass
class FlowNode:
    """A node of the flow graph

    Attributes:
        id: Node id, equal to the id of the first statement it represents
        type: Node kind
        position: Canvas position; None until laid out
        data: Type specific payload (label, dialogues, choices, ...) and the
            `ast_nodes` list of backing statement ids
        location: Where the first backing statement lives in the script tree
    """
    id: str
    type: NodeType
    position: Optional[Position] = None
    data: Dict[str, Any] = field(default_factory=dict)
    location: Optional[StatementLocation] = None

    @property
    def ast_nodes(self) -> List[str]:
        return list(self.data.get("ast_nodes", []))

    @property
    def label(self) -> Optional[str]:
        """Label name of a scene node, None for other nodes"""
        if self.type == NodeType.SCENE:
            return self.data.get("label")
        return None

    def __repr__(self) -> str:
        return f"FlowNode({self.id}, {self.type.value})"


@dataclass
class FlowEdge:
    """A directed edge; `source_handle` selects a port on multi-port nodes"""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    type: EdgeType = EdgeType.NORMAL
    valid: bool = True

    def __repr__(self) -> str:
        handle = f"[{self.source_handle}]" if self.source_handle else ""
        return f"FlowEdge({self.source}{handle} -> {self.target}, {self.type.value})"


@dataclass
class FlowGraph:
    """Nodes and edges of a flow graph in build order"""
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)

    def __iter__(self) -> Iterator[FlowNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def add_node(self, node: FlowNode) -> FlowNode:
        self.nodes.append(node)
        return node

    def add_edge(self, edge: FlowEdge) -> FlowEdge:
        self.edges.append(edge)
        return edge

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[FlowEdge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    @property
    def scene_nodes(self) -> List[FlowNode]:
        return [node for node in self.nodes if node.type == NodeType.SCENE]

    def find_scene(self, label_name: str) -> Optional[FlowNode]:
        """Return the scene node representing `label_name`"""
        for node in self.scene_nodes:
            if node.label == label_name:
                return node
        return None

    def find_edges(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
    ) -> List[FlowEdge]:
        return [
            e for e in self.edges
            if e.source == source and e.target == target and e.source_handle == source_handle
        ]

    def copy(self) -> FlowGraph:
        """Return a copy whose node/edge objects can be changed independently"""
        return FlowGraph(
            nodes=[replace(n, data=dict(n.data), position=replace(n.position) if n.position else None)
                   for n in self.nodes],
            edges=[replace(e) for e in self.edges],
        )

    def with_nodes(self, extra: Iterable[FlowNode]) -> FlowGraph:
        """Return a copy extended with nodes whose ids are not present yet"""
        merged = self.copy()
        known = set(merged.node_ids)
        for node in extra:
            if node.id not in known:
                merged.nodes.append(node)
                known.add(node.id)
        return merged

    def to_networkx(self) -> nx.MultiDiGraph:
        """Return a networkx view of the graph

        Nodes are keyed by id with `type` and `data` attributes; parallel edges
        are kept apart by their edge id
        """
        graph = nx.MultiDiGraph()
        for node in self.nodes:
            graph.add_node(node.id, type=node.type.value, data=node.data)
        for edge in self.edges:
            graph.add_edge(
                edge.source, edge.target, key=edge.id,
                type=edge.type.value,
                source_handle=edge.source_handle,
                target_handle=edge.target_handle,
            )
        return graph
