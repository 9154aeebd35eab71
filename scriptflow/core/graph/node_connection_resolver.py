"""
Resolves how a flow node relates to the scenes of the graph

Answers which label a node belongs to (walking incoming edges up to a scene
node), which nodes precede/follow it, whether it is orphaned, and where new
statements for a connection leaving it should be inserted
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from loguru import logger

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.graph.flow_graph import FlowEdge, FlowNode, NodeType

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


@dataclass(frozen=True)
class InsertPosition:
    """Where statements for a new connection go

    Attributes:
        label_name: Label whose flow receives the statements
        after_node_id: Node the statements follow; None means the start of
            the container
        before_node_id: Current successor on the same port, if any
        source_handle: Port of the source the connection leaves from; a
            choice/branch handle selects that nested body as the container
    """
    label_name: str
    after_node_id: Optional[str]
    before_node_id: Optional[str]
    source_handle: Optional[str] = None


def _node_map(nodes: Sequence[FlowNode]) -> Dict[str, FlowNode]:
    return {node.id: node for node in nodes}


@dataclass
class NodeConnectionResolver:
    """Edge based lookups used by the node operation handler and the editor"""

    app_config: AppConfig = field(default_factory=lambda: global_config)

    def resolve_node_label(self, node_id: str, edges: Sequence[FlowEdge], nodes: Sequence[FlowNode]) -> Optional[str]:
        """Resolve the label a node belongs to

        Walks incoming edges breadth first until a scene node is reached

        Args:
            node_id (str): Node to resolve
            edges (Sequence[FlowEdge]): Current edges
            nodes (Sequence[FlowNode]): Current nodes

        Returns:
            Optional[str]: Label of the first scene found, or None if no
                scene is reachable upward
        """
        scene = self.get_scene_node(node_id, edges, nodes)
        label = scene.label if scene is not None else None
        if self.app_config.developer_options.resolver_log:
            logger.debug(f"Resolved label of {node_id}: {label}")
        return label or None

    def get_scene_node(self, node_id: str, edges: Sequence[FlowEdge], nodes: Sequence[FlowNode]) -> Optional[FlowNode]:
        """Return the scene node `node_id` hangs off, or the node itself if it is a scene"""
        node_map = _node_map(nodes)
        current = node_map.get(node_id)
        if current is not None and current.type == NodeType.SCENE:
            return current

        visited: Set[str] = set()
        queue = deque([node_id])
        while queue:
            current_id = queue.popleft()
            if current_id in visited:
                continue
            visited.add(current_id)
            for edge in edges:
                if edge.target != current_id:
                    continue
                source = node_map.get(edge.source)
                if source is None:
                    continue
                if source.type == NodeType.SCENE:
                    return source
                if edge.source not in visited:
                    queue.append(edge.source)
        return None

    def get_predecessor(self, node_id: str, edges: Sequence[FlowEdge]) -> Optional[str]:
        for edge in edges:
            if edge.target == node_id:
                return edge.source
        return None

    def get_successor(self, node_id: str, edges: Sequence[FlowEdge], source_handle: Optional[str] = None) -> Optional[str]:
        for edge in edges:
            if edge.source == node_id and edge.source_handle == source_handle:
                return edge.target
        return None

    def get_all_predecessors(self, node_id: str, edges: Sequence[FlowEdge]) -> List[str]:
        return [edge.source for edge in edges if edge.target == node_id]

    def get_all_successors(self, node_id: str, edges: Sequence[FlowEdge]) -> List[str]:
        return [edge.target for edge in edges if edge.source == node_id]

    def is_connected(self, node_id: str, edges: Sequence[FlowEdge]) -> bool:
        """Check whether any edge references the node"""
        return any(edge.source == node_id or edge.target == node_id for edge in edges)

    def is_connected_to_scene(self, node_id: str, edges: Sequence[FlowEdge], nodes: Sequence[FlowNode]) -> bool:
        return self.resolve_node_label(node_id, edges, nodes) is not None

    def get_orphan_nodes(self, nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> List[FlowNode]:
        """Return non-scene nodes whose label cannot be resolved"""
        return [
            node for node in nodes
            if node.type != NodeType.SCENE and not self.is_connected_to_scene(node.id, edges, nodes)
        ]

    def determine_insert_position(
        self,
        source_node_id: str,
        edges: Sequence[FlowEdge],
        nodes: Sequence[FlowNode],
        source_handle: Optional[str] = None,
    ) -> Optional[InsertPosition]:
        """Work out where statements for a connection leaving `source_node_id` go

        A scene source inserts at the start of its label body, before the
        current first successor. Any other source inserts right after
        itself within the label resolved for it

        Returns:
            Optional[InsertPosition]: The position, or None if the source is
                unknown or no owning label can be resolved
        """
        source = _node_map(nodes).get(source_node_id)
        if source is None:
            return None

        label_name = self.resolve_node_label(source_node_id, edges, nodes)
        if not label_name:
            return None

        successor = self.get_successor(source_node_id, edges, source_handle)
        if source.type == NodeType.SCENE:
            return InsertPosition(label_name, None, successor, source_handle)
        return InsertPosition(label_name, source_node_id, successor, source_handle)

    def get_path_from_scene(self, node_id: str, edges: Sequence[FlowEdge], nodes: Sequence[FlowNode]) -> List[str]:
        """Return one path of node ids from a scene down to `node_id`

        The scene is found breadth first over incoming edges; the path is
        the first one a depth-first search from that scene meets, taking
        outgoing edges in list order. Returns [] if no scene reaches the node
        """
        scene = self.get_scene_node(node_id, edges, nodes)
        if scene is None:
            return []
        return self._find_path_dfs(scene.id, node_id, edges)

    def _find_path_dfs(self, source_id: str, target_id: str, edges: Sequence[FlowEdge]) -> List[str]:
        visited: Set[str] = set()
        path: List[str] = []

        def dfs(current: str) -> bool:
            path.append(current)
            if current == target_id:
                return True
            visited.add(current)
            for edge in edges:
                if edge.source == current and edge.target not in visited and dfs(edge.target):
                    return True
            path.pop()
            return False

        return path if dfs(source_id) else []

    def has_path(self, source_id: str, target_id: str, edges: Sequence[FlowEdge]) -> bool:
        """Forward breadth-first reachability check"""
        if source_id == target_id:
            return True
        visited: Set[str] = set()
        queue = deque([source_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for edge in edges:
                if edge.source != current:
                    continue
                if edge.target == target_id:
                    return True
                if edge.target not in visited:
                    queue.append(edge.target)
        return False
