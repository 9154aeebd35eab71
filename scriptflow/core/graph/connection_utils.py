"""Graph algorithms over flow nodes and edges

Port compatibility, duplicate detection, cycle detection, reachability from
scene nodes and execution ordering. All functions are pure: they take node
and edge lists and never mutate them
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx
from loguru import logger

from scriptflow.core.graph.flow_graph import EdgeType, FlowEdge, FlowGraph, FlowNode, NodeType
from scriptflow.core.graph.ports import get_node_ports, parse_handle

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


@dataclass(frozen=True)
class Connection:
    """A requested edge between two nodes"""
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


def create_edge_id(source: str, target: str, source_handle: Optional[str] = None) -> str:
    edge_id = f"e-{source}-{target}"
    if source_handle:
        edge_id += f"-{source_handle}"
    return edge_id


def is_valid_connection(connection: Connection, nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> bool:
    """Check a connection against the port model

    Rejects self loops, unknown endpoints, ports the endpoint types do not
    declare and exact duplicates of an existing edge. Cycles are allowed

    Args:
        connection (Connection): The requested edge
        nodes (Sequence[FlowNode]): All nodes, pending ones included
        edges (Sequence[FlowEdge]): Existing edges

    Returns:
        bool: True if the edge may be added
    """
    if connection.source == connection.target:
        return False

    node_map = {n.id: n for n in nodes}
    source = node_map.get(connection.source)
    target = node_map.get(connection.target)
    if source is None or target is None:
        return False

    if not get_node_ports(source.type, source.data).has_source(connection.source_handle):
        return False
    if not get_node_ports(target.type, target.data).has_target(connection.target_handle):
        return False

    for edge in edges:
        if (edge.source == connection.source and edge.target == connection.target
                and edge.source_handle == connection.source_handle
                and edge.target_handle == connection.target_handle):
            return False
    return True


def get_connected_edges(node_id: str, edges: Iterable[FlowEdge]) -> List[FlowEdge]:
    """Return every edge with `node_id` as source or target"""
    return [e for e in edges if e.source == node_id or e.target == node_id]


def remove_node_edges(node_id: str, edges: Iterable[FlowEdge]) -> List[FlowEdge]:
    """Return the edges that do not reference `node_id`"""
    return [e for e in edges if e.source != node_id and e.target != node_id]


def handle_node_deletion(
    node_id: str,
    nodes: Sequence[FlowNode],
    edges: Sequence[FlowEdge],
) -> Tuple[List[FlowNode], List[FlowEdge], List[str]]:
    """Drop a node and all edges referencing it

    Returns:
        Tuple[List[FlowNode], List[FlowEdge], List[str]]: Remaining nodes,
            remaining edges and the ids of the removed edges
    """
    removed = [e.id for e in get_connected_edges(node_id, edges)]
    return (
        [n for n in nodes if n.id != node_id],
        remove_node_edges(node_id, edges),
        removed,
    )


def detect_cycles(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> List[List[str]]:
    """Find cycles with a depth-first search keeping a recursion stack

    Each back edge found yields one cycle, reported as the node id path from
    the cycle start back to itself (e.g. `['a', 'b', 'a']`)
    """
    node_ids = [n.id for n in nodes]
    known = set(node_ids)
    adjacency: Dict[str, List[str]] = {nid: [] for nid in node_ids}
    for edge in edges:
        if edge.source in known and edge.target in known:
            adjacency[edge.source].append(edge.target)

    cycles: List[List[str]] = []
    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for start in node_ids:
        if start in visited:
            continue
        path = [start]
        visited.add(start)
        on_stack.add(start)
        stack = [(start, iter(adjacency[start]))]
        while stack:
            node, successors = stack[-1]
            nxt = next(successors, None)
            if nxt is None:
                stack.pop()
                on_stack.discard(node)
                path.pop()
                continue
            if nxt in on_stack:
                cycles.append(path[path.index(nxt):] + [nxt])
            elif nxt not in visited:
                visited.add(nxt)
                on_stack.add(nxt)
                path.append(nxt)
                stack.append((nxt, iter(adjacency[nxt])))
    return cycles


def find_disconnected_nodes(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> Set[str]:
    """Return nodes with no undirected path from any scene node

    With no scene node at all, every node is disconnected
    """
    graph = nx.Graph()
    graph.add_nodes_from(n.id for n in nodes)
    graph.add_edges_from(
        (e.source, e.target) for e in edges
        if graph.has_node(e.source) and graph.has_node(e.target)
    )

    reached: Set[str] = set()
    for node in nodes:
        if node.type == NodeType.SCENE and node.id not in reached:
            reached |= nx.node_connected_component(graph, node.id)
    return {n.id for n in nodes} - reached


def _port_order(edge: FlowEdge) -> int:
    try:
        _, index = parse_handle(edge.source_handle)
    except ValueError:
        return -1
    return -1 if index is None else index


def _sequential_adjacency(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> Dict[str, List[FlowEdge]]:
    """Edges that stay inside one label's flow, grouped by source in port order

    Jump and call transfers and any edge entering a scene node are left out
    """
    node_map = {n.id: n for n in nodes}
    adjacency: Dict[str, List[FlowEdge]] = {n.id: [] for n in nodes}
    for edge in edges:
        if edge.type in (EdgeType.JUMP, EdgeType.CALL):
            continue
        target = node_map.get(edge.target)
        if edge.source not in node_map or target is None or target.type == NodeType.SCENE:
            continue
        adjacency[edge.source].append(edge)
    for source in adjacency:
        adjacency[source].sort(key=_port_order)
    return adjacency


def _walk_scene(scene_id: str, adjacency: Dict[str, List[FlowEdge]], visited: Set[str]) -> List[str]:
    """Order the nodes reachable from one scene

    Walks the dominator tree of the reachable region in pre-order. A node
    entered through a single edge directly follows its predecessor, branch
    ports in index order; a join (several incoming edges) follows the whole
    menu/condition that dominates it
    """
    region = nx.DiGraph()
    region.add_node(scene_id)
    discovery: List[str] = []
    in_degree: Dict[str, int] = {scene_id: 0}
    queue = deque([scene_id])
    while queue:
        current = queue.popleft()
        discovery.append(current)
        for edge in adjacency.get(current, []):
            if edge.target in visited or edge.target == scene_id:
                continue
            if edge.target not in in_degree:
                in_degree[edge.target] = 0
                region.add_node(edge.target)
                queue.append(edge.target)
            in_degree[edge.target] += 1
            region.add_edge(current, edge.target)

    idom = nx.immediate_dominators(region, scene_id)
    children: Dict[str, List[str]] = {nid: [] for nid in discovery}
    for nid in discovery:
        if nid != scene_id:
            children[idom[nid]].append(nid)

    order: List[str] = []
    stack = [scene_id]
    while stack:
        node_id = stack.pop()
        visited.add(node_id)
        order.append(node_id)
        kids = children[node_id]
        direct: List[str] = []
        for edge in adjacency.get(node_id, []):
            if edge.target in kids and in_degree[edge.target] == 1 and edge.target not in direct:
                direct.append(edge.target)
        joins = [nid for nid in kids if nid not in direct]
        stack.extend(reversed(direct + joins))
    return order


def _scene_walks(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> List[Tuple[FlowNode, List[str]]]:
    adjacency = _sequential_adjacency(nodes, edges)
    visited: Set[str] = set()
    walks = []
    for node in nodes:
        if node.type == NodeType.SCENE and node.id not in visited:
            walks.append((node, _walk_scene(node.id, adjacency, visited)))
    return walks


def get_flow_order(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> List[str]:
    """Return node ids in execution order

    Each scene is followed by the nodes of its own flow; nodes no scene
    reaches come last, in their original order
    """
    order: List[str] = []
    for _, walk in _scene_walks(nodes, edges):
        order.extend(walk)
    emitted = set(order)
    order.extend(n.id for n in nodes if n.id not in emitted)
    return order


def edges_to_ast_flow(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> Dict[str, List[str]]:
    """Map each scene's label to the ordered ids of the nodes in its flow"""
    return {
        scene.data.get("label", scene.id): walk[1:]
        for scene, walk in _scene_walks(nodes, edges)
    }


def reduce_to_statements(graph: FlowGraph) -> Dict[str, List[str]]:
    """Expand each label's flow order into the statement ids it covers"""
    node_map = {n.id: n for n in graph.nodes}
    result: Dict[str, List[str]] = {}
    for label, node_ids in edges_to_ast_flow(graph.nodes, graph.edges).items():
        statements: List[str] = []
        for node_id in node_ids:
            statements.extend(node_map[node_id].ast_nodes)
        result[label] = statements
    return result


def find_invalid_targets(nodes: Sequence[FlowNode], pending_labels: Iterable[str] = ()) -> Set[str]:
    """Return jump/call nodes whose target names no current or pending scene

    Computed (`expression`) targets cannot be checked and are skipped
    """
    labels = {n.data.get("label") for n in nodes if n.type == NodeType.SCENE}
    labels.update(pending_labels)

    invalid: Set[str] = set()
    for node in nodes:
        if node.type not in (NodeType.JUMP, NodeType.CALL) or node.data.get("expression"):
            continue
        target = node.data.get("target")
        if not target or target not in labels:
            invalid.add(node.id)
    if invalid:
        logger.debug(f"Nodes with invalid targets: {sorted(invalid)}")
    return invalid
