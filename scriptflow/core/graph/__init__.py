from scriptflow.core.graph.flow_graph import (
    NodeType, EdgeType, Position, FlowNode, FlowEdge, FlowGraph,
)
from scriptflow.core.graph.ports import (
    PortKind, Port, NodePorts, get_node_ports, parse_handle, make_handle,
)
from scriptflow.core.graph.connection_utils import (
    Connection, create_edge_id, is_valid_connection, get_connected_edges,
    remove_node_edges, handle_node_deletion, detect_cycles, find_disconnected_nodes,
    get_flow_order, edges_to_ast_flow, reduce_to_statements, find_invalid_targets,
)
from scriptflow.core.graph.node_connection_resolver import (
    NodeConnectionResolver, InsertPosition,
)

__all__ = [
    'NodeType', 'EdgeType', 'Position', 'FlowNode', 'FlowEdge', 'FlowGraph',
    'PortKind', 'Port', 'NodePorts', 'get_node_ports', 'parse_handle', 'make_handle',
    'Connection', 'create_edge_id', 'is_valid_connection', 'get_connected_edges',
    'remove_node_edges', 'handle_node_deletion', 'detect_cycles', 'find_disconnected_nodes',
    'get_flow_order', 'edges_to_ast_flow', 'reduce_to_statements', 'find_invalid_targets',
    'NodeConnectionResolver', 'InsertPosition',
]
