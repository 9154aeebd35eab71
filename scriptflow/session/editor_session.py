"""
Per-file editing context for the graph view

An `EditorSession` owns everything that must not leak between files: the
pending node pool, the content cache, the operation handler, saved canvas
positions and the current script tree. Opening a different file or closing
the session resets all of it
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from loguru import logger
from rich.console import Console

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.ast.nodes import Script
from scriptflow.core.graph.flow_graph import FlowGraph, NodeType, Position
from scriptflow.core.graph.connection_utils import detect_cycles, find_disconnected_nodes, find_invalid_targets
from scriptflow.core.operations.pending_node_pool import PendingNode, PendingNodePool
from scriptflow.core.operations.node_operation_handler import NodeOperationHandler
from scriptflow.core.operations.results import OperationResult
from scriptflow.builders.flow_graph_builder.flow_graph_builder import FlowGraphBuilder, apply_saved_positions
from scriptflow.builders.flow_graph_builder.auto_layout import auto_layout
from scriptflow.cache.content_cache import ContentCache
from scriptflow.utils.logging_helpers import (
    _NullConsole, print_graph_status_rich, print_operation_result, log_phase,
)

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


@dataclass
class GraphStatus:
    """Reachability report of the displayed graph

    Attributes:
        disconnected: Nodes with no undirected path to a scene
        orphans: Non-scene nodes without incoming edges, pending ones included
        invalid_targets: Jump/call nodes whose label does not exist
        cycles: Directed cycles, each as a closed list of node ids
    """
    disconnected: Set[str] = field(default_factory=set)
    orphans: List[str] = field(default_factory=list)
    invalid_targets: Set[str] = field(default_factory=set)
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.disconnected or self.orphans or self.invalid_targets)


@dataclass
class EditorSession:
    """Graph editing state of one open file

    Attributes:
        app_config: Configuration shared by every component of the session
        saved_positions: Canvas positions persisted by the host, keyed by
            scene label or node id
    """

    app_config: AppConfig = field(default_factory=lambda: global_config)
    saved_positions: Dict[str, Any] = field(default_factory=dict)

    file_path: Optional[str] = field(init=False, default=None)
    ast: Optional[Script] = field(init=False, default=None)
    pool: PendingNodePool = field(init=False)
    cache: ContentCache = field(init=False)
    handler: NodeOperationHandler = field(init=False)
    builder: FlowGraphBuilder = field(init=False)
    console: Optional[Union[Console, _NullConsole]] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.pool = PendingNodePool(app_config=self.app_config)
        self.cache = ContentCache(app_config=self.app_config)
        self.handler = NodeOperationHandler(pool=self.pool, cache=self.cache, app_config=self.app_config)
        self.builder = FlowGraphBuilder(app_config=self.app_config)
        if self.app_config.developer_options.show_rich:
            self.console = Console()
        else:
            self.console = _NullConsole()

    # Lifecycle

    @log_phase("Open file")
    def open_file(self, path: str, content: str) -> Script:
        """Load `content` as the tree of `path`

        Switching to another path drops the pending nodes, cached entries and
        saved positions of the previous file
        """
        if self.file_path is not None and path != self.file_path:
            logger.info(f"Switching from {self.file_path} to {path}; resetting session state")
            self._reset()
        self.file_path = path
        self.ast = self.cache.get_ast(path, content)
        self.ast.file_path = path
        return self.ast

    def close(self) -> None:
        self._reset()
        self.file_path = None
        self.ast = None

    def _reset(self) -> None:
        self.handler.clear_pending_nodes()
        self.cache.clear()
        self.saved_positions.clear()

    # Graph views

    def ast_graph(self) -> FlowGraph:
        """Flow graph of the current tree, built at most once per tree hash"""
        ast = self._require_open()
        ast_hash = self.cache.get_ast_hash(self.file_path) or self.cache.register_ast(self.file_path, ast)
        return self.cache.get_flow_graph(ast_hash, lambda: self.builder.build_graph(ast))

    def current_graph(self) -> FlowGraph:
        """Tree graph merged with pending nodes, with every node positioned"""
        merged = self.ast_graph().with_nodes(node.to_flow_node() for node in self.pool.get_all())
        positioned = apply_saved_positions(merged, self.saved_positions)
        return auto_layout(positioned, layout=self.app_config.layout)

    def status(self) -> GraphStatus:
        graph = self.current_graph()
        status = GraphStatus(
            disconnected=find_disconnected_nodes(graph.nodes, graph.edges),
            orphans=[node.id for node in self.handler.get_orphan_nodes(graph)],
            invalid_targets=find_invalid_targets(graph.nodes, self.pool.labels()),
            cycles=detect_cycles(graph.nodes, graph.edges),
        )
        print_graph_status_rich(status, self.console)
        return status

    # Edits

    def create_node(
        self,
        node_type: Union[NodeType, str],
        position: Optional[Union[Position, Dict[str, float]]] = None,
        data_overrides: Optional[Dict[str, Any]] = None,
    ) -> str:
        self._require_open()
        return self.handler.create_node(node_type, position, data_overrides)

    def connect(self, source_id: str, target_id: str, source_handle: Optional[str] = None) -> OperationResult:
        ast = self._require_open()
        pending = self.pool.get(target_id)
        result = self.handler.connect_nodes(
            source_id, target_id, source_handle, self.current_graph(), ast, self.file_path
        )
        if result and pending is not None:
            self._keep_position(pending)
        print_operation_result(f"connect {source_id} -> {target_id}", result, self.console)
        return result

    def remove_connection(self, source_id: str, target_id: str, source_handle: Optional[str] = None) -> OperationResult:
        ast = self._require_open()
        result = self.handler.remove_connection(
            source_id, target_id, source_handle, self.current_graph(), ast, self.file_path
        )
        print_operation_result(f"disconnect {source_id} -> {target_id}", result, self.console)
        return result

    def delete_node(self, node_id: str) -> OperationResult:
        ast = self._require_open()
        result = self.handler.delete_node(node_id, self.current_graph(), ast, self.file_path)
        if result:
            self.saved_positions.pop(node_id, None)
        print_operation_result(f"delete {node_id}", result, self.console)
        return result

    def move_node(self, node_id: str, position: Union[Position, Dict[str, float]]) -> None:
        """Record a canvas position for a pending or script-backed node"""
        if self.pool.is_pending(node_id):
            self.pool.update_position(node_id, position)
            return
        if isinstance(position, Position):
            position = {"x": position.x, "y": position.y}
        node = self.ast_graph().get_node(node_id)
        key = node.label if node is not None and node.label else node_id
        self.saved_positions[key] = dict(position)

    def _keep_position(self, node: PendingNode) -> None:
        if node.position is not None:
            self.saved_positions[node.id] = {"x": node.position.x, "y": node.position.y}

    def _require_open(self) -> Script:
        if self.ast is None or self.file_path is None:
            raise ValueError("No file is open in this session")
        return self.ast
