"""Deterministic grid placement for nodes without a saved position"""
from __future__ import annotations
import math
from typing import Optional

from loguru import logger

from scriptflow.config.config import LayoutConfig, config as global_config
from scriptflow.core.graph.flow_graph import FlowGraph, Position

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


def grid_columns(node_count: int, max_columns: Optional[int] = None) -> int:
    """Number of grid columns for `node_count` nodes: ceil(sqrt(n)), capped"""
    columns = max(1, math.ceil(math.sqrt(node_count)))
    if max_columns is not None and max_columns >= 1:
        columns = min(columns, max_columns)
    return columns


def auto_layout(
    graph: FlowGraph,
    max_columns: Optional[int] = None,
    layout: Optional[LayoutConfig] = None,
) -> FlowGraph:
    """Place every node that has no position on a row-major grid

    Nodes already carrying a position are never moved. Only unplaced nodes
    count towards the grid size, and they fill cells in graph order starting
    at the configured origin

    Args:
        graph (FlowGraph): Graph to lay out; not modified
        max_columns (Optional[int]): Column cap; falls back to the layout config
        layout (Optional[LayoutConfig]): Card size, gaps and origin

    Returns:
        FlowGraph: A copy of the graph with positions assigned
    """
    layout = layout or global_config.layout
    placed = graph.copy()
    unplaced = [node for node in placed.nodes if node.position is None]
    if not unplaced:
        return placed

    cap = max_columns if max_columns is not None else layout.max_columns
    columns = grid_columns(len(unplaced), cap)
    for index, node in enumerate(unplaced):
        row, column = divmod(index, columns)
        node.position = Position(
            layout.origin_x + column * layout.cell_width,
            layout.origin_y + row * layout.cell_height,
        )
    logger.debug(f"Auto layout placed {len(unplaced)} nodes on {columns} columns")
    return placed
