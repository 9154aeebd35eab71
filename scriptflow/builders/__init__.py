from scriptflow.builders.flow_graph_builder.flow_graph_builder import FlowGraphBuilder, apply_saved_positions
from scriptflow.builders.flow_graph_builder.auto_layout import auto_layout, grid_columns


__all__ = [
    'FlowGraphBuilder',
    'apply_saved_positions',
    'auto_layout',
    'grid_columns',
]
