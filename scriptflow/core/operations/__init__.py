from scriptflow.core.operations.errors import (
    ErrorKind, FlowSyncError, UnresolvableLabel, InvalidConnection,
    AmbiguousStatementMapping, MalformedHandle,
)
from scriptflow.core.operations.results import OperationResult
from scriptflow.core.operations.pending_node_pool import (
    PendingStatus, PendingNode, PendingNodePool, create_pending_node, default_node_data,
)
from scriptflow.core.operations.node_operation_handler import NodeOperationHandler, CommitRecord

__all__ = [
    'ErrorKind', 'FlowSyncError', 'UnresolvableLabel', 'InvalidConnection',
    'AmbiguousStatementMapping', 'MalformedHandle',
    'OperationResult',
    'PendingStatus', 'PendingNode', 'PendingNodePool', 'create_pending_node', 'default_node_data',
    'NodeOperationHandler', 'CommitRecord',
]
