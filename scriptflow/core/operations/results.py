"""Result values returned by every mutating graph operation"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from scriptflow.core.operations.errors import ErrorKind, FlowSyncError

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


@dataclass
class OperationResult:
    """Outcome of a graph edit

    Attributes:
        success: Whether the edit was applied
        error: Human readable reason on failure
        kind: Error category on failure
        node_id: Node created or committed by the edit, if any
        removed_edges: Ids of edges the edit removed
        removed_statements: Ids of statements the edit removed from the script
    """
    success: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    node_id: Optional[str] = None
    removed_edges: List[str] = field(default_factory=list)
    removed_statements: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, **kwargs) -> OperationResult:
        return cls(success=True, **kwargs)

    @classmethod
    def failure(cls, error: FlowSyncError) -> OperationResult:
        return cls(success=False, error=str(error), kind=error.kind)
