"""Errors raised while mapping graph edits onto the script tree

Internal helpers raise these; the node operation handler catches them at its
public boundary and turns them into failed `OperationResult`s
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


class ErrorKind(str, Enum):
    UNRESOLVABLE_LABEL = "UnresolvableLabel"
    INVALID_CONNECTION = "InvalidConnection"
    AMBIGUOUS_STATEMENT_MAPPING = "AmbiguousStatementMapping"
    MALFORMED_HANDLE = "MalformedHandle"


@dataclass(eq=False)
class FlowSyncError(Exception):
    """Base exception for graph-to-script synchronization failures"""
    message: str
    node_id: Optional[str] = None

    kind: ClassVar[ErrorKind]

    def __str__(self):
        if self.node_id:
            return f"{self.message} (node {self.node_id})"
        return self.message


@dataclass(eq=False)
class UnresolvableLabel(FlowSyncError):
    """Raised when a node's owning scene cannot be determined"""
    kind: ClassVar[ErrorKind] = ErrorKind.UNRESOLVABLE_LABEL


@dataclass(eq=False)
class InvalidConnection(FlowSyncError):
    """Raised when a port, type or duplicate rule rejects a connection"""
    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_CONNECTION


@dataclass(eq=False)
class AmbiguousStatementMapping(FlowSyncError):
    """Raised when an edge cannot be traced to exactly one statement"""
    kind: ClassVar[ErrorKind] = ErrorKind.AMBIGUOUS_STATEMENT_MAPPING


@dataclass(eq=False)
class MalformedHandle(FlowSyncError):
    """Raised when a handle names a port the node does not have"""
    kind: ClassVar[ErrorKind] = ErrorKind.MALFORMED_HANDLE
