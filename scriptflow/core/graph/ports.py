"""
Port model for flow nodes

Each node type declares its source (outgoing) and target (incoming) ports.
Most types have a single default port on each side, addressed by a `None`
handle. Branching types derive one source port per choice/branch from their
data, addressed as `choice-<i>` / `branch-<i>`
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from scriptflow.core.graph.flow_graph import NodeType

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


class PortKind(str, Enum):
    DEFAULT = "default"
    CHOICE = "choice"
    BRANCH = "branch"


@dataclass(frozen=True)
class Port:
    """A connection point; `port_id` is None for the default port"""
    kind: PortKind
    port_id: Optional[str] = None
    owner_index: Optional[int] = None


@dataclass(frozen=True)
class NodePorts:
    sources: Tuple[Port, ...] = ()
    targets: Tuple[Port, ...] = ()

    def has_source(self, handle: Optional[str]) -> bool:
        return any(p.port_id == handle for p in self.sources)

    def has_target(self, handle: Optional[str]) -> bool:
        return any(p.port_id == handle for p in self.targets)


DEFAULT_PORT = Port(PortKind.DEFAULT)

_HANDLE_RE = re.compile(r"^(choice|branch)-(\d+)$")

# Types with outgoing ports only
SOURCE_ONLY_TYPES = frozenset({"label"})
# Types with incoming ports only
TARGET_ONLY_TYPES = frozenset({"jump", "return"})
# Types that take no part in the flow
PORTLESS_TYPES = frozenset({"define", "default"})
# Types whose source ports come from their data
CHOICE_PORT_TYPES = frozenset({"menu"})
BRANCH_PORT_TYPES = frozenset({"if", "condition"})


def make_handle(kind: PortKind, index: int) -> str:
    return f"{kind.value}-{index}"


def parse_handle(handle: Optional[str]) -> Tuple[PortKind, Optional[int]]:
    """Split a handle into its port kind and owner index

    Args:
        handle: `None` for the default port, or `choice-<i>` / `branch-<i>`

    Returns:
        Tuple[PortKind, Optional[int]]: Kind and index (None for default)

    Raises:
        ValueError: If the handle has no recognizable form
    """
    if handle is None:
        return PortKind.DEFAULT, None
    match = _HANDLE_RE.match(handle)
    if not match:
        raise ValueError(f"Unrecognized handle '{handle}'")
    return PortKind(match.group(1)), int(match.group(2))


def _type_name(node_type: Union[NodeType, str]) -> str:
    return node_type.value if isinstance(node_type, NodeType) else node_type


def get_node_ports(node_type: Union[NodeType, str], data: Optional[Dict[str, Any]] = None) -> NodePorts:
    """Return the ports a node of the given type and data exposes"""
    type_name = _type_name(node_type)
    data = data or {}

    if type_name in PORTLESS_TYPES:
        return NodePorts()
    if type_name in SOURCE_ONLY_TYPES:
        return NodePorts(sources=(DEFAULT_PORT,))
    if type_name in TARGET_ONLY_TYPES:
        return NodePorts(targets=(DEFAULT_PORT,))
    if type_name in CHOICE_PORT_TYPES:
        sources = tuple(
            Port(PortKind.CHOICE, make_handle(PortKind.CHOICE, i), i)
            for i in range(len(data.get("choices") or []))
        )
        return NodePorts(sources=sources, targets=(DEFAULT_PORT,))
    if type_name in BRANCH_PORT_TYPES:
        sources = tuple(
            Port(PortKind.BRANCH, make_handle(PortKind.BRANCH, i), i)
            for i in range(len(data.get("branches") or []))
        )
        return NodePorts(sources=sources, targets=(DEFAULT_PORT,))
    return NodePorts(sources=(DEFAULT_PORT,), targets=(DEFAULT_PORT,))
