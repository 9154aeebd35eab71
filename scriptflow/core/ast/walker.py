"""
Traversal, lookup and splicing helpers for the script tree

Statements live in nested bodies (label bodies, menu-choice bodies and
if-branch bodies), so an id alone is not enough to splice a statement in or
out. These helpers resolve a `StatementLocation`: the owning label, the
container path of `(owner statement id, choice/branch index)` steps leading
to the body holding the statement, and its index in that body
"""
from __future__ import annotations
import hashlib
import json
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Set as SetType

from scriptflow.core.ast.nodes import (
    AstNode, Script, Label, Menu, If, Jump, Call,
)

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


ContainerStep = Tuple[str, int]
ContainerPath = Tuple[ContainerStep, ...]


@dataclass(frozen=True)
class StatementLocation:
    """Position of a statement inside the script tree

    Attributes:
        label_name: Name of the owning label, None for top-level statements
        container_path: Steps from the label body down to the holding body
        index: Index of the statement within the holding body
    """
    label_name: Optional[str]
    container_path: ContainerPath = field(default_factory=tuple)
    index: int = 0


def child_bodies(node: AstNode) -> List[List[AstNode]]:
    """Return the nested bodies owned by a compound statement"""
    if isinstance(node, Menu):
        return [choice.body for choice in node.choices]
    if isinstance(node, If):
        return [branch.body for branch in node.branches]
    if isinstance(node, Label):
        return [node.body]
    return []


def iter_body(
    body: List[AstNode],
    label_name: Optional[str],
    path: ContainerPath = (),
) -> Iterator[Tuple[AstNode, StatementLocation]]:
    """Yield every statement of a body, depth first, with its location"""
    for index, node in enumerate(body):
        yield node, StatementLocation(label_name, path, index)
        if isinstance(node, (Menu, If)):
            for body_index, nested in enumerate(child_bodies(node)):
                yield from iter_body(nested, label_name, path + ((node.id, body_index),))


def iter_statements(script: Script) -> Iterator[Tuple[AstNode, StatementLocation]]:
    """Yield every statement of the script in pre-order with its location

    Top-level statements get a location with `label_name=None`; statements
    inside a label carry that label's name
    """
    for index, statement in enumerate(script.statements):
        yield statement, StatementLocation(None, (), index)
        if isinstance(statement, Label):
            yield from iter_body(statement.body, statement.name)


def find_statement(script: Script, statement_id: str) -> Optional[Tuple[AstNode, StatementLocation]]:
    """Find a statement by id anywhere in the script"""
    for node, location in iter_statements(script):
        if node.id == statement_id:
            return node, location
    return None


def resolve_body(script: Script, label_name: Optional[str], path: ContainerPath) -> Optional[List[AstNode]]:
    """Resolve a (label, container path) pair to the mutable body it names

    Returns None if the label, an owner statement, or an index on the path
    no longer exists
    """
    if label_name is None:
        body = script.statements
    else:
        label = script.get_label(label_name)
        if label is None:
            return None
        body = label.body

    for owner_id, body_index in path:
        owner = next((n for n in body if n.id == owner_id), None)
        if owner is None:
            return None
        nested = child_bodies(owner)
        if not 0 <= body_index < len(nested):
            return None
        body = nested[body_index]
    return body


def body_of(script: Script, location: StatementLocation) -> Optional[List[AstNode]]:
    """Return the body holding the statement at `location`"""
    return resolve_body(script, location.label_name, location.container_path)


def remove_statements(body: List[AstNode], ids: SetType[str]) -> List[str]:
    """Remove statements whose id is in `ids` from a body, recursively

    Sibling order is preserved

    Returns:
        List[str]: Ids of the removed statements in encounter order
    """
    removed: List[str] = []
    keep: List[AstNode] = []
    for node in body:
        if node.id in ids:
            removed.append(node.id)
            continue
        for nested in child_bodies(node):
            removed.extend(remove_statements(nested, ids))
        keep.append(node)
    body[:] = keep
    return removed


def remove_transfers_to_label(body: List[AstNode], label_name: str) -> List[str]:
    """Remove every jump/call targeting `label_name` from a body, recursively"""
    ids = {
        node.id for node, _ in iter_body(body, None)
        if isinstance(node, (Jump, Call)) and node.target == label_name
    }
    if not ids:
        return []
    return remove_statements(body, ids)


def nested_statement_ids(node: AstNode) -> List[str]:
    """Ids of every statement inside the bodies of `node`, in pre-order"""
    return [nested.id for body in child_bodies(node) for nested, _ in iter_body(body, None)]


def count_statements(body: List[AstNode]) -> int:
    """Count statements in a body including nested bodies"""
    return sum(1 for _ in iter_body(body, None))


def hash_script(script: Script, digest_size: int = 8) -> str:
    """Compute a content hash of the script tree

    The script is reduced to its canonical JSON form so two structurally
    equal trees hash identically regardless of object identity
    """
    from scriptflow.utils.serializers import script_to_dict

    canonical = json.dumps(script_to_dict(script), sort_keys=True, separators=(",", ":"))
    return hashlib.blake2b(canonical.encode("utf-8"), digest_size=digest_size).hexdigest()
