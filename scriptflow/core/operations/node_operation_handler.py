"""
Applies graph edits to the script tree

The `NodeOperationHandler` governs the node lifecycle:

    pending (pool only) -> committed (backed by statements) -> removed

- `create_node` only touches the pending pool
- `connect_nodes` commits a pending target (its data becomes statements
  spliced in after the source) or rewires a transfer to an existing scene
- `remove_connection` deletes exactly the statement an edge stands for, or
  undoes a commit made through the same edge
- `delete_node` removes a node from whichever store holds it

Every mutating call runs inside a transaction: the script tree and the pool
are snapshotted first and restored on any exception, so a failed edit never
leaves a partial splice behind. Failures of the `FlowSyncError` family come
back as `OperationResult(success=False, ...)`; anything else is re-raised
after the rollback
"""
from __future__ import annotations
import copy
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set, Tuple, Union

from loguru import logger

from scriptflow.config.config import AppConfig, config as global_config
from scriptflow.core.ast.nodes import (
    AstNode, Script, Label, Dialogue, Jump, Call, Return, Menu, Choice, If, Branch,
    new_statement_id,
)
from scriptflow.core.ast.walker import (
    body_of, child_bodies, find_statement, nested_statement_ids, remove_statements,
    remove_transfers_to_label,
)
from scriptflow.core.graph.flow_graph import EdgeType, FlowGraph, FlowNode, NodeType, Position
from scriptflow.core.graph.connection_utils import (
    Connection, create_edge_id, get_connected_edges, is_valid_connection,
)
from scriptflow.core.graph.node_connection_resolver import InsertPosition, NodeConnectionResolver
from scriptflow.core.graph.ports import PortKind, parse_handle
from scriptflow.core.operations.errors import (
    AmbiguousStatementMapping, FlowSyncError, InvalidConnection, MalformedHandle, UnresolvableLabel,
)
from scriptflow.core.operations.pending_node_pool import (
    PendingNode, PendingNodePool, PendingStatus, create_pending_node,
)
from scriptflow.core.operations.results import OperationResult
from scriptflow.utils.serializers import node_from_dict, node_to_dict

if TYPE_CHECKING:
    from scriptflow.cache.content_cache import ContentCache

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


TRANSFER_NODE_TYPES = (NodeType.JUMP, NodeType.CALL)
# Node types whose statements can go back to the pool without losing nested bodies
DETACHABLE_TYPES = (NodeType.DIALOGUE_BLOCK, NodeType.JUMP, NodeType.CALL, NodeType.RETURN)


@dataclass
class CommitRecord:
    """What committing a pending node changed, so the commit can be undone

    Attributes:
        node: The pending node as it was before the commit
        source_id: Node the committing connection left from
        source_handle: Port the committing connection left from
        statement_ids: Statements inserted by the commit
        retargets: Transfer statements whose target the commit changed,
            mapped to their previous target
    """
    node: PendingNode
    source_id: str
    source_handle: Optional[str]
    statement_ids: List[str]
    retargets: Dict[str, str] = field(default_factory=dict)


@dataclass
class NodeOperationHandler:
    """Transactional facade for graph edits

    Attributes:
        pool: Pending nodes of the open file
        cache: Content cache to invalidate after each successful mutation
        resolver: Label/insert-position lookups
        app_config: Configuration (node defaults, logging flags)
    """

    pool: PendingNodePool = field(default_factory=PendingNodePool)
    cache: Optional[ContentCache] = None
    resolver: NodeConnectionResolver = field(default_factory=NodeConnectionResolver)
    app_config: AppConfig = field(default_factory=lambda: global_config)

    _commits: Dict[str, CommitRecord] = field(init=False, default_factory=dict)

    # Node lifecycle

    def create_node(
        self,
        node_type: Union[NodeType, str],
        position: Optional[Union[Position, Dict[str, float]]] = None,
        data_overrides: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a pending node; the script tree is not touched

        Args:
            node_type: Flow node type (`dialogue-block`, `menu`, ...)
            position: Canvas position
            data_overrides: Values merged over the type defaults

        Returns:
            str: Id of the new node

        Raises:
            ValueError: If `node_type` is unknown
        """
        node = create_pending_node(node_type, position, data_overrides, app_config=self.app_config)
        self.pool.add(node)
        self._log(f"Created pending {node.type.value} node {node.id}")
        return node.id

    def connect_nodes(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[str],
        current_graph: FlowGraph,
        ast: Script,
        file_path: Optional[str] = None,
    ) -> OperationResult:
        """Connect two nodes and apply the connection to the script tree

        A pending target is committed: its data is turned into statements
        spliced in at the insert position of the source. An existing target
        must be a scene; the transfer statement the edge stands for is
        inserted or retargeted

        Args:
            source_id: Node the edge leaves from
            target_id: Node the edge enters
            source_handle: Port on the source; None for the default port
            current_graph: Graph the edit was made on (AST derived)
            ast: Script tree to mutate
            file_path: File owning the tree; defaults to `ast.file_path`

        Returns:
            OperationResult: success, or the failure kind and reason
        """
        self._require_ast(ast)
        try:
            with self._transaction(ast):
                self._connect(source_id, target_id, source_handle, current_graph, ast)
        except FlowSyncError as error:
            return self._failed("connect", error)

        self._after_mutation(ast, file_path)
        self._log(f"Connected {source_id} -> {target_id} [{source_handle}]")
        return OperationResult.ok(node_id=target_id)

    def remove_connection(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[str],
        current_graph: FlowGraph,
        ast: Script,
        file_path: Optional[str] = None,
    ) -> OperationResult:
        """Delete the statement an edge stands for

        Mappings, tried in order:

        1. The edge committed a pending node and the graph still shows it:
           the commit is undone and the node goes back to the pool as
           `detached`
        2. A transfer leaving a jump/call node: that statement is deleted
        3. An edge from a menu/condition port, scene or other node onto a
           scene: the single jump/call in the corresponding position that
           targets the scene's label is deleted
        4. The only incoming sequential edge of a leaf node: the node's
           statements are deleted and it goes back to the pool as `detached`

        Sibling statements keep their count and order. Anything that cannot
        be mapped to exactly one change fails with `AmbiguousStatementMapping`
        """
        self._require_ast(ast)
        try:
            with self._transaction(ast):
                removed_statements, removed_edges, detached = self._disconnect(
                    source_id, target_id, source_handle, current_graph, ast
                )
        except FlowSyncError as error:
            return self._failed("remove connection", error)

        self._after_mutation(ast, file_path)
        self._log(f"Removed connection {source_id} -> {target_id}; statements {removed_statements}")
        return OperationResult.ok(
            node_id=detached,
            removed_edges=removed_edges,
            removed_statements=removed_statements,
        )

    def delete_node(
        self,
        node_id: str,
        current_graph: FlowGraph,
        ast: Script,
        file_path: Optional[str] = None,
    ) -> OperationResult:
        """Remove a node from the pool or the script tree, with its edges

        Deleting a scene removes its label and every jump/call targeting it
        """
        if self.pool.is_pending(node_id):
            self.pool.remove(node_id)
            return OperationResult.ok(node_id=node_id)

        self._require_ast(ast)
        try:
            with self._transaction(ast):
                removed_statements = self._delete_statements(node_id, current_graph, ast)
        except FlowSyncError as error:
            return self._failed("delete", error)

        removed = set(removed_statements)
        affected = {node_id} | {n.id for n in current_graph.nodes if removed & set(n.ast_nodes)}
        removed_edges = [
            e.id for e in current_graph.edges if e.source in affected or e.target in affected
        ]
        self._commits.pop(node_id, None)
        self._after_mutation(ast, file_path)
        self._log(f"Deleted node {node_id}; statements {removed_statements}")
        return OperationResult.ok(
            node_id=node_id,
            removed_edges=removed_edges,
            removed_statements=removed_statements,
        )

    def get_orphan_nodes(self, graph: FlowGraph) -> List[FlowNode]:
        """Return script-backed orphans plus every unconnected pending node

        Unconnected pending nodes are marked `orphan` in the pool
        """
        orphans = self.resolver.get_orphan_nodes(graph.nodes, graph.edges)
        known = {node.id for node in orphans}
        for pending in self.pool.get_orphan_nodes(graph.edges):
            self.pool.update_status(pending.id, PendingStatus.ORPHAN)
            if pending.id not in known:
                orphans.append(pending.to_flow_node())
        return orphans

    # Pool pass-throughs

    def is_pending_node(self, node_id: str) -> bool:
        return self.pool.is_pending(node_id)

    def get_pending_node(self, node_id: str) -> Optional[PendingNode]:
        return self.pool.get(node_id)

    def get_all_pending_nodes(self) -> List[PendingNode]:
        return self.pool.get_all()

    def clear_pending_nodes(self) -> None:
        self.pool.clear()
        self._commits.clear()

    def update_pending_node_data(self, node_id: str, data: Dict[str, Any]) -> bool:
        return self.pool.update_data(node_id, data)

    def update_pending_node_position(self, node_id: str, position: Union[Position, Dict[str, float]]) -> bool:
        return self.pool.update_position(node_id, position)

    # Connect

    def _connect(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[str],
        current_graph: FlowGraph,
        ast: Script,
    ) -> None:
        merged = current_graph.with_nodes(p.to_flow_node() for p in self.pool.get_all())
        source = merged.get_node(source_id)
        target = merged.get_node(target_id)
        if source is None:
            raise InvalidConnection("Unknown source node", source_id)
        if target is None:
            raise InvalidConnection("Unknown target node", target_id)

        self._check_handle(source, source_handle)
        connection = Connection(source_id, target_id, source_handle)
        if not is_valid_connection(connection, merged.nodes, merged.edges):
            raise InvalidConnection(
                f"Connection {source_id} -> {target_id} violates the port rules or already exists", source_id
            )

        if self.pool.is_pending(source_id):
            raise UnresolvableLabel("Source node is not part of any scene yet", source_id)
        position = self.resolver.determine_insert_position(source_id, merged.edges, merged.nodes, source_handle)
        if position is None:
            raise UnresolvableLabel("Cannot resolve the label the source node belongs to", source_id)

        pending = self.pool.get(target_id)
        if pending is not None:
            self._commit_pending(source, source_handle, pending, position, ast)
        else:
            if target.type != NodeType.SCENE or not target.label:
                raise InvalidConnection("Existing nodes can only be connected to a scene", target_id)
            if ast.get_label(target.label) is None:
                raise UnresolvableLabel(f"Label '{target.label}' is not in the script", target_id)
            self._link_to_scene(source, source_handle, target.label, ast)

    def _check_handle(self, source: FlowNode, handle: Optional[str]) -> None:
        if handle is None:
            return
        try:
            kind, index = parse_handle(handle)
        except ValueError as error:
            raise MalformedHandle(str(error), source.id) from error

        if kind == PortKind.CHOICE and source.type == NodeType.MENU:
            count = len(source.data.get("choices") or [])
        elif kind == PortKind.BRANCH and source.type == NodeType.CONDITION:
            count = len(source.data.get("branches") or [])
        else:
            raise MalformedHandle(f"Handle '{handle}' does not exist on a {source.type.value} node", source.id)
        if index is None or index >= count:
            raise MalformedHandle(f"Handle '{handle}' is out of range ({count} ports)", source.id)

    def _commit_pending(
        self,
        source: FlowNode,
        source_handle: Optional[str],
        pending: PendingNode,
        position: InsertPosition,
        ast: Script,
    ) -> None:
        record = CommitRecord(
            node=copy.deepcopy(pending),
            source_id=source.id,
            source_handle=source_handle,
            statement_ids=[],
        )

        if pending.type == NodeType.SCENE:
            label_name = pending.data.get("label") or self.app_config.node_defaults.new_label_name
            if ast.get_label(label_name) is not None:
                raise InvalidConnection(f"Label '{label_name}' already exists", pending.id)
            ast.statements.append(Label(id=pending.id, name=label_name))
            record.statement_ids.append(pending.id)
            inserted, retargets = self._link_to_scene(source, source_handle, label_name, ast)
            record.statement_ids.extend(inserted)
            record.retargets.update(retargets)
        else:
            statements = self._synthesize(pending)
            body, index = self._insertion_point(source, source_handle, position, ast)
            body[index:index] = statements
            record.statement_ids.extend(s.id for s in statements)
            # An earlier commit at the same insert point no longer follows the source
            stale = [
                node_id for node_id, other in self._commits.items()
                if other.node.type != NodeType.SCENE
                and other.source_id == source.id and other.source_handle == source_handle
            ]
            for node_id in stale:
                del self._commits[node_id]

        self._commits[pending.id] = record
        self.pool.remove(pending.id)
        self._log(f"Committed {pending.id} into '{position.label_name}' as {record.statement_ids}")

    def _synthesize(self, pending: PendingNode) -> List[AstNode]:
        """Turn a pending node's data into statements

        The first statement takes the pending node's id so the rebuilt graph
        keeps showing the node under the same id. A detached node replays the
        statements it was cut from, ids and order included
        """
        data = pending.data
        if data.get("statements"):
            try:
                return [node_from_dict(copy.deepcopy(item)) for item in data["statements"]]
            except (ValueError, TypeError) as error:
                raise InvalidConnection(f"Bad detached statement: {error}", pending.id) from error

        counter = iter(range(1_000_000))

        def next_id() -> str:
            n = next(counter)
            return pending.id if n == 0 else f"{pending.id}-{n}"

        if pending.type == NodeType.DIALOGUE_BLOCK:
            statements: List[AstNode] = []
            for command in list(data.get("visual_commands") or []) + list(data.get("commands") or []):
                try:
                    statements.append(node_from_dict({**command, "id": next_id()}))
                except (ValueError, TypeError) as error:
                    raise InvalidConnection(f"Bad command in dialogue block: {error}", pending.id) from error
            for item in data.get("dialogues") or []:
                statements.append(Dialogue(
                    id=next_id(),
                    speaker=item.get("speaker"),
                    text=item.get("text", ""),
                    attributes=item.get("attributes"),
                ))
            if not statements:
                raise InvalidConnection("Dialogue block has no content", pending.id)
            return statements

        if pending.type == NodeType.MENU:
            choices = [
                Choice(text=c.get("text", ""), condition=c.get("condition"))
                for c in data.get("choices") or []
            ]
            if not choices:
                raise InvalidConnection("Menu needs at least one choice", pending.id)
            return [Menu(id=next_id(), prompt=data.get("prompt"), choices=choices)]

        if pending.type == NodeType.CONDITION:
            branches = [Branch(condition=b.get("condition")) for b in data.get("branches") or []]
            if not branches:
                raise InvalidConnection("Condition needs at least one branch", pending.id)
            return [If(id=next_id(), branches=branches)]

        if pending.type in TRANSFER_NODE_TYPES:
            target = data.get("target")
            if not target:
                raise InvalidConnection(f"{pending.type.value} node has no target label", pending.id)
            if pending.type == NodeType.JUMP:
                return [Jump(id=next_id(), target=target, expression=bool(data.get("expression")))]
            return [Call(
                id=next_id(), target=target,
                arguments=data.get("arguments"), expression=bool(data.get("expression")),
            )]

        if pending.type == NodeType.RETURN:
            return [Return(id=next_id(), value=data.get("value"))]

        raise InvalidConnection(f"Cannot commit a {pending.type.value} node", pending.id)

    def _insertion_point(
        self,
        source: FlowNode,
        source_handle: Optional[str],
        position: InsertPosition,
        ast: Script,
    ) -> Tuple[List[AstNode], int]:
        """Resolve an insert position to a mutable body and an index in it"""
        if source.type == NodeType.SCENE:
            label = ast.get_label(position.label_name)
            if label is None:
                raise UnresolvableLabel(f"Label '{position.label_name}' is not in the script", source.id)
            return label.body, 0

        if source_handle is not None:
            return self._port_body(source, source_handle, ast), 0

        last, location = self._require_statement(ast, source.ast_nodes[-1] if source.ast_nodes else None, source.id)
        body = body_of(ast, location)
        if body is None:
            raise AmbiguousStatementMapping("Cannot resolve the body holding the source statements", source.id)
        return body, location.index + 1

    def _port_body(self, source: FlowNode, source_handle: str, ast: Script) -> List[AstNode]:
        owner, _ = self._require_statement(ast, source.ast_nodes[0] if source.ast_nodes else None, source.id)
        _, index = parse_handle(source_handle)
        bodies = child_bodies(owner)
        if index is None or not isinstance(owner, (Menu, If)) or index >= len(bodies):
            raise MalformedHandle(f"Handle '{source_handle}' does not match the script", source.id)
        return bodies[index]

    def _link_to_scene(
        self,
        source: FlowNode,
        source_handle: Optional[str],
        label_name: str,
        ast: Script,
    ) -> Tuple[List[str], Dict[str, str]]:
        """Insert or retarget the transfer that makes `source` flow into `label_name`

        Returns:
            Tuple[List[str], Dict[str, str]]: Inserted statement ids and
                retargeted statement ids mapped to their previous target
        """
        if source_handle is not None:
            body = self._port_body(source, source_handle, ast)
            existing = next((s for s in body if isinstance(s, Jump)), None)
            if existing is not None:
                return self._retarget(existing, label_name)
            jump = Jump(id=new_statement_id("jump"), target=label_name)
            body.append(jump)
            return [jump.id], {}

        if source.type == NodeType.CALL:
            statement, _ = self._require_statement(ast, source.ast_nodes[0] if source.ast_nodes else None, source.id)
            return self._retarget(statement, label_name)

        if source.type == NodeType.SCENE:
            label = ast.get_label(source.label or "")
            if label is None:
                raise UnresolvableLabel(f"Label '{source.label}' is not in the script", source.id)
            jump = Jump(id=new_statement_id("jump"), target=label_name)
            label.body.insert(0, jump)
            return [jump.id], {}

        _, location = self._require_statement(ast, source.ast_nodes[-1] if source.ast_nodes else None, source.id)
        body = body_of(ast, location)
        if body is None:
            raise AmbiguousStatementMapping("Cannot resolve the body holding the source statements", source.id)
        following = body[location.index + 1] if location.index + 1 < len(body) else None
        if isinstance(following, Jump):
            return self._retarget(following, label_name)
        jump = Jump(id=new_statement_id("jump"), target=label_name)
        body.insert(location.index + 1, jump)
        return [jump.id], {}

    @staticmethod
    def _retarget(statement: AstNode, label_name: str) -> Tuple[List[str], Dict[str, str]]:
        if not isinstance(statement, (Jump, Call)):
            raise AmbiguousStatementMapping("Statement is not a jump or call", statement.id)
        previous = statement.target
        statement.target = label_name
        return [], {statement.id: previous}

    # Disconnect

    def _disconnect(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[str],
        current_graph: FlowGraph,
        ast: Script,
    ) -> Tuple[List[str], List[str], Optional[str]]:
        edge_id = create_edge_id(source_id, target_id, source_handle)

        record = self._commits.get(target_id)
        if record is not None and record.source_id == source_id and record.source_handle == source_handle:
            if not self._commit_visible(record, current_graph):
                raise AmbiguousStatementMapping(f"Edge {edge_id} is not in the graph", target_id)
            removed = self._undo_commit(record, ast)
            return removed, [edge_id], target_id

        source = current_graph.get_node(source_id)
        target = current_graph.get_node(target_id)
        if source is None or target is None:
            raise AmbiguousStatementMapping(f"Edge {edge_id} references an unknown node")

        if target.type == NodeType.SCENE:
            statement = self._find_transfer(source, source_handle, target.label or "", ast)
            removed = self._remove_exact(ast, {statement.id})
            return removed, [edge_id], None

        edges = current_graph.find_edges(source_id, target_id, source_handle)
        if len(edges) != 1 or edges[0].type != EdgeType.NORMAL:
            raise AmbiguousStatementMapping(f"No single sequential edge {edge_id} in the graph")
        if target.type not in DETACHABLE_TYPES:
            raise AmbiguousStatementMapping(
                f"A {target.type.value} node owns nested bodies; delete the node instead", target_id
            )
        incoming = [e for e in current_graph.edges if e.target == target_id]
        if len(incoming) != 1:
            raise AmbiguousStatementMapping("Node is entered from several places", target_id)

        statements = [
            node_to_dict(self._require_statement(ast, statement_id, target_id)[0])
            for statement_id in target.ast_nodes
        ]
        removed = self._remove_exact(ast, set(target.ast_nodes))
        data = {k: copy.deepcopy(v) for k, v in target.data.items() if k != "ast_nodes"}
        # Replayed verbatim on reconnect so order and ids survive the round trip
        data["statements"] = statements
        self.pool.add(PendingNode(
            id=target.id,
            type=target.type,
            position=copy.deepcopy(target.position),
            data=data,
            status=PendingStatus.DETACHED,
        ))
        return removed, [edges[0].id], target_id

    def _find_transfer(self, source: FlowNode, source_handle: Optional[str], label_name: str, ast: Script) -> AstNode:
        """Find the single jump/call statement an edge onto a scene stands for"""
        if source.type in TRANSFER_NODE_TYPES:
            statement, _ = self._require_statement(ast, source.ast_nodes[0] if source.ast_nodes else None, source.id)
            if not isinstance(statement, (Jump, Call)) or statement.target != label_name:
                raise AmbiguousStatementMapping(f"{source.type.value} does not target '{label_name}'", source.id)
            return statement

        if source_handle is not None:
            candidates = self._port_body(source, source_handle, ast)
        elif source.type == NodeType.SCENE:
            label = ast.get_label(source.label or "")
            candidates = label.body[:1] if label is not None else []
        else:
            _, location = self._require_statement(ast, source.ast_nodes[-1] if source.ast_nodes else None, source.id)
            body = body_of(ast, location) or []
            candidates = body[location.index + 1:location.index + 2]

        matches = [s for s in candidates if isinstance(s, (Jump, Call)) and s.target == label_name]
        if len(matches) != 1:
            raise AmbiguousStatementMapping(
                f"Found {len(matches)} transfers to '{label_name}' for this edge", source.id
            )
        return matches[0]

    @staticmethod
    def _commit_visible(record: CommitRecord, current_graph: FlowGraph) -> bool:
        """Whether the graph still shows the connection that made a commit

        A committed scene is reached through the jump the commit inserted,
        so the scene node being present is enough; any other commit needs
        its own edge from the source
        """
        node_id = record.node.id
        if record.node.type == NodeType.SCENE:
            return current_graph.has_node(node_id)
        return bool(current_graph.find_edges(record.source_id, node_id, record.source_handle))

    def _undo_commit(self, record: CommitRecord, ast: Script) -> List[str]:
        restored = 0
        for statement_id, previous in record.retargets.items():
            found = find_statement(ast, statement_id)
            if found is not None and isinstance(found[0], (Jump, Call)):
                found[0].target = previous
                restored += 1
        removed = remove_statements(ast.statements, set(record.statement_ids))
        if not removed and not restored:
            self._commits.pop(record.node.id, None)
            raise AmbiguousStatementMapping("Committed statements are no longer in the script", record.node.id)

        node = copy.deepcopy(record.node)
        node.status = PendingStatus.DETACHED
        self.pool.add(node)
        del self._commits[record.node.id]
        return removed

    # Delete

    def _delete_statements(self, node_id: str, current_graph: FlowGraph, ast: Script) -> List[str]:
        node = current_graph.get_node(node_id)
        if node is None:
            raise AmbiguousStatementMapping("Unknown node", node_id)

        if node.type == NodeType.SCENE:
            label = ast.get_label(node.label or "")
            if label is None:
                raise AmbiguousStatementMapping(f"Label '{node.label}' is not in the script", node_id)
            removed: List[str] = []
            for other in ast.labels:
                if other is not label:
                    removed.extend(remove_transfers_to_label(other.body, label.name))
            nested = nested_statement_ids(label)
            removed.extend(remove_statements(ast.statements, {label.id}))
            return removed + nested

        # Statements inside a removed menu/if go with it
        nested: List[str] = []
        for statement_id in node.ast_nodes:
            found = find_statement(ast, statement_id)
            if found is not None:
                nested.extend(nested_statement_ids(found[0]))
        return self._remove_exact(ast, set(node.ast_nodes)) + nested

    # Helpers

    @staticmethod
    def _remove_exact(ast: Script, ids: Set[str]) -> List[str]:
        removed = remove_statements(ast.statements, ids)
        if not ids or len(removed) != len(ids):
            raise AmbiguousStatementMapping(
                f"Expected to remove {len(ids)} statements, found {len(removed)}"
            )
        return removed

    @staticmethod
    def _require_statement(ast: Script, statement_id: Optional[str], node_id: str):
        found = find_statement(ast, statement_id) if statement_id else None
        if found is None:
            raise AmbiguousStatementMapping("Node statements are no longer in the script", node_id)
        return found

    @staticmethod
    def _require_ast(ast: Script) -> None:
        if ast is None:
            raise ValueError("A script tree is required for graph edits")

    @contextmanager
    def _transaction(self, ast: Script) -> Iterator[None]:
        statements = copy.deepcopy(ast.statements)
        pool_nodes = self.pool.snapshot()
        commits = dict(self._commits)
        try:
            yield
        except BaseException:
            ast.statements[:] = statements
            self.pool.restore(pool_nodes)
            self._commits = commits
            raise

    def _after_mutation(self, ast: Script, file_path: Optional[str]) -> None:
        path = file_path or ast.file_path
        if self.cache is None or path is None:
            return
        self.cache.invalidate(path)
        self.cache.register_ast(path, ast)

    def _failed(self, operation: str, error: FlowSyncError) -> OperationResult:
        if self.app_config.developer_options.operations_log:
            logger.warning(f"{operation} failed: {error.kind.value}: {error}")
        return OperationResult.failure(error)

    def _log(self, message: str) -> None:
        if self.app_config.developer_options.operations_log:
            logger.debug(message)
