from scriptflow.core.ast.nodes import (
    AstNode, Script, Label, Dialogue, Scene, Show, Hide, With, Jump, Call, Return,
    Menu, Choice, If, Branch, Set, Python, Define, Default, Play, Stop, Pause, Nvl, Raw,
    NODE_CLASSES, LINEAR_TYPES, TERMINAL_TYPES, SET_OPERATORS, new_statement_id,
)
from scriptflow.core.ast.walker import (
    StatementLocation, ContainerPath, iter_statements, iter_body, find_statement,
    resolve_body, body_of, child_bodies, remove_statements, remove_transfers_to_label,
    nested_statement_ids, count_statements, hash_script,
)

__all__ = [
    "AstNode", "Script", "Label", "Dialogue", "Scene", "Show", "Hide", "With",
    "Jump", "Call", "Return", "Menu", "Choice", "If", "Branch", "Set", "Python",
    "Define", "Default", "Play", "Stop", "Pause", "Nvl", "Raw",
    "NODE_CLASSES", "LINEAR_TYPES", "TERMINAL_TYPES", "SET_OPERATORS", "new_statement_id",
    "StatementLocation", "ContainerPath", "iter_statements", "iter_body", "find_statement",
    "resolve_body", "body_of", "child_bodies", "remove_statements",
    "remove_transfers_to_label", "nested_statement_ids", "count_statements", "hash_script",
]
