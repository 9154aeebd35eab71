"""Defines the statement nodes of a parsed narrative script

A `Script` is a flat list of top-level statements; `Label` statements open
named entry points whose `body` holds further statements. `Menu` and `If`
statements own nested bodies through their choices and branches. Every
statement carries a stable `id` which is the join key between the script
tree and the flow graph derived from it

See Also:
    `scriptflow.core.ast.walker`: locating and splicing statements
    `scriptflow.builders.flow_graph_builder`: deriving a flow graph
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Type

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


def new_statement_id(prefix: str = "node") -> str:
    """Allocate a fresh statement id"""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class AstNode:
    """Base class for all script statements

    Attributes:
        id: Stable identifier of the statement
        line: Source line, if known
        raw: Original source text, if known
    """
    type: ClassVar[str] = "node"

    id: str
    line: Optional[int] = field(default=None, kw_only=True)
    raw: Optional[str] = field(default=None, kw_only=True)


@dataclass
class Label(AstNode):
    """A named entry point; its body is an ordered statement sequence"""
    type: ClassVar[str] = "label"

    name: str = ""
    body: List[AstNode] = field(default_factory=list)
    parameters: Optional[List[str]] = None


@dataclass
class Dialogue(AstNode):
    type: ClassVar[str] = "dialogue"

    speaker: Optional[str] = None
    text: str = ""
    attributes: Optional[List[str]] = None


@dataclass
class Scene(AstNode):
    type: ClassVar[str] = "scene"

    image: str = ""
    layer: Optional[str] = None


@dataclass
class Show(AstNode):
    type: ClassVar[str] = "show"

    image: str = ""
    attributes: Optional[List[str]] = None
    at_position: Optional[str] = None


@dataclass
class Hide(AstNode):
    type: ClassVar[str] = "hide"

    image: str = ""


@dataclass
class With(AstNode):
    type: ClassVar[str] = "with"

    transition: str = ""


@dataclass
class Jump(AstNode):
    """Unconditional transfer to the label named by `target`"""
    type: ClassVar[str] = "jump"

    target: str = ""
    expression: bool = False


@dataclass
class Call(AstNode):
    """Transfer to `target` that returns to the following statement"""
    type: ClassVar[str] = "call"

    target: str = ""
    arguments: Optional[List[str]] = None
    expression: bool = False


@dataclass
class Return(AstNode):
    type: ClassVar[str] = "return"

    value: Optional[str] = None


@dataclass
class Choice:
    """A single menu choice; not a statement, so it has no id"""
    text: str = ""
    condition: Optional[str] = None
    body: List[AstNode] = field(default_factory=list)


@dataclass
class Menu(AstNode):
    type: ClassVar[str] = "menu"

    prompt: Optional[str] = None
    choices: List[Choice] = field(default_factory=list)


@dataclass
class Branch:
    """A single if/elif/else branch; `condition` is None for else"""
    condition: Optional[str] = None
    body: List[AstNode] = field(default_factory=list)


@dataclass
class If(AstNode):
    type: ClassVar[str] = "if"

    branches: List[Branch] = field(default_factory=list)


@dataclass
class Set(AstNode):
    type: ClassVar[str] = "set"

    variable: str = ""
    operator: str = "="
    value: str = ""


@dataclass
class Python(AstNode):
    type: ClassVar[str] = "python"

    code: str = ""
    early: bool = False
    hide: bool = False


@dataclass
class Define(AstNode):
    type: ClassVar[str] = "define"

    name: str = ""
    value: str = ""
    store: Optional[str] = None


@dataclass
class Default(AstNode):
    type: ClassVar[str] = "default"

    name: str = ""
    value: str = ""


@dataclass
class Play(AstNode):
    type: ClassVar[str] = "play"

    channel: str = "music"
    file: str = ""
    fade_in: Optional[float] = None
    loop: Optional[bool] = None
    volume: Optional[float] = None
    queue: bool = False


@dataclass
class Stop(AstNode):
    type: ClassVar[str] = "stop"

    channel: str = "music"
    fade_out: Optional[float] = None


@dataclass
class Pause(AstNode):
    type: ClassVar[str] = "pause"

    duration: Optional[float] = None


@dataclass
class Nvl(AstNode):
    type: ClassVar[str] = "nvl"

    action: str = "show"


@dataclass
class Raw(AstNode):
    """Unsupported syntax kept verbatim"""
    type: ClassVar[str] = "raw"

    content: str = ""


SET_OPERATORS = ("=", "+=", "-=", "*=", "/=")

# Statements that transfer control away from the enclosing body
TERMINAL_TYPES = frozenset({"jump", "return"})

# Statements with no outgoing flow of their own; merged into dialogue blocks
LINEAR_TYPES = frozenset({
    "dialogue", "scene", "show", "hide", "with", "set", "python",
    "define", "default", "play", "stop", "pause", "nvl", "raw",
})

NODE_CLASSES: Dict[str, Type[AstNode]] = {
    cls.type: cls for cls in (
        Label, Dialogue, Scene, Show, Hide, With, Jump, Call, Return,
        Menu, If, Set, Python, Define, Default, Play, Stop, Pause, Nvl, Raw,
    )
}


@dataclass
class Script:
    """Root of a parsed script file

    Attributes:
        statements: Top-level statements (labels, defines, ...)
        file_path: Path of the file the script was parsed from
    """
    statements: List[AstNode] = field(default_factory=list)
    file_path: Optional[str] = None

    @property
    def labels(self) -> List[Label]:
        """Return the top-level labels in source order"""
        return [s for s in self.statements if isinstance(s, Label)]

    @property
    def label_names(self) -> List[str]:
        return [label.name for label in self.labels]

    def get_label(self, name: str) -> Optional[Label]:
        for label in self.labels:
            if label.name == name:
                return label
        return None
