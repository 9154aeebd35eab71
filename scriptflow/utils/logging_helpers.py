from __future__ import annotations
from functools import wraps
from typing import Callable, Any, TYPE_CHECKING, Dict, Union

from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.rule import Rule
import rich.box

if TYPE_CHECKING:
    from scriptflow.core.graph.flow_graph import FlowGraph, FlowNode
    from scriptflow.core.operations.results import OperationResult
    from scriptflow.session.editor_session import GraphStatus

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


class _NullConsole:
    def print(self, *args, **kwargs): pass
    def log(self, *args, **kwargs): pass
    def rule(self, *args, **kwargs): pass
    @property
    def size(self):
        class _Size:
            width = 80
        return _Size()
    def __getattr__(self, name):
        return self.print


AnyConsole = Union[Console, _NullConsole]


def log_phase(phase_name: str) -> Callable:
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger.info(f"🔄 {phase_name} started")
            result = func(*args, **kwargs)
            logger.info(f"✅ {phase_name} completed")
            return result
        return wrapper
    return decorator


def _node_summary(node: FlowNode) -> str:
    """One line description of a flow node for tables"""
    data = node.data
    kind = node.type.value
    if kind == "scene":
        return f"[bold]{data.get('label')}[/bold] [dim]({data.get('exit_type')})[/dim]"
    if kind == "dialogue-block":
        dialogues = data.get("dialogues", [])
        commands = len(data.get("visual_commands", [])) + len(data.get("commands", []))
        first = dialogues[0]["text"] if dialogues else ""
        return f"{len(dialogues)} lines, {commands} commands [dim]{first[:30]}[/dim]"
    if kind == "menu":
        texts = [c.get("text", "") for c in data.get("choices", [])]
        return " | ".join(texts) if texts else "[red]no choices[/red]"
    if kind == "condition":
        return " | ".join(str(b.get("condition") or "else") for b in data.get("branches", []))
    if kind in ("jump", "call"):
        return f"-> {data.get('target') or '[red]?[/red]'}"
    if kind == "return":
        return str(data.get("value") or "")
    return ""


def print_flow_graph_rich(graph: FlowGraph, console: AnyConsole) -> None:
    """Prints the nodes of a flow graph with their outgoing edges"""
    console.print(Rule("[bold blue]🧭 Flow Graph[/bold blue]"))
    table = Table(title=f"{len(graph.nodes)} nodes, {len(graph.edges)} edges",
                  show_header=True, header_style="bold magenta", box=rich.box.MINIMAL)
    table.add_column("Node ID", style="dim cyan")
    table.add_column("Type", style="blue")
    table.add_column("Summary", style="green")
    table.add_column("Position", style="yellow", justify="right")
    table.add_column("Outgoing", style="cyan")

    outgoing: Dict[str, list] = {}
    for edge in graph.edges:
        handle = f"[{edge.source_handle}]" if edge.source_handle else ""
        kind = "" if edge.type.value == "normal" else f" ({edge.type.value})"
        outgoing.setdefault(edge.source, []).append(f"{handle}{edge.target}{kind}")

    for node in graph.nodes:
        position = f"{node.position.x:g}, {node.position.y:g}" if node.position else "-"
        table.add_row(
            node.id,
            node.type.value,
            _node_summary(node),
            position,
            "\n".join(outgoing.get(node.id, [])) or "-",
        )

    if not graph.nodes:
        console.print("[yellow]The script has no labels to display.[/yellow]")
    else:
        console.print(table)
    console.print(Rule())


def print_graph_status_rich(status: GraphStatus, console: AnyConsole) -> None:
    """Prints disconnected, orphan and invalid-target nodes plus detected cycles"""
    console.print(Rule("[bold blue]🔎 Graph Status[/bold blue]"))
    table = Table(show_header=True, header_style="bold magenta", box=rich.box.ROUNDED)
    table.add_column("Check", style="dim cyan", width=18)
    table.add_column("Count", justify="right")
    table.add_column("Nodes", style="green")

    def style_count(count: int) -> str:
        return f"[red]{count}[/red]" if count else "[green]0[/green]"

    table.add_row("Disconnected", style_count(len(status.disconnected)), ", ".join(sorted(status.disconnected)))
    table.add_row("Orphans", style_count(len(status.orphans)), ", ".join(sorted(status.orphans)))
    table.add_row("Invalid targets", style_count(len(status.invalid_targets)), ", ".join(sorted(status.invalid_targets)))
    table.add_row(
        "Cycles",
        f"[yellow]{len(status.cycles)}[/yellow]",
        "\n".join(" -> ".join(cycle) for cycle in status.cycles),
    )
    console.print(table)
    console.print(Rule())


def print_cache_stats_rich(stats: Dict[str, Any], console: AnyConsole) -> None:
    """Prints the content cache statistics table"""
    from scriptflow.cache.content_cache import format_bytes

    table = Table(title="Content Cache", show_header=True, header_style="bold magenta", box=rich.box.MINIMAL)
    table.add_column("Metric", style="dim cyan", width=20)
    table.add_column("Value", style="green")
    table.add_row("Hits", str(stats.get("hits", 0)))
    table.add_row("Misses", str(stats.get("misses", 0)))
    table.add_row("Hit rate", f"{stats.get('hit_rate', 0.0):.0%}")
    table.add_row("AST entries", str(stats.get("ast_entries", 0)))
    table.add_row("Graph entries", str(stats.get("graph_entries", 0)))
    table.add_row("Evictions", str(stats.get("evictions", 0)))
    table.add_row("Memory", format_bytes(stats.get("memory_bytes", 0)))
    console.print(table)


def print_operation_result(operation: str, result: OperationResult, console: AnyConsole) -> None:
    """Prints a one line pass/fail summary of a graph edit"""
    if result.success:
        console.print(f"[green]✔ {operation}[/green]")
    else:
        kind = result.kind.value if result.kind else "Error"
        console.print(f"[bold red]✘ {operation}: {kind}[/bold red] [dim]{result.error}[/dim]")
