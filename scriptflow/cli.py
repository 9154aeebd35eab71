"""Provide a command-line interface for inspecting script flow graphs

Exposes the 'graph' command to build and lay out the flow graph of a
serialized script tree, and the 'status' command to report disconnected,
orphan and invalid-target nodes plus cycles
"""
from __future__ import annotations
import argparse
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.rule import Rule

from scriptflow.config.config import config
from scriptflow.session.editor_session import EditorSession
from scriptflow.utils.logging_helpers import print_cache_stats_rich, print_flow_graph_rich, print_graph_status_rich
from scriptflow.utils.serializers import dump_flow_graph

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


def _open_session(path: str, console: Console) -> EditorSession:
    """Read `path` into a fresh editor session

    Raises:
        SystemExit: If the file cannot be read or parsed
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[bold red]Cannot read {file_path}: {e}[/bold red]")
        raise SystemExit(1) from e

    session = EditorSession(app_config=config)
    try:
        session.open_file(str(file_path), content)
    except (ValueError, TypeError) as e:
        console.print(f"[bold red]Cannot load script tree from {file_path}: {e}[/bold red]")
        raise SystemExit(1) from e
    return session


def handle_graph(args: argparse.Namespace) -> int:
    """Build, lay out and print (or export) the flow graph of a script file

    Args:
        args (argparse.Namespace): Parsed command-line arguments

    Returns:
        int: Process exit code
    """
    console = Console()
    if args.columns is not None:
        console.print(Rule("[cyan]Processing CLI Overrides[/cyan]"))
        config.apply_overrides({'max_columns': args.columns})
        console.print(f"  [magenta]Applied Override:[/magenta] Max Columns = {config.layout.max_columns}")
        console.print(Rule())

    session = _open_session(args.file, console)
    graph = session.current_graph()

    if args.json:
        dump_flow_graph(graph, args.json)
        console.print(f"[green]Flow graph written to {args.json}[/green]")
    else:
        print_flow_graph_rich(graph, console)

    if args.stats:
        print_cache_stats_rich(session.cache.get_stats(), console)
    return 0


def handle_status(args: argparse.Namespace) -> int:
    """Print the reachability report of a script file

    Returns:
        int: 0 when no disconnected, orphan or invalid-target node exists, 1 otherwise
    """
    console = Console()
    session = _open_session(args.file, console)
    status = session.status()
    print_graph_status_rich(status, console)
    if status.is_clean:
        console.print("[bold green]✅ Every node is reachable and every target resolves.[/bold green]")
        return 0
    console.print("[bold yellow]⚠️ The flow graph has unreachable nodes or unresolved targets.[/bold yellow]")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scriptflow",
        description="ScriptFlow CLI. Builds flow graphs from serialized script trees (.json/.yaml).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=
"""Available Commands:
  graph FILE   Build and lay out the flow graph; print it or export it as JSON.
  status FILE  Report disconnected, orphan and invalid-target nodes and cycles.

Example: scriptflow --debug graph story.yaml --columns 4 --json story.graph.json
"""
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable detailed loguru logging to stderr.'
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands', required=True)

    parser_graph = subparsers.add_parser('graph', help='Build and lay out the flow graph of a script file.')
    parser_graph.add_argument('file', help='Serialized script tree (.json, .yaml or .yml).')
    parser_graph.add_argument('--columns', type=int, help='Override layout.max_columns from config.yaml.')
    parser_graph.add_argument('--json', metavar='OUT', help='Write the graph as {nodes, edges} JSON to OUT.')
    parser_graph.add_argument('--stats', action='store_true', help='Print content cache statistics.')
    parser_graph.set_defaults(func=handle_graph)

    parser_status = subparsers.add_parser('status', help='Report reachability problems of a script file.')
    parser_status.add_argument('file', help='Serialized script tree (.json, .yaml or .yml).')
    parser_status.set_defaults(func=handle_status)
    return parser


def main(argv=None) -> int:
    """Parse CLI arguments and execute the requested command"""
    logger.remove()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        config.apply_overrides({'debug': True})
        logger.add(
            sys.stderr,
            level="DEBUG",
            format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>",
            colorize=True
        )
        logger.info("Loguru logging enabled.")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
