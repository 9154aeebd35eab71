"""
Serialization functions for converting the script tree and flow graphs to
and from plain data (dict / JSON / YAML)

The textual script format has its own parser outside this package; these
codecs carry an already parsed tree between processes, the CLI and the
content cache
"""
from __future__ import annotations
import json
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import yaml
from loguru import logger

from scriptflow.core.ast.nodes import (
    AstNode, Script, Choice, Branch, NODE_CLASSES, new_statement_id,
)

if TYPE_CHECKING:
    from scriptflow.core.graph.flow_graph import FlowGraph

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"


def node_to_dict(node: AstNode) -> Dict[str, Any]:
    """Convert one statement (and its nested bodies) to a plain dict"""
    data: Dict[str, Any] = {"type": node.type}
    for f in fields(node):
        value = getattr(node, f.name)
        if f.name in ("line", "raw") and value is None:
            continue
        if f.name == "body":
            data["body"] = [node_to_dict(child) for child in value]
        elif f.name == "choices":
            data["choices"] = [
                {"text": c.text, "condition": c.condition, "body": [node_to_dict(s) for s in c.body]}
                for c in value
            ]
        elif f.name == "branches":
            data["branches"] = [
                {"condition": b.condition, "body": [node_to_dict(s) for s in b.body]}
                for b in value
            ]
        elif isinstance(value, list):
            data[f.name] = list(value)
        else:
            data[f.name] = value
    return data


def script_to_dict(script: Script) -> Dict[str, Any]:
    return {
        "file_path": script.file_path,
        "statements": [node_to_dict(s) for s in script.statements],
    }


def node_from_dict(data: Dict[str, Any]) -> AstNode:
    """Build a statement from its dict form

    Raises:
        ValueError: If the statement type is unknown
    """
    node_type = data.get("type")
    cls = NODE_CLASSES.get(node_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown statement type: {node_type!r}")

    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "type":
            continue
        if key not in known:
            logger.warning(f"Ignoring unknown field '{key}' on {node_type} statement")
            continue
        if key == "body":
            kwargs["body"] = [node_from_dict(child) for child in value or []]
        elif key == "choices":
            kwargs["choices"] = [
                Choice(
                    text=c.get("text", ""),
                    condition=c.get("condition"),
                    body=[node_from_dict(s) for s in c.get("body") or []],
                )
                for c in value or []
            ]
        elif key == "branches":
            kwargs["branches"] = [
                Branch(
                    condition=b.get("condition"),
                    body=[node_from_dict(s) for s in b.get("body") or []],
                )
                for b in value or []
            ]
        else:
            kwargs[key] = value
    if not kwargs.get("id"):
        kwargs["id"] = new_statement_id(cls.type)
    return cls(**kwargs)


def script_from_dict(data: Dict[str, Any]) -> Script:
    return Script(
        statements=[node_from_dict(s) for s in data.get("statements") or []],
        file_path=data.get("file_path"),
    )


def parse_script_content(content: str, file_path: Optional[str] = None) -> Script:
    """Parse a JSON or YAML document holding a serialized script tree

    YAML is a superset of JSON, so one loader covers both forms

    Raises:
        ValueError: If the document is not a mapping
    """
    data = yaml.safe_load(content) if content.strip() else {}
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Script document must be a mapping with a 'statements' list")
    script = script_from_dict(data)
    if file_path is not None:
        script.file_path = file_path
    return script


def load_script(path: str) -> Script:
    """Load a serialized script tree from a .json/.yaml file"""
    file_path = Path(path)
    with open(file_path, "r", encoding="utf-8") as f:
        content = f.read()
    logger.debug(f"Loaded {len(content)} bytes from {file_path}")
    return parse_script_content(content, str(file_path))


def dump_script(script: Script, path: Optional[str] = None) -> str:
    """Serialize a script tree; writes it to `path` when given

    The format follows the file suffix (.yaml/.yml for YAML, JSON otherwise)
    """
    data = script_to_dict(script)
    if path is not None and Path(path).suffix in (".yaml", ".yml"):
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False)
    if path is not None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"Script written to {path}")
    return text


def flow_graph_to_dict(graph: FlowGraph) -> Dict[str, List[Dict[str, Any]]]:
    """Serialize a flow graph to the `{nodes, edges}` structure the views render"""
    nodes_data = []
    for node in graph.nodes:
        nodes_data.append({
            "id": node.id,
            "type": node.type.value,
            "position": {"x": node.position.x, "y": node.position.y} if node.position else None,
            "data": node.data,
        })

    edges_data = []
    for edge in graph.edges:
        edge_info: Dict[str, Any] = {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "type": edge.type.value,
        }
        if edge.source_handle is not None:
            edge_info["sourceHandle"] = edge.source_handle
        if edge.target_handle is not None:
            edge_info["targetHandle"] = edge.target_handle
        if not edge.valid:
            edge_info["valid"] = False
        edges_data.append(edge_info)

    return {"nodes": nodes_data, "edges": edges_data}


def dump_flow_graph(graph: FlowGraph, path: Optional[str] = None) -> str:
    """Serialize a flow graph to a JSON string; writes it to `path` when given"""
    text = json.dumps(flow_graph_to_dict(graph), indent=2, ensure_ascii=False)
    if path is not None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"Flow graph written to {path}")
    return text
