from __future__ import annotations

import json

import pytest

from scriptflow.cli import build_parser, main
from scriptflow.core.ast.nodes import Dialogue
from scriptflow.utils.serializers import dump_script
from tests.conftest import make_story


def test_graph_command_exports_json(story_file, tmp_path):
    out = tmp_path / "graph.json"
    assert main(["graph", str(story_file), "--json", str(out)]) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["nodes"]) == 9
    assert {e["id"] for e in data["edges"]} >= {"e-m1-d2-choice-1", "e-j1-good"}
    assert all(n["position"] is not None for n in data["nodes"])


def test_graph_command_prints_table(story_file, capsys):
    assert main(["graph", str(story_file), "--stats"]) == 0
    output = capsys.readouterr().out
    assert "Flow Graph" in output
    assert "Content Cache" in output


def test_status_command_on_clean_story(story_file):
    assert main(["status", str(story_file)]) == 0


def test_status_command_flags_dead_code(tmp_path):
    script = make_story()
    script.get_label("good").body.append(Dialogue(id="dz", text="dead"))
    path = tmp_path / "dead.yaml"
    dump_script(script, str(path))
    assert main(["status", str(path)]) == 1


def test_unreadable_file_exits_with_error(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["status", str(tmp_path / "missing.json")])
    assert excinfo.value.code == 1


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
