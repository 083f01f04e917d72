"""Tests for the modeler command line."""

import json

import pytest

from modeler import __version__
from modeler.cli import main

GRAPH = """\
graph_id: pricing
nodes:
  price:
    process:
      process_type: identity
  total:
    process:
      process_type: expression
      config:
        outputs:
          total: price * qty
    attributes:
      kind: result
edges:
  - [price, total]
"""


@pytest.fixture
def graph_file(tmp_path):
    path = tmp_path / "pricing.yaml"
    path.write_text(GRAPH)
    return path


def test_run(graph_file, capsys) -> None:
    assert main(["run", str(graph_file), "--input", '{"price": 2, "qty": 3}']) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["output"] == {"price": 2, "qty": 3, "total": 6}
    assert result["state"] == {}


def test_inspect(graph_file, capsys) -> None:
    assert main(["inspect", str(graph_file)]) == 0
    out = capsys.readouterr().out
    assert "graph pricing: 2 nodes, 1 edges" in out
    assert "price  [source]  identity" in out
    assert "price -> total" in out


def test_query(graph_file, capsys) -> None:
    assert main(["query", str(graph_file), "$sink [kind=result]"]) == 0
    assert capsys.readouterr().out.split() == ["total"]


def test_query_strict_setting(graph_file, capsys) -> None:
    assert main(["--set", "selector.strict=true", "query", str(graph_file), "??"]) == 1
    assert "error:" in capsys.readouterr().err


def test_processes(capsys) -> None:
    assert main(["processes"]) == 0
    listed = capsys.readouterr().out.split()
    assert "expression" in listed and "identity" in listed


def test_errors_exit_nonzero(tmp_path, graph_file, capsys) -> None:
    assert main(["run", str(tmp_path / "missing.yaml")]) == 1
    assert main(["run", str(graph_file), "--input", "[1]"]) == 1
    assert main(["run", str(graph_file), "--input", "{bad"]) == 1
    assert "error:" in capsys.readouterr().err


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_version(capsys) -> None:
    with pytest.raises(SystemExit):
        main(["--version"])
    assert __version__ in capsys.readouterr().out
