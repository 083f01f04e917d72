"""Tests for built-in process types."""

import pytest

from modeler.foundation.errors import InvalidArgument
from modeler.foundation.graph import Graph
from modeler.foundation.node import Node
from modeler.foundation.registry import ProcessRegistry
from modeler.processes import AccumulateProcess, ConstantProcess, RenameProcess


def test_constant_ignores_inputs() -> None:
    p = ConstantProcess(config={"values": {"a": 1}})
    assert p.compute({"a": 5, "root": {"a": 9}}).output == {"a": 1}
    with pytest.raises(InvalidArgument):
        ConstantProcess(config={"values": [1]})


def test_rename_maps_keys_and_drops_root() -> None:
    p = RenameProcess(config={"mapping": {"x": "y"}})
    assert p.compute({"x": 1, "z": 2, "root": {"q": 0}}).output == {"y": 1, "z": 2}
    with pytest.raises(InvalidArgument):
        RenameProcess(config={"mapping": "x->y"})


def test_accumulate_keeps_running_total() -> None:
    p = AccumulateProcess(config={"key": "v", "into": "sum"})
    output, state = p.compute({"v": 2}, {})
    output, state = p.compute({"v": 3}, state)
    assert output == {"sum": 5}
    assert state == {"sum": 5}
    with pytest.raises(InvalidArgument):
        AccumulateProcess()


def test_builtins_registered(registry: ProcessRegistry) -> None:
    for name in ("identity", "constant", "rename", "accumulate", "expression"):
        assert name in registry


def test_builtins_in_a_graph(registry: ProcessRegistry) -> None:
    g = Graph.from_config(
        {
            "nodes": {
                "src": {"process": {"process_type": "constant", "config": {"values": {"v": 4}}}},
                "ren": {"process": {"process_type": "rename", "config": {"mapping": {"v": "w"}}}},
            },
            "edges": [["src", "ren"]],
        },
        registry=registry,
    )
    assert g.compute()["output"] == {"v": 4, "w": 4}
    assert isinstance(g.get_node("ren"), Node)
