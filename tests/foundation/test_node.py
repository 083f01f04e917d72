"""Tests for foundation.Node."""

from types import MappingProxyType

import pytest
from omegaconf import OmegaConf

from modeler.foundation.errors import CycleDetected, Disposed, DuplicateEdge, InvalidArgument, NotFound
from modeler.foundation.node import Node, NodeType
from modeler.foundation.process import FunctionProcess, IdentityProcess
from modeler.foundation.registry import ProcessRegistry
from modeler.processes import AccumulateProcess
from tests.foundation.helpers import CountingProcess, Recorder, counting_node, func_node


def test_node_defaults() -> None:
    n = Node()
    assert isinstance(n.process, IdentityProcess)
    assert n.node_id.startswith("identity_")
    assert n.output.get_value() == {}
    assert n.inputs == ()
    assert n.state == {}


def test_node_blank_id_raises() -> None:
    with pytest.raises(InvalidArgument):
        Node("  ")


def test_classification() -> None:
    n = Node("n")
    assert n.get_type() is NodeType.ISOLATED

    downstream = Node("d")
    downstream.connect(n)
    assert n.get_type() is NodeType.SOURCE
    assert downstream.get_type() is NodeType.SINK

    middle_upstream = Node("u")
    n.connect(middle_upstream)
    assert n.get_type() is NodeType.INTERIOR
    assert int(NodeType.INTERIOR) == -1


def test_external_listener_counts_as_downstream() -> None:
    n = Node("n")
    n.output.add_listener(Recorder())
    assert n.get_type() is NodeType.SOURCE


def test_connect_and_disconnect() -> None:
    a, b = Node("a"), Node("b")
    b.connect(a)
    assert [binding.ref_id for binding in b.inputs] == ["a"]
    assert a.output.listener_count() == 1
    b.disconnect("a")
    assert b.inputs == ()
    assert a.output.listener_count() == 0


def test_duplicate_connect_raises() -> None:
    a, b = Node("a"), Node("b")
    b.connect(a)
    with pytest.raises(DuplicateEdge):
        b.connect(a)
    assert a.output.listener_count() == 1


def test_self_connect_raises() -> None:
    a = Node("a")
    with pytest.raises(CycleDetected):
        a.connect(a)


def test_disconnect_missing_raises() -> None:
    with pytest.raises(NotFound):
        Node("b").disconnect("a")


def test_connect_seeds_binding_with_current_output() -> None:
    a = Node("a")
    a.compute({"x": 1})
    b = Node("b")
    b.connect(a)
    assert b.get_binding(a).data == {"x": 1}


def test_reactive_propagation() -> None:
    a = func_node("A", lambda inputs, state: {"output": {"x": inputs["root"]["x"]}})
    b = func_node("B", lambda inputs, state: {"output": {"y": inputs["x"] * 2}})
    b.connect(a)
    a.compute({"x": 5})
    assert b.output.get_value() == {"y": 10}
    assert b.output.get_value("y") == 10


def test_merge_later_inputs_win_and_root_is_reserved() -> None:
    a = Node("a", FunctionProcess(lambda i, s: {"output": {"v": "a", "root": "shadow"}}))
    b = Node("b", FunctionProcess(lambda i, s: {"output": {"v": "b"}}))
    seen = {}

    def capture(inputs, state):
        seen.update(inputs)
        return {"output": {}}

    c = Node("c", FunctionProcess(capture))
    c.connect(a).connect(b)
    a.compute()
    b.compute()
    c.compute({"r": 1})
    assert seen["v"] == "b"
    assert seen["root"] == {"r": 1}


def test_state_is_kept_between_computations() -> None:
    n = Node("acc", AccumulateProcess(config={"key": "v"}))
    n.compute()
    src = Node("src")
    n.connect(src)
    src.compute({"v": 2})
    src.compute({"v": 3})
    assert n.output.get_value() == {"total": 5}
    assert n.state == {"total": 5}


def test_root_state_is_visible_to_process() -> None:
    seen = {}

    def capture(inputs, state):
        seen.update(state)
        return {"output": {}, "state": state}

    n = Node("n", FunctionProcess(capture))
    n.compute(root_state={"mode": "fast"})
    assert seen["root"] == {"mode": "fast"}
    assert "root" not in n.state


def test_empty_output_is_not_published() -> None:
    n = func_node("n", lambda inputs, state: {"output": {}})
    rec = Recorder()
    n.output.add_listener(rec)
    assert n.compute() == {}
    assert rec.calls == []


def test_update_swaps_process_without_recompute() -> None:
    n = counting_node("n")
    n.compute()
    first = n.process
    replacement = CountingProcess(config={"tag": "other"})
    n.update(replacement)
    assert n.process is replacement
    assert replacement.calls == 0
    assert n.compute()["other"] == 1
    assert first.calls == 1
    with pytest.raises(InvalidArgument):
        n.update(lambda i, s: None)


def test_push_cycle_is_detected() -> None:
    a, b = Node("a"), Node("b")
    b.connect(a)
    a.connect(b)
    with pytest.raises(CycleDetected):
        a.compute({"v": 1})


def test_to_config_and_from_config(registry: ProcessRegistry) -> None:
    n = Node("n", CountingProcess(config={"tag": "t"}), attributes={"kind": "demo"})
    cfg = n.to_config()
    assert cfg == {
        "id": "n",
        "process": {"process_type": "counting", "version": 1, "config": {"tag": "t"}},
        "attributes": {"kind": "demo"},
    }
    rebuilt = Node.from_config(cfg, registry=registry)
    assert rebuilt.node_id == "n"
    assert isinstance(rebuilt.process, CountingProcess)
    assert rebuilt.attributes == {"kind": "demo"}
    assert rebuilt.inputs == ()
    assert rebuilt.output.get_value() == {}


def test_from_config_requires_id() -> None:
    with pytest.raises(InvalidArgument):
        Node.from_config({"process": {"process_type": "identity"}})


def test_dispose_releases_subscriptions() -> None:
    a, b = Node("a"), Node("b")
    b.connect(a)
    b.dispose()
    assert a.output.listener_count() == 0
    with pytest.raises(Disposed):
        b.compute()
    with pytest.raises(Disposed):
        b.connect(a)


def test_dispose_upstream_first() -> None:
    a, b = Node("a"), Node("b")
    b.connect(a)
    a.dispose()
    b.dispose()
    assert b.disposed


def test_empty_state_replaces_previous_state() -> None:
    results = iter([{"output": {"a": 1}, "state": {"n": 1}}, {"output": {"a": 2}, "state": {}}])
    n = func_node("n", lambda inputs, state: next(results))
    n.compute()
    assert n.state == {"n": 1}
    n.compute()
    assert n.state == {}


def test_missing_state_keeps_previous_state() -> None:
    results = iter([{"state": {"n": 1}}, {"output": {"a": 1}}])
    n = func_node("n", lambda inputs, state: next(results))
    n.compute()
    n.compute()
    assert n.state == {"n": 1}


def test_push_suspended_only_refreshes_input_data() -> None:
    a, b = Node("a"), counting_node("b")
    b.connect(a)
    with b.push_suspended():
        a.compute({"v": 1})
    assert b.process.calls == 0
    assert b.get_binding("a").data == {"v": 1}
    a.compute({"v": 2})
    assert b.process.calls == 1


def test_from_config_accepts_any_mapping(registry: ProcessRegistry) -> None:
    payload = {"id": "n", "process": {"process_type": "counting", "config": {"tag": "t"}}}
    for config in (MappingProxyType(payload), OmegaConf.create(payload)):
        node = Node.from_config(config, registry=registry)
        assert node.node_id == "n"
        assert node.process.tag == "t"


@pytest.mark.parametrize(
    "call",
    [
        lambda n: n.node_id,
        lambda n: n.process,
        lambda n: n.output,
        lambda n: n.state,
        lambda n: n.inputs,
        lambda n: n.attributes,
        lambda n: n.process_type,
        lambda n: n.get_binding("a"),
        lambda n: n.get_type(),
        lambda n: n.to_config(),
    ],
)
def test_disposed_node_rejects_reads(call) -> None:
    n = Node("n")
    n.dispose()
    with pytest.raises(Disposed):
        call(n)
