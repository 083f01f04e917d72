"""Tests for the expression process and its evaluator."""

import pytest

from modeler.foundation.errors import InvalidArgument, ProcessError
from modeler.foundation.node import Node
from modeler.processes import ExpressionProcess, SafeExpressionEvaluator, compile_expression


def _eval(source: str, **scope):
    return SafeExpressionEvaluator(scope).evaluate(compile_expression(source))


def test_arithmetic_and_functions() -> None:
    assert _eval("x * 2 + 1", x=3) == 7
    assert _eval("max(a, b) // 2", a=5, b=9) == 4
    assert _eval("round(sqrt(x), 1)", x=2) == 1.4
    assert _eval("-x if x < 0 else x", x=-3) == 3
    assert _eval("a and not b", a=True, b=False) is True


def test_mapping_access() -> None:
    root = {"x": 5, "inner": {"y": 1}}
    assert _eval("root.x + root['inner'].y", root=root) == 6
    assert _eval("get(root, 'nope', 10)", root=root) == 10
    assert _eval("root.nope", root=root) is None


def test_literals() -> None:
    assert _eval("[1, 2] + [x]", x=3) == [1, 2, 3]
    assert _eval("{'k': x}", x=1) == {"k": 1}
    assert _eval("'a' in s", s="cat") is True


@pytest.mark.parametrize(
    "source",
    [
        "__import__('os')",
        "x.__class__",
        "(lambda: 1)()",
        "open('f')",
        "max(x, key=abs)",
        "[i for i in x]",
        "x = 1",
        "",
        "{**x}",
    ],
)
def test_rejected_expressions(source: str) -> None:
    with pytest.raises(InvalidArgument):
        compile_expression(source)


def test_too_deep_expression() -> None:
    with pytest.raises(InvalidArgument, match="complex"):
        compile_expression("-" * 40 + "1")


def test_unknown_name_fails_at_compute() -> None:
    p = ExpressionProcess(config={"outputs": {"y": "missing + 1"}})
    with pytest.raises(ProcessError, match="missing"):
        p.compute({})


def test_process_requires_outputs() -> None:
    with pytest.raises(InvalidArgument):
        ExpressionProcess()
    with pytest.raises(InvalidArgument):
        ExpressionProcess(config={"outputs": ["x"]})


def test_state_expressions_see_outputs() -> None:
    p = ExpressionProcess(config={
        "outputs": {"y": "root.x * 2"},
        "state": {"calls": "get(state, 'calls', 0) + 1", "last": "y"},
    })
    node = Node("n", p)
    node.compute({"x": 2})
    node.compute({"x": 3})
    assert node.output.get_value() == {"y": 6}
    assert node.state == {"calls": 2, "last": 6}


def test_to_config_keeps_source_text() -> None:
    cfg = {"outputs": {"y": "x + 1"}}
    assert ExpressionProcess(config=cfg).to_config() == {
        "process_type": "expression",
        "version": 1,
        "config": cfg,
    }
