"""
Expression process: computations described as small expressions, not code.

Expressions are parsed with ``ast`` once, checked against a whitelist and then
evaluated by an AST visitor. Names resolve against the merged node input
(upstream keys plus ``root``) and ``state``; mapping keys are reachable as
attributes (``root.x``) or subscripts (``root["x"]``).

    {"process_type": "expression",
     "config": {"outputs": {"y": "x * 2"}, "state": {"calls": "get(state, 'calls', 0) + 1"}}}
"""

from __future__ import annotations

import ast
import math
import operator
from collections.abc import Mapping
from typing import Any, Dict, Optional

from modeler.foundation.errors import InvalidArgument
from modeler.foundation.process import AbstractProcess
from modeler.foundation.registry import register_process


def _get(mapping: Any, key: Any, default: Any = None) -> Any:
    if isinstance(mapping, Mapping):
        return mapping.get(key, default)
    return default


class SafeExpressionEvaluator(ast.NodeVisitor):
    """
    Expression evaluator over a fixed scope using the AST Visitor pattern.
    Only whitelisted operators and functions are allowed.
    """

    ALLOWED_BINOPS = {
        ast.Add: operator.add,
        ast.Sub: operator.sub,
        ast.Mult: operator.mul,
        ast.Div: operator.truediv,
        ast.FloorDiv: operator.floordiv,
        ast.Pow: operator.pow,
        ast.Mod: operator.mod,
    }

    ALLOWED_UNARYOPS = {
        ast.UAdd: operator.pos,
        ast.USub: operator.neg,
        ast.Not: operator.not_,
    }

    ALLOWED_COMPARISONS = {
        ast.Eq: operator.eq,
        ast.NotEq: operator.ne,
        ast.Lt: operator.lt,
        ast.LtE: operator.le,
        ast.Gt: operator.gt,
        ast.GtE: operator.ge,
        ast.In: lambda a, b: a in b,
        ast.NotIn: lambda a, b: a not in b,
        ast.Is: operator.is_,
        ast.IsNot: operator.is_not,
    }

    ALLOWED_FUNCTIONS = {
        "abs": abs,
        "min": min,
        "max": max,
        "round": round,
        "len": len,
        "sum": sum,
        "int": int,
        "float": float,
        "str": str,
        "bool": bool,
        "get": _get,
        "sqrt": math.sqrt,
        "floor": math.floor,
        "ceil": math.ceil,
        "exp": math.exp,
        "log": math.log,
    }

    MAX_DEPTH = 25

    def __init__(self, scope: Optional[Mapping[str, Any]] = None) -> None:
        self.scope = scope or {}

    def evaluate(self, expression: ast.Expression) -> Any:
        return self.visit(expression.body)

    # ---------------- Visitors ----------------

    def visit_BinOp(self, node):
        return self.ALLOWED_BINOPS[type(node.op)](self.visit(node.left), self.visit(node.right))

    def visit_UnaryOp(self, node):
        return self.ALLOWED_UNARYOPS[type(node.op)](self.visit(node.operand))

    def visit_BoolOp(self, node):
        if isinstance(node.op, ast.And):
            result = True
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_Compare(self, node):
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not self.ALLOWED_COMPARISONS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node):
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Call(self, node):
        func = self.ALLOWED_FUNCTIONS[node.func.id]
        return func(*[self.visit(arg) for arg in node.args])

    def visit_Name(self, node):
        if node.id not in self.scope:
            raise ValueError(f"Unknown name {node.id!r}")
        return self.scope[node.id]

    def visit_Attribute(self, node):
        base = self.visit(node.value)
        if not isinstance(base, Mapping):
            raise ValueError(f"Cannot read {node.attr!r} from {type(base).__name__}")
        return base.get(node.attr)

    def visit_Subscript(self, node):
        base = self.visit(node.value)
        key = self.visit(node.slice)
        if isinstance(base, Mapping):
            return base.get(key)
        return base[key]

    def visit_Constant(self, node):
        return node.value

    def visit_List(self, node):
        return [self.visit(e) for e in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(e) for e in node.elts)

    def visit_Dict(self, node):
        return {self.visit(k): self.visit(v) for k, v in zip(node.keys, node.values)}

    def generic_visit(self, node):
        raise ValueError(f"Unsupported expression: {type(node).__name__}")


_ALLOWED_NODES = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Call, ast.Name, ast.Attribute, ast.Subscript, ast.Constant,
    ast.List, ast.Tuple, ast.Dict, ast.Load, ast.And, ast.Or,
    *SafeExpressionEvaluator.ALLOWED_BINOPS,
    *SafeExpressionEvaluator.ALLOWED_UNARYOPS,
    *SafeExpressionEvaluator.ALLOWED_COMPARISONS,
)


def _check_depth(node: ast.AST, depth: int = 0) -> None:
    if depth > SafeExpressionEvaluator.MAX_DEPTH:
        raise InvalidArgument("Expression too complex")
    for child in ast.iter_child_nodes(node):
        _check_depth(child, depth + 1)


def compile_expression(source: str) -> ast.Expression:
    """Parse and validate an expression; raises InvalidArgument on anything outside the whitelist."""
    if not isinstance(source, str) or not source.strip():
        raise InvalidArgument("Expression must be a non-empty string")
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise InvalidArgument(f"Invalid expression {source!r}: {e.msg}") from e
    _check_depth(tree)
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise InvalidArgument(f"{type(node).__name__} not allowed in expression {source!r}")
        if isinstance(node, ast.Constant) and not isinstance(node.value, (int, float, str, bool, type(None))):
            raise InvalidArgument(f"Constant {node.value!r} not allowed in expression {source!r}")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise InvalidArgument(f"Attribute {node.attr!r} not allowed in expression {source!r}")
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in SafeExpressionEvaluator.ALLOWED_FUNCTIONS:
                raise InvalidArgument(f"Only {sorted(SafeExpressionEvaluator.ALLOWED_FUNCTIONS)} may be called")
            if node.keywords:
                raise InvalidArgument("Keyword arguments are not allowed in expressions")
        if isinstance(node, ast.Dict) and any(k is None for k in node.keys):
            raise InvalidArgument("Dict unpacking is not allowed in expressions")
    return tree


def _compile_table(table: Any, what: str) -> Dict[str, ast.Expression]:
    if not isinstance(table, Mapping):
        raise InvalidArgument(f"expression: '{what}' must be a mapping of name -> expression")
    return {str(name): compile_expression(source) for name, source in table.items()}


@register_process("expression")
class ExpressionProcess(AbstractProcess):
    """
    config["outputs"]: name -> expression, evaluated over the merged input.
    config["state"]: optional name -> expression; also sees the computed outputs.
    """

    def __init__(self, *, config: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(config=config)
        self._outputs = _compile_table(self._config.get("outputs", {}), "outputs")
        if not self._outputs:
            raise InvalidArgument("expression: 'outputs' must define at least one expression")
        self._state = _compile_table(self._config.get("state", {}), "state")

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        scope = {**inputs, "state": state}
        evaluator = SafeExpressionEvaluator(scope)
        output = {name: evaluator.evaluate(tree) for name, tree in self._outputs.items()}
        if not self._state:
            return {"output": output, "state": state}
        evaluator = SafeExpressionEvaluator({**scope, **output})
        new_state = dict(state)
        for name, tree in self._state.items():
            new_state[name] = evaluator.evaluate(tree)
        return {"output": output, "state": new_state}
