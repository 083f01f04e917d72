"""Concrete processes and helpers for foundation tests."""

from typing import Any, Dict, List, Optional, Tuple

from modeler.foundation.node import Node
from modeler.foundation.process import AbstractProcess, FunctionProcess


class CountingProcess(AbstractProcess):
    """Passes upstream data through and adds {tag: number of calls}."""

    process_type = "counting"

    def __init__(self, *, config: Optional[dict] = None) -> None:
        super().__init__(config=config)
        self.calls = 0
        self.tag = self._config.get("tag", "count")

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        self.calls += 1
        output = {k: v for k, v in inputs.items() if k != "root"}
        output[self.tag] = self.calls
        return {"output": output, "state": state}


class FailingProcess(AbstractProcess):
    """Always raises inside forward."""

    process_type = "failing"

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        raise ZeroDivisionError("boom")


def counting_node(node_id: str, tag: Optional[str] = None) -> Node:
    return Node(node_id, CountingProcess(config={"tag": tag or node_id}))


def func_node(node_id: str, func) -> Node:
    return Node(node_id, FunctionProcess(func))


class Recorder:
    """Listener that records (new, old, path) calls."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, Any, str]] = []

    def __call__(self, new_value: Any, old_value: Any, path: str) -> None:
        self.calls.append((new_value, old_value, path))
