"""
Graph Node: one process, its reactive output and its upstream bindings.

- node_id (unique in a graph), owned process, owned output Observable, private state
- inputs: ordered bindings to upstream nodes; each binding caches the upstream
  output and holds the listener registered on the upstream Observable
- a write to an upstream output recomputes this node immediately (push compute)
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from omegaconf import DictConfig, OmegaConf

from modeler.foundation.errors import CycleDetected, DuplicateEdge, InvalidArgument, NotFound
from modeler.foundation.lifecycle import Disposable
from modeler.foundation.observable import DEFAULT_CHANNEL, ROOT_PATH, Observable
from modeler.foundation.process import AbstractProcess, IdentityProcess
from modeler.foundation.registry import ProcessRegistry

logger = logging.getLogger(__name__)

ROOT_KEY = "root"


class NodeType(IntEnum):
    """Derived classification; values are the selector codes ($0, $1, $2, $-1)."""

    INTERIOR = -1
    SOURCE = 0
    SINK = 1
    ISOLATED = 2


@dataclass
class InputBinding:
    """Subscription of a node to one upstream output."""

    ref_id: str
    data: Dict[str, Any]
    on_update: Callable[[Any, Any, str], None] = field(repr=False)
    unsubscribe: Callable[[], None] = field(repr=False)


def _default_node_id(process: AbstractProcess) -> str:
    base = re.sub(r"\W", "_", process.process_type or "node")
    return f"{base}_{uuid.uuid4().hex[:8]}"


def _node_id_of(node_or_id: Union["Node", str]) -> str:
    return node_or_id.node_id if isinstance(node_or_id, Node) else node_or_id


class Node(Disposable):
    """
    Place in the dataflow: unique node_id, exactly one process, one output.
    Inputs are changed through Graph.add_edge / remove_edge so the graph's
    edge list stays consistent with the bindings.
    """

    def __init__(
        self,
        node_id: Optional[str] = None,
        process: Optional[AbstractProcess] = None,
        *,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._process = process if process is not None else IdentityProcess()
        if node_id is None:
            node_id = _default_node_id(self._process)
        if not isinstance(node_id, str) or not node_id.strip():
            raise InvalidArgument("node_id must be non-empty")
        self._node_id = node_id.strip()
        self._output = Observable()
        self._state: Dict[str, Any] = {}
        self._inputs: List[InputBinding] = []
        self._attributes: Dict[str, Any] = dict(attributes or {})
        self._computing = False
        # > 0 while a Graph pull evaluation drives this node.
        self._push_suspended = 0

    @property
    def node_id(self) -> str:
        self._check_alive()
        return self._node_id

    @property
    def process(self) -> AbstractProcess:
        self._check_alive()
        return self._process

    @property
    def output(self) -> Observable:
        self._check_alive()
        return self._output

    @property
    def state(self) -> Dict[str, Any]:
        self._check_alive()
        return self._state

    @property
    def inputs(self) -> Tuple[InputBinding, ...]:
        self._check_alive()
        return tuple(self._inputs)

    @property
    def attributes(self) -> Dict[str, Any]:
        self._check_alive()
        return self._attributes

    @property
    def process_type(self) -> str:
        self._check_alive()
        return self._process.process_type

    @contextmanager
    def push_suspended(self) -> Iterator[Node]:
        """Upstream writes only refresh cached input data while inside the block."""
        self._check_alive()
        self._push_suspended += 1
        try:
            yield self
        finally:
            self._push_suspended -= 1

    def get_binding(self, upstream: Union[Node, str]) -> Optional[InputBinding]:
        self._check_alive()
        ref_id = _node_id_of(upstream)
        for binding in self._inputs:
            if binding.ref_id == ref_id:
                return binding
        return None

    # --- Wiring ---

    def connect(self, upstream: Node) -> Node:
        """Bind to upstream's output; every upstream write recomputes this node."""
        self._check_alive()
        upstream._check_alive()
        if upstream is self or upstream.node_id == self._node_id:
            raise CycleDetected(f"Node {self._node_id!r} cannot consume its own output")
        if self.get_binding(upstream) is not None:
            raise DuplicateEdge(f"Node {upstream.node_id!r} is already connected to {self._node_id!r}")

        source = upstream.output

        def on_update(new_value: Any, old_value: Any, path: str) -> None:
            binding.data = dict(new_value) if isinstance(new_value, Mapping) else {}
            if not self._push_suspended:
                self.compute()

        def unsubscribe() -> None:
            # An upstream disposed first has already dropped its listeners.
            if not source.disposed:
                source.remove_listener(on_update, ROOT_PATH, DEFAULT_CHANNEL)

        current = source.get_value()
        binding = InputBinding(
            ref_id=upstream.node_id,
            data=dict(current) if isinstance(current, Mapping) else {},
            on_update=on_update,
            unsubscribe=unsubscribe,
        )
        source.add_listener(on_update, ROOT_PATH, DEFAULT_CHANNEL)
        self._inputs.append(binding)
        logger.debug(f"Connected {upstream.node_id!r} -> {self._node_id!r}")
        return self

    def disconnect(self, upstream: Union[Node, str]) -> Node:
        self._check_alive()
        binding = self.get_binding(upstream)
        if binding is None:
            raise NotFound(f"Node {self._node_id!r} has no input from {_node_id_of(upstream)!r}")
        binding.unsubscribe()
        self._inputs.remove(binding)
        logger.debug(f"Disconnected {binding.ref_id!r} -> {self._node_id!r}")
        return self

    def get_type(self) -> NodeType:
        self._check_alive()
        has_inputs = bool(self._inputs)
        has_outputs = self._output.listener_count(ROOT_PATH, DEFAULT_CHANNEL) > 0
        if not has_inputs and not has_outputs:
            return NodeType.ISOLATED
        if has_inputs and not has_outputs:
            return NodeType.SINK
        if not has_inputs and has_outputs:
            return NodeType.SOURCE
        return NodeType.INTERIOR

    # --- Execution ---

    def compute(
        self,
        root_input: Optional[Dict[str, Any]] = None,
        root_state: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Merge cached input data (later bindings win), run the process, publish.

        root_input is exposed to the process under the reserved "root" key and
        root_state under state["root"]. Publishing a non-empty output recomputes
        every downstream node before this call returns, except nodes whose push
        is suspended (see push_suspended), which only refresh their input data.
        """
        self._check_alive()
        if self._computing:
            raise CycleDetected(
                f"Node {self._node_id!r} re-entered compute; its inputs form a cycle"
            )
        merged: Dict[str, Any] = {}
        for binding in self._inputs:
            merged.update(binding.data)
        merged[ROOT_KEY] = {} if root_input is None else root_input
        state = {**self._state, ROOT_KEY: {} if root_state is None else root_state}

        self._computing = True
        try:
            logger.debug(f"Computing {self._node_id!r} ({self.process_type}) with inputs {sorted(merged)}")
            output, new_state = self._process.compute(merged, state)
            if new_state is not None:
                self._state = {k: v for k, v in new_state.items() if k != ROOT_KEY}
            if output:
                self._output.set_value(output)
        finally:
            self._computing = False
        return output

    def update(self, process: AbstractProcess) -> Node:
        """Swap the process; does not recompute."""
        self._check_alive()
        if not isinstance(process, AbstractProcess):
            raise InvalidArgument(f"Expected a process, got {type(process).__name__}")
        self._process = process
        return self

    # --- Serialization ---

    def to_config(self) -> Dict[str, Any]:
        """Id and process payload; inputs and output are rebuilt at graph level."""
        self._check_alive()
        out: Dict[str, Any] = {"id": self._node_id, "process": self._process.to_config()}
        if self._attributes:
            out["attributes"] = dict(self._attributes)
        return out

    @classmethod
    def from_config(
        cls,
        config: Union[Mapping[str, Any], DictConfig],
        registry: Optional[ProcessRegistry] = None,
    ) -> Node:
        """Fresh detached node: no inputs, empty output."""
        if isinstance(config, DictConfig):
            config = OmegaConf.to_container(config, resolve=True)
        if not isinstance(config, Mapping) or not config.get("id"):
            raise InvalidArgument("Node config must be a mapping with a non-empty 'id'")
        config = dict(config)
        payload = config.get("process")
        process = None
        if payload is not None:
            process = (registry or ProcessRegistry.global_registry()).build(payload)
        return cls(config["id"], process, attributes=config.get("attributes"))

    # --- Lifecycle ---

    def dispose(self) -> None:
        """Release input subscriptions and the output; the node is unusable afterwards."""
        if self._disposed:
            return
        for binding in self._inputs:
            binding.unsubscribe()
        self._inputs.clear()
        self._output.dispose()
        super().dispose()

    def __repr__(self) -> str:
        return f"Node(node_id={self._node_id!r}, process={self._process!r})"
