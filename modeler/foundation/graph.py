"""
Graph: container of nodes and edges; evaluation, queries, serialization.

- Nodes (node_id -> Node), edges (source_id, target_id) in insertion order
- An edge (A, B) exists iff B holds exactly one input binding to A
- compute(): pull evaluation in dependency order, each node visited once
- Serialize structure (to_config / from_config, save / load)
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Union

from omegaconf import DictConfig, OmegaConf

from modeler.config import load_config, save_config
from modeler.foundation.errors import CycleDetected, DuplicateEdge, InvalidArgument, NotFound
from modeler.foundation.lifecycle import Disposable
from modeler.foundation.node import Node, NodeType
from modeler.foundation.registry import ProcessRegistry
from modeler.foundation.selector import parse_selector

logger = logging.getLogger(__name__)

# Schema version for config roundtrip and future migrations
GRAPH_CONFIG_SCHEMA_VERSION = "1.0"

NodeRef = Union[Node, str]


@dataclass(frozen=True)
class Edge:
    """Single edge source -> target; disconnect() removes it from its graph."""

    source: str
    target: str
    _disconnect: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        for name in ("source", "target"):
            v = getattr(self, name)
            if not isinstance(v, str) or not v.strip():
                raise InvalidArgument(f"{name} must be non-empty")

    def disconnect(self) -> None:
        if self._disconnect is None:
            raise NotFound(f"Edge {self.source!r} -> {self.target!r} is not attached to a graph")
        self._disconnect()

    def as_pair(self) -> List[str]:
        return [self.source, self.target]

    def __iter__(self) -> Iterator[str]:
        yield self.source
        yield self.target


class Graph(Disposable):
    """
    Graph = nodes (node_id -> Node) + edges.
    Edges are created and removed only here so node bindings and the edge list
    never diverge.
    """

    def __init__(
        self,
        graph_id: Optional[str] = None,
        *,
        reject_cycles: bool = True,
        strict_selectors: bool = False,
    ) -> None:
        self._graph_id = graph_id or "graph"
        self._reject_cycles = reject_cycles
        self._strict_selectors = strict_selectors
        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []
        self._in_edges_by_node: Dict[str, List[Edge]] = {}
        self._out_edges_by_node: Dict[str, List[Edge]] = {}

    @property
    def graph_id(self) -> str:
        self._check_alive()
        return self._graph_id

    @property
    def nodes(self) -> Dict[str, Node]:
        self._check_alive()
        return dict(self._nodes)

    @property
    def node_ids(self) -> Set[str]:
        self._check_alive()
        return set(self._nodes)

    @property
    def edges(self) -> List[Edge]:
        self._check_alive()
        return list(self._edges)

    def get_node(self, node_id: str) -> Optional[Node]:
        self._check_alive()
        return self._nodes.get(node_id)

    def get_edge(self, source: NodeRef, target: NodeRef) -> Optional[Edge]:
        self._check_alive()
        source_id, target_id = _id_of(source), _id_of(target)
        for edge in self._out_edges_by_node.get(source_id, ()):
            if edge.target == target_id:
                return edge
        return None

    def get_edges(self) -> List[Edge]:
        self._check_alive()
        return list(self._edges)

    def get_edges_in(self, node_id: str) -> List[Edge]:
        self._check_alive()
        return list(self._in_edges_by_node.get(node_id, []))

    def get_edges_out(self, node_id: str) -> List[Edge]:
        self._check_alive()
        return list(self._out_edges_by_node.get(node_id, []))

    def _require_node(self, node: NodeRef) -> Node:
        node_id = _id_of(node)
        found = self._nodes.get(node_id)
        if found is None:
            raise NotFound(f"Node not found: {node_id}")
        if isinstance(node, Node) and found is not node:
            raise InvalidArgument(f"Another node is registered under id {node_id!r}")
        return found

    # --- Structure ---

    def add_node(self, node: Node) -> Graph:
        self._check_alive()
        if not isinstance(node, Node):
            raise InvalidArgument(f"Expected a Node, got {type(node).__name__}")
        node._check_alive()
        existing = self._nodes.get(node.node_id)
        if existing is node:
            return self
        if existing is not None:
            raise InvalidArgument(f"Node already exists: {node.node_id}")
        self._nodes[node.node_id] = node
        self._in_edges_by_node.setdefault(node.node_id, [])
        self._out_edges_by_node.setdefault(node.node_id, [])
        return self

    def remove_node(self, node: NodeRef) -> Graph:
        """Disconnect every edge naming the node, release its inputs, erase it."""
        self._check_alive()
        found = self._require_node(node)
        nid = found.node_id
        for edge in self.get_edges_in(nid) + self.get_edges_out(nid):
            edge.disconnect()
        # Bindings created outside the graph (direct Node.connect).
        for binding in found.inputs:
            found.disconnect(binding.ref_id)
        del self._nodes[nid]
        self._in_edges_by_node.pop(nid, None)
        self._out_edges_by_node.pop(nid, None)
        return self

    def add_edge(self, source: NodeRef, target: NodeRef) -> Graph:
        """Subscribe target to source's output and record the edge."""
        self._check_alive()
        src = self._require_node(source)
        dst = self._require_node(target)
        if self.get_edge(src.node_id, dst.node_id) is not None:
            raise DuplicateEdge(f"Edge already exists: {src.node_id} -> {dst.node_id}")
        if self._reject_cycles and (src is dst or self._reaches(dst.node_id, src.node_id)):
            raise CycleDetected(f"Edge {src.node_id} -> {dst.node_id} would close a cycle")

        dst.connect(src)
        src_id = src.node_id

        def disconnect() -> None:
            if not dst.disposed and dst.get_binding(src_id) is not None:
                dst.disconnect(src_id)
            self._forget_edge(edge)

        edge = Edge(src.node_id, dst.node_id, disconnect)
        self._edges.append(edge)
        self._in_edges_by_node.setdefault(dst.node_id, []).append(edge)
        self._out_edges_by_node.setdefault(src.node_id, []).append(edge)
        logger.debug(f"Graph {self._graph_id!r}: added edge {src.node_id} -> {dst.node_id}")
        return self

    def remove_edge(self, source: NodeRef, target: NodeRef) -> Graph:
        self._check_alive()
        edge = self.get_edge(source, target)
        if edge is None:
            raise NotFound(f"Edge not found: {_id_of(source)} -> {_id_of(target)}")
        edge.disconnect()
        logger.debug(f"Graph {self._graph_id!r}: removed edge {edge.source} -> {edge.target}")
        return self

    def _forget_edge(self, edge: Edge) -> None:
        self._edges = [e for e in self._edges if e is not edge]
        for index in (self._in_edges_by_node.get(edge.target), self._out_edges_by_node.get(edge.source)):
            if index is not None and edge in index:
                index.remove(edge)

    def _reaches(self, start: str, goal: str) -> bool:
        """True if goal is reachable from start following out-edges (BFS)."""
        seen: Set[str] = {start}
        queue = [start]
        while queue:
            nid = queue.pop(0)
            if nid == goal:
                return True
            for e in self._out_edges_by_node.get(nid, ()):
                if e.target not in seen:
                    seen.add(e.target)
                    queue.append(e.target)
        return False

    # --- Execution ---

    def compute(
        self,
        root_input: Optional[Dict[str, Any]] = None,
        root_state: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Pull evaluation. Roots are sinks and isolated nodes (and any node without
        outgoing edges); upstream nodes are computed before their consumers and
        each node is computed once per call. Push recompute is suspended for
        the graph's nodes meanwhile: upstream writes only refresh the cached
        input data, and the pull visit computes the consumer. Outputs are
        merged in visit order.
        """
        self._check_alive()
        root_input = {} if root_input is None else root_input
        root_state = {} if root_state is None else root_state
        roots = [
            node for node in self._nodes.values()
            if node.get_type() in (NodeType.SINK, NodeType.ISOLATED)
            or not self._out_edges_by_node.get(node.node_id)
        ]
        output: Dict[str, Any] = {}
        visited: Set[str] = set()
        order: List[str] = []

        def visit(node: Node) -> None:
            order.append(node.node_id)
            output.update(node.compute(root_input, root_state))

        t0 = time.time()
        with ExitStack() as stack:
            for node in self._nodes.values():
                stack.enter_context(node.push_suspended())
            for root in roots:
                self._walk(root, visit, visited, set())
        logger.debug(
            f"Graph {self._graph_id!r} computed {len(order)} nodes in {time.time() - t0:.3f}s: {order}"
        )
        return {"output": output, "state": root_state}

    def traverse(
        self,
        start: NodeRef,
        callback: Callable[[Node], Any],
        only_to_source: bool = True,
    ) -> Graph:
        """
        Depth-first walk from start toward its sources; callback(node) runs in
        post-order (upstream nodes first), once per node. With
        only_to_source=False downstream consumers of every visited node are
        walked afterwards, so the whole connected component is visited.
        """
        self._check_alive()
        if not callable(callback):
            raise InvalidArgument("callback must be callable")
        visited: Set[str] = set()
        order: List[str] = []

        def visit(node: Node) -> None:
            order.append(node.node_id)
            callback(node)

        self._walk(self._require_node(start), visit, visited, set())
        if not only_to_source:
            i = 0
            while i < len(order):
                for edge in self.get_edges_out(order[i]):
                    self._walk(self._nodes[edge.target], visit, visited, set())
                i += 1
        return self

    def _walk(
        self,
        node: Node,
        callback: Callable[[Node], Any],
        visited: Set[str],
        in_progress: Set[str],
    ) -> None:
        nid = node.node_id
        if nid in visited:
            return
        if nid in in_progress:
            raise CycleDetected(f"Cycle detected through node {nid!r}")
        in_progress.add(nid)
        for binding in node.inputs:
            upstream = self._nodes.get(binding.ref_id)
            if upstream is None:
                raise NotFound(f"Upstream {binding.ref_id!r} of node {nid!r} is not in graph {self._graph_id!r}")
            self._walk(upstream, callback, visited, in_progress)
        in_progress.discard(nid)
        visited.add(nid)
        callback(node)

    # --- Queries ---

    def query_selector_all(self, query: str) -> List[Node]:
        self._check_alive()
        selector = parse_selector(query, strict=self._strict_selectors)
        return [node for node in self._nodes.values() if selector.matches(node, self)]

    def query_selector(self, query: str) -> Optional[Node]:
        self._check_alive()
        results = self.query_selector_all(query)
        return results[0] if results else None

    # --- Serialization: structure (config) ---

    def to_config(self) -> Dict[str, Any]:
        """Structural snapshot; node outputs and states are not included."""
        self._check_alive()
        return {
            "schema_version": GRAPH_CONFIG_SCHEMA_VERSION,
            "graph_id": self._graph_id,
            "nodes": {nid: node.to_config() for nid, node in self._nodes.items()},
            "edges": [edge.as_pair() for edge in self._edges],
        }

    @classmethod
    def from_config(
        cls,
        config: Union[Dict[str, Any], DictConfig],
        registry: Optional[ProcessRegistry] = None,
        **options: Any,
    ) -> Graph:
        """
        Build graph from config: fresh nodes through the registry, then replay
        add_edge for every pair. Outputs stay empty until the first compute.
        """
        if isinstance(config, DictConfig):
            config = OmegaConf.to_container(config, resolve=True)
        if not isinstance(config, Mapping):
            raise InvalidArgument(f"Graph config must be a mapping, got {type(config).__name__}")
        g = cls(graph_id=config.get("graph_id"), **options)
        nodes_cfg = config.get("nodes") or {}
        if isinstance(nodes_cfg, Mapping):
            items = []
            for key, nc in nodes_cfg.items():
                nc = dict(nc or {})
                nc.setdefault("id", key)
                if nc["id"] != key:
                    raise InvalidArgument(f"Node config under {key!r} has id {nc['id']!r}")
                items.append(nc)
        else:
            items = [dict(nc) for nc in nodes_cfg]
        for nc in items:
            g.add_node(Node.from_config(nc, registry=registry))
        for pair in config.get("edges") or []:
            if isinstance(pair, str) or len(pair) != 2:
                raise InvalidArgument(f"Edge must be a [source, target] pair, got {pair!r}")
            g.add_edge(pair[0], pair[1])
        return g

    def save(self, path: Union[str, Path]) -> None:
        """Write to_config() as JSON (.json) or YAML (any other suffix)."""
        path = Path(path)
        config = self.to_config()
        if path.suffix == ".json":
            with open(path, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2)
        else:
            save_config(OmegaConf.create(config), path)

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        registry: Optional[ProcessRegistry] = None,
        **options: Any,
    ) -> Graph:
        """Load a graph snapshot from YAML or JSON (``_base_`` inheritance supported)."""
        return cls.from_config(load_config(path), registry=registry, **options)

    # --- Lifecycle ---

    def dispose(self) -> None:
        """Disconnect all edges and dispose all nodes."""
        if self._disposed:
            return
        for edge in list(self._edges):
            edge.disconnect()
        for node in self._nodes.values():
            node.dispose()
        self._nodes.clear()
        self._in_edges_by_node.clear()
        self._out_edges_by_node.clear()
        super().dispose()

    def __repr__(self) -> str:
        return f"Graph(graph_id={self._graph_id!r}, nodes={len(self._nodes)}, edges={len(self._edges)})"


def _id_of(node: NodeRef) -> str:
    return node.node_id if isinstance(node, Node) else node
