"""
Foundation: observable, process, node, graph.

Levels: Observable (change propagation) -> Process (computation) -> Node
(process + output + bindings) -> Graph (nodes + edges, pull evaluation).
"""

from modeler.foundation.errors import (
    CycleDetected,
    Disposed,
    DuplicateEdge,
    InvalidArgument,
    ModelerError,
    NotFound,
    ProcessError,
)
from modeler.foundation.lifecycle import Disposable
from modeler.foundation.observable import DEFAULT_CHANNEL, Observable, normalize_path
from modeler.foundation.process import AbstractProcess, FunctionProcess, IdentityProcess, ProcessResult
from modeler.foundation.registry import ProcessRegistry, register_function, register_process
from modeler.foundation.node import InputBinding, Node, NodeType
from modeler.foundation.selector import Selector, parse_selector
from modeler.foundation.graph import Edge, Graph

__all__ = [
    "AbstractProcess",
    "CycleDetected",
    "DEFAULT_CHANNEL",
    "Disposable",
    "Disposed",
    "DuplicateEdge",
    "Edge",
    "FunctionProcess",
    "Graph",
    "IdentityProcess",
    "InputBinding",
    "InvalidArgument",
    "ModelerError",
    "Node",
    "NodeType",
    "NotFound",
    "Observable",
    "ProcessError",
    "ProcessRegistry",
    "ProcessResult",
    "Selector",
    "normalize_path",
    "parse_selector",
    "register_function",
    "register_process",
]
