"""
Modeler: a small reactive dataflow engine.

Nodes wrap processes, publish their output through observables and subscribe to
each other to form a graph. Upstream writes recompute downstream nodes (push);
Graph.compute evaluates everything in dependency order (pull).
"""

__version__ = "0.1.0"

from modeler.foundation import (
    AbstractProcess,
    CycleDetected,
    Disposed,
    DuplicateEdge,
    Edge,
    FunctionProcess,
    Graph,
    InvalidArgument,
    ModelerError,
    Node,
    NodeType,
    NotFound,
    Observable,
    ProcessError,
    ProcessRegistry,
    register_function,
    register_process,
)

__all__ = [
    "__version__",
    "AbstractProcess",
    "CycleDetected",
    "Disposed",
    "DuplicateEdge",
    "Edge",
    "FunctionProcess",
    "Graph",
    "InvalidArgument",
    "ModelerError",
    "Node",
    "NodeType",
    "NotFound",
    "Observable",
    "ProcessError",
    "ProcessRegistry",
    "register_function",
    "register_process",
]
