"""
Error hierarchy for the dataflow core.

Every error derives from ModelerError and from the builtin exception a caller
would already catch for the same condition (ValueError, KeyError, RuntimeError).
"""

from __future__ import annotations


class ModelerError(Exception):
    """Base error for all modeler operations."""


class InvalidArgument(ModelerError, ValueError):
    """Argument of the wrong kind: non-callable listener, blank id, malformed payload."""


class DuplicateEdge(ModelerError, ValueError):
    """Upstream node is already connected to the downstream node."""


class NotFound(ModelerError, KeyError):
    """Binding, edge, node or process type does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""


class CycleDetected(ModelerError, RuntimeError):
    """Graph structure contains (or would contain) a cycle."""


class Disposed(ModelerError, RuntimeError):
    """Object was disposed and can no longer be used."""


class ProcessError(ModelerError, RuntimeError):
    """A process failed while computing."""
