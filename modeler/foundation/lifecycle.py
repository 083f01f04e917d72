"""
Explicit lifecycle for graph entities.

dispose() moves an object to a terminal released state; every public operation
checks the flag first and raises Disposed afterwards.
"""

from __future__ import annotations

from modeler.foundation.errors import Disposed


class Disposable:
    """Mixin with a disposed flag and a guard for public methods."""

    _disposed: bool = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Release resources. Subclasses extend this and call super().dispose() last."""
        self._disposed = True

    def _check_alive(self) -> None:
        if self._disposed:
            raise Disposed(f"{type(self).__name__} has been disposed")
