"""
Abstract Process: a pure (inputs, state) -> (output, state) computation.

- forward(inputs, state) -> {"output": ..., "state": ...}, compute() normalizes it
- process_type + version + config form the serialized description (to_config)
- no source text is ever reconstructed: a payload is rebuilt through a
  ProcessRegistry lookup of its process_type
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Dict, NamedTuple, Optional

from modeler.foundation.errors import InvalidArgument, ModelerError, ProcessError

ProcessFunc = Callable[[Dict[str, Any], Dict[str, Any]], Optional[Mapping]]


class ProcessResult(NamedTuple):
    output: Dict[str, Any]
    state: Dict[str, Any]


class AbstractProcess(ABC):
    """
    Computation unit owned by a Node.

    Identity: process_type (kind of process, registry key) and version.
    Contract: forward(inputs, state); compute() must have no side effects
    outside the returned values.
    """

    process_type: str = "process"
    version: int = 1

    def __init__(self, *, config: Optional[Dict[str, Any]] = None) -> None:
        self._config = dict(config or {})

    @property
    def config(self) -> Dict[str, Any]:
        """Copy of config used to build this process (for serialization)."""
        return dict(self._config)

    @abstractmethod
    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Optional[Mapping]:
        """Return a mapping with optional "output" and "state" keys."""
        ...

    def compute(
        self,
        inputs: Optional[Dict[str, Any]] = None,
        state: Optional[Dict[str, Any]] = None,
    ) -> ProcessResult:
        inputs = {} if inputs is None else inputs
        state = {} if state is None else state
        try:
            result = self.forward(inputs, state)
        except ModelerError:
            raise
        except Exception as e:
            raise ProcessError(
                f"Process {self.process_type!r} failed: {type(e).__name__}: {e}"
            ) from e
        if result is None:
            result = {}
        if not isinstance(result, Mapping):
            raise ProcessError(
                f"Process {self.process_type!r} returned {type(result).__name__}, expected a mapping"
            )
        output = result.get("output") or {}
        if not isinstance(output, Mapping):
            raise ProcessError(f"Process {self.process_type!r} output must be a mapping")
        new_state = result.get("state")
        if new_state is None:
            new_state = state
        if not isinstance(new_state, Mapping):
            raise ProcessError(f"Process {self.process_type!r} state must be a mapping")
        return ProcessResult(dict(output), dict(new_state))

    def to_config(self) -> Dict[str, Any]:
        return {
            "process_type": self.process_type,
            "version": self.version,
            "config": self.config,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(process_type={self.process_type!r})"


class IdentityProcess(AbstractProcess):
    """Passthrough: upstream data plus the mapping injected under "root"."""

    process_type = "identity"

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        output = {k: v for k, v in inputs.items() if k != "root"}
        root = inputs.get("root")
        if isinstance(root, Mapping):
            output.update(root)
        return {"output": output, "state": state}


class FunctionProcess(AbstractProcess):
    """
    Wrap a plain callable func(inputs, state) -> {"output", "state"}.

    Only functions registered under a name (see ProcessRegistry.register_function)
    can be serialized; the name is what goes into the payload, never the code.
    """

    process_type = "function"

    def __init__(
        self,
        func: ProcessFunc,
        *,
        process_type: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not callable(func):
            raise InvalidArgument("FunctionProcess requires a callable")
        super().__init__(config=config)
        self._func = func
        self._registered = process_type is not None
        if process_type is not None:
            self.process_type = process_type

    @property
    def func(self) -> ProcessFunc:
        return self._func

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Optional[Mapping]:
        return self._func(inputs, state)

    def to_config(self) -> Dict[str, Any]:
        if not self._registered:
            name = getattr(self._func, "__name__", repr(self._func))
            raise InvalidArgument(
                f"Function {name!r} is not registered; register it by name to serialize it"
            )
        return super().to_config()
