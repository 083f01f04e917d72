"""
Built-in process types registered in the global registry.

identity / constant / rename / accumulate: small, serializable building blocks
for graphs loaded from config files and for tests.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

from modeler.foundation.errors import InvalidArgument
from modeler.foundation.process import AbstractProcess, IdentityProcess
from modeler.foundation.registry import register_process

register_process("identity")(IdentityProcess)


@register_process("constant")
class ConstantProcess(AbstractProcess):
    """Outputs config["values"] regardless of inputs."""

    def __init__(self, *, config: Dict[str, Any] | None = None) -> None:
        super().__init__(config=config)
        values = self._config.get("values", {})
        if not isinstance(values, Mapping):
            raise InvalidArgument("constant: 'values' must be a mapping")
        self._values = dict(values)

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        return {"output": dict(self._values), "state": state}


@register_process("rename")
class RenameProcess(AbstractProcess):
    """Re-key upstream data: config["mapping"] = {old_key: new_key}. Unmapped keys pass through."""

    def __init__(self, *, config: Dict[str, Any] | None = None) -> None:
        super().__init__(config=config)
        mapping = self._config.get("mapping", {})
        if not isinstance(mapping, Mapping):
            raise InvalidArgument("rename: 'mapping' must be a mapping")
        self._mapping = dict(mapping)

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        output = {
            self._mapping.get(k, k): v
            for k, v in inputs.items()
            if k != "root"
        }
        return {"output": output, "state": state}


@register_process("accumulate")
class AccumulateProcess(AbstractProcess):
    """Running sum: state[into] += inputs[key]; outputs {into: total}."""

    def __init__(self, *, config: Dict[str, Any] | None = None) -> None:
        super().__init__(config=config)
        self._key = self._config.get("key")
        if not self._key:
            raise InvalidArgument("accumulate: 'key' is required")
        self._into = self._config.get("into", "total")

    def forward(self, inputs: Dict[str, Any], state: Dict[str, Any]) -> Dict[str, Any]:
        total = state.get(self._into, 0) + inputs.get(self._key, 0)
        return {"output": {self._into: total}, "state": {**state, self._into: total}}


BUILTIN_PROCESSES = (IdentityProcess, ConstantProcess, RenameProcess, AccumulateProcess)
