"""
Process Registry: process_type -> builder; build from a serialized payload.

- register(process_type, class_or_factory), register_function(name, func)
- build({"process_type", "version", "config"}) -> process instance
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Mapping
from difflib import get_close_matches
from typing import Any, Callable, Dict, List, Optional, Type, Union

from modeler.foundation.errors import InvalidArgument, NotFound
from modeler.foundation.process import AbstractProcess, FunctionProcess, ProcessFunc

logger = logging.getLogger(__name__)

Builder = Union[Type[AbstractProcess], Callable[..., AbstractProcess]]


class ProcessRegistry:
    """
    Maps process_type (str) to a process class or factory.
    build(payload) creates an instance using payload["process_type"].
    """

    _global: Optional["ProcessRegistry"] = None

    def __init__(self) -> None:
        self._builders: Dict[str, Builder] = {}

    @classmethod
    def global_registry(cls) -> ProcessRegistry:
        if cls._global is None:
            cls._global = cls()
            # Built-in processes register themselves into the global registry on import.
            importlib.import_module("modeler.processes")
        return cls._global

    def register(self, process_type: str, builder: Builder) -> None:
        if not isinstance(process_type, str) or not process_type.strip():
            raise InvalidArgument("process_type must be non-empty")
        key = process_type.strip()
        if key in self._builders and self._builders[key] is not builder:
            logger.debug(f"Process type {key!r} re-registered")
        self._builders[key] = builder

    def register_function(self, process_type: str, func: ProcessFunc) -> None:
        """Add a named operation backed by FunctionProcess."""
        if not callable(func):
            raise InvalidArgument(f"Operation {process_type!r} must be callable")
        name = process_type.strip() if isinstance(process_type, str) else process_type

        def build(config: Optional[Dict[str, Any]] = None) -> FunctionProcess:
            return FunctionProcess(func, process_type=name, config=config)

        self.register(process_type, build)

    def get(self, process_type: str) -> Optional[Builder]:
        return self._builders.get(process_type)

    def list_types(self) -> List[str]:
        return sorted(self._builders)

    def build(self, payload: Mapping[str, Any]) -> AbstractProcess:
        """Create a process from {"process_type", "version"?, "config"?}."""
        if not isinstance(payload, Mapping):
            raise InvalidArgument(f"Process payload must be a mapping, got {type(payload).__name__}")
        process_type = payload.get("process_type")
        if not process_type:
            raise InvalidArgument("Process payload must contain 'process_type'")
        builder = self._builders.get(process_type)
        if builder is None:
            msg = f"Unknown process_type: {process_type!r}."
            similar = get_close_matches(process_type, self._builders.keys(), n=3, cutoff=0.5)
            if similar:
                msg += f" Did you mean: {', '.join(similar)}?"
            msg += f" Registered: {', '.join(self.list_types())}"
            raise NotFound(msg)
        process = builder(config=dict(payload.get("config") or {}))
        version = payload.get("version")
        if isinstance(version, int) and version > process.version:
            logger.warning(
                f"Payload for {process_type!r} has version {version}, "
                f"registered implementation is version {process.version}"
            )
        return process

    def __contains__(self, process_type: str) -> bool:
        return process_type in self._builders


def register_process(process_type: str, registry: Optional[ProcessRegistry] = None):
    """Decorator: register a process class under process_type."""

    def decorator(cls: Type[AbstractProcess]) -> Type[AbstractProcess]:
        cls.process_type = process_type
        (registry or ProcessRegistry.global_registry()).register(process_type, cls)
        return cls
    return decorator


def register_function(process_type: str, registry: Optional[ProcessRegistry] = None):
    """Decorator: register a plain function as a named operation."""

    def decorator(func: ProcessFunc) -> ProcessFunc:
        (registry or ProcessRegistry.global_registry()).register_function(process_type, func)
        return func
    return decorator
