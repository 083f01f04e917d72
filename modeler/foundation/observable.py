"""
Observable: hierarchical, path-addressable reactive value store.

- value is a nested mapping addressed by "/"-separated paths ("" is the root)
- listeners are kept per normalized path and per channel, in registration order
- set_value writes once and then notifies every ancestor of the written path,
  deepest first, so watchers of a coarser path see changes made below it
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from modeler.foundation.errors import InvalidArgument
from modeler.foundation.lifecycle import Disposable

logger = logging.getLogger(__name__)

ROOT_PATH = ""
DEFAULT_CHANNEL = "default"

Listener = Callable[[Any, Any, str], Any]


def normalize_path(path: str = "/") -> str:
    """'/a/b/', 'a/b' and '/a//b' all become 'a/b'; the root becomes ''."""
    return "/".join(segment for segment in str(path).split("/") if segment)


def _segments(path: str) -> List[str]:
    return [segment for segment in str(path).split("/") if segment]


def ancestor_paths(path: str) -> List[str]:
    """Normalized path and all of its ancestors, deepest first, root last."""
    keys = _segments(path)
    return ["/".join(keys[:i]) for i in range(len(keys), -1, -1)]


def get_by_path(value: Any, path: str = "/") -> Any:
    """Sub-value at path, or None when any segment is missing."""
    current = value
    for key in _segments(path):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def set_by_path(value: Mapping[str, Any], path: str, new_value: Any) -> Dict[str, Any]:
    """
    Return a new root with new_value written at path.

    Only the mappings along the path are copied; everything else is shared with
    the old root, which is left untouched. A root write merges new_value into
    the root. Non-mapping values met along the path are replaced by mappings.
    """
    keys = _segments(path)
    if not keys:
        if not isinstance(new_value, Mapping):
            raise InvalidArgument(
                f"Root value must be a mapping, got {type(new_value).__name__}"
            )
        return {**value, **new_value}

    new_root: Dict[str, Any] = dict(value)
    ref = new_root
    for key in keys[:-1]:
        child = ref.get(key)
        child = dict(child) if isinstance(child, Mapping) else {}
        ref[key] = child
        ref = child
    ref[keys[-1]] = new_value
    return new_root


class Observable(Disposable):
    """
    Reactive store with path/channel-scoped listeners.

    Listener signature: callback(new_value_at_path, old_value_at_path, written_path).
    Notification is synchronous, on the caller's stack.
    """

    def __init__(self, value: Optional[Mapping[str, Any]] = None) -> None:
        self._value: Dict[str, Any] = dict(value or {})
        self._listeners: Dict[str, Dict[str, List[Listener]]] = {}

    @property
    def value(self) -> Dict[str, Any]:
        self._check_alive()
        return self._value

    @property
    def listeners(self) -> Dict[str, Dict[str, List[Listener]]]:
        """Copy of the registry: normalized path -> channel -> callbacks."""
        self._check_alive()
        return {
            path: {channel: list(callbacks) for channel, callbacks in channels.items()}
            for path, channels in self._listeners.items()
        }

    def add_listener(
        self,
        callback: Listener,
        path: str = "/",
        channel: str = DEFAULT_CHANNEL,
    ) -> Observable:
        self._check_alive()
        if not callable(callback):
            raise InvalidArgument("Listener must be callable")
        key = normalize_path(path)
        self._listeners.setdefault(key, {}).setdefault(channel, []).append(callback)
        return self

    def remove_listener(
        self,
        callback: Listener,
        path: str = "/",
        channel: str = DEFAULT_CHANNEL,
    ) -> Observable:
        """Remove one registration of callback; prune entries left empty. No-op if absent."""
        self._check_alive()
        key = normalize_path(path)
        channels = self._listeners.get(key)
        if not channels or channel not in channels:
            return self
        callbacks = channels[channel]
        try:
            callbacks.remove(callback)
        except ValueError:
            return self
        if not callbacks:
            del channels[channel]
        if not channels:
            del self._listeners[key]
        return self

    def listener_count(self, path: str = "/", channel: str = DEFAULT_CHANNEL) -> int:
        self._check_alive()
        return len(self._listeners.get(normalize_path(path), {}).get(channel, ()))

    def get_value(self, path: str = "/") -> Any:
        self._check_alive()
        return get_by_path(self._value, path)

    def set_value(
        self,
        new_value: Any,
        path: str = "/",
        channels: Union[str, Iterable[str]] = (DEFAULT_CHANNEL,),
    ) -> Observable:
        """Write new_value at path, then notify listeners from path up to the root."""
        self._check_alive()
        written = normalize_path(path)
        if isinstance(channels, str):
            channels = (channels,)
        else:
            channels = tuple(channels)

        old_root = self._value
        self._value = set_by_path(old_root, written, new_value)

        for level in ancestor_paths(written):
            registered = self._listeners.get(level)
            if not registered:
                continue
            new_at_level = get_by_path(self._value, level)
            old_at_level = get_by_path(old_root, level)
            for channel in channels:
                # Listeners may unsubscribe while being notified.
                for callback in list(registered.get(channel, ())):
                    callback(new_at_level, old_at_level, written)
        return self

    def dispose(self) -> None:
        if self._disposed:
            return
        self._listeners.clear()
        super().dispose()

    def __repr__(self) -> str:
        return f"Observable(keys={sorted(self._value)!r}, paths={sorted(self._listeners)!r})"
