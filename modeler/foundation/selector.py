"""
Selector language over the nodes of a graph.

Whitespace-separated tokens, all ANDed; a token may chain several atoms:

    #id        node id equals
    $type      classification equals (0, 1, 2, -1 or source/sink/isolated/interior)
    [key=val]  attribute or property loosely equals
    ->id       node has an outgoing edge to id
    *          match all

Text that is not an atom is ignored unless strict parsing is requested.
No escaping: values cannot contain whitespace or "]".
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Tuple

from modeler.foundation.errors import InvalidArgument

if TYPE_CHECKING:
    from modeler.foundation.graph import Graph
    from modeler.foundation.node import Node

logger = logging.getLogger(__name__)

_ATOM = re.compile(
    r"#(?P<id>\w+)"
    r"|\$(?P<type>-?\w+)"
    r"|\[(?P<key>\w+)=(?P<value>[^\]]*)\]"
    r"|->(?P<edge>\w+)"
    r"|(?P<all>\*)"
)

_MISSING = object()


def _loose_equals(actual: Any, text: str) -> bool:
    if actual is None:
        return text in ("None", "null")
    if isinstance(actual, bool):
        return text.lower() in (("true", "1") if actual else ("false", "0"))
    if isinstance(actual, (int, float)):
        try:
            return float(text) == actual
        except ValueError:
            return False
    return str(actual) == text


class Predicate(ABC):
    @abstractmethod
    def matches(self, node: Node, graph: Graph) -> bool:
        ...


@dataclass(frozen=True)
class IdEquals(Predicate):
    node_id: str

    def matches(self, node: Node, graph: Graph) -> bool:
        return node.node_id == self.node_id


@dataclass(frozen=True)
class TypeEquals(Predicate):
    """Loose: "$0" and "$source" both select sources."""

    value: str

    def matches(self, node: Node, graph: Graph) -> bool:
        node_type = node.get_type()
        return self.value == str(int(node_type)) or self.value.lower() == node_type.name.lower()


@dataclass(frozen=True)
class PropertyEquals(Predicate):
    key: str
    value: str

    def matches(self, node: Node, graph: Graph) -> bool:
        if self.key in node.attributes:
            return _loose_equals(node.attributes[self.key], self.value)
        name = "node_id" if self.key == "id" else self.key
        if name.startswith("_"):
            return False
        actual = getattr(node, name, _MISSING)
        if actual is _MISSING or callable(actual):
            return False
        return _loose_equals(actual, self.value)


@dataclass(frozen=True)
class HasOutgoingEdgeTo(Predicate):
    target_id: str

    def matches(self, node: Node, graph: Graph) -> bool:
        return graph.get_edge(node.node_id, self.target_id) is not None


@dataclass(frozen=True)
class MatchAll(Predicate):
    def matches(self, node: Node, graph: Graph) -> bool:
        return True


@dataclass(frozen=True)
class Selector:
    """Conjunction of predicates; an empty selector matches every node."""

    predicates: Tuple[Predicate, ...] = ()

    def matches(self, node: Node, graph: Graph) -> bool:
        return all(p.matches(node, graph) for p in self.predicates)


def _atom_to_predicate(match: re.Match) -> Predicate:
    if match.group("id") is not None:
        return IdEquals(match.group("id"))
    if match.group("type") is not None:
        return TypeEquals(match.group("type"))
    if match.group("key") is not None:
        return PropertyEquals(match.group("key"), match.group("value"))
    if match.group("edge") is not None:
        return HasOutgoingEdgeTo(match.group("edge"))
    return MatchAll()


def parse_selector(query: str, *, strict: bool = False) -> Selector:
    if not isinstance(query, str):
        raise InvalidArgument(f"Selector must be a string, got {type(query).__name__}")
    predicates: List[Predicate] = []
    for token in query.split():
        pos = 0
        while pos < len(token):
            match = _ATOM.match(token, pos)
            if match is None:
                rest = token[pos:]
                if strict:
                    raise InvalidArgument(f"Unrecognized selector atom {rest!r} in {query!r}")
                logger.debug(f"Ignoring unrecognized selector atom {rest!r}")
                break
            predicates.append(_atom_to_predicate(match))
            pos = match.end()
    return Selector(tuple(predicates))
