"""CLI entry point for modeler.

Usage:
    # Evaluate a graph snapshot (YAML or JSON) and print the merged output
    modeler run graph.yaml --input '{"x": 5}'

    # List nodes with their classification, and the edges
    modeler inspect graph.yaml

    # Select nodes
    modeler query graph.yaml '$0'

    # Registered process types
    modeler processes

    # Settings file and overrides
    modeler --config settings.yaml --set graph.reject_cycles=false run graph.yaml
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from omegaconf.errors import OmegaConfBaseException

from modeler import __version__
from modeler.config import graph_options, load_settings
from modeler.foundation.errors import ModelerError
from modeler.foundation.graph import Graph
from modeler.foundation.registry import ProcessRegistry

logger = logging.getLogger(__name__)


def _parse_mapping(text: Optional[str], what: str) -> Dict[str, Any]:
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"--{what} is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError(f"--{what} must be a JSON object")
    return value


def _cmd_run(args: argparse.Namespace, graph: Graph) -> None:
    result = graph.compute(
        _parse_mapping(args.input, "input"),
        _parse_mapping(args.state, "state"),
    )
    print(json.dumps(result, indent=2, default=str))


def _cmd_inspect(args: argparse.Namespace, graph: Graph) -> None:
    print(f"graph {graph.graph_id}: {len(graph.node_ids)} nodes, {len(graph.edges)} edges")
    for node in graph.nodes.values():
        inputs = ", ".join(b.ref_id for b in node.inputs) or "-"
        print(f"  {node.node_id}  [{node.get_type().name.lower()}]  {node.process_type}  <- {inputs}")
    for edge in graph.edges:
        print(f"  {edge.source} -> {edge.target}")


def _cmd_query(args: argparse.Namespace, graph: Graph) -> None:
    for node in graph.query_selector_all(args.query):
        print(node.node_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modeler",
        description="Modeler: reactive dataflow graphs",
    )
    parser.add_argument("--version", action="version", version=f"modeler {__version__}")
    parser.add_argument("--config", type=str, default=None, help="Settings file (YAML/JSON)")
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
        help="Override a setting, e.g. selector.strict=true",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (overrides settings)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # === RUN ===
    run_parser = subparsers.add_parser("run", help="Compute a graph and print its output")
    run_parser.add_argument("graph", type=str)
    run_parser.add_argument("--input", type=str, default=None, help="Root input as JSON object")
    run_parser.add_argument("--state", type=str, default=None, help="Root state as JSON object")

    # === INSPECT ===
    inspect_parser = subparsers.add_parser("inspect", help="List nodes and edges")
    inspect_parser.add_argument("graph", type=str)

    # === QUERY ===
    query_parser = subparsers.add_parser("query", help="Select nodes, e.g. '#a $0 [kind=x] ->b'")
    query_parser.add_argument("graph", type=str)
    query_parser.add_argument("query", type=str)

    # === PROCESSES ===
    subparsers.add_parser("processes", help="List registered process types")

    return parser


_GRAPH_COMMANDS = {
    "run": _cmd_run,
    "inspect": _cmd_inspect,
    "query": _cmd_query,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config, args.overrides)
        logging.basicConfig(
            level=(args.log_level or settings.logging.level).upper(),
            format=settings.logging.format,
        )
        if args.command == "processes":
            for process_type in ProcessRegistry.global_registry().list_types():
                print(process_type)
            return 0
        graph = Graph.load(args.graph, **graph_options(settings))
        logger.debug(f"Loaded {graph!r} from {args.graph}")
        _GRAPH_COMMANDS[args.command](args, graph)
    except (ModelerError, ValueError, OSError, OmegaConfBaseException) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
