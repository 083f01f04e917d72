#!/usr/bin/env python3
"""modeler: build a small graph in code, then watch push updates.

Shows named operations, pull evaluation with Graph.compute and the push
cascade triggered by writing to a source node.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from modeler import Graph, Node, ProcessRegistry, register_function
from modeler.processes import ExpressionProcess


@register_function("discount")
def discount(inputs, state):
    rate = 0.1 if inputs.get("total", 0) > 40 else 0.0
    return {"output": {"discounted": round(inputs.get("total", 0) * (1 - rate), 2)}}


def main():
    registry = ProcessRegistry.global_registry()
    graph = Graph.load(Path(__file__).parent / "pricing.yaml")
    graph.add_node(Node("discount", registry.build({"process_type": "discount"})))
    graph.add_edge("total", "discount")

    print("1. Pull evaluation")
    result = graph.compute({"price": 12.5, "qty": 4})
    print(f"   output: {result['output']}")

    print("2. Push: write a new order into the source node")
    graph.get_node("discount").output.add_listener(
        lambda new, old, path: print(f"   discounted: {old.get('discounted')} -> {new['discounted']}")
    )
    graph.get_node("order").compute({"price": 3.0, "qty": 2})

    print("3. Queries")
    print(f"   sources: {[n.node_id for n in graph.query_selector_all('$source')]}")
    print(f"   feeds subtotal: {[n.node_id for n in graph.query_selector_all('->subtotal')]}")

    print("4. Swap a process in place")
    graph.get_node("subtotal").update(ExpressionProcess(config={"outputs": {"subtotal": "price * qty - 1"}}))
    graph.get_node("order").compute({"price": 3.0, "qty": 2})

    print(f"5. Snapshot edges: {graph.to_config()['edges']}")
    graph.dispose()


if __name__ == "__main__":
    main()
