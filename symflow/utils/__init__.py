"""Display helpers."""
from symflow.utils.graph_printer import print_flow_graph, print_flow_graph_compact

__all__ = ["print_flow_graph", "print_flow_graph_compact"]
