"""API route modules."""
from symflow.api import flow_graph

__all__ = ["flow_graph"]
