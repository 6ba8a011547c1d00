"""Symbolic flow graph engine.

Turns AI-synthesized workflow node descriptions into well-formed,
fully linked and positioned graphs.
"""
from symflow.engine import FlowGraphEngine, EngineConfig, MalformedInputError, build_flow_graph

__version__ = "0.1.0"

__all__ = ["FlowGraphEngine", "EngineConfig", "MalformedInputError", "build_flow_graph"]
