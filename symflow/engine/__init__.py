"""Flow graph engine stages."""
from symflow.engine.autofix import AutofixOutcome, AutofixRepairer, run_autofix
from symflow.engine.config import EngineConfig
from symflow.engine.edges import classify_connection_type, synthesize_connections
from symflow.engine.ingest import MalformedInputError, parse_nodes
from symflow.engine.layout import LayoutAssigner, LayoutResult, assign_layout
from symflow.engine.metrics import compute_stats, integrity_score
from symflow.engine.normalizer import (
    NormalizationResult,
    ReferenceNormalizer,
    normalize_references,
)
from symflow.engine.pipeline import FlowGraphEngine, build_flow_graph
from symflow.engine.validator import StructuralValidator, validate_graph

__all__ = [
    "AutofixOutcome",
    "AutofixRepairer",
    "run_autofix",
    "EngineConfig",
    "classify_connection_type",
    "synthesize_connections",
    "MalformedInputError",
    "parse_nodes",
    "LayoutAssigner",
    "LayoutResult",
    "assign_layout",
    "compute_stats",
    "integrity_score",
    "NormalizationResult",
    "ReferenceNormalizer",
    "normalize_references",
    "FlowGraphEngine",
    "build_flow_graph",
    "StructuralValidator",
    "validate_graph",
]
