"""Pydantic models for the symbolic flow graph engine."""
from symflow.models.flow_node import (
    NodeKind,
    EndStatus,
    PathClass,
    EdgeHint,
    FlowNodeDraft,
    SymbolicNode,
    TriggerNode,
    ActionNode,
    ConditionNode,
    EndNode,
    SubflowNode,
    to_symbolic,
)
from symflow.models.findings import (
    Severity,
    FindingCode,
    ValidationFinding,
    ValidationResult,
)
from symflow.models.flow_graph import (
    Connection,
    ConnectionClassification,
    Position,
    Lane,
    NodePlacement,
    LayoutBounds,
    UnresolvedReference,
    ReferenceResolution,
    GraphStats,
    RepairStatus,
    FlowGraphReport,
    FlowGraphResult,
)

__all__ = [
    "NodeKind",
    "EndStatus",
    "PathClass",
    "EdgeHint",
    "FlowNodeDraft",
    "SymbolicNode",
    "TriggerNode",
    "ActionNode",
    "ConditionNode",
    "EndNode",
    "SubflowNode",
    "to_symbolic",
    "Severity",
    "FindingCode",
    "ValidationFinding",
    "ValidationResult",
    "Connection",
    "ConnectionClassification",
    "Position",
    "Lane",
    "NodePlacement",
    "LayoutBounds",
    "UnresolvedReference",
    "ReferenceResolution",
    "GraphStats",
    "RepairStatus",
    "FlowGraphReport",
    "FlowGraphResult",
]
