"""Output-side models: connections, layout, audit records and the final graph."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from symflow.models.findings import ValidationFinding
from symflow.models.flow_node import PathClass, SymbolicNode


class ConnectionClassification(str, Enum):
    """Semantic category of a synthesized edge."""
    SUCCESS = "success"
    ERROR = "error"
    CONDITIONAL = "conditional"
    DEFAULT = "default"


class Lane(str, Enum):
    """Layout lanes. Overflow holds nodes unreachable from the trigger."""
    MAIN = "main"
    ERROR = "error"
    ALTERNATIVE = "alternative"
    OVERFLOW = "overflow"

    @classmethod
    def from_path_class(cls, path_class: PathClass) -> "Lane":
        return cls(path_class.value)


class Connection(BaseModel):
    """A directed edge derived from a node's success/failure reference."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Deterministic edge identifier")
    source_id: str = Field(..., description="Source node ID")
    target_id: str = Field(..., description="Target node ID")
    classification: ConnectionClassification = Field(
        ConnectionClassification.DEFAULT,
        description="Edge category",
    )
    label: Optional[str] = Field(None, description="Display label for the edge")
    source_field: str = Field(
        "next_on_success",
        description="Reference field the edge was derived from",
    )


class Position(BaseModel):
    """2D position for node layout."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(0, description="X coordinate")
    y: int = Field(0, description="Y coordinate")


class NodePlacement(BaseModel):
    """Discrete layout coordinates for one node."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    order_index: int = Field(..., description="1-based BFS order")
    depth: Optional[int] = Field(None, description="BFS depth, None for overflow nodes")
    lane: Lane = Field(..., description="Lane the node was placed in")
    slot: int = Field(0, description="Stack index within the (depth, lane) cell")


class LayoutBounds(BaseModel):
    """Overall extent of the laid-out graph."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    center_x: float
    center_y: float


class UnresolvedReference(BaseModel):
    """A reference the normalizer had to clear."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    field: str
    raw_value: str


class ReferenceResolution(BaseModel):
    """Audit record of how one reference was resolved."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    field: str
    raw_value: str
    resolved_id: Optional[str] = None
    method: str = Field(
        ...,
        description="exact, positional, alias, fuzzy, unresolved or dropped",
    )


class GraphStats(BaseModel):
    """Counts describing the final graph."""

    total_nodes: int = 0
    total_connections: int = 0
    triggers: int = 0
    actions: int = 0
    conditions: int = 0
    subflows: int = 0
    ends_success: int = 0
    ends_error: int = 0
    max_depth: int = 0
    orphan_nodes: int = 0
    disconnected_nodes: int = 0


class RepairStatus(str, Enum):
    """States of the validate/repair loop."""
    VALIDATING = "validating"
    REPAIRING = "repairing"
    CONVERGED = "converged"
    FAILED = "failed"


class FlowGraphReport(BaseModel):
    """Everything a caller needs to render a diagnostic report."""

    status: RepairStatus
    errors: list[ValidationFinding] = Field(default_factory=list)
    warnings: list[ValidationFinding] = Field(default_factory=list)
    fixes_applied: list[str] = Field(default_factory=list)
    iterations: int = Field(0, description="Repair passes performed")
    resolutions: list[ReferenceResolution] = Field(default_factory=list)
    stats: GraphStats = Field(default_factory=GraphStats)
    score: int = Field(0, ge=0, le=100, description="Integrity score")

    @property
    def is_valid(self) -> bool:
        return not self.errors


class FlowGraphResult(BaseModel):
    """Normalized, repaired, linked and positioned graph."""

    nodes: list[SymbolicNode] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    positions: dict[str, Position] = Field(default_factory=dict)
    placements: list[NodePlacement] = Field(default_factory=list)
    bounds: Optional[LayoutBounds] = None
    report: FlowGraphReport

    @property
    def is_valid(self) -> bool:
        return self.report.is_valid

    def get_node(self, node_id: str) -> Optional[SymbolicNode]:
        """Get a node by its ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["report"]["is_valid"] = self.is_valid
        return data

