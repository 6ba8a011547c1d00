"""Graph statistics and the 0-100 integrity score shown in reports."""
from typing import Sequence

from symflow.models.findings import ValidationFinding
from symflow.models.flow_graph import Connection, GraphStats, NodePlacement
from symflow.models.flow_node import EndStatus, NodeKind

ERROR_PENALTY = 20
WARNING_PENALTY = 5
CONNECTIVITY_PENALTY = 15


def compute_stats(
    nodes: Sequence,
    connections: Sequence[Connection],
    placements: Sequence[NodePlacement] = (),
) -> GraphStats:
    """Count nodes per role and find loose ends.

    Orphans are non-trigger nodes nothing points to. Disconnected nodes
    are non-end nodes that point nowhere.
    """
    with_input = {c.target_id for c in connections}
    with_output = {c.source_id for c in connections}

    def count(kind: NodeKind) -> int:
        return sum(1 for n in nodes if n.kind == kind)

    def ends(status: EndStatus) -> int:
        return sum(
            1 for n in nodes
            if n.kind == NodeKind.END and getattr(n, "end_status", None) == status
        )

    depths = [p.depth for p in placements if p.depth is not None]

    return GraphStats(
        total_nodes=len(nodes),
        total_connections=len(connections),
        triggers=count(NodeKind.TRIGGER),
        actions=count(NodeKind.ACTION),
        conditions=count(NodeKind.CONDITION),
        subflows=count(NodeKind.SUBFLOW),
        ends_success=ends(EndStatus.SUCCESS),
        ends_error=ends(EndStatus.ERROR),
        max_depth=max(depths, default=0),
        orphan_nodes=sum(
            1 for n in nodes if n.kind != NodeKind.TRIGGER and n.id not in with_input
        ),
        disconnected_nodes=sum(
            1 for n in nodes if n.kind != NodeKind.END and n.id not in with_output
        ),
    )


def integrity_score(
    errors: Sequence[ValidationFinding],
    warnings: Sequence[ValidationFinding],
    stats: GraphStats,
) -> int:
    """Score a graph from 0 to 100.

    Starts at 100, subtracts per error, warning, orphan and disconnected
    node, then adds small bonuses for a well-shaped graph. A multi-node
    graph with no connections at all scores 0.
    """
    if stats.total_connections == 0 and stats.total_nodes > 1:
        return 0

    score = 100
    score -= len(errors) * ERROR_PENALTY
    score -= len(warnings) * WARNING_PENALTY
    score -= stats.orphan_nodes * CONNECTIVITY_PENALTY
    score -= stats.disconnected_nodes * CONNECTIVITY_PENALTY

    if stats.triggers == 1:
        score += 5
    if stats.ends_success == 1:
        score += 5
    if stats.conditions > 0:
        score += 3
    if stats.orphan_nodes == 0:
        score += 5
    if stats.disconnected_nodes == 0:
        score += 5

    return max(0, min(100, score))
