"""Utility to print flow graphs in clean text representation."""

from symflow.models.flow_graph import ConnectionClassification, FlowGraphResult


def print_flow_graph(result: FlowGraphResult, include_findings: bool = True) -> str:
    """
    Convert a built flow graph to a clean text representation.

    Args:
        result: Output of the flow graph engine
        include_findings: Include errors, warnings and fixes (default: True)

    Returns:
        Formatted string representation of the graph
    """
    lines = []
    report = result.report

    # Header
    lines.append("=" * 60)
    lines.append("  FLOW GRAPH")
    lines.append("=" * 60)
    lines.append(f"  Status: {report.status.value}")
    lines.append(f"  Valid: {'✓ Yes' if result.is_valid else '✗ No'}")
    lines.append(f"  Score: {report.score}/100")
    lines.append(f"  Repair passes: {report.iterations}")
    lines.append("")

    # Nodes
    lines.append("  NODES:")
    lines.append("  " + "-" * 56)

    if not result.nodes:
        lines.append("  (No nodes)")
        lines.append("")

    for i, node in enumerate(result.nodes, 1):
        icon = _get_kind_icon(node.kind, getattr(node, "end_status", None))
        pos = result.positions.get(node.id)

        lines.append(f"  {icon} [{i}] {node.title} ({node.id})")
        kind_line = f"       Kind: {node.kind}"
        if node.subtype:
            kind_line += f" / {node.subtype}"
        if getattr(node, "end_status", None):
            kind_line += f" ({node.end_status.value})"
        lines.append(kind_line)
        if pos:
            lines.append(f"       Position: ({pos.x}, {pos.y})")
        if node.correlation_id:
            lines.append(f"       Correlation: {node.correlation_id}")
        lines.append("")

    # Connections
    lines.append("  CONNECTIONS:")
    lines.append("  " + "-" * 56)

    if result.connections:
        for conn in result.connections:
            arrow = f"  {conn.source_id} {_get_arrow(conn.classification)} {conn.target_id}"
            if conn.label:
                arrow += f" [{conn.label}]"
            lines.append(arrow)
    else:
        lines.append("  (No connections defined)")
    lines.append("")

    if include_findings:
        for title, findings in (("ERRORS", report.errors), ("WARNINGS", report.warnings)):
            if not findings:
                continue
            lines.append(f"  {title}:")
            lines.append("  " + "-" * 56)
            for finding in findings:
                lines.append(f"  • {finding.code.value}: {finding.message}")
            lines.append("")

        if report.fixes_applied:
            lines.append("  FIXES APPLIED:")
            lines.append("  " + "-" * 56)
            for fix in report.fixes_applied:
                lines.append(f"  ✓ {fix}")
            lines.append("")

    lines.append("=" * 60)

    return "\n".join(lines)


def print_flow_graph_compact(result: FlowGraphResult) -> str:
    """
    Print a compact one-line representation in layout order.

    Args:
        result: Output of the flow graph engine

    Returns:
        Compact string representation
    """
    ordered = sorted(result.placements, key=lambda p: p.order_index)
    parts = []
    for placement in ordered:
        node = result.get_node(placement.node_id)
        if node is None:
            continue
        icon = _get_kind_icon(node.kind, getattr(node, "end_status", None))
        parts.append(f"{icon} {node.id}")

    status = "✓" if result.is_valid else "✗"
    return f"{status} " + " → ".join(parts)


def _get_kind_icon(kind: str, end_status=None) -> str:
    """Get an icon for a node kind."""
    if kind == "end":
        return "🛑" if end_status is not None and end_status.value == "error" else "🏁"
    icons = {
        "trigger": "⚡",
        "action": "⚙️",
        "condition": "🔀",
        "subflow": "📦",
    }
    return icons.get(kind, "•")


def _get_arrow(classification: ConnectionClassification) -> str:
    arrows = {
        ConnectionClassification.SUCCESS: "──→",
        ConnectionClassification.ERROR: "══✗",
        ConnectionClassification.CONDITIONAL: "──?",
        ConnectionClassification.DEFAULT: "···",
    }
    return arrows[classification]
